"""Discount calculation and validation.

Stateless math over ``Money`` and ``Discount`` values, kept apart from the cart
so it can be exercised on its own. Stacked discounts are applied in order
against a shrinking remainder: a second percentage discount works off what the
first one left, and no discount can take off more than is still there.
"""

from dataclasses import dataclass

from protean.exceptions import ValidationError

from pricing.discount.discount import MAX_FIXED_DISCOUNT, Discount, DiscountKind
from pricing.shared.money import Money, quantize, to_decimal


@dataclass(frozen=True)
class DiscountInfo:
    """Display view of one discount as applied to a given subtotal."""

    name: str
    kind: str
    description: str
    amount: Money
    savings: str


class DiscountEngine:
    """Pure discount math. Holds no state; a single instance may be shared freely."""

    # -------------------------------------------------------------------
    # Calculations
    # -------------------------------------------------------------------
    def calculate_fixed(self, subtotal: Money, amount: float) -> Money:
        if amount <= 0:
            raise ValidationError({"amount": ["Discount amount must be positive"]})

        if subtotal.is_zero():
            return Money.zero(subtotal.currency)

        discount = self._money(amount, subtotal.currency)
        return Money.minimum(discount, subtotal)

    def calculate_percentage(self, subtotal: Money, percentage: float, cap: float | None = None) -> Money:
        if percentage <= 0 or percentage > 100:
            raise ValidationError({"percentage": ["Percentage must be between 0 and 100"]})

        if cap is not None and cap <= 0:
            raise ValidationError({"cap_amount": ["Maximum discount amount must be positive"]})

        if subtotal.is_zero():
            return Money.zero(subtotal.currency)

        discount = subtotal.percentage(percentage)
        if cap is not None:
            discount = Money.minimum(discount, self._money(cap, subtotal.currency))

        return Money.minimum(discount, subtotal)

    def calculate(self, subtotal: Money, discount: Discount) -> Money:
        if discount.kind == DiscountKind.FIXED.value:
            return self.calculate_fixed(subtotal, discount.amount)
        return self.calculate_percentage(subtotal, discount.amount, discount.cap_amount)

    def calculate_sequential(self, subtotal: Money, discounts: list[Discount]) -> Money:
        """Total taken off ``subtotal`` by ``discounts`` applied one after another."""
        total = Money.zero(subtotal.currency)
        remaining = subtotal

        for discount in discounts:
            if remaining.is_zero():
                break

            amount = Money.minimum(self.calculate(remaining, discount), remaining)
            total = total.add(amount)
            remaining = remaining.subtract(amount)

        return total

    def breakdown(self, subtotal: Money, discounts: list[Discount]) -> list[DiscountInfo]:
        """Per-discount view of ``calculate_sequential``; the amounts add up to its result."""
        infos = []
        remaining = subtotal

        for discount in discounts:
            if remaining.is_zero():
                amount = Money.zero(subtotal.currency)
            else:
                amount = Money.minimum(self.calculate(remaining, discount), remaining)
                remaining = remaining.subtract(amount)

            infos.append(self._info(discount, amount, subtotal))

        return infos

    def describe(self, discount: Discount, subtotal: Money) -> DiscountInfo:
        """Display view of ``discount`` applied on its own to ``subtotal``."""
        return self._info(discount, self.calculate(subtotal, discount), subtotal)

    # -------------------------------------------------------------------
    # Validation and construction
    # -------------------------------------------------------------------
    def validate(self, discount: Discount) -> list[str]:
        """Business-level review of an already constructed discount. Empty means acceptable."""
        errors = []

        if discount.kind == DiscountKind.PERCENTAGE.value:
            if discount.amount >= 100:
                errors.append("Percentage discount of 100% or more is suspicious")

            if discount.cap_amount is not None and discount.cap_amount <= 0:
                errors.append("Maximum discount amount must be positive")

        if discount.kind == DiscountKind.FIXED.value and discount.amount > MAX_FIXED_DISCOUNT:
            errors.append("Fixed discount amount is unreasonably large")

        return errors

    def create_fixed(self, name: str, amount: float) -> Discount:
        return self._checked(Discount.fixed(name, amount))

    def create_percentage(self, name: str, percentage: float, cap: float | None = None) -> Discount:
        return self._checked(Discount.percentage(name, percentage, cap))

    def can_stack(self, first: Discount, second: Discount) -> bool:
        """Two discounts can be active together unless they share a name."""
        return first.name != second.name

    def _checked(self, discount: Discount) -> Discount:
        errors = self.validate(discount)
        if errors:
            raise ValidationError({"discount": errors})
        return discount

    def _money(self, value: float, currency: str) -> Money:
        """Round a caller-supplied amount half-up to cents."""
        return Money(amount=float(quantize(to_decimal(value))), currency=currency)

    def _info(self, discount: Discount, amount: Money, subtotal: Money) -> DiscountInfo:
        if subtotal.is_zero():
            savings = 0
        else:
            savings = to_decimal(amount.amount) / to_decimal(subtotal.amount) * 100

        return DiscountInfo(
            name=discount.name,
            kind=discount.kind,
            description=str(discount),
            amount=amount,
            savings=f"{savings:.1f}%",
        )
