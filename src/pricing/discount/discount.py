"""Discount value object: a fixed or percentage reduction of a cart subtotal."""

from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Float, String

from pricing.domain import pricing
from pricing.shared.money import quantize, to_decimal

MAX_FIXED_DISCOUNT = 999_999
MAX_PERCENTAGE = 100


class DiscountKind(Enum):
    FIXED = "FIXED"
    PERCENTAGE = "PERCENTAGE"


@pricing.value_object
class Discount:
    """A named price reduction applied to a cart subtotal.

    ``amount`` is a currency amount for FIXED discounts and a percentage (0-100]
    for PERCENTAGE discounts. ``cap_amount`` optionally limits what a percentage
    discount can take off. The name is the discount's key within a cart; a
    discount is never changed in place, only removed and applied again.
    """

    name: String(required=True, max_length=50)
    kind: String(required=True, choices=DiscountKind)
    amount: Float(required=True)
    cap_amount: Float()

    @invariant.post
    def name_must_not_be_blank(self):
        if self.name is not None and not self.name.strip():
            raise ValidationError({"name": ["Discount name cannot be empty or whitespace"]})

    @invariant.post
    def amount_must_be_positive(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError({"amount": ["Discount amount must be positive"]})

    @invariant.post
    def fixed_amount_must_be_within_limits(self):
        if self.kind != DiscountKind.FIXED.value or self.amount is None:
            return

        if self.amount > MAX_FIXED_DISCOUNT:
            raise ValidationError({"amount": ["Fixed discount amount cannot exceed 999,999"]})

        exact = to_decimal(self.amount)
        if exact != quantize(exact):
            raise ValidationError({"amount": ["Fixed discount amount cannot have more than 2 decimal places"]})

        if self.cap_amount is not None:
            raise ValidationError({"cap_amount": ["A cap only applies to percentage discounts"]})

    @invariant.post
    def percentage_must_be_within_limits(self):
        if self.kind != DiscountKind.PERCENTAGE.value or self.amount is None:
            return

        if self.amount > MAX_PERCENTAGE:
            raise ValidationError({"amount": ["Percentage discount cannot exceed 100%"]})

        if self.cap_amount is None:
            return

        if self.cap_amount <= 0:
            raise ValidationError({"cap_amount": ["Maximum discount amount must be positive"]})

        if self.cap_amount > MAX_FIXED_DISCOUNT:
            raise ValidationError({"cap_amount": ["Maximum discount amount cannot exceed 999,999"]})

        exact = to_decimal(self.cap_amount)
        if exact != quantize(exact):
            raise ValidationError({"cap_amount": ["Maximum discount amount cannot have more than 2 decimal places"]})

    # -------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------
    @classmethod
    def fixed(cls, name, amount):
        return cls(name=name, kind=DiscountKind.FIXED.value, amount=amount)

    @classmethod
    def percentage(cls, name, percentage, cap_amount=None):
        return cls(name=name, kind=DiscountKind.PERCENTAGE.value, amount=percentage, cap_amount=cap_amount)

    # -------------------------------------------------------------------
    # Behaviour
    # -------------------------------------------------------------------
    @property
    def is_fixed(self):
        return self.kind == DiscountKind.FIXED.value

    @property
    def is_percentage(self):
        return self.kind == DiscountKind.PERCENTAGE.value

    def calculate(self, subtotal):
        """Amount this discount takes off ``subtotal``, never more than the subtotal itself."""
        from pricing.discount.engine import DiscountEngine

        return DiscountEngine().calculate(subtotal, self)

    def to_record(self):
        return {
            "name": self.name,
            "kind": self.kind,
            "amount": self.amount,
            "cap_amount": self.cap_amount,
        }

    @classmethod
    def from_record(cls, record):
        return cls(
            name=record["name"],
            kind=record["kind"],
            amount=record["amount"],
            cap_amount=record.get("cap_amount"),
        )

    def __str__(self):
        if self.is_fixed:
            return f"{self.name}: {to_decimal(self.amount):.2f} off"

        cap = f" (max {to_decimal(self.cap_amount):.2f})" if self.cap_amount is not None else ""
        return f"{self.name}: {to_decimal(self.amount).normalize():f}% off{cap}"
