"""Money value object for monetary amounts with currency."""

from decimal import ROUND_HALF_UP, Decimal

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Float, String

from pricing.domain import pricing

DEFAULT_CURRENCY = "THB"

SUPPORTED_CURRENCIES = frozenset(
    {
        "THB",
        "USD",
        "EUR",
        "GBP",
        "JPY",
        "SGD",
    }
)

_CURRENCY_SYMBOLS = {
    "THB": "฿",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Exact decimal form of a float or int as it was written, not as it is stored."""
    return Decimal(str(value))


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@pricing.value_object
class Money:
    """Value object representing a non-negative monetary amount with currency.

    Amounts are held with at most two decimal places. Every operation is done in
    ``Decimal`` and returns a new instance, so ``0.10 + 0.20`` is exactly ``0.30``.
    Binary operations require both sides to share a currency.
    """

    amount: Float(required=True, min_value=0.0)
    currency: String(max_length=3, default=DEFAULT_CURRENCY)

    @invariant.post
    def currency_must_be_supported(self):
        if self.currency not in SUPPORTED_CURRENCIES:
            raise ValidationError({"currency": [f"Unsupported currency: {self.currency}"]})

    @invariant.post
    def amount_must_have_at_most_two_decimal_places(self):
        if self.amount is None:
            return

        exact = to_decimal(self.amount)
        if exact != quantize(exact):
            raise ValidationError({"amount": ["Money amount cannot have more than 2 decimal places"]})

    # -------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------
    @classmethod
    def zero(cls, currency=DEFAULT_CURRENCY):
        return cls(amount=0.0, currency=currency)

    @classmethod
    def sum(cls, amounts):
        """Add up a non-empty sequence of Money values sharing one currency."""
        amounts = list(amounts)
        if not amounts:
            raise ValidationError({"amount": ["Cannot sum an empty list of money"]})

        total = cls.zero(amounts[0].currency)
        for money in amounts:
            total = total.add(money)
        return total

    @classmethod
    def minimum(cls, first, second):
        return first if first.is_less_than_or_equal(second) else second

    @classmethod
    def maximum(cls, first, second):
        return first if first.is_greater_than_or_equal(second) else second

    # -------------------------------------------------------------------
    # Arithmetic
    # -------------------------------------------------------------------
    def add(self, other):
        self._require_same_currency(other)
        return self._with(to_decimal(self.amount) + to_decimal(other.amount))

    def subtract(self, other):
        self._require_same_currency(other)
        result = to_decimal(self.amount) - to_decimal(other.amount)
        if result < 0:
            raise ValidationError({"amount": ["Money amount cannot be negative after subtraction"]})
        return self._with(result)

    def multiply(self, factor):
        if factor < 0:
            raise ValidationError({"factor": ["Cannot multiply money by a negative factor"]})
        return self._with(to_decimal(self.amount) * to_decimal(factor))

    def percentage(self, percent):
        """The given percent of this amount, rounded half-up to the cent."""
        if percent < 0:
            raise ValidationError({"percent": ["Percentage cannot be negative"]})
        return self._with(to_decimal(self.amount) * to_decimal(percent) / 100)

    # -------------------------------------------------------------------
    # Comparison
    # -------------------------------------------------------------------
    def is_zero(self):
        return to_decimal(self.amount) == 0

    def is_positive(self):
        return to_decimal(self.amount) > 0

    def is_greater_than(self, other):
        self._require_same_currency(other)
        return to_decimal(self.amount) > to_decimal(other.amount)

    def is_greater_than_or_equal(self, other):
        self._require_same_currency(other)
        return to_decimal(self.amount) >= to_decimal(other.amount)

    def is_less_than(self, other):
        self._require_same_currency(other)
        return to_decimal(self.amount) < to_decimal(other.amount)

    def is_less_than_or_equal(self, other):
        self._require_same_currency(other)
        return to_decimal(self.amount) <= to_decimal(other.amount)

    # -------------------------------------------------------------------
    # Formatting and records
    # -------------------------------------------------------------------
    def display(self):
        """Human readable form with a currency symbol where one is known, e.g. ``฿1,500.00``."""
        symbol = _CURRENCY_SYMBOLS.get(self.currency)
        if symbol is None:
            return str(self)
        return f"{symbol}{to_decimal(self.amount):,.2f}"

    def to_record(self):
        return {"amount": self.amount, "currency": self.currency}

    @classmethod
    def from_record(cls, record):
        return cls(amount=record["amount"], currency=record.get("currency", DEFAULT_CURRENCY))

    def __str__(self):
        return f"{to_decimal(self.amount):.2f} {self.currency}"

    def _with(self, value: Decimal):
        return Money(amount=float(quantize(value)), currency=self.currency)

    def _require_same_currency(self, other):
        if self.currency != other.currency:
            raise ValidationError(
                {"currency": [f"Cannot operate on different currencies: {self.currency} and {other.currency}"]}
            )
