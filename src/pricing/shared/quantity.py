"""Quantity value object for item counts."""

import math

from protean.exceptions import ValidationError
from protean.fields import Integer

from pricing.domain import pricing

MAX_QUANTITY = 999_999


@pricing.value_object
class Quantity:
    """A whole, non-negative count of units, at most 999,999.

    Arithmetic returns new instances; results outside the allowed range are
    rejected with a ``ValidationError`` just like direct construction.
    """

    value: Integer(required=True, min_value=0, max_value=MAX_QUANTITY)

    @classmethod
    def of(cls, value):
        """Build a Quantity from raw caller input, refusing fractional counts."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
            raise ValidationError({"value": ["Quantity must be a whole number"]})
        return cls(value=value)

    @classmethod
    def zero(cls):
        return cls(value=0)

    @classmethod
    def one(cls):
        return cls(value=1)

    def add(self, other):
        return Quantity(value=self.value + other.value)

    def subtract(self, other):
        result = self.value - other.value
        if result < 0:
            raise ValidationError({"value": ["Resulting quantity cannot be negative"]})
        return Quantity(value=result)

    def multiply(self, factor):
        if factor < 0:
            raise ValidationError({"factor": ["Multiplication factor cannot be negative"]})
        return Quantity(value=math.floor(self.value * factor))

    def is_zero(self):
        return self.value == 0

    def is_positive(self):
        return self.value > 0

    def is_greater_than(self, other):
        return self.value > other.value

    def is_less_than(self, other):
        return self.value < other.value

    def __int__(self):
        return self.value

    def __str__(self):
        return str(self.value)
