"""ProductIdentifier value object for catalog product references."""

import re

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import String

from pricing.domain import pricing

_PRODUCT_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


@pricing.value_object
class ProductIdentifier:
    """Opaque product reference as handed over by the catalog.

    Format: letters, digits, hyphens and underscores, 1-100 chars.
    E.g., "laptop-1", "SKU_4410". Equal by value and hashable, so it can key a
    mapping of line items.
    """

    value: String(required=True, max_length=100)

    @invariant.post
    def value_must_be_well_formed(self):
        if self.value is None:
            return

        if not self.value.strip():
            raise ValidationError({"value": ["Product ID cannot be empty or whitespace"]})

        if not _PRODUCT_ID_PATTERN.fullmatch(self.value):
            raise ValidationError(
                {"value": ["Product ID can only contain letters, numbers, hyphens, and underscores"]}
            )

    @classmethod
    def of(cls, value):
        """Accept either a raw string or an existing identifier."""
        if isinstance(value, cls):
            return value
        return cls(value=value)

    def __eq__(self, other):
        if not isinstance(other, ProductIdentifier):
            return NotImplemented
        return self.value == other.value

    def __hash__(self):
        return hash(self.value)

    def __str__(self):
        return self.value
