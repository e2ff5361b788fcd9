"""FreebieRule value object: "buy the trigger product, get N of another product free"."""

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import String, ValueObject

from pricing.domain import pricing
from pricing.shared.product_id import ProductIdentifier
from pricing.shared.quantity import Quantity


@pricing.value_object
class FreebieRule:
    """A standing promotion on a cart.

    While ``trigger_product`` is in the cart as a regular purchase, the cart
    carries ``freebie_quantity`` units of ``freebie_product`` at no cost. The
    name is the rule's key within a cart.
    """

    name: String(required=True, max_length=100)
    trigger_product: ValueObject(ProductIdentifier, required=True)
    freebie_product: ValueObject(ProductIdentifier, required=True)
    freebie_quantity: ValueObject(Quantity, required=True)

    @invariant.post
    def name_must_not_be_blank(self):
        if self.name is not None and not self.name.strip():
            raise ValidationError({"name": ["Freebie rule name cannot be empty or whitespace"]})

    @invariant.post
    def product_cannot_be_its_own_freebie(self):
        if self.trigger_product is None or self.freebie_product is None:
            return

        if self.trigger_product == self.freebie_product:
            raise ValidationError({"freebie_product": ["Trigger product and freebie product cannot be the same"]})

    @invariant.post
    def freebie_quantity_must_be_positive(self):
        if self.freebie_quantity is not None and not self.freebie_quantity.is_positive():
            raise ValidationError({"freebie_quantity": ["Freebie quantity must be positive"]})

    @classmethod
    def create(cls, name, trigger_product, freebie_product, freebie_quantity=1):
        return cls(
            name=name,
            trigger_product=ProductIdentifier.of(trigger_product),
            freebie_product=ProductIdentifier.of(freebie_product),
            freebie_quantity=Quantity.of(freebie_quantity),
        )

    def is_inverse_of(self, other):
        """True when ``other`` gives back this rule's trigger for this rule's freebie."""
        return self.trigger_product == other.freebie_product and self.freebie_product == other.trigger_product

    def to_record(self):
        return {
            "name": self.name,
            "trigger_product": str(self.trigger_product),
            "freebie_product": str(self.freebie_product),
            "freebie_quantity": self.freebie_quantity.value,
        }

    @classmethod
    def from_record(cls, record):
        return cls.create(
            record["name"],
            record["trigger_product"],
            record["freebie_product"],
            record.get("freebie_quantity", 1),
        )

    def __str__(self):
        return f"{self.name}: Buy {self.trigger_product} get {self.freebie_quantity} x {self.freebie_product} free"
