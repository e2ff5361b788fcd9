"""Domain events for the ShoppingCart aggregate."""

from protean.fields import Float, Identifier, Integer, String

from pricing.domain import pricing


@pricing.event(part_of="ShoppingCart")
class CartItemAdded:
    """A product was added to the cart as a regular purchase (or its quantity was merged)."""

    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    unit_price = Float(required=True)
    currency = String(max_length=3, required=True)


@pricing.event(part_of="ShoppingCart")
class CartItemUpdated:
    """The quantity of a regular cart item was set directly."""

    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@pricing.event(part_of="ShoppingCart")
class CartItemRemoved:
    """An item was removed from the cart, along with any freebies it triggered."""

    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)


@pricing.event(part_of="ShoppingCart")
class CartCleared:
    """All items, discounts and freebie rules were dropped from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)


@pricing.event(part_of="ShoppingCart")
class DiscountApplied:
    """A discount became active on the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    name = String(required=True, max_length=50)
    kind = String(required=True, max_length=20)
    amount = Float(required=True)
    cap_amount = Float()


@pricing.event(part_of="ShoppingCart")
class DiscountRemoved:
    """A discount was withdrawn from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    name = String(required=True, max_length=50)


@pricing.event(part_of="ShoppingCart")
class FreebieRuleApplied:
    """A freebie rule became active on the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    name = String(required=True, max_length=100)
    trigger_product = Identifier(required=True)
    freebie_product = Identifier(required=True)
    freebie_quantity = Integer(required=True)


@pricing.event(part_of="ShoppingCart")
class FreebieRuleRemoved:
    """A freebie rule was withdrawn, together with the freebie items it produced."""

    __version__ = 1

    cart_id = Identifier(required=True)
    name = String(required=True, max_length=100)
