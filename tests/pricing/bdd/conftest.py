"""Shared BDD fixtures and step definitions for the Pricing domain."""

import pytest
from pricing.cart.cart import ShoppingCart
from pricing.cart.events import (
    CartCleared,
    CartItemAdded,
    CartItemRemoved,
    CartItemUpdated,
    DiscountApplied,
    DiscountRemoved,
    FreebieRuleApplied,
    FreebieRuleRemoved,
)
from pricing.discount.discount import Discount
from pricing.exceptions import ConflictError
from pricing.freebie.rule import FreebieRule
from pricing.shared.money import Money
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from pytest_bdd import given, parsers, then

# Map event name strings to classes for dynamic lookup in Then steps
_CART_EVENT_CLASSES = {
    "CartItemAdded": CartItemAdded,
    "CartItemUpdated": CartItemUpdated,
    "CartItemRemoved": CartItemRemoved,
    "CartCleared": CartCleared,
    "DiscountApplied": DiscountApplied,
    "DiscountRemoved": DiscountRemoved,
    "FreebieRuleApplied": FreebieRuleApplied,
    "FreebieRuleRemoved": FreebieRuleRemoved,
}

_ERROR_CLASSES = {
    "validation": ValidationError,
    "not found": ObjectNotFoundError,
    "conflict": ConflictError,
    "invalid operation": InvalidOperationError,
}


@pytest.fixture()
def error():
    """Container for a captured domain error."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("an empty cart", target_fixture="cart")
def empty_cart():
    cart = ShoppingCart.create()
    cart._events.clear()
    return cart


@given(
    parsers.cfparse('the cart has {qty:d} of "{product_id}" at {price:g} THB'),
    target_fixture="cart",
)
def cart_with_item(cart, qty, product_id, price):
    cart.add_item(product_id, qty, Money(amount=price, currency="THB"))
    cart._events.clear()
    return cart


@given(
    parsers.cfparse('a freebie rule "{name}" gives {qty:d} "{freebie}" for buying "{trigger}"'),
    target_fixture="cart",
)
def cart_with_freebie_rule(cart, name, qty, freebie, trigger):
    cart.apply_freebie_rule(FreebieRule.create(name, trigger, freebie, qty))
    cart._events.clear()
    return cart


@given(parsers.cfparse('a fixed discount "{name}" of {amount:g} THB is applied'), target_fixture="cart")
def cart_with_fixed_discount(cart, name, amount):
    cart.apply_discount(Discount.fixed(name, amount))
    cart._events.clear()
    return cart


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the subtotal is {amount:g} THB"))
def subtotal_is(cart, amount):
    assert cart.subtotal() == Money(amount=amount, currency="THB")


@then(parsers.cfparse("the total discount is {amount:g} THB"))
def total_discount_is(cart, amount):
    assert cart.total_discount() == Money(amount=amount, currency="THB")


@then(parsers.cfparse("the total is {amount:g} THB"))
def total_is(cart, amount):
    assert cart.total() == Money(amount=amount, currency="THB")


@then(parsers.cfparse('the cart contains {qty:d} free "{product_id}" from "{source}"'))
def cart_contains_freebie(cart, qty, product_id, source):
    item = cart.find_item(product_id)
    assert item is not None, f"{product_id} is not in the cart"
    assert item.is_freebie
    assert item.quantity.value == qty
    assert str(item.freebie_source) == source


@then(parsers.cfparse('the cart contains {qty:d} "{product_id}" bought'))
def cart_contains_regular(cart, qty, product_id):
    item = cart.find_item(product_id)
    assert item is not None, f"{product_id} is not in the cart"
    assert not item.is_freebie
    assert item.quantity.value == qty


@then(parsers.cfparse('the cart does not contain "{product_id}"'))
def cart_does_not_contain(cart, product_id):
    assert not cart.has_product(product_id)


@then("the cart has no freebie items")
def cart_has_no_freebies(cart):
    assert cart.freebie_items() == []


@then(parsers.cfparse("the cart action fails with a {kind} error"))
@then(parsers.cfparse("the cart action fails with an {kind} error"))
def cart_action_fails(error, kind):
    assert error["exc"] is not None, f"Expected a {kind} error but none was raised"
    assert isinstance(error["exc"], _ERROR_CLASSES[kind])


@then(parsers.cfparse("a {event_type} cart event is raised"))
def cart_event_raised(cart, event_type):
    event_cls = _CART_EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in cart._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in cart._events]}"
