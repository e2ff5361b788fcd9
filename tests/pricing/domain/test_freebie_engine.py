"""Tests for FreebieEngine."""

import pytest
from pricing.cart.cart import ShoppingCart
from pricing.freebie.engine import FreebieEngine
from pricing.freebie.rule import FreebieRule
from pricing.shared.money import Money
from protean.exceptions import ValidationError


@pytest.fixture
def engine():
    return FreebieEngine()


def _cart_with(*product_ids):
    cart = ShoppingCart.create()
    for product_id in product_ids:
        cart.add_item(product_id, 1, Money(amount=100.0))
    return cart


class TestCanApply:
    def test_trigger_present_freebie_absent(self, engine):
        cart = _cart_with("laptop-1")
        assert engine.can_apply(cart, FreebieRule.create("R", "laptop-1", "mouse-1"))

    def test_trigger_absent(self, engine):
        cart = _cart_with("keyboard-1")
        assert not engine.can_apply(cart, FreebieRule.create("R", "laptop-1", "mouse-1"))

    def test_freebie_already_bought(self, engine):
        cart = _cart_with("laptop-1", "mouse-1")
        assert not engine.can_apply(cart, FreebieRule.create("R", "laptop-1", "mouse-1"))

    def test_applicable_rules(self, engine):
        cart = _cart_with("laptop-1")
        fires = FreebieRule.create("A", "laptop-1", "mouse-1")
        dormant = FreebieRule.create("B", "monitor-1", "webcam-1")
        assert engine.applicable_rules(cart, [fires, dormant]) == [fires]


class TestFindConflicts:
    def test_no_conflicts(self, engine):
        existing = [FreebieRule.create("A", "laptop-1", "mouse-1")]
        assert engine.find_conflicts(existing, FreebieRule.create("B", "monitor-1", "webcam-1")) == []

    def test_duplicate_name(self, engine):
        existing = [FreebieRule.create("A", "laptop-1", "mouse-1")]
        conflicts = engine.find_conflicts(existing, FreebieRule.create("A", "monitor-1", "webcam-1"))
        assert conflicts == ["Rule with name 'A' already exists"]

    def test_same_pairing(self, engine):
        existing = [FreebieRule.create("A", "laptop-1", "mouse-1")]
        conflicts = engine.find_conflicts(existing, FreebieRule.create("B", "laptop-1", "mouse-1"))
        assert len(conflicts) == 1
        assert "already gives mouse-1" in conflicts[0]

    def test_circular_pairing(self, engine):
        existing = [FreebieRule.create("x-y", "x", "y")]
        conflicts = engine.find_conflicts(existing, FreebieRule.create("y-x", "y", "x"))
        assert len(conflicts) == 1
        assert conflicts[0].startswith("Circular dependency")


class TestSavings:
    def test_active_freebies(self, engine):
        cart = _cart_with("laptop-1")
        cart.apply_freebie_rule(FreebieRule.create("Mouse promo", "laptop-1", "mouse-1", 2))

        active = engine.active_freebies(cart)

        assert len(active) == 1
        assert active[0].rule_name == "Mouse promo"
        assert active[0].trigger_product == "laptop-1"
        assert active[0].item.quantity.value == 2

    def test_savings_are_zero_for_zero_priced_freebies(self, engine):
        cart = _cart_with("laptop-1")
        cart.apply_freebie_rule(FreebieRule.create("Mouse promo", "laptop-1", "mouse-1"))
        assert engine.total_savings(cart).is_zero()

    def test_total_savings_without_freebies(self, engine):
        savings = engine.total_savings(ShoppingCart.create())
        assert savings.is_zero()
        assert savings.currency == "THB"


class TestValidateAndCreate:
    def test_large_quantity_flagged(self, engine):
        rule = FreebieRule.create("Bulk", "laptop-1", "mousepad-1", 101)
        assert engine.validate(rule) == ["Freebie quantity seems unreasonably large"]

    def test_reasonable_rule_passes(self, engine):
        assert engine.validate(FreebieRule.create("R", "laptop-1", "mouse-1", 100)) == []

    def test_create_rule_refuses_flagged(self, engine):
        with pytest.raises(ValidationError):
            engine.create_rule("Bulk", "laptop-1", "mousepad-1", 500)

    def test_describe(self, engine):
        info = engine.describe(FreebieRule.create("R", "laptop-1", "mouse-1", 3))
        assert info.freebie_quantity == 3
        assert info.description == "R: Buy laptop-1 get 3 x mouse-1 free"
