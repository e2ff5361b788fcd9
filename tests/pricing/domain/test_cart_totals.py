"""Tests for subtotal, discount and total calculation."""

import pytest
from pricing.cart.cart import ShoppingCart
from pricing.discount.discount import Discount
from pricing.freebie.rule import FreebieRule
from pricing.shared.money import Money


def _thb(amount):
    return Money(amount=amount, currency="THB")


class TestSubtotal:
    def test_empty_cart(self):
        subtotal = ShoppingCart.create().subtotal()
        assert subtotal.is_zero()
        assert subtotal.currency == "THB"

    def test_sum_of_line_totals(self):
        cart = ShoppingCart.create()
        cart.add_item("mouse-1", 2, _thb(1500.0))
        cart.add_item("keyboard-1", 1, _thb(2500.0))
        assert cart.subtotal() == _thb(5500.0)

    def test_decimal_safe(self):
        cart = ShoppingCart.create()
        cart.add_item("a", 1, _thb(0.1))
        cart.add_item("b", 1, _thb(0.2))
        assert cart.subtotal() == _thb(0.3)

    def test_freebies_excluded(self):
        cart = ShoppingCart.create()
        cart.add_item("laptop-1", 1, _thb(35000.0))
        cart.apply_freebie_rule(FreebieRule.create("Mouse promo", "laptop-1", "mouse-1", 5))
        assert cart.subtotal() == _thb(35000.0)


class TestTotal:
    def test_stacked_fixed_then_capped_percentage(self):
        cart = ShoppingCart.create()
        cart.add_item("mousepad-1", 1, _thb(500.0))
        cart.apply_discount(Discount.fixed("SAVE50", 50.0))
        cart.apply_discount(Discount.percentage("10PERCENT", 10.0, cap_amount=100.0))

        assert cart.subtotal() == _thb(500.0)
        assert cart.total_discount() == _thb(95.0)
        assert cart.total() == _thb(405.0)

    def test_cap_limits_percentage(self):
        cart = ShoppingCart.create()
        cart.add_item("laptop-1", 1, _thb(35000.0))
        cart.apply_discount(Discount.percentage("10PERCENT", 10.0, cap_amount=100.0))
        assert cart.total() == _thb(34900.0)

    def test_total_never_negative(self):
        cart = ShoppingCart.create()
        cart.add_item("mousepad-1", 1, _thb(500.0))
        cart.apply_discount(Discount.fixed("BIG", 400.0))
        cart.apply_discount(Discount.fixed("BIGGER", 400.0))

        assert cart.total_discount() == _thb(500.0)
        assert cart.total().is_zero()

    @pytest.mark.parametrize(
        "discounts",
        [
            [],
            [("A", "FIXED", 1.0)],
            [("A", "PERCENTAGE", 100.0)],
            [("A", "PERCENTAGE", 33.33), ("B", "PERCENTAGE", 33.33), ("C", "FIXED", 99.99)],
        ],
    )
    def test_total_between_zero_and_subtotal(self, discounts):
        cart = ShoppingCart.create()
        cart.add_item("speakers-1", 3, _thb(1800.0))
        for name, kind, amount in discounts:
            cart.apply_discount(Discount(name=name, kind=kind, amount=amount))

        total = cart.total()
        assert not total.is_greater_than(cart.subtotal())
        assert total.amount >= 0
        assert cart.total_discount().add(total) == cart.subtotal()

    def test_totals_follow_item_changes(self):
        cart = ShoppingCart.create()
        cart.add_item("mousepad-1", 1, _thb(500.0))
        cart.apply_discount(Discount.percentage("10PERCENT", 10.0))

        cart.update_item("mousepad-1", 3)

        assert cart.total_discount() == _thb(150.0)
        assert cart.total() == _thb(1350.0)
