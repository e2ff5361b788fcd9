"""Tests for the Money value object."""

import pytest
from pricing.shared.money import DEFAULT_CURRENCY, SUPPORTED_CURRENCIES, Money
from protean.exceptions import ValidationError
from protean.utils.reflection import declared_fields


class TestMoneyConstruction:
    def test_element_type(self):
        from protean.utils import DomainObjects

        assert Money.element_type == DomainObjects.VALUE_OBJECT

    def test_declared_fields(self):
        fields = declared_fields(Money)
        assert "amount" in fields
        assert "currency" in fields

    def test_default_currency_is_thb(self):
        money = Money(amount=10.0)
        assert money.currency == DEFAULT_CURRENCY == "THB"

    def test_zero_factory(self):
        money = Money.zero("USD")
        assert money.is_zero()
        assert money.currency == "USD"

    @pytest.mark.parametrize("currency", sorted(SUPPORTED_CURRENCIES))
    def test_all_supported_currencies_accepted(self, currency):
        assert Money(amount=1.0, currency=currency).currency == currency


class TestMoneyInvariants:
    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            Money(amount=-0.01)

    def test_missing_amount_rejected(self):
        with pytest.raises(ValidationError):
            Money(currency="THB")

    def test_unsupported_currency_rejected(self):
        with pytest.raises(ValidationError) as exc:
            Money(amount=10.0, currency="XYZ")
        assert "Unsupported currency" in str(exc.value)

    def test_more_than_two_decimal_places_rejected(self):
        with pytest.raises(ValidationError):
            Money(amount=10.005)


class TestMoneyArithmetic:
    def test_add_is_decimal_exact(self):
        total = Money(amount=0.1).add(Money(amount=0.2))
        assert total.amount == 0.3

    def test_add_rejects_currency_mismatch(self):
        with pytest.raises(ValidationError):
            Money(amount=1.0, currency="THB").add(Money(amount=1.0, currency="USD"))

    def test_subtract(self):
        assert Money(amount=500.0).subtract(Money(amount=50.0)).amount == 450.0

    def test_subtract_below_zero_rejected(self):
        with pytest.raises(ValidationError):
            Money(amount=10.0).subtract(Money(amount=10.01))

    def test_multiply(self):
        assert Money(amount=1500.0).multiply(3).amount == 4500.0

    def test_multiply_by_negative_factor_rejected(self):
        with pytest.raises(ValidationError):
            Money(amount=10.0).multiply(-1)

    def test_percentage_rounds_half_up(self):
        assert Money(amount=0.25).percentage(10).amount == 0.03

    def test_sum(self):
        total = Money.sum([Money(amount=1.0), Money(amount=2.5), Money(amount=3.25)])
        assert total.amount == 6.75

    def test_sum_of_nothing_rejected(self):
        with pytest.raises(ValidationError):
            Money.sum([])

    def test_operations_return_new_instances(self):
        original = Money(amount=100.0)
        original.add(Money(amount=5.0))
        assert original.amount == 100.0


class TestMoneyComparison:
    def test_minimum_and_maximum(self):
        low, high = Money(amount=5.0), Money(amount=9.0)
        assert Money.minimum(low, high) is low
        assert Money.maximum(low, high) is high

    def test_comparisons(self):
        five, nine = Money(amount=5.0), Money(amount=9.0)
        assert nine.is_greater_than(five)
        assert five.is_less_than(nine)
        assert five.is_less_than_or_equal(Money(amount=5.0))
        assert five.is_greater_than_or_equal(Money(amount=5.0))

    def test_comparison_rejects_currency_mismatch(self):
        with pytest.raises(ValidationError):
            Money(amount=1.0, currency="EUR").is_greater_than(Money(amount=1.0, currency="GBP"))

    def test_is_positive(self):
        assert Money(amount=0.01).is_positive()
        assert not Money.zero().is_positive()


class TestMoneyFormatting:
    def test_str(self):
        assert str(Money(amount=500.0)) == "500.00 THB"

    def test_display_with_symbol(self):
        assert Money(amount=1500.0).display() == "฿1,500.00"
        assert Money(amount=9.5, currency="USD").display() == "$9.50"

    def test_display_without_known_symbol(self):
        assert Money(amount=100.0, currency="SGD").display() == "100.00 SGD"

    def test_record(self):
        money = Money(amount=12.34, currency="EUR")
        assert money.to_record() == {"amount": 12.34, "currency": "EUR"}
        assert Money.from_record(money.to_record()) == money
