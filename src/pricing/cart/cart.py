"""Shopping Cart aggregate: line items, stacked discounts and freebie rules.

The cart owns three collections: line items (unique by product), active
discounts (unique by name) and active freebie rules (unique by name).
Discounts and rules are stored as JSON arrays of value-object records and
rehydrated on read, so nothing outside the aggregate can change them in place.

Freebie line items are derived state. After every change to the regular items
or to the rule set the cart throws away its freebie items and recomputes them
from scratch:

    for each rule, in the order the rules were applied:
        trigger is a regular item and freebie product is not
            → freebie item (zero price, rule quantity, source = trigger)

Two rules granting the same freebie product overwrite each other; the rule
applied last wins.
"""

import json
from datetime import UTC, datetime

import structlog
from protean import atomic_change, invariant
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from protean.fields import Boolean, DateTime, HasMany, Text, ValueObject

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
from pricing.discount.engine import DiscountEngine
from pricing.domain import pricing
from pricing.exceptions import ConflictError
from pricing.freebie.rule import FreebieRule
from pricing.shared.money import DEFAULT_CURRENCY, Money
from pricing.shared.product_id import ProductIdentifier
from pricing.shared.quantity import Quantity

logger = structlog.get_logger(__name__)

_discount_engine = DiscountEngine()


def _parse_datetime(value):
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _format_datetime(value):
    return value.isoformat() if value is not None else None


@pricing.entity(part_of="ShoppingCart")
class CartLineItem:
    """A quantity of one product at a fixed unit price.

    Regular items are what the customer pays for. Freebie items are produced by
    the cart from its freebie rules, carry the product that triggered them in
    ``freebie_source``, and always have a zero line total.
    """

    product_id = ValueObject(ProductIdentifier, required=True)
    quantity = ValueObject(Quantity, required=True)
    unit_price = ValueObject(Money, required=True)
    is_freebie = Boolean(default=False)
    freebie_source = ValueObject(ProductIdentifier)
    added_at = DateTime()

    @invariant.post
    def quantity_must_be_positive(self):
        if self.quantity is not None and not self.quantity.is_positive():
            raise ValidationError({"quantity": ["Cart item quantity must be positive"]})

    @invariant.post
    def freebie_source_required_only_for_freebies(self):
        if self.is_freebie and self.freebie_source is None:
            raise ValidationError({"freebie_source": ["Freebie items must have a source product"]})
        if not self.is_freebie and self.freebie_source is not None:
            raise ValidationError({"freebie_source": ["Non-freebie items cannot have a source product"]})

    @classmethod
    def regular(cls, product_id, quantity, unit_price):
        return cls(
            product_id=ProductIdentifier.of(product_id),
            quantity=Quantity.of(quantity),
            unit_price=unit_price,
            is_freebie=False,
            added_at=datetime.now(UTC),
        )

    @classmethod
    def freebie(cls, product_id, quantity, source, currency=DEFAULT_CURRENCY):
        return cls(
            product_id=ProductIdentifier.of(product_id),
            quantity=Quantity.of(quantity),
            unit_price=Money.zero(currency),
            is_freebie=True,
            freebie_source=ProductIdentifier.of(source),
            added_at=datetime.now(UTC),
        )

    def line_total(self):
        if self.is_freebie:
            return Money.zero(self.unit_price.currency)
        return self.unit_price.multiply(self.quantity.value)

    def line_total_with_freebies(self):
        """Unit price times quantity, whether or not the item is free."""
        return self.unit_price.multiply(self.quantity.value)

    def to_record(self):
        return {
            "product_id": str(self.product_id),
            "quantity": self.quantity.value,
            "unit_price": self.unit_price.to_record(),
            "is_freebie": self.is_freebie,
            "freebie_source": str(self.freebie_source) if self.freebie_source is not None else None,
            "added_at": _format_datetime(self.added_at),
        }

    @classmethod
    def from_record(cls, record):
        source = record.get("freebie_source")
        return cls(
            product_id=ProductIdentifier.of(record["product_id"]),
            quantity=Quantity.of(record["quantity"]),
            unit_price=Money.from_record(record["unit_price"]),
            is_freebie=bool(record.get("is_freebie", False)),
            freebie_source=ProductIdentifier.of(source) if source else None,
            added_at=_parse_datetime(record.get("added_at")),
        )

    def __str__(self):
        free = f" (FREE - from {self.freebie_source})" if self.is_freebie else ""
        return f"{self.product_id} x{self.quantity} @ {self.unit_price}{free}"


@pricing.aggregate
class ShoppingCart:
    items = HasMany(CartLineItem)
    applied_discounts = Text()  # JSON array of discount records, in order applied
    applied_freebie_rules = Text()  # JSON array of freebie rule records, in order applied
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def each_product_appears_once(self):
        product_ids = [str(item.product_id) for item in self.items]
        if len(product_ids) != len(set(product_ids)):
            raise ValidationError({"items": ["Each product may appear only once in a cart"]})

    @invariant.post
    def regular_items_share_one_currency(self):
        currencies = {item.unit_price.currency for item in self.items if not item.is_freebie}
        if len(currencies) > 1:
            raise ValidationError({"items": [f"Cart cannot mix currencies: {', '.join(sorted(currencies))}"]})

    @invariant.post
    def freebie_items_are_backed_by_active_rules(self):
        regular = {str(item.product_id) for item in self.items if not item.is_freebie}
        granted = {(str(rule.trigger_product), str(rule.freebie_product)) for rule in self.freebie_rules()}

        for item in self.items:
            if not item.is_freebie:
                continue
            pair = (str(item.freebie_source), str(item.product_id))
            if pair not in granted or pair[0] not in regular:
                raise ValidationError(
                    {"items": [f"Freebie item {item.product_id} is not granted by an active freebie rule"]}
                )

    # -------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------
    @classmethod
    def create(cls):
        now = datetime.now(UTC)
        return cls(
            applied_discounts=json.dumps([]),
            applied_freebie_rules=json.dumps([]),
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def from_snapshot(cls, snapshot):
        """Rehydrate a cart from the record produced by ``to_snapshot``."""
        discounts = [Discount.from_record(record) for record in snapshot.get("discounts", [])]
        rules = [FreebieRule.from_record(record) for record in snapshot.get("freebie_rules", [])]
        items = [CartLineItem.from_record(record) for record in snapshot.get("items", [])]

        cart = cls(
            id=snapshot["id"],
            applied_discounts=json.dumps([discount.to_record() for discount in discounts]),
            applied_freebie_rules=json.dumps([rule.to_record() for rule in rules]),
            created_at=_parse_datetime(snapshot.get("created_at")),
            updated_at=_parse_datetime(snapshot.get("updated_at")),
        )

        with atomic_change(cart):
            for item in items:
                cart.add_items(item)

        return cart

    def to_snapshot(self):
        return {
            "id": str(self.id),
            "items": [item.to_record() for item in self.items],
            "discounts": [discount.to_record() for discount in self.discounts()],
            "freebie_rules": [rule.to_record() for rule in self.freebie_rules()],
            "created_at": _format_datetime(self.created_at),
            "updated_at": _format_datetime(self.updated_at),
        }

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product_id, quantity, unit_price):
        """Add a regular item, or merge the quantity into the regular item already present.

        A product currently in the cart only as a freebie becomes a regular
        purchase; the freebie item gives way to it.
        """
        product = ProductIdentifier.of(product_id)
        added = self._positive_quantity(quantity)

        if not isinstance(unit_price, Money):
            raise ValidationError({"unit_price": ["Unit price must be a Money value"]})

        currency = self.currency() if self.regular_items() else None
        if currency is not None and unit_price.currency != currency:
            raise ValidationError(
                {"unit_price": [f"Cart is priced in {currency}; cannot add an item priced in {unit_price.currency}"]}
            )

        existing = self.find_item(product)
        merged = None
        if existing is not None and not existing.is_freebie:
            merged = existing.quantity.add(added)

        with atomic_change(self):
            if merged is not None:
                existing.quantity = merged
                line = existing
            else:
                if existing is not None:
                    self.remove_items(existing)
                line = CartLineItem.regular(product, added, unit_price)
                self.add_items(line)

            self.updated_at = datetime.now(UTC)
            self._evaluate_freebie_rules()

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                product_id=str(product),
                quantity=added.value,
                new_quantity=line.quantity.value,
                unit_price=line.unit_price.amount,
                currency=line.unit_price.currency,
            )
        )

    def update_item(self, product_id, new_quantity):
        """Set the quantity of a regular item. Freebie quantities come from their rule."""
        product = ProductIdentifier.of(product_id)
        quantity = self._positive_quantity(new_quantity)

        item = self.find_item(product)
        if item is None:
            raise ObjectNotFoundError({"items": [f"Product {product} not found in cart"]})

        if item.is_freebie:
            raise InvalidOperationError({"items": ["Cannot update quantity of freebie items directly"]})

        previous_quantity = item.quantity.value

        with atomic_change(self):
            item.quantity = quantity
            self.updated_at = datetime.now(UTC)
            self._evaluate_freebie_rules()

        self.raise_(
            CartItemUpdated(
                cart_id=str(self.id),
                product_id=str(product),
                previous_quantity=previous_quantity,
                new_quantity=quantity.value,
            )
        )

    def remove_item(self, product_id):
        """Remove an item, and with it every freebie it triggered."""
        product = ProductIdentifier.of(product_id)

        item = self.find_item(product)
        if item is None:
            raise ObjectNotFoundError({"items": [f"Product {product} not found in cart"]})

        with atomic_change(self):
            self.remove_items(item)
            self._remove_freebies_sourced_from(product)
            self.updated_at = datetime.now(UTC)
            self._evaluate_freebie_rules()

        self.raise_(CartItemRemoved(cart_id=str(self.id), product_id=str(product)))

    def clear(self):
        """Drop every item, discount and freebie rule in one step."""
        with atomic_change(self):
            for item in list(self.items):
                self.remove_items(item)
            self.applied_discounts = json.dumps([])
            self.applied_freebie_rules = json.dumps([])
            self.updated_at = datetime.now(UTC)

        self.raise_(CartCleared(cart_id=str(self.id)))

    # -------------------------------------------------------------------
    # Discount management
    # -------------------------------------------------------------------
    def apply_discount(self, discount):
        if self.has_discount(discount.name):
            raise ConflictError({"discounts": [f"Discount '{discount.name}' is already applied"]})

        records = [existing.to_record() for existing in self.discounts()]
        records.append(discount.to_record())

        with atomic_change(self):
            self.applied_discounts = json.dumps(records)
            self.updated_at = datetime.now(UTC)

        self.raise_(
            DiscountApplied(
                cart_id=str(self.id),
                name=discount.name,
                kind=discount.kind,
                amount=discount.amount,
                cap_amount=discount.cap_amount,
            )
        )

    def remove_discount(self, name):
        if not self.has_discount(name):
            raise ObjectNotFoundError({"discounts": [f"Discount '{name}' not found"]})

        records = [discount.to_record() for discount in self.discounts() if discount.name != name]

        with atomic_change(self):
            self.applied_discounts = json.dumps(records)
            self.updated_at = datetime.now(UTC)

        self.raise_(DiscountRemoved(cart_id=str(self.id), name=name))

    # -------------------------------------------------------------------
    # Freebie rule management
    # -------------------------------------------------------------------
    def apply_freebie_rule(self, rule):
        if self.has_freebie_rule(rule.name):
            raise ConflictError({"freebie_rules": [f"Freebie rule '{rule.name}' is already applied"]})

        records = [existing.to_record() for existing in self.freebie_rules()]
        records.append(rule.to_record())

        with atomic_change(self):
            self.applied_freebie_rules = json.dumps(records)
            self.updated_at = datetime.now(UTC)
            self._evaluate_freebie_rules()

        self.raise_(
            FreebieRuleApplied(
                cart_id=str(self.id),
                name=rule.name,
                trigger_product=str(rule.trigger_product),
                freebie_product=str(rule.freebie_product),
                freebie_quantity=rule.freebie_quantity.value,
            )
        )

    def remove_freebie_rule(self, name):
        """Withdraw a rule and the freebie items sourced from its trigger product.

        The remaining rules are not re-evaluated here; they catch up on the next
        item or rule change.
        """
        rule = next((r for r in self.freebie_rules() if r.name == name), None)
        if rule is None:
            raise ObjectNotFoundError({"freebie_rules": [f"Freebie rule '{name}' not found"]})

        records = [other.to_record() for other in self.freebie_rules() if other.name != name]

        with atomic_change(self):
            self.applied_freebie_rules = json.dumps(records)
            self._remove_freebies_sourced_from(rule.trigger_product)
            self.updated_at = datetime.now(UTC)

        self.raise_(FreebieRuleRemoved(cart_id=str(self.id), name=name))

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def find_item(self, product_id):
        product = ProductIdentifier.of(product_id)
        return next((item for item in self.items if item.product_id == product), None)

    def has_product(self, product_id):
        return self.find_item(product_id) is not None

    def regular_items(self):
        return [item for item in self.items if not item.is_freebie]

    def freebie_items(self):
        return [item for item in self.items if item.is_freebie]

    def unique_item_count(self):
        return len(self.regular_items())

    def total_item_count(self):
        return sum(item.quantity.value for item in self.regular_items())

    def is_empty(self):
        """A cart holding only freebies is still empty: there is nothing to pay for."""
        return not self.regular_items()

    def currency(self):
        regular = self.regular_items()
        return regular[0].unit_price.currency if regular else DEFAULT_CURRENCY

    def discounts(self):
        return [Discount.from_record(record) for record in json.loads(self.applied_discounts or "[]")]

    def has_discount(self, name):
        return any(discount.name == name for discount in self.discounts())

    def freebie_rules(self):
        return [FreebieRule.from_record(record) for record in json.loads(self.applied_freebie_rules or "[]")]

    def has_freebie_rule(self, name):
        return any(rule.name == name for rule in self.freebie_rules())

    # -------------------------------------------------------------------
    # Calculations
    # -------------------------------------------------------------------
    def subtotal(self):
        regular = self.regular_items()
        if not regular:
            return Money.zero(DEFAULT_CURRENCY)
        return Money.sum(item.line_total() for item in regular)

    def total_discount(self):
        return _discount_engine.calculate_sequential(self.subtotal(), self.discounts())

    def total(self):
        subtotal = self.subtotal()
        discount = self.total_discount()
        if discount.is_greater_than(subtotal):
            return Money.zero(subtotal.currency)
        return subtotal.subtract(discount)

    def validation_errors(self):
        """Business-rule review of the active discounts and freebie rules."""
        from pricing.freebie.engine import FreebieEngine

        freebie_engine = FreebieEngine()
        errors = []

        for discount in self.discounts():
            errors.extend(f"Invalid discount {discount.name}: {error}" for error in _discount_engine.validate(discount))

        for rule in self.freebie_rules():
            errors.extend(f"Invalid freebie rule {rule.name}: {error}" for error in freebie_engine.validate(rule))

        return errors

    def summary(self):
        return (
            f"Cart {self.id}: {self.unique_item_count()} unique items "
            f"({self.total_item_count()} total), Total: {self.total()}"
        )

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _positive_quantity(self, value):
        quantity = Quantity.of(value)
        if not quantity.is_positive():
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        return quantity

    def _remove_freebies_sourced_from(self, product):
        for item in self.freebie_items():
            if item.freebie_source == product:
                self.remove_items(item)

    def _evaluate_freebie_rules(self):
        regular = {str(item.product_id) for item in self.regular_items()}
        currency = self.currency()

        granted = {}
        for rule in self.freebie_rules():
            trigger = str(rule.trigger_product)
            freebie = str(rule.freebie_product)
            if trigger in regular and freebie not in regular:
                granted[freebie] = CartLineItem.freebie(freebie, rule.freebie_quantity, trigger, currency)

        for item in self.freebie_items():
            self.remove_items(item)

        for item in granted.values():
            self.add_items(item)

        if granted:
            logger.debug(
                "Freebie items materialized",
                cart_id=str(self.id),
                freebies={product: str(item.freebie_source) for product, item in granted.items()},
            )
