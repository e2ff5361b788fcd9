"""Cart application service.

The entry point callers use to work with carts. Every call locates the cart
in the registry, holds the cart's lock for the duration of the change, and
checks external facts the aggregate cannot know about (does the product
exist, is it sellable, is there enough stock, what does it cost) before
handing over to the aggregate. Rejections are logged and re-raised unchanged.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime

import structlog
from protean.exceptions import ObjectNotFoundError, ProteanException, ValidationError
from protean.utils.globals import current_domain

from pricing.cart.cart import ShoppingCart
from pricing.discount.engine import DiscountEngine, DiscountInfo
from pricing.exceptions import ConflictError
from pricing.freebie.engine import ActiveFreebie, FreebieEngine
from pricing.registry.catalog import ProductCatalog, get_catalog
from pricing.registry.registry import CartRegistry
from pricing.shared.money import Money
from pricing.shared.product_id import ProductIdentifier
from pricing.shared.quantity import Quantity
from pricing.utils.logging import bind_cart_context, clear_context

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CartSummary:
    cart_id: str
    items: list[dict]
    subtotal: Money
    total_discount: Money
    total: Money
    freebie_savings: Money
    unique_item_count: int
    total_item_count: int
    discounts: list[DiscountInfo] = field(default_factory=list)
    freebies: list[ActiveFreebie] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class CartItemIssue:
    product_id: str
    issue: str
    severity: str  # "error" or "warning"


class CartService:
    def __init__(self, registry: CartRegistry | None = None, catalog: ProductCatalog | None = None) -> None:
        self.registry = registry or CartRegistry()
        self.catalog = catalog or get_catalog()
        self.discount_engine = DiscountEngine()
        self.freebie_engine = FreebieEngine()

    @contextmanager
    def _operation(self, cart_id, action, **context):
        """Lock the cart and persist it once the change succeeds. Rejections are logged, then re-raised."""
        bind_cart_context(str(cart_id), action=action)
        try:
            with self.registry.locked(cart_id) as cart:
                yield cart
                self._persist(cart)
        except ProteanException as exc:
            logger.warning("Cart operation rejected", error=str(exc), error_type=type(exc).__name__, **context)
            raise
        finally:
            clear_context()

    # -------------------------------------------------------------------
    # Cart lifecycle
    # -------------------------------------------------------------------
    def create_cart(self, owner_id: str | None = None):
        cart = self.registry.create_cart(owner_id=owner_id)
        self._persist(cart)
        return cart

    def get_cart(self, cart_id: str):
        return self.registry.get(cart_id)

    def get_or_create_cart(self, owner_id: str):
        return self.registry.get_or_create_for_owner(owner_id)

    def destroy_cart(self, cart_id: str) -> None:
        self.registry.destroy(cart_id)

    def clear_cart(self, cart_id: str):
        with self._operation(cart_id, "clear_cart") as cart:
            cart.clear()

        logger.info("Cart cleared", cart_id=str(cart_id))
        return cart

    # -------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------
    def add_item(self, cart_id: str, product_id: str, quantity: int = 1):
        with self._operation(cart_id, "add_item", product_id=str(product_id), quantity=quantity) as cart:
            requested = self._requested_quantity(quantity)
            product = self._sellable_product(product_id)

            existing = cart.find_item(product.id)
            in_cart = existing.quantity.value if existing is not None and not existing.is_freebie else 0
            self._require_stock(product.id, in_cart + requested.value)

            cart.add_item(product.id, requested, product.price)

        logger.info("Item added to cart", cart_id=str(cart_id), product_id=product.id, quantity=requested.value)
        return cart

    def update_item(self, cart_id: str, product_id: str, quantity: int):
        with self._operation(cart_id, "update_item", product_id=str(product_id), quantity=quantity) as cart:
            requested = self._requested_quantity(quantity)

            item = cart.find_item(product_id)
            if item is not None and not item.is_freebie:
                self._require_stock(str(item.product_id), requested.value)

            cart.update_item(product_id, requested)

        logger.info("Cart item updated", cart_id=str(cart_id), product_id=str(product_id), quantity=requested.value)
        return cart

    def remove_item(self, cart_id: str, product_id: str):
        with self._operation(cart_id, "remove_item", product_id=str(product_id)) as cart:
            cart.remove_item(product_id)

        logger.info("Item removed from cart", cart_id=str(cart_id), product_id=str(product_id))
        return cart

    # -------------------------------------------------------------------
    # Discounts
    # -------------------------------------------------------------------
    def apply_fixed_discount(self, cart_id: str, name: str, amount: float):
        with self._operation(cart_id, "apply_discount", name=name) as cart:
            discount = self.discount_engine.create_fixed(name, amount)
            cart.apply_discount(discount)

        logger.info("Discount applied", cart_id=str(cart_id), discount=str(discount))
        return cart

    def apply_percentage_discount(self, cart_id: str, name: str, percentage: float, cap: float | None = None):
        with self._operation(cart_id, "apply_discount", name=name) as cart:
            discount = self.discount_engine.create_percentage(name, percentage, cap)
            cart.apply_discount(discount)

        logger.info("Discount applied", cart_id=str(cart_id), discount=str(discount))
        return cart

    def remove_discount(self, cart_id: str, name: str):
        with self._operation(cart_id, "remove_discount", name=name) as cart:
            cart.remove_discount(name)

        logger.info("Discount removed", cart_id=str(cart_id), name=name)
        return cart

    # -------------------------------------------------------------------
    # Freebies
    # -------------------------------------------------------------------
    def apply_freebie(
        self,
        cart_id: str,
        trigger_product: str,
        freebie_product: str,
        quantity: int = 1,
        name: str | None = None,
    ):
        rule_name = name or f"Buy {trigger_product} get {freebie_product}"

        with self._operation(cart_id, "apply_freebie", name=rule_name) as cart:
            rule = self.freebie_engine.create_rule(rule_name, trigger_product, freebie_product, quantity)

            conflicts = self.freebie_engine.find_conflicts(cart.freebie_rules(), rule)
            if conflicts:
                raise ConflictError({"freebie_rules": conflicts})

            cart.apply_freebie_rule(rule)

        logger.info("Freebie rule applied", cart_id=str(cart_id), rule=str(rule))
        return cart

    def remove_freebie(self, cart_id: str, name: str):
        with self._operation(cart_id, "remove_freebie", name=name) as cart:
            cart.remove_freebie_rule(name)

        logger.info("Freebie rule removed", cart_id=str(cart_id), name=name)
        return cart

    # -------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------
    def summary(self, cart_id: str) -> CartSummary:
        with self.registry.locked(cart_id) as cart:
            subtotal = cart.subtotal()
            return CartSummary(
                cart_id=str(cart.id),
                items=[item.to_record() for item in cart.items],
                subtotal=subtotal,
                total_discount=cart.total_discount(),
                total=cart.total(),
                freebie_savings=self.freebie_engine.total_savings(cart),
                unique_item_count=cart.unique_item_count(),
                total_item_count=cart.total_item_count(),
                discounts=self.discount_engine.breakdown(subtotal, cart.discounts()),
                freebies=self.freebie_engine.active_freebies(cart),
                created_at=cart.created_at,
                updated_at=cart.updated_at,
            )

    def validate_cart_items(self, cart_id: str) -> list[CartItemIssue]:
        """Check every regular item against the catalog as it is now."""
        issues = []

        with self.registry.locked(cart_id) as cart:
            products = self.catalog.get_products([str(item.product_id) for item in cart.regular_items()])

            for item in cart.regular_items():
                product_id = str(item.product_id)
                product = products.get(product_id)

                if product is None:
                    issues.append(CartItemIssue(product_id, "Product no longer exists", "error"))
                elif not product.is_active:
                    issues.append(CartItemIssue(product_id, "Product is no longer available", "error"))
                elif not product.in_stock:
                    issues.append(CartItemIssue(product_id, "Product is out of stock", "error"))
                else:
                    if not self.catalog.has_enough_stock(product_id, item.quantity.value):
                        issues.append(
                            CartItemIssue(
                                product_id,
                                f"Only {product.stock_quantity} units available, cart has {item.quantity}",
                                "warning",
                            )
                        )
                    if product.price != item.unit_price:
                        issues.append(
                            CartItemIssue(
                                product_id,
                                f"Price changed from {item.unit_price} to {product.price}",
                                "warning",
                            )
                        )

        if issues:
            logger.warning("Cart items failed catalog validation", cart_id=str(cart_id), issue_count=len(issues))

        return issues

    def _persist(self, cart: ShoppingCart) -> None:
        """Save the cart through its repository, which also publishes and clears its pending events."""
        current_domain.repository_for(ShoppingCart).add(cart)

    # -------------------------------------------------------------------
    # Catalog checks
    # -------------------------------------------------------------------
    def _requested_quantity(self, quantity) -> Quantity:
        requested = Quantity.of(quantity)
        if not requested.is_positive():
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        return requested

    def _sellable_product(self, product_id):
        product_id = str(ProductIdentifier.of(product_id))

        product = self.catalog.get_product(product_id)
        if product is None:
            raise ObjectNotFoundError({"product_id": [f"Product {product_id} not found"]})

        if not product.is_active:
            raise ValidationError({"product_id": [f"Product {product_id} is not available"]})

        if not product.in_stock:
            raise ValidationError({"product_id": [f"Product {product_id} is out of stock"]})

        return product

    def _require_stock(self, product_id: str, quantity: int) -> None:
        if not self.catalog.has_enough_stock(product_id, quantity):
            product = self.catalog.get_product(product_id)
            available = product.stock_quantity if product is not None else 0
            raise ValidationError(
                {"quantity": [f"Insufficient stock for {product_id}: requested {quantity}, available {available}"]}
            )
