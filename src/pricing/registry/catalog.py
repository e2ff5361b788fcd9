"""Product catalog port and an in-memory adapter.

The cart never looks products up itself. The application service asks the
catalog whether a product exists, is sellable and has stock, and takes the
price from it. ``InMemoryProductCatalog`` is seeded with a small set of demo
products and is what ``get_catalog()`` hands out unless a test or caller
installs something else with ``set_catalog()``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace

import structlog
from protean.exceptions import ValidationError

from pricing.shared.money import Money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProductInfo:
    """What the catalog knows about one product."""

    id: str
    name: str
    price: Money
    is_active: bool = True
    in_stock: bool = True
    stock_quantity: int | None = None


class ProductCatalog(ABC):
    """Abstract product lookup interface."""

    @abstractmethod
    def get_product(self, product_id: str) -> ProductInfo | None:
        """Return the product, or None when the catalog does not know it."""
        ...

    @abstractmethod
    def get_products(self, product_ids: list[str]) -> dict[str, ProductInfo]:
        """Return the known products among ``product_ids``, keyed by id."""
        ...

    @abstractmethod
    def is_available(self, product_id: str) -> bool:
        """True when the product exists, is active and is in stock."""
        ...

    @abstractmethod
    def has_enough_stock(self, product_id: str, quantity: int) -> bool:
        """True when at least ``quantity`` units can be sold."""
        ...


# (id, name, price in THB, is_active, stock_quantity)
_SEED_PRODUCTS = (
    ("laptop-1", "Gaming Laptop", 35000.0, True, 10),
    ("mouse-1", "Wireless Mouse", 1500.0, True, 50),
    ("keyboard-1", "Mechanical Keyboard", 2500.0, True, 25),
    ("headset-1", "Gaming Headset", 3000.0, True, 15),
    ("monitor-1", '27" 4K Monitor', 12000.0, True, 8),
    ("mousepad-1", "Gaming Mouse Pad", 500.0, True, 100),
    ("webcam-1", "HD Webcam", 2000.0, True, 20),
    ("speakers-1", "Desktop Speakers", 1800.0, True, 30),
    ("chair-1", "Gaming Chair", 8000.0, True, 0),
    ("old-mouse", "Discontinued Mouse", 800.0, False, 5),
)


def seed_products() -> list[ProductInfo]:
    return [
        ProductInfo(
            id=product_id,
            name=name,
            price=Money(amount=price, currency="THB"),
            is_active=is_active,
            in_stock=stock > 0,
            stock_quantity=stock,
        )
        for product_id, name, price, is_active, stock in _SEED_PRODUCTS
    ]


class InMemoryProductCatalog(ProductCatalog):
    """Dictionary-backed catalog for development and tests."""

    def __init__(self, products=None, seed: bool = True) -> None:
        self._products: dict[str, ProductInfo] = {}
        if seed:
            for product in seed_products():
                self._products[product.id] = product
        for product in products or []:
            self._products[product.id] = product

    def get_product(self, product_id: str) -> ProductInfo | None:
        return self._products.get(str(product_id))

    def get_products(self, product_ids: list[str]) -> dict[str, ProductInfo]:
        return {str(pid): self._products[str(pid)] for pid in product_ids if str(pid) in self._products}

    def is_available(self, product_id: str) -> bool:
        product = self.get_product(product_id)
        return product is not None and product.is_active and product.in_stock

    def has_enough_stock(self, product_id: str, quantity: int) -> bool:
        product = self.get_product(product_id)
        if product is None or not product.in_stock:
            return False
        # Unknown stock level means unlimited
        if product.stock_quantity is None:
            return True
        return product.stock_quantity >= quantity

    # -------------------------------------------------------------------
    # Catalog maintenance
    # -------------------------------------------------------------------
    def all_products(self) -> list[ProductInfo]:
        return list(self._products.values())

    def add_product(self, product: ProductInfo) -> None:
        self._products[product.id] = product

    def update_price(self, product_id: str, price: Money) -> ProductInfo:
        return self._replace(product_id, price=price)

    def set_active(self, product_id: str, is_active: bool) -> ProductInfo:
        return self._replace(product_id, is_active=is_active)

    def update_stock(self, product_id: str, stock_quantity: int) -> ProductInfo:
        if stock_quantity < 0:
            raise ValidationError({"stock_quantity": ["Stock quantity cannot be negative"]})
        return self._replace(product_id, stock_quantity=stock_quantity, in_stock=stock_quantity > 0)

    def reserve_stock(self, product_id: str, quantity: int) -> bool:
        """Take ``quantity`` units out of stock. False, and nothing changes, when short."""
        if not self.has_enough_stock(product_id, quantity):
            logger.warning("Stock reservation refused", product_id=str(product_id), quantity=quantity)
            return False

        product = self._products[str(product_id)]
        if product.stock_quantity is not None:
            self.update_stock(product_id, product.stock_quantity - quantity)
        return True

    def release_stock(self, product_id: str, quantity: int) -> None:
        product = self._products.get(str(product_id))
        if product is None or product.stock_quantity is None:
            return
        self.update_stock(product_id, product.stock_quantity + quantity)

    def _replace(self, product_id, **changes) -> ProductInfo:
        product = self._products.get(str(product_id))
        if product is None:
            raise ValidationError({"product_id": [f"Product {product_id} not found"]})
        updated = replace(product, **changes)
        self._products[product.id] = updated
        return updated


_current_catalog: ProductCatalog | None = None


def get_catalog() -> ProductCatalog:
    """Return the current product catalog. Defaults to InMemoryProductCatalog."""
    global _current_catalog
    if _current_catalog is None:
        _current_catalog = InMemoryProductCatalog()
    return _current_catalog


def set_catalog(catalog: ProductCatalog) -> None:
    """Override the active product catalog (useful for tests)."""
    global _current_catalog
    _current_catalog = catalog


def reset_catalog() -> None:
    """Reset to the default catalog."""
    global _current_catalog
    _current_catalog = None
