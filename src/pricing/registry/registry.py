"""In-process cart registry.

Holds every live ``ShoppingCart`` keyed by id, remembers which owner each
cart belongs to, and hands out one re-entrant lock per cart so that all
mutations of a cart are serialized. Carts are independent of each other;
the registry's own lock only guards its bookkeeping.

Idle carts that still hold items can be listed with ``abandoned_carts`` and
dropped with ``collect_abandoned``, typically from a periodic job.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError

from pricing.cart.cart import ShoppingCart

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RegistryStatistics:
    total_carts: int
    empty_carts: int
    active_carts: int
    total_items: int
    average_items_per_cart: float


def _aware(value):
    if value is None:
        return None
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class CartRegistry:
    def __init__(self) -> None:
        self._carts: dict[str, ShoppingCart] = {}
        self._owners: dict[str, str] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def create_cart(self, owner_id: str | None = None) -> ShoppingCart:
        cart = ShoppingCart.create()
        self.add(cart, owner_id=owner_id)
        logger.info("Cart created", cart_id=str(cart.id), owner_id=owner_id)
        return cart

    def add(self, cart: ShoppingCart, owner_id: str | None = None) -> ShoppingCart:
        """Register an existing cart, e.g. one rehydrated from a snapshot."""
        cart_id = str(cart.id)
        with self._guard:
            self._carts[cart_id] = cart
            self._locks.setdefault(cart_id, threading.RLock())
            if owner_id is not None:
                self._owners[cart_id] = owner_id
        return cart

    def get(self, cart_id: str) -> ShoppingCart:
        with self._guard:
            cart = self._carts.get(str(cart_id))
        if cart is None:
            raise ObjectNotFoundError({"cart_id": [f"Cart {cart_id} not found"]})
        return cart

    def exists(self, cart_id: str) -> bool:
        return str(cart_id) in self._carts

    def destroy(self, cart_id: str) -> None:
        cart_id = str(cart_id)
        with self._guard:
            if cart_id not in self._carts:
                raise ObjectNotFoundError({"cart_id": [f"Cart {cart_id} not found"]})
            del self._carts[cart_id]
            self._owners.pop(cart_id, None)
            self._locks.pop(cart_id, None)

        logger.info("Cart destroyed", cart_id=cart_id)

    @contextmanager
    def locked(self, cart_id: str):
        """Yield the cart while holding its lock."""
        cart_id = str(cart_id)
        with self._guard:
            cart = self._carts.get(cart_id)
            lock = self._locks.get(cart_id)
        if cart is None or lock is None:
            raise ObjectNotFoundError({"cart_id": [f"Cart {cart_id} not found"]})

        with lock:
            yield cart

    # -------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------
    def all_carts(self) -> list[ShoppingCart]:
        with self._guard:
            return list(self._carts.values())

    def owner_of(self, cart_id: str) -> str | None:
        return self._owners.get(str(cart_id))

    def carts_for_owner(self, owner_id: str) -> list[ShoppingCart]:
        with self._guard:
            return [
                self._carts[cart_id]
                for cart_id, owner in self._owners.items()
                if owner == owner_id and cart_id in self._carts
            ]

    def active_cart_for_owner(self, owner_id: str) -> ShoppingCart | None:
        """Most recently updated cart with items, else the most recently created one."""
        carts = self.carts_for_owner(owner_id)
        if not carts:
            return None

        with_items = [cart for cart in carts if not cart.is_empty()]
        if with_items:
            return max(with_items, key=lambda cart: _aware(cart.updated_at))

        return max(carts, key=lambda cart: _aware(cart.created_at))

    def get_or_create_for_owner(self, owner_id: str) -> ShoppingCart:
        cart = self.active_cart_for_owner(owner_id)
        if cart is not None:
            return cart
        return self.create_cart(owner_id=owner_id)

    # -------------------------------------------------------------------
    # Reporting and maintenance
    # -------------------------------------------------------------------
    def statistics(self) -> RegistryStatistics:
        carts = self.all_carts()
        total_items = sum(cart.total_item_count() for cart in carts)
        empty = sum(1 for cart in carts if cart.is_empty())

        return RegistryStatistics(
            total_carts=len(carts),
            empty_carts=empty,
            active_carts=len(carts) - empty,
            total_items=total_items,
            average_items_per_cart=total_items / len(carts) if carts else 0.0,
        )

    def abandoned_carts(self, idle_threshold: timedelta, as_of: datetime | None = None) -> list[ShoppingCart]:
        """Carts holding items that have not changed for at least ``idle_threshold``."""
        if idle_threshold < timedelta(0):
            raise ValidationError({"idle_threshold": ["Idle threshold cannot be negative"]})

        cutoff = _aware(as_of or datetime.now(UTC)) - idle_threshold

        return [
            cart
            for cart in self.all_carts()
            if not cart.is_empty() and cart.updated_at is not None and _aware(cart.updated_at) <= cutoff
        ]

    def collect_abandoned(self, idle_threshold: timedelta, as_of: datetime | None = None) -> int:
        abandoned = self.abandoned_carts(idle_threshold, as_of=as_of)
        if not abandoned:
            logger.info("No abandoned carts found")
            return 0

        for cart in abandoned:
            logger.info(
                "Collecting abandoned cart",
                cart_id=str(cart.id),
                owner_id=self.owner_of(cart.id),
                item_count=cart.total_item_count(),
                last_updated=str(cart.updated_at),
            )
            self.destroy(cart.id)

        logger.info("Abandoned carts collected", collected_count=len(abandoned))
        return len(abandoned)

    def __len__(self):
        return len(self._carts)
