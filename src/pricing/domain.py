"""Pricing bounded context: Shopping Cart pricing.

Holds the cart aggregate, its line items, and the two rule engines that derive
money from it: stacked discounts and freebie ("buy X, get Y free") rules.
Product existence, stock and price checks belong to the calling application
layer (see ``pricing.registry.service``).
"""

import structlog
from protean.domain import Domain

from pricing.utils.logging import configure_logging

configure_logging()

pricing = Domain(name="pricing")

logger = structlog.get_logger(__name__)
