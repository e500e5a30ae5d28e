"""Subscriptions bounded context: the subscription box builder.

Drives a shopper through building a recurring box from tagged storefront
products: product selection with milestone discounts, delivery frequency,
optional one-time offers, and conversion into a storefront cart carrying
the matching selling plan. Also hosts the cart guard that keeps a
subscription cart all-or-nothing.
"""

import structlog
from protean.domain import Domain

subscriptions = Domain(name="subscriptions")

logger = structlog.get_logger(__name__)
