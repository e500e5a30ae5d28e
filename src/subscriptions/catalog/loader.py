"""Catalog Loader: fetch eligible products and classify them into categories.

The curated ``subscriptions`` collection is the primary source. Any failure or
empty (or fully ineligible) result falls back once to the general product
feed. When that fails too, loading stops with ``CatalogUnavailableError``;
there is no retry loop, a retry is the shopper's explicit choice.
"""

import os
from dataclasses import dataclass

import structlog

from subscriptions.catalog.categories import Category, build_categories, default_category, display_order
from subscriptions.catalog.products import CatalogProduct
from subscriptions.catalog.tags import is_eligible
from subscriptions.storefront.port import COLLECTION_PRODUCTS, PRODUCTS, StorefrontError, StorefrontTransport

logger = structlog.get_logger(__name__)

DEFAULT_FALLBACK_LIMIT = 50

SOURCE_COLLECTION = "collection"
SOURCE_FALLBACK = "fallback"


class CatalogUnavailableError(Exception):
    """Neither the curated collection nor the general feed produced eligible products."""


@dataclass
class CatalogLoad:
    products: list[CatalogProduct]
    categories: dict[str, Category]
    source: str

    @property
    def default_category(self) -> str | None:
        return default_category(self.categories)

    @property
    def display_order(self) -> list[str]:
        return display_order(self.categories)


def _fallback_limit() -> int:
    try:
        return int(os.environ.get("STOREFRONT_CATALOG_LIMIT", DEFAULT_FALLBACK_LIMIT))
    except ValueError:
        return DEFAULT_FALLBACK_LIMIT


def eligible_products(payload: dict) -> list[CatalogProduct]:
    """Normalize a feed payload and keep only subscription-eligible products."""
    products = [CatalogProduct.from_payload(p) for p in payload.get("products") or [] if isinstance(p, dict)]
    return [product for product in products if is_eligible(product)]


class CatalogLoader:
    def __init__(self, transport: StorefrontTransport, fallback_limit: int | None = None):
        self.transport = transport
        self.fallback_limit = fallback_limit or _fallback_limit()

    def load_eligible_products(self) -> CatalogLoad:
        products = self._fetch(COLLECTION_PRODUCTS)
        source = SOURCE_COLLECTION

        if not products:
            logger.warning("Subscription collection empty or unavailable, using general product feed")
            products = self._fetch(PRODUCTS, {"limit": self.fallback_limit})
            source = SOURCE_FALLBACK

        if not products:
            logger.warning("No eligible subscription products found in any source")
            raise CatalogUnavailableError("No subscription products are available right now")

        categories = build_categories(products)
        logger.info(
            "Catalog loaded",
            source=source,
            product_count=len(products),
            categories=display_order(categories),
        )
        return CatalogLoad(products=products, categories=categories, source=source)

    def _fetch(self, path: str, params: dict | None = None) -> list[CatalogProduct]:
        try:
            payload = self.transport.get(path, params)
        except StorefrontError as exc:
            logger.warning("Catalog source failed", **exc.to_log_context())
            return []
        return eligible_products(payload)
