"""Offer Selector: free one-time add-ons offered at the end of the builder.

Offers come from the shop's admin-configured list behind the app proxy. When
that list is unavailable or empty, catalog products carrying a promotional tag
are offered instead. When nothing usable is tagged, up to three ordinary
products are shown as demo placeholders; demo entries are display-only and can
never be selected into a box.

Every offer costs the shopper nothing. ``original_price_cents`` exists only
for the struck-through marketing price and is never sent to the cart.
"""

import os
from dataclasses import asdict, dataclass

import structlog

from subscriptions.catalog.products import CatalogProduct
from subscriptions.catalog.tags import is_promotional
from subscriptions.shared.money import to_cents
from subscriptions.storefront.port import ONE_TIME_OFFERS, PRODUCTS, StorefrontError, StorefrontTransport

logger = structlog.get_logger(__name__)

MAX_DEMO_OFFERS = 3
DEFAULT_OFFER_LIMIT = 50


def _numeric_id(value) -> str:
    """Admin records may hold GraphQL ids (gid://shopify/ProductVariant/42)."""
    text = str(value or "").strip()
    return text.rsplit("/", 1)[-1] if text.startswith("gid://") else text


@dataclass(frozen=True)
class OfferCandidate:
    offer_id: str
    variant_id: str
    title: str
    image: str = ""
    original_price_cents: int = 0
    offer_price_cents: int = 0
    is_demo: bool = False

    @classmethod
    def from_product(cls, product: CatalogProduct, is_demo: bool = False) -> "OfferCandidate | None":
        variant = next((v for v in product.variants if v.in_stock), None)
        if variant is None:
            return None
        return cls(
            offer_id=product.id,
            variant_id=variant.id,
            title=product.title,
            image=product.image,
            original_price_cents=variant.price_cents,
            is_demo=is_demo,
        )

    @classmethod
    def from_admin_offer(cls, data: dict) -> "OfferCandidate | None":
        """Build a candidate from an app-proxy offer record. Records without a variant are unusable."""
        variant_id = _numeric_id(data.get("shopifyVariantId"))
        if not variant_id:
            return None
        marketing_price = data.get("comparedAtPrice") or data.get("price")
        return cls(
            offer_id=_numeric_id(data.get("shopifyProductId")) or str(data.get("id") or variant_id),
            variant_id=variant_id,
            title=str(data.get("title") or ""),
            image=str(data.get("imageUrl") or ""),
            original_price_cents=to_cents(marketing_price),
        )

    @classmethod
    def from_dict(cls, data: dict) -> "OfferCandidate":
        return cls(**data)

    def to_dict(self) -> dict:
        return asdict(self)


class OfferSelector:
    def __init__(self, transport: StorefrontTransport, limit: int | None = None, shop: str | None = None):
        self.transport = transport
        self.limit = limit or int(os.environ.get("STOREFRONT_CATALOG_LIMIT", DEFAULT_OFFER_LIMIT))
        self.shop = shop

    def _admin_offers(self) -> list[OfferCandidate]:
        try:
            payload = self.transport.get(ONE_TIME_OFFERS, {"shop": self.shop} if self.shop else None)
        except StorefrontError as exc:
            logger.info("Admin offers unavailable, scanning catalog tags", **exc.to_log_context())
            return []

        records = payload.get("offers") if isinstance(payload, dict) else None
        if not isinstance(records, list):
            return []
        candidates = [OfferCandidate.from_admin_offer(r) for r in records if isinstance(r, dict)]
        return [c for c in candidates if c is not None]

    def _catalog(self) -> list[CatalogProduct]:
        payload = self.transport.get(PRODUCTS, {"limit": self.limit})
        return [CatalogProduct.from_payload(p) for p in payload.get("products") or [] if isinstance(p, dict)]

    @staticmethod
    def _demos(products) -> list[OfferCandidate]:
        demos = [OfferCandidate.from_product(p, is_demo=True) for p in products]
        demos = [c for c in demos if c is not None][:MAX_DEMO_OFFERS]
        if demos:
            logger.info("No purchasable promotional products, showing demo offers", count=len(demos))
        return demos

    def find_offers(self) -> list[OfferCandidate]:
        """Look the offers up once for the builder's offer step.

        Returns an empty list when the shop has no promotional products at all,
        which means the offer step is skipped. Demo placeholders are returned
        only when promotional products exist but none can be bought. Raises
        StorefrontError when the catalog cannot be read.
        """
        offers = self._admin_offers()
        if offers:
            return offers

        products = self._catalog()
        promotional = [p for p in products if is_promotional(p)]
        if not promotional:
            return []
        candidates = [c for c in (OfferCandidate.from_product(p) for p in promotional) if c is not None]
        return candidates or self._demos(p for p in products if not is_promotional(p))

    def list_candidate_offers(self) -> list[OfferCandidate]:
        """Offers to display, falling back to demo placeholders from the general catalog."""
        offers = self._admin_offers()
        if offers:
            return offers

        try:
            products = self._catalog()
        except StorefrontError as exc:
            logger.warning("Offer catalog unavailable", **exc.to_log_context())
            return []

        candidates = [OfferCandidate.from_product(p) for p in products if is_promotional(p)]
        candidates = [c for c in candidates if c is not None]
        return candidates or self._demos(products)
