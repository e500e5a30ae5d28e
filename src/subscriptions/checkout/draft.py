"""The subscription draft handed from the builder to the Cart Submitter.

A draft is built once per submission attempt from the box's accumulated
selection and consumed exactly once.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DraftProduct:
    product_id: str
    variant_id: str
    title: str
    variant_title: str = ""
    unit_price_cents: int = 0
    quantity: int = 1


@dataclass(frozen=True)
class DraftOffer:
    offer_id: str
    variant_id: str
    title: str
    original_price_cents: int = 0
    offer_price_cents: int = 0


@dataclass(frozen=True)
class SubscriptionDraft:
    frequency: str
    products: list[DraftProduct] = field(default_factory=list)
    offers: list[DraftOffer] = field(default_factory=list)
    customer_email: str | None = None
    discount_percentage: float = 0.0
    selling_plan: str | None = None

    @property
    def product_count(self) -> int:
        return len({product.product_id for product in self.products})

    @property
    def is_empty(self) -> bool:
        return not self.products and not self.offers

    @property
    def subtotal_cents(self) -> int:
        return sum(product.unit_price_cents * product.quantity for product in self.products)
