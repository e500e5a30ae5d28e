"""Cart Submitter: write a subscription draft into the live cart.

The write is a fixed three-call protocol against the Cart Service:

1. ``/cart/clear.js`` so nothing from an earlier session survives
2. one ``/cart/add.js`` carrying every product and offer line
3. one ``/cart/update.js`` with the cart-level subscription attributes

The Cart Service has no transactional replace, so a native cart write landing
between the clear and the add is an accepted race. Failures are returned as a
``SubmissionResult``, never raised; nothing is rolled back beyond what the
clear already did.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from subscriptions.box.milestones import frequency_text
from subscriptions.checkout.draft import DraftOffer, DraftProduct, SubscriptionDraft
from subscriptions.shared.money import format_price
from subscriptions.storefront.cart import CartClient
from subscriptions.storefront.port import StorefrontError

logger = structlog.get_logger(__name__)

CART_REDIRECT_URL = "/cart"
SUBSCRIPTION_TYPE = "custom"


@dataclass(frozen=True)
class SubmissionResult:
    success: bool
    cart_token: str | None = None
    redirect_url: str | None = None
    failure_reason: str | None = None
    errors: dict = field(default_factory=dict)

    @classmethod
    def succeeded(cls, cart_token, redirect_url=CART_REDIRECT_URL):
        return cls(success=True, cart_token=cart_token, redirect_url=redirect_url)

    @classmethod
    def failed(cls, reason, errors=None):
        return cls(success=False, failure_reason=reason, errors=errors or {})


def product_line(product: DraftProduct, draft: SubscriptionDraft) -> dict:
    line = {
        "id": product.variant_id,
        "quantity": 1,
        "properties": {
            "_subscription_type": SUBSCRIPTION_TYPE,
            "_frequency": draft.frequency,
            "_product_title": product.title,
            "_selected_variant": product.variant_title,
            "_unit_price": format_price(product.unit_price_cents),
            "_custom_selection": "true",
            "_protected_item": "true",
        },
    }
    if draft.selling_plan:
        line["selling_plan"] = draft.selling_plan
    return line


def offer_line(offer: DraftOffer) -> dict:
    # Offers are free; the list price shown as marketing never reaches the cart
    return {
        "id": offer.variant_id,
        "quantity": 1,
        "properties": {
            "_one_time_offer": "true",
            "_first_box_addon": "true",
            "_product_title": offer.title,
            "_offer_price": format_price(0),
            "_protected_item": "true",
        },
    }


def cart_attributes(draft: SubscriptionDraft) -> dict:
    attributes = {
        "subscription_type": SUBSCRIPTION_TYPE,
        "frequency": draft.frequency,
        "frequency_text": frequency_text(draft.frequency) or draft.frequency,
        "discount_percentage": f"{draft.discount_percentage:g}",
        "product_count": str(draft.product_count),
        "has_one_time_offers": "true" if draft.offers else "false",
        "offer_count": str(len(draft.offers)),
        "calculated_total": format_price(draft.subtotal_cents),
        "subscription_created": datetime.now(UTC).isoformat(),
    }
    if draft.customer_email:
        attributes["customer_email"] = draft.customer_email
    return attributes


class CartSubmitter:
    def __init__(self, cart: CartClient):
        self.cart = cart

    def submit(self, draft: SubscriptionDraft) -> SubmissionResult:
        items = [product_line(p, draft) for p in draft.products] + [offer_line(o) for o in draft.offers]
        if not items:
            return SubmissionResult.failed(
                "Select at least one product before checking out",
                errors={"items": ["Cannot submit an empty subscription box"]},
            )
        if not draft.frequency:
            return SubmissionResult.failed(
                "Select a delivery frequency before checking out",
                errors={"frequency": ["A delivery frequency is required"]},
            )

        try:
            self.cart.clear()
            self.cart.add(items)
            cart = self.cart.update_attributes(cart_attributes(draft))
        except StorefrontError as exc:
            logger.error("Subscription cart submission failed", **exc.to_log_context())
            return SubmissionResult.failed(f"Cart update failed ({exc.endpoint}, status {exc.status_code})")

        logger.info(
            "Subscription added to cart",
            product_count=draft.product_count,
            offer_count=len(draft.offers),
            discount_percentage=draft.discount_percentage,
            selling_plan=draft.selling_plan,
        )
        return SubmissionResult.succeeded(cart_token=(cart or {}).get("token"))
