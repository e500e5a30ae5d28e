"""SubscriptionBox aggregate: the shopper's box and the builder's step state machine.

One box per shopper session. It owns the product selection (one entry per
distinct product, quantity 1), the remembered variant choices, the chosen
delivery frequency and the toggled one-time offers, and it gates every
forward step of the wizard:

    ProductSelection -> FrequencySelection -> OfferSelection -> Submitting -> Success | Failed

Offer selection is skipped when the shop has no one-time offers. Backward
navigation is never gated. A failed submission returns the box to the last
interactive step it was submitted from.

The catalog snapshot and derived categories are kept on the box as JSON so
that selection rules (stock, prices, variants) are checked against exactly
what the shopper was shown.
"""

import json
from datetime import UTC, datetime
from enum import Enum

import structlog
from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String, Text, ValueObject

from subscriptions.box.events import (
    BoxStarted,
    BoxSubmissionFailed,
    BoxSubmitted,
    CatalogLoaded,
    CatalogUnavailable,
    FrequencyChosen,
    OfferToggled,
    ProductAddedToBox,
    ProductRemovedFromBox,
    StepChanged,
    VariantChosen,
)
from subscriptions.box.messages import render, resolve_messages
from subscriptions.box.milestones import FREQUENCIES, MilestoneConfig, Tier
from subscriptions.catalog.products import CatalogProduct
from subscriptions.checkout.draft import DraftOffer, DraftProduct, SubscriptionDraft
from subscriptions.domain import subscriptions
from subscriptions.offers.selector import OfferCandidate
from subscriptions.shared.email import EmailAddress
from subscriptions.shared.money import apply_discount
from subscriptions.shared.notices import Notice

logger = structlog.get_logger(__name__)


class BuilderStep(Enum):
    PRODUCT_SELECTION = "ProductSelection"
    FREQUENCY_SELECTION = "FrequencySelection"
    OFFER_SELECTION = "OfferSelection"
    SUBMITTING = "Submitting"
    SUCCESS = "Success"
    FAILED = "Failed"


class CatalogStatus(Enum):
    NOT_LOADED = "NotLoaded"
    LOADED = "Loaded"
    UNAVAILABLE = "Unavailable"


class SelectionType(Enum):
    INDIVIDUAL = "individual"
    ONE_TIME_OFFER = "one-time-offer"


# Wizard order of the steps a shopper interacts with
_INTERACTIVE_STEPS = [
    BuilderStep.PRODUCT_SELECTION,
    BuilderStep.FREQUENCY_SELECTION,
    BuilderStep.OFFER_SELECTION,
]

_VALID_TRANSITIONS = {
    BuilderStep.PRODUCT_SELECTION: {BuilderStep.FREQUENCY_SELECTION},
    BuilderStep.FREQUENCY_SELECTION: {
        BuilderStep.PRODUCT_SELECTION,
        BuilderStep.OFFER_SELECTION,
        BuilderStep.SUBMITTING,  # No offers to show
    },
    BuilderStep.OFFER_SELECTION: {
        BuilderStep.PRODUCT_SELECTION,
        BuilderStep.FREQUENCY_SELECTION,
        BuilderStep.SUBMITTING,
    },
    BuilderStep.SUBMITTING: {BuilderStep.SUCCESS, BuilderStep.FAILED},
    BuilderStep.FAILED: set(_INTERACTIVE_STEPS),
    BuilderStep.SUCCESS: set(),  # Terminal
}


@subscriptions.entity(part_of="SubscriptionBox")
class BoxItem:
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    title = String(max_length=255)
    variant_title = String(max_length=255)
    image = String(max_length=1000)
    unit_price_cents = Integer(default=0, min_value=0)
    quantity = Integer(default=1, min_value=1)
    selection_type = String(choices=SelectionType, default=SelectionType.INDIVIDUAL.value)
    position = Integer(default=0)


@subscriptions.entity(part_of="SubscriptionBox")
class OfferItem:
    offer_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    title = String(max_length=255)
    image = String(max_length=1000)
    original_price_cents = Integer(default=0, min_value=0)
    offer_price_cents = Integer(default=0, min_value=0)
    position = Integer(default=0)


@subscriptions.aggregate
class SubscriptionBox:
    session_id = String(max_length=255)
    shop = String(max_length=255)
    step = String(choices=BuilderStep, default=BuilderStep.PRODUCT_SELECTION.value)
    last_interactive_step = String(choices=BuilderStep, default=BuilderStep.PRODUCT_SELECTION.value)
    catalog_status = String(choices=CatalogStatus, default=CatalogStatus.NOT_LOADED.value)
    catalog_source = String(max_length=50)
    catalog = Text()  # JSON: list of normalized catalog products
    categories = Text()  # JSON: ordered list of {key, title, position, product_ids}
    active_category = String(max_length=255)
    milestones = ValueObject(MilestoneConfig)
    messages = Text()  # JSON: message key -> text, defaults merged with shop overrides
    items = HasMany(BoxItem)
    offers = HasMany(OfferItem)
    offer_candidates = Text()  # JSON: list of offer candidates shown at the offer step
    pending_variants = Text()  # JSON: product_id -> variant_id chosen for that product
    frequency = String(max_length=20)
    customer_email = ValueObject(EmailAddress)
    failure_reason = String(max_length=500)
    cart_token = String(max_length=255)
    redirect_url = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def products_must_be_unique(self):
        product_ids = [str(item.product_id) for item in self.items]
        if len(product_ids) != len(set(product_ids)):
            raise ValidationError({"items": ["A product can only be selected once"]})

    @invariant.post
    def offers_must_be_unique(self):
        offer_ids = [str(offer.offer_id) for offer in self.offers]
        if len(offer_ids) != len(set(offer_ids)):
            raise ValidationError({"offers": ["An offer can only be selected once"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, session_id=None, shop=None, milestones=None, message_overrides=None):
        now = datetime.now(UTC)
        milestones = milestones or MilestoneConfig.standard()
        box = cls(
            session_id=session_id,
            shop=shop,
            step=BuilderStep.PRODUCT_SELECTION.value,
            last_interactive_step=BuilderStep.PRODUCT_SELECTION.value,
            catalog_status=CatalogStatus.NOT_LOADED.value,
            catalog=json.dumps([]),
            categories=json.dumps([]),
            milestones=milestones,
            messages=json.dumps(resolve_messages(message_overrides)),
            offer_candidates=json.dumps([]),
            pending_variants=json.dumps({}),
            created_at=now,
            updated_at=now,
        )
        box.raise_(
            BoxStarted(
                box_id=str(box.id),
                session_id=session_id,
                tier1_items=milestones.tier1_items,
                tier2_items=milestones.tier2_items,
                started_at=now,
            )
        )
        return box

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_step):
        current = BuilderStep(self.step)
        if target_step not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"step": [f"Cannot move from {current.value} to {target_step.value}"]})

    def _move_to(self, target_step):
        self._assert_can_transition(target_step)
        previous = self.step
        self.step = target_step.value
        if target_step in _INTERACTIVE_STEPS:
            self.last_interactive_step = target_step.value
        self.updated_at = datetime.now(UTC)
        self.raise_(StepChanged(box_id=str(self.id), from_step=previous, to_step=target_step.value))

    def _assert_step(self, expected, action):
        if BuilderStep(self.step) != expected:
            raise ValidationError({"step": [f"Cannot {action} during {self.step}"]})

    def message_text(self, key, **values):
        return render(json.loads(self.messages) if self.messages else {}, key, **values)

    def variant_choices(self):
        return json.loads(self.pending_variants) if self.pending_variants else {}

    def _remember_variant(self, product_id, variant_id):
        pending = self.variant_choices()
        pending[str(product_id)] = str(variant_id)
        self.pending_variants = json.dumps(pending)

    def _item_for(self, product_id):
        return next((i for i in self.items if str(i.product_id) == str(product_id)), None)

    def _catalog_product(self, product_id):
        product = self.catalog_products().get(str(product_id))
        if product is None:
            raise ValidationError({"product_id": [f"Product {product_id} is not available in this box"]})
        return product

    @property
    def is_interactive(self):
        return BuilderStep(self.step) in _INTERACTIVE_STEPS

    # -------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------
    def record_catalog(self, load):
        """Keep a freshly loaded catalog. A load finishing after the box left the
        interactive steps is stale and ignored."""
        if not self.is_interactive:
            logger.info("Ignoring stale catalog load", box_id=str(self.id), step=self.step)
            return

        categories = [category.to_dict() for category in load.categories.values()]
        self.catalog = json.dumps([product.to_dict() for product in load.products])
        self.categories = json.dumps(categories)
        self.catalog_source = load.source
        self.catalog_status = CatalogStatus.LOADED.value
        self.active_category = load.default_category
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CatalogLoaded(
                box_id=str(self.id),
                source=load.source,
                product_count=len(load.products),
                categories=json.dumps(load.display_order),
                default_category=load.default_category,
            )
        )

    def record_catalog_unavailable(self, reason=None):
        if not self.is_interactive:
            logger.info("Ignoring stale catalog failure", box_id=str(self.id), step=self.step)
            return

        self.catalog_status = CatalogStatus.UNAVAILABLE.value
        self.updated_at = datetime.now(UTC)
        self.raise_(
            CatalogUnavailable(
                box_id=str(self.id),
                reason=reason or self.message_text("catalog_unavailable"),
            )
        )

    def catalog_products(self):
        """The loaded catalog, keyed by product id."""
        products = json.loads(self.catalog) if self.catalog else []
        return {p["id"]: CatalogProduct.from_dict(p) for p in products}

    def category_list(self):
        return json.loads(self.categories) if self.categories else []

    def visible_categories(self):
        return [category for category in self.category_list() if category["product_ids"]]

    def show_category(self, key):
        """Switch the displayed category."""
        if CatalogStatus(self.catalog_status) != CatalogStatus.LOADED:
            raise ValidationError({"catalog": ["The catalog has not been loaded"]})
        if key not in {category["key"] for category in self.visible_categories()}:
            raise ValidationError({"category": [f"Unknown or empty category: {key}"]})
        self.active_category = key
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Product selection
    # -------------------------------------------------------------------
    def selection(self):
        """Selected products in the order they were added."""
        return sorted(self.items, key=lambda item: item.position)

    @property
    def product_count(self):
        return len({str(item.product_id) for item in self.items})

    def current_tier(self) -> Tier:
        return self.milestones.compute_tier(self.product_count)

    def toggle_product(self, product_id):
        """Select the product, or deselect it when already selected.

        Returns True when the product is now in the box.
        """
        self._assert_step(BuilderStep.PRODUCT_SELECTION, "change products")
        product = self._catalog_product(product_id)

        existing = self._item_for(product.id)
        if existing is not None:
            self._remove_item(existing, reason="toggled")
            return False

        pending_id = self.variant_choices().get(product.id)
        variant = product.variant(pending_id) if pending_id else None
        variant = variant or product.default_variant
        if variant is None:
            raise ValidationError({"product_id": [f"Product {product.id} has no purchasable variant"]})
        if not variant.in_stock:
            raise ValidationError(
                {"variant_id": [self.message_text("out_of_stock", title=product.title, variant=variant.title)]}
            )

        position = max((item.position for item in self.items), default=-1) + 1
        self.add_items(
            BoxItem(
                product_id=product.id,
                variant_id=variant.id,
                title=product.title,
                variant_title=variant.title,
                image=product.image,
                unit_price_cents=variant.price_cents,
                quantity=1,
                selection_type=SelectionType.INDIVIDUAL.value,
                position=position,
            )
        )
        self._remember_variant(product.id, variant.id)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            ProductAddedToBox(
                box_id=str(self.id),
                product_id=product.id,
                variant_id=variant.id,
                unit_price_cents=variant.price_cents,
                product_count=self.product_count,
                discount_percentage=self.current_tier().percent,
            )
        )
        return True

    def _remove_item(self, item, reason):
        product_id = str(item.product_id)
        self.remove_items(item)
        self.updated_at = datetime.now(UTC)
        self.raise_(
            ProductRemovedFromBox(
                box_id=str(self.id),
                product_id=product_id,
                reason=reason,
                product_count=self.product_count,
                discount_percentage=self.current_tier().percent,
            )
        )

    def choose_variant(self, product_id, variant_id):
        """Choose a variant for a product.

        Before selection the choice is remembered and applied when the product
        is added. For a selected product the price updates immediately and stock
        is re-checked: the quantity is clamped to what is left, or the product is
        removed when nothing is. Returns a Notice for the shopper in those cases.
        """
        self._assert_step(BuilderStep.PRODUCT_SELECTION, "change variants")
        product = self._catalog_product(product_id)
        variant = product.variant(variant_id)
        if variant is None:
            raise ValidationError({"variant_id": [f"Variant {variant_id} does not belong to product {product.id}"]})

        self._remember_variant(product.id, variant.id)
        item = self._item_for(product.id)
        notice = None

        if item is not None:
            item.variant_id = variant.id
            item.variant_title = variant.title
            item.unit_price_cents = variant.price_cents

            if not variant.allows_quantity(item.quantity):
                if variant.stock <= 0:
                    self._remove_item(item, reason="out_of_stock")
                    item = None
                    notice = Notice(
                        code="stock_removed",
                        message=self.message_text("stock_removed", title=product.title, variant=variant.title),
                    )
                else:
                    item.quantity = variant.stock
                    notice = Notice(
                        code="stock_clamped",
                        message=self.message_text(
                            "stock_clamped", stock=variant.stock, title=product.title, variant=variant.title
                        ),
                    )

        self.updated_at = datetime.now(UTC)
        self.raise_(
            VariantChosen(
                box_id=str(self.id),
                product_id=product.id,
                variant_id=variant.id,
                selected=item is not None,
                quantity=item.quantity if item is not None else None,
            )
        )
        return notice

    def summary(self):
        """Running totals and milestone progress for the current selection."""
        count = self.product_count
        tier = self.current_tier()
        subtotal = sum(item.unit_price_cents * item.quantity for item in self.items)
        milestones = self.milestones

        if count >= milestones.tier2_items:
            message = self.message_text("goal_reached", discount=f"{milestones.tier2_discount:g}")
        else:
            message = self.message_text("goal", count=milestones.tier2_items, discount=f"{milestones.tier2_discount:g}")

        return {
            "product_count": count,
            "subtotal_cents": subtotal,
            "discount_percentage": tier.percent,
            "discounted_total_cents": apply_discount(subtotal, tier.percent),
            "progress_percentage": milestones.progress_percentage(count),
            "next_threshold": tier.next_threshold,
            "captions": milestones.captions(count),
            "message": message,
            "can_proceed": count >= milestones.tier1_items,
        }

    # -------------------------------------------------------------------
    # Step navigation
    # -------------------------------------------------------------------
    def proceed_to_frequency(self):
        self._assert_can_transition(BuilderStep.FREQUENCY_SELECTION)
        if self.product_count < self.milestones.tier1_items:
            raise ValidationError(
                {"items": [self.message_text("minimum_products", count=self.milestones.tier1_items)]}
            )
        self._move_to(BuilderStep.FREQUENCY_SELECTION)

    def choose_frequency(self, frequency):
        self._assert_step(BuilderStep.FREQUENCY_SELECTION, "choose a frequency")
        if frequency not in FREQUENCIES:
            raise ValidationError({"frequency": [f"Unknown delivery frequency: {frequency}"]})

        self.frequency = frequency
        self.updated_at = datetime.now(UTC)
        self.raise_(FrequencyChosen(box_id=str(self.id), frequency=frequency))

    def _assert_frequency_chosen(self):
        if not self.frequency:
            raise ValidationError({"frequency": [self.message_text("frequency_required")]})

    def ensure_ready_for_offers(self):
        """Gate for leaving the frequency step, checked before any network call."""
        self._assert_step(BuilderStep.FREQUENCY_SELECTION, "continue to offers")
        self._assert_frequency_chosen()

    def enter_offer_selection(self, candidates):
        """Show the offer step with the given candidates.

        Offers toggled on an earlier visit stay selected only while they are
        still among the candidates.
        """
        self.ensure_ready_for_offers()
        offered = {candidate.offer_id for candidate in candidates if not candidate.is_demo}
        for offer in list(self.offers):
            if str(offer.offer_id) not in offered:
                self.remove_offers(offer)
        self.offer_candidates = json.dumps([candidate.to_dict() for candidate in candidates])
        self._move_to(BuilderStep.OFFER_SELECTION)

    def return_to_step(self, target):
        """Go back to an earlier interactive step. Forward gates do not apply."""
        target = BuilderStep(target)
        current = BuilderStep(self.step)
        if target == current:
            return
        if (
            current not in _INTERACTIVE_STEPS
            or target not in _INTERACTIVE_STEPS
            or _INTERACTIVE_STEPS.index(target) > _INTERACTIVE_STEPS.index(current)
        ):
            raise ValidationError({"step": [f"Cannot go back from {current.value} to {target.value}"]})
        self._move_to(target)

    # -------------------------------------------------------------------
    # Offers
    # -------------------------------------------------------------------
    def candidate_offers(self):
        candidates = json.loads(self.offer_candidates) if self.offer_candidates else []
        return [OfferCandidate.from_dict(candidate) for candidate in candidates]

    def selected_offers(self):
        return sorted(self.offers, key=lambda offer: offer.position)

    def toggle_offer(self, offer_id):
        """Add the offer to the first box, or drop it when already added.

        Returns True when the offer is now selected.
        """
        self._assert_step(BuilderStep.OFFER_SELECTION, "change offers")
        candidate = next((c for c in self.candidate_offers() if c.offer_id == str(offer_id)), None)
        if candidate is None:
            raise ValidationError({"offer_id": [f"Offer {offer_id} is not available"]})
        if candidate.is_demo:
            raise ValidationError({"offer_id": ["Demo offers cannot be added to a box"]})

        existing = next((o for o in self.offers if str(o.offer_id) == candidate.offer_id), None)
        if existing is not None:
            self.remove_offers(existing)
            selected = False
        else:
            position = max((offer.position for offer in self.offers), default=-1) + 1
            self.add_offers(
                OfferItem(
                    offer_id=candidate.offer_id,
                    variant_id=candidate.variant_id,
                    title=candidate.title,
                    image=candidate.image,
                    original_price_cents=candidate.original_price_cents,
                    offer_price_cents=0,
                    position=position,
                )
            )
            selected = True

        self.updated_at = datetime.now(UTC)
        self.raise_(
            OfferToggled(
                box_id=str(self.id),
                offer_id=candidate.offer_id,
                selected=selected,
                offer_count=len(self.offers),
            )
        )
        return selected

    # -------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------
    def begin_submission(self, skip_offers=False, customer_email=None):
        """Lock the box for submission.

        Skipping drops any toggled offers. From the frequency step (no offers
        shown) the box never carries offers.
        """
        self._assert_can_transition(BuilderStep.SUBMITTING)
        self._assert_frequency_chosen()
        if self.product_count < self.milestones.tier1_items:
            raise ValidationError(
                {"items": [self.message_text("minimum_products", count=self.milestones.tier1_items)]}
            )

        if customer_email:
            self.customer_email = EmailAddress(address=customer_email.strip())

        if skip_offers or BuilderStep(self.step) == BuilderStep.FREQUENCY_SELECTION:
            for offer in list(self.offers):
                self.remove_offers(offer)

        self.failure_reason = None
        self._move_to(BuilderStep.SUBMITTING)

    def to_draft(self):
        tier = self.current_tier()
        return SubscriptionDraft(
            frequency=self.frequency,
            products=[
                DraftProduct(
                    product_id=str(item.product_id),
                    variant_id=str(item.variant_id),
                    title=item.title or "",
                    variant_title=item.variant_title or "",
                    unit_price_cents=item.unit_price_cents or 0,
                    quantity=item.quantity,
                )
                for item in self.selection()
            ],
            offers=[
                DraftOffer(
                    offer_id=str(offer.offer_id),
                    variant_id=str(offer.variant_id),
                    title=offer.title or "",
                    original_price_cents=offer.original_price_cents or 0,
                    offer_price_cents=0,
                )
                for offer in self.selected_offers()
            ],
            customer_email=self.customer_email.address if self.customer_email else None,
            discount_percentage=tier.percent,
            selling_plan=self.milestones.selling_plan_for(self.product_count, self.frequency),
        )

    def record_submission_success(self, cart_token, redirect_url):
        self._move_to(BuilderStep.SUCCESS)
        self.cart_token = cart_token
        self.redirect_url = redirect_url
        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(
            BoxSubmitted(
                box_id=str(self.id),
                cart_token=cart_token,
                frequency=self.frequency,
                product_count=self.product_count,
                offer_count=len(self.offers),
                discount_percentage=self.current_tier().percent,
                redirect_url=redirect_url,
                submitted_at=now,
            )
        )

    def record_submission_failure(self, reason=None):
        """Mark the submission failed and hand the box back to the shopper."""
        self._move_to(BuilderStep.FAILED)
        self.failure_reason = reason or self.message_text("submission_failed")
        returned_to = BuilderStep(self.last_interactive_step)
        self._move_to(returned_to)

        self.raise_(
            BoxSubmissionFailed(
                box_id=str(self.id),
                reason=self.failure_reason,
                returned_to_step=returned_to.value,
            )
        )
