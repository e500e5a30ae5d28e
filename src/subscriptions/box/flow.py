"""Flow Controller: drives a box through the builder steps.

The controller owns no state of its own. It is handed its collaborators
explicitly (catalog loader, offer selector, cart submitter and optionally the
cart guard) and applies their network results to the box aggregate, which
enforces every step gate.
"""

from contextlib import nullcontext

import structlog

from subscriptions.box.box import BuilderStep, CatalogStatus
from subscriptions.catalog.loader import CatalogLoader, CatalogUnavailableError
from subscriptions.checkout.submitter import CartSubmitter, SubmissionResult
from subscriptions.offers.selector import OfferSelector
from subscriptions.storefront.cart import CartClient
from subscriptions.storefront.port import StorefrontError

logger = structlog.get_logger(__name__)


class FlowController:
    def __init__(self, catalog_loader, offer_selector, submitter, guard=None):
        self.catalog_loader = catalog_loader
        self.offer_selector = offer_selector
        self.submitter = submitter
        self.guard = guard

    @classmethod
    def for_transport(cls, transport, guard=None, shop=None):
        """Wire the standard collaborators over one storefront transport."""
        return cls(
            catalog_loader=CatalogLoader(transport),
            offer_selector=OfferSelector(transport, shop=shop),
            submitter=CartSubmitter(CartClient(transport)),
            guard=guard,
        )

    def load_catalog(self, box, force=False):
        """Load the catalog into the box. Reloading an already loaded catalog is a no-op unless forced."""
        if CatalogStatus(box.catalog_status) == CatalogStatus.LOADED and not force:
            return box.catalog_status

        try:
            load = self.catalog_loader.load_eligible_products()
        except CatalogUnavailableError as exc:
            logger.warning("Catalog unavailable for box", box_id=str(box.id), reason=str(exc))
            box.record_catalog_unavailable()
        else:
            box.record_catalog(load)
        return box.catalog_status

    def proceed_to_offers(self, box, customer_email=None):
        """Leave the frequency step: show offers when the shop has any, otherwise submit right away.

        Offers are looked up once. When the lookup fails or finds nothing the
        offer step is bypassed. Returns the SubmissionResult when offers were
        bypassed, else None.
        """
        box.ensure_ready_for_offers()

        try:
            candidates = self.offer_selector.find_offers()
        except StorefrontError as exc:
            logger.warning("Offer lookup failed, submitting directly", box_id=str(box.id), **exc.to_log_context())
            candidates = []

        if not candidates:
            logger.info("No one-time offers, submitting directly", box_id=str(box.id))
            return self.submit(box, skip_offers=True, customer_email=customer_email)

        box.enter_offer_selection(candidates)
        return None

    def submit(self, box, skip_offers=False, customer_email=None) -> SubmissionResult:
        box.begin_submission(skip_offers=skip_offers, customer_email=customer_email)

        with self.guard.suspended() if self.guard else nullcontext():
            result = self.submitter.submit(box.to_draft())

        if result.success:
            box.record_submission_success(result.cart_token, result.redirect_url)
            if self.guard:
                # The redirect lands on the cart page; protect the new cart from there
                self.guard.activate(result.redirect_url)
        else:
            logger.error(
                "Box submission failed",
                box_id=str(box.id),
                reason=result.failure_reason,
                returned_to=box.last_interactive_step,
            )
            box.record_submission_failure(result.failure_reason)
        return result

    def go_back(self, box, step):
        box.return_to_step(BuilderStep(step))


def current_flow(box) -> FlowController:
    """Flow over the box's session guard, so the builder's own writes are seen by it too."""
    from subscriptions.protection import get_cart_guard

    guard = get_cart_guard(box.session_id)
    return FlowController.for_transport(guard, guard=guard, shop=box.shop)
