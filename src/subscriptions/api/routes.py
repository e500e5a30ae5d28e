"""FastAPI routes for the Subscriptions domain: the box builder and the cart guard."""

import json

from fastapi import APIRouter, HTTPException
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from subscriptions.api.schemas import (
    ActivateGuardRequest,
    BoxIdResponse,
    BoxProgressResponse,
    BoxResponse,
    CheckoutRequest,
    ChooseFrequencyRequest,
    ChooseVariantRequest,
    GuardedRequest,
    GuardedResponse,
    GuardStatusResponse,
    LoadCatalogRequest,
    ProceedToOffersRequest,
    ReturnToStepRequest,
    ShowCategoryRequest,
    StartBoxRequest,
)
from subscriptions.box.box import CatalogStatus, SubscriptionBox
from subscriptions.box.management import LoadCatalog, ShowCategory, StartBox
from subscriptions.box.milestones import FREQUENCIES
from subscriptions.box.navigation import (
    CheckoutBox,
    ChooseFrequency,
    ProceedToFrequency,
    ProceedToOffers,
    ReturnToStep,
    ToggleOffer,
)
from subscriptions.box.selection import ChooseVariant, ToggleProduct
from subscriptions.projections.box_progress import BoxProgressView
from subscriptions.protection import get_cart_guard
from subscriptions.storefront.port import StorefrontError


def _process(command):
    try:
        return current_domain.process(command, asynchronous=False)
    except ObjectNotFoundError:
        raise HTTPException(status_code=404, detail="Subscription box not found") from None


def _load(box_id) -> SubscriptionBox:
    try:
        return current_domain.repository_for(SubscriptionBox).get(box_id)
    except ObjectNotFoundError:
        raise HTTPException(status_code=404, detail="Subscription box not found") from None


def _box_response(box_id, **extras) -> BoxResponse:
    box = _load(box_id)
    choices = box.variant_choices()
    selected_offers = {str(offer.offer_id) for offer in box.offers}

    products = []
    for product in box.catalog_products().values():
        products.append(
            {
                "id": product.id,
                "title": product.title,
                "summary": product.summary,
                "image": product.image,
                "variants": [{**variant.to_dict(), "in_stock": variant.in_stock} for variant in product.variants],
                "selected_variant_id": choices.get(product.id),
            }
        )

    catalog_message = None
    if CatalogStatus(box.catalog_status) == CatalogStatus.UNAVAILABLE:
        catalog_message = box.message_text("catalog_unavailable")

    return BoxResponse(
        box_id=str(box.id),
        step=box.step,
        last_interactive_step=box.last_interactive_step,
        catalog_status=box.catalog_status,
        catalog_message=catalog_message,
        active_category=box.active_category,
        categories=box.visible_categories(),
        products=products,
        selection=[
            {
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id),
                "title": item.title or "",
                "variant_title": item.variant_title or "",
                "image": item.image or "",
                "unit_price_cents": item.unit_price_cents or 0,
                "quantity": item.quantity,
                "selection_type": item.selection_type,
            }
            for item in box.selection()
        ],
        summary=box.summary(),
        frequency=box.frequency,
        frequencies=FREQUENCIES,
        offers=[
            {**candidate.to_dict(), "selected": candidate.offer_id in selected_offers}
            for candidate in box.candidate_offers()
        ],
        customer_email=box.customer_email.address if box.customer_email else None,
        failure_reason=box.failure_reason,
        redirect_url=box.redirect_url,
        **extras,
    )


# ---------------------------------------------------------------------------
# Box Router
# ---------------------------------------------------------------------------
box_router = APIRouter(prefix="/boxes", tags=["boxes"])


@box_router.post("", status_code=201, response_model=BoxIdResponse)
def start_box(body: StartBoxRequest) -> BoxIdResponse:
    command = StartBox(
        session_id=body.session_id,
        shop=body.shop,
        milestone_config=json.dumps(body.milestone_config) if body.milestone_config else None,
        message_overrides=json.dumps(body.message_overrides) if body.message_overrides else None,
    )
    result = current_domain.process(command, asynchronous=False)
    return BoxIdResponse(box_id=result)


@box_router.get("/{box_id}", response_model=BoxResponse)
def get_box(box_id: str) -> BoxResponse:
    return _box_response(box_id)


@box_router.get("/{box_id}/progress", response_model=BoxProgressResponse)
def get_box_progress(box_id: str) -> BoxProgressResponse:
    try:
        view = current_domain.repository_for(BoxProgressView).get(box_id)
    except ObjectNotFoundError:
        raise HTTPException(status_code=404, detail="Subscription box not found") from None
    return BoxProgressResponse(
        box_id=str(view.box_id),
        step=view.step,
        catalog_status=view.catalog_status,
        product_count=view.product_count or 0,
        discount_percentage=view.discount_percentage or 0.0,
        progress_percentage=view.progress_percentage or 0.0,
        frequency=view.frequency,
        offer_count=view.offer_count or 0,
        redirect_url=view.redirect_url,
        failure_reason=view.failure_reason,
    )


@box_router.post("/{box_id}/catalog", response_model=BoxResponse)
def load_catalog(box_id: str, body: LoadCatalogRequest | None = None) -> BoxResponse:
    _process(LoadCatalog(box_id=box_id, force=body.force if body else False))
    return _box_response(box_id)


@box_router.put("/{box_id}/category", response_model=BoxResponse)
def show_category(box_id: str, body: ShowCategoryRequest) -> BoxResponse:
    _process(ShowCategory(box_id=box_id, category=body.category))
    return _box_response(box_id)


@box_router.post("/{box_id}/products/{product_id}/toggle", response_model=BoxResponse)
def toggle_product(box_id: str, product_id: str) -> BoxResponse:
    selected = _process(ToggleProduct(box_id=box_id, product_id=product_id))
    return _box_response(box_id, selected=selected)


@box_router.put("/{box_id}/products/{product_id}/variant", response_model=BoxResponse)
def choose_variant(box_id: str, product_id: str, body: ChooseVariantRequest) -> BoxResponse:
    notice = _process(ChooseVariant(box_id=box_id, product_id=product_id, variant_id=body.variant_id))
    return _box_response(box_id, notice=notice)


@box_router.post("/{box_id}/frequency-step", response_model=BoxResponse)
def proceed_to_frequency(box_id: str) -> BoxResponse:
    _process(ProceedToFrequency(box_id=box_id))
    return _box_response(box_id)


@box_router.put("/{box_id}/frequency", response_model=BoxResponse)
def choose_frequency(box_id: str, body: ChooseFrequencyRequest) -> BoxResponse:
    _process(ChooseFrequency(box_id=box_id, frequency=body.frequency))
    return _box_response(box_id)


@box_router.post("/{box_id}/offer-step", response_model=BoxResponse)
def proceed_to_offers(box_id: str, body: ProceedToOffersRequest | None = None) -> BoxResponse:
    submission = _process(
        ProceedToOffers(box_id=box_id, customer_email=body.customer_email if body else None)
    )
    return _box_response(box_id, submission=submission)


@box_router.post("/{box_id}/offers/{offer_id}/toggle", response_model=BoxResponse)
def toggle_offer(box_id: str, offer_id: str) -> BoxResponse:
    selected = _process(ToggleOffer(box_id=box_id, offer_id=offer_id))
    return _box_response(box_id, selected=selected)


@box_router.post("/{box_id}/checkout", response_model=BoxResponse)
def checkout_box(box_id: str, body: CheckoutRequest | None = None) -> BoxResponse:
    body = body or CheckoutRequest()
    submission = _process(
        CheckoutBox(box_id=box_id, skip_offers=body.skip_offers, customer_email=body.customer_email)
    )
    return _box_response(box_id, submission=submission)


@box_router.post("/{box_id}/back", response_model=BoxResponse)
def return_to_step(box_id: str, body: ReturnToStepRequest) -> BoxResponse:
    _process(ReturnToStep(box_id=box_id, step=body.step))
    return _box_response(box_id)


# ---------------------------------------------------------------------------
# Cart Guard Router
# ---------------------------------------------------------------------------
guard_router = APIRouter(prefix="/cart-guard", tags=["cart-guard"])


@guard_router.get("/{session_id}", response_model=GuardStatusResponse)
def guard_status(session_id: str) -> GuardStatusResponse:
    return GuardStatusResponse(**get_cart_guard(session_id).status())


@guard_router.post("/{session_id}/activate", response_model=GuardStatusResponse)
def activate_guard(session_id: str, body: ActivateGuardRequest) -> GuardStatusResponse:
    guard = get_cart_guard(session_id)
    guard.activate(body.page_path)
    return GuardStatusResponse(**guard.status())


@guard_router.post("/{session_id}/requests", response_model=GuardedResponse)
def guarded_request(session_id: str, body: GuardedRequest) -> GuardedResponse:
    guard = get_cart_guard(session_id)
    before = len(guard.interventions)
    try:
        response = guard.post(body.endpoint, body.payload)
    except StorefrontError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from None

    if len(guard.interventions) == before:
        return GuardedResponse(intercepted=False, reload=False, response=response)

    intervention = guard.last_intervention
    return GuardedResponse(
        intercepted=True,
        reload=intervention.cleared,
        notice=intervention.notice.to_dict(),
        response=response,
    )
