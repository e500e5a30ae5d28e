"""Box progress view: where a shopper stands in the builder, for UI rendering."""

from datetime import UTC, datetime

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from subscriptions.box.box import SubscriptionBox
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
)
from subscriptions.box.milestones import MilestoneConfig
from subscriptions.domain import subscriptions


@subscriptions.projection
class BoxProgressView:
    box_id = Identifier(identifier=True, required=True)
    session_id = String()
    step = String(required=True)
    catalog_status = String(default="NotLoaded")
    product_count = Integer(default=0)
    discount_percentage = Float(default=0.0)
    progress_percentage = Float(default=0.0)
    tier1_items = Integer()
    tier2_items = Integer()
    frequency = String()
    offer_count = Integer(default=0)
    redirect_url = String()
    failure_reason = String()
    updated_at = DateTime()


@subscriptions.projector(projector_for=BoxProgressView, aggregates=[SubscriptionBox])
class BoxProgressProjector:
    @on(BoxStarted)
    def on_box_started(self, event):
        current_domain.repository_for(BoxProgressView).add(
            BoxProgressView(
                box_id=event.box_id,
                session_id=event.session_id,
                step="ProductSelection",
                tier1_items=event.tier1_items,
                tier2_items=event.tier2_items,
                updated_at=event.started_at,
            )
        )

    @on(CatalogLoaded)
    def on_catalog_loaded(self, event):
        self._update(event.box_id, catalog_status="Loaded")

    @on(CatalogUnavailable)
    def on_catalog_unavailable(self, event):
        self._update(event.box_id, catalog_status="Unavailable")

    @on(ProductAddedToBox)
    def on_product_added(self, event):
        self._record_count(event)

    @on(ProductRemovedFromBox)
    def on_product_removed(self, event):
        self._record_count(event)

    @on(StepChanged)
    def on_step_changed(self, event):
        self._update(event.box_id, step=event.to_step)

    @on(FrequencyChosen)
    def on_frequency_chosen(self, event):
        self._update(event.box_id, frequency=event.frequency)

    @on(OfferToggled)
    def on_offer_toggled(self, event):
        self._update(event.box_id, offer_count=event.offer_count)

    @on(BoxSubmitted)
    def on_box_submitted(self, event):
        self._update(
            event.box_id,
            redirect_url=event.redirect_url,
            offer_count=event.offer_count,
            failure_reason=None,
        )

    @on(BoxSubmissionFailed)
    def on_submission_failed(self, event):
        self._update(event.box_id, failure_reason=event.reason, step=event.returned_to_step)

    def _record_count(self, event):
        repo = current_domain.repository_for(BoxProgressView)
        view = self._get_or_create_view(repo, event.box_id)
        view.product_count = event.product_count
        view.discount_percentage = event.discount_percentage
        if view.tier1_items and view.tier2_items:
            milestones = MilestoneConfig(tier1_items=view.tier1_items, tier2_items=view.tier2_items)
            view.progress_percentage = milestones.progress_percentage(event.product_count)
        view.updated_at = datetime.now(UTC)
        repo.add(view)

    def _update(self, box_id, **changes):
        repo = current_domain.repository_for(BoxProgressView)
        view = self._get_or_create_view(repo, box_id)
        for field_name, value in changes.items():
            setattr(view, field_name, value)
        view.updated_at = datetime.now(UTC)
        repo.add(view)

    @staticmethod
    def _get_or_create_view(repo, box_id):
        try:
            return repo.get(box_id)
        except ObjectNotFoundError:
            return BoxProgressView(box_id=box_id, step="ProductSelection")
