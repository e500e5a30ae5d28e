"""Shared BDD fixtures and step definitions for the Subscriptions domain."""

import pytest
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then
from subscriptions.box.box import SubscriptionBox
from subscriptions.box.events import (
    BoxStarted,
    BoxSubmissionFailed,
    BoxSubmitted,
    CatalogLoaded,
    FrequencyChosen,
    OfferToggled,
    ProductAddedToBox,
    ProductRemovedFromBox,
    StepChanged,
    VariantChosen,
)

# Map event name strings to classes for dynamic lookup
_BOX_EVENT_CLASSES = {
    "BoxStarted": BoxStarted,
    "CatalogLoaded": CatalogLoaded,
    "ProductAddedToBox": ProductAddedToBox,
    "ProductRemovedFromBox": ProductRemovedFromBox,
    "VariantChosen": VariantChosen,
    "StepChanged": StepChanged,
    "FrequencyChosen": FrequencyChosen,
    "OfferToggled": OfferToggled,
    "BoxSubmitted": BoxSubmitted,
    "BoxSubmissionFailed": BoxSubmissionFailed,
}

SIX_PRODUCTS = ("1001", "1003", "1004", "1005", "1006", "1007")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a box with the catalog loaded", target_fixture="box")
def box_with_catalog(catalog_load):
    box = SubscriptionBox.create(session_id="sess-bdd")
    box.record_catalog(catalog_load)
    box._events.clear()
    return box


@given(parsers.cfparse("the box holds {count:d} products"), target_fixture="box")
def box_holding(box, count):
    product_ids = list(SIX_PRODUCTS) + ["1008", "1009", "1010", "1011", "1012"]
    for product_id in product_ids[:count]:
        box.toggle_product(product_id)
    box._events.clear()
    return box


@given(parsers.cfparse('the shopper chose the "{frequency}" delivery frequency'), target_fixture="box")
def frequency_chosen(box, frequency):
    box.proceed_to_frequency()
    box.choose_frequency(frequency)
    box._events.clear()
    return box


@given("the shop offers free add-ons", target_fixture="box")
def offers_shown(box, offer_candidates):
    box.enter_offer_selection(offer_candidates)
    box._events.clear()
    return box


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the box is at the "{step}" step'))
def box_step(box, step):
    assert box.step == step


@then(parsers.cfparse("the box holds {count:d} selected products"))
def box_count(box, count):
    assert box.product_count == count


@then(parsers.cfparse("the discount is {percent:g} percent"))
def box_discount(box, percent):
    assert box.current_tier().percent == percent


@then("the action fails with a validation error")
def action_fails(error):
    assert error["exc"] is not None
    assert isinstance(error["exc"], ValidationError)


@then(parsers.cfparse('the error mentions "{text}"'))
def error_mentions(error, text):
    assert text in str(error["exc"].messages)


@then(parsers.cfparse("a {event_type} box event is raised"))
def box_event_raised(box, event_type):
    event_cls = _BOX_EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in box._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in box._events]}"
