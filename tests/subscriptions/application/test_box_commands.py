"""Application tests for the box command handlers."""

import json

import pytest
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain
from subscriptions.box.box import SubscriptionBox
from subscriptions.box.management import LoadCatalog, ShowCategory, StartBox
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
from subscriptions.storefront.port import CART_ADD, CART_UPDATE, PRODUCTS

SIX_PRODUCTS = ("1001", "1003", "1004", "1005", "1006", "1007")


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _start_box(**overrides):
    values = {"session_id": "sess-cmd"}
    values.update(overrides)
    box_id = _process(StartBox(**values))
    _process(LoadCatalog(box_id=box_id))
    return box_id


def _fill(box_id, product_ids=SIX_PRODUCTS):
    for product_id in product_ids:
        _process(ToggleProduct(box_id=box_id, product_id=product_id))


def _to_frequency(box_id, frequency="4weeks"):
    _fill(box_id)
    _process(ProceedToFrequency(box_id=box_id))
    _process(ChooseFrequency(box_id=box_id, frequency=frequency))


def _box(box_id):
    return current_domain.repository_for(SubscriptionBox).get(box_id)


@pytest.fixture(autouse=True)
def _storefront(storefront):
    return storefront


class TestStartBox:
    def test_start_with_default_milestones(self):
        box_id = _process(StartBox(session_id="sess-1"))
        box = _box(box_id)

        assert box.session_id == "sess-1"
        assert box.milestones.tier1_items == 6

    def test_start_with_milestone_snapshot(self):
        snapshot = json.dumps({"milestone1Items": 3, "milestone2Items": 5, "milestone2Discount": 12})
        box_id = _process(StartBox(session_id="sess-2", milestone_config=snapshot))

        box = _box(box_id)
        assert box.milestones.tier1_items == 3
        assert box.milestones.tier2_discount == 12.0

    def test_start_with_message_overrides(self):
        box_id = _process(StartBox(message_overrides=json.dumps({"frequency_required": "Choose how often"})))
        assert _box(box_id).message_text("frequency_required") == "Choose how often"


class TestCatalogCommands:
    def test_load_catalog(self):
        box_id = _start_box()
        box = _box(box_id)
        assert box.catalog_status == "Loaded"
        assert box.active_category == "best-sellers"

    def test_show_category(self):
        box_id = _start_box()
        _process(ShowCategory(box_id=box_id, category="Steaks"))
        assert _box(box_id).active_category == "Steaks"


class TestSelectionCommands:
    def test_toggle_product(self):
        box_id = _start_box()
        assert _process(ToggleProduct(box_id=box_id, product_id="1001")) is True
        assert _process(ToggleProduct(box_id=box_id, product_id="1001")) is False
        assert _box(box_id).product_count == 0

    def test_choose_variant_removing_selection(self):
        box_id = _start_box()
        _process(ToggleProduct(box_id=box_id, product_id="1002"))

        notice = _process(ChooseVariant(box_id=box_id, product_id="1002", variant_id="1002-v2"))

        assert notice["code"] == "stock_removed"
        assert _box(box_id).product_count == 0

    def test_rejected_command_leaves_box_unchanged(self):
        box_id = _start_box()
        with pytest.raises(ValidationError):
            _process(ProceedToFrequency(box_id=box_id))
        assert _box(box_id).step == "ProductSelection"


class TestNavigationCommands:
    def test_proceed_to_offers(self, storefront):
        box_id = _start_box()
        _to_frequency(box_id)

        result = _process(ProceedToOffers(box_id=box_id))

        assert result is None
        assert _box(box_id).step == "OfferSelection"

    def test_offer_bypass_submits(self, storefront):
        storefront.products = [p for p in storefront.products if p["id"] != 2001]
        box_id = _start_box()
        _to_frequency(box_id)

        result = _process(ProceedToOffers(box_id=box_id, customer_email="shopper@example.com"))

        assert result["success"] is True
        assert result["redirect_url"] == "/cart"
        assert _box(box_id).step == "Success"
        assert storefront.cart["attributes"]["customer_email"] == "shopper@example.com"

    def test_checkout_with_offer(self, storefront):
        box_id = _start_box()
        _to_frequency(box_id)
        _process(ProceedToOffers(box_id=box_id))
        assert _process(ToggleOffer(box_id=box_id, offer_id="2001")) is True
        persisted = _box(box_id)
        assert [str(offer.offer_id) for offer in persisted.offers] == ["2001"]
        assert persisted.product_count == 6

        result = _process(CheckoutBox(box_id=box_id))

        assert result["success"] is True
        items = storefront.calls_to(CART_ADD)[0]["payload"]["items"]
        assert [item["id"] for item in items][-1] == "2001-v1"
        assert storefront.calls_to(CART_UPDATE)[0]["payload"]["attributes"]["offer_count"] == "1"

    def test_skip_offers(self, storefront):
        box_id = _start_box()
        _to_frequency(box_id)
        _process(ProceedToOffers(box_id=box_id))
        _process(ToggleOffer(box_id=box_id, offer_id="2001"))

        _process(CheckoutBox(box_id=box_id, skip_offers=True))

        assert len(storefront.calls_to(CART_ADD)[0]["payload"]["items"]) == 6

    def test_failed_checkout_is_persisted(self, storefront):
        box_id = _start_box()
        _to_frequency(box_id)
        _process(ProceedToOffers(box_id=box_id))
        storefront.configure_failure(CART_ADD, 503)

        result = _process(CheckoutBox(box_id=box_id))

        assert result["success"] is False
        box = _box(box_id)
        assert box.step == "OfferSelection"
        assert box.failure_reason == result["failure_reason"]

    def test_offer_lookup_failure_skips_offers(self, storefront):
        box_id = _start_box()
        _to_frequency(box_id)
        storefront.configure_failure(PRODUCTS, 500)

        result = _process(ProceedToOffers(box_id=box_id))

        assert result["success"] is True
        assert _box(box_id).step == "Success"

    def test_return_to_step(self):
        box_id = _start_box()
        _to_frequency(box_id)
        _process(ReturnToStep(box_id=box_id, step="ProductSelection"))
        assert _box(box_id).step == "ProductSelection"


class TestBoxProgressView:
    def test_progress_follows_the_box(self):
        box_id = _start_box()
        _fill(box_id, SIX_PRODUCTS[:3])

        view = current_domain.repository_for(BoxProgressView).get(box_id)
        assert view.session_id == "sess-cmd"
        assert view.catalog_status == "Loaded"
        assert view.product_count == 3
        assert view.progress_percentage == 25.0
        assert view.discount_percentage == 0.0

    def test_progress_through_checkout(self):
        box_id = _start_box()
        _to_frequency(box_id, "6weeks")
        _process(ProceedToOffers(box_id=box_id))
        _process(ToggleOffer(box_id=box_id, offer_id="2001"))
        _process(CheckoutBox(box_id=box_id))

        view = current_domain.repository_for(BoxProgressView).get(box_id)
        assert view.step == "Success"
        assert view.frequency == "6weeks"
        assert view.offer_count == 1
        assert view.discount_percentage == 5.0
        assert view.redirect_url == "/cart"

    def test_failure_recorded(self, storefront):
        box_id = _start_box()
        _to_frequency(box_id)
        _process(ProceedToOffers(box_id=box_id))
        storefront.configure_failure(CART_UPDATE, 500)
        _process(CheckoutBox(box_id=box_id))

        view = current_domain.repository_for(BoxProgressView).get(box_id)
        assert view.step == "OfferSelection"
        assert "/cart/update.js" in view.failure_reason
