"""Tests for product selection on the SubscriptionBox aggregate."""

import pytest
from protean.exceptions import ValidationError
from subscriptions.box.box import BuilderStep, CatalogStatus, SubscriptionBox
from subscriptions.box.events import (
    BoxStarted,
    CatalogLoaded,
    ProductAddedToBox,
    ProductRemovedFromBox,
    VariantChosen,
)


class TestCreateBox:
    def test_starts_at_product_selection(self):
        box = SubscriptionBox.create(session_id="sess-001")
        assert box.step == BuilderStep.PRODUCT_SELECTION.value
        assert box.catalog_status == CatalogStatus.NOT_LOADED.value
        assert box.product_count == 0

    def test_raises_box_started(self):
        box = SubscriptionBox.create(session_id="sess-001")
        started = [e for e in box._events if isinstance(e, BoxStarted)]
        assert len(started) == 1
        assert started[0].tier1_items == 6
        assert started[0].tier2_items == 10

    def test_message_overrides(self):
        box = SubscriptionBox.create(message_overrides={"frequency_required": "Pick one!", "unknown": "x"})
        assert box.message_text("frequency_required") == "Pick one!"
        assert box.message_text("catalog_unavailable") == "Unable to load products. Please refresh the page."


class TestRecordCatalog:
    def test_catalog_loaded(self, catalog_load):
        box = SubscriptionBox.create()
        box.record_catalog(catalog_load)

        assert box.catalog_status == CatalogStatus.LOADED.value
        assert box.active_category == "best-sellers"
        assert [c["key"] for c in box.visible_categories()] == ["best-sellers", "Steaks", "Premium", "BBQ"]
        assert "1099" not in box.catalog_products()

        loaded = [e for e in box._events if isinstance(e, CatalogLoaded)]
        assert loaded[0].product_count == 12

    def test_catalog_unavailable(self):
        box = SubscriptionBox.create()
        box.record_catalog_unavailable()
        assert box.catalog_status == CatalogStatus.UNAVAILABLE.value

    def test_show_category(self, loaded_box):
        loaded_box.show_category("BBQ")
        assert loaded_box.active_category == "BBQ"

    def test_show_unknown_category(self, loaded_box):
        with pytest.raises(ValidationError) as exc:
            loaded_box.show_category("Seafood")
        assert "category" in exc.value.messages


class TestToggleProduct:
    def test_toggle_adds_product(self, loaded_box):
        assert loaded_box.toggle_product("1001") is True

        item = loaded_box.selection()[0]
        assert item.product_id == "1001"
        assert item.variant_id == "1001-v1"
        assert item.quantity == 1
        assert item.unit_price_cents == 1000

        added = [e for e in loaded_box._events if isinstance(e, ProductAddedToBox)]
        assert added[0].product_count == 1

    def test_toggle_twice_restores_selection(self, loaded_box):
        loaded_box.toggle_product("1005")
        before = [(i.product_id, i.variant_id) for i in loaded_box.selection()]

        loaded_box.toggle_product("1001")
        loaded_box.toggle_product("1001")

        assert [(i.product_id, i.variant_id) for i in loaded_box.selection()] == before
        removed = [e for e in loaded_box._events if isinstance(e, ProductRemovedFromBox)]
        assert removed[0].reason == "toggled"

    def test_one_entry_per_product(self, loaded_box):
        loaded_box.toggle_product("1001")
        loaded_box.toggle_product("1003")
        assert loaded_box.product_count == 2
        assert len(loaded_box.items) == 2

    def test_selection_keeps_add_order(self, loaded_box):
        for product_id in ("1007", "1003", "1010"):
            loaded_box.toggle_product(product_id)
        assert [i.product_id for i in loaded_box.selection()] == ["1007", "1003", "1010"]

    def test_unknown_product(self, loaded_box):
        with pytest.raises(ValidationError) as exc:
            loaded_box.toggle_product("9999")
        assert "product_id" in exc.value.messages

    def test_ineligible_product_cannot_be_added(self, loaded_box):
        with pytest.raises(ValidationError):
            loaded_box.toggle_product("1099")

    def test_sold_out_variant_cannot_be_added(self, loaded_box):
        loaded_box.choose_variant("1002", "1002-v2")
        with pytest.raises(ValidationError) as exc:
            loaded_box.toggle_product("1002")
        assert "variant_id" in exc.value.messages
        assert loaded_box.product_count == 0

    def test_only_during_product_selection(self, loaded_box):
        for product_id in ("1001", "1003", "1004", "1005", "1006", "1007"):
            loaded_box.toggle_product(product_id)
        loaded_box.proceed_to_frequency()

        with pytest.raises(ValidationError) as exc:
            loaded_box.toggle_product("1008")
        assert "step" in exc.value.messages

    def test_running_tier(self, loaded_box):
        for product_id in ("1001", "1003", "1004", "1005", "1006"):
            loaded_box.toggle_product(product_id)
        assert loaded_box.current_tier().percent == 0.0

        loaded_box.toggle_product("1007")
        assert loaded_box.current_tier().percent == 5.0


class TestChooseVariant:
    def test_pending_variant_applied_on_add(self, loaded_box):
        loaded_box.choose_variant("1002", "1002-v3")
        loaded_box.toggle_product("1002")

        item = loaded_box.selection()[0]
        assert item.variant_id == "1002-v3"
        assert item.variant_title == "16oz"
        assert item.unit_price_cents == 2400

    def test_pending_variant_event(self, loaded_box):
        loaded_box.choose_variant("1002", "1002-v3")
        chosen = [e for e in loaded_box._events if isinstance(e, VariantChosen)]
        assert chosen[0].selected is False

    def test_changing_selected_variant_updates_price(self, loaded_box):
        loaded_box.toggle_product("1002")
        notice = loaded_box.choose_variant("1002", "1002-v3")

        assert notice is None
        item = loaded_box.selection()[0]
        assert item.unit_price_cents == 2400
        assert item.variant_id == "1002-v3"

    def test_sold_out_variant_removes_selection(self, loaded_box):
        loaded_box.toggle_product("1002")
        notice = loaded_box.choose_variant("1002", "1002-v2")

        assert notice.code == "stock_removed"
        assert "Striploin" in notice.message
        assert notice.dismiss_after_seconds > 0
        assert loaded_box.product_count == 0

        removed = [e for e in loaded_box._events if isinstance(e, ProductRemovedFromBox)]
        assert removed[0].reason == "out_of_stock"

    def test_short_stock_clamps_quantity(self, loaded_box):
        loaded_box.toggle_product("1002")
        loaded_box.selection()[0].quantity = 3

        notice = loaded_box.choose_variant("1002", "1002-v3")

        assert notice.code == "stock_clamped"
        assert loaded_box.selection()[0].quantity == 1

    def test_variant_of_another_product(self, loaded_box):
        with pytest.raises(ValidationError) as exc:
            loaded_box.choose_variant("1002", "1001-v1")
        assert "variant_id" in exc.value.messages


class TestSummary:
    def test_summary_below_first_milestone(self, loaded_box):
        loaded_box.toggle_product("1001")
        loaded_box.toggle_product("1002")

        summary = loaded_box.summary()
        assert summary["product_count"] == 2
        assert summary["subtotal_cents"] == 2200
        assert summary["discount_percentage"] == 0.0
        assert summary["discounted_total_cents"] == 2200
        assert summary["next_threshold"] == 6
        assert summary["can_proceed"] is False
        assert summary["message"] == "Choose at least 10 for 10% OFF"

    def test_summary_at_second_milestone(self, loaded_box):
        for product_id in ("1001", "1003", "1004", "1005", "1006", "1007", "1008", "1009", "1010", "1011"):
            loaded_box.toggle_product(product_id)

        summary = loaded_box.summary()
        assert summary["discount_percentage"] == 10.0
        assert summary["subtotal_cents"] == 10000
        assert summary["discounted_total_cents"] == 9000
        assert summary["progress_percentage"] == 100.0
        assert summary["message"] == "Congratulations! You've got 10% OFF"
