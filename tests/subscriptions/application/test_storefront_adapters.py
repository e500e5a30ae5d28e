"""Tests for storefront port/adapter integration."""

from unittest.mock import MagicMock

import pytest
import requests
from subscriptions.protection import CartGuard, get_cart_guard, reset_cart_guard, set_cart_guard
from subscriptions.storefront import (
    FakeStorefront,
    HttpStorefront,
    StorefrontError,
    get_storefront,
    reset_storefront,
    set_storefront,
)
from subscriptions.storefront.cart import CartClient
from subscriptions.storefront.port import CART, CART_ADD, CART_CHANGE, CART_CLEAR, PRODUCTS


def _response(status_code=200, body=None, content=b"{}", reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.reason = reason
    response.content = content
    response.json.return_value = body if body is not None else {}
    return response


class TestFakeStorefront:
    def test_products_respect_limit(self, make_product):
        storefront = FakeStorefront(products=[make_product(n, f"Cut {n}", []) for n in range(5)])
        assert len(storefront.get(PRODUCTS, {"limit": 2})["products"]) == 2

    def test_cart_round_trip(self):
        storefront = FakeStorefront()
        storefront.post(CART_ADD, {"items": [{"id": "v1", "quantity": 2, "properties": {"_note": "x"}}]})

        cart = CartClient(storefront).fetch()
        assert cart.lines[0].variant_id == "v1"
        assert cart.lines[0].quantity == 2
        assert cart.lines[0].properties == {"_note": "x"}

    def test_change_to_zero_removes_line(self):
        storefront = FakeStorefront()
        storefront.post(CART_ADD, {"items": [{"id": "v1"}, {"id": "v2"}]})
        storefront.post(CART_CHANGE, {"line": 1, "quantity": 0})

        assert [line["variant_id"] for line in storefront.cart["items"]] == ["v2"]

    def test_configured_failure(self):
        storefront = FakeStorefront()
        storefront.configure_failure(CART_CLEAR, 503)

        with pytest.raises(StorefrontError) as exc:
            storefront.post(CART_CLEAR)
        assert exc.value.status_code == 503
        assert storefront.calls[0]["path"] == CART_CLEAR

    def test_unknown_endpoint(self):
        with pytest.raises(StorefrontError) as exc:
            FakeStorefront().get("/pages/about.json")
        assert exc.value.status_code == 404


class TestHttpStorefront:
    def test_get_builds_url(self):
        session = MagicMock()
        session.request.return_value = _response(body={"products": []})
        storefront = HttpStorefront("https://shop.example.com/", session=session)

        assert storefront.get(PRODUCTS, {"limit": 50}) == {"products": []}
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://shop.example.com/products.json")
        assert kwargs["params"] == {"limit": 50}
        assert kwargs["json"] is None

    def test_post_sends_json(self):
        session = MagicMock()
        session.request.return_value = _response(body={"items": []})
        storefront = HttpStorefront("https://shop.example.com", timeout=3.0, session=session)

        storefront.post(CART_ADD, {"items": [{"id": "v1"}]})

        _, kwargs = session.request.call_args
        assert kwargs["json"] == {"items": [{"id": "v1"}]}
        assert kwargs["timeout"] == 3.0

    def test_error_status(self):
        session = MagicMock()
        session.request.return_value = _response(status_code=422, reason="Unprocessable Entity")
        storefront = HttpStorefront("https://shop.example.com", session=session)

        with pytest.raises(StorefrontError) as exc:
            storefront.post(CART_ADD, {"items": [], "sections": "cart"})

        assert exc.value.status_code == 422
        assert exc.value.to_log_context() == {
            "endpoint": CART_ADD,
            "status": 422,
            "reason": "Unprocessable Entity",
            "payload_shape": ["items", "sections"],
        }

    def test_network_error(self):
        session = MagicMock()
        session.request.side_effect = requests.ConnectionError("boom")
        storefront = HttpStorefront("https://shop.example.com", session=session)

        with pytest.raises(StorefrontError) as exc:
            storefront.get(CART)
        assert exc.value.status_code == 0

    def test_invalid_json(self):
        session = MagicMock()
        response = _response(content=b"<html>")
        response.json.side_effect = ValueError("not json")
        session.request.return_value = response
        storefront = HttpStorefront("https://shop.example.com", session=session)

        with pytest.raises(StorefrontError) as exc:
            storefront.get(CART)
        assert exc.value.reason == "Invalid JSON response"

    def test_empty_body(self):
        session = MagicMock()
        session.request.return_value = _response(content=b"")
        storefront = HttpStorefront("https://shop.example.com", session=session)
        assert storefront.post(CART_CLEAR) == {}


class TestStorefrontFactory:
    def test_fake_by_default(self, monkeypatch):
        monkeypatch.delenv("STOREFRONT_URL", raising=False)
        reset_storefront()
        assert isinstance(get_storefront(), FakeStorefront)
        reset_storefront()

    def test_http_when_url_configured(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_URL", "https://shop.example.com")
        reset_storefront()
        storefront = get_storefront()
        assert isinstance(storefront, HttpStorefront)
        assert storefront.base_url == "https://shop.example.com"
        reset_storefront()

    def test_set_storefront_overrides(self):
        custom = FakeStorefront()
        set_storefront(custom)
        assert get_storefront() is custom
        reset_storefront()

    def test_each_session_gets_its_own_transport(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_URL", "https://shop.example.com")
        reset_storefront()
        first, second = get_storefront("sess-a"), get_storefront("sess-b")

        assert first is get_storefront("sess-a")
        assert first is not second
        assert first.session is not second.session
        reset_storefront()


class TestCartGuardFactory:
    def test_each_session_gets_its_own_guard(self):
        reset_storefront()
        reset_cart_guard()
        guard = get_cart_guard("sess-a")

        assert guard is get_cart_guard("sess-a")
        assert guard is not get_cart_guard("sess-b")
        assert guard.transport is get_storefront("sess-a")
        reset_storefront()
        reset_cart_guard()

    def test_set_cart_guard_overrides_one_session(self):
        custom = CartGuard(FakeStorefront())
        set_cart_guard(custom, "sess-a")

        assert get_cart_guard("sess-a") is custom
        assert get_cart_guard("sess-b") is not custom
        reset_cart_guard()
