"""In-memory storefront for development and testing.

Emulates the storefront's catalog feeds and Cart Service closely enough to run
the whole builder without a shop: products and the "subscriptions" collection
are plain lists of product JSON, the cart keeps line items with stable keys and
a property bag, and every call is recorded in ``calls`` so tests can assert on
the exact request sequence.

The app-proxy feeds (milestone config, one-time offers) answer 404 unless
configured. Failures are configured per endpoint with ``configure_failure()``.
"""

from uuid import uuid4

from subscriptions.shared.money import to_cents
from subscriptions.storefront.port import (
    CART,
    CART_ADD,
    CART_CHANGE,
    CART_CLEAR,
    CART_UPDATE,
    COLLECTION_PRODUCTS,
    MILESTONE_CONFIG,
    ONE_TIME_OFFERS,
    PRODUCTS,
    StorefrontError,
    StorefrontTransport,
    payload_shape,
)

DEFAULT_PRODUCTS_LIMIT = 30


class FakeStorefront(StorefrontTransport):
    """Configurable fake storefront."""

    def __init__(
        self,
        products: list[dict] | None = None,
        collection_products: list[dict] | None = None,
        milestone_config: dict | None = None,
        one_time_offers: list[dict] | None = None,
    ) -> None:
        self.products: list[dict] = list(products or [])
        self.collection_products: list[dict] = list(collection_products or [])
        self.milestone_config = milestone_config
        self.one_time_offers = one_time_offers
        self.cart: dict = {"token": f"fake-cart-{uuid4().hex[:12]}", "items": [], "attributes": {}, "note": None}
        self.failures: dict[str, int] = {}
        self.calls: list[dict] = []

    # -------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------
    def configure_failure(self, path: str, status_code: int = 500) -> None:
        """Make every call to ``path`` fail with ``status_code`` (0 = network error)."""
        self.failures[path] = status_code

    def clear_failures(self) -> None:
        self.failures.clear()

    def seed_cart(self, items: list[dict], attributes: dict | None = None) -> None:
        """Replace the cart contents directly, bypassing call recording."""
        self.cart["items"] = []
        for item in items:
            self.cart["items"].append(self._make_line(item))
        self.cart["attributes"] = dict(attributes or {})

    def calls_to(self, path: str) -> list[dict]:
        return [call for call in self.calls if call["path"] == path]

    # -------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------
    def get(self, path: str, params: dict | None = None) -> dict:
        self._record("GET", path, params)

        if path == COLLECTION_PRODUCTS:
            return {"products": list(self.collection_products)}
        if path == PRODUCTS:
            limit = int((params or {}).get("limit", DEFAULT_PRODUCTS_LIMIT))
            return {"products": list(self.products[:limit])}
        if path == CART:
            return self._cart_payload()
        if path == MILESTONE_CONFIG and self.milestone_config is not None:
            return dict(self.milestone_config)
        if path == ONE_TIME_OFFERS and self.one_time_offers is not None:
            return {"offers": list(self.one_time_offers)}
        raise StorefrontError(path, 404, "Not Found")

    def post(self, path: str, payload: dict | None = None) -> dict:
        payload = payload or {}
        self._record("POST", path, payload)

        if path == CART_CLEAR:
            self.cart["items"] = []
            return self._cart_payload()
        if path == CART_ADD:
            added = [self._make_line(item) for item in payload.get("items", [])]
            self.cart["items"].extend(added)
            return {"items": added}
        if path == CART_UPDATE:
            self.cart["attributes"].update(payload.get("attributes") or {})
            if "note" in payload:
                self.cart["note"] = payload["note"]
            for key, quantity in (payload.get("updates") or {}).items():
                self._set_line_quantity(key, int(quantity))
            return self._cart_payload()
        if path == CART_CHANGE:
            key = payload.get("id")
            if key is None and payload.get("line"):
                index = int(payload["line"]) - 1
                if 0 <= index < len(self.cart["items"]):
                    key = self.cart["items"][index]["key"]
            self._set_line_quantity(key, int(payload.get("quantity", 0)))
            return self._cart_payload()
        raise StorefrontError(path, 404, "Not Found", payload_shape(payload))

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _record(self, method: str, path: str, payload) -> None:
        self.calls.append({"method": method, "path": path, "payload": payload})
        if path in self.failures:
            status_code = self.failures[path]
            reason = "Connection refused" if status_code == 0 else "Simulated failure"
            raise StorefrontError(path, status_code, reason, payload_shape(payload))

    def _variant_price(self, variant_id) -> int:
        for product in self.products + self.collection_products:
            for variant in product.get("variants") or []:
                if str(variant.get("id")) == str(variant_id):
                    return to_cents(variant.get("price"))
        return 0

    def _make_line(self, item: dict) -> dict:
        variant_id = item.get("id") or item.get("variant_id")
        line = {
            "key": f"{variant_id}:{uuid4().hex[:16]}",
            "id": variant_id,
            "variant_id": variant_id,
            "quantity": int(item.get("quantity", 1)),
            "properties": dict(item.get("properties") or {}),
            "price": self._variant_price(variant_id),
        }
        if item.get("selling_plan"):
            line["selling_plan"] = item["selling_plan"]
        return line

    def _set_line_quantity(self, key, quantity: int) -> None:
        for line in list(self.cart["items"]):
            if line["key"] == key or str(line["variant_id"]) == str(key):
                if quantity <= 0:
                    self.cart["items"].remove(line)
                else:
                    line["quantity"] = quantity
                return

    def _cart_payload(self) -> dict:
        items = [dict(line) for line in self.cart["items"]]
        return {
            "token": self.cart["token"],
            "note": self.cart["note"],
            "attributes": dict(self.cart["attributes"]),
            "items": items,
            "item_count": sum(line["quantity"] for line in items),
            "total_price": sum(line["price"] * line["quantity"] for line in items),
        }
