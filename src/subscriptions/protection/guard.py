"""Cart Guard: all-or-nothing protection for subscription carts.

The guard wraps the storefront transport and sees every Cart Service write,
from the builder or from the theme's native cart UI. Once a page finds the
cart to be a subscription cart (``subscription_type == "custom"`` plus at
least one flagged line item) the guard is Protected, and any partial edit
(change, remove, line-quantity update) is replaced by a full clear of the cart
followed by a page reload. Clears and adds always pass, since building a box
itself clears and repopulates the cart.

    Inactive -> Checking -> Protected | Inactive

Protection drops back to Inactive whenever the guard clears the cart, and is
re-evaluated on the next activation (page load).
"""

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum

import structlog

from subscriptions.box.messages import DEFAULT_MESSAGES
from subscriptions.shared.notices import Notice
from subscriptions.storefront.cart import CartClient
from subscriptions.storefront.port import (
    CART_ADD,
    CART_CHANGE,
    CART_CLEAR,
    CART_REMOVE,
    CART_UPDATE,
    StorefrontError,
    StorefrontTransport,
    payload_shape,
)

logger = structlog.get_logger(__name__)

# Pages owned by Shopify's checkout and account UIs
UNGUARDED_PATH_MARKERS = ("/checkout", "/thank", "/orders", "/account", "/wallets")

SUBSCRIPTION_CART_TYPE = "custom"
PROTECTED_ITEM_PROPERTIES = ("_subscription_type", "_protected_item")

# update.js keys that only touch cart-level metadata
_METADATA_KEYS = {"attributes", "note"}


class GuardState(Enum):
    INACTIVE = "Inactive"
    CHECKING = "Checking"
    PROTECTED = "Protected"


@dataclass(frozen=True)
class Intervention:
    endpoint: str
    payload_shape: list[str]
    cleared: bool
    notice: Notice


def is_protected_line(properties: dict) -> bool:
    return any(properties.get(name) for name in PROTECTED_ITEM_PROPERTIES)


def is_guarded_page(page_path: str) -> bool:
    return not any(marker in (page_path or "") for marker in UNGUARDED_PATH_MARKERS)


def is_line_edit(path: str, payload: dict | None) -> bool:
    """Whether a write edits individual line items rather than the cart as a whole."""
    if path in (CART_CHANGE, CART_REMOVE):
        return True
    if path == CART_UPDATE:
        return bool(set(payload or {}) - _METADATA_KEYS)
    return False


class CartGuard(StorefrontTransport):
    def __init__(self, transport: StorefrontTransport, on_notice=None, on_reload=None, message=None):
        self.transport = transport
        self.on_notice = on_notice
        self.on_reload = on_reload
        self.message = message or DEFAULT_MESSAGES["cart_protected"]
        self.state = GuardState.INACTIVE
        self.item_keys: set[str] = set()
        self.interventions: list[Intervention] = []
        self._suspended = False

    @property
    def is_protected(self) -> bool:
        return self.state == GuardState.PROTECTED

    @property
    def last_intervention(self) -> Intervention | None:
        return self.interventions[-1] if self.interventions else None

    def activate(self, page_path: str = "/") -> GuardState:
        """Evaluate protection for a page load."""
        self.item_keys = set()
        if not is_guarded_page(page_path):
            self.state = GuardState.INACTIVE
            return self.state

        self.state = GuardState.CHECKING
        try:
            cart = CartClient(self.transport).fetch()
        except StorefrontError as exc:
            logger.warning("Cart guard could not read the cart", **exc.to_log_context())
            self.state = GuardState.INACTIVE
            return self.state

        if cart.attributes.get("subscription_type") == SUBSCRIPTION_CART_TYPE:
            self.item_keys = {line.key for line in cart.lines if is_protected_line(line.properties)}

        self.state = GuardState.PROTECTED if self.item_keys else GuardState.INACTIVE
        logger.info("Cart guard evaluated", page=page_path, state=self.state.value, items=len(self.item_keys))
        return self.state

    @contextmanager
    def suspended(self):
        """Let every write through while a subscription is being written to the cart."""
        self._suspended = True
        try:
            yield self
        finally:
            self._suspended = False

    def status(self) -> dict:
        return {
            "state": self.state.value,
            "protected_item_count": len(self.item_keys),
            "suspended": self._suspended,
        }

    # -------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------
    def get(self, path: str, params: dict | None = None) -> dict:
        return self.transport.get(path, params)

    def post(self, path: str, payload: dict | None = None) -> dict:
        if self._suspended or not self.is_protected or path in (CART_CLEAR, CART_ADD):
            return self.transport.post(path, payload)
        if is_line_edit(path, payload) and self.item_keys:
            return self._clear_instead(path, payload)
        return self.transport.post(path, payload)

    def _clear_instead(self, path: str, payload: dict | None) -> dict:
        # Stand down before clearing so the guard's own clear is never intercepted
        self.state = GuardState.INACTIVE
        self.item_keys = set()

        notice = Notice(code="cart_protected", message=self.message, level="info")
        shape = payload_shape(payload)
        try:
            self.transport.post(CART_CLEAR)
        except StorefrontError as exc:
            logger.error("Cart guard failed to clear the cart", blocked_endpoint=path, **exc.to_log_context())
            self.interventions.append(Intervention(endpoint=path, payload_shape=shape, cleared=False, notice=notice))
            return {"success": False, "error": "Failed to clear cart"}

        logger.info("Cart guard replaced a partial edit with a full clear", endpoint=path, payload_shape=shape)
        self.interventions.append(Intervention(endpoint=path, payload_shape=shape, cleared=True, notice=notice))
        if self.on_notice:
            self.on_notice(notice)
        if self.on_reload:
            self.on_reload()

        return {
            "success": True,
            "message": "Cart cleared due to subscription protection",
            "items": [],
            "item_count": 0,
            "total_price": 0,
        }
