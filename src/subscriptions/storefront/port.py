"""Storefront transport port (abstract interface).

Defines the contract for talking to the storefront's public JSON endpoints:
the Catalog Service and the Cart Service. Adapters swap between FakeStorefront
(dev/test) and HttpStorefront (production) without changing any domain or
application code.
"""

from abc import ABC, abstractmethod

# Catalog Service
COLLECTION_PRODUCTS = "/collections/subscriptions/products.json"
PRODUCTS = "/products.json"

# Cart Service
CART = "/cart.js"
CART_CLEAR = "/cart/clear.js"
CART_ADD = "/cart/add.js"
CART_UPDATE = "/cart/update.js"
CART_CHANGE = "/cart/change.js"
CART_REMOVE = "/cart/remove.js"

# App proxy
MILESTONE_CONFIG = "/apps/subscription/api/milestone-config"
ONE_TIME_OFFERS = "/apps/subscription/api/one-time-offers"


def payload_shape(payload) -> list[str]:
    """Top-level keys of a request payload, safe to log (no values)."""
    if isinstance(payload, dict):
        return sorted(str(key) for key in payload)
    return []


class StorefrontError(Exception):
    """A storefront call failed: network error, non-2xx status, or unreadable body.

    ``status_code`` is 0 when no HTTP response was received.
    """

    def __init__(self, endpoint: str, status_code: int = 0, reason: str = "", shape: list[str] | None = None):
        self.endpoint = endpoint
        self.status_code = status_code
        self.reason = reason
        self.payload_shape = shape or []
        super().__init__(f"{endpoint} failed with status {status_code}: {reason}".rstrip(": "))

    def to_log_context(self) -> dict:
        return {
            "endpoint": self.endpoint,
            "status": self.status_code,
            "reason": self.reason,
            "payload_shape": self.payload_shape,
        }


class StorefrontTransport(ABC):
    """Abstract storefront interface: JSON GETs and JSON POSTs against the shop origin."""

    @abstractmethod
    def get(self, path: str, params: dict | None = None) -> dict:
        """Fetch a JSON document. Raises StorefrontError on failure."""
        ...

    @abstractmethod
    def post(self, path: str, payload: dict | None = None) -> dict:
        """Send a JSON write. Raises StorefrontError on failure."""
        ...
