"""Storefront transport factory.

Provides get_storefront() / set_storefront() to swap implementations:
- FakeStorefront for development and testing (default)
- HttpStorefront when ``STOREFRONT_URL`` points at a live shop origin

Each shopper session gets its own transport. The storefront identifies a cart
by the session's cookies, so two shoppers must never share one HTTP session.
"""

import os

from subscriptions.storefront.fake_adapter import FakeStorefront
from subscriptions.storefront.http_adapter import DEFAULT_TIMEOUT_SECONDS, HttpStorefront
from subscriptions.storefront.port import StorefrontError, StorefrontTransport

_current_storefront: StorefrontTransport | None = None
_session_storefronts: dict[str | None, StorefrontTransport] = {}


def _default_storefront() -> StorefrontTransport:
    base_url = os.environ.get("STOREFRONT_URL")
    if base_url:
        timeout = float(os.environ.get("STOREFRONT_TIMEOUT", DEFAULT_TIMEOUT_SECONDS))
        return HttpStorefront(base_url, timeout=timeout)
    return FakeStorefront()


def get_storefront(session_id: str | None = None) -> StorefrontTransport:
    """Return the storefront transport for a shopper session.

    An override installed with set_storefront() serves every session.
    Otherwise the session's own transport is created on first use.
    """
    if _current_storefront is not None:
        return _current_storefront
    if session_id not in _session_storefronts:
        _session_storefronts[session_id] = _default_storefront()
    return _session_storefronts[session_id]


def set_storefront(storefront: StorefrontTransport) -> None:
    """Override the storefront transport for all sessions (useful for tests)."""
    global _current_storefront
    _current_storefront = storefront


def reset_storefront() -> None:
    """Drop the override and every session's transport."""
    global _current_storefront
    _current_storefront = None
    _session_storefronts.clear()


__all__ = [
    "FakeStorefront",
    "HttpStorefront",
    "StorefrontError",
    "StorefrontTransport",
    "get_storefront",
    "reset_storefront",
    "set_storefront",
]
