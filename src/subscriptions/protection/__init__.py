"""Cart guard factory.

Provides get_cart_guard() / set_cart_guard(). Each shopper session has its own
guard wrapped around that session's storefront transport, shared by the
builder and the HTTP surface.
"""

from subscriptions.protection.guard import CartGuard, GuardState
from subscriptions.storefront import get_storefront

_session_guards: dict[str | None, CartGuard] = {}


def get_cart_guard(session_id: str | None = None) -> CartGuard:
    """Return the session's cart guard, wrapping its storefront transport on first use."""
    if session_id not in _session_guards:
        _session_guards[session_id] = CartGuard(get_storefront(session_id))
    return _session_guards[session_id]


def set_cart_guard(guard: CartGuard, session_id: str | None = None) -> None:
    """Override a session's cart guard (useful for tests)."""
    _session_guards[session_id] = guard


def reset_cart_guard() -> None:
    """Drop every guard; the next get_cart_guard() wraps the session's storefront again."""
    _session_guards.clear()


__all__ = ["CartGuard", "GuardState", "get_cart_guard", "reset_cart_guard", "set_cart_guard"]
