"""Subscriptions domain API package."""

from subscriptions.api.routes import box_router, guard_router

__all__ = ["box_router", "guard_router"]
