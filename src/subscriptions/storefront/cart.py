"""Typed client for the storefront Cart Service endpoints."""

from dataclasses import dataclass, field

from subscriptions.storefront.port import (
    CART,
    CART_ADD,
    CART_CHANGE,
    CART_CLEAR,
    CART_UPDATE,
    StorefrontTransport,
)


@dataclass(frozen=True)
class CartLine:
    """A live cart line item as reported by ``/cart.js``."""

    key: str
    variant_id: str
    quantity: int
    properties: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict) -> "CartLine":
        variant_id = payload.get("variant_id", payload.get("id"))
        return cls(
            key=str(payload.get("key", "")),
            variant_id=str(variant_id) if variant_id is not None else "",
            quantity=int(payload.get("quantity") or 0),
            properties=dict(payload.get("properties") or {}),
        )


@dataclass(frozen=True)
class CartSnapshot:
    """Point-in-time view of the live cart: line items plus cart-level attributes."""

    token: str | None
    lines: tuple[CartLine, ...]
    attributes: dict

    @classmethod
    def from_payload(cls, payload: dict) -> "CartSnapshot":
        return cls(
            token=payload.get("token"),
            lines=tuple(CartLine.from_payload(item) for item in payload.get("items") or []),
            attributes=dict(payload.get("attributes") or {}),
        )

    @property
    def is_empty(self) -> bool:
        return not self.lines


class CartClient:
    """Cart Service operations over a storefront transport."""

    def __init__(self, transport: StorefrontTransport) -> None:
        self.transport = transport

    def fetch(self) -> CartSnapshot:
        return CartSnapshot.from_payload(self.transport.get(CART))

    def clear(self) -> dict:
        return self.transport.post(CART_CLEAR)

    def add(self, items: list[dict]) -> dict:
        return self.transport.post(CART_ADD, {"items": items})

    def update_attributes(self, attributes: dict) -> dict:
        return self.transport.post(CART_UPDATE, {"attributes": attributes})

    def change_line(self, key: str, quantity: int) -> dict:
        return self.transport.post(CART_CHANGE, {"id": key, "quantity": quantity})
