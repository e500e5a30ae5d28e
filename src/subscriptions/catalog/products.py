"""Catalog products as published by the storefront's product feeds.

Products are owned by the Catalog Service and immutable here. The feed JSON is
weakly typed, so normalization is forgiving: ids become strings, prices become
integer cents, and a variant's stock is only finite when the feed actually
tracks inventory for it.
"""

import re
from dataclasses import dataclass, field

from subscriptions.shared.money import to_cents

_HTML_TAG = re.compile(r"<[^>]*>")


def _stock_from_payload(variant: dict) -> int | None:
    """Available units for a variant, or None when inventory is not tracked (unlimited)."""
    quantity = variant.get("inventory_quantity")
    if quantity is None:
        # No tracking fields at all; only an explicit "not available" means sold out
        return 0 if variant.get("available") is False else None
    if "inventory_management" in variant and not variant["inventory_management"]:
        return None
    if variant.get("inventory_policy") == "continue":
        return None
    try:
        return int(quantity)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class CatalogVariant:
    id: str
    title: str
    price_cents: int
    stock: int | None = None

    @property
    def is_tracked(self) -> bool:
        return self.stock is not None

    @property
    def in_stock(self) -> bool:
        return self.stock is None or self.stock > 0

    def allows_quantity(self, quantity: int) -> bool:
        return self.stock is None or self.stock >= quantity

    @classmethod
    def from_payload(cls, payload: dict) -> "CatalogVariant":
        return cls(
            id=str(payload.get("id")),
            title=str(payload.get("title") or "Default"),
            price_cents=to_cents(payload.get("price")),
            stock=_stock_from_payload(payload),
        )

    @classmethod
    def from_dict(cls, data: dict) -> "CatalogVariant":
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "Default",
            price_cents=int(data.get("price_cents") or 0),
            stock=data.get("stock"),
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title, "price_cents": self.price_cents, "stock": self.stock}


@dataclass(frozen=True)
class CatalogProduct:
    id: str
    title: str
    description: str = ""
    images: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    variants: tuple[CatalogVariant, ...] = field(default_factory=tuple)

    @property
    def image(self) -> str:
        return self.images[0] if self.images else ""

    @property
    def summary(self) -> str:
        return self.description[:100]

    @property
    def default_variant(self) -> CatalogVariant | None:
        return self.variants[0] if self.variants else None

    def variant(self, variant_id) -> CatalogVariant | None:
        return next((v for v in self.variants if v.id == str(variant_id)), None)

    @classmethod
    def from_payload(cls, payload: dict) -> "CatalogProduct":
        """Normalize one product from ``products.json`` style feed JSON."""
        tags = payload.get("tags") or []
        if isinstance(tags, str):
            # products.json publishes a list, but some feeds send "a, b, c"
            tags = [tag.strip() for tag in tags.split(",")]

        images = []
        for image in payload.get("images") or []:
            src = image.get("src") if isinstance(image, dict) else image
            if src:
                images.append(str(src))

        description = _HTML_TAG.sub("", payload.get("body_html") or payload.get("description") or "").strip()

        return cls(
            id=str(payload.get("id")),
            title=str(payload.get("title") or ""),
            description=description,
            images=tuple(images),
            tags=tuple(str(tag) for tag in tags if tag),
            variants=tuple(CatalogVariant.from_payload(v) for v in payload.get("variants") or []),
        )

    @classmethod
    def from_dict(cls, data: dict) -> "CatalogProduct":
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            description=data.get("description") or "",
            images=tuple(data.get("images") or ()),
            tags=tuple(data.get("tags") or ()),
            variants=tuple(CatalogVariant.from_dict(v) for v in data.get("variants") or []),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "images": list(self.images),
            "tags": list(self.tags),
            "variants": [v.to_dict() for v in self.variants],
        }
