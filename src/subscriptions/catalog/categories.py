"""Dynamic categories derived from catalog tags.

Categories are rebuilt on every catalog load and never persisted outside the
builder's snapshot. Display order: best sellers first (when non-empty), then
positioned categories by ascending ``-#<N>``, then the rest in the order they
were first encountered.
"""

from dataclasses import dataclass, field

from subscriptions.catalog.products import CatalogProduct
from subscriptions.catalog.tags import (
    BEST_SELLERS,
    category_tags,
    category_title,
    is_best_seller,
)


@dataclass
class Category:
    key: str
    title: str
    products: list[CatalogProduct] = field(default_factory=list)
    position: int | None = None

    @property
    def product_ids(self) -> list[str]:
        return [product.id for product in self.products]

    @property
    def is_empty(self) -> bool:
        return not self.products

    def add(self, product: CatalogProduct) -> None:
        if product.id not in self.product_ids:
            self.products.append(product)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "title": self.title,
            "position": self.position,
            "product_ids": self.product_ids,
        }


def build_categories(products: list[CatalogProduct]) -> dict[str, Category]:
    """Group products into categories, keyed and ordered for display.

    ``best-sellers`` is always present, possibly empty.
    """
    categories: dict[str, Category] = {BEST_SELLERS: Category(BEST_SELLERS, category_title(BEST_SELLERS))}

    for product in products:
        tags = category_tags(product)
        for tag in tags:
            category = categories.get(tag.key)
            if category is None:
                category = categories[tag.key] = Category(tag.key, category_title(tag.key), position=tag.position)
            elif tag.position is not None and (category.position is None or tag.position < category.position):
                category.position = tag.position
            category.add(product)

        if not tags or is_best_seller(product):
            categories[BEST_SELLERS].add(product)

    return sort_categories(categories)


def sort_categories(categories: dict[str, Category]) -> dict[str, Category]:
    best_sellers = categories.get(BEST_SELLERS) or Category(BEST_SELLERS, category_title(BEST_SELLERS))
    others = [category for key, category in categories.items() if key != BEST_SELLERS]

    positioned = sorted((c for c in others if c.position is not None), key=lambda c: c.position)
    unpositioned = [c for c in others if c.position is None]

    ordered = {BEST_SELLERS: best_sellers}
    for category in positioned + unpositioned:
        ordered[category.key] = category
    return ordered


def display_order(categories: dict[str, Category]) -> list[str]:
    """Keys of the categories to show, in order; empty categories are hidden."""
    return [key for key, category in categories.items() if not category.is_empty]


def default_category(categories: dict[str, Category]) -> str | None:
    """Best sellers when non-empty, else the first non-empty category, else None."""
    visible = display_order(categories)
    return visible[0] if visible else None
