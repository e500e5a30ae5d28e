"""Catalog tag conventions for the subscription builder.

Merchants steer the builder purely through product tags, all carrying the
``sb-`` prefix:

- eligibility: ``sb-subscription`` and its variants (English and Spanish)
  admit a product into the builder; matching is case-insensitive
- categories: ``sb-category-<Name>`` places a product in category ``<Name>``
  (case-sensitive); a trailing ``-#<N>`` sets the category's display position
- best sellers: ``sb-best-seller`` and friends add a product to the
  ``best-sellers`` category on top of its own categories
- one-time offers: ``sb-one-time-offer`` and the other promotional tags mark
  free first-box add-ons
"""

import re
from dataclasses import dataclass

from subscriptions.catalog.products import CatalogProduct

BEST_SELLERS = "best-sellers"

ELIGIBILITY_TAGS = frozenset(
    {
        "sb-subscription",
        "sb-subscription-eligible",
        "sb-eligible",
        "sb-suscripcion",
        "sb-suscripcion-elegible",
    }
)

BEST_SELLER_TAGS = frozenset(
    {
        "sb-best-seller",
        "sb-bestseller",
        "sb-popular",
        "sb-mejor-vendido",
    }
)

ONE_TIME_OFFER_TAG = "sb-one-time-offer"

PROMOTIONAL_TAGS = frozenset(
    {
        ONE_TIME_OFFER_TAG,
        "sb-first-box-addon",
        "sb-oferta-unica",
    }
)

CATEGORY_TAG_PREFIX = "sb-category-"

_POSITION_SUFFIX = re.compile(r"^(?P<name>.+?)-#(?P<position>\d+)$")
_WORD_SEPARATORS = re.compile(r"[-_]+")


@dataclass(frozen=True)
class CategoryTag:
    key: str
    position: int | None = None


def _normalized(tags) -> set[str]:
    return {tag.strip().lower() for tag in tags}


def has_any_tag(product: CatalogProduct, allowed: frozenset[str]) -> bool:
    return not _normalized(product.tags).isdisjoint(allowed)


def is_eligible(product: CatalogProduct) -> bool:
    return has_any_tag(product, ELIGIBILITY_TAGS)


def is_best_seller(product: CatalogProduct) -> bool:
    return has_any_tag(product, BEST_SELLER_TAGS)


def is_promotional(product: CatalogProduct) -> bool:
    return has_any_tag(product, PROMOTIONAL_TAGS)


def parse_category_tag(tag: str) -> CategoryTag | None:
    """Parse ``sb-category-<Name>[-#<N>]`` into a category key and optional position."""
    tag = tag.strip()
    if not tag.startswith(CATEGORY_TAG_PREFIX):
        return None

    name = tag[len(CATEGORY_TAG_PREFIX) :]
    match = _POSITION_SUFFIX.match(name)
    if match:
        return CategoryTag(key=match.group("name"), position=int(match.group("position")))
    if not name:
        return None
    return CategoryTag(key=name)


def category_tags(product: CatalogProduct) -> list[CategoryTag]:
    """Category tags on a product, first occurrence per key, in tag order."""
    found: dict[str, CategoryTag] = {}
    for tag in product.tags:
        parsed = parse_category_tag(tag)
        if parsed is not None and parsed.key not in found:
            found[parsed.key] = parsed
    return list(found.values())


def product_category_keys(product: CatalogProduct) -> list[str]:
    """Every category a product belongs to.

    Untagged products fall back to best sellers; best-seller tagged products
    are additionally placed there.
    """
    keys = [tag.key for tag in category_tags(product)]
    if not keys:
        keys.append(BEST_SELLERS)
    if is_best_seller(product) and BEST_SELLERS not in keys:
        keys.append(BEST_SELLERS)
    return keys


def category_title(key: str) -> str:
    """Display title for a category key: separators become spaces, each word capitalized."""
    words = [word for word in _WORD_SEPARATORS.split(key) if word]
    return " ".join(word[:1].upper() + word[1:] for word in words)
