import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture
from subscriptions.protection import reset_cart_guard
from subscriptions.storefront import FakeStorefront, reset_storefront, set_storefront


@pytest.fixture(scope="session")
def subscriptions_bed():
    from subscriptions.domain import subscriptions

    bed = DomainFixture(subscriptions)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(subscriptions_bed):
    with subscriptions_bed.domain_context():
        yield

        # Clear all databases and drain the event store
        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


# ---------------------------------------------------------------------------
# Catalog JSON builders (shape of the storefront's products.json)
# ---------------------------------------------------------------------------
def variant_json(variant_id, title="Default", price="10.00", stock=None, **extra):
    """A feed variant. ``stock`` of None means inventory is not tracked."""
    variant = {"id": variant_id, "title": title, "price": price, "available": True}
    if stock is not None:
        variant.update(
            {
                "inventory_quantity": stock,
                "inventory_management": "shopify",
                "inventory_policy": "deny",
                "available": stock > 0,
            }
        )
    variant.update(extra)
    return variant


def product_json(product_id, title, tags, variants=None, body_html="", images=None):
    return {
        "id": product_id,
        "title": title,
        "body_html": body_html,
        "tags": list(tags),
        "images": [{"src": src} for src in (images or [f"https://cdn.example.com/{product_id}.jpg"])],
        "variants": variants or [variant_json(f"{product_id}-v1")],
    }


def eligible_catalog():
    """Twelve eligible products: three explicit categories plus best sellers."""
    products = [
        product_json(1001, "Ribeye", ["sb-subscription", "sb-category-Steaks-#1", "sb-best-seller"]),
        product_json(
            1002,
            "Striploin",
            ["sb-subscription", "sb-category-Steaks-#1"],
            variants=[
                variant_json("1002-v1", "8oz", "12.00", stock=5),
                variant_json("1002-v2", "12oz", "18.00", stock=0),
                variant_json("1002-v3", "16oz", "24.00", stock=1),
            ],
        ),
        product_json(1003, "Wagyu Burger", ["sb-subscription", "sb-category-Premium-#3"]),
        product_json(1004, "Brisket", ["SB-Subscription", "sb-category-BBQ"]),
    ]
    for index in range(5, 13):
        product_id = 1000 + index
        products.append(
            product_json(
                product_id,
                f"Cut {index}",
                ["sb-subscription"],
                variants=[variant_json(f"{product_id}-v1", price="10.00")],
            )
        )
    return products


def ineligible_product():
    return product_json(1099, "Gift Card", ["sb-best-seller", "sb-category-Gifts"])


def offer_product():
    return product_json(
        2001,
        "Bacon Sampler",
        ["sb-one-time-offer"],
        variants=[variant_json("2001-v1", price="15.00")],
    )


@pytest.fixture
def storefront():
    fake = FakeStorefront(
        products=eligible_catalog() + [ineligible_product(), offer_product()],
        collection_products=eligible_catalog() + [ineligible_product()],
    )
    set_storefront(fake)
    reset_cart_guard()
    yield fake
    reset_storefront()
    reset_cart_guard()


@pytest.fixture
def make_product():
    return product_json


@pytest.fixture
def make_variant():
    return variant_json


@pytest.fixture
def catalog_load():
    """A catalog load of the eligible products, built without any network call."""
    from subscriptions.catalog.categories import build_categories
    from subscriptions.catalog.loader import CatalogLoad, eligible_products

    products = eligible_products({"products": eligible_catalog() + [ineligible_product()]})
    return CatalogLoad(products=products, categories=build_categories(products), source="collection")


@pytest.fixture
def loaded_box(catalog_load):
    from subscriptions.box.box import SubscriptionBox

    box = SubscriptionBox.create(session_id="sess-001")
    box.record_catalog(catalog_load)
    box._events.clear()
    return box


@pytest.fixture
def offer_candidates():
    from subscriptions.offers.selector import OfferCandidate

    return [
        OfferCandidate(offer_id="2001", variant_id="2001-v1", title="Bacon Sampler", original_price_cents=1500),
        OfferCandidate(offer_id="2002", variant_id="2002-v1", title="Sausage Trio", original_price_cents=900),
    ]


@pytest.fixture
def demo_candidates():
    from subscriptions.offers.selector import OfferCandidate

    return [OfferCandidate(offer_id="1005", variant_id="1005-v1", title="Cut 5", is_demo=True)]
