"""Domain events for the SubscriptionBox aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from subscriptions.domain import subscriptions


@subscriptions.event(part_of="SubscriptionBox")
class BoxStarted:
    """A shopper session started building a subscription box."""

    __version__ = 1

    box_id = Identifier(required=True)
    session_id = String()
    tier1_items = Integer(required=True)
    tier2_items = Integer(required=True)
    started_at = DateTime(required=True)


@subscriptions.event(part_of="SubscriptionBox")
class CatalogLoaded:
    """Eligible products were loaded and classified into categories."""

    __version__ = 1

    box_id = Identifier(required=True)
    source = String(required=True)
    product_count = Integer(required=True)
    categories = Text(required=True)  # JSON: ordered list of non-empty category keys
    default_category = String()


@subscriptions.event(part_of="SubscriptionBox")
class CatalogUnavailable:
    """Neither catalog source produced eligible products."""

    __version__ = 1

    box_id = Identifier(required=True)
    reason = String()


@subscriptions.event(part_of="SubscriptionBox")
class ProductAddedToBox:
    """A product was selected into the box."""

    __version__ = 1

    box_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    unit_price_cents = Integer(required=True)
    product_count = Integer(required=True)
    discount_percentage = Float(required=True)


@subscriptions.event(part_of="SubscriptionBox")
class ProductRemovedFromBox:
    """A product left the box: toggled off, or removed because its variant sold out."""

    __version__ = 1

    box_id = Identifier(required=True)
    product_id = Identifier(required=True)
    reason = String(default="toggled")
    product_count = Integer(required=True)
    discount_percentage = Float(required=True)


@subscriptions.event(part_of="SubscriptionBox")
class VariantChosen:
    """A variant was chosen for a product, selected or not yet selected."""

    __version__ = 1

    box_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    selected = Boolean(default=False)
    quantity = Integer()


@subscriptions.event(part_of="SubscriptionBox")
class StepChanged:
    """The builder moved between wizard steps."""

    __version__ = 1

    box_id = Identifier(required=True)
    from_step = String(required=True)
    to_step = String(required=True)


@subscriptions.event(part_of="SubscriptionBox")
class FrequencyChosen:
    """A delivery frequency was chosen."""

    __version__ = 1

    box_id = Identifier(required=True)
    frequency = String(required=True)


@subscriptions.event(part_of="SubscriptionBox")
class OfferToggled:
    """A one-time offer was added to or dropped from the first box."""

    __version__ = 1

    box_id = Identifier(required=True)
    offer_id = Identifier(required=True)
    selected = Boolean(required=True)
    offer_count = Integer(required=True)


@subscriptions.event(part_of="SubscriptionBox")
class BoxSubmitted:
    """The box was written to the live cart."""

    __version__ = 1

    box_id = Identifier(required=True)
    cart_token = String()
    frequency = String(required=True)
    product_count = Integer(required=True)
    offer_count = Integer(required=True)
    discount_percentage = Float(required=True)
    redirect_url = String(required=True)
    submitted_at = DateTime(required=True)


@subscriptions.event(part_of="SubscriptionBox")
class BoxSubmissionFailed:
    """Writing the box to the cart failed; the shopper is back at an interactive step."""

    __version__ = 1

    box_id = Identifier(required=True)
    reason = String(required=True)
    returned_to_step = String(required=True)
