"""Shopper-facing message texts with per-shop overrides."""

DEFAULT_MESSAGES = {
    "catalog_unavailable": "Unable to load products. Please refresh the page.",
    "no_products": "No products are available in this category.",
    "minimum_products": "Please select at least {count} products to continue.",
    "frequency_required": "Please select a delivery frequency.",
    "out_of_stock": "{title} ({variant}) is out of stock.",
    "stock_clamped": "Only {stock} of {title} ({variant}) left in stock. Quantity adjusted.",
    "stock_removed": "{title} ({variant}) is out of stock and was removed from your box.",
    "submission_failed": "We couldn't add your box to the cart. Please try again.",
    "cart_protected": "Subscription boxes can't be edited item by item. Your cart has been cleared.",
    "goal": "Choose at least {count} for {discount}% OFF",
    "goal_reached": "Congratulations! You've got {discount}% OFF",
}


def resolve_messages(overrides: dict | None = None) -> dict:
    """Defaults merged with a shop's overrides; unknown or blank override keys are ignored."""
    messages = dict(DEFAULT_MESSAGES)
    for key, text in (overrides or {}).items():
        if key in messages and isinstance(text, str) and text.strip():
            messages[key] = text
    return messages


def render(messages: dict, key: str, **values) -> str:
    template = messages.get(key) or DEFAULT_MESSAGES[key]
    try:
        return template.format(**values)
    except (KeyError, IndexError, ValueError):
        # Override with unknown placeholders; show it verbatim
        return template
