"""Milestone discounts: tier thresholds, progress, and selling-plan resolution.

The discount tier is a pure function of the number of distinct products in the
box, never of summed quantities. The admin surface guarantees that the tier 2
threshold exceeds the tier 1 threshold; the snapshot is trusted as-is, except
that unreadable values fall back to the defaults.
"""

import json
from dataclasses import dataclass

import structlog
from protean.fields import Float, Integer, Text

from subscriptions.domain import subscriptions
from subscriptions.storefront.port import MILESTONE_CONFIG, StorefrontError, StorefrontTransport

logger = structlog.get_logger(__name__)

DEFAULT_TIER1_ITEMS = 6
DEFAULT_TIER1_DISCOUNT = 5.0
DEFAULT_TIER2_ITEMS = 10
DEFAULT_TIER2_DISCOUNT = 10.0

TIER1 = "tier1"
TIER2 = "tier2"

FREQUENCIES = {
    "2weeks": "Every 2 weeks",
    "4weeks": "Every 4 weeks",
    "6weeks": "Every 6 weeks",
}

DEFAULT_SELLING_PLANS = {
    TIER1: {"2weeks": "689100587309", "4weeks": "689157964077", "6weeks": "689157996845"},
    TIER2: {"2weeks": "689425580333", "4weeks": "689425613101", "6weeks": "689425645869"},
}

# Admin payload key prefix per tier
_PAYLOAD_PREFIXES = {TIER1: "milestone1", TIER2: "milestone2"}


@dataclass(frozen=True)
class Tier:
    name: str | None
    percent: float
    next_threshold: int | None


def frequency_text(frequency: str | None) -> str:
    return FREQUENCIES.get(frequency or "", "")


@subscriptions.value_object(part_of="SubscriptionBox")
class MilestoneConfig:
    """Discount thresholds plus the selling plan per tier and delivery frequency."""

    tier1_items = Integer(default=DEFAULT_TIER1_ITEMS, min_value=1)
    tier1_discount = Float(default=DEFAULT_TIER1_DISCOUNT, min_value=0.0)
    tier2_items = Integer(default=DEFAULT_TIER2_ITEMS, min_value=1)
    tier2_discount = Float(default=DEFAULT_TIER2_DISCOUNT, min_value=0.0)
    selling_plans = Text()  # JSON: {"tier1": {"2weeks": "<plan id>", ...}, "tier2": {...}}

    @classmethod
    def standard(cls):
        return cls(
            tier1_items=DEFAULT_TIER1_ITEMS,
            tier1_discount=DEFAULT_TIER1_DISCOUNT,
            tier2_items=DEFAULT_TIER2_ITEMS,
            tier2_discount=DEFAULT_TIER2_DISCOUNT,
            selling_plans=json.dumps(DEFAULT_SELLING_PLANS),
        )

    @classmethod
    def from_payload(cls, payload: dict | None):
        """Build a config from the admin's milestone JSON, defaulting anything missing or unreadable."""
        payload = payload or {}

        def number(key, default, convert):
            value = payload.get(key)
            if value is None or value == "":
                return default
            try:
                return convert(value)
            except (TypeError, ValueError):
                logger.warning("Ignoring unreadable milestone value", key=key)
                return default

        tier1_items = number("milestone1Items", DEFAULT_TIER1_ITEMS, int)
        tier2_items = number("milestone2Items", DEFAULT_TIER2_ITEMS, int)
        if tier1_items < 1 or tier2_items <= tier1_items:
            logger.warning("Ignoring inconsistent milestone thresholds", tier1=tier1_items, tier2=tier2_items)
            tier1_items, tier2_items = DEFAULT_TIER1_ITEMS, DEFAULT_TIER2_ITEMS

        plans = {}
        for tier, prefix in _PAYLOAD_PREFIXES.items():
            plans[tier] = {}
            for frequency in FREQUENCIES:
                key = f"{prefix}_{frequency}"
                value = payload[key] if key in payload else DEFAULT_SELLING_PLANS[tier][frequency]
                if value:
                    plans[tier][frequency] = str(value)

        return cls(
            tier1_items=tier1_items,
            tier1_discount=max(number("milestone1Discount", DEFAULT_TIER1_DISCOUNT, float), 0.0),
            tier2_items=tier2_items,
            tier2_discount=max(number("milestone2Discount", DEFAULT_TIER2_DISCOUNT, float), 0.0),
            selling_plans=json.dumps(plans),
        )

    # -------------------------------------------------------------------
    # Tier math
    # -------------------------------------------------------------------
    def compute_tier(self, count: int) -> Tier:
        if count >= self.tier2_items:
            return Tier(name=TIER2, percent=self.tier2_discount, next_threshold=None)
        if count >= self.tier1_items:
            return Tier(name=TIER1, percent=self.tier1_discount, next_threshold=self.tier2_items)
        return Tier(name=None, percent=0.0, next_threshold=self.tier1_items)

    def progress_percentage(self, count: int) -> float:
        """Progress bar fill: 0 to tier 1 covers 0-50 %, tier 1 to tier 2 covers 50-100 %."""
        if count <= 0:
            return 0.0
        if count >= self.tier2_items:
            return 100.0
        if count >= self.tier1_items:
            span = self.tier2_items - self.tier1_items
            return min(50.0 + (count - self.tier1_items) / span * 50.0, 100.0)
        return count / self.tier1_items * 50.0

    def selling_plan_for(self, count: int, frequency: str | None) -> str | None:
        tier = self.compute_tier(count)
        if tier.name is None or not frequency:
            return None
        plans = json.loads(self.selling_plans) if self.selling_plans else {}
        return plans.get(tier.name, {}).get(frequency) or None

    def captions(self, count: int) -> list[str]:
        """One caption per milestone: the goal while pending, the reward once reached."""
        captions = []
        for items, discount in ((self.tier1_items, self.tier1_discount), (self.tier2_items, self.tier2_discount)):
            if count >= items:
                captions.append(f"You've got {discount:g}% OFF")
            else:
                captions.append(f"Add {items}, get {discount:g}% OFF")
        return captions

    def to_dict(self) -> dict:
        return {
            "tier1_items": self.tier1_items,
            "tier1_discount": self.tier1_discount,
            "tier2_items": self.tier2_items,
            "tier2_discount": self.tier2_discount,
            "selling_plans": json.loads(self.selling_plans) if self.selling_plans else {},
        }


def fetch_milestone_config(transport: StorefrontTransport, shop: str | None = None) -> MilestoneConfig:
    """Read the shop's milestone snapshot through the app proxy, or the defaults on any failure."""
    try:
        payload = transport.get(MILESTONE_CONFIG, {"shop": shop} if shop else None)
    except StorefrontError as exc:
        logger.warning("Milestone config unavailable, using defaults", **exc.to_log_context())
        return MilestoneConfig.standard()

    if not isinstance(payload, dict) or "error" in payload:
        logger.warning("Milestone config unreadable, using defaults", shop=shop)
        return MilestoneConfig.standard()
    return MilestoneConfig.from_payload(payload)
