"""
Product catalog for credits, tourist passes and subscription tiers.

Quantities are fixed product decisions; Stripe price ids come from settings
so each environment can point at its own Stripe objects.

Usage:
    from credits.catalog import get_credit_pack, get_tier_plan

    pack = get_credit_pack("standard")
    pack.total_credits  # 33

    plan = get_tier_plan(account.tier)
    plan.credit_cap  # 24 for premium
"""

from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings

from credits.state_machines import SubscriptionTier


@dataclass(frozen=True)
class CreditPack:
    """A one-off credit top-up."""

    key: str
    name: str
    credits: int
    bonus_credits: int
    price_usd: int
    price_setting: str

    @property
    def total_credits(self) -> int:
        return self.credits + self.bonus_credits

    @property
    def stripe_price_id(self) -> str:
        return getattr(settings, self.price_setting, "")


@dataclass(frozen=True)
class TouristPassPlan:
    """A time-boxed bundle of classes, independent of the credit balance."""

    key: str
    name: str
    duration_days: int
    classes: int
    price_usd: int
    price_setting: str

    @property
    def stripe_price_id(self) -> str:
        return getattr(settings, self.price_setting, "")


@dataclass(frozen=True)
class TierPlan:
    """
    Subscription tier terms.

    monthly_credits is granted by the monthly grant task; credit_cap bounds
    how far a top-up purchase may take the balance.
    """

    tier: str
    monthly_credits: int
    credit_cap: int
    price_setting: str | None

    @property
    def stripe_price_id(self) -> str:
        if not self.price_setting:
            return ""
        return getattr(settings, self.price_setting, "")


CREDIT_PACKS: dict[str, CreditPack] = {
    "starter": CreditPack("starter", "Starter Pack", 12, 0, 25, "STRIPE_PRICE_PACK_STARTER"),
    "standard": CreditPack("standard", "Standard Pack", 30, 3, 50, "STRIPE_PRICE_PACK_STANDARD"),
    "premium": CreditPack("premium", "Premium Pack", 60, 10, 90, "STRIPE_PRICE_PACK_PREMIUM"),
}

TOURIST_PASSES: dict[str, TouristPassPlan] = {
    "tourist_3day": TouristPassPlan(
        "tourist_3day", "3-Day Tourist Pass", 3, 5, 50, "STRIPE_PRICE_TOURIST_3_DAY"
    ),
    "tourist_7day": TouristPassPlan(
        "tourist_7day", "7-Day Tourist Pass", 7, 10, 85, "STRIPE_PRICE_TOURIST_7_DAY"
    ),
}

TIER_PLANS: dict[str, TierPlan] = {
    SubscriptionTier.FREE: TierPlan(SubscriptionTier.FREE, 0, 10, None),
    SubscriptionTier.BASIC: TierPlan(SubscriptionTier.BASIC, 5, 10, "STRIPE_PRICE_TIER_BASIC"),
    SubscriptionTier.PREMIUM: TierPlan(
        SubscriptionTier.PREMIUM, 12, 24, "STRIPE_PRICE_TIER_PREMIUM"
    ),
    SubscriptionTier.UNLIMITED: TierPlan(
        SubscriptionTier.UNLIMITED, 20, 40, "STRIPE_PRICE_TIER_UNLIMITED"
    ),
}


def get_credit_pack(key: str) -> CreditPack | None:
    return CREDIT_PACKS.get(key)


def get_tourist_pass_plan(key: str) -> TouristPassPlan | None:
    return TOURIST_PASSES.get(key)


def get_tier_plan(tier: str) -> TierPlan:
    """Terms for a tier; unknown values fall back to the free tier."""
    return TIER_PLANS.get(tier, TIER_PLANS[SubscriptionTier.FREE])


def get_freeze_price_id() -> str:
    return settings.STRIPE_PRICE_FREEZE_PLAN
