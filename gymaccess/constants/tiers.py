"""
Canonical subscription tier ordering.

IMPORTANT: This is the single source of truth for tier comparison.
Tier order: STANDARD < PREMIUM < ELITE

Unknown tier strings are ranked fail-safe:
- on the subscription side they rank below every known tier
- on the gym side they rank above every known tier, so an unknown gym
  tier blocks all access
"""

from enum import Enum


class Tier(str, Enum):
    """Subscription tiers, lowest first."""
    STANDARD = "standard"
    PREMIUM = "premium"
    ELITE = "elite"


TIER_LEVELS: dict[Tier, int] = {
    Tier.STANDARD: 1,
    Tier.PREMIUM: 2,
    Tier.ELITE: 3,
}

UNKNOWN_SUBSCRIPTION_TIER_LEVEL = 0
UNKNOWN_GYM_TIER_LEVEL = 999


def parse_tier(value: str | None) -> Tier | None:
    """Parse a tier string case-insensitively. Returns None if unknown."""
    if not value:
        return None
    try:
        return Tier(value.strip().lower())
    except ValueError:
        return None


def subscription_tier_level(value: str | None) -> int:
    """Rank of a subscription's tier; unknown tiers rank lowest."""
    tier = parse_tier(value)
    if tier is None:
        return UNKNOWN_SUBSCRIPTION_TIER_LEVEL
    return TIER_LEVELS[tier]


def gym_tier_level(value: str | None) -> int:
    """Rank of a gym's required tier; unknown tiers are unreachable."""
    tier = parse_tier(value)
    if tier is None:
        return UNKNOWN_GYM_TIER_LEVEL
    return TIER_LEVELS[tier]


def tier_allows(subscription_tier: str | None, gym_required_tier: str | None) -> bool:
    """True if a subscription of this tier may enter a gym requiring that tier."""
    return subscription_tier_level(subscription_tier) >= gym_tier_level(gym_required_tier)
