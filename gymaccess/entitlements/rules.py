"""
Entitlement rules over already loaded rows.

Pure checks, evaluated in this order by the resolver:
    1. subscription quota
    2. gym status
    3. tier ordering (standard < premium < elite)

Pricing is looked up separately; its absence is never fatal.
"""

from gymaccess.constants.tiers import tier_allows
from gymaccess.entitlements.errors import (
    GymInactiveError,
    QuotaExceededError,
    TierNotAllowedError,
)
from gymaccess.models.gym import Gym
from gymaccess.models.subscription import Subscription


def has_quota_remaining(subscription: Subscription) -> bool:
    return (subscription.visits_used or 0) < (subscription.monthly_limit or 0)


def check_quota(subscription: Subscription) -> None:
    if not has_quota_remaining(subscription):
        raise QuotaExceededError(
            member_id=subscription.member_id,
            visits_used=subscription.visits_used or 0,
            monthly_limit=subscription.monthly_limit or 0,
        )


def check_gym_open(gym: Gym) -> None:
    if not gym.is_active:
        raise GymInactiveError(gym_id=gym.id, gym_status=gym.status)


def check_tier(subscription_tier: str, gym: Gym) -> None:
    """Unknown gym tiers block every subscription."""
    if not tier_allows(subscription_tier, gym.required_tier):
        raise TierNotAllowedError(
            subscription_tier=subscription_tier,
            required_tier=gym.required_tier,
        )
