"""
Entitlement Resolver: decides whether a member may receive a new pass.

Provides:
- check_entitlement(member_id, gym_id) -> Entitlement
- find_active_subscription(member_id)
- explain_failed_claim(member_id)

Check order (first failure wins):
    1. active subscription          -> NoActiveSubscriptionError
    2. visits_used < monthly_limit  -> QuotaExceededError
    3. no pass with valid_until > now -> DuplicateActivePassError
    4. gym exists and is active     -> GymNotFoundError / GymInactiveError
    5. subscription tier >= gym tier -> TierNotAllowedError

CRITICAL: check_entitlement reads current state only. Callers that issue
passes MUST run it inside the transaction that holds the quota claim (see
PassService) so the duplicate-pass and quota reads cannot go stale.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from gymaccess.entitlements.errors import (
    DuplicateActivePassError,
    GymNotFoundError,
    NoActiveSubscriptionError,
)
from gymaccess.entitlements.models import Entitlement
from gymaccess.entitlements.rules import check_gym_open, check_quota, check_tier
from gymaccess.models.base import utc_now
from gymaccess.models.gym import Gym
from gymaccess.models.gym_pass import GymPass, PassPricing
from gymaccess.models.subscription import Subscription, SubscriptionStatus
from gymaccess.platform.errors import GymAccessError, InternalError

logger = logging.getLogger(__name__)


class EntitlementResolver:
    """
    Evaluates entitlement checks against the caller's session.

    The clock is injectable so tests can pin "now".
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    def check_entitlement(
        self,
        member_id: str,
        gym_id: int,
        quota_claimed: bool = False,
    ) -> Entitlement:
        """
        Run every entitlement check for one member and gym.

        Args:
            member_id: Opaque subscriber id
            gym_id: Target gym
            quota_claimed: True when the caller already incremented
                visits_used through a conditional claim, which makes the
                quota check redundant

        Returns:
            Entitlement with the tier and cost to snapshot

        Raises:
            GymAccessError subclasses for domain failures
            InternalError for anything unexpected
        """
        try:
            return self._evaluate(member_id, gym_id, quota_claimed)
        except GymAccessError:
            raise
        except Exception as e:
            logger.error(
                "Entitlement evaluation failed",
                extra={"member_id": member_id, "gym_id": gym_id, "error": str(e)},
                exc_info=True,
            )
            raise InternalError(
                "Entitlement evaluation failed",
                details={"member_id": member_id, "gym_id": gym_id},
            ) from e

    def _evaluate(self, member_id: str, gym_id: int, quota_claimed: bool) -> Entitlement:
        subscription = self.find_active_subscription(member_id)
        if subscription is None:
            raise NoActiveSubscriptionError(member_id)

        if not quota_claimed:
            check_quota(subscription)

        self.ensure_no_active_pass(member_id)

        gym = self.db.get(Gym, gym_id)
        if gym is None:
            raise GymNotFoundError(gym_id)
        check_gym_open(gym)

        check_tier(subscription.tier, gym)

        tier = (subscription.tier or "").strip().lower()
        return Entitlement(
            member_id=member_id,
            subscription_id=subscription.id,
            tier=tier,
            pass_cost=self.lookup_pass_cost(tier),
            gym_id=gym.id,
            gym_name=gym.name,
            chain_id=gym.chain_id,
            required_tier=gym.required_tier,
        )

    def find_active_subscription(self, member_id: str) -> Optional[Subscription]:
        """Newest active subscription for a member, if any."""
        return self.db.execute(
            select(Subscription)
            .where(
                Subscription.member_id == member_id,
                Subscription.status == SubscriptionStatus.ACTIVE.value,
            )
            .order_by(Subscription.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def ensure_no_active_pass(self, member_id: str) -> None:
        """Raise if the member holds any pass with valid_until in the future."""
        existing = self.db.execute(
            select(GymPass.pass_code)
            .where(
                GymPass.member_id == member_id,
                GymPass.valid_until.is_not(None),
                GymPass.valid_until > self.clock(),
            )
            .limit(1)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateActivePassError(member_id, existing)

    def explain_failed_claim(self, member_id: str) -> None:
        """
        Raise the failure that made a conditional quota claim match no row.

        Raises:
            NoActiveSubscriptionError: no active subscription
            QuotaExceededError: quota already used up
        """
        subscription = self.find_active_subscription(member_id)
        if subscription is None:
            raise NoActiveSubscriptionError(member_id)
        check_quota(subscription)

    def lookup_pass_cost(self, tier: str) -> Decimal:
        """Default pass price for a tier; zero with a warning when unpriced."""
        price = self.db.execute(
            select(PassPricing.default_price).where(PassPricing.tier == tier)
        ).scalar_one_or_none()
        if price is None:
            logger.warning(
                "No pass pricing configured for tier, defaulting cost to 0",
                extra={"tier": tier},
            )
            return Decimal("0")
        return Decimal(str(price))
