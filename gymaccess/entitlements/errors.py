"""
Structured error classes for pass entitlement checks.

Each failure carries enough detail for the caller to render a specific,
actionable message.
"""

from gymaccess.platform.errors import ConflictError, NotFoundError


class NoActiveSubscriptionError(NotFoundError):
    """The member has no active subscription."""

    error_code = "no_active_subscription"

    def __init__(self, member_id: str):
        self.member_id = member_id
        super().__init__(
            "No active subscription found",
            details={"member_id": member_id},
        )


class QuotaExceededError(ConflictError):
    """The member has used every visit in the current period."""

    error_code = "quota_exceeded"

    def __init__(self, member_id: str, visits_used: int, monthly_limit: int):
        self.member_id = member_id
        self.visits_used = visits_used
        self.monthly_limit = monthly_limit
        super().__init__(
            f"Monthly visit limit reached: {visits_used} of {monthly_limit} visits used",
            details={
                "member_id": member_id,
                "visits_used": visits_used,
                "monthly_limit": monthly_limit,
            },
        )


class DuplicateActivePassError(ConflictError):
    """The member already holds a pass that has not yet expired."""

    error_code = "duplicate_active_pass"

    def __init__(self, member_id: str, pass_code: str):
        self.member_id = member_id
        self.pass_code = pass_code
        super().__init__(
            "You already have an active pass",
            details={"member_id": member_id, "pass_code": pass_code},
        )


class GymNotFoundError(NotFoundError):
    """The target gym does not exist."""

    error_code = "gym_not_found"

    def __init__(self, gym_id: int):
        self.gym_id = gym_id
        super().__init__("Gym not found", details={"gym_id": gym_id})


class GymInactiveError(ConflictError):
    """The target gym is not accepting passes."""

    error_code = "gym_inactive"

    def __init__(self, gym_id: int, gym_status: str):
        self.gym_id = gym_id
        self.gym_status = gym_status
        super().__init__(
            "Gym is not active",
            details={"gym_id": gym_id, "status": gym_status},
        )


class TierNotAllowedError(ConflictError):
    """The member's tier is below the gym's required tier."""

    error_code = "tier_not_allowed"

    def __init__(self, subscription_tier: str, required_tier: str):
        self.subscription_tier = subscription_tier
        self.required_tier = required_tier
        super().__init__(
            f"Your {subscription_tier} subscription does not include "
            f"access to {required_tier} gyms",
            details={
                "subscription_tier": subscription_tier,
                "required_tier": required_tier,
            },
        )
