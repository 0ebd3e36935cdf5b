"""
Database models for the gym access core.
"""

from gymaccess.models.base import TimestampMixin, utc_now
from gymaccess.models.member import Member
from gymaccess.models.subscription import Subscription, SubscriptionStatus
from gymaccess.models.gym import Gym, GymChain, GymStatus
from gymaccess.models.gym_pass import GymPass, PassPricing, PassStatus
from gymaccess.constants.roles import StaffPermission, StaffRole
from gymaccess.models.staff_account import StaffAccount, staff_account_gyms

__all__ = [
    "TimestampMixin",
    "utc_now",
    "Member",
    "Subscription",
    "SubscriptionStatus",
    "Gym",
    "GymChain",
    "GymStatus",
    "GymPass",
    "PassPricing",
    "PassStatus",
    "StaffAccount",
    "StaffPermission",
    "StaffRole",
    "staff_account_gyms",
]
