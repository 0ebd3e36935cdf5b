"""
Pass entitlement checks.

This module provides:
- EntitlementResolver: subscription, quota, duplicate-pass and tier checks
- Entitlement: the successful outcome, snapshotted onto new passes
- Typed failures for every check
"""

from gymaccess.entitlements.errors import (
    DuplicateActivePassError,
    GymInactiveError,
    GymNotFoundError,
    NoActiveSubscriptionError,
    QuotaExceededError,
    TierNotAllowedError,
)
from gymaccess.entitlements.models import Entitlement
from gymaccess.entitlements.service import EntitlementResolver

__all__ = [
    "EntitlementResolver",
    "Entitlement",
    "DuplicateActivePassError",
    "GymInactiveError",
    "GymNotFoundError",
    "NoActiveSubscriptionError",
    "QuotaExceededError",
    "TierNotAllowedError",
]
