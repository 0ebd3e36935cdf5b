"""
Entitlement result types.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class Entitlement:
    """
    Outcome of a successful entitlement check.

    tier and pass_cost are the values snapshotted onto a new pass.
    """
    member_id: str
    subscription_id: int
    tier: str
    pass_cost: Decimal
    gym_id: int
    gym_name: str
    chain_id: Optional[int]
    required_tier: str
