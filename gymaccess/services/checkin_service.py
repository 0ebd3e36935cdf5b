"""
Check-In Service - front-desk verification of presented pass codes.

Check-in is chain-scoped: a staff account may verify any pass issued for a
gym of its own chain. Accounts tied to gym subsets must resolve to exactly
one chain through their assigned gyms.

Check-in is read-only. The pass keeps its status; only the expiration
sweeper moves it out of ACTIVE.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from gymaccess.access.scope import resolve_chain_id, scope_for
from gymaccess.config.pass_policy import PassPolicy, get_pass_policy
from gymaccess.models.gym import Gym
from gymaccess.models.gym_pass import GymPass
from gymaccess.models.member import Member
from gymaccess.platform.errors import ForbiddenError, NotFoundError
from gymaccess.services.pass_codes import normalize_pass_code

logger = logging.getLogger(__name__)


class PassNotFoundError(NotFoundError):
    """No pass carries the presented code."""

    error_code = "pass_not_found"

    def __init__(self, pass_code: str):
        self.pass_code = pass_code
        super().__init__("Pass not found", details={"pass_code": pass_code})


class ChainMismatchError(ForbiddenError):
    """The pass belongs to a gym outside the staff account's chain."""

    error_code = "chain_mismatch"

    def __init__(self, pass_code: str):
        self.pass_code = pass_code
        super().__init__(
            "This pass was not issued for a gym in your chain",
            details={"pass_code": pass_code},
        )


@dataclass(frozen=True)
class PassView:
    """Read-only pass details shown at the front desk."""
    pass_id: int
    pass_code: str
    status: str
    valid_until: Optional[datetime]
    used_at: Optional[datetime]
    subscription_tier: str
    pass_cost: Decimal
    qrcode_url: Optional[str]
    member_id: str
    member_name: Optional[str]
    member_email: Optional[str]
    gym_id: int
    gym_name: str
    chain_id: int
    created_at: Optional[datetime]


class CheckInService:
    """Resolves presented pass codes for staff accounts."""

    def __init__(self, db: Session, policy: Optional[PassPolicy] = None):
        self.db = db
        self.policy = policy or get_pass_policy()

    def check_in(self, staff_account, presented_code: str) -> PassView:
        """
        Verify a presented pass code.

        Raises:
            ValidationError: blank code
            PassNotFoundError: no pass with the normalised code
            ChainMismatchError: pass gym is outside the caller's chain, or
                the caller has no single chain
        """
        code = normalize_pass_code(presented_code, self.policy.pass_code_prefix)

        gym_pass = self.db.query(GymPass).filter(GymPass.pass_code == code).first()
        if gym_pass is None:
            raise PassNotFoundError(code)

        gym = self.db.get(Gym, gym_pass.gym_id)
        staff_chain_id = resolve_chain_id(self.db, scope_for(staff_account))

        if staff_chain_id is None or gym is None or gym.chain_id != staff_chain_id:
            logger.warning(
                "Check-in chain mismatch",
                extra={
                    "staff_account_id": getattr(staff_account, "id", None),
                    "staff_chain_id": staff_chain_id,
                    "pass_code": code,
                    "pass_chain_id": gym.chain_id if gym else None,
                },
            )
            raise ChainMismatchError(code)

        member = self.db.get(Member, gym_pass.member_id)

        logger.info(
            "Pass checked in",
            extra={
                "staff_account_id": getattr(staff_account, "id", None),
                "pass_id": gym_pass.id,
                "gym_id": gym.id,
            },
        )

        return PassView(
            pass_id=gym_pass.id,
            pass_code=gym_pass.pass_code,
            status=gym_pass.status,
            valid_until=gym_pass.valid_until,
            used_at=gym_pass.used_at,
            subscription_tier=gym_pass.subscription_tier,
            pass_cost=gym_pass.pass_cost,
            qrcode_url=gym_pass.qrcode_url,
            member_id=gym_pass.member_id,
            member_name=member.full_name if member else None,
            member_email=member.email if member else None,
            gym_id=gym.id,
            gym_name=gym.name,
            chain_id=gym.chain_id,
            created_at=gym_pass.created_at,
        )
