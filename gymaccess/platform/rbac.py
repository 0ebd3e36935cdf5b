"""
Per-action write rules for staff accounts.

CRITICAL SECURITY REQUIREMENTS:
- Scope decides what is visible; these rules decide what may be written
- Every staff-facing write MUST call one of the authorize_* functions
- All write rules are centralized in this module

Rules:
- Only accounts with write permission may write; read or unrecognised
  permissions are treated as read-only
- Only chain_admin and gym_admin may update gyms, and only in scope
- gym_staff may never create staff accounts
- gym_admin may assign only a subset of its own gyms
- chain_admin may assign only gyms of its own chain
- chain_admin accounts are never created through the staff admin flow
"""

import logging
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from gymaccess.access.scope import ChainScope, GymSetScope, Scope, gym_in_scope, scope_for
from gymaccess.constants.roles import (
    CREATABLE_ROLES,
    StaffPermission,
    StaffRole,
    parse_permission,
    parse_role,
)
from gymaccess.models.gym import Gym
from gymaccess.platform.errors import ForbiddenError, ValidationError

logger = logging.getLogger(__name__)


class RBACError(ForbiddenError):
    """Write rule denied the action."""

    error_code = "permission_denied"

    def __init__(self, required: str, staff_account_id=None, role=None):
        super().__init__(
            message="You do not have permission to perform this action",
            details={"required": required},
        )
        # Log detailed info server-side but don't expose to client
        logger.warning(
            "RBAC check failed",
            extra={
                "required": required,
                "staff_account_id": staff_account_id,
                "role": role,
            }
        )


def can_write(staff_account) -> bool:
    """True only for accounts with an explicit write permission."""
    return parse_permission(getattr(staff_account, "permission", None)) == StaffPermission.WRITE


def require_write_permission(staff_account) -> None:
    if not can_write(staff_account):
        raise RBACError(
            "write_permission",
            staff_account_id=getattr(staff_account, "id", None),
            role=getattr(staff_account, "role", None),
        )


def authorize_gym_update(staff_account, gym: Gym) -> Scope:
    """
    Check that a staff account may update a gym.

    Returns:
        The caller's scope

    Raises:
        RBACError: role, permission or scope does not allow the update
    """
    require_write_permission(staff_account)

    role = parse_role(staff_account.role)
    if role not in (StaffRole.CHAIN_ADMIN, StaffRole.GYM_ADMIN):
        raise RBACError("gym_update", staff_account_id=staff_account.id, role=staff_account.role)

    scope = scope_for(staff_account)
    if not gym_in_scope(scope, gym):
        raise RBACError("gym_in_scope", staff_account_id=staff_account.id, role=staff_account.role)
    return scope


def authorize_staff_creation(
    db: Session,
    creator,
    new_role: str,
    gym_ids: Iterable[int],
) -> frozenset:
    """
    Check that a staff account may create a subordinate account.

    Args:
        db: Database session (chain ownership of the requested gyms)
        creator: The staff account performing the creation
        new_role: Role requested for the new account
        gym_ids: Gyms to assign to the new account

    Returns:
        The validated set of gym ids to assign

    Raises:
        ValidationError: requested role or gym set is malformed
        RBACError: the creator may not create this account
    """
    requested_role = parse_role(new_role)
    if requested_role not in CREATABLE_ROLES:
        raise ValidationError(
            "Role must be gym_admin or gym_staff",
            details={"role": new_role},
        )

    requested_gyms = frozenset(gym_ids or ())
    if not requested_gyms:
        raise ValidationError("At least one gym must be assigned")

    require_write_permission(creator)

    creator_role = parse_role(creator.role)
    scope = scope_for(creator)

    if creator_role == StaffRole.GYM_ADMIN and isinstance(scope, GymSetScope):
        if not requested_gyms <= scope.gym_ids:
            raise RBACError(
                "gyms_subset_of_own",
                staff_account_id=creator.id,
                role=creator.role,
            )
        return requested_gyms

    if creator_role == StaffRole.CHAIN_ADMIN and isinstance(scope, ChainScope):
        rows = db.execute(
            select(Gym.id).where(
                Gym.id.in_(sorted(requested_gyms)),
                Gym.chain_id == scope.chain_id,
            )
        ).scalars().all()
        if set(rows) != requested_gyms:
            raise RBACError(
                "gyms_in_own_chain",
                staff_account_id=creator.id,
                role=creator.role,
            )
        return requested_gyms

    raise RBACError("staff_create", staff_account_id=creator.id, role=creator.role)
