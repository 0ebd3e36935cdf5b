"""
Canonical staff roles and permissions.

Role Hierarchy:
- CHAIN_ADMIN: every gym of one chain
- GYM_ADMIN: an assigned set of gyms, may create subordinate accounts
- GYM_STAFF: an assigned set of gyms, front desk only

Role strings coming from storage or the identity provider are trimmed and
lower-cased before matching.
"""

from enum import Enum
from typing import FrozenSet, Optional


class StaffRole(str, Enum):
    """Staff roles, from widest to narrowest scope."""
    CHAIN_ADMIN = "chain_admin"
    GYM_ADMIN = "gym_admin"
    GYM_STAFF = "gym_staff"


class StaffPermission(str, Enum):
    """Read-only accounts may not perform any write."""
    READ = "read"
    WRITE = "write"


# Roles scoped by an assigned gym set rather than a chain
GYM_SCOPED_ROLES: FrozenSet[StaffRole] = frozenset({
    StaffRole.GYM_ADMIN,
    StaffRole.GYM_STAFF,
})

# Roles that may be created through the staff admin flow
CREATABLE_ROLES: FrozenSet[StaffRole] = frozenset({
    StaffRole.GYM_ADMIN,
    StaffRole.GYM_STAFF,
})


def parse_role(role_name: Optional[str]) -> Optional[StaffRole]:
    """Normalise a role string. Returns None for unrecognised roles."""
    if not role_name:
        return None
    try:
        return StaffRole(role_name.strip().lower())
    except ValueError:
        return None


def parse_permission(permission: Optional[str]) -> Optional[StaffPermission]:
    """Normalise a permission string. Returns None for unrecognised values."""
    if not permission:
        return None
    try:
        return StaffPermission(permission.strip().lower())
    except ValueError:
        return None
