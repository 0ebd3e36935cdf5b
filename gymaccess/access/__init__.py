"""
Role-scoped data access for staff accounts.
"""

from gymaccess.access.scope import (
    ChainScope,
    EmptyScope,
    GymSetScope,
    Scope,
    gym_criteria,
    resolve_chain_id,
    scope_for,
)

__all__ = [
    "ChainScope",
    "EmptyScope",
    "GymSetScope",
    "Scope",
    "gym_criteria",
    "resolve_chain_id",
    "scope_for",
]
