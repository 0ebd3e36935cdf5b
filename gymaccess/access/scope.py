"""
Access scope resolution for staff accounts.

SECURITY CONTRACT (fail-closed):
- Every staff-facing read and write filters through a Scope
- EmptyScope always yields zero rows, never an error and never "all"
- Role dispatch happens once, in scope_for(); consumers switch on the
  Scope type, never on role strings

Usage:
    from gymaccess.access.scope import scope_for, gym_criteria

    scope = scope_for(staff_account)
    gyms = db.query(Gym).filter(gym_criteria(scope)).all()
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from sqlalchemy import false, select
from sqlalchemy.orm import Session

from gymaccess.constants.roles import GYM_SCOPED_ROLES, StaffRole, parse_role
from gymaccess.models.gym import Gym

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainScope:
    """Every gym of one chain."""
    chain_id: int


@dataclass(frozen=True)
class GymSetScope:
    """An explicit, non-empty set of gyms."""
    gym_ids: frozenset


@dataclass(frozen=True)
class EmptyScope:
    """Nothing is visible."""


Scope = Union[ChainScope, GymSetScope, EmptyScope]


def scope_for(staff_account) -> Scope:
    """
    Resolve the data scope of a staff account.

    Pure and total: unrecognised roles, a chain_admin without a chain, or a
    gym-scoped account without assigned gyms all resolve to EmptyScope.

    Args:
        staff_account: Object exposing role, chain_id and gym_ids

    Returns:
        ChainScope, GymSetScope or EmptyScope
    """
    role = parse_role(getattr(staff_account, "role", None))

    if role == StaffRole.CHAIN_ADMIN:
        chain_id = getattr(staff_account, "chain_id", None)
        if chain_id is not None:
            return ChainScope(chain_id=chain_id)

    elif role in GYM_SCOPED_ROLES:
        gym_ids = frozenset(getattr(staff_account, "gym_ids", None) or ())
        if gym_ids:
            return GymSetScope(gym_ids=gym_ids)

    logger.debug(
        "Staff account resolved to empty scope",
        extra={
            "staff_account_id": getattr(staff_account, "id", None),
            "role": getattr(staff_account, "role", None),
        }
    )
    return EmptyScope()


def gym_criteria(scope: Scope):
    """
    Translate a scope into a SQL filter over Gym.

    This is the only place a Scope becomes query criteria.
    """
    if isinstance(scope, ChainScope):
        return Gym.chain_id == scope.chain_id
    if isinstance(scope, GymSetScope):
        return Gym.id.in_(sorted(scope.gym_ids))
    return false()


def scoped_gym_ids(scope: Scope):
    """Subquery selecting the ids of every gym inside the scope."""
    return select(Gym.id).where(gym_criteria(scope))


def gym_in_scope(scope: Scope, gym: Gym) -> bool:
    """In-memory membership test for an already loaded gym."""
    if isinstance(scope, ChainScope):
        return gym.chain_id == scope.chain_id
    if isinstance(scope, GymSetScope):
        return gym.id in scope.gym_ids
    return False


def _single_chain(chain_ids: Iterable[Optional[int]]) -> Optional[int]:
    distinct = set(chain_ids)
    if len(distinct) != 1:
        return None
    return distinct.pop()


def resolve_chain_id(db: Session, scope: Scope) -> Optional[int]:
    """
    Resolve the single chain a scope belongs to.

    ChainScope resolves to its chain. GymSetScope resolves to the chain that
    owns every assigned gym; gyms that are missing or spread over several
    chains make it unresolvable. EmptyScope is unresolvable.

    Returns:
        The chain id, or None if the scope has no single owning chain
    """
    if isinstance(scope, ChainScope):
        return scope.chain_id

    if isinstance(scope, GymSetScope):
        rows = db.execute(
            select(Gym.id, Gym.chain_id).where(Gym.id.in_(sorted(scope.gym_ids)))
        ).all()
        if len(rows) != len(scope.gym_ids):
            return None
        return _single_chain(chain_id for _, chain_id in rows)

    return None
