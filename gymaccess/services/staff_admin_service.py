"""
Staff Admin Service - scoped reads and writes for staff accounts.

Every operation resolves the caller's Scope once and filters through it:
- gyms: the gyms inside the scope
- members: members holding at least one pass at an in-scope gym
- passes: passes issued for in-scope gyms
- events: audit events tagged with an in-scope gym or the scope's chain

Out-of-scope rows are reported as not found, never as forbidden, so the
existence of other chains' data does not leak.

Listing supports free-text search and page-based pagination. A search
returns every match on a single page.

Writes additionally pass the per-action rules in gymaccess.platform.rbac and
append an audit event in the same transaction.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Iterable, List, Optional, TypeVar

from sqlalchemy import false, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from gymaccess.access.scope import (
    ChainScope,
    GymSetScope,
    Scope,
    gym_criteria,
    gym_in_scope,
    scope_for,
    scoped_gym_ids,
)
from gymaccess.config.pass_policy import PassPolicy, get_pass_policy
from gymaccess.constants.roles import parse_permission, parse_role
from gymaccess.integrations.auth0.client import Auth0ManagementClient
from gymaccess.integrations.auth0.exceptions import Auth0Error
from gymaccess.models.gym import Gym
from gymaccess.models.gym_pass import GymPass
from gymaccess.models.member import Member
from gymaccess.models.staff_account import StaffAccount
from gymaccess.models.subscription import Subscription, SubscriptionStatus
from gymaccess.platform.audit import (
    AuditEntry,
    AuditEvent,
    AuditEventType,
    append_audit_event,
)
from gymaccess.platform.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    UnavailableError,
    ValidationError,
)
from gymaccess.platform.rbac import authorize_gym_update, authorize_staff_creation

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Gym fields a staff account may change
UPDATABLE_GYM_FIELDS = frozenset({
    "name",
    "address",
    "postcode",
    "city",
    "latitude",
    "longitude",
    "required_tier",
    "phone",
    "image_url",
    "status",
})


@dataclass
class Page(Generic[T]):
    """One page of a scoped listing."""
    items: List[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 1
        return max(1, math.ceil(self.total / self.page_size))


@dataclass
class MemberDetail:
    """A member as seen by a staff account."""
    member: Member
    subscription: Optional[Subscription]
    passes: List[GymPass] = field(default_factory=list)


@dataclass
class NewStaffAccount:
    """Request to create a subordinate staff account."""
    email: str
    name: str
    role: str
    permission: str
    gym_ids: List[int]
    password: Optional[str] = None


class StaffAdminService:
    """Scoped administration for one staff account."""

    def __init__(
        self,
        db: Session,
        staff_account: StaffAccount,
        policy: Optional[PassPolicy] = None,
        auth0_client: Optional[Auth0ManagementClient] = None,
    ):
        if staff_account is None:
            raise ValueError("staff_account is required")
        self.db = db
        self.staff_account = staff_account
        self.scope: Scope = scope_for(staff_account)
        self.policy = policy or get_pass_policy()
        self.auth0_client = auth0_client

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _paginate(self, query: Query, page: int, search: Optional[str]) -> Page:
        total = query.order_by(None).count()
        if search:
            return Page(items=query.all(), total=total, page=1, page_size=total)

        page = max(1, page or 1)
        page_size = self.policy.page_size
        items = query.offset((page - 1) * page_size).limit(page_size).all()
        return Page(items=items, total=total, page=page, page_size=page_size)

    @staticmethod
    def _pattern(search: str) -> str:
        return f"%{search.strip()}%"

    # ------------------------------------------------------------------
    # Gyms
    # ------------------------------------------------------------------

    def list_gyms(self, page: int = 1, search: Optional[str] = None) -> Page:
        query = self.db.query(Gym).filter(gym_criteria(self.scope))
        if search and search.strip():
            pattern = self._pattern(search)
            query = query.filter(or_(
                Gym.name.ilike(pattern),
                Gym.city.ilike(pattern),
                Gym.postcode.ilike(pattern),
            ))
        else:
            search = None
        return self._paginate(query.order_by(Gym.name, Gym.id), page, search)

    def get_gym(self, gym_id: int) -> Gym:
        gym = (
            self.db.query(Gym)
            .filter(Gym.id == gym_id, gym_criteria(self.scope))
            .first()
        )
        if gym is None:
            raise NotFoundError("Gym not found", details={"gym_id": gym_id})
        return gym

    def update_gym(self, gym_id: int, changes: Dict[str, Any]) -> Gym:
        """
        Update editable gym fields.

        Raises:
            NotFoundError: gym missing or outside scope
            RBACError: role or permission does not allow the update
            ValidationError: unknown fields
        """
        gym = self.db.get(Gym, gym_id)
        if gym is None or not gym_in_scope(self.scope, gym):
            raise NotFoundError("Gym not found", details={"gym_id": gym_id})

        unknown = set(changes) - UPDATABLE_GYM_FIELDS
        if unknown:
            raise ValidationError(
                "Fields cannot be updated",
                details={"fields": sorted(unknown)},
            )

        authorize_gym_update(self.staff_account, gym)

        changed = []
        for name, value in changes.items():
            if name in ("required_tier", "status") and isinstance(value, str):
                value = value.strip().lower()
            if getattr(gym, name) != value:
                setattr(gym, name, value)
                changed.append(name)

        if not changed:
            return gym

        append_audit_event(self.db, AuditEntry(
            event_type=AuditEventType.GYM_UPDATED,
            creator_id=str(self.staff_account.id),
            target_id=str(gym.id),
            description=f"Updated {', '.join(sorted(changed))} of {gym.name}",
            gym_id=gym.id,
            gym_chain_id=gym.chain_id,
        ))
        self.db.commit()

        logger.info(
            "Gym updated",
            extra={
                "staff_account_id": self.staff_account.id,
                "gym_id": gym.id,
                "fields": changed,
            },
        )
        return gym

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    def _members_in_scope(self) -> Query:
        visible_members = (
            self.db.query(GymPass.member_id)
            .filter(GymPass.gym_id.in_(scoped_gym_ids(self.scope)))
        )
        return self.db.query(Member).filter(Member.id.in_(visible_members))

    def list_members(self, page: int = 1, search: Optional[str] = None) -> Page:
        query = self._members_in_scope()
        if search and search.strip():
            pattern = self._pattern(search)
            query = query.filter(or_(
                Member.full_name.ilike(pattern),
                Member.email.ilike(pattern),
            ))
        else:
            search = None
        return self._paginate(query.order_by(Member.full_name, Member.id), page, search)

    def get_member(self, member_id: str) -> MemberDetail:
        member = self._members_in_scope().filter(Member.id == member_id).first()
        if member is None:
            raise NotFoundError("Member not found", details={"member_id": member_id})

        subscription = (
            self.db.query(Subscription)
            .filter(
                Subscription.member_id == member_id,
                Subscription.status == SubscriptionStatus.ACTIVE.value,
            )
            .order_by(Subscription.id.desc())
            .first()
        )
        passes = (
            self._passes_in_scope()
            .filter(GymPass.member_id == member_id)
            .order_by(GymPass.id.desc())
            .all()
        )
        return MemberDetail(member=member, subscription=subscription, passes=passes)

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def _passes_in_scope(self) -> Query:
        return self.db.query(GymPass).filter(GymPass.gym_id.in_(scoped_gym_ids(self.scope)))

    def list_passes(
        self,
        page: int = 1,
        search: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Page:
        query = self._passes_in_scope()
        if status:
            query = query.filter(GymPass.status == status.strip().lower())
        if search and search.strip():
            pattern = self._pattern(search)
            query = query.join(Member, Member.id == GymPass.member_id).filter(or_(
                GymPass.pass_code.ilike(pattern),
                Member.email.ilike(pattern),
                Member.full_name.ilike(pattern),
            ))
        else:
            search = None
        return self._paginate(query.order_by(GymPass.id.desc()), page, search)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def list_events(self, page: int = 1) -> Page:
        query = self.db.query(AuditEvent)
        if isinstance(self.scope, ChainScope):
            query = query.filter(AuditEvent.gym_chain_id == self.scope.chain_id)
        elif isinstance(self.scope, GymSetScope):
            query = query.filter(AuditEvent.gym_id.in_(sorted(self.scope.gym_ids)))
        else:
            query = query.filter(false())
        return self._paginate(query.order_by(AuditEvent.id.desc()), page, None)

    # ------------------------------------------------------------------
    # Staff accounts
    # ------------------------------------------------------------------

    def create_staff_account(self, request: NewStaffAccount) -> StaffAccount:
        """
        Create a subordinate staff account and provision it in Auth0.

        Raises:
            ValidationError: malformed request
            RBACError: the caller may not create this account
            ConflictError: email already registered
            UnavailableError: identity provider unavailable
            InternalError: the account could not be stored; any identity
                provider user created for it is removed again
        """
        email = (request.email or "").strip().lower()
        name = (request.name or "").strip()
        if not email or "@" not in email:
            raise ValidationError("A valid email is required")
        if not name:
            raise ValidationError("Name is required")

        permission = parse_permission(request.permission)
        if permission is None:
            raise ValidationError(
                "Permission must be read or write",
                details={"permission": request.permission},
            )

        gym_ids = authorize_staff_creation(
            self.db, self.staff_account, request.role, _as_ids(request.gym_ids)
        )
        role = parse_role(request.role)

        if self.db.query(StaffAccount.id).filter(StaffAccount.email == email).first():
            raise ConflictError("A staff account with this email already exists")

        gyms = self.db.query(Gym).filter(Gym.id.in_(sorted(gym_ids))).all()
        account = StaffAccount(
            email=email,
            name=name,
            role=role.value,
            permission=permission.value,
            created_by=self.staff_account.id,
            gyms=gyms,
        )

        try:
            self.db.add(account)
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("A staff account with this email already exists")

        chain_ids = {gym.chain_id for gym in gyms}
        chain_id = chain_ids.pop() if len(chain_ids) == 1 else None

        append_audit_event(self.db, AuditEntry(
            event_type=AuditEventType.STAFF_CREATED,
            creator_id=str(self.staff_account.id),
            target_id=str(account.id),
            description=f"Created {role.value} account for {email}",
            gym_id=min(gym_ids),
            gym_chain_id=chain_id,
        ))

        user = None
        if self.auth0_client is not None:
            try:
                user = self.auth0_client.create_user(
                    email=email,
                    name=name,
                    role=role.value,
                    password=request.password,
                )
            except Auth0Error as e:
                self.db.rollback()
                logger.error(
                    "Staff account provisioning failed",
                    extra={"email_domain": email.split("@")[-1], "error": e.message},
                )
                raise UnavailableError(
                    "Failed to create user in identity provider",
                    details={"status_code": e.status_code},
                ) from e
            account.external_id = user.user_id

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Failed to store staff account",
                extra={"email_domain": email.split("@")[-1], "error": str(e)},
                exc_info=True,
            )
            if user is not None:
                self._remove_provisioned_user(user.user_id)
            raise InternalError(
                "Failed to store staff account",
                details={"email_domain": email.split("@")[-1]},
            ) from e

        logger.info(
            "Staff account created",
            extra={
                "staff_account_id": account.id,
                "created_by": self.staff_account.id,
                "role": role.value,
                "gym_ids": sorted(gym_ids),
            },
        )
        return account

    def _remove_provisioned_user(self, user_id: str) -> None:
        """Delete an identity provider user whose staff account was not stored."""
        try:
            self.auth0_client.delete_user(user_id)
        except Auth0Error as e:
            logger.error(
                "Failed to remove identity provider user after storage failure",
                extra={"user_id": user_id, "error": e.message},
            )


def _as_ids(values: Iterable[Any]) -> List[int]:
    try:
        return [int(value) for value in values or ()]
    except (TypeError, ValueError):
        raise ValidationError("Gym ids must be numbers")
