"""
Pass Service - issues gym passes and answers pass lookups.

Provides:
- issue_pass(member_id, gym_id) -> IssuedPass
- find_active_pass(member_id) -> GymPass | None
- find_pass_history(member_id, status=None) -> list[GymPass]

CRITICAL CONCURRENCY CONTRACT:
issue_pass runs in ONE transaction whose FIRST statement is a conditional
quota claim:

    UPDATE subscriptions SET visits_used = visits_used + 1
    WHERE member_id = ? AND status = 'active' AND visits_used < monthly_limit

The claim holds the subscription row lock (PostgreSQL) or the database
write lock (SQLite) until commit, so concurrent issuers for one member run
one after another and every later check reads post-lock state. Any failure
rolls the transaction back, which undoes the claim. Pass issuance therefore
cannot exceed the quota and cannot leave two passes with valid_until > now.

Callers MUST hand in a session with no transaction in progress.

Notification is fire-and-forget and only happens after commit.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gymaccess.config.pass_policy import PassPolicy, get_pass_policy
from gymaccess.entitlements.models import Entitlement
from gymaccess.entitlements.service import EntitlementResolver
from gymaccess.models.base import utc_now
from gymaccess.models.gym import Gym
from gymaccess.models.gym_pass import GymPass, PassStatus
from gymaccess.models.member import Member
from gymaccess.models.subscription import Subscription, SubscriptionStatus
from gymaccess.platform.audit import AuditEntry, AuditEventType, append_audit_event
from gymaccess.platform.errors import ConflictError, GymAccessError, InternalError
from gymaccess.services.email_sender import PassEmail
from gymaccess.services.notification_dispatcher import (
    NotificationDispatcher,
    get_notification_dispatcher,
)
from gymaccess.services.pass_codes import generate_pass_code, qr_code_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedPass:
    """Result of a successful issuance."""
    pass_id: int
    pass_code: str
    valid_until: datetime
    gym_id: int
    qrcode_url: Optional[str]
    subscription_tier: str
    pass_cost: Decimal


class PassCodeExhaustedError(InternalError):
    """Every generated pass code collided with an existing one."""

    error_code = "pass_code_exhausted"


class PassService:
    """Service for issuing and looking up gym passes."""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utc_now,
        policy: Optional[PassPolicy] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        code_generator: Callable[[str, int], str] = generate_pass_code,
    ):
        self.db = db
        self.clock = clock
        self.policy = policy or get_pass_policy()
        self._dispatcher = dispatcher
        self.code_generator = code_generator
        self.resolver = EntitlementResolver(db, clock=clock)

    @property
    def dispatcher(self) -> NotificationDispatcher:
        if self._dispatcher is None:
            self._dispatcher = get_notification_dispatcher()
        return self._dispatcher

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def issue_pass(self, member_id: str, gym_id: int) -> IssuedPass:
        """
        Issue a new pass for a member at a gym.

        Raises:
            NoActiveSubscriptionError, QuotaExceededError,
            DuplicateActivePassError, GymNotFoundError, GymInactiveError,
            TierNotAllowedError: entitlement failures, unchanged
            InternalError: anything unexpected, chained to the cause
        """
        try:
            issued, email = self._issue_in_transaction(member_id, gym_id)
        except GymAccessError as e:
            self.db.rollback()
            logger.info(
                "Pass issuance refused",
                extra={
                    "member_id": member_id,
                    "gym_id": gym_id,
                    "error_code": e.error_code,
                },
            )
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(
                "Pass issuance failed",
                extra={"member_id": member_id, "gym_id": gym_id, "error": str(e)},
                exc_info=True,
            )
            raise InternalError(
                "Pass issuance failed",
                details={"member_id": member_id, "gym_id": gym_id},
            ) from e

        logger.info(
            "Pass issued",
            extra={
                "member_id": member_id,
                "gym_id": gym_id,
                "pass_id": issued.pass_id,
                "pass_code": issued.pass_code,
                "valid_until": issued.valid_until.isoformat(),
            },
        )

        if email is not None:
            self._notify(email)
        return issued

    def _issue_in_transaction(self, member_id: str, gym_id: int):
        self._claim_visit(member_id)

        entitlement = self.resolver.check_entitlement(member_id, gym_id, quota_claimed=True)

        now = self.clock()
        gym_pass = self._insert_pass(entitlement, valid_until=now + self.policy.validity)

        gym = self.db.get(Gym, gym_id)
        append_audit_event(self.db, AuditEntry(
            event_type=AuditEventType.PASS_ISSUED,
            creator_id=member_id,
            target_id=str(gym_pass.id),
            description=f"Pass {gym_pass.pass_code} issued for {gym.name}",
            gym_id=gym.id,
            gym_chain_id=gym.chain_id,
        ))

        email = self._build_email(member_id, gym, gym_pass)

        issued = IssuedPass(
            pass_id=gym_pass.id,
            pass_code=gym_pass.pass_code,
            valid_until=gym_pass.valid_until,
            gym_id=gym.id,
            qrcode_url=gym_pass.qrcode_url,
            subscription_tier=gym_pass.subscription_tier,
            pass_cost=entitlement.pass_cost,
        )
        self.db.commit()
        return issued, email

    def _claim_visit(self, member_id: str) -> None:
        """Conditionally take one visit from the member's quota."""
        result = self.db.execute(
            update(Subscription)
            .where(
                Subscription.member_id == member_id,
                Subscription.status == SubscriptionStatus.ACTIVE.value,
                Subscription.visits_used < Subscription.monthly_limit,
            )
            .values(visits_used=Subscription.visits_used + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return

        # Nothing claimable: report why
        self.resolver.explain_failed_claim(member_id)
        raise ConflictError(
            "Subscription changed during pass issuance, please retry",
            details={"member_id": member_id},
        )

    def _insert_pass(self, entitlement: Entitlement, valid_until: datetime) -> GymPass:
        """Insert the pass, retrying with a fresh code on a unique violation."""
        attempts = self.policy.code_max_attempts
        last_error: Optional[IntegrityError] = None

        for attempt in range(1, attempts + 1):
            code = self.code_generator(self.policy.pass_code_prefix, self.policy.pass_code_length)
            gym_pass = GymPass(
                member_id=entitlement.member_id,
                gym_id=entitlement.gym_id,
                pass_code=code,
                status=PassStatus.ACTIVE.value,
                valid_until=valid_until,
                qrcode_url=qr_code_url(code, self.policy.qr_code_url_template),
                subscription_tier=entitlement.tier,
                pass_cost=entitlement.pass_cost,
            )
            try:
                with self.db.begin_nested():
                    self.db.add(gym_pass)
                    self.db.flush()
                return gym_pass
            except IntegrityError as e:
                last_error = e
                logger.warning(
                    "Pass code collision, retrying",
                    extra={"attempt": attempt, "max_attempts": attempts},
                )

        raise PassCodeExhaustedError(
            "Could not generate a unique pass code",
            details={"attempts": attempts},
        ) from last_error

    # ------------------------------------------------------------------
    # Notification
    # ------------------------------------------------------------------

    def _build_email(self, member_id: str, gym: Gym, gym_pass: GymPass) -> Optional[PassEmail]:
        member = self.db.get(Member, member_id)
        if member is None or not member.email:
            logger.warning(
                "No contact email for member, skipping pass notification",
                extra={"member_id": member_id, "pass_id": gym_pass.id},
            )
            return None

        return PassEmail(
            to_email=member.email,
            recipient_name=member.full_name,
            gym_name=gym.name,
            pass_code=gym_pass.pass_code,
            pass_qr_url=gym_pass.qrcode_url,
            gym_address=gym.address,
            gym_postcode=gym.postcode,
            gym_city=gym.city,
            gym_latitude=gym.latitude,
            gym_longitude=gym.longitude,
        )

    def _notify(self, email: PassEmail) -> None:
        try:
            self.dispatcher.submit(email)
        except Exception as e:
            logger.error(
                "Failed to queue pass notification",
                extra={"pass_code": email.pass_code, "error": str(e)},
                exc_info=True,
            )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_active_pass(self, member_id: str) -> Optional[GymPass]:
        """The member's pass with valid_until in the future, if any."""
        return (
            self.db.query(GymPass)
            .filter(
                GymPass.member_id == member_id,
                GymPass.valid_until.is_not(None),
                GymPass.valid_until > self.clock(),
            )
            .order_by(GymPass.id.desc())
            .first()
        )

    def find_pass_history(
        self,
        member_id: str,
        status: Optional[str] = None,
    ) -> List[GymPass]:
        """All of a member's passes, newest first, optionally by status."""
        query = self.db.query(GymPass).filter(GymPass.member_id == member_id)
        if status:
            query = query.filter(GymPass.status == status.strip().lower())
        return query.order_by(GymPass.id.desc()).all()
