"""
Subscription model for member tiers and monthly pass quota.

CRITICAL: At most one ACTIVE subscription per member. Storage does not
enforce this; the subscription write path does.
"""

from enum import Enum

from sqlalchemy import (
    Column, String, Integer, Numeric, DateTime, ForeignKey, Index
)
from sqlalchemy.orm import relationship

from gymaccess.models.base import Base, TimestampMixin


class SubscriptionStatus(str, Enum):
    """Subscription status values."""
    ACTIVE = "active"
    CANCELLED = "cancelled"


class Subscription(Base, TimestampMixin):
    """
    A member's subscription tier and quota usage for the current period.

    visits_used is only ever incremented through the conditional claim in
    the pass service, so it cannot move past monthly_limit.
    """

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)

    member_id = Column(
        String(255),
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    tier = Column(
        String(50),
        nullable=False,
        comment="standard | premium | elite"
    )

    monthly_limit = Column(Integer, nullable=False, default=0)
    visits_used = Column(Integer, nullable=False, default=0)
    guest_passes_limit = Column(Integer, nullable=False, default=0)
    guest_passes_used = Column(Integer, nullable=False, default=0)
    price = Column(Numeric(10, 2), nullable=True)

    status = Column(
        String(50),
        nullable=False,
        default=SubscriptionStatus.ACTIVE.value,
        index=True,
    )

    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)

    member = relationship("Member", back_populates="subscriptions")

    __table_args__ = (
        Index("ix_subscriptions_member_status", "member_id", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE.value

    @property
    def remaining_visits(self) -> int:
        return max(0, (self.monthly_limit or 0) - (self.visits_used or 0))

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.id}, member_id={self.member_id}, "
            f"tier={self.tier}, used={self.visits_used}/{self.monthly_limit})>"
        )
