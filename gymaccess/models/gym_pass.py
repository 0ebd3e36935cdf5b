"""
Gym pass and pass pricing models.

A GymPass is a time-boxed entry token for one member at one gym. Its
status moves ACTIVE -> EXPIRED only through the expiration sweeper.
"""

from enum import Enum

from sqlalchemy import (
    Column, String, Integer, Numeric, DateTime, ForeignKey, Index
)
from sqlalchemy.orm import relationship

from gymaccess.models.base import Base, TimestampMixin


class PassStatus(str, Enum):
    """Gym pass status values."""
    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"


class GymPass(Base, TimestampMixin):
    """
    An issued gym pass.

    pass_code is unique at the storage layer; subscription_tier and
    pass_cost are snapshots taken at issuance and never updated.
    """

    __tablename__ = "gym_passes"

    id = Column(Integer, primary_key=True, autoincrement=True)

    member_id = Column(
        String(255),
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    gym_id = Column(
        Integer,
        ForeignKey("gyms.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    pass_code = Column(String(64), nullable=False, unique=True)

    status = Column(
        String(50),
        nullable=False,
        default=PassStatus.ACTIVE.value,
        index=True,
    )

    valid_until = Column(DateTime(timezone=True), nullable=True)
    used_at = Column(DateTime(timezone=True), nullable=True)
    qrcode_url = Column(String(1024), nullable=True)

    subscription_tier = Column(String(50), nullable=False)
    pass_cost = Column(Numeric(10, 2), nullable=False, default=0)

    member = relationship("Member", back_populates="passes")
    gym = relationship("Gym", back_populates="passes")

    __table_args__ = (
        Index("ix_gym_passes_member_valid_until", "member_id", "valid_until"),
        Index("ix_gym_passes_status_valid_until", "status", "valid_until"),
    )

    def __repr__(self) -> str:
        return (
            f"<GymPass(id={self.id}, code={self.pass_code}, "
            f"member_id={self.member_id}, status={self.status})>"
        )


class PassPricing(Base, TimestampMixin):
    """Default cost charged to a gym for one pass, keyed by subscription tier."""

    __tablename__ = "pass_pricing"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tier = Column(String(50), nullable=False, unique=True)
    default_price = Column(Numeric(10, 2), nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<PassPricing(tier={self.tier}, default_price={self.default_price})>"
