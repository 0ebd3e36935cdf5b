"""
Gym and gym chain models.

Every gym belongs to exactly one chain. Chains are the unit a chain_admin
is scoped to; gyms are the unit gym_admin/gym_staff are scoped to.
"""

from enum import Enum

from sqlalchemy import Column, String, Integer, Float, ForeignKey
from sqlalchemy.orm import relationship

from gymaccess.models.base import Base, TimestampMixin


class GymStatus(str, Enum):
    """Gym status values. Only ACTIVE gyms accept new passes."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class GymChain(Base, TimestampMixin):
    """A group of gyms under common administration."""

    __tablename__ = "gym_chains"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    logo_url = Column(String(1024), nullable=True)

    gyms = relationship("Gym", back_populates="chain")

    def __repr__(self) -> str:
        return f"<GymChain(id={self.id}, name={self.name})>"


class Gym(Base, TimestampMixin):
    """A tier-gated gym location."""

    __tablename__ = "gyms"

    id = Column(Integer, primary_key=True, autoincrement=True)

    chain_id = Column(
        Integer,
        ForeignKey("gym_chains.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    name = Column(String(255), nullable=False, index=True)
    address = Column(String(512), nullable=True)
    postcode = Column(String(32), nullable=True)
    city = Column(String(128), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    phone = Column(String(64), nullable=True)
    image_url = Column(String(1024), nullable=True)

    required_tier = Column(
        String(50),
        nullable=False,
        default="standard",
        comment="Minimum subscription tier that may enter"
    )

    status = Column(
        String(50),
        nullable=False,
        default=GymStatus.ACTIVE.value,
        index=True,
    )

    chain = relationship("GymChain", back_populates="gyms")
    passes = relationship("GymPass", back_populates="gym")

    @property
    def is_active(self) -> bool:
        return self.status == GymStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<Gym(id={self.id}, chain_id={self.chain_id}, name={self.name})>"
