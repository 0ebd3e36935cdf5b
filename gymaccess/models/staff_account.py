"""
Staff account model.

Scope fields:
- chain_admin accounts carry a single chain_id
- gym_admin / gym_staff accounts carry a set of assigned gyms

Assignment is owned by the staff provisioning flow; scope resolution treats
whatever is stored here as given input.
"""

from sqlalchemy import Column, String, Integer, ForeignKey, Table
from sqlalchemy.orm import relationship

from gymaccess.constants.roles import StaffPermission
from gymaccess.models.base import Base, TimestampMixin


staff_account_gyms = Table(
    "staff_account_gyms",
    Base.metadata,
    Column(
        "staff_account_id",
        Integer,
        ForeignKey("staff_accounts.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "gym_id",
        Integer,
        ForeignKey("gyms.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class StaffAccount(Base, TimestampMixin):
    """An administrator or front-desk account scoped to a chain or gym set."""

    __tablename__ = "staff_accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)

    external_id = Column(
        String(255),
        nullable=True,
        unique=True,
        comment="Identity provider user id"
    )
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=True)

    role = Column(String(50), nullable=False)
    permission = Column(
        String(20),
        nullable=False,
        default=StaffPermission.WRITE.value,
    )

    chain_id = Column(
        Integer,
        ForeignKey("gym_chains.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Set for chain_admin accounts only"
    )

    created_by = Column(
        Integer,
        ForeignKey("staff_accounts.id", ondelete="SET NULL"),
        nullable=True,
    )

    gyms = relationship("Gym", secondary=staff_account_gyms, lazy="selectin")

    @property
    def gym_ids(self) -> frozenset:
        return frozenset(gym.id for gym in self.gyms)

    def __repr__(self) -> str:
        return f"<StaffAccount(id={self.id}, email={self.email}, role={self.role})>"
