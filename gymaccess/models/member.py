"""
Member model.

A member is identified by the opaque subscriber id issued by the identity
provider. Profile fields beyond contact details live elsewhere.
"""

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from gymaccess.models.base import Base, TimestampMixin


class Member(Base, TimestampMixin):
    """A gym network member who holds a subscription and redeems passes."""

    __tablename__ = "members"

    id = Column(
        String(255),
        primary_key=True,
        comment="Opaque subscriber id from the identity provider"
    )
    email = Column(String(255), nullable=False, index=True)
    full_name = Column(String(255), nullable=True)

    subscriptions = relationship("Subscription", back_populates="member")
    passes = relationship("GymPass", back_populates="member")

    def __repr__(self) -> str:
        return f"<Member(id={self.id}, email={self.email})>"
