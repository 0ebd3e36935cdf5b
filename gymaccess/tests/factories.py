"""
Row factories shared by the test modules.

Each factory commits, so the session holds no open transaction when the
service under test starts.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from gymaccess.models import (
    Gym,
    GymChain,
    GymPass,
    Member,
    PassPricing,
    StaffAccount,
    Subscription,
)

NOW = datetime(2026, 5, 4, 9, 30, tzinfo=timezone.utc)


def seed_chain(session: Session, chain_id: int, name: str = None) -> GymChain:
    chain = GymChain(id=chain_id, name=name or f"Chain {chain_id}")
    session.add(chain)
    session.commit()
    return chain


def seed_gym(
    session: Session,
    gym_id: int,
    chain_id: int,
    required_tier: str = "standard",
    status: str = "active",
    name: str = None,
    city: str = "Manchester",
) -> Gym:
    gym = Gym(
        id=gym_id,
        chain_id=chain_id,
        name=name or f"Gym {gym_id}",
        address=f"{gym_id} High Street",
        postcode="M1 1AA",
        city=city,
        latitude=53.48,
        longitude=-2.24,
        required_tier=required_tier,
        status=status,
    )
    session.add(gym)
    session.commit()
    return gym


def seed_member(
    session: Session,
    member_id: str = "auth0|member-1",
    email: str = "member@example.com",
    full_name: str = "Sam Member",
) -> Member:
    member = Member(id=member_id, email=email, full_name=full_name)
    session.add(member)
    session.commit()
    return member


def seed_subscription(
    session: Session,
    member_id: str = "auth0|member-1",
    tier: str = "standard",
    monthly_limit: int = 5,
    visits_used: int = 0,
    status: str = "active",
) -> Subscription:
    subscription = Subscription(
        member_id=member_id,
        tier=tier,
        monthly_limit=monthly_limit,
        visits_used=visits_used,
        status=status,
        price=Decimal("29.99"),
    )
    session.add(subscription)
    session.commit()
    return subscription


def seed_pricing(session: Session, tier: str, price: str) -> PassPricing:
    pricing = PassPricing(tier=tier, default_price=Decimal(price))
    session.add(pricing)
    session.commit()
    return pricing


def seed_pass(
    session: Session,
    member_id: str,
    gym_id: int,
    pass_code: str,
    valid_until=None,
    status: str = "active",
    tier: str = "standard",
) -> GymPass:
    gym_pass = GymPass(
        member_id=member_id,
        gym_id=gym_id,
        pass_code=pass_code,
        status=status,
        valid_until=valid_until,
        subscription_tier=tier,
        pass_cost=Decimal("0"),
    )
    session.add(gym_pass)
    session.commit()
    return gym_pass


def seed_staff(
    session: Session,
    role: str,
    email: str,
    chain_id: int = None,
    gym_ids=(),
    permission: str = "write",
) -> StaffAccount:
    gyms = session.query(Gym).filter(Gym.id.in_(list(gym_ids))).all() if gym_ids else []
    account = StaffAccount(
        email=email,
        name=email.split("@")[0],
        role=role,
        permission=permission,
        chain_id=chain_id,
        gyms=gyms,
    )
    session.add(account)
    session.commit()
    return account
