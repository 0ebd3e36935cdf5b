"""
Root test configuration and fixtures.

Provides SQLite-backed database fixtures, a pinned clock and factories for
the rows most tests need.

- db_engine: in-memory SQLite (one shared connection)
- file_engine: file-backed SQLite for tests that use several connections
  (threads, background scheduler)
"""

import os
from typing import Generator
from unittest.mock import Mock

import pytest
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("ENV", "test")
os.environ.setdefault("NOTIFICATION_EMAIL_PROVIDER", "mock")

from gymaccess.config.pass_policy import PassPolicy, reset_pass_policy_loader
from gymaccess.database.session import build_engine
from gymaccess.db_base import Base
from gymaccess.tests.factories import NOW, seed_chain, seed_gym
from gymaccess.platform import audit  # noqa: F401 - audit_events table
from gymaccess.services.notification_dispatcher import (
    NotificationDispatcher,
    reset_notification_dispatcher,
)


def _create_schema(engine):
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Drop cached policy and dispatcher between tests."""
    reset_pass_policy_loader()
    reset_notification_dispatcher()
    yield
    reset_pass_policy_loader()
    reset_notification_dispatcher()


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with the full schema."""
    engine = _create_schema(build_engine("sqlite://"))
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite engine; each thread gets its own connection."""
    engine = _create_schema(build_engine(f"sqlite:///{tmp_path / 'gymaccess.db'}"))
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    """Session on the in-memory engine."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    """Pinned clock returning NOW."""
    return lambda: NOW


@pytest.fixture
def policy():
    """Built-in pass policy, independent of config files and env."""
    return PassPolicy()


@pytest.fixture
def dispatcher():
    """Notification dispatcher double."""
    return Mock(spec=NotificationDispatcher)


@pytest.fixture
def network(db_session):
    """
    Two chains with gyms of every tier.

    chain 5: gyms 10 (standard), 11 (premium), 12 (elite), 13 (inactive)
    chain 6: gym 20 (standard)
    """
    seed_chain(db_session, 5, "Iron Works")
    seed_chain(db_session, 6, "Pulse")
    seed_gym(db_session, 10, 5, "standard", name="Iron Works Ancoats")
    seed_gym(db_session, 11, 5, "premium", name="Iron Works Deansgate")
    seed_gym(db_session, 12, 5, "elite", name="Iron Works Spinningfields")
    seed_gym(db_session, 13, 5, "standard", status="inactive", name="Iron Works Salford")
    seed_gym(db_session, 20, 6, "standard", name="Pulse Leeds", city="Leeds")
    return db_session
