"""Tests for engine construction and session helpers."""

import asyncio

import pytest
from fastapi import HTTPException
from sqlalchemy import text
from sqlalchemy.pool import StaticPool

from gymaccess.database.session import (
    build_engine,
    get_db_session,
    get_db_session_sync,
    normalize_database_url,
    reset_engine,
)


@pytest.fixture(autouse=True)
def _reset_engine():
    reset_engine()
    yield
    reset_engine()


@pytest.mark.parametrize("url,expected", [
    ("postgres://u:p@db:5432/gyms", "postgresql://u:p@db:5432/gyms"),
    ("postgresql://u:p@db:5432/gyms", "postgresql://u:p@db:5432/gyms"),
    ("sqlite:///gyms.db", "sqlite:///gyms.db"),
])
def test_normalize_database_url(url, expected):
    assert normalize_database_url(url) == expected


def test_in_memory_engine_shares_one_connection():
    engine = build_engine("sqlite://")
    try:
        assert isinstance(engine.pool, StaticPool)
    finally:
        engine.dispose()


def test_sqlite_engine_supports_savepoints(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'savepoints.db'}")
    try:
        with engine.connect() as conn:
            with conn.begin():
                conn.execute(text("CREATE TABLE t (v INTEGER)"))
                conn.execute(text("INSERT INTO t VALUES (1)"))
                nested = conn.begin_nested()
                conn.execute(text("INSERT INTO t VALUES (2)"))
                nested.rollback()
            assert conn.execute(text("SELECT v FROM t")).scalars().all() == [1]
    finally:
        engine.dispose()


def test_sync_session_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    with pytest.raises(RuntimeError):
        next(get_db_session_sync())


def test_sync_session_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'env.db'}")

    sessions = get_db_session_sync()
    session = next(sessions)
    assert session.execute(text("SELECT 1")).scalar() == 1
    sessions.close()


def test_request_session_unconfigured_is_503(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    async def first_session():
        return await get_db_session().__anext__()

    with pytest.raises(HTTPException) as exc_info:
        asyncio.run(first_session())

    assert exc_info.value.status_code == 503
