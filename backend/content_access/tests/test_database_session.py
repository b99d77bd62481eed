"""
Tests for engine and session wiring.
"""

import pytest
from fastapi import HTTPException
from sqlalchemy import text

from content_access.database import session as db


@pytest.fixture(autouse=True)
def _fresh_engine():
    db.reset_engine()
    yield
    db.reset_engine()


def test_legacy_postgres_scheme_is_normalized(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db.internal:5432/catalog")

    assert db.database_url_from_env() == "postgresql://u:p@db.internal:5432/catalog"


def test_missing_url_is_503(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    with pytest.raises(HTTPException) as exc_info:
        next(db.get_db_session())

    assert exc_info.value.status_code == 503


def test_session_dependency_yields_and_closes(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")

    gen = db.get_db_session()
    db_session = next(gen)

    assert db_session.execute(text("SELECT 1")).scalar() == 1
    with pytest.raises(StopIteration):
        next(gen)


def test_engine_is_reused_until_reset(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")

    first = db.get_engine()
    assert db.get_engine() is first

    db.reset_engine()
    assert db.get_engine() is not first
