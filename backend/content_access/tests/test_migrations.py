"""
Tests for the baseline schema migration.
"""

import importlib.util
from pathlib import Path

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

VERSIONS_DIR = Path(__file__).resolve().parents[2] / "alembic" / "versions"


def _load_revision(name: str):
    spec = importlib.util.spec_from_file_location(name, VERSIONS_DIR / f"{name}.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_baseline_creates_and_drops_access_tables():
    migration = _load_revision("4b7e1c9a2d30_content_access_baseline")
    engine = create_engine("sqlite:///:memory:")

    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            migration.upgrade()
        tables = set(inspect(conn).get_table_names())

        with Operations.context(MigrationContext.configure(conn)):
            migration.downgrade()
        remaining = set(inspect(conn).get_table_names())

    assert {
        "users",
        "products",
        "purchases",
        "subscription_plans",
        "subscriptions",
        "subscription_claims",
        "teacher_assignments",
        "classroom_memberships",
    } <= tables
    assert remaining == set()
    assert migration.down_revision is None
