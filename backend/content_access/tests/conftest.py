"""
Shared test configuration and fixtures.

Provides a fresh in-memory SQLite database per test, a controllable clock
and factories for catalog, subscription and delegation rows.

Config fixtures:
- temp_config_dir: Temporary directory for YAML config files
- make_yaml_config: Factory for writing YAML configs to temp dir
"""

import os
import tempfile
import uuid
import pytest
import yaml
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ.setdefault("ENV", "test")

from content_access.access.cache import TTLCache
from content_access.access.usage import ClaimUsage
from content_access.config.settings import AccessSettings, reset_access_settings
from content_access.db_base import Base
from content_access.models import (
    ClaimStatus,
    ClassroomMembership,
    MembershipStatus,
    PaymentStatus,
    Product,
    Purchase,
    Subscription,
    SubscriptionClaim,
    SubscriptionPlan,
    SubscriptionStatus,
    TeacherAssignment,
    User,
)
from content_access.services.content_access_service import ContentAccessService
from content_access.services.delegated_access import reset_delegate_cache

FIXED_NOW = datetime(2025, 11, 15, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


# =============================================================================
# Database
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """
    In-memory SQLite engine, recreated for every test.

    Services commit and roll back their own transactions, so isolation comes
    from a fresh database rather than an outer rollback.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    from content_access import models  # noqa: F401 - registers tables

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()

    yield session

    session.close()


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Each test starts without cached settings or delegates."""
    reset_access_settings()
    reset_delegate_cache()
    yield
    reset_access_settings()
    reset_delegate_cache()


# =============================================================================
# Clock, settings, service
# =============================================================================

@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(FIXED_NOW)


@pytest.fixture
def settings() -> AccessSettings:
    return AccessSettings()


@pytest.fixture
def delegate_cache(clock) -> TTLCache:
    return TTLCache(ttl_seconds=300, max_size=100, clock=clock)


@pytest.fixture
def service(db_session, clock, settings, delegate_cache) -> ContentAccessService:
    return ContentAccessService(db_session, clock=clock, settings=settings, delegate_cache=delegate_cache)


# =============================================================================
# Factories
# =============================================================================

def _id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def make_user(db_session):
    def _make(role: str = "user", birth_date=None, user_id: Optional[str] = None) -> User:
        user = User(id=user_id or _id(role), role=role, birth_date=birth_date)
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture
def make_product(db_session):
    def _make(
        content_type: str = "game",
        owner_id: Optional[str] = None,
        is_published: bool = True,
        type_attributes: Optional[dict] = None,
        bundle_items: Optional[list] = None,
        product_id: Optional[str] = None,
    ) -> Product:
        product = Product(
            id=product_id or _id(content_type),
            content_type=content_type,
            title=f"Test {content_type}",
            owner_id=owner_id,
            is_published=is_published,
            type_attributes=type_attributes,
            bundle_items=bundle_items,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture
def make_plan(db_session):
    def _make(benefits: dict, name: str = "Educator") -> SubscriptionPlan:
        plan = SubscriptionPlan(id=_id("plan"), name=name, benefits=benefits, price_cents=1500)
        db_session.add(plan)
        db_session.commit()
        return plan
    return _make


@pytest.fixture
def make_subscription(db_session, clock):
    def _make(
        user_id: str,
        plan: SubscriptionPlan,
        status: str = SubscriptionStatus.ACTIVE,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        plan_snapshot: Optional[dict] = None,
    ) -> Subscription:
        subscription = Subscription(
            id=_id("sub"),
            user_id=user_id,
            plan_id=plan.id,
            status=status,
            start_date=start_date or clock() - timedelta(days=30),
            end_date=end_date,
            plan_snapshot=plan_snapshot,
        )
        db_session.add(subscription)
        db_session.commit()
        return subscription
    return _make


@pytest.fixture
def make_purchase(db_session):
    def _make(
        buyer_id: str,
        product: Product,
        payment_status: str = PaymentStatus.COMPLETED,
        access_expires_at: Optional[datetime] = None,
    ) -> Purchase:
        purchase = Purchase(
            id=_id("purchase"),
            buyer_id=buyer_id,
            content_type=product.content_type,
            content_id=product.id,
            payment_status=payment_status,
            amount_cents=990,
            access_expires_at=access_expires_at,
        )
        db_session.add(purchase)
        db_session.commit()
        return purchase
    return _make


@pytest.fixture
def make_claim(db_session, clock):
    """Insert a claim row directly, bypassing the arbiter."""
    def _make(
        subscription: Subscription,
        product: Product,
        period: str = "2025-11",
        status: str = ClaimStatus.ACTIVE,
        parent_claim_id: Optional[str] = None,
    ) -> SubscriptionClaim:
        claim = SubscriptionClaim(
            id=_id("claim"),
            user_id=subscription.user_id,
            subscription_id=subscription.id,
            content_type=product.content_type,
            content_id=product.id,
            period=period,
            status=status,
            claimed_at=clock(),
            parent_claim_id=parent_claim_id,
            usage=ClaimUsage.initial(clock()).to_dict(),
        )
        db_session.add(claim)
        db_session.commit()
        return claim
    return _make


@pytest.fixture
def make_assignment(db_session):
    def _make(student_id: str, teacher_id: str, is_active: bool = True) -> TeacherAssignment:
        assignment = TeacherAssignment(
            id=_id("assign"),
            student_id=student_id,
            teacher_id=teacher_id,
            is_active=is_active,
        )
        db_session.add(assignment)
        db_session.commit()
        return assignment
    return _make


@pytest.fixture
def make_membership(db_session):
    def _make(
        student_id: str,
        teacher_id: Optional[str],
        status: str = MembershipStatus.ACTIVE,
        classroom_id: Optional[str] = None,
    ) -> ClassroomMembership:
        membership = ClassroomMembership(
            id=_id("member"),
            classroom_id=classroom_id or _id("classroom"),
            student_id=student_id,
            teacher_id=teacher_id,
            status=status,
        )
        db_session.add(membership)
        db_session.commit()
        return membership
    return _make


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow-running")


# =============================================================================
# Shared Config Fixtures
# =============================================================================


@pytest.fixture
def temp_config_dir():
    """Create a temporary directory for YAML config files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_yaml_config(temp_config_dir):
    """
    Factory fixture that writes a YAML config file and returns its path.

    Usage:
        config_path = make_yaml_config("content_access.yml", {"period_timezone": "UTC"})
    """
    def _make(filename: str, config: dict) -> Path:
        config_path = temp_config_dir / filename
        with open(config_path, "w") as f:
            yaml.dump(config, f)
        return config_path
    return _make
