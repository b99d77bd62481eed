"""
Tests for the layered access decision.

Tests cover:
- Layer order: creator, purchase, subscription claim (direct then delegated)
- Purchase expiry
- Content validation applied after a grant
- Store failures propagate instead of denying
"""

import pytest
from datetime import timedelta
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from content_access.access.errors import AccessErrorCode, InfrastructureError
from content_access.access.models import AccessMethod, AccessType, CHECKED_LAYERS
from content_access.models.subscription import SubscriptionStatus
from content_access.repositories.catalog_repository import CatalogRepository


@pytest.fixture
def subscriber(make_user, make_plan, make_subscription):
    user = make_user(role="teacher")
    plan = make_plan({"game": 3, "file": True, "lesson_plan": 2})
    subscription = make_subscription(user.id, plan)
    return user, subscription


class TestLayerOrder:

    def test_creator_wins_first(self, service, make_user, make_product, make_purchase):
        creator = make_user()
        game = make_product("game", owner_id=creator.id, is_published=False)
        make_purchase(creator.id, game)

        result = service.check_access(creator.id, "game", game.id)

        assert result.has_access is True
        assert result.access_type == AccessType.CREATOR
        assert result.reason == "creator_ownership"
        assert result.allow_unpublished is True
        assert result.is_lifetime_access is True
        assert result.checked_layers == ["creator"]

    def test_lifetime_purchase(self, service, make_user, make_product, make_purchase):
        buyer = make_user()
        file_product = make_product("file")
        make_purchase(buyer.id, file_product)

        result = service.check_access(buyer.id, "file", file_product.id)

        assert result.access_type == AccessType.PURCHASE
        assert result.reason == "valid_purchase"
        assert result.is_lifetime_access is True
        assert result.expires_at is None
        assert result.checked_layers == ["creator", "purchase"]

    def test_expiring_purchase_reports_expiry(self, service, make_user, make_product, make_purchase, clock):
        buyer = make_user()
        file_product = make_product("file")
        expires = clock() + timedelta(days=10)
        make_purchase(buyer.id, file_product, access_expires_at=expires)

        result = service.check_access(buyer.id, "file", file_product.id)

        assert result.has_access is True
        assert result.is_lifetime_access is False
        assert result.expires_at == expires

    def test_purchase_wins_over_claim(self, service, subscriber, make_product, make_purchase, make_claim):
        user, subscription = subscriber
        file_product = make_product("file")
        make_claim(subscription, file_product)
        make_purchase(user.id, file_product)

        result = service.check_access(user.id, "file", file_product.id)

        assert result.access_type == AccessType.PURCHASE

    def test_direct_claim(self, service, subscriber, make_product):
        user, _ = subscriber
        game = make_product("game")
        claim = service.claim_product(user.id, "game", game.id, skip_confirmation=True).claim

        result = service.check_access(user.id, "game", game.id)

        assert result.has_access is True
        assert result.access_type == AccessType.SUBSCRIPTION_CLAIM
        assert result.access_method == AccessMethod.DIRECT_SUBSCRIPTION_CLAIM
        assert result.claim_id == claim.id
        assert result.checked_layers == CHECKED_LAYERS
        assert result.capabilities["can_create_sessions"] is True

    def test_student_via_teacher(self, service, subscriber, make_user, make_product, make_assignment):
        teacher, _ = subscriber
        student = make_user(role="student")
        make_assignment(student.id, teacher.id)
        game = make_product("game")
        service.claim_product(teacher.id, "game", game.id, skip_confirmation=True)

        result = service.check_access(student.id, "game", game.id)

        assert result.has_access is True
        assert result.access_method == AccessMethod.STUDENT_VIA_TEACHER_CLAIM
        assert result.teacher_id == teacher.id
        assert result.capabilities["join_only"] is True
        assert result.to_dict()["access_method"] == "student_via_teacher_claim"


class TestDenials:

    def test_no_valid_access(self, service, make_user, make_product):
        user = make_user()
        game = make_product("game")

        result = service.check_access(user.id, "game", game.id)

        assert result.has_access is False
        assert result.reason == "no_valid_access"
        assert result.error_code == AccessErrorCode.FORBIDDEN
        assert result.checked_layers == CHECKED_LAYERS

    def test_expired_purchase_denies(self, service, make_user, make_product, make_purchase, clock):
        buyer = make_user()
        file_product = make_product("file")
        make_purchase(buyer.id, file_product, access_expires_at=clock() - timedelta(seconds=1))

        assert service.check_access(buyer.id, "file", file_product.id).has_access is False

    def test_claim_lapses_with_subscription(self, service, subscriber, make_product, db_session):
        user, subscription = subscriber
        file_product = make_product("file")
        service.claim_product(user.id, "file", file_product.id)
        subscription.status = SubscriptionStatus.EXPIRED
        db_session.commit()

        assert service.check_access(user.id, "file", file_product.id).has_access is False

    def test_unknown_content_type(self, service, make_user):
        user = make_user()

        result = service.check_access(user.id, "podcast", "p1")

        assert result.reason == "unknown_content_type"
        assert result.error_code == AccessErrorCode.NOT_FOUND

    def test_product_not_found(self, service, make_user):
        user = make_user()

        result = service.check_access(user.id, "game", "missing")

        assert result.reason == "product_not_found"
        assert result.error_code == AccessErrorCode.NOT_FOUND

    def test_unpublished_purchase_denied_by_validation(self, service, make_user, make_product, make_purchase):
        buyer = make_user()
        lesson = make_product("lesson_plan", is_published=False)
        make_purchase(buyer.id, lesson)

        result = service.check_access(buyer.id, "lesson_plan", lesson.id)

        assert result.has_access is False
        assert result.reason == "lesson_plan_not_published"
        assert result.checked_layers == ["creator", "purchase"]


class TestStoreFailures:

    def test_layer_failure_propagates(self, service, make_user, make_product):
        user = make_user()
        game = make_product("game")

        with patch.object(
            CatalogRepository,
            "find_valid_purchase",
            side_effect=InfrastructureError("find_valid_purchase"),
        ):
            with pytest.raises(InfrastructureError) as exc_info:
                service.check_access(user.id, "game", game.id)

        assert exc_info.value.operation == "find_valid_purchase"

    def test_driver_error_becomes_infrastructure_error(self, service, make_user, db_session):
        user = make_user()
        failure = OperationalError("SELECT", {}, Exception("connection reset"))

        with patch.object(db_session, "query", side_effect=failure):
            with pytest.raises(InfrastructureError) as exc_info:
                service.check_access(user.id, "game", "g1")

        assert exc_info.value.operation == "get_product"
        assert exc_info.value.http_status == 503
