"""Unit tests for SwipeService: validation, upsert and detection hand-off."""
import pytest
import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.exc import OperationalError

from lensmatch.errors import NotFoundError, TransientStoreError, ValidationError
from lensmatch.models import Swipe
from lensmatch.services.swipe_service import SwipeService


@pytest.fixture
def matching_service():
    service = MagicMock()
    service.detect_match = AsyncMock(
        return_value={"matched": True, "match_id": uuid.uuid4(), "thread_id": uuid.uuid4()}
    )
    return service


@pytest.fixture
def swipe_service(matching_service):
    return SwipeService(matching_service=matching_service)


class TestValidation:
    """Caller faults are rejected before any I/O."""

    async def test_self_swipe_rejected(self, swipe_service, count_rows):
        user_id = uuid.uuid4()
        session = AsyncMock()
        with pytest.raises(ValidationError):
            await swipe_service.record_swipe(user_id, user_id, "like", session)
        session.get.assert_not_called()
        session.execute.assert_not_called()
        assert await count_rows(Swipe) == 0

    @pytest.mark.parametrize("direction", ["right", "LIKE", "", "superlike"])
    async def test_unknown_direction_rejected(self, swipe_service, direction):
        session = AsyncMock()
        with pytest.raises(ValidationError):
            await swipe_service.record_swipe(uuid.uuid4(), uuid.uuid4(), direction, session)
        session.execute.assert_not_called()

    async def test_unknown_target(self, swipe_service, make_user, db_session, count_rows):
        swiper = await make_user()
        with pytest.raises(NotFoundError):
            await swipe_service.record_swipe(swiper, uuid.uuid4(), "like", db_session)
        assert await count_rows(Swipe) == 0


class TestUpsert:
    """One row per ordered pair; the latest direction wins."""

    async def test_pass_recorded_without_detection(
        self, swipe_service, matching_service, make_user, db_session, fetch_one
    ):
        swiper = await make_user()
        target = await make_user()

        result = await swipe_service.record_swipe(swiper, target, "pass", db_session)

        assert result == {"matched": False, "match_id": None, "thread_id": None}
        matching_service.detect_match.assert_not_called()
        row = await fetch_one(Swipe, Swipe.swiper_id == swiper, Swipe.target_id == target)
        assert row.direction == "pass"

    async def test_like_delegates_to_detection(
        self, swipe_service, matching_service, make_user, db_session, now
    ):
        swiper = await make_user()
        target = await make_user()

        result = await swipe_service.record_swipe(swiper, target, "like", db_session, now=now)

        assert result == matching_service.detect_match.return_value
        matching_service.detect_match.assert_awaited_once_with(
            swiper, target, db_session, now=now
        )

    async def test_reswipe_updates_existing_row(
        self, swipe_service, make_user, db_session, count_rows, fetch_one, now
    ):
        """pass then like mutates the same row instead of inserting a second."""
        swiper = await make_user()
        target = await make_user()

        await swipe_service.record_swipe(swiper, target, "pass", db_session, now=now)
        first = await fetch_one(Swipe, Swipe.swiper_id == swiper)
        later = now + timedelta(minutes=5)
        await swipe_service.record_swipe(swiper, target, "like", db_session, now=later)
        second = await fetch_one(Swipe, Swipe.swiper_id == swiper)

        assert await count_rows(Swipe) == 1
        assert second.id == first.id
        assert second.direction == "like"
        assert second.updated_at > first.updated_at
        assert second.created_at == first.created_at

    async def test_direction_is_per_ordered_pair(self, swipe_service, make_user, db_session, count_rows):
        a = await make_user()
        b = await make_user()

        await swipe_service.record_swipe(a, b, "pass", db_session)
        await swipe_service.record_swipe(b, a, "pass", db_session)

        assert await count_rows(Swipe) == 2

    async def test_no_detection_without_matching_service(self, make_user, db_session):
        service = SwipeService()
        a = await make_user()
        b = await make_user()
        result = await service.record_swipe(a, b, "like", db_session)
        assert result["matched"] is False


class TestStorageFailures:
    """Persistence errors surface as one opaque retryable error."""

    async def test_lookup_failure(self, swipe_service):
        session = AsyncMock()
        session.get.side_effect = OperationalError("SELECT", {}, Exception("connection reset"))

        with pytest.raises(TransientStoreError, match="Failed to record swipe"):
            await swipe_service.record_swipe(uuid.uuid4(), uuid.uuid4(), "like", session)
        session.rollback.assert_awaited_once()

    async def test_unknown_swiper_violates_foreign_key(self, swipe_service, make_user, db_session, count_rows):
        target = await make_user()
        with pytest.raises(TransientStoreError):
            await swipe_service.record_swipe(uuid.uuid4(), target, "pass", db_session)
        assert await count_rows(Swipe) == 0
