"""
Lensmatch Discover: Swipe recording.

One row per ordered (swiper, target) pair, written with a native
``INSERT ... ON CONFLICT DO UPDATE`` so a repeated swipe overwrites the
earlier direction.  A ``like`` hands over to ``MatchingService``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lensmatch.errors import NotFoundError, TransientStoreError, ValidationError
from lensmatch.models.match import SWIPE_DIRECTIONS, Swipe
from lensmatch.models.user import User

logger = structlog.get_logger("lensmatch.swipe_service")

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _upsert_statement(dialect_name: str, values: dict, now: datetime):
    try:
        insert = _UPSERT_DIALECTS[dialect_name]
    except KeyError:
        raise NotImplementedError(f"Swipe upsert is not supported on {dialect_name}")

    stmt = insert(Swipe).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=[Swipe.swiper_id, Swipe.target_id],
        set_={"direction": stmt.excluded.direction, "updated_at": now},
    )


class SwipeService:
    """Records like/pass decisions and triggers match detection on likes."""

    def __init__(self, matching_service: Any | None = None) -> None:
        self.matching_service = matching_service

    async def record_swipe(
        self,
        swiper_id: uuid.UUID,
        target_id: uuid.UUID,
        direction: str,
        db_session: AsyncSession,
        now: datetime | None = None,
    ) -> dict:
        """Upsert the swipe, then run detection for a ``like``.

        Returns
        -------
        dict
            ``{"matched", "match_id", "thread_id"}``.

        Raises
        ------
        ValidationError
            Self-swipe or unknown direction; raised before any I/O.
        NotFoundError
            The target user does not exist.
        TransientStoreError
            The swipe could not be stored.
        """
        if swiper_id == target_id:
            raise ValidationError("You cannot swipe on yourself")
        if direction not in SWIPE_DIRECTIONS:
            raise ValidationError(
                f"direction must be one of: {', '.join(SWIPE_DIRECTIONS)}"
            )

        now = now or datetime.now(timezone.utc)
        log = logger.bind(
            swiper_id=str(swiper_id),
            target_id=str(target_id),
            direction=direction,
        )

        try:
            target = await db_session.get(User, target_id)
            if target is None:
                raise NotFoundError(f"User {target_id} not found.")

            stmt = _upsert_statement(
                db_session.get_bind().dialect.name,
                {
                    "id": uuid.uuid4(),
                    "swiper_id": swiper_id,
                    "target_id": target_id,
                    "direction": direction,
                    "created_at": now,
                    "updated_at": now,
                },
                now,
            )
            await db_session.execute(stmt)
            await db_session.commit()
        except SQLAlchemyError as exc:
            await db_session.rollback()
            log.error("swipe_record_failed", error=str(exc))
            raise TransientStoreError("Failed to record swipe. Please try again.") from exc

        log.info("swipe_recorded")

        if direction == "like" and self.matching_service is not None:
            return await self.matching_service.detect_match(
                swiper_id, target_id, db_session, now=now
            )
        return {"matched": False, "match_id": None, "thread_id": None}
