"""Match expiry sweep."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lensmatch.errors import TransientStoreError
from lensmatch.models.match import MATCH_STATUS_EXPIRED, MATCH_STATUS_MATCHED, Match

logger = structlog.get_logger("lensmatch.lifecycle_service")


class LifecycleService:
    """Retires matches whose window has passed."""

    async def sweep(
        self,
        db_session: AsyncSession,
        now: datetime | None = None,
    ) -> dict:
        """Flip every ``matched`` row with ``expires_at <= now`` to ``expired``.

        One conditional UPDATE, so concurrent or repeated sweeps never touch
        a row twice and an expired match is never revived.
        """
        now = now or datetime.now(timezone.utc)
        try:
            result = await db_session.execute(
                update(Match)
                .where(
                    Match.status == MATCH_STATUS_MATCHED,
                    Match.expires_at <= now,
                )
                .values(status=MATCH_STATUS_EXPIRED)
                .execution_options(synchronize_session=False)
            )
            await db_session.commit()
        except SQLAlchemyError as exc:
            await db_session.rollback()
            logger.error("match_sweep_failed", error=str(exc))
            raise TransientStoreError("Failed to expire matches. Please try again.") from exc

        expired_count = result.rowcount or 0
        logger.info("match_sweep_complete", expired_count=expired_count, now=now.isoformat())
        return {"expired_count": expired_count}
