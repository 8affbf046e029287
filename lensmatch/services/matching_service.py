"""
Lensmatch Discover: Mutual-Like Detection & Match Queries

Detection runs right after a ``like`` swipe has been committed:

  1. Reciprocity: the target must already have liked the swiper.
  2. Canonical key: the two ids ordered by their string form, so the pair
     (A, B) and (B, A) address the same ``matches`` row.
  3. Existing match: an active one is returned as-is; an expired one closes
     the pair for good.
  4. Creation: thread, match and one notification per participant are
     written in a single transaction.
  5. Race: when two reciprocal likes land together, ``uq_match_pair`` lets
     exactly one transaction through; the loser rolls back and reports the
     winner's match.
  6. Enrichment: the compatibility summary is scheduled after commit and
     never awaited.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lensmatch.config import get_settings
from lensmatch.errors import NotFoundError, TransientStoreError, ValidationError
from lensmatch.models.match import (
    MATCH_STATUS_EXPIRED,
    MATCH_STATUS_MATCHED,
    Match,
    Swipe,
)
from lensmatch.models.user import User
from lensmatch.services.notification_service import notify_new_match
from lensmatch.services.profile_reader import load_user_cards
from lensmatch.services.thread_service import create_thread

logger = structlog.get_logger("lensmatch.matching_service")

LIST_MAX_LIMIT = 50


def canonical_pair(a: uuid.UUID, b: uuid.UUID) -> tuple[uuid.UUID, uuid.UUID]:
    """Order two user ids by their string form."""
    if a == b:
        raise ValidationError("A user cannot be matched with themselves")
    return (a, b) if str(a) < str(b) else (b, a)


def _no_match() -> dict:
    return {"matched": False, "match_id": None, "thread_id": None}


def _summary_user(user: User) -> dict:
    """The participant subset shown in match lists."""
    photographer = user.photographer
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "profile_pic": user.profile_pic,
        "city": user.city,
        "state": user.state,
        "photographer": (
            {
                "company_name": photographer.company_name,
                "avatar": photographer.avatar,
                "location": photographer.location,
            }
            if photographer is not None
            else None
        ),
    }


class MatchingService:
    """Mutual-like detection plus the read side of matches.

    Parameters
    ----------
    enrichment_service:
        Object exposing ``schedule_match_summary`` and ``icebreakers``
        (normally ``EnrichmentService``).  ``None`` disables both.
    """

    def __init__(self, enrichment_service: Any | None = None) -> None:
        settings = get_settings()
        self.enrichment_service = enrichment_service
        self.match_ttl = timedelta(hours=settings.MATCH_TTL_HOURS)

    # ── Detection ─────────────────────────────────────────────────────────

    async def detect_match(
        self,
        swiper_id: uuid.UUID,
        target_id: uuid.UUID,
        db_session: AsyncSession,
        now: datetime | None = None,
    ) -> dict:
        """Create the match for a reciprocal like, if there is one.

        Returns
        -------
        dict
            ``{"matched", "match_id", "thread_id"}``.  ``matched`` is True
            for both a freshly created match and an already active one.

        Raises
        ------
        TransientStoreError
            Storage failure, or a uniqueness conflict whose winning row
            could not be read back.
        """
        now = now or datetime.now(timezone.utc)
        user1_id, user2_id = canonical_pair(swiper_id, target_id)
        log = logger.bind(
            swiper_id=str(swiper_id),
            target_id=str(target_id),
            pair=f"{user1_id}:{user2_id}",
        )

        try:
            reciprocal = await db_session.scalar(
                select(Swipe.id).where(
                    Swipe.swiper_id == target_id,
                    Swipe.target_id == swiper_id,
                    Swipe.direction == "like",
                )
            )
            if reciprocal is None:
                log.debug("no_reciprocal_like")
                return _no_match()

            existing = await self._find_match(db_session, user1_id, user2_id)
            if existing is not None:
                return self._resolve_existing(existing, log)

            thread_id = await create_thread(db_session, [user1_id, user2_id])
            match = Match(
                id=uuid.uuid4(),
                user1_id=user1_id,
                user2_id=user2_id,
                status=MATCH_STATUS_MATCHED,
                message_thread_id=thread_id,
                created_at=now,
                expires_at=now + self.match_ttl,
            )
            db_session.add(match)
            # Flush so a uq_match_pair conflict surfaces before notifications.
            await db_session.flush()

            await notify_new_match(db_session, user1_id)
            await notify_new_match(db_session, user2_id)
            await db_session.commit()

        except IntegrityError as exc:
            await db_session.rollback()
            return await self._resolve_race(db_session, user1_id, user2_id, exc, log)
        except SQLAlchemyError as exc:
            await db_session.rollback()
            log.error("match_detection_failed", error=str(exc))
            raise TransientStoreError(
                "Failed to create match. Please try again."
            ) from exc

        match_id = match.id
        log.info(
            "match_created",
            match_id=str(match_id),
            thread_id=str(thread_id),
            expires_at=match.expires_at.isoformat(),
        )

        self._schedule_enrichment(match_id, swiper_id, target_id, log)
        return {"matched": True, "match_id": match_id, "thread_id": thread_id}

    async def _find_match(
        self,
        db_session: AsyncSession,
        user1_id: uuid.UUID,
        user2_id: uuid.UUID,
    ) -> Match | None:
        result = await db_session.execute(
            select(Match).where(Match.user1_id == user1_id, Match.user2_id == user2_id)
        )
        return result.scalar_one_or_none()

    def _resolve_existing(self, existing: Match, log: Any) -> dict:
        if existing.status == MATCH_STATUS_EXPIRED:
            log.info("match_window_closed", match_id=str(existing.id))
            return _no_match()
        log.debug("match_already_exists", match_id=str(existing.id))
        return {
            "matched": True,
            "match_id": existing.id,
            "thread_id": existing.message_thread_id,
        }

    async def _resolve_race(
        self,
        db_session: AsyncSession,
        user1_id: uuid.UUID,
        user2_id: uuid.UUID,
        exc: IntegrityError,
        log: Any,
    ) -> dict:
        """Report the concurrent winner's match after our insert was rejected."""
        try:
            winner = await self._find_match(db_session, user1_id, user2_id)
        except SQLAlchemyError as lookup_exc:
            log.error("match_race_lookup_failed", error=str(lookup_exc))
            raise TransientStoreError(
                "Failed to create match. Please try again."
            ) from lookup_exc

        if winner is None:
            log.error("match_conflict_unresolved", error=str(exc.orig))
            raise TransientStoreError(
                "Failed to create match. Please try again."
            ) from exc

        log.info("match_race_lost", match_id=str(winner.id))
        return self._resolve_existing(winner, log)

    def _schedule_enrichment(
        self,
        match_id: uuid.UUID,
        swiper_id: uuid.UUID,
        target_id: uuid.UUID,
        log: Any,
    ) -> None:
        if self.enrichment_service is None:
            return
        try:
            self.enrichment_service.schedule_match_summary(match_id, swiper_id, target_id)
        except Exception as exc:
            # The match is committed; a scheduling failure only loses the summary.
            log.warning("summary_enrichment_not_scheduled", error=str(exc))

    # ── Queries ───────────────────────────────────────────────────────────

    async def list_matches(
        self,
        requester_id: uuid.UUID,
        db_session: AsyncSession,
        limit: int = 20,
        offset: int = 0,
    ) -> list[dict]:
        """Non-expired matches involving ``requester_id``, newest first."""
        if not 1 <= limit <= LIST_MAX_LIMIT:
            raise ValidationError(f"limit must be between 1 and {LIST_MAX_LIMIT}")
        if offset < 0:
            raise ValidationError("offset must be non-negative")

        try:
            result = await db_session.execute(
                select(Match)
                .where(
                    or_(Match.user1_id == requester_id, Match.user2_id == requester_id),
                    Match.status != MATCH_STATUS_EXPIRED,
                )
                .order_by(Match.created_at.desc(), Match.id.desc())
                .offset(offset)
                .limit(limit)
                .execution_options(populate_existing=True)
            )
            matches = list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("list_matches_failed", requester_id=str(requester_id), error=str(exc))
            raise TransientStoreError("Failed to load matches. Please try again.") from exc

        return [
            {
                "id": match.id,
                "created_at": match.created_at,
                "status": match.status,
                "ai_summary": match.ai_summary,
                "expires_at": match.expires_at,
                "message_thread_id": match.message_thread_id,
                "other_user": _summary_user(match.other_user(requester_id)),
            }
            for match in matches
        ]

    async def get_match_detail(
        self,
        match_id: uuid.UUID,
        requester_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> dict:
        """One match seen from ``requester_id``'s side, with icebreakers.

        Raises
        ------
        NotFoundError
            The match does not exist or does not involve the requester.
        """
        log = logger.bind(match_id=str(match_id), requester_id=str(requester_id))

        try:
            match = await db_session.get(Match, match_id, populate_existing=True)
            if match is None or not match.involves(requester_id):
                raise NotFoundError("Match not found")

            other = match.other_user(requester_id)
            current = match.user1 if match.user1_id == requester_id else match.user2
            cards = await load_user_cards(db_session, [current, other])
        except SQLAlchemyError as exc:
            log.error("get_match_detail_failed", error=str(exc))
            raise TransientStoreError(
                "Failed to load match details. Please try again."
            ) from exc

        icebreakers: list[str] = []
        if self.enrichment_service is not None:
            icebreakers = await self.enrichment_service.icebreakers(
                cards[current.id], cards[other.id]
            )

        log.info("match_detail_served", icebreaker_count=len(icebreakers))
        return {
            "id": match.id,
            "created_at": match.created_at,
            "status": match.status,
            "ai_summary": match.ai_summary,
            "expires_at": match.expires_at,
            "message_thread_id": match.message_thread_id,
            "other_user": cards[other.id],
            "icebreakers": icebreakers,
        }
