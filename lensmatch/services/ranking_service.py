"""
Lensmatch Discover: Candidate Ranking for the Card Deck

Builds a requester's swipe deck in four steps:

  1. Exclusions: the requester, everyone they already swiped (either
     direction), non-discoverable users and users without a photographer
     profile are never fetched.
  2. Pool: up to ``CANDIDATE_POOL_SIZE`` candidates in a deterministic order.
  3. Scoring: four capped components on a 0-100 scale

       location        40  same city 40, same state 20, otherwise 4
       reputation      25  (avg/5) x min(count/10, 1) x 25
       specialization  20  share of seeking tags found in bio + portfolio tags
       recency         15  linear decay to 0 at 90 days since last activity

  4. Stable descending sort, truncation, card flattening.

Any storage failure is reported as a single ``TransientStoreError``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lensmatch.config import get_settings
from lensmatch.errors import NotFoundError, TransientStoreError, ValidationError
from lensmatch.models.match import Swipe
from lensmatch.models.photographer import Photographer
from lensmatch.models.user import User
from lensmatch.services.preference_service import normalise_seeking_types
from lensmatch.services.profile_reader import (
    build_photographer_card,
    build_user_card,
    load_photographer_stats,
)

logger = structlog.get_logger("lensmatch.ranking_service")

# ──────────────────────────────────────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────────────────────────────────────

_STATE_MATCH_FRACTION = 0.5   # 20 of 40
_LOCATION_FLOOR_FRACTION = 0.1  # 4 of 40
_FULL_REVIEW_VOLUME = 10
_MAX_RATING = 5.0

_SECONDS_PER_DAY = 86400.0


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RankingService:
    """Scores and orders discoverable photographers for one requester."""

    def __init__(self) -> None:
        settings = get_settings()
        self.w_location: float = settings.LOCATION_WEIGHT
        self.w_reputation: float = settings.REPUTATION_WEIGHT
        self.w_specialization: float = settings.SPECIALIZATION_WEIGHT
        self.w_recency: float = settings.RECENCY_WEIGHT
        self.recency_window_days: float = settings.RECENCY_WINDOW_DAYS
        self.pool_size: int = settings.CANDIDATE_POOL_SIZE
        self.default_limit: int = settings.DECK_DEFAULT_LIMIT
        self.max_limit: int = settings.DECK_MAX_LIMIT

    # ── Public API ────────────────────────────────────────────────────────

    async def get_deck(
        self,
        requester_id: uuid.UUID,
        db_session: AsyncSession,
        limit: int | None = None,
        now: datetime | None = None,
    ) -> list[dict]:
        """Return up to ``limit`` candidate cards, best first.

        Each card is a user card with the photographer card flattened in and
        a ``score`` key holding the total used for ordering.

        Raises
        ------
        ValidationError
            ``limit`` outside 1..DECK_MAX_LIMIT.
        NotFoundError
            Unknown requester.
        TransientStoreError
            Any failure reading the pool or the preferences.
        """
        limit = self.default_limit if limit is None else limit
        if not 1 <= limit <= self.max_limit:
            raise ValidationError(f"limit must be between 1 and {self.max_limit}")

        now = now or datetime.now(timezone.utc)
        log = logger.bind(requester_id=str(requester_id), limit=limit)
        log.info("get_deck_start")

        try:
            requester = await db_session.get(User, requester_id)
            if requester is None:
                raise NotFoundError(f"User {requester_id} not found.")

            candidates = await self._fetch_pool(requester_id, db_session)
            stats = await load_photographer_stats(
                db_session, [c.photographer.id for c in candidates]
            )
        except SQLAlchemyError as exc:
            log.error("get_deck_failed", error=str(exc))
            raise TransientStoreError(
                "Failed to load discover deck. Please try again."
            ) from exc

        seeking_types = normalise_seeking_types(requester.seeking_types or [])
        scored: list[dict] = []
        for candidate in candidates:
            photographer_stats = stats[candidate.photographer.id]
            breakdown = self.score_candidate(
                requester_city=requester.city,
                requester_state=requester.state,
                seeking_types=seeking_types,
                candidate_city=candidate.city,
                candidate_state=candidate.state,
                photographer_location=candidate.photographer.location,
                bio=candidate.photographer.bio,
                tags=photographer_stats["tags"],
                avg_rating=photographer_stats["avg_rating"],
                review_count=photographer_stats["review_count"],
                last_active=candidate.updated_at,
                now=now,
            )
            card = build_user_card(
                candidate,
                build_photographer_card(candidate.photographer, photographer_stats),
            )
            card["score"] = breakdown["total"]
            scored.append(card)

        # list.sort is stable: equal scores keep pool order
        scored.sort(key=lambda c: c["score"], reverse=True)
        deck = scored[:limit]

        log.info(
            "get_deck_complete",
            pool_size=len(candidates),
            returned=len(deck),
            top_score=round(deck[0]["score"], 2) if deck else None,
        )
        return deck

    # ── Scoring ───────────────────────────────────────────────────────────

    def score_candidate(
        self,
        *,
        requester_city: str | None,
        requester_state: str | None,
        seeking_types: list[str],
        candidate_city: str | None,
        candidate_state: str | None,
        photographer_location: str | None,
        bio: str | None,
        tags: list[str],
        avg_rating: float | None,
        review_count: int,
        last_active: datetime,
        now: datetime,
    ) -> dict:
        """Compute every component and the total for one candidate."""
        location = self._location_score(
            requester_city, requester_state,
            candidate_city, candidate_state, photographer_location,
        )
        reputation = self._reputation_score(avg_rating, review_count)
        specialization = self._specialization_score(seeking_types, bio, tags)
        days_since_active = (
            _as_utc(now) - _as_utc(last_active)
        ).total_seconds() / _SECONDS_PER_DAY
        recency = self._recency_score(days_since_active)

        return {
            "location": location,
            "reputation": reputation,
            "specialization": specialization,
            "recency": recency,
            "total": location + reputation + specialization + recency,
        }

    def _location_score(
        self,
        requester_city: str | None,
        requester_state: str | None,
        candidate_city: str | None,
        candidate_state: str | None,
        photographer_location: str | None,
    ) -> float:
        """City match beats state match; geography never zeroes a candidate.

        The photographer's free-text location counts as a match when it
        contains the requester's city (or state).
        """
        user_city = (requester_city or "").strip().lower()
        user_state = (requester_state or "").strip().lower()
        cand_city = (candidate_city or "").strip().lower()
        cand_state = (candidate_state or "").strip().lower()
        photo_loc = (photographer_location or "").lower()

        if user_city and (cand_city == user_city or user_city in photo_loc):
            return self.w_location
        if user_state and (cand_state == user_state or user_state in photo_loc):
            return self.w_location * _STATE_MATCH_FRACTION
        return self.w_location * _LOCATION_FLOOR_FRACTION

    def _reputation_score(self, avg_rating: float | None, review_count: int) -> float:
        """Quality times volume: one 5-star review earns a tenth of the
        weight, ten strong reviews earn almost all of it."""
        if not review_count or avg_rating is None:
            return 0.0
        rating_score = max(0.0, min(avg_rating / _MAX_RATING, 1.0))
        quantity_score = min(review_count / _FULL_REVIEW_VOLUME, 1.0)
        return rating_score * quantity_score * self.w_reputation

    def _specialization_score(
        self,
        seeking_types: list[str],
        bio: str | None,
        tags: list[str],
    ) -> float:
        """Share of the requester's seeking tags that appear in the
        candidate's bio or portfolio tags; 0 when nothing is sought."""
        if not seeking_types:
            return 0.0
        all_text = " ".join([(bio or "").lower(), *(t.lower() for t in tags)])
        match_count = sum(1 for t in seeking_types if t.lower() in all_text)
        return (match_count / len(seeking_types)) * self.w_specialization

    def _recency_score(self, days_since_active: float) -> float:
        fraction = 1.0 - days_since_active / self.recency_window_days
        return max(0.0, min(1.0, fraction)) * self.w_recency

    # ── Data access ───────────────────────────────────────────────────────

    async def _fetch_pool(
        self,
        requester_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> list[User]:
        """Fetch discoverable photographers the requester has not swiped."""
        swiped = select(Swipe.target_id).where(Swipe.swiper_id == requester_id)

        stmt = (
            select(User)
            .join(Photographer, Photographer.user_id == User.id)
            .where(
                User.is_discoverable.is_(True),
                User.id != requester_id,
                User.id.not_in(swiped),
            )
            .order_by(User.created_at.asc(), User.id.asc())
            .limit(self.pool_size)
            .execution_options(populate_existing=True)
        )
        result = await db_session.execute(stmt)
        candidates = list(result.scalars().all())

        logger.debug(
            "candidate_pool_fetched",
            requester_id=str(requester_id),
            pool_size=len(candidates),
        )
        return candidates
