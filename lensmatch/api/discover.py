"""
Lensmatch Discover: Discover API

Deck retrieval, swiping, and the requester's discover preferences.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lensmatch.api.deps import (
    get_preference_service,
    get_ranking_service,
    get_requester_id,
    get_swipe_service,
)
from lensmatch.database import get_db
from lensmatch.schemas.discover import (
    DeckResponse,
    PreferencesResponse,
    PreferencesUpdate,
    SwipeRequest,
    SwipeResponse,
)
from lensmatch.services.preference_service import PreferenceService
from lensmatch.services.ranking_service import RankingService
from lensmatch.services.swipe_service import SwipeService

logger = structlog.get_logger("lensmatch.api.discover")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# GET /deck: Ranked candidate cards
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/deck",
    response_model=DeckResponse,
    summary="Get the requester's ranked discover deck",
)
async def get_deck(
    limit: int = Query(20, ge=1, le=50),
    requester_id: uuid.UUID = Depends(get_requester_id),
    db: AsyncSession = Depends(get_db),
    ranking: RankingService = Depends(get_ranking_service),
) -> DeckResponse:
    """Return up to ``limit`` photographers the requester has not swiped on,
    best match first."""
    cards = await ranking.get_deck(requester_id, db, limit=limit)
    return DeckResponse(cards=cards)


# ──────────────────────────────────────────────────────────────────────────────
# POST /swipe: Record a like or pass
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/swipe",
    response_model=SwipeResponse,
    summary="Like or pass on a candidate",
)
async def swipe(
    payload: SwipeRequest,
    requester_id: uuid.UUID = Depends(get_requester_id),
    db: AsyncSession = Depends(get_db),
    swipes: SwipeService = Depends(get_swipe_service),
) -> SwipeResponse:
    """Record the decision.  A like that completes a mutual pair creates the
    match, its conversation thread and both notifications."""
    result = await swipes.record_swipe(
        swiper_id=requester_id,
        target_id=payload.target_id,
        direction=payload.direction,
        db_session=db,
    )
    return SwipeResponse(**result)


# ──────────────────────────────────────────────────────────────────────────────
# GET / PATCH /preferences
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/preferences",
    response_model=PreferencesResponse,
    summary="Get discover preferences",
)
async def get_preferences(
    requester_id: uuid.UUID = Depends(get_requester_id),
    db: AsyncSession = Depends(get_db),
    preferences: PreferenceService = Depends(get_preference_service),
) -> PreferencesResponse:
    return PreferencesResponse(**await preferences.get_preferences(requester_id, db))


@router.patch(
    "/preferences",
    response_model=PreferencesResponse,
    summary="Update discover preferences",
)
async def update_preferences(
    payload: PreferencesUpdate,
    requester_id: uuid.UUID = Depends(get_requester_id),
    db: AsyncSession = Depends(get_db),
    preferences: PreferenceService = Depends(get_preference_service),
) -> PreferencesResponse:
    """Partial update: only fields present in the body change."""
    changes = payload.model_dump(exclude_unset=True)
    updated = await preferences.update_preferences(requester_id, changes, db)
    return PreferencesResponse(**updated)
