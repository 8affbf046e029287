"""
Lensmatch Discover: Matches API

Listing, detail with on-demand icebreakers, and the expiry sweep trigger.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lensmatch.api.deps import (
    get_lifecycle_service,
    get_matching_service,
    get_requester_id,
)
from lensmatch.database import get_db
from lensmatch.schemas.match import (
    ExpireResponse,
    MatchDetailResponse,
    MatchListResponse,
)
from lensmatch.services.lifecycle_service import LifecycleService
from lensmatch.services.matching_service import MatchingService

logger = structlog.get_logger("lensmatch.api.matches")

router = APIRouter()


@router.get(
    "",
    response_model=MatchListResponse,
    summary="List the requester's active matches",
)
async def list_matches(
    limit: int = Query(20, ge=1, le=50),
    offset: int = Query(0, ge=0),
    requester_id: uuid.UUID = Depends(get_requester_id),
    db: AsyncSession = Depends(get_db),
    matching: MatchingService = Depends(get_matching_service),
) -> MatchListResponse:
    matches = await matching.list_matches(requester_id, db, limit=limit, offset=offset)
    return MatchListResponse(matches=matches)


@router.post(
    "/expire",
    response_model=ExpireResponse,
    summary="Expire matches past their window",
)
async def expire_matches(
    requester_id: uuid.UUID = Depends(get_requester_id),
    db: AsyncSession = Depends(get_db),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
) -> ExpireResponse:
    """Idempotent: a second call right after the first expires nothing."""
    logger.info("expire_matches_requested", requester_id=str(requester_id))
    return ExpireResponse(**await lifecycle.sweep(db))


@router.get(
    "/{match_id}",
    response_model=MatchDetailResponse,
    summary="Get one match with conversation starters",
)
async def get_match(
    match_id: uuid.UUID,
    requester_id: uuid.UUID = Depends(get_requester_id),
    db: AsyncSession = Depends(get_db),
    matching: MatchingService = Depends(get_matching_service),
) -> MatchDetailResponse:
    detail = await matching.get_match_detail(match_id, requester_id, db)
    return MatchDetailResponse(**detail)
