"""
Lensmatch Discover: shared route dependencies.

The requester's identity is asserted by the upstream auth gateway through
the ``X-User-Id`` header; this service never authenticates on its own.
Services are process-wide singletons, overridable through
``app.dependency_overrides`` in tests.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import Header, HTTPException, status

from lensmatch.services.enrichment_service import EnrichmentService
from lensmatch.services.lifecycle_service import LifecycleService
from lensmatch.services.matching_service import MatchingService
from lensmatch.services.preference_service import PreferenceService
from lensmatch.services.ranking_service import RankingService
from lensmatch.services.swipe_service import SwipeService

logger = structlog.get_logger("lensmatch.api.deps")


async def get_requester_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> uuid.UUID:
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header.",
        )
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        logger.warning("invalid_requester_header", value=x_user_id[:64])
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-User-Id header.",
        )


# ── Service singletons ────────────────────────────────────────────────────────

_enrichment_service: EnrichmentService | None = None
_matching_service: MatchingService | None = None
_swipe_service: SwipeService | None = None
_ranking_service: RankingService | None = None
_preference_service: PreferenceService | None = None
_lifecycle_service: LifecycleService | None = None


def get_enrichment_service() -> EnrichmentService:
    global _enrichment_service
    if _enrichment_service is None:
        _enrichment_service = EnrichmentService()
    return _enrichment_service


def get_matching_service() -> MatchingService:
    global _matching_service
    if _matching_service is None:
        _matching_service = MatchingService(enrichment_service=get_enrichment_service())
    return _matching_service


def get_swipe_service() -> SwipeService:
    global _swipe_service
    if _swipe_service is None:
        _swipe_service = SwipeService(matching_service=get_matching_service())
    return _swipe_service


def get_ranking_service() -> RankingService:
    global _ranking_service
    if _ranking_service is None:
        _ranking_service = RankingService()
    return _ranking_service


def get_preference_service() -> PreferenceService:
    global _preference_service
    if _preference_service is None:
        _preference_service = PreferenceService()
    return _preference_service


def get_lifecycle_service() -> LifecycleService:
    global _lifecycle_service
    if _lifecycle_service is None:
        _lifecycle_service = LifecycleService()
    return _lifecycle_service
