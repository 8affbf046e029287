"""
Lensmatch Discover: discover preferences (discoverability, seeking tags,
budget range).
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lensmatch.errors import NotFoundError, TransientStoreError, ValidationError
from lensmatch.models.user import User

logger = structlog.get_logger("lensmatch.preference_service")

_UPDATABLE_FIELDS = ("is_discoverable", "seeking_types", "budget_min", "budget_max")


def normalise_seeking_types(values: list[Any]) -> list[str]:
    """Trim, drop empties and de-duplicate case-insensitively; the first
    spelling of a tag wins."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        tag = value.strip()
        if not tag or tag.lower() in seen:
            continue
        seen.add(tag.lower())
        result.append(tag)
    return result


def _to_dict(user: User) -> dict:
    return {
        "is_discoverable": user.is_discoverable,
        "seeking_types": normalise_seeking_types(user.seeking_types or []),
        "budget_min": user.budget_min,
        "budget_max": user.budget_max,
        "has_photographer_profile": user.photographer is not None,
    }


class PreferenceService:
    """Plain data access over the preference columns of ``users``."""

    async def get_preferences(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> dict:
        try:
            user = await db_session.get(User, user_id, populate_existing=True)
        except SQLAlchemyError as exc:
            logger.error("get_preferences_failed", user_id=str(user_id), error=str(exc))
            raise TransientStoreError(
                "Failed to load preferences. Please try again."
            ) from exc

        if user is None:
            raise NotFoundError(f"User {user_id} not found.")
        return _to_dict(user)

    async def update_preferences(
        self,
        user_id: uuid.UUID,
        changes: dict[str, Any],
        db_session: AsyncSession,
    ) -> dict:
        """Apply a partial update; keys absent from ``changes`` are left alone.

        Raises
        ------
        ValidationError
            Unknown keys, negative budgets, or ``budget_min > budget_max``
            once the update is applied.
        NotFoundError
            Unknown user.
        """
        unknown = set(changes) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown preference fields: {', '.join(sorted(unknown))}")

        for key in ("budget_min", "budget_max"):
            value = changes.get(key)
            if value is not None and value < 0:
                raise ValidationError(f"{key} must be non-negative")

        log = logger.bind(user_id=str(user_id), fields=sorted(changes))
        log.info("update_preferences_start")

        try:
            user = await db_session.get(User, user_id, populate_existing=True)
            if user is None:
                raise NotFoundError(f"User {user_id} not found.")

            budget_min = changes.get("budget_min", user.budget_min)
            budget_max = changes.get("budget_max", user.budget_max)
            if budget_min is not None and budget_max is not None and budget_min > budget_max:
                raise ValidationError("budget_min cannot exceed budget_max")

            if changes.get("is_discoverable") is not None:
                user.is_discoverable = bool(changes["is_discoverable"])
            if "seeking_types" in changes:
                user.seeking_types = normalise_seeking_types(changes["seeking_types"] or [])
            if "budget_min" in changes:
                user.budget_min = budget_min
            if "budget_max" in changes:
                user.budget_max = budget_max

            await db_session.commit()
        except SQLAlchemyError as exc:
            await db_session.rollback()
            log.error("update_preferences_failed", error=str(exc))
            raise TransientStoreError(
                "Failed to update preferences. Please try again."
            ) from exc

        log.info("update_preferences_complete")
        return _to_dict(user)
