"""In-app notification creation.

Notifications are added to the caller's session so they commit (or roll
back) with whatever produced them.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from lensmatch.models.messaging import Notification

logger = structlog.get_logger("lensmatch.notification_service")

NEW_MATCH_TYPE = "new_match"
NEW_MATCH_TITLE = "New Match!"
NEW_MATCH_BODY = "You have a new match! Start a conversation before it expires."
NEW_MATCH_LINK = "/app/discover/matches"


async def create_notification(
    db_session: AsyncSession,
    recipient_id: uuid.UUID,
    type: str,
    title: str,
    body: str,
    link_url: str | None = None,
) -> Notification:
    notification = Notification(
        recipient_id=recipient_id,
        type=type,
        title=title,
        body=body,
        link_url=link_url,
    )
    db_session.add(notification)
    logger.debug("notification_queued", recipient_id=str(recipient_id), type=type)
    return notification


async def notify_new_match(db_session: AsyncSession, recipient_id: uuid.UUID) -> Notification:
    return await create_notification(
        db_session,
        recipient_id=recipient_id,
        type=NEW_MATCH_TYPE,
        title=NEW_MATCH_TITLE,
        body=NEW_MATCH_BODY,
        link_url=NEW_MATCH_LINK,
    )
