"""Conversation thread creation for new matches.

Runs inside the caller's session and transaction; nothing here commits.
"""

from __future__ import annotations

import uuid
from typing import Iterable

import structlog
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from lensmatch.models.messaging import MessageThread, message_thread_participants

logger = structlog.get_logger("lensmatch.thread_service")


async def create_thread(
    db_session: AsyncSession,
    participant_ids: Iterable[uuid.UUID],
) -> uuid.UUID:
    """Create a thread joining ``participant_ids`` and return its id."""
    participants = list(dict.fromkeys(participant_ids))
    thread = MessageThread(id=uuid.uuid4())
    db_session.add(thread)
    await db_session.flush()

    await db_session.execute(
        insert(message_thread_participants),
        [{"thread_id": thread.id, "user_id": uid} for uid in participants],
    )

    logger.debug(
        "thread_created",
        thread_id=str(thread.id),
        participants=[str(p) for p in participants],
    )
    return thread.id
