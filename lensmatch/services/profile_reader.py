"""
Lensmatch Discover: read helpers for the professional sub-profile.

Reviews, events and portfolio images are fetched in three grouped queries for
a whole batch of photographers, so building a deck of 100 candidates costs a
constant number of round trips.
"""

from __future__ import annotations

import json
import uuid
from collections import defaultdict
from typing import Any, Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lensmatch.models.photographer import Event, Photographer, PortfolioImage, Review
from lensmatch.models.user import User

PORTFOLIO_IMAGE_LIMIT = 6
SPECIALIZATION_LIMIT = 5


def parse_tags(raw: Any) -> list[str]:
    """Normalise a stored tag payload to a list of strings.

    Older rows hold a JSON-encoded string instead of a JSON array; anything
    unparseable yields no tags.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, list):
        return []
    return [str(t) for t in raw if isinstance(t, str) and t.strip()]


def unique_tags(tags: Iterable[str], limit: int | None = None) -> list[str]:
    """Order-preserving de-duplication, optionally truncated."""
    seen: list[str] = []
    for tag in tags:
        if tag not in seen:
            seen.append(tag)
    return seen[:limit] if limit is not None else seen


async def load_photographer_stats(
    session: AsyncSession,
    photographer_ids: Iterable[uuid.UUID],
    image_limit: int = PORTFOLIO_IMAGE_LIMIT,
) -> dict[uuid.UUID, dict]:
    """Return review, event and portfolio data keyed by photographer id.

    Each value has ``avg_rating`` (``None`` without reviews), ``review_count``,
    ``event_count``, ``portfolio_images`` (featured first, deleted excluded,
    at most ``image_limit``) and ``tags`` (every tag on those images).
    """
    ids = list(dict.fromkeys(photographer_ids))
    stats: dict[uuid.UUID, dict] = {
        pid: {
            "avg_rating": None,
            "review_count": 0,
            "event_count": 0,
            "portfolio_images": [],
            "tags": [],
        }
        for pid in ids
    }
    if not ids:
        return stats

    review_rows = await session.execute(
        select(
            Review.photographer_id,
            func.avg(Review.rating),
            func.count(Review.id),
        )
        .where(Review.photographer_id.in_(ids))
        .group_by(Review.photographer_id)
    )
    for pid, avg_rating, count in review_rows.all():
        stats[pid]["avg_rating"] = float(avg_rating) if avg_rating is not None else None
        stats[pid]["review_count"] = int(count)

    event_rows = await session.execute(
        select(Event.photographer_id, func.count(Event.id))
        .where(Event.photographer_id.in_(ids), Event.is_deleted.is_(False))
        .group_by(Event.photographer_id)
    )
    for pid, count in event_rows.all():
        stats[pid]["event_count"] = int(count)

    image_rows = await session.execute(
        select(PortfolioImage)
        .where(
            PortfolioImage.photographer_id.in_(ids),
            PortfolioImage.is_deleted.is_(False),
        )
        .order_by(
            PortfolioImage.photographer_id,
            PortfolioImage.is_featured.desc(),
            PortfolioImage.created_at.asc(),
        )
    )
    images_by_owner: dict[uuid.UUID, list[PortfolioImage]] = defaultdict(list)
    for image in image_rows.scalars().all():
        images_by_owner[image.photographer_id].append(image)

    for pid, images in images_by_owner.items():
        kept = images[:image_limit]
        stats[pid]["portfolio_images"] = [
            {"image": img.image, "title": img.title, "tags": parse_tags(img.tags)}
            for img in kept
        ]
        stats[pid]["tags"] = [
            tag for img in stats[pid]["portfolio_images"] for tag in img["tags"]
        ]

    return stats


def build_photographer_card(photographer: Photographer, stats: dict) -> dict:
    """Flatten a photographer row and its stats into the deck card shape."""
    return {
        "id": photographer.id,
        "name": photographer.name,
        "company_name": photographer.company_name,
        "location": photographer.location,
        "bio": photographer.bio,
        "avatar": photographer.avatar,
        "website": photographer.website,
        "instagram": photographer.instagram,
        "portfolio_images": stats["portfolio_images"],
        "avg_rating": stats["avg_rating"],
        "review_count": stats["review_count"],
        "event_count": stats["event_count"],
        "specializations": unique_tags(stats["tags"], SPECIALIZATION_LIMIT),
    }


def build_user_card(user: User, photographer_card: dict | None) -> dict:
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "profile_pic": user.profile_pic,
        "city": user.city,
        "state": user.state,
        "photographer": photographer_card,
    }


async def load_user_cards(
    session: AsyncSession,
    users: Iterable[User],
) -> dict[uuid.UUID, dict]:
    """Build full user cards (photographer card included when present)."""
    users = list(users)
    photographer_ids = [u.photographer.id for u in users if u.photographer is not None]
    stats = await load_photographer_stats(session, photographer_ids)
    cards: dict[uuid.UUID, dict] = {}
    for user in users:
        card = None
        if user.photographer is not None:
            card = build_photographer_card(user.photographer, stats[user.photographer.id])
        cards[user.id] = build_user_card(user, card)
    return cards
