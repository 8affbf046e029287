"""
Lensmatch Discover: Swipe and Match models.

``uq_swipe_pair`` makes the swipe upsert a single-row operation per ordered
pair.  ``uq_match_pair`` on the canonical (user1_id < user2_id) key is the
only thing that serialises concurrent reciprocal likes.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lensmatch.database import Base

SWIPE_DIRECTIONS = ("like", "pass")

MATCH_STATUS_MATCHED = "matched"
MATCH_STATUS_EXPIRED = "expired"

MATCH_PAIR_CONSTRAINT = "uq_match_pair"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Swipe(Base):
    __tablename__ = "swipes"
    __table_args__ = (
        UniqueConstraint("swiper_id", "target_id", name="uq_swipe_pair"),
        CheckConstraint("swiper_id <> target_id", name="ck_swipe_not_self"),
        CheckConstraint("direction IN ('like', 'pass')", name="ck_swipe_direction"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    swiper_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    target_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    direction: Mapped[str] = mapped_column(String, nullable=False, comment="like / pass")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Swipe {self.swiper_id} -> {self.target_id} dir={self.direction!r}>"


class Match(Base):
    __tablename__ = "matches"
    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name=MATCH_PAIR_CONSTRAINT),
        CheckConstraint("user1_id < user2_id", name="ck_match_canonical_order"),
        CheckConstraint("status IN ('matched', 'expired')", name="ck_match_status"),
        Index("ix_matches_status_expires_at", "status", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user1_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    user2_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String, default=MATCH_STATUS_MATCHED, nullable=False, comment="matched / expired"
    )
    ai_summary: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Best-effort generated compatibility summary"
    )
    message_thread_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("message_threads.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # ── Relationships ──────────────────────────────────────────────
    user1: Mapped["User"] = relationship("User", foreign_keys=[user1_id], lazy="selectin")
    user2: Mapped["User"] = relationship("User", foreign_keys=[user2_id], lazy="selectin")

    def other_user(self, user_id: uuid.UUID) -> "User":
        return self.user2 if self.user1_id == user_id else self.user1

    def involves(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def __repr__(self) -> str:
        return f"<Match {self.user1_id} <-> {self.user2_id} status={self.status!r}>"
