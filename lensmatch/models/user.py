"""
Lensmatch Discover: User model.

Owned by the account service; this core reads it for ranking and writes only
the discover preference columns.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lensmatch.database import Base

JSONVariant = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    profile_pic: Mapped[str | None] = mapped_column(String, nullable=True)
    city: Mapped[str | None] = mapped_column(String, nullable=True)
    state: Mapped[str | None] = mapped_column(String, nullable=True)

    # ── Discover preferences ───────────────────────────────────────
    is_discoverable: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    seeking_types: Mapped[list | None] = mapped_column(
        JSONVariant, nullable=True, comment="Array of specialization tags"
    )
    budget_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    budget_max: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
        comment="Last activity; drives deck recency",
    )

    # ── Relationships ──────────────────────────────────────────────
    photographer: Mapped["Photographer"] = relationship(
        "Photographer", back_populates="user", uselist=False, lazy="selectin"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User {self.full_name!r} id={self.id}>"
