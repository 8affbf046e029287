"""Initial schema: discover profiles, swipes, matches, threads, notifications.

Revision ID: 001_initial
Revises:
Create Date: 2026-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    # ── 1. users ────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("first_name", sa.String, nullable=False),
        sa.Column("last_name", sa.String, server_default="", nullable=False),
        sa.Column("profile_pic", sa.String, nullable=True),
        sa.Column("city", sa.String, nullable=True),
        sa.Column("state", sa.String, nullable=True),
        sa.Column(
            "is_discoverable",
            sa.Boolean,
            server_default="false",
            nullable=False,
        ),
        sa.Column(
            "seeking_types",
            postgresql.JSONB,
            nullable=True,
            comment="Array of specialization tags",
        ),
        sa.Column("budget_min", sa.Integer, nullable=True),
        sa.Column("budget_max", sa.Integer, nullable=True),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
            comment="Last activity; drives deck recency",
        ),
    )

    # ── 2. photographers ────────────────────────────────────────────
    op.create_table(
        "photographers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            unique=True,
            nullable=False,
        ),
        sa.Column("name", sa.String, nullable=False),
        sa.Column("company_name", sa.String, server_default="", nullable=False),
        sa.Column("location", sa.String, server_default="", nullable=False),
        sa.Column("bio", sa.Text, nullable=True),
        sa.Column("avatar", sa.String, nullable=True),
        sa.Column("website", sa.String, nullable=True),
        sa.Column("instagram", sa.String, nullable=True),
    )

    # ── 3. portfolio_images ─────────────────────────────────────────
    op.create_table(
        "portfolio_images",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "photographer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("photographers.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column("image", sa.String, nullable=False),
        sa.Column("title", sa.String, server_default="", nullable=False),
        sa.Column(
            "tags",
            postgresql.JSONB,
            nullable=True,
            comment="Array of tag strings",
        ),
        sa.Column("is_featured", sa.Boolean, server_default="false", nullable=False),
        sa.Column("is_deleted", sa.Boolean, server_default="false", nullable=False),
        _created_at(),
    )

    # ── 4. reviews ──────────────────────────────────────────────────
    op.create_table(
        "reviews",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "photographer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("photographers.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column("rating", sa.Integer, nullable=False),
        _created_at(),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_rating_range"),
    )

    # ── 5. events ───────────────────────────────────────────────────
    op.create_table(
        "events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "photographer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("photographers.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column("title", sa.String, server_default="", nullable=False),
        sa.Column("is_deleted", sa.Boolean, server_default="false", nullable=False),
    )

    # ── 6. swipes ───────────────────────────────────────────────────
    op.create_table(
        "swipes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "swiper_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "target_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column("direction", sa.String, nullable=False, comment="like / pass"),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("swiper_id", "target_id", name="uq_swipe_pair"),
        sa.CheckConstraint("swiper_id <> target_id", name="ck_swipe_not_self"),
        sa.CheckConstraint("direction IN ('like', 'pass')", name="ck_swipe_direction"),
    )

    # ── 7. message_threads + participants ───────────────────────────
    op.create_table(
        "message_threads",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _created_at(),
    )
    op.create_table(
        "message_thread_participants",
        sa.Column(
            "thread_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("message_threads.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    # ── 8. matches ──────────────────────────────────────────────────
    op.create_table(
        "matches",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user1_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user2_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.String,
            server_default="matched",
            nullable=False,
            comment="matched / expired",
        ),
        sa.Column(
            "ai_summary",
            sa.Text,
            nullable=True,
            comment="Best-effort generated compatibility summary",
        ),
        sa.Column(
            "message_thread_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("message_threads.id"),
            nullable=False,
        ),
        _created_at(),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user1_id", "user2_id", name="uq_match_pair"),
        sa.CheckConstraint("user1_id < user2_id", name="ck_match_canonical_order"),
        sa.CheckConstraint("status IN ('matched', 'expired')", name="ck_match_status"),
    )
    op.create_index(
        "ix_matches_status_expires_at",
        "matches",
        ["status", "expires_at"],
    )

    # ── 9. notifications ────────────────────────────────────────────
    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "recipient_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column("type", sa.String, nullable=False),
        sa.Column("title", sa.String, nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("link_url", sa.String, nullable=True),
        sa.Column("is_read", sa.Boolean, server_default="false", nullable=False),
        _created_at(),
    )


def downgrade() -> None:
    op.drop_table("notifications")

    op.drop_index("ix_matches_status_expires_at", table_name="matches")
    op.drop_table("matches")

    op.drop_table("message_thread_participants")
    op.drop_table("message_threads")
    op.drop_table("swipes")
    op.drop_table("events")
    op.drop_table("reviews")
    op.drop_table("portfolio_images")
    op.drop_table("photographers")
    op.drop_table("users")
