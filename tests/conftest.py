"""Shared pytest fixtures for Lensmatch Discover tests."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("GEMINI_API_KEY", "")

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from lensmatch.database import Base
from lensmatch.models import Event, Photographer, PortfolioImage, Review, User


@pytest.fixture
def now():
    """Fixed reference instant used by scoring and expiry tests."""
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
async def engine():
    """In-memory SQLite with the full schema; constraints are enforced."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory, now):
    """Factory persisting a user (and optionally a photographer profile) in
    its own session.  Returns the new user's id.

    ``photographer`` is a dict with optional keys ``company_name``,
    ``location``, ``bio``, ``images`` (list of dicts with ``tags``,
    ``is_featured``, ``is_deleted``), ``ratings`` (list of ints) and
    ``events`` (int).
    """

    async def _make_user(
        first_name="Alex",
        last_name="Rivera",
        city=None,
        state=None,
        is_discoverable=True,
        seeking_types=None,
        budget_min=None,
        budget_max=None,
        photographer=None,
        created_at=None,
        updated_at=None,
    ):
        user = User(
            id=uuid.uuid4(),
            first_name=first_name,
            last_name=last_name,
            city=city,
            state=state,
            is_discoverable=is_discoverable,
            seeking_types=seeking_types,
            budget_min=budget_min,
            budget_max=budget_max,
            created_at=created_at or now,
            updated_at=updated_at or now,
        )
        async with session_factory() as session:
            session.add(user)
            await session.flush()
            if photographer is not None:
                profile = Photographer(
                    id=uuid.uuid4(),
                    user_id=user.id,
                    name=f"{first_name} {last_name}",
                    company_name=photographer.get("company_name", f"{first_name} Photo"),
                    location=photographer.get("location", ""),
                    bio=photographer.get("bio"),
                    avatar=photographer.get("avatar"),
                )
                session.add(profile)
                await session.flush()
                for index, image in enumerate(photographer.get("images", [])):
                    session.add(
                        PortfolioImage(
                            photographer_id=profile.id,
                            image=image.get("image", f"https://img.example/{index}.jpg"),
                            title=image.get("title", f"Shot {index}"),
                            tags=image.get("tags", []),
                            is_featured=image.get("is_featured", False),
                            is_deleted=image.get("is_deleted", False),
                        )
                    )
                for rating in photographer.get("ratings", []):
                    session.add(Review(photographer_id=profile.id, rating=rating))
                for index in range(photographer.get("events", 0)):
                    session.add(Event(photographer_id=profile.id, title=f"Event {index}"))
            await session.commit()
        return user.id

    return _make_user


@pytest.fixture
def make_photographer(make_user):
    """Shortcut for a discoverable user with a minimal photographer profile."""

    async def _make_photographer(**kwargs):
        kwargs.setdefault("photographer", {})
        return await make_user(**kwargs)

    return _make_photographer


@pytest.fixture
def count_rows(session_factory):
    """Count rows of a model in a fresh session, optionally filtered."""

    async def _count_rows(model, *criteria):
        async with session_factory() as session:
            stmt = select(func.count()).select_from(model)
            if criteria:
                stmt = stmt.where(*criteria)
            return await session.scalar(stmt)

    return _count_rows


@pytest.fixture
def fetch_one(session_factory):
    """Load a single row of a model in a fresh session."""

    async def _fetch_one(model, *criteria):
        async with session_factory() as session:
            result = await session.execute(select(model).where(*criteria))
            return result.scalar_one_or_none()

    return _fetch_one

