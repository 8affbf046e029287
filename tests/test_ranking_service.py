"""Unit tests for RankingService: deck scoring, exclusions and ordering."""
import pytest
import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, patch

from sqlalchemy.exc import OperationalError

from lensmatch.errors import NotFoundError, TransientStoreError, ValidationError
from lensmatch.models import Swipe
from lensmatch.services.ranking_service import RankingService


@pytest.fixture
def ranking_service():
    return RankingService()


def _score(service, now, **overrides):
    params = dict(
        requester_city="Austin",
        requester_state="TX",
        seeking_types=[],
        candidate_city="Austin",
        candidate_state="TX",
        photographer_location="",
        bio=None,
        tags=[],
        avg_rating=4.5,
        review_count=12,
        last_active=now,
        now=now,
    )
    params.update(overrides)
    return service.score_candidate(**params)


class TestScoreCandidate:
    """Tests for the four score components and their total."""

    def test_worked_example_same_city(self, ranking_service, now):
        """Austin requester, Austin candidate, 4.5 avg over 12 reviews, active now -> 77.5."""
        result = _score(ranking_service, now)
        assert result["location"] == pytest.approx(40.0)
        assert result["reputation"] == pytest.approx(22.5)
        assert result["specialization"] == 0.0
        assert result["recency"] == pytest.approx(15.0)
        assert result["total"] == pytest.approx(77.5)

    def test_worked_example_other_city(self, ranking_service, now):
        """Same candidate in Denver, CO falls back to the location floor -> 41.5."""
        result = _score(ranking_service, now, candidate_city="Denver", candidate_state="CO")
        assert result["location"] == pytest.approx(4.0)
        assert result["total"] == pytest.approx(41.5)

    def test_same_state_scores_half(self, ranking_service, now):
        result = _score(ranking_service, now, candidate_city="Dallas")
        assert result["location"] == pytest.approx(20.0)

    def test_location_is_case_insensitive(self, ranking_service, now):
        result = _score(ranking_service, now, candidate_city="  AUSTIN ")
        assert result["location"] == pytest.approx(40.0)

    def test_photographer_location_text_counts_as_city(self, ranking_service, now):
        """A Denver-registered photographer whose studio text mentions Austin is local."""
        result = _score(
            ranking_service, now,
            candidate_city="Denver", candidate_state="CO",
            photographer_location="Studio in East Austin, TX",
        )
        assert result["location"] == pytest.approx(40.0)

    def test_empty_requester_location_never_matches(self, ranking_service, now):
        result = _score(
            ranking_service, now,
            requester_city=None, requester_state="",
            candidate_city=None, candidate_state=None,
        )
        assert result["location"] == pytest.approx(4.0)

    def test_no_reviews_means_no_reputation(self, ranking_service, now):
        result = _score(ranking_service, now, avg_rating=None, review_count=0)
        assert result["reputation"] == 0.0

    def test_single_five_star_review_earns_a_tenth(self, ranking_service, now):
        result = _score(ranking_service, now, avg_rating=5.0, review_count=1)
        assert result["reputation"] == pytest.approx(2.5)

    def test_reputation_monotonic_in_review_count(self, ranking_service, now):
        totals = [
            _score(ranking_service, now, review_count=count)["total"]
            for count in (0, 1, 5, 10, 11, 50)
        ]
        assert totals == sorted(totals)

    def test_reputation_monotonic_in_rating(self, ranking_service, now):
        totals = [
            _score(ranking_service, now, avg_rating=rating)["total"]
            for rating in (1.0, 2.5, 3.0, 4.9, 5.0)
        ]
        assert totals == sorted(totals)

    def test_specialization_fraction_of_seeking_tags(self, ranking_service, now):
        """Two of four tags found (one in bio, one in portfolio tags) -> 10 of 20."""
        result = _score(
            ranking_service, now,
            seeking_types=["Wedding", "portrait", "drone", "food"],
            bio="Wedding and elopement photographer",
            tags=["Portraits", "studio"],
        )
        assert result["specialization"] == pytest.approx(10.0)

    def test_specialization_zero_without_seeking_tags(self, ranking_service, now):
        result = _score(ranking_service, now, bio="wedding", tags=["wedding"])
        assert result["specialization"] == 0.0

    def test_recency_decays_linearly(self, ranking_service, now):
        result = _score(ranking_service, now, last_active=now - timedelta(days=45))
        assert result["recency"] == pytest.approx(7.5)

    def test_recency_floor_after_window(self, ranking_service, now):
        result = _score(ranking_service, now, last_active=now - timedelta(days=200))
        assert result["recency"] == 0.0

    def test_recency_clamped_for_future_activity(self, ranking_service, now):
        result = _score(ranking_service, now, last_active=now + timedelta(days=3))
        assert result["recency"] == pytest.approx(15.0)

    def test_recency_never_increases_with_inactivity(self, ranking_service, now):
        totals = [
            _score(ranking_service, now, last_active=now - timedelta(days=days))["total"]
            for days in (0, 1, 30, 89, 90, 365)
        ]
        assert totals == sorted(totals, reverse=True)

    def test_naive_timestamps_treated_as_utc(self, ranking_service, now):
        naive = (now - timedelta(days=9)).replace(tzinfo=None)
        result = _score(ranking_service, now, last_active=naive)
        assert result["recency"] == pytest.approx(13.5)


class TestGetDeck:
    """Tests for deck assembly against the database."""

    async def test_worked_example_ordering(self, ranking_service, make_user, db_session, now):
        """Austin candidate (77.5) ranks strictly above Denver candidate (41.5)."""
        requester = await make_user(city="Austin", state="TX")
        ratings = [5] * 6 + [4] * 6
        denver = await make_user(
            first_name="Dana", city="Denver", state="CO",
            photographer={"ratings": ratings},
        )
        austin = await make_user(
            first_name="Xavi", city="Austin", state="TX",
            photographer={"ratings": ratings},
        )

        deck = await ranking_service.get_deck(requester, db_session, now=now)

        assert [card["id"] for card in deck] == [austin, denver]
        assert deck[0]["score"] == pytest.approx(77.5)
        assert deck[1]["score"] == pytest.approx(41.5)

    async def test_exclusions(self, ranking_service, make_user, make_photographer, db_session, now):
        """Deck never holds the requester, swiped users, hidden users or non-photographers."""
        requester = await make_photographer(first_name="Req")
        liked = await make_photographer(first_name="Liked")
        passed = await make_photographer(first_name="Passed")
        hidden = await make_photographer(first_name="Hidden", is_discoverable=False)
        plain = await make_user(first_name="Plain")
        visible = await make_photographer(first_name="Visible")

        db_session.add_all([
            Swipe(swiper_id=requester, target_id=liked, direction="like"),
            Swipe(swiper_id=requester, target_id=passed, direction="pass"),
        ])
        await db_session.commit()

        deck = await ranking_service.get_deck(requester, db_session, now=now)
        ids = {card["id"] for card in deck}

        assert ids == {visible}
        assert not ids & {requester, liked, passed, hidden, plain}

    async def test_swipes_by_others_do_not_exclude(self, ranking_service, make_photographer, db_session, now):
        requester = await make_photographer()
        other = await make_photographer()
        candidate = await make_photographer()
        db_session.add(Swipe(swiper_id=other, target_id=candidate, direction="pass"))
        await db_session.commit()

        deck = await ranking_service.get_deck(requester, db_session, now=now)
        assert candidate in {card["id"] for card in deck}

    async def test_equal_scores_keep_pool_order(self, ranking_service, make_photographer, db_session, now):
        """Ties keep created_at order."""
        requester = await make_photographer()
        created = [
            await make_photographer(first_name=f"P{i}", created_at=now - timedelta(days=10 - i))
            for i in range(5)
        ]

        deck = await ranking_service.get_deck(requester, db_session, now=now)

        assert [card["id"] for card in deck] == created
        assert len({card["score"] for card in deck}) == 1

    async def test_limit_truncates(self, ranking_service, make_photographer, db_session, now):
        requester = await make_photographer()
        for i in range(4):
            await make_photographer(first_name=f"P{i}")

        deck = await ranking_service.get_deck(requester, db_session, limit=2, now=now)
        assert len(deck) == 2

    @pytest.mark.parametrize("limit", [0, -1, 51])
    async def test_limit_out_of_range(self, ranking_service, db_session, limit):
        with pytest.raises(ValidationError):
            await ranking_service.get_deck(uuid.uuid4(), db_session, limit=limit)

    async def test_unknown_requester(self, ranking_service, db_session):
        with pytest.raises(NotFoundError):
            await ranking_service.get_deck(uuid.uuid4(), db_session)

    async def test_empty_pool_returns_empty_deck(self, ranking_service, make_user, db_session):
        requester = await make_user()
        assert await ranking_service.get_deck(requester, db_session) == []

    async def test_card_contents(self, ranking_service, make_user, make_photographer, db_session, now):
        """Card flattens photographer data: featured image first, deleted images
        dropped, first five unique tags as specializations."""
        requester = await make_user(seeking_types=["wedding"])
        await make_photographer(
            first_name="Cam",
            photographer={
                "company_name": "Cam Studio",
                "bio": "Wedding specialist",
                "events": 2,
                "images": [
                    {"title": "plain", "tags": ["wedding", "portrait", "film"]},
                    {"title": "gone", "tags": ["deleted-tag"], "is_deleted": True},
                    {"title": "hero", "tags": ["wedding", "golden hour", "drone", "bw"], "is_featured": True},
                ],
            },
        )

        deck = await ranking_service.get_deck(requester, db_session, now=now)
        card = deck[0]["photographer"]

        assert card["company_name"] == "Cam Studio"
        assert card["avg_rating"] is None
        assert card["review_count"] == 0
        assert card["event_count"] == 2
        assert [img["title"] for img in card["portfolio_images"]] == ["hero", "plain"]
        assert card["specializations"] == ["wedding", "golden hour", "drone", "bw", "portrait"]
        assert "deleted-tag" not in card["specializations"]

    async def test_storage_failure_is_transient(self, ranking_service, make_user, db_session):
        requester = await make_user()
        failure = OperationalError("SELECT", {}, Exception("database is locked"))
        with patch.object(ranking_service, "_fetch_pool", AsyncMock(side_effect=failure)):
            with pytest.raises(TransientStoreError, match="Failed to load discover deck"):
                await ranking_service.get_deck(requester, db_session)
