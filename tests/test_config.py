"""Unit tests for Settings validation."""
import pytest
from pydantic import ValidationError

from lensmatch.config import Settings


def _settings(**overrides):
    return Settings(DATABASE_URL="sqlite+aiosqlite://", _env_file=None, **overrides)


class TestSettings:

    def test_defaults(self):
        settings = _settings()
        assert settings.MATCH_TTL_HOURS == 72
        assert settings.DECK_DEFAULT_LIMIT == 20
        assert settings.CANDIDATE_POOL_SIZE == 100
        assert (
            settings.LOCATION_WEIGHT,
            settings.REPUTATION_WEIGHT,
            settings.SPECIALIZATION_WEIGHT,
            settings.RECENCY_WEIGHT,
        ) == (40.0, 25.0, 20.0, 15.0)

    def test_enrichment_disabled_without_key(self):
        assert _settings(GEMINI_API_KEY="").enrichment_enabled is False
        assert _settings(GEMINI_API_KEY="k").enrichment_enabled is True

    def test_weights_must_sum_to_100(self):
        with pytest.raises(ValidationError, match="sum to 100"):
            _settings(LOCATION_WEIGHT=50.0)

    def test_rebalanced_weights_accepted(self):
        settings = _settings(LOCATION_WEIGHT=30.0, RECENCY_WEIGHT=25.0)
        assert settings.RECENCY_WEIGHT == 25.0

    def test_negative_weight_rejected(self):
        with pytest.raises(ValidationError):
            _settings(LOCATION_WEIGHT=-10.0, RECENCY_WEIGHT=65.0)

    def test_default_limit_within_max(self):
        with pytest.raises(ValidationError):
            _settings(DECK_DEFAULT_LIMIT=60)

    def test_allowed_origins_list(self):
        settings = _settings(ALLOWED_ORIGINS="https://a.example, https://b.example")
        assert settings.allowed_origins_list == ["https://a.example", "https://b.example"]
