"""
Lensmatch Discover: Application Configuration

Loads all configuration from environment variables (and an optional .env file)
using Pydantic Settings.  A cached ``get_settings()`` helper is provided so that
FastAPI dependency-injection, the expiry script and the services all receive the
same validated instance without re-parsing the environment on every request.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the discover and matching service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Database: Cloud SQL via the Python connector, or a plain URL
    # ------------------------------------------------------------------ #
    DATABASE_URL: str
    DB_USER: str = "lensmatch_user"
    DB_PASSWORD: str = ""
    DB_NAME: str = "lensmatch"
    CLOUD_SQL_INSTANCE_CONNECTION: str = ""
    CLOUD_SQL_USE_UNIX_SOCKET: bool = False

    # ------------------------------------------------------------------ #
    # Gemini text generation (match summaries, icebreakers)
    # ------------------------------------------------------------------ #
    GEMINI_API_KEY: str = ""  # empty disables enrichment
    GEMINI_MODEL_PRIMARY: str = "gemini-2.5-flash"
    GEMINI_MODEL_FALLBACK: str = "gemini-2.5-flash-lite"
    GEMINI_MODEL_STABLE: str = "gemini-2.0-flash"
    ENRICHMENT_TIMEOUT_SECONDS: float = 20.0
    SUMMARY_MAX_OUTPUT_TOKENS: int = 200
    ICEBREAKER_MAX_OUTPUT_TOKENS: int = 300

    # ------------------------------------------------------------------ #
    # Match lifecycle
    # ------------------------------------------------------------------ #
    MATCH_TTL_HOURS: int = 72

    # ------------------------------------------------------------------ #
    # Card deck
    # ------------------------------------------------------------------ #
    DECK_DEFAULT_LIMIT: int = 20
    DECK_MAX_LIMIT: int = 50
    CANDIDATE_POOL_SIZE: int = 100
    RECENCY_WINDOW_DAYS: float = 90.0

    # Score weights, on a 0-100 scale
    LOCATION_WEIGHT: float = 40.0
    REPUTATION_WEIGHT: float = 25.0
    SPECIALIZATION_WEIGHT: float = 20.0
    RECENCY_WEIGHT: float = 15.0

    # ------------------------------------------------------------------ #
    # Runtime environment
    # ------------------------------------------------------------------ #
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # ------------------------------------------------------------------ #
    # CORS
    # ------------------------------------------------------------------ #
    ALLOWED_ORIGINS: str = "*"

    # ------------------------------------------------------------------ #
    # Derived helpers
    # ------------------------------------------------------------------ #
    @property
    def allowed_origins_list(self) -> list[str]:
        """Return ALLOWED_ORIGINS as a list split on commas."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def enrichment_enabled(self) -> bool:
        return bool(self.GEMINI_API_KEY)

    @field_validator(
        "LOCATION_WEIGHT",
        "REPUTATION_WEIGHT",
        "SPECIALIZATION_WEIGHT",
        "RECENCY_WEIGHT",
    )
    @classmethod
    def _weight_must_be_between_0_and_100(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError(f"Weight must be between 0 and 100, got {v}")
        return v

    @model_validator(mode="after")
    def _weights_must_sum_to_100(self) -> "Settings":
        total = (
            self.LOCATION_WEIGHT
            + self.REPUTATION_WEIGHT
            + self.SPECIALIZATION_WEIGHT
            + self.RECENCY_WEIGHT
        )
        if abs(total - 100.0) > 1e-6:
            raise ValueError(f"Score weights must sum to 100, got {total}")
        if self.DECK_DEFAULT_LIMIT > self.DECK_MAX_LIMIT:
            raise ValueError("DECK_DEFAULT_LIMIT cannot exceed DECK_MAX_LIMIT")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached, validated ``Settings`` instance.

    Using ``@lru_cache`` guarantees the .env file is read and validated
    exactly once per process lifetime::

        from lensmatch.config import get_settings
        settings = get_settings()
    """
    return Settings()  # type: ignore[call-arg]
