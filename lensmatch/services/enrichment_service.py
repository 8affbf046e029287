"""
Lensmatch Discover: Best-effort Match Enrichment via Gemini

Two generated artefacts decorate a match:

- a 2-3 sentence compatibility summary, produced once on a detached asyncio
  task right after the match commits and written to ``matches.ai_summary``
  only while that column is still empty;
- three conversation starters, generated on demand when a participant opens
  the match.

Every call walks the model fallback chain (primary -> fallback -> stable)
with tenacity retries on rate-limit / server errors, and the whole chain is
bounded by ``ENRICHMENT_TIMEOUT_SECONDS``.  Failures become
``EnrichmentError`` internally and are logged; callers only ever see
``None`` or an empty list.  An empty ``GEMINI_API_KEY`` disables the
service.
"""

from __future__ import annotations

import asyncio
import json
import re
import uuid
from typing import Any

import google.generativeai as genai
import structlog
from json_repair import repair_json
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from lensmatch.config import get_settings
from lensmatch.database import get_session_factory
from lensmatch.errors import EnrichmentError
from lensmatch.models.match import Match
from lensmatch.models.user import User
from lensmatch.services.profile_reader import load_user_cards, unique_tags

logger = structlog.get_logger("lensmatch.enrichment_service")

ICEBREAKER_COUNT = 3

# Strong references to in-flight summary tasks; the event loop only keeps
# weak ones.
_background_tasks: set[asyncio.Task] = set()


def _is_retryable_api_error(exc: BaseException) -> bool:
    """Return True for HTTP 429 and 500/503 style Gemini errors."""
    exc_str = str(exc).lower()
    exc_type = type(exc).__name__.lower()

    if "429" in exc_str or "resource_exhausted" in exc_str:
        return True
    if "500" in exc_str or "503" in exc_str or "internal" in exc_str:
        return True
    if "resourceexhausted" in exc_type or "serviceunavailable" in exc_type:
        return True
    return False


def format_profile(card: dict, include_business: bool = True) -> str:
    """Render a user card as the plain-text block used in prompts."""
    lines = [f"{card.get('first_name', '')} {card.get('last_name', '')}".strip()]
    place = ", ".join(p for p in (card.get("city"), card.get("state")) if p)
    if place:
        lines.append(f"Location: {place}")

    photographer = card.get("photographer")
    if photographer:
        lines.append(f"Photographer: {photographer.get('company_name', '')}")
        if include_business and photographer.get("location"):
            lines.append(f"Based in: {photographer['location']}")
        if photographer.get("bio"):
            lines.append(f"Bio: {photographer['bio']}")
        tags = unique_tags(
            tag
            for image in photographer.get("portfolio_images", [])
            for tag in image.get("tags", [])
        )
        if tags:
            lines.append(f"Portfolio tags: {', '.join(tags)}")
        if include_business and photographer.get("review_count"):
            lines.append(
                f"Rating: {photographer['avg_rating']:.1f}/5 "
                f"({photographer['review_count']} reviews)"
            )
    return "\n".join(lines)


class EnrichmentService:
    """Gemini-backed summary and icebreaker generation.

    Parameters
    ----------
    session_factory:
        Session factory used by detached summary tasks.  Defaults to the
        process-wide factory from ``lensmatch.database``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        settings = get_settings()
        self._session_factory = session_factory
        self.enabled: bool = settings.enrichment_enabled
        self.timeout_seconds: float = settings.ENRICHMENT_TIMEOUT_SECONDS
        self.summary_max_tokens: int = settings.SUMMARY_MAX_OUTPUT_TOKENS
        self.icebreaker_max_tokens: int = settings.ICEBREAKER_MAX_OUTPUT_TOKENS

        self._model_chain: list[str] = [
            settings.GEMINI_MODEL_PRIMARY,
            settings.GEMINI_MODEL_FALLBACK,
            settings.GEMINI_MODEL_STABLE,
        ]

        if self.enabled:
            genai.configure(api_key=settings.GEMINI_API_KEY)

        logger.info(
            "enrichment_service_initialised",
            enabled=self.enabled,
            model_chain=self._model_chain,
            timeout_seconds=self.timeout_seconds,
        )

    # ══════════════════════════════════════════════════════════════════
    # Public API
    # ══════════════════════════════════════════════════════════════════

    async def summarize(self, profile_a: dict, profile_b: dict) -> str | None:
        """Return a short compatibility summary, or ``None`` on any failure."""
        if not self.enabled:
            return None

        prompt = (
            "You are writing a brief compatibility summary for two users who "
            "matched on a photographer marketplace. Write 2-3 sentences "
            "explaining why they're a good match. Be specific and reference "
            "their actual details. No greeting or sign-off.\n\n"
            f"User 1:\n{format_profile(profile_a)}\n\n"
            f"User 2:\n{format_profile(profile_b)}"
        )
        try:
            text = await self._generate(prompt, self.summary_max_tokens)
        except EnrichmentError as exc:
            logger.warning("summary_generation_failed", error=exc.message)
            return None

        summary = text.strip()
        return summary or None

    async def icebreakers(self, sender: dict, recipient: dict) -> list[str]:
        """Return up to three conversation starters; ``[]`` on any failure."""
        if not self.enabled:
            return []

        prompt = (
            "You are helping a user start a conversation with someone they "
            "matched with on a photographer marketplace. Generate exactly "
            f"{ICEBREAKER_COUNT} short, natural conversation starters. Return "
            "them as a JSON array of strings, nothing else.\n\n"
            f"User (sending message):\n{format_profile(sender, include_business=False)}\n\n"
            f"Matched with:\n{format_profile(recipient, include_business=False)}"
        )
        try:
            text = await self._generate(prompt, self.icebreaker_max_tokens, json_output=True)
            parsed = self._parse_json_array(text)
        except EnrichmentError as exc:
            logger.warning("icebreaker_generation_failed", error=exc.message)
            return []

        if not all(isinstance(item, str) for item in parsed):
            logger.warning("icebreaker_payload_invalid", preview=text[:120])
            return []
        return [item.strip() for item in parsed if item.strip()][:ICEBREAKER_COUNT]

    def schedule_match_summary(
        self,
        match_id: uuid.UUID,
        user_a_id: uuid.UUID,
        user_b_id: uuid.UUID,
    ) -> asyncio.Task | None:
        """Start summary generation for a freshly committed match.

        Returns immediately; the returned task is tracked module-wide so
        shutdown can drain it.  Nothing awaits it on the request path.
        """
        if not self.enabled:
            logger.debug("summary_enrichment_skipped", match_id=str(match_id), reason="disabled")
            return None

        task = asyncio.create_task(
            self._summarize_match(match_id, user_a_id, user_b_id),
            name=f"match-summary-{match_id}",
        )
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
        logger.debug("summary_enrichment_scheduled", match_id=str(match_id))
        return task

    # ══════════════════════════════════════════════════════════════════
    # Detached summary task
    # ══════════════════════════════════════════════════════════════════

    async def _summarize_match(
        self,
        match_id: uuid.UUID,
        user_a_id: uuid.UUID,
        user_b_id: uuid.UUID,
    ) -> None:
        log = logger.bind(match_id=str(match_id))
        factory = self._session_factory or get_session_factory()
        try:
            async with factory() as session:
                result = await session.execute(
                    select(User).where(User.id.in_([user_a_id, user_b_id]))
                )
                cards = await load_user_cards(session, result.scalars().all())

            if user_a_id not in cards or user_b_id not in cards:
                log.warning("summary_enrichment_skipped", reason="participant_missing")
                return

            summary = await self.summarize(cards[user_a_id], cards[user_b_id])
            if summary is None:
                return

            async with factory() as session:
                result = await session.execute(
                    update(Match)
                    .where(Match.id == match_id, Match.ai_summary.is_(None))
                    .values(ai_summary=summary)
                )
                await session.commit()

            log.info("match_summary_stored", updated=result.rowcount)
        except Exception:
            # Isolated: the match is already committed and stays valid.
            log.exception("summary_enrichment_failed")

    # ══════════════════════════════════════════════════════════════════
    # Gemini calls
    # ══════════════════════════════════════════════════════════════════

    async def _generate(
        self,
        prompt: str,
        max_output_tokens: int,
        json_output: bool = False,
    ) -> str:
        """Run the model chain under the enrichment timeout."""
        try:
            return await asyncio.wait_for(
                self._call_model_chain(prompt, max_output_tokens, json_output),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise EnrichmentError(
                f"Text generation timed out after {self.timeout_seconds}s"
            ) from exc

    async def _call_model_chain(
        self,
        prompt: str,
        max_output_tokens: int,
        json_output: bool,
    ) -> str:
        generation_config = genai.GenerationConfig(
            max_output_tokens=max_output_tokens,
            response_mime_type="application/json" if json_output else "text/plain",
        )

        last_exception: Exception | None = None
        for model_name in self._model_chain:
            try:
                return await self._call_gemini_with_retry(
                    model_name, prompt, generation_config
                )
            except Exception as exc:
                last_exception = exc
                logger.warning("model_fallback", failed_model=model_name, error=str(exc))

        raise EnrichmentError(
            f"All Gemini models exhausted. Last error: {last_exception}"
        )

    async def _call_gemini_with_retry(
        self,
        model_name: str,
        prompt: str,
        generation_config: Any,
    ) -> str:
        """Call one model, retrying transient errors with exponential backoff
        (0.5s initial, 4s cap, 3 attempts)."""
        model = genai.GenerativeModel(model_name)

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_is_retryable_api_error),
                stop=stop_after_attempt(3),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
                reraise=True,
            ):
                with attempt:
                    response = await model.generate_content_async(
                        prompt,
                        generation_config=generation_config,
                    )
                    if not response.candidates:
                        raise ValueError(
                            f"Gemini returned no candidates for model {model_name}"
                        )
                    text = response.text
                    if not text or not text.strip():
                        raise ValueError(f"Gemini returned empty text for model {model_name}")
                    return text
        except RetryError as retry_err:
            raise retry_err.last_attempt.exception() from retry_err

        raise EnrichmentError(f"No attempt completed for model {model_name}")

    # ══════════════════════════════════════════════════════════════════
    # Parsing
    # ══════════════════════════════════════════════════════════════════

    def _parse_json_array(self, text: str) -> list:
        """Extract a JSON array from model output.

        Tries a direct parse, a markdown code fence, the outermost brackets,
        and finally ``jsonrepair``.
        """
        cleaned = (text or "").strip()
        if not cleaned:
            raise EnrichmentError("Empty icebreaker response")

        candidates = [cleaned]
        fence = re.search(r"```(?:json)?\s*\n?(.*?)\n?\s*```", cleaned, re.DOTALL)
        if fence:
            candidates.append(fence.group(1).strip())
        first, last = cleaned.find("["), cleaned.rfind("]")
        if first >= 0 and last > first:
            candidates.append(cleaned[first : last + 1])

        for candidate in candidates:
            try:
                result = json.loads(candidate)
            except (json.JSONDecodeError, TypeError):
                continue
            if isinstance(result, list):
                return result

        try:
            result = json.loads(repair_json(candidates[-1]))
        except (json.JSONDecodeError, TypeError, ValueError) as exc:
            raise EnrichmentError(f"Unparseable icebreaker payload: {cleaned[:120]}") from exc
        if isinstance(result, list):
            logger.info("json_parsed_via_jsonrepair", preview=cleaned[:80])
            return result
        raise EnrichmentError(f"Icebreaker payload is not an array: {cleaned[:120]}")


async def drain_background_tasks(timeout: float) -> int:
    """Wait up to ``timeout`` seconds for in-flight summary tasks, then cancel
    the rest.  Returns how many were cancelled."""
    pending_tasks = set(_background_tasks)
    if not pending_tasks:
        return 0

    _, pending = await asyncio.wait(pending_tasks, timeout=timeout)
    for task in pending:
        task.cancel()
    if pending:
        logger.warning("summary_tasks_cancelled", count=len(pending))
    return len(pending)
