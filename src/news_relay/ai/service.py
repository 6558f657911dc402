# ABOUTME: Google Gemini content fetcher for the news pipeline.
# ABOUTME: Issues one generation request per tick and classifies safety blocks and transport errors.

import asyncio
from typing import Any

import httpx
import structlog
from google import genai
from google.genai import errors, types

from news_relay.ai.parsing import parse_news_response
from news_relay.ai.prompts import NEWS_SYSTEM_PROMPT, build_news_prompt
from news_relay.config import Settings, get_settings
from news_relay.models import FetchFailure, FetchFailureKind, FetchOutcome, NewsItem

log = structlog.get_logger()

SAFETY_FINISH_REASONS = frozenset({"SAFETY", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII"})

FAILURE_MESSAGES = {
    FetchFailureKind.AUTH: "Gemini API key is invalid or lacks permission.",
    FetchFailureKind.QUOTA: "Gemini API quota is exhausted.",
    FetchFailureKind.NETWORK: "Network error while contacting the Gemini API.",
    FetchFailureKind.TIMEOUT: "Gemini API did not answer in time.",
    FetchFailureKind.UNKNOWN: "Unexpected error while talking to the Gemini API.",
}


def news_response_schema() -> dict[str, Any]:
    """JSON schema for the expected answer: an array of items with title and content."""
    item_schema = NewsItem.model_json_schema()
    item_schema["required"] = ["title", "content"]
    return {"type": "array", "items": item_schema}


def _enum_value(value: Any) -> str:
    return str(getattr(value, "value", value))


def classify_ai_error(exc: BaseException) -> FetchFailureKind:
    """Map a Gemini call failure to a FetchFailureKind.

    Structured fields (HTTP code and status of google-genai's APIError, httpx
    exception types) are checked first. The message-text checks at the end are
    a best-effort heuristic for errors that carry no structured data.
    """
    if isinstance(exc, errors.APIError):
        status = (exc.status or "").upper()
        message = (exc.message or "").lower()
        if exc.code in (401, 403) or status in ("UNAUTHENTICATED", "PERMISSION_DENIED"):
            return FetchFailureKind.AUTH
        if "api key not valid" in message:
            return FetchFailureKind.AUTH
        if exc.code == 429 or status == "RESOURCE_EXHAUSTED":
            return FetchFailureKind.QUOTA
        if exc.code == 504 or status == "DEADLINE_EXCEEDED":
            return FetchFailureKind.TIMEOUT

    if isinstance(exc, (TimeoutError, httpx.TimeoutException)):
        return FetchFailureKind.TIMEOUT
    if isinstance(exc, (httpx.TransportError, OSError)):
        return FetchFailureKind.NETWORK

    text = str(exc).lower()
    if "api key not valid" in text:
        return FetchFailureKind.AUTH
    if "quota" in text:
        return FetchFailureKind.QUOTA
    if "timed out" in text or "timeout" in text:
        return FetchFailureKind.TIMEOUT
    if "fetch" in text or "connect" in text:
        return FetchFailureKind.NETWORK
    return FetchFailureKind.UNKNOWN


def safety_block_reason(response: types.GenerateContentResponse) -> str | None:
    """Return the block reason if Gemini refused the request on safety grounds."""
    feedback = response.prompt_feedback
    if feedback is not None and feedback.block_reason:
        return _enum_value(feedback.block_reason)

    candidates = response.candidates or []
    if candidates and candidates[0].finish_reason:
        reason = _enum_value(candidates[0].finish_reason)
        if reason in SAFETY_FINISH_REASONS:
            return reason
    return None


class NewsFetcher:
    """Fetches a batch of news items from Google Gemini."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._client: genai.Client | None = None

    @property
    def client(self) -> genai.Client:
        """Lazy-initialized Gemini client."""
        if self._client is None:
            self._client = genai.Client(
                api_key=self.settings.gemini_api_key.get_secret_value(),
                http_options=types.HttpOptions(timeout=int(self.settings.ai_timeout * 1000)),
            )
        return self._client

    def _generate_content_config(self) -> types.GenerateContentConfig:
        """Create generation config asking for a JSON array of news items."""
        config = types.GenerateContentConfig(
            temperature=self.settings.ai_temperature,
            response_mime_type="application/json",
            system_instruction=NEWS_SYSTEM_PROMPT,
        )
        config.response_json_schema = news_response_schema()
        return config

    async def fetch(self, requested_count: int | None = None) -> FetchOutcome:
        """Request ``requested_count`` news items and validate the answer.

        Never raises for remote failures: they come back as FetchFailure.
        There is no retry here; a failed tick waits for the next schedule.

        Args:
            requested_count: Batch size. Defaults to the news_count setting.

        Returns:
            FetchOk with at most ``requested_count`` items, or a FetchFailure.
        """
        count = requested_count or self.settings.news_count
        prompt = build_news_prompt(count, self.settings.news_topic, self.settings.news_language)
        log.info("requesting_news", model=self.settings.gemini_model, count=count)

        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.settings.gemini_model,
                    contents=prompt,
                    config=self._generate_content_config(),
                ),
                timeout=self.settings.ai_timeout,
            )
        except Exception as e:
            kind = classify_ai_error(e)
            log.error("gemini_request_failed", kind=kind.value, error=str(e) or type(e).__name__)
            return FetchFailure(kind, FAILURE_MESSAGES[kind])

        reason = safety_block_reason(response)
        if reason:
            log.warning("gemini_safety_block", reason=reason)
            return FetchFailure(
                FetchFailureKind.SAFETY,
                f"AI request was blocked by safety filters ({reason}).",
            )

        text = response.text or ""
        log.debug("gemini_response_received", length=len(text))
        return parse_news_response(text, count)
