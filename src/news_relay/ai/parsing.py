# ABOUTME: Validation of raw Gemini output into NewsItem batches.
# ABOUTME: Strips code fences, parses JSON, classifies bad output as parse or format failures.

import html
import json
import re
from typing import Any

import structlog

from news_relay.models import FetchFailure, FetchFailureKind, FetchOk, FetchOutcome, NewsItem

log = structlog.get_logger()

FENCE_PATTERN = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?(.*?)\n?```$", re.DOTALL)
REQUIRED_FIELDS = ("title", "content")


def strip_markdown_fences(text: str) -> str:
    """Strip an enclosing markdown code fence from an LLM response.

    Gemini often wraps JSON responses in ```json ... ``` blocks even when
    asked not to.

    Args:
        text: Raw LLM response text.

    Returns:
        Text with the enclosing fence removed, or the stripped text unchanged.
    """
    stripped = text.strip()
    match = FENCE_PATTERN.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def _clean_link(value: Any) -> str | None:
    if isinstance(value, str) and value.strip().lower().startswith(("http://", "https://")):
        return value.strip()
    return None


def _record_error(index: int, record: Any) -> str | None:
    """Describe why a record cannot become a NewsItem, or None if it can."""
    if not isinstance(record, dict):
        return f"item {index} is {type(record).__name__}, expected an object"
    for name in REQUIRED_FIELDS:
        if name not in record:
            return f"item {index} has no '{name}' field"
        if record[name] is not None and not isinstance(record[name], str):
            found = type(record[name]).__name__
            return f"item {index} field '{name}' is {found}, expected a string"
    return None


def parse_news_response(raw_text: str | None, requested_count: int) -> FetchOutcome:
    """Parse raw model output into at most ``requested_count`` news items.

    Args:
        raw_text: Text returned by the model, possibly fenced.
        requested_count: Maximum batch size; extra items are dropped.

    Returns:
        FetchOk with items in source order, or a FetchFailure of kind
        ``parse`` (not JSON) or ``format`` (JSON of the wrong shape).
    """
    if requested_count < 1:
        raise ValueError("requested_count must be positive")

    if not raw_text or not raw_text.strip():
        log.error("empty_llm_response")
        return FetchFailure(FetchFailureKind.PARSE, "AI returned an empty response")

    cleaned = strip_markdown_fences(raw_text)

    try:
        data = json.loads(cleaned)
    except (ValueError, RecursionError) as e:
        log.error(
            "json_parse_failed",
            error=str(e),
            response_preview=cleaned[:500],
        )
        return FetchFailure(FetchFailureKind.PARSE, f"AI response is not valid JSON: {e}")

    if not isinstance(data, list) or not data:
        kind = "empty array" if isinstance(data, list) else type(data).__name__
        log.error("unexpected_response_shape", shape=kind)
        return FetchFailure(
            FetchFailureKind.FORMAT,
            f"AI response must be a non-empty JSON array of news objects, got {kind}",
        )

    for index, record in enumerate(data):
        error = _record_error(index, record)
        if error:
            log.error("invalid_news_record", reason=error)
            return FetchFailure(FetchFailureKind.FORMAT, error)

    if len(data) > requested_count:
        log.info("trimming_news_batch", received=len(data), requested=requested_count)

    items = [
        NewsItem(
            title=html.unescape(record["title"] or ""),
            content=html.unescape(record["content"] or ""),
            link=_clean_link(record.get("link")),
        )
        for record in data[:requested_count]
    ]
    return FetchOk(items)
