# ABOUTME: Tests for validation of raw Gemini output.
# ABOUTME: Covers fence stripping, parse/format classification, placeholders and batch trimming.

import json

import pytest

from news_relay.ai.parsing import parse_news_response, strip_markdown_fences
from news_relay.models import UNTITLED, FetchFailure, FetchFailureKind, FetchOk


def _records(count: int) -> list[dict[str, str]]:
    return [{"title": f"Title {i}", "content": f"Body {i}"} for i in range(count)]


class TestStripMarkdownFences:
    """Tests for code fence removal."""

    def test_strips_json_fence(self) -> None:
        assert strip_markdown_fences('```json\n[{"a": 1}]\n```') == '[{"a": 1}]'

    def test_strips_plain_fence(self) -> None:
        assert strip_markdown_fences("```\n[]\n```") == "[]"

    def test_leaves_unfenced_text(self) -> None:
        assert strip_markdown_fences('  [{"a": 1}]  ') == '[{"a": 1}]'


class TestParseNewsResponse:
    """Tests for parse_news_response."""

    @pytest.mark.parametrize(
        ("available", "requested", "expected"),
        [(1, 3, 1), (3, 3, 3), (7, 3, 3), (5, 1, 1)],
    )
    def test_returns_min_of_available_and_requested(
        self, available: int, requested: int, expected: int
    ) -> None:
        """Batch is trimmed to the requested count, never padded."""
        outcome = parse_news_response(json.dumps(_records(available)), requested)

        assert isinstance(outcome, FetchOk)
        assert [item.title for item in outcome.items] == [f"Title {i}" for i in range(expected)]

    def test_fenced_payload_is_parsed(self) -> None:
        raw = "```json\n" + json.dumps(_records(2)) + "\n```"

        outcome = parse_news_response(raw, 5)

        assert isinstance(outcome, FetchOk)
        assert len(outcome.items) == 2

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "   ",
            "not json at all",
            "[{'title': 'single quotes'}]",
            '[{"title": "a", "content": "b"}',
            "Here are the news: [...]",
            "[" * 100_000,
        ],
    )
    def test_invalid_json_is_parse_failure(self, raw: str) -> None:
        """Syntactically invalid data never raises."""
        outcome = parse_news_response(raw, 3)

        assert isinstance(outcome, FetchFailure)
        assert outcome.kind == FetchFailureKind.PARSE

    def test_none_is_parse_failure(self) -> None:
        outcome = parse_news_response(None, 3)

        assert isinstance(outcome, FetchFailure)
        assert outcome.kind == FetchFailureKind.PARSE

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            {"title": "object, not array", "content": "x"},
            "just a string",
            42,
            [{"title": "missing content"}],
            [{"content": "missing title"}],
            [{"title": "ok", "content": "ok"}, "not an object"],
            [{"title": 5, "content": "numeric title"}],
            [{"title": "t", "content": ["list", "content"]}],
        ],
    )
    def test_wrong_shape_is_format_failure(self, payload: object) -> None:
        outcome = parse_news_response(json.dumps(payload), 3)

        assert isinstance(outcome, FetchFailure)
        assert outcome.kind == FetchFailureKind.FORMAT

    def test_blank_title_gets_placeholder(self) -> None:
        payload = [{"title": "  ", "content": "a"}, {"title": None, "content": "b"}]

        outcome = parse_news_response(json.dumps(payload), 3)

        assert isinstance(outcome, FetchOk)
        assert [item.title for item in outcome.items] == [UNTITLED, UNTITLED]

    def test_null_content_becomes_empty(self) -> None:
        outcome = parse_news_response('[{"title": "t", "content": null}]', 3)

        assert isinstance(outcome, FetchOk)
        assert outcome.items[0].content == ""

    def test_link_kept_only_when_http_url(self) -> None:
        payload = [
            {"title": "a", "content": "x", "link": "https://example.com/a"},
            {"title": "b", "content": "x", "link": "example.com/b"},
            {"title": "c", "content": "x", "link": None},
            {"title": "d", "content": "x"},
        ]

        outcome = parse_news_response(json.dumps(payload), 4)

        assert isinstance(outcome, FetchOk)
        assert [item.link for item in outcome.items] == ["https://example.com/a", None, None, None]

    def test_html_entities_unescaped(self) -> None:
        payload = [{"title": "Erdo&#287;an&#39;s visit", "content": "A &amp; B"}]

        outcome = parse_news_response(json.dumps(payload), 1)

        assert isinstance(outcome, FetchOk)
        assert outcome.items[0].title == "Erdoğan's visit"
        assert outcome.items[0].content == "A & B"

    def test_rejects_non_positive_count(self) -> None:
        with pytest.raises(ValueError):
            parse_news_response("[]", 0)
