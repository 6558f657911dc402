# ABOUTME: Pytest fixtures and configuration for news relay tests.
# ABOUTME: Provides mock settings, sample news items and fake pipeline collaborators.

from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import SecretStr

from news_relay.config import Settings
from news_relay.models import NewsItem


@pytest.fixture
def mock_settings() -> Settings:
    """Create mock settings for testing."""
    return Settings(
        _env_file=None,
        telegram_bot_token=SecretStr("123456:test-token"),
        gemini_api_key=SecretStr("test-api-key"),
        target_chat_id=-1001234567890,
        cron_schedule="*/15 * * * *",
        timezone="Europe/Istanbul",
        gemini_model="gemini-test",
        news_count=3,
        ai_timeout=5.0,
        telegram_api_base="https://telegram.test",
        telegram_timeout=5.0,
        send_interval=1.0,
        max_send_attempts=5,
        rate_limit_margin=1.0,
        default_retry_after=5.0,
        log_level="DEBUG",
    )


@pytest.fixture
def sample_item() -> NewsItem:
    """Create a sample NewsItem for testing."""
    return NewsItem(
        title="Istanbul metro line opens",
        content="The new line connects the airport to the city centre.",
        link="https://example.com/metro",
    )


@pytest.fixture
def sample_items() -> list[NewsItem]:
    """Three items, in delivery order."""
    return [NewsItem(title=f"Story {i}", content=f"Content {i}.") for i in range(1, 4)]


@pytest.fixture
def mock_fetcher() -> MagicMock:
    """NewsFetcher stand-in with an async fetch method."""
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock()
    return fetcher


@pytest.fixture
def mock_telegram() -> MagicMock:
    """TelegramClient stand-in with async send methods."""
    telegram = MagicMock()
    telegram.send = AsyncMock()
    telegram.send_text = AsyncMock()
    telegram.aclose = AsyncMock()
    return telegram


@pytest.fixture
def recorded_sleeps() -> list[float]:
    """Collects delays passed to the injected sleep function."""
    return []


@pytest.fixture
def fake_sleep(recorded_sleeps: list[float]):
    """Async sleep replacement that records delays without waiting."""

    async def sleep(delay: float) -> None:
        recorded_sleeps.append(delay)

    return sleep
