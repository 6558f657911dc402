# ABOUTME: Telegram Bot API client for delivering formatted news messages.
# ABOUTME: Maps sendMessage error bodies to delivery results and paces consecutive sends.

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog

from news_relay.config import Settings, get_settings
from news_relay.models import (
    DeliveryResult,
    FatalTarget,
    FormattedMessage,
    MarkupRejected,
    RateLimited,
    Sent,
    TransientError,
)
from news_relay.telegram.formatter import PARSE_MODE, escape_markdown

log = structlog.get_logger()

Sleep = Callable[[float], Awaitable[None]]


def classify_error(
    status_code: int,
    body: dict[str, Any] | None,
    default_retry_after: float = 5.0,
    retry_after_header: str | None = None,
) -> DeliveryResult:
    """Interpret a failed sendMessage response.

    The Bot API error body (error_code, description, parameters) is used when
    present; otherwise the HTTP status code stands in for error_code.
    """
    body = body or {}
    code = body.get("error_code") or status_code
    description = str(body.get("description") or f"HTTP {status_code}")
    parameters = body.get("parameters") or {}
    lowered = description.lower()

    if code == 429:
        retry_after = parameters.get("retry_after")
        if retry_after is None and retry_after_header:
            try:
                retry_after = float(retry_after_header)
            except ValueError:
                retry_after = None
        return RateLimited(float(retry_after if retry_after is not None else default_retry_after))
    if parameters.get("migrate_to_chat_id"):
        return FatalTarget(f"{description} (migrated to {parameters['migrate_to_chat_id']})")
    if code in (401, 403):
        return FatalTarget(description)
    if code == 400 and "chat not found" in lowered:
        return FatalTarget(description)
    if code == 400 and "can't parse entities" in lowered:
        return MarkupRejected(description)
    return TransientError(f"{code}: {description}")


class TelegramClient:
    """Sends messages to one fixed Telegram chat."""

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = http_client
        self._owns_client = http_client is None
        self._sleep = sleep
        self._clock = clock
        self._last_sent_at: float | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-initialized HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.telegram_timeout)
        return self._client

    @property
    def send_url(self) -> str:
        token = self.settings.telegram_bot_token.get_secret_value()
        return f"{self.settings.telegram_api_base}/bot{token}/sendMessage"

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "TelegramClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def _pace(self) -> None:
        if self._last_sent_at is None:
            return
        remaining = self.settings.send_interval - (self._clock() - self._last_sent_at)
        if remaining > 0:
            log.debug("pacing_send", delay=round(remaining, 3))
            await self._sleep(remaining)

    async def send(self, message: FormattedMessage) -> DeliveryResult:
        """Send one MarkdownV2 message to the configured chat.

        Transport problems never raise; they are returned as TransientError.
        """
        await self._pace()
        payload = {
            "chat_id": self.settings.target_chat_id,
            "text": message.text,
            "parse_mode": PARSE_MODE,
            "disable_web_page_preview": False,
        }

        try:
            response = await self.client.post(self.send_url, json=payload)
        except httpx.TimeoutException as e:
            log.warning("telegram_timeout", error=str(e) or type(e).__name__)
            return TransientError(f"timeout: {e}")
        except httpx.HTTPError as e:
            log.warning("telegram_transport_error", error=str(e) or type(e).__name__)
            return TransientError(f"transport error: {e}")

        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = None

        if response.is_success and body is not None and body.get("ok"):
            self._last_sent_at = self._clock()
            message_id = (body.get("result") or {}).get("message_id")
            return Sent(message_id=message_id)

        result = classify_error(
            response.status_code,
            body,
            default_retry_after=self.settings.default_retry_after,
            retry_after_header=response.headers.get("Retry-After"),
        )
        log.debug("telegram_send_rejected", status=response.status_code, result=repr(result))
        return result

    async def send_text(self, text: str) -> DeliveryResult:
        """Escape and send a plain-text notice."""
        return await self.send(FormattedMessage(text=escape_markdown(text)))
