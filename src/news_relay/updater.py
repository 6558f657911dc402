# ABOUTME: Per-tick update pipeline: fetch news, format, deliver with bounded rate-limit retry.
# ABOUTME: Guards against overlapping ticks and reports each run as a TickReport.

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt

from news_relay.ai.service import NewsFetcher
from news_relay.config import Settings, get_settings
from news_relay.models import (
    DeliveryResult,
    FatalTarget,
    FetchFailure,
    FetchFailureKind,
    FetchOk,
    FormattedMessage,
    MarkupRejected,
    NewsItem,
    RateLimited,
    Sent,
    TickReport,
    TickStatus,
    TransientError,
)
from news_relay.telegram.client import TelegramClient
from news_relay.telegram.formatter import format_news_item

log = structlog.get_logger()

Sleep = Callable[[float], Awaitable[None]]

FAILURE_NOTICE = "⚠️ News could not be fetched this round. Reason: {message}"


class NewsUpdater:
    """Runs the fetch-format-deliver pipeline once per scheduled tick."""

    def __init__(
        self,
        settings: Settings | None = None,
        fetcher: NewsFetcher | None = None,
        telegram: TelegramClient | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self.fetcher = fetcher or NewsFetcher(self.settings)
        self.telegram = telegram or TelegramClient(self.settings)
        self._sleep = sleep
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        """True while a tick is in flight."""
        return self._lock.locked()

    async def wait_idle(self) -> None:
        """Wait for an in-flight tick to finish."""
        async with self._lock:
            pass

    async def run_tick(self) -> TickReport:
        """Run one update. Overlapping calls are skipped, not queued."""
        if self._lock.locked():
            log.warning("tick_skipped_busy")
            return TickReport(status=TickStatus.SKIPPED_BUSY)

        async with self._lock:
            return await self._run()

    async def _run(self) -> TickReport:
        started = time.monotonic()
        requested = self.settings.news_count
        log.info("tick_started", requested=requested)

        try:
            outcome = await self.fetcher.fetch(requested)
        except Exception:
            log.exception("news_fetch_crashed")
            outcome = FetchFailure(FetchFailureKind.UNKNOWN, "news fetch raised unexpectedly")

        if isinstance(outcome, FetchFailure):
            log.error("news_fetch_failed", kind=outcome.kind.value, reason=outcome.message)
            await self._notify_failure(outcome)
            return TickReport(
                status=TickStatus.SKIPPED_FAILURE,
                requested=requested,
                failure=outcome,
                elapsed=time.monotonic() - started,
            )
        if not isinstance(outcome, FetchOk):
            raise TypeError(f"unexpected fetch outcome: {outcome!r}")

        if not outcome.items:
            log.info("no_news_to_send")
            return TickReport(
                status=TickStatus.SKIPPED_EMPTY,
                requested=requested,
                elapsed=time.monotonic() - started,
            )

        report = TickReport(status=TickStatus.DONE, requested=requested)
        await self._deliver_batch(outcome.items, report)

        report.elapsed = time.monotonic() - started
        log.info(
            "tick_complete",
            sent=report.sent,
            failed=report.failed,
            total=len(outcome.items),
            aborted=report.aborted,
            elapsed=round(report.elapsed, 2),
        )
        return report

    async def _deliver_batch(self, items: list[NewsItem], report: TickReport) -> None:
        for position, item in enumerate(items, start=1):
            try:
                message = format_news_item(item)
                if message.truncated:
                    log.info("message_truncated", position=position, title=item.title)
                result = await self.deliver(message)
            except Exception:
                report.failed += 1
                log.exception("message_delivery_crashed", position=position)
                continue

            report.results.append(result)

            if isinstance(result, Sent):
                report.sent += 1
                log.info("message_sent", position=position, message_id=result.message_id)
            elif isinstance(result, FatalTarget):
                report.failed += 1
                report.aborted = True
                log.critical(
                    "delivery_target_unreachable",
                    chat_id=self.settings.target_chat_id,
                    reason=result.reason,
                    skipped=len(items) - position,
                    hint="check TARGET_CHAT_ID and that the bot is a member of the chat",
                )
                return
            elif isinstance(result, RateLimited):
                report.failed += 1
                log.error(
                    "rate_limit_retries_exhausted",
                    position=position,
                    attempts=self.settings.max_send_attempts,
                )
            elif isinstance(result, MarkupRejected):
                report.failed += 1
                log.error("message_markup_rejected", position=position, reason=result.description)
            elif isinstance(result, TransientError):
                report.failed += 1
                log.error("message_send_failed", position=position, reason=result.detail)
            else:
                raise TypeError(f"unexpected delivery result: {result!r}")

    def _rate_limit_wait(self, retry_state: RetryCallState) -> float:
        result = retry_state.outcome.result() if retry_state.outcome else None
        retry_after = result.retry_after if isinstance(result, RateLimited) else 0.0
        return retry_after + self.settings.rate_limit_margin

    async def deliver(self, message: FormattedMessage) -> DeliveryResult:
        """Send one message, retrying the same message while rate limited.

        Gives up after max_send_attempts and returns the last RateLimited.
        """
        retrying = AsyncRetrying(
            retry=retry_if_result(lambda result: isinstance(result, RateLimited)),
            stop=stop_after_attempt(self.settings.max_send_attempts),
            wait=self._rate_limit_wait,
            sleep=self._sleep,
            before_sleep=lambda retry_state: log.warning(
                "telegram_rate_limited",
                attempt=retry_state.attempt_number,
                wait=retry_state.next_action.sleep if retry_state.next_action else None,
            ),
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
        )
        return await retrying(self.telegram.send, message)

    async def _notify_failure(self, failure: FetchFailure) -> None:
        if not self.settings.notify_on_failure:
            return
        try:
            result = await self.telegram.send_text(FAILURE_NOTICE.format(message=failure.message))
        except Exception:
            log.exception("failure_notice_crashed")
            return
        if not isinstance(result, Sent):
            log.warning("failure_notice_not_sent", result=repr(result))
