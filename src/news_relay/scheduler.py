# ABOUTME: Cron scheduling of update ticks with APScheduler.
# ABOUTME: start_schedule returns an explicit handle used by the shutdown routine.

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from news_relay.config import Settings
from news_relay.cron import cron_trigger

log = structlog.get_logger()

JOB_ID = "news_update"


class ScheduleHandle:
    """Running cron schedule that can be stopped once."""

    def __init__(self, scheduler: AsyncIOScheduler, trigger: CronTrigger) -> None:
        self.scheduler = scheduler
        self.trigger = trigger
        self._stopped = False

    @property
    def running(self) -> bool:
        return not self._stopped and self.scheduler.running

    def next_run_time(self) -> datetime | None:
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    def stop(self) -> None:
        """Stop firing new ticks. In-flight ticks are not cancelled.

        AsyncIOScheduler may finish its shutdown on the next loop iteration, so
        the handle tracks its own state and only asks for shutdown once.
        """
        if self._stopped:
            return
        self._stopped = True
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        log.info("schedule_stopped")


def build_trigger(settings: Settings) -> CronTrigger:
    """Cron trigger for the configured expression and timezone."""
    return cron_trigger(settings.cron_schedule, timezone=settings.tzinfo)


def start_schedule(
    settings: Settings,
    job: Callable[[], Awaitable[Any]],
    scheduler: AsyncIOScheduler | None = None,
) -> ScheduleHandle:
    """Schedule ``job`` on the configured cron expression.

    Must be called from inside a running event loop.
    """
    trigger = build_trigger(settings)
    scheduler = scheduler or AsyncIOScheduler(timezone=settings.tzinfo)
    scheduler.add_job(
        job,
        trigger,
        id=JOB_ID,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=60,
    )
    scheduler.start()

    handle = ScheduleHandle(scheduler, trigger)
    log.info(
        "schedule_started",
        cron=settings.cron_schedule,
        timezone=settings.timezone,
        next_run=str(handle.next_run_time()),
    )
    return handle
