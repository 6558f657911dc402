# ABOUTME: CLI entry point for the news relay bot.
# ABOUTME: Provides subcommands: run (scheduled, default), once, check.

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog
from pydantic import ValidationError

from news_relay.config import Settings, get_settings


def _local_time(timezone: str) -> Callable[..., dict[str, Any]]:
    """structlog processor adding the wall-clock time of the configured timezone."""
    from zoneinfo import ZoneInfo

    tz = ZoneInfo(timezone)

    def processor(_logger, _method_name, event_dict):
        event_dict["local_time"] = datetime.now(tz).strftime("%Y-%m-%d %H:%M:%S")
        return event_dict

    return processor


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog for console or JSON output.

    Falls back to defaults when settings could not be loaded, so that
    configuration errors themselves are logged.
    """
    log_level_name = settings.log_level if settings else "INFO"
    log_format = settings.log_format if settings else "console"
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)

    timestamp_fmt = "iso" if log_format == "json" else "%Y-%m-%d %H:%M:%S"
    processors = [
        structlog.processors.TimeStamper(fmt=timestamp_fmt),
        structlog.processors.add_log_level,
    ]
    if settings:
        processors.append(_local_time(settings.timezone))

    if log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
    )


def load_settings() -> Settings | None:
    """Load settings, logging every validation problem. Returns None on failure."""
    log = structlog.get_logger()
    try:
        return get_settings()
    except ValidationError as e:
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"]) or "settings"
            log.error("invalid_configuration", field=field.upper(), error=error["msg"])
        print(
            "\nConfiguration error: set TELEGRAM_BOT_TOKEN, GEMINI_API_KEY and TARGET_CHAT_ID "
            "in the environment or .env file.\n",
            file=sys.stderr,
        )
        return None


async def serve(settings: Settings) -> int:
    """Run ticks on the cron schedule until SIGINT or SIGTERM."""
    from news_relay.scheduler import start_schedule
    from news_relay.updater import NewsUpdater

    log = structlog.get_logger()
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def request_stop(signame: str) -> None:
        log.info("shutdown_signal_received", signal=signame)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, request_stop, sig.name)

    updater = NewsUpdater(settings)
    handle = start_schedule(settings, updater.run_tick)
    log.info(
        "bot_running",
        chat_id=settings.target_chat_id,
        cron=settings.cron_schedule,
        timezone=settings.timezone,
        news_count=settings.news_count,
        model=settings.gemini_model,
    )

    try:
        if settings.run_on_start:
            log.info("initial_tick")
            await updater.run_tick()
        await stop_event.wait()
    finally:
        handle.stop()
        if updater.busy:
            log.info("waiting_for_running_tick")
        await updater.wait_idle()
        await updater.telegram.aclose()

    log.info("bot_stopped")
    return 0


async def run_once(settings: Settings) -> int:
    """Run a single tick immediately."""
    from news_relay.models import TickStatus
    from news_relay.updater import NewsUpdater

    updater = NewsUpdater(settings)
    try:
        report = await updater.run_tick()
    finally:
        await updater.telegram.aclose()
    return 1 if report.status == TickStatus.SKIPPED_FAILURE or report.aborted else 0


def cmd_run(settings: Settings, _args: argparse.Namespace) -> int:
    """Start the scheduled bot."""
    return asyncio.run(serve(settings))


def cmd_once(settings: Settings, _args: argparse.Namespace) -> int:
    """Fetch and deliver one batch now."""
    return asyncio.run(run_once(settings))


def cmd_check(settings: Settings, _args: argparse.Namespace) -> int:
    """Validate configuration and show the upcoming schedule."""
    from news_relay.scheduler import build_trigger

    trigger = build_trigger(settings)
    now = datetime.now(settings.tzinfo)
    next_fire = trigger.get_next_fire_time(None, now)

    print("\n=== News Relay Configuration ===\n")
    print(f"Target chat:   {settings.target_chat_id}")
    print(f"Schedule:      {settings.cron_schedule} ({settings.timezone})")
    print(f"Next run:      {next_fire}")
    print(f"News count:    {settings.news_count}")
    print(f"Gemini model:  {settings.gemini_model}")
    print(f"Notify errors: {settings.notify_on_failure}")
    print()
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="news_relay",
        description="Gemini news relay - periodic news bulletins for a Telegram chat",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.add_parser("run", help="Deliver news on the configured cron schedule (default)")
    subparsers.add_parser("once", help="Fetch and deliver one batch immediately")
    subparsers.add_parser("check", help="Validate configuration and show the next run time")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging()
    settings = load_settings()
    if settings is None:
        return 1
    configure_logging(settings)

    commands = {
        "run": cmd_run,
        "once": cmd_once,
        "check": cmd_check,
    }

    handler = commands.get(args.command or "run")
    if handler:
        return handler(settings, args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
