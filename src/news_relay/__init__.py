# ABOUTME: Main package for the Gemini-to-Telegram news relay.
# ABOUTME: Exports settings and the core data models of the update pipeline.

from news_relay.config import get_settings
from news_relay.models import FetchFailure, FetchOk, FormattedMessage, NewsItem, TickReport

__all__ = [
    "get_settings",
    "FetchFailure",
    "FetchOk",
    "FormattedMessage",
    "NewsItem",
    "TickReport",
]
