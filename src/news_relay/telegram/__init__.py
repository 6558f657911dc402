# ABOUTME: Telegram delivery module.
# ABOUTME: Provides MarkdownV2 formatting and the Bot API client.

from news_relay.telegram.client import TelegramClient, classify_error
from news_relay.telegram.formatter import escape_markdown, format_news_item

__all__ = ["TelegramClient", "classify_error", "escape_markdown", "format_news_item"]
