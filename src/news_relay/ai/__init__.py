# ABOUTME: AI integration module for Google Gemini.
# ABOUTME: Provides the news fetcher and the response validator.

from news_relay.ai.parsing import parse_news_response
from news_relay.ai.service import NewsFetcher

__all__ = ["NewsFetcher", "parse_news_response"]
