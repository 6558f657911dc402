# ABOUTME: Telegram MarkdownV2 rendering of news items.
# ABOUTME: Escapes reserved characters and truncates content to the 4096-unit message limit.

import re

from news_relay.models import FormattedMessage, NewsItem

TELEGRAM_MAX_MESSAGE_LENGTH = 4096
PARSE_MODE = "MarkdownV2"
ESCAPE = "\\"
ELLIPSIS = "…"
PARAGRAPH_GAP = "\n\n"

# Characters with meaning in MarkdownV2; the backslash is the escape marker itself.
RESERVED_CHARACTERS = "_*[]()~`>#+-=|{}.!\\"

_RESERVED_PATTERN = re.compile("([" + re.escape(RESERVED_CHARACTERS) + "])")
_URL_RESERVED_PATTERN = re.compile(r"([)\\])")


def escape_markdown(text: str) -> str:
    """Escape every MarkdownV2 reserved character in ``text``."""
    return _RESERVED_PATTERN.sub(r"\\\1", text)


def escape_url(url: str) -> str:
    """Escape a URL for the (...) part of an inline link."""
    return _URL_RESERVED_PATTERN.sub(r"\\\1", url)


def text_length(text: str) -> int:
    """Length of ``text`` in UTF-16 code units, the way Telegram counts it."""
    return len(text.encode("utf-16-le")) // 2


def cut_escaped(text: str, size: int) -> str:
    """Cut escaped text to at most ``size`` UTF-16 units without splitting an escape pair."""
    if size <= 0:
        return ""
    used = 0
    end = 0
    for char in text:
        # Astral characters (most emoji) take a surrogate pair.
        width = 2 if ord(char) > 0xFFFF else 1
        if used + width > size:
            break
        used += width
        end += 1
    cut = text[:end]
    trailing = len(cut) - len(cut.rstrip(ESCAPE))
    if trailing % 2:
        cut = cut[:-1]
    return cut


def _header(item: NewsItem) -> str:
    title = escape_markdown(item.title)
    if item.link:
        return f"*[{title}]({escape_url(item.link)})*"
    return f"*{title}*"


def format_news_item(item: NewsItem, limit: int = TELEGRAM_MAX_MESSAGE_LENGTH) -> FormattedMessage:
    """Render a news item as a MarkdownV2 message.

    The title is bold (and linked when the item has a link), followed by a
    blank line and the content. Length is measured in UTF-16 code units.
    Text over ``limit`` is cut inside the content, after escaping, and ends
    with an ellipsis.
    """
    header = _header(item)
    content = escape_markdown(item.content)
    text = f"{header}{PARAGRAPH_GAP}{content}" if content else header
    if text_length(text) <= limit:
        return FormattedMessage(text=text, truncated=False)

    room = limit - text_length(header) - text_length(PARAGRAPH_GAP) - text_length(ELLIPSIS)
    if room >= 0:
        kept = cut_escaped(content, room)
        return FormattedMessage(text=f"{header}{PARAGRAPH_GAP}{kept}{ELLIPSIS}", truncated=True)

    # Header alone is over the limit: fall back to the plain escaped title.
    kept = cut_escaped(escape_markdown(item.title), limit - text_length(ELLIPSIS))
    return FormattedMessage(text=f"{kept}{ELLIPSIS}", truncated=True)
