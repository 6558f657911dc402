# ABOUTME: Data structures shared by the update pipeline.
# ABOUTME: Defines NewsItem, fetch outcomes, formatted messages, delivery results and tick reports.

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, field_validator

UNTITLED = "Untitled"


class NewsItem(BaseModel):
    """A single news entry produced by the AI source."""

    title: str
    content: str = ""
    link: str | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _default_title(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return UNTITLED
        return value.strip() if isinstance(value, str) else value

    @field_validator("content", mode="before")
    @classmethod
    def _default_content(cls, value: object) -> object:
        if value is None:
            return ""
        return value.strip() if isinstance(value, str) else value


class FetchFailureKind(str, Enum):
    """Why a content fetch produced no items."""

    SAFETY = "safety"
    FORMAT = "format"
    PARSE = "parse"
    AUTH = "auth"
    QUOTA = "quota"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class FetchOk:
    """Successful fetch carrying validated items."""

    items: list[NewsItem]


@dataclass(frozen=True)
class FetchFailure:
    """Classified fetch failure."""

    kind: FetchFailureKind
    message: str


FetchOutcome = FetchOk | FetchFailure


@dataclass(frozen=True)
class FormattedMessage:
    """Transport-ready message text."""

    text: str
    truncated: bool = False


@dataclass(frozen=True)
class Sent:
    message_id: int | None = None


@dataclass(frozen=True)
class RateLimited:
    retry_after: float


@dataclass(frozen=True)
class FatalTarget:
    reason: str


@dataclass(frozen=True)
class MarkupRejected:
    description: str


@dataclass(frozen=True)
class TransientError:
    detail: str


DeliveryResult = Sent | RateLimited | FatalTarget | MarkupRejected | TransientError


class TickStatus(str, Enum):
    """Terminal state of one scheduled run."""

    DONE = "done"
    SKIPPED_EMPTY = "skipped_empty"
    SKIPPED_FAILURE = "skipped_failure"
    SKIPPED_BUSY = "skipped_busy"


@dataclass
class TickReport:
    """Summary of one tick, returned by NewsUpdater.run_tick."""

    status: TickStatus
    requested: int = 0
    sent: int = 0
    failed: int = 0
    aborted: bool = False
    elapsed: float = 0.0
    failure: FetchFailure | None = None
    results: list[DeliveryResult] = field(default_factory=list)
