"""Data models for RansomWatch RSS."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class DisclosurePost:
    """A normalized ransomware disclosure post from the remote source."""

    group_name: str
    post_title: str
    discovered: datetime  # timezone-aware


@dataclass(frozen=True)
class FeedItem:
    """Represents a single <item> of the generated RSS feed."""

    title: str
    pub_date: str  # RFC-1123, e.g. "Mon, 01 Jan 2024 00:00:00 GMT"
    description: str


class Outcome(Enum):
    """Outcome of a fallible pipeline step."""

    OK = "ok"
    DEGRADED = "degraded"
    FATAL = "fatal"


@dataclass
class StepResult(Generic[T]):
    """Result of a fallible step: a value, an empty fallback, or an error."""

    outcome: Outcome
    value: T | None = None
    reason: str | None = None
    error: Exception | None = field(default=None, repr=False)

    @classmethod
    def ok(cls, value: T) -> "StepResult[T]":
        return cls(Outcome.OK, value)

    @classmethod
    def degraded(
        cls, value: T, reason: str, error: Exception | None = None
    ) -> "StepResult[T]":
        return cls(Outcome.DEGRADED, value, reason, error)

    @classmethod
    def fatal(cls, error: Exception, reason: str | None = None) -> "StepResult[T]":
        return cls(Outcome.FATAL, None, reason, error)

    @property
    def is_ok(self) -> bool:
        return self.outcome is Outcome.OK

    def unwrap(self) -> T:
        """Return the carried value, re-raising the error of a fatal result."""
        if self.outcome is Outcome.FATAL:
            raise self.error
        return self.value
