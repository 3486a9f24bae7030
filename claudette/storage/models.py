"""
Data models for usage records.

Defines the canonical usage event, session blocks, aggregation buckets and
the exceptions raised by the loading layer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Tuple


class ClaudetteError(Exception):
    """Base class for errors raised by claudette."""


class SourceUnavailableError(ClaudetteError):
    """Raised when an explicitly requested log source cannot be opened."""

    def __init__(self, source: str, reason: str = ""):
        message = f"Log source unavailable: {source}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.source = source


class ProjectNotFoundError(ClaudetteError):
    """Raised when a project filter matches no known project."""

    def __init__(self, name: str):
        super().__init__(f"project not found: {name}")
        self.name = name


@dataclass(frozen=True)
class Project:
    """A directory of JSONL logs belonging to one logical project."""
    name: str
    path: Path


@dataclass(frozen=True)
class UsageEvent:
    """Immutable record of token consumption at a point in time.

    Built once per log line carrying a non-zero usage payload.
    """
    timestamp: datetime
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    model: str = ""
    project: str = ""
    event_id: str = ""

    @property
    def total_tokens(self) -> int:
        """All tokens (input + output + cache write + cache read)."""
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )

    @property
    def non_cache_tokens(self) -> int:
        """Input + output only."""
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class SessionBlock:
    """A contiguous window of activity, or an explicit idle gap.

    ``end_time`` is the nominal end (start + session duration) while
    ``actual_end_time`` is the timestamp of the last contained event.
    Gap blocks carry no entries and zero counters.
    """
    id: str
    start_time: datetime
    end_time: datetime
    actual_end_time: Optional[datetime] = None
    is_active: bool = False
    is_gap: bool = False
    entries: Tuple[UsageEvent, ...] = ()
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    models: Tuple[str, ...] = ()

    @property
    def total_tokens(self) -> int:
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )

    @property
    def non_cache_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    def is_active_at(self, now: datetime) -> bool:
        """Whether this block counts as active at wall-clock time ``now``.

        Active means ``now`` is before the nominal end and within one session
        duration of the last activity. Gap blocks are never active.
        """
        if self.is_gap or self.actual_end_time is None:
            return False
        return now - self.actual_end_time < self.duration and now < self.end_time


@dataclass
class ModelUsage:
    """Per-model token counts within a bucket."""
    model: str
    input: int = 0
    output: int = 0
    cache_create: int = 0
    cache_read: int = 0

    @property
    def total(self) -> int:
        return self.input + self.output + self.cache_create + self.cache_read


@dataclass
class GroupedUsage:
    """Usage aggregated under one period label or project name."""
    period: str
    models: List[str] = field(default_factory=list)
    input_total: int = 0
    output_total: int = 0
    cache_create_total: int = 0
    cache_read_total: int = 0
    by_model: Dict[str, ModelUsage] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return (
            self.input_total
            + self.output_total
            + self.cache_create_total
            + self.cache_read_total
        )


@dataclass
class DailyUsage:
    """Usage aggregated by local calendar date (``YYYY-MM-DD``)."""
    date: str
    models: List[str] = field(default_factory=list)
    input_total: int = 0
    output_total: int = 0
    cache_create_total: int = 0
    cache_read_total: int = 0
    by_model: Dict[str, ModelUsage] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return (
            self.input_total
            + self.output_total
            + self.cache_create_total
            + self.cache_read_total
        )


@dataclass(frozen=True)
class BurnRate:
    """Token throughput over a session block's event span."""
    tokens_per_minute: float
    tokens_per_minute_indicator: float  # non-cache tokens only, for thresholds
