"""
Usage aggregation by time period, calendar day or project.

Buckets are created lazily on the first event carrying their key. Time-based
groupings keep first-seen order (callers sort events beforehand); project
grouping sorts bucket keys.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Tuple, Union

from claudette.storage.models import DailyUsage, GroupedUsage, ModelUsage, UsageEvent


UNKNOWN = "unknown"

# English abbreviations regardless of the process locale
_MONTH_ABBR = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_MODEL_FAMILIES = (
    ("opus", "opus-4-5"),
    ("sonnet", "sonnet-4-5"),
    ("haiku", "haiku-4-5"),
)


class GroupBy(Enum):
    """Supported aggregation keys."""
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    PROJECT = "project"

    @classmethod
    def parse(cls, value: Union["GroupBy", str, None]) -> "GroupBy":
        """Resolve a grouping name; unknown or empty values mean DAY."""
        if isinstance(value, GroupBy):
            return value
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.DAY


def short_model_name(model: str) -> str:
    """Collapse a model identifier onto its family name.

    Substring match, case-sensitive, checked in opus/sonnet/haiku order.
    Other identifiers pass through unchanged.
    """
    for needle, name in _MODEL_FAMILIES:
        if needle in model:
            return name
    return model


def format_period(ts: datetime, group_by: Union[GroupBy, str]) -> str:
    """Format the bucket label for a timestamp, in local time."""
    group_by = GroupBy.parse(group_by)
    local = ts.astimezone()

    if group_by is GroupBy.HOUR:
        return local.strftime("%Y-%m-%d %H:00")
    if group_by is GroupBy.WEEK:
        year, week, _ = local.isocalendar()
        return f"{year}-W{week:02d}"
    if group_by is GroupBy.MONTH:
        return f"{local.year:04d}-{local.month:02d}"
    if group_by is GroupBy.YEAR:
        return f"{local.year:04d}"
    return f"{_MONTH_ABBR[local.month - 1]} {local.day:02d}"


class _Bucket:
    """Running totals for one key plus its per-model breakdown."""

    def __init__(self, key: str):
        self.key = key
        self.input_total = 0
        self.output_total = 0
        self.cache_create_total = 0
        self.cache_read_total = 0
        self.by_model: Dict[str, ModelUsage] = {}

    def add(self, event: UsageEvent) -> None:
        self.input_total += event.input_tokens
        self.output_total += event.output_tokens
        self.cache_create_total += event.cache_creation_tokens
        self.cache_read_total += event.cache_read_tokens

        model = short_model_name(event.model) or UNKNOWN
        usage = self.by_model.get(model)
        if usage is None:
            usage = ModelUsage(model=model)
            self.by_model[model] = usage
        usage.input += event.input_tokens
        usage.output += event.output_tokens
        usage.cache_create += event.cache_creation_tokens
        usage.cache_read += event.cache_read_tokens

    def to_grouped(self) -> GroupedUsage:
        return GroupedUsage(
            period=self.key,
            models=sorted(self.by_model),
            input_total=self.input_total,
            output_total=self.output_total,
            cache_create_total=self.cache_create_total,
            cache_read_total=self.cache_read_total,
            by_model=self.by_model,
        )

    def to_daily(self) -> DailyUsage:
        return DailyUsage(
            date=self.key,
            models=sorted(self.by_model),
            input_total=self.input_total,
            output_total=self.output_total,
            cache_create_total=self.cache_create_total,
            cache_read_total=self.cache_read_total,
            by_model=self.by_model,
        )


class BucketTable:
    """Insertion-ordered table of buckets keyed by label."""

    def __init__(self):
        self._order: List[str] = []
        self._buckets: Dict[str, _Bucket] = {}

    def __len__(self) -> int:
        return len(self._order)

    def add(self, key: str, event: UsageEvent) -> None:
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = _Bucket(key)
            self._buckets[key] = bucket
            self._order.append(key)
        bucket.add(event)

    def keys(self) -> List[str]:
        """Keys in first-seen order."""
        return list(self._order)

    def buckets(self, sort_keys: bool = False) -> List[_Bucket]:
        keys = sorted(self._order) if sort_keys else self._order
        return [self._buckets[k] for k in keys]


def aggregate_by_period(
    events: Iterable[UsageEvent],
    group_by: Union[GroupBy, str] = GroupBy.DAY,
) -> List[GroupedUsage]:
    """Aggregate events into time-period buckets in first-seen order."""
    group_by = GroupBy.parse(group_by)
    table = BucketTable()
    for event in events:
        table.add(format_period(event.timestamp, group_by), event)
    return [bucket.to_grouped() for bucket in table.buckets()]


def aggregate_by_project(events: Iterable[UsageEvent]) -> List[GroupedUsage]:
    """Aggregate events by project name, sorted lexicographically."""
    table = BucketTable()
    for event in events:
        table.add(event.project or UNKNOWN, event)
    return [bucket.to_grouped() for bucket in table.buckets(sort_keys=True)]


def aggregate_by_day(events: Iterable[UsageEvent]) -> List[DailyUsage]:
    """Aggregate events by local calendar date (``YYYY-MM-DD``)."""
    table = BucketTable()
    for event in events:
        table.add(event.timestamp.astimezone().strftime("%Y-%m-%d"), event)
    return [bucket.to_daily() for bucket in table.buckets()]


def group_usage(
    events: Iterable[UsageEvent],
    group_by: Union[GroupBy, str] = GroupBy.DAY,
) -> List[GroupedUsage]:
    """Aggregate events under any supported grouping."""
    group_by = GroupBy.parse(group_by)
    if group_by is GroupBy.PROJECT:
        return aggregate_by_project(events)
    return aggregate_by_period(events, group_by)


def usage_totals(buckets: Iterable[Union[GroupedUsage, DailyUsage]]) -> Tuple[int, int, int, int]:
    """Sum (input, output, cache write, cache read) across buckets."""
    input_total = output_total = cache_create = cache_read = 0
    for bucket in buckets:
        input_total += bucket.input_total
        output_total += bucket.output_total
        cache_create += bucket.cache_create_total
        cache_read += bucket.cache_read_total
    return input_total, output_total, cache_create, cache_read
