"""
Field extraction for raw log records.

Normalizes the loosely-typed JSON shapes found in assistant logs into
canonical usage events.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from claudette.storage.models import UsageEvent


TIMESTAMP_FIELDS = ("timestamp", "created_at", "time", "ts", "at")
EVENT_ID_FIELDS = ("id", "request_id", "message_id")

# Numeric timestamps above this are Unix milliseconds, not seconds
MILLIS_THRESHOLD = 1e12

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_RFC3339_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)


class RawRecord:
    """Typed, non-raising view over one decoded JSON object."""

    def __init__(self, data: Mapping[str, Any]):
        self._data = data

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def get_string(self, key: str) -> Optional[str]:
        """Return the value for ``key`` if it is a non-empty string."""
        value = self._data.get(key)
        if isinstance(value, str) and value:
            return value
        return None

    def get_int(self, key: str) -> Optional[int]:
        """Return the value for ``key`` coerced to int.

        JSON numbers are truncated; strings must hold an integer literal.
        Booleans and anything else count as absent.
        """
        value = self._data.get(key)
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            if value != value or value in (float("inf"), float("-inf")):
                return None
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return None
        return None

    def get_record(self, key: str) -> Optional["RawRecord"]:
        """Return the nested object under ``key`` as a RawRecord."""
        value = self._data.get(key)
        if isinstance(value, dict):
            return RawRecord(value)
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an RFC 3339 string or a Unix timestamp into an aware datetime.

    Returns None when the value cannot be interpreted.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return _parse_rfc3339(value.strip())
    if isinstance(value, (int, float)):
        # Unix times carry no zone; they are read in local time so session
        # starts floor to local clock hours.
        try:
            if value > MILLIS_THRESHOLD:
                return (_EPOCH + timedelta(milliseconds=int(value))).astimezone()
            return (_EPOCH + timedelta(seconds=int(value))).astimezone()
        except (OverflowError, OSError, ValueError):
            return None
    return None


def _parse_rfc3339(text: str) -> Optional[datetime]:
    match = _RFC3339_RE.match(text)
    if not match:
        return None
    base, fraction, offset = match.groups()
    normalized = base.replace("t", "T")
    if fraction:
        # fromisoformat wants exactly six fractional digits on older Pythons
        normalized += "." + fraction[:6].ljust(6, "0")
    normalized += "+00:00" if offset in ("Z", "z") else offset
    try:
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def find_usage(record: RawRecord) -> Optional[RawRecord]:
    """Locate the usage payload, preferring ``message.usage``."""
    message = record.get_record("message")
    if message is not None:
        usage = message.get_record("usage")
        if usage is not None:
            return usage
    return record.get_record("usage")


def extract_timestamp(record: RawRecord) -> Optional[datetime]:
    for name in TIMESTAMP_FIELDS:
        ts = parse_timestamp(record.get(name))
        if ts is not None:
            return ts
    return None


def find_model(record: RawRecord) -> str:
    model = record.get_string("model")
    if model is None:
        message = record.get_record("message")
        if message is not None:
            model = message.get_string("model")
    return model or ""


def find_event_id(record: RawRecord) -> str:
    for name in EVENT_ID_FIELDS:
        event_id = record.get_string(name)
        if event_id is not None:
            return event_id
    message = record.get_record("message")
    if message is not None:
        return message.get_string("id") or ""
    return ""


def _token_count(usage: RawRecord, key: str) -> int:
    value = usage.get_int(key)
    if value is None or value < 0:
        return 0
    return value


def extract_usage_event(data: Dict[str, Any], project: str) -> Optional[UsageEvent]:
    """Build a UsageEvent from one decoded record.

    Args:
        data: Decoded JSON object for one log line
        project: Identifier of the project owning the log

    Returns:
        The canonical event, or None when the record is not a usage event
        (no usage payload, no parseable timestamp, or zero tokens)
    """
    record = RawRecord(data)

    usage = find_usage(record)
    if usage is None:
        return None

    timestamp = extract_timestamp(record)
    if timestamp is None:
        return None

    event = UsageEvent(
        timestamp=timestamp,
        input_tokens=_token_count(usage, "input_tokens"),
        output_tokens=_token_count(usage, "output_tokens"),
        cache_creation_tokens=_token_count(usage, "cache_creation_input_tokens"),
        cache_read_tokens=_token_count(usage, "cache_read_input_tokens"),
        model=find_model(record),
        project=project,
        event_id=find_event_id(record),
    )

    if event.total_tokens == 0:
        return None

    return event
