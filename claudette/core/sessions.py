"""
Session block segmentation.

Partitions a chronologically sorted event stream into fixed-length billing
windows ("session blocks") and the idle gaps between them.

Rules:
1. The first block starts at the exact timestamp of the first event
2. A block closes when an event is more than one session duration after
   the block start or after the previous event
3. Later blocks start at the top of the clock hour of their first event
4. An idle interval longer than the session duration becomes a gap block
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from claudette.storage.models import SessionBlock, UsageEvent


DEFAULT_SESSION_DURATION = timedelta(hours=5)


def format_rfc3339(ts: datetime) -> str:
    """Format a timestamp as RFC 3339 with second precision (``Z`` for UTC)."""
    text = ts.replace(microsecond=0).isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def floor_to_hour(ts: datetime) -> datetime:
    return ts.replace(minute=0, second=0, microsecond=0)


def create_block(
    start_time: datetime,
    entries: Sequence[UsageEvent],
    now: datetime,
    session_duration: timedelta,
) -> SessionBlock:
    """Finalize a session block from its start time and contained events."""
    end_time = start_time + session_duration
    actual_end_time = entries[-1].timestamp
    is_active = now - actual_end_time < session_duration and now < end_time

    input_tokens = output_tokens = cache_creation = cache_read = 0
    models = set()
    for e in entries:
        input_tokens += e.input_tokens
        output_tokens += e.output_tokens
        cache_creation += e.cache_creation_tokens
        cache_read += e.cache_read_tokens
        if e.model:
            models.add(e.model)

    return SessionBlock(
        id=format_rfc3339(start_time),
        start_time=start_time,
        end_time=end_time,
        actual_end_time=actual_end_time,
        is_active=is_active,
        is_gap=False,
        entries=tuple(entries),
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_creation_tokens=cache_creation,
        cache_read_tokens=cache_read,
        models=tuple(sorted(models)),
    )


def create_gap_block(
    last_activity: datetime,
    next_activity: datetime,
    session_duration: timedelta,
) -> Optional[SessionBlock]:
    """Build the gap block between two activities, if the idle time qualifies.

    The gap starts one session duration after the last activity (when the
    preceding block stops counting) and ends at the next activity.
    """
    if next_activity - last_activity <= session_duration:
        return None

    gap_start = last_activity + session_duration
    return SessionBlock(
        id=f"gap-{format_rfc3339(gap_start)}",
        start_time=gap_start,
        end_time=next_activity,
        is_gap=True,
    )


def identify_session_blocks(
    events: Sequence[UsageEvent],
    session_duration: timedelta = DEFAULT_SESSION_DURATION,
    now: Optional[datetime] = None,
) -> List[SessionBlock]:
    """Group sorted events into session blocks, including gap blocks.

    Args:
        events: Usage events sorted by timestamp (oldest first)
        session_duration: Block length, also used for gap and activity checks
        now: Wall-clock time for the active flag; defaults to current UTC time

    Returns:
        Blocks in chronological order
    """
    if not events:
        return []
    if session_duration <= timedelta(0):
        raise ValueError("session_duration must be positive")
    if now is None:
        now = datetime.now(timezone.utc)

    blocks: List[SessionBlock] = []
    block_start = events[0].timestamp
    current: List[UsageEvent] = [events[0]]

    for event in events[1:]:
        last = current[-1]
        since_block_start = event.timestamp - block_start
        since_last_event = event.timestamp - last.timestamp

        if since_block_start > session_duration or since_last_event > session_duration:
            blocks.append(create_block(block_start, current, now, session_duration))

            if since_last_event > session_duration:
                gap = create_gap_block(last.timestamp, event.timestamp, session_duration)
                if gap is not None:
                    blocks.append(gap)

            block_start = floor_to_hour(event.timestamp)
            current = [event]
        else:
            current.append(event)

    blocks.append(create_block(block_start, current, now, session_duration))
    return blocks


def get_active_block(
    blocks: Sequence[SessionBlock],
    now: Optional[datetime] = None,
) -> Optional[SessionBlock]:
    """Return the most recent active, non-gap block.

    When ``now`` is given, activity is re-evaluated at that instant instead
    of using the flag computed during segmentation.
    """
    for block in reversed(blocks):
        if block.is_gap:
            continue
        active = block.is_active if now is None else block.is_active_at(now)
        if active:
            return block
    return None
