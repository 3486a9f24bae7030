"""
Burn rate calculation for session blocks.
"""

from typing import Optional

from claudette.storage.models import BurnRate, SessionBlock


BURN_RATE_MIN_EVENTS = 2


def calculate_burn_rate(block: SessionBlock) -> Optional[BurnRate]:
    """Calculate token throughput over a block's event span.

    The indicator rate counts input and output tokens only, since cache
    reads can dwarf real usage and would trip any threshold.

    Args:
        block: Session block to measure

    Returns:
        BurnRate in tokens per minute, or None for gap blocks, blocks with
        fewer than two events, or a zero-length event span
    """
    if block.is_gap or len(block.entries) < BURN_RATE_MIN_EVENTS:
        return None

    first = block.entries[0].timestamp
    last = block.entries[-1].timestamp
    minutes = (last - first).total_seconds() / 60.0
    if minutes <= 0:
        return None

    return BurnRate(
        tokens_per_minute=block.total_tokens / minutes,
        tokens_per_minute_indicator=block.non_cache_tokens / minutes,
    )
