"""
Unit tests for burn rate calculation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from claudette.core.burn_rate import calculate_burn_rate
from claudette.core.sessions import create_gap_block, identify_session_blocks
from claudette.storage.models import UsageEvent


START = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
LATER = datetime(2030, 1, 1, tzinfo=timezone.utc)


def _event(minutes, input_tokens=100, output_tokens=50, cache_read=0) -> UsageEvent:
    return UsageEvent(
        timestamp=START + timedelta(minutes=minutes),
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_read_tokens=cache_read,
        model="claude-sonnet-4-5",
    )


class TestCalculateBurnRate:
    """Test throughput over a block's event span."""

    def test_rates(self):
        """Test total and indicator rates per minute."""
        events = [_event(0, cache_read=1000), _event(10, cache_read=1000)]
        block = identify_session_blocks(events, now=LATER)[0]

        burn = calculate_burn_rate(block)

        assert burn is not None
        assert burn.tokens_per_minute == pytest.approx((300 + 2000) / 10)
        assert burn.tokens_per_minute_indicator == pytest.approx(300 / 10)

    def test_single_event_not_computable(self):
        """Test fewer than two events yields no rate."""
        block = identify_session_blocks([_event(0)], now=LATER)[0]
        assert calculate_burn_rate(block) is None

    def test_zero_span_not_computable(self):
        """Test events sharing one timestamp yield no rate."""
        block = identify_session_blocks([_event(0), _event(0, input_tokens=1)], now=LATER)[0]
        assert len(block.entries) == 2
        assert calculate_burn_rate(block) is None

    def test_gap_block_not_computable(self):
        """Test gap blocks yield no rate."""
        gap = create_gap_block(START, START + timedelta(hours=12), timedelta(hours=5))
        assert calculate_burn_rate(gap) is None
