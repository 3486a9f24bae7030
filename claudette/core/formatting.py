"""
Human-readable number and duration formatting.
"""

from datetime import timedelta


def format_tokens(n: int) -> str:
    """Format a token count with thousands separators."""
    if n < 0:
        return "-" + format_tokens(-n)
    return f"{n:,}"


def format_tokens_short(n: int) -> str:
    """Format a token count with a K/M/B suffix above one thousand."""
    if n < 0:
        return "-" + format_tokens_short(-n)
    if n >= 1_000_000_000:
        return f"{n / 1_000_000_000:.2f}B"
    if n >= 1_000_000:
        return f"{n / 1_000_000:.2f}M"
    if n >= 1_000:
        return f"{n / 1_000:.1f}K"
    return str(n)


def format_tokens_auto(n: int, max_width: int) -> str:
    """Use the full form when it fits in ``max_width``, else the short form."""
    full = format_tokens(n)
    if len(full) <= max_width:
        return full
    return format_tokens_short(n)


def format_duration(d: timedelta) -> str:
    """Format a duration as ``Xh Ym`` or ``Ym``; negative durations are "now"."""
    if d < timedelta(0):
        return "now"

    total_minutes = int(d.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
