"""
Presentation helpers for quota and usage numbers.

Pure functions that turn numeric state into progress bars, durations,
token counts and dollar amounts. Threshold behaviour here is relied on by
both the plugin report and the terminal command.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

FILLED_SEGMENT = "█"
EMPTY_SEGMENT = "░"

_MS_PER_MINUTE = 60_000
_MS_PER_HOUR = 60 * _MS_PER_MINUTE

Number = Union[int, float]


def round_half_up(value: Number, places: str = "1") -> Decimal:
    """Round using half-up semantics (2.5 -> 3), unlike the builtin round()."""
    return Decimal(str(value)).quantize(Decimal(places), rounding=ROUND_HALF_UP)


def progress_bar(percent: Number, width: int = 20) -> str:
    """Render a bracketed progress bar.

    Args:
        percent: Percentage to display, clamped to [0, 100]
        width: Number of segments inside the brackets

    Returns:
        String like "[██████░░░░]"
    """
    clamped = min(100.0, max(0.0, float(percent)))
    filled = int(round_half_up(clamped / 100 * width))
    empty = width - filled
    return f"[{FILLED_SEGMENT * filled}{EMPTY_SEGMENT * empty}]"


def format_duration(ms: Number) -> str:
    """Format a duration in milliseconds, e.g. 5_400_000 -> "1h 30m"."""
    minutes = int(ms // _MS_PER_MINUTE)
    if minutes < 1:
        return "<1 min"
    if minutes < 60:
        return f"{minutes} min"
    hours, remaining_minutes = divmod(minutes, 60)
    if remaining_minutes == 0:
        return f"{hours}h"
    return f"{hours}h {remaining_minutes}m"


def _parse_timestamp(value: str) -> Optional[datetime]:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_time_remaining(reset_time: Optional[str], now: Optional[datetime] = None) -> str:
    """Format the time left until an ISO-8601 reset timestamp.

    Args:
        reset_time: ISO-8601 timestamp, or None when the API gave none
        now: Reference time (defaults to the current UTC time)

    Returns:
        "unknown", "resetting...", "Dd Hh", "Hh Mm" or "Mm"
    """
    if not reset_time:
        return "unknown"
    reset = _parse_timestamp(reset_time)
    if reset is None:
        return "unknown"

    now = now or datetime.now(timezone.utc)
    diff_ms = (reset - now).total_seconds() * 1000
    if diff_ms <= 0:
        return "resetting..."

    hours = int(diff_ms // _MS_PER_HOUR)
    minutes = int((diff_ms % _MS_PER_HOUR) // _MS_PER_MINUTE)
    if hours >= 24:
        days, remaining_hours = divmod(hours, 24)
        return f"{days}d {remaining_hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_token_count(num: Number) -> str:
    """Format a token count with K/M suffix, e.g. 1_500_000 -> "1.5M"."""
    if num >= 1_000_000:
        return f"{round_half_up(num / 1_000_000, '0.1')}M"
    if num >= 1_000:
        return f"{round_half_up(num / 1_000)}K"
    return str(int(num))


def format_cost(num: Number) -> str:
    """Format a cost in dollars with precision depending on magnitude."""
    if num < 0.01:
        return f"${num:.4f}"
    if num < 1:
        return f"${num:.3f}"
    return f"${num:.2f}"


def format_number(num: Number) -> str:
    """Format an integer with thousands separators, e.g. 125432 -> "125,432"."""
    return f"{int(num):,}"


def calculate_usage_percent(used: Number, limit: Number) -> float:
    """Usage as a percentage of limit, capped at 100. Zero for a non-positive limit."""
    if limit <= 0:
        return 0.0
    return min(100.0, used / limit * 100)


def status_level(percent: Number) -> str:
    """Classify a utilization percentage as "ok", "warning" or "critical"."""
    if percent < 50:
        return "ok"
    if percent < 80:
        return "warning"
    return "critical"
