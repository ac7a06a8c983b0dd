"""
Quiet-hours policy. Compares time of day only; dates are ignored.
"""

from datetime import datetime
from typing import Optional, Union

from app.utils.time_slots import parse_clock_time


def is_quiet(instant: Union[datetime, str], start: Optional[str], end: Optional[str]) -> bool:
    """
    True when instant falls inside the do-not-disturb window.

    A window whose start is after its end wraps midnight (22:00-08:00).
    Both bounds are inclusive. No window configured means never quiet.
    """
    if not start or not end:
        return False

    if isinstance(instant, datetime):
        current = instant.strftime("%H:%M")
    else:
        current = parse_clock_time(instant)
    start = parse_clock_time(start)
    end = parse_clock_time(end)

    if start > end:
        return current >= start or current <= end
    return start <= current <= end
