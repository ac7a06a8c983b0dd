"""
Time slot and frequency tables.

The only place that maps named intake slots and frequency keywords to clock
times. Dose expansion and the timeline grouping both read from here.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from app.core.exceptions import MalformedScheduleError


class Frequency(str, Enum):
    DAILY = "daily"
    EVERY_OTHER_DAY = "every_other_day"
    WEEKLY = "weekly"
    ONCE_DAILY = "once_daily"
    TWICE_DAILY = "twice_daily"
    THREE_TIMES_DAILY = "three_times_daily"
    FOUR_TIMES_DAILY = "four_times_daily"
    WITH_MEALS = "with_meals"
    BEFORE_MEALS = "before_meals"
    AT_BEDTIME = "at_bedtime"


@dataclass(frozen=True)
class TimeSlot:
    name: str
    label: str
    clock_time: str
    starts_at: str


# Primary slots, in day order. starts_at bounds the slot for timeline grouping.
PRIMARY_SLOTS: Tuple[TimeSlot, ...] = (
    TimeSlot("morning", "Morning", "09:00", "05:00"),
    TimeSlot("afternoon", "Afternoon", "14:00", "12:00"),
    TimeSlot("evening", "Evening", "18:00", "17:00"),
    TimeSlot("night", "Night", "21:00", "21:00"),
)

NAMED_TIMES: Dict[str, str] = {
    **{slot.name: slot.clock_time for slot in PRIMARY_SLOTS},
    "before_breakfast": "08:00",
    "after_breakfast": "09:30",
    "before_lunch": "12:00",
    "after_lunch": "13:30",
    "before_dinner": "17:30",
    "after_dinner": "19:30",
    "bedtime": "22:00",
}

FREQUENCY_TIMES: Dict[Frequency, List[str]] = {
    Frequency.ONCE_DAILY: ["09:00"],
    Frequency.TWICE_DAILY: ["08:00", "20:00"],
    Frequency.THREE_TIMES_DAILY: ["08:00", "14:00", "20:00"],
    Frequency.FOUR_TIMES_DAILY: ["08:00", "12:00", "16:00", "20:00"],
    Frequency.WITH_MEALS: ["09:30", "13:30", "19:30"],
    Frequency.BEFORE_MEALS: ["08:00", "12:00", "17:30"],
    Frequency.AT_BEDTIME: ["22:00"],
}

# Cadence in days for frequencies that take their times from specific_times
DAY_INTERVALS: Dict[Frequency, int] = {
    Frequency.DAILY: 1,
    Frequency.EVERY_OTHER_DAY: 2,
    Frequency.WEEKLY: 7,
}

_CLOCK_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def parse_clock_time(value: str) -> str:
    """Zero-pad an explicit H:MM / HH:MM / HH:MM:SS time to HH:MM"""
    match = _CLOCK_PATTERN.match(value.strip())
    if not match:
        raise MalformedScheduleError(f"Unparseable time '{value}'", value=value)

    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        raise MalformedScheduleError(f"Time out of range '{value}'", value=value)

    return f"{hour:02d}:{minute:02d}"


def resolve_time_of_day(value: str) -> str:
    """Resolve a named slot or explicit clock time to HH:MM"""
    if not isinstance(value, str) or not value.strip():
        raise MalformedScheduleError("Empty time entry", value=value)

    named = NAMED_TIMES.get(value.strip().lower())
    if named:
        return named

    return parse_clock_time(value)


def times_for_frequency(frequency: Frequency) -> Optional[List[str]]:
    """Fixed clock times for table frequencies, None for cadence frequencies"""
    times = FREQUENCY_TIMES.get(Frequency(frequency))
    return list(times) if times is not None else None


def slot_for_time(time_of_day: str) -> TimeSlot:
    """Timeline slot a clock time falls into. Early hours belong to night."""
    hhmm = parse_clock_time(time_of_day)
    for slot in reversed(PRIMARY_SLOTS):
        if hhmm >= slot.starts_at:
            return slot
    return PRIMARY_SLOTS[-1]
