"""
Time slot table tests
Named slots, frequency tables and timeline grouping share one table.
"""

import pytest

from app.core.exceptions import MalformedScheduleError, SchedulingErrorCode
from app.utils.time_slots import (
    Frequency,
    parse_clock_time,
    resolve_time_of_day,
    slot_for_time,
    times_for_frequency,
)


class TestClockTimes:

    def test_zero_pads_single_digit_hour(self):
        assert parse_clock_time("8:05") == "08:05"

    def test_drops_seconds(self):
        assert parse_clock_time("21:30:45") == "21:30"

    @pytest.mark.parametrize("value", ["25:00", "12:60", "noon", "", "12"])
    def test_rejects_unparseable_times(self, value):
        with pytest.raises(MalformedScheduleError) as exc_info:
            parse_clock_time(value)
        assert exc_info.value.code == SchedulingErrorCode.MALFORMED_SCHEDULE


class TestNamedSlots:

    def test_primary_slots(self):
        assert resolve_time_of_day("morning") == "09:00"
        assert resolve_time_of_day("afternoon") == "14:00"
        assert resolve_time_of_day("evening") == "18:00"
        assert resolve_time_of_day("night") == "21:00"

    def test_meal_relative_slots(self):
        assert resolve_time_of_day("before_breakfast") == "08:00"
        assert resolve_time_of_day("after_dinner") == "19:30"
        assert resolve_time_of_day("bedtime") == "22:00"

    def test_names_are_case_insensitive(self):
        assert resolve_time_of_day(" Morning ") == "09:00"

    def test_explicit_time_passes_through(self):
        assert resolve_time_of_day("7:15") == "07:15"


class TestFrequencyTable:

    def test_twice_daily(self):
        assert times_for_frequency(Frequency.TWICE_DAILY) == ["08:00", "20:00"]

    def test_four_times_daily(self):
        assert times_for_frequency(Frequency.FOUR_TIMES_DAILY) == ["08:00", "12:00", "16:00", "20:00"]

    def test_with_meals(self):
        assert times_for_frequency(Frequency.WITH_MEALS) == ["09:30", "13:30", "19:30"]

    def test_cadence_frequencies_have_no_fixed_times(self):
        assert times_for_frequency(Frequency.DAILY) is None
        assert times_for_frequency(Frequency.WEEKLY) is None

    def test_returned_list_is_a_copy(self):
        times = times_for_frequency(Frequency.ONCE_DAILY)
        times.append("23:00")
        assert times_for_frequency(Frequency.ONCE_DAILY) == ["09:00"]


class TestTimelineSlots:

    @pytest.mark.parametrize("time_of_day, slot", [
        ("05:00", "morning"),
        ("11:59", "morning"),
        ("12:00", "afternoon"),
        ("17:30", "evening"),
        ("21:00", "night"),
        ("23:45", "night"),
        ("02:00", "night"),
    ])
    def test_slot_boundaries(self, time_of_day, slot):
        assert slot_for_time(time_of_day).name == slot
