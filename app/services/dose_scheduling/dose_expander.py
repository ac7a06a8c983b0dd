"""
Dose Expander - turns a medication's schedule into concrete calendar doses.

Fixed-time frequencies (twice_daily, with_meals, ...) read their clock times
from the frequency table. Cadence frequencies (daily, every_other_day, weekly)
use the medication's specific_times, each of which is a named slot or an
explicit HH:MM. A bad time entry is skipped and reported; the rest of the
schedule still expands.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple

from app.core.exceptions import MalformedScheduleError
from app.schemas.medication_schemas import Medication
from app.utils.time_slots import DAY_INTERVALS, resolve_time_of_day, times_for_frequency

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dose:
    medication_id: str
    calendar_date: date
    time_of_day: str
    scheduled_at: datetime

    @property
    def dose_id(self) -> str:
        return f"{self.calendar_date.isoformat()}T{self.time_of_day}"


@dataclass
class ExpansionResult:
    doses: List[Dose] = field(default_factory=list)
    errors: List[MalformedScheduleError] = field(default_factory=list)


class DoseExpander:
    """Expands medications into ordered dose lists"""

    def resolve_times(self, medication: Medication) -> Tuple[List[str], List[MalformedScheduleError]]:
        """Sorted, de-duplicated HH:MM times of the schedule plus the entries that failed"""
        table_times = times_for_frequency(medication.schedule.frequency)
        raw_times = table_times if table_times is not None else medication.schedule.specific_times

        resolved = set()
        errors = []
        for entry in raw_times:
            try:
                resolved.add(resolve_time_of_day(entry))
            except MalformedScheduleError as e:
                e.context["medication_id"] = medication.id
                logger.warning(f"Skipping malformed time for medication {medication.id}: {e.message}")
                errors.append(e)

        return sorted(resolved), errors

    def expand(self, medication: Medication, start: date, end: date) -> ExpansionResult:
        """
        Doses of one medication with calendar_date in [start, end] and inside the
        medication's own [start_date, end_date] window.
        """
        if not medication.active:
            return ExpansionResult()

        first = max(start, medication.start_date)
        last = end if medication.end_date is None else min(end, medication.end_date)
        if first > last:
            return ExpansionResult()

        times, errors = self.resolve_times(medication)
        result = ExpansionResult(errors=errors)
        if not times:
            return result

        interval = DAY_INTERVALS.get(medication.schedule.frequency, 1)
        day = first
        while day <= last:
            if (day - medication.start_date).days % interval == 0:
                for hhmm in times:
                    hour, minute = map(int, hhmm.split(":"))
                    result.doses.append(Dose(
                        medication_id=medication.id,
                        calendar_date=day,
                        time_of_day=hhmm,
                        scheduled_at=datetime.combine(day, time(hour, minute)),
                    ))
            day += timedelta(days=1)

        return result


def expand_doses(
    medication: Medication,
    start: date,
    end: date,
    expander: Optional[DoseExpander] = None
) -> List[Dose]:
    """Convenience wrapper returning only the doses"""
    return (expander or DoseExpander()).expand(medication, start, end).doses
