"""
Notification planner tests
Pre-dose / due / overdue timing, quiet hours, idempotent identifiers.
"""

from datetime import date, datetime, timedelta

import pytest

from app.core.exceptions import OutOfRangeDateError
from app.schemas.medication_schemas import (
    GlobalNotificationPreferences,
    MedicationNotificationPreferences,
)
from app.services.dose_scheduling import NotificationKind, NotificationPlanner, expand_doses
from app.services.dose_scheduling.notification_planner import check_within_window


def _no_quiet_hours(**overrides):
    return GlobalNotificationPreferences(quiet_hours_start=None, quiet_hours_end=None, **overrides)


class TestNotificationPlanner:

    def test_single_dose_scenario(self, make_medication, now):
        medication = make_medication(times=["09:00"])
        doses = expand_doses(medication, date(2024, 3, 24), date(2024, 3, 24))

        requests = NotificationPlanner().plan(medication, doses, _no_quiet_hours(), now=now)

        assert len(requests) == 5
        assert [(r.kind, r.firing_time) for r in requests] == [
            (NotificationKind.PRE_DOSE, datetime(2024, 3, 24, 8, 30)),
            (NotificationKind.DUE_DOSE, datetime(2024, 3, 24, 9, 0)),
            (NotificationKind.OVERDUE_DOSE, datetime(2024, 3, 24, 9, 30)),
            (NotificationKind.OVERDUE_DOSE, datetime(2024, 3, 24, 10, 0)),
            (NotificationKind.OVERDUE_DOSE, datetime(2024, 3, 24, 11, 0)),
        ]

    def test_identifiers(self, make_medication, now):
        medication = make_medication()
        doses = expand_doses(medication, date(2024, 3, 24), date(2024, 3, 24))

        identifiers = [r.identifier for r in NotificationPlanner().plan(medication, doses, _no_quiet_hours(), now=now)]

        assert identifiers == [
            "pre_med-1_2024-03-24T09:00",
            "due_med-1_2024-03-24T09:00",
            "overdue_med-1_2024-03-24T09:00_30",
            "overdue_med-1_2024-03-24T09:00_60",
            "overdue_med-1_2024-03-24T09:00_120",
        ]

    def test_planning_twice_yields_same_identifiers(self, make_medication, now):
        medication = make_medication(frequency="three_times_daily")
        doses = expand_doses(medication, date(2024, 3, 24), date(2024, 3, 30))
        planner = NotificationPlanner()

        first = {r.identifier for r in planner.plan(medication, doses, GlobalNotificationPreferences(), now=now)}
        second = {r.identifier for r in planner.plan(medication, doses, GlobalNotificationPreferences(), now=now)}

        assert first == second
        assert len(first) > 0

    def test_payload_carries_dose_details(self, make_medication, now):
        medication = make_medication()
        doses = expand_doses(medication, date(2024, 3, 24), date(2024, 3, 24))

        overdue = NotificationPlanner().plan(medication, doses, _no_quiet_hours(), now=now)[-1]

        assert overdue.medication_id == "med-1"
        assert overdue.payload["medication_name"] == "Amoxicillin"
        assert overdue.payload["dose_id"] == "2024-03-24T09:00"
        assert overdue.payload["scheduled_time"] == "2024-03-24T09:00:00"
        assert overdue.payload["priority"] == "critical"
        assert overdue.payload["overdue_minutes"] == 120

    def test_past_doses_are_skipped(self, make_medication):
        medication = make_medication()
        doses = expand_doses(medication, date(2024, 3, 24), date(2024, 3, 24))

        requests = NotificationPlanner().plan(
            medication, doses, _no_quiet_hours(), now=datetime(2024, 3, 24, 9, 0)
        )
        assert requests == []

    def test_pre_dose_in_the_past_is_dropped(self, make_medication):
        medication = make_medication()
        doses = expand_doses(medication, date(2024, 3, 24), date(2024, 3, 24))

        requests = NotificationPlanner().plan(
            medication, doses, _no_quiet_hours(), now=datetime(2024, 3, 24, 8, 45)
        )
        assert NotificationKind.PRE_DOSE not in {r.kind for r in requests}
        assert NotificationKind.DUE_DOSE in {r.kind for r in requests}

    def test_quiet_hours_suppress_reminders_but_not_overdue_alerts(self, make_medication, now):
        medication = make_medication(times=["23:00"])
        doses = expand_doses(medication, date(2024, 3, 24), date(2024, 3, 24))
        preferences = GlobalNotificationPreferences(quiet_hours_start="22:00", quiet_hours_end="08:00")

        requests = NotificationPlanner().plan(medication, doses, preferences, now=now)

        assert [r.kind for r in requests] == [NotificationKind.OVERDUE_DOSE] * 3
        assert requests[0].firing_time == datetime(2024, 3, 24, 23, 30)

    def test_custom_lead_time_overrides_global(self, make_medication, now):
        medication = make_medication()
        doses = expand_doses(medication, date(2024, 3, 24), date(2024, 3, 24))

        requests = NotificationPlanner().plan(
            medication, doses, _no_quiet_hours(),
            MedicationNotificationPreferences(custom_pre_dose_minutes=15),
            now=now,
        )
        assert requests[0].firing_time == datetime(2024, 3, 24, 8, 45)

    def test_zero_lead_time_is_respected(self, make_medication, now):
        medication = make_medication()
        doses = expand_doses(medication, date(2024, 3, 24), date(2024, 3, 24))

        requests = NotificationPlanner().plan(
            medication, doses, _no_quiet_hours(),
            MedicationNotificationPreferences(custom_pre_dose_minutes=0),
            now=now,
        )
        assert requests[0].kind == NotificationKind.PRE_DOSE
        assert requests[0].firing_time == datetime(2024, 3, 24, 9, 0)

    def test_disabled_globally_plans_nothing(self, make_medication, now):
        medication = make_medication()
        doses = expand_doses(medication, date(2024, 3, 24), date(2024, 3, 24))

        assert NotificationPlanner().plan(medication, doses, _no_quiet_hours(enabled=False), now=now) == []

    def test_disabled_for_medication_plans_nothing(self, make_medication, now):
        medication = make_medication()
        doses = expand_doses(medication, date(2024, 3, 24), date(2024, 3, 24))

        requests = NotificationPlanner().plan(
            medication, doses, _no_quiet_hours(), MedicationNotificationPreferences(enabled=False), now=now
        )
        assert requests == []

    def test_per_kind_toggles(self, make_medication, now):
        medication = make_medication()
        doses = expand_doses(medication, date(2024, 3, 24), date(2024, 3, 24))

        requests = NotificationPlanner().plan(
            medication, doses, _no_quiet_hours(),
            MedicationNotificationPreferences(pre_dose=False, overdue_dose=False),
            now=now,
        )
        assert [r.kind for r in requests] == [NotificationKind.DUE_DOSE]

    def test_doses_beyond_sanity_window_are_dropped(self, make_medication, now):
        medication = make_medication()
        doses = expand_doses(medication, date(2024, 3, 24), date(2024, 3, 26))

        requests = NotificationPlanner(sanity_window_days=1).plan(medication, doses, _no_quiet_hours(), now=now)

        assert {r.payload["dose_id"] for r in requests} == {"2024-03-24T09:00"}

    def test_android_channels(self, make_medication, now):
        medication = make_medication()
        doses = expand_doses(medication, date(2024, 3, 24), date(2024, 3, 24))

        requests = NotificationPlanner(target_platform="android").plan(medication, doses, _no_quiet_hours(), now=now)
        channels = {r.kind: r.channel_id for r in requests}

        assert channels[NotificationKind.PRE_DOSE] == "medication-reminders"
        assert channels[NotificationKind.OVERDUE_DOSE] == "critical-alerts"

    def test_no_channels_off_android(self, make_medication, now):
        medication = make_medication()
        doses = expand_doses(medication, date(2024, 3, 24), date(2024, 3, 24))

        requests = NotificationPlanner(target_platform="ios").plan(medication, doses, _no_quiet_hours(), now=now)
        assert all(r.channel_id is None for r in requests)


class TestSanityWindow:

    def test_inside_window(self, now):
        check_within_window(now + timedelta(days=365), now, timedelta(days=365))

    def test_outside_window(self, now):
        with pytest.raises(OutOfRangeDateError):
            check_within_window(now + timedelta(days=366), now, timedelta(days=365))
        with pytest.raises(OutOfRangeDateError):
            check_within_window(now - timedelta(days=366), now, timedelta(days=365))
