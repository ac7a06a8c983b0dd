"""
Notification Planner - derives reminder requests for a medication's doses.

Per future dose at T:
1. Nothing when notifications are off globally or for the medication
2. Doses further than the sanity window from now are dropped with a warning
3. PRE_DOSE at T - lead, only if still in the future and outside quiet hours
4. DUE_DOSE at T, only outside quiet hours
5. OVERDUE_DOSE at T + offset for every configured offset, ignoring quiet hours

Identifiers depend only on kind, medication, dose and offset, so planning the
same dose again yields the same identifiers and the platform replaces rather
than duplicates.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from app.core.exceptions import OutOfRangeDateError
from app.schemas.medication_schemas import (
    GlobalNotificationPreferences,
    Medication,
    MedicationNotificationPreferences,
)
from app.services.dose_scheduling.dose_expander import Dose
from app.services.dose_scheduling.notification_types import (
    KIND_CHANNELS,
    NotificationKind,
    PriorityLevel,
    ScheduledNotificationRequest,
)
from app.services.dose_scheduling.quiet_hours import is_quiet

logger = logging.getLogger(__name__)


def pre_dose_identifier(medication_id: str, dose_id: str) -> str:
    return f"pre_{medication_id}_{dose_id}"


def due_dose_identifier(medication_id: str, dose_id: str) -> str:
    return f"due_{medication_id}_{dose_id}"


def overdue_identifier(medication_id: str, dose_id: str, offset_minutes: int) -> str:
    return f"overdue_{medication_id}_{dose_id}_{offset_minutes}"


def check_within_window(instant: datetime, now: datetime, window: timedelta) -> None:
    """Raise OutOfRangeDateError when instant is more than window away from now"""
    if instant > now + window or instant < now - window:
        raise OutOfRangeDateError(
            f"{instant.isoformat()} is outside the scheduling window",
            instant=instant.isoformat(),
        )


class NotificationPlanner:
    """Turns doses into scheduled notification requests"""

    def __init__(self, sanity_window_days: int = 365, target_platform: str = "android"):
        self.sanity_window = timedelta(days=sanity_window_days)
        self.target_platform = target_platform

    def channel_for(self, kind: NotificationKind) -> Optional[str]:
        """Android groups notifications by channel; other platforms take none"""
        if self.target_platform != "android":
            return None
        return KIND_CHANNELS[kind].value

    def plan(
        self,
        medication: Medication,
        doses: List[Dose],
        global_preferences: GlobalNotificationPreferences,
        medication_preferences: Optional[MedicationNotificationPreferences] = None,
        now: Optional[datetime] = None
    ) -> List[ScheduledNotificationRequest]:
        now = now or datetime.now()
        medication_preferences = medication_preferences or MedicationNotificationPreferences()

        if not global_preferences.enabled:
            logger.info("Notifications disabled globally, skipping planning")
            return []
        if not medication_preferences.enabled:
            logger.info(f"Notifications disabled for medication {medication.id}, skipping planning")
            return []

        quiet_start = global_preferences.quiet_hours_start
        quiet_end = global_preferences.quiet_hours_end
        lead_minutes = medication_preferences.custom_pre_dose_minutes
        if lead_minutes is None:
            lead_minutes = global_preferences.pre_dose_minutes

        requests: List[ScheduledNotificationRequest] = []

        for dose in doses:
            dose_time = dose.scheduled_at
            if dose_time <= now:
                continue

            try:
                check_within_window(dose_time, now, self.sanity_window)
            except OutOfRangeDateError as e:
                logger.warning(f"Skipping dose {dose.dose_id} of medication {medication.id}: {e.message}")
                continue

            if medication_preferences.pre_dose:
                pre_time = dose_time - timedelta(minutes=lead_minutes)
                if pre_time > now and not is_quiet(pre_time, quiet_start, quiet_end):
                    requests.append(self._build(
                        identifier=pre_dose_identifier(medication.id, dose.dose_id),
                        kind=NotificationKind.PRE_DOSE,
                        firing_time=pre_time,
                        title="Medication Reminder",
                        body=f"Take {medication.name} {medication.dosage} in {lead_minutes} minutes",
                        payload=self._payload(medication, dose, NotificationKind.PRE_DOSE, PriorityLevel.MEDIUM),
                        sound=global_preferences.sound,
                    ))

            if medication_preferences.due_dose and not is_quiet(dose_time, quiet_start, quiet_end):
                requests.append(self._build(
                    identifier=due_dose_identifier(medication.id, dose.dose_id),
                    kind=NotificationKind.DUE_DOSE,
                    firing_time=dose_time,
                    title=f"Time for {medication.name}",
                    body=f"Take {medication.dosage} now",
                    payload=self._payload(medication, dose, NotificationKind.DUE_DOSE, PriorityLevel.HIGH),
                    sound=global_preferences.sound,
                ))

            # Escalating missed-dose alerts break through quiet hours
            if medication_preferences.overdue_dose:
                for offset in sorted(global_preferences.overdue_alerts):
                    payload = self._payload(medication, dose, NotificationKind.OVERDUE_DOSE, PriorityLevel.CRITICAL)
                    payload["overdue_minutes"] = offset
                    requests.append(self._build(
                        identifier=overdue_identifier(medication.id, dose.dose_id, offset),
                        kind=NotificationKind.OVERDUE_DOSE,
                        firing_time=dose_time + timedelta(minutes=offset),
                        title="Missed Medication",
                        body=f"{medication.name} was due {offset} minutes ago",
                        payload=payload,
                        sound=global_preferences.sound,
                    ))

        logger.info(
            f"Planned {len(requests)} notifications for medication {medication.id} "
            f"from {len(doses)} doses"
        )
        return requests

    def build_immediate(
        self,
        identifier: str,
        kind: NotificationKind,
        title: str,
        body: str,
        payload: Dict[str, Any],
        sound: bool = True
    ) -> ScheduledNotificationRequest:
        """Request delivered as soon as it is submitted (test and achievement alerts)"""
        return self._build(identifier, kind, None, title, body, payload, sound)

    def _build(
        self,
        identifier: str,
        kind: NotificationKind,
        firing_time: Optional[datetime],
        title: str,
        body: str,
        payload: Dict[str, Any],
        sound: bool
    ) -> ScheduledNotificationRequest:
        return ScheduledNotificationRequest(
            identifier=identifier,
            kind=kind,
            firing_time=firing_time,
            title=title,
            body=body,
            payload=payload,
            channel_id=self.channel_for(kind),
            sound=sound,
        )

    @staticmethod
    def _payload(
        medication: Medication,
        dose: Dose,
        kind: NotificationKind,
        priority: PriorityLevel
    ) -> Dict[str, Any]:
        return {
            "type": kind.value,
            "medication_id": medication.id,
            "medication_name": medication.name,
            "dosage": medication.dosage,
            "dose_id": dose.dose_id,
            "scheduled_time": dose.scheduled_at.isoformat(),
            "priority": priority.value,
        }
