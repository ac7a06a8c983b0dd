"""
Notification request types shared by the planner, gateway and platform.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class NotificationKind(str, Enum):
    PRE_DOSE = "PRE_DOSE"
    DUE_DOSE = "DUE_DOSE"
    OVERDUE_DOSE = "OVERDUE_DOSE"
    ACHIEVEMENT = "ACHIEVEMENT"
    TEST = "TEST"


class PriorityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class NotificationState(str, Enum):
    PLANNED = "PLANNED"
    SUBMITTED = "SUBMITTED"
    FIRED = "FIRED"
    CANCELLED = "CANCELLED"


class AndroidChannel(str, Enum):
    MEDICATION_REMINDERS = "medication-reminders"
    CRITICAL_ALERTS = "critical-alerts"
    ACHIEVEMENTS = "achievements"


KIND_CHANNELS: Dict[NotificationKind, AndroidChannel] = {
    NotificationKind.PRE_DOSE: AndroidChannel.MEDICATION_REMINDERS,
    NotificationKind.DUE_DOSE: AndroidChannel.MEDICATION_REMINDERS,
    NotificationKind.OVERDUE_DOSE: AndroidChannel.CRITICAL_ALERTS,
    NotificationKind.ACHIEVEMENT: AndroidChannel.ACHIEVEMENTS,
    NotificationKind.TEST: AndroidChannel.MEDICATION_REMINDERS,
}


@dataclass
class ScheduledNotificationRequest:
    """A one-shot alert for the platform. firing_time None means deliver now."""
    identifier: str
    kind: NotificationKind
    firing_time: Optional[datetime]
    title: str
    body: str
    payload: Dict[str, Any] = field(default_factory=dict)
    channel_id: Optional[str] = None
    sound: bool = True
    state: NotificationState = NotificationState.PLANNED

    @property
    def medication_id(self) -> Optional[str]:
        return self.payload.get("medication_id")
