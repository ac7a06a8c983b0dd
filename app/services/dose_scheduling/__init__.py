"""
Dose Scheduling Package - medication dose expansion and reminder timing.

Components:
1. DoseExpander - Medication schedule to ordered calendar doses
2. is_quiet - Quiet-hours predicate (overnight windows supported)
3. NotificationPlanner - PRE_DOSE / DUE_DOSE / OVERDUE_DOSE requests per dose
4. SchedulingGateway - Batched best-effort submission to the platform
5. NotificationLifecycleManager - Per-medication cancellation and re-plan lock
6. NotificationPlatform - Platform primitive interface and in-memory implementation
"""

from .dose_expander import Dose, DoseExpander, ExpansionResult, expand_doses
from .quiet_hours import is_quiet
from .notification_types import (
    AndroidChannel,
    NotificationKind,
    NotificationState,
    PriorityLevel,
    ScheduledNotificationRequest,
)
from .notification_planner import NotificationPlanner
from .notification_platform import InMemoryNotificationPlatform, NotificationPlatform
from .scheduling_gateway import SchedulingGateway, SubmissionReport
from .lifecycle_manager import NotificationLifecycleManager

__all__ = [
    'Dose',
    'DoseExpander',
    'ExpansionResult',
    'expand_doses',
    'is_quiet',
    'AndroidChannel',
    'NotificationKind',
    'NotificationState',
    'PriorityLevel',
    'ScheduledNotificationRequest',
    'NotificationPlanner',
    'InMemoryNotificationPlatform',
    'NotificationPlatform',
    'SchedulingGateway',
    'SubmissionReport',
    'NotificationLifecycleManager',
]
