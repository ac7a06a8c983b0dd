"""
Medication Notification Service
===============================

Entry point used after every medication create, update and delete:
- plan_and_schedule_notifications: expand doses, plan reminders, submit them
- cancel_all_for_medication: drop a medication's pending reminders

Also owns notification preferences, the received-notification history and the
app badge count, all persisted through the injected DocumentStore.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.config import settings
from app.core.exceptions import (
    MalformedScheduleError,
    NotificationPermissionDeniedError,
    SubmissionFailureError,
)
from app.schemas.medication_schemas import (
    GlobalNotificationPreferences,
    Medication,
    MedicationNotificationPreferences,
    NotificationPreferences,
    NotificationRecord,
)
from app.services.document_store import DocumentStore
from app.services.dose_scheduling import (
    DoseExpander,
    NotificationKind,
    NotificationLifecycleManager,
    NotificationPlanner,
    NotificationPlatform,
    PriorityLevel,
    ScheduledNotificationRequest,
    SchedulingGateway,
)

logger = logging.getLogger(__name__)

PREFERENCES_KEY = "notification_preferences"
HISTORY_KEY = "notification_history"
BADGE_COUNT_KEY = "badge_count"


@dataclass
class SchedulingReport:
    medication_id: str
    planned: List[str] = field(default_factory=list)
    submitted: List[str] = field(default_factory=list)
    failed: List[SubmissionFailureError] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    expansion_errors: List[MalformedScheduleError] = field(default_factory=list)
    permission_denied: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "medication_id": self.medication_id,
            "planned": len(self.planned),
            "submitted": len(self.submitted),
            "failed": [failure.to_dict() for failure in self.failed],
            "skipped": self.skipped,
            "expansion_errors": [error.to_dict() for error in self.expansion_errors],
            "permission_denied": self.permission_denied,
        }


class MedicationNotificationService:
    """Reminder scheduling service constructed once with its collaborators"""

    def __init__(
        self,
        store: DocumentStore,
        platform: NotificationPlatform,
        expander: Optional[DoseExpander] = None,
        planner: Optional[NotificationPlanner] = None,
        gateway: Optional[SchedulingGateway] = None,
        lifecycle: Optional[NotificationLifecycleManager] = None,
        planning_horizon_days: int = settings.PLANNING_HORIZON_DAYS,
        history_limit: int = settings.NOTIFICATION_HISTORY_LIMIT
    ):
        self.store = store
        self.platform = platform
        self.expander = expander or DoseExpander()
        self.planner = planner or NotificationPlanner(
            sanity_window_days=settings.SCHEDULING_SANITY_WINDOW_DAYS,
            target_platform=settings.NOTIFICATION_TARGET_PLATFORM,
        )
        self.gateway = gateway or SchedulingGateway(
            platform,
            batch_size=settings.NOTIFICATION_BATCH_SIZE,
            batch_delay_seconds=settings.NOTIFICATION_BATCH_DELAY_SECONDS,
            sanity_window_days=settings.SCHEDULING_SANITY_WINDOW_DAYS,
        )
        self.lifecycle = lifecycle or NotificationLifecycleManager(platform)
        self.planning_horizon_days = planning_horizon_days
        self.history_limit = history_limit

        # Set by the medication store; re-planning reads the stored medication through it
        self.medication_loader: Optional[Callable[[str], Awaitable[Optional[Medication]]]] = None

        self.preferences = NotificationPreferences()
        self.history: List[NotificationRecord] = []
        self.badge_count = 0
        self.initialized = False
        self._permission_warning_logged = False

    async def initialize(self) -> None:
        if self.initialized:
            return

        await self._load_preferences()
        await self._load_history()
        await self._load_badge_count()
        await self.request_permissions()

        self.initialized = True
        logger.info("Notification service initialized")

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    async def request_permissions(self) -> bool:
        try:
            granted = await self.platform.get_permission_status()
            if not granted:
                granted = await self.platform.request_permissions()
        except Exception as e:
            logger.error(f"Error requesting notification permissions: {e}")
            return False

        if not granted:
            logger.warning("Notification permissions not granted")
        return granted

    async def _has_permission(self) -> bool:
        try:
            granted = await self.platform.get_permission_status()
        except Exception as e:
            logger.error(f"Error reading notification permission status: {e}")
            granted = False

        if granted:
            self._permission_warning_logged = False
        elif not self._permission_warning_logged:
            error = NotificationPermissionDeniedError("Notifications are disabled at OS level; scheduling is paused")
            logger.warning(error.message)
            self._permission_warning_logged = True
        return granted

    # ------------------------------------------------------------------
    # Scheduling entry points
    # ------------------------------------------------------------------

    async def plan_and_schedule_notifications(
        self,
        medication: Medication,
        now: Optional[datetime] = None
    ) -> SchedulingReport:
        """
        Replace a medication's pending reminders with a fresh plan.

        Stale notifications are cancelled first; the cancel and the new
        submission run under the medication's lock. The medication is re-read
        under the lock, so a caller holding an old copy plans the stored
        version, and a medication deleted meanwhile gets no reminders.
        """
        now = now or datetime.now()
        report = SchedulingReport(medication_id=medication.id)

        if not await self._has_permission():
            report.permission_denied = True
            return report

        async def plan_and_submit() -> SchedulingReport:
            current = medication
            if self.medication_loader is not None:
                current = await self.medication_loader(medication.id)
                if current is None:
                    logger.info(f"Medication {medication.id} was removed, no reminders planned")
                    return report

            expansion = self.expander.expand(
                current,
                now.date(),
                now.date() + timedelta(days=self.planning_horizon_days),
            )
            report.expansion_errors = expansion.errors

            requests = self.planner.plan(
                current,
                expansion.doses,
                self.preferences.global_preferences,
                self.preferences.for_medication(medication.id),
                now=now,
            )
            report.planned = [r.identifier for r in requests]

            submission = await self.gateway.submit(requests, now=now)
            report.submitted = submission.submitted
            report.failed = submission.failed
            report.skipped = submission.skipped
            return report

        return await self.lifecycle.replace(medication.id, plan_and_submit)

    async def cancel_all_for_medication(self, medication_id: str) -> int:
        return await self.lifecycle.cancel_all_for_medication(medication_id)

    async def send_test_notification(self) -> bool:
        request = self.planner.build_immediate(
            identifier=f"test_{uuid.uuid4().hex}",
            kind=NotificationKind.TEST,
            title="Test Notification",
            body="This is a test notification from your medication app",
            payload={"type": NotificationKind.TEST.value},
            sound=self.preferences.global_preferences.sound,
        )
        report = await self.gateway.submit([request])
        return bool(report.submitted)

    async def send_achievement_notification(self, message: str, achievement_type: str = "daily_complete") -> bool:
        if not self.preferences.global_preferences.achievement_notifications:
            return False

        request = self.planner.build_immediate(
            identifier=f"achievement_{uuid.uuid4().hex}",
            kind=NotificationKind.ACHIEVEMENT,
            title="Great Job!",
            body=message,
            payload={
                "type": NotificationKind.ACHIEVEMENT.value,
                "achievement_type": achievement_type,
                "priority": PriorityLevel.LOW.value,
            },
            sound=self.preferences.global_preferences.sound,
        )
        report = await self.gateway.submit([request])
        return bool(report.submitted)

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def get_preferences(self) -> NotificationPreferences:
        return self.preferences

    async def update_preferences(self, updates: Dict[str, Any]) -> NotificationPreferences:
        """Merge partial global preference updates and persist them"""
        merged = {**self.preferences.global_preferences.model_dump(), **updates}
        self.preferences.global_preferences = GlobalNotificationPreferences.model_validate(merged)
        await self._save_preferences()
        return self.preferences

    async def set_medication_preferences(
        self,
        medication_id: str,
        medication_preferences: MedicationNotificationPreferences
    ) -> NotificationPreferences:
        self.preferences.medications[medication_id] = medication_preferences
        await self._save_preferences()
        return self.preferences

    async def remove_medication_preferences(self, medication_id: str) -> None:
        if self.preferences.medications.pop(medication_id, None) is not None:
            await self._save_preferences()

    async def replace_preferences(self, preferences: NotificationPreferences) -> NotificationPreferences:
        self.preferences = preferences
        await self._save_preferences()
        return self.preferences

    # ------------------------------------------------------------------
    # History and badge
    # ------------------------------------------------------------------

    async def handle_notification_received(self, request: ScheduledNotificationRequest) -> NotificationRecord:
        payload = request.payload
        record = NotificationRecord(
            id=request.identifier,
            type=payload.get("type", request.kind.value),
            medication_id=payload.get("medication_id"),
            medication_name=payload.get("medication_name"),
            dosage=payload.get("dosage"),
            scheduled_time=payload.get("scheduled_time") or datetime.now(),
            priority=payload.get("priority", PriorityLevel.MEDIUM.value),
        )

        self.history.insert(0, record)
        del self.history[self.history_limit:]
        await self._save_history()
        await self.set_badge_count(self.badge_count + 1)
        return record

    async def handle_notification_response(self, identifier: str) -> None:
        await self.mark_notification_as_read(identifier)
        await self.set_badge_count(max(0, self.badge_count - 1))

    async def mark_notification_as_read(self, identifier: str) -> bool:
        for record in self.history:
            if record.id == identifier:
                record.read = True
                await self._save_history()
                return True
        return False

    async def mark_all_notifications_as_read(self) -> None:
        for record in self.history:
            record.read = True
        await self._save_history()
        await self.set_badge_count(0)

    def get_unread_notification_count(self) -> int:
        return sum(1 for record in self.history if not record.read)

    async def set_badge_count(self, count: int) -> None:
        self.badge_count = max(0, count)
        try:
            await self.platform.set_badge_count(self.badge_count)
        except Exception as e:
            logger.error(f"Error setting badge count: {e}")
        await self.store.set(BADGE_COUNT_KEY, self.badge_count)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _load_preferences(self) -> None:
        stored = await self.store.get(PREFERENCES_KEY)
        if stored:
            try:
                self.preferences = NotificationPreferences.model_validate(stored)
            except ValueError as e:
                logger.error(f"Stored notification preferences are invalid, using defaults: {e}")
                self.preferences = NotificationPreferences()

    async def _save_preferences(self) -> None:
        await self.store.set(PREFERENCES_KEY, self.preferences.model_dump(mode="json"))

    async def _load_history(self) -> None:
        stored = await self.store.get(HISTORY_KEY) or []
        self.history = []
        for entry in stored:
            try:
                self.history.append(NotificationRecord.model_validate(entry))
            except ValueError as e:
                logger.warning(f"Dropping unreadable notification history entry: {e}")

    async def _save_history(self) -> None:
        await self.store.set(HISTORY_KEY, [record.model_dump(mode="json") for record in self.history])

    async def _load_badge_count(self) -> None:
        stored = await self.store.get(BADGE_COUNT_KEY)
        self.badge_count = int(stored or 0)
        try:
            await self.platform.set_badge_count(self.badge_count)
        except Exception as e:
            logger.error(f"Error restoring badge count: {e}")
