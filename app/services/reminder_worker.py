"""
Reminder Delivery Worker

Background loop run alongside the API:
- Collects notifications the platform fired and records them in the
  notification history (badge count follows)
- Marks doses missed once every overdue alert has had its chance
- Tops up each active medication's plan once per day so the planning
  horizon keeps rolling forward

Uses asyncio for lightweight scheduling without Celery dependency.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Dict, Optional

from app.config import settings
from app.services.dose_record_service import DoseRecordService
from app.services.medication_notification_service import MedicationNotificationService
from app.services.medication_store_service import MedicationStoreService

logger = logging.getLogger(__name__)


class ReminderWorker:

    def __init__(
        self,
        notifications: MedicationNotificationService,
        medications: MedicationStoreService,
        dose_records: DoseRecordService,
        poll_seconds: float = settings.REMINDER_POLL_SECONDS,
        grace_minutes: int = settings.MISSED_DOSE_GRACE_MINUTES
    ):
        self.notifications = notifications
        self.medications = medications
        self.dose_records = dose_records
        self.poll_seconds = poll_seconds
        self.grace_minutes = grace_minutes
        self.running = False
        self.last_replan: Optional[date] = None
        self._task: Optional[asyncio.Task] = None

    async def run_once(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """One pass of delivery, missed-dose sweep and daily re-plan"""
        now = now or datetime.now()
        stats = {"delivered": 0, "missed": 0, "replanned": 0}

        for request in self.notifications.platform.fire_due(now):
            await self.notifications.handle_notification_received(request)
            stats["delivered"] += 1

        active = await self.medications.list_active_medications(now.date())
        for medication in active:
            swept = await self.dose_records.sweep_missed_doses(
                medication, now=now, grace_minutes=self.grace_minutes
            )
            stats["missed"] += len(swept)

        if self.last_replan != now.date():
            for medication in active:
                await self.notifications.plan_and_schedule_notifications(medication, now=now)
                stats["replanned"] += 1
            self.last_replan = now.date()

        return stats

    async def start(self):
        """Start the worker loop"""
        if self.running:
            logger.warning("Reminder worker already running")
            return

        self.running = True
        logger.info("Starting reminder worker")

        while self.running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Reminder worker pass failed: {e}")
            await asyncio.sleep(self.poll_seconds)

    def start_background(self) -> asyncio.Task:
        self._task = asyncio.create_task(self.start())
        return self._task

    async def stop(self):
        """Stop the worker"""
        logger.info("Stopping reminder worker")
        self.running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
