"""
Notification Lifecycle Manager - cancels a medication's pending notifications
and serializes re-planning per medication.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, TypeVar

from app.core.logging import log_audit
from app.services.dose_scheduling.notification_platform import NotificationPlatform

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NotificationLifecycleManager:

    def __init__(self, platform: NotificationPlatform):
        self.platform = platform
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, medication_id: str) -> asyncio.Lock:
        lock = self._locks.get(medication_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[medication_id] = lock
        return lock

    async def cancel_all_for_medication(self, medication_id: str) -> int:
        """
        Cancel every pending notification whose payload belongs to the medication.

        Waits for any in-flight re-plan of the same medication first.
        Returns the number cancelled; zero is not an error.
        """
        async with self.lock_for(medication_id):
            return await self._cancel_unlocked(medication_id)

    async def replace(self, medication_id: str, plan: Callable[[], Awaitable[T]]) -> T:
        """Cancel stale notifications then run plan, with no other re-plan of this medication in between"""
        async with self.lock_for(medication_id):
            await self._cancel_unlocked(medication_id)
            return await plan()

    async def retire(self, medication_id: str, remove: Callable[[], Awaitable[None]]) -> int:
        """Cancel pending notifications and remove the medication under its lock. Returns the number cancelled."""
        async with self.lock_for(medication_id):
            cancelled = await self._cancel_unlocked(medication_id)
            await remove()
            return cancelled

    def forget(self, medication_id: str) -> None:
        """Drop the lock of a deleted medication once nothing holds it"""
        lock = self._locks.get(medication_id)
        if lock is not None and not lock.locked():
            del self._locks[medication_id]

    async def _cancel_unlocked(self, medication_id: str) -> int:
        try:
            scheduled = await self.platform.list_scheduled()
        except Exception as e:
            logger.error(f"Error listing scheduled notifications for medication {medication_id}: {e}")
            return 0

        to_cancel = [r for r in scheduled if r.payload.get("medication_id") == medication_id]

        cancelled = 0
        for request in to_cancel:
            try:
                await self.platform.cancel(request.identifier)
                cancelled += 1
            except Exception as e:
                logger.error(f"Error cancelling notification {request.identifier}: {e}")

        if cancelled:
            log_audit("notifications_cancelled", medication_id, {"count": cancelled})
        logger.info(f"Cancelled {cancelled} notifications for medication {medication_id}")
        return cancelled
