"""
Scheduling Gateway - submits planned requests to the platform in batches.

Best effort: a request the platform rejects is logged and skipped, the rest
of its batch and the remaining batches still go out. Batches are serialized
with a short pause in between; items inside a batch are submitted one at a
time so every failure is attributed to exactly one request. No retries.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from app.core.exceptions import OutOfRangeDateError, SubmissionFailureError
from app.services.dose_scheduling.notification_planner import check_within_window
from app.services.dose_scheduling.notification_platform import NotificationPlatform
from app.services.dose_scheduling.notification_types import (
    NotificationState,
    ScheduledNotificationRequest,
)

logger = logging.getLogger(__name__)


@dataclass
class SubmissionReport:
    submitted: List[str] = field(default_factory=list)
    failed: List[SubmissionFailureError] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    batches: int = 0

    @property
    def failed_identifiers(self) -> List[str]:
        return [failure.context.get("identifier") for failure in self.failed]


class SchedulingGateway:
    """Batches notification requests onto the platform primitive"""

    def __init__(
        self,
        platform: NotificationPlatform,
        batch_size: int = 20,
        batch_delay_seconds: float = 0.1,
        sanity_window_days: int = 365
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.platform = platform
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds
        self.sanity_window = timedelta(days=sanity_window_days)

    async def submit(
        self,
        requests: List[ScheduledNotificationRequest],
        now: Optional[datetime] = None
    ) -> SubmissionReport:
        now = now or datetime.now()
        report = SubmissionReport()

        for start in range(0, len(requests), self.batch_size):
            batch = requests[start:start + self.batch_size]
            report.batches += 1

            for request in batch:
                await self._submit_one(request, now, report)

            logger.info(f"Processed batch of {len(batch)} notifications")

            if start + self.batch_size < len(requests) and self.batch_delay_seconds > 0:
                await asyncio.sleep(self.batch_delay_seconds)

        if report.failed or report.skipped:
            logger.warning(
                f"Notification submission finished with {len(report.failed)} failures "
                f"and {len(report.skipped)} skipped of {len(requests)}"
            )
        return report

    async def _submit_one(
        self,
        request: ScheduledNotificationRequest,
        now: datetime,
        report: SubmissionReport
    ) -> None:
        if request.firing_time is not None:
            try:
                check_within_window(request.firing_time, now, self.sanity_window)
            except OutOfRangeDateError as e:
                logger.warning(f"Trigger date out of range, skipping {request.identifier}: {e.message}")
                report.skipped.append(request.identifier)
                return

        try:
            await self.platform.schedule(request)
        except Exception as e:
            failure = SubmissionFailureError(
                f"Platform rejected notification: {e}",
                identifier=request.identifier,
                firing_time=request.firing_time,
            )
            logger.error(
                f"Error scheduling notification {request.identifier} "
                f"(trigger {request.firing_time}): {e}"
            )
            report.failed.append(failure)
            return

        if request.state == NotificationState.PLANNED:
            request.state = NotificationState.SUBMITTED
        report.submitted.append(request.identifier)
