"""
Platform notification primitive.

The device (or push relay) owns a request from the moment it is scheduled
until it fires or is cancelled. Scheduling an identifier that is already
pending replaces it.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from app.services.dose_scheduling.notification_types import (
    NotificationState,
    ScheduledNotificationRequest,
)

logger = logging.getLogger(__name__)


class NotificationPlatform(ABC):

    @abstractmethod
    async def schedule(self, request: ScheduledNotificationRequest) -> None:
        ...

    @abstractmethod
    async def cancel(self, identifier: str) -> None:
        ...

    @abstractmethod
    async def list_scheduled(self) -> List[ScheduledNotificationRequest]:
        ...

    @abstractmethod
    async def set_badge_count(self, count: int) -> None:
        ...

    @abstractmethod
    async def get_permission_status(self) -> bool:
        ...

    @abstractmethod
    async def request_permissions(self) -> bool:
        ...

    def fire_due(self, now: Optional[datetime] = None) -> List[ScheduledNotificationRequest]:
        """Requests that fired since the last call; device-backed platforms deliver on their own"""
        return []


class InMemoryNotificationPlatform(NotificationPlatform):
    """
    Local stand-in for the device scheduler.

    Keeps pending requests by identifier, delivers immediate requests on
    submission and fires pending ones when fire_due() is called.
    """

    def __init__(self, requires_channel: bool = False, permission_granted: bool = True):
        self.requires_channel = requires_channel
        self.permission_granted = permission_granted
        self.pending: Dict[str, ScheduledNotificationRequest] = {}
        self.delivered: List[ScheduledNotificationRequest] = []
        self.badge_count = 0
        self._unreported: List[ScheduledNotificationRequest] = []

    async def schedule(self, request: ScheduledNotificationRequest) -> None:
        if self.requires_channel and not request.channel_id:
            raise ValueError(f"channel_id is required for {request.identifier}")

        if request.firing_time is None:
            request.state = NotificationState.FIRED
            self.delivered.append(request)
            self._unreported.append(request)
            return

        previous = self.pending.get(request.identifier)
        if previous is not None and previous is not request:
            previous.state = NotificationState.CANCELLED
        self.pending[request.identifier] = request

    async def cancel(self, identifier: str) -> None:
        request = self.pending.pop(identifier, None)
        if request is not None:
            request.state = NotificationState.CANCELLED

    async def list_scheduled(self) -> List[ScheduledNotificationRequest]:
        return sorted(self.pending.values(), key=lambda r: (r.firing_time, r.identifier))

    async def set_badge_count(self, count: int) -> None:
        self.badge_count = count

    async def get_permission_status(self) -> bool:
        return self.permission_granted

    async def request_permissions(self) -> bool:
        return self.permission_granted

    def fire_due(self, now: Optional[datetime] = None) -> List[ScheduledNotificationRequest]:
        """
        Deliver every pending request whose firing time has passed.

        Returns those plus immediate requests delivered since the last call.
        """
        now = now or datetime.now()
        due = [r for r in self.pending.values() if r.firing_time <= now]
        due.sort(key=lambda r: (r.firing_time, r.identifier))
        for request in due:
            del self.pending[request.identifier]
            request.state = NotificationState.FIRED
            self.delivered.append(request)
        if due:
            logger.info(f"Fired {len(due)} scheduled notifications")

        fired = self._unreported + due
        self._unreported = []
        return fired
