from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request, status

from app.services.document_store import DocumentStore
from app.services.dose_record_service import DoseRecordService
from app.services.dose_scheduling import NotificationPlatform
from app.services.medication_notification_service import MedicationNotificationService
from app.services.medication_store_service import MedicationStoreService
from app.services.schedule_recognition_service import ScheduleRecognitionService


@dataclass
class ServiceContainer:
    """Services built once at startup and shared by every request"""
    store: DocumentStore
    platform: NotificationPlatform
    notifications: MedicationNotificationService
    dose_records: DoseRecordService
    medications: MedicationStoreService
    recognition: ScheduleRecognitionService


def build_container(
    store: DocumentStore,
    platform: NotificationPlatform,
    recognition: Optional[ScheduleRecognitionService] = None
) -> ServiceContainer:
    notifications = MedicationNotificationService(store, platform)
    dose_records = DoseRecordService(store, expander=notifications.expander)
    medications = MedicationStoreService(store, notifications, dose_records)
    return ServiceContainer(
        store=store,
        platform=platform,
        notifications=notifications,
        dose_records=dose_records,
        medications=medications,
        recognition=recognition or ScheduleRecognitionService(),
    )


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reminder services are not initialized"
        )
    return container
