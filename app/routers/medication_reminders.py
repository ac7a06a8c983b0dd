"""
Medication Reminders Router
Medication CRUD with reminder scheduling, dose timeline and outcomes,
notification preferences, schedule import from voice transcripts and
package photos, and data export, restore and reset.

Every create/update re-plans the medication's reminders; delete cancels
them before the medication is removed.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, Field

from app.dependencies import ServiceContainer, get_container
from app.schemas.medication_schemas import (
    DataBackup,
    DoseRecord,
    DoseRecordCreate,
    DoseStatus,
    Medication,
    MedicationCreate,
    MedicationNotificationPreferences,
    MedicationUpdate,
    NotificationPreferences,
)
from app.services.dose_record_service import DoseRecordService
from app.utils.time_slots import PRIMARY_SLOTS, slot_for_time

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/medication-reminders", tags=["Medication Reminders"])


# Pydantic request/response models
class DoseOutcomeRequest(BaseModel):
    status: DoseStatus
    scheduled_time: datetime
    actual_time: Optional[datetime] = None
    notes: str = Field("", max_length=500)


class GlobalPreferencesUpdate(BaseModel):
    enabled: Optional[bool] = None
    sound: Optional[bool] = None
    vibration: Optional[bool] = None
    pre_dose_minutes: Optional[int] = None
    overdue_alerts: Optional[List[int]] = None
    quiet_hours_start: Optional[str] = None
    quiet_hours_end: Optional[str] = None
    achievement_notifications: Optional[bool] = None


class TranscriptImportRequest(BaseModel):
    transcript: str = Field(..., min_length=1, max_length=2000)


class DoseResponse(BaseModel):
    dose_id: str
    medication_id: str
    medication_name: str
    dosage: str
    calendar_date: date
    time_of_day: str
    scheduled_at: datetime
    slot: str
    status: Optional[DoseStatus] = None


def _naive_local(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def _medication_response(medication: Medication, report) -> Dict[str, Any]:
    return {
        "medication": medication.model_dump(mode="json"),
        "scheduling": report.to_dict(),
    }


async def _doses_with_status(
    container: ServiceContainer,
    medications: List[Medication],
    start: date,
    end: date
) -> List[DoseResponse]:
    records = await container.dose_records.get_dose_history(
        None,
        datetime.combine(start, datetime.min.time()),
        datetime.combine(end, datetime.max.time()),
    )
    current = DoseRecordService.current_records(records)

    doses = []
    for medication in medications:
        for dose in container.notifications.expander.expand(medication, start, end).doses:
            latest = current.get((medication.id, dose.scheduled_at))
            doses.append(DoseResponse(
                dose_id=dose.dose_id,
                medication_id=medication.id,
                medication_name=medication.name,
                dosage=medication.dosage,
                calendar_date=dose.calendar_date,
                time_of_day=dose.time_of_day,
                scheduled_at=dose.scheduled_at,
                slot=slot_for_time(dose.time_of_day).name,
                status=latest.status if latest else None,
            ))
    return sorted(doses, key=lambda d: (d.scheduled_at, d.medication_name.lower()))


# ---------------------------------------------------------------------------
# Medications
# ---------------------------------------------------------------------------

@router.post("/medications")
async def create_medication(
    data: MedicationCreate,
    container: ServiceContainer = Depends(get_container)
):
    medication, report = await container.medications.create_medication(data)
    return _medication_response(medication, report)


@router.get("/medications", response_model=List[Medication])
async def list_medications(
    active_only: bool = Query(False),
    container: ServiceContainer = Depends(get_container)
):
    if active_only:
        return await container.medications.list_active_medications()
    return await container.medications.list_medications()


@router.get("/medications/{medication_id}", response_model=Medication)
async def get_medication(
    medication_id: str,
    container: ServiceContainer = Depends(get_container)
):
    return await container.medications.get_medication(medication_id)


@router.put("/medications/{medication_id}")
async def update_medication(
    medication_id: str,
    updates: MedicationUpdate,
    container: ServiceContainer = Depends(get_container)
):
    try:
        medication, report = await container.medications.update_medication(medication_id, updates)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return _medication_response(medication, report)


@router.delete("/medications/{medication_id}")
async def delete_medication(
    medication_id: str,
    container: ServiceContainer = Depends(get_container)
):
    cancelled = await container.medications.delete_medication(medication_id)
    return {"deleted": True, "notifications_cancelled": cancelled}


@router.post("/medications/{medication_id}/reschedule")
async def reschedule_medication(
    medication_id: str,
    container: ServiceContainer = Depends(get_container)
):
    """Re-sync the platform's pending reminders for one medication"""
    medication = await container.medications.get_medication(medication_id)
    report = await container.notifications.plan_and_schedule_notifications(medication)
    return report.to_dict()


@router.get("/medications/{medication_id}/doses", response_model=List[DoseResponse])
async def get_medication_doses(
    medication_id: str,
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    container: ServiceContainer = Depends(get_container)
):
    medication = await container.medications.get_medication(medication_id)
    start = start or date.today()
    end = end or start + timedelta(days=6)
    return await _doses_with_status(container, [medication], start, end)


@router.get("/timeline")
async def get_timeline(
    day: Optional[date] = Query(None),
    container: ServiceContainer = Depends(get_container)
):
    """Doses of one day across active medications, grouped by time slot"""
    day = day or date.today()
    medications = await container.medications.list_active_medications(day)
    doses = await _doses_with_status(container, medications, day, day)

    slots: Dict[str, List[Dict[str, Any]]] = {slot.name: [] for slot in PRIMARY_SLOTS}
    for dose in doses:
        slots[dose.slot].append(dose.model_dump(mode="json"))

    return {
        "date": day.isoformat(),
        "slots": [
            {"slot": slot.name, "label": slot.label, "time": slot.clock_time, "doses": slots[slot.name]}
            for slot in PRIMARY_SLOTS
        ],
        "total": len(doses),
    }


# ---------------------------------------------------------------------------
# Dose outcomes
# ---------------------------------------------------------------------------

@router.post("/medications/{medication_id}/dose-records", response_model=DoseRecord)
async def record_dose_outcome(
    medication_id: str,
    outcome: DoseOutcomeRequest,
    container: ServiceContainer = Depends(get_container)
):
    await container.medications.get_medication(medication_id)
    actual_time = outcome.actual_time
    if actual_time is None and outcome.status != DoseStatus.MISSED:
        actual_time = datetime.now()

    return await container.dose_records.record_dose(DoseRecordCreate(
        medication_id=medication_id,
        status=outcome.status,
        scheduled_time=outcome.scheduled_time,
        actual_time=actual_time,
        notes=outcome.notes,
    ))


@router.get("/medications/{medication_id}/dose-records", response_model=List[DoseRecord])
async def get_dose_records(
    medication_id: str,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    container: ServiceContainer = Depends(get_container)
):
    return await container.dose_records.get_dose_history(medication_id, _naive_local(start), _naive_local(end))


@router.get("/medications/{medication_id}/adherence")
async def get_adherence(
    medication_id: str,
    days: int = Query(30, ge=1, le=365),
    container: ServiceContainer = Depends(get_container)
):
    await container.medications.get_medication(medication_id)
    return await container.dose_records.get_adherence_stats(medication_id, days)


# ---------------------------------------------------------------------------
# Preferences and notifications
# ---------------------------------------------------------------------------

@router.get("/preferences", response_model=NotificationPreferences)
async def get_preferences(container: ServiceContainer = Depends(get_container)):
    return await container.notifications.get_preferences()


@router.put("/preferences", response_model=NotificationPreferences)
async def update_preferences(
    updates: GlobalPreferencesUpdate,
    container: ServiceContainer = Depends(get_container)
):
    try:
        preferences = await container.notifications.update_preferences(updates.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    # Timing preferences changed: re-plan every active medication
    for medication in await container.medications.list_active_medications():
        await container.notifications.plan_and_schedule_notifications(medication)
    return preferences


@router.put("/preferences/medications/{medication_id}", response_model=NotificationPreferences)
async def set_medication_preferences(
    medication_id: str,
    medication_preferences: MedicationNotificationPreferences,
    container: ServiceContainer = Depends(get_container)
):
    medication = await container.medications.get_medication(medication_id)
    preferences = await container.notifications.set_medication_preferences(medication_id, medication_preferences)
    await container.notifications.plan_and_schedule_notifications(medication)
    return preferences


@router.get("/notifications/history")
async def get_notification_history(container: ServiceContainer = Depends(get_container)):
    notifications = container.notifications
    return {
        "unread": notifications.get_unread_notification_count(),
        "badge_count": notifications.badge_count,
        "items": [record.model_dump(mode="json") for record in notifications.history],
    }


@router.post("/notifications/read-all")
async def mark_all_read(container: ServiceContainer = Depends(get_container)):
    await container.notifications.mark_all_notifications_as_read()
    return {"unread": 0}


@router.post("/notifications/test")
async def send_test_notification(container: ServiceContainer = Depends(get_container)):
    sent = await container.notifications.send_test_notification()
    return {"sent": sent}


# ---------------------------------------------------------------------------
# Schedule import
# ---------------------------------------------------------------------------

@router.post("/import/transcript")
async def import_from_transcript(
    body: TranscriptImportRequest,
    container: ServiceContainer = Depends(get_container)
):
    candidates = await container.recognition.schedule_from_transcript(body.transcript)
    if candidates is None:
        return {"recognized": False, "medications": []}

    imported = await container.medications.import_candidates(candidates, source="voice")
    return {
        "recognized": True,
        "medications": [_medication_response(medication, report) for medication, report in imported],
    }


@router.post("/import/photo")
async def import_from_photo(
    image: UploadFile = File(...),
    container: ServiceContainer = Depends(get_container)
):
    """Recognize a medication package or prescription photo and import its schedules"""
    if image.content_type and not image.content_type.startswith("image/"):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Upload must be an image")

    image_data = await image.read()
    if not image_data:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Uploaded image is empty")

    candidates = await container.recognition.recognize_package_image(
        image_data, mime_type=image.content_type or "image/jpeg"
    )
    if candidates is None:
        return {"recognized": False, "medications": []}

    imported = await container.medications.import_candidates(candidates, source="scan")
    return {
        "recognized": True,
        "medications": [_medication_response(medication, report) for medication, report in imported],
    }


# ---------------------------------------------------------------------------
# Data management
# ---------------------------------------------------------------------------

@router.get("/data/export", response_model=DataBackup)
async def export_data(container: ServiceContainer = Depends(get_container)):
    return await container.medications.export_data()


@router.post("/data/import")
async def import_data(
    backup: DataBackup,
    container: ServiceContainer = Depends(get_container)
):
    """Replace all medications, dose records and preferences with a backup"""
    return await container.medications.import_data(backup)


@router.delete("/data")
async def clear_all_data(container: ServiceContainer = Depends(get_container)):
    return await container.medications.clear_all_data()
