"""
Medication Store Service

One document per medication under "medication:<id>". Every change keeps the
platform's pending reminders in step:
- create/update re-plan the medication (stale notifications cancelled first)
- delete cancels notifications and removes the document under the
  medication's lock, then drops its dose records

Also exports, restores and clears the whole data set.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from app.core.exceptions import MedicationNotFoundError
from app.core.logging import log_audit
from app.schemas.medication_schemas import (
    BACKUP_VERSION,
    CandidateSchedule,
    DataBackup,
    Medication,
    MedicationCreate,
    MedicationSchedule,
    MedicationUpdate,
    NotificationPreferences,
)
from app.services.document_store import DocumentStore
from app.services.dose_record_service import DoseRecordService
from app.services.medication_notification_service import (
    MedicationNotificationService,
    SchedulingReport,
)
from app.utils.time_slots import Frequency

logger = logging.getLogger(__name__)

MEDICATION_KEY_PREFIX = "medication:"


def medication_key(medication_id: str) -> str:
    return f"{MEDICATION_KEY_PREFIX}{medication_id}"


class MedicationStoreService:

    def __init__(
        self,
        store: DocumentStore,
        notifications: MedicationNotificationService,
        dose_records: DoseRecordService
    ):
        self.store = store
        self.notifications = notifications
        self.dose_records = dose_records
        self.notifications.medication_loader = self.find_medication

    async def _save(self, medication: Medication) -> None:
        await self.store.set(medication_key(medication.id), medication.model_dump(mode="json"))

    async def find_medication(self, medication_id: str) -> Optional[Medication]:
        stored = await self.store.get(medication_key(medication_id))
        if stored is None:
            return None
        return Medication.model_validate(stored)

    async def get_medication(self, medication_id: str) -> Medication:
        medication = await self.find_medication(medication_id)
        if medication is None:
            raise MedicationNotFoundError(medication_id)
        return medication

    async def list_medications(self) -> List[Medication]:
        medications = []
        for key in await self.store.list_keys():
            if not key.startswith(MEDICATION_KEY_PREFIX):
                continue
            stored = await self.store.get(key)
            if stored is not None:
                medications.append(Medication.model_validate(stored))
        return sorted(medications, key=lambda m: (m.start_date, m.name.lower()))

    async def list_active_medications(self, today: Optional[date] = None) -> List[Medication]:
        today = today or date.today()
        return [m for m in await self.list_medications() if m.active and not m.is_finished(today)]

    async def create_medication(
        self,
        data: MedicationCreate,
        now: Optional[datetime] = None
    ) -> Tuple[Medication, SchedulingReport]:
        now = now or datetime.now()
        medication = Medication(**data.model_dump(), created_at=now, updated_at=now)
        await self._save(medication)
        log_audit("medication_created", medication.id, {"source": "manual"})

        report = await self.notifications.plan_and_schedule_notifications(medication, now=now)
        return medication, report

    async def update_medication(
        self,
        medication_id: str,
        updates: MedicationUpdate,
        now: Optional[datetime] = None
    ) -> Tuple[Medication, SchedulingReport]:
        current = await self.get_medication(medication_id)
        changes = updates.model_dump(exclude_unset=True)

        medication = Medication.model_validate({
            **current.model_dump(),
            **changes,
            "updated_at": datetime.now(),
        })
        await self._save(medication)
        log_audit("medication_updated", medication.id, {"fields": sorted(changes)})

        report = await self.notifications.plan_and_schedule_notifications(medication, now=now)
        return medication, report

    async def delete_medication(self, medication_id: str) -> int:
        """Cancel pending reminders, then remove the medication. Returns reminders cancelled."""
        await self.get_medication(medication_id)

        cancelled = await self.notifications.lifecycle.retire(
            medication_id,
            lambda: self.store.delete(medication_key(medication_id)),
        )
        removed_records = await self.dose_records.delete_records_for_medication(medication_id)
        await self.notifications.remove_medication_preferences(medication_id)
        self.notifications.lifecycle.forget(medication_id)

        log_audit("medication_deleted", medication_id, {
            "notifications_cancelled": cancelled,
            "dose_records_removed": removed_records,
        })
        return cancelled

    async def import_candidates(
        self,
        candidates: Optional[List[CandidateSchedule]],
        source: str,
        now: Optional[datetime] = None
    ) -> List[Tuple[Medication, SchedulingReport]]:
        """Create medications from scan or voice candidates. None means recognition failed."""
        if not candidates:
            logger.info(f"No {source} candidates to import, falling back to manual entry")
            return []

        now = now or datetime.now()
        imported = []
        for candidate in candidates:
            medication = candidate_to_medication(candidate, now.date())
            medication.created_at = medication.updated_at = now
            await self._save(medication)
            log_audit("medication_created", medication.id, {"source": source})
            report = await self.notifications.plan_and_schedule_notifications(medication, now=now)
            imported.append((medication, report))

        logger.info(f"Imported {len(imported)} medications from {source}")
        return imported

    # ------------------------------------------------------------------
    # Backup, restore and reset
    # ------------------------------------------------------------------

    async def export_data(self) -> DataBackup:
        return DataBackup(
            version=BACKUP_VERSION,
            medications=await self.list_medications(),
            dose_records=await self.dose_records.get_dose_history(),
            preferences=self.notifications.preferences,
        )

    async def clear_all_data(self) -> Dict[str, int]:
        """Cancel every reminder and remove all medications, dose records and preferences"""
        medications = await self.list_medications()
        cancelled = 0
        for medication in medications:
            cancelled += await self.notifications.lifecycle.retire(
                medication.id,
                lambda medication_id=medication.id: self.store.delete(medication_key(medication_id)),
            )
            self.notifications.lifecycle.forget(medication.id)

        removed_records = await self.dose_records.clear()
        await self.notifications.replace_preferences(NotificationPreferences())

        log_audit("data_cleared", None, {
            "medications_removed": len(medications),
            "dose_records_removed": removed_records,
            "notifications_cancelled": cancelled,
        })
        return {
            "medications": len(medications),
            "dose_records": removed_records,
            "notifications_cancelled": cancelled,
        }

    async def import_data(self, backup: DataBackup, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Replace all data with a backup, then re-plan reminders for the
        imported medications that are still active.
        """
        now = now or datetime.now()
        await self.clear_all_data()

        for medication in backup.medications:
            await self._save(medication)
        await self.dose_records.replace_all(backup.dose_records)
        await self.notifications.replace_preferences(backup.preferences)

        reports = []
        for medication in backup.medications:
            if medication.active and not medication.is_finished(now.date()):
                report = await self.notifications.plan_and_schedule_notifications(medication, now=now)
                reports.append(report.to_dict())

        log_audit("data_imported", None, {
            "version": backup.version,
            "medications": len(backup.medications),
            "dose_records": len(backup.dose_records),
        })
        logger.info(f"Restored {len(backup.medications)} medications from backup {backup.exported_at.isoformat()}")
        return {
            "medications": len(backup.medications),
            "dose_records": len(backup.dose_records),
            "scheduling": reports,
        }


def candidate_to_medication(candidate: CandidateSchedule, today: date) -> Medication:
    """
    Map a recognized schedule onto a daily medication.

    Intake times are cycled to reach frequency_per_day entries; the end date
    comes from duration_days unless the candidate gives one.
    """
    start = candidate.start_date or today
    end = candidate.end_date or start + timedelta(days=candidate.duration_days - 1)
    if end < start:
        end = start

    times = [
        candidate.intake_times[i % len(candidate.intake_times)]
        for i in range(candidate.frequency_per_day)
    ]
    unique_times = list(dict.fromkeys(times))

    return Medication(
        name=candidate.medicine_name,
        dosage=candidate.dosage,
        schedule=MedicationSchedule(frequency=Frequency.DAILY, specific_times=unique_times),
        start_date=start,
        end_date=end,
        notes=candidate.notes or None,
    )
