"""
Dose Record Service
===================

Append-only log of dose outcomes (taken / skipped / missed). Records are
never edited: a correction appends a new record, and the current status of a
dose instant is its most recent record.

Provides:
- Marking doses taken, skipped or missed
- Dose history and current status lookup
- Adherence statistics over a trailing window
- Missed-dose sweep for doses whose overdue alerts have all elapsed
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from app.schemas.medication_schemas import DoseRecord, DoseRecordCreate, DoseStatus, Medication
from app.services.document_store import DocumentStore
from app.services.dose_scheduling import DoseExpander

logger = logging.getLogger(__name__)

DOSE_RECORDS_KEY = "dose_records"


class DoseRecordService:

    def __init__(self, store: DocumentStore, expander: Optional[DoseExpander] = None):
        self.store = store
        self.expander = expander or DoseExpander()

    async def _load(self) -> List[DoseRecord]:
        stored = await self.store.get(DOSE_RECORDS_KEY) or []
        return [DoseRecord.model_validate(entry) for entry in stored]

    async def _save(self, records: List[DoseRecord]) -> None:
        await self.store.set(DOSE_RECORDS_KEY, [r.model_dump(mode="json") for r in records])

    async def record_dose(self, dose: DoseRecordCreate) -> DoseRecord:
        records = await self._load()
        record = DoseRecord(**dose.model_dump())
        records.append(record)
        await self._save(records)
        logger.info(f"Dose recorded for medication {record.medication_id}: {record.status.value}")
        return record

    async def mark_dose_taken(
        self,
        medication_id: str,
        scheduled_time: datetime,
        notes: str = "",
        actual_time: Optional[datetime] = None
    ) -> DoseRecord:
        return await self.record_dose(DoseRecordCreate(
            medication_id=medication_id,
            status=DoseStatus.TAKEN,
            scheduled_time=scheduled_time,
            actual_time=actual_time or datetime.now(),
            notes=notes,
        ))

    async def mark_dose_skipped(
        self,
        medication_id: str,
        scheduled_time: datetime,
        notes: str = "",
        actual_time: Optional[datetime] = None
    ) -> DoseRecord:
        return await self.record_dose(DoseRecordCreate(
            medication_id=medication_id,
            status=DoseStatus.SKIPPED,
            scheduled_time=scheduled_time,
            actual_time=actual_time or datetime.now(),
            notes=notes,
        ))

    async def mark_dose_missed(self, medication_id: str, scheduled_time: datetime, notes: str = "") -> DoseRecord:
        return await self.record_dose(DoseRecordCreate(
            medication_id=medication_id,
            status=DoseStatus.MISSED,
            scheduled_time=scheduled_time,
            notes=notes,
        ))

    async def get_dose_history(
        self,
        medication_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[DoseRecord]:
        """All records in range, newest scheduled time first"""
        records = await self._load()
        if medication_id:
            records = [r for r in records if r.medication_id == medication_id]
        if start:
            records = [r for r in records if r.scheduled_time >= start]
        if end:
            records = [r for r in records if r.scheduled_time <= end]
        return sorted(records, key=lambda r: (r.scheduled_time, r.created_at), reverse=True)

    @staticmethod
    def current_records(records: List[DoseRecord]) -> Dict[Tuple[str, datetime], DoseRecord]:
        """Latest record per (medication_id, scheduled_time)"""
        latest: Dict[Tuple[str, datetime], DoseRecord] = {}
        for record in sorted(records, key=lambda r: r.created_at):
            latest[(record.medication_id, record.scheduled_time)] = record
        return latest

    async def get_current_status(self, medication_id: str, scheduled_time: datetime) -> Optional[DoseStatus]:
        records = await self.get_dose_history(medication_id, scheduled_time, scheduled_time)
        latest = self.current_records(records).get((medication_id, scheduled_time))
        return latest.status if latest else None

    async def get_adherence_stats(
        self,
        medication_id: Optional[str] = None,
        days: int = 30,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        now = now or datetime.now()
        records = await self.get_dose_history(medication_id, now - timedelta(days=days), now)
        current = list(self.current_records(records).values())

        total = len(current)
        taken = sum(1 for r in current if r.status == DoseStatus.TAKEN)
        missed = sum(1 for r in current if r.status == DoseStatus.MISSED)
        skipped = sum(1 for r in current if r.status == DoseStatus.SKIPPED)
        adherence_rate = (taken / total * 100) if total > 0 else 0

        return {
            "total": total,
            "taken": taken,
            "missed": missed,
            "skipped": skipped,
            "adherence_rate": round(adherence_rate, 2),
            "period": days,
        }

    async def get_missed_doses(self, day: date) -> List[DoseRecord]:
        start = datetime.combine(day, datetime.min.time())
        end = datetime.combine(day, datetime.max.time())
        records = await self.get_dose_history(None, start, end)
        return [r for r in self.current_records(records).values() if r.status == DoseStatus.MISSED]

    async def sweep_missed_doses(
        self,
        medication: Medication,
        now: Optional[datetime] = None,
        grace_minutes: int = 120,
        lookback_days: int = 1
    ) -> List[DoseRecord]:
        """
        Append a missed record for each past dose with no record once
        grace_minutes have passed since it was due. Doses scheduled before the
        medication was added are never back-filled.
        """
        now = now or datetime.now()
        cutoff = now - timedelta(minutes=grace_minutes)
        doses = self.expander.expand(medication, (now - timedelta(days=lookback_days)).date(), now.date()).doses

        records = await self._load()
        recorded = {(r.medication_id, r.scheduled_time) for r in records}

        swept = []
        for dose in doses:
            if dose.scheduled_at > cutoff or dose.scheduled_at < medication.created_at:
                continue
            if (medication.id, dose.scheduled_at) in recorded:
                continue
            swept.append(DoseRecord(
                medication_id=medication.id,
                status=DoseStatus.MISSED,
                scheduled_time=dose.scheduled_at,
                notes="No response after overdue alerts",
            ))

        if swept:
            await self._save(records + swept)
            logger.info(f"Marked {len(swept)} doses missed for medication {medication.id}")
        return swept

    async def delete_records_for_medication(self, medication_id: str) -> int:
        records = await self._load()
        remaining = [r for r in records if r.medication_id != medication_id]
        removed = len(records) - len(remaining)
        if removed:
            await self._save(remaining)
        return removed

    async def replace_all(self, records: List[DoseRecord]) -> None:
        """Swap the whole log, used when restoring a backup"""
        await self._save(sorted(records, key=lambda r: r.created_at))

    async def clear(self) -> int:
        records = await self._load()
        await self.store.delete(DOSE_RECORDS_KEY)
        return len(records)
