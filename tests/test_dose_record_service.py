"""
Dose record log tests
Append-only outcomes, latest record wins, adherence and missed-dose sweep.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from app.schemas.medication_schemas import DoseRecord, DoseRecordCreate, DoseStatus
from app.services.dose_record_service import DOSE_RECORDS_KEY, DoseRecordService


@pytest.fixture
def dose_records(store):
    return DoseRecordService(store)


NINE_AM = datetime(2024, 3, 24, 9, 0)


class TestDoseRecords:

    @pytest.mark.asyncio
    async def test_records_are_appended(self, dose_records, store):
        await dose_records.mark_dose_taken("med-1", NINE_AM)
        await dose_records.mark_dose_skipped("med-1", NINE_AM, notes="Felt sick")

        assert len(await store.get(DOSE_RECORDS_KEY)) == 2

    @pytest.mark.asyncio
    async def test_latest_record_wins(self, dose_records):
        await dose_records.mark_dose_missed("med-1", NINE_AM)
        await dose_records.mark_dose_taken("med-1", NINE_AM, actual_time=NINE_AM + timedelta(hours=3))

        assert await dose_records.get_current_status("med-1", NINE_AM) == DoseStatus.TAKEN

    @pytest.mark.asyncio
    async def test_no_record_means_no_status(self, dose_records):
        assert await dose_records.get_current_status("med-1", NINE_AM) is None

    @pytest.mark.asyncio
    async def test_missed_record_has_no_actual_time(self, dose_records):
        record = await dose_records.record_dose(DoseRecordCreate(
            medication_id="med-1",
            status=DoseStatus.MISSED,
            scheduled_time=NINE_AM,
            actual_time=NINE_AM,
        ))
        assert record.actual_time is None

    @pytest.mark.asyncio
    async def test_aware_times_are_stored_as_naive_local(self, dose_records):
        utc_time = datetime(2024, 3, 24, 13, 0, tzinfo=timezone.utc)

        record = await dose_records.mark_dose_taken("med-1", utc_time, actual_time=utc_time)

        assert record.scheduled_time.tzinfo is None
        assert record.actual_time.tzinfo is None
        assert record.scheduled_time == utc_time.astimezone().replace(tzinfo=None)
        assert await dose_records.get_current_status("med-1", record.scheduled_time) == DoseStatus.TAKEN

    @pytest.mark.asyncio
    async def test_history_filters_and_orders_newest_first(self, dose_records):
        await dose_records.mark_dose_taken("med-1", NINE_AM)
        await dose_records.mark_dose_taken("med-1", NINE_AM + timedelta(days=1))
        await dose_records.mark_dose_taken("med-2", NINE_AM)

        history = await dose_records.get_dose_history("med-1")
        assert [r.scheduled_time for r in history] == [NINE_AM + timedelta(days=1), NINE_AM]

        ranged = await dose_records.get_dose_history(None, NINE_AM, NINE_AM)
        assert {r.medication_id for r in ranged} == {"med-1", "med-2"}

    @pytest.mark.asyncio
    async def test_adherence_counts_current_status(self, dose_records):
        now = datetime(2024, 3, 26, 12, 0)
        await dose_records.mark_dose_taken("med-1", NINE_AM)
        await dose_records.mark_dose_missed("med-1", NINE_AM + timedelta(days=1))
        await dose_records.mark_dose_taken("med-1", NINE_AM + timedelta(days=1))
        await dose_records.mark_dose_skipped("med-1", NINE_AM + timedelta(days=2))
        await dose_records.mark_dose_missed("med-1", NINE_AM - timedelta(days=1))

        stats = await dose_records.get_adherence_stats("med-1", days=30, now=now)

        assert stats["total"] == 4
        assert stats["taken"] == 2
        assert stats["skipped"] == 1
        assert stats["missed"] == 1
        assert stats["adherence_rate"] == 50.0
        assert stats["period"] == 30

    @pytest.mark.asyncio
    async def test_adherence_with_no_records(self, dose_records):
        stats = await dose_records.get_adherence_stats("med-1")
        assert stats["total"] == 0
        assert stats["adherence_rate"] == 0

    @pytest.mark.asyncio
    async def test_missed_doses_for_a_day(self, dose_records):
        await dose_records.mark_dose_missed("med-1", NINE_AM)
        await dose_records.mark_dose_missed("med-2", NINE_AM)
        await dose_records.mark_dose_taken("med-2", NINE_AM)
        await dose_records.mark_dose_missed("med-1", NINE_AM + timedelta(days=1))

        missed = await dose_records.get_missed_doses(date(2024, 3, 24))

        assert [r.medication_id for r in missed] == ["med-1"]

    @pytest.mark.asyncio
    async def test_delete_records_for_medication(self, dose_records):
        await dose_records.mark_dose_taken("med-1", NINE_AM)
        await dose_records.mark_dose_taken("med-2", NINE_AM)

        assert await dose_records.delete_records_for_medication("med-1") == 1
        assert await dose_records.get_dose_history("med-1") == []
        assert await dose_records.delete_records_for_medication("med-1") == 0


class TestMissedDoseSweep:

    @pytest.mark.asyncio
    async def test_unanswered_doses_are_marked_missed(self, dose_records, make_medication):
        medication = make_medication(times=["09:00", "20:00"])

        swept = await dose_records.sweep_missed_doses(medication, now=datetime(2024, 3, 24, 12, 0))

        assert [r.scheduled_time for r in swept] == [NINE_AM]
        assert swept[0].status == DoseStatus.MISSED

    @pytest.mark.asyncio
    async def test_answered_doses_are_left_alone(self, dose_records, make_medication):
        medication = make_medication()
        await dose_records.mark_dose_taken("med-1", NINE_AM)

        swept = await dose_records.sweep_missed_doses(medication, now=datetime(2024, 3, 24, 12, 0))

        assert swept == []

    @pytest.mark.asyncio
    async def test_grace_period_not_yet_elapsed(self, dose_records, make_medication):
        swept = await dose_records.sweep_missed_doses(
            make_medication(), now=datetime(2024, 3, 24, 10, 59), grace_minutes=120
        )
        assert swept == []

    @pytest.mark.asyncio
    async def test_sweep_is_idempotent(self, dose_records, make_medication):
        now = datetime(2024, 3, 24, 12, 0)
        await dose_records.sweep_missed_doses(make_medication(), now=now)

        assert await dose_records.sweep_missed_doses(make_medication(), now=now) == []

    @pytest.mark.asyncio
    async def test_dose_answered_with_aware_time_is_not_duplicated(self, dose_records, make_medication):
        await dose_records.mark_dose_taken("med-1", NINE_AM.astimezone())

        swept = await dose_records.sweep_missed_doses(make_medication(), now=datetime(2024, 3, 24, 12, 0))

        assert swept == []
        assert len(await dose_records.get_dose_history("med-1")) == 1

    @pytest.mark.asyncio
    async def test_doses_before_creation_are_not_backfilled(self, dose_records, make_medication):
        medication = make_medication(start_date=date(2024, 3, 23), created_at=datetime(2024, 3, 24, 15, 0))

        assert await dose_records.sweep_missed_doses(medication, now=datetime(2024, 3, 24, 18, 0)) == []

        swept = await dose_records.sweep_missed_doses(medication, now=datetime(2024, 3, 25, 12, 0))
        assert [r.scheduled_time for r in swept] == [datetime(2024, 3, 25, 9, 0)]


class TestReplaceAndClear:

    @pytest.mark.asyncio
    async def test_replace_all(self, dose_records):
        await dose_records.mark_dose_taken("med-1", NINE_AM)
        restored = DoseRecordCreate(medication_id="med-2", status=DoseStatus.SKIPPED, scheduled_time=NINE_AM)

        await dose_records.replace_all([DoseRecord(**restored.model_dump())])

        history = await dose_records.get_dose_history()
        assert [(r.medication_id, r.status) for r in history] == [("med-2", DoseStatus.SKIPPED)]

    @pytest.mark.asyncio
    async def test_clear(self, dose_records, store):
        await dose_records.mark_dose_taken("med-1", NINE_AM)
        await dose_records.mark_dose_taken("med-2", NINE_AM)

        assert await dose_records.clear() == 2
        assert await store.get(DOSE_RECORDS_KEY) is None
        assert await dose_records.clear() == 0
