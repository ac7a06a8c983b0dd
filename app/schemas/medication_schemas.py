"""
Pydantic schemas for medications, dose records and notification preferences.
"""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.exceptions import MalformedScheduleError
from app.utils.time_slots import DAY_INTERVALS, Frequency, parse_clock_time, times_for_frequency


class DoseStatus(str, Enum):
    TAKEN = "taken"
    SKIPPED = "skipped"
    MISSED = "missed"


class MedicationSchedule(BaseModel):
    frequency: Frequency = Frequency.DAILY
    specific_times: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def fill_and_check_times(self) -> "MedicationSchedule":
        if not self.specific_times:
            table_times = times_for_frequency(self.frequency)
            if table_times is not None:
                self.specific_times = table_times
        if not self.specific_times:
            raise ValueError("specific_times must not be empty")
        return self

    @property
    def uses_fixed_times(self) -> bool:
        return self.frequency not in DAY_INTERVALS


class Medication(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(..., min_length=1, max_length=200)
    dosage: str = Field("", max_length=100)
    schedule: MedicationSchedule
    start_date: date
    end_date: Optional[date] = None
    active: bool = True
    notes: Optional[str] = None
    pill_color: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def check_date_bounds(self) -> "Medication":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def is_finished(self, today: date) -> bool:
        return self.end_date is not None and self.end_date < today


class MedicationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    dosage: str = Field("", max_length=100)
    schedule: MedicationSchedule
    start_date: date
    end_date: Optional[date] = None
    active: bool = True
    notes: Optional[str] = None
    pill_color: Optional[str] = None


class MedicationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    dosage: Optional[str] = Field(None, max_length=100)
    schedule: Optional[MedicationSchedule] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    active: Optional[bool] = None
    notes: Optional[str] = None
    pill_color: Optional[str] = None


class DoseRecordCreate(BaseModel):
    medication_id: str
    status: DoseStatus
    scheduled_time: datetime
    actual_time: Optional[datetime] = None
    notes: str = ""

    @field_validator("scheduled_time", "actual_time")
    @classmethod
    def to_naive_local(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Dose instants are compared against naive local schedule times
        if value is not None and value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value

    @model_validator(mode="after")
    def missed_has_no_actual_time(self) -> "DoseRecordCreate":
        if self.status == DoseStatus.MISSED:
            self.actual_time = None
        return self


class DoseRecord(DoseRecordCreate):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(default_factory=datetime.now)


class GlobalNotificationPreferences(BaseModel):
    enabled: bool = True
    sound: bool = True
    vibration: bool = True
    pre_dose_minutes: int = Field(30, ge=0, le=24 * 60)
    overdue_alerts: List[int] = Field(default_factory=lambda: [30, 60, 120])
    quiet_hours_start: Optional[str] = "22:00"
    quiet_hours_end: Optional[str] = "08:00"
    achievement_notifications: bool = True

    @field_validator("overdue_alerts")
    @classmethod
    def sort_overdue_alerts(cls, value: List[int]) -> List[int]:
        if any(offset <= 0 for offset in value):
            raise ValueError("overdue alert offsets must be positive minutes")
        return sorted(set(value))

    @field_validator("quiet_hours_start", "quiet_hours_end")
    @classmethod
    def normalize_quiet_hours(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        try:
            return parse_clock_time(value)
        except MalformedScheduleError as e:
            raise ValueError(e.message) from e


class MedicationNotificationPreferences(BaseModel):
    enabled: bool = True
    pre_dose: bool = True
    due_dose: bool = True
    overdue_dose: bool = True
    custom_pre_dose_minutes: Optional[int] = Field(None, ge=0, le=24 * 60)


class NotificationPreferences(BaseModel):
    global_preferences: GlobalNotificationPreferences = Field(default_factory=GlobalNotificationPreferences)
    medications: Dict[str, MedicationNotificationPreferences] = Field(default_factory=dict)

    def for_medication(self, medication_id: str) -> MedicationNotificationPreferences:
        return self.medications.get(medication_id) or MedicationNotificationPreferences()


class NotificationRecord(BaseModel):
    """Entry in the received-notification history"""
    id: str
    type: str
    medication_id: Optional[str] = None
    medication_name: Optional[str] = None
    dosage: Optional[str] = None
    scheduled_time: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)
    read: bool = False
    priority: str = "medium"


class CandidateSchedule(BaseModel):
    """Medication schedule proposed by package/prescription scanning or voice input"""
    medicine_name: str = Field(..., min_length=1)
    dosage: str = "1 dose"
    frequency_per_day: int = Field(1, ge=1, le=12)
    intake_times: List[str] = Field(default_factory=lambda: ["morning"])
    duration_days: int = Field(1, ge=1, le=365)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: str = ""

    @field_validator("intake_times")
    @classmethod
    def default_intake_times(cls, value: List[str]) -> List[str]:
        return value or ["morning"]


BACKUP_VERSION = "1.0"


class DataBackup(BaseModel):
    """Full export of medications, dose log and notification preferences"""
    version: str
    exported_at: datetime = Field(default_factory=datetime.now)
    medications: List[Medication] = Field(default_factory=list)
    dose_records: List[DoseRecord] = Field(default_factory=list)
    preferences: NotificationPreferences = Field(default_factory=NotificationPreferences)

    @field_validator("version")
    @classmethod
    def supported_version(cls, value: str) -> str:
        if value.split(".")[0] != BACKUP_VERSION.split(".")[0]:
            raise ValueError(f"unsupported backup version {value}")
        return value

    @model_validator(mode="after")
    def unique_medication_ids(self) -> "DataBackup":
        ids = [m.id for m in self.medications]
        if len(ids) != len(set(ids)):
            raise ValueError("backup contains duplicate medication ids")
        return self
