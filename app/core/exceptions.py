"""
Scheduling error taxonomy.

Errors here are local to one schedule entry, one dose or one notification
request. None of them is fatal: callers log, skip the item and keep going.
"""

from enum import Enum
from typing import Any, Dict


class SchedulingErrorCode(str, Enum):
    MALFORMED_SCHEDULE = "MALFORMED_SCHEDULE"
    OUT_OF_RANGE_DATE = "OUT_OF_RANGE_DATE"
    SUBMISSION_FAILURE = "SUBMISSION_FAILURE"
    PERMISSION_DENIED = "PERMISSION_DENIED"


class SchedulingError(Exception):
    """Base class for reminder scheduling errors"""

    code: SchedulingErrorCode = SchedulingErrorCode.MALFORMED_SCHEDULE

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "context": {k: str(v) for k, v in self.context.items()},
        }


class MalformedScheduleError(SchedulingError):
    """A time string or date in a medication schedule cannot be parsed"""
    code = SchedulingErrorCode.MALFORMED_SCHEDULE


class OutOfRangeDateError(SchedulingError):
    """An instant is more than the sanity window away from now"""
    code = SchedulingErrorCode.OUT_OF_RANGE_DATE


class SubmissionFailureError(SchedulingError):
    """The platform rejected a single notification request"""
    code = SchedulingErrorCode.SUBMISSION_FAILURE


class NotificationPermissionDeniedError(SchedulingError):
    """Notifications are disabled at OS level"""
    code = SchedulingErrorCode.PERMISSION_DENIED


class MedicationNotFoundError(LookupError):
    def __init__(self, medication_id: str):
        super().__init__(f"Medication {medication_id} not found")
        self.medication_id = medication_id
