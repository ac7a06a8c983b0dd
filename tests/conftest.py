"""
Pytest configuration for pill reminder tests
"""

import pytest
import sys
import os
from datetime import date, datetime

# Settings are read at import time: configure them BEFORE importing app modules
os.environ["DATABASE_URL"] = "sqlite:///./test_pill_reminder.db"
os.environ["NOTIFICATION_BATCH_DELAY_SECONDS"] = "0"
os.environ["REMINDER_WORKER_ENABLED"] = "false"
os.environ["OPENAI_API_KEY"] = ""

# Add parent directory to path to import app modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)

from app.schemas.medication_schemas import Medication, MedicationSchedule  # noqa: E402
from app.services.document_store import InMemoryDocumentStore  # noqa: E402
from app.services.dose_scheduling import InMemoryNotificationPlatform  # noqa: E402
from app.services.medication_notification_service import MedicationNotificationService  # noqa: E402


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio backend for async tests"""
    return 'asyncio'


@pytest.fixture
def now():
    return datetime(2024, 3, 24, 0, 0)


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def platform():
    return InMemoryNotificationPlatform(requires_channel=True)


@pytest.fixture
def notification_service(store, platform):
    return MedicationNotificationService(store, platform)


@pytest.fixture
def make_medication():
    """Factory for medications with sensible defaults"""
    def _make(
        times=("09:00",),
        frequency="daily",
        start_date=date(2024, 3, 24),
        end_date=None,
        created_at=datetime(2024, 3, 24),
        **overrides
    ):
        return Medication(
            id=overrides.pop("id", "med-1"),
            name=overrides.pop("name", "Amoxicillin"),
            dosage=overrides.pop("dosage", "500mg"),
            schedule=MedicationSchedule(frequency=frequency, specific_times=list(times)),
            start_date=start_date,
            end_date=end_date,
            created_at=created_at,
            **overrides
        )
    return _make
