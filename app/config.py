import os
from pydantic_settings import BaseSettings
from typing import Optional
from openai import AsyncOpenAI


class Settings(BaseSettings):
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./pill_reminder.db")

    OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o")
    AI_REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("AI_REQUEST_TIMEOUT_SECONDS", "30"))

    # Notification scheduling
    NOTIFICATION_BATCH_SIZE: int = int(os.getenv("NOTIFICATION_BATCH_SIZE", "20"))
    NOTIFICATION_BATCH_DELAY_SECONDS: float = float(os.getenv("NOTIFICATION_BATCH_DELAY_SECONDS", "0.1"))
    SCHEDULING_SANITY_WINDOW_DAYS: int = int(os.getenv("SCHEDULING_SANITY_WINDOW_DAYS", "365"))
    PLANNING_HORIZON_DAYS: int = int(os.getenv("PLANNING_HORIZON_DAYS", "7"))
    NOTIFICATION_TARGET_PLATFORM: str = os.getenv("NOTIFICATION_TARGET_PLATFORM", "android")
    NOTIFICATION_HISTORY_LIMIT: int = int(os.getenv("NOTIFICATION_HISTORY_LIMIT", "100"))

    # Reminder delivery worker
    REMINDER_WORKER_ENABLED: bool = os.getenv("REMINDER_WORKER_ENABLED", "true").lower() == "true"
    REMINDER_POLL_SECONDS: float = float(os.getenv("REMINDER_POLL_SECONDS", "30"))
    MISSED_DOSE_GRACE_MINUTES: int = int(os.getenv("MISSED_DOSE_GRACE_MINUTES", "120"))

    CORS_ORIGINS: list = ["http://localhost:8081", "http://127.0.0.1:8081"]

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    class Config:
        env_file = ".env"


settings = Settings()


def get_openai_client() -> Optional[AsyncOpenAI]:
    """
    Get configured OpenAI client instance.
    Returns None when no API key is configured so callers fall back to manual entry.
    """
    if not settings.OPENAI_API_KEY:
        return None

    return AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY,
        timeout=settings.AI_REQUEST_TIMEOUT_SECONDS,
    )
