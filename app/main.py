from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.core.error_handling import register_error_handlers
from app.core.logging import get_logger
from app.database import Base, SessionLocal, engine
from app.dependencies import ServiceContainer, build_container
from app.models import StoredDocument  # noqa: F401  registers the table on Base
from app.routers import medication_reminders
from app.services.document_store import SqlDocumentStore
from app.services.dose_scheduling import InMemoryNotificationPlatform
from app.services.reminder_worker import ReminderWorker

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Builds the reminder services once unless a container was supplied up front.
    """
    logger.info("Starting Pill Reminder Backend...")
    worker = None

    if getattr(app.state, "container", None) is None:
        logger.info("Creating database tables...")
        try:
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables created")
        except Exception as e:
            logger.error(f"Failed to create tables: {e}")

        platform = InMemoryNotificationPlatform(
            requires_channel=settings.NOTIFICATION_TARGET_PLATFORM == "android"
        )
        app.state.container = build_container(SqlDocumentStore(SessionLocal), platform)

        if settings.REMINDER_WORKER_ENABLED:
            container: ServiceContainer = app.state.container
            worker = ReminderWorker(container.notifications, container.medications, container.dose_records)
        else:
            logger.info("Reminder worker disabled (set REMINDER_WORKER_ENABLED=true to enable)")

    await app.state.container.notifications.initialize()
    if worker is not None:
        worker.start_background()

    logger.info("Pill Reminder Backend startup complete")

    yield

    logger.info("Shutting down Pill Reminder Backend...")
    if worker is not None:
        await worker.stop()
    logger.info("Shutdown complete")


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    app = FastAPI(
        title="Pill Reminder - Medication Reminder Scheduling",
        description="Medication dose planning, reminder notifications and adherence tracking",
        version="0.1.0",
        lifespan=lifespan
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(medication_reminders.router)

    @app.get("/")
    async def root():
        return {
            "message": "Pill Reminder API",
            "version": "0.1.0",
            "status": "operational"
        }

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT
        }

    return app


app = create_app()

