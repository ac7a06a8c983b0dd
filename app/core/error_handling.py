"""
Error Handling & Sanitization
Prevents information leakage through error messages

REQUIREMENTS:
- No stack traces or storage details in error responses
- Domain errors mapped to stable status codes
- Detailed errors only in logs, tagged with an error id
"""

import logging
import uuid

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.exceptions import MedicationNotFoundError, SchedulingError
from app.core.logging import log_error

logger = logging.getLogger(__name__)


def _generate_error_id() -> str:
    """Generate a short error id for correlating responses with logs"""
    return str(uuid.uuid4())[:8]


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Catches anything the exception handlers did not, logs it with an error id
    and returns a generic 500
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            error_id = _generate_error_id()
            log_error(
                f"Unhandled error [{error_id}] on {request.method} {request.url.path}: {e}",
                logger_name="error_handler",
                exc_info=True
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "An error occurred processing your request",
                    "type": "internal_error",
                    "error_id": error_id
                }
            )


async def medication_not_found_handler(request: Request, exc: MedicationNotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "Medication not found", "type": "not_found"}
    )


async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    logger.warning(f"Scheduling error {exc.code.value}: {exc.message}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": exc.message, "type": exc.code.value}
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MedicationNotFoundError, medication_not_found_handler)
    app.add_exception_handler(SchedulingError, scheduling_error_handler)
    app.add_middleware(ErrorHandlingMiddleware)
