"""
Error handling and log sanitization tests
"""

import logging
from unittest.mock import patch

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.error_handling import register_error_handlers
from app.core.exceptions import OutOfRangeDateError, SchedulingErrorCode
from app.core.logging import SecureLogger, log_audit


def _app_raising(exc):
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/boom")
    async def boom():
        raise exc

    return app


class TestErrorResponses:

    def test_scheduling_error_is_422(self):
        client = TestClient(_app_raising(OutOfRangeDateError("too far ahead", instant="2030-01-01T00:00")))

        response = client.get("/boom")

        assert response.status_code == 422
        assert response.json()["type"] == SchedulingErrorCode.OUT_OF_RANGE_DATE.value

    def test_unexpected_error_is_generic_500(self):
        client = TestClient(_app_raising(RuntimeError("database password=hunter2")), raise_server_exceptions=False)

        response = client.get("/boom")

        assert response.status_code == 500
        body = response.json()
        assert body["type"] == "internal_error"
        assert "hunter2" not in response.text
        assert len(body["error_id"]) == 8


class TestSecureLogger:

    def test_emails_and_tokens_are_removed(self):
        message = SecureLogger.sanitize_message(
            "sent to patient@example.com with key abcdefghijklmnopqrstuvwxyz0123456789"
        )
        assert "patient@example.com" not in message
        assert "[email]" in message
        assert "[token]" in message

    def test_plain_messages_pass_through(self, caplog):
        logger = logging.getLogger("test_secure_logger")
        with caplog.at_level(logging.INFO, logger="test_secure_logger"):
            SecureLogger.log(logger, logging.INFO, "Planned 5 notifications")

        assert caplog.records[-1].getMessage() == "Planned 5 notifications"

    def test_audit_entry_is_structured(self):
        with patch("app.core.logging.get_logger") as get_logger:
            log_audit("medication_deleted", "med-1", {"notifications_cancelled": 3})

        message = get_logger.return_value.info.call_args.args[0]
        assert message.startswith("[AUDIT] ")
        assert '"event_type": "medication_deleted"' in message
        assert '"medication_id": "med-1"' in message
