"""
Tests for the DRF exception handler.
"""

from unittest.mock import MagicMock

from rest_framework.exceptions import NotAuthenticated

from core.exception_handler import GENERIC_ERROR_BODY, application_exception_handler
from core.exceptions import ExternalServiceError, PermissionDeniedError


def _context():
    return {"view": MagicMock(), "request": MagicMock()}


class TestApplicationExceptionHandler:
    def test_drf_exceptions_use_default_handler(self):
        response = application_exception_handler(NotAuthenticated(), _context())

        assert response.status_code == 401
        assert "detail" in response.data

    def test_application_error_rendered_with_its_status(self):
        exc = PermissionDeniedError(
            "Only a school admin can resolve disputes",
            error_code="ADMIN_REQUIRED",
            details={"role": "accountant"},
        )

        response = application_exception_handler(exc, _context())

        assert response.status_code == 403
        assert response.data == {
            "error": "Only a school admin can resolve disputes",
            "error_code": "ADMIN_REQUIRED",
            "details": {"role": "accountant"},
        }

    def test_external_service_error_is_bad_gateway(self):
        response = application_exception_handler(
            ExternalServiceError("Gateway timed out"), _context()
        )

        assert response.status_code == 502
        assert response.data["error_code"] == "EXTERNAL_SERVICE_ERROR"

    def test_unexpected_error_masked(self, caplog):
        response = application_exception_handler(
            RuntimeError("password=hunter2"), _context()
        )

        assert response.status_code == 500
        assert response.data == GENERIC_ERROR_BODY
        assert "hunter2" not in str(response.data)
        assert caplog.records[-1].levelname == "ERROR"
