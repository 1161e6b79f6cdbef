"""
Base exception classes for application-wide error handling.

Every domain error raised by a service carries a human-readable message,
a machine-readable error code and an HTTP status. The DRF exception handler
in core.exception_handler turns them into JSON responses, so views never
need to know which concrete error a service raised.

Exception Hierarchy:
    BaseApplicationError (base, 400)
    ├── ValidationError - Input validation failures (400)
    ├── NotFoundError - Resource not found (404)
    ├── PermissionDeniedError - Authorization failures (403)
    ├── ConflictError - Conflicts with current resource state (409)
    └── ExternalServiceError - Third-party service failures (502)

Usage:
    from core.exceptions import ConflictError, NotFoundError

    raise NotFoundError(
        f"Invoice {invoice_id} not found",
        error_code="INVOICE_NOT_FOUND",
        details={"invoice_id": str(invoice_id)},
    )

    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.status_code)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, identifiers, etc.)
        status_code: HTTP status used when the error reaches the API layer
    """

    default_error_code: str = "APPLICATION_ERROR"
    status_code: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Invoice already paid",
                "error_code": "INVOICE_ALREADY_PAID",
                "details": {"invoice_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when service-layer input validation fails.

    Serializer-level validation stays with DRF. Use this for rules only the
    service can check, such as a blank resolution note.

    Example:
        raise ValidationError(
            "A note is required to resolve a dispute",
            error_code="RESOLUTION_NOTE_REQUIRED",
            details={"note": ["This field may not be blank."]},
        )
    """

    default_error_code: str = "VALIDATION_ERROR"
    status_code: int = 400


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Tenant-scoped lookups raise this for rows owned by another school, so a
    caller cannot tell "missing" apart from "belongs to someone else".
    """

    default_error_code: str = "NOT_FOUND"
    status_code: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when a user lacks permission for an operation.

    For missing or invalid tokens DRF's AuthenticationFailed is used
    instead. This is for role checks (e.g. a student resolving a dispute).
    """

    default_error_code: str = "PERMISSION_DENIED"
    status_code: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Invalid state transitions (paying a cancelled invoice)
    - Duplicates (a second open dispute on one invoice)
    - Optimistic locking failures

    Example:
        if invoice.status == InvoiceStatus.PAID:
            raise ConflictError(
                "Invoice is already paid",
                error_code="INVOICE_ALREADY_PAID",
                details={"invoice_id": str(invoice.id)},
            )
    """

    default_error_code: str = "CONFLICT"
    status_code: int = 409


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Log the original error for debugging but keep provider internals out
    of the message returned to clients.

    Example:
        try:
            response = gateway.initiate_payment(...)
        except requests.Timeout as e:
            raise ExternalServiceError(
                "Payment gateway unavailable",
                error_code="GATEWAY_UNAVAILABLE",
                details={"provider": gateway.name},
            ) from e
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    status_code: int = 502
