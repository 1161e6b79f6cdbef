"""
DRF exception handler for application errors.

Wired in settings.REST_FRAMEWORK["EXCEPTION_HANDLER"]. Three classes of
failure reach it:

1. DRF's own exceptions (serializer validation, authentication, 404 from
   get_object) - delegated to DRF's default handler unchanged.
2. BaseApplicationError subclasses raised by services - answered with
   their to_dict() body and status_code.
3. Anything else - logged with traceback and answered with a generic 500
   so internal details never leak to clients.
"""

from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)

GENERIC_ERROR_BODY = {
    "error": "Internal server error",
    "error_code": "SERVER_ERROR",
}


def application_exception_handler(exc, context):
    """Map domain exceptions to JSON responses and mask unexpected errors."""
    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    view_name = view.__class__.__name__ if view is not None else None

    if isinstance(exc, BaseApplicationError):
        logger.info(
            f"Application error in {view_name}: {exc}",
            extra={"error_code": exc.error_code, "view": view_name},
        )
        return Response(exc.to_dict(), status=exc.status_code)

    logger.exception(
        f"Unhandled error in {view_name}: {exc.__class__.__name__}",
        extra={"view": view_name},
    )
    return Response(GENERIC_ERROR_BODY, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
