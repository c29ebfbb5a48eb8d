"""
DRF exception handler rendering application errors.

Registered via REST_FRAMEWORK["EXCEPTION_HANDLER"]. Application exceptions
(core.exceptions) render as {"error", "error_code", "details"} with the
status their class declares. DRF's own exceptions keep DRF's rendering.
Anything else is logged and answered with a generic 500 body so internals
never reach the client.
"""

from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    if isinstance(exc, BaseApplicationError):
        return Response(exc.to_dict(), status=exc.http_status)

    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    logger.exception(
        f"Unhandled error in {view.__class__.__name__ if view else 'unknown view'}"
    )
    return Response(
        {"error": "Internal server error", "error_code": "INTERNAL_ERROR"},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
