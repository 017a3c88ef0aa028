import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from .exceptions import DependencyFailure, ServiceError

logger = logging.getLogger(__name__)


def service_exception_handler(exc, context):
    """
    Maps service-layer errors onto HTTP responses.

    Response body: {"success": false, "message": "...", "errors": <details or null>}.
    Anything that is not a ServiceError falls through to DRF's default handler.
    """
    if isinstance(exc, ServiceError):
        if isinstance(exc, DependencyFailure):
            view = context.get("view")
            logger.error(
                f"Dependency failure in {view.__class__.__name__ if view else 'unknown view'}: {exc.message}"
            )
        return Response(
            {"success": False, "message": exc.message, "errors": exc.details},
            status=exc.status_code,
        )
    return exception_handler(exc, context)
