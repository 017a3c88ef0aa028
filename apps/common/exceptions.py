"""
Service-layer error taxonomy shared by every app.

Services raise these instead of returning error tuples; the DRF exception
handler in ``apps.common.exception_handler`` maps them onto HTTP responses.
Every error carries a human readable ``message`` and optional ``details``
(for example the allowed file types or a resubmission deadline) so callers
can act on the failure.
"""

from rest_framework import status


class ServiceError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "The request could not be completed."

    def __init__(self, message: str | None = None, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found."


class ForbiddenError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to perform this action."


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "The request conflicts with the current state."


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed."


class DependencyFailure(ServiceError):
    """A collaborator (certificate renderer, notifier) failed or is unavailable."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "A required service is unavailable."


class IllegalTransition(ConflictError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move submission from '{current}' to '{target}'.",
            details={"current_status": str(current), "target_status": str(target)},
        )


class CertificateAlreadyIssued(ConflictError):
    """Raised when a certificate already exists for a (student, course) pair.

    Bulk callers treat this as already satisfied; ``certificate`` holds the
    existing record when it could be loaded.
    """

    default_message = "Certificate already generated for this student and course."

    def __init__(self, certificate=None, message: str | None = None):
        self.certificate = certificate
        details = None
        if certificate is not None:
            details = {"certificate_id": certificate.certificate_id}
        super().__init__(message, details=details)
