import logging

from django.conf import settings
from django.core.mail import send_mail
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class BaseNotificationBackend:
    """Delivers a single notification to one user. Subclasses raise on failure."""

    def send(self, recipient, notification_type: str, subject: str, message: str, action_url: str | None = None):
        raise NotImplementedError


class LoggingNotificationBackend(BaseNotificationBackend):
    """Records the notification in the application log only."""

    def send(self, recipient, notification_type, subject, message, action_url=None):
        logger.info(
            f"Notification [{notification_type}] to {recipient.email}: {subject}"
            + (f" ({action_url})" if action_url else "")
        )


class EmailNotificationBackend(BaseNotificationBackend):
    """Sends the notification through Django's configured email backend."""

    def send(self, recipient, notification_type, subject, message, action_url=None):
        if not recipient.email:
            raise ValueError(f"Recipient {recipient.id} has no email address.")

        body = message if not action_url else f"{message}\n\n{action_url}"
        send_mail(
            subject=subject,
            message=body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient.email],
            fail_silently=False,  # Raise exception on failure
        )
        logger.info(f"Email sent for {notification_type} to {recipient.email}")


def get_notification_backend() -> BaseNotificationBackend:
    backend_path = getattr(
        settings,
        "NOTIFICATION_BACKEND",
        "apps.notifications.backends.LoggingNotificationBackend",
    )
    return import_string(backend_path)()
