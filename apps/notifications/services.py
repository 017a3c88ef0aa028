import logging
from typing import Any, Dict

from django.db import models
from django.utils.translation import gettext_lazy as _

from .backends import get_notification_backend

logger = logging.getLogger(__name__)


class NotificationType(models.TextChoices):
    SUBMISSION_GRADED = "SUBMISSION_GRADED", _("Submission Graded")
    RESUBMISSION_REQUIRED = "RESUBMISSION_REQUIRED", _("Resubmission Required")
    CERTIFICATE_ISSUED = "CERTIFICATE_ISSUED", _("Certificate Issued")
    COURSE_COMPLETED = "COURSE_COMPLETED", _("Course Completed")


class NotificationService:
    """
    Service for sending notifications through the configured backend.

    The ``notify_*`` helpers never raise: a failed delivery is logged and
    reported as ``False`` so the calling operation still succeeds.
    """

    @staticmethod
    def generate_content_for_type(
        notification_type: NotificationType | str, context: Dict[str, Any]
    ) -> Dict[str, str]:
        """Generates subject and message based on type and context data."""
        type_str = (
            notification_type.value
            if isinstance(notification_type, NotificationType)
            else notification_type
        )
        user_name = context.get("user_name", "Learner")
        course_name = context.get("course_name", "the course")
        assignment_title = context.get("assignment_title", "your assignment")

        subject = f"Course Marketplace: {NotificationType(type_str).label}"
        message = "You have a new notification."

        if type_str == NotificationType.SUBMISSION_GRADED:
            subject = f"Your submission has been graded: {assignment_title}"
            message = (
                f"Hi {user_name},\n\nYour submission for '{assignment_title}' in "
                f"{course_name} has been graded.\n\nGrade: {context.get('grade')}%"
            )
        elif type_str == NotificationType.RESUBMISSION_REQUIRED:
            subject = f"Resubmission required: {assignment_title}"
            message = (
                f"Hi {user_name},\n\n{context.get('reason', 'Your grade is below the passing grade.')}\n\n"
                f"You can resubmit '{assignment_title}' in {course_name} until "
                f"{context.get('deadline', 'the resubmission deadline')}."
            )
        elif type_str == NotificationType.CERTIFICATE_ISSUED:
            subject = f"Your certificate for {course_name} is available"
            message = (
                f"Hi {user_name},\n\nYour certificate for completing {course_name} "
                f"has been issued (ID {context.get('certificate_id')})."
            )
        elif type_str == NotificationType.COURSE_COMPLETED:
            subject = f"{course_name} has been marked complete"
            message = (
                f"Hi {user_name},\n\n{context.get('eligible_count', 0)} of "
                f"{context.get('total_students', 0)} students were eligible and "
                f"{context.get('certificates_generated', 0)} certificates were generated."
            )

        return {"subject": subject, "message": message}

    @staticmethod
    def send(user, notification_type: NotificationType | str, context: Dict[str, Any], action_url: str | None = None):
        """Renders and delivers one notification. Backend errors propagate."""
        content = NotificationService.generate_content_for_type(notification_type, context)
        backend = get_notification_backend()
        backend.send(
            recipient=user,
            notification_type=str(notification_type),
            subject=content["subject"],
            message=content["message"],
            action_url=action_url,
        )

    @staticmethod
    def notify_submission_graded(submission) -> bool:
        try:
            NotificationService.send(
                submission.student,
                NotificationType.SUBMISSION_GRADED,
                {
                    "user_name": submission.student.first_name or submission.student.email,
                    "course_name": submission.assignment.course.title,
                    "assignment_title": submission.assignment.title,
                    "grade": submission.grade,
                },
            )
            return True
        except Exception as e:
            logger.error(
                f"Failed to send graded notification for submission {submission.id}: {e}",
                exc_info=True,
            )
            return False

    @staticmethod
    def notify_resubmission_required(submission, reason: str, deadline) -> bool:
        try:
            NotificationService.send(
                submission.student,
                NotificationType.RESUBMISSION_REQUIRED,
                {
                    "user_name": submission.student.first_name or submission.student.email,
                    "course_name": submission.assignment.course.title,
                    "assignment_title": submission.assignment.title,
                    "reason": reason,
                    "deadline": f"{deadline:%Y-%m-%d %H:%M} UTC" if deadline else None,
                },
            )
            return True
        except Exception as e:
            logger.error(
                f"Failed to send resubmission notification for submission {submission.id}: {e}",
                exc_info=True,
            )
            return False

    @staticmethod
    def notify_certificate_issued(certificate) -> bool:
        try:
            NotificationService.send(
                certificate.student,
                NotificationType.CERTIFICATE_ISSUED,
                {
                    "user_name": certificate.student.first_name or certificate.student.email,
                    "course_name": certificate.course.title,
                    "certificate_id": certificate.certificate_id,
                },
                action_url=certificate.verification_url or None,
            )
            return True
        except Exception as e:
            logger.error(
                f"Failed to send certificate notification {certificate.certificate_id}: {e}",
                exc_info=True,
            )
            return False

    @staticmethod
    def notify_course_completed(course, instructor, result) -> bool:
        try:
            NotificationService.send(
                instructor,
                NotificationType.COURSE_COMPLETED,
                {
                    "user_name": instructor.first_name or instructor.email,
                    "course_name": course.title,
                    "total_students": result.total_students,
                    "eligible_count": result.eligible_count,
                    "certificates_generated": result.certificates_generated,
                },
            )
            return True
        except Exception as e:
            logger.error(
                f"Failed to send course completion notification for course {course.id}: {e}",
                exc_info=True,
            )
            return False
