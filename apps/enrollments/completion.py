import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from apps.common.exceptions import CertificateAlreadyIssued, ConflictError, ForbiddenError
from apps.courses.models import Course
from apps.notifications.services import NotificationService
from apps.users.models import User

from .eligibility import EligibilityEvaluator
from .models import Certificate, CompletionLogEntry, CourseCompletionLog
from .services import CertificateService, EnrollmentService

logger = logging.getLogger(__name__)


@dataclass
class StudentOutcome:
    student: User
    eligible: bool
    reason: str
    certificate_generated: bool = False
    certificate: Certificate | None = None


@dataclass(frozen=True)
class CompletionResult:
    total_students: int
    eligible_count: int
    certificates_generated: int
    log_id: str
    completed_at: datetime | None
    interrupted: bool = False
    outcomes: list = field(default_factory=list, compare=False, repr=False)

    def as_dict(self) -> dict:
        return {
            "total_students": self.total_students,
            "eligible_count": self.eligible_count,
            "certificates_generated": self.certificates_generated,
            "log_id": self.log_id,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "interrupted": self.interrupted,
        }


class CourseCompletionService:
    """
    Instructor-driven bulk completion: evaluates every enrolled student,
    issues certificates to the eligible ones, flags the course as complete
    and writes a CourseCompletionLog.
    """

    @staticmethod
    def _claim(course: Course) -> datetime:
        """Takes the completion lease on ``course`` or raises ConflictError."""
        now = timezone.now()
        ttl = getattr(settings, "COURSE_COMPLETION_CLAIM_TTL", 900)
        claimed = (
            Course.objects.filter(pk=course.pk, is_completed_by_instructor=False)
            .filter(
                Q(completion_claimed_at__isnull=True)
                | Q(completion_claimed_at__lt=now - timedelta(seconds=ttl))
            )
            .update(completion_claimed_at=now)
        )
        if claimed:
            return now

        course.refresh_from_db(fields=["is_completed_by_instructor", "completion_claimed_at"])
        if course.is_completed_by_instructor:
            raise ConflictError("Course has already been marked as complete")
        logger.warning(f"Rejected concurrent completion run for course {course.id}")
        raise ConflictError("Course completion is already in progress")

    @staticmethod
    def _release(course: Course, claim: datetime):
        Course.objects.filter(pk=course.pk, completion_claimed_at=claim).update(
            completion_claimed_at=None
        )

    @staticmethod
    def _process_student(student: User, course: Course, instructor: User) -> StudentOutcome:
        """Evaluates one student and issues their certificate. Never raises."""
        try:
            eligibility = EligibilityEvaluator.evaluate(student, course, is_marking_complete=True)
        except Exception as e:
            logger.error(
                f"Eligibility evaluation failed for {student.email} in course {course.id}: {e}",
                exc_info=True,
            )
            return StudentOutcome(student, False, f"Eligibility evaluation failed: {e}")

        outcome = StudentOutcome(student, eligibility.eligible, eligibility.reason)
        if not eligibility.eligible:
            return outcome

        try:
            outcome.certificate = CertificateService.issue(
                student, course, eligibility, issued_by=instructor
            )
            outcome.certificate_generated = True
        except CertificateAlreadyIssued as e:
            outcome.certificate = e.certificate
            outcome.certificate_generated = True
        except Exception as e:
            logger.error(
                f"Certificate not generated for eligible student {student.email} in course {course.id}: {e}",
                exc_info=True,
            )
            outcome.reason = f"{eligibility.reason} (certificate not generated: {e})"
        return outcome

    @classmethod
    def mark_complete(
        cls, course: Course, instructor: User, deadline: datetime | None = None
    ) -> CompletionResult:
        """
        Runs the completion workflow for ``course``.

        When ``deadline`` passes mid-run the remaining students are skipped,
        the log is still written with ``interrupted`` set and the course is
        left incomplete so the run can be retried.
        """
        if not course.is_instructor(instructor):
            raise ForbiddenError("Not authorized to mark this course as complete")
        if course.is_completed_by_instructor:
            raise ConflictError("Course has already been marked as complete")

        claim = cls._claim(course)
        try:
            students = list(EnrollmentService.enrolled_students(course))
            outcomes = []
            interrupted = False
            for student in students:
                if deadline is not None and timezone.now() >= deadline:
                    interrupted = True
                    logger.warning(
                        f"Completion of course {course.id} interrupted after {len(outcomes)} of {len(students)} students"
                    )
                    break
                outcomes.append(cls._process_student(student, course, instructor))

            eligible_count = sum(1 for o in outcomes if o.eligible)
            certificates_generated = sum(1 for o in outcomes if o.certificate_generated)

            with transaction.atomic():
                completed_at = None
                if not interrupted:
                    completed_at = timezone.now()
                    updated = Course.objects.filter(
                        pk=course.pk, is_completed_by_instructor=False
                    ).update(
                        is_completed_by_instructor=True,
                        completed_at=completed_at,
                        completed_by=instructor,
                        updated_at=completed_at,
                    )
                    if not updated:
                        raise ConflictError("Course has already been marked as complete")
                    course.is_completed_by_instructor = True
                    course.completed_at = completed_at
                    course.completed_by = instructor

                log = CourseCompletionLog.objects.create(
                    course=course,
                    instructor=instructor,
                    action=(
                        CourseCompletionLog.Action.INTERRUPTED
                        if interrupted
                        else CourseCompletionLog.Action.MARKED_COMPLETE
                    ),
                    metadata={
                        "total_enrolled_students": len(students),
                        "eligible_students_count": eligible_count,
                        "certificates_generated": certificates_generated,
                        "evaluated_students": len(outcomes),
                        "interrupted": interrupted,
                    },
                )
                CompletionLogEntry.objects.bulk_create(
                    [
                        CompletionLogEntry(
                            log=log,
                            student=o.student,
                            eligible=o.eligible,
                            reason=o.reason,
                            certificate_generated=o.certificate_generated,
                            certificate=o.certificate,
                        )
                        for o in outcomes
                    ]
                )
        finally:
            cls._release(course, claim)

        result = CompletionResult(
            total_students=len(students),
            eligible_count=eligible_count,
            certificates_generated=certificates_generated,
            log_id=str(log.id),
            completed_at=completed_at,
            interrupted=interrupted,
            outcomes=outcomes,
        )
        logger.info(
            f"Course {course.id} completion by {instructor.email}: {result.eligible_count}/{result.total_students} "
            f"eligible, {result.certificates_generated} certificates, interrupted={interrupted}"
        )
        if not interrupted:
            NotificationService.notify_course_completed(course, instructor, result)
        return result
