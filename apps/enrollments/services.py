import logging
import secrets
import time
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.common.exceptions import (
    CertificateAlreadyIssued,
    ConflictError,
    DependencyFailure,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from apps.common.utils import id_key, round_half_up
from apps.courses.models import Course, Lesson, Module
from apps.notifications.services import NotificationService
from apps.users.models import User
from apps.users.permissions import is_admin_user

from .models import Certificate, CourseProgress, Enrollment

logger = logging.getLogger(__name__)

BASE36_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


class EnrollmentService:
    """Service layer for managing enrollments."""

    @staticmethod
    @transaction.atomic
    def enroll_user(
        user: User, course: Course, status: str = Enrollment.Status.ACTIVE
    ) -> tuple[Enrollment, bool]:
        """Enrolls a single user in a course. Returns (enrollment, created)."""
        if not user or not course:
            raise ValueError("User and Course must be provided.")

        enrollment, created = Enrollment.objects.get_or_create(
            user=user, course=course, defaults={"status": status}
        )
        if not created and enrollment.status != status:
            enrollment.status = status
            enrollment.save(update_fields=["status", "updated_at"])
            logger.info(
                f"Updated enrollment for {user.email} in {course.title} to status {status}."
            )
        elif created:
            logger.info(
                f"Created enrollment for {user.email} in {course.title} with status {status}."
            )
        return enrollment, created

    @staticmethod
    def is_enrolled(user: User, course: Course) -> bool:
        """
        True if the user has an ACTIVE or COMPLETED enrollment in the course.
        """
        if not user or not course:
            return False
        return Enrollment.objects.filter(
            user=user,
            course=course,
            status__in=Enrollment.ENROLLED_STATUSES,
        ).exists()

    @staticmethod
    def enrolled_students(course: Course):
        """The course's enrolled set, ordered for stable bulk processing."""
        return User.objects.filter(
            enrollments__course=course,
            enrollments__status__in=Enrollment.ENROLLED_STATUSES,
        ).order_by("email")


class ProgressTrackerService:
    """
    Reads and mutates CourseProgress rows.

    Every mutation locks the (student, course) row for the duration of its
    read-modify-write, so concurrent writers never lose each other's updates.
    """

    @staticmethod
    def get_progress(student: User, course: Course) -> CourseProgress:
        """Stored progress, or an unsaved empty record when there is none."""
        progress = CourseProgress.objects.filter(student=student, course=course).first()
        if progress is None:
            progress = CourseProgress(student=student, course=course)
        return progress

    @staticmethod
    def _update(student: User, course: Course, mutate) -> tuple[CourseProgress, bool]:
        """Runs ``mutate(progress) -> changed`` against the locked row."""
        with transaction.atomic():
            progress, _ = CourseProgress.objects.select_for_update().get_or_create(
                student=student, course=course
            )
            changed = mutate(progress)
            if changed:
                progress.save()
        return progress, changed

    @staticmethod
    def _check_module(student: User, course: Course, module: Module):
        if module.course_id != course.pk:
            raise NotFoundError("Module not found in this course")
        if not EnrollmentService.is_enrolled(student, course):
            raise ForbiddenError("Not enrolled in this course")
        if Certificate.objects.filter(student=student, course=course).exists():
            logger.warning(
                f"Rejected changing module {module.id} for {student.email}: certificate already issued"
            )
            raise ConflictError(
                "Module completion cannot be changed after a certificate has been issued"
            )

    @classmethod
    def mark_module_complete(cls, student: User, course: Course, module: Module) -> CourseProgress:
        cls._check_module(student, course, module)
        module_key = id_key(module)

        def add(progress):
            if module_key in progress.completed_modules:
                return False
            progress.completed_modules = progress.completed_modules + [module_key]
            return True

        progress, changed = cls._update(student, course, add)
        if changed:
            logger.info(f"Module {module_key} completed by {student.email} in course {course.id}")
            cls.auto_issue_certificate(student, course)
        return progress

    @classmethod
    def mark_module_incomplete(cls, student: User, course: Course, module: Module) -> CourseProgress:
        cls._check_module(student, course, module)
        module_key = id_key(module)

        def remove(progress):
            if module_key not in progress.completed_modules:
                return False
            progress.completed_modules = [m for m in progress.completed_modules if m != module_key]
            return True

        progress, _ = cls._update(student, course, remove)
        return progress

    @classmethod
    def _check_lesson(cls, student: User, course: Course, lesson: Lesson):
        if lesson.module.course_id != course.pk:
            raise NotFoundError("Lesson not found in this course")
        if not EnrollmentService.is_enrolled(student, course):
            raise ForbiddenError("Not enrolled in this course")

    @classmethod
    def mark_lesson_complete(cls, student: User, course: Course, lesson: Lesson) -> CourseProgress:
        cls._check_lesson(student, course, lesson)
        lesson_key = id_key(lesson)

        def add(progress):
            if lesson_key in progress.completed_lessons:
                return False
            progress.completed_lessons = progress.completed_lessons + [lesson_key]
            return True

        progress, _ = cls._update(student, course, add)
        return progress

    @classmethod
    def mark_lesson_incomplete(cls, student: User, course: Course, lesson: Lesson) -> CourseProgress:
        cls._check_lesson(student, course, lesson)
        lesson_key = id_key(lesson)

        def remove(progress):
            if lesson_key not in progress.completed_lessons:
                return False
            progress.completed_lessons = [l for l in progress.completed_lessons if l != lesson_key]
            return True

        progress, _ = cls._update(student, course, remove)
        return progress

    @classmethod
    def record_grade(cls, student: User, course: Course, assignment_id, grade: int) -> CourseProgress:
        key = id_key(assignment_id)

        def write(progress):
            progress.grades = {**progress.grades, key: int(grade)}
            return True

        progress, _ = cls._update(student, course, write)
        return progress

    @classmethod
    def record_score(cls, student: User, course: Course, quiz_id, score) -> CourseProgress:
        key = id_key(quiz_id)
        # JSON has no decimal type; keep two places as a float
        value = float(round_half_up(score, 2))

        def write(progress):
            progress.scores = {**progress.scores, key: value}
            return True

        progress, _ = cls._update(student, course, write)
        return progress

    @staticmethod
    def serialize_for_student(student: User) -> dict:
        """{course_id: {completed_modules, completed_lessons, grades, scores}} for every stored course."""
        return {
            str(progress.course_id): progress.as_dict()
            for progress in CourseProgress.objects.filter(student=student)
        }

    @staticmethod
    def calculate_course_progress_percentage(student: User, course: Course) -> int:
        """
        Share of completed items over modules, lessons, assignments (with a
        recorded grade) and quizzes (with a recorded score).
        """
        progress = ProgressTrackerService.get_progress(student, course)

        module_ids = {str(pk) for pk in course.modules.values_list("id", flat=True)}
        lesson_ids = {
            str(pk) for pk in Lesson.objects.filter(module__course=course).values_list("id", flat=True)
        }
        assignment_ids = {str(pk) for pk in course.assignments.values_list("id", flat=True)}
        quiz_ids = {str(pk) for pk in course.quizzes.values_list("id", flat=True)}

        total = len(module_ids) + len(lesson_ids) + len(assignment_ids) + len(quiz_ids)
        if total == 0:
            return 0

        completed = (
            len(module_ids & set(progress.completed_modules))
            + len(lesson_ids & set(progress.completed_lessons))
            + len(assignment_ids & set(progress.grades.keys()))
            + len(quiz_ids & set(progress.scores.keys()))
        )
        return int(round_half_up(Decimal(completed) / Decimal(total) * 100))

    @staticmethod
    def all_modules_completed(progress: CourseProgress, course: Course) -> bool:
        module_ids = {str(pk) for pk in course.modules.values_list("id", flat=True)}
        return bool(module_ids) and module_ids <= set(progress.completed_modules)

    @staticmethod
    def auto_issue_certificate(student: User, course: Course) -> Certificate | None:
        """
        Best-effort follow-up to a module completion: issues the certificate
        once every module is complete and the student is eligible. Never raises.
        """
        from .eligibility import EligibilityEvaluator

        try:
            progress = ProgressTrackerService.get_progress(student, course)
            if not ProgressTrackerService.all_modules_completed(progress, course):
                return None

            eligibility = EligibilityEvaluator.evaluate(student, course, is_marking_complete=False)
            if not eligibility.eligible:
                logger.debug(
                    f"All modules complete for {student.email} in {course.id} but not eligible: {eligibility.reason}"
                )
                return None

            return CertificateService.issue(student, course, eligibility, issued_by=course.instructor)
        except CertificateAlreadyIssued:
            return None
        except Exception as e:
            logger.error(
                f"Automatic certificate check failed for {student.email} in course {course.id}: {e}",
                exc_info=True,
            )
            return None


class CertificateService:
    """Issues, looks up, verifies and revokes certificates."""

    @staticmethod
    def generate_certificate_id() -> str:
        """CERT-<epoch millis>-<9 random base36 chars>"""
        suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(9))
        return f"CERT-{int(time.time() * 1000)}-{suffix}"

    @staticmethod
    def _render(certificate_id: str, student: User, course: Course, issued_at, grade, score) -> tuple[str, str]:
        """Returns (artifact url, renderer version)."""
        from .certificate_service import get_certificate_renderer

        try:
            renderer = get_certificate_renderer()
            url = renderer.render(
                student_name=student.display_name,
                course_title=course.title,
                date=issued_at,
                instructor_name=course.instructor.display_name if course.instructor else "",
                certificate_id=certificate_id,
                grade=grade,
                score=score,
            )
            return url, getattr(renderer, "version", "unknown")
        except Exception as e:
            logger.error(f"Certificate rendering failed for {certificate_id}: {e}", exc_info=True)
            raise DependencyFailure(
                "Certificate could not be generated", details={"certificate_id": certificate_id}
            ) from e

    @staticmethod
    def _discard(certificate_id: str):
        from .certificate_service import get_certificate_renderer

        renderer = get_certificate_renderer()
        if not hasattr(renderer, "discard"):
            return
        try:
            renderer.discard(certificate_id)
        except Exception as e:
            logger.error(f"Could not discard artifact of {certificate_id}: {e}", exc_info=True)

    @staticmethod
    def issue(student: User, course: Course, eligibility, issued_by: User | None = None) -> Certificate:
        """
        Creates the certificate for an eligible (student, course) pair.

        Raises ValidationError for ineligible results, CertificateAlreadyIssued
        when one exists and DependencyFailure when rendering fails.
        """
        if not eligibility.eligible:
            raise ValidationError(eligibility.reason, details=eligibility.as_dict())

        existing = Certificate.objects.filter(student=student, course=course).first()
        if existing is not None:
            raise CertificateAlreadyIssued(existing)

        certificate_id = CertificateService.generate_certificate_id()
        issued_at = timezone.now()
        certificate_url, renderer_version = CertificateService._render(
            certificate_id, student, course, issued_at, eligibility.grade, eligibility.overall_score
        )

        try:
            with transaction.atomic():
                certificate = Certificate.objects.create(
                    student=student,
                    course=course,
                    certificate_id=certificate_id,
                    issued_at=issued_at,
                    grade=eligibility.grade,
                    overall_score=eligibility.overall_score,
                    issued_by=issued_by,
                    certificate_url=certificate_url,
                    verification_url=Certificate.build_verification_url(certificate_id),
                    metadata={
                        "renderer_version": renderer_version,
                        "rendered_at": issued_at.isoformat(),
                    },
                )
        except IntegrityError:
            # Lost a concurrent issue for the same pair
            CertificateService._discard(certificate_id)
            existing = Certificate.objects.filter(student=student, course=course).first()
            raise CertificateAlreadyIssued(existing)

        logger.info(
            f"Certificate {certificate.certificate_id} issued to {student.email} for course {course.id} "
            f"(grade {certificate.grade}, score {certificate.overall_score})"
        )
        NotificationService.notify_certificate_issued(certificate)
        return certificate

    @staticmethod
    def request_certificate(student: User, course: Course, requester: User) -> Certificate:
        """
        Issues a single student's certificate on demand.

        The student may ask for their own certificate; the course instructor
        or an admin may ask on a student's behalf. Eligibility is evaluated
        on the individual path, so the course must already be signed off.
        """
        from .eligibility import EligibilityEvaluator

        is_staff_request = course.is_instructor(requester) or is_admin_user(requester)
        if requester.pk != student.pk and not is_staff_request:
            raise ForbiddenError("Not authorized to request a certificate for this student")

        eligibility = EligibilityEvaluator.evaluate(student, course, is_marking_complete=False)
        if not eligibility.eligible:
            logger.info(
                f"Certificate request by {requester.email} for {student.email} in course {course.id} "
                f"rejected: {eligibility.reason}"
            )
        issued_by = requester if is_staff_request else course.instructor
        return CertificateService.issue(student, course, eligibility, issued_by=issued_by)

    @staticmethod
    def certificates_for_student(student: User, requester: User):
        if requester.pk != student.pk and not is_admin_user(requester):
            raise ForbiddenError("Not authorized to view these certificates")
        return Certificate.objects.filter(student=student).select_related("course", "student")

    @staticmethod
    def get_certificate(student: User, course: Course, requester: User) -> Certificate:
        allowed = (
            requester.pk == student.pk
            or course.is_instructor(requester)
            or is_admin_user(requester)
        )
        if not allowed:
            raise ForbiddenError("Not authorized to view this certificate")
        certificate = (
            Certificate.objects.filter(student=student, course=course)
            .select_related("course", "student")
            .first()
        )
        if certificate is None:
            raise NotFoundError("Certificate not found")
        return certificate

    @staticmethod
    def verify(certificate_id: str) -> Certificate | None:
        """Finds a valid (non-revoked) certificate by its id."""
        if not certificate_id:
            return None
        return (
            Certificate.objects.select_related("student", "course")
            .filter(certificate_id__iexact=certificate_id.strip(), is_revoked=False)
            .first()
        )

    @staticmethod
    @transaction.atomic
    def revoke(certificate: Certificate, revoked_by: User, reason: str = "") -> Certificate:
        if not (certificate.course.is_instructor(revoked_by) or is_admin_user(revoked_by)):
            raise ForbiddenError("Not authorized to revoke this certificate")
        if certificate.is_revoked:
            raise ConflictError("Certificate has already been revoked")

        certificate.is_revoked = True
        certificate.revoked_at = timezone.now()
        certificate.revoked_by = revoked_by
        certificate.revocation_reason = reason or ""
        certificate.save(
            update_fields=["is_revoked", "revoked_at", "revoked_by", "revocation_reason", "updated_at"]
        )
        logger.info(f"Certificate {certificate.certificate_id} revoked by {revoked_by.email}")
        return certificate

    @staticmethod
    def regenerate_artifact(certificate: Certificate) -> str:
        """Re-renders the stored artifact for an existing certificate."""
        certificate_url, renderer_version = CertificateService._render(
            certificate.certificate_id,
            certificate.student,
            certificate.course,
            certificate.issued_at,
            certificate.grade,
            certificate.overall_score,
        )
        metadata = {
            **certificate.metadata,
            "renderer_version": renderer_version,
            "rendered_at": timezone.now().isoformat(),
        }
        Certificate.objects.filter(pk=certificate.pk).update(
            certificate_url=certificate_url, metadata=metadata, updated_at=timezone.now()
        )
        certificate.certificate_url = certificate_url
        certificate.metadata = metadata
        return certificate_url
