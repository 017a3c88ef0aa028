from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.common.models import TimestampedModel
from apps.courses.models import Course
from apps.users.models import User


class Enrollment(TimestampedModel):
    """Manages a User's enrollment in a Course."""

    class Status(models.TextChoices):
        PENDING = "PENDING", _("Pending")  # E.g., waiting for payment
        ACTIVE = "ACTIVE", _("Active")
        COMPLETED = "COMPLETED", _("Completed")
        CANCELLED = "CANCELLED", _("Cancelled")  # User dropped or admin removed

    # Statuses that put a user in the course's enrolled set
    ENROLLED_STATUSES = (Status.ACTIVE, Status.COMPLETED)

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="enrollments")
    course = models.ForeignKey(
        Course, on_delete=models.CASCADE, related_name="enrollments"
    )
    enrolled_at = models.DateTimeField(auto_now_add=True)
    status = models.CharField(
        max_length=15, choices=Status.choices, default=Status.ACTIVE, db_index=True
    )

    def __str__(self):
        return f"{self.user.email} enrolled in {self.course.title}"

    class Meta:
        unique_together = ("user", "course")  # User can only enroll once in a course
        ordering = ["user__email", "course__title"]


class CourseProgress(TimestampedModel):
    """
    Per-student, per-course snapshot of completion state.

    ``completed_modules`` / ``completed_lessons`` hold string ids with set
    semantics; ``grades`` maps assignment id -> integer grade and ``scores``
    maps quiz id -> percentage. Mutations go through ProgressTrackerService.
    """

    student = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name="course_progress"
    )
    course = models.ForeignKey(
        Course, on_delete=models.CASCADE, related_name="progress_records"
    )
    completed_modules = models.JSONField(default=list, blank=True)
    completed_lessons = models.JSONField(default=list, blank=True)
    grades = models.JSONField(default=dict, blank=True)
    scores = models.JSONField(default=dict, blank=True)

    def __str__(self):
        return f"Progress: {self.student.email} in {self.course.title}"

    def has_completed_module(self, module) -> bool:
        from apps.common.utils import id_key

        return id_key(module) in self.completed_modules

    def as_dict(self) -> dict:
        return {
            "completed_modules": list(self.completed_modules),
            "completed_lessons": list(self.completed_lessons),
            "grades": dict(self.grades),
            "scores": dict(self.scores),
        }

    class Meta:
        unique_together = ("student", "course")
        verbose_name_plural = "Course progress"


class Certificate(TimestampedModel):
    """A certificate issued to a student for a course. Immutable except for revocation."""

    class Grade(models.TextChoices):
        PASS = "Pass", _("Pass")
        MERIT = "Merit", _("Merit")
        DISTINCTION = "Distinction", _("Distinction")

    student = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name="certificates"
    )
    course = models.ForeignKey(
        Course, on_delete=models.CASCADE, related_name="certificates"
    )
    certificate_id = models.CharField(max_length=40, unique=True, db_index=True)
    issued_at = models.DateTimeField(default=timezone.now)
    grade = models.CharField(max_length=15, choices=Grade.choices, default=Grade.PASS)
    overall_score = models.PositiveIntegerField(null=True, blank=True)
    issued_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="certificates_issued",
    )
    certificate_url = models.CharField(
        max_length=2048, blank=True, help_text="Location of the rendered certificate"
    )
    verification_url = models.URLField(max_length=2048, blank=True)
    is_revoked = models.BooleanField(default=False)
    revoked_at = models.DateTimeField(null=True, blank=True)
    revoked_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="certificates_revoked",
    )
    revocation_reason = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    def __str__(self):
        return f"Certificate {self.certificate_id} for {self.student.email} - {self.course.title}"

    @staticmethod
    def build_verification_url(certificate_id: str) -> str:
        base_url = getattr(
            settings, "CERTIFICATE_VERIFICATION_BASE_URL", "http://localhost:3000"
        )
        return f"{base_url.rstrip('/')}/verify/{certificate_id}"

    class Meta:
        unique_together = ("student", "course")
        ordering = ["-issued_at", "student__email"]


class AppendOnlyModel(TimestampedModel):
    """Rows may be created but never updated."""

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError(f"{self.__class__.__name__} records are append-only.")
        super().save(*args, **kwargs)

    class Meta:
        abstract = True


class CourseCompletionLog(AppendOnlyModel):
    """Audit record of one bulk course-completion run."""

    class Action(models.TextChoices):
        MARKED_COMPLETE = "marked_complete", _("Marked complete")
        INTERRUPTED = "completion_interrupted", _("Completion interrupted")

    course = models.ForeignKey(
        Course, on_delete=models.CASCADE, related_name="completion_logs"
    )
    instructor = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        related_name="course_completion_logs",
    )
    action = models.CharField(
        max_length=30, choices=Action.choices, default=Action.MARKED_COMPLETE
    )
    timestamp = models.DateTimeField(default=timezone.now)
    # total_enrolled_students, eligible_students_count, certificates_generated,
    # evaluated_students, interrupted
    metadata = models.JSONField(default=dict, blank=True)

    def __str__(self):
        return f"{self.action} for {self.course.title} at {self.timestamp:%Y-%m-%d %H:%M}"

    class Meta:
        ordering = ["-timestamp"]


class CompletionLogEntry(AppendOnlyModel):
    """Per-student outcome within a CourseCompletionLog."""

    log = models.ForeignKey(
        CourseCompletionLog, on_delete=models.CASCADE, related_name="entries"
    )
    student = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name="completion_log_entries"
    )
    eligible = models.BooleanField(default=False)
    reason = models.TextField(blank=True)
    certificate_generated = models.BooleanField(default=False)
    certificate = models.ForeignKey(
        Certificate,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    def __str__(self):
        return f"{self.student.email}: eligible={self.eligible}"

    class Meta:
        ordering = ["created_at"]
        verbose_name_plural = "Completion log entries"
