from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.common.exceptions import IllegalTransition
from apps.common.models import TimestampedModel
from apps.courses.models import Course, Module
from apps.users.models import User

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB


def default_allowed_file_types():
    return ["pdf", "doc", "docx", "txt", "jpg", "png"]


class Assignment(TimestampedModel):
    """A graded piece of work students submit as text and/or a file."""

    course = models.ForeignKey(
        Course, related_name="assignments", on_delete=models.CASCADE
    )
    module = models.ForeignKey(
        Module, related_name="assignments", on_delete=models.CASCADE
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    due_date = models.DateTimeField(null=True, blank=True, db_index=True)
    max_file_size = models.PositiveIntegerField(
        default=DEFAULT_MAX_FILE_SIZE, help_text="Maximum upload size in bytes"
    )
    allowed_file_types = models.JSONField(
        default=default_allowed_file_types,
        blank=True,
        help_text="Allowed file extensions, without the dot",
    )
    passing_grade = models.PositiveIntegerField(
        default=40,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text="Grades below this require a resubmission",
    )
    allow_resubmission = models.BooleanField(default=False)

    def __str__(self):
        return f"{self.title} ({self.course.title})"

    class Meta:
        ordering = ["course", "module__order", "title"]


class Submission(TimestampedModel):
    """One attempt at an assignment. Attempts form a chain per (assignment, student)."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        GRADED = "graded", _("Graded")
        RESUBMISSION_REQUIRED = "resubmission_required", _("Resubmission Required")
        RESUBMITTED = "resubmitted", _("Resubmitted")

    # Every status not listed here is terminal.
    TRANSITIONS = {
        Status.PENDING: {
            Status.GRADED,
            Status.RESUBMISSION_REQUIRED,
            Status.RESUBMITTED,
        },
        Status.GRADED: {
            Status.GRADED,
            Status.RESUBMISSION_REQUIRED,
            Status.RESUBMITTED,
        },
        Status.RESUBMISSION_REQUIRED: {
            Status.GRADED,
            Status.RESUBMISSION_REQUIRED,
            Status.RESUBMITTED,
        },
        Status.RESUBMITTED: set(),
    }

    assignment = models.ForeignKey(
        Assignment, related_name="submissions", on_delete=models.CASCADE
    )
    student = models.ForeignKey(
        User, related_name="assignment_submissions", on_delete=models.CASCADE
    )
    attempt_number = models.PositiveIntegerField(default=1)
    content = models.TextField(blank=True)
    file = models.FileField(upload_to="submissions/%Y/%m/", blank=True, null=True)
    submitted_at = models.DateTimeField(default=timezone.now)
    grade = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    feedback = models.TextField(blank=True)
    status = models.CharField(
        max_length=25, choices=Status.choices, default=Status.PENDING, db_index=True
    )
    graded_at = models.DateTimeField(null=True, blank=True)
    graded_by = models.ForeignKey(
        User,
        related_name="graded_submissions",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    is_resubmission = models.BooleanField(default=False)
    original_submission = models.ForeignKey(
        "self",
        related_name="resubmissions",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )

    def __str__(self):
        return f"Attempt {self.attempt_number} by {self.student.email} for {self.assignment.title}"

    def can_transition_to(self, target) -> bool:
        return target in self.TRANSITIONS.get(self.status, set())

    def transition_to(self, target):
        """Moves to ``target`` or raises IllegalTransition. Does not save."""
        if not self.can_transition_to(target):
            raise IllegalTransition(self.status, target)
        self.status = target

    class Meta:
        ordering = ["assignment", "student", "attempt_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["assignment", "student", "attempt_number"],
                name="unique_submission_attempt",
            )
        ]


class Quiz(TimestampedModel):
    """A multiple-choice quiz; each student gets a single attempt."""

    course = models.ForeignKey(Course, related_name="quizzes", on_delete=models.CASCADE)
    module = models.ForeignKey(Module, related_name="quizzes", on_delete=models.CASCADE)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    time_limit = models.PositiveIntegerField(
        null=True, blank=True, help_text="Time limit in minutes. Blank for no limit."
    )

    def __str__(self):
        return f"{self.title} ({self.course.title})"

    class Meta:
        ordering = ["course", "module__order", "title"]
        verbose_name_plural = "Quizzes"


class Question(TimestampedModel):
    """Represents a question within a Quiz, addressed by its ``order`` index."""

    class Answer(models.TextChoices):
        A = "A", "A"
        B = "B", "B"
        C = "C", "C"
        D = "D", "D"

    quiz = models.ForeignKey(Quiz, related_name="questions", on_delete=models.CASCADE)
    order = models.PositiveIntegerField(default=0, help_text="Zero-based question index")
    text = models.TextField()
    option_a = models.CharField(max_length=500)
    option_b = models.CharField(max_length=500)
    option_c = models.CharField(max_length=500)
    option_d = models.CharField(max_length=500)
    correct_answer = models.CharField(max_length=1, choices=Answer.choices)
    points = models.PositiveIntegerField(default=1)

    def __str__(self):
        return f"Q{self.order}: {self.text[:50]}..."

    @property
    def effective_points(self) -> int:
        """Zero or unset points count as one."""
        return self.points or 1

    class Meta:
        ordering = ["quiz", "order"]
        unique_together = ("quiz", "order")


class QuizAttempt(TimestampedModel):
    """A student's single, immutable attempt at a quiz."""

    quiz = models.ForeignKey(Quiz, related_name="attempts", on_delete=models.CASCADE)
    student = models.ForeignKey(
        User, related_name="quiz_attempts", on_delete=models.CASCADE
    )
    # [{"question_index": 0, "selected_answer": "A"}, ...]
    answers = models.JSONField(default=list)
    score = models.DecimalField(
        max_digits=5, decimal_places=2, help_text="Percentage score"
    )
    earned_points = models.PositiveIntegerField(default=0)
    total_points = models.PositiveIntegerField(default=0)
    attempted_at = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return f"{self.student.email} on {self.quiz.title}: {self.score}%"

    class Meta:
        ordering = ["-attempted_at"]
        unique_together = ("quiz", "student")
