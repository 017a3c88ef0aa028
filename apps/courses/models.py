from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from apps.common.models import TimestampedModel
from apps.users.models import User


def default_passing_threshold():
    return getattr(settings, "COURSE_DEFAULT_PASSING_THRESHOLD", 40)


class Course(TimestampedModel):
    """Represents a course in the marketplace."""

    title = models.CharField(max_length=255)
    slug = models.SlugField(
        max_length=255,
        unique=True,
        db_index=True,
        help_text="Unique identifier for the course URL",
    )
    description = models.TextField(blank=True)
    instructor = models.ForeignKey(
        User,
        related_name="courses_authored",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        limit_choices_to={"role__in": [User.Role.INSTRUCTOR, User.Role.ADMIN]},
    )
    passing_threshold = models.PositiveIntegerField(
        default=default_passing_threshold,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text="Minimum grade/score (percent) for an assessment to count toward certification",
    )
    is_completed_by_instructor = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    completed_by = models.ForeignKey(
        User,
        related_name="courses_completed",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    # Lease held by a running completion workflow; cleared when the run ends.
    completion_claimed_at = models.DateTimeField(null=True, blank=True, editable=False)

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        from apps.common.utils import generate_unique_slug

        if not self.slug:
            self.slug = generate_unique_slug(self, source_field="title")
        super().save(*args, **kwargs)

    def is_instructor(self, user) -> bool:
        return bool(user) and self.instructor_id is not None and self.instructor_id == user.pk

    class Meta:
        ordering = ["title"]


class Module(TimestampedModel):
    """A section within a course."""

    course = models.ForeignKey(Course, related_name="modules", on_delete=models.CASCADE)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    order = models.PositiveIntegerField(
        default=0, help_text="Order of the module within the course"
    )

    def __str__(self):
        return f"{self.title} (Course: {self.course.title})"

    class Meta:
        ordering = ["course", "order", "title"]


class Lesson(TimestampedModel):
    """A single piece of learning content inside a module."""

    class ContentType(models.TextChoices):
        VIDEO = "video", _("Video")
        PDF = "pdf", _("PDF")
        DOC = "doc", _("Document")
        SLIDE = "slide", _("Slide")
        TEXT = "text", _("Text")

    module = models.ForeignKey(Module, related_name="lessons", on_delete=models.CASCADE)
    title = models.CharField(max_length=255)
    content_type = models.CharField(
        max_length=10, choices=ContentType.choices, default=ContentType.TEXT
    )
    content = models.TextField(blank=True, help_text="Inline content for text lessons")
    content_url = models.URLField(max_length=2048, blank=True)
    duration = models.PositiveIntegerField(default=0, help_text="Duration in minutes")
    order = models.PositiveIntegerField(default=0)

    def __str__(self):
        return self.title

    @property
    def course(self):
        return self.module.course

    class Meta:
        ordering = ["module", "order", "title"]
