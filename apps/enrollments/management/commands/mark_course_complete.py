"""Management command to run the course completion workflow outside the API."""

from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from apps.common.exceptions import ServiceError
from apps.courses.models import Course
from apps.enrollments.completion import CourseCompletionService
from apps.users.models import User


class Command(BaseCommand):
    help = "Mark a course as complete, evaluating every enrolled student and issuing certificates"

    def add_arguments(self, parser):
        parser.add_argument("course_id", type=str, help="Course UUID")
        parser.add_argument(
            "--instructor",
            type=str,
            required=True,
            help="Email of the course instructor performing the completion",
        )
        parser.add_argument(
            "--timeout",
            type=int,
            default=None,
            help="Stop evaluating students after this many seconds",
        )

    def handle(self, *args, **options):
        course = Course.objects.filter(pk=options["course_id"]).select_related("instructor").first()
        if course is None:
            raise CommandError(f"Course {options['course_id']} not found")

        instructor = User.objects.filter(email__iexact=options["instructor"]).first()
        if instructor is None:
            raise CommandError(f"User {options['instructor']} not found")

        deadline = None
        if options["timeout"]:
            deadline = timezone.now() + timedelta(seconds=options["timeout"])

        self.stdout.write(f"Marking course '{course.title}' as complete...")
        try:
            result = CourseCompletionService.mark_complete(course, instructor, deadline=deadline)
        except ServiceError as e:
            raise CommandError(e.message) from e

        for outcome in result.outcomes:
            line = f"{outcome.student.email}: {outcome.reason}"
            if outcome.certificate_generated:
                self.stdout.write(self.style.SUCCESS(f"[CERTIFICATE] {line}"))
            elif outcome.eligible:
                self.stdout.write(f"[ELIGIBLE] {line}")
            else:
                self.stdout.write(self.style.WARNING(f"[NOT ELIGIBLE] {line}"))

        self.stdout.write("")
        self.stdout.write(
            f"Students: {result.total_students}, eligible: {result.eligible_count}, "
            f"certificates generated: {result.certificates_generated}"
        )
        if result.interrupted:
            self.stdout.write(self.style.WARNING("Run interrupted by timeout; the course is still open."))
        else:
            self.stdout.write(self.style.SUCCESS(f"Course completed (log {result.log_id})"))
