"""Tests for the instructor-driven course completion workflow."""

from datetime import timedelta
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings
from django.utils import timezone

from apps.common.exceptions import ConflictError, ForbiddenError
from apps.courses.models import Course
from apps.enrollments.completion import CourseCompletionService
from apps.enrollments.models import Certificate, CompletionLogEntry, CourseCompletionLog
from apps.enrollments.services import CertificateService
from apps.users.models import User

from .helpers import (
    FAILING_RENDERER,
    FAKE_RENDERER,
    enroll,
    graded_submission,
    make_assignment,
    make_course,
    make_user,
)


@override_settings(CERTIFICATE_RENDERER=FAKE_RENDERER)
class CourseCompletionServiceTests(TestCase):
    """Tests for CourseCompletionService.mark_complete."""

    def setUp(self):
        self.instructor = make_user("instructor@example.com", role=User.Role.INSTRUCTOR)
        self.other_instructor = make_user("other@example.com", role=User.Role.INSTRUCTOR)
        self.course = make_course(self.instructor)
        self.assignment = make_assignment(self.course)

        # Three students pass the assignment, two never submit
        self.passing = []
        for i in range(3):
            student = make_user(f"pass{i}@example.com")
            enroll(student, self.course)
            graded_submission(self.assignment, student, 70 + i * 10)
            self.passing.append(student)
        self.failing = []
        for i in range(2):
            student = make_user(f"zfail{i}@example.com")
            enroll(student, self.course)
            self.failing.append(student)

    def test_mark_complete_evaluates_every_enrolled_student(self):
        result = CourseCompletionService.mark_complete(self.course, self.instructor)

        self.assertEqual(result.total_students, 5)
        self.assertEqual(result.eligible_count, 3)
        self.assertEqual(result.certificates_generated, 3)
        self.assertFalse(result.interrupted)

        log = CourseCompletionLog.objects.get(pk=result.log_id)
        self.assertEqual(log.entries.count(), 5)
        self.assertEqual(log.action, CourseCompletionLog.Action.MARKED_COMPLETE)
        self.assertEqual(log.metadata["total_enrolled_students"], 5)
        self.assertEqual(log.metadata["eligible_students_count"], 3)
        self.assertEqual(log.metadata["certificates_generated"], 3)

        self.course.refresh_from_db()
        self.assertTrue(self.course.is_completed_by_instructor)
        self.assertEqual(self.course.completed_by, self.instructor)
        self.assertIsNone(self.course.completion_claimed_at)

        self.assertEqual(Certificate.objects.filter(course=self.course).count(), 3)
        ineligible = CompletionLogEntry.objects.get(log=log, student=self.failing[0])
        self.assertFalse(ineligible.eligible)
        self.assertIn("0 out of 1", ineligible.reason)

    def test_result_as_dict(self):
        result = CourseCompletionService.mark_complete(self.course, self.instructor)

        data = result.as_dict()
        self.assertEqual(
            set(data),
            {
                "total_students",
                "eligible_count",
                "certificates_generated",
                "log_id",
                "completed_at",
                "interrupted",
            },
        )

    def test_only_course_instructor_can_mark_complete(self):
        with self.assertRaisesMessage(ForbiddenError, "Not authorized to mark this course as complete"):
            CourseCompletionService.mark_complete(self.course, self.other_instructor)

        self.assertFalse(CourseCompletionLog.objects.exists())

    def test_second_run_is_conflict(self):
        CourseCompletionService.mark_complete(self.course, self.instructor)

        with self.assertRaisesMessage(ConflictError, "Course has already been marked as complete"):
            CourseCompletionService.mark_complete(self.course, self.instructor)
        self.assertEqual(CourseCompletionLog.objects.count(), 1)

    def test_concurrent_run_is_conflict(self):
        Course.objects.filter(pk=self.course.pk).update(completion_claimed_at=timezone.now())

        with self.assertRaisesMessage(ConflictError, "Course completion is already in progress"):
            CourseCompletionService.mark_complete(self.course, self.instructor)

    @override_settings(COURSE_COMPLETION_CLAIM_TTL=60)
    def test_stale_claim_is_taken_over(self):
        Course.objects.filter(pk=self.course.pk).update(
            completion_claimed_at=timezone.now() - timedelta(minutes=5)
        )

        result = CourseCompletionService.mark_complete(self.course, self.instructor)

        self.assertEqual(result.total_students, 5)

    def test_already_issued_certificate_counts_as_generated(self):
        existing = Certificate.objects.create(
            student=self.passing[0], course=self.course, certificate_id="CERT-1-EXISTING"
        )

        result = CourseCompletionService.mark_complete(self.course, self.instructor)

        self.assertEqual(result.certificates_generated, 3)
        entry = CompletionLogEntry.objects.get(log_id=result.log_id, student=self.passing[0])
        self.assertTrue(entry.certificate_generated)
        self.assertEqual(entry.certificate, existing)
        self.assertEqual(Certificate.objects.filter(course=self.course).count(), 3)

    @override_settings(CERTIFICATE_RENDERER=FAILING_RENDERER)
    def test_renderer_failure_is_recorded_per_student(self):
        result = CourseCompletionService.mark_complete(self.course, self.instructor)

        self.assertEqual(result.eligible_count, 3)
        self.assertEqual(result.certificates_generated, 0)
        self.assertFalse(Certificate.objects.exists())
        entry = CompletionLogEntry.objects.get(log_id=result.log_id, student=self.passing[0])
        self.assertTrue(entry.eligible)
        self.assertFalse(entry.certificate_generated)
        self.assertIn("certificate not generated", entry.reason)
        # Per-student failures never abort the run
        self.course.refresh_from_db()
        self.assertTrue(self.course.is_completed_by_instructor)

    def test_one_student_failure_does_not_stop_the_others(self):
        real_issue = CertificateService.issue

        def flaky_issue(student, course, eligibility, issued_by=None):
            if student == self.passing[1]:
                raise RuntimeError("database hiccup")
            return real_issue(student, course, eligibility, issued_by=issued_by)

        with patch("apps.enrollments.completion.CertificateService.issue", side_effect=flaky_issue):
            result = CourseCompletionService.mark_complete(self.course, self.instructor)

        self.assertEqual(result.total_students, 5)
        self.assertEqual(result.certificates_generated, 2)

    def test_deadline_interrupts_run_and_leaves_course_open(self):
        deadline = timezone.now() - timedelta(seconds=1)

        result = CourseCompletionService.mark_complete(self.course, self.instructor, deadline=deadline)

        self.assertTrue(result.interrupted)
        self.assertIsNone(result.completed_at)
        log = CourseCompletionLog.objects.get(pk=result.log_id)
        self.assertTrue(log.metadata["interrupted"])
        self.assertEqual(log.action, CourseCompletionLog.Action.INTERRUPTED)
        self.assertEqual(log.metadata["evaluated_students"], 0)

        self.course.refresh_from_db()
        self.assertFalse(self.course.is_completed_by_instructor)
        self.assertIsNone(self.course.completion_claimed_at)

        # The run can be retried
        retry = CourseCompletionService.mark_complete(self.course, self.instructor)
        self.assertFalse(retry.interrupted)
        self.assertEqual(retry.certificates_generated, 3)

    @patch("apps.enrollments.completion.NotificationService.notify_course_completed")
    def test_instructor_notified_once(self, mock_notify):
        result = CourseCompletionService.mark_complete(self.course, self.instructor)

        mock_notify.assert_called_once_with(self.course, self.instructor, result)

    def test_log_is_append_only(self):
        result = CourseCompletionService.mark_complete(self.course, self.instructor)
        log = CourseCompletionLog.objects.get(pk=result.log_id)

        log.metadata = {}
        with self.assertRaises(ValueError):
            log.save()


@override_settings(CERTIFICATE_RENDERER=FAKE_RENDERER)
class MarkCourseCompleteCommandTests(TestCase):
    def setUp(self):
        self.instructor = make_user("instructor@example.com", role=User.Role.INSTRUCTOR)
        self.course = make_course(self.instructor)
        self.learner = make_user("learner@example.com")
        enroll(self.learner, self.course)

    def test_command_runs_workflow(self):
        out = StringIO()

        call_command(
            "mark_course_complete", str(self.course.id), "--instructor", self.instructor.email, stdout=out
        )

        self.assertIn("[CERTIFICATE] learner@example.com", out.getvalue())
        self.assertTrue(Certificate.objects.filter(student=self.learner, course=self.course).exists())

    def test_command_reports_service_errors(self):
        other = make_user("other@example.com", role=User.Role.INSTRUCTOR)

        with self.assertRaisesMessage(CommandError, "Not authorized to mark this course as complete"):
            call_command("mark_course_complete", str(self.course.id), "--instructor", other.email)

    def test_regenerate_certificates_command(self):
        call_command("mark_course_complete", str(self.course.id), "--instructor", self.instructor.email, stdout=StringIO())
        Certificate.objects.update(certificate_url="")
        out = StringIO()

        call_command("regenerate_certificates", stdout=out)

        self.assertIn("Successfully regenerated: 1", out.getvalue())
        self.assertFalse(Certificate.objects.filter(certificate_url="").exists())
