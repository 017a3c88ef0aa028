"""Tests for EligibilityEvaluator."""

from django.test import TestCase

from apps.assessments.models import Submission
from apps.enrollments.eligibility import EligibilityEvaluator, grade_for_score
from apps.enrollments.models import Enrollment
from apps.users.models import User

from .helpers import (
    enroll,
    graded_submission,
    make_assignment,
    make_course,
    make_quiz,
    make_user,
    quiz_attempt,
)


class GradeForScoreTests(TestCase):
    def test_grade_bands(self):
        self.assertEqual(grade_for_score(None), "Pass")
        self.assertEqual(grade_for_score(79), "Pass")
        self.assertEqual(grade_for_score(80), "Merit")
        self.assertEqual(grade_for_score(89), "Merit")
        self.assertEqual(grade_for_score(90), "Distinction")
        self.assertEqual(grade_for_score(100), "Distinction")


class EligibilityEvaluatorTests(TestCase):
    """Tests for EligibilityEvaluator.evaluate."""

    def setUp(self):
        self.instructor = make_user("instructor@example.com", role=User.Role.INSTRUCTOR)
        self.learner = make_user("learner@example.com")
        self.course = make_course(self.instructor)
        enroll(self.learner, self.course)

    def test_not_enrolled(self):
        stranger = make_user("stranger@example.com")

        result = EligibilityEvaluator.evaluate(stranger, self.course, is_marking_complete=True)

        self.assertFalse(result.eligible)
        self.assertEqual(result.reason, "Student is not enrolled in this course")

    def test_pending_enrollment_is_not_enrolled(self):
        pending = make_user("pending@example.com")
        enroll(pending, self.course, status=Enrollment.Status.PENDING)

        result = EligibilityEvaluator.evaluate(pending, self.course, is_marking_complete=True)

        self.assertFalse(result.eligible)

    def test_course_not_marked_complete(self):
        result = EligibilityEvaluator.evaluate(self.learner, self.course)

        self.assertFalse(result.eligible)
        self.assertEqual(result.reason, "Course has not been marked as complete by instructor")

    def test_no_assessments_while_marking_complete(self):
        result = EligibilityEvaluator.evaluate(self.learner, self.course, is_marking_complete=True)

        self.assertTrue(result.eligible)
        self.assertEqual(result.grade, "Pass")
        self.assertIsNone(result.overall_score)
        self.assertEqual(result.reason, "All requirements completed. Overall score: N/A%")

    def test_one_of_two_assignments_passing(self):
        first = make_assignment(self.course, title="Essay 1")
        second = make_assignment(self.course, title="Essay 2")
        graded_submission(first, self.learner, 50)
        graded_submission(second, self.learner, 30, status=Submission.Status.RESUBMISSION_REQUIRED)

        result = EligibilityEvaluator.evaluate(self.learner, self.course, is_marking_complete=True)

        self.assertFalse(result.eligible)
        self.assertIn("1 out of 2", result.reason)
        self.assertEqual(
            result.reason, "Student has completed 1 out of 2 assignments with passing grades"
        )

    def test_only_latest_attempt_counts(self):
        assignment = make_assignment(self.course, allow_resubmission=True)
        graded_submission(assignment, self.learner, 95, status=Submission.Status.RESUBMITTED)
        Submission.objects.create(
            assignment=assignment, student=self.learner, attempt_number=2, content="Second try"
        )

        result = EligibilityEvaluator.evaluate(self.learner, self.course, is_marking_complete=True)

        self.assertFalse(result.eligible)
        self.assertEqual(result.completed_assignments, 0)

    def test_grade_below_course_threshold_does_not_count(self):
        self.course.passing_threshold = 60
        self.course.save()
        assignment = make_assignment(self.course)
        graded_submission(assignment, self.learner, 55)

        result = EligibilityEvaluator.evaluate(self.learner, self.course, is_marking_complete=True)

        self.assertFalse(result.eligible)

    def test_missing_quiz_attempt(self):
        make_quiz(self.course)

        result = EligibilityEvaluator.evaluate(self.learner, self.course, is_marking_complete=True)

        self.assertFalse(result.eligible)
        self.assertEqual(result.reason, "Student has completed 0 out of 1 quizzes with passing scores")

    def test_overall_score_is_rounded_mean_of_passing_results(self):
        assignment = make_assignment(self.course)
        quiz = make_quiz(self.course)
        graded_submission(assignment, self.learner, 90)
        quiz_attempt(quiz, self.learner, "85.00")

        result = EligibilityEvaluator.evaluate(self.learner, self.course, is_marking_complete=True)

        # (90 + 85) / 2 = 87.5 rounds half up
        self.assertTrue(result.eligible)
        self.assertEqual(result.overall_score, 88)
        self.assertEqual(result.grade, "Merit")
        self.assertEqual(result.reason, "All requirements completed. Overall score: 88%")

    def test_completed_course_evaluated_without_flag(self):
        self.course.is_completed_by_instructor = True
        self.course.save()
        assignment = make_assignment(self.course)
        graded_submission(assignment, self.learner, 100)

        result = EligibilityEvaluator.evaluate(self.learner, self.course)

        self.assertTrue(result.eligible)
        self.assertEqual(result.grade, "Distinction")
