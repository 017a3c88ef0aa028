"""Tests for the assessments API."""

from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.assessments.models import QuizAttempt, Submission
from apps.enrollments.tests.helpers import (
    enroll,
    make_assignment,
    make_course,
    make_quiz,
    make_user,
)
from apps.users.models import User


class AssignmentViewSetTests(APITestCase):
    def setUp(self):
        self.instructor = make_user("instructor@example.com", role=User.Role.INSTRUCTOR)
        self.learner = make_user("learner@example.com")
        self.stranger = make_user("stranger@example.com")
        self.course = make_course(self.instructor)
        enroll(self.learner, self.course)
        self.assignment = make_assignment(self.course, max_file_size=1024 * 1024)

    def _url(self, name, **kwargs):
        return reverse(f"assessments:assignment-{name}", kwargs={"pk": self.assignment.pk, **kwargs})

    def test_learner_lists_assignments_of_enrolled_courses_only(self):
        other_course = make_course(self.instructor, title="Other")
        make_assignment(other_course, title="Hidden")
        self.client.force_authenticate(self.learner)

        response = self.client.get(reverse("assessments:assignment-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        titles = [a["title"] for a in response.data["results"]]
        self.assertEqual(titles, ["Essay"])

    def test_submit_text(self):
        self.client.force_authenticate(self.learner)

        response = self.client.post(self._url("submit"), {"content": "My essay"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["status"], Submission.Status.PENDING)
        self.assertEqual(response.data["attempt_number"], 1)

    def test_submit_file_multipart(self):
        self.client.force_authenticate(self.learner)
        upload = SimpleUploadedFile("essay.pdf", b"%PDF-1.4 test", content_type="application/pdf")

        response = self.client.post(self._url("submit"), {"file": upload}, format="multipart")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNotNone(response.data["file_url"])

    def test_submit_oversized_file(self):
        self.client.force_authenticate(self.learner)
        upload = SimpleUploadedFile("big.pdf", b"0" * (1024 * 1024 + 1), content_type="application/pdf")

        response = self.client.post(self._url("submit"), {"file": upload}, format="multipart")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["message"], "File too large. Maximum allowed size is 1MB.")

    def test_submit_not_enrolled(self):
        self.client.force_authenticate(self.stranger)

        response = self.client.post(self._url("submit"), {"content": "Hi"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["message"], "Not enrolled in this course")

    def test_duplicate_submit_is_conflict(self):
        self.client.force_authenticate(self.learner)
        self.client.post(self._url("submit"), {"content": "First"}, format="json")

        response = self.client.post(self._url("submit"), {"content": "Second"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_grade_flow(self):
        self.client.force_authenticate(self.learner)
        self.client.post(self._url("submit"), {"content": "First"}, format="json")

        self.client.force_authenticate(self.instructor)
        response = self.client.post(
            self._url("grade", student_id=self.learner.pk), {"grade": 35, "feedback": "Try again"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], Submission.Status.RESUBMISSION_REQUIRED)
        self.assertTrue(response.data["resubmission_required"])
        self.assertIsNotNone(response.data["resubmission_deadline"])

    def test_grade_invalid_value(self):
        self.client.force_authenticate(self.instructor)

        response = self.client.post(
            self._url("grade", student_id=self.learner.pk), {"grade": "abc"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_grade_by_learner_forbidden(self):
        self.client.force_authenticate(self.learner)

        response = self.client.post(
            self._url("grade", student_id=self.learner.pk), {"grade": 90}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_grade_missing_submission(self):
        self.client.force_authenticate(self.instructor)

        response = self.client.post(
            self._url("grade", student_id=self.learner.pk), {"grade": 90}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["message"], "Submission not found")

    def test_submissions_listing_for_instructor_only(self):
        self.client.force_authenticate(self.learner)
        self.client.post(self._url("submit"), {"content": "First"}, format="json")
        response = self.client.get(self._url("submissions"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.instructor)
        response = self.client.get(self._url("submissions"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 1)

    def test_my_submission(self):
        self.client.force_authenticate(self.learner)
        response = self.client.get(self._url("my-submission"))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.post(self._url("submit"), {"content": "First"}, format="json")
        response = self.client.get(self._url("my-submission"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["content"], "First")


class QuizViewSetTests(APITestCase):
    def setUp(self):
        self.instructor = make_user("instructor@example.com", role=User.Role.INSTRUCTOR)
        self.learner = make_user("learner@example.com")
        self.course = make_course(self.instructor)
        enroll(self.learner, self.course)
        self.quiz = make_quiz(self.course, points=(1, 3), answers=["A", "C"])

    def _url(self, name):
        return reverse(f"assessments:quiz-{name}", kwargs={"pk": self.quiz.pk})

    def test_learner_does_not_see_answer_key(self):
        self.client.force_authenticate(self.learner)

        response = self.client.get(self._url("detail"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["question_count"], 2)
        self.assertNotIn("correct_answer", response.data["questions"][0])

    def test_instructor_sees_answer_key(self):
        self.client.force_authenticate(self.instructor)

        response = self.client.get(self._url("detail"))

        self.assertEqual(response.data["questions"][1]["correct_answer"], "C")

    def test_submit_attempt(self):
        self.client.force_authenticate(self.learner)
        answers = [
            {"question_index": 0, "selected_answer": "A"},
            {"question_index": 1, "selected_answer": "B"},
        ]

        response = self.client.post(self._url("submit"), {"answers": answers}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["data"]["earned_points"], 1)
        self.assertEqual(response.data["data"]["total_points"], 4)
        self.assertEqual(response.data["data"]["percentage"], 25.0)

        response = self.client.post(self._url("submit"), {"answers": answers}, format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(QuizAttempt.objects.count(), 1)

    def test_submit_without_answers(self):
        self.client.force_authenticate(self.learner)

        response = self.client.post(self._url("submit"), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "Answers are required")

    def test_my_attempt(self):
        self.client.force_authenticate(self.learner)
        self.assertEqual(self.client.get(self._url("my-attempt")).status_code, status.HTTP_404_NOT_FOUND)

        self.client.post(
            self._url("submit"), {"answers": [{"question_index": 0, "selected_answer": "A"}]}, format="json"
        )

        response = self.client.get(self._url("my-attempt"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["score"], "100.00")
