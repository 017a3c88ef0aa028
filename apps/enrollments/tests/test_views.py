"""Tests for the enrollment, certificate and completion-log endpoints."""

from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.enrollments.completion import CourseCompletionService
from apps.enrollments.models import Certificate
from apps.users.models import User

from .helpers import FAKE_RENDERER, enroll, make_course, make_user


@override_settings(CERTIFICATE_RENDERER=FAKE_RENDERER)
class CertificateViewSetTests(APITestCase):
    def setUp(self):
        self.instructor = make_user("instructor@example.com", role=User.Role.INSTRUCTOR)
        self.admin = make_user("admin@example.com", role=User.Role.ADMIN)
        self.learner = make_user("learner@example.com", first_name="Ada", last_name="Lovelace")
        self.other_learner = make_user("other@example.com")
        self.course = make_course(self.instructor)
        enroll(self.learner, self.course)
        enroll(self.other_learner, self.course, status="PENDING")

        CourseCompletionService.mark_complete(self.course, self.instructor)
        self.certificate = Certificate.objects.get(student=self.learner, course=self.course)

    def test_list_own_certificates(self):
        self.client.force_authenticate(self.learner)

        response = self.client.get(reverse("enrollments:certificate-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["certificate_id"], self.certificate.certificate_id)

    def test_certificates_by_student(self):
        url = reverse("enrollments:certificate-for-student", kwargs={"student_id": self.learner.pk})

        self.client.force_authenticate(self.other_learner)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_certificate_by_course(self):
        url = reverse("enrollments:certificate-for-course", kwargs={"course_id": self.course.pk})

        self.client.force_authenticate(self.learner)
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["grade"], "Pass")

        self.client.force_authenticate(self.other_learner)
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["message"], "Certificate not found")

        self.client.force_authenticate(self.instructor)
        response = self.client.get(url, {"student": str(self.learner.pk)})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_verify_is_public(self):
        url = reverse("enrollments:certificate-verify", kwargs={"code": self.certificate.certificate_id})

        response = self.client.get(url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["valid"])
        self.assertEqual(response.data["student_name"], "Ada Lovelace")
        self.assertEqual(response.data["course_title"], "Python Basics")

    def test_verify_unknown_certificate(self):
        url = reverse("enrollments:certificate-verify", kwargs={"code": "CERT-0-UNKNOWN"})

        response = self.client.get(url)

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(response.data["valid"])

    def test_revoke(self):
        url = reverse("enrollments:certificate-revoke", kwargs={"certificate_id": self.certificate.certificate_id})

        self.client.force_authenticate(self.learner)
        response = self.client.post(url, {"reason": "self"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.instructor)
        response = self.client.post(url, {"reason": "Plagiarism"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["is_revoked"])

        response = self.client.post(url, {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        verify_url = reverse("enrollments:certificate-verify", kwargs={"code": self.certificate.certificate_id})
        self.assertEqual(self.client.get(verify_url).status_code, status.HTTP_404_NOT_FOUND)


@override_settings(CERTIFICATE_RENDERER=FAKE_RENDERER)
class EnrollmentAndLogViewSetTests(APITestCase):
    def setUp(self):
        self.instructor = make_user("instructor@example.com", role=User.Role.INSTRUCTOR)
        self.other_instructor = make_user("other_instructor@example.com", role=User.Role.INSTRUCTOR)
        self.learner = make_user("learner@example.com")
        self.course = make_course(self.instructor)
        enroll(self.learner, self.course)

    def test_learner_sees_own_enrollments(self):
        self.client.force_authenticate(self.learner)

        response = self.client.get(reverse("enrollments:enrollment-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["status"], "ACTIVE")

    def test_completion_logs_visible_to_course_instructor(self):
        CourseCompletionService.mark_complete(self.course, self.instructor)
        url = reverse("enrollments:completion-log-list")

        self.client.force_authenticate(self.instructor)
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(len(response.data["results"][0]["entries"]), 1)
        self.assertTrue(response.data["results"][0]["entries"][0]["certificate_generated"])

        self.client.force_authenticate(self.other_instructor)
        self.assertEqual(self.client.get(url).data["count"], 0)

        self.client.force_authenticate(self.learner)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_403_FORBIDDEN)
