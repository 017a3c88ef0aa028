"""Tests for courses app viewsets."""

from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.courses.models import Lesson
from apps.enrollments.models import Certificate, CourseCompletionLog
from apps.enrollments.tests.helpers import (
    FAKE_RENDERER,
    enroll,
    graded_submission,
    make_assignment,
    make_course,
    make_user,
)
from apps.users.models import User


@override_settings(CERTIFICATE_RENDERER=FAKE_RENDERER)
class CourseViewSetTests(APITestCase):
    """Tests for CourseViewSet."""

    def setUp(self):
        self.instructor = make_user("instructor@example.com", role=User.Role.INSTRUCTOR)
        self.other_instructor = make_user("other_instructor@example.com", role=User.Role.INSTRUCTOR)
        self.admin = make_user("admin@example.com", role=User.Role.ADMIN, is_staff=True)
        self.learner = make_user("learner@example.com")
        self.stranger = make_user("stranger@example.com")

        self.course = make_course(self.instructor, modules=2)
        self.other_course = make_course(self.instructor, title="Other Course")
        enroll(self.learner, self.course)

    def _url(self, name, course=None):
        return reverse(f"courses:course-{name}", kwargs={"pk": (course or self.course).pk})

    def test_unauthenticated_access_denied(self):
        response = self.client.get(reverse("courses:course-list"))

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_learner_lists_enrolled_courses_only(self):
        self.client.force_authenticate(self.learner)

        response = self.client.get(reverse("courses:course-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c["title"] for c in response.data["results"]], ["Python Basics"])

    def test_non_enrolled_learner_cannot_retrieve(self):
        self.client.force_authenticate(self.stranger)

        response = self.client.get(self._url("detail"))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_learner_progress(self):
        module = self.course.modules.order_by("order").first()
        self.client.force_authenticate(self.learner)
        self.client.post(
            reverse("courses:course-module-complete", kwargs={"course_pk": self.course.pk, "pk": module.pk})
        )

        response = self.client.get(self._url("progress"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["completed_modules"], [str(module.id)])
        self.assertEqual(response.data["progress_percentage"], 50)

    def test_instructor_progress_overview(self):
        self.client.force_authenticate(self.instructor)

        response = self.client.get(self._url("progress"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data["students"]), 1)
        self.assertEqual(response.data["students"][0]["student"]["email"], "learner@example.com")
        self.assertEqual(len(response.data["modules"]), 2)

    def test_progress_of_non_enrolled_learner_forbidden(self):
        self.client.force_authenticate(self.stranger)

        response = self.client.get(self._url("progress"))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["detail"], "Not enrolled in this course")

    def test_eligibility_for_open_course(self):
        self.client.force_authenticate(self.learner)

        response = self.client.get(self._url("eligibility"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data["eligible"])
        self.assertEqual(response.data["reason"], "Course has not been marked as complete by instructor")

    def test_eligibility_of_other_student_requires_instructor(self):
        self.client.force_authenticate(self.learner)
        response = self.client.get(self._url("eligibility"), {"student": str(self.learner.pk)})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.instructor)
        response = self.client.get(self._url("eligibility"), {"student": str(self.learner.pk)})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_certificate_request_before_sign_off(self):
        self.client.force_authenticate(self.learner)

        response = self.client.post(self._url("certificate"))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "Course has not been marked as complete by instructor")
        self.assertFalse(Certificate.objects.exists())

    def test_certificate_request_issues_then_conflicts(self):
        self.course.is_completed_by_instructor = True
        self.course.save()
        self.client.force_authenticate(self.learner)

        response = self.client.post(self._url("certificate"))

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["grade"], "Pass")
        self.assertEqual(response.data["issued_by"]["email"], "instructor@example.com")
        certificate = Certificate.objects.get(student=self.learner, course=self.course)
        self.assertEqual(response.data["certificate_id"], certificate.certificate_id)

        response = self.client.post(self._url("certificate"))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["errors"]["certificate_id"], certificate.certificate_id)

    def test_certificate_request_for_other_student(self):
        self.course.is_completed_by_instructor = True
        self.course.save()
        other = make_user("other_learner@example.com")
        enroll(other, self.course)

        self.client.force_authenticate(other)
        response = self.client.post(f"{self._url('certificate')}?student={self.learner.pk}")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.instructor)
        response = self.client.post(f"{self._url('certificate')}?student={self.learner.pk}")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["student"]["email"], "learner@example.com")

    def test_mark_complete(self):
        assignment = make_assignment(self.course)
        graded_submission(assignment, self.learner, 92)
        self.client.force_authenticate(self.instructor)

        response = self.client.post(self._url("mark-complete"), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["data"]["total_students"], 1)
        self.assertEqual(response.data["data"]["eligible_count"], 1)
        self.assertEqual(response.data["data"]["certificates_generated"], 1)
        certificate = Certificate.objects.get(student=self.learner, course=self.course)
        self.assertEqual(certificate.grade, Certificate.Grade.DISTINCTION)

        response = self.client.post(self._url("mark-complete"), {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["message"], "Course has already been marked as complete")

    def test_mark_complete_by_other_instructor_forbidden(self):
        self.client.force_authenticate(self.other_instructor)

        response = self.client.post(self._url("mark-complete"), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["message"], "Not authorized to mark this course as complete")
        self.assertFalse(CourseCompletionLog.objects.exists())

    def test_mark_complete_rejects_bad_timeout(self):
        self.client.force_authenticate(self.instructor)

        response = self.client.post(self._url("mark-complete"), {"timeout": 0}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


@override_settings(CERTIFICATE_RENDERER=FAKE_RENDERER)
class ModuleAndLessonViewSetTests(APITestCase):
    def setUp(self):
        self.instructor = make_user("instructor@example.com", role=User.Role.INSTRUCTOR)
        self.learner = make_user("learner@example.com")
        self.stranger = make_user("stranger@example.com")
        self.course = make_course(self.instructor)
        self.module = self.course.modules.first()
        self.lesson = Lesson.objects.create(module=self.module, title="Welcome")
        enroll(self.learner, self.course)

    def _module_url(self, name):
        return reverse(
            f"courses:course-module-{name}", kwargs={"course_pk": self.course.pk, "pk": self.module.pk}
        )

    def _lesson_url(self, name):
        return reverse(
            f"courses:module-lesson-{name}",
            kwargs={"course_pk": self.course.pk, "module_pk": self.module.pk, "pk": self.lesson.pk},
        )

    def test_list_modules_with_lessons(self):
        self.client.force_authenticate(self.learner)

        response = self.client.get(reverse("courses:course-module-list", kwargs={"course_pk": self.course.pk}))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["results"][0]["lessons"][0]["title"], "Welcome")

    def test_module_toggle(self):
        self.client.force_authenticate(self.learner)

        response = self.client.post(self._module_url("complete"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["completed_modules"], [str(self.module.id)])

        response = self.client.post(self._module_url("incomplete"))
        self.assertEqual(response.data["completed_modules"], [])

    def test_module_toggle_after_certificate_is_conflict(self):
        self.course.is_completed_by_instructor = True
        self.course.save()
        self.client.force_authenticate(self.learner)

        # Completing the only module issues the certificate
        self.client.post(self._module_url("complete"))
        self.assertTrue(Certificate.objects.filter(student=self.learner).exists())

        response = self.client.post(self._module_url("incomplete"))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_module_toggle_not_enrolled(self):
        self.client.force_authenticate(self.stranger)

        response = self.client.post(self._module_url("complete"))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_lesson_toggle(self):
        self.client.force_authenticate(self.learner)

        response = self.client.post(self._lesson_url("complete"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["completed_lessons"], [str(self.lesson.id)])

        response = self.client.post(self._lesson_url("incomplete"))
        self.assertEqual(response.data["completed_lessons"], [])
