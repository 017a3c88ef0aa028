import logging
from datetime import timedelta

from django.shortcuts import get_object_or_404
from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from apps.enrollments.completion import CourseCompletionService
from apps.enrollments.eligibility import EligibilityEvaluator
from apps.enrollments.models import Enrollment
from apps.enrollments.serializers import CertificateSerializer
from apps.enrollments.services import CertificateService, EnrollmentService, ProgressTrackerService
from apps.users.models import User
from apps.users.permissions import is_admin_user

from .models import Course, Lesson, Module
from .permissions import IsEnrolledOrInstructorOrAdmin
from .serializers import (
    CourseProgressSerializer,
    CourseSerializer,
    LessonSerializer,
    MarkCompleteRequestSerializer,
    ModuleSerializer,
    StudentProgressSummarySerializer,
)

logger = logging.getLogger(__name__)


@extend_schema(tags=["Courses"])
class CourseViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Courses plus the progress, eligibility and completion actions.
    Catalog management happens elsewhere; this surface is read-only.
    """

    serializer_class = CourseSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Course.objects.none()

        user = self.request.user
        queryset = Course.objects.select_related("instructor")
        if is_admin_user(user) or user.role == User.Role.INSTRUCTOR:
            return queryset
        # Learners see the courses they are enrolled in
        return queryset.filter(
            enrollments__user=user,
            enrollments__status__in=Enrollment.ENROLLED_STATUSES,
        ).distinct()

    def get_object(self):
        # Actions check their own permissions, so look up across all courses
        course = get_object_or_404(Course.objects.select_related("instructor"), pk=self.kwargs["pk"])
        self.check_object_permissions(self.request, course)
        return course

    def get_permissions(self):
        # mark_complete checks course ownership in CourseCompletionService
        if self.action in ["retrieve", "progress", "eligibility", "certificate"]:
            permission_classes = [permissions.IsAuthenticated, IsEnrolledOrInstructorOrAdmin]
        else:
            permission_classes = [permissions.IsAuthenticated]
        return [permission() for permission in permission_classes]

    @extend_schema(responses={200: CourseProgressSerializer})
    @action(detail=True, methods=["get"])
    def progress(self, request, pk=None):
        """
        Learners get their own progress record. The course instructor (or an
        admin) gets an overview of every enrolled student.
        """
        course = self.get_object()
        user = request.user

        if course.is_instructor(user) or is_admin_user(user):
            rows = []
            for student in EnrollmentService.enrolled_students(course):
                record = ProgressTrackerService.get_progress(student, course)
                rows.append(
                    {
                        "student": student,
                        "completed_modules": record.completed_modules,
                        "progress_percentage": ProgressTrackerService.calculate_course_progress_percentage(
                            student, course
                        ),
                    }
                )
            return Response(
                {
                    "students": StudentProgressSummarySerializer(rows, many=True).data,
                    "modules": [
                        {"id": str(m.id), "title": m.title} for m in course.modules.all()
                    ],
                }
            )

        record = ProgressTrackerService.get_progress(user, course)
        return Response(CourseProgressSerializer(record).data)

    @extend_schema(
        parameters=[
            OpenApiParameter(
                "student", str, description="Student id (instructor/admin only)", required=False
            )
        ]
    )
    @action(detail=True, methods=["get"])
    def eligibility(self, request, pk=None):
        """Certificate eligibility of the requesting student, or of ?student= for instructors."""
        course = self.get_object()
        student = request.user
        student_id = request.query_params.get("student")
        if student_id:
            if not (course.is_instructor(request.user) or is_admin_user(request.user)):
                raise PermissionDenied("Only the course instructor can check other students.")
            student = get_object_or_404(User, pk=student_id)

        result = EligibilityEvaluator.evaluate(student, course, is_marking_complete=False)
        return Response(result.as_dict())

    @extend_schema(
        request=None,
        responses={201: CertificateSerializer},
        parameters=[
            OpenApiParameter(
                "student", str, description="Student id (instructor/admin only)", required=False
            )
        ],
    )
    @action(detail=True, methods=["post"])
    def certificate(self, request, pk=None):
        """
        Issues the requesting student's certificate for this course, or the
        certificate of ?student= when the course instructor asks.
        """
        course = self.get_object()
        student = request.user
        student_id = request.query_params.get("student")
        if student_id:
            student = get_object_or_404(User, pk=student_id)

        certificate = CertificateService.request_certificate(student, course, request.user)
        return Response(CertificateSerializer(certificate).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=MarkCompleteRequestSerializer)
    @action(detail=True, methods=["post"], url_path="mark-complete")
    def mark_complete(self, request, pk=None):
        """Marks the course complete and issues certificates to every eligible student."""
        course = self.get_object()
        serializer = MarkCompleteRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        deadline = None
        timeout = serializer.validated_data.get("timeout")
        if timeout:
            deadline = timezone.now() + timedelta(seconds=timeout)

        result = CourseCompletionService.mark_complete(course, request.user, deadline=deadline)
        message = (
            "Course completion interrupted before every student was evaluated"
            if result.interrupted
            else "Course marked as complete"
        )
        return Response(
            {"success": True, "message": message, "data": result.as_dict()},
            status=status.HTTP_200_OK,
        )


@extend_schema(tags=["Courses"])
class ModuleViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Modules of a course (nested under /courses/{course_pk}/modules/), with the
    student's complete/incomplete toggles.
    """

    serializer_class = ModuleSerializer
    permission_classes = [permissions.IsAuthenticated, IsEnrolledOrInstructorOrAdmin]

    def get_course(self) -> Course:
        course = get_object_or_404(Course, pk=self.kwargs["course_pk"])
        self.check_object_permissions(self.request, course)
        return course

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Module.objects.none()
        return (
            Module.objects.filter(course_id=self.kwargs["course_pk"])
            .prefetch_related("lessons")
            .order_by("order")
        )

    def list(self, request, *args, **kwargs):
        self.get_course()
        return super().list(request, *args, **kwargs)

    def _toggle(self, request, complete: bool):
        course = self.get_course()
        module = get_object_or_404(Module, pk=self.kwargs["pk"], course=course)
        if complete:
            progress = ProgressTrackerService.mark_module_complete(request.user, course, module)
            message = "Module marked as completed"
        else:
            progress = ProgressTrackerService.mark_module_incomplete(request.user, course, module)
            message = "Module marked as incomplete"
        return Response({"message": message, "completed_modules": progress.completed_modules})

    @action(detail=True, methods=["post"])
    def complete(self, request, course_pk=None, pk=None):
        return self._toggle(request, complete=True)

    @action(detail=True, methods=["post"])
    def incomplete(self, request, course_pk=None, pk=None):
        return self._toggle(request, complete=False)


@extend_schema(tags=["Courses"])
class LessonViewSet(viewsets.ReadOnlyModelViewSet):
    """Lessons of a module, with the student's complete/incomplete toggles."""

    serializer_class = LessonSerializer
    permission_classes = [permissions.IsAuthenticated, IsEnrolledOrInstructorOrAdmin]

    def get_course(self) -> Course:
        course = get_object_or_404(Course, pk=self.kwargs["course_pk"])
        self.check_object_permissions(self.request, course)
        return course

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Lesson.objects.none()
        return Lesson.objects.filter(
            module_id=self.kwargs["module_pk"], module__course_id=self.kwargs["course_pk"]
        ).order_by("order")

    def list(self, request, *args, **kwargs):
        self.get_course()
        return super().list(request, *args, **kwargs)

    def _toggle(self, request, complete: bool):
        course = self.get_course()
        lesson = get_object_or_404(
            Lesson, pk=self.kwargs["pk"], module_id=self.kwargs["module_pk"], module__course=course
        )
        if complete:
            progress = ProgressTrackerService.mark_lesson_complete(request.user, course, lesson)
        else:
            progress = ProgressTrackerService.mark_lesson_incomplete(request.user, course, lesson)
        return Response({"completed_lessons": progress.completed_lessons})

    @action(detail=True, methods=["post"])
    def complete(self, request, course_pk=None, module_pk=None, pk=None):
        return self._toggle(request, complete=True)

    @action(detail=True, methods=["post"])
    def incomplete(self, request, course_pk=None, module_pk=None, pk=None):
        return self._toggle(request, complete=False)
