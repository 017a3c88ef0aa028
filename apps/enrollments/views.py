import logging

from django.shortcuts import get_object_or_404
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.courses.models import Course
from apps.users.models import User
from apps.users.permissions import IsInstructorOrAdmin, is_admin_user

from .models import Certificate, CourseCompletionLog, Enrollment
from .serializers import (
    CertificateSerializer,
    CertificateVerificationSerializer,
    CourseCompletionLogSerializer,
    EnrollmentSerializer,
    RevokeCertificateSerializer,
)
from .services import CertificateService

logger = logging.getLogger(__name__)


@extend_schema(tags=["Enrollments"])
class EnrollmentViewSet(viewsets.ReadOnlyModelViewSet):
    """Lists the requesting user's enrollments (instructors: their courses' enrollments)."""

    serializer_class = EnrollmentSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Enrollment.objects.none()

        user = self.request.user
        if is_admin_user(user):
            queryset = Enrollment.objects.all()
        elif user.role == User.Role.INSTRUCTOR:
            queryset = Enrollment.objects.filter(course__instructor=user)
        else:
            queryset = Enrollment.objects.filter(user=user)

        course_id = self.request.query_params.get("course_id")
        if course_id:
            queryset = queryset.filter(course_id=course_id)
        return queryset.select_related("user", "course").order_by("-enrolled_at")


@extend_schema(tags=["Certificates"])
class CertificateViewSet(viewsets.ReadOnlyModelViewSet):
    """Certificates of the current user, plus lookup, verification and revocation."""

    serializer_class = CertificateSerializer
    permission_classes = [permissions.IsAuthenticated]
    lookup_field = "certificate_id"
    lookup_value_regex = "CERT-[0-9A-Za-z-]+"

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Certificate.objects.none()

        user = self.request.user
        queryset = Certificate.objects.select_related("course", "student", "issued_by")
        if is_admin_user(user):
            return queryset
        if self.action in ["retrieve", "revoke"]:
            # Course instructors may act on certificates of their courses
            return queryset.filter(student=user) | queryset.filter(course__instructor=user)
        return queryset.filter(student=user)

    @extend_schema(responses={200: CertificateSerializer(many=True)})
    @action(detail=False, methods=["get"], url_path=r"student/(?P<student_id>[0-9a-fA-F-]{32,36})")
    def for_student(self, request, student_id=None):
        """All certificates of a student (the student themself or an admin)."""
        student = get_object_or_404(User, pk=student_id)
        certificates = CertificateService.certificates_for_student(student, request.user)
        return Response(CertificateSerializer(certificates, many=True).data)

    @extend_schema(
        parameters=[
            OpenApiParameter(
                "student", OpenApiTypes.UUID, description="Student id (instructor/admin only)", required=False
            )
        ],
        responses={200: CertificateSerializer},
    )
    @action(detail=False, methods=["get"], url_path=r"course/(?P<course_id>[0-9a-fA-F-]{32,36})")
    def for_course(self, request, course_id=None):
        """The requesting student's certificate for a course, or ?student=<id> for instructors."""
        course = get_object_or_404(Course, pk=course_id)
        student = request.user
        student_id = request.query_params.get("student")
        if student_id:
            student = get_object_or_404(User, pk=student_id)
        certificate = CertificateService.get_certificate(student, course, request.user)
        return Response(CertificateSerializer(certificate).data)

    @extend_schema(
        description="Verify a certificate by its id. Public.",
        responses={
            200: CertificateVerificationSerializer,
            404: OpenApiResponse(
                description="Certificate not found or revoked",
                examples=[
                    OpenApiExample(
                        "Not Found", value={"valid": False, "detail": "Certificate not found"}
                    )
                ],
            ),
        },
    )
    @action(
        detail=False,
        methods=["get"],
        url_path=r"verify/(?P<code>[^/]+)",
        permission_classes=[permissions.AllowAny],  # Anyone can verify a certificate
        authentication_classes=[],
    )
    def verify(self, request, code=None):
        certificate = CertificateService.verify(code)
        if certificate is None:
            return Response(
                {"valid": False, "detail": "Certificate not found"},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(CertificateVerificationSerializer(certificate).data)

    @extend_schema(request=RevokeCertificateSerializer, responses={200: CertificateSerializer})
    @action(detail=True, methods=["post"])
    def revoke(self, request, certificate_id=None):
        certificate = self.get_object()
        serializer = RevokeCertificateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        certificate = CertificateService.revoke(
            certificate, request.user, serializer.validated_data["reason"]
        )
        return Response(CertificateSerializer(certificate).data)


@extend_schema(tags=["Certificates"])
class CourseCompletionLogViewSet(viewsets.ReadOnlyModelViewSet):
    """Audit trail of course completion runs, visible to the course instructor and admins."""

    serializer_class = CourseCompletionLogSerializer
    permission_classes = [permissions.IsAuthenticated, IsInstructorOrAdmin]

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return CourseCompletionLog.objects.none()

        user = self.request.user
        queryset = CourseCompletionLog.objects.select_related("course", "instructor").prefetch_related(
            "entries__student", "entries__certificate"
        )
        course_id = self.request.query_params.get("course_id")
        if course_id:
            queryset = queryset.filter(course_id=course_id)
        if is_admin_user(user):
            return queryset
        return queryset.filter(course__instructor=user)
