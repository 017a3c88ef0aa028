import logging

from django.shortcuts import get_object_or_404
from drf_spectacular.utils import extend_schema
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from apps.common.exceptions import NotFoundError
from apps.enrollments.models import Enrollment
from apps.users.models import User
from apps.users.permissions import is_admin_user

from .models import Assignment, Quiz, QuizAttempt
from .serializers import (
    AssignmentSerializer,
    GradeSubmissionSerializer,
    GradingOutcomeSerializer,
    QuizAttemptSerializer,
    QuizSerializer,
    SubmissionSerializer,
    SubmitAssignmentSerializer,
    SubmitQuizSerializer,
)
from .services import QuizGradingService, SubmissionService

logger = logging.getLogger(__name__)


def _visible_to(queryset, user):
    """Instructors and admins see everything; learners see their enrolled courses."""
    if is_admin_user(user) or user.role == User.Role.INSTRUCTOR:
        return queryset
    enrolled_course_ids = Enrollment.objects.filter(
        user=user, status__in=Enrollment.ENROLLED_STATUSES
    ).values_list("course_id", flat=True)
    return queryset.filter(course_id__in=enrolled_course_ids)


@extend_schema(tags=["Assessments"])
class AssignmentViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Assignments with submit / grade / submission-listing actions.
    Filter the list with ?course=<id>.
    """

    serializer_class = AssignmentSerializer
    permission_classes = [permissions.IsAuthenticated]
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Assignment.objects.none()

        queryset = Assignment.objects.select_related("course", "module")
        course_id = self.request.query_params.get("course")
        if course_id:
            queryset = queryset.filter(course_id=course_id)
        return _visible_to(queryset, self.request.user)

    def get_assignment(self) -> Assignment:
        # Submission rules (enrollment, ownership) are enforced by SubmissionService
        return get_object_or_404(Assignment.objects.select_related("course"), pk=self.kwargs["pk"])

    @extend_schema(request=SubmitAssignmentSerializer, responses={201: SubmissionSerializer})
    @action(detail=True, methods=["post"])
    def submit(self, request, pk=None):
        assignment = self.get_assignment()
        serializer = SubmitAssignmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        submission = SubmissionService.submit(
            assignment,
            request.user,
            content=serializer.validated_data.get("content"),
            file=serializer.validated_data.get("file"),
        )
        return Response(SubmissionSerializer(submission).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=GradeSubmissionSerializer, responses={200: GradingOutcomeSerializer})
    @action(detail=True, methods=["post"], url_path=r"grade/(?P<student_id>[0-9a-fA-F-]{32,36})")
    def grade(self, request, pk=None, student_id=None):
        assignment = self.get_assignment()
        # An unknown student surfaces as "Submission not found" from the service
        student = User.objects.filter(pk=student_id).first()

        serializer = GradeSubmissionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        outcome = SubmissionService.grade(
            assignment,
            student,
            serializer.validated_data.get("grade"),
            feedback=serializer.validated_data.get("feedback", ""),
            grader=request.user,
        )
        return Response(GradingOutcomeSerializer(outcome).data)

    @extend_schema(responses={200: SubmissionSerializer(many=True)})
    @action(detail=True, methods=["get"])
    def submissions(self, request, pk=None):
        assignment = self.get_assignment()
        submissions = SubmissionService.submissions_for(assignment, request.user)
        page = self.paginate_queryset(submissions)
        if page is not None:
            return self.get_paginated_response(SubmissionSerializer(page, many=True).data)
        return Response(SubmissionSerializer(submissions, many=True).data)

    @extend_schema(responses={200: SubmissionSerializer})
    @action(detail=True, methods=["get"], url_path="my-submission")
    def my_submission(self, request, pk=None):
        assignment = self.get_assignment()
        submission = SubmissionService.latest_submission(assignment, request.user)
        if submission is None:
            raise NotFoundError("Submission not found")
        return Response(SubmissionSerializer(submission).data)


@extend_schema(tags=["Assessments"])
class QuizViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Quizzes. Learners never see the answer key; the course instructor and
    admins do. Filter the list with ?course=<id>.
    """

    serializer_class = QuizSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Quiz.objects.none()

        queryset = Quiz.objects.select_related("course", "module").prefetch_related("questions")
        course_id = self.request.query_params.get("course")
        if course_id:
            queryset = queryset.filter(course_id=course_id)
        return _visible_to(queryset, self.request.user)

    def get_serializer_context(self):
        context = super().get_serializer_context()
        user = self.request.user
        quiz_pk = self.kwargs.get("pk")
        include_answers = is_admin_user(user)
        if not include_answers and quiz_pk:
            include_answers = Quiz.objects.filter(pk=quiz_pk, course__instructor=user).exists()
        context["include_answers"] = include_answers
        return context

    @extend_schema(request=SubmitQuizSerializer)
    @action(detail=True, methods=["post"])
    def submit(self, request, pk=None):
        quiz = get_object_or_404(Quiz.objects.select_related("course"), pk=pk)
        serializer = SubmitQuizSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        attempt, result = QuizGradingService.submit_attempt(
            quiz, request.user, serializer.validated_data.get("answers")
        )
        return Response(
            {
                "success": True,
                "message": "Quiz submitted and graded successfully",
                "data": {
                    "attempt": QuizAttemptSerializer(attempt).data,
                    **result.as_dict(),
                },
            },
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(responses={200: QuizAttemptSerializer})
    @action(detail=True, methods=["get"], url_path="my-attempt")
    def my_attempt(self, request, pk=None):
        attempt = QuizAttempt.objects.filter(quiz_id=pk, student=request.user).first()
        if attempt is None:
            raise NotFoundError("Quiz attempt not found")
        return Response(QuizAttemptSerializer(attempt).data)
