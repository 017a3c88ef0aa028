from rest_framework import serializers

from apps.files.services import StorageService
from apps.users.serializers import UserBasicSerializer  # For student/graded_by info

from .models import Assignment, Question, Quiz, QuizAttempt, Submission


class AssignmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Assignment
        fields = (
            "id",
            "course",
            "module",
            "title",
            "description",
            "due_date",
            "max_file_size",
            "allowed_file_types",
            "passing_grade",
            "allow_resubmission",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class SubmissionSerializer(serializers.ModelSerializer):
    student = UserBasicSerializer(read_only=True)
    graded_by = UserBasicSerializer(read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    file_url = serializers.SerializerMethodField()

    class Meta:
        model = Submission
        fields = (
            "id",
            "assignment",
            "student",
            "attempt_number",
            "content",
            "file_url",
            "submitted_at",
            "grade",
            "feedback",
            "status",
            "status_display",
            "graded_at",
            "graded_by",
            "is_resubmission",
            "original_submission",
        )
        read_only_fields = fields

    def get_file_url(self, obj) -> str | None:
        return StorageService.get_file_url(obj.file.name) if obj.file else None


class SubmitAssignmentSerializer(serializers.Serializer):
    """Request body for a submission; both parts are optional here and checked by the service."""

    content = serializers.CharField(required=False, allow_blank=True, default="")
    file = serializers.FileField(required=False, allow_null=True, default=None)


class GradeSubmissionSerializer(serializers.Serializer):
    """
    Request body for grading. ``grade`` is passed through untouched so that
    SubmissionService applies a single set of validation rules.
    """

    grade = serializers.JSONField(required=False, allow_null=True, default=None)
    feedback = serializers.CharField(required=False, allow_blank=True, default="")


class GradingOutcomeSerializer(serializers.Serializer):
    submission = SubmissionSerializer()
    grade = serializers.IntegerField()
    status = serializers.CharField()
    graded_at = serializers.DateTimeField()
    passing_grade = serializers.IntegerField()
    resubmission_required = serializers.BooleanField()
    resubmission_deadline = serializers.DateTimeField(allow_null=True)
    reason = serializers.CharField(allow_null=True)


class QuestionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Question
        fields = (
            "id",
            "order",
            "text",
            "option_a",
            "option_b",
            "option_c",
            "option_d",
            "correct_answer",
            "points",
        )
        read_only_fields = fields


class LearnerQuestionSerializer(QuestionSerializer):
    """Question without its answer key."""

    class Meta(QuestionSerializer.Meta):
        fields = tuple(f for f in QuestionSerializer.Meta.fields if f != "correct_answer")
        read_only_fields = fields


class QuizSerializer(serializers.ModelSerializer):
    questions = serializers.SerializerMethodField()
    question_count = serializers.SerializerMethodField()

    class Meta:
        model = Quiz
        fields = (
            "id",
            "course",
            "module",
            "title",
            "description",
            "time_limit",
            "question_count",
            "questions",
        )
        read_only_fields = fields

    def get_questions(self, obj):
        questions = obj.questions.order_by("order")
        if self.context.get("include_answers"):
            return QuestionSerializer(questions, many=True).data
        return LearnerQuestionSerializer(questions, many=True).data

    def get_question_count(self, obj) -> int:
        return obj.questions.count()


class QuizAttemptSerializer(serializers.ModelSerializer):
    student = UserBasicSerializer(read_only=True)

    class Meta:
        model = QuizAttempt
        fields = (
            "id",
            "quiz",
            "student",
            "answers",
            "score",
            "earned_points",
            "total_points",
            "attempted_at",
        )
        read_only_fields = fields


class SubmitQuizSerializer(serializers.Serializer):
    """``answers`` is validated by QuizGradingService."""

    answers = serializers.JSONField(required=False, allow_null=True, default=None)
