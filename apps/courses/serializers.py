from rest_framework import serializers

from apps.users.serializers import UserBasicSerializer  # For instructor info

from .models import Course, Lesson, Module


class LessonSerializer(serializers.ModelSerializer):
    content_type_display = serializers.CharField(
        source="get_content_type_display", read_only=True
    )

    class Meta:
        model = Lesson
        fields = (
            "id",
            "module",
            "title",
            "content_type",
            "content_type_display",
            "content",
            "content_url",
            "duration",
            "order",
        )
        read_only_fields = fields


class ModuleSerializer(serializers.ModelSerializer):
    lessons = LessonSerializer(many=True, read_only=True)

    class Meta:
        model = Module
        fields = ("id", "course", "title", "description", "order", "lessons")
        read_only_fields = fields


class CourseSerializer(serializers.ModelSerializer):
    instructor = UserBasicSerializer(read_only=True)
    module_count = serializers.SerializerMethodField()

    class Meta:
        model = Course
        fields = (
            "id",
            "title",
            "slug",
            "description",
            "instructor",
            "passing_threshold",
            "is_completed_by_instructor",
            "completed_at",
            "module_count",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields

    def get_module_count(self, obj) -> int:
        return obj.modules.count()


class CourseProgressSerializer(serializers.Serializer):
    """A student's progress record for one course, plus the derived percentage."""

    course = serializers.UUIDField(source="course_id")
    completed_modules = serializers.ListField(child=serializers.CharField())
    completed_lessons = serializers.ListField(child=serializers.CharField())
    grades = serializers.DictField(child=serializers.IntegerField())
    scores = serializers.DictField(child=serializers.FloatField())
    progress_percentage = serializers.SerializerMethodField()

    def get_progress_percentage(self, obj) -> int:
        from apps.enrollments.services import ProgressTrackerService

        return ProgressTrackerService.calculate_course_progress_percentage(obj.student, obj.course)


class StudentProgressSummarySerializer(serializers.Serializer):
    """One row of the instructor's progress overview."""

    student = UserBasicSerializer()
    completed_modules = serializers.ListField(child=serializers.CharField())
    progress_percentage = serializers.IntegerField()


class MarkCompleteRequestSerializer(serializers.Serializer):
    timeout = serializers.IntegerField(
        required=False, min_value=1, help_text="Stop evaluating students after this many seconds"
    )
