from rest_framework import serializers

from apps.users.serializers import UserBasicSerializer

from .models import Certificate, CompletionLogEntry, CourseCompletionLog, Enrollment


class EnrollmentSerializer(serializers.ModelSerializer):
    user = UserBasicSerializer(read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = Enrollment
        fields = ("id", "user", "course", "enrolled_at", "status", "status_display")
        read_only_fields = fields


class CertificateSerializer(serializers.ModelSerializer):
    student = UserBasicSerializer(read_only=True)
    issued_by = UserBasicSerializer(read_only=True)
    course_title = serializers.CharField(source="course.title", read_only=True)

    class Meta:
        model = Certificate
        fields = (
            "id",
            "certificate_id",
            "student",
            "course",
            "course_title",
            "issued_at",
            "grade",
            "overall_score",
            "issued_by",
            "certificate_url",
            "verification_url",
            "is_revoked",
            "revoked_at",
            "revocation_reason",
        )
        read_only_fields = fields


class CertificateVerificationSerializer(serializers.ModelSerializer):
    """Public view of a valid certificate."""

    valid = serializers.SerializerMethodField()
    student_name = serializers.CharField(source="student.display_name", read_only=True)
    course_title = serializers.CharField(source="course.title", read_only=True)

    class Meta:
        model = Certificate
        fields = (
            "valid",
            "certificate_id",
            "student_name",
            "course_title",
            "issued_at",
            "grade",
            "overall_score",
        )
        read_only_fields = fields

    def get_valid(self, obj) -> bool:
        return not obj.is_revoked


class RevokeCertificateSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class CompletionLogEntrySerializer(serializers.ModelSerializer):
    student = UserBasicSerializer(read_only=True)
    certificate_id = serializers.CharField(
        source="certificate.certificate_id", read_only=True, allow_null=True, default=None
    )

    class Meta:
        model = CompletionLogEntry
        fields = ("student", "eligible", "reason", "certificate_generated", "certificate_id")
        read_only_fields = fields


class CourseCompletionLogSerializer(serializers.ModelSerializer):
    instructor = UserBasicSerializer(read_only=True)
    entries = CompletionLogEntrySerializer(many=True, read_only=True)

    class Meta:
        model = CourseCompletionLog
        fields = ("id", "course", "instructor", "action", "timestamp", "metadata", "entries")
        read_only_fields = fields
