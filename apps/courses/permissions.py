from rest_framework import permissions

from apps.users.permissions import is_admin_user


def _course_for(obj):
    """Resolves the owning course for a Course, Module, Lesson, Assignment or Quiz."""
    if hasattr(obj, "module") and hasattr(obj.module, "course"):
        return obj.module.course
    if hasattr(obj, "course"):
        return obj.course
    return obj


class IsEnrolledOrInstructorOrAdmin(permissions.BasePermission):
    """
    Allows access if the user is enrolled in the course, is the instructor, or is an admin.
    """

    message = "Not enrolled in this course"

    def has_object_permission(self, request, view, obj):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        course = _course_for(obj)
        if is_admin_user(user) or course.instructor_id == user.pk:
            return True

        from apps.enrollments.services import EnrollmentService

        return EnrollmentService.is_enrolled(user, course)
