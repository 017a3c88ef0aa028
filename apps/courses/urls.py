from django.urls import include, path
from rest_framework_nested import routers  # Use nested routers

from .viewsets import CourseViewSet, LessonViewSet, ModuleViewSet

app_name = "courses"

# /courses/{pk}/
router = routers.SimpleRouter()
router.register(r"courses", CourseViewSet, basename="course")

# /courses/{course_pk}/modules/{pk}/
courses_router = routers.NestedSimpleRouter(router, r"courses", lookup="course")
courses_router.register(r"modules", ModuleViewSet, basename="course-module")

# /courses/{course_pk}/modules/{module_pk}/lessons/{pk}/
modules_router = routers.NestedSimpleRouter(courses_router, r"modules", lookup="module")
modules_router.register(r"lessons", LessonViewSet, basename="module-lesson")

urlpatterns = [
    path("", include(router.urls)),
    path("", include(courses_router.urls)),
    path("", include(modules_router.urls)),
]

# URL structure:
# Course:                 /api/v1/courses/{id}/
# Progress:               /api/v1/courses/{id}/progress/
# Eligibility:            /api/v1/courses/{id}/eligibility/
# Mark complete:          /api/v1/courses/{id}/mark-complete/
# Module (in)complete:    /api/v1/courses/{course_pk}/modules/{id}/complete/ | incomplete/
# Lesson (in)complete:    /api/v1/courses/{course_pk}/modules/{module_pk}/lessons/{id}/complete/
