from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import CertificateViewSet, CourseCompletionLogViewSet, EnrollmentViewSet

app_name = "enrollments"

router = SimpleRouter()
router.register(r"enrollments", EnrollmentViewSet, basename="enrollment")  # Read-only listing
router.register(r"certificates", CertificateViewSet, basename="certificate")
router.register(r"completion-logs", CourseCompletionLogViewSet, basename="completion-log")

urlpatterns = [
    path("", include(router.urls)),
]

# Certificates:
#   Mine:            /api/v1/certificates/
#   By student:      /api/v1/certificates/student/{student_id}/
#   By course:       /api/v1/certificates/course/{course_id}/
#   Verify (public): /api/v1/certificates/verify/{certificate_id}/
#   Revoke:          /api/v1/certificates/{certificate_id}/revoke/
