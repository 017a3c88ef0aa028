"""
URL configuration for the coursemarket project.

Every API lives under /api/v1/; schema and docs under /api/schema/.
"""

from django.conf import settings
from django.conf.urls.static import static
from django.urls import include, path
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)

urlpatterns = [
    # API V1 URLs
    path(
        "api/v1/",
        include(
            [
                path("auth/", include("apps.users.urls")),  # Login, refresh, profile
                path("", include("apps.courses.urls")),  # courses/...
                path("assessments/", include("apps.assessments.urls")),
                path("", include("apps.enrollments.urls")),  # enrollments/, certificates/, completion-logs/
            ]
        ),
    ),
    # API Schema Documentation (Swagger/Redoc)
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path(
        "api/schema/swagger-ui/",
        SpectacularSwaggerView.as_view(url_name="schema"),
        name="swagger-ui",
    ),
    path(
        "api/schema/redoc/",
        SpectacularRedocView.as_view(url_name="schema"),
        name="redoc",
    ),
]

# Serve uploaded submissions and rendered certificates during development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
