from django.urls import include, path
from rest_framework_nested import routers

from .viewsets import AssignmentViewSet, QuizViewSet

app_name = "assessments"

router = routers.SimpleRouter()
router.register(r"assignments", AssignmentViewSet, basename="assignment")
router.register(r"quizzes", QuizViewSet, basename="quiz")

urlpatterns = [
    path("", include(router.urls)),
]

# Assignments:
#   Submit:          /api/v1/assessments/assignments/{id}/submit/
#   Grade:           /api/v1/assessments/assignments/{id}/grade/{student_id}/
#   All submissions: /api/v1/assessments/assignments/{id}/submissions/
#   Own submission:  /api/v1/assessments/assignments/{id}/my-submission/
# Quizzes:
#   Detail:          /api/v1/assessments/quizzes/{id}/
#   Submit:          /api/v1/assessments/quizzes/{id}/submit/
#   Own attempt:     /api/v1/assessments/quizzes/{id}/my-attempt/
