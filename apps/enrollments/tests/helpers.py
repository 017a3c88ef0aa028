"""Shared builders for the progress, assessment and certification tests."""

from decimal import Decimal

from django.utils import timezone

from apps.assessments.models import Assignment, Question, Quiz, QuizAttempt, Submission
from apps.courses.models import Course, Module
from apps.enrollments.models import Enrollment
from apps.users.models import User


class FakeCertificateRenderer:
    version = "test-1"
    rendered = []
    discarded = []

    def render(self, student_name, course_title, date, instructor_name, certificate_id, grade, score):
        self.rendered.append(certificate_id)
        return f"/media/certificates/{certificate_id}.pdf"

    def discard(self, certificate_id):
        self.discarded.append(certificate_id)


class FailingCertificateRenderer:
    version = "failing"

    def render(self, **kwargs):
        raise RuntimeError("renderer offline")


FAKE_RENDERER = "apps.enrollments.tests.helpers.FakeCertificateRenderer"
FAILING_RENDERER = "apps.enrollments.tests.helpers.FailingCertificateRenderer"


def make_user(email, role=User.Role.LEARNER, **extra):
    return User.objects.create_user(
        email=email,
        password="testpass123",
        first_name=extra.pop("first_name", email.split("@")[0].title()),
        last_name=extra.pop("last_name", "Tester"),
        role=role,
        **extra,
    )


def make_course(instructor, title="Python Basics", modules=1, **extra):
    course = Course.objects.create(title=title, instructor=instructor, **extra)
    for order in range(modules):
        Module.objects.create(course=course, title=f"Module {order + 1}", order=order)
    return course


def enroll(user, course, status=Enrollment.Status.ACTIVE):
    return Enrollment.objects.create(user=user, course=course, status=status)


def make_assignment(course, title="Essay", **extra):
    module = extra.pop("module", None) or course.modules.order_by("order").first()
    return Assignment.objects.create(course=course, module=module, title=title, **extra)


def make_quiz(course, points=(1,), answers=None, title="Quiz"):
    """Creates a quiz with one question per entry in ``points``; every answer key is A unless given."""
    module = course.modules.order_by("order").first()
    quiz = Quiz.objects.create(course=course, module=module, title=title)
    answers = answers or ["A"] * len(points)
    for order, (value, correct) in enumerate(zip(points, answers)):
        Question.objects.create(
            quiz=quiz,
            order=order,
            text=f"Question {order + 1}",
            option_a="Option A",
            option_b="Option B",
            option_c="Option C",
            option_d="Option D",
            correct_answer=correct,
            points=value,
        )
    return quiz


def graded_submission(assignment, student, grade, status=Submission.Status.GRADED, attempt_number=1):
    return Submission.objects.create(
        assignment=assignment,
        student=student,
        attempt_number=attempt_number,
        content="My answer",
        grade=grade,
        status=status,
        graded_at=timezone.now(),
        graded_by=assignment.course.instructor,
    )


def quiz_attempt(quiz, student, score):
    return QuizAttempt.objects.create(
        quiz=quiz,
        student=student,
        answers=[{"question_index": 0, "selected_answer": "A"}],
        score=Decimal(str(score)),
        earned_points=0,
        total_points=0,
    )
