import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.common.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from apps.common.utils import round_half_up
from apps.enrollments.services import EnrollmentService, ProgressTrackerService
from apps.files.services import FileValidationService
from apps.notifications.services import NotificationService
from apps.users.permissions import is_admin_user

from .models import Assignment, Question, Quiz, QuizAttempt, Submission

logger = logging.getLogger(__name__)

ALREADY_SUBMITTED_MESSAGE = (
    "Assignment has already been submitted. "
    "Only one submission is allowed unless resubmission is required."
)
WINDOW_EXPIRED_MESSAGE = (
    "Resubmission window has expired. "
    "Resubmissions are only allowed within {days} days of grading."
)
QUIZ_ALREADY_SUBMITTED_MESSAGE = (
    "Quiz has already been submitted. Only one submission is allowed per quiz."
)


def resubmission_window() -> timedelta:
    return timedelta(days=getattr(settings, "ASSIGNMENT_RESUBMISSION_WINDOW_DAYS", 7))


@dataclass(frozen=True)
class GradingOutcome:
    submission: Submission
    grade: int
    status: str
    graded_at: datetime
    passing_grade: int
    resubmission_required: bool
    resubmission_deadline: datetime | None = None
    reason: str | None = None


@dataclass
class QuizScore:
    earned_points: int
    total_points: int
    percentage: Decimal
    questions_correct: int
    total_questions: int
    question_results: list = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "earned_points": self.earned_points,
            "total_points": self.total_points,
            "percentage": float(self.percentage),
            "questions_correct": self.questions_correct,
            "total_questions": self.total_questions,
            "question_results": self.question_results,
        }


class SubmissionService:
    """Submission lifecycle for assignments: submit, resubmit and grade."""

    @staticmethod
    def coerce_grade(value) -> int:
        """Accepts ints, integral floats and integer strings in [0, 100]."""
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError("Grade is required")

        invalid = ValidationError(
            "Grade must be a number between 0 and 100", details={"grade": str(value)}
        )
        if isinstance(value, bool):
            raise invalid
        if isinstance(value, int):
            grade = value
        elif isinstance(value, float) and value.is_integer():
            grade = int(value)
        elif isinstance(value, str):
            try:
                grade = int(value.strip())
            except ValueError:
                raise invalid
        else:
            raise invalid

        if not 0 <= grade <= 100:
            raise invalid
        return grade

    @staticmethod
    def latest_submission(assignment: Assignment, student, for_update: bool = False) -> Submission | None:
        qs = Submission.objects.filter(assignment=assignment, student=student)
        if for_update:
            qs = qs.select_for_update()
        return qs.order_by("-attempt_number").first()

    @staticmethod
    def submissions_for(assignment: Assignment, requester):
        """All submissions for an assignment; visible to the course instructor or an admin."""
        if not (assignment.course.is_instructor(requester) or is_admin_user(requester)):
            raise ForbiddenError("Not authorized to view submissions for this assignment")
        return (
            Submission.objects.filter(assignment=assignment)
            .select_related("student", "graded_by")
            .order_by("student__email", "attempt_number")
        )

    @staticmethod
    def _check_can_submit(assignment: Assignment, latest: Submission, now: datetime):
        if latest.status == Submission.Status.RESUBMISSION_REQUIRED:
            graded_at = latest.graded_at or latest.submitted_at
            deadline = graded_at + resubmission_window()
            if now > deadline:
                logger.warning(
                    f"Rejected resubmission for assignment {assignment.id} by {latest.student.email}: window closed {deadline}"
                )
                raise ConflictError(
                    WINDOW_EXPIRED_MESSAGE.format(days=resubmission_window().days),
                    details={"resubmission_deadline": deadline.isoformat()},
                )
            return

        if not assignment.allow_resubmission:
            logger.warning(
                f"Rejected duplicate submission for assignment {assignment.id} by {latest.student.email}"
            )
            raise ConflictError(
                ALREADY_SUBMITTED_MESSAGE,
                details={"current_status": latest.status},
            )

    @classmethod
    def submit(cls, assignment: Assignment, student, content: str | None = None, file=None) -> Submission:
        course = assignment.course
        if not EnrollmentService.is_enrolled(student, course):
            raise ForbiddenError("Not enrolled in this course")

        if file is not None:
            FileValidationService.validate(
                file, assignment.max_file_size, assignment.allowed_file_types
            )

        content = (content or "").strip()
        if not content and file is None:
            raise ValidationError("Submission content or file is required")

        now = timezone.now()
        try:
            with transaction.atomic():
                latest = cls.latest_submission(assignment, student, for_update=True)
                if latest is not None:
                    cls._check_can_submit(assignment, latest, now)
                    latest.transition_to(Submission.Status.RESUBMITTED)
                    latest.save(update_fields=["status", "updated_at"])

                submission = Submission(
                    assignment=assignment,
                    student=student,
                    attempt_number=latest.attempt_number + 1 if latest else 1,
                    content=content,
                    submitted_at=now,
                    status=Submission.Status.PENDING,
                    is_resubmission=latest is not None,
                    original_submission_id=(
                        (latest.original_submission_id or latest.pk) if latest else None
                    ),
                )
                if file is not None:
                    submission.file = file
                submission.save()
                # Pending placeholder until the submission is graded
                ProgressTrackerService.record_grade(student, course, assignment.pk, 0)
        except IntegrityError:
            # A concurrent submit took the same attempt number
            raise ConflictError(ALREADY_SUBMITTED_MESSAGE)

        logger.info(
            f"Submission {submission.id} (attempt {submission.attempt_number}) created "
            f"for assignment {assignment.id} by {student.email}"
        )
        return submission

    @classmethod
    def grade(cls, assignment: Assignment, student, grade, feedback: str = "", grader=None) -> GradingOutcome:
        value = cls.coerce_grade(grade)
        course = assignment.course
        if not course.is_instructor(grader):
            raise ForbiddenError("Not authorized to grade assignments for this course")

        with transaction.atomic():
            submission = cls.latest_submission(assignment, student, for_update=True)
            if submission is None:
                raise NotFoundError("Submission not found")

            passed = value >= assignment.passing_grade
            submission.transition_to(
                Submission.Status.GRADED if passed else Submission.Status.RESUBMISSION_REQUIRED
            )
            submission.grade = value
            submission.feedback = feedback or ""
            submission.graded_at = timezone.now()
            submission.graded_by = grader
            submission.save(
                update_fields=["grade", "feedback", "status", "graded_at", "graded_by", "updated_at"]
            )
            ProgressTrackerService.record_grade(student, course, assignment.pk, value)

        outcome = GradingOutcome(
            submission=submission,
            grade=value,
            status=submission.status,
            graded_at=submission.graded_at,
            passing_grade=assignment.passing_grade,
            resubmission_required=not passed,
            resubmission_deadline=None if passed else submission.graded_at + resubmission_window(),
            reason=None
            if passed
            else f"Grade of {value}% is below the passing threshold of {assignment.passing_grade}%",
        )
        logger.info(
            f"Submission {submission.id} graded {value} by {grader.email}: {submission.status}"
        )

        if passed:
            NotificationService.notify_submission_graded(submission)
        else:
            NotificationService.notify_resubmission_required(
                submission, outcome.reason, outcome.resubmission_deadline
            )
        return outcome


class QuizGradingService:
    """Scores multiple-choice quizzes and enforces the single-attempt rule."""

    VALID_ANSWERS = set(Question.Answer.values)

    @staticmethod
    def score(quiz: Quiz, answers: list[dict]) -> QuizScore:
        """
        Scores ``answers`` ([{question_index, selected_answer}]) against the
        quiz's answer key. Only answered questions count toward total points.
        """
        questions = list(quiz.questions.order_by("order"))
        earned_points = 0
        total_points = 0
        correct = 0
        results = []

        for answer in answers:
            index = answer.get("question_index")
            selected = answer.get("selected_answer")
            question = None
            if isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(questions):
                question = questions[index]

            if question is None:
                results.append(
                    {
                        "question_index": index,
                        "selected_answer": selected,
                        "correct_answer": None,
                        "is_correct": False,
                        "points": 0,
                        "possible_points": 0,
                        "error": "Question not found",
                    }
                )
                continue

            possible = question.effective_points
            is_correct = selected == question.correct_answer
            points = possible if is_correct else 0
            correct += int(is_correct)
            earned_points += points
            total_points += possible
            results.append(
                {
                    "question_index": index,
                    "question_text": question.text,
                    "selected_answer": selected,
                    "correct_answer": question.correct_answer,
                    "is_correct": is_correct,
                    "points": points,
                    "possible_points": possible,
                }
            )

        if total_points > 0:
            percentage = round_half_up(Decimal(earned_points) / Decimal(total_points) * 100, 2)
        else:
            percentage = Decimal("0.00")

        return QuizScore(
            earned_points=earned_points,
            total_points=total_points,
            percentage=percentage,
            questions_correct=correct,
            total_questions=len(questions),
            question_results=results,
        )

    @classmethod
    def validate_answers(cls, answers) -> list[dict]:
        if not isinstance(answers, list) or not answers:
            raise ValidationError("Answers are required")

        errors = []
        for position, answer in enumerate(answers):
            if not isinstance(answer, dict):
                errors.append({"answer": position, "error": "Answer must be an object"})
                continue
            index = answer.get("question_index")
            if not isinstance(index, int) or isinstance(index, bool):
                errors.append({"answer": position, "error": "question_index must be an integer"})
            if answer.get("selected_answer") not in cls.VALID_ANSWERS:
                errors.append({"answer": position, "error": "selected_answer must be one of A, B, C, D"})
        if errors:
            raise ValidationError("Invalid answers", details=errors)
        return answers

    @classmethod
    def submit_attempt(cls, quiz: Quiz, student, answers) -> tuple[QuizAttempt, QuizScore]:
        course = quiz.course
        if not EnrollmentService.is_enrolled(student, course):
            raise ForbiddenError("Not enrolled in this course")
        if QuizAttempt.objects.filter(quiz=quiz, student=student).exists():
            raise ConflictError(QUIZ_ALREADY_SUBMITTED_MESSAGE)

        answers = cls.validate_answers(answers)
        result = cls.score(quiz, answers)

        try:
            with transaction.atomic():
                attempt = QuizAttempt.objects.create(
                    quiz=quiz,
                    student=student,
                    answers=[
                        {"question_index": a["question_index"], "selected_answer": a["selected_answer"]}
                        for a in answers
                    ],
                    score=result.percentage,
                    earned_points=result.earned_points,
                    total_points=result.total_points,
                )
        except IntegrityError:
            raise ConflictError(QUIZ_ALREADY_SUBMITTED_MESSAGE)

        ProgressTrackerService.record_score(student, course, quiz.pk, result.percentage)
        logger.info(
            f"Quiz {quiz.id} attempt by {student.email}: {result.earned_points}/{result.total_points} "
            f"({result.percentage}%)"
        )
        return attempt, result
