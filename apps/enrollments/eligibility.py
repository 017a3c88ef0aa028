"""
Certificate eligibility.

``EligibilityEvaluator.evaluate`` is the single decision point used by the
automatic per-module check, the instructor eligibility endpoint and the bulk
course-completion workflow. It only reads.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from apps.common.utils import round_half_up

from .models import Certificate

logger = logging.getLogger(__name__)

DISTINCTION_THRESHOLD = 90
MERIT_THRESHOLD = 80


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    reason: str
    overall_score: int | None = None
    grade: str | None = None
    completed_assignments: int = 0
    total_assignments: int = 0
    completed_quizzes: int = 0
    total_quizzes: int = 0

    def as_dict(self) -> dict:
        return {
            "eligible": self.eligible,
            "reason": self.reason,
            "overall_score": self.overall_score,
            "grade": self.grade,
            "completed_assignments": self.completed_assignments,
            "total_assignments": self.total_assignments,
            "completed_quizzes": self.completed_quizzes,
            "total_quizzes": self.total_quizzes,
        }


def grade_for_score(overall_score: int | None) -> str:
    if overall_score is None:
        return Certificate.Grade.PASS
    if overall_score >= DISTINCTION_THRESHOLD:
        return Certificate.Grade.DISTINCTION
    if overall_score >= MERIT_THRESHOLD:
        return Certificate.Grade.MERIT
    return Certificate.Grade.PASS


class EligibilityEvaluator:
    """Decides whether a student has met every assessment requirement of a course."""

    @staticmethod
    def _passing_assignment_grades(student, course, threshold) -> tuple[list[int], int]:
        from apps.assessments.models import Submission

        assignment_ids = list(course.assignments.values_list("id", flat=True))
        latest_by_assignment = {}
        # Ordered by attempt so the last one seen per assignment is the latest
        for submission in Submission.objects.filter(
            assignment_id__in=assignment_ids, student=student
        ).order_by("assignment_id", "attempt_number"):
            latest_by_assignment[submission.assignment_id] = submission

        passing = [
            submission.grade
            for submission in latest_by_assignment.values()
            if submission.status == Submission.Status.GRADED
            and submission.grade is not None
            and submission.grade >= threshold
        ]
        return passing, len(assignment_ids)

    @staticmethod
    def _passing_quiz_scores(student, course, threshold) -> tuple[list[Decimal], int]:
        from apps.assessments.models import QuizAttempt

        total_quizzes = course.quizzes.count()
        attempts = QuizAttempt.objects.filter(quiz__course=course, student=student)
        passing = [
            attempt.score for attempt in attempts if attempt.score >= Decimal(threshold)
        ]
        return passing, total_quizzes

    @classmethod
    def evaluate(cls, student, course, is_marking_complete: bool = False) -> EligibilityResult:
        """
        Evaluates ``student`` against ``course``.

        ``is_marking_complete`` is True only while the instructor's bulk
        completion run is in progress, when the course is not yet flagged as
        complete but is about to be.
        """
        from .services import EnrollmentService

        if not EnrollmentService.is_enrolled(student, course):
            return EligibilityResult(False, "Student is not enrolled in this course")

        if not is_marking_complete and not course.is_completed_by_instructor:
            return EligibilityResult(
                False, "Course has not been marked as complete by instructor"
            )

        threshold = course.passing_threshold
        grades, total_assignments = cls._passing_assignment_grades(student, course, threshold)
        scores, total_quizzes = cls._passing_quiz_scores(student, course, threshold)
        counts = {
            "completed_assignments": len(grades),
            "total_assignments": total_assignments,
            "completed_quizzes": len(scores),
            "total_quizzes": total_quizzes,
        }

        if len(grades) < total_assignments:
            return EligibilityResult(
                False,
                f"Student has completed {len(grades)} out of {total_assignments} assignments with passing grades",
                **counts,
            )
        if len(scores) < total_quizzes:
            return EligibilityResult(
                False,
                f"Student has completed {len(scores)} out of {total_quizzes} quizzes with passing scores",
                **counts,
            )

        all_results = [Decimal(g) for g in grades] + [Decimal(s) for s in scores]
        overall_score = None
        if all_results:
            overall_score = int(round_half_up(sum(all_results) / len(all_results)))

        grade = grade_for_score(overall_score)
        score_text = overall_score if overall_score is not None else "N/A"
        logger.debug(
            f"Student {student.id} eligible for course {course.id}: score={score_text}, grade={grade}"
        )
        return EligibilityResult(
            True,
            f"All requirements completed. Overall score: {score_text}%",
            overall_score=overall_score,
            grade=str(grade),
            **counts,
        )
