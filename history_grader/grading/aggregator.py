"""
Grading aggregator - turns a completed set of answers into a submission.

Grades Section A, then Section B, strictly in that order. If either call
fails the whole result falls back to an ungraded submission awaiting manual
review; the student's answers are always kept.
"""

import logging
from collections.abc import Callable, Sequence
from decimal import Decimal

from history_grader.grading.client import GradingClient, GradingServiceError
from history_grader.models import (
    AggregatedGrade,
    Assignment,
    Submission,
    SubmissionStatus,
)

logger = logging.getLogger(__name__)

AI_FEEDBACK_PREFIX = "[Automated AI Review]:"

GRADING_SECTION_A = "Grading Section A (structural)..."
GRADING_SECTION_B = "Grading Section B (essays) against the STPM rubric..."

FALLBACK_FEEDBACK = (
    "Automated grading is unavailable at the moment. Your answers have been "
    "received; please wait for your teacher to grade them manually."
)


class GradingAggregator:
    """
    Combines the two section gradings into one submission record.

    grade_sections raises on failure and is what teacher review re-invokes;
    build_submission never raises for grading-service failures.
    """

    def __init__(self, client: GradingClient):
        self._client = client

    def grade_sections(
        self,
        assignment: Assignment,
        answers_a: Sequence[str],
        answers_b: Sequence[str],
        progress: Callable[[str], None] | None = None,
    ) -> AggregatedGrade:
        """
        Grade both sections sequentially.

        Section B is only requested after Section A has returned.

        Args:
            assignment: The assignment that was answered.
            answers_a: Section A answers in question order.
            answers_b: Section B answers in question order.
            progress: Called with a status message before each section call.

        Raises:
            GradingServiceError: If either call fails.
        """
        report = progress or (lambda message: None)
        report(GRADING_SECTION_A)
        section_a = self._client.grade_structural(assignment.section_a_questions, answers_a)
        report(GRADING_SECTION_B)
        section_b = self._client.grade_essay(assignment.section_b_questions, answers_b)
        return AggregatedGrade(section_a=section_a, section_b=section_b)

    def build_submission(
        self,
        assignment: Assignment,
        student_id: str,
        student_name: str,
        answers_a: Sequence[str],
        answers_b: Sequence[str],
        progress: Callable[[str], None] | None = None,
    ) -> Submission:
        """
        Grade the answers and build the submission to hand to the store.

        Args:
            assignment: The assignment that was answered.
            student_id: Id of the answering student.
            student_name: Display name of the student.
            answers_a: Section A answers in question order.
            answers_b: Section B answers in question order.
            progress: Called with a status message before each section call.

        Returns:
            A submitted Submission, AI-graded or fallback.
        """
        try:
            grade = self.grade_sections(assignment, answers_a, answers_b, progress)
        except GradingServiceError as e:
            logger.warning(
                "Automated grading failed for %s on %s, falling back to manual review: %s",
                student_id,
                assignment.id,
                e,
            )
            return fallback_submission(
                assignment, student_id, student_name, answers_a, answers_b
            )

        return graded_submission(
            assignment, student_id, student_name, answers_a, answers_b, grade
        )


def graded_submission(
    assignment: Assignment,
    student_id: str,
    student_name: str,
    answers_a: Sequence[str],
    answers_b: Sequence[str],
    grade: AggregatedGrade,
) -> Submission:
    """Build a submission carrying the grading service's marks."""
    total = grade.total
    logger.info("Automated grading for %s on %s: %s", student_id, assignment.id, total)
    return Submission(
        assignment_id=assignment.id,
        student_id=student_id,
        student_name=student_name,
        answers_a=tuple(answers_a),
        answers_b=tuple(answers_b),
        marks_a=grade.section_a.scores,
        marks_b=grade.section_b.scores,
        ai_comments_a=grade.section_a.comments,
        ai_comments_b=grade.section_b.comments,
        rubric_breakdowns=grade.section_b.rubric_breakdowns,
        status=SubmissionStatus.SUBMITTED,
        aggregate_mark=total,
        overall_feedback=(
            f"{AI_FEEDBACK_PREFIX} {grade.section_a.overall_feedback} "
            f"{grade.section_b.overall_feedback}"
        ),
        ai_feedback=grade.section_b.overall_feedback,
        ai_suggested_mark=total,
    )


def fallback_submission(
    assignment: Assignment,
    student_id: str,
    student_name: str,
    answers_a: Sequence[str],
    answers_b: Sequence[str],
) -> Submission:
    """Build an ungraded submission that keeps the answers for manual review."""
    return Submission(
        assignment_id=assignment.id,
        student_id=student_id,
        student_name=student_name,
        answers_a=tuple(answers_a),
        answers_b=tuple(answers_b),
        status=SubmissionStatus.SUBMITTED,
        aggregate_mark=Decimal(0),
        overall_feedback=FALLBACK_FEEDBACK,
    )
