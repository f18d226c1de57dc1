"""
Teacher review of a submission.

The teacher starts from the stored (or AI) marks, edits individual marks and
the feedback, optionally regenerates the AI analysis, and confirms. The
aggregate mark is always recomputed from the per-question marks on
confirmation; the AI-suggested mark is never replaced once recorded.
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from history_grader.grading.aggregator import GradingAggregator
from history_grader.models import (
    SECTION_A_MAX,
    SECTION_B_MAX,
    AggregatedGrade,
    Assignment,
    EssayRubricBreakdown,
    Submission,
    SubmissionStatus,
    total_of,
)

logger = logging.getLogger(__name__)

AI_SUMMARY_HEADER = "[AI Summary]"


class Section(str, Enum):
    """Assignment section a mark belongs to."""

    A = "a"
    B = "b"


class TeacherReview:
    """
    Working state of one teacher review.

    Marks start from the submission's stored marks, or zeros when automated
    grading failed. Nothing is written back until finalize() is called.
    """

    def __init__(self, submission: Submission, assignment: Assignment):
        """
        Initialize the review.

        Args:
            submission: The stored submission under review.
            assignment: The assignment it answers.

        Raises:
            ValueError: If the submission does not answer this assignment.
        """
        if submission.assignment_id != assignment.id:
            raise ValueError(
                f"Submission {submission.id} answers assignment {submission.assignment_id}, "
                f"not {assignment.id}"
            )
        count_a = len(assignment.section_a_questions)
        count_b = len(assignment.section_b_questions)
        if len(submission.answers_a) != count_a or len(submission.answers_b) != count_b:
            raise ValueError(
                f"Submission {submission.id} has {len(submission.answers_a)}+"
                f"{len(submission.answers_b)} answers for {count_a}+{count_b} questions"
            )

        self._submission = submission
        self._assignment = assignment

        self.marks_a: list[Decimal] = list(submission.marks_a or [Decimal(0)] * count_a)
        self.marks_b: list[Decimal] = list(submission.marks_b or [Decimal(0)] * count_b)
        self.ai_marks_a: tuple[Decimal, ...] = submission.marks_a or ()
        self.ai_marks_b: tuple[Decimal, ...] = submission.marks_b or ()
        self.ai_comments_a: tuple[str, ...] | None = submission.ai_comments_a
        self.ai_comments_b: tuple[str, ...] | None = submission.ai_comments_b
        self.rubric_breakdowns: tuple[EssayRubricBreakdown, ...] | None = (
            submission.rubric_breakdowns
        )
        self.feedback: str = submission.overall_feedback
        self._fresh_ai_total: Decimal | None = None

    @property
    def total(self) -> Decimal:
        """Aggregate of the current per-question marks."""
        return total_of(tuple(self.marks_a)) + total_of(tuple(self.marks_b))

    def set_mark(self, section: Section, index: int, value: Any) -> bool:
        """
        Enter a mark for one question.

        Non-numeric input is rejected and the previous value kept. Numeric
        input is clamped to the question's ceiling.

        Args:
            section: Section the question belongs to.
            index: Zero-based question index.
            value: The entered mark (number or numeric string).

        Returns:
            True if the mark was accepted.
        """
        marks, ceiling = self._marks_for(section)
        if not 0 <= index < len(marks):
            raise IndexError(f"Section {section.value.upper()} has no question {index + 1}")

        mark = _parse_mark(value)
        if mark is None:
            logger.warning(
                "Rejected mark %r for section %s question %d; keeping %s",
                value,
                section.value.upper(),
                index + 1,
                marks[index],
            )
            return False

        marks[index] = min(max(mark, Decimal(0)), ceiling)
        return True

    def set_feedback(self, text: str) -> None:
        """Replace the teacher's free-text feedback."""
        self.feedback = text

    def apply_ai_results(self, grade: AggregatedGrade) -> None:
        """
        Load freshly generated AI results into the review.

        Marks and comments are replaced by the AI output and a summary block
        is appended to the current feedback.
        """
        self.marks_a = list(grade.section_a.scores)
        self.marks_b = list(grade.section_b.scores)
        self.ai_marks_a = grade.section_a.scores
        self.ai_marks_b = grade.section_b.scores
        self.ai_comments_a = grade.section_a.comments
        self.ai_comments_b = grade.section_b.comments
        self.rubric_breakdowns = grade.section_b.rubric_breakdowns
        self._fresh_ai_total = grade.total

        summary = (
            f"{AI_SUMMARY_HEADER}\n{grade.section_a.overall_feedback}\n\n"
            f"{grade.section_b.overall_feedback}"
        )
        self.feedback = f"{self.feedback}\n\n{summary}" if self.feedback else summary

    def regenerate(self, aggregator: GradingAggregator) -> None:
        """
        Re-run automated grading on the stored answers.

        Raises:
            GradingServiceError: If either section call fails; the review is
                left unchanged.
        """
        grade = aggregator.grade_sections(
            self._assignment, self._submission.answers_a, self._submission.answers_b
        )
        self.apply_ai_results(grade)

    def finalize(self) -> Submission:
        """
        Produce the graded submission.

        Returns:
            A copy of the submission with status graded and the aggregate
            recomputed from the current marks.

        Raises:
            ValidationError: If the result breaks a Submission invariant.
        """
        ai_suggested = self._submission.ai_suggested_mark
        if ai_suggested is None:
            ai_suggested = self._fresh_ai_total

        return Submission.model_validate(
            {
                **self._submission.model_dump(exclude={"grade", "is_ai_graded"}),
                "status": SubmissionStatus.GRADED,
                "marks_a": tuple(self.marks_a),
                "marks_b": tuple(self.marks_b),
                "ai_comments_a": self.ai_comments_a,
                "ai_comments_b": self.ai_comments_b,
                "rubric_breakdowns": self.rubric_breakdowns,
                "aggregate_mark": self.total,
                "overall_feedback": self.feedback,
                "ai_suggested_mark": ai_suggested,
                "graded_at": datetime.now(timezone.utc),
            }
        )

    def _marks_for(self, section: Section) -> tuple[list[Decimal], Decimal]:
        if section == Section.A:
            return self.marks_a, SECTION_A_MAX
        return self.marks_b, SECTION_B_MAX


def apply_override(
    submission: Submission,
    assignment: Assignment,
    *,
    marks_a: Sequence[Any] | None = None,
    marks_b: Sequence[Any] | None = None,
    feedback: str | None = None,
    ai_results: AggregatedGrade | None = None,
) -> Submission:
    """
    Merge a teacher's edits over a submission in one step.

    AI results, if given, are applied first so explicit marks win over them.
    Marks passed as None are left at their current values.

    Returns:
        The graded submission.
    """
    review = TeacherReview(submission, assignment)
    if ai_results is not None:
        review.apply_ai_results(ai_results)

    for section, values in ((Section.A, marks_a), (Section.B, marks_b)):
        for index, value in enumerate(values or ()):
            if value is not None:
                review.set_mark(section, index, value)

    if feedback is not None:
        review.set_feedback(feedback)

    return review.finalize()


def _parse_mark(value: Any) -> Decimal | None:
    if isinstance(value, bool):
        return None
    try:
        mark = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not mark.is_finite():
        return None
    return mark
