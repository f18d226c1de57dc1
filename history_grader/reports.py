"""
Performance reporting.

Only graded submissions count towards a student's average. Averages are
reported on the same 0-100 scale as a single submission and carry a letter
grade from the official scale.
"""

from collections.abc import Iterable
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from history_grader.grade_scale import grade_of
from history_grader.models import Assignment, Submission, SubmissionStatus, User


class Standing(BaseModel):
    """One row of the leaderboard."""

    model_config = ConfigDict(frozen=True)

    rank: int = Field(..., ge=1)
    student_id: str
    name: str
    class_name: str | None = None
    average: Decimal
    graded_count: int = Field(..., ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def grade(self) -> str:
        return grade_of(self.average)


class PerformanceReport(BaseModel):
    """A student's graded history."""

    model_config = ConfigDict(frozen=True)

    student_id: str
    name: str
    average: Decimal
    submissions: tuple[Submission, ...]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def grade(self) -> str:
        return grade_of(self.average)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def graded_count(self) -> int:
        return len(self.submissions)


class AssignmentProgress(BaseModel):
    """Submission counts for one assignment."""

    model_config = ConfigDict(frozen=True)

    assignment_id: str
    title: str
    submitted: int
    graded: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def pending(self) -> int:
        return self.submitted - self.graded


def graded_submissions(submissions: Iterable[Submission], student_id: str) -> list[Submission]:
    """Return a student's graded submissions, oldest first."""
    mine = [
        s
        for s in submissions
        if s.student_id == student_id and s.status == SubmissionStatus.GRADED
    ]
    return sorted(mine, key=lambda s: s.submitted_at)


def _average(submissions: list[Submission]) -> Decimal:
    if not submissions:
        return Decimal(0)
    return sum((s.aggregate_mark for s in submissions), Decimal(0)) / len(submissions)


def student_average(submissions: Iterable[Submission], student_id: str) -> Decimal:
    """Mean aggregate mark over a student's graded submissions; 0 when none."""
    return _average(graded_submissions(submissions, student_id))


def performance_report(student: User, submissions: Iterable[Submission]) -> PerformanceReport:
    """Build the performance report of one student."""
    graded = graded_submissions(submissions, student.user_id)
    return PerformanceReport(
        student_id=student.user_id,
        name=student.name,
        average=_average(graded),
        submissions=tuple(graded),
    )


def leaderboard(students: Iterable[User], submissions: Iterable[Submission]) -> list[Standing]:
    """
    Rank students by their average mark.

    Students without graded work appear with an average of 0. Ties keep
    the order in which students were given.
    """
    all_submissions = list(submissions)
    rows = []
    for student in students:
        graded = graded_submissions(all_submissions, student.user_id)
        rows.append((student, _average(graded), len(graded)))

    rows.sort(key=lambda row: row[1], reverse=True)

    return [
        Standing(
            rank=rank,
            student_id=student.user_id,
            name=student.name,
            class_name=student.class_name,
            average=average,
            graded_count=count,
        )
        for rank, (student, average, count) in enumerate(rows, start=1)
    ]


def assignment_progress(
    assignment: Assignment, submissions: Iterable[Submission]
) -> AssignmentProgress:
    """Count submitted and graded submissions for an assignment."""
    mine = [s for s in submissions if s.assignment_id == assignment.id]
    return AssignmentProgress(
        assignment_id=assignment.id,
        title=assignment.title,
        submitted=len(mine),
        graded=sum(1 for s in mine if s.status == SubmissionStatus.GRADED),
    )
