"""
Pydantic models for the History Grader system.

These models define the strict schemas for:
- Assignments authored by a teacher
- Results returned by the grading service
- Submissions and their grading lifecycle

All models are immutable; updates produce new instances via model_copy.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from history_grader.grade_scale import grade_of

# Sub-score ceilings per question.
SECTION_A_MAX = Decimal("4")
SECTION_B_MAX = Decimal("20")

# Essay rubric dimension ceilings; they sum to SECTION_B_MAX.
KNOWLEDGE_MAX = Decimal("8")
REASONING_MAX = Decimal("6")
COMMUNICATION_MAX = Decimal("6")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_decimal(v: Any) -> Any:
    if v is None or isinstance(v, Decimal):
        return v
    if isinstance(v, (int, float, str)) and not isinstance(v, bool):
        return Decimal(str(v))
    return v


def _to_decimal_tuple(v: Any) -> Any:
    if v is None or isinstance(v, (str, bytes)):
        return v
    try:
        return tuple(_to_decimal(item) for item in v)
    except TypeError:
        return v


def total_of(marks: tuple[Decimal, ...] | None) -> Decimal:
    """Sum a mark array, treating a missing array as zero."""
    return sum(marks or (), Decimal(0))


# ==============================================================================
# Assignment Models
# ==============================================================================


class Assignment(BaseModel):
    """
    A two-section history assignment.

    Section A holds short structural questions worth up to 4 marks each;
    Section B holds essay questions worth up to 20 marks each. Immutable
    once created.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default_factory=lambda: f"assign_{uuid4().hex[:12]}",
        min_length=1,
        description="Unique identifier of the assignment",
    )

    title: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Title shown to students",
    )

    description: str = Field(
        default="",
        description="Optional instructions for the assignment",
    )

    semester: str = Field(
        default="",
        description="Semester / paper the assignment belongs to",
    )

    section_a_questions: tuple[str, ...] = Field(
        ...,
        description="Structural questions in order",
    )

    section_b_questions: tuple[str, ...] = Field(
        ...,
        description="Essay questions in order",
    )

    teacher_id: str = Field(
        default="",
        description="User id of the authoring teacher",
    )

    created_at: datetime = Field(
        default_factory=_utcnow,
        description="When the assignment was created",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def max_total(self) -> Decimal:
        """Highest aggregate mark the assignment can award."""
        return (
            SECTION_A_MAX * len(self.section_a_questions)
            + SECTION_B_MAX * len(self.section_b_questions)
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def essay_count(self) -> int:
        """Return the number of Section B questions."""
        return len(self.section_b_questions)


# ==============================================================================
# Grading Result Models
# ==============================================================================


class EssayRubricBreakdown(BaseModel):
    """Scores for the three dimensions of the official essay rubric."""

    model_config = ConfigDict(frozen=True)

    knowledge: Decimal = Field(..., ge=0, le=KNOWLEDGE_MAX)
    reasoning: Decimal = Field(..., ge=0, le=REASONING_MAX)
    communication: Decimal = Field(..., ge=0, le=COMMUNICATION_MAX)

    @field_validator("knowledge", "reasoning", "communication", mode="before")
    @classmethod
    def convert_to_decimal(cls, v: Any) -> Any:
        """Convert numeric values to Decimal for precision."""
        return _to_decimal(v)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> Decimal:
        """Sum of the three dimensions."""
        return self.knowledge + self.reasoning + self.communication


class SectionGrade(BaseModel):
    """
    Result of grading one section.

    Scores, comments and (for essays) rubric breakdowns are index-aligned
    with the questions that were graded.
    """

    model_config = ConfigDict(frozen=True)

    scores: tuple[Decimal, ...] = Field(..., description="One score per question")
    comments: tuple[str, ...] = Field(..., description="One comment per question")
    overall_feedback: str = Field(..., description="Feedback for the whole section")
    rubric_breakdowns: tuple[EssayRubricBreakdown, ...] | None = Field(
        default=None,
        description="Per-essay dimension scores (essay variant only)",
    )

    @field_validator("scores", mode="before")
    @classmethod
    def convert_to_decimal(cls, v: Any) -> Any:
        """Convert numeric values to Decimal for precision."""
        return _to_decimal_tuple(v)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> Decimal:
        """Sum of all question scores."""
        return total_of(self.scores)


class AggregatedGrade(BaseModel):
    """Both section results for one set of answers."""

    model_config = ConfigDict(frozen=True)

    section_a: SectionGrade
    section_b: SectionGrade

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> Decimal:
        """Aggregate mark over both sections."""
        return self.section_a.total + self.section_b.total


# ==============================================================================
# Submission Models
# ==============================================================================


class SubmissionStatus(str, Enum):
    """Lifecycle status of a submission."""

    SUBMITTED = "submitted"  # Awaiting teacher review
    GRADED = "graded"  # Teacher has confirmed the marks


class Submission(BaseModel):
    """
    One student's answers to one assignment, with their grading state.

    The aggregate mark always equals the sum of both mark arrays when both
    are present. The AI-suggested mark is kept as provenance and is never
    replaced by teacher edits.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default_factory=lambda: f"sub_{uuid4().hex[:12]}",
        min_length=1,
    )
    assignment_id: str = Field(..., min_length=1)
    student_id: str = Field(..., min_length=1)
    student_name: str = Field(default="")

    answers_a: tuple[str, ...] = Field(..., description="Structural answers in order")
    answers_b: tuple[str, ...] = Field(..., description="Essay answers in order")

    marks_a: tuple[Decimal, ...] | None = Field(default=None)
    marks_b: tuple[Decimal, ...] | None = Field(default=None)
    ai_comments_a: tuple[str, ...] | None = Field(default=None)
    ai_comments_b: tuple[str, ...] | None = Field(default=None)
    rubric_breakdowns: tuple[EssayRubricBreakdown, ...] | None = Field(default=None)

    submitted_at: datetime = Field(default_factory=_utcnow)
    graded_at: datetime | None = Field(default=None)
    status: SubmissionStatus = Field(default=SubmissionStatus.SUBMITTED)

    aggregate_mark: Decimal = Field(
        default=Decimal(0),
        description="Authoritative mark on the 0-100 scale",
    )
    overall_feedback: str = Field(default="")
    ai_feedback: str | None = Field(default=None)
    ai_suggested_mark: Decimal | None = Field(
        default=None,
        description="Grading service's own estimate, kept for provenance",
    )

    @field_validator("marks_a", "marks_b", mode="before")
    @classmethod
    def convert_marks(cls, v: Any) -> Any:
        """Convert numeric values to Decimal for precision."""
        return _to_decimal_tuple(v)

    @field_validator("aggregate_mark", "ai_suggested_mark", mode="before")
    @classmethod
    def convert_to_decimal(cls, v: Any) -> Any:
        """Convert numeric values to Decimal for precision."""
        return _to_decimal(v)

    @model_validator(mode="after")
    def validate_marks(self) -> "Submission":
        """Ensure mark arrays align with answers and sum to the aggregate."""
        if self.marks_a is not None and len(self.marks_a) != len(self.answers_a):
            raise ValueError(
                f"marks_a has {len(self.marks_a)} entries for {len(self.answers_a)} answers"
            )
        if self.marks_b is not None and len(self.marks_b) != len(self.answers_b):
            raise ValueError(
                f"marks_b has {len(self.marks_b)} entries for {len(self.answers_b)} answers"
            )
        if self.marks_a is not None and self.marks_b is not None:
            expected = total_of(self.marks_a) + total_of(self.marks_b)
            if self.aggregate_mark != expected:
                raise ValueError(
                    f"aggregate_mark ({self.aggregate_mark}) does not match "
                    f"the sum of section marks ({expected})"
                )
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def grade(self) -> str:
        """Letter grade of the aggregate mark."""
        return grade_of(self.aggregate_mark)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_ai_graded(self) -> bool:
        """Whether the grading service produced marks for this submission."""
        return self.ai_suggested_mark is not None


class User(BaseModel):
    """A registered student or teacher, as read from the store."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    name: str = Field(default="")
    role: str = Field(default="student")
    class_name: str | None = Field(default=None)
