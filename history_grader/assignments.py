"""
Assignment authoring.

Builds assignments from the teacher's form input and validates that they
are complete and fit the 0-100 mark scale.
"""

from collections.abc import Sequence
from decimal import Decimal

from history_grader.models import Assignment

MAX_SECTION_A_QUESTIONS = 5
MAX_SECTION_B_QUESTIONS = 3

SEMESTERS: tuple[str, ...] = (
    "Semester 1: Malaysian History",
    "Semester 2: Islamic History",
    "Semester 3: Malaysian History",
)


class AssignmentValidationError(Exception):
    """Raised when assignment validation fails."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        message = "Assignment validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        super().__init__(message)


def build_assignment(
    title: str,
    section_a: Sequence[str],
    section_b: Sequence[str],
    essay_count: int = MAX_SECTION_B_QUESTIONS,
    description: str = "",
    semester: str = SEMESTERS[0],
    teacher_id: str = "",
) -> Assignment:
    """
    Build an assignment from the authoring form.

    Blank questions are dropped and Section B is cut to the chosen essay
    count before the blanks are removed.
    """
    return Assignment(
        title=title,
        description=description,
        semester=semester,
        section_a_questions=tuple(q for q in section_a if q.strip()),
        section_b_questions=tuple(q for q in section_b[:essay_count] if q.strip()),
        teacher_id=teacher_id,
    )


class AssignmentValidator:
    """
    Validates assignments before they are published to students.

    Checks:
    1. The title is present
    2. Section A holds 1-5 non-blank questions
    3. Section B holds 1-3 non-blank essay questions
    4. The total ceiling fits the 0-100 scale
    """

    MAX_TOTAL = Decimal("100")

    def validate(self, assignment: Assignment) -> tuple[bool, list[str]]:
        """
        Validate an assignment and return any issues found.

        Args:
            assignment: The assignment to validate.

        Returns:
            Tuple of (is_valid, list of issues).
        """
        issues: list[str] = []

        if not assignment.title.strip():
            issues.append("Assignment title is empty")

        issues.extend(
            self._validate_section(
                "Section A", assignment.section_a_questions, MAX_SECTION_A_QUESTIONS
            )
        )
        issues.extend(
            self._validate_section(
                "Section B", assignment.section_b_questions, MAX_SECTION_B_QUESTIONS
            )
        )

        if assignment.max_total > self.MAX_TOTAL:
            issues.append(
                f"Total marks ({assignment.max_total}) exceed the {self.MAX_TOTAL}-mark scale"
            )

        return len(issues) == 0, issues

    def validate_or_raise(self, assignment: Assignment) -> None:
        """
        Validate an assignment and raise if invalid.

        Raises:
            AssignmentValidationError: If validation fails.
        """
        is_valid, issues = self.validate(assignment)
        if not is_valid:
            raise AssignmentValidationError(issues)

    def _validate_section(self, name: str, questions: Sequence[str], limit: int) -> list[str]:
        issues: list[str] = []

        if not questions:
            issues.append(f"{name} has no questions")
        elif len(questions) > limit:
            issues.append(f"{name} has {len(questions)} questions (maximum {limit})")

        for i, question in enumerate(questions, start=1):
            if not question.strip():
                issues.append(f"{name} question {i} is blank")

        return issues
