"""
Pytest configuration and fixtures.

Provides common test fixtures for all test modules.
"""

import json
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Generator
from unittest.mock import MagicMock, patch

import pytest

from history_grader.config import Settings
from history_grader.grading.aggregator import (
    GradingAggregator,
    fallback_submission,
    graded_submission,
)
from history_grader.grading.client import GradingClient, GradingServiceError
from history_grader.models import (
    AggregatedGrade,
    Assignment,
    EssayRubricBreakdown,
    SectionGrade,
    Submission,
    User,
)


# ==============================================================================
# Directory Fixtures
# ==============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ==============================================================================
# Settings Fixtures
# ==============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings with short countdowns."""
    return Settings(
        ai_api_key="test-api-key-for-testing",
        ai_base_url="https://test.api.local/",
        ai_model="test-model",
        llm_temperature=0.0,
        feedback_language="English",
        section_a_seconds=5,
        essay_seconds=3,
    )


# ==============================================================================
# Assignment Fixtures
# ==============================================================================


@pytest.fixture
def sample_assignment() -> Assignment:
    """An assignment with five structural questions and two essays."""
    return Assignment(
        id="assign_1",
        title="Malaya 1945-1957",
        description="Answer all questions.",
        semester="Semester 1: Malaysian History",
        section_a_questions=(
            "State two aims of the Malayan Union.",
            "Explain the role of UMNO in 1946.",
            "What was the Briggs Plan?",
            "Name two members of the Reid Commission.",
            "When was the Federation of Malaya Agreement signed?",
        ),
        section_b_questions=(
            "Discuss the factors that led to the failure of the Malayan Union.",
            "Evaluate the contribution of the Alliance to independence.",
        ),
        teacher_id="teacher_1",
    )


@pytest.fixture
def sample_answers_a() -> list[str]:
    """Structural answers, one per question."""
    return [
        "To unite the Malay states and centralise administration.",
        "UMNO led the Malay opposition to the Malayan Union.",
        "A resettlement plan against the communist insurgency.",
        "Lord Reid and Sir Ivor Jennings.",
        "",
    ]


@pytest.fixture
def sample_answers_b() -> list[str]:
    """Essay answers, one per question."""
    return [
        "The Malayan Union failed because of strong Malay opposition ...",
        "The Alliance united the three main communities ...",
    ]


# ==============================================================================
# Grading Service Payload Fixtures
# ==============================================================================


@pytest.fixture
def structural_payload() -> dict[str, Any]:
    """Structural reply from the grading service."""
    return {
        "scores": [3, 2, 4, 1, 0],
        "comments": [
            "Strength: both aims given.",
            "Weakness: role only partly explained.",
            "Strength: accurate.",
            "Weakness: only one member correct.",
            "No answer given.",
        ],
        "overallFeedback": "Good grasp of the basics.",
    }


@pytest.fixture
def essay_payload() -> dict[str, Any]:
    """Essay reply from the grading service."""
    return {
        "scores": [15, 18],
        "rubricBreakdowns": [
            {"knowledge": 6, "reasoning": 5, "communication": 4},
            {"knowledge": 7, "reasoning": 6, "communication": 5},
        ],
        "comments": [
            "Strength: clear argument. Weakness: little evidence.",
            "Strength: well-structured and analytical.",
        ],
        "overallFeedback": "Essays are well argued.",
    }


@pytest.fixture
def structural_grade(structural_payload: dict[str, Any]) -> SectionGrade:
    """Parsed structural result."""
    return SectionGrade(
        scores=tuple(structural_payload["scores"]),
        comments=tuple(structural_payload["comments"]),
        overall_feedback=structural_payload["overallFeedback"],
    )


@pytest.fixture
def essay_grade(essay_payload: dict[str, Any]) -> SectionGrade:
    """Parsed essay result."""
    return SectionGrade(
        scores=tuple(essay_payload["scores"]),
        comments=tuple(essay_payload["comments"]),
        overall_feedback=essay_payload["overallFeedback"],
        rubric_breakdowns=tuple(
            EssayRubricBreakdown(**b) for b in essay_payload["rubricBreakdowns"]
        ),
    )


@pytest.fixture
def aggregated_grade(structural_grade: SectionGrade, essay_grade: SectionGrade) -> AggregatedGrade:
    """Both section results; total 43."""
    return AggregatedGrade(section_a=structural_grade, section_b=essay_grade)


# ==============================================================================
# Mock Fixtures
# ==============================================================================


@pytest.fixture
def completion() -> Callable[[str | None], MagicMock]:
    """Build a fake chat completion carrying the given content."""

    def build(content: str | None) -> MagicMock:
        response = MagicMock()
        choice = MagicMock()
        choice.message.content = content
        response.choices = [choice]
        return response

    return build


@pytest.fixture
def mock_openai(
    structural_payload: dict[str, Any],
    essay_payload: dict[str, Any],
    completion: Callable[[str | None], MagicMock],
) -> Generator[MagicMock, None, None]:
    """Mock the OpenAI SDK to avoid actual API calls."""
    with patch("history_grader.grading.client.OpenAI") as mock_class:
        mock_instance = MagicMock()
        mock_instance.chat.completions.create.side_effect = [
            completion(json.dumps(structural_payload)),
            completion(json.dumps(essay_payload)),
        ]
        mock_class.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def mock_grading_client(structural_grade: SectionGrade, essay_grade: SectionGrade) -> MagicMock:
    """Grading client returning canned results."""
    client = MagicMock(spec=GradingClient)
    client.grade_structural.return_value = structural_grade
    client.grade_essay.return_value = essay_grade
    return client


@pytest.fixture
def failing_grading_client(structural_grade: SectionGrade) -> MagicMock:
    """Grading client whose essay call fails."""
    client = MagicMock(spec=GradingClient)
    client.grade_structural.return_value = structural_grade
    client.grade_essay.side_effect = GradingServiceError("Service unavailable")
    return client


@pytest.fixture
def aggregator(mock_grading_client: MagicMock) -> GradingAggregator:
    """Aggregator over the canned client."""
    return GradingAggregator(mock_grading_client)


# ==============================================================================
# Submission Fixtures
# ==============================================================================


@pytest.fixture
def ai_graded_submission(
    sample_assignment: Assignment,
    sample_answers_a: list[str],
    sample_answers_b: list[str],
    aggregated_grade: AggregatedGrade,
) -> Submission:
    """Submission straight out of automated grading."""
    return graded_submission(
        sample_assignment,
        "student_1",
        "Aisyah",
        sample_answers_a,
        sample_answers_b,
        aggregated_grade,
    )


@pytest.fixture
def ungraded_submission(
    sample_assignment: Assignment,
    sample_answers_a: list[str],
    sample_answers_b: list[str],
) -> Submission:
    """Submission whose automated grading failed."""
    return fallback_submission(
        sample_assignment, "student_2", "Ben", sample_answers_a, sample_answers_b
    )


@pytest.fixture
def students() -> list[User]:
    """Three registered students."""
    return [
        User(user_id="student_1", name="Aisyah", role="student", class_name="6A"),
        User(user_id="student_2", name="Ben", role="student", class_name="6A"),
        User(user_id="student_3", name="Chandra", role="student", class_name="6B"),
    ]


def make_submission(
    student_id: str,
    mark: int | str,
    assignment_id: str = "assign_1",
    graded: bool = True,
) -> Submission:
    """Build a minimal submission with the given aggregate mark."""
    return Submission(
        assignment_id=assignment_id,
        student_id=student_id,
        answers_a=("a",),
        answers_b=("b",),
        aggregate_mark=Decimal(str(mark)),
        status="graded" if graded else "submitted",
    )


@pytest.fixture
def submission_factory() -> Callable[..., Submission]:
    """Expose make_submission to tests."""
    return make_submission
