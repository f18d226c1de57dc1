"""
Grading service client.

Wraps the OpenAI SDK, pointed at an OpenAI-compatible endpoint, to grade one
section of answers per call with a schema-constrained JSON response. Every
failure (transport, empty reply, malformed JSON, schema mismatch) surfaces
as a single GradingServiceError. There is no retry and no partial result.
"""

import logging
import re
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from openai import OpenAI, OpenAIError
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from history_grader.config import Settings, get_settings
from history_grader.grading.prompt_builder import PromptBuilder
from history_grader.models import SECTION_A_MAX, SECTION_B_MAX, EssayRubricBreakdown, SectionGrade

logger = logging.getLogger(__name__)


class GradingServiceError(Exception):
    """Raised when the grading service call fails or its reply is unusable."""

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        raw_response: str | None = None,
    ):
        self.cause = cause
        self.raw_response = raw_response
        super().__init__(message)


# ==============================================================================
# Response Schemas
# ==============================================================================


class StructuralResponse(BaseModel):
    """Reply schema for the structural variant."""

    model_config = ConfigDict(populate_by_name=True)

    scores: list[float]
    comments: list[str]
    overall_feedback: str = Field(..., alias="overallFeedback")


class RubricBreakdownResponse(BaseModel):
    """One essay's dimension scores as sent by the service."""

    knowledge: float
    reasoning: float
    communication: float


class EssayResponse(StructuralResponse):
    """Reply schema for the essay variant."""

    rubric_breakdowns: list[RubricBreakdownResponse] = Field(..., alias="rubricBreakdowns")


class GradingClient:
    """
    Client for the external grading service.

    One call grades one section. Calls are independent: nothing is cached
    and identical input produces a fresh request.
    """

    def __init__(self, settings: Settings | None = None):
        """
        Initialize the grading client.

        Args:
            settings: Configuration settings. Uses global settings if not provided.
        """
        self._settings = settings or get_settings()
        self._client = OpenAI(
            api_key=self._settings.ai_api_key,
            base_url=self._settings.ai_base_url,
            timeout=self._settings.request_timeout_seconds,
            max_retries=0,
        )

    def grade_structural(self, questions: Sequence[str], answers: Sequence[str]) -> SectionGrade:
        """
        Grade Section A answers, 0-4 marks each.

        Args:
            questions: Structural questions in order.
            answers: Student answers, index-aligned with questions.

        Returns:
            SectionGrade with one score and comment per question.

        Raises:
            GradingServiceError: If the call fails or the reply is invalid.
        """
        _check_aligned(questions, answers)
        if not questions:
            return SectionGrade(scores=(), comments=(), overall_feedback="")

        prompt = PromptBuilder.build_structural_prompt(
            questions, answers, self._settings.feedback_language
        )
        raw = self._request(prompt, StructuralResponse, "structural_grading")
        parsed = _parse(raw, StructuralResponse)
        _check_scores(parsed, len(questions), SECTION_A_MAX, raw)

        return SectionGrade(
            scores=tuple(parsed.scores),
            comments=tuple(parsed.comments),
            overall_feedback=parsed.overall_feedback,
        )

    def grade_essay(self, questions: Sequence[str], answers: Sequence[str]) -> SectionGrade:
        """
        Grade Section B essays on the three-dimension rubric, out of 20 each.

        Args:
            questions: Essay questions in order.
            answers: Student essays, index-aligned with questions.

        Returns:
            SectionGrade with scores, comments and rubric breakdowns.

        Raises:
            GradingServiceError: If the call fails or the reply is invalid.
        """
        _check_aligned(questions, answers)
        if not questions:
            return SectionGrade(scores=(), comments=(), overall_feedback="", rubric_breakdowns=())

        prompt = PromptBuilder.build_essay_prompt(
            questions, answers, self._settings.feedback_language
        )
        raw = self._request(prompt, EssayResponse, "essay_grading")
        parsed = _parse(raw, EssayResponse)
        _check_scores(parsed, len(questions), SECTION_B_MAX, raw)

        if len(parsed.rubric_breakdowns) != len(questions):
            raise GradingServiceError(
                f"Expected {len(questions)} rubric breakdowns, "
                f"got {len(parsed.rubric_breakdowns)}",
                raw_response=raw,
            )

        try:
            breakdowns = tuple(
                EssayRubricBreakdown.model_validate(b.model_dump())
                for b in parsed.rubric_breakdowns
            )
        except ValidationError as e:
            raise GradingServiceError(
                f"Rubric breakdown out of range: {e}", cause=e, raw_response=raw
            ) from e

        for i, (score, breakdown) in enumerate(zip(parsed.scores, breakdowns)):
            if Decimal(str(score)) != breakdown.total:
                raise GradingServiceError(
                    f"Essay {i + 1} score ({score}) does not match its rubric "
                    f"breakdown total ({breakdown.total})",
                    raw_response=raw,
                )

        return SectionGrade(
            scores=tuple(parsed.scores),
            comments=tuple(parsed.comments),
            overall_feedback=parsed.overall_feedback,
            rubric_breakdowns=breakdowns,
        )

    def _request(self, user_prompt: str, schema: type[BaseModel], name: str) -> str:
        """
        Send one request and return the raw reply text.

        Raises:
            GradingServiceError: If the call raises or the reply is empty.
        """
        logger.info("Requesting %s from %s", name, self._settings.ai_model)
        try:
            response = self._client.chat.completions.create(
                model=self._settings.ai_model,
                messages=[
                    {"role": "system", "content": PromptBuilder.get_system_prompt()},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self._settings.llm_temperature,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": name,
                        "schema": schema.model_json_schema(by_alias=True),
                    },
                },
            )
        except OpenAIError as e:
            raise GradingServiceError(f"Grading service call failed: {e}", cause=e) from e
        except Exception as e:
            raise GradingServiceError(f"Unexpected error: {e}", cause=e) from e

        if response.choices and response.choices[0].message.content:
            return response.choices[0].message.content

        raise GradingServiceError("Empty response from grading service")

    def health_check(self) -> bool:
        """
        Check if the grading service is reachable.

        Returns:
            True if the service answered, False otherwise.
        """
        try:
            response = self._client.chat.completions.create(
                model=self._settings.ai_model,
                messages=[{"role": "user", "content": "ping"}],
                max_tokens=5,
            )
            return bool(response.choices)
        except OpenAIError:
            return False


def _check_aligned(questions: Sequence[str], answers: Sequence[str]) -> None:
    if len(questions) != len(answers):
        raise ValueError(
            f"{len(questions)} questions but {len(answers)} answers; they must be index-aligned"
        )


def _extract_json(response: str) -> str:
    """Strip a markdown code fence if the service wrapped its JSON in one."""
    fence = re.search(r"```(?:json)?\s*([\s\S]*?)```", response)
    if fence:
        return fence.group(1).strip()
    return response.strip()


def _parse(raw: str, schema: type[Any]) -> Any:
    try:
        return schema.model_validate_json(_extract_json(raw))
    except ValidationError as e:
        raise GradingServiceError(
            f"Response does not match the grading schema: {e}",
            cause=e,
            raw_response=raw,
        ) from e


def _check_scores(
    parsed: StructuralResponse, expected: int, ceiling: Decimal, raw: str
) -> None:
    """Validate counts and score range of a parsed reply."""
    if len(parsed.scores) != expected:
        raise GradingServiceError(
            f"Expected {expected} scores, got {len(parsed.scores)}", raw_response=raw
        )
    if len(parsed.comments) != expected:
        raise GradingServiceError(
            f"Expected {expected} comments, got {len(parsed.comments)}", raw_response=raw
        )
    for i, score in enumerate(parsed.scores):
        if not 0 <= score <= ceiling:
            raise GradingServiceError(
                f"Score {i + 1} ({score}) outside 0-{ceiling}", raw_response=raw
            )
