"""
Prompt builder for STPM History grading.

Constructs the instructions for the two grading variants:
- Section A structural answers, 0-4 marks each
- Section B essays, scored on the official three-dimension rubric out of 20
"""

import json
from collections.abc import Sequence

from history_grader.models import (
    COMMUNICATION_MAX,
    KNOWLEDGE_MAX,
    REASONING_MAX,
    SECTION_A_MAX,
    SECTION_B_MAX,
)


class PromptBuilder:
    """
    Builds grading prompts for the grading service.

    The prompts are designed to:
    1. Score every answer independently against a fixed ceiling
    2. Name the strengths and weaknesses of each answer
    3. Produce output that matches the requested JSON schema
    """

    SYSTEM_PROMPT = """You are an experienced STPM History examiner.

RULES:
1. Grade each answer independently and only against its own question.
2. Never award more than the stated maximum for a question.
3. Two identical answers MUST receive IDENTICAL scores.
4. Be direct and constructive; the reader is a pre-university student.

OUTPUT RULES:
- Your output MUST be valid JSON matching the requested schema.
- Return exactly one entry per question, in the order the questions are given.
- Do not add any text before or after the JSON."""

    @staticmethod
    def build_structural_prompt(
        questions: Sequence[str],
        answers: Sequence[str],
        language: str = "Malay",
    ) -> str:
        """
        Build the user prompt for Section A.

        Args:
            questions: Structural questions in order.
            answers: Student answers, index-aligned with questions.
            language: Language the comments should be written in.

        Returns:
            The formatted user prompt.
        """
        return f"""GRADING TASK: SECTION A (STRUCTURAL)

Analyse these {len(questions)} STPM History structural questions.
Each is worth {SECTION_A_MAX} marks.

QUESTIONS:
{json.dumps(list(questions), ensure_ascii=False)}

STUDENT ANSWERS:
{json.dumps(list(answers), ensure_ascii=False)}

For EACH answer, provide:
1. A score from 0 to {SECTION_A_MAX}.
2. A specific comment in {language} naming the strengths (what was correct)
   and the weaknesses (what was missing or wrong).

Finish with one short overall feedback paragraph in {language}.

OUTPUT FORMAT (respond with ONLY this JSON, no other text):
{{
  "scores": [<number>, ...],
  "comments": ["<comment>", ...],
  "overallFeedback": "<feedback>"
}}"""

    @staticmethod
    def build_essay_prompt(
        questions: Sequence[str],
        answers: Sequence[str],
        language: str = "Malay",
    ) -> str:
        """
        Build the user prompt for Section B.

        Args:
            questions: Essay questions in order.
            answers: Student essays, index-aligned with questions.
            language: Language the comments should be written in.

        Returns:
            The formatted user prompt.
        """
        return f"""GRADING TASK: SECTION B (ESSAY)

Analyse these STPM History essays using the OFFICIAL RUBRIC:

DIMENSION 1: KNOWLEDGE AND UNDERSTANDING (max {KNOWLEDGE_MAX})
DIMENSION 2: REASONING (max {REASONING_MAX})
DIMENSION 3: COMMUNICATION (max {COMMUNICATION_MAX})
Total = {SECTION_B_MAX} marks per essay.

QUESTIONS:
{json.dumps(list(questions), ensure_ascii=False)}

STUDENT ANSWERS:
{json.dumps(list(answers), ensure_ascii=False)}

For EACH essay, provide:
1. The three dimension scores and their sum as the essay score.
2. A detailed comment in {language} covering:
   - STRENGTHS: writing style, accurate facts, well-argued points.
   - WEAKNESSES: what to improve (missing evidence, weak logic,
     language that is not analytical enough).

Make sure the student understands exactly where marks were lost.
Finish with one short overall feedback paragraph in {language}.

OUTPUT FORMAT (respond with ONLY this JSON, no other text):
{{
  "scores": [<number>, ...],
  "rubricBreakdowns": [
    {{"knowledge": <number>, "reasoning": <number>, "communication": <number>}}
  ],
  "comments": ["<comment>", ...],
  "overallFeedback": "<feedback>"
}}"""

    @staticmethod
    def get_system_prompt() -> str:
        """Get the system prompt shared by both variants."""
        return PromptBuilder.SYSTEM_PROMPT
