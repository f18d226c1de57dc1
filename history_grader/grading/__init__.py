"""
Grading Module.

Grading service client, section aggregation with fallback, and teacher review.
"""

from history_grader.grading.aggregator import GradingAggregator
from history_grader.grading.client import GradingClient, GradingServiceError
from history_grader.grading.override import Section, TeacherReview, apply_override
from history_grader.grading.prompt_builder import PromptBuilder

__all__ = [
    "GradingAggregator",
    "GradingClient",
    "GradingServiceError",
    "PromptBuilder",
    "Section",
    "TeacherReview",
    "apply_override",
]
