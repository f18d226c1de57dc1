"""
History Grader - timed history assessments with AI-assisted grading.

Students answer a structural section and a series of essays under a
per-step countdown. Answers are scored by an external grading service,
reviewed and overridden by the teacher, and reported as STPM letter grades.
"""

__version__ = "1.0.0"
__author__ = "History Grader Team"
