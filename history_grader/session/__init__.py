"""
Exam Session Module.

Timed, forward-only answering flow and the countdown that drives it.
"""

from history_grader.session.controller import (
    ClipboardAction,
    ExamSessionController,
    InvalidTransitionError,
    SessionEvent,
    SessionSnapshot,
    SessionStep,
    StepKind,
    next_step,
)
from history_grader.session.ticker import CountdownTicker

__all__ = [
    "ClipboardAction",
    "CountdownTicker",
    "ExamSessionController",
    "InvalidTransitionError",
    "SessionEvent",
    "SessionSnapshot",
    "SessionStep",
    "StepKind",
    "next_step",
]
