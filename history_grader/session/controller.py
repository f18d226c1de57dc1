"""
Exam session controller - the timed, forward-only answering flow.

A session walks SectionA -> SectionB[0] -> ... -> SectionB[n-1] ->
Submitting -> Completed. Each answering step owns a countdown that is reset
on entry; reaching zero advances exactly like the student pressing "next".
The student's actions, the countdown and the grading outcome all feed the
same transition function, serialised by one lock.
"""

import logging
import threading
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict

from history_grader.config import Settings, get_settings
from history_grader.grading.aggregator import GradingAggregator, fallback_submission
from history_grader.models import Assignment, Submission
from history_grader.store import DuplicateSubmissionError, SubmissionStore

logger = logging.getLogger(__name__)

SUBMITTING_MESSAGE = "Submitting your answers..."
GRADED_MESSAGE = "Your answers have been submitted and graded automatically."
MANUAL_REVIEW_MESSAGE = (
    "Your answers have been submitted. Automated grading is unavailable, "
    "so your teacher will grade them manually."
)
CLIPBOARD_NOTICE = "Copying, cutting and pasting are disabled during the exam."
ALREADY_RECORDED_MESSAGE = (
    "An attempt at this assignment has already been recorded; "
    "this attempt was not saved."
)


class InvalidTransitionError(Exception):
    """Raised when an action is not valid in the session's current step."""


class StepKind(str, Enum):
    """Kinds of step in an exam session."""

    SECTION_A = "SectionA"
    SECTION_B = "SectionB"
    SUBMITTING = "Submitting"
    COMPLETED = "Completed"


class SessionStep(NamedTuple):
    """A step of the session; index is set for Section B steps only."""

    kind: StepKind
    index: int | None = None

    def __str__(self) -> str:
        if self.kind == StepKind.SECTION_B:
            return f"{self.kind.value}[{self.index}]"
        return self.kind.value

    @property
    def is_answering(self) -> bool:
        return self.kind in (StepKind.SECTION_A, StepKind.SECTION_B)


class SessionEvent(str, Enum):
    """Inputs of the transition function."""

    ADVANCE = "advance"  # Student moved on
    TIMEOUT = "timeout"  # Step countdown reached zero
    GRADING_FINISHED = "grading_finished"  # Aggregator returned (graded or fallback)


class ClipboardAction(str, Enum):
    """Clipboard gestures intercepted on answer fields."""

    COPY = "copy"
    CUT = "cut"
    PASTE = "paste"
    CONTEXT_MENU = "context_menu"


SECTION_A_STEP = SessionStep(StepKind.SECTION_A)
SUBMITTING_STEP = SessionStep(StepKind.SUBMITTING)
COMPLETED_STEP = SessionStep(StepKind.COMPLETED)


def next_step(step: SessionStep, event: SessionEvent, essay_count: int) -> SessionStep:
    """
    Transition function of the session.

    Timeout and advance are interchangeable in answering steps.

    Raises:
        InvalidTransitionError: If the event is not valid in the step.
    """
    if step.is_answering and event in (SessionEvent.ADVANCE, SessionEvent.TIMEOUT):
        following = 0 if step.kind == StepKind.SECTION_A else step.index + 1
        if following < essay_count:
            return SessionStep(StepKind.SECTION_B, following)
        return SUBMITTING_STEP

    if step.kind == StepKind.SUBMITTING and event == SessionEvent.GRADING_FINISHED:
        return COMPLETED_STEP

    raise InvalidTransitionError(f"Cannot apply {event.value} in step {step}")


class SessionSnapshot(BaseModel):
    """Read-only view of a session for rendering."""

    model_config = ConfigDict(frozen=True)

    step: str
    remaining_seconds: int
    questions: tuple[str, ...]
    answers: tuple[str, ...]
    status_message: str
    blocked_clipboard_attempts: int


class ExamSessionController:
    """
    Drives one student's attempt at one assignment.

    The controller owns the answer buffers and the submission under
    construction until the session completes, when the submission is
    handed to the store.
    """

    def __init__(
        self,
        assignment: Assignment,
        student_id: str,
        student_name: str,
        aggregator: GradingAggregator,
        settings: Settings | None = None,
        store: SubmissionStore | None = None,
    ):
        """
        Initialize the session in Section A with a full countdown.

        Args:
            assignment: The assignment being answered.
            student_id: Id of the answering student.
            student_name: Display name of the student.
            aggregator: Grades the answers when the last step is left.
            settings: Configuration settings. Uses global settings if not provided.
            store: Receives the submission on completion, if given.

        Raises:
            ValueError: If the student or assignment id is empty.
            DuplicateSubmissionError: If the store already holds a submission
                for this student and assignment.
        """
        if not student_id.strip():
            raise ValueError("student_id must not be empty")
        if not assignment.id.strip():
            raise ValueError("assignment id must not be empty")
        if store is not None and store.find_submission(assignment.id, student_id) is not None:
            raise DuplicateSubmissionError(assignment.id, student_id)

        self._settings = settings or get_settings()
        self._assignment = assignment
        self._student_id = student_id
        self._student_name = student_name
        self._aggregator = aggregator
        self._store = store
        self._lock = threading.RLock()

        self._answers_a = [""] * len(assignment.section_a_questions)
        self._answers_b = [""] * len(assignment.section_b_questions)
        self._submission: Submission | None = None
        self._status_message = ""
        self._blocked_clipboard_attempts = 0

        self._step = SECTION_A_STEP
        self._visited: list[SessionStep] = [SECTION_A_STEP]
        self._remaining = self._duration_of(SECTION_A_STEP)

    # ==========================================================================
    # State
    # ==========================================================================

    @property
    def step(self) -> SessionStep:
        return self._step

    @property
    def visited_steps(self) -> tuple[SessionStep, ...]:
        return tuple(self._visited)

    @property
    def remaining_seconds(self) -> int:
        return self._remaining

    @property
    def answers_a(self) -> tuple[str, ...]:
        return tuple(self._answers_a)

    @property
    def answers_b(self) -> tuple[str, ...]:
        return tuple(self._answers_b)

    @property
    def submission(self) -> Submission | None:
        """The submission, once the session has completed."""
        return self._submission if self.is_finished else None

    @property
    def status_message(self) -> str:
        return self._status_message

    @property
    def blocked_clipboard_attempts(self) -> int:
        return self._blocked_clipboard_attempts

    @property
    def is_finished(self) -> bool:
        return self._step == COMPLETED_STEP

    def snapshot(self) -> SessionSnapshot:
        """Return what the answering screen should display right now."""
        with self._lock:
            if self._step.kind == StepKind.SECTION_A:
                questions = self._assignment.section_a_questions
                answers = self.answers_a
            elif self._step.kind == StepKind.SECTION_B:
                questions = (self._assignment.section_b_questions[self._step.index],)
                answers = (self._answers_b[self._step.index],)
            else:
                questions, answers = (), ()

            return SessionSnapshot(
                step=str(self._step),
                remaining_seconds=self._remaining,
                questions=questions,
                answers=answers,
                status_message=self._status_message,
                blocked_clipboard_attempts=self._blocked_clipboard_attempts,
            )

    # ==========================================================================
    # Student Actions
    # ==========================================================================

    def write_answer(self, text: str, index: int | None = None) -> None:
        """
        Replace the answer buffer of a question in the current step.

        Args:
            text: The full current answer text.
            index: Question index in Section A; ignored in Section B, where
                the step's single essay is written.

        Raises:
            InvalidTransitionError: If the session is not in an answering step.
            IndexError: If the Section A index is out of range.
        """
        with self._lock:
            if self._step.kind == StepKind.SECTION_A:
                if index is None or not 0 <= index < len(self._answers_a):
                    raise IndexError(f"Section A has no question at index {index}")
                self._answers_a[index] = text
            elif self._step.kind == StepKind.SECTION_B:
                self._answers_b[self._step.index] = text
            else:
                raise InvalidTransitionError(f"Cannot write answers in step {self._step}")

    def intercept_clipboard(self, action: ClipboardAction) -> str | None:
        """
        Block a clipboard gesture on an answer field.

        Returns:
            The notice to show the student, or None outside answering steps.
        """
        with self._lock:
            if not self._step.is_answering:
                return None
            self._blocked_clipboard_attempts += 1
            logger.warning(
                "Blocked %s by %s in %s (attempt %d)",
                action.value,
                self._student_id,
                self._step,
                self._blocked_clipboard_attempts,
            )
            return CLIPBOARD_NOTICE

    def advance(self) -> SessionStep:
        """
        Finish the current step voluntarily.

        Raises:
            InvalidTransitionError: If the session is not in an answering step.
        """
        return self._dispatch(SessionEvent.ADVANCE)

    # ==========================================================================
    # Timer
    # ==========================================================================

    def tick(self, seconds: int = 1) -> SessionStep:
        """
        Count down the current step.

        Ticks outside answering steps are ignored, which pauses the countdown
        while grading is in flight.

        Returns:
            The step after the tick.
        """
        with self._lock:
            if not self._step.is_answering:
                return self._step
            self._remaining = max(self._remaining - seconds, 0)
            if self._remaining == 0:
                logger.info("Time is up for %s in %s", self._student_id, self._step)
                return self._dispatch(SessionEvent.TIMEOUT)
            return self._step

    # ==========================================================================
    # Transitions
    # ==========================================================================

    def _dispatch(self, event: SessionEvent) -> SessionStep:
        with self._lock:
            step = next_step(self._step, event, len(self._answers_b))
            logger.debug("%s: %s --%s--> %s", self._student_id, self._step, event.value, step)
            self._step = step
            self._visited.append(step)
            self._remaining = self._duration_of(step)

            if step == SUBMITTING_STEP:
                self._submit()
            elif step == COMPLETED_STEP:
                self._complete()
            return self._step

    def _submit(self) -> None:
        self._status_message = SUBMITTING_MESSAGE
        try:
            self._submission = self._aggregator.build_submission(
                self._assignment,
                self._student_id,
                self._student_name,
                self.answers_a,
                self.answers_b,
                progress=self._set_status,
            )
        except Exception:
            logger.exception(
                "Building the submission failed for %s on %s, falling back to manual review",
                self._student_id,
                self._assignment.id,
            )
            self._submission = fallback_submission(
                self._assignment,
                self._student_id,
                self._student_name,
                self.answers_a,
                self.answers_b,
            )
        self._dispatch(SessionEvent.GRADING_FINISHED)

    def _complete(self) -> None:
        if self._submission is None:
            raise InvalidTransitionError("Completed without a submission to hand over")
        if self._submission.is_ai_graded:
            self._status_message = GRADED_MESSAGE
        else:
            self._status_message = MANUAL_REVIEW_MESSAGE
        if self._store is None:
            return
        try:
            self._store.create_submission(self._submission)
        except DuplicateSubmissionError as e:
            logger.warning("Discarding %s: %s", self._submission.id, e)
            self._submission = None
            self._status_message = ALREADY_RECORDED_MESSAGE

    def _set_status(self, message: str) -> None:
        self._status_message = message

    def _duration_of(self, step: SessionStep) -> int:
        if step.kind == StepKind.SECTION_A:
            return self._settings.section_a_seconds
        if step.kind == StepKind.SECTION_B:
            return self._settings.essay_seconds
        return 0
