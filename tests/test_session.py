"""
Unit tests for the exam session controller and its countdown.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from history_grader.config import Settings
from history_grader.grading import GradingAggregator
from history_grader.models import Assignment, SubmissionStatus
from history_grader.session import (
    ClipboardAction,
    CountdownTicker,
    ExamSessionController,
    InvalidTransitionError,
    SessionEvent,
    SessionStep,
    StepKind,
    next_step,
)
from history_grader.session.controller import (
    ALREADY_RECORDED_MESSAGE,
    CLIPBOARD_NOTICE,
    COMPLETED_STEP,
    GRADED_MESSAGE,
    MANUAL_REVIEW_MESSAGE,
    SECTION_A_STEP,
    SUBMITTING_STEP,
)
from history_grader.store import DuplicateSubmissionError, InMemoryStore


@pytest.fixture
def controller(
    sample_assignment: Assignment,
    aggregator: GradingAggregator,
    test_settings: Settings,
) -> ExamSessionController:
    """A fresh session for student_1."""
    return ExamSessionController(
        sample_assignment, "student_1", "Aisyah", aggregator, settings=test_settings
    )


class TestNextStep:
    """Tests for the transition function."""

    def test_section_a_to_first_essay(self) -> None:
        """Test leaving Section A opens essay 0."""
        assert next_step(SECTION_A_STEP, SessionEvent.ADVANCE, 3) == SessionStep(
            StepKind.SECTION_B, 0
        )

    def test_essay_to_next_essay(self) -> None:
        """Test leaving an essay opens the next one."""
        step = SessionStep(StepKind.SECTION_B, 1)
        assert next_step(step, SessionEvent.TIMEOUT, 3) == SessionStep(StepKind.SECTION_B, 2)

    def test_last_essay_to_submitting(self) -> None:
        """Test leaving the last essay starts submission."""
        step = SessionStep(StepKind.SECTION_B, 2)
        assert next_step(step, SessionEvent.ADVANCE, 3) == SUBMITTING_STEP

    def test_no_essays_skips_section_b(self) -> None:
        """Test an assignment without essays submits after Section A."""
        assert next_step(SECTION_A_STEP, SessionEvent.ADVANCE, 0) == SUBMITTING_STEP

    @pytest.mark.parametrize("event", [SessionEvent.ADVANCE, SessionEvent.TIMEOUT])
    def test_timeout_equals_advance(self, event: SessionEvent) -> None:
        """Test both events lead to the same step."""
        assert next_step(SECTION_A_STEP, event, 2) == SessionStep(StepKind.SECTION_B, 0)

    def test_grading_finished_completes(self) -> None:
        """Test Submitting moves to Completed when grading returns."""
        assert next_step(SUBMITTING_STEP, SessionEvent.GRADING_FINISHED, 2) == COMPLETED_STEP

    @pytest.mark.parametrize(
        "step,event",
        [
            (SUBMITTING_STEP, SessionEvent.ADVANCE),
            (SUBMITTING_STEP, SessionEvent.TIMEOUT),
            (COMPLETED_STEP, SessionEvent.ADVANCE),
            (COMPLETED_STEP, SessionEvent.GRADING_FINISHED),
            (SECTION_A_STEP, SessionEvent.GRADING_FINISHED),
        ],
    )
    def test_invalid_transitions(self, step: SessionStep, event: SessionEvent) -> None:
        """Test events that do not apply raise InvalidTransitionError."""
        with pytest.raises(InvalidTransitionError):
            next_step(step, event, 2)

    def test_step_labels(self) -> None:
        """Test steps render with their essay index."""
        assert str(SECTION_A_STEP) == "SectionA"
        assert str(SessionStep(StepKind.SECTION_B, 0)) == "SectionB[0]"
        assert str(COMPLETED_STEP) == "Completed"


class TestExamSessionController:
    """Tests for ExamSessionController."""

    def test_starts_in_section_a(self, controller: ExamSessionController) -> None:
        """Test a new session starts in Section A with the full countdown."""
        assert controller.step == SECTION_A_STEP
        assert controller.remaining_seconds == 5
        assert controller.answers_a == ("",) * 5
        assert controller.submission is None

    def test_full_walk_visits_every_step_once(self, controller: ExamSessionController) -> None:
        """Test the visited sequence has length essays + 3 with no revisits."""
        while controller.step.is_answering:
            controller.advance()

        assert controller.visited_steps == (
            SECTION_A_STEP,
            SessionStep(StepKind.SECTION_B, 0),
            SessionStep(StepKind.SECTION_B, 1),
            SUBMITTING_STEP,
            COMPLETED_STEP,
        )
        assert len(set(controller.visited_steps)) == len(controller.visited_steps)

    def test_countdown_reset_on_entry(self, controller: ExamSessionController) -> None:
        """Test each essay step starts with the essay countdown."""
        controller.tick(2)
        controller.advance()

        assert controller.remaining_seconds == 3

    def test_timeout_keeps_partial_answer(self, controller: ExamSessionController) -> None:
        """Test expiry advances and keeps the text typed so far."""
        controller.write_answer("Partial answer", index=0)

        step = controller.tick(5)

        assert step == SessionStep(StepKind.SECTION_B, 0)
        assert controller.answers_a[0] == "Partial answer"

    def test_timeout_and_advance_give_same_result(
        self,
        sample_assignment: Assignment,
        test_settings: Settings,
        mock_grading_client: MagicMock,
    ) -> None:
        """Test a timed-out session submits the same answers as an advanced one."""
        sessions = [
            ExamSessionController(
                sample_assignment,
                "student_1",
                "Aisyah",
                GradingAggregator(mock_grading_client),
                settings=test_settings,
            )
            for _ in range(2)
        ]
        for session in sessions:
            session.write_answer("Aims of the union", index=0)

        sessions[0].advance()
        sessions[1].tick(5)
        for session in sessions:
            session.write_answer("Essay one")
        sessions[0].advance()
        sessions[1].tick(3)
        sessions[0].advance()
        sessions[1].tick(3)

        first, second = (s.submission for s in sessions)
        assert first.answers_a == second.answers_a
        assert first.answers_b == second.answers_b == ("Essay one", "")
        assert sessions[0].visited_steps == sessions[1].visited_steps

    def test_tick_counts_down(self, controller: ExamSessionController) -> None:
        """Test a tick above zero stays in the step."""
        assert controller.tick() == SECTION_A_STEP
        assert controller.remaining_seconds == 4

    def test_write_answer_in_essay_step(self, controller: ExamSessionController) -> None:
        """Test essay text goes to the current essay's buffer."""
        controller.advance()
        controller.advance()
        controller.write_answer("Second essay")

        assert controller.answers_b == ("", "Second essay")

    def test_write_answer_bad_index(self, controller: ExamSessionController) -> None:
        """Test an unknown Section A index raises IndexError."""
        with pytest.raises(IndexError):
            controller.write_answer("text", index=5)
        with pytest.raises(IndexError):
            controller.write_answer("text")

    def test_snapshot_shows_current_essay_only(self, controller: ExamSessionController) -> None:
        """Test the essay step displays one question."""
        controller.advance()
        snapshot = controller.snapshot()

        assert snapshot.step == "SectionB[0]"
        assert len(snapshot.questions) == 1
        assert snapshot.remaining_seconds == 3

    def test_completion_hands_submission_to_store(
        self,
        sample_assignment: Assignment,
        aggregator: GradingAggregator,
        test_settings: Settings,
    ) -> None:
        """Test the graded submission reaches the store on completion."""
        store = InMemoryStore([sample_assignment])
        session = ExamSessionController(
            sample_assignment, "student_1", "Aisyah", aggregator, test_settings, store
        )
        for _ in range(3):
            session.advance()

        assert session.is_finished
        assert session.status_message == GRADED_MESSAGE
        stored = store.find_submission("assign_1", "student_1")
        assert stored == session.submission
        assert stored.aggregate_mark == Decimal(43)
        assert stored.status == SubmissionStatus.SUBMITTED

    def test_fallback_completes_with_manual_review_notice(
        self,
        sample_assignment: Assignment,
        failing_grading_client: MagicMock,
        test_settings: Settings,
    ) -> None:
        """Test a grading failure still completes the session."""
        store = InMemoryStore([sample_assignment])
        session = ExamSessionController(
            sample_assignment,
            "student_2",
            "Ben",
            GradingAggregator(failing_grading_client),
            test_settings,
            store,
        )
        session.write_answer("Answer kept", index=1)
        for _ in range(3):
            session.advance()

        assert session.step == COMPLETED_STEP
        assert session.status_message == MANUAL_REVIEW_MESSAGE
        stored = store.find_submission("assign_1", "student_2")
        assert stored.aggregate_mark == Decimal(0)
        assert stored.marks_a is None
        assert stored.answers_a[1] == "Answer kept"

    def test_duplicate_session_refused(
        self,
        sample_assignment: Assignment,
        aggregator: GradingAggregator,
        test_settings: Settings,
        ai_graded_submission,
    ) -> None:
        """Test a student cannot start a second attempt."""
        store = InMemoryStore([sample_assignment])
        store.create_submission(ai_graded_submission)

        with pytest.raises(DuplicateSubmissionError):
            ExamSessionController(
                sample_assignment, "student_1", "Aisyah", aggregator, test_settings, store
            )

    def test_concurrent_attempts_keep_first_submission(
        self,
        sample_assignment: Assignment,
        aggregator: GradingAggregator,
        test_settings: Settings,
    ) -> None:
        """Test a second attempt opened before the first finished is not saved."""
        store = InMemoryStore([sample_assignment])
        first, second = (
            ExamSessionController(
                sample_assignment, "student_1", "Aisyah", aggregator, test_settings, store
            )
            for _ in range(2)
        )
        for _ in range(3):
            first.advance()

        second.advance()
        second.advance()
        step = second.advance()

        assert step == COMPLETED_STEP
        assert second.status_message == ALREADY_RECORDED_MESSAGE
        assert second.submission is None
        assert store.list_submissions() == [first.submission]

    def test_empty_student_id_refused(
        self,
        sample_assignment: Assignment,
        aggregator: GradingAggregator,
        test_settings: Settings,
    ) -> None:
        """Test a session cannot start without a student id."""
        with pytest.raises(ValueError, match="student_id"):
            ExamSessionController(sample_assignment, " ", "", aggregator, test_settings)

    def test_unexpected_grading_error_still_completes(
        self,
        sample_assignment: Assignment,
        mock_grading_client: MagicMock,
        test_settings: Settings,
    ) -> None:
        """Test an unexpected error while grading falls back and completes."""
        mock_grading_client.grade_essay.side_effect = RuntimeError("boom")
        store = InMemoryStore([sample_assignment])
        session = ExamSessionController(
            sample_assignment,
            "student_1",
            "Aisyah",
            GradingAggregator(mock_grading_client),
            test_settings,
            store,
        )
        session.write_answer("Kept", index=0)
        for _ in range(3):
            session.advance()

        assert session.is_finished
        assert session.status_message == MANUAL_REVIEW_MESSAGE
        stored = store.find_submission("assign_1", "student_1")
        assert stored.answers_a[0] == "Kept"
        assert stored.marks_a is None
        assert session.tick(10) == COMPLETED_STEP

    def test_completion_without_submission_raises(self, controller: ExamSessionController) -> None:
        """Test completing with nothing to hand over is an invalid transition."""
        with pytest.raises(InvalidTransitionError, match="without a submission"):
            controller._complete()

    def test_advance_after_completion_raises(self, controller: ExamSessionController) -> None:
        """Test no action is accepted once the session has completed."""
        for _ in range(3):
            controller.advance()

        with pytest.raises(InvalidTransitionError):
            controller.advance()
        with pytest.raises(InvalidTransitionError):
            controller.write_answer("late", index=0)

    def test_tick_ignored_after_completion(self, controller: ExamSessionController) -> None:
        """Test the countdown has no effect outside answering steps."""
        for _ in range(3):
            controller.advance()

        assert controller.tick(10) == COMPLETED_STEP
        assert len(controller.visited_steps) == 5

    def test_clipboard_blocked_while_answering(self, controller: ExamSessionController) -> None:
        """Test clipboard gestures are blocked and counted."""
        assert controller.intercept_clipboard(ClipboardAction.PASTE) == CLIPBOARD_NOTICE
        assert controller.intercept_clipboard(ClipboardAction.COPY) == CLIPBOARD_NOTICE

        assert controller.blocked_clipboard_attempts == 2
        assert controller.snapshot().blocked_clipboard_attempts == 2

    def test_clipboard_ignored_after_completion(self, controller: ExamSessionController) -> None:
        """Test nothing is intercepted once answering is over."""
        for _ in range(3):
            controller.advance()

        assert controller.intercept_clipboard(ClipboardAction.CUT) is None
        assert controller.blocked_clipboard_attempts == 0


class TestCountdownTicker:
    """Tests for CountdownTicker."""

    def test_runs_session_to_completion(self, controller: ExamSessionController) -> None:
        """Test the ticker times out every step and then stops."""
        ticker = CountdownTicker(controller, interval=0.001)
        ticker.start()
        ticker.join(timeout=5)

        assert not ticker.running
        assert controller.is_finished
        assert len(controller.visited_steps) == 5

    def test_stop(self, controller: ExamSessionController) -> None:
        """Test a stopped ticker leaves the session where it was."""
        ticker = CountdownTicker(controller, interval=10)
        ticker.start()
        ticker.stop()
        ticker.join(timeout=5)

        assert not ticker.running
        assert controller.step == SECTION_A_STEP
        assert controller.remaining_seconds == 5
