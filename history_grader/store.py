"""
Record store collaborator.

The grading core only needs to create and update submissions and to read
the current assignment and submission snapshots. SubmissionStore names that
surface; InMemoryStore is the reference implementation used by the command
line and the tests. Updates are last-write-wins.
"""

import logging
from collections.abc import Callable
from typing import Protocol

from history_grader.models import Assignment, Submission, User

logger = logging.getLogger(__name__)

SubmissionListener = Callable[[list[Submission]], None]


class StoreError(Exception):
    """Base class for store failures."""


class DuplicateSubmissionError(StoreError):
    """Raised when a student already has a submission for an assignment."""

    def __init__(self, assignment_id: str, student_id: str):
        self.assignment_id = assignment_id
        self.student_id = student_id
        super().__init__(
            f"Student {student_id} already has a submission for assignment {assignment_id}"
        )


class SubmissionNotFoundError(StoreError):
    """Raised when a submission or assignment id is unknown."""


class SubmissionStore(Protocol):
    """Operations the grading core needs from the record store."""

    def create_submission(self, submission: Submission) -> None: ...

    def update_submission(self, submission: Submission) -> None: ...

    def get_assignment(self, assignment_id: str) -> Assignment: ...

    def get_submission(self, submission_id: str) -> Submission: ...

    def find_submission(self, assignment_id: str, student_id: str) -> Submission | None: ...

    def list_submissions(self) -> list[Submission]: ...

    def subscribe(self, listener: SubmissionListener) -> Callable[[], None]: ...


class InMemoryStore:
    """
    Dictionary-backed store with push-on-change subscriptions.

    Every listener receives the full submission list after each change,
    and once immediately on subscription.
    """

    def __init__(
        self,
        assignments: list[Assignment] | None = None,
        users: list[User] | None = None,
    ):
        self._assignments: dict[str, Assignment] = {a.id: a for a in assignments or []}
        self._users: dict[str, User] = {u.user_id: u for u in users or []}
        self._submissions: dict[str, Submission] = {}
        self._listeners: list[SubmissionListener] = []

    def add_assignment(self, assignment: Assignment) -> None:
        """Store an assignment, replacing any with the same id."""
        self._assignments[assignment.id] = assignment

    def get_assignment(self, assignment_id: str) -> Assignment:
        try:
            return self._assignments[assignment_id]
        except KeyError:
            raise SubmissionNotFoundError(f"Unknown assignment: {assignment_id}") from None

    def list_assignments(self) -> list[Assignment]:
        """Return assignments, newest first."""
        return sorted(self._assignments.values(), key=lambda a: a.created_at, reverse=True)

    def add_user(self, user: User) -> None:
        """Store a user, replacing any with the same id."""
        self._users[user.user_id] = user

    def list_users(self) -> list[User]:
        return list(self._users.values())

    def create_submission(self, submission: Submission) -> None:
        """
        Store a new submission.

        Raises:
            DuplicateSubmissionError: If the student already submitted this assignment.
        """
        if self.find_submission(submission.assignment_id, submission.student_id) is not None:
            raise DuplicateSubmissionError(submission.assignment_id, submission.student_id)
        self._submissions[submission.id] = submission
        logger.info("Stored submission %s", submission.id)
        self._notify()

    def update_submission(self, submission: Submission) -> None:
        """
        Overwrite a stored submission.

        Raises:
            SubmissionNotFoundError: If the submission was never created.
        """
        if submission.id not in self._submissions:
            raise SubmissionNotFoundError(f"Unknown submission: {submission.id}")
        self._submissions[submission.id] = submission
        logger.info("Updated submission %s", submission.id)
        self._notify()

    def get_submission(self, submission_id: str) -> Submission:
        try:
            return self._submissions[submission_id]
        except KeyError:
            raise SubmissionNotFoundError(f"Unknown submission: {submission_id}") from None

    def find_submission(self, assignment_id: str, student_id: str) -> Submission | None:
        for submission in self._submissions.values():
            if submission.assignment_id == assignment_id and submission.student_id == student_id:
                return submission
        return None

    def list_submissions(self) -> list[Submission]:
        return list(self._submissions.values())

    def delete_submissions_for_student(self, student_id: str) -> int:
        """Remove every submission of a student; returns how many were removed."""
        doomed = [s.id for s in self._submissions.values() if s.student_id == student_id]
        for submission_id in doomed:
            del self._submissions[submission_id]
        if doomed:
            self._notify()
        return len(doomed)

    def subscribe(self, listener: SubmissionListener) -> Callable[[], None]:
        """
        Register a listener for submission changes.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)
        listener(self.list_submissions())

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.list_submissions()
        for listener in list(self._listeners):
            listener(snapshot)
