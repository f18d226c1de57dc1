"""
Application navigation state.

The current screen and the selected records travel together in one
immutable NavigationContext that is passed explicitly between screens.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class AppView(str, Enum):
    """Screens of the application."""

    LOGIN = "login"
    TEACHER_DASHBOARD = "teacher-dashboard"
    STUDENT_DASHBOARD = "student-dashboard"
    CREATE_ASSIGNMENT = "create-assignment"
    ANSWER_ASSIGNMENT = "answer-assignment"
    VIEW_SUBMISSIONS = "view-submissions"
    GRADE_SUBMISSION = "grade-submission"
    PERFORMANCE = "performance"
    LEADERBOARD = "leaderboard"
    REGISTER_STUDENTS = "register-students"
    VIEW_STUDENTS = "view-students"


# Screens that cannot render without a selected record.
REQUIRED_SELECTION: dict[AppView, str] = {
    AppView.ANSWER_ASSIGNMENT: "assignment_id",
    AppView.VIEW_SUBMISSIONS: "assignment_id",
    AppView.GRADE_SUBMISSION: "submission_id",
}


class NavigationContext(BaseModel):
    """Where the user is and which records they have selected."""

    model_config = ConfigDict(frozen=True)

    view: AppView = AppView.LOGIN
    previous_view: AppView | None = None
    user_id: str | None = None
    assignment_id: str | None = None
    submission_id: str | None = None
    student_id: str | None = None


def navigate(
    context: NavigationContext, view: AppView, **selection: str | None
) -> NavigationContext:
    """
    Move to another screen.

    Args:
        context: The current context.
        view: The screen to show.
        **selection: Selected ids to set (assignment_id, submission_id, student_id).

    Returns:
        The new context; selections not mentioned are kept.

    Raises:
        ValueError: If a selection key is unknown or the screen's required
            selection is missing.
    """
    unknown = set(selection) - {"assignment_id", "submission_id", "student_id"}
    if unknown:
        raise ValueError(f"Unknown selection: {sorted(unknown)}")

    updated = context.model_copy(
        update={"view": view, "previous_view": context.view, **selection}
    )

    required = REQUIRED_SELECTION.get(view)
    if required and getattr(updated, required) is None:
        raise ValueError(f"{view.value} needs a selected {required}")
    return updated


def login(user_id: str, is_teacher: bool) -> NavigationContext:
    """Context right after a successful sign-in."""
    view = AppView.TEACHER_DASHBOARD if is_teacher else AppView.STUDENT_DASHBOARD
    return NavigationContext(view=view, previous_view=AppView.LOGIN, user_id=user_id)


def logout(context: NavigationContext) -> NavigationContext:
    """Return to the login screen with every selection cleared."""
    return NavigationContext(previous_view=context.view)
