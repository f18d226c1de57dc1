"""
History Grader CLI Application.

Provides a command-line interface for grading submissions, applying
teacher reviews and reporting standings.
"""

import json
import logging
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from history_grader.assignments import AssignmentValidationError, AssignmentValidator
from history_grader.config import get_settings
from history_grader.grade_scale import band_ranges, grade_family
from history_grader.grading import (
    GradingAggregator,
    GradingClient,
    GradingServiceError,
    Section,
    TeacherReview,
)
from history_grader.models import SECTION_A_MAX, SECTION_B_MAX, Assignment, Submission, User
from history_grader.reports import leaderboard as rank_students

# Create Typer app
app = typer.Typer(
    name="history-grader",
    help="Timed history assessments with AI-assisted grading",
    add_completion=False,
)

console = Console()

GRADE_COLORS = {"A": "green", "B": "blue", "C": "yellow", "D": "dark_orange", "F": "red"}


class InputError(Exception):
    """Raised when an input file is missing or malformed."""


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


def _load_model(path: Path, model: Any, label: str) -> Any:
    if not path.exists():
        raise InputError(f"{label} file not found: {path}")
    try:
        return TypeAdapter(model).validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise InputError(f"Invalid {label.lower()} file {path}:\n{e}") from e


def _load_answers(path: Path, assignment: Assignment) -> tuple[list[str], list[str]]:
    if not path.exists():
        raise InputError(f"Answers file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        answers_a, answers_b = list(data["section_a"]), list(data["section_b"])
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        raise InputError(
            f"Invalid answers file {path}: expected {{\"section_a\": [...], \"section_b\": [...]}}"
        ) from e

    for name, answers, questions in (
        ("Section A", answers_a, assignment.section_a_questions),
        ("Section B", answers_b, assignment.section_b_questions),
    ):
        if len(answers) != len(questions):
            raise InputError(
                f"Answers file {path} has {len(answers)} {name} answers "
                f"for {len(questions)} questions"
            )
    return answers_a, answers_b


@app.command()
def grade(
    assignment_file: Annotated[Path, typer.Argument(help="Path to the assignment JSON")],
    answers_file: Annotated[Path, typer.Argument(help="Path to the answers JSON")],
    student_id: Annotated[str, typer.Option("--student-id", "-s", help="Student id")] = "student",
    student_name: Annotated[str, typer.Option("--student-name", "-n", help="Student name")] = "",
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Where to save the submission JSON"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show per-question marks"),
    ] = False,
) -> None:
    """
    Grade a set of answers with the grading service.

    If automated grading fails the submission is still produced, with a
    mark of 0 and a notice that the teacher will grade it manually.
    """
    try:
        settings = get_settings()
        _configure_logging(settings.log_level)

        assignment: Assignment = _load_model(assignment_file, Assignment, "Assignment")
        AssignmentValidator().validate_or_raise(assignment)
        answers_a, answers_b = _load_answers(answers_file, assignment)

        aggregator = GradingAggregator(GradingClient(settings))

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Submitting answers...", total=None)
            submission = aggregator.build_submission(
                assignment,
                student_id,
                student_name,
                answers_a,
                answers_b,
                progress=lambda message: progress.update(task, description=message),
            )

        _display_submission(submission, assignment, verbose)

        if output:
            output.write_text(submission.model_dump_json(indent=2), encoding="utf-8")
            console.print(f"\n[green]Submission saved to:[/green] {output}")

    except InputError as e:
        console.print(f"[red]Input Error:[/red] {e}")
        raise typer.Exit(1)
    except AssignmentValidationError as e:
        console.print(f"[red]Assignment Validation Error:[/red] {e}")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def review(
    assignment_file: Annotated[Path, typer.Argument(help="Path to the assignment JSON")],
    submission_file: Annotated[Path, typer.Argument(help="Path to the submission JSON")],
    mark_a: Annotated[
        Optional[list[str]],
        typer.Option("--mark-a", "-a", help="Section A marks in question order (repeatable)"),
    ] = None,
    mark_b: Annotated[
        Optional[list[str]],
        typer.Option("--mark-b", "-b", help="Section B marks in question order (repeatable)"),
    ] = None,
    feedback: Annotated[
        Optional[str],
        typer.Option("--feedback", "-f", help="Teacher feedback (replaces the current text)"),
    ] = None,
    regenerate: Annotated[
        bool,
        typer.Option("--regenerate", help="Re-run automated grading before applying marks"),
    ] = False,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Where to save the graded submission JSON"),
    ] = None,
) -> None:
    """
    Apply a teacher's review and confirm the grade.

    The final mark is recomputed from the per-question marks.
    """
    try:
        settings = get_settings()
        _configure_logging(settings.log_level)

        assignment: Assignment = _load_model(assignment_file, Assignment, "Assignment")
        submission: Submission = _load_model(submission_file, Submission, "Submission")

        teacher_review = TeacherReview(submission, assignment)

        if regenerate:
            with console.status("Regenerating AI analysis..."):
                teacher_review.regenerate(GradingAggregator(GradingClient(settings)))

        for section, values in ((Section.A, mark_a), (Section.B, mark_b)):
            for index, value in enumerate(values or []):
                if not teacher_review.set_mark(section, index, value):
                    console.print(
                        f"[yellow]⚠ Ignored mark {value!r} for section "
                        f"{section.value.upper()} question {index + 1}[/yellow]"
                    )

        if feedback is not None:
            teacher_review.set_feedback(feedback)

        graded = teacher_review.finalize()
        _display_submission(graded, assignment, verbose=True)

        target = output or submission_file
        target.write_text(graded.model_dump_json(indent=2), encoding="utf-8")
        console.print(f"\n[green]Graded submission saved to:[/green] {target}")

    except InputError as e:
        console.print(f"[red]Input Error:[/red] {e}")
        raise typer.Exit(1)
    except GradingServiceError as e:
        console.print(f"[red]Grading Service Error:[/red] {e}")
        raise typer.Exit(1)
    except ValidationError as e:
        console.print(f"[red]Validation Error:[/red] {e}")
        raise typer.Exit(1)
    except (IndexError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def leaderboard(
    users_file: Annotated[Path, typer.Argument(help="Path to the users JSON list")],
    submissions_file: Annotated[Path, typer.Argument(help="Path to the submissions JSON list")],
) -> None:
    """Rank students by the average of their graded submissions."""
    try:
        users: list[User] = _load_model(users_file, list[User], "Users")
        submissions: list[Submission] = _load_model(
            submissions_file, list[Submission], "Submissions"
        )
    except InputError as e:
        console.print(f"[red]Input Error:[/red] {e}")
        raise typer.Exit(1)

    students = [u for u in users if u.role == "student"]
    table = Table(title="Leaderboard")
    table.add_column("Rank", justify="right")
    table.add_column("Student", style="cyan")
    table.add_column("Class")
    table.add_column("Graded", justify="right")
    table.add_column("Average", justify="right")
    table.add_column("Grade", justify="center")

    for standing in rank_students(students, submissions):
        color = GRADE_COLORS[grade_family(standing.grade)]
        table.add_row(
            str(standing.rank),
            standing.name or standing.student_id,
            standing.class_name or "-",
            str(standing.graded_count),
            f"{standing.average:.1f}",
            f"[{color}]{standing.grade}[/{color}]",
        )

    console.print(table)


@app.command()
def scale() -> None:
    """Show the official STPM grade scale."""
    table = Table(title="STPM Grade Scale")
    table.add_column("Grade", justify="center")
    table.add_column("Marks", justify="right")

    for letter, marks in band_ranges():
        color = GRADE_COLORS[grade_family(letter)]
        table.add_row(f"[{color}]{letter}[/{color}]", marks)

    console.print(table)


@app.command()
def health() -> None:
    """
    Check if the grading service is reachable.

    Verifies API connectivity and configuration.
    """
    try:
        settings = get_settings()
        console.print("[bold]History Grader Health Check[/bold]\n")

        console.print("[dim]Checking configuration...[/dim]")
        console.print(f"  API Base URL: {settings.ai_base_url}")
        console.print(f"  Model: {settings.ai_model}")
        console.print(f"  Feedback Language: {settings.feedback_language}")
        console.print(f"  Section A Time: {settings.section_a_seconds // 60} min")
        console.print(f"  Essay Time: {settings.essay_seconds // 60} min each")

        console.print("\n[dim]Checking API connectivity...[/dim]")
        if GradingClient(settings).health_check():
            console.print("[green]✓ API is reachable[/green]")
        else:
            console.print("[red]✗ API is not reachable[/red]")
            raise typer.Exit(1)

        console.print("\n[green]All systems operational[/green]")

    except ValidationError as e:
        console.print(f"[red]Configuration Error:[/red] {e}")
        raise typer.Exit(1)


def _display_submission(
    submission: Submission, assignment: Assignment, verbose: bool = False
) -> None:
    """Display a submission's marks in a formatted panel and table."""
    color = GRADE_COLORS[grade_family(submission.grade)]
    console.print(
        Panel(
            f"[{color}][bold]{submission.aggregate_mark} / {assignment.max_total}[/bold] "
            f"(Grade {submission.grade})[/{color}]\n"
            f"Status: {submission.status.value}",
            title=f"{assignment.title} - {submission.student_name or submission.student_id}",
        )
    )

    if not submission.is_ai_graded and submission.marks_a is None:
        console.print("[yellow]⚠ Automated grading failed; manual grading is required[/yellow]")

    if verbose and submission.marks_a is not None and submission.marks_b is not None:
        table = Table(title="Marks Breakdown")
        table.add_column("Question", style="cyan")
        table.add_column("Mark", justify="right")
        table.add_column("Comment")

        comments_a = submission.ai_comments_a or ()
        comments_b = submission.ai_comments_b or ()
        for i, mark in enumerate(submission.marks_a):
            comment = comments_a[i] if i < len(comments_a) else ""
            table.add_row(f"A{i + 1}", f"{mark}/{SECTION_A_MAX}", comment)
        for i, mark in enumerate(submission.marks_b):
            comment = comments_b[i] if i < len(comments_b) else ""
            table.add_row(f"B{i + 1}", f"{mark}/{SECTION_B_MAX}", comment)

        console.print(table)

    if submission.overall_feedback:
        console.print(Panel(submission.overall_feedback, title="Feedback"))


if __name__ == "__main__":
    app()
