"""
Atomic Mastery CLI - operator commands for the mastery engine.

Usage:
    atomic-mastery init-db                          # Create tables
    atomic-mastery progress USER LESSON             # Show lesson progress
    atomic-mastery apply USER LESSON ELEMENT SCORE  # Apply an element score ("ALL" for every element)
    atomic-mastery grade USER LESSON answers.json   # Grade a submission batch
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Annotated, Any

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from atomic_mastery.config import Settings, get_settings
from atomic_mastery.engine.errors import MasteryError
from atomic_mastery.engine.grader import SubmissionGrader
from atomic_mastery.engine.orchestrator import MasteryOrchestrator
from atomic_mastery.engine.rewards import LessonCompletionReward
from atomic_mastery.engine.schemas import ElementPhase, LessonProgress, MasteryUpdateResult

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="atomic-mastery",
    help="Atomic mastery engine - per-element mastery tracking",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

PHASE_STYLES = {
    ElementPhase.MASTERED: "green",
    ElementPhase.IN_PROGRESS: "yellow",
    ElementPhase.PENDING: "dim",
}


def configure_logging(settings: Settings | None = None) -> None:
    """Install the stderr sink and, when configured, a rotating file sink."""
    settings = settings or get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{level: <8}</level> | {name}:{function} - <level>{message}</level>",
    )
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            settings.log_file,
            level="DEBUG",
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
        )


def _build_orchestrator(settings: Settings) -> MasteryOrchestrator:
    from atomic_mastery.db.repositories import (
        SqlCoinWallet,
        SqlLessonStructureProvider,
        SqlMasteryStore,
    )

    return MasteryOrchestrator(
        SqlLessonStructureProvider(),
        SqlMasteryStore(),
        LessonCompletionReward(SqlCoinWallet(), settings),
        settings=settings,
    )


async def _with_engine(coro: Any) -> Any:
    """Run a database coroutine, then release pooled connections."""
    from atomic_mastery.db.database import dispose_async_engine

    try:
        return await coro
    finally:
        await dispose_async_engine()


def _fail(error: Exception) -> typer.Exit:
    console.print(f"[red]✗ {type(error).__name__}: {error}[/]")
    return typer.Exit(code=1)


# =============================================================================
# Schema
# =============================================================================


@app.command("init-db")
def init_db_command() -> None:
    """Create the atomic mastery tables (idempotent)."""
    from atomic_mastery.db.database import init_db

    tables = init_db()
    console.print(f"[green]✓ Tables ready:[/] {', '.join(tables)}")


# =============================================================================
# Mastery Commands
# =============================================================================


@app.command()
def progress(
    user_id: Annotated[str, typer.Argument(help="Learner ID")],
    lesson_id: Annotated[str, typer.Argument(help="Lesson ID")],
) -> None:
    """Show per-element mastery for one learner and lesson."""
    settings = get_settings()
    orchestrator = _build_orchestrator(settings)

    try:
        result = asyncio.run(_with_engine(orchestrator.get_lesson_progress(user_id, lesson_id)))
    except MasteryError as e:
        raise _fail(e) from e

    if result is None:
        console.print(f"[yellow]Lesson {lesson_id} has no atomic structure[/]")
        raise typer.Exit(code=1)

    _print_progress(user_id, result)


@app.command()
def apply(
    user_id: Annotated[str, typer.Argument(help="Learner ID")],
    lesson_id: Annotated[str, typer.Argument(help="Lesson ID")],
    element_id: Annotated[str, typer.Argument(help="Element ID, or ALL")],
    score: Annotated[float, typer.Argument(help="Observed score 0-100")],
    reason: Annotated[
        str | None, typer.Option("--reason", "-r", help="Update reason (quiz_perfect bypasses damping)")
    ] = None,
) -> None:
    """Apply an observed score to an element."""
    settings = get_settings()
    orchestrator = _build_orchestrator(settings)

    try:
        result = asyncio.run(
            _with_engine(orchestrator.apply_element_update(user_id, lesson_id, element_id, score, reason))
        )
    except MasteryError as e:
        raise _fail(e) from e

    _print_update(result)


@app.command()
def grade(
    user_id: Annotated[str, typer.Argument(help="Learner ID")],
    lesson_id: Annotated[str, typer.Argument(help="Lesson ID")],
    answers_file: Annotated[
        Path, typer.Argument(help="JSON array of {questionId, widgetType, rawAnswer}", exists=True)
    ],
) -> None:
    """Grade a batch of answers and update atom mastery."""
    settings = get_settings()
    try:
        submissions = json.loads(answers_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise _fail(e) from e
    if not isinstance(submissions, list):
        console.print("[red]✗ Answers file must contain a JSON array[/]")
        raise typer.Exit(code=1)

    from atomic_mastery.db.repositories import SqlQuestionBank

    orchestrator = _build_orchestrator(settings)
    grader = SubmissionGrader(SqlQuestionBank(), orchestrator, settings)

    try:
        result = asyncio.run(_with_engine(grader.grade_submission(user_id, lesson_id, submissions)))
    except MasteryError as e:
        raise _fail(e) from e

    table = Table(title=f"Grading {user_id} / {lesson_id}")
    table.add_column("Atom", style="cyan")
    table.add_column("Delta", justify="right")
    table.add_column("Updated", justify="center")
    for atom_id, delta in result.per_atom_deltas.items():
        ok = atom_id not in result.failed_atoms
        table.add_row(atom_id, f"{delta:+d}", "[green]✓[/]" if ok else "[red]✗[/]")

    console.print(
        Panel(
            f"[bold]{result.correct_count}/{result.total_questions}[/] correct "
            f"([bold cyan]{result.percentage}%[/])",
            border_style="cyan",
        )
    )
    if result.per_atom_deltas:
        console.print(table)


# =============================================================================
# Output
# =============================================================================


def _print_progress(user_id: str, result: LessonProgress) -> None:
    table = Table(title=f"{user_id} / {result.lesson_id}")
    table.add_column("Element", style="cyan")
    table.add_column("Title")
    table.add_column("Weight", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Phase")
    table.add_column("Next review")

    for element in result.elements:
        style = PHASE_STYLES[element.phase]
        table.add_row(
            element.id,
            element.title,
            f"{element.weight:g}",
            str(element.score),
            f"[{style}]{element.phase.value}[/]",
            element.next_review.strftime("%Y-%m-%d %H:%M") if element.next_review else "-",
        )

    console.print(table)
    console.print(
        f"Global mastery: [bold cyan]{result.global_mastery}%[/]  "
        f"Status: [bold]{result.status.value}[/]"
    )
    if result.next_focus:
        console.print(f"Next focus: [yellow]{result.next_focus}[/]")
    if result.due_elements:
        console.print(f"Due for review: {', '.join(result.due_elements)}")


def _print_update(result: MasteryUpdateResult) -> None:
    if not result.applied:
        console.print(f"[yellow]Skipped ({result.skipped.value})[/]")
        return

    console.print(
        f"[green]✓[/] {result.element_id} -> {result.applied_score}  "
        f"Global mastery: [bold cyan]{result.global_mastery}%[/]  Status: {result.status.value}"
    )
    if result.reward and result.reward.reward_granted:
        console.print(
            f"[bold yellow]Lesson mastered! +{result.reward.coins_added} coins[/] "
            f"({result.reward.reason}, balance {result.reward.new_balance})"
        )


def run() -> None:
    """CLI entry point."""
    configure_logging()
    app()


if __name__ == "__main__":
    run()
