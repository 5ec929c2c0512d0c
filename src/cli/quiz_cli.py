"""
quizflow: terminal front end for the assessment engine.

Commands:
- quizflow take QUIZ.json --learner ID      - Take (or resume) a quiz
- quizflow score QUIZ.json ANSWERS.json     - Score a set of answers offline
- quizflow progress show QUIZ_ID --learner  - Show saved progress
- quizflow progress clear QUIZ_ID --learner - Delete saved progress
"""
from __future__ import annotations

import json
import random
from pathlib import Path
from typing import Any, Optional

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from config import Settings, get_settings
from src.assessment.attempt import can_retry
from src.assessment.errors import AnswerRequired, AttemptLimitExceeded, PersistenceError
from src.assessment.evaluators import resolve_answer
from src.assessment.events import EventBus, QuizCompleted
from src.assessment.feedback import FeedbackTone
from src.assessment.logging import configure_logging
from src.assessment.models import QuestionKind, QuizDefinition
from src.assessment.persistence import (
    InterruptSignal,
    JsonFileProgressBackend,
    LifecycleHooks,
    ProgressBackend,
    ProgressKey,
    ProgressPort,
    SqliteProgressBackend,
)
from src.assessment.remediation import RemediationPlanner
from src.assessment.scoring import score_attempt
from src.assessment.session import SessionController, SubmissionOutcome


# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="quizflow",
    help="quizflow: quizzes with saved progress and targeted review",
    no_args_is_help=True,
)
progress_app = typer.Typer(help="Inspect or clear saved progress", no_args_is_help=True)
app.add_typer(progress_app, name="progress")

console = Console()

STYLES = {
    "correct": "bold green",
    "incorrect": "bold red",
    "info": "bold cyan",
    "warning": "bold yellow",
    "tone": {
        FeedbackTone.SUCCESS: "green",
        FeedbackTone.ENCOURAGING: "yellow",
        FeedbackTone.FINAL: "red",
    },
}

BACK = "<"
QUIT = "q"


# =============================================================================
# Loading
# =============================================================================

def _load_quiz(path: Path) -> QuizDefinition:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return QuizDefinition.model_validate(json.load(f))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        console.print(f"[{STYLES['incorrect']}]Could not load quiz {path}:[/] {e}")
        raise typer.Exit(1)


def _open_backend(settings: Settings, backend: Optional[str], store: Optional[Path]) -> ProgressBackend:
    name = (backend or settings.progress_backend).lower()
    if name == "sqlite":
        return SqliteProgressBackend(store or settings.progress_db_path)
    if name == "json":
        return JsonFileProgressBackend(store or settings.progress_store_dir)
    console.print(f"[{STYLES['incorrect']}]Unknown backend '{name}' (use json or sqlite)[/]")
    raise typer.Exit(2)


# =============================================================================
# Display Helpers
# =============================================================================

def _letter(i: int) -> str:
    return chr(65 + i)


def _letter_index(token: str) -> int | None:
    token = token.strip().upper()
    if len(token) == 1 and token.isalpha():
        return ord(token) - ord("A")
    return None


def display_question(question, index: int, total: int, options: list[tuple[str, str]]) -> None:
    """Display a question with its (label, text) options."""
    header = f"Question {index}/{total}  |  [cyan]{question.kind}[/cyan]"
    content = question.prompt
    if options:
        content += "\n\n" + "\n".join(f"  {label}. {text}" for label, text in options)

    console.print(Panel(content, title=header, title_align="left", border_style="cyan", padding=(1, 2)))


def _ask_single_choice(question) -> Any:
    labels = [_letter(i) for i in range(len(question.options))]
    choice = Prompt.ask(
        "Your answer",
        choices=labels + [c.lower() for c in labels] + [BACK, QUIT],
        show_choices=False,
    )
    if choice in (BACK, QUIT):
        return choice
    return _letter_index(choice)


def _ask_multi_select(question) -> Any:
    raw = Prompt.ask("Select all that apply (e.g. A,C)").strip()
    if raw in (BACK, QUIT):
        return raw
    indices = [_letter_index(t) for t in raw.replace(" ", ",").split(",") if t]
    if any(i is None for i in indices):
        # unparseable input is kept as-is and scores incorrect
        return raw
    return indices


def _ask_ordering(question, display_order: list[int]) -> Any:
    raw = Prompt.ask("Enter the items in order (e.g. 2 3 1)").strip()
    if raw in (BACK, QUIT):
        return raw
    try:
        arranged = [int(t) - 1 for t in raw.replace(",", " ").split()]
    except ValueError:
        return raw
    return {"display_order": display_order, "arranged": arranged}


def _walk_scenario(question) -> Any:
    """Play a scenario step by step. Returns the chosen option ids."""
    chosen: list[str] = []
    step = question.step(question.start_step_id)
    while step is not None:
        console.print(f"\n[bold]{step.situation}[/bold]")
        for i, opt in enumerate(step.options):
            console.print(f"  {_letter(i)}. {opt.text}")

        labels = [_letter(i) for i in range(len(step.options))]
        choice = Prompt.ask(
            "Your choice",
            choices=labels + [c.lower() for c in labels] + ([BACK, QUIT] if not chosen else []),
            show_choices=False,
        )
        if choice in (BACK, QUIT):
            return choice

        option = step.options[_letter_index(choice)]
        chosen.append(option.id)
        if option.consequence:
            console.print(f"[dim]{option.consequence}[/dim]")
        step = question.step(option.next_step_id) if option.next_step_id else None
    return chosen


def _ask(question, index: int, total: int) -> Any:
    kind = QuestionKind(question.kind)

    if kind == QuestionKind.SCENARIO_PATH:
        display_question(question, index, total, [])
        return _walk_scenario(question)

    if kind == QuestionKind.ORDERING:
        display_order = random.sample(range(len(question.options)), len(question.options))
        options = [(str(slot + 1), question.options[orig]) for slot, orig in enumerate(display_order)]
        display_question(question, index, total, options)
        return _ask_ordering(question, display_order)

    options = [(_letter(i), text) for i, text in enumerate(question.options)]
    display_question(question, index, total, options)
    if kind == QuestionKind.MULTI_SELECT:
        return _ask_multi_select(question)
    return _ask_single_choice(question)


def _display_outcome(outcome: SubmissionOutcome) -> None:
    score = outcome.score
    color = STYLES["tone"][outcome.feedback.tone]

    body = (
        f"{outcome.feedback.emoji} {outcome.feedback.message}\n\n"
        f"Score: [bold]{score.percentage}%[/bold] "
        f"({score.correct_count}/{score.total_count} correct)\n"
        f"XP earned: {score.xp_earned}"
    )
    if outcome.remaining_attempts is not None and not score.passed:
        body += f"\nAttempts remaining: {outcome.remaining_attempts}"
    console.print(Panel(body, title="Result", border_style=color))

    if outcome.suggestions:
        title = "Focus on these" if outcome.focus_remediation else "Review before retrying"
        table = Table(title=title)
        table.add_column("Resource")
        table.add_column("Type", style="dim")
        table.add_column("Minutes", justify="right")
        for s in outcome.suggestions:
            table.add_row(s.title, s.kind.value, str(s.estimated_minutes))
        console.print(table)
    elif outcome.encouragement:
        console.print(f"[italic]{outcome.encouragement}[/italic]")


def _announce_completion(event: QuizCompleted) -> None:
    console.print(f"[{STYLES['correct']}]Quiz complete! +{event.xp_earned} XP[/]")


def _run_attempt(controller: SessionController) -> Optional[SubmissionOutcome]:
    """Drive one attempt until it submits. Returns None if the learner quits."""
    attempt = controller.attempt
    total = len(controller.quiz.questions)

    while not attempt.is_submitted:
        question = attempt.current_question
        if question is None:
            return controller.submit()

        raw = _ask(question, attempt.cursor + 1, total)
        if raw == QUIT:
            return None
        if raw == BACK:
            controller.previous()
            continue

        controller.answer(raw)
        if controller.save_failed:
            console.print(f"[{STYLES['warning']}]Progress not saved - will retry[/]")
        try:
            outcome = controller.next()
        except AnswerRequired:
            console.print(f"[{STYLES['warning']}]Please answer before moving on[/]")
            continue
        if outcome is not None:
            return outcome

    return controller.last_outcome


# =============================================================================
# Commands
# =============================================================================

@app.command()
def take(
    quiz_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Quiz definition (JSON)"),
    learner: str = typer.Option(..., "--learner", "-l", help="Learner id"),
    remediation: Optional[Path] = typer.Option(
        None, "--remediation", "-r", exists=True, dir_okay=False, help="Remediation mapping (JSON)"
    ),
    store: Optional[Path] = typer.Option(None, "--store", help="Progress directory (json) or database (sqlite)"),
    backend: Optional[str] = typer.Option(None, "--backend", help="json or sqlite"),
    mode: Optional[str] = typer.Option(None, "--mode", help="immediate or debounced"),
) -> None:
    """Take a quiz. Picks up where you left off if progress was saved."""
    settings = get_settings()
    quiz = _load_quiz(quiz_file)
    if mode is not None and mode not in ("immediate", "debounced"):
        console.print(f"[{STYLES['incorrect']}]Unknown save mode '{mode}' (use immediate or debounced)[/]")
        raise typer.Exit(2)

    hooks = LifecycleHooks()
    hooks.install_process_exit_hook()
    port = ProgressPort(
        _open_backend(settings, backend, store),
        ProgressKey(learner, quiz.id),
        mode=mode or settings.progress_save_mode,
        flush_interval_seconds=settings.progress_flush_interval_seconds,
        hooks=hooks,
        version_check=settings.progress_version_check,
    )

    planner = None
    if remediation is not None:
        planner = RemediationPlanner.from_file(remediation, settings.remediation_max_suggestions)

    events = EventBus()
    events.subscribe(QuizCompleted, _announce_completion)
    controller = SessionController(quiz, learner, port, events=events, planner=planner, settings=settings)

    try:
        controller.open()
    except AttemptLimitExceeded as e:
        console.print(f"[{STYLES['incorrect']}]{e}[/]")
        raise typer.Exit(1)

    console.print(f"\n[{STYLES['info']}]{quiz.title or quiz.id}[/]")
    if controller.resumed:
        console.print(f"[dim]Resuming at question {controller.attempt.cursor + 1}[/dim]")
    console.print(f"[dim]Type {BACK} to go back, {QUIT} to save and quit[/dim]\n")

    try:
        outcome = _run_attempt(controller)
        while outcome is not None:
            _display_outcome(outcome)
            if outcome.passed or not can_retry(quiz.max_attempts, controller.attempts_used):
                break
            if not Confirm.ask("Try again?", default=True):
                break
            controller.retry()
            outcome = _run_attempt(controller)
        if outcome is None:
            console.print("[dim]Progress saved. Run the same command to resume.[/dim]")
    except KeyboardInterrupt:
        hooks.fire(InterruptSignal.UNLOAD)
        console.print("\n[dim]Interrupted - progress saved.[/dim]")
    finally:
        controller.close()


@app.command()
def score(
    quiz_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Quiz definition (JSON)"),
    answers_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Answers as {question_id: value}"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result as JSON"),
) -> None:
    """Score a set of answers without saving anything."""
    quiz = _load_quiz(quiz_file)
    try:
        with open(answers_file, "r", encoding="utf-8") as f:
            raw_answers = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[{STYLES['incorrect']}]Could not load answers:[/] {e}")
        raise typer.Exit(1)
    if not isinstance(raw_answers, dict):
        console.print(f"[{STYLES['incorrect']}]Answers must be a JSON object keyed by question id[/]")
        raise typer.Exit(1)

    answers = {}
    for qid, raw in raw_answers.items():
        question = quiz.get_question(qid)
        if question is None:
            logger.warning("Ignoring answer for unknown question {}", qid)
            continue
        answers[qid] = resolve_answer(question, raw)

    result = score_attempt(quiz, answers)

    if as_json:
        console.print_json(data=result.to_dict())
        return

    table = Table(title=quiz.title or quiz.id)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Question")
    table.add_column("Kind", style="dim")
    table.add_column("Result")
    table.add_column("Credit", justify="right")
    for i, question in enumerate(quiz.questions):
        ok = result.per_question_correctness[i]
        mark = f"[{STYLES['correct']}]✓[/]" if ok else f"[{STYLES['incorrect']}]✗[/]"
        table.add_row(str(i + 1), question.id, question.kind, mark, f"{result.per_question_credit[i]:.2f}")
    console.print(table)

    verdict = f"[{STYLES['correct']}]PASSED[/]" if result.passed else f"[{STYLES['incorrect']}]NOT PASSED[/]"
    console.print(
        f"\nScore: [bold]{result.percentage}%[/bold] "
        f"({result.correct_count}/{result.total_count})  {verdict}  (passing: {quiz.passing_score}%)"
    )


@progress_app.command("show")
def progress_show(
    quiz_id: str = typer.Argument(..., help="Quiz id"),
    learner: str = typer.Option(..., "--learner", "-l", help="Learner id"),
    store: Optional[Path] = typer.Option(None, "--store", help="Progress directory (json) or database (sqlite)"),
    backend: Optional[str] = typer.Option(None, "--backend", help="json or sqlite"),
) -> None:
    """Show the saved progress record for a learner and quiz."""
    settings = get_settings()
    key = ProgressKey(learner, quiz_id)
    try:
        record = _open_backend(settings, backend, store).load(key)
    except PersistenceError as e:
        console.print(f"[{STYLES['incorrect']}]{e}[/]")
        raise typer.Exit(1)

    if record is None:
        console.print(f"[dim]No saved progress for {key}[/dim]")
        return

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="dim")
    table.add_column("Value", style="bold")
    table.add_row("Attempt", str(record.attempt_number))
    table.add_row("Status", record.status.value)
    table.add_row("Question", str(record.cursor + 1))
    table.add_row("Answers saved", str(len(record.captured_answers)))
    table.add_row("Last activity", record.last_activity_at.strftime("%Y-%m-%d %H:%M:%S"))
    if record.saved_at:
        table.add_row("Saved", record.saved_at.strftime("%Y-%m-%d %H:%M:%S"))
    if record.attempt_data:
        table.add_row("Last score", f"{record.attempt_data.get('score')}%")
        table.add_row("Passed", str(record.attempt_data.get("passed")))
    table.add_row("Time spent", f"{record.time_spent_seconds}s")
    console.print(table)

    if record.attempt_history:
        history = Table(title="Attempts")
        history.add_column("#", justify="right")
        history.add_column("Score", justify="right")
        history.add_column("Passed")
        history.add_column("XP", justify="right")
        for entry in record.attempt_history:
            history.add_row(
                str(entry.get("attempt_number", "")),
                f"{entry.get('score', '')}%",
                "yes" if entry.get("passed") else "no",
                str(entry.get("xp_earned", "")),
            )
        console.print(history)


@progress_app.command("clear")
def progress_clear(
    quiz_id: str = typer.Argument(..., help="Quiz id"),
    learner: str = typer.Option(..., "--learner", "-l", help="Learner id"),
    store: Optional[Path] = typer.Option(None, "--store", help="Progress directory (json) or database (sqlite)"),
    backend: Optional[str] = typer.Option(None, "--backend", help="json or sqlite"),
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete saved progress for a learner and quiz."""
    if not confirm and not Confirm.ask(f"Delete saved progress for {learner} on {quiz_id}?"):
        console.print("[dim]Cancelled[/dim]")
        raise typer.Exit(0)

    settings = get_settings()
    port = ProgressPort(_open_backend(settings, backend, store), ProgressKey(learner, quiz_id))
    try:
        port.clear()
    except PersistenceError as e:
        console.print(f"[{STYLES['incorrect']}]{e}[/]")
        raise typer.Exit(1)
    console.print(f"[{STYLES['correct']}]Progress cleared[/]")


# =============================================================================
# Entry Point
# =============================================================================

def run() -> None:
    """CLI entry point."""
    configure_logging(get_settings().log_level)
    app()


if __name__ == "__main__":
    run()
