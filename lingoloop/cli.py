"""
lingoloop: terminal driver for the learning loop.

Commands:
- lingoloop onboard   - Answer the onboarding questions
- lingoloop lessons   - List available lessons
- lingoloop lesson    - Study a lesson
- lingoloop review    - Review due items
- lingoloop resume    - Continue an interrupted session
- lingoloop due       - Count due items
- lingoloop plan      - Preview a session plan without running it
- lingoloop rederive  - Re-derive onboarding signals after a schema bump
"""
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from config import get_settings
from lingoloop.cards import Card, CardKind
from lingoloop.errors import LingoLoopError, ValidationError
from lingoloop.onboarding import rederive_stale_submissions
from lingoloop.session import CompletionSummary, SessionPlan, SessionRunner, estimate_minutes
from lingoloop.study import StudyService

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="lingoloop",
    help="lingoloop: adaptive language practice in the terminal",
    no_args_is_help=True,
)
console = Console()

STYLES = {
    "correct": "bold green",
    "incorrect": "bold red",
    "info": "bold cyan",
    "dim": "dim",
    "kind": {
        CardKind.TEACH.value: "blue",
        CardKind.MULTIPLE_CHOICE.value: "green",
        CardKind.FILL_BLANK.value: "magenta",
        CardKind.TRANSLATE_TO_TARGET.value: "yellow",
        CardKind.TRANSLATE_FROM_TARGET.value: "bright_yellow",
        CardKind.LISTENING.value: "cyan",
    },
}


def configure_logging(level: str | None = None, log_file: str | None = None) -> None:
    """Route loguru output to stderr and, optionally, a rotating file."""
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=level or settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    log_file = log_file or settings.log_file
    if log_file:
        logger.add(log_file, level="DEBUG", rotation="10 MB", retention=5)


@app.callback()
def _main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    configure_logging("DEBUG" if verbose else None)


def _service() -> StudyService:
    return StudyService.from_settings(get_settings())


def style_kind(kind: str) -> str:
    color = STYLES["kind"].get(kind, "white")
    return f"[{color}]{kind}[/{color}]"


# =============================================================================
# Display Helpers
# =============================================================================


def display_card(card: Card, index: int, total: int) -> None:
    """Show the front of a card."""
    header = f"Card {index}/{total}  |  {style_kind(card.kind.value)}"

    if card.kind == CardKind.TEACH:
        content = f"[bold]{card.phrase}[/bold]"
        if card.emoji:
            content = f"{card.emoji}  {content}"
        if card.translation:
            content += f"\n{card.translation}"
        if card.usage_note:
            content += f"\n\n[dim]{card.usage_note}[/dim]"
    elif card.kind == CardKind.MULTIPLE_CHOICE:
        content = card.prompt
        if card.source_text:
            content += f"\n\n[bold]{card.source_text}[/bold]"
        content += "\n\n"
        for i, option in enumerate(card.options):
            content += f"  {chr(65 + i)}. {option.label}\n"
    elif card.kind == CardKind.FILL_BLANK:
        content = f"{card.prompt}\n\n[bold]{card.text}[/bold]"
    elif card.kind == CardKind.LISTENING:
        content = card.prompt
        if card.audio_url:
            content += f"\n\n[dim]Audio: {card.audio_url}[/dim]"
    else:
        content = f"{card.prompt}\n\n[bold]{card.source}[/bold]"

    console.print(Panel(content, title=header, title_align="left", border_style="cyan", padding=(1, 2)))


def _ask_answer(card: Card) -> str:
    if card.kind == CardKind.TEACH:
        Prompt.ask("[dim]Press Enter to continue[/dim]", default="", show_default=False)
        return "viewed"
    if card.kind == CardKind.MULTIPLE_CHOICE:
        letters = [chr(65 + i) for i in range(len(card.options))]
        choice = Prompt.ask(
            f"Your answer ({'/'.join(letters)})",
            choices=letters + [letter.lower() for letter in letters],
            show_choices=False,
        ).upper()
        return card.options[ord(choice) - ord("A")].id
    return Prompt.ask("Your answer", default="", show_default=False)


def display_summary(summary: CompletionSummary) -> None:
    """Show completion totals."""
    table = Table(title="Session Complete", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value")
    table.add_row("Cards", str(summary.cards_completed))
    table.add_row("New phrases", str(summary.teach_cards))
    table.add_row("Correct", f"[green]{summary.correct}[/green]")
    table.add_row("Incorrect", f"[red]{summary.incorrect}[/red]")
    table.add_row("Accuracy", f"{summary.accuracy:.0%}")
    table.add_row("XP", f"[bold]{summary.total_xp}[/bold]")
    console.print(table)

    if summary.per_kind:
        breakdown = Table(title="By card kind")
        breakdown.add_column("Kind")
        breakdown.add_column("Correct", justify="right")
        breakdown.add_column("Incorrect", justify="right")
        breakdown.add_column("Attempts", justify="right")
        for kind, counts in summary.per_kind.items():
            breakdown.add_row(
                style_kind(kind), str(counts.correct), str(counts.incorrect), str(counts.attempts)
            )
        console.print(breakdown)


def display_plan(plan: SessionPlan) -> None:
    table = Table(title=f"{plan.title or plan.kind.value} ({plan.id[:8]})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Card")
    table.add_column("Kind")
    for i, card in enumerate(plan.cards, 1):
        table.add_row(str(i), card.id, style_kind(card.kind.value))
    console.print(table)
    console.print(f"[dim]{len(plan.cards)} cards, ~{estimate_minutes(plan)} min[/dim]")


def run_session(runner: SessionRunner) -> None:
    """Present cards until the session completes or the user interrupts."""
    total = len(runner.state.plan.cards)
    try:
        while not runner.is_completed:
            card = runner.current_card
            display_card(card, runner.state.cursor + 1, total)
            submitted = runner.submit(_ask_answer(card))

            if card.kind == CardKind.TEACH:
                continue
            if submitted.result.correct:
                console.print(f"[{STYLES['correct']}]Correct![/{STYLES['correct']}]")
            elif submitted.should_retry:
                console.print(f"[{STYLES['incorrect']}]Not quite, try again.[/{STYLES['incorrect']}]")
                if submitted.hint:
                    console.print(f"[dim]Hint: {submitted.hint}[/dim]")
            else:
                console.print(f"[{STYLES['incorrect']}]{submitted.result.feedback}[/{STYLES['incorrect']}]")
                if submitted.result.explanation:
                    console.print(f"[dim]{submitted.result.explanation}[/dim]")
    except KeyboardInterrupt:
        console.print("\n[yellow]Session interrupted. Continue with `lingoloop resume`.[/yellow]")
        raise typer.Exit(0)

    display_summary(runner.summary)


def _fail(exc: LingoLoopError) -> None:
    console.print(f"[red]{exc}[/red]")
    raise typer.Exit(1)


# =============================================================================
# Commands
# =============================================================================


@app.command()
def onboard(
    user: str = typer.Argument(..., help="User id"),
    motivation: Optional[str] = typer.Option(None, help="travel, family, study, fun or other"),
    other_text: Optional[str] = typer.Option(None, help="Free text when motivation is 'other'"),
    style: Optional[list[str]] = typer.Option(None, "--style", help="Learning style (repeatable)"),
    memory_habit: Optional[str] = typer.Option(None, help="quick, moderate or deep"),
    difficulty: Optional[str] = typer.Option(None, help="easy, balanced or hard"),
    gamification: Optional[str] = typer.Option(None, help="none, light or full"),
    feedback: Optional[str] = typer.Option(None, help="gentle, direct or detailed"),
    session_style: Optional[str] = typer.Option(None, help="short, focused or deep"),
    tone: Optional[str] = typer.Option(None, help="friendly, professional or casual"),
    experience: Optional[str] = typer.Option(None, help="beginner, intermediate or advanced"),
    answers_file: Optional[Path] = typer.Option(None, "--from-json", help="JSON file of raw answers"),
) -> None:
    """Save onboarding answers and show the derived signals."""
    if answers_file is not None:
        raw: dict[str, Any] = json.loads(answers_file.read_text(encoding="utf-8"))
    else:
        raw = {
            "motivation": {"key": motivation, "other_text": other_text} if motivation else None,
            "learning_styles": style or None,
            "memory_habit": memory_habit,
            "difficulty": difficulty,
            "gamification": gamification,
            "feedback": feedback,
            "session_style": session_style,
            "tone": tone,
            "experience": experience,
        }

    try:
        submission = _service().submit_onboarding(user, raw)
    except ValidationError as exc:
        for field, reason in exc.fields.items():
            console.print(f"[red]{field}[/red]: {reason}")
        raise typer.Exit(1)

    signals = submission.signals
    table = Table(title=f"Onboarding v{submission.version}", show_header=False)
    table.add_column("Signal", style="cyan")
    table.add_column("Value")
    table.add_row("Tags", ", ".join(submission.tags))
    table.add_row("Challenge weight", f"{signals.challenge_weight:.2f}")
    table.add_row("Session minutes", str(signals.session_minutes or "-"))
    table.add_row("Feedback depth", str(signals.feedback_depth if signals.feedback_depth is not None else "-"))
    table.add_row(
        "Gamification",
        str(signals.gamification_intensity if signals.gamification_intensity is not None else "-"),
    )
    table.add_row("Style focus", ", ".join(signals.learning_style_focus) or "-")
    console.print(table)


@app.command()
def lessons() -> None:
    """List available lessons."""
    catalog = _service().catalog
    table = Table(title="Lessons")
    table.add_column("Id")
    table.add_column("Title")
    table.add_column("Teachings", justify="right")
    table.add_column("Questions", justify="right")
    for lesson in catalog.list_lessons():
        table.add_row(lesson.id, lesson.title, str(len(lesson.teachings)), str(len(lesson.questions)))
    console.print(table)


@app.command()
def lesson(
    user: str = typer.Argument(..., help="User id"),
    lesson_id: str = typer.Argument(..., help="Lesson to study"),
) -> None:
    """Study a lesson."""
    try:
        runner = _service().start_lesson(user, lesson_id)
        if runner.is_completed:
            console.print("[yellow]This lesson has no cards yet.[/yellow]")
            return
        run_session(runner)
    except LingoLoopError as exc:
        _fail(exc)


@app.command()
def review(user: str = typer.Argument(..., help="User id")) -> None:
    """Review due items, most overdue first."""
    try:
        runner = _service().start_review(user)
        if runner.is_completed:
            console.print("[green]Nothing due for review![/green]")
            return
        run_session(runner)
    except LingoLoopError as exc:
        _fail(exc)


@app.command()
def resume(user: str = typer.Argument(..., help="User id")) -> None:
    """Continue the latest interrupted session."""
    try:
        runner = _service().resume(user)
        if runner is None:
            console.print("[dim]No session to resume.[/dim]")
            return
        run_session(runner)
    except LingoLoopError as exc:
        _fail(exc)


@app.command()
def due(user: str = typer.Argument(..., help="User id")) -> None:
    """Count items due for review."""
    count = _service().due_count(user)
    console.print(f"[{STYLES['info']}]{count}[/{STYLES['info']}] items due")


@app.command()
def plan(
    user: str = typer.Argument(..., help="User id"),
    lesson_id: Optional[str] = typer.Argument(None, help="Lesson to plan (omit for review)"),
    session_id: Optional[str] = typer.Option(None, help="Seed the plan with a fixed session id"),
) -> None:
    """Preview a lesson or review plan."""
    service = _service()
    signals = service.signals_for(user)
    try:
        if lesson_id:
            built = service.builder.build_lesson_plan(lesson_id, signals, user_id=user, session_id=session_id)
        else:
            built = service.builder.build_review_plan(user, signals, session_id=session_id)
    except LingoLoopError as exc:
        _fail(exc)
    display_plan(built)


@app.command()
def rederive() -> None:
    """Re-derive stored onboarding submissions from an older schema version."""
    rewritten = rederive_stale_submissions(_service().store)
    console.print(f"Re-derived {rewritten} submissions")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
