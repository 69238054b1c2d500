"""Interactive CLI application."""
import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from cuet_prep import config
from cuet_prep.bank import QuestionBank
from cuet_prep.dashboard import (
    calc_engagement_score, calc_readiness_score, get_chapter_scores,
    get_readiness_color, get_readiness_label, get_recommendations, get_study_stats,
)
from cuet_prep.db import KeyValueStore, open_store
from cuet_prep.errors import CuetPrepError
from cuet_prep.mistakes import MistakeStore
from cuet_prep.models import Question
from cuet_prep.remote import GroqQuestionClient
from cuet_prep.review import get_review_queue, get_weak_concepts
from cuet_prep.selection import SelectionOrchestrator
from cuet_prep.standards import MODES_FOR_PRACTICE, practice_config

console = Console()
logger = logging.getLogger(__name__)

ANSWER_LETTERS = ["a", "b", "c", "d"]
EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """The user typed q or menu in the middle of a session."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: Optional[list[str]] = None, **kwargs) -> int:
    while True:
        answer = session_prompt(prompt, **kwargs).strip()
        if (choices is None or answer in choices) and answer.lstrip("-").isdigit():
            return int(answer)
        console.print("[red]Please enter one of: " + ", ".join(choices or ["a number"]) + "[/red]")


def session_choice_prompt(prompt: str, choices: list[str]) -> str:
    while True:
        answer = session_prompt(prompt).strip().lower()
        if answer in choices:
            return answer
        console.print(f"[red]Please enter one of: {', '.join(choices)}[/red]")


@dataclass
class Services:
    store: KeyValueStore
    mistakes: MistakeStore
    bank: QuestionBank
    orchestrator: SelectionOrchestrator


def build_services(store: KeyValueStore, bank: Optional[QuestionBank] = None,
                   remote=None) -> Services:
    mistakes = MistakeStore(store)
    bank = bank or QuestionBank.load()
    if remote is None:
        client = GroqQuestionClient()
        remote = client if client.is_available else None
    orchestrator = SelectionOrchestrator(mistakes, bank, remote=remote)
    return Services(store, mistakes, bank, orchestrator)


def show_welcome():
    console.print(Panel(
        "[bold]CUET Preparation[/bold]\n[dim]Mistake-driven practice[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("practice", "Start a practice session"),
        ("review", "Weak concepts + review queue"),
        ("dashboard", "Progress and engagement"),
        ("export", "Back up your mistake history"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def run_quiz_session(services: Services, questions: list[Question], mode: str = "chapter") -> tuple[int, int]:
    """Ask each question and record every answer. Returns (correct, answered)."""
    if not questions:
        console.print("[yellow]No questions available![/yellow]")
        return 0, 0
    correct = 0
    answered = 0
    console.print(f"\n[bold]Quiz[/bold] - {len(questions)} questions [dim](q or menu to stop)[/dim]\n")
    for i, q in enumerate(questions, 1):
        tag = " [magenta](review)[/magenta]" if q.original_mistake_id else ""
        if q.is_pyq and q.year:
            tag += f" [blue](PYQ {q.year})[/blue]"
        console.print(f"[bold]Q{i}.[/bold]{tag} {q.text}\n")
        for letter, option in zip(ANSWER_LETTERS, q.options):
            console.print(f"  [cyan]{letter})[/cyan] {option}")
        started = time.monotonic()
        answer = session_choice_prompt("\nYour answer", ANSWER_LETTERS)
        selected = ANSWER_LETTERS.index(answer)
        services.orchestrator.record_attempt(q, selected, mode, round(time.monotonic() - started, 1))
        answered += 1
        if selected == q.correct_index:
            console.print("[green]Correct![/green]")
            correct += 1
        else:
            console.print(f"[red]Incorrect.[/red] Answer: [green]{q.correct_option}[/green]")
        if q.explanation:
            console.print(f"[dim]{q.explanation}[/dim]")
        console.print()
    console.print(f"[bold]Score: {correct}/{answered} ({correct/answered*100:.0f}%)[/bold]\n")
    return correct, answered


def _pick_chapter(services: Services, subject: str) -> str:
    chapters = services.bank.chapters(subject)
    for i, chapter in enumerate(chapters, 1):
        console.print(f"  [cyan]{i}[/cyan]) {chapter}")
    choice = Prompt.ask("Chapter (number or name)", default="1").strip()
    if choice.isdigit() and 1 <= int(choice) <= len(chapters):
        return chapters[int(choice) - 1]
    return choice


def cmd_practice(services: Services):
    console.print("\n[bold]Practice Session[/bold]")
    subject = Prompt.ask("Subject", choices=services.bank.subjects(), default=services.bank.subjects()[0])
    chapter = _pick_chapter(services, subject)
    mode = Prompt.ask("Mode", choices=list(MODES_FOR_PRACTICE), default="chapter")
    cfg = practice_config(mode)
    try:
        count = session_int_prompt("Number of questions", default=str(cfg.question_count))
        console.print(f"[dim]{cfg.description} - {cfg.time_limit_minutes} min suggested[/dim]")
        questions = asyncio.run(services.orchestrator.select(subject, chapter, count, mode))
        run_quiz_session(services, questions, mode)
    except SessionExitRequested:
        console.print("\n[dim]Session ended early. Answers so far are saved.[/dim]")


def cmd_review(services: Services):
    console.print("\n[bold]Weak Concept Review[/bold]\n")
    weak = get_weak_concepts(services.mistakes)
    if not weak:
        console.print("[green]No weak concepts detected! Keep up the good work.[/green]")
        return
    table = Table(title="Weak Concepts")
    table.add_column("Subject")
    table.add_column("Chapter")
    table.add_column("Concept", style="cyan")
    table.add_column("Mistakes", justify="right")
    for w in weak:
        table.add_row(w["subject"], w["chapter"], w["concept"], str(w["mistake_count"]))
    console.print(table)

    queue = get_review_queue(services.mistakes)
    if not queue:
        console.print("\n[dim]Nothing is due for spaced repetition yet.[/dim]")
        return
    console.print(f"\n[bold]{len(queue)} mistakes ready for review[/bold]")
    for item in queue[:5]:
        console.print(f"  [red]{item['mistake_count']}x[/red] {item['concept']} "
                      f"({item['subject']} - {item['chapter']}) [dim]{item['priority']}[/dim]")

    top = queue[0]
    if Prompt.ask(f"\nDrill {top['chapter']} now?", choices=["y", "n"], default="y") == "y":
        questions = asyncio.run(services.orchestrator.select(top["subject"], top["chapter"], 5, "chapter"))
        try:
            run_quiz_session(services, questions, "chapter")
        except SessionExitRequested:
            console.print("\n[dim]Review ended early.[/dim]")


def cmd_dashboard(services: Services):
    score = calc_readiness_score(services.mistakes)
    label = get_readiness_label(score)
    color = get_readiness_color(score)
    session_count = services.orchestrator.variation.session_count()
    stats = get_study_stats(services.mistakes, session_count)
    engagement = calc_engagement_score(services.mistakes)

    console.print(Panel(f"[bold]{session_count} practice sessions[/bold]",
                        title="CUET Progress Dashboard", border_style="blue"))

    bar_filled = int(score / 5)
    bar_empty = 20 - bar_filled
    bar = f"[{color}]{'█' * bar_filled}{'░' * bar_empty}[/{color}]"
    console.print(f"\n  Overall Accuracy: [bold]{score}%[/bold] {bar} [{color}]{label}[/{color}]")
    console.print(f"  Engagement: [bold]{engagement}[/bold]/100\n")

    chapter_scores = get_chapter_scores(services.mistakes)
    if chapter_scores:
        table = Table(title="Chapter Breakdown")
        table.add_column("Chapter", style="cyan")
        table.add_column("Answered", justify="right")
        table.add_column("Score", justify="right")
        table.add_column("Status")
        for cs in chapter_scores:
            sc_color = get_readiness_color(cs["score"])
            table.add_row(
                f"{cs['subject']} - {cs['chapter']}",
                str(cs["total"]),
                f"{cs['score']}%",
                f"[{sc_color}]{cs['label']}[/{sc_color}]",
            )
        console.print(table)

    console.print(f"\n  Answered: [bold]{stats['questions_answered']}[/bold]  |  "
                  f"Open mistakes: [bold]{stats['unresolved_mistakes']}[/bold]  |  "
                  f"Concepts to review: [bold]{stats['concepts_needing_review']}[/bold]")

    for rec in get_recommendations(engagement, session_count):
        console.print(f"\n  [yellow]{rec['message']}[/yellow]")
    if chapter_scores and chapter_scores[0]["score"] < 70:
        weakest = chapter_scores[0]
        console.print(f"\n  [yellow]Recommendation: Focus on {weakest['subject']} - {weakest['chapter']}[/yellow]")


def cmd_export(services: Services):
    default = str(Path.home() / "cuet_prep_backup.json")
    path = Prompt.ask("Export file", default=default)
    out = services.mistakes.export_data(path)
    console.print(f"[green]Exported mistake history to {out}[/green]")


def setup_logging(level: str = config.LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def main():
    setup_logging()
    store = open_store(config.DEFAULT_DB_PATH)
    services = build_services(store)
    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="practice").strip().lower()
        try:
            if choice == "practice":
                cmd_practice(services)
            elif choice == "review":
                cmd_review(services)
            elif choice == "dashboard":
                cmd_dashboard(services)
            elif choice == "export":
                cmd_export(services)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Good luck on your exam![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except (CuetPrepError, OSError, ValueError) as e:
            logger.debug("Command %s failed", choice, exc_info=True)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
