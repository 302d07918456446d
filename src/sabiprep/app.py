"""Interactive CLI application."""
import logging
import time
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from sabiprep.config import DEFAULT_DB_PATH, EXAM_FORMATS, SESSION_CONFIG, resolve_exam_format
from sabiprep.db import init_db
from sabiprep.distribution import allocation_percentages, plan_distribution
from sabiprep.engine import ExamSession, SessionState
from sabiprep.errors import ConfigurationError, FinalizationError, NoQuestionsAvailable, SessionNotFound
from sabiprep.questions import (
    get_subject, get_subjects, get_topics, get_topics_by_ids, shows_passage,
)
from sabiprep.results import (
    get_session_review, get_study_stats, get_topic_breakdown, grade_color, grade_label,
)
from sabiprep.seed import is_seeded, seed_all
from sabiprep.sessions import (
    SessionStore, can_resume_session, create_session, fetch_session, get_recent_sessions,
)
from sabiprep.timer import format_time

console = Console()
logger = logging.getLogger(__name__)

WARNING_MESSAGES = {
    "half_time": "Half of your time is gone",
    "ten_minutes": "10 minutes remaining",
    "five_minutes": "5 minutes remaining",
    "one_minute": "1 minute remaining!",
    "thirty_seconds": "30 seconds remaining!",
}
PACE_LABELS = {"behind": "[red]Behind pace[/red]", "on_track": "[green]On track[/green]",
               "ahead": "[cyan]Ahead of pace[/cyan]"}


class SessionExitRequested(Exception):
    """Raised when the user types 'q' or 'menu' mid-session."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in ("q", "menu"):
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: Optional[list[str]] = None, **kwargs) -> int:
    while True:
        answer = session_prompt(prompt, **kwargs).strip()
        if answer.isdigit() and (choices is None or answer in choices):
            return int(answer)
        console.print("[red]Please enter one of the listed numbers.[/red]")


def configure_logging(level: int = logging.WARNING) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, show_time=False)],
    )


def show_welcome():
    console.print(Panel(
        "[bold]SabiPrep[/bold]\n[dim]Exam practice: practice, test and timed modes[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("subjects", "Browse subjects and topics"),
        ("practice", "Practice with instant feedback"),
        ("test", "Untimed test, scored at the end"),
        ("timed", "Timed exam (Speed Drill, WAEC, JAMB, custom)"),
        ("resume", "Continue an unfinished session"),
        ("history", "Recent sessions and stats"),
        ("results", "Review a finished session"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def choose_subject(db_path: str):
    subjects = get_subjects(db_path)
    if not subjects:
        console.print("[yellow]No subjects available.[/yellow]")
        return None
    for i, s in enumerate(subjects, 1):
        console.print(f"  [cyan]{i}[/cyan]) {s.name}")
    choice = IntPrompt.ask("Select subject", choices=[str(i) for i in range(1, len(subjects) + 1)])
    return subjects[choice - 1]


def choose_topics(db_path: str, subject_id: int) -> list:
    topics = [t for t in get_topics(db_path, subject_id) if t.available_questions > 0]
    for i, t in enumerate(topics, 1):
        console.print(f"  [cyan]{i}[/cyan]) {t.name} [dim]({t.available_questions} questions)[/dim]")
    raw = Prompt.ask("Topics (comma-separated numbers, Enter for all)", default="")
    if not raw.strip():
        return topics
    picked = []
    for part in raw.split(","):
        part = part.strip()
        if part.isdigit() and 1 <= int(part) <= len(topics):
            picked.append(topics[int(part) - 1])
    return picked or topics


def show_distribution(topics: list, allocation: dict, total: int) -> None:
    percentages = allocation_percentages(allocation, total)
    table = Table(title="Question Distribution")
    table.add_column("Topic", style="cyan")
    table.add_column("Available", justify="right")
    table.add_column("Questions", justify="right")
    table.add_column("Share", justify="right")
    for t in topics:
        if t.id in allocation:
            table.add_row(t.name, str(t.available_questions), str(allocation[t.id]),
                          f"{percentages[t.id]}%")
    console.print(table)


def render_question(engine: ExamSession) -> None:
    q = engine.current_question
    header = f"Question {engine.current_index + 1}/{engine.total}  |  Answered {engine.answered_count}"
    if engine.is_timed:
        color = engine.time_color
        header += f"  |  [{color}]{format_time(engine.remaining)}[/{color}]  {PACE_LABELS[engine.pace]}"
    if q.id in engine.flagged:
        header += "  |  [yellow]Flagged[/yellow]"
    console.print(f"\n{header}")
    if shows_passage(engine.questions, engine.current_index):
        console.print(Panel(q.passage, title="Read the passage", border_style="dim"))
    difficulty = f" [dim]({q.difficulty})[/dim]" if q.difficulty else ""
    console.print(f"[bold]Q{engine.current_index + 1}.[/bold] {q.question_text}{difficulty}\n")
    chosen = engine.answers.get(q.id)
    for letter, text in q.options():
        marker = " [green]<[/green]" if letter == chosen else ""
        console.print(f"  [cyan]{letter.lower()})[/cyan] {text}{marker}")


def show_warning(threshold: str, remaining: int) -> None:
    console.print(Panel(
        f"{WARNING_MESSAGES.get(threshold, threshold)} ({format_time(remaining)})",
        border_style="red" if remaining <= 60 else "yellow",
    ))


def finish_with_retry(engine: ExamSession, finalize):
    """Run a finalization step, offering a retry while saving the result fails."""
    while True:
        try:
            return finalize()
        except FinalizationError as e:
            console.print(f"[red]{e}[/red]")
            if not Confirm.ask("Retry saving your results?", default=True):
                console.print("[yellow]Results were not saved.[/yellow]")
                return None
            finalize = engine.retry_finalize


def confirm_submit(engine: ExamSession) -> bool:
    summary = engine.review_summary()
    if summary["flagged"]:
        flagged = ", ".join(str(i + 1) for i in summary["flagged"])
        console.print(f"[yellow]Flagged for review: {flagged}[/yellow]")
    if summary["unanswered"]:
        console.print(f"[yellow]{len(summary['unanswered'])} question(s) unanswered.[/yellow]")
    return Confirm.ask("Submit now? You cannot change answers afterwards", default=False)


def run_session(db_path: str, session_id: str, clock=time.monotonic):
    """Drive one attempt from the terminal. Returns the result, or None if left early."""
    engine = ExamSession(SessionStore(db_path), clock=clock, on_warning=show_warning)
    try:
        engine.load(session_id)
    except (SessionNotFound, NoQuestionsAvailable) as e:
        console.print(f"[red]{e}[/red]")
        return None

    practice = engine.session.mode == "practice"
    console.print("[dim]Type a letter to answer; n/p next/previous, f flag, r review, s submit, q quit.[/dim]")
    if not engine.is_timed:
        console.print("[dim]Type 'pause' to take a break.[/dim]")
    auto = finish_with_retry(engine, engine.start)
    if engine.state != SessionState.RUNNING:
        console.print("[red bold]Time is up![/red bold] Your saved answers have been submitted.")
        if auto:
            show_result(db_path, engine.session.id, auto)
        return auto
    carry = 0.0
    last = clock()
    try:
        while engine.state == SessionState.RUNNING:
            render_question(engine)
            action = session_prompt("\nYour choice").strip().lower()

            # Wall-clock time spent at the prompt counts against the attempt
            now = clock()
            carry += now - last
            last = now
            whole = int(carry)
            carry -= whole
            auto = finish_with_retry(engine, lambda: engine.advance(whole))
            if engine.state != SessionState.RUNNING:
                console.print("[red bold]Time is up![/red bold] Your last input was not recorded.")
                if auto:
                    show_result(db_path, engine.session.id, auto)
                return auto

            if action in ("n", "next"):
                if not engine.next():
                    console.print("[dim]This is the last question.[/dim]")
            elif action in ("p", "prev"):
                if not engine.previous():
                    console.print("[dim]This is the first question.[/dim]")
            elif action == "pause":
                if engine.is_timed:
                    console.print("[red]Timed exams cannot be paused.[/red]")
                else:
                    engine.pause()
                    session_prompt("[dim]Paused. Press Enter to continue[/dim]", default="")
                    engine.resume()
                    last = clock()
            elif action == "f":
                flagged = engine.toggle_flag()
                console.print("[yellow]Flagged.[/yellow]" if flagged else "[dim]Flag removed.[/dim]")
            elif action == "r":
                summary = engine.review_summary()
                console.print(f"Unanswered: {[i + 1 for i in summary['unanswered']] or 'none'}")
                console.print(f"Flagged: {[i + 1 for i in summary['flagged']] or 'none'}")
            elif action == "s":
                if confirm_submit(engine):
                    result = finish_with_retry(engine, engine.submit)
                    if result:
                        show_result(db_path, engine.session.id, result)
                    return result
            elif action.upper() in {letter for letter, _ in engine.current_question.options()}:
                q = engine.current_question
                is_correct = engine.select_answer(action)
                if practice:
                    if is_correct:
                        console.print("[green]Correct![/green]")
                    else:
                        console.print(f"[red]Incorrect.[/red] Answer: [green]{q.correct_answer}[/green]")
                    if q.explanation:
                        console.print(f"[dim]{q.explanation}[/dim]")
                if not engine.next() and not engine.review_summary()["unanswered"]:
                    console.print("[green]All questions answered.[/green] Type 's' to submit.")
            else:
                console.print("[red]Unknown choice.[/red]")
    except SessionExitRequested:
        engine.abandon()
        console.print("[dim]Progress saved. Use 'resume' to continue later.[/dim]")
        return None
    return engine.result


def show_result(db_path: str, session_id: str, result) -> None:
    color = grade_color(result.score_percentage)
    console.print(Panel(
        f"Score: [bold]{result.correct}/{result.total}[/bold] "
        f"([{color}]{result.score_percentage:.0f}% - {grade_label(result.score_percentage)}[/{color}])\n"
        f"Answered: {result.answered}  |  Time: {format_time(result.elapsed_seconds)}",
        title="Results", border_style=color,
    ))
    breakdown = get_topic_breakdown(db_path, session_id)
    if len(breakdown) > 1:
        table = Table(title="By Topic")
        table.add_column("Topic", style="cyan")
        table.add_column("Correct", justify="right")
        table.add_column("Score", justify="right")
        for row in breakdown:
            table.add_row(row["topic_name"], f"{row['correct']}/{row['total']}", f"{row['score']}%")
        console.print(table)


def cmd_subjects(db_path: str):
    for subject in get_subjects(db_path):
        table = Table(title=subject.name)
        table.add_column("Topic", style="cyan")
        table.add_column("Questions", justify="right")
        for t in get_topics(db_path, subject.id):
            table.add_row(t.name, str(t.available_questions))
        console.print(table)


def start_untimed(db_path: str, mode: str):
    subject = choose_subject(db_path)
    if not subject:
        return
    topics = choose_topics(db_path, subject.id)
    count = IntPrompt.ask("Number of questions", default=SESSION_CONFIG.default_question_count)
    try:
        allocation = plan_distribution(topics, count)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        return
    if len(allocation) > 1:
        show_distribution(topics, allocation, count)
    session = create_session(
        db_path, subject.id, list(allocation), mode, count, distribution=allocation,
    )
    run_session(db_path, session.id)


def cmd_practice(db_path: str):
    console.print("\n[bold]Practice Mode[/bold]")
    start_untimed(db_path, "practice")


def cmd_test(db_path: str):
    console.print("\n[bold]Test Mode[/bold]")
    start_untimed(db_path, "test")


def cmd_timed(db_path: str):
    console.print("\n[bold]Timed Exam[/bold]")
    subject = choose_subject(db_path)
    if not subject:
        return
    for name, fmt in EXAM_FORMATS.items():
        console.print(f"  [cyan]{name:<12}[/cyan] {fmt.label}: {fmt.question_count} questions, {fmt.time_minutes} min")
    console.print(f"  [cyan]{'custom':<12}[/cyan] Choose your own")
    exam_format = Prompt.ask("Format", choices=[*EXAM_FORMATS, "custom"], default="speed-drill")
    custom_count = custom_minutes = None
    if exam_format == "custom":
        custom_count = IntPrompt.ask("Number of questions", default=20)
        custom_minutes = IntPrompt.ask("Time limit (minutes)", default=20)
    count, minutes = resolve_exam_format(exam_format, custom_count, custom_minutes)

    topics = get_topics(db_path, subject.id)
    try:
        allocation = plan_distribution(topics, count)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        return
    show_distribution(topics, allocation, count)
    console.print(f"Time limit: [bold]{minutes} minutes[/bold] for {count} questions")
    if not Confirm.ask("Start the exam?", default=True):
        return
    session = create_session(
        db_path, subject.id, list(allocation), "timed", count,
        time_limit_seconds=minutes * 60, exam_format=exam_format, distribution=allocation,
    )
    run_session(db_path, session.id)


def cmd_resume(db_path: str):
    unfinished = [s for s in get_recent_sessions(db_path, limit=20) if s.status == "in_progress"]
    if not unfinished:
        console.print("[green]No unfinished sessions.[/green]")
        return
    for i, s in enumerate(unfinished, 1):
        topics = ", ".join(t.name for t in get_topics_by_ids(db_path, s.topic_ids))
        console.print(f"  [cyan]{i}[/cyan]) {s.mode} ({topics}) - {s.questions_answered}/{s.total_questions} answered "
                      f"[dim]({s.started_at[:16] if s.started_at else ''})[/dim]")
    choice = IntPrompt.ask("Resume which", choices=[str(i) for i in range(1, len(unfinished) + 1)])
    session = unfinished[choice - 1]
    if session.time_expired:
        console.print("[yellow]Time ran out on this attempt; submitting your saved answers.[/yellow]")
        run_session(db_path, session.id)
        return
    ok, reason = can_resume_session(db_path, session.id)
    if not ok:
        console.print(f"[red]Cannot resume: {reason}[/red]")
        return
    run_session(db_path, session.id)


def cmd_history(db_path: str):
    stats = get_study_stats(db_path)
    console.print(f"\n  Completed: [bold]{stats['sessions_completed']}[/bold]  |  "
                  f"Answered: [bold]{stats['questions_answered']}[/bold]  |  "
                  f"Avg Score: [bold]{stats['avg_score']}%[/bold]  |  "
                  f"Study time: [bold]{stats['study_minutes']} min[/bold]")
    table = Table(title="Recent Sessions")
    table.add_column("Started")
    table.add_column("Subject")
    table.add_column("Mode")
    table.add_column("Progress", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Status")
    for s in get_recent_sessions(db_path):
        score = f"{s.score_percentage:.0f}%" if s.score_percentage is not None else "-"
        subject = get_subject(db_path, s.subject_id)
        table.add_row(
            (s.started_at or "")[:16], subject.name if subject else "-", s.mode,
            f"{s.questions_answered}/{s.total_questions}", score, s.status,
        )
    console.print(table)


def cmd_results(db_path: str):
    completed = [s for s in get_recent_sessions(db_path, limit=20) if s.status == "completed"]
    if not completed:
        console.print("[yellow]No finished sessions yet.[/yellow]")
        return
    for i, s in enumerate(completed, 1):
        console.print(f"  [cyan]{i}[/cyan]) {s.mode} - {s.score_percentage:.0f}% "
                      f"[dim]({(s.started_at or '')[:16]})[/dim]")
    choice = IntPrompt.ask("Review which", choices=[str(i) for i in range(1, len(completed) + 1)])
    session = fetch_session(db_path, completed[choice - 1].id)
    table = Table(title=f"Review ({session.mode})")
    table.add_column("#", justify="right")
    table.add_column("Question")
    table.add_column("Yours")
    table.add_column("Answer")
    table.add_column("Time", justify="right")
    for row in get_session_review(db_path, session.id):
        mine = row["user_answer"] or "-"
        style = "green" if row["is_correct"] else "red"
        table.add_row(
            str(row["position"] + 1), row["question_text"], f"[{style}]{mine}[/{style}]",
            row["correct_answer"], f"{row['time_spent_seconds']}s",
        )
    console.print(table)


def main():
    db_path = DEFAULT_DB_PATH
    configure_logging()
    init_db(db_path)
    first_run = not is_seeded(db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
    seed_all(db_path)
    if first_run:
        console.print("[green]Ready![/green]\n")

    show_welcome()

    commands = {
        "subjects": cmd_subjects,
        "practice": cmd_practice,
        "test": cmd_test,
        "timed": cmd_timed,
        "resume": cmd_resume,
        "history": cmd_history,
        "results": cmd_results,
    }
    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="practice").strip().lower()
        try:
            if choice in commands:
                commands[choice](db_path)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Good luck on your exam![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            logger.exception("Command %s failed", choice)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
