"""Interactive CLI application."""
import logging
import re
import sqlite3
from pathlib import Path

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from learning_companion.config import Settings, load_settings
from learning_companion.dashboard import format_study_time, get_profile_stats, get_today_lesson
from learning_companion.db import init_db
from learning_companion.generation import ContentGenerator, GenerationError
from learning_companion.log import setup_logging
from learning_companion.markdown import (
    BOLD, CODE, ITALIC, MATH, TEXT,
    Blockquote, BulletList, CodeBlock, Heading, LineBreak, NumberedList,
    parse_markdown, plain_text,
)
from learning_companion.models import LEVELS
from learning_companion.quiz import QuizSession, QuizState, QuizStateError, format_time, option_letters, score_color
from learning_companion.speech import SpeechError, SpeechService, synthesize_with_elevenlabs
from learning_companion.store import LearningStore, PlanNotFound, ensure_profile
from learning_companion.study import clamp_day, current_day, day_completion, plan_progress, total_days

logger = logging.getLogger(__name__)

console = Console()

DAILY_TIMES = ["15 minutes", "30 minutes", "45 minutes", "1 hour", "2 hours"]
AUDIO_DIR = Path.home() / ".learning_companion" / "audio"
UNSAFE_FILENAME_RE = re.compile(r"[^\w.-]")

SPAN_STYLES = {
    TEXT: "",
    CODE: "bold green on grey15",
    MATH: "bright_blue",
    BOLD: "bold bright_white",
    ITALIC: "italic cyan",
}
HEADING_STYLES = {1: "bold underline bright_white", 2: "bold bright_cyan", 3: "bold cyan"}
NOTIFY_STYLES = {"success": "green", "error": "red", "info": "cyan"}


def notify(message: str, level: str = "info") -> None:
    console.print(f"[{NOTIFY_STYLES.get(level, 'cyan')}]{escape(message)}[/]")


# Markdown display

def spans_to_text(spans, style: str = "") -> Text:
    text = Text(style=style)
    for span in spans:
        text.append(span.text, style=SPAN_STYLES[span.kind])
    return text


def render_blocks(blocks) -> list:
    renderables = []
    for block in blocks:
        if isinstance(block, LineBreak):
            renderables.append(Text(""))
        elif isinstance(block, Heading):
            renderables.append(spans_to_text(block.spans, HEADING_STYLES[block.level]))
        elif isinstance(block, CodeBlock):
            code = Syntax(block.code, block.language or "text", theme="monokai", word_wrap=True)
            renderables.append(Panel(code, title=block.language or None, title_align="left"))
        elif isinstance(block, Blockquote):
            renderables.append(Panel(spans_to_text(block.spans, "italic"), border_style="blue"))
        elif isinstance(block, BulletList):
            for item in block.items:
                renderables.append(Text("  • ") + spans_to_text(item))
        elif isinstance(block, NumberedList):
            for n, item in enumerate(block.items, 1):
                renderables.append(Text(f"  {n}. ") + spans_to_text(item))
        else:
            renderables.append(spans_to_text(block.spans))
    return renderables


def print_markdown(text: str) -> None:
    console.print(Group(*render_blocks(parse_markdown(text))))


# Screens

def show_welcome():
    console.print(Panel(
        "[bold]AI Learning Companion[/bold]\n[dim]Personal study plans, lessons and quizzes[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("dashboard", "Your plans and today's lesson"),
        ("new", "Create a new learning plan"),
        ("study", "Open a plan's daily lessons"),
        ("quiz", "Take today's quiz"),
        ("profile", "Profile and statistics"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def choose_plan(store: LearningStore) -> dict | None:
    store.refresh()
    if not store.plans:
        console.print("[yellow]No learning plans yet. Use 'new' to create one.[/yellow]")
        return None
    if len(store.plans) == 1:
        return store.plans[0]
    for i, plan in enumerate(store.plans, 1):
        marker = " [green](active)[/green]" if plan["is_active"] else ""
        console.print(f"  [cyan]{i}[/cyan]) {escape(plan['topic'])} — {plan['duration_days']} days, {plan['level']}{marker}")
    default = store.plans.index(store.active_plan) + 1 if store.active_plan else 1
    choice = IntPrompt.ask(
        "Select plan", choices=[str(i) for i in range(1, len(store.plans) + 1)], default=default,
    )
    return store.plans[choice - 1]


def cmd_new(store: LearningStore, generator: ContentGenerator) -> str | None:
    console.print("\n[bold]Create a Learning Plan[/bold]")
    topic = Prompt.ask("What do you want to learn?").strip()
    if not topic:
        notify("Please enter a topic to learn", "error")
        return None
    days = IntPrompt.ask("How many days?", default=7)
    if days < 1:
        notify("A plan needs at least one day", "error")
        return None
    level = Prompt.ask("Your level", choices=list(LEVELS), default="beginner")
    daily_time = Prompt.ask("Daily study time", choices=DAILY_TIMES, default="30 minutes")
    with console.status("Generating your learning plan..."):
        plan = generator.generate_plan(topic, days, level, daily_time)
    return store.create_plan(plan)


def cmd_dashboard(store: LearningStore):
    store.refresh()
    if not store.plans:
        console.print("[yellow]No learning plans yet. Use 'new' to create one.[/yellow]")
        return

    active = store.active_plan
    if active:
        day = current_day(active)
        lesson = get_today_lesson(active)
        body = f"[bold]{escape(active['topic'])}[/bold] — Day {day} of {total_days(active)}"
        body += f"\nProgress: {round(plan_progress(active))}%"
        if lesson:
            body += f"\n\n[cyan]Today:[/cyan] {escape(lesson['title'])}"
            for sub in lesson.get("subtopics", []):
                body += f"\n  • {escape(sub['title'])} [dim]({escape(sub.get('estimatedTime', ''))})[/dim]"
        console.print(Panel(body, title="Continue Learning", border_style="blue"))

    table = Table(title="Your Learning Plans")
    table.add_column("Topic", style="cyan")
    table.add_column("Level")
    table.add_column("Daily time")
    table.add_column("Day", justify="right")
    table.add_column("Progress", justify="right")
    for plan in store.plans:
        table.add_row(
            escape(plan["topic"]) + (" [green]●[/green]" if plan["is_active"] else ""),
            plan["level"],
            escape(plan["daily_time"]),
            f"{current_day(plan)}/{total_days(plan)}",
            f"{round(plan_progress(plan))}%",
        )
    console.print(table)


def show_day(store: LearningStore, plan: dict, day_number: int) -> list[dict]:
    day = plan["plan_data"]["days"][day_number - 1]
    progress = store.get_progress(plan["id"], day_number)
    done_ids = {p["subtopic_id"] for p in progress if p["completed"]}
    done, total = day_completion(plan, day_number, progress)
    console.print(Panel(
        f"[bold]Day {day_number}: {escape(day['title'])}[/bold]\n[dim]{done}/{total} subtopics completed[/dim]",
        title=escape(plan["topic"]), border_style="blue",
    ))
    if day.get("objectives"):
        console.print("[bold]Objectives[/bold]")
        for objective in day["objectives"]:
            console.print(f"  • {escape(objective)}")
    subtopics = day.get("subtopics", [])
    for i, sub in enumerate(subtopics, 1):
        mark = "[green]✓[/green]" if sub["id"] in done_ids else " "
        console.print(f"  {mark} [cyan]{i}[/cyan]) {escape(sub['title'])} [dim]{escape(sub.get('estimatedTime', ''))}[/dim]")
    return subtopics


def read_subtopic(sub: dict):
    console.print(f"\n[bold bright_cyan]{escape(sub['title'])}[/bold bright_cyan]\n")
    print_markdown(sub.get("explanation", ""))
    if sub.get("keyPoints"):
        console.print("\n[bold]Key points[/bold]")
        for point in sub["keyPoints"]:
            console.print(f"  • {escape(point)}")


def ask_tutor(generator: ContentGenerator, plan: dict, sub: dict):
    question = Prompt.ask("Your question").strip()
    if not question:
        return
    context = f"{sub['title']}: {sub.get('explanation', '')[:500]}..."
    with console.status("Thinking..."):
        answer = generator.ask_tutor(question, context, plan["topic"])
    console.print(Panel(Group(*render_blocks(parse_markdown(answer))), title="AI Tutor", border_style="magenta"))


def audio_filename(subtopic_id) -> str:
    """A file name inside AUDIO_DIR for a subtopic id chosen by the model."""
    name = UNSAFE_FILENAME_RE.sub("_", str(subtopic_id)).lstrip(".")
    return f"{name or 'subtopic'}.mp3"


def save_elevenlabs_audio(settings: Settings, sub: dict) -> Path | None:
    text = plain_text(parse_markdown(sub.get("explanation", "")))
    try:
        audio = synthesize_with_elevenlabs(text, settings.elevenlabs_api_key, settings.elevenlabs_voice_id)
    except SpeechError as e:
        logger.warning("ElevenLabs audio skipped: %s", e)
        return None
    AUDIO_DIR.mkdir(parents=True, exist_ok=True)
    path = AUDIO_DIR / audio_filename(sub["id"])
    path.write_bytes(audio)
    return path


def _pick_subtopic(subtopics: list[dict], arg: str) -> dict | None:
    if arg.isdigit() and 1 <= int(arg) <= len(subtopics):
        return subtopics[int(arg) - 1]
    console.print("[red]Pick a subtopic number from the list.[/red]")
    return None


def cmd_study(store: LearningStore, generator: ContentGenerator, speech: SpeechService, settings: Settings):
    plan = choose_plan(store)
    if not plan:
        return
    last_day = total_days(plan)
    day_number = current_day(plan)
    while True:
        subtopics = show_day(store, plan, day_number)
        console.print(
            "\n[dim]read N · done N · undo N · ask N · speak N · audio N · "
            "next · prev · quiz · back[/dim]"
        )
        command, _, arg = Prompt.ask("[bold]study>[/bold]", default="back").strip().lower().partition(" ")
        if command == "back":
            return
        elif command == "next":
            day_number = clamp_day(day_number + 1, last_day)
        elif command == "prev":
            day_number = clamp_day(day_number - 1, last_day)
        elif command == "quiz":
            run_quiz(store, generator, plan, day_number)
        elif command in ("read", "done", "undo", "ask", "speak", "audio"):
            sub = _pick_subtopic(subtopics, arg.strip())
            if sub is None:
                continue
            if command == "read":
                read_subtopic(sub)
            elif command in ("done", "undo"):
                store.update_progress(plan["id"], day_number, sub["id"], command == "done")
            elif command == "ask":
                ask_tutor(generator, plan, sub)
            elif command == "speak":
                speech.speak(plain_text(parse_markdown(sub.get("explanation", ""))))
            else:
                path = save_elevenlabs_audio(settings, sub)
                if path:
                    console.print(f"[green]Saved audio to {escape(str(path))}[/green]")
        else:
            console.print("[red]Unknown command.[/red]")


def show_quiz_results(session: QuizSession):
    result = session.result
    possible = session.max_score or 1
    color = score_color(result["score"], possible)
    console.print(Panel(
        f"[bold {color}]{result['score']}/{session.max_score}[/bold {color}]\n"
        f"You scored {round(result['score'] / possible * 100)}% on Day {session.day_number} quiz",
        title="Quiz Completed!", border_style=color,
    ))
    answers = {a["questionId"]: a for a in result["answers"]}
    for i, question in enumerate(session.questions, 1):
        answer = answers.get(question.id)
        if answer is None:
            continue
        color = score_color(answer["score"], answer["maxScore"])
        console.print(f"\n[bold]Question {i}[/bold] [{color}]{answer['score']}/{answer['maxScore']} points[/{color}]")
        console.print(escape(question.question))
        console.print(f"[dim]Your answer:[/dim] {escape(answer['userAnswer']) or '(no answer)'}")
        console.print(f"[dim]Feedback:[/dim] {escape(answer['feedback'])}")
        if answer.get("idealAnswer"):
            console.print(f"[dim]Ideal answer:[/dim] {escape(answer['idealAnswer'])}")


def run_quiz(store: LearningStore, generator: ContentGenerator, plan: dict, day_number: int):
    session = QuizSession(store, generator, plan, day_number)
    with console.status("Loading quiz..."):
        session.load()
    if session.state is QuizState.IN_PROGRESS and not session.questions:
        console.print("[yellow]No questions were generated. Try again later.[/yellow]")
        return

    while session.state is QuizState.IN_PROGRESS:
        if session.tick():
            console.print("[yellow]Time is up! Your answers were submitted.[/yellow]")
            break
        question = session.current_question
        console.print(
            f"\n[bold]Question {session.current + 1}/{len(session.questions)}[/bold] "
            f"[dim]({question.points} points · {question.type} · time left {format_time(session.time_left())})[/dim]"
        )
        print_markdown(question.question)
        for option in question.options or []:
            console.print(f"  [cyan]{escape(option)}[/cyan]")
        if session.user_answers[session.current]:
            console.print(f"[dim]Current answer: {escape(session.user_answers[session.current])}[/dim]")

        letters = option_letters(question)
        hint = "/".join(letters) if question.type == "mcq" else "type your answer"
        action = Prompt.ask(f"{escape('[' + hint + ']')} or n=next p=prev g=go to s=submit", default="n").strip()
        if session.tick():
            console.print("[yellow]Time is up! Your answers were submitted; that input was not recorded.[/yellow]")
            break
        if action.lower() == "n":
            session.next()
        elif action.lower() == "p":
            session.previous()
        elif action.lower() == "g":
            index = IntPrompt.ask(
                "Question number", choices=[str(i) for i in range(1, len(session.questions) + 1)],
            )
            session.go_to(index - 1)
        elif action.lower() == "s":
            unanswered = session.user_answers.count("")
            if unanswered and not Confirm.ask(f"{unanswered} unanswered. Submit anyway?", default=False):
                continue
            with console.status("Grading..."):
                session.submit()
        elif question.type == "mcq" and action.upper() not in letters:
            console.print(f"[red]Answer with one of {', '.join(letters)}.[/red]")
        else:
            session.answer(action.upper() if question.type == "mcq" else action)
            session.next()

    if session.state is QuizState.COMPLETED:
        show_quiz_results(session)


def cmd_quiz(store: LearningStore, generator: ContentGenerator):
    plan = choose_plan(store)
    if not plan:
        return
    day_number = IntPrompt.ask("Day", default=current_day(plan))
    run_quiz(store, generator, plan, clamp_day(day_number, total_days(plan)))


def cmd_profile(store: LearningStore):
    profile = store.get_profile() or {}
    store.refresh()
    stats = get_profile_stats(store.plans, store.list_quiz_results())
    console.print(Panel(
        f"[bold]{escape(profile.get('full_name') or 'Learner')}[/bold]\n{escape(profile.get('email', ''))}"
        f"\n[dim]Member since {str(profile.get('created_at', ''))[:10]}[/dim]",
        title="Profile", border_style="blue",
    ))
    console.print(f"\n  Plans: [bold]{stats['total_plans']}[/bold]  |  "
                  f"Quizzes: [bold]{stats['completed_quizzes']}[/bold]  |  "
                  f"Avg Score: [bold]{stats['average_score']}%[/bold]  |  "
                  f"Study Time: [bold]{format_study_time(stats['total_study_time'])}[/bold]")
    if Confirm.ask("\nEdit your name?", default=False):
        store.update_profile(full_name=Prompt.ask("Full name").strip() or None)


def sign_in(settings: Settings) -> dict:
    email = settings.user_email or Prompt.ask("Email").strip()
    return ensure_profile(settings.db_path, email)


def main():
    settings = load_settings()
    setup_logging(settings.log_level)
    init_db(settings.db_path)

    show_welcome()
    profile = sign_in(settings)
    store = LearningStore(settings.db_path, profile["id"], notify=notify)
    store.refresh()
    generator = ContentGenerator(model=settings.groq_model, api_key=settings.groq_api_key)
    speech = SpeechService()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="dashboard").strip().lower()
        try:
            if choice == "dashboard":
                cmd_dashboard(store)
            elif choice == "new":
                if cmd_new(store, generator):
                    cmd_study(store, generator, speech, settings)
            elif choice == "study":
                cmd_study(store, generator, speech, settings)
            elif choice == "quiz":
                cmd_quiz(store, generator)
            elif choice == "profile":
                cmd_profile(store)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Happy learning![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except GenerationError as e:
            notify(f"AI request failed: {e.message}", "error")
        except (PlanNotFound, QuizStateError, sqlite3.Error) as e:
            notify(f"Error: {e}", "error")


if __name__ == "__main__":
    main()
