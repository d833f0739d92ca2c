"""Dashboard and profile statistics."""
import re
from datetime import datetime

from learning_companion.study import current_day

DEFAULT_DAILY_MINUTES = 30
LEADING_INT_RE = re.compile(r"^\s*(\d+)")


def get_today_lesson(plan: dict, now: datetime | None = None) -> dict | None:
    days = plan["plan_data"].get("days") or []
    if not days:
        return None
    return days[current_day(plan, now) - 1]


def daily_minutes(daily_time: str) -> int:
    """Leading number of a free-form daily time like "45 minutes"."""
    match = LEADING_INT_RE.match(daily_time or "")
    value = int(match.group(1)) if match else 0
    return value or DEFAULT_DAILY_MINUTES


def quiz_percentage(result: dict) -> float:
    answers = result.get("answers") or []
    possible = sum(a.get("maxScore", 0) for a in answers)
    if not possible:
        # Rows without graded answers: assume 2 points per question.
        possible = result["total_questions"] * 2
    if not possible:
        return 0.0
    return result["score"] / possible * 100


def get_profile_stats(plans: list[dict], quiz_results: list[dict]) -> dict:
    total_quizzes = len(quiz_results)
    average = (
        round(sum(quiz_percentage(r) for r in quiz_results) / total_quizzes)
        if total_quizzes else 0
    )
    study_minutes = sum(daily_minutes(p["daily_time"]) * p["duration_days"] for p in plans)
    return {
        "total_plans": len(plans),
        "completed_quizzes": total_quizzes,
        "average_score": average,
        "total_study_time": study_minutes,
    }


def format_study_time(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    return f"{hours}h {mins}m" if hours > 0 else f"{mins}m"
