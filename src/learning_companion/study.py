"""Plan position and progress derived from the calendar.

A plan has no explicit "advance" step: the current day is the number of whole
days since the plan was created, plus one, kept within the plan's range. It can
run ahead of what the user has actually completed.
"""
from datetime import datetime, timezone

SECONDS_PER_DAY = 24 * 60 * 60


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse a stored ISO timestamp. Naive values are taken as UTC."""
    moment = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def total_days(plan: dict) -> int:
    days = plan.get("plan_data", {}).get("days")
    return len(days) if days else plan["duration_days"]


def days_elapsed(plan: dict, now: datetime | None = None) -> int:
    now = parse_timestamp(now or datetime.now(timezone.utc))
    seconds = (now - parse_timestamp(plan["created_at"])).total_seconds()
    return int(seconds // SECONDS_PER_DAY)


def clamp_day(day: int, last_day: int) -> int:
    return min(max(day, 1), last_day)


def current_day(plan: dict, now: datetime | None = None) -> int:
    return clamp_day(days_elapsed(plan, now) + 1, total_days(plan))


def plan_progress(plan: dict, now: datetime | None = None) -> float:
    """Share of the plan's calendar that has started, as a percentage."""
    days_passed = days_elapsed(plan, now) + 1
    return max(min(days_passed / plan["duration_days"] * 100, 100.0), 0.0)


def day_completion(plan: dict, day_number: int, progress: list[dict]) -> tuple[int, int]:
    """(completed, total) subtopics for one day, given that day's progress rows."""
    day = plan["plan_data"]["days"][day_number - 1]
    subtopic_ids = {s["id"] for s in day.get("subtopics", [])}
    done = {p["subtopic_id"] for p in progress if p["completed"] and p["day_number"] == day_number}
    return len(subtopic_ids & done), len(subtopic_ids)
