"""Tests for dashboard and profile statistics."""
from datetime import datetime, timedelta, timezone

from conftest import make_plan_json
from learning_companion.dashboard import (
    daily_minutes, format_study_time, get_profile_stats, get_today_lesson, quiz_percentage,
)

CREATED = datetime(2026, 5, 4, 8, 0, tzinfo=timezone.utc)


def stored_plan(days=3, daily_time="30 minutes"):
    return {
        "id": "plan-1",
        "duration_days": days,
        "daily_time": daily_time,
        "created_at": CREATED.isoformat(),
        "plan_data": make_plan_json(days=days, daily_time=daily_time),
    }


def test_today_lesson_follows_calendar():
    plan = stored_plan()
    assert get_today_lesson(plan, CREATED)["day"] == 1
    assert get_today_lesson(plan, CREATED + timedelta(days=1))["title"] == "Day 2 title"
    assert get_today_lesson(plan, CREATED + timedelta(days=30))["day"] == 3


def test_today_lesson_without_days():
    plan = stored_plan()
    plan["plan_data"]["days"] = []
    assert get_today_lesson(plan, CREATED) is None


def test_daily_minutes():
    assert daily_minutes("45 minutes") == 45
    assert daily_minutes("1-2 hours") == 1
    assert daily_minutes("a while") == 30
    assert daily_minutes("") == 30


def test_quiz_percentage_uses_answer_max_scores():
    result = {"score": 6, "total_questions": 2, "answers": [{"maxScore": 2}, {"maxScore": 4}]}
    assert quiz_percentage(result) == 100


def test_quiz_percentage_without_answers():
    assert quiz_percentage({"score": 3, "total_questions": 3, "answers": []}) == 50
    assert quiz_percentage({"score": 0, "total_questions": 0, "answers": []}) == 0


def test_profile_stats():
    plans = [stored_plan(days=7, daily_time="30 minutes"), stored_plan(days=3, daily_time="1 hour")]
    results = [
        {"score": 2, "total_questions": 1, "answers": [{"maxScore": 2}]},
        {"score": 1, "total_questions": 1, "answers": [{"maxScore": 2}]},
    ]
    stats = get_profile_stats(plans, results)
    assert stats == {
        "total_plans": 2,
        "completed_quizzes": 2,
        "average_score": 75,
        "total_study_time": 7 * 30 + 3 * 1,
    }


def test_profile_stats_empty():
    assert get_profile_stats([], []) == {
        "total_plans": 0,
        "completed_quizzes": 0,
        "average_score": 0,
        "total_study_time": 0,
    }


def test_format_study_time():
    assert format_study_time(90) == "1h 30m"
    assert format_study_time(45) == "45m"
    assert format_study_time(0) == "0m"
