import json
from types import SimpleNamespace

import pytest

from learning_companion.db import init_db
from learning_companion.models import LearningPlan
from learning_companion.store import LearningStore, ensure_profile


def make_plan_json(days: int = 3, topic: str = "Python", level: str = "beginner",
                   daily_time: str = "30 minutes") -> dict:
    return {
        "topic": topic,
        "totalDays": days,
        "level": level,
        "dailyTime": daily_time,
        "days": [
            {
                "day": d,
                "title": f"Day {d} title",
                "subtopics": [
                    {
                        "id": f"d{d}-s{s}",
                        "title": f"Subtopic {d}.{s}",
                        "explanation": f"Explanation for **subtopic** {d}.{s}",
                        "keyPoints": ["point one", "point two"],
                        "estimatedTime": "15 minutes",
                    }
                    for s in (1, 2)
                ],
                "objectives": [f"Objective for day {d}"],
            }
            for d in range(1, days + 1)
        ],
    }


def completion(content):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeCompletions:
    """Stands in for ``groq.Groq().chat.completions``; replays canned replies."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return completion(reply)


class FakeGroq:
    def __init__(self, replies=()):
        self.chat = SimpleNamespace(completions=FakeCompletions(replies))

    @property
    def calls(self):
        return self.chat.completions.calls


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_companion.db")
    return db_path


@pytest.fixture
def ready_db(tmp_db):
    init_db(tmp_db)
    return tmp_db


@pytest.fixture
def user(ready_db):
    return ensure_profile(ready_db, "learner@example.com", "Ada Learner")


@pytest.fixture
def notes():
    return []


@pytest.fixture
def store(ready_db, user, notes):
    return LearningStore(ready_db, user["id"], notify=lambda message, level: notes.append((level, message)))


@pytest.fixture
def plan_json():
    return make_plan_json()


@pytest.fixture
def saved_plan(store, plan_json):
    plan_id = store.create_plan(LearningPlan.model_validate(plan_json))
    return store.get_plan(plan_id)


@pytest.fixture
def fake_groq():
    def factory(*replies):
        return FakeGroq([r if isinstance(r, (str, Exception)) or r is None else json.dumps(r) for r in replies])
    return factory
