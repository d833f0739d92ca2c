"""Per-user persistence of plans, progress, quiz results and profiles.

``LearningStore`` owns the cached plan list for one user. Only ``refresh``
mutates the cache, and it only does so after a successful read; a failed read
leaves the previous cache in place.

Failures are logged. Except for a missing table (not provisioned yet, ignored
quietly) they are also reported through the ``notify`` callback, which the
CLI wires to the console.
"""
import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

from learning_companion.db import get_connection, is_missing_table
from learning_companion.models import CamelModel, LearningPlan

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]


class PlanNotFound(LookupError):
    """No plan with this id belongs to the current user."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _silent(message: str, level: str) -> None:
    pass


def _to_json(items: list) -> str:
    return json.dumps([i.to_json_dict() if isinstance(i, CamelModel) else i for i in items])


def _points(question) -> int:
    return question.points if isinstance(question, CamelModel) else question.get("points", 0)


def _decode_plan(row: sqlite3.Row) -> dict:
    plan = dict(row)
    plan["plan_data"] = json.loads(plan["plan_data"])
    plan["is_active"] = bool(plan["is_active"])
    return plan


def _decode_quiz_result(row: sqlite3.Row) -> dict:
    result = dict(row)
    result["questions"] = json.loads(result["questions"])
    result["answers"] = json.loads(result["answers"])
    return result


def plan_model(plan: dict) -> LearningPlan:
    """The typed plan held in a stored plan's ``plan_data``."""
    return LearningPlan.model_validate(plan["plan_data"])


def ensure_profile(db_path: str, email: str, full_name: str | None = None, clock=None) -> dict:
    """Return the profile for ``email``, creating it on first sign-in."""
    now = (clock or _utc_now)().isoformat()
    conn = get_connection(db_path)
    try:
        row = conn.execute("SELECT * FROM profiles WHERE email = ?", (email,)).fetchone()
        if row is None:
            conn.execute(
                "INSERT INTO profiles (id, email, full_name, avatar_url, created_at, updated_at) VALUES (?, ?, ?, NULL, ?, ?)",
                (str(uuid.uuid4()), email, full_name, now, now),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM profiles WHERE email = ?", (email,)).fetchone()
            logger.info("Created profile for %s", email)
    finally:
        conn.close()
    return dict(row)


class LearningStore:
    def __init__(
        self,
        db_path: str,
        user_id: str,
        notify: Optional[Notifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db_path = db_path
        self.user_id = user_id
        self.notify = notify or _silent
        self.clock = clock or _utc_now
        self.plans: list[dict] = []
        self.active_plan: Optional[dict] = None
        self.loading = False

    @contextmanager
    def _connect(self):
        conn = get_connection(self.db_path)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _timestamp(self) -> str:
        return self.clock().isoformat()

    def _report(self, error: sqlite3.Error, message: str) -> None:
        if is_missing_table(error):
            logger.debug("%s: table not provisioned yet (%s)", message, error)
            return
        logger.error("%s: %s", message, error)
        self.notify(message, "error")

    # Plans

    def refresh(self) -> None:
        """Reload the user's plans, newest first, and pick the active one."""
        self.loading = True
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM learning_plans WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
                    (self.user_id,),
                ).fetchall()
        except sqlite3.Error as e:
            self._report(e, "Failed to load learning plans")
            return
        finally:
            self.loading = False
        self.plans = [_decode_plan(row) for row in rows]
        self.active_plan = next((p for p in self.plans if p["is_active"]), None)

    def create_plan(self, plan: LearningPlan) -> str:
        """Store ``plan`` as the user's only active plan and return its id."""
        plan_id = str(uuid.uuid4())
        now = self._timestamp()
        try:
            with self._connect() as conn:
                conn.execute(
                    "UPDATE learning_plans SET is_active = 0, updated_at = ? WHERE user_id = ?",
                    (now, self.user_id),
                )
                conn.execute(
                    """INSERT INTO learning_plans
                    (id, user_id, topic, duration_days, level, daily_time, plan_data, is_active, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?, ?)""",
                    (
                        plan_id, self.user_id, plan.topic, plan.total_days, plan.level,
                        plan.daily_time, json.dumps(plan.to_json_dict()), now, now,
                    ),
                )
        except sqlite3.Error as e:
            logger.error("Error creating learning plan: %s", e)
            self.notify("Failed to create learning plan", "error")
            raise
        self.refresh()
        self.notify("Learning plan created successfully!", "success")
        return plan_id

    def get_plan(self, plan_id: str) -> dict:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT * FROM learning_plans WHERE id = ? AND user_id = ?",
                    (plan_id, self.user_id),
                ).fetchone()
        except sqlite3.Error as e:
            logger.error("Error fetching learning plan %s: %s", plan_id, e)
            raise
        if row is None:
            raise PlanNotFound(plan_id)
        return _decode_plan(row)

    # Progress

    def update_progress(self, plan_id: str, day_number: int, subtopic_id: str, completed: bool) -> None:
        """Upsert one subtopic's completion state; the latest call wins."""
        now = self._timestamp()
        try:
            with self._connect() as conn:
                conn.execute(
                    """INSERT INTO daily_progress
                    (id, user_id, plan_id, day_number, subtopic_id, completed, completed_at, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(user_id, plan_id, day_number, subtopic_id)
                    DO UPDATE SET completed = excluded.completed, completed_at = excluded.completed_at""",
                    (
                        str(uuid.uuid4()), self.user_id, plan_id, day_number, subtopic_id,
                        int(completed), now if completed else None, now,
                    ),
                )
        except sqlite3.Error as e:
            self._report(e, "Failed to update progress")

    def get_progress(self, plan_id: str, day_number: int) -> list[dict]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM daily_progress WHERE user_id = ? AND plan_id = ? AND day_number = ?",
                    (self.user_id, plan_id, day_number),
                ).fetchall()
        except sqlite3.Error as e:
            logger.error("Error fetching progress: %s", e)
            return []
        progress = [dict(row) for row in rows]
        for record in progress:
            record["completed"] = bool(record["completed"])
        return progress

    # Quiz results

    def save_quiz_result(
        self, plan_id: str, day_number: int, questions: list, answers: list, score: int
    ) -> None:
        """Insert a result row. Retakes add rows; readers take the newest."""
        now = self._timestamp()
        try:
            with self._connect() as conn:
                conn.execute(
                    """INSERT INTO quiz_results
                    (id, user_id, plan_id, day_number, questions, answers, score, total_questions, completed_at, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        str(uuid.uuid4()), self.user_id, plan_id, day_number,
                        _to_json(questions), _to_json(answers), score, len(questions), now, now,
                    ),
                )
        except sqlite3.Error as e:
            self._report(e, "Failed to save quiz result")
            return
        possible = sum(_points(q) for q in questions)
        self.notify(f"Quiz completed! Score: {score}/{possible}", "success")

    def get_quiz_result(self, plan_id: str, day_number: int) -> Optional[dict]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    """SELECT * FROM quiz_results
                    WHERE user_id = ? AND plan_id = ? AND day_number = ?
                    ORDER BY created_at DESC, rowid DESC LIMIT 1""",
                    (self.user_id, plan_id, day_number),
                ).fetchone()
        except sqlite3.Error as e:
            logger.error("Error fetching quiz result: %s", e)
            return None
        return _decode_quiz_result(row) if row else None

    def list_quiz_results(self) -> list[dict]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM quiz_results WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
                    (self.user_id,),
                ).fetchall()
        except sqlite3.Error as e:
            logger.error("Error fetching quiz results: %s", e)
            return []
        return [_decode_quiz_result(row) for row in rows]

    # Profile

    def get_profile(self) -> Optional[dict]:
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM profiles WHERE id = ?", (self.user_id,)).fetchone()
        except sqlite3.Error as e:
            logger.error("Error loading profile: %s", e)
            return None
        return dict(row) if row else None

    def update_profile(self, full_name: str | None = None, avatar_url: str | None = None) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """UPDATE profiles SET full_name = COALESCE(?, full_name),
                    avatar_url = COALESCE(?, avatar_url), updated_at = ? WHERE id = ?""",
                    (full_name, avatar_url, self._timestamp(), self.user_id),
                )
        except sqlite3.Error as e:
            self._report(e, "Failed to update profile")
