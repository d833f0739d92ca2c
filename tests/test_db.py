"""Tests for database initialization and connection management."""
import sqlite3

import pytest

from learning_companion.db import TABLES, get_connection, init_db, is_missing_table


def test_init_db_creates_tables(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    )
    tables = {row[0] for row in cursor.fetchall()}
    assert set(TABLES).issubset(tables)
    conn.close()


def test_init_db_is_idempotent(tmp_db):
    init_db(tmp_db)
    init_db(tmp_db)  # should not raise
    conn = get_connection(tmp_db)
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    assert len(cursor.fetchall()) >= len(TABLES)
    conn.close()


def test_init_db_creates_parent_directory(tmp_path):
    db_path = str(tmp_path / "nested" / "dir" / "companion.db")
    init_db(db_path)
    assert (tmp_path / "nested" / "dir" / "companion.db").exists()


def test_get_connection_returns_row_factory(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    conn.execute(
        "INSERT INTO profiles (id, email, created_at, updated_at) VALUES ('u1', 'a@b.c', 'now', 'now')"
    )
    row = conn.execute("SELECT id, email FROM profiles WHERE id='u1'").fetchone()
    assert row["email"] == "a@b.c"
    conn.close()


def test_foreign_keys_are_enforced(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            "INSERT INTO learning_plans (id, user_id, topic, duration_days, level, daily_time,"
            " plan_data, created_at, updated_at)"
            " VALUES ('p1', 'nobody', 'Go', 3, 'beginner', '30 minutes', '{}', 'now', 'now')"
        )
    conn.close()


def test_is_missing_table(tmp_db):
    conn = get_connection(tmp_db)
    try:
        conn.execute("SELECT * FROM learning_plans")
    except sqlite3.OperationalError as e:
        assert is_missing_table(e)
    finally:
        conn.close()
    assert not is_missing_table(sqlite3.OperationalError("database is locked"))
    assert not is_missing_table(ValueError("no such table: x"))
