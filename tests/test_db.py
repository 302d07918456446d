"""Tests for database initialization and connection management."""
import sqlite3

import pytest

from sabiprep.db import init_db, get_connection


def test_init_db_creates_tables(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    )
    tables = {row[0] for row in cursor.fetchall()}
    expected = {
        "subjects", "topics", "passages", "questions",
        "sessions", "session_questions", "session_answers",
    }
    assert expected.issubset(tables)
    conn.close()


def test_init_db_is_idempotent(tmp_db):
    init_db(tmp_db)
    init_db(tmp_db)  # should not raise
    conn = get_connection(tmp_db)
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    assert len(cursor.fetchall()) > 0
    conn.close()


def test_init_db_creates_parent_directory(tmp_path):
    db_path = str(tmp_path / "nested" / "dir" / "sabiprep.db")
    init_db(db_path)
    assert (tmp_path / "nested" / "dir" / "sabiprep.db").exists()


def test_get_connection_returns_row_factory(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    conn.execute("INSERT INTO subjects (name, slug) VALUES ('Physics', 'physics')")
    row = conn.execute("SELECT name, slug FROM subjects WHERE slug='physics'").fetchone()
    assert row["name"] == "Physics"
    conn.close()


def test_foreign_keys_enforced(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute("INSERT INTO topics (subject_id, name, slug) VALUES (99, 'Orphan', 'orphan')")
    conn.close()


def test_session_status_is_constrained(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    conn.execute("INSERT INTO subjects (name, slug) VALUES ('Physics', 'physics')")
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            """INSERT INTO sessions (id, subject_id, mode, total_questions, status)
            VALUES ('x', 1, 'test', 10, 'paused')"""
        )
    conn.close()
