"""Seed the database with subjects, topics, passages and questions."""
import json
from pathlib import Path

from sabiprep.config import CONTENT_DIR
from sabiprep.db import get_connection


def is_seeded(db_path: str) -> bool:
    """Check whether the database has already been seeded with subjects."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM subjects").fetchone()[0]
    conn.close()
    return count > 0


def seed_content(db_path: str, content_file: Path = CONTENT_DIR / "subjects.json") -> None:
    """Insert passages, subjects, topics and questions from a JSON content file."""
    data = json.loads(Path(content_file).read_text())
    conn = get_connection(db_path)
    passage_ids = {}
    for passage in data.get("passages", []):
        cursor = conn.execute(
            "INSERT INTO passages (title, body) VALUES (?, ?)",
            (passage.get("title"), passage["body"]),
        )
        passage_ids[passage["key"]] = cursor.lastrowid

    for subject in data["subjects"]:
        cursor = conn.execute(
            "INSERT INTO subjects (name, slug, description) VALUES (?, ?, ?)",
            (subject["name"], subject["slug"], subject.get("description", "")),
        )
        subject_id = cursor.lastrowid
        for order, topic in enumerate(subject["topics"], 1):
            cursor = conn.execute(
                "INSERT INTO topics (subject_id, name, slug, description, display_order) VALUES (?, ?, ?, ?, ?)",
                (subject_id, topic["name"], topic["slug"], topic.get("description", ""), order),
            )
            topic_id = cursor.lastrowid
            for q in topic["questions"]:
                opts = q["options"]
                conn.execute(
                    """INSERT INTO questions
                    (subject_id, topic_id, passage_id, question_text, option_a, option_b,
                     option_c, option_d, option_e, correct_answer, explanation, difficulty, status)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'published')""",
                    (
                        subject_id, topic_id, passage_ids.get(q.get("passage")),
                        q["question_text"], opts["A"], opts["B"], opts["C"], opts["D"],
                        opts.get("E"), q["correct_answer"], q.get("explanation", ""),
                        q.get("difficulty"),
                    ),
                )
    conn.commit()
    conn.close()


def seed_all(db_path: str) -> None:
    """Seed once; later calls are no-ops."""
    if is_seeded(db_path):
        return
    seed_content(db_path)
