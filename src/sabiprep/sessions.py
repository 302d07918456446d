"""Session persistence: attempts, their question order, and recorded answers."""
import json
import logging
import uuid
from datetime import datetime
from typing import Optional

from sabiprep.config import MODES
from sabiprep.db import get_connection
from sabiprep.models import LearningSession
from sabiprep.questions import fetch_questions, get_questions_by_ids

logger = logging.getLogger(__name__)


def create_session(
    db_path: str,
    subject_id: int,
    topic_ids: list,
    mode: str,
    total_questions: int,
    time_limit_seconds: Optional[int] = None,
    exam_format: Optional[str] = None,
    distribution: Optional[dict] = None,
) -> LearningSession:
    if mode not in MODES:
        raise ValueError(f"Unknown mode: {mode}")
    session_id = str(uuid.uuid4())
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO sessions
        (id, subject_id, topic_ids, distribution, mode, exam_format, total_questions,
         time_limit_seconds, status, started_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'in_progress', ?)""",
        (
            session_id, subject_id, json.dumps(list(topic_ids)),
            json.dumps(distribution) if distribution else None,
            mode, exam_format, total_questions, time_limit_seconds,
            datetime.now().isoformat(),
        ),
    )
    conn.commit()
    conn.close()
    return fetch_session(db_path, session_id)


def fetch_session(db_path: str, session_id: str) -> Optional[LearningSession]:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
    conn.close()
    return LearningSession.from_row(row) if row else None


def attach_questions(db_path: str, session_id: str, question_ids: list) -> None:
    """Freeze the presentation order of an attempt's questions."""
    conn = get_connection(db_path)
    conn.execute("DELETE FROM session_questions WHERE session_id = ?", (session_id,))
    conn.executemany(
        "INSERT INTO session_questions (session_id, position, question_id) VALUES (?, ?, ?)",
        [(session_id, pos, qid) for pos, qid in enumerate(question_ids)],
    )
    conn.commit()
    conn.close()


def get_session_question_ids(db_path: str, session_id: str) -> list[int]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT question_id FROM session_questions WHERE session_id = ? ORDER BY position",
        (session_id,),
    ).fetchall()
    conn.close()
    return [r["question_id"] for r in rows]


def persist_answer(
    db_path: str,
    session_id: str,
    question_id: int,
    answer: str,
    is_correct: bool,
    time_spent: int,
    change_count: int = 0,
) -> None:
    """Record the current answer to a question; a revised answer replaces it."""
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO session_answers
        (session_id, question_id, user_answer, is_correct, time_spent_seconds,
         answer_change_count, answered_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(session_id, question_id) DO UPDATE SET
            user_answer=excluded.user_answer,
            is_correct=excluded.is_correct,
            time_spent_seconds=excluded.time_spent_seconds,
            answer_change_count=excluded.answer_change_count,
            answered_at=excluded.answered_at""",
        (session_id, question_id, answer, int(is_correct), int(time_spent),
         change_count, datetime.now().isoformat()),
    )
    conn.commit()
    conn.close()


def persist_session_progress(
    db_path: str,
    session_id: str,
    answered_count: int,
    correct_count: int,
    elapsed_seconds: int,
    last_question_index: Optional[int] = None,
) -> None:
    conn = get_connection(db_path)
    conn.execute(
        """UPDATE sessions SET questions_answered = ?, correct_answers = ?,
            time_spent_seconds = ?, last_question_index = COALESCE(?, last_question_index)
        WHERE id = ?""",
        (answered_count, correct_count, int(elapsed_seconds), last_question_index, session_id),
    )
    conn.commit()
    conn.close()


def finalize_session(
    db_path: str,
    session_id: str,
    score_percentage: float,
    elapsed_seconds: int,
    correct_count: int,
    answered_count: int,
) -> None:
    """Mark an attempt completed with its final score."""
    conn = get_connection(db_path)
    cursor = conn.execute(
        """UPDATE sessions SET status = 'completed', completed_at = ?, score_percentage = ?,
            time_spent_seconds = ?, correct_answers = ?, questions_answered = ?
        WHERE id = ?""",
        (datetime.now().isoformat(), score_percentage, int(elapsed_seconds),
         correct_count, answered_count, session_id),
    )
    conn.commit()
    conn.close()
    if cursor.rowcount == 0:
        raise LookupError(f"Session {session_id} does not exist")


def abandon_session(db_path: str, session_id: str) -> None:
    conn = get_connection(db_path)
    conn.execute(
        "UPDATE sessions SET status = 'abandoned' WHERE id = ? AND status = 'in_progress'",
        (session_id,),
    )
    conn.commit()
    conn.close()


def get_session_answers(db_path: str, session_id: str) -> list[dict]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM session_answers WHERE session_id = ? ORDER BY id", (session_id,)
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_attempted_question_ids(db_path: str, subject_id: int,
                               exclude_session: Optional[str] = None) -> set:
    """Ids of questions already answered in any attempt at this subject."""
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT DISTINCT a.question_id FROM session_answers a
        JOIN sessions s ON a.session_id = s.id
        WHERE s.subject_id = ? AND s.id != ?""",
        (subject_id, exclude_session or ""),
    ).fetchall()
    conn.close()
    return {r["question_id"] for r in rows}


def get_recent_sessions(db_path: str, limit: int = 10) -> list[LearningSession]:
    """Recent attempts, unfinished ones first."""
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT * FROM sessions
        ORDER BY CASE WHEN status = 'in_progress' THEN 0 ELSE 1 END, started_at DESC
        LIMIT ?""",
        (limit,),
    ).fetchall()
    conn.close()
    return [LearningSession.from_row(r) for r in rows]


def can_resume_session(db_path: str, session_id: str) -> tuple[bool, str]:
    session = fetch_session(db_path, session_id)
    if session is None:
        return False, "Session not found"
    if session.status != "in_progress":
        return False, f"Session is {session.status}"
    if session.time_expired:
        return False, "Time limit has expired"
    if get_session_question_ids(db_path, session_id):
        return True, ""
    if session.distribution or session.topic_ids:
        return True, ""
    return False, "No questions available"


class SessionStore:
    """The persistence calls an exam session needs, bound to one database."""

    def __init__(self, db_path: str, rng=None):
        self.db_path = db_path
        self.rng = rng

    def fetch_session(self, session_id):
        return fetch_session(self.db_path, session_id)

    def fetch_questions(self, session):
        """The attempt's frozen question list, drawing and freezing one if needed."""
        ids = get_session_question_ids(self.db_path, session.id)
        if ids:
            return get_questions_by_ids(self.db_path, ids)
        allocation = session.distribution
        if not allocation and session.topic_ids:
            # Single or unplanned multi-topic session: split evenly
            per_topic, extra = divmod(session.total_questions, len(session.topic_ids))
            allocation = {
                tid: per_topic + (1 if i < extra else 0)
                for i, tid in enumerate(session.topic_ids)
            }
        allocation = allocation or {}
        attempted = get_attempted_question_ids(self.db_path, session.subject_id, session.id)
        questions = fetch_questions(self.db_path, allocation, exclude_ids=attempted, rng=self.rng)
        if attempted and len(questions) < sum(allocation.values()):
            logger.info("Only %d unseen questions left, drawing from the full pool", len(questions))
            questions = fetch_questions(self.db_path, allocation, rng=self.rng)
        if questions:
            attach_questions(self.db_path, session.id, [q.id for q in questions])
        return questions

    def fetch_answers(self, session_id):
        return get_session_answers(self.db_path, session_id)

    def persist_answer(self, session_id, question_id, answer, is_correct, time_spent, change_count=0):
        persist_answer(self.db_path, session_id, question_id, answer, is_correct,
                       time_spent, change_count)

    def persist_session_progress(self, session_id, answered_count, correct_count,
                                 elapsed_seconds, last_question_index=None):
        persist_session_progress(self.db_path, session_id, answered_count, correct_count,
                                 elapsed_seconds, last_question_index)

    def finalize_session(self, session_id, score_percentage, elapsed_seconds,
                         correct_count, answered_count):
        finalize_session(self.db_path, session_id, score_percentage, elapsed_seconds,
                         correct_count, answered_count)

    def abandon_session(self, session_id):
        abandon_session(self.db_path, session_id)
