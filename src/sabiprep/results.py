"""Session results, review and study statistics."""
from sabiprep.db import get_connection


def grade_label(percentage: float) -> str:
    if percentage >= 90:
        return "Excellent"
    elif percentage >= 80:
        return "Very Good"
    elif percentage >= 70:
        return "Good"
    elif percentage >= 60:
        return "Fair"
    elif percentage >= 50:
        return "Pass"
    return "Needs Improvement"


def grade_color(percentage: float) -> str:
    if percentage >= 70:
        return "green"
    elif percentage >= 50:
        return "yellow"
    return "red"


def calculate_session_score(total_questions: int, correct_answers: int) -> float:
    if total_questions == 0:
        return 0.0
    return (correct_answers / total_questions) * 100


def get_session_review(db_path: str, session_id: str) -> list[dict]:
    """Every question of a session in presentation order, with the user's answer."""
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT sq.position, q.id as question_id, q.question_text, q.correct_answer,
            q.explanation, t.name as topic_name,
            a.user_answer, a.is_correct, a.time_spent_seconds, a.answer_change_count
        FROM session_questions sq
        JOIN questions q ON sq.question_id = q.id
        JOIN topics t ON q.topic_id = t.id
        LEFT JOIN session_answers a
            ON a.session_id = sq.session_id AND a.question_id = sq.question_id
        WHERE sq.session_id = ?
        ORDER BY sq.position""",
        (session_id,),
    ).fetchall()
    conn.close()
    return [
        {
            "position": r["position"],
            "question_id": r["question_id"],
            "question_text": r["question_text"],
            "topic_name": r["topic_name"],
            "user_answer": r["user_answer"],
            "correct_answer": r["correct_answer"],
            "is_correct": bool(r["is_correct"]),
            "time_spent_seconds": r["time_spent_seconds"] or 0,
            "answer_change_count": r["answer_change_count"] or 0,
            "explanation": r["explanation"] or "",
        }
        for r in rows
    ]


def get_topic_breakdown(db_path: str, session_id: str) -> list[dict]:
    """Per-topic score for one session; unanswered questions count as wrong."""
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT t.id, t.name, COUNT(*) as total,
            SUM(CASE WHEN a.is_correct = 1 THEN 1 ELSE 0 END) as correct
        FROM session_questions sq
        JOIN questions q ON sq.question_id = q.id
        JOIN topics t ON q.topic_id = t.id
        LEFT JOIN session_answers a
            ON a.session_id = sq.session_id AND a.question_id = sq.question_id
        WHERE sq.session_id = ?
        GROUP BY t.id
        ORDER BY t.display_order, t.id""",
        (session_id,),
    ).fetchall()
    conn.close()
    return [
        {
            "topic_id": r["id"],
            "topic_name": r["name"],
            "total": r["total"],
            "correct": r["correct"],
            "score": round(calculate_session_score(r["total"], r["correct"]), 1),
        }
        for r in rows
    ]


def get_study_stats(db_path: str) -> dict:
    conn = get_connection(db_path)
    completed = conn.execute(
        "SELECT COUNT(*) FROM sessions WHERE status = 'completed'"
    ).fetchone()[0]
    answered = conn.execute("SELECT COUNT(*) FROM session_answers").fetchone()[0]
    avg_row = conn.execute(
        "SELECT AVG(score_percentage) as avg FROM sessions WHERE status = 'completed'"
    ).fetchone()
    total_time = conn.execute(
        "SELECT COALESCE(SUM(time_spent_seconds), 0) FROM sessions"
    ).fetchone()[0]
    conn.close()
    return {
        "sessions_completed": completed,
        "questions_answered": answered,
        "avg_score": round(avg_row["avg"], 1) if avg_row["avg"] is not None else 0.0,
        "study_minutes": total_time // 60,
    }
