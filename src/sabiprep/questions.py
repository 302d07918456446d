"""Question bank queries and question-set selection."""
import logging
import random
from typing import Optional

from sabiprep.config import SELECTION_CONFIG
from sabiprep.db import get_connection
from sabiprep.models import Question, Subject, Topic

logger = logging.getLogger(__name__)

_QUESTION_SELECT = """SELECT q.*, p.body as passage
    FROM questions q
    LEFT JOIN passages p ON q.passage_id = p.id"""

_TOPIC_SELECT = """SELECT t.id, t.subject_id, t.name,
        COUNT(q.id) as available_questions
    FROM topics t
    LEFT JOIN questions q ON q.topic_id = t.id AND q.status = 'published'"""


def get_subjects(db_path: str) -> list[Subject]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM subjects ORDER BY name").fetchall()
    conn.close()
    return [Subject.from_row(r) for r in rows]


def get_subject(db_path: str, id_or_slug) -> Optional[Subject]:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT * FROM subjects WHERE id = ? OR slug = ?", (id_or_slug, str(id_or_slug))
    ).fetchone()
    conn.close()
    return Subject.from_row(row) if row else None


def get_topics(db_path: str, subject_id: int) -> list[Topic]:
    """Topics of a subject, each with its count of published questions."""
    conn = get_connection(db_path)
    rows = conn.execute(
        _TOPIC_SELECT + " WHERE t.subject_id = ? GROUP BY t.id ORDER BY t.display_order, t.id",
        (subject_id,),
    ).fetchall()
    conn.close()
    return [Topic.from_row(r) for r in rows]


def get_topics_by_ids(db_path: str, topic_ids) -> list[Topic]:
    topic_ids = list(topic_ids)
    if not topic_ids:
        return []
    placeholders = ",".join("?" for _ in topic_ids)
    conn = get_connection(db_path)
    rows = conn.execute(
        _TOPIC_SELECT + f" WHERE t.id IN ({placeholders}) GROUP BY t.id ORDER BY t.display_order, t.id",
        topic_ids,
    ).fetchall()
    conn.close()
    return [Topic.from_row(r) for r in rows]


def select_by_difficulty(pool: list, count: int, rng=None) -> list:
    """Pick ``count`` questions from ``pool`` with a mixed difficulty profile.

    Aims for 30% Easy, 50% Medium and the rest Hard; any shortfall in a band
    is topped up from whatever is left in the pool.
    """
    rng = rng or random
    if len(pool) <= count:
        picked = list(pool)
        rng.shuffle(picked)
        return picked

    easy_count = max(1, round(count * SELECTION_CONFIG.easy_share))
    medium_count = max(1, round(count * SELECTION_CONFIG.medium_share))
    hard_count = max(0, count - easy_count - medium_count)
    wanted = {"Easy": easy_count, "Medium": medium_count, "Hard": hard_count}

    by_difficulty = {"Easy": [], "Medium": [], "Hard": []}
    for q in pool:
        by_difficulty.get(q.difficulty, by_difficulty["Medium"]).append(q)

    picked = []
    for difficulty, n in wanted.items():
        bucket = by_difficulty[difficulty]
        picked.extend(rng.sample(bucket, min(n, len(bucket))))

    picked_ids = {q.id for q in picked}
    leftovers = [q for q in pool if q.id not in picked_ids]
    rng.shuffle(leftovers)
    picked.extend(leftovers[:count - len(picked)])
    rng.shuffle(picked)
    return picked[:count]


def get_random_questions(db_path: str, topic_id: int, count: int = 20,
                         exclude_ids=(), rng=None) -> list[Question]:
    conn = get_connection(db_path)
    rows = conn.execute(
        _QUESTION_SELECT + " WHERE q.topic_id = ? AND q.status = 'published'",
        (topic_id,),
    ).fetchall()
    conn.close()
    excluded = set(exclude_ids)
    pool = [Question.from_row(r) for r in rows if r["id"] not in excluded]
    return select_by_difficulty(pool, count, rng)


def fetch_questions(db_path: str, allocation: dict, exclude_ids=(), rng=None) -> list[Question]:
    """Build a question set honouring a ``{topic_id: count}`` allocation.

    Topics that come up short are compensated from the other topics,
    largest requested first. The result is shuffled and never longer than
    the allocation total; it can be shorter when the bank runs dry.
    """
    rng = rng or random
    requested = sum(allocation.values())
    questions = []
    seen = set()

    for topic_id, count in allocation.items():
        if count <= 0:
            continue
        fetched = get_random_questions(db_path, topic_id, count, exclude_ids, rng)
        if len(fetched) < count:
            logger.warning("Topic %s: requested %d, got %d", topic_id, count, len(fetched))
        for q in fetched:
            if q.id not in seen:
                questions.append(q)
                seen.add(q.id)

    if len(questions) < requested and len(allocation) > 1:
        for topic_id in sorted(allocation, key=allocation.get, reverse=True):
            needed = requested - len(questions)
            if needed <= 0:
                break
            extra = get_random_questions(
                db_path, topic_id, needed, list(exclude_ids) + list(seen), rng
            )
            for q in extra[:needed]:
                questions.append(q)
                seen.add(q.id)
            if extra:
                logger.info("Added %d extra questions from topic %s", min(len(extra), needed), topic_id)

    if len(questions) < requested:
        logger.warning(
            "Question distribution: requested %d, received %d", requested, len(questions)
        )
    rng.shuffle(questions)
    return questions[:requested]


def get_questions_by_ids(db_path: str, question_ids) -> list[Question]:
    """Questions for the given ids, in the order the ids were given."""
    question_ids = list(question_ids)
    if not question_ids:
        return []
    placeholders = ",".join("?" for _ in question_ids)
    conn = get_connection(db_path)
    rows = conn.execute(
        _QUESTION_SELECT + f" WHERE q.id IN ({placeholders})", question_ids
    ).fetchall()
    conn.close()
    by_id = {r["id"]: Question.from_row(r) for r in rows}
    return [by_id[qid] for qid in question_ids if qid in by_id]


def shows_passage(questions: list, index: int) -> bool:
    """Whether the reading passage should be shown above question ``index``.

    Consecutive questions sharing a passage only show it on the first one.
    """
    question = questions[index]
    if not question.passage:
        return False
    if index == 0:
        return True
    return questions[index - 1].passage_id != question.passage_id
