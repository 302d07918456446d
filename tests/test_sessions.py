import random

import pytest

from sabiprep.db import get_connection
from sabiprep.sessions import (
    SessionStore, abandon_session, attach_questions, can_resume_session, create_session,
    fetch_session, finalize_session, get_attempted_question_ids, get_recent_sessions,
    get_session_answers, get_session_question_ids, persist_answer, persist_session_progress,
)


def test_create_session(seeded_db):
    session = create_session(
        seeded_db, 1, [1, 2], "timed", 20, time_limit_seconds=1200,
        exam_format="speed-drill", distribution={1: 12, 2: 8},
    )
    assert session.status == "in_progress"
    assert session.topic_ids == [1, 2]
    assert session.distribution == {1: 12, 2: 8}
    assert session.time_limit_seconds == 1200
    assert session.is_timed
    assert session.started_at is not None


def test_create_session_rejects_unknown_mode(seeded_db):
    with pytest.raises(ValueError):
        create_session(seeded_db, 1, [1], "cram", 10)


def test_fetch_missing_session(seeded_db):
    assert fetch_session(seeded_db, "nope") is None


def test_attach_questions_freezes_order(seeded_db):
    session = create_session(seeded_db, 1, [1], "test", 3)
    attach_questions(seeded_db, session.id, [5, 2, 7])
    assert get_session_question_ids(seeded_db, session.id) == [5, 2, 7]
    attach_questions(seeded_db, session.id, [1, 3])
    assert get_session_question_ids(seeded_db, session.id) == [1, 3]


def test_persist_answer_replaces_revision(seeded_db):
    session = create_session(seeded_db, 1, [1], "test", 5)
    persist_answer(seeded_db, session.id, 1, "B", False, 10)
    persist_answer(seeded_db, session.id, 1, "A", True, 14, change_count=1)
    answers = get_session_answers(seeded_db, session.id)
    assert len(answers) == 1
    assert answers[0]["user_answer"] == "A"
    assert answers[0]["is_correct"] == 1
    assert answers[0]["answer_change_count"] == 1


def test_persist_session_progress(seeded_db):
    session = create_session(seeded_db, 1, [1], "test", 5)
    persist_session_progress(seeded_db, session.id, 3, 2, 95, last_question_index=3)
    persist_session_progress(seeded_db, session.id, 4, 2, 120)
    updated = fetch_session(seeded_db, session.id)
    assert updated.questions_answered == 4
    assert updated.correct_answers == 2
    assert updated.time_spent_seconds == 120
    assert updated.last_question_index == 3


def test_finalize_session(seeded_db):
    session = create_session(seeded_db, 1, [1], "test", 5)
    finalize_session(seeded_db, session.id, 60.0, 300, 3, 4)
    done = fetch_session(seeded_db, session.id)
    assert done.status == "completed"
    assert done.score_percentage == 60.0
    assert done.questions_answered == 4
    assert done.completed_at is not None


def test_finalize_missing_session_raises(seeded_db):
    with pytest.raises(LookupError):
        finalize_session(seeded_db, "nope", 0.0, 0, 0, 0)


def test_abandon_only_affects_in_progress(seeded_db):
    active = create_session(seeded_db, 1, [1], "test", 5)
    done = create_session(seeded_db, 1, [1], "test", 5)
    finalize_session(seeded_db, done.id, 100.0, 10, 5, 5)
    abandon_session(seeded_db, active.id)
    abandon_session(seeded_db, done.id)
    assert fetch_session(seeded_db, active.id).status == "abandoned"
    assert fetch_session(seeded_db, done.id).status == "completed"


def test_recent_sessions_list_unfinished_first(seeded_db):
    done = create_session(seeded_db, 1, [1], "test", 5)
    finalize_session(seeded_db, done.id, 80.0, 10, 4, 5)
    active = create_session(seeded_db, 1, [1], "test", 5)
    recent = get_recent_sessions(seeded_db)
    assert [s.id for s in recent] == [active.id, done.id]
    assert len(get_recent_sessions(seeded_db, limit=1)) == 1


def test_can_resume_session(seeded_db):
    session = create_session(seeded_db, 1, [1], "test", 5)
    assert can_resume_session(seeded_db, session.id) == (True, "")
    finalize_session(seeded_db, session.id, 0.0, 0, 0, 0)
    ok, reason = can_resume_session(seeded_db, session.id)
    assert not ok
    assert "completed" in reason
    assert can_resume_session(seeded_db, "nope") == (False, "Session not found")


def test_cannot_resume_after_time_ran_out(seeded_db):
    session = create_session(seeded_db, 1, [1], "timed", 5, time_limit_seconds=60)
    persist_session_progress(seeded_db, session.id, 1, 1, 45)
    assert can_resume_session(seeded_db, session.id) == (True, "")
    persist_session_progress(seeded_db, session.id, 1, 1, 60)
    assert can_resume_session(seeded_db, session.id) == (False, "Time limit has expired")
    assert fetch_session(seeded_db, session.id).time_expired


def test_attempted_question_ids_are_per_subject(seeded_db):
    maths = create_session(seeded_db, 1, [1], "test", 2)
    english = create_session(seeded_db, 2, [5], "test", 2)
    persist_answer(seeded_db, maths.id, 1, "A", True, 3)
    persist_answer(seeded_db, maths.id, 2, "B", False, 3)
    persist_answer(seeded_db, english.id, 24, "C", False, 3)
    assert get_attempted_question_ids(seeded_db, 1) == {1, 2}
    assert get_attempted_question_ids(seeded_db, 1, exclude_session=maths.id) == set()
    assert get_attempted_question_ids(seeded_db, 2) == {24}


def test_cannot_resume_without_questions(seeded_db):
    session = create_session(seeded_db, 1, [], "test", 5)
    assert can_resume_session(seeded_db, session.id) == (False, "No questions available")


class TestSessionStore:
    def test_draws_from_distribution_and_freezes(self, seeded_db):
        session = create_session(seeded_db, 1, [1, 2], "test", 6, distribution={1: 4, 2: 2})
        store = SessionStore(seeded_db, rng=random.Random(5))
        questions = store.fetch_questions(session)
        assert len(questions) == 6
        assert sorted(q.topic_id for q in questions) == [1, 1, 1, 1, 2, 2]
        # a second fetch returns the frozen order
        again = store.fetch_questions(session)
        assert [q.id for q in again] == [q.id for q in questions]

    def test_even_split_without_distribution(self, seeded_db):
        session = create_session(seeded_db, 1, [1, 2, 3], "practice", 7)
        questions = SessionStore(seeded_db).fetch_questions(session)
        counts = {}
        for q in questions:
            counts[q.topic_id] = counts.get(q.topic_id, 0) + 1
        assert counts == {1: 3, 2: 2, 3: 2}

    def test_skips_questions_already_answered(self, seeded_db):
        store = SessionStore(seeded_db, rng=random.Random(2))
        first = create_session(seeded_db, 1, [3], "practice", 3)
        seen = store.fetch_questions(first)
        for q in seen:
            store.persist_answer(first.id, q.id, q.correct_answer, True, 5)
        second = create_session(seeded_db, 1, [3], "practice", 2)
        fresh = store.fetch_questions(second)
        assert len(fresh) == 2
        assert {q.id for q in fresh}.isdisjoint({q.id for q in seen})

    def test_falls_back_to_full_pool_when_unseen_run_out(self, seeded_db):
        store = SessionStore(seeded_db, rng=random.Random(2))
        first = create_session(seeded_db, 1, [3], "practice", 3)
        for q in store.fetch_questions(first):
            store.persist_answer(first.id, q.id, q.correct_answer, True, 5)
        # Statistics has 5 questions, only 2 of them unseen
        second = create_session(seeded_db, 1, [3], "practice", 5)
        assert len(store.fetch_questions(second)) == 5

    def test_round_trip_through_store(self, seeded_db):
        session = create_session(seeded_db, 1, [1], "test", 2)
        store = SessionStore(seeded_db)
        store.persist_answer(session.id, 1, "C", False, 4)
        store.persist_session_progress(session.id, 1, 0, 4, 0)
        store.finalize_session(session.id, 0.0, 4, 0, 1)
        assert store.fetch_answers(session.id)[0]["user_answer"] == "C"
        assert store.fetch_session(session.id).status == "completed"

    def test_store_abandon(self, seeded_db):
        session = create_session(seeded_db, 1, [1], "test", 2)
        SessionStore(seeded_db).abandon_session(session.id)
        conn = get_connection(seeded_db)
        row = conn.execute("SELECT status FROM sessions WHERE id = ?", (session.id,)).fetchone()
        conn.close()
        assert row["status"] == "abandoned"
