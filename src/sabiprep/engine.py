"""Exam session state machine.

One ``ExamSession`` drives one attempt through
``LOADING -> PRIMED -> RUNNING -> SUBMITTING -> COMPLETE``. Untimed
attempts may step aside into ``PAUSED`` and back. Leaving early
goes to ``ABANDONED`` instead and never computes a score.

The countdown is a single clock for the whole attempt; ``tick()`` is the
only thing that changes the remaining time. Whichever submit path runs
first (manual ``submit()`` or the tick that reaches zero) leaves
``RUNNING`` before doing anything else, so the other one finds nothing to
do.
"""
import logging
import time
from enum import Enum
from typing import Optional

from sabiprep.config import TIMER_CONFIG
from sabiprep.errors import (
    FinalizationError, InvalidTransition, NoQuestionsAvailable, SessionNotFound,
)
from sabiprep.models import QuestionTiming, SessionResult
from sabiprep.outbox import Outbox
from sabiprep.timer import Countdown, WarningLatch, pace_status, time_color

logger = logging.getLogger(__name__)


class SessionState(Enum):
    LOADING = "loading"
    PRIMED = "primed"
    RUNNING = "running"
    PAUSED = "paused"
    SUBMITTING = "submitting"
    COMPLETE = "complete"
    ABANDONED = "abandoned"


class ExamSession:
    def __init__(self, store, clock=time.monotonic, outbox: Optional[Outbox] = None,
                 on_warning=None, timer_config=TIMER_CONFIG):
        self.store = store
        self.clock = clock
        self.outbox = outbox if outbox is not None else Outbox()
        self.on_warning = on_warning
        self.timer_config = timer_config

        self.state = SessionState.LOADING
        self.session = None
        self.questions = []
        self.answers: dict = {}
        self.timings: dict = {}
        self.flagged: set = set()
        self.current_index = 0
        self.correct_count = 0
        self.countdown = Countdown()
        self.warnings: Optional[WarningLatch] = None
        self.result: Optional[SessionResult] = None
        self._elapsed_offset = 0
        self._visit_started = None

    # -- loading -------------------------------------------------------

    def load(self, session_id: str):
        """Fetch the attempt and its questions, then prime the clock."""
        if self.state != SessionState.LOADING:
            raise InvalidTransition("load", self.state)
        session = self.store.fetch_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        questions = self.store.fetch_questions(session)
        if not questions:
            raise NoQuestionsAvailable(session_id)

        self.session = session
        self.questions = list(questions)
        self.timings = {q.id: QuestionTiming() for q in self.questions}
        self._restore(self.store.fetch_answers(session.id))

        budget = session.time_limit_seconds
        self._elapsed_offset = session.time_spent_seconds or 0
        if budget is not None:
            self.countdown.prime(max(0, budget - self._elapsed_offset))
            self.warnings = WarningLatch(
                budget, self.timer_config.thresholds, self.timer_config.window_seconds
            )
        else:
            self.countdown.prime(None)
        self.state = SessionState.PRIMED
        logger.debug("Session %s primed with %d questions", session.id, len(self.questions))
        return session

    def _restore(self, saved_answers) -> None:
        by_id = {q.id: q for q in self.questions}
        for row in saved_answers:
            question = by_id.get(row["question_id"])
            if question is None or not row["user_answer"]:
                continue
            self.answers[question.id] = row["user_answer"]
            timing = self.timings[question.id]
            timing.time_spent_seconds = row["time_spent_seconds"] or 0
            timing.answer_change_count = row["answer_change_count"] or 0
            if question.is_correct(row["user_answer"]):
                self.correct_count += 1
        last = self.session.last_question_index or 0
        self.current_index = min(max(0, last), len(self.questions) - 1)

    def start(self) -> Optional[SessionResult]:
        """Begin the attempt. A timed attempt with no time left is submitted at once."""
        if self.state != SessionState.PRIMED:
            raise InvalidTransition("start", self.state)
        self.countdown.start()
        self.state = SessionState.RUNNING
        self._visit_started = self.clock()
        if self.is_timed and self.countdown.remaining == 0:
            logger.info("Session %s has no time left, submitting", self.session.id)
            return self.submit()
        return None

    def pause(self) -> None:
        """Hold the clock. Timed exams cannot be paused."""
        self._require_running("pause")
        if self.is_timed:
            raise InvalidTransition("pause a timed exam", self.state)
        self.countdown.pause()
        self.state = SessionState.PAUSED

    def resume(self) -> None:
        if self.state != SessionState.PAUSED:
            raise InvalidTransition("resume", self.state)
        self.countdown.resume()
        self.state = SessionState.RUNNING
        self._visit_started = self.clock()

    # -- derived state -------------------------------------------------

    @property
    def is_timed(self) -> bool:
        return self.session is not None and self.session.time_limit_seconds is not None

    @property
    def remaining(self) -> int:
        return self.countdown.remaining

    @property
    def elapsed(self) -> int:
        return self._elapsed_offset + self.countdown.elapsed

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def answered_count(self) -> int:
        return len(self.answers)

    @property
    def current_question(self):
        return self.questions[self.current_index]

    @property
    def pace(self) -> str:
        budget = self.session.time_limit_seconds if self.session else None
        return pace_status(self.elapsed, budget, self.current_index, self.total,
                           self.timer_config.pace_deadband)

    @property
    def time_color(self) -> str:
        budget = self.session.time_limit_seconds if self.session else None
        return time_color(self.remaining, budget)

    def _require_running(self, action: str) -> None:
        if self.state != SessionState.RUNNING:
            raise InvalidTransition(action, self.state)

    # -- navigation ----------------------------------------------------

    def go_to(self, index: int) -> None:
        self._require_running("navigate")
        if not 0 <= index < self.total:
            raise IndexError(f"Question index out of range: {index}")
        self.current_index = index
        self._visit_started = self.clock()

    def next(self) -> bool:
        if self.current_index < self.total - 1:
            self.go_to(self.current_index + 1)
            return True
        return False

    def previous(self) -> bool:
        if self.current_index > 0:
            self.go_to(self.current_index - 1)
            return True
        return False

    # -- answering -----------------------------------------------------

    def select_answer(self, option: str) -> bool:
        """Record an answer for the current question. Returns its correctness."""
        self._require_running("answer")
        question = self.current_question
        option = option.strip().upper()
        if option not in {letter for letter, _ in question.options()}:
            raise ValueError(f"Invalid option {option!r} for question {question.id}")

        prior = self.answers.get(question.id)
        timing = self.timings[question.id]
        if prior is not None and prior != option:
            timing.answer_change_count += 1

        is_correct = question.is_correct(option)
        was_correct = prior is not None and question.is_correct(prior)
        self.correct_count += int(is_correct) - int(was_correct)
        self.answers[question.id] = option
        timing.time_spent_seconds = int(self.clock() - self._visit_started)

        self.outbox.submit(
            f"answer {self.session.id}/{question.id}", self.store.persist_answer,
            self.session.id, question.id, option, is_correct,
            timing.time_spent_seconds, timing.answer_change_count,
        )
        self._save_progress()
        return is_correct

    def _save_progress(self) -> None:
        self.outbox.submit(
            f"progress {self.session.id}", self.store.persist_session_progress,
            self.session.id, self.answered_count, self.correct_count,
            self.elapsed, self.current_index,
        )

    def toggle_flag(self) -> bool:
        self._require_running("flag")
        qid = self.current_question.id
        if qid in self.flagged:
            self.flagged.discard(qid)
            return False
        self.flagged.add(qid)
        return True

    def review_summary(self) -> dict:
        return {
            "unanswered": [i for i, q in enumerate(self.questions) if q.id not in self.answers],
            "flagged": [i for i, q in enumerate(self.questions) if q.id in self.flagged],
        }

    # -- clock ---------------------------------------------------------

    def tick(self) -> Optional[SessionResult]:
        """One second of the attempt. Returns the result if time ran out."""
        if self.state != SessionState.RUNNING:
            return None
        expired = self.countdown.tick()
        if self.warnings is not None:
            for key in self.warnings.check(self.countdown.remaining):
                if self.on_warning:
                    self.on_warning(key, self.countdown.remaining)
        if expired:
            logger.info("Time is up for session %s, submitting", self.session.id)
            return self.submit()
        return None

    def advance(self, seconds: float) -> Optional[SessionResult]:
        """Tick once per whole second, stopping early once the attempt ends."""
        result = None
        for _ in range(int(seconds)):
            if self.state != SessionState.RUNNING:
                break
            result = self.tick()
        return result

    # -- leaving -------------------------------------------------------

    def submit(self) -> Optional[SessionResult]:
        """Finish the attempt. A second call, or a call after time ran out, is a no-op."""
        if self.state != SessionState.RUNNING:
            logger.debug("Ignoring submit for session in state %s", self.state.value)
            return None
        self.state = SessionState.SUBMITTING
        self.countdown.stop()
        return self._finalize()

    def retry_finalize(self) -> SessionResult:
        if self.state != SessionState.SUBMITTING:
            raise InvalidTransition("retry finalization", self.state)
        return self._finalize()

    def score(self) -> SessionResult:
        correct = sum(
            1 for q in self.questions
            if q.id in self.answers and q.is_correct(self.answers[q.id])
        )
        total = self.total
        return SessionResult(
            correct=correct,
            total=total,
            answered=self.answered_count,
            score_percentage=round(correct / total * 100, 2) if total else 0.0,
            elapsed_seconds=self.elapsed,
        )

    def _finalize(self) -> SessionResult:
        result = self.score()
        self._save_progress()
        self.outbox.flush()
        try:
            self.store.finalize_session(
                self.session.id, result.score_percentage, result.elapsed_seconds,
                result.correct, result.answered,
            )
        except Exception as e:
            logger.error("Failed to finalize session %s: %s", self.session.id, e)
            raise FinalizationError(f"Could not save results for session {self.session.id}") from e
        self.result = result
        self.state = SessionState.COMPLETE
        logger.info("Session %s complete: %d/%d", self.session.id, result.correct, result.total)
        return result

    def abandon(self, resumable: bool = True) -> None:
        """Leave without submitting, saving whatever progress exists.

        A resumable attempt stays in progress; otherwise it is marked
        abandoned.
        """
        if self.state not in (SessionState.PRIMED, SessionState.RUNNING, SessionState.PAUSED):
            raise InvalidTransition("abandon", self.state)
        self.countdown.stop()
        self.state = SessionState.ABANDONED
        self._save_progress()
        if not resumable:
            self.outbox.submit(
                f"abandon {self.session.id}", self.store.abandon_session, self.session.id
            )
