"""Data classes for the exam domain model."""
import json
from dataclasses import dataclass, field
from typing import Optional

from sabiprep.config import CHOICES


@dataclass
class Subject:
    id: int
    name: str
    slug: str
    description: str = ""

    @classmethod
    def from_row(cls, row) -> "Subject":
        return cls(id=row["id"], name=row["name"], slug=row["slug"],
                   description=row["description"] or "")


@dataclass
class Topic:
    id: int
    subject_id: int
    name: str
    available_questions: int = 0

    @classmethod
    def from_row(cls, row) -> "Topic":
        return cls(
            id=row["id"], subject_id=row["subject_id"], name=row["name"],
            available_questions=row["available_questions"],
        )


@dataclass
class Question:
    id: int
    topic_id: int
    question_text: str
    option_a: str
    option_b: str
    option_c: str
    option_d: str
    correct_answer: str
    option_e: Optional[str] = None
    passage_id: Optional[int] = None
    passage: Optional[str] = None
    difficulty: Optional[str] = None
    explanation: str = ""

    @classmethod
    def from_row(cls, row) -> "Question":
        keys = row.keys()
        return cls(
            id=row["id"],
            topic_id=row["topic_id"],
            question_text=row["question_text"],
            option_a=row["option_a"],
            option_b=row["option_b"],
            option_c=row["option_c"],
            option_d=row["option_d"],
            option_e=row["option_e"],
            correct_answer=row["correct_answer"],
            passage_id=row["passage_id"],
            passage=row["passage"] if "passage" in keys else None,
            difficulty=row["difficulty"],
            explanation=row["explanation"] or "",
        )

    def options(self) -> list[tuple[str, str]]:
        """(letter, text) pairs for the options this question actually has."""
        texts = [self.option_a, self.option_b, self.option_c, self.option_d, self.option_e]
        return [(letter, text) for letter, text in zip(CHOICES, texts) if text]

    def is_correct(self, answer: str) -> bool:
        return answer.strip().upper() == self.correct_answer.upper()


@dataclass
class LearningSession:
    """One persisted attempt, as stored in the ``sessions`` table."""
    id: str
    subject_id: int
    mode: str
    total_questions: int
    topic_ids: list = field(default_factory=list)
    distribution: dict = field(default_factory=dict)
    exam_format: Optional[str] = None
    time_limit_seconds: Optional[int] = None
    questions_answered: int = 0
    correct_answers: int = 0
    score_percentage: Optional[float] = None
    time_spent_seconds: int = 0
    status: str = "in_progress"
    last_question_index: int = 0
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "LearningSession":
        distribution = json.loads(row["distribution"]) if row["distribution"] else {}
        return cls(
            id=row["id"],
            subject_id=row["subject_id"],
            mode=row["mode"],
            total_questions=row["total_questions"],
            topic_ids=json.loads(row["topic_ids"] or "[]"),
            # JSON object keys come back as strings
            distribution={int(k): v for k, v in distribution.items()},
            exam_format=row["exam_format"],
            time_limit_seconds=row["time_limit_seconds"],
            questions_answered=row["questions_answered"],
            correct_answers=row["correct_answers"],
            score_percentage=row["score_percentage"],
            time_spent_seconds=row["time_spent_seconds"],
            status=row["status"],
            last_question_index=row["last_question_index"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
        )

    @property
    def is_timed(self) -> bool:
        return self.time_limit_seconds is not None

    @property
    def time_expired(self) -> bool:
        return self.is_timed and (self.time_spent_seconds or 0) >= self.time_limit_seconds


@dataclass
class QuestionTiming:
    time_spent_seconds: int = 0
    answer_change_count: int = 0


@dataclass
class SessionResult:
    correct: int
    total: int
    answered: int
    score_percentage: float
    elapsed_seconds: int
