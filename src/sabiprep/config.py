"""Configuration constants for the exam engine, all in one place."""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_DB_PATH = str(Path.home() / ".sabiprep" / "sabiprep.db")
CONTENT_DIR = Path(__file__).parent / "content"

CHOICES = ("A", "B", "C", "D", "E")
MODES = ("practice", "test", "timed")


@dataclass(frozen=True)
class ExamFormat:
    name: str
    label: str
    question_count: int
    time_minutes: int


EXAM_FORMATS = {
    "speed-drill": ExamFormat("speed-drill", "Speed Drill", 20, 20),
    "waec": ExamFormat("waec", "WAEC Style", 50, 60),
    "jamb": ExamFormat("jamb", "JAMB Style", 60, 60),
}


def resolve_exam_format(name: str, custom_count: Optional[int] = None,
                        custom_minutes: Optional[int] = None) -> tuple[int, int]:
    """Question count and time limit (minutes) for an exam format.

    ``custom`` needs both a count and a time; anything unrecognised falls
    back to the speed drill.
    """
    if name == "custom" and custom_count and custom_minutes:
        return custom_count, custom_minutes
    fmt = EXAM_FORMATS.get(name, EXAM_FORMATS["speed-drill"])
    return fmt.question_count, fmt.time_minutes


@dataclass
class TimerConfig:
    """Countdown warning and pace settings."""

    # threshold id -> seconds remaining; None means half of the budget
    thresholds: dict = field(default_factory=lambda: {
        "half_time": None,
        "ten_minutes": 600,
        "five_minutes": 300,
        "one_minute": 60,
        "thirty_seconds": 30,
    })
    window_seconds: int = 60
    pace_deadband: float = 10.0
    low_time_fraction: float = 0.10
    warn_time_fraction: float = 0.25


@dataclass
class SelectionConfig:
    easy_share: float = 0.3
    medium_share: float = 0.5
    remainder_tolerance: float = 0.001


@dataclass
class SessionConfig:
    default_question_count: int = 20
    max_write_attempts: int = 3


TIMER_CONFIG = TimerConfig()
SELECTION_CONFIG = SelectionConfig()
SESSION_CONFIG = SessionConfig()
