"""Countdown clock, one-shot time warnings, and pace indicators."""
import logging
from enum import Enum
from typing import Optional

from sabiprep.config import TIMER_CONFIG
from sabiprep.errors import InvalidTransition

logger = logging.getLogger(__name__)


class CountdownState(Enum):
    IDLE = "idle"
    PRIMED = "primed"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class Countdown:
    """A one-second-per-tick clock for a whole attempt.

    ``prime()`` must set the budget before ``start()`` is allowed, so the
    clock can never run down from a stale default. A ``None`` budget makes
    it a stopwatch that only counts elapsed ticks.
    """

    def __init__(self):
        self.state = CountdownState.IDLE
        self.budget: Optional[int] = None
        self.remaining = 0
        self.ticks = 0

    @property
    def counts_down(self) -> bool:
        return self.budget is not None

    @property
    def is_running(self) -> bool:
        return self.state == CountdownState.RUNNING

    def prime(self, budget: Optional[int]) -> None:
        if budget is not None and budget < 0:
            raise ValueError(f"Time budget cannot be negative: {budget}")
        if self.state in (CountdownState.RUNNING, CountdownState.PAUSED):
            raise InvalidTransition("prime the countdown", self.state)
        self.budget = budget
        self.remaining = budget if budget is not None else 0
        self.ticks = 0
        self.state = CountdownState.PRIMED

    def start(self) -> None:
        if self.state != CountdownState.PRIMED:
            raise InvalidTransition("start the countdown", self.state)
        self.state = CountdownState.RUNNING

    def pause(self) -> None:
        if self.state == CountdownState.RUNNING:
            self.state = CountdownState.PAUSED

    def resume(self) -> None:
        if self.state == CountdownState.PAUSED:
            self.state = CountdownState.RUNNING

    def stop(self) -> None:
        self.state = CountdownState.STOPPED

    def tick(self) -> bool:
        """Advance one second. Returns True exactly once, when time runs out."""
        if self.state != CountdownState.RUNNING:
            return False
        self.ticks += 1
        if not self.counts_down:
            return False
        self.remaining = max(0, self.remaining - 1)
        if self.remaining == 0:
            self.state = CountdownState.STOPPED
            return True
        return False

    @property
    def elapsed(self) -> int:
        if self.counts_down:
            return self.budget - self.remaining
        return self.ticks


def format_time(seconds: int) -> str:
    """Format seconds as M:SS, or H:MM:SS from an hour up."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


class WarningLatch:
    """One-shot time warnings keyed by threshold id.

    A threshold fires when remaining time enters the window
    ``(t - window, t]``; after that its latch stays set for the attempt.
    Thresholds at or above the budget never fire.
    """

    def __init__(self, budget: int, thresholds: Optional[dict] = None,
                 window: int = TIMER_CONFIG.window_seconds):
        self.budget = budget
        self.window = window
        thresholds = TIMER_CONFIG.thresholds if thresholds is None else thresholds
        self.thresholds = {}
        for key, seconds in thresholds.items():
            at = budget / 2 if seconds is None else seconds
            if at < budget:
                self.thresholds[key] = at
        self.fired = {key: False for key in self.thresholds}

    def check(self, remaining: int) -> list[str]:
        """Threshold ids that fire for this reading, in declaration order."""
        newly = []
        for key, at in self.thresholds.items():
            if self.fired[key]:
                continue
            if at - self.window < remaining <= at:
                self.fired[key] = True
                newly.append(key)
                logger.debug("Warning %s fired at %ss remaining", key, remaining)
        return newly


def pace_status(elapsed: int, budget: Optional[int], position: int, total: int,
                deadband: float = TIMER_CONFIG.pace_deadband) -> str:
    """Compare time used against questions covered: behind, on_track or ahead."""
    if not budget or not total:
        return "on_track"
    time_pct = elapsed / budget * 100
    progress_pct = position / total * 100
    if progress_pct < time_pct - deadband:
        return "behind"
    if progress_pct > time_pct + deadband:
        return "ahead"
    return "on_track"


def time_color(remaining: int, budget: Optional[int]) -> str:
    if not budget:
        return "green"
    fraction = remaining / budget
    if fraction <= TIMER_CONFIG.low_time_fraction:
        return "red"
    elif fraction <= TIMER_CONFIG.warn_time_fraction:
        return "yellow"
    return "green"
