"""Tests for the countdown, warning latch and pace helpers."""
import pytest

from sabiprep.errors import InvalidTransition
from sabiprep.timer import (
    Countdown, CountdownState, WarningLatch, format_time, pace_status, time_color,
)


def running(budget):
    c = Countdown()
    c.prime(budget)
    c.start()
    return c


def test_start_requires_prime():
    c = Countdown()
    with pytest.raises(InvalidTransition):
        c.start()


def test_prime_sets_exact_budget():
    c = Countdown()
    c.prime(1200)
    assert c.remaining == 1200
    assert c.state == CountdownState.PRIMED


def test_prime_rejects_negative_budget():
    with pytest.raises(ValueError):
        Countdown().prime(-5)


def test_tick_decrements_by_one():
    c = running(5)
    values = []
    for _ in range(4):
        c.tick()
        values.append(c.remaining)
    assert values == [4, 3, 2, 1]


def test_expiry_reported_exactly_once():
    c = running(3)
    expiries = [c.tick() for _ in range(10)]
    assert expiries.count(True) == 1
    assert expiries[2] is True
    assert c.remaining == 0
    assert c.state == CountdownState.STOPPED


def test_no_ticks_while_primed_or_paused():
    c = Countdown()
    c.prime(10)
    c.tick()
    assert c.remaining == 10
    c.start()
    c.pause()
    c.tick()
    assert c.remaining == 10
    c.resume()
    c.tick()
    assert c.remaining == 9


def test_elapsed_is_budget_minus_remaining():
    c = running(60)
    for _ in range(15):
        c.tick()
    assert c.elapsed == 60 - c.remaining


def test_stopwatch_counts_up():
    c = running(None)
    for _ in range(7):
        assert c.tick() is False
    assert c.elapsed == 7


def test_format_time():
    assert format_time(0) == "0:00"
    assert format_time(65) == "1:05"
    assert format_time(3600) == "1:00:00"
    assert format_time(3725) == "1:02:05"
    assert format_time(-3) == "0:00"


def test_latch_fires_each_threshold_once():
    latch = WarningLatch(1200)
    fired = []
    for remaining in range(1199, -1, -1):
        fired.extend(latch.check(remaining))
    assert fired == ["half_time", "ten_minutes", "five_minutes", "one_minute", "thirty_seconds"]


def test_latch_idempotent_inside_window():
    latch = WarningLatch(1200)
    assert latch.check(300) == ["five_minutes"]
    for remaining in (299, 280, 250, 241):
        assert latch.check(remaining) == []


def test_latch_window_catches_skipped_second():
    latch = WarningLatch(900)
    # tick landed past the exact 5 minute mark
    assert latch.check(297) == ["five_minutes"]


def test_latch_ignores_reading_outside_window():
    latch = WarningLatch(900)
    assert "five_minutes" not in latch.check(200)


def test_latch_skips_thresholds_not_below_budget():
    latch = WarningLatch(600)
    assert "ten_minutes" not in latch.thresholds
    assert latch.check(600) == []
    assert latch.check(300) == ["half_time", "five_minutes"]


def test_latch_half_time_is_budget_relative():
    latch = WarningLatch(100, thresholds={"half_time": None})
    assert latch.check(51) == []
    assert latch.check(50) == ["half_time"]


def test_pace_status():
    assert pace_status(elapsed=300, budget=600, position=5, total=10) == "on_track"
    assert pace_status(elapsed=300, budget=600, position=2, total=10) == "behind"
    assert pace_status(elapsed=300, budget=600, position=8, total=10) == "ahead"
    # inside the deadband
    assert pace_status(elapsed=300, budget=600, position=4, total=10) == "on_track"
    assert pace_status(elapsed=300, budget=600, position=6, total=10) == "on_track"


def test_pace_without_budget():
    assert pace_status(elapsed=300, budget=None, position=0, total=10) == "on_track"


def test_time_color():
    assert time_color(600, 1200) == "green"
    assert time_color(300, 1200) == "yellow"
    assert time_color(100, 1200) == "red"
    assert time_color(5, None) == "green"
