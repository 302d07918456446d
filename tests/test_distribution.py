"""Tests for the largest-remainder question allocator."""
import random

import pytest

from sabiprep.distribution import (
    allocate, allocation_percentages, allocation_total, plan_distribution,
)
from sabiprep.errors import ConfigurationError
from sabiprep.models import Topic


def topics(*counts, ids=None):
    ids = ids or [f"t{i}" for i in range(len(counts))]
    return [Topic(id=i, subject_id=1, name=str(i), available_questions=c) for i, c in zip(ids, counts)]


def test_exact_proportional_split():
    result = allocate(topics(40, 10, ids=["algebra", "geometry"]), 20)
    assert result == {"algebra": 16, "geometry": 4}


def test_remainder_goes_to_tied_topic():
    result = allocate(topics(7, 7, 6, ids=["a", "b", "c"]), 10)
    assert sum(result.values()) == 10
    assert result["c"] == 3
    assert sorted([result["a"], result["b"]]) == [3, 4]


def test_unequal_availability_is_proportional():
    result = allocate(topics(90, 10, ids=["big", "small"]), 20)
    assert abs(result["big"] - 18) <= 1
    assert abs(result["small"] - 2) <= 1
    assert result["big"] + result["small"] == 20


def test_largest_remainder_wins():
    # shares 1.5, 3.75, 4.75 -> floors 1, 3, 4 -> two spare units for the 0.75 remainders
    result = allocate(topics(6, 15, 19, ids=["a", "b", "c"]), 10)
    assert result["a"] == 1
    assert sum(result.values()) == 10
    assert result["b"] + result["c"] == 9


def test_remainder_tie_broken_by_spare_capacity():
    # shares 0.5 and 1.5; equal remainders, b has more room left after flooring
    result = allocate(topics(5, 15, ids=["a", "b"]), 2)
    assert result == {"b": 2}


def test_target_zero_is_empty():
    assert allocate(topics(5, 5), 0) == {}


def test_target_equal_to_pool_takes_everything():
    result = allocate(topics(3, 5, 2, ids=["a", "b", "c"]), 10)
    assert result == {"a": 3, "b": 5, "c": 2}


def test_zero_availability_topics_are_dropped():
    result = allocate(topics(0, 10, ids=["empty", "full"]), 5)
    assert result == {"full": 5}


def test_all_empty_topics_give_empty_allocation():
    assert allocate(topics(0, 0), 5) == {}
    assert allocate([], 5) == {}


def test_zero_count_topics_are_omitted():
    result = allocate(topics(1, 99, ids=["tiny", "huge"]), 10)
    assert "tiny" not in result
    assert result == {"huge": 10}


def test_over_request_returns_full_capacity():
    result = allocate(topics(3, 4, ids=["a", "b"]), 20)
    assert result == {"a": 3, "b": 4}


def test_negative_target_rejected():
    with pytest.raises(ConfigurationError):
        allocate(topics(5), -1)


def test_sum_and_capacity_invariants_randomised():
    rng = random.Random(42)
    for _ in range(300):
        counts = [rng.randint(0, 40) for _ in range(rng.randint(1, 8))]
        pool = sum(counts)
        target = rng.randint(0, pool) if pool else 0
        ts = topics(*counts)
        result = allocate(ts, target)
        assert allocation_total(result) == target
        for t in ts:
            assert 0 <= result.get(t.id, 0) <= t.available_questions


def test_percentages_are_rounded_per_topic():
    pct = allocation_percentages({"a": 1, "b": 1, "c": 1}, 3)
    assert pct == {"a": 33, "b": 33, "c": 33}


def test_percentages_round_half_up():
    assert allocation_percentages({"a": 1, "b": 7}, 8) == {"a": 13, "b": 88}


def test_plan_distribution_rejects_over_request():
    with pytest.raises(ConfigurationError):
        plan_distribution(topics(3, 4), 20)


def test_plan_distribution_rejects_empty_pool():
    with pytest.raises(ConfigurationError):
        plan_distribution(topics(0, 0), 5)


def test_plan_distribution_ok():
    assert plan_distribution(topics(40, 10, ids=["x", "y"]), 20) == {"x": 16, "y": 4}


def test_plan_distribution_rejects_zero_questions():
    with pytest.raises(ConfigurationError):
        plan_distribution(topics(40, 10), 0)
    with pytest.raises(ConfigurationError):
        plan_distribution(topics(40, 10), -3)
