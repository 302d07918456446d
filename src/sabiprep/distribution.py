"""Proportional distribution of a question count across topics.

Uses the largest-remainder method: every topic first gets the floor of its
proportional share, then the leftover units go to the topics with the
largest fractional remainders. A final reconciliation pass nudges the
largest allocations one unit at a time if the total still drifts from the
target.
"""
import logging
import math
from functools import cmp_to_key

from sabiprep.config import SELECTION_CONFIG
from sabiprep.errors import ConfigurationError

logger = logging.getLogger(__name__)


class _Share:
    __slots__ = ("topic_id", "capacity", "count", "remainder")

    def __init__(self, topic_id, capacity: int, count: int, remainder: float):
        self.topic_id = topic_id
        self.capacity = capacity
        self.count = count
        self.remainder = remainder

    @property
    def spare(self) -> int:
        return self.capacity - self.count


def _compare_shares(a: _Share, b: _Share) -> int:
    # Largest remainder first; near-equal remainders fall back to spare capacity.
    if abs(b.remainder - a.remainder) > SELECTION_CONFIG.remainder_tolerance:
        return -1 if a.remainder > b.remainder else 1
    return b.spare - a.spare


def allocate(topics, target_total: int) -> dict:
    """Allocate ``target_total`` questions across ``topics``.

    ``topics`` is any iterable of objects with ``id`` and
    ``available_questions``. Returns ``{topic_id: count}`` without
    zero-count topics. When the target exceeds the whole pool every topic
    comes back at full capacity and the total is short; callers that must
    not under-deliver use :func:`plan_distribution`.
    """
    if target_total < 0:
        raise ConfigurationError(f"Question count cannot be negative: {target_total}")

    available = [t for t in topics if t.available_questions > 0]
    if not available or target_total == 0:
        return {}

    pool = sum(t.available_questions for t in available)
    shares = []
    for topic in available:
        exact = target_total * topic.available_questions / pool
        floor_count = math.floor(exact)
        shares.append(_Share(
            topic.id,
            topic.available_questions,
            min(floor_count, topic.available_questions),
            exact - floor_count,
        ))

    deficit = target_total - sum(s.count for s in shares)
    if deficit > 0:
        for share in sorted(shares, key=cmp_to_key(_compare_shares)):
            if deficit == 0:
                break
            if share.spare > 0:
                share.count += 1
                deficit -= 1

    allocation = {s.topic_id: s.count for s in shares if s.count > 0}
    capacity = {s.topic_id: s.capacity for s in shares}
    return _reconcile(allocation, capacity, target_total)


def _reconcile(allocation: dict, capacity: dict, target_total: int) -> dict:
    """Walk the largest allocations until the total matches, within capacity."""
    diff = target_total - sum(allocation.values())
    while diff:
        changed = False
        for topic_id in sorted(allocation, key=allocation.get, reverse=True):
            if diff > 0 and allocation[topic_id] < capacity[topic_id]:
                allocation[topic_id] += 1
                diff -= 1
                changed = True
            elif diff < 0 and allocation[topic_id] > 0:
                allocation[topic_id] -= 1
                diff += 1
                changed = True
            if diff == 0:
                break
        if not changed:
            break
    return {topic_id: count for topic_id, count in allocation.items() if count > 0}


def allocation_total(allocation: dict) -> int:
    return sum(allocation.values())


def allocation_percentages(allocation: dict, target_total: int) -> dict:
    """Display percentages per topic. These are not forced to add up to 100."""
    if target_total <= 0:
        return {topic_id: 0 for topic_id in allocation}
    return {
        topic_id: int(math.floor(100 * count / target_total + 0.5))
        for topic_id, count in allocation.items()
    }


def plan_distribution(topics, target_total: int) -> dict:
    """Allocate, refusing configurations the question pool cannot satisfy."""
    if target_total <= 0:
        raise ConfigurationError(f"Choose at least one question, not {target_total}")
    topics = list(topics)
    pool = sum(t.available_questions for t in topics if t.available_questions > 0)
    if pool == 0:
        raise ConfigurationError("No questions are available for the selected topics")
    allocation = allocate(topics, target_total)
    total = allocation_total(allocation)
    if total < target_total:
        logger.warning("Requested %d questions but only %d are available", target_total, total)
        raise ConfigurationError(
            f"Requested {target_total} questions but only {total} are available"
        )
    return allocation
