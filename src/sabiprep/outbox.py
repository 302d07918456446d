"""Queue of persistence writes that must not block the exam.

Writes are attempted as soon as they are submitted. A failed write is
logged and kept in order for a later ``flush()``; after ``max_attempts``
it moves to ``failed`` where callers can still see it.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from sabiprep.config import SESSION_CONFIG

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class PendingWrite:
    label: str
    func: Callable
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    attempts: int = 0
    last_error: Optional[Exception] = None
    done: bool = False


class Outbox:
    def __init__(self, max_attempts: int = SESSION_CONFIG.max_write_attempts):
        self.max_attempts = max_attempts
        self.queue: list[PendingWrite] = []
        self.failed: list[PendingWrite] = []
        self.delivered = 0

    @property
    def pending(self) -> int:
        return len(self.queue)

    def submit(self, label: str, func: Callable, *args, **kwargs) -> bool:
        """Try a write now; queue it on failure. Returns True if delivered."""
        write = PendingWrite(label, func, args, kwargs)
        # Preserve ordering behind writes that are already waiting
        if self.queue:
            self.queue.append(write)
            self.flush()
            return write.done
        if self._attempt(write):
            return True
        self._requeue(write)
        return False

    def flush(self) -> int:
        """Retry queued writes in order; stops at the first one that fails again."""
        sent = 0
        while self.queue:
            write = self.queue[0]
            if not self._attempt(write):
                if write.attempts >= self.max_attempts:
                    self.queue.pop(0)
                    self.failed.append(write)
                    logger.error("Giving up on %s after %d attempts: %s",
                                 write.label, write.attempts, write.last_error)
                    continue
                break
            self.queue.pop(0)
            sent += 1
        return sent

    def _attempt(self, write: PendingWrite) -> bool:
        write.attempts += 1
        try:
            write.func(*write.args, **write.kwargs)
        except Exception as e:
            write.last_error = e
            logger.warning("Write %s failed (attempt %d): %s", write.label, write.attempts, e)
            return False
        write.done = True
        self.delivered += 1
        return True

    def _requeue(self, write: PendingWrite) -> None:
        if write.attempts >= self.max_attempts:
            self.failed.append(write)
        else:
            self.queue.append(write)
