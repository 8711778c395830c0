"""Per-exam publish guard."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from exam_engine.core.exceptions import PublishInProgressError


class PublishLockRegistry:
    """Non-blocking, per-exam mutex for publish within this process.

    Cross-process serialization is done with a row lock on the exam; this
    registry makes a second publish in the same worker fail fast without a
    database round trip.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._held: set[int] = set()

    def acquire(self, exam_id: int) -> bool:
        with self._guard:
            if exam_id in self._held:
                return False
            self._held.add(exam_id)
            return True

    def release(self, exam_id: int) -> None:
        with self._guard:
            self._held.discard(exam_id)

    def is_held(self, exam_id: int) -> bool:
        with self._guard:
            return exam_id in self._held

    @contextmanager
    def hold(self, exam_id: int) -> Iterator[None]:
        """Hold the publish lock for an exam or raise PublishInProgressError."""
        if not self.acquire(exam_id):
            raise PublishInProgressError(exam_id)
        try:
            yield
        finally:
            self.release(exam_id)


publish_locks = PublishLockRegistry()
