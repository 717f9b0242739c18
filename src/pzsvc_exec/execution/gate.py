"""Bounded gate limiting how many pipelines run at once."""

from collections.abc import Iterator
from contextlib import contextmanager
from threading import BoundedSemaphore


class ConcurrencyGate:
    """Counting gate with a fixed capacity; capacity <= 0 means unbounded."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self._semaphore = BoundedSemaphore(capacity) if capacity > 0 else None

    @property
    def bounded(self) -> bool:
        return self._semaphore is not None

    @contextmanager
    def slot(self) -> Iterator[None]:
        """Hold one slot for the duration of the block."""
        if self._semaphore is None:
            yield
            return

        self._semaphore.acquire()
        try:
            yield
        finally:
            self._semaphore.release()
