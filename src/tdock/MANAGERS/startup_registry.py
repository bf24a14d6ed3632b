"""
Registry of container start times.
"""
import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterator, Optional


class ReadWriteLock:
    """
    Lock allowing many concurrent readers or a single writer. Waiting
    writers hold back new readers so registrations are not starved.

    Both sides release in ``finally``, so an exception raised while the lock
    is held leaves it usable.
    """
    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writing or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class StartupRegistry:
    """
    Records when each container was created, as ``time.monotonic()`` values.

    Entries are never removed: ids are unique for the life of the process.
    """
    def __init__(self):
        self._lock = ReadWriteLock()
        self._started: Dict[str, float] = {}

    def register(self, container_id: str, started_at: Optional[float] = None) -> float:
        """
        Records the start time of a container.

        :param container_id: Container id.
        :param started_at: Monotonic timestamp, defaults to now.
        :return: The recorded timestamp.
        """
        if started_at is None:
            started_at = time.monotonic()
        with self._lock.write():
            self._started[container_id] = started_at
        return started_at

    def started_at(self, container_id: str) -> Optional[float]:
        with self._lock.read():
            return self._started.get(container_id)

    def elapsed(self, container_id: str) -> Optional[float]:
        """Seconds since the container was registered, or None if unknown."""
        started = self.started_at(container_id)
        if started is None:
            return None
        return time.monotonic() - started

    def __contains__(self, container_id: str) -> bool:
        with self._lock.read():
            return container_id in self._started

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._started)
