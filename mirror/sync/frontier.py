"""
Frontier of containers pending or in flight during one sync run.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter, deque

from mirror.sync.containers import Container

logger = logging.getLogger(__name__)


class Frontier:
    """
    Pending and visited container sets for a single run.

    Every identifier is handed out for expansion at most once: enqueueing an
    identifier that is pending, in flight or already expanded is a no-op.
    All state changes happen under one lock, so workers may enqueue while the
    engine takes work.
    """

    def __init__(self, concurrency_limit: int = 1):
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        self.concurrency_limit = concurrency_limit
        self._lock = threading.Lock()
        self._pending: deque[Container] = deque()
        self._pending_ids: set[str] = set()
        self._in_flight: set[str] = set()
        self._visited: set[str] = set()
        self._closed = False
        # number of times each id was handed out; stays at 1 per id
        self.visits: Counter[str] = Counter()

    def enqueue(self, container: Container) -> bool:
        """
        Add a container to the pending set.

        Returns:
            True if the container was added, False if already known or closed
        """
        with self._lock:
            if self._closed:
                return False
            if container.id in self._visited or container.id in self._pending_ids:
                logger.debug(f"Skipping known container {container.kind} {container.id}")
                return False
            self._pending.append(container)
            self._pending_ids.add(container.id)
            return True

    def take(self) -> Container | None:
        """
        Hand out the next pending container, if a concurrency slot is free.

        The container moves to the in-flight and visited sets.
        """
        with self._lock:
            if self._closed or not self._pending:
                return None
            if len(self._in_flight) >= self.concurrency_limit:
                return None

            container = self._pending.popleft()
            self._pending_ids.discard(container.id)
            self._in_flight.add(container.id)
            self._visited.add(container.id)
            self.visits[container.id] += 1
            return container

    def complete(self, container_id: str) -> None:
        with self._lock:
            self._in_flight.discard(container_id)

    def close(self) -> int:
        """
        Stop accepting and handing out work; drop everything still pending.

        Returns:
            Number of pending containers dropped
        """
        with self._lock:
            self._closed = True
            dropped = len(self._pending)
            self._pending.clear()
            self._pending_ids.clear()
            return dropped

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def in_flight_count(self) -> int:
        with self._lock:
            return len(self._in_flight)

    @property
    def visited(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._visited)

    def is_done(self) -> bool:
        """True once nothing is pending and nothing is in flight."""
        with self._lock:
            return not self._pending and not self._in_flight
