"""A shared, flow-controlled pool of packet buffers."""

from __future__ import annotations

import collections
import queue
import threading


class Pool:
    """A fixed number of buffers of a fixed size shared between clients."""

    def __init__(self, size: int, count: int) -> None:
        if count < 0:
            raise ValueError(f"buffer count must not be negative, got {count}")
        self.size = size
        self.count = count
        self.lock = threading.Lock()
        self._free: queue.Queue[bytearray] = queue.Queue()
        for _ in range(count):
            self._free.put(bytearray(size))

    @property
    def available(self) -> int:
        """Number of buffers currently free."""
        return self._free.qsize()

    def _acquire(self) -> bytearray:
        return self._free.get()

    def _release(self, b: bytearray) -> None:
        self._free.put(b)


class PoolClient:
    """Takes buffers from a pool and returns them in the order they were sent."""

    def __init__(self, pool: Pool) -> None:
        self.pool = pool
        self._sent: collections.deque[bytearray] = collections.deque()

    @property
    def in_flight(self) -> int:
        """Number of buffers taken and not yet returned."""
        return len(self._sent)

    def get(self) -> bytearray:
        """Take an empty buffer from the pool, waiting until one is free."""
        b = self.pool._acquire()
        b.clear()
        self._sent.append(b)
        return b

    def put(self) -> None:
        """Return the oldest sent buffer to the pool, if any."""
        try:
            b = self._sent.popleft()
        except IndexError:
            return
        self.pool._release(b)

    def put_all(self) -> None:
        """Return every sent buffer to the pool."""
        while self._sent:
            self.put()