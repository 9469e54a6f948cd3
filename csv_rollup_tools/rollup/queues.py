"""
queues.py - Closable bounded queue connecting pipeline stages.

Each stage of the rollup pipeline talks to the next one through a
ClosableQueue. The queue is bounded, so a fast producer blocks until the
consumer catches up (backpressure). Completion is signalled by closing the
queue: consumers keep draining what is already queued and stop once the
queue is both closed and empty.

Every queue has exactly one closer, the stage that produces into it:

    lines queue    -> closed by the Line Reader
    groups queue   -> closed by the Key Grouper
    records queue  -> closed by the last Merge-Dedupe Pool worker to exit
"""

import threading
from collections import deque


class QueueClosed(Exception):
    """Raised by put() on a closed queue, or by get() on a closed and drained one."""


class ClosableQueue:
    """
    Bounded FIFO queue with an explicit, consumer-visible closed state.

    Safe for any number of concurrent producers and consumers.

    Example:
        >>> q = ClosableQueue(maxsize=2)
        >>> q.put("a")
        >>> q.close()
        >>> list(q)
        ['a']
    """

    def __init__(self, maxsize: int = 1000):
        if maxsize <= 0:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        self.maxsize = maxsize
        self._items = deque()
        self._closed = False
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)

    def put(self, item) -> None:
        """
        Append item, blocking while the queue is full.

        Raises:
            QueueClosed: If the queue is (or becomes) closed
        """
        with self._not_full:
            while len(self._items) >= self.maxsize and not self._closed:
                self._not_full.wait()
            if self._closed:
                raise QueueClosed("put() on a closed queue")
            self._items.append(item)
            self._not_empty.notify()

    def get(self):
        """
        Remove and return the oldest item, blocking while the queue is empty.

        Raises:
            QueueClosed: Once the queue is closed and every item was consumed
        """
        with self._not_empty:
            while not self._items and not self._closed:
                self._not_empty.wait()
            if not self._items:
                raise QueueClosed("get() on a closed and drained queue")
            item = self._items.popleft()
            self._not_full.notify()
            return item

    def close(self) -> None:
        """Mark the queue closed and wake every blocked producer and consumer."""
        with self._lock:
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def __len__(self):
        with self._lock:
            return len(self._items)

    def __iter__(self):
        while True:
            try:
                yield self.get()
            except QueueClosed:
                return
