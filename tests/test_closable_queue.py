#!/usr/bin/env python3
"""
Test suite for the closable bounded queue connecting rollup pipeline stages.

Test Coverage:
--------------
1. FIFO behavior and iteration until closed
2. Backpressure: producers block while the queue is full
3. Closing wakes blocked producers and consumers
4. Many concurrent consumers receive every item exactly once

RUNNING THE TESTS
=================
    pytest tests/test_closable_queue.py -v
"""

import threading
import time
import unittest

from csv_rollup_tools.rollup.queues import ClosableQueue, QueueClosed


class TestClosableQueueBasics(unittest.TestCase):
    """Single-threaded queue behavior."""

    def test_fifo_order(self):
        """Items come out in the order they went in."""
        q = ClosableQueue(maxsize=10)
        for item in ["a", "b", "c"]:
            q.put(item)
        q.close()

        self.assertEqual(list(q), ["a", "b", "c"])

    def test_iteration_ends_on_close(self):
        """Iterating a closed empty queue yields nothing."""
        q = ClosableQueue(maxsize=1)
        q.close()

        self.assertEqual(list(q), [])

    def test_get_drains_before_raising(self):
        """Closing does not discard queued items."""
        q = ClosableQueue(maxsize=3)
        q.put(1)
        q.put(2)
        q.close()

        self.assertEqual(q.get(), 1)
        self.assertEqual(q.get(), 2)
        with self.assertRaises(QueueClosed):
            q.get()

    def test_put_after_close_raises(self):
        """A closed queue accepts no more items."""
        q = ClosableQueue(maxsize=3)
        q.close()

        with self.assertRaises(QueueClosed):
            q.put("late")

    def test_close_is_idempotent(self):
        """Closing twice is harmless."""
        q = ClosableQueue(maxsize=3)
        q.close()
        q.close()

        self.assertTrue(q.closed)

    def test_len_and_closed_state(self):
        """len() reports queued items; closed starts False."""
        q = ClosableQueue(maxsize=3)
        self.assertFalse(q.closed)
        q.put("x")
        q.put("y")

        self.assertEqual(len(q), 2)

    def test_invalid_maxsize(self):
        """A bounded queue needs a positive capacity."""
        with self.assertRaises(ValueError):
            ClosableQueue(maxsize=0)


class TestClosableQueueConcurrency(unittest.TestCase):
    """Blocking behavior across threads."""

    def test_producer_blocks_when_full(self):
        """put() on a full queue waits until a consumer makes room."""
        q = ClosableQueue(maxsize=2)
        done = threading.Event()

        def producer():
            for i in range(3):
                q.put(i)
            done.set()

        t = threading.Thread(target=producer)
        t.start()
        time.sleep(0.1)

        self.assertFalse(done.is_set())
        self.assertEqual(len(q), 2)

        self.assertEqual(q.get(), 0)
        t.join(timeout=5)

        self.assertTrue(done.is_set())
        self.assertEqual([q.get(), q.get()], [1, 2])

    def test_close_wakes_blocked_consumer(self):
        """A consumer waiting on an empty queue stops when it is closed."""
        q = ClosableQueue(maxsize=2)
        outcome = []

        def consumer():
            try:
                q.get()
                outcome.append("item")
            except QueueClosed:
                outcome.append("closed")

        t = threading.Thread(target=consumer)
        t.start()
        time.sleep(0.1)
        q.close()
        t.join(timeout=5)

        self.assertFalse(t.is_alive())
        self.assertEqual(outcome, ["closed"])

    def test_close_wakes_blocked_producer(self):
        """A producer waiting on a full queue gets QueueClosed when it is closed."""
        q = ClosableQueue(maxsize=1)
        q.put("first")
        outcome = []

        def producer():
            try:
                q.put("second")
                outcome.append("put")
            except QueueClosed:
                outcome.append("closed")

        t = threading.Thread(target=producer)
        t.start()
        time.sleep(0.1)
        q.close()
        t.join(timeout=5)

        self.assertEqual(outcome, ["closed"])
        self.assertEqual(list(q), ["first"])

    def test_many_consumers_each_item_once(self):
        """Items are split between consumers with no loss and no duplicates."""
        q = ClosableQueue(maxsize=5)
        received = []
        lock = threading.Lock()

        def consumer():
            for item in q:
                with lock:
                    received.append(item)

        consumers = [threading.Thread(target=consumer) for _ in range(4)]
        for t in consumers:
            t.start()

        for i in range(500):
            q.put(i)
        q.close()

        for t in consumers:
            t.join(timeout=5)

        self.assertEqual(sorted(received), list(range(500)))


if __name__ == "__main__":
    unittest.main()
