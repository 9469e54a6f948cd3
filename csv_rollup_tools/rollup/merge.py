"""
merge.py - Merge-Dedupe Pool stage of the rollup pipeline.

A fixed number of workers drain one shared queue of Groups. Each worker
turns a Group into a MergedRecord by splitting every value on the sentinel
and collecting the pieces in a set, so re-merging already merged output
yields the same value set.

Handing a Group to any single worker is safe: the grouper never reopens a
key it has closed, so no two workers ever hold values for the same run.

Pool completion is explicit. A countdown tracks live workers and the last
one to exit closes the records queue, which lets the writer finish.
"""

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import FrozenSet, Iterable, List, NamedTuple, Optional

from .counters import RollupCounters
from .grouper import Group
from .queues import ClosableQueue

DEFAULT_SENTINEL = "\x00"


class MergedRecord(NamedTuple):
    """Key plus its deduplicated, unordered value set."""

    key: str
    values: FrozenSet[str]

    def to_line(self, delimiter: str = ",", sentinel: str = DEFAULT_SENTINEL) -> str:
        """Serialize as key, delimiter, sentinel-joined values and a newline."""
        return f"{self.key}{delimiter}{sentinel.join(self.values)}\n"


def merge_values(values: Iterable[str], sentinel: str = DEFAULT_SENTINEL) -> FrozenSet[str]:
    """
    Deduplicate values, splitting each one on the sentinel first.

    Empty sub-values are kept and deduplicated like any other value.

    Example:
        >>> sorted(merge_values(["1\\x002", "2", "1"]))
        ['1', '2']
    """
    unique = set()
    for value in values:
        unique.update(value.split(sentinel))
    return frozenset(unique)


def merge_group(group: Group, sentinel: str = DEFAULT_SENTINEL) -> MergedRecord:
    return MergedRecord(group.key, merge_values(group.values, sentinel))


def default_workers() -> int:
    return os.cpu_count() or 1


class MergePool:
    """
    Fixed-size pool of merge workers draining one shared Group queue.

    Args:
        groups: Queue of Groups, closed by the grouper
        records: Queue of MergedRecords; closed by the last worker to exit
        counters: Counters updated with one write per merged Group
        workers: Number of worker threads (default: CPU count)
        sentinel: Value separator used for splitting and joining

    Example:
        >>> pool = MergePool(groups, records, counters, workers=4)
        >>> pool.start()
        >>> ...
        >>> merged = pool.join()
    """

    def __init__(
        self,
        groups: ClosableQueue,
        records: ClosableQueue,
        counters: RollupCounters,
        workers: Optional[int] = None,
        sentinel: str = DEFAULT_SENTINEL,
    ):
        if workers is None:
            workers = default_workers()
        if workers <= 0:
            raise ValueError(f"workers must be positive, got {workers}")
        self.groups = groups
        self.records = records
        self.counters = counters
        self.workers = workers
        self.sentinel = sentinel
        self._executor: Optional[ThreadPoolExecutor] = None
        self._futures: List = []
        self._running = 0
        self._lock = threading.Lock()

    @property
    def running_workers(self) -> int:
        with self._lock:
            return self._running

    def start(self) -> None:
        if self._executor is not None:
            raise RuntimeError("MergePool already started")
        self._running = self.workers
        self._executor = ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="rollup-merge"
        )
        self._futures = [self._executor.submit(self._worker) for _ in range(self.workers)]

    def join(self) -> int:
        """
        Wait for every worker to exit.

        Returns:
            int: Total number of Groups merged

        Raises:
            RuntimeError: If the pool was never started
            Exception: The first exception raised by a worker, if any
        """
        if self._executor is None:
            raise RuntimeError("MergePool not started")
        try:
            return sum(future.result() for future in self._futures)
        finally:
            self._executor.shutdown(wait=True)

    def _worker(self) -> int:
        merged = 0
        try:
            for group in self.groups:
                record = merge_group(group, self.sentinel)
                self.counters.add_written()
                self.records.put(record)
                merged += 1
        finally:
            self._worker_done()
        return merged

    def _worker_done(self) -> None:
        with self._lock:
            self._running -= 1
            last = self._running == 0
        if last:
            self.records.close()
