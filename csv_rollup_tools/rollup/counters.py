"""Throughput counters shared by the rollup pipeline stages and the progress monitor."""

import threading
from typing import Tuple


class RollupCounters:
    """
    Records read, records written and invalid lines seen by one rollup run.

    A single instance is handed to each stage that updates it; the progress
    monitor only reads snapshots.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._records_read = 0
        self._records_written = 0
        self._invalid_lines = 0

    def add_read(self, n: int = 1) -> None:
        with self._lock:
            self._records_read += n

    def add_written(self, n: int = 1) -> None:
        with self._lock:
            self._records_written += n

    def add_invalid(self, n: int = 1) -> None:
        with self._lock:
            self._invalid_lines += n

    @property
    def records_read(self) -> int:
        with self._lock:
            return self._records_read

    @property
    def records_written(self) -> int:
        with self._lock:
            return self._records_written

    @property
    def invalid_lines(self) -> int:
        with self._lock:
            return self._invalid_lines

    def snapshot(self) -> Tuple[int, int]:
        """Return (records_read, records_written) read under one lock."""
        with self._lock:
            return self._records_read, self._records_written
