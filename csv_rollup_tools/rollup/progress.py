"""
progress.py - Periodic throughput reporter for a rollup run.

Observes the shared RollupCounters on a timer and prints one status line to
stderr per interval:

    [*] [csv-rollup] Read 120000 and wrote 4100 records in 3 seconds (40000/s in, 1366/s out)

The clock starts with the first record, so time spent waiting for input
(e.g. an upstream sort) is not counted against throughput.
"""

import threading
import time
from typing import Optional

from .counters import RollupCounters
from .diagnostics import log_diagnostic


class ProgressMonitor:
    """
    Background thread reporting read/write throughput to stderr.

    Args:
        counters: Counters to observe
        interval: Seconds between reports
        name: Tool name shown in each report
        quiet: Suppress all output
    """

    def __init__(
        self,
        counters: RollupCounters,
        interval: float = 1.0,
        name: str = "csv-rollup",
        quiet: bool = False,
    ):
        self.counters = counters
        self.interval = interval
        self.name = name
        self.quiet = quiet
        self.start_time = time.monotonic()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def report(self, now: Optional[float] = None) -> Optional[str]:
        """
        Build the status line for the current counters.

        Returns None (and restarts the clock) while nothing has been read
        yet, and None during the first second of activity.
        """
        if now is None:
            now = time.monotonic()
        records_read, records_written = self.counters.snapshot()

        if records_read == 0 and records_written == 0:
            self.start_time = now
            return None

        elapsed = now - self.start_time
        if elapsed <= 1.0:
            return None

        return (
            f"[*] [{self.name}] Read {records_read} and wrote {records_written} records "
            f"in {int(elapsed)} seconds "
            f"({int(records_read / elapsed)}/s in, {int(records_written / elapsed)}/s out)"
        )

    def start(self) -> None:
        """Start the reporting thread. An interval of 0 or less disables reporting."""
        self.start_time = time.monotonic()
        if self.interval <= 0:
            return
        self._thread = threading.Thread(target=self._run, name="rollup-progress", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop reporting and print the completion notice."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        log_diagnostic("[*] Complete", self.quiet)

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            line = self.report()
            if line:
                log_diagnostic(line, self.quiet)
