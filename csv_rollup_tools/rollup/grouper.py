"""
grouper.py - Key Grouper stage of the rollup pipeline.

Turns a stream of "key<delimiter>value" lines into Groups, one per maximal
contiguous run of records sharing a key. The input must already be sorted
(or at least grouped) by key; this stage only ever remembers the current key,
so a key that reappears after a different key produces a second Group.

This stage must run on exactly one thread: a Group is only complete once the
next key arrives, which requires seeing the lines in order.
"""

from typing import Iterable, List, NamedTuple, Optional, Tuple

from .counters import RollupCounters
from .diagnostics import log_diagnostic
from .queues import ClosableQueue


class Group(NamedTuple):
    """Key plus the raw values of one contiguous run, in arrival order."""

    key: str
    values: List[str]


def split_record(line: str, delimiter: str = ",") -> Optional[Tuple[str, str]]:
    """
    Split a line into (key, value) at the first delimiter.

    The value keeps any further delimiter characters verbatim.

    Args:
        line: Trimmed input line
        delimiter: Single-character key/value delimiter

    Returns:
        (key, value), or None when the delimiter is missing or either side is empty

    Example:
        >>> split_record("host42,tcp/443,open")
        ('host42', 'tcp/443,open')
        >>> split_record("no-delimiter") is None
        True
    """
    key, found, value = line.partition(delimiter)
    if not found or not key or not value:
        return None
    return key, value


def group_lines(
    lines: Iterable[str],
    groups: ClosableQueue,
    counters: RollupCounters,
    delimiter: str = ",",
    quiet: bool = False,
) -> int:
    """
    Group contiguous same-key records and push each completed Group downstream.

    If grouping fails, the remaining lines are drained and discarded before
    the error is re-raised, so the producer of lines always finishes.

    Args:
        lines: Trimmed input lines (typically the lines ClosableQueue)
        groups: Queue receiving Groups; closed when this function returns
        counters: Counters updated with valid and invalid record counts
        delimiter: Single-character key/value delimiter
        quiet: Suppress invalid-line warnings

    Returns:
        int: Number of Groups emitted
    """
    emitted = 0
    current_key = None
    current_values: List[str] = []

    try:
        for line in lines:
            record = split_record(line, delimiter)
            if record is None:
                counters.add_invalid()
                log_diagnostic(f"[-] Invalid line: {line}", quiet)
                continue

            counters.add_read()
            key, value = record

            if current_key is None:
                current_key = key

            # Key changed: the previous run is complete
            if key != current_key:
                groups.put(Group(current_key, current_values))
                emitted += 1
                current_key = key
                current_values = []

            current_values.append(value)

        if current_key is not None and current_values:
            groups.put(Group(current_key, current_values))
            emitted += 1
    except Exception:
        # Keep the reader from blocking on a queue nobody consumes
        groups.close()
        for _ in lines:
            pass
        raise
    finally:
        groups.close()

    return emitted
