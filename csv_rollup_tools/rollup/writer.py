"""
writer.py - Writer stage of the rollup pipeline.

Single consumer of the MergedRecord queue. Records are written in the order
they leave the queue, which depends on how the merge workers race and has no
relation to the input key order.
"""

from typing import BinaryIO

from .merge import DEFAULT_SENTINEL
from .queues import ClosableQueue


class OutputWriteError(OSError):
    """Writing merged records to the output stream failed."""


def write_records(
    records: ClosableQueue,
    output: BinaryIO,
    delimiter: str = ",",
    sentinel: str = DEFAULT_SENTINEL,
    encoding: str = "utf-8",
) -> int:
    """
    Write every MergedRecord from the queue until it is closed and drained.

    If the output fails (e.g. a closed pipe), writing stops but the queue is
    still drained so the merge workers never block; the failure is raised
    once the queue is closed.

    Args:
        records: Queue of MergedRecords, closed when the merge pool finishes
        output: Binary output stream
        delimiter: Key/value delimiter
        sentinel: Value separator
        encoding: Output text encoding

    Returns:
        int: Number of records written

    Raises:
        OutputWriteError: If writing to or flushing the output failed
    """
    written = 0
    error = None

    for record in records:
        if error is not None:
            continue
        try:
            output.write(
                record.to_line(delimiter, sentinel).encode(encoding, errors="surrogateescape")
            )
            written += 1
        except OSError as e:
            error = e

    if error is None:
        try:
            output.flush()
        except OSError as e:
            error = e

    if error is not None:
        raise OutputWriteError(str(error)) from error
    return written
