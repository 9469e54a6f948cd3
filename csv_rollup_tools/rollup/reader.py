"""
reader.py - Line Reader stage of the rollup pipeline.

Segments a byte stream into newline-delimited lines and pushes them onto the
lines queue. Reads are bounded by buffer_size; a line longer than that is
accumulated into a growable buffer until its terminator arrives, so line
length is limited only by memory.

Lines are decoded with 'surrogateescape' so that bytes which are not valid
UTF-8 pass through the pipeline and are re-encoded unchanged by the writer.
"""

import gzip
import sys
import zlib
from typing import BinaryIO, Iterator

from .queues import ClosableQueue

DEFAULT_BUFFER_SIZE = 50000

# Failures that end reading early without aborting the run. A damaged gzip
# body surfaces as zlib.error, a truncated one as EOFError.
READ_ERRORS = (OSError, EOFError, zlib.error)

# Unicode White_Space, without the ASCII separators \x1c-\x1f that str.strip() also removes
TRIM_CHARS = (
    " \t\n\v\f\r\x85\xa0\u1680"
    "\u2000\u2001\u2002\u2003\u2004\u2005\u2006\u2007\u2008\u2009\u200a"
    "\u2028\u2029\u202f\u205f\u3000"
)


def open_input_path(path: str) -> BinaryIO:
    """Open input for binary reading. Supports '-' (stdin) and .gz files."""
    if path == "-":
        return sys.stdin.buffer
    if path.endswith(".gz"):
        return gzip.open(path, "rb")
    return open(path, "rb")


def open_output_path(path: str) -> BinaryIO:
    """Open output for binary writing. Supports '-' (stdout) and .gz files."""
    if path == "-":
        return sys.stdout.buffer
    if path.endswith(".gz"):
        return gzip.open(path, "wb")
    return open(path, "wb", buffering=1024 * 1024)


def iter_raw_lines(stream: BinaryIO, buffer_size: int = DEFAULT_BUFFER_SIZE) -> Iterator[bytes]:
    """
    Yield raw lines (terminator included when present) from a binary stream.

    Each read returns at most buffer_size bytes. Pieces of a line that does
    not fit are collected in a bytearray and yielded as one line once the
    newline (or end of stream) is reached.

    Args:
        stream: Binary stream supporting readline(limit)
        buffer_size: Maximum bytes per read call

    Yields:
        bytes: One line per item; the last line may lack a trailing newline
    """
    pending = bytearray()
    while True:
        chunk = stream.readline(buffer_size)
        if not chunk:
            break
        if not chunk.endswith(b"\n"):
            # Buffer full (or final unterminated line): keep accumulating
            pending += chunk
            continue
        if pending:
            pending += chunk
            chunk = bytes(pending)
            pending.clear()
        yield chunk

    if pending:
        yield bytes(pending)


def read_lines(
    stream: BinaryIO,
    lines: ClosableQueue,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    encoding: str = "utf-8",
) -> int:
    """
    Push every non-empty trimmed line of stream onto the lines queue.

    The queue is closed when the stream is exhausted or a read fails, so the
    downstream stages always drain and finish. A read failure is re-raised
    after the queue is closed.

    Args:
        stream: Binary input stream
        lines: Queue receiving decoded, trimmed lines
        buffer_size: Maximum bytes per read call
        encoding: Input text encoding

    Returns:
        int: Number of lines queued

    Raises:
        OSError: On a read failure other than end of stream
        EOFError: On a truncated gzip stream
        zlib.error: On a corrupt gzip stream
    """
    queued = 0
    try:
        for raw in iter_raw_lines(stream, buffer_size):
            line = raw.decode(encoding, errors="surrogateescape").strip(TRIM_CHARS)
            if not line:
                continue
            lines.put(line)
            queued += 1
    finally:
        lines.close()
    return queued
