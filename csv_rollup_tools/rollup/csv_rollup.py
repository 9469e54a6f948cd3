#!/usr/bin/env python3
"""
csv_rollup.py - Roll Up Pre-Sorted Key/Value CSV Streams
=========================================================

Reads a CSV whose lines are already grouped by their first column (e.g. the
output of `sort -u -t , -k 1`), treats every byte after the first delimiter
as an opaque value, and merges all values of each key into one output line.
Merged values are joined with a NUL byte (the sentinel); values that already
contain the sentinel are split before deduplication, so rolling up an
already rolled-up file is a no-op.

COMMAND-LINE USAGE
==================

After installing: pip install -e .
The command 'csv-rollup' becomes available globally.

Basic Examples:

    # Roll up stdin to stdout
    sort -u -t , -k 1 records.csv | csv-rollup > merged.csv

    # Explicit input and output files (plain or gzipped)
    csv-rollup -i sorted.csv.gz -o merged.csv.gz

    # Tab-separated input, 8 merge workers
    csv-rollup -i sorted.tsv -d '\\t' -w 8 > merged.tsv

    # Merge the output of several previous runs
    cat merged-*.csv | sort -t , -k 1,1 | csv-rollup > merged.csv

Input:   a,1          Output:  a,1\\x002
         a,2                   b,3
         a,1
         b,3

PIPELINE
========

    Line Reader --lines--> Key Grouper --groups--> Merge Pool (N) --records--> Writer

- Line Reader (calling thread): splits the byte stream into trimmed lines
- Key Grouper (one thread): collects each contiguous run of a key into a Group
- Merge Pool (N threads): deduplicates the values of a Group
- Writer (one thread): writes merged records as they arrive

All stages are connected by bounded queues, so memory stays flat no matter
how large the input is. Output line order is NOT the input order.

NOTES
=====

- The input is not sorted or checked: a key that appears in two separate runs
  produces two output lines.
- Lines without a delimiter, or with an empty key or value, are reported on
  stderr and skipped.
- A read error stops reading, but everything read so far is still merged and
  written. Use --strict to make it change the exit status.

Author: CSV Rollup Tools Team
"""

import argparse
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from typing import BinaryIO, NamedTuple, Optional

from .counters import RollupCounters
from .diagnostics import log_diagnostic, log_error
from .grouper import group_lines
from .merge import DEFAULT_SENTINEL, MergePool
from .progress import ProgressMonitor
from .queues import ClosableQueue
from .reader import (
    DEFAULT_BUFFER_SIZE,
    READ_ERRORS,
    open_input_path,
    open_output_path,
    read_lines,
)
from .writer import OutputWriteError, write_records

TOOL_NAME = "csv-rollup"
DEFAULT_QUEUE_SIZE = 1000


class RollupResult(NamedTuple):
    """Statistics of one rollup run."""

    records_read: int
    records_written: int
    invalid_lines: int
    groups: int
    elapsed: float
    read_error: Optional[BaseException] = None


def rollup_stream(
    input_stream: BinaryIO,
    output_stream: BinaryIO,
    delimiter: str = ",",
    sentinel: str = DEFAULT_SENTINEL,
    workers: Optional[int] = None,
    queue_size: int = DEFAULT_QUEUE_SIZE,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    encoding: str = "utf-8",
    progress_interval: float = 1.0,
    quiet: bool = False,
    verbose: bool = False,
) -> RollupResult:
    """
    Group, deduplicate and write one merged record per contiguous key run.

    Reading happens on the calling thread. A read failure is reported on
    stderr and returned in RollupResult.read_error; the records read before
    it are still merged and written.

    Args:
        input_stream: Binary input, grouped by key
        output_stream: Binary output for merged records
        delimiter: Single-character key/value delimiter (default: ',')
        sentinel: Single-character value separator (default: NUL)
        workers: Merge worker threads (default: CPU count)
        queue_size: Capacity of each pipeline queue (default: 1000)
        buffer_size: Maximum bytes per read call (default: 50000)
        encoding: Text encoding of input and output (default: utf-8)
        progress_interval: Seconds between progress reports, 0 to disable
        quiet: Suppress progress, warnings and the completion notice
        verbose: Print a summary block when done

    Returns:
        RollupResult

    Raises:
        ValueError: If delimiter or sentinel is not a single character, or they are equal
        OutputWriteError: If writing the output failed
    """
    if len(delimiter) != 1 or len(sentinel) != 1:
        raise ValueError("delimiter and sentinel must be single characters")
    if delimiter == sentinel:
        raise ValueError("delimiter and sentinel must differ")

    counters = RollupCounters()
    lines = ClosableQueue(queue_size)
    groups = ClosableQueue(queue_size)
    records = ClosableQueue(queue_size)

    pool = MergePool(groups, records, counters, workers=workers, sentinel=sentinel)
    monitor = ProgressMonitor(counters, interval=progress_interval, name=TOOL_NAME, quiet=quiet)

    start_time = time.time()
    read_error = None

    monitor.start()
    pool.start()
    stages = ThreadPoolExecutor(max_workers=2, thread_name_prefix="rollup-stage")
    grouping = stages.submit(group_lines, lines, groups, counters, delimiter, quiet)
    writing = stages.submit(write_records, records, output_stream, delimiter, sentinel, encoding)

    try:
        read_lines(input_stream, lines, buffer_size, encoding)
    except READ_ERRORS as e:
        read_error = e
        log_error(f"Error reading input: {e}")
    finally:
        # Lines queue is closed by now; wait for grouper, pool and writer to drain
        stages.shutdown(wait=True)
        monitor.stop()

    group_count = grouping.result()
    pool.join()
    writing.result()

    elapsed = time.time() - start_time
    result = RollupResult(
        records_read=counters.records_read,
        records_written=counters.records_written,
        invalid_lines=counters.invalid_lines,
        groups=group_count,
        elapsed=elapsed,
        read_error=read_error,
    )

    if verbose and not quiet:
        print_summary(result)

    return result


def rollup_csv(input_path: str, output_path: str = "-", **options) -> RollupResult:
    """
    Roll up a file (or stdin) into a file (or stdout).

    Args:
        input_path: Input CSV path, '.gz' supported, or '-' for stdin
        output_path: Output path, '.gz' supported, or '-' for stdout
        **options: Passed through to rollup_stream()

    Returns:
        RollupResult

    Example:
        >>> result = rollup_csv('sorted.csv', 'merged.csv', workers=4)
        >>> print(f"{result.records_read} records -> {result.records_written} keys")
    """
    input_fh = open_input_path(input_path)
    try:
        output_fh = open_output_path(output_path)
        try:
            return rollup_stream(input_fh, output_fh, **options)
        finally:
            if output_path != "-":
                output_fh.close()
    finally:
        if input_path != "-":
            input_fh.close()


def print_summary(result: RollupResult) -> None:
    rate = result.records_read / result.elapsed if result.elapsed > 0 else 0
    log_diagnostic("=" * 60)
    log_diagnostic("# SUMMARY")
    log_diagnostic(f"# Records read: {result.records_read}")
    log_diagnostic(f"# Records written: {result.records_written}")
    log_diagnostic(f"# Invalid lines: {result.invalid_lines}")
    log_diagnostic(f"# Read error: {result.read_error or 'none'}")
    log_diagnostic(f"# Time elapsed: {result.elapsed:.1f} seconds")
    log_diagnostic(f"# Throughput: {rate:.0f} records/second")
    log_diagnostic("=" * 60)


def single_char(value: str) -> str:
    """
    argparse type for one character, accepting backslash escapes.

    '\\t', '\\x00' and '\\u0001' are unescaped, so characters that cannot be
    typed on a command line (like NUL) can still be selected.
    """
    if "\\" in value:
        value = value.encode("latin-1", errors="backslashreplace").decode("unicode_escape")
    if len(value) != 1:
        raise argparse.ArgumentTypeError(f"expected a single character, got {value!r}")
    return value


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {number}")
    return number


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog=TOOL_NAME,
        description=(
            "Reads a pre-sorted (-u -t , -k 1) CSV from stdin, treats all bytes after the "
            "first comma as the value, merges values with the same key using a null byte, "
            "outputs an unsorted merged CSV as output."
        ),
        epilog="Examples:\n"
        "  sort -u -t , -k 1 records.csv | csv-rollup > merged.csv\n"
        "  csv-rollup -i sorted.csv.gz -o merged.csv.gz -w 8\n"
        "  csv-rollup -i sorted.tsv -d '\\t' --progress-interval 0 > merged.tsv",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-i", "--input", default="-", help="Input CSV file (plain or .gz), or '-' for stdin"
    )
    parser.add_argument(
        "-o", "--output", default="-", help="Output file (plain or .gz), or '-' for stdout"
    )
    parser.add_argument(
        "-d",
        "--delimiter",
        type=single_char,
        default=",",
        help="Key/value delimiter, a single character (default: ',')",
    )
    parser.add_argument(
        "--sentinel",
        type=single_char,
        default=DEFAULT_SENTINEL,
        help="Separator joining merged values, a single character (default: '\\x00')",
    )
    parser.add_argument(
        "-w",
        "--workers",
        type=positive_int,
        default=None,
        help="Number of parallel merge workers (default: number of CPUs)",
    )
    parser.add_argument(
        "--queue-size",
        type=positive_int,
        default=DEFAULT_QUEUE_SIZE,
        help=f"Capacity of each pipeline queue (default: {DEFAULT_QUEUE_SIZE})",
    )
    parser.add_argument(
        "--buffer-size",
        type=positive_int,
        default=DEFAULT_BUFFER_SIZE,
        help=f"Read buffer size in bytes (default: {DEFAULT_BUFFER_SIZE})",
    )
    parser.add_argument(
        "--progress-interval",
        type=float,
        default=1.0,
        help="Seconds between progress reports on stderr, 0 to disable (default: 1)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 if reading the input failed part way through",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Print a summary to stderr when done"
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress progress, warnings and completion notice (overrides --verbose)",
    )
    args = parser.parse_args(argv)

    if args.delimiter == args.sentinel:
        parser.error("--delimiter and --sentinel must differ")

    return args


def main(argv=None):
    """
    Main entry point for command-line execution.
    Parses arguments, runs the rollup and maps failures to exit codes.
    """
    args = parse_args(argv)

    try:
        result = rollup_csv(
            args.input,
            args.output,
            delimiter=args.delimiter,
            sentinel=args.sentinel,
            workers=args.workers,
            queue_size=args.queue_size,
            buffer_size=args.buffer_size,
            progress_interval=args.progress_interval,
            quiet=args.quiet,
            verbose=args.verbose and not args.quiet,
        )
    except KeyboardInterrupt:
        log_error("\n# Interrupted by user")
        sys.exit(130)
    except OutputWriteError as e:
        log_error(f"Error writing output: {e}")
        sys.exit(1)
    except OSError as e:
        log_error(f"Error: {e}")
        sys.exit(1)

    if result.read_error is not None and args.strict:
        sys.exit(1)


if __name__ == "__main__":
    main()
