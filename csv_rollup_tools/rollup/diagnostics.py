"""
Diagnostic output helpers. Everything goes to stderr, never to the output stream.

With stderr closed (e.g. `2>&-`) sys.stderr is None; print(file=None) would
fall back to stdout, so diagnostics are dropped instead.
"""

import sys


def _emit(message):
    stream = sys.stderr
    if stream is None:
        return
    print(message, file=stream, flush=True)


def log_diagnostic(message, quiet=False):
    """
    Print a diagnostic message to stderr unless quiet is set.

    Args:
        message: Message to print
        quiet: Whether to suppress the message
    """
    if not quiet:
        _emit(message)


def log_error(message):
    """Print an error message to stderr. Errors are never suppressed."""
    _emit(message)
