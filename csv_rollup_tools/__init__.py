"""
CSV Rollup Tools

A Python package for rolling up pre-sorted key/value CSV streams.
Groups contiguous runs of records sharing a key, deduplicates their values
with a parallel worker pool, and writes one merged record per key.

Modules:
    rollup: Streaming group-by-and-dedupe pipeline and the csv-rollup tool
"""

__version__ = "1.0.0"
__author__ = "CSV Rollup Tools Team"

from .rollup.csv_rollup import RollupResult, rollup_csv, rollup_stream

__all__ = [
    "rollup_stream",
    "rollup_csv",
    "RollupResult",
    "__version__",
]
