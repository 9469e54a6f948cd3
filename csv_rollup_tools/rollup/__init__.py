"""Rollup module - Streaming group-by-and-dedupe of pre-sorted key/value CSV."""

from .csv_rollup import RollupResult, rollup_csv, rollup_stream

__all__ = ["rollup_stream", "rollup_csv", "RollupResult"]
