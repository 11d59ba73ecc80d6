"""
ASIC Log Merge Tools

A Python package for consolidating detector-event log files.
Provides tools for filtering tab-delimited ASIC event records, merging the
files of a prefix group in parallel, and sorting the result by timestamp.

Modules:
    filter: Record acceptance predicate and log schema
    merge: Parallel collection, sorting and writing of merged logs
"""

__version__ = "1.0.0"
__author__ = "Detector DAQ Team"

from .filter.record_filter import DEFAULT_SCHEMA, RecordFilter, RecordSchema, evaluate_line
from .merge.parallel_merge import merge_files_parallel, merge_prefix_groups
from .merge.parallel_sort import MergeCancelled, parallel_sort

__all__ = [
    "merge_files_parallel",
    "merge_prefix_groups",
    "parallel_sort",
    "evaluate_line",
    "RecordFilter",
    "RecordSchema",
    "DEFAULT_SCHEMA",
    "MergeCancelled",
    "__version__",
]
