"""Merge module - Tools for merging and sorting detector-event log files in parallel."""

from .parallel_merge import collect_lines, merge_files_parallel, merge_prefix_groups, process_file
from .parallel_sort import MergeCancelled, parallel_sort

__all__ = [
    "merge_files_parallel",
    "merge_prefix_groups",
    "collect_lines",
    "process_file",
    "parallel_sort",
    "MergeCancelled",
]
