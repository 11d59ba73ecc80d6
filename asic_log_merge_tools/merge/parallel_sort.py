#!/usr/bin/env python3
"""
parallel_sort.py - Chunked parallel sort of log lines by TIMESTAMP

Sorts the in-memory working set of a merge run in two phases:

    1. Split the (timestamp, line) pairs into chunks and sort each chunk on a
       thread pool.
    2. Combine the sorted runs with a min-heap k-way merge (heapq.merge).

Chunk sorts hold the GIL, so on a standard CPython build the thread pool
runs them one at a time; they only overlap on free-threaded builds.

The TIMESTAMP of each line is extracted once up front instead of on every
comparison. Lines whose TIMESTAMP does not parse get -1 and sort first.
Lines with equal timestamps come out in no particular order.

Performance:
    - Time Complexity: O(N log N) comparisons, split across chunks
    - Space Complexity: O(N) for the keyed copy of the input

Author: Detector DAQ Team
"""

import heapq
import os
from concurrent.futures import ThreadPoolExecutor
from operator import itemgetter
from typing import Callable, List, Optional, Sequence, Tuple

from asic_log_merge_tools.filter.record_filter import extract_timestamp

DEFAULT_CHUNK_SIZE = 100000

_by_timestamp = itemgetter(0)


class MergeCancelled(Exception):
    """Raised when a merge run is aborted through its cancel event."""


def check_cancelled(cancel_event) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise MergeCancelled("merge cancelled")


def sort_chunk_worker(chunk: List[Tuple[int, str]], cancel_event=None) -> List[Tuple[int, str]]:
    """Worker function to sort one chunk of (timestamp, line) pairs."""
    check_cancelled(cancel_event)
    chunk.sort(key=_by_timestamp)
    return chunk


def parallel_sort(
    lines: Sequence[str],
    workers: Optional[int] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    key: Callable[[str], int] = extract_timestamp,
    cancel_event=None,
) -> List[str]:
    """
    Sort lines by ascending timestamp using a thread pool.

    Args:
        lines: Lines to sort (left unmodified)
        workers: Number of sort workers (default: os.cpu_count())
        chunk_size: Maximum lines per independently sorted chunk
        key: Function returning the sort timestamp of a line
        cancel_event: Optional threading.Event; when set, MergeCancelled is raised

    Returns:
        New list with the lines in non-decreasing timestamp order
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    check_cancelled(cancel_event)
    keyed = [(key(line), line) for line in lines]
    if len(keyed) <= chunk_size:
        return [line for _, line in sort_chunk_worker(keyed, cancel_event)]

    chunks = [keyed[i : i + chunk_size] for i in range(0, len(keyed), chunk_size)]
    if workers is None:
        workers = os.cpu_count() or 1
    workers = max(1, min(workers, len(chunks)))

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(sort_chunk_worker, chunk, cancel_event) for chunk in chunks]
        runs = [future.result() for future in futures]

    check_cancelled(cancel_event)
    return [line for _, line in heapq.merge(*runs, key=_by_timestamp)]
