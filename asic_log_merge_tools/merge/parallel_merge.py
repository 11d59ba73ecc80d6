#!/usr/bin/env python3
"""
Merge ASIC Logs - Parallel filter, merge and sort of detector-event log files

This script collects every log file in the working directory whose name starts
with a given prefix, filters each file in parallel, merges all accepted records
into one working set, sorts it by TIMESTAMP and writes a single consolidated
file per prefix group:

    Master_*  ->  merged_MASTER.txt
    Slave_*   ->  merged_SLAVE.txt

Usage Examples:
    # Merge the Master_ and Slave_ files of the current directory
    cd /data/run_0042 && merge-asic-logs

    # Same, without installing the package
    python -m asic_log_merge_tools.merge.parallel_merge

    # Redirect diagnostics (unreadable files, write errors) to a file
    merge-asic-logs 2> errors.log

PYTHON API
==========

    from asic_log_merge_tools.merge.parallel_merge import (
        merge_files_parallel,
        merge_prefix_groups,
    )

    # One group, bounded to 8 reader threads
    count = merge_files_parallel("Master_", "merged_MASTER.txt", directory="/data/run", workers=8)

    # Both default groups
    results = merge_prefix_groups(directory="/data/run", verbose=True)

Input format:
    ASIC<TAB>CH<TAB>TYPE<TAB>TIMESTAMP_LSB<TAB>PULSE_WIDTH_LSB
    Header lines are stripped from inputs and written once to each output.

Requirements:
    - The accepted records of one prefix group must fit in memory
    - Unreadable input files are skipped with a warning on stderr
    - A failed output write aborts that group only; the exit status is 1

Author: Detector DAQ Team
"""

import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence, Tuple

from asic_log_merge_tools.filter.record_filter import DEFAULT_SCHEMA, RecordFilter, RecordSchema
from asic_log_merge_tools.merge.parallel_sort import (
    DEFAULT_CHUNK_SIZE,
    check_cancelled,
    parallel_sort,
)

DEFAULT_GROUPS: Tuple[Tuple[str, str], ...] = (
    ("Master_", "merged_MASTER.txt"),
    ("Slave_", "merged_SLAVE.txt"),
)

# Pass undecodable bytes through unchanged
ENCODING = "utf-8"
ENCODING_ERRORS = "surrogateescape"


def log_progress(message, verbose=False):
    """
    Log progress message to stderr if verbose is enabled.

    Args:
        message: Message to log
        verbose: Whether to output the message
    """
    if verbose:
        print(message, file=sys.stderr)


def get_prefix_files(prefix: str, directory: str = ".", verbose: bool = False) -> List[str]:
    """
    List regular files in directory whose name starts with prefix.

    Plain string prefix match on the file name (no glob or regex), not
    recursive. Paths are returned sorted by name.

    Args:
        prefix: File name prefix, e.g. "Master_"
        directory: Directory to scan (default: current directory)
        verbose: Whether to log progress to stderr (optional)

    Returns:
        List of file paths joined with directory
    """
    log_progress(f"[DISCOVER] Scanning directory: {directory} (prefix: {prefix})", verbose)
    files = []
    for name in sorted(os.listdir(directory)):
        path = os.path.join(directory, name)
        if name.startswith(prefix) and os.path.isfile(path):
            log_progress(f"[INCLUDE] {name}", verbose)
            files.append(path)

    log_progress(f"[DISCOVER] {len(files)} file(s) match prefix {prefix}", verbose)
    return files


def process_file(
    path: str,
    schema: RecordSchema = DEFAULT_SCHEMA,
    cancel_event=None,
) -> List[str]:
    """
    Read one log file and return its accepted lines in file order.

    A file that cannot be opened is reported on stderr and contributes no
    lines. A read error partway through is reported the same way and the
    lines accepted before it are kept. Neither aborts the run.

    Args:
        path: Path to the input log file
        schema: Record layout used for filtering
        cancel_event: Optional threading.Event; when set, MergeCancelled is raised

    Returns:
        List of accepted lines without trailing newlines
    """
    record_filter = RecordFilter(schema)
    lines = []

    try:
        fh = open(path, "r", encoding=ENCODING, errors=ENCODING_ERRORS, newline="\n")
    except OSError as e:
        print(f"Skipping unreadable file: {path} ({e})", file=sys.stderr)
        return lines

    with fh:
        try:
            for line in fh:
                check_cancelled(cancel_event)
                line = line.rstrip("\r\n")
                accepted, _ = record_filter.evaluate(line)
                if accepted:
                    lines.append(line)
        except OSError as e:
            # Keep what was read before the error
            print(
                f"Skipping unreadable file: {path} after {len(lines)} lines ({e})",
                file=sys.stderr,
            )

    return lines


def collect_lines(
    prefix: str,
    directory: str = ".",
    schema: RecordSchema = DEFAULT_SCHEMA,
    workers: Optional[int] = None,
    cancel_event=None,
    verbose: bool = False,
) -> List[str]:
    """
    Filter every file matching prefix in parallel and concatenate the results.

    One task is submitted per matched file. With workers=None the pool is as
    wide as the number of files; an integer caps the number of concurrent
    readers. All tasks are joined before their results are combined, so no
    shared list is written concurrently.

    Args:
        prefix: File name prefix
        directory: Directory to scan
        schema: Record layout used for filtering
        workers: Maximum concurrent file readers (default: one per file)
        cancel_event: Optional threading.Event; when set, MergeCancelled is raised
        verbose: Whether to log progress to stderr (optional)

    Returns:
        Accepted lines of all files (order across files is unspecified)
    """
    files = get_prefix_files(prefix, directory, verbose)
    if not files:
        return []

    max_workers = len(files) if workers is None else max(1, min(workers, len(files)))
    log_progress(f"[COLLECT] Filtering {len(files)} file(s) with {max_workers} worker(s)", verbose)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(process_file, path, schema, cancel_event) for path in files]
        results = [future.result() for future in futures]

    all_lines = []
    for path, partial in zip(files, results):
        log_progress(f"[COLLECT] {os.path.basename(path)}: {len(partial)} lines accepted", verbose)
        all_lines.extend(partial)

    return all_lines


def write_merged(
    output_file: str,
    lines: Sequence[str],
    header: str,
    buffer_size: int = 1024 * 1024,
) -> int:
    """
    Write the header followed by lines to output_file, one per line.

    The file is truncated or created. Any I/O error propagates to the caller;
    no partial-write recovery is attempted.

    Returns:
        Number of record lines written (header excluded)
    """
    lines_written = 0
    with open(
        output_file,
        "w",
        encoding=ENCODING,
        errors=ENCODING_ERRORS,
        newline="\n",
        buffering=buffer_size,
    ) as out:
        out.write(header + "\n")
        for line in lines:
            out.write(line + "\n")
            lines_written += 1

    return lines_written


def merge_files_parallel(
    prefix: str,
    output_name: str,
    directory: str = ".",
    schema: RecordSchema = DEFAULT_SCHEMA,
    workers: Optional[int] = None,
    sort_workers: Optional[int] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    cancel_event=None,
    verbose: bool = False,
) -> int:
    """
    Run collect -> sort -> write for one prefix group.

    Args:
        prefix: Input file name prefix
        output_name: Output file name, relative to directory
        directory: Directory holding inputs and output (default: current directory)
        schema: Record layout used for filtering and the output header
        workers: Maximum concurrent file readers (default: one per file)
        sort_workers: Number of sort workers (default: os.cpu_count())
        chunk_size: Lines per independently sorted chunk
        cancel_event: Optional threading.Event to abort the run
        verbose: Whether to log progress to stderr (optional)

    Returns:
        Number of records written

    Raises:
        OSError: If the output file cannot be written
        MergeCancelled: If cancel_event was set during the run
    """
    start = time.monotonic()
    all_lines = collect_lines(prefix, directory, schema, workers, cancel_event, verbose)

    log_progress(f"[SORT] Sorting {len(all_lines)} lines", verbose)
    sort_key = RecordFilter(schema).extract_timestamp
    sorted_lines = parallel_sort(
        all_lines,
        workers=sort_workers,
        chunk_size=chunk_size,
        key=sort_key,
        cancel_event=cancel_event,
    )
    del all_lines

    output_file = os.path.join(directory, output_name)
    log_progress(f"[WRITE] Writing {output_file}", verbose)
    count = write_merged(output_file, sorted_lines, schema.header)

    log_progress(f"[MERGE] Complete in {time.monotonic() - start:.2f}s", verbose)
    print(f"Parallel merge done: {count} lines written to '{output_name}'")
    return count


def merge_prefix_groups(
    groups: Sequence[Tuple[str, str]] = DEFAULT_GROUPS,
    directory: str = ".",
    schema: RecordSchema = DEFAULT_SCHEMA,
    workers: Optional[int] = None,
    cancel_event=None,
    verbose: bool = False,
) -> Dict[str, Optional[int]]:
    """
    Run merge_files_parallel for each (prefix, output name) pair in turn.

    A write failure is reported on stderr and recorded as None for that
    group; the remaining groups still run. Cancellation is not caught.

    Returns:
        Dictionary mapping output name to records written (None on failure)
    """
    results: Dict[str, Optional[int]] = {}
    for prefix, output_name in groups:
        try:
            results[output_name] = merge_files_parallel(
                prefix,
                output_name,
                directory=directory,
                schema=schema,
                workers=workers,
                cancel_event=cancel_event,
                verbose=verbose,
            )
        except OSError as e:
            print(f"Error: merge of '{prefix}*' into '{output_name}' failed: {e}", file=sys.stderr)
            results[output_name] = None

    return results


def main():
    """Merge the default Master_/Slave_ groups of the current directory."""
    try:
        results = merge_prefix_groups()
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(130)

    failed = [name for name, count in results.items() if count is None]
    if failed:
        print(f"Error: {len(failed)} merge(s) failed: {', '.join(failed)}", file=sys.stderr)
        sys.exit(1)

    print("All merges complete.")


if __name__ == "__main__":
    main()
