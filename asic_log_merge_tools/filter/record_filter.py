#!/usr/bin/env python3
"""
record_filter.py

Decide whether a raw detector-event log line belongs in a merged output, and
extract the TIMESTAMP used to order it.

Input lines are tab-separated with at least four positional fields:

    ASIC    CH    TYPE    TIMESTAMP_LSB    PULSE_WIDTH_LSB
    0       12    5       2000000000       37

A line is accepted when:
    - it is not the header line, and
    - it contains the "ASIC" marker anywhere OR its TYPE field is an integer > 2, and
    - its TIMESTAMP field is an integer within [1000, 10^18] (inclusive).

The marker check runs first and independently of TYPE, so marker rows whose
TYPE field does not parse still survive when their TIMESTAMP is in range.

PYTHON API
==========

    from asic_log_merge_tools.filter.record_filter import RecordFilter, RecordSchema

    record_filter = RecordFilter()
    accepted, timestamp = record_filter.evaluate("0\t12\t5\t2000000000\t37")

    # Alternate schema (e.g. for a test bench with a different header)
    schema = RecordSchema(header="A\tB\tC\tD", min_timestamp=0)
    accepted, timestamp = RecordFilter(schema).evaluate(line)

Author: Detector DAQ Team
"""

import re
from typing import Optional, Tuple

INVALID_TIMESTAMP = -1

# strtol-style prefix: C-locale whitespace, optional sign, ASCII digits; rest ignored
_LEADING_INTEGER = re.compile(r"[ \t\n\v\f\r]*([+-]?[0-9]+)")


class RecordSchema:  # pylint: disable=too-few-public-methods,too-many-instance-attributes
    """Column layout, header and bounds of the detector-event log format."""

    def __init__(
        self,
        header: str = "ASIC\tCH\tTYPE\tTIMESTAMP_LSB\tPULSE_WIDTH_LSB",
        type_column: int = 2,
        timestamp_column: int = 3,
        min_timestamp: int = 1000,
        max_timestamp: int = 10**18,
        min_type_exclusive: int = 2,
        marker: str = "ASIC",
        delimiter: str = "\t",
    ):
        """
        Initialize schema.

        Args:
            header: Exact header line, stripped from inputs and written to outputs
            type_column: 0-based index of the TYPE field
            timestamp_column: 0-based index of the TIMESTAMP field
            min_timestamp: Smallest accepted TIMESTAMP (inclusive)
            max_timestamp: Largest accepted TIMESTAMP (inclusive)
            min_type_exclusive: TYPE must be strictly greater than this
            marker: Substring that accepts a line regardless of TYPE
            delimiter: Field separator
        """
        self.header = header
        self.type_column = type_column
        self.timestamp_column = timestamp_column
        self.min_timestamp = min_timestamp
        self.max_timestamp = max_timestamp
        self.min_type_exclusive = min_type_exclusive
        self.marker = marker
        self.delimiter = delimiter

    def __repr__(self):
        return (
            f"RecordSchema(header={self.header!r}, type_column={self.type_column}, "
            f"timestamp_column={self.timestamp_column}, "
            f"min_timestamp={self.min_timestamp}, max_timestamp={self.max_timestamp})"
        )


DEFAULT_SCHEMA = RecordSchema()


def parse_integer(token: str, bits: int = 64) -> Optional[int]:
    """
    Parse a base-10 integer the way C's strtol family does.

    Leading whitespace and a sign are allowed, characters after the digits
    are ignored. Returns None when no digits are found or when the value does
    not fit in a signed integer of the given width.

    Examples:
        "2000000000"  -> 2000000000
        " 42abc"      -> 42
        "foo"         -> None
        "99999999999999999999" -> None (64-bit overflow)
    """
    match = _LEADING_INTEGER.match(token)
    if not match:
        return None

    value = int(match.group(1))
    limit = 1 << (bits - 1)
    if value < -limit or value >= limit:
        return None
    return value


def get_field(line: str, index: int, delimiter: str = "\t") -> Optional[str]:
    """Return the field at index, or None if the line has fewer fields."""
    fields = line.split(delimiter, index + 1)
    if len(fields) <= index:
        return None
    return fields[index]


def extract_timestamp(line: str, schema: RecordSchema = DEFAULT_SCHEMA) -> int:
    """
    Extract the TIMESTAMP field of a line.

    Returns INVALID_TIMESTAMP (-1) when the field is missing or does not
    parse as a 64-bit integer. Never raises on malformed input.
    """
    token = get_field(line, schema.timestamp_column, schema.delimiter)
    if token is None:
        return INVALID_TIMESTAMP

    value = parse_integer(token, bits=64)
    return INVALID_TIMESTAMP if value is None else value


def has_valid_type(line: str, schema: RecordSchema = DEFAULT_SCHEMA) -> bool:
    """True if the TYPE field parses as a 32-bit integer greater than the schema minimum."""
    token = get_field(line, schema.type_column, schema.delimiter)
    if token is None:
        return False

    value = parse_integer(token, bits=32)
    return value is not None and value > schema.min_type_exclusive


class RecordFilter:
    """
    Acceptance predicate and sort key for detector-event log lines.

    Stateless apart from its schema; safe to share between threads.
    """

    def __init__(self, schema: Optional[RecordSchema] = None):
        self.schema = schema if schema is not None else DEFAULT_SCHEMA

    def is_header(self, line: str) -> bool:
        return line == self.schema.header

    def extract_timestamp(self, line: str) -> int:
        return extract_timestamp(line, self.schema)

    def in_range(self, timestamp: int) -> bool:
        return self.schema.min_timestamp <= timestamp <= self.schema.max_timestamp

    def evaluate(self, line: str) -> Tuple[bool, int]:
        """
        Decide inclusion of a single line.

        Args:
            line: Raw line without its trailing newline

        Returns:
            Tuple of (accepted, timestamp). The header line is always
            rejected with timestamp INVALID_TIMESTAMP.
        """
        if self.is_header(line):
            return False, INVALID_TIMESTAMP

        timestamp = self.extract_timestamp(line)
        if not (self.schema.marker in line or has_valid_type(line, self.schema)):
            return False, timestamp

        return self.in_range(timestamp), timestamp

    def matches(self, line: str) -> bool:
        """Check if line is accepted."""
        return self.evaluate(line)[0]


def evaluate_line(line: str, schema: RecordSchema = DEFAULT_SCHEMA) -> Tuple[bool, int]:
    """Module-level shortcut for RecordFilter(schema).evaluate(line)."""
    return RecordFilter(schema).evaluate(line)
