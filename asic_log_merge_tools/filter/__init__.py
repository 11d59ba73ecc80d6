"""Filter module - Record acceptance predicate for detector-event log lines."""

from .record_filter import DEFAULT_SCHEMA, RecordFilter, RecordSchema, evaluate_line, extract_timestamp

__all__ = ["RecordFilter", "RecordSchema", "DEFAULT_SCHEMA", "evaluate_line", "extract_timestamp"]
