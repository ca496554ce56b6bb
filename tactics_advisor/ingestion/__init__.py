"""Ingestion module - rate-limited fetching, validation and store refresh for composition data."""

from .rate_limiter import RateLimiter, QueuedTask
from .validation import ValidationIssue, validate_entry_payload, parse_entry, parse_entries
from .refresher import (
    CompositionRefresher,
    RefreshReport,
    extract_payloads,
    load_compositions_file,
    read_compositions_payload,
)

__all__ = [
    "RateLimiter",
    "QueuedTask",
    "ValidationIssue",
    "validate_entry_payload",
    "parse_entry",
    "parse_entries",
    "CompositionRefresher",
    "RefreshReport",
    "extract_payloads",
    "load_compositions_file",
    "read_compositions_payload",
]
