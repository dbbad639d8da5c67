"""Claim stores: SQLite (beads database) and in-memory."""

from bd_claim.store.memory_store import MemoryIssueStore
from bd_claim.store.sqlite_store import (
    DEFAULT_BUSY_TIMEOUT_MS,
    MAX_ATTEMPTS,
    SQLiteIssueStore,
    backoff_delays,
    is_busy_error,
)
from bd_claim.store.versioning import MIN_COMPATIBLE_BD_VERSION, is_version_compatible, parse_version

__all__ = [
    "DEFAULT_BUSY_TIMEOUT_MS",
    "MAX_ATTEMPTS",
    "MIN_COMPATIBLE_BD_VERSION",
    "MemoryIssueStore",
    "SQLiteIssueStore",
    "backoff_delays",
    "is_busy_error",
    "is_version_compatible",
    "parse_version",
]
