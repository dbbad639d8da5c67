"""SQL for ready-issue selection, filter translation and row hydration.

Each filter dimension becomes an independent AND-ed restriction; the
result must accept exactly the issues Issue.can_be_claimed accepts.
"""

import re
import sqlite3
from datetime import UTC, datetime
from typing import Any, Iterable

from bd_claim.models import ClaimFilters, Issue, IssueStatus, LabelSet

ISSUE_COLUMNS = (
    "i.id, i.title, i.description, i.status, i.assignee, i.priority, i.issue_type, i.created_at, i.updated_at"
)

READY_FROM = """
    FROM issues i
    LEFT JOIN blocked_issues_cache b ON i.id = b.issue_id
    WHERE i.status = 'open'
    AND b.issue_id IS NULL
"""

# julianday() compares mixed offsets and fraction lengths as instants; the raw text
# only breaks ties below its millisecond resolution
READY_ORDER = "ORDER BY i.priority DESC, julianday(i.created_at) ASC, i.created_at ASC, i.id ASC LIMIT 1"

CLAIM_UPDATE = """
    UPDATE issues
    SET status = 'in_progress', assignee = ?, updated_at = ?
    WHERE id = ? AND status = 'open'
"""

SELECT_BY_ID = f"SELECT {ISSUE_COLUMNS} FROM issues i WHERE i.id = ?"

SELECT_LABELS = "SELECT label FROM labels WHERE issue_id = ?"

# RFC 3339 with optional fraction (any precision) and Z or +hh:mm offset
_TIMESTAMP_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>Z|z|[+-]\d{2}:?\d{2})?$"
)


def build_where_clause(filters: ClaimFilters) -> tuple[str, list[Any]]:
    """Translate filters into extra AND conditions and their bound parameters."""
    conditions: list[str] = []
    args: list[Any] = []
    if filters.only_unassigned:
        conditions.append("AND i.assignee IS NULL")
    if filters.min_priority is not None:
        conditions.append("AND i.priority >= ?")
        args.append(int(filters.min_priority))
    # Issue must carry every include label
    for label in sorted(filters.include_labels):
        conditions.append("AND EXISTS (SELECT 1 FROM labels l WHERE l.issue_id = i.id AND l.label = ?)")
        args.append(label)
    # ...and none of the exclude labels
    for label in sorted(filters.exclude_labels):
        conditions.append("AND NOT EXISTS (SELECT 1 FROM labels l WHERE l.issue_id = i.id AND l.label = ?)")
        args.append(label)
    return " ".join(conditions), args


def select_ready_id_sql(filters: ClaimFilters) -> tuple[str, list[Any]]:
    """Query returning the id of the issue a claim should take, if any."""
    where, args = build_where_clause(filters)
    return f"SELECT i.id {READY_FROM} {where} {READY_ORDER}", args


def select_ready_issue_sql(filters: ClaimFilters) -> tuple[str, list[Any]]:
    """Query returning the full row of the issue a claim would take."""
    where, args = build_where_clause(filters)
    return f"SELECT {ISSUE_COLUMNS} {READY_FROM} {where} {READY_ORDER}", args


def format_timestamp(value: datetime) -> str:
    """Persisted timestamp format: microseconds with a numeric UTC offset."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat(timespec="microseconds")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a stored timestamp.

    Accepts RFC 3339 with nanosecond fractions and a Z suffix as well as
    fixed-offset microsecond timestamps. Fractions past microseconds are
    truncated; naive values are taken as UTC. Returns None for empty or
    unrecognized input.
    """
    if not value:
        return None
    m = _TIMESTAMP_RE.match(value.strip())
    if not m:
        return None
    text = m.group("base").replace(" ", "T")
    frac = m.group("frac")
    if frac:
        text += "." + frac[:6].ljust(6, "0")
    tz = m.group("tz")
    if tz:
        if tz in ("Z", "z"):
            tz = "+00:00"
        elif ":" not in tz:
            tz = f"{tz[:3]}:{tz[3:]}"
        text += tz
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _status(value: str | None) -> IssueStatus:
    # Missing or unmodelled statuses are never claimable
    if not value:
        return IssueStatus.BLOCKED
    try:
        return IssueStatus(value)
    except ValueError:
        return IssueStatus.BLOCKED


def row_to_issue(row: sqlite3.Row, labels: Iterable[str] = ()) -> Issue:
    """Hydrate an Issue from a row selected with ISSUE_COLUMNS."""
    return Issue(
        id=row["id"],
        title=row["title"] or "",
        description=row["description"] or "",
        status=_status(row["status"]),
        assignee=row["assignee"],
        priority=row["priority"] or 0,
        labels=LabelSet(labels),
        issue_type=row["issue_type"] or "",
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )
