"""Shared fixtures: a beads-shaped SQLite database inside a tmp workspace."""

import sqlite3
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

SCHEMA = """
CREATE TABLE issues (
    id TEXT PRIMARY KEY,
    title TEXT,
    description TEXT,
    status TEXT DEFAULT 'open',
    assignee TEXT,
    priority INTEGER DEFAULT 0,
    issue_type TEXT,
    created_at TEXT,
    updated_at TEXT
);
CREATE TABLE labels (
    issue_id TEXT,
    label TEXT,
    PRIMARY KEY (issue_id, label)
);
CREATE TABLE blocked_issues_cache (
    issue_id TEXT PRIMARY KEY
);
CREATE TABLE metadata (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""

BASE_TIME = datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)


class BeadsDB:
    """Writes fixture rows straight into the database file."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.path = root / ".beads" / "beads.db"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path)
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(SCHEMA)
            conn.commit()
        finally:
            conn.close()
        self._seq = 0

    def execute(self, sql: str, args: tuple = ()) -> list[sqlite3.Row]:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        try:
            rows = conn.execute(sql, args).fetchall()
            conn.commit()
            return rows
        finally:
            conn.close()

    def add_issue(
        self,
        issue_id: str,
        title: str = "",
        status: str = "open",
        priority: int = 0,
        assignee: str | None = None,
        labels: tuple[str, ...] = (),
        created_at: str | None = None,
        issue_type: str = "task",
    ) -> None:
        """Insert an issue; created_at defaults to a strictly increasing timestamp."""
        if created_at is None:
            created_at = (BASE_TIME + timedelta(seconds=self._seq)).isoformat(timespec="microseconds")
            self._seq += 1
        self.execute(
            "INSERT INTO issues (id, title, description, status, assignee, priority, issue_type, created_at, updated_at)"
            " VALUES (?, ?, '', ?, ?, ?, ?, ?, ?)",
            (issue_id, title or f"Issue {issue_id}", status, assignee, priority, issue_type, created_at, created_at),
        )
        for label in labels:
            self.add_label(issue_id, label)

    def add_label(self, issue_id: str, label: str) -> None:
        self.execute("INSERT INTO labels (issue_id, label) VALUES (?, ?)", (issue_id, label))

    def block(self, issue_id: str) -> None:
        self.execute("INSERT INTO blocked_issues_cache (issue_id) VALUES (?)", (issue_id,))

    def set_version(self, version: str) -> None:
        self.execute("INSERT OR REPLACE INTO metadata (key, value) VALUES ('bd_version', ?)", (version,))

    def drop_metadata(self) -> None:
        self.execute("DROP TABLE metadata")

    def row(self, issue_id: str) -> sqlite3.Row:
        return self.execute("SELECT * FROM issues WHERE id = ?", (issue_id,))[0]

    def statuses(self) -> dict[str, tuple[str, str | None]]:
        return {r["id"]: (r["status"], r["assignee"]) for r in self.execute("SELECT id, status, assignee FROM issues")}


@pytest.fixture
def beads_db(tmp_path: Path) -> BeadsDB:
    """Workspace at tmp_path with an empty .beads/beads.db."""
    return BeadsDB(tmp_path)
