"""SQLite claim store over a beads database (.beads/beads.db).

A claim runs in one BEGIN IMMEDIATE transaction: select the best ready
issue, then flip it to in_progress guarded by ``status = 'open'``. Zero
rows updated means another agent got there first and the call returns
None. Busy/locked errors are retried with exponential backoff; anything
else is raised at once. Every call uses its own connection, so one store
object can be shared between threads.
"""

import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, TypeVar

from bd_claim.cancel import CallContext
from bd_claim.clock import SystemClock
from bd_claim.models import AgentName, ClaimFailed, ClaimFilters, ErrorCode, Issue
from bd_claim.ports import ClaimStore, Clock
from bd_claim.store.query import (
    CLAIM_UPDATE,
    SELECT_BY_ID,
    SELECT_LABELS,
    format_timestamp,
    row_to_issue,
    select_ready_id_sql,
    select_ready_issue_sql,
)
from bd_claim.store.versioning import MIN_COMPATIBLE_BD_VERSION, VERSION_METADATA_KEY, is_version_compatible

DEFAULT_BUSY_TIMEOUT_MS = 3000
MAX_ATTEMPTS = 3
BASE_BACKOFF_SECONDS = 0.020
JOURNAL_MODES = ("WAL", "DELETE", "TRUNCATE", "PERSIST", "MEMORY", "OFF")
# SQLite VM instructions between cancellation checks
PROGRESS_HANDLER_OPS = 1000

LOG = logging.getLogger("bd_claim.store.sqlite_store")

T = TypeVar("T")


def is_busy_error(exc: BaseException | None) -> bool:
    """True for SQLITE_BUSY / SQLITE_LOCKED style contention errors."""
    if exc is None:
        return False
    name = getattr(exc, "sqlite_errorname", None) or ""
    if name.startswith(("SQLITE_BUSY", "SQLITE_LOCKED")):
        return True
    text = str(exc)
    return "database is locked" in text or "database table is locked" in text or "SQLITE_BUSY" in text


def backoff_delays(max_attempts: int = MAX_ATTEMPTS, base: float = BASE_BACKOFF_SECONDS) -> list[float]:
    """Delays slept between attempts: base, 2*base, 4*base, ... (one fewer than attempts)."""
    return [base * (2**attempt) for attempt in range(max(0, max_attempts - 1))]


class SQLiteIssueStore(ClaimStore):
    """ClaimStore backed by the beads SQLite database."""

    def __init__(
        self,
        db_path: Path | str,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
        *,
        clock: Clock | None = None,
        journal_mode: str | None = "WAL",
        max_attempts: int = MAX_ATTEMPTS,
        base_backoff: float = BASE_BACKOFF_SECONDS,
    ) -> None:
        """Open (and verify) the database at db_path.

        Raises:
            ClaimFailed: DB_NOT_FOUND when the file is missing or not a database.
            ValueError: on an unknown journal mode or max_attempts < 1.
        """
        if busy_timeout_ms <= 0:
            busy_timeout_ms = DEFAULT_BUSY_TIMEOUT_MS
        if journal_mode and journal_mode.upper() not in JOURNAL_MODES:
            raise ValueError(f"unsupported journal mode: {journal_mode}")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._db_path = Path(db_path)
        self._busy_timeout_ms = busy_timeout_ms
        self._clock = clock or SystemClock()
        self._max_attempts = max_attempts
        self._base_backoff = base_backoff
        self._closed = False
        self._verify(journal_mode.upper() if journal_mode else None)

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def busy_timeout_ms(self) -> int:
        return self._busy_timeout_ms

    def close(self) -> None:
        """Refuse further calls. Connections are per call, so nothing stays open."""
        self._closed = True

    def __enter__(self) -> "SQLiteIssueStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -- connections -----------------------------------------------------

    def _raw_connect(self, busy_timeout_ms: int) -> sqlite3.Connection:
        # mode=rw: never create a missing database file
        uri = f"{self._db_path.resolve().as_uri()}?mode=rw"
        conn = sqlite3.connect(uri, uri=True, timeout=busy_timeout_ms / 1000, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
        return conn

    def _verify(self, journal_mode: str | None) -> None:
        try:
            conn = self._raw_connect(self._busy_timeout_ms)
        except sqlite3.Error as e:
            raise ClaimFailed(ErrorCode.DB_NOT_FOUND, f"failed to open database: {e}") from e
        try:
            if journal_mode:
                try:
                    conn.execute(f"PRAGMA journal_mode = {journal_mode}").fetchone()
                except sqlite3.OperationalError as e:
                    if not is_busy_error(e):
                        raise
                    # Mode is persistent; another process holding the db keeps the current one
                    LOG.warning("Could not switch %s to journal_mode=%s: %s", self._db_path, journal_mode, e)
            else:
                conn.execute("SELECT 1").fetchone()
        except sqlite3.Error as e:
            raise ClaimFailed(ErrorCode.DB_NOT_FOUND, f"failed to connect to database: {e}") from e
        finally:
            conn.close()

    def _connect(self, ctx: CallContext) -> sqlite3.Connection:
        if self._closed:
            raise ClaimFailed(ErrorCode.DB_NOT_FOUND, "store is closed")
        timeout_ms = self._busy_timeout_ms
        if ctx.deadline is not None:
            remaining_ms = int((ctx.deadline - time.monotonic()) * 1000)
            timeout_ms = max(1, min(timeout_ms, remaining_ms))
        try:
            conn = self._raw_connect(timeout_ms)
        except sqlite3.Error as e:
            raise ClaimFailed(ErrorCode.DB_NOT_FOUND, f"failed to open database: {e}") from e
        conn.set_progress_handler(lambda: 1 if ctx.done() else 0, PROGRESS_HANDLER_OPS)
        return conn

    @contextmanager
    def _transaction(self, conn: sqlite3.Connection, begin: str) -> Iterator[sqlite3.Connection]:
        """Run the body in a transaction; any exception (cancellation included) rolls back."""
        conn.execute(begin)
        try:
            yield conn
        except BaseException:
            if conn.in_transaction:
                # A tripped context would interrupt the rollback itself
                conn.set_progress_handler(None, 0)
                try:
                    conn.execute("ROLLBACK")
                except sqlite3.Error as e:
                    # Closing the connection discards the transaction anyway
                    LOG.warning("Rollback failed on %s: %s", self._db_path, e)
            raise
        else:
            if conn.in_transaction:
                conn.execute("COMMIT")

    @staticmethod
    def _translate(exc: sqlite3.Error, ctx: CallContext, what: str) -> ClaimFailed:
        reason = ctx.reason()
        if reason:
            return ClaimFailed(ErrorCode.UNEXPECTED, reason)
        if is_busy_error(exc):
            return ClaimFailed(ErrorCode.SQLITE_BUSY, f"database is busy: {exc}")
        return ClaimFailed(ErrorCode.UNEXPECTED, f"{what}: {exc}")

    def _with_retry(self, op: Callable[[], T], ctx: CallContext, what: str) -> T:
        """Run op, retrying busy failures with exponential backoff."""
        delays = backoff_delays(self._max_attempts, self._base_backoff)
        attempt = 0
        while True:
            ctx.check()
            try:
                return op()
            except ClaimFailed as e:
                if not e.retryable:
                    raise
                if attempt >= len(delays):
                    LOG.warning("%s gave up after %s busy attempts: %s", what, self._max_attempts, e.message)
                    raise ClaimFailed(ErrorCode.SQLITE_BUSY, e.message) from e
                LOG.debug(
                    "%s busy (attempt %s/%s), retrying in %.0f ms: %s",
                    what,
                    attempt + 1,
                    self._max_attempts,
                    delays[attempt] * 1000,
                    e.message,
                )
                ctx.sleep(delays[attempt])
                attempt += 1

    # -- claim / find ----------------------------------------------------

    def claim_one_ready_issue(
        self,
        agent: AgentName,
        filters: ClaimFilters,
        ctx: CallContext | None = None,
    ) -> Issue | None:
        """Atomically claim the highest-priority, oldest ready issue matching filters.

        Returns None when nothing is eligible or the selected issue was
        claimed concurrently; the call does not move on to another candidate.
        """
        ctx = ctx or CallContext()
        return self._with_retry(lambda: self._try_claim(agent, filters, ctx), ctx, "claim")

    def _try_claim(self, agent: AgentName, filters: ClaimFilters, ctx: CallContext) -> Issue | None:
        conn = self._connect(ctx)
        try:
            with self._transaction(conn, "BEGIN IMMEDIATE"):
                sql, args = select_ready_id_sql(filters)
                row = conn.execute(sql, args).fetchone()
                if row is None:
                    return None
                issue_id = row["id"]
                ctx.check()
                now = format_timestamp(self._clock.now())
                cursor = conn.execute(CLAIM_UPDATE, (str(agent), now, issue_id))
                if cursor.rowcount == 0:
                    LOG.debug("Issue %s no longer open, claim lost", issue_id)
                    return None
                issue = self._fetch_issue(conn, issue_id)
                ctx.check()
        except sqlite3.Error as e:
            raise self._translate(e, ctx, "failed to claim issue") from e
        finally:
            conn.close()
        LOG.debug("Claimed issue %s for %s", issue.id, agent)
        return issue

    def find_one_ready_issue(
        self,
        filters: ClaimFilters,
        ctx: CallContext | None = None,
    ) -> Issue | None:
        """Return the issue a claim would take right now, unchanged.

        The answer can be stale as soon as it is returned.
        """
        ctx = ctx or CallContext()
        return self._with_retry(lambda: self._try_find(filters, ctx), ctx, "find")

    def _try_find(self, filters: ClaimFilters, ctx: CallContext) -> Issue | None:
        conn = self._connect(ctx)
        try:
            with self._transaction(conn, "BEGIN"):
                sql, args = select_ready_issue_sql(filters)
                row = conn.execute(sql, args).fetchone()
                if row is None:
                    return None
                return row_to_issue(row, self._fetch_labels(conn, row["id"]))
        except sqlite3.Error as e:
            raise self._translate(e, ctx, "failed to query ready issue") from e
        finally:
            conn.close()

    def _fetch_labels(self, conn: sqlite3.Connection, issue_id: str) -> list[str]:
        return [r["label"] for r in conn.execute(SELECT_LABELS, (issue_id,))]

    def _fetch_issue(self, conn: sqlite3.Connection, issue_id: str) -> Issue:
        row = conn.execute(SELECT_BY_ID, (issue_id,)).fetchone()
        if row is None:
            raise ClaimFailed(ErrorCode.UNEXPECTED, f"claimed issue {issue_id} not found")
        return row_to_issue(row, self._fetch_labels(conn, issue_id))

    # -- version gate ----------------------------------------------------

    def get_bd_version(self, ctx: CallContext | None = None) -> str | None:
        """Version stamped by bd in the metadata table, or None when absent."""
        ctx = ctx or CallContext()
        conn = self._connect(ctx)
        try:
            row = conn.execute("SELECT value FROM metadata WHERE key = ?", (VERSION_METADATA_KEY,)).fetchone()
        except sqlite3.OperationalError as e:
            if "no such table" in str(e):
                return None
            raise self._translate(e, ctx, "failed to read database version") from e
        except sqlite3.Error as e:
            raise self._translate(e, ctx, "failed to read database version") from e
        finally:
            conn.close()
        if row is None or not row["value"]:
            return None
        return str(row["value"]).strip() or None

    def check_version_compatibility(self, min_version: str = MIN_COMPATIBLE_BD_VERSION) -> None:
        """Raise SCHEMA_INCOMPATIBLE if the database predates min_version.

        Unversioned databases are accepted.
        """
        version = self.get_bd_version()
        if version is None:
            LOG.debug("No bd_version in %s, assuming compatible", self._db_path)
            return
        if not is_version_compatible(version, min_version):
            raise ClaimFailed(
                ErrorCode.SCHEMA_INCOMPATIBLE,
                f"database version {version} is older than minimum supported version {min_version}",
            )
