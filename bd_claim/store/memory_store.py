"""In-process claim store using an optimistic version field.

Selection runs on a snapshot without holding the lock; the claim itself is
a compare-and-swap on the record version, so two threads that pick the
same issue cannot both win. Used for tests and embedding without SQLite.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Iterable

from bd_claim.cancel import CallContext
from bd_claim.clock import SystemClock
from bd_claim.models import AgentName, ClaimFilters, Issue, sort_key
from bd_claim.ports import ClaimStore, Clock

LOG = logging.getLogger("bd_claim.store.memory_store")


@dataclass(frozen=True)
class _Record:
    issue: Issue
    version: int


class MemoryIssueStore(ClaimStore):
    """ClaimStore over a dict of issues guarded by a lock."""

    def __init__(self, issues: Iterable[Issue] = (), clock: Clock | None = None) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, _Record] = {}
        self._clock = clock or SystemClock()
        for issue in issues:
            self.put(issue)

    def put(self, issue: Issue) -> None:
        """Insert or replace an issue (bumps its version)."""
        with self._lock:
            current = self._records.get(issue.id)
            self._records[issue.id] = _Record(issue, current.version + 1 if current else 0)

    def get(self, issue_id: str) -> Issue | None:
        with self._lock:
            record = self._records.get(issue_id)
        return record.issue if record else None

    def _select(self, filters: ClaimFilters) -> _Record | None:
        with self._lock:
            snapshot = list(self._records.values())
        eligible = [r for r in snapshot if r.issue.can_be_claimed(filters)]
        if not eligible:
            return None
        return min(eligible, key=lambda r: sort_key(r.issue))

    def claim_one_ready_issue(
        self,
        agent: AgentName,
        filters: ClaimFilters,
        ctx: CallContext | None = None,
    ) -> Issue | None:
        ctx = ctx or CallContext()
        ctx.check()
        candidate = self._select(filters)
        if candidate is None:
            return None
        claimed, _ = candidate.issue.claim(agent, self._clock.now())
        with self._lock:
            current = self._records.get(claimed.id)
            if current is None or current.version != candidate.version:
                LOG.debug("Issue %s changed since selection, claim lost", claimed.id)
                return None
            ctx.check()
            self._records[claimed.id] = _Record(claimed, current.version + 1)
        return claimed

    def find_one_ready_issue(
        self,
        filters: ClaimFilters,
        ctx: CallContext | None = None,
    ) -> Issue | None:
        ctx = ctx or CallContext()
        ctx.check()
        candidate = self._select(filters)
        return candidate.issue if candidate else None
