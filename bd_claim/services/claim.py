"""Claim use case: run a claim or dry-run against a ClaimStore and report the outcome.

The store does the atomic work; this layer picks claim vs. preview, turns
store failures into error results and emits observability events. It
always returns a ClaimIssueResult and never raises for store problems.
"""

import logging
from typing import Any, Mapping

from bd_claim.models import ClaimFailed, ClaimFilters, ErrorCode, Issue, IssueClaimed, NoIssueAvailable
from bd_claim.ports import ClaimStore, Clock, EventLogger
from bd_claim.services.schemas import (
    STATUS_OK,
    ClaimIssueRequest,
    ClaimIssueResult,
    FiltersDTO,
    IssueDTO,
)

LOG = logging.getLogger("bd_claim.services.claim")


class ClaimIssueUseCase:
    """Claims (or previews) one ready issue for an agent."""

    def __init__(self, store: ClaimStore, clock: Clock, logger: EventLogger) -> None:
        self._store = store
        self._clock = clock
        self._logger = logger

    def execute(self, request: ClaimIssueRequest) -> ClaimIssueResult:
        """Run the request and return a terminal result (ok or error)."""
        agent = str(request.agent)
        self._emit("info", "claim_attempt_started", {"agent": agent, "dry_run": request.dry_run})

        if request.dry_run:
            return self._execute_dry_run(request)

        try:
            issue = self._store.claim_one_ready_issue(request.agent, request.filters, request.ctx)
        except Exception as e:
            return self._handle_error(agent, request.filters, e)

        if issue is None:
            event = NoIssueAvailable(agent=agent, filters=request.filters, checked_at=self._clock.now())
            self._emit(
                "info",
                "no_issue_available",
                {"agent": agent, "checked_at": event.checked_at.isoformat()},
            )
            return self._ok(agent, None, request.filters)

        claimed = IssueClaimed(issue_id=issue.id, agent=agent, claimed_at=issue.updated_at or self._clock.now())
        self._emit(
            "info",
            "issue_claimed",
            {"agent": agent, "issue_id": claimed.issue_id, "claimed_at": claimed.claimed_at.isoformat()},
        )
        return self._ok(agent, issue, request.filters)

    def _execute_dry_run(self, request: ClaimIssueRequest) -> ClaimIssueResult:
        agent = str(request.agent)
        try:
            issue = self._store.find_one_ready_issue(request.filters, request.ctx)
        except Exception as e:
            return self._handle_error(agent, request.filters, e)
        self._emit(
            "info",
            "dry_run_complete",
            {"agent": agent, "found_issue": issue is not None, "issue_id": issue.id if issue else None},
        )
        return self._ok(agent, issue, request.filters)

    def _handle_error(self, agent: str, filters: ClaimFilters, err: Exception) -> ClaimIssueResult:
        if isinstance(err, ClaimFailed):
            self._emit("error", "claim_failed", {"agent": agent, "code": str(err.code), "error": err.message})
            return ClaimIssueResult.failure(agent, err.code, err.message, filters)
        self._emit("error", "unexpected_error", {"agent": agent, "error": str(err)})
        return ClaimIssueResult.failure(agent, ErrorCode.UNEXPECTED, str(err), filters)

    @staticmethod
    def _ok(agent: str, issue: Issue | None, filters: ClaimFilters) -> ClaimIssueResult:
        return ClaimIssueResult(
            status=STATUS_OK,
            agent=agent,
            issue=IssueDTO.from_issue(issue),
            filters=FiltersDTO.from_filters(filters),
        )

    def _emit(self, level: str, msg: str, fields: Mapping[str, Any]) -> None:
        # Observability only: a failing logger must not change the outcome
        try:
            getattr(self._logger, level)(msg, dict(fields))
        except Exception:
            LOG.debug("Event logger failed for %s", msg, exc_info=True)
