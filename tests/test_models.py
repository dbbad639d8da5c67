"""Tests for bd_claim.models (AgentName, LabelSet, ClaimFilters, Issue, events)."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from bd_claim.models import (
    AgentName,
    ClaimFailed,
    ClaimFilters,
    ErrorCode,
    Issue,
    IssueStatus,
    LabelSet,
    Priority,
    sort_key,
)

NOW = datetime(2025, 3, 1, 9, 30, tzinfo=UTC)


class TestAgentName:
    """AgentName.parse validation."""

    @pytest.mark.parametrize("raw", ["agent1", "my-agent", "my_agent", "Agent-1_b", "a" * 64])
    def test_valid_names(self, raw: str) -> None:
        """Letters, digits, underscore and hyphen up to 64 chars are accepted."""
        assert AgentName.parse(raw) == raw

    def test_trims_whitespace(self) -> None:
        """Surrounding whitespace is removed."""
        assert AgentName.parse("  agent1  ") == "agent1"

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_empty_rejected(self, raw: str | None) -> None:
        """Empty or blank names are rejected."""
        with pytest.raises(ValueError, match="cannot be empty"):
            AgentName.parse(raw)

    def test_too_long_rejected(self) -> None:
        """65 characters exceed the maximum."""
        with pytest.raises(ValueError, match="maximum length of 64"):
            AgentName.parse("a" * 65)

    @pytest.mark.parametrize("raw", ["my agent", "agent@1", "agent.1", "agent/1"])
    def test_invalid_characters_rejected(self, raw: str) -> None:
        """Anything outside [a-zA-Z0-9_-] is rejected."""
        with pytest.raises(ValueError, match="invalid characters"):
            AgentName.parse(raw)

    def test_pydantic_field_validates(self) -> None:
        """AgentName used as a model field runs the same validation."""
        from bd_claim.services import ClaimIssueRequest

        assert ClaimIssueRequest(agent=" worker-7 ").agent == "worker-7"
        with pytest.raises(ValidationError):
            ClaimIssueRequest(agent="bad name")


class TestLabelSet:
    """LabelSet semantics."""

    def test_duplicates_collapse(self) -> None:
        """Duplicate labels count once."""
        assert len(LabelSet(["a", "a", "b"])) == 2

    def test_contains_all_and_any(self) -> None:
        """contains_all and contains_any behave like subset and intersection."""
        labels = LabelSet(["x", "y"])
        assert labels.contains_all(["x"])
        assert labels.contains_all([])
        assert not labels.contains_all(["x", "z"])
        assert labels.contains_any(["z", "y"])
        assert not labels.contains_any(["z"])
        assert not labels.contains_any([])

    def test_sorted(self) -> None:
        """sorted() returns labels in lexical order."""
        assert LabelSet(["b", "c", "a"]).sorted() == ["a", "b", "c"]

    def test_filters_normalize_labels(self) -> None:
        """ClaimFilters turns label lists into sets."""
        filters = ClaimFilters(include_labels=["b", "a", "b"], exclude_labels="x")
        assert filters.include_labels == LabelSet(["a", "b"])
        assert filters.exclude_labels == LabelSet(["x"])

    def test_filters_are_immutable(self) -> None:
        """ClaimFilters is frozen."""
        filters = ClaimFilters()
        with pytest.raises(ValidationError):
            filters.only_unassigned = True  # type: ignore[misc]


class TestIssueEligibility:
    """Issue.is_ready and Issue.can_be_claimed."""

    def test_open_unblocked_is_ready(self) -> None:
        """An open, unblocked issue is ready."""
        assert Issue(id="a").is_ready()

    @pytest.mark.parametrize(
        "status", [IssueStatus.IN_PROGRESS, IssueStatus.CLOSED, IssueStatus.BLOCKED, IssueStatus.ARCHIVED]
    )
    def test_other_statuses_not_ready(self, status: IssueStatus) -> None:
        """Only open issues are ready."""
        assert not Issue(id="a", status=status).is_ready()

    def test_blocked_not_ready(self) -> None:
        """A blocked open issue is not ready."""
        assert not Issue(id="a", blocked=True).is_ready()

    def test_no_filters_accepts_ready_issue(self) -> None:
        """Default filters accept any ready issue, assigned or not."""
        assert Issue(id="a", assignee="someone").can_be_claimed(ClaimFilters())

    def test_only_unassigned(self) -> None:
        """only_unassigned rejects assigned issues."""
        filters = ClaimFilters(only_unassigned=True)
        assert Issue(id="a").can_be_claimed(filters)
        assert not Issue(id="a", assignee="bob").can_be_claimed(filters)

    def test_include_labels_require_all(self) -> None:
        """Every include label must be present."""
        filters = ClaimFilters(include_labels=["backend", "urgent"])
        assert Issue(id="a", labels=["backend", "urgent", "x"]).can_be_claimed(filters)
        assert not Issue(id="a", labels=["backend"]).can_be_claimed(filters)

    def test_exclude_labels_reject_any(self) -> None:
        """Any exclude label disqualifies."""
        filters = ClaimFilters(exclude_labels=["frontend", "wip"])
        assert Issue(id="a", labels=["backend"]).can_be_claimed(filters)
        assert not Issue(id="a", labels=["backend", "wip"]).can_be_claimed(filters)

    def test_include_and_exclude_together(self) -> None:
        """With include X and exclude Y, only issues with X and without Y pass."""
        filters = ClaimFilters(include_labels=["X"], exclude_labels=["Y"])
        assert Issue(id="1", labels=["X"]).can_be_claimed(filters)
        assert not Issue(id="2", labels=["X", "Y"]).can_be_claimed(filters)
        assert not Issue(id="3", labels=["Y"]).can_be_claimed(filters)
        assert not Issue(id="4").can_be_claimed(filters)

    def test_min_priority_inclusive(self) -> None:
        """Priority equal to the minimum passes."""
        filters = ClaimFilters(min_priority=Priority.MEDIUM)
        assert Issue(id="a", priority=Priority.HIGH).can_be_claimed(filters)
        assert Issue(id="a", priority=Priority.MEDIUM).can_be_claimed(filters)
        assert not Issue(id="a", priority=Priority.LOW).can_be_claimed(filters)

    def test_not_ready_short_circuits(self) -> None:
        """A closed issue fails regardless of matching filters."""
        filters = ClaimFilters(include_labels=["x"], min_priority=0)
        assert not Issue(id="a", status=IssueStatus.CLOSED, labels=["x"]).can_be_claimed(filters)


class TestIssueClaim:
    """Issue.claim and ordering."""

    def test_claim_returns_updated_copy_and_event(self) -> None:
        """claim leaves the original untouched and reports the claim."""
        issue = Issue(id="bd-1", title="Fix it")
        claimed, event = issue.claim(AgentName.parse("agent-1"), NOW)
        assert issue.status is IssueStatus.OPEN
        assert issue.assignee is None
        assert claimed.status is IssueStatus.IN_PROGRESS
        assert claimed.assignee == "agent-1"
        assert claimed.updated_at == NOW
        assert event.issue_id == "bd-1"
        assert event.agent == "agent-1"
        assert event.claimed_at == NOW

    def test_sort_key_priority_then_age_then_id(self) -> None:
        """Higher priority first, then older, then lower id."""
        older = datetime(2025, 1, 1, tzinfo=UTC)
        newer = datetime(2025, 1, 2, tzinfo=UTC)
        issues = [
            Issue(id="c", priority=1, created_at=older),
            Issue(id="b", priority=2, created_at=newer),
            Issue(id="a", priority=1, created_at=newer),
            Issue(id="d", priority=1, created_at=older),
        ]
        assert [i.id for i in sorted(issues, key=sort_key)] == ["b", "c", "d", "a"]


class TestClaimFailed:
    """ClaimFailed error."""

    def test_str_and_fields(self) -> None:
        """str() is 'CODE: message' and fields are kept."""
        err = ClaimFailed(ErrorCode.DB_NOT_FOUND, "missing", agent="a1")
        assert str(err) == "DB_NOT_FOUND: missing"
        assert err.code is ErrorCode.DB_NOT_FOUND
        assert err.message == "missing"
        assert err.agent == "a1"
        assert err.occurred_at.tzinfo is not None

    def test_only_busy_is_retryable(self) -> None:
        """SQLITE_BUSY is the only retryable code."""
        assert ClaimFailed(ErrorCode.SQLITE_BUSY, "x").retryable
        for code in ErrorCode:
            if code is not ErrorCode.SQLITE_BUSY:
                assert not ClaimFailed(code, "x").retryable
