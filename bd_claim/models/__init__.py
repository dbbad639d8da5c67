"""Domain model for claiming: issues, filters, agent names, events (Pydantic)."""

from bd_claim.models.events import ClaimFailed, ErrorCode, IssueClaimed, NoIssueAvailable
from bd_claim.models.issue import Issue, sort_key
from bd_claim.models.types import (
    MAX_AGENT_NAME_LENGTH,
    AgentName,
    ClaimFilters,
    IssueId,
    IssueStatus,
    LabelSet,
    Priority,
)

__all__ = [
    "MAX_AGENT_NAME_LENGTH",
    "AgentName",
    "ClaimFailed",
    "ClaimFilters",
    "ErrorCode",
    "Issue",
    "IssueClaimed",
    "IssueId",
    "IssueStatus",
    "LabelSet",
    "NoIssueAvailable",
    "Priority",
    "sort_key",
]
