"""Request and result shapes of the claim use case (serialized as CLI JSON output)."""

from typing import Any, List, Literal

from pydantic import BaseModel, ConfigDict, Field

from bd_claim.cancel import CallContext
from bd_claim.models import AgentName, ClaimFilters, ErrorCode, Issue
from bd_claim.store.query import format_timestamp

STATUS_OK = "ok"
STATUS_ERROR = "error"


class ClaimIssueRequest(BaseModel):
    """One claim (or dry-run) request."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    agent: AgentName
    filters: ClaimFilters = Field(default_factory=ClaimFilters)
    dry_run: bool = False
    ctx: CallContext | None = Field(default=None, description="Deadline / cancellation for store calls")


class IssueDTO(BaseModel):
    """Issue as reported to callers."""

    id: str
    title: str
    status: str
    assignee: str | None = None
    priority: int
    labels: List[str] = Field(default_factory=list)
    issue_type: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_issue(cls, issue: Issue | None) -> "IssueDTO | None":
        if issue is None:
            return None
        return cls(
            id=issue.id,
            title=issue.title,
            status=str(issue.status),
            assignee=issue.assignee,
            priority=int(issue.priority),
            labels=issue.labels.sorted(),
            issue_type=issue.issue_type or None,
            created_at=format_timestamp(issue.created_at) if issue.created_at else None,
            updated_at=format_timestamp(issue.updated_at) if issue.updated_at else None,
        )


class FiltersDTO(BaseModel):
    """Filters echoed back in the result."""

    only_unassigned: bool = False
    include_labels: List[str] = Field(default_factory=list)
    exclude_labels: List[str] = Field(default_factory=list)
    min_priority: int | None = None

    @classmethod
    def from_filters(cls, filters: ClaimFilters) -> "FiltersDTO":
        return cls(
            only_unassigned=filters.only_unassigned,
            include_labels=sorted(filters.include_labels),
            exclude_labels=sorted(filters.exclude_labels),
            min_priority=filters.min_priority,
        )


class ClaimErrorDTO(BaseModel):
    code: str
    message: str


class ClaimIssueResult(BaseModel):
    """Terminal outcome of a claim request.

    status "ok" with issue None means no issue was available; that is not
    an error and must not be reported as one.
    """

    status: Literal["ok", "error"]
    agent: str
    issue: IssueDTO | None = None
    filters: FiltersDTO | None = None
    error: ClaimErrorDTO | None = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    @classmethod
    def failure(
        cls,
        agent: str,
        code: ErrorCode,
        message: str,
        filters: ClaimFilters | None = None,
    ) -> "ClaimIssueResult":
        return cls(
            status=STATUS_ERROR,
            agent=agent,
            issue=None,
            filters=FiltersDTO.from_filters(filters) if filters is not None else None,
            error=ClaimErrorDTO(code=str(code), message=message),
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict; issue is always present, filters/error/min_priority only when set."""
        data = self.model_dump(mode="json")
        if data.get("issue"):
            data["issue"] = {k: v for k, v in data["issue"].items() if k != "issue_type" or v}
        for key in ("filters", "error"):
            if data.get(key) is None:
                data.pop(key, None)
        if "filters" in data and data["filters"].get("min_priority") is None:
            data["filters"].pop("min_priority", None)
        return data
