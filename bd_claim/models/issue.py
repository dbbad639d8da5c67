"""Issue aggregate in the claiming context and its eligibility rules."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from bd_claim.models.events import IssueClaimed
from bd_claim.models.types import AgentName, ClaimFilters, IssueId, IssueStatus, Labels, LabelSet


class Issue(BaseModel):
    """Issue as read from the store.

    Instances are immutable; a claim produces a new instance (see
    Issue.claim). ``blocked`` is computed outside this package and only
    read here.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: IssueId
    title: str = ""
    description: str = ""
    status: IssueStatus = IssueStatus.OPEN
    assignee: str | None = None
    priority: int = 0
    labels: Labels = Field(default_factory=LabelSet)
    issue_type: str = ""
    blocked: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_ready(self) -> bool:
        """Open and not blocked."""
        return self.status.is_claimable and not self.blocked

    def can_be_claimed(self, filters: ClaimFilters) -> bool:
        """Check the issue against the filters, stopping at the first failed rule.

        Store-side selection must accept and reject exactly the same issues.
        """
        if not self.is_ready():
            return False
        if filters.only_unassigned and self.assignee is not None:
            return False
        if filters.include_labels and not self.labels.contains_all(filters.include_labels):
            return False
        if filters.exclude_labels and self.labels.contains_any(filters.exclude_labels):
            return False
        if filters.min_priority is not None and self.priority < filters.min_priority:
            return False
        return True

    def claim(self, agent: AgentName, now: datetime) -> tuple["Issue", IssueClaimed]:
        """Return the issue moved to in_progress for agent, and the matching event."""
        claimed = self.model_copy(
            update={
                "status": IssueStatus.IN_PROGRESS,
                "assignee": str(agent),
                "updated_at": now,
            }
        )
        return claimed, IssueClaimed(issue_id=self.id, agent=str(agent), claimed_at=now)


def sort_key(issue: Issue) -> tuple:
    """Selection order: priority descending, then oldest, then id."""
    created = issue.created_at.timestamp() if issue.created_at else float("-inf")
    return (-issue.priority, created, issue.id)
