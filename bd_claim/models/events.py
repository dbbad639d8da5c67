"""Domain events and the claim failure error."""

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from bd_claim.models.types import ClaimFilters


class ErrorCode(StrEnum):
    """Failure kinds reported to callers; values are the wire codes."""

    DB_NOT_FOUND = "DB_NOT_FOUND"
    SCHEMA_INCOMPATIBLE = "SCHEMA_INCOMPATIBLE"
    SQLITE_BUSY = "SQLITE_BUSY"
    WORKSPACE_NOT_FOUND = "WORKSPACE_NOT_FOUND"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    UNEXPECTED = "UNEXPECTED"


class IssueClaimed(BaseModel):
    """Emitted when an issue is successfully claimed."""

    model_config = ConfigDict(frozen=True)

    issue_id: str
    agent: str
    claimed_at: datetime


class NoIssueAvailable(BaseModel):
    """Emitted when no eligible issue is found."""

    model_config = ConfigDict(frozen=True)

    agent: str
    filters: ClaimFilters
    checked_at: datetime


class ClaimFailed(Exception):
    """Raised when a claim attempt fails for a technical reason.

    Absence of an eligible issue is never a ClaimFailed.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        agent: str | None = None,
        occurred_at: datetime | None = None,
    ) -> None:
        super().__init__(f"{code}: {message}")
        self.code = ErrorCode(code)
        self.message = message
        self.agent = agent
        self.occurred_at = occurred_at or datetime.now(UTC)

    @property
    def retryable(self) -> bool:
        return self.code is ErrorCode.SQLITE_BUSY

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"
