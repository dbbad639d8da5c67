"""Value types for the claiming context: ids, agent names, status, priority, labels, filters."""

import re
from enum import IntEnum, StrEnum
from typing import Annotated, Any, Iterable

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, GetCoreSchemaHandler
from pydantic_core import core_schema

MAX_AGENT_NAME_LENGTH = 64

_AGENT_NAME_RE = re.compile(r"[a-zA-Z0-9_-]+")

IssueId = str


class AgentName(str):
    """Validated agent identity.

    Trimmed, non-empty, at most 64 characters of letters, digits,
    underscore and hyphen. Use AgentName.parse to build one from raw
    input; the constructor itself does not validate.
    """

    @classmethod
    def parse(cls, raw: str | None) -> "AgentName":
        """Validate raw input and return an AgentName.

        Raises:
            ValueError: when the name is empty, too long or has invalid characters.
        """
        if raw is not None and not isinstance(raw, str):
            raise ValueError("agent name must be a string")
        name = (raw or "").strip()
        if not name:
            raise ValueError("agent name cannot be empty")
        if len(name) > MAX_AGENT_NAME_LENGTH:
            raise ValueError(f"agent name exceeds maximum length of {MAX_AGENT_NAME_LENGTH} characters")
        if not _AGENT_NAME_RE.fullmatch(name):
            raise ValueError(
                "agent name contains invalid characters; only alphanumeric, underscore, and hyphen are allowed"
            )
        return cls(name)

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: GetCoreSchemaHandler) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls.parse, serialization=core_schema.to_string_ser_schema()
        )


class IssueStatus(StrEnum):
    """Issue status as stored in the issues table."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"
    BLOCKED = "blocked"
    ARCHIVED = "archived"

    @property
    def is_claimable(self) -> bool:
        return self is IssueStatus.OPEN


class Priority(IntEnum):
    """Ordinal priority; higher is more urgent."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2


class LabelSet(frozenset):
    """Unordered, duplicate-free set of label strings."""

    def __new__(cls, labels: Iterable[str] | None = None) -> "LabelSet":
        return super().__new__(cls, labels or ())

    def contains_all(self, labels: Iterable[str]) -> bool:
        return self.issuperset(labels)

    def contains_any(self, labels: Iterable[str]) -> bool:
        return not self.isdisjoint(labels)

    def sorted(self) -> list[str]:
        return sorted(self)


def _to_label_set(value: Iterable[str] | None) -> LabelSet:
    if isinstance(value, str):
        return LabelSet([value])
    return LabelSet(value)


Labels = Annotated[LabelSet, BeforeValidator(_to_label_set)]


class ClaimFilters(BaseModel):
    """Filters a candidate issue must satisfy to be claimed.

    Immutable; label collections are normalized to sets so duplicates
    collapse and order does not matter.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    only_unassigned: bool = Field(default=False, description="Skip issues that already have an assignee")
    include_labels: Labels = Field(default_factory=LabelSet, description="Issue must carry all of these")
    exclude_labels: Labels = Field(default_factory=LabelSet, description="Issue must carry none of these")
    min_priority: int | None = Field(default=None, description="Lowest acceptable priority (inclusive)")
