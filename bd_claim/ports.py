"""Abstract ports consumed by the claim engine and the CLI."""

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping

from bd_claim.cancel import CallContext
from bd_claim.models import AgentName, ClaimFilters, Issue


class ClaimStore(ABC):
    """Issue persistence as seen by the claim engine."""

    @abstractmethod
    def claim_one_ready_issue(
        self,
        agent: AgentName,
        filters: ClaimFilters,
        ctx: CallContext | None = None,
    ) -> Issue | None:
        """Atomically claim a single ready issue.

        Returns the claimed issue (already in_progress and assigned to
        agent), or None when nothing was available.

        Raises:
            ClaimFailed: on store errors.
        """
        ...

    @abstractmethod
    def find_one_ready_issue(
        self,
        filters: ClaimFilters,
        ctx: CallContext | None = None,
    ) -> Issue | None:
        """Find the issue a claim would pick, without changing it."""
        ...


class Clock(ABC):
    """Source of the current instant."""

    @abstractmethod
    def now(self) -> datetime: ...


class EventLogger(ABC):
    """Structured logger: a message plus key/value fields at four severities."""

    @abstractmethod
    def debug(self, msg: str, fields: Mapping[str, Any] | None = None) -> None: ...

    @abstractmethod
    def info(self, msg: str, fields: Mapping[str, Any] | None = None) -> None: ...

    @abstractmethod
    def warn(self, msg: str, fields: Mapping[str, Any] | None = None) -> None: ...

    @abstractmethod
    def error(self, msg: str, fields: Mapping[str, Any] | None = None) -> None: ...


class WorkspaceDiscovery(ABC):
    """Locates the beads workspace and its database."""

    @abstractmethod
    def find_workspace_root(self, cwd: Path) -> Path:
        """Return the nearest directory (cwd or a parent) holding the marker directory."""
        ...

    @abstractmethod
    def find_db_path(self, workspace_root: Path) -> Path:
        """Return the database path inside workspace_root."""
        ...
