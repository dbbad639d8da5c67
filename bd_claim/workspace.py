"""Beads workspace discovery: the nearest .beads directory and its database."""

import logging
from pathlib import Path

from bd_claim.models import ClaimFailed, ErrorCode
from bd_claim.ports import WorkspaceDiscovery

LOG = logging.getLogger("bd_claim.workspace")

BEADS_DIR = ".beads"
DB_FILENAME = "beads.db"


class BeadsWorkspace(WorkspaceDiscovery):
    """Walks up from a directory looking for .beads/."""

    def find_workspace_root(self, cwd: Path) -> Path:
        """Return cwd or the nearest parent holding a .beads directory.

        Raises:
            ClaimFailed: WORKSPACE_NOT_FOUND when no parent has one.
        """
        start = Path(cwd).resolve()
        for candidate in (start, *start.parents):
            if (candidate / BEADS_DIR).is_dir():
                LOG.debug("Found workspace root at %s", candidate)
                return candidate
        raise ClaimFailed(
            ErrorCode.WORKSPACE_NOT_FOUND,
            f"no {BEADS_DIR} directory found in any parent directory",
        )

    def find_db_path(self, workspace_root: Path) -> Path:
        """Return the database path under workspace_root.

        Raises:
            ClaimFailed: DB_NOT_FOUND when the file does not exist.
        """
        db_path = Path(workspace_root) / BEADS_DIR / DB_FILENAME
        if not db_path.is_file():
            raise ClaimFailed(ErrorCode.DB_NOT_FOUND, f"{DB_FILENAME} not found at {db_path}")
        return db_path
