"""bd-claim entry point.

Atomically claims one ready issue from the beads database for an agent and
prints the result. Usage: bd-claim --agent NAME [filters] [--dry-run].
"""

import argparse
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

import yaml
from pydantic import ValidationError

from bd_claim.cancel import CallContext
from bd_claim.clock import SystemClock
from bd_claim.config import DEFAULT_CONFIG_PATH, AppConfig, load_config
from bd_claim.logging import ClaimLogging, StdlibEventLogger
from bd_claim.models import AgentName, ClaimFailed, ClaimFilters, ErrorCode, Priority
from bd_claim.output import EXIT_ERROR, write_result
from bd_claim.services import ClaimIssueRequest, ClaimIssueResult, ClaimIssueUseCase
from bd_claim.store import MIN_COMPATIBLE_BD_VERSION, SQLiteIssueStore
from bd_claim.workspace import BeadsWorkspace

LOG = logging.getLogger("bd_claim.main")

try:
    __version__ = version("bd-claim")
except PackageNotFoundError:
    __version__ = "dev"


class UsageError(Exception):
    """Command-line flags could not be parsed."""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI flags.

    Raises:
        UsageError: on unknown flags or bad values.
    """
    argv = argv if argv is not None else sys.argv[1:]
    parser = _ArgumentParser(
        prog="bd-claim",
        description="Atomically claim one ready beads issue for an agent",
    )
    parser.add_argument("--agent", help="Agent name (required)")
    parser.add_argument(
        "--label",
        action="append",
        dest="labels",
        default=None,
        help="Include issues with this label (repeatable)",
    )
    parser.add_argument(
        "--exclude-label",
        action="append",
        dest="exclude_labels",
        default=None,
        help="Exclude issues with this label (repeatable)",
    )
    parser.add_argument(
        "--min-priority",
        type=int,
        default=None,
        help="Minimum priority level (0=low, 1=medium, 2=high)",
    )
    parser.add_argument("--only-unassigned", action="store_true", help="Only consider unassigned issues")
    parser.add_argument("--workspace", type=Path, help="Override workspace root path")
    parser.add_argument("--db", type=Path, help="Override database path")
    parser.add_argument("--dry-run", action="store_true", help="Show which issue would be claimed without updating")
    parser.add_argument("--json", action="store_true", help="Output in JSON format (default)")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    parser.add_argument("--human", action="store_true", help="Human-friendly output")
    parser.add_argument("--timeout-ms", type=int, default=None, help="Database busy timeout in milliseconds")
    parser.add_argument("--log-level", help="Log level (debug, info, warn, error)")
    parser.add_argument("--config", "-c", type=Path, help="Path to YAML config file")
    parser.add_argument(
        "--skip-version-check",
        action="store_true",
        help="Skip database version compatibility check",
    )
    parser.add_argument("--version", action="store_true", help="Show version")
    return parser.parse_args(argv)


def _config_path(args: argparse.Namespace) -> Path:
    if args.config is not None:
        return args.config
    if args.workspace is not None:
        return args.workspace / DEFAULT_CONFIG_PATH
    return DEFAULT_CONFIG_PATH


def _resolve_db_path(args: argparse.Namespace, config: AppConfig, events: StdlibEventLogger) -> Path:
    override = args.db or config.store.db_path
    if override is not None:
        events.debug("workspace_discovery", {"db_path": str(override), "source": "override"})
        return Path(override)
    cwd = args.workspace or Path.cwd()
    discovery = BeadsWorkspace()
    root = discovery.find_workspace_root(cwd)
    db_path = discovery.find_db_path(root)
    events.debug(
        "workspace_discovery",
        {"cwd": str(cwd), "workspace_root": str(root), "db_path": str(db_path), "source": "auto"},
    )
    return db_path


def _build_filters(args: argparse.Namespace, config: AppConfig) -> ClaimFilters:
    min_priority = args.min_priority if args.min_priority is not None else config.claim.min_priority
    if min_priority is not None and not Priority.LOW <= min_priority <= Priority.HIGH:
        raise ClaimFailed(
            ErrorCode.INVALID_ARGUMENT,
            f"min priority must be between {int(Priority.LOW)} and {int(Priority.HIGH)}, got {min_priority}",
        )
    return ClaimFilters(
        only_unassigned=args.only_unassigned or config.claim.only_unassigned,
        include_labels=args.labels if args.labels is not None else config.claim.labels,
        exclude_labels=args.exclude_labels if args.exclude_labels is not None else config.claim.exclude_labels,
        min_priority=min_priority,
    )


def run(args: argparse.Namespace, config: AppConfig) -> ClaimIssueResult:
    """Resolve the database, check its version and run one claim (or dry-run)."""
    raw_agent = args.agent or config.claim.agent
    if not raw_agent:
        return ClaimIssueResult.failure("", ErrorCode.INVALID_ARGUMENT, "--agent flag is required")
    try:
        agent = AgentName.parse(raw_agent)
    except ValueError as e:
        return ClaimIssueResult.failure(raw_agent, ErrorCode.INVALID_ARGUMENT, str(e))

    log_config = config.logging
    if args.log_level:
        log_config = log_config.model_copy(update={"level": args.log_level.strip().upper()})
    ClaimLogging(log_config).setup()
    events = StdlibEventLogger()

    try:
        filters = _build_filters(args, config)
        db_path = _resolve_db_path(args, config, events)
    except ClaimFailed as e:
        return ClaimIssueResult.failure(raw_agent, e.code, e.message)

    busy_timeout_ms = args.timeout_ms if args.timeout_ms is not None else config.store.busy_timeout_ms
    try:
        store = SQLiteIssueStore(
            db_path,
            busy_timeout_ms,
            journal_mode=config.store.journal_mode or None,
            max_attempts=config.store.max_attempts,
            base_backoff=config.store.base_backoff_ms / 1000,
        )
    except ClaimFailed as e:
        return ClaimIssueResult.failure(raw_agent, e.code, e.message)
    except ValueError as e:
        return ClaimIssueResult.failure(raw_agent, ErrorCode.INVALID_ARGUMENT, str(e))

    with store:
        if not (args.skip_version_check or config.store.skip_version_check):
            try:
                store.check_version_compatibility()
            except ClaimFailed as e:
                events.warn("version_check_failed", {"error": str(e), "min_version": MIN_COMPATIBLE_BD_VERSION})
                return ClaimIssueResult.failure(raw_agent, e.code, e.message)

        request = ClaimIssueRequest(
            agent=agent,
            filters=filters,
            dry_run=args.dry_run,
            ctx=CallContext.with_timeout(config.claim.timeout_seconds),
        )
        return ClaimIssueUseCase(store, SystemClock(), events).execute(request)


def main(argv: list[str] | None = None) -> int:
    """Entry point: parse flags, claim, print the result; returns the exit code."""
    try:
        args = parse_args(argv)
    except UsageError as e:
        sys.stderr.write(f"Error parsing flags: {e}\n")
        return EXIT_ERROR

    if args.version:
        print(f"bd-claim version {__version__}")
        return 0

    agent = args.agent or ""
    try:
        config = load_config(_config_path(args))
    except (yaml.YAMLError, ValidationError, ValueError) as e:
        result = ClaimIssueResult.failure(agent, ErrorCode.INVALID_ARGUMENT, f"invalid config: {e}")
        return write_result(result, sys.stdout, human=args.human, pretty=args.pretty)

    try:
        result = run(args, config)
    except KeyboardInterrupt:
        result = ClaimIssueResult.failure(agent, ErrorCode.UNEXPECTED, "operation cancelled")
    except Exception as e:
        LOG.exception("Fatal error: %s", e)
        result = ClaimIssueResult.failure(agent, ErrorCode.UNEXPECTED, str(e))

    return write_result(result, sys.stdout, human=args.human, pretty=args.pretty)


if __name__ == "__main__":
    sys.exit(main())
