"""Rendering of claim results for the CLI: JSON (compact or indented) or human text."""

import json
from typing import TextIO

from bd_claim.services import ClaimIssueResult

EXIT_OK = 0
EXIT_ERROR = 1


def exit_code(result: ClaimIssueResult) -> int:
    """0 for ok (with or without an issue), 1 for errors."""
    return EXIT_OK if result.ok else EXIT_ERROR


def render_json(result: ClaimIssueResult, pretty: bool = False) -> str:
    return json.dumps(result.to_dict(), indent=2 if pretty else None, ensure_ascii=False)


def render_human(result: ClaimIssueResult) -> str:
    if not result.ok:
        code = result.error.code if result.error else "UNEXPECTED"
        message = result.error.message if result.error else ""
        return f"Error: [{code}] {message}"
    issue = result.issue
    if issue is None:
        return f"No issue available for agent '{result.agent}'"
    lines = [
        f"Claimed issue {issue.id}: {issue.title}",
        f"  Status: {issue.status}",
        f"  Assignee: {issue.assignee or ''}",
        f"  Priority: {issue.priority}",
    ]
    if issue.labels:
        lines.append(f"  Labels: {', '.join(issue.labels)}")
    return "\n".join(lines)


def write_result(result: ClaimIssueResult, out: TextIO, *, human: bool = False, pretty: bool = False) -> int:
    """Write result to out and return the process exit code."""
    text = render_human(result) if human else render_json(result, pretty=pretty)
    out.write(text + "\n")
    return exit_code(result)
