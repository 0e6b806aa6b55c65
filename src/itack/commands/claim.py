"""Implementations for ownership and status commands.

``claim``, ``release``, ``done``, ``wont-fix`` and ``session`` all go through
the claim arbitrator, so a lost race surfaces as a conflict (exit code 2).
"""

from __future__ import annotations

from .. import log, render
from ..models import Issue
from .resolve import parse_issue_ids, resolve_claim_assignee, resolve_tracker


def _report(args: object, issue: Issue, message: str) -> None:
    if getattr(args, "json", False):
        render.say_json(render.issue_payload(issue))
        return
    log.success(message)


def claim_issue(args: object) -> None:
    """Claim an open issue.

    Example:
        $ itack claim 3 agent-1 --session s-42
    """
    tracker = resolve_tracker()
    assignee = resolve_claim_assignee(tracker, getattr(args, "assignee", None))
    issue = tracker.claim(
        getattr(args, "id"),
        assignee,
        getattr(args, "session", None),
        expected_revision=getattr(args, "revision", None),
    )
    _report(args, issue, f"Claimed issue #{issue.id} for {issue.assignee}")


def release_issue(args: object) -> None:
    """Release a claimed issue back to open.

    Example:
        $ itack release 3
    """
    issue = resolve_tracker().release(
        getattr(args, "id"), expected_revision=getattr(args, "revision", None)
    )
    _report(args, issue, f"Released issue #{issue.id}")


def complete_issue(args: object) -> None:
    """Mark a claimed issue as done.

    Example:
        $ itack done 3
    """
    issue = resolve_tracker().done(
        getattr(args, "id"), expected_revision=getattr(args, "revision", None)
    )
    _report(args, issue, f"Marked issue #{issue.id} as done")


def close_issue(args: object) -> None:
    """Close an open or claimed issue as wont-fix.

    Example:
        $ itack wont-fix 3
    """
    issue = resolve_tracker().wont_fix(
        getattr(args, "id"), expected_revision=getattr(args, "revision", None)
    )
    _report(args, issue, f"Marked issue #{issue.id} as wont-fix")


def set_session(args: object) -> None:
    """Attach or clear the session id on a claimed issue.

    Example:
        $ itack session 3 s-42
    """
    session = None if getattr(args, "clear", False) else getattr(args, "session", None)
    issue = resolve_tracker().set_session(getattr(args, "id"), session)
    if issue.session:
        _report(args, issue, f"Issue #{issue.id} session set to {issue.session}")
    else:
        _report(args, issue, f"Issue #{issue.id} session cleared")


def _format_dependencies(issue: Issue) -> str:
    if not issue.depends_on:
        return "nothing"
    return ", ".join(f"#{dep}" for dep in issue.depends_on)


def add_dependencies(args: object) -> None:
    """Record that an issue waits on other issues.

    Example:
        $ itack depend 5 3 4
    """
    issue = resolve_tracker().depend(getattr(args, "id"), parse_issue_ids(getattr(args, "deps")))
    _report(args, issue, f"Issue #{issue.id} now depends on: {_format_dependencies(issue)}")


def remove_dependencies(args: object) -> None:
    """Drop dependencies from an issue.

    Example:
        $ itack undepend 5 3
    """
    issue = resolve_tracker().undepend(
        getattr(args, "id"), parse_issue_ids(getattr(args, "deps"))
    )
    _report(args, issue, f"Issue #{issue.id} now depends on: {_format_dependencies(issue)}")
