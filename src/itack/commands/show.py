"""Implementations for the read-only ``show``, ``list``, ``search`` and ``log`` commands."""

from __future__ import annotations

from .. import render
from ..models import Status
from .resolve import resolve_tracker


def show_issue(args: object) -> None:
    """Show one issue.

    Example:
        $ itack show 3 --json
    """
    issue = resolve_tracker().show(getattr(args, "id"))
    if getattr(args, "json", False):
        render.say_json(render.issue_payload(issue, include_body=True))
        return
    render.render_issue(issue)


def list_issues(args: object) -> None:
    """List issues sorted by status, then id.

    Example:
        $ itack list --status open
    """
    status = getattr(args, "status", None)
    issues = resolve_tracker().list_issues(
        status=Status(status) if status else None,
        epic=getattr(args, "epic", None),
        assignee=getattr(args, "assignee", None),
    )
    if getattr(args, "json", False):
        render.say_json([render.issue_payload(issue) for issue in issues])
        return
    render.render_issues(issues)


def search_issues(args: object) -> None:
    """Search titles and bodies.

    Example:
        $ itack search login --all-branches
    """
    scope = "all-branches" if getattr(args, "all_branches", False) else "data"
    issues = resolve_tracker().search(getattr(args, "query"), scope=scope)
    if getattr(args, "json", False):
        render.say_json([render.issue_payload(issue) for issue in issues])
        return
    render.render_issues(issues)


def show_history(args: object) -> None:
    """Show the data branch commits that wrote an issue.

    Example:
        $ itack log 3
    """
    commits = resolve_tracker().history(getattr(args, "id"))
    if getattr(args, "json", False):
        render.say_json(render.history_payload(commits))
        return
    render.render_history(commits)
