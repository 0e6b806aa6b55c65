"""Implementation for the ``itack create`` command."""

from __future__ import annotations

from .. import log, render
from .resolve import parse_issue_ids, resolve_tracker


def create_issue(args: object) -> None:
    """Create a new open issue.

    Args:
        args: CLI argument object with ``title``, ``body``, ``epic``,
            ``depends_on``, ``message`` and ``json`` fields.

    Example:
        $ itack create "Fix login bug" --epic auth
    """
    tracker = resolve_tracker()
    issue = tracker.create(
        getattr(args, "title"),
        body=getattr(args, "body", None),
        epic=getattr(args, "epic", None),
        depends_on=parse_issue_ids(getattr(args, "depends_on", None)),
        message=getattr(args, "message", None),
    )
    if getattr(args, "json", False):
        render.say_json(render.issue_payload(issue, include_body=True))
        return
    log.success(f"Created issue #{issue.id}: {issue.title}")
