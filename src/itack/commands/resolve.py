"""Shared tracker resolution helpers for commands."""

from __future__ import annotations

from pathlib import Path

from .. import config
from ..errors import ValidationFailedError
from ..project import discover_project
from ..tracker import IssueTracker


def resolve_tracker(start: Path | None = None) -> IssueTracker:
    """Build a tracker for the repository containing the working directory."""
    return IssueTracker(discover_project(start or Path.cwd()))


def resolve_claim_assignee(tracker: IssueTracker, explicit: str | None) -> str:
    """Return the assignee for a claim or fail with a hint."""
    assignee = config.resolve_assignee(tracker.project.config, explicit)
    if not assignee:
        raise ValidationFailedError(
            "no assignee given",
            recovery_hint="pass an assignee, set ITACK_ASSIGNEE or default_assignee in the config",
        )
    return assignee


def parse_issue_ids(values: list[str] | None) -> list[int]:
    """Parse issue ids such as ``3`` or ``#3``.

    Example:
        >>> parse_issue_ids(["#3", "5"])
        [3, 5]
    """
    ids: list[int] = []
    for value in values or []:
        text = str(value).strip().lstrip("#")
        if not text.isdigit() or int(text) < 1:
            raise ValidationFailedError(f"invalid issue id: {value!r}")
        ids.append(int(text))
    return ids
