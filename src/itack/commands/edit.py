"""Implementation for the ``itack edit`` command.

With ``--title``, ``--body`` or ``--epic`` the patch is applied directly.
Without them the record is opened in the configured editor and the saved
title, body and epic are committed.
"""

from __future__ import annotations

from .. import editor, log, render
from ..errors import ValidationFailedError
from ..issue_file import format_issue, parse_issue
from ..lifecycle import IssuePatch
from ..models import Issue
from .resolve import resolve_tracker


def _patch_from_editor(issue: Issue, edited: str) -> IssuePatch:
    updated = parse_issue(edited)
    if updated.id != issue.id:
        raise ValidationFailedError(f"edited record changed id {issue.id} to {updated.id}")
    return IssuePatch(
        title=updated.title if updated.title != issue.title else None,
        body=updated.body if updated.body != issue.body else None,
        epic=(updated.epic or "") if updated.epic != issue.epic else None,
    )


def edit_issue(args: object) -> None:
    """Edit an issue's title, body or epic.

    Example:
        $ itack edit 3 --title "Fix login bug on Safari"
    """
    tracker = resolve_tracker()
    issue_id = getattr(args, "id")
    patch = IssuePatch(
        title=getattr(args, "title", None),
        body=getattr(args, "body", None),
        epic=getattr(args, "epic", None),
    )
    expected_revision = getattr(args, "revision", None)
    if patch.is_empty:
        current = tracker.show(issue_id)
        edited = editor.edit_text(format_issue(current), tracker.project.config)
        patch = _patch_from_editor(current, edited)
        if patch.is_empty:
            log.info(f"No changes to issue #{issue_id}")
            return
        expected_revision = expected_revision or current.revision
    issue = tracker.edit(
        issue_id,
        patch,
        getattr(args, "message", None),
        expected_revision=expected_revision,
    )
    if getattr(args, "json", False):
        render.say_json(render.issue_payload(issue, include_body=True))
        return
    log.success(f"Updated issue #{issue.id}: {issue.title}")
