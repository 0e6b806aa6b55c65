"""Terminal rendering for issues, boards and diagnostics."""

from __future__ import annotations

import datetime as dt
import json

from rich import box
from rich.table import Table

from . import log
from .config import format_timestamp
from .doctor import Diagnostic
from .git import CommitInfo
from .io import say
from .models import Issue
from .tracker import BoardSummary


def _display_value(value: object) -> str:
    """Return a table cell for ``value``.

    Example:
        >>> _display_value(None)
        '-'
        >>> _display_value((1, 2))
        '1, 2'
    """
    if value is None or value == "" or value == ():
        return "-"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    if isinstance(value, dt.datetime):
        return format_timestamp(value)
    return str(value)


def issue_payload(issue: Issue, *, include_body: bool = False) -> dict[str, object]:
    """Return the JSON form of an issue."""
    payload = issue.model_dump(mode="json", exclude={"body"})
    payload["status"] = issue.status.value
    payload["created_at"] = format_timestamp(issue.created_at)
    payload["updated_at"] = format_timestamp(issue.updated_at)
    payload["depends_on"] = list(issue.depends_on)
    payload["revision"] = issue.revision
    if include_body:
        payload["body"] = issue.body
    return payload


def say_json(payload: object) -> None:
    say(json.dumps(payload, indent=2, sort_keys=True))


def render_issues(issues: list[Issue]) -> None:
    if not issues:
        say("No issues found.")
        return
    table = Table(box=box.SIMPLE)
    table.add_column("ID", justify="right", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Title", overflow="fold")
    table.add_column("Epic", no_wrap=True)
    table.add_column("Assignee", no_wrap=True)
    table.add_column("Depends On", no_wrap=True)
    table.add_column("Session", no_wrap=True)
    for issue in issues:
        table.add_row(
            str(issue.id),
            issue.status.value,
            issue.title,
            _display_value(issue.epic),
            _display_value(issue.assignee),
            _display_value(issue.depends_on),
            _display_value(issue.session),
        )
    log.console().print(table)


def render_issue(issue: Issue) -> None:
    table = Table(title=f"Issue #{issue.id}", box=box.SIMPLE, show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value", overflow="fold")
    table.add_row("Title", issue.title)
    table.add_row("Status", issue.status.value)
    table.add_row("Epic", _display_value(issue.epic))
    table.add_row("Assignee", _display_value(issue.assignee))
    table.add_row("Session", _display_value(issue.session))
    table.add_row("Branch", _display_value(issue.branch))
    table.add_row("Depends On", _display_value(issue.depends_on))
    table.add_row("Created", _display_value(issue.created_at))
    table.add_row("Updated", _display_value(issue.updated_at))
    table.add_row("Revision", _display_value(issue.revision))
    console = log.console()
    console.print(table)
    if issue.body.strip():
        console.print("Description:", style="bold")
        console.print(issue.body, markup=False)


def board_payload(summary: BoardSummary) -> dict[str, object]:
    return {
        "project_id": summary.project_id,
        "counts": summary.counts,
        "total": summary.total,
        "in_progress_by_assignee": summary.by_assignee,
        "issues": [issue_payload(issue) for issue in summary.issues],
    }


def render_board(summary: BoardSummary) -> None:
    console = log.console()
    overview = Table(title="Board", box=box.SIMPLE, show_header=False)
    overview.add_column("Field", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Project", summary.project_id)
    for status, count in summary.counts.items():
        overview.add_row(status, str(count))
    overview.add_row("total", str(summary.total))
    console.print(overview)
    if summary.by_assignee:
        table = Table(title="In progress", box=box.SIMPLE)
        table.add_column("Assignee", no_wrap=True)
        table.add_column("Issues", justify="right")
        for assignee, count in summary.by_assignee.items():
            table.add_row(assignee, str(count))
        console.print(table)


def diagnostic_payload(diagnostic: Diagnostic) -> dict[str, object]:
    return {
        "kind": diagnostic.kind,
        "issue_id": diagnostic.issue_id,
        "path": diagnostic.path,
        "message": diagnostic.message,
    }


def render_diagnostics(diagnostics: list[Diagnostic]) -> None:
    if not diagnostics:
        log.success("No problems found.")
        return
    table = Table(title="Diagnostics", box=box.SIMPLE)
    table.add_column("Kind", no_wrap=True)
    table.add_column("Issue", justify="right", no_wrap=True)
    table.add_column("Path", no_wrap=True)
    table.add_column("Message", overflow="fold")
    for diagnostic in diagnostics:
        table.add_row(
            diagnostic.kind,
            _display_value(diagnostic.issue_id),
            _display_value(diagnostic.path),
            diagnostic.message,
        )
    log.console().print(table)


def history_payload(commits: list[CommitInfo]) -> list[dict[str, object]]:
    return [
        {
            "hash": commit.hash,
            "timestamp": commit.timestamp,
            "author": commit.author,
            "subject": commit.subject,
        }
        for commit in commits
    ]


def render_history(commits: list[CommitInfo]) -> None:
    table = Table(box=box.SIMPLE)
    table.add_column("Commit", no_wrap=True)
    table.add_column("Date", no_wrap=True)
    table.add_column("Author", no_wrap=True)
    table.add_column("Subject", overflow="fold")
    for commit in commits:
        when = (
            format_timestamp(dt.datetime.fromtimestamp(commit.timestamp, tz=dt.timezone.utc))
            if commit.timestamp is not None
            else "-"
        )
        table.add_row(commit.hash[:12], when, commit.author, commit.subject)
    log.console().print(table)
