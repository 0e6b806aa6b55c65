"""Read-only consistency checks across the data branch and its projection."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from . import git, lifecycle, log, paths
from .config import utc_now
from .issue_file import IssueFileError, parse_issue
from .models import DEFAULT_STALE_AFTER_HOURS, Issue, Status
from .storage import IssueStore, Snapshot

DiagnosticKind = Literal[
    "orphaned-working-file",
    "missing-projection",
    "projection-drift",
    "duplicate-id",
    "invalid-state-record",
    "stale-lock",
]


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    issue_id: int | None = None
    path: str | None = None

    @property
    def sort_key(self) -> tuple[int, str, str]:
        return (self.issue_id or 0, self.kind, self.path or "")


@dataclass(frozen=True)
class _ProjectedFile:
    path: str
    issue_id: int | None
    issue: Issue | None


class ConsistencyChecker:
    """Compare the data branch with the working branch or directory.

    The projection is read from the working directory when the merge branch
    is checked out in ``repo_root`` and from the merge branch tree otherwise.
    Projection checks are skipped in data-only mode.
    """

    def __init__(
        self,
        store: IssueStore,
        merge_branch: str | None,
        *,
        stale_after_hours: float = DEFAULT_STALE_AFTER_HOURS,
    ) -> None:
        self.store = store
        self.repo_root = store.repo_root
        self.merge_branch = merge_branch or None
        self.stale_after = dt.timedelta(hours=stale_after_hours)

    def check(self, *, now: dt.datetime | None = None) -> list[Diagnostic]:
        """Return every diagnostic found; never modifies anything."""
        snapshot = self.store.snapshot()
        diagnostics = self._check_records(snapshot, now or utc_now())
        if self.merge_branch is not None:
            diagnostics.extend(self._check_projection(snapshot))
        log.debug(f"doctor found {len(diagnostics)} diagnostic(s)")
        return sorted(diagnostics, key=lambda item: item.sort_key)

    def _check_records(self, snapshot: Snapshot, now: dt.datetime) -> list[Diagnostic]:
        diagnostics: list[Diagnostic] = []
        for unreadable in snapshot.unreadable:
            diagnostics.append(
                Diagnostic(
                    kind="invalid-state-record",
                    issue_id=paths.issue_id_from_path(unreadable.path),
                    path=unreadable.path,
                    message=f"cannot parse {unreadable.path}: {unreadable.reason}",
                )
            )
        for issue_id, duplicate_paths in snapshot.duplicates.items():
            diagnostics.append(
                Diagnostic(
                    kind="duplicate-id",
                    issue_id=issue_id,
                    path=duplicate_paths[0],
                    message=f"issue {issue_id} is declared by {', '.join(duplicate_paths)}",
                )
            )
        for record in snapshot.misnamed:
            diagnostics.append(
                Diagnostic(
                    kind="duplicate-id",
                    issue_id=record.issue.id,
                    path=record.path,
                    message=f"{record.path} declares issue {record.issue.id}",
                )
            )
        for record in snapshot.records:
            issue = record.issue
            for problem in lifecycle.invariant_violations(issue):
                diagnostics.append(
                    Diagnostic(
                        kind="invalid-state-record",
                        issue_id=issue.id,
                        path=record.path,
                        message=f"issue {issue.id}: {problem}",
                    )
                )
            if issue.status is Status.IN_PROGRESS and now - issue.updated_at > self.stale_after:
                hours = (now - issue.updated_at).total_seconds() / 3600
                diagnostics.append(
                    Diagnostic(
                        kind="stale-lock",
                        issue_id=issue.id,
                        path=record.path,
                        message=(
                            f"issue {issue.id} claimed by {issue.assignee} "
                            f"has not changed for {hours:.0f}h"
                        ),
                    )
                )
        return diagnostics

    def _check_projection(self, snapshot: Snapshot) -> list[Diagnostic]:
        projected = self._projected_files()
        if projected is None:
            return [
                Diagnostic(
                    kind="missing-projection",
                    message=f"merge branch '{self.merge_branch}' not found",
                )
            ]
        diagnostics: list[Diagnostic] = []
        projected_ids: set[int] = set()
        for item in projected:
            if item.issue_id is None:
                continue
            projected_ids.add(item.issue_id)
            record = snapshot.get(item.issue_id)
            if record is None:
                diagnostics.append(
                    Diagnostic(
                        kind="orphaned-working-file",
                        issue_id=item.issue_id,
                        path=item.path,
                        message=f"{item.path} has no record on {self.store.data_branch}",
                    )
                )
                continue
            if item.issue is None:
                continue
            drift = _describe_drift(record.issue, item.issue)
            if drift:
                diagnostics.append(
                    Diagnostic(
                        kind="projection-drift",
                        issue_id=item.issue_id,
                        path=item.path,
                        message=f"{item.path} differs from {self.store.data_branch}: {drift}",
                    )
                )
        for issue in snapshot.issues:
            if issue.id not in projected_ids:
                diagnostics.append(
                    Diagnostic(
                        kind="missing-projection",
                        issue_id=issue.id,
                        path=paths.issue_relative_path(issue.id),
                        message=f"issue {issue.id} is missing from {self.merge_branch}",
                    )
                )
        return diagnostics

    def _projected_files(self) -> list[_ProjectedFile] | None:
        git_path = self.store.git_path
        current = git.git_current_branch(self.repo_root, git_path=git_path)
        if current is not None and git.branch_ref(current) == git.branch_ref(self.merge_branch):
            return self._working_directory_files()
        merge_commit = git.git_rev_parse(
            self.repo_root, git.branch_ref(self.merge_branch), git_path=git_path
        )
        if merge_commit is None:
            return None
        files: list[_ProjectedFile] = []
        for entry in git.git_list_tree(
            self.repo_root, merge_commit, paths.ISSUES_DIRNAME, git_path=git_path
        ):
            if not paths.is_issue_path(entry):
                continue
            content = git.git_read_file(self.repo_root, merge_commit, entry, git_path=git_path)
            files.append(_projected(entry, content))
        return files

    def _working_directory_files(self) -> list[_ProjectedFile]:
        directory = self.repo_root / paths.ISSUES_DIRNAME
        if not directory.is_dir():
            return []
        files: list[_ProjectedFile] = []
        for file_path in sorted(directory.glob("*.md")):
            relative = f"{paths.ISSUES_DIRNAME}/{file_path.name}"
            files.append(_projected(relative, _read_text(file_path)))
        return files


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def _projected(path: str, content: str | None) -> _ProjectedFile:
    issue = None
    if content is not None:
        try:
            issue = parse_issue(content)
        except IssueFileError:
            issue = None
    issue_id = issue.id if issue is not None else paths.issue_id_from_path(path)
    return _ProjectedFile(path=path, issue_id=issue_id, issue=issue)


def _describe_drift(expected: Issue, actual: Issue) -> str:
    """Summarize status and assignee differences.

    Example:
        >>> import datetime as dt
        >>> now = dt.datetime(2026, 1, 1, tzinfo=dt.timezone.utc)
        >>> a = lifecycle.new_issue(1, "x", now=now)
        >>> _describe_drift(lifecycle.claim(a, "bob", now=now), a)
        'status in-progress != open, assignee bob != -'
    """
    changes: list[str] = []
    if expected.status is not actual.status:
        changes.append(f"status {expected.status} != {actual.status}")
    if expected.assignee != actual.assignee:
        changes.append(f"assignee {expected.assignee or '-'} != {actual.assignee or '-'}")
    return ", ".join(changes)
