"""Issue storage on the git data branch.

``IssueStore`` is bound to one repository and one data branch. Reads resolve
the branch tip once and read every object at that commit. Writes build a new
commit off the tip in a private index and publish it with a compare-and-swap
``update-ref``, so two writers racing on the same issue cannot both win.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Literal

from . import git, lifecycle, log, paths
from .errors import (
    ConflictError,
    NotFoundError,
    NotInitializedError,
    ValidationFailedError,
)
from .issue_file import IssueFileError, format_issue, parse_issue
from .models import DEFAULT_MAX_CLAIM_ATTEMPTS, Issue

MutationKind = Literal[
    "create",
    "claim",
    "release",
    "done",
    "wont-fix",
    "edit",
    "session",
    "depend",
    "undepend",
]

OPERATION_TRAILER = "Itack-Operation"
ISSUE_TRAILER = "Itack-Issue"


@dataclass(frozen=True)
class DataRef:
    """The data branch and the exact commit a read or write used."""

    branch: str
    commit: str


@dataclass(frozen=True)
class IssueMutation:
    """A new record to write, tagged with the operation that produced it."""

    kind: MutationKind
    issue: Issue
    message: str | None = None


@dataclass(frozen=True)
class CommitOutcome:
    ref: DataRef
    issue: Issue

    @property
    def revision(self) -> str:
        return self.ref.commit


@dataclass(frozen=True)
class StoredRecord:
    path: str
    issue: Issue


@dataclass(frozen=True)
class UnreadableRecord:
    path: str
    reason: str


@dataclass(frozen=True)
class Snapshot:
    """Every issue file on the data branch at one commit.

    Attributes:
        ref: Commit the snapshot was read from.
        records: Parsed records in tree order.
        unreadable: Files under ``.itack/`` that failed to parse.
    """

    ref: DataRef
    records: tuple[StoredRecord, ...] = ()
    unreadable: tuple[UnreadableRecord, ...] = ()
    _by_id: dict[int, list[StoredRecord]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        for record in self.records:
            self._by_id.setdefault(record.issue.id, []).append(record)

    @property
    def issues(self) -> list[Issue]:
        """One issue per id, sorted by status priority then id."""
        chosen = [self._primary(records) for records in self._by_id.values()]
        return sorted((record.issue for record in chosen), key=lambda issue: issue.sort_key)

    @property
    def duplicates(self) -> dict[int, tuple[str, ...]]:
        return {
            issue_id: tuple(record.path for record in records)
            for issue_id, records in self._by_id.items()
            if len(records) > 1
        }

    @property
    def misnamed(self) -> list[StoredRecord]:
        """Records whose file name encodes a different id than the record."""
        return [
            record
            for record in self.records
            if paths.issue_id_from_path(record.path) not in (None, record.issue.id)
        ]

    def get(self, issue_id: int) -> StoredRecord | None:
        records = self._by_id.get(issue_id)
        if not records:
            return None
        return self._primary(records)

    @staticmethod
    def _primary(records: list[StoredRecord]) -> StoredRecord:
        canonical = paths.issue_relative_path(records[0].issue.id)
        for record in records:
            if record.path == canonical:
                return record
        return records[0]


def commit_message(kind: MutationKind, issue: Issue, summary: str | None = None) -> str:
    """Return the full commit message for a mutation.

    Example:
        >>> import datetime as dt
        >>> now = dt.datetime(2026, 1, 1, tzinfo=dt.timezone.utc)
        >>> issue = lifecycle.new_issue(4, "Fix bug", now=now)
        >>> print(commit_message("create", issue), end="")
        Create issue #4: Fix bug
        <BLANKLINE>
        Itack-Operation: create
        Itack-Issue: 4
    """
    subject = summary.strip() if summary and summary.strip() else _default_subject(kind, issue)
    return f"{subject}\n\n{OPERATION_TRAILER}: {kind}\n{ISSUE_TRAILER}: {issue.id}\n"


def _default_subject(kind: MutationKind, issue: Issue) -> str:
    if kind == "create":
        return f"Create issue #{issue.id}: {issue.title}"
    if kind == "claim":
        return f"Claim issue #{issue.id} for {issue.assignee}"
    if kind == "release":
        return f"Release issue #{issue.id}"
    if kind == "done":
        return f"Mark issue #{issue.id} as done"
    if kind == "wont-fix":
        return f"Mark issue #{issue.id} as wont-fix"
    if kind == "session":
        return f"Set session for issue #{issue.id}"
    if kind in ("depend", "undepend"):
        return f"Update dependencies of issue #{issue.id}"
    return f"Edit issue #{issue.id}: {issue.title}"


class IssueStore:
    """Read and write issue records on one data branch.

    Args:
        repo_root: Repository holding the data branch.
        data_branch: Short or full name of the data branch.
        max_attempts: Bounded retries when the tip moves under a write.
    """

    def __init__(
        self,
        repo_root: Path,
        data_branch: str,
        *,
        max_attempts: int = DEFAULT_MAX_CLAIM_ATTEMPTS,
        git_path: str | None = None,
    ) -> None:
        self.repo_root = repo_root
        self.data_branch = data_branch
        self.ref = git.branch_ref(data_branch)
        self.max_attempts = max_attempts
        self.git_path = git_path

    def tip(self) -> str | None:
        """Return the current data branch commit, or ``None`` if it is missing."""
        return git.git_rev_parse(self.repo_root, self.ref, git_path=self.git_path)

    def _resolve(self, ref: str | None) -> DataRef:
        commit = git.git_rev_parse(self.repo_root, ref, git_path=self.git_path) if ref else self.tip()
        if commit is None:
            if ref:
                raise ValidationFailedError(f"unknown ref '{ref}'")
            raise NotInitializedError(self.data_branch)
        return DataRef(branch=self.data_branch, commit=commit)

    def _locate(self, commit: str, issue_id: int) -> str | None:
        canonical = paths.issue_relative_path(issue_id)
        entries = git.git_list_tree(
            self.repo_root, commit, paths.ISSUES_DIRNAME, git_path=self.git_path
        )
        if canonical in entries:
            return canonical
        for entry in entries:
            if paths.is_issue_path(entry) and paths.issue_id_from_path(entry) == issue_id:
                return entry
        return None

    def _revision_of(self, commit: str, path: str) -> str | None:
        return git.git_last_commit_for_path(
            self.repo_root, commit, path, git_path=self.git_path
        )

    def read_with_ref(self, issue_id: int, *, ref: str | None = None) -> tuple[Issue, DataRef]:
        """Read one issue and return it with the commit it was read from."""
        data_ref = self._resolve(ref)
        path = self._locate(data_ref.commit, issue_id)
        if path is None:
            raise NotFoundError(issue_id)
        content = git.git_read_file(
            self.repo_root, data_ref.commit, path, git_path=self.git_path
        )
        if content is None:
            raise NotFoundError(issue_id)
        issue = parse_issue(content, revision=self._revision_of(data_ref.commit, path))
        return issue, data_ref

    def read(self, issue_id: int, *, ref: str | None = None) -> Issue:
        """Read one issue with its current revision.

        Raises:
            NotFoundError: No record with ``issue_id`` exists at the tip.
            NotInitializedError: The data branch does not exist.
        """
        issue, _ = self.read_with_ref(issue_id, ref=ref)
        return issue

    def snapshot(self, *, ref: str | None = None) -> Snapshot:
        """Read every issue file at one commit."""
        data_ref = self._resolve(ref)
        revisions = self._latest_revisions(data_ref.commit)
        records: list[StoredRecord] = []
        unreadable: list[UnreadableRecord] = []
        entries = git.git_list_tree(
            self.repo_root, data_ref.commit, paths.ISSUES_DIRNAME, git_path=self.git_path
        )
        for entry in entries:
            if not paths.is_issue_path(entry):
                continue
            content = git.git_read_file(
                self.repo_root, data_ref.commit, entry, git_path=self.git_path
            )
            if content is None:
                continue
            try:
                issue = parse_issue(content, revision=revisions.get(entry))
            except IssueFileError as exc:
                log.debug(f"skipping unreadable issue file {entry}: {exc.message}")
                unreadable.append(UnreadableRecord(path=entry, reason=exc.message))
                continue
            records.append(StoredRecord(path=entry, issue=issue))
        return Snapshot(ref=data_ref, records=tuple(records), unreadable=tuple(unreadable))

    def read_all(self, *, ref: str | None = None) -> list[Issue]:
        """Return all issues sorted by status priority, then id."""
        return self.snapshot(ref=ref).issues

    def _latest_revisions(self, commit: str) -> dict[str, str]:
        latest: dict[str, str] = {}
        for commit_hash, touched in git.git_path_history(
            self.repo_root, commit, paths.ISSUES_DIRNAME, git_path=self.git_path
        ):
            for path in touched:
                latest.setdefault(path, commit_hash)
        return latest

    def used_ids(self, commit: str) -> set[int]:
        """Return every issue id that ever had a file on the data branch."""
        used: set[int] = set()
        for _, touched in git.git_path_history(
            self.repo_root, commit, paths.ISSUES_DIRNAME, git_path=self.git_path
        ):
            for path in touched:
                issue_id = paths.issue_id_from_path(path)
                if issue_id is not None:
                    used.add(issue_id)
        return used

    def _publish(self, parent: str, path: str, issue: Issue, message: str) -> str | None:
        new_commit = git.git_write_commit(
            self.repo_root,
            parent=parent,
            files={path: format_issue(issue)},
            message=message,
            git_path=self.git_path,
        )
        subject = message.splitlines()[0]
        if git.git_update_ref(
            self.repo_root,
            self.ref,
            new_commit,
            parent,
            message=f"itack: {subject}",
            git_path=self.git_path,
        ):
            return new_commit
        return None

    def commit(
        self,
        mutation: IssueMutation,
        expected_revision: str | None,
        *,
        attempts: int | None = None,
    ) -> CommitOutcome:
        """Write one issue if its revision still matches ``expected_revision``.

        Writes to other issues that land between the read and the write do
        not count as conflicts; the commit is rebuilt on the new tip, up to
        ``attempts`` times (default ``max_attempts``). Callers with their own
        retry loop pass ``attempts=1``.

        Raises:
            ConflictError: The issue changed since ``expected_revision``, or
                the tip kept moving for ``max_attempts`` attempts.
            NotFoundError: The issue does not exist at the tip.
        """
        issue = mutation.issue
        message = commit_message(mutation.kind, issue, mutation.message)
        limit = attempts or self.max_attempts
        for attempt in range(1, limit + 1):
            data_ref = self._resolve(None)
            path = self._locate(data_ref.commit, issue.id)
            if path is None:
                raise NotFoundError(issue.id)
            current = self._revision_of(data_ref.commit, path)
            if current != expected_revision:
                raise ConflictError(
                    f"issue {issue.id} changed since revision "
                    f"{_short(expected_revision)} (now {_short(current)})",
                    recovery_hint=f"re-read issue {issue.id} and retry",
                )
            new_commit = self._publish(data_ref.commit, path, issue, message)
            if new_commit is not None:
                log.debug(f"committed {mutation.kind} of issue {issue.id} as {_short(new_commit)}")
                return CommitOutcome(
                    ref=DataRef(branch=self.data_branch, commit=new_commit),
                    issue=issue.model_copy(update={"revision": new_commit}),
                )
            log.debug(
                f"data branch moved while writing issue {issue.id} "
                f"(attempt {attempt}/{limit})"
            )
        raise ConflictError(
            f"could not write issue {issue.id}: data branch kept moving "
            f"after {limit} attempts"
        )

    def create(
        self,
        title: str,
        *,
        body: str | None = None,
        epic: str | None = None,
        depends_on: Iterable[int] = (),
        message: str | None = None,
        now: dt.datetime | None = None,
    ) -> CommitOutcome:
        """Allocate the next id and write a new ``open`` issue.

        The id is one more than every id ever used on the data branch. When
        another writer publishes first, the id is derived again from the new
        tip.
        """
        dependencies = tuple(depends_on)
        for attempt in range(1, self.max_attempts + 1):
            data_ref = self._resolve(None)
            issue_id = lifecycle.next_issue_id(self.used_ids(data_ref.commit))
            issue = lifecycle.new_issue(
                issue_id, title, body=body, epic=epic, depends_on=dependencies, now=now
            )
            path = paths.issue_relative_path(issue_id)
            new_commit = self._publish(
                data_ref.commit, path, issue, commit_message("create", issue, message)
            )
            if new_commit is not None:
                log.debug(f"created issue {issue_id} as {_short(new_commit)}")
                return CommitOutcome(
                    ref=DataRef(branch=self.data_branch, commit=new_commit),
                    issue=issue.model_copy(update={"revision": new_commit}),
                )
            log.debug(
                f"lost race allocating issue {issue_id} "
                f"(attempt {attempt}/{self.max_attempts})"
            )
        raise ConflictError(
            f"could not allocate an issue id after {self.max_attempts} attempts",
            recovery_hint="retry the create",
        )

    def history(self, issue_id: int, *, ref: str | None = None) -> list[git.CommitInfo]:
        """Return the commits that wrote ``issue_id``, newest first."""
        data_ref = self._resolve(ref)
        path = self._locate(data_ref.commit, issue_id)
        if path is None:
            raise NotFoundError(issue_id)
        return git.git_log_commits(
            self.repo_root, data_ref.commit, path, git_path=self.git_path
        )


def _short(revision: str | None) -> str:
    """Return an abbreviated revision for messages.

    Example:
        >>> _short("0123456789abcdef")
        '0123456789ab'
        >>> _short(None)
        'none'
    """
    if not revision:
        return "none"
    return revision[:12]
