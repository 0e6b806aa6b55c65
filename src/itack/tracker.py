"""The ``IssueTracker`` facade used by the CLI and by library callers.

Each mutation commits to the data branch through the arbitrator and then
propagates the new tip into the merge branch. A failed propagation never
rolls back the data commit; it raises ``PartialFailureError`` carrying the
committed issue.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Literal

from . import git, log, paths
from .arbitration import ArbitrationOutcome, ClaimArbitrator
from .doctor import ConsistencyChecker, Diagnostic
from .errors import (
    NotFoundError,
    NotInitializedError,
    PartialFailureError,
    ValidationFailedError,
)
from .issue_file import IssueFileError, parse_issue
from .lifecycle import IssuePatch
from .models import Issue, Status
from .project import InitResult, Project, discover_project, init_project, read_metadata
from .storage import IssueStore
from .sync import BranchSynchronizer, SyncResult

SearchScope = Literal["data", "all-branches"]


@dataclass(frozen=True)
class BoardSummary:
    project_id: str
    counts: dict[str, int]
    issues: tuple[Issue, ...] = ()
    by_assignee: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.counts.values())


class IssueTracker:
    """Coordinate issue records for one repository.

    Args:
        project: Repository and configuration to operate on.
    """

    def __init__(self, project: Project) -> None:
        self.project = project
        settings = project.config
        self.store = IssueStore(
            project.root,
            settings.data_branch,
            max_attempts=settings.max_claim_attempts,
            git_path=project.git_path,
        )
        self.arbitrator = ClaimArbitrator(self.store, max_attempts=settings.max_claim_attempts)
        self.synchronizer = BranchSynchronizer(
            project.root,
            settings.data_branch,
            settings.merge_branch,
            max_attempts=settings.max_claim_attempts,
            git_path=project.git_path,
        )
        self.checker = ConsistencyChecker(
            self.store,
            settings.merge_branch,
            stale_after_hours=settings.stale_after_hours,
        )

    @classmethod
    def discover(cls, start: Path | None = None) -> IssueTracker:
        return cls(discover_project(start))

    def _propagate(self, issue: Issue | None, data_tip: str) -> SyncResult:
        result = self.synchronizer.propagate(data_tip)
        if result.ok:
            return result
        subject = f"issue {issue.id}" if issue is not None else "data branch"
        detail = result.detail
        if result.conflicts:
            detail = f"{detail} in {', '.join(result.conflicts)}"
        raise PartialFailureError(
            f"{subject} committed to {self.store.data_branch} but sync into "
            f"{result.merge_branch} failed: {detail}",
            issue=issue,
            result=result,
        )

    def _finish(self, outcome: ArbitrationOutcome) -> Issue:
        self._propagate(outcome.issue, outcome.ref.commit)
        return outcome.issue

    def init(self) -> InitResult:
        """Create the data branch if needed and project it."""
        result = init_project(self.project)
        self._propagate(None, result.data_tip)
        return result

    def _require_existing(self, issue_ids: Iterable[int]) -> tuple[int, ...]:
        ids = tuple(issue_ids)
        if not ids:
            return ids
        known = {issue.id for issue in self.store.read_all()}
        for issue_id in ids:
            if issue_id not in known:
                raise NotFoundError(issue_id, recovery_hint="dependencies must name existing issues")
        return ids

    def create(
        self,
        title: str,
        body: str | None = None,
        epic: str | None = None,
        depends_on: Iterable[int] = (),
        message: str | None = None,
    ) -> Issue:
        """Create an ``open`` issue with a fresh id."""
        dependencies = self._require_existing(depends_on)
        outcome = self.store.create(
            title, body=body, epic=epic, depends_on=dependencies, message=message
        )
        log.debug(f"created issue {outcome.issue.id}")
        self._propagate(outcome.issue, outcome.ref.commit)
        return outcome.issue

    def list_issues(
        self,
        status: Status | str | None = None,
        epic: str | None = None,
        assignee: str | None = None,
    ) -> list[Issue]:
        """Return issues sorted by status priority then id, filtered as requested."""
        wanted = Status(status) if status is not None else None
        issues = self.store.read_all()
        if wanted is not None:
            issues = [issue for issue in issues if issue.status is wanted]
        if epic is not None:
            issues = [issue for issue in issues if issue.epic == epic]
        if assignee is not None:
            issues = [issue for issue in issues if issue.assignee == assignee]
        return issues

    def show(self, issue_id: int) -> Issue:
        return self.store.read(issue_id)

    def search(self, query: str, scope: SearchScope = "data") -> list[Issue]:
        """Case-insensitive substring search over titles and bodies.

        ``all-branches`` also scans ``.itack/`` on every local branch; a
        data-branch record wins over a branch copy of the same id.
        """
        needle = query.strip().lower()
        if not needle:
            raise ValidationFailedError("search query must not be empty")
        matches = {
            issue.id: issue
            for issue in self.store.read_all()
            if needle in issue.title.lower() or needle in issue.body.lower()
        }
        if scope == "all-branches":
            for issue in self._search_branches(query.strip()):
                if needle in issue.title.lower() or needle in issue.body.lower():
                    matches.setdefault(issue.id, issue)
        elif scope != "data":
            raise ValidationFailedError(f"unknown search scope {scope!r}")
        return sorted(matches.values(), key=lambda issue: issue.sort_key)

    def _search_branches(self, query: str) -> list[Issue]:
        root = self.project.root
        git_path = self.project.git_path
        refs = git.git_local_branches(root, git_path=git_path)
        found: list[Issue] = []
        for ref, path in git.git_grep_refs(
            root, query, refs, f"{paths.ISSUES_DIRNAME}/", git_path=git_path
        ):
            if not paths.is_issue_path(path):
                continue
            content = git.git_read_file(root, ref, path, git_path=git_path)
            if content is None:
                continue
            try:
                found.append(parse_issue(content))
            except IssueFileError as exc:
                log.debug(f"skipping unreadable {ref}:{path}: {exc.message}")
        return found

    def claim(
        self,
        issue_id: int,
        assignee: str,
        session: str | None = None,
        *,
        expected_revision: str | None = None,
    ) -> Issue:
        """Take ownership of an open issue, recording the current branch."""
        branch = git.git_current_branch(self.project.root, git_path=self.project.git_path)
        outcome = self.arbitrator.claim(
            issue_id,
            assignee,
            session,
            branch=branch,
            expected_revision=expected_revision,
        )
        return self._finish(outcome)

    def release(self, issue_id: int, *, expected_revision: str | None = None) -> Issue:
        return self._finish(self.arbitrator.release(issue_id, expected_revision=expected_revision))

    def done(self, issue_id: int, *, expected_revision: str | None = None) -> Issue:
        return self._finish(self.arbitrator.done(issue_id, expected_revision=expected_revision))

    def wont_fix(self, issue_id: int, *, expected_revision: str | None = None) -> Issue:
        return self._finish(self.arbitrator.wont_fix(issue_id, expected_revision=expected_revision))

    def edit(
        self,
        issue_id: int,
        patch: IssuePatch,
        message: str | None = None,
        *,
        expected_revision: str | None = None,
    ) -> Issue:
        return self._finish(
            self.arbitrator.edit(
                issue_id, patch, message=message, expected_revision=expected_revision
            )
        )

    def set_session(self, issue_id: int, session: str | None) -> Issue:
        return self._finish(self.arbitrator.set_session(issue_id, session))

    def depend(self, issue_id: int, dependencies: Iterable[int]) -> Issue:
        deps = self._require_existing(dependencies)
        return self._finish(self.arbitrator.depend(issue_id, deps))

    def undepend(self, issue_id: int, dependencies: Iterable[int]) -> Issue:
        return self._finish(self.arbitrator.undepend(issue_id, tuple(dependencies)))

    def history(self, issue_id: int) -> list[git.CommitInfo]:
        return self.store.history(issue_id)

    def board(self) -> BoardSummary:
        """Summarize issue counts per status and per active assignee."""
        snapshot = self.store.snapshot()
        metadata = read_metadata(self.project, snapshot.ref.commit)
        issues = snapshot.issues
        counts = {status.value: 0 for status in Status}
        counts.update(Counter(issue.status.value for issue in issues))
        by_assignee = Counter(
            issue.assignee
            for issue in issues
            if issue.status is Status.IN_PROGRESS and issue.assignee
        )
        return BoardSummary(
            project_id=metadata.project_id if metadata else "unknown",
            counts=counts,
            issues=tuple(issues),
            by_assignee=dict(sorted(by_assignee.items())),
        )

    def doctor(self) -> list[Diagnostic]:
        return self.checker.check()

    def sync(self) -> SyncResult:
        """Re-run propagation of the current data branch tip."""
        tip = self.store.tip()
        if tip is None:
            raise NotInitializedError(self.store.data_branch)
        return self._propagate(None, tip)
