"""Propagate data branch commits into the working branch."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from . import git, log
from .models import DEFAULT_MAX_CLAIM_ATTEMPTS

SyncStatus = Literal["skipped", "up-to-date", "merged", "failed"]


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one propagation.

    Attributes:
        status: ``skipped`` in data-only mode, ``up-to-date`` when nothing was
            needed, ``merged`` when the merge branch moved, ``failed`` otherwise.
        merge_branch: Branch that received the data, if any.
        commit: New merge branch commit after a merge.
        conflicts: Paths that could not be merged.
        detail: Human-readable reason for a failure.
    """

    status: SyncStatus
    merge_branch: str | None = None
    commit: str | None = None
    conflicts: tuple[str, ...] = ()
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status != "failed"


class BranchSynchronizer:
    """Merge the data branch into ``merge_branch``.

    When the merge branch is checked out in ``repo_root`` the merge goes
    through the working directory, so issue files there are rewritten.
    Otherwise the merge is computed with ``git merge-tree`` and published with
    a compare-and-swap on the merge branch ref.
    """

    def __init__(
        self,
        repo_root: Path,
        data_branch: str,
        merge_branch: str | None,
        *,
        max_attempts: int = DEFAULT_MAX_CLAIM_ATTEMPTS,
        git_path: str | None = None,
    ) -> None:
        self.repo_root = repo_root
        self.data_branch = data_branch
        self.merge_branch = merge_branch or None
        self.max_attempts = max_attempts
        self.git_path = git_path

    @property
    def data_only(self) -> bool:
        return self.merge_branch is None

    def merge_branch_checked_out(self) -> bool:
        if self.merge_branch is None:
            return False
        current = git.git_current_branch(self.repo_root, git_path=self.git_path)
        return current is not None and git.branch_ref(current) == git.branch_ref(self.merge_branch)

    def _failed(self, detail: str, conflicts: tuple[str, ...] = ()) -> SyncResult:
        log.warning(f"could not sync {self.data_branch} into {self.merge_branch}: {detail}")
        return SyncResult(
            status="failed",
            merge_branch=self.merge_branch,
            conflicts=conflicts,
            detail=detail,
        )

    def propagate(self, data_tip: str | None = None) -> SyncResult:
        """Bring the merge branch up to ``data_tip`` (the data branch tip by default)."""
        if self.merge_branch is None:
            log.debug("data-only mode; skipping sync")
            return SyncResult(status="skipped")
        tip = data_tip or git.git_rev_parse(
            self.repo_root, git.branch_ref(self.data_branch), git_path=self.git_path
        )
        if tip is None:
            return self._failed(f"data branch '{self.data_branch}' not found")
        merge_ref = git.branch_ref(self.merge_branch)
        head = git.git_rev_parse(self.repo_root, merge_ref, git_path=self.git_path)
        if head is None:
            return self._failed(f"merge branch '{self.merge_branch}' not found")
        if git.git_is_ancestor(self.repo_root, tip, head, git_path=self.git_path):
            return SyncResult(status="up-to-date", merge_branch=self.merge_branch, commit=head)
        message = f"Sync issues from {self.data_branch}"
        if self.merge_branch_checked_out():
            return self._merge_working_tree(tip, message)
        return self._merge_ref(merge_ref, head, tip, message)

    def _merge_working_tree(self, tip: str, message: str) -> SyncResult:
        log.debug(f"merging {tip[:12]} into checked-out {self.merge_branch}")
        outcome = git.git_merge_checked_out(self.repo_root, tip, message, git_path=self.git_path)
        if not outcome.ok:
            detail = "merge conflict" if outcome.conflicts else outcome.detail or "merge failed"
            return self._failed(detail, outcome.conflicts)
        return SyncResult(status="merged", merge_branch=self.merge_branch, commit=outcome.commit)

    def _merge_ref(self, merge_ref: str, head: str, tip: str, message: str) -> SyncResult:
        for attempt in range(1, self.max_attempts + 1):
            log.debug(f"merging {tip[:12]} into {self.merge_branch} at {head[:12]}")
            tree, conflicts = git.git_merge_tree(self.repo_root, head, tip, git_path=self.git_path)
            if tree is None:
                return self._failed("merge conflict", conflicts)
            commit = git.git_commit_tree(
                self.repo_root, tree, [head, tip], message, git_path=self.git_path
            )
            if git.git_update_ref(
                self.repo_root,
                merge_ref,
                commit,
                head,
                message=f"itack: {message}",
                git_path=self.git_path,
            ):
                return SyncResult(status="merged", merge_branch=self.merge_branch, commit=commit)
            log.debug(
                f"{self.merge_branch} moved during sync (attempt {attempt}/{self.max_attempts})"
            )
            moved = git.git_rev_parse(self.repo_root, merge_ref, git_path=self.git_path)
            if moved is None:
                return self._failed(f"merge branch '{self.merge_branch}' disappeared")
            head = moved
            if git.git_is_ancestor(self.repo_root, tip, head, git_path=self.git_path):
                return SyncResult(status="up-to-date", merge_branch=self.merge_branch, commit=head)
        return self._failed(f"merge branch kept moving after {self.max_attempts} attempts")
