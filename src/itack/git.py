"""Git helper functions used as itack's storage substrate.

Everything here shells out to ``git`` through :mod:`itack.exec`. Reads are
always made against an explicit commit so callers never observe a partially
written branch. Writes build commits in a private index and publish them with
a compare-and-swap ``update-ref``.
"""

from __future__ import annotations

import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Mapping

from . import exec as exec_util
from . import log
from .errors import SubstrateError

FALLBACK_IDENTITY = {
    "GIT_AUTHOR_NAME": "itack",
    "GIT_AUTHOR_EMAIL": "itack@localhost",
    "GIT_COMMITTER_NAME": "itack",
    "GIT_COMMITTER_EMAIL": "itack@localhost",
}
FILE_MODE = "100644"
_RECORD_SEPARATOR = "\x1e"
_FIELD_SEPARATOR = "\x1f"
LOCK_WAIT_ATTEMPTS = 5
LOCK_WAIT_SECONDS = 0.05


@dataclass(frozen=True)
class CommitInfo:
    """Metadata for one commit on a branch."""

    hash: str
    timestamp: int | None
    author: str
    subject: str


@dataclass(frozen=True)
class MergeOutcome:
    """Result of merging one commit into another."""

    ok: bool
    commit: str | None = None
    conflicts: tuple[str, ...] = ()
    detail: str = ""


def git_command(args: list[str], *, git_path: str | None = None) -> list[str]:
    """Build a git command using an optional executable path.

    ``ITACK_GIT`` overrides the executable when no explicit path is given.

    Example:
        >>> git_command(["status"], git_path="/usr/bin/git")
        ['/usr/bin/git', 'status']
    """
    resolved = git_path.strip() if isinstance(git_path, str) else ""
    if not resolved:
        resolved = os.environ.get("ITACK_GIT", "").strip() or "git"
    return [resolved, *args]


def branch_ref(branch: str) -> str:
    """Return the full ref name for a local branch.

    Example:
        >>> branch_ref("data/itack")
        'refs/heads/data/itack'
        >>> branch_ref("refs/heads/main")
        'refs/heads/main'
    """
    if branch.startswith("refs/"):
        return branch
    return f"refs/heads/{branch}"


def _run_git(
    repo_dir: Path,
    args: list[str],
    *,
    env: Mapping[str, str] | None = None,
    input: str | None = None,
    git_path: str | None = None,
) -> exec_util.CommandResult:
    request = exec_util.CommandRequest(
        argv=tuple(git_command(["-C", str(repo_dir), *args], git_path=git_path)),
        env=env,
        input=input,
    )
    log.trace(" ".join(request.argv))
    result = exec_util.run_with_runner(request)
    if result is None:
        raise SubstrateError("missing required command: git", argv=request.argv)
    return result


def _run_git_checked(
    repo_dir: Path,
    args: list[str],
    *,
    env: Mapping[str, str] | None = None,
    input: str | None = None,
    git_path: str | None = None,
) -> exec_util.CommandResult:
    result = _run_git(repo_dir, args, env=env, input=input, git_path=git_path)
    if result.returncode != 0:
        exec_util.raise_for_result(result)
    return result


def git_repo_root(start: Path, *, git_path: str | None = None) -> Path | None:
    """Return the git repository root for a starting path.

    Args:
        start: Directory to search from.

    Returns:
        Repo root path or ``None`` if not inside a git work tree.
    """
    result = _run_git(start, ["rev-parse", "--show-toplevel"], git_path=git_path)
    if result.returncode != 0:
        return None
    resolved = result.stdout.strip()
    if not resolved:
        return None
    return Path(resolved)


def git_current_branch(repo_dir: Path, *, git_path: str | None = None) -> str | None:
    """Return the checked-out branch name, or ``None`` when HEAD is detached."""
    result = _run_git(repo_dir, ["symbolic-ref", "--quiet", "--short", "HEAD"], git_path=git_path)
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def git_rev_parse(repo_dir: Path, ref: str, *, git_path: str | None = None) -> str | None:
    """Resolve a ref to its commit hash.

    Args:
        repo_dir: Git repository directory.
        ref: Ref or revision to resolve.

    Returns:
        Commit hash or ``None`` when the ref does not name a commit.
    """
    result = _run_git(
        repo_dir,
        ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"],
        git_path=git_path,
    )
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def git_local_branches(repo_dir: Path, *, git_path: str | None = None) -> list[str]:
    """Return full ref names of all local branches."""
    result = _run_git_checked(
        repo_dir,
        ["for-each-ref", "--format=%(refname)", "refs/heads/"],
        git_path=git_path,
    )
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def git_read_file(
    repo_dir: Path, commit: str, path: str, *, git_path: str | None = None
) -> str | None:
    """Return the content of ``path`` at ``commit``, or ``None`` if absent."""
    result = _run_git(repo_dir, ["cat-file", "blob", f"{commit}:{path}"], git_path=git_path)
    if result.returncode != 0:
        return None
    return result.stdout


def git_list_tree(
    repo_dir: Path, commit: str, directory: str, *, git_path: str | None = None
) -> list[str]:
    """Return file paths directly under ``directory`` at ``commit``."""
    prefix = directory.rstrip("/") + "/"
    result = _run_git_checked(
        repo_dir, ["ls-tree", "--name-only", commit, "--", prefix], git_path=git_path
    )
    return [line for line in result.stdout.splitlines() if line.strip()]


def git_last_commit_for_path(
    repo_dir: Path, commit: str, path: str, *, git_path: str | None = None
) -> str | None:
    """Return the hash of the newest commit reachable from ``commit`` touching ``path``."""
    result = _run_git_checked(
        repo_dir, ["log", "-1", "--format=%H", commit, "--", path], git_path=git_path
    )
    return result.stdout.strip() or None


def git_path_history(
    repo_dir: Path, commit: str, pathspec: str, *, git_path: str | None = None
) -> list[tuple[str, list[str]]]:
    """Return ``(commit_hash, touched_paths)`` pairs, newest first.

    Args:
        repo_dir: Git repository directory.
        commit: Commit to walk back from.
        pathspec: Limit the walk to this path or directory.
    """
    result = _run_git_checked(
        repo_dir,
        ["log", f"--format={_RECORD_SEPARATOR}%H", "--name-only", commit, "--", pathspec],
        git_path=git_path,
    )
    history: list[tuple[str, list[str]]] = []
    for chunk in result.stdout.split(_RECORD_SEPARATOR):
        lines = [line.strip() for line in chunk.splitlines() if line.strip()]
        if not lines:
            continue
        history.append((lines[0], lines[1:]))
    return history


def git_log_commits(
    repo_dir: Path, commit: str, path: str | None = None, *, git_path: str | None = None
) -> list[CommitInfo]:
    """Return commit metadata reachable from ``commit``, newest first."""
    args = [
        "log",
        f"--format=%H{_FIELD_SEPARATOR}%ct{_FIELD_SEPARATOR}%an{_FIELD_SEPARATOR}%s",
        commit,
    ]
    if path:
        args.extend(["--", path])
    result = _run_git_checked(repo_dir, args, git_path=git_path)
    commits: list[CommitInfo] = []
    for line in result.stdout.splitlines():
        parts = line.split(_FIELD_SEPARATOR)
        if len(parts) < 4:
            continue
        full_hash, timestamp, author, subject = parts[:4]
        try:
            parsed_timestamp: int | None = int(timestamp.strip())
        except ValueError:
            parsed_timestamp = None
        commits.append(
            CommitInfo(
                hash=full_hash.strip(),
                timestamp=parsed_timestamp,
                author=author.strip(),
                subject=subject.strip(),
            )
        )
    return commits


def git_identity_env(repo_dir: Path, *, git_path: str | None = None) -> dict[str, str]:
    """Return an environment that can author commits.

    Uses the configured git identity when one exists; otherwise falls back
    to a fixed ``itack`` identity.
    """
    env = dict(os.environ)
    result = _run_git(repo_dir, ["var", "GIT_COMMITTER_IDENT"], env=env, git_path=git_path)
    if result.returncode != 0:
        for key, value in FALLBACK_IDENTITY.items():
            env.setdefault(key, value)
    return env


def git_commit_tree(
    repo_dir: Path,
    tree: str,
    parents: Iterable[str],
    message: str,
    *,
    env: Mapping[str, str] | None = None,
    git_path: str | None = None,
) -> str:
    """Create a commit object for ``tree`` without moving any ref."""
    args = ["commit-tree", tree]
    for parent in parents:
        args.extend(["-p", parent])
    commit_env = env if env is not None else git_identity_env(repo_dir, git_path=git_path)
    result = _run_git_checked(repo_dir, args, env=commit_env, input=message, git_path=git_path)
    return result.stdout.strip()


def git_write_commit(
    repo_dir: Path,
    *,
    parent: str | None,
    files: Mapping[str, str],
    message: str,
    git_path: str | None = None,
) -> str:
    """Build a commit on top of ``parent`` that writes ``files``.

    The working tree, the repository index and every ref are left
    untouched; the commit is assembled in a throwaway index.

    Args:
        repo_dir: Git repository directory.
        parent: Parent commit, or ``None`` for a root commit.
        files: Mapping of repo-relative paths to UTF-8 content.
        message: Full commit message.

    Returns:
        Hash of the new (unreferenced) commit.
    """
    env = git_identity_env(repo_dir, git_path=git_path)
    with tempfile.TemporaryDirectory(prefix="itack-index-") as tmp:
        env["GIT_INDEX_FILE"] = str(Path(tmp) / "index")
        if parent:
            _run_git_checked(repo_dir, ["read-tree", parent], env=env, git_path=git_path)
        else:
            _run_git_checked(repo_dir, ["read-tree", "--empty"], env=env, git_path=git_path)
        for path, content in files.items():
            blob = _run_git_checked(
                repo_dir, ["hash-object", "-w", "--stdin"], env=env, input=content, git_path=git_path
            ).stdout.strip()
            _run_git_checked(
                repo_dir,
                ["update-index", "--add", "--cacheinfo", f"{FILE_MODE},{blob},{path}"],
                env=env,
                git_path=git_path,
            )
        tree = _run_git_checked(repo_dir, ["write-tree"], env=env, git_path=git_path).stdout.strip()
    parents = [parent] if parent else []
    return git_commit_tree(repo_dir, tree, parents, message, env=env, git_path=git_path)


def _lock_held(stderr: str | None) -> bool:
    return ".lock': File exists" in (stderr or "")


def git_update_ref(
    repo_dir: Path,
    ref: str,
    new: str,
    expected_old: str | None,
    *,
    message: str = "itack",
    git_path: str | None = None,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> bool:
    """Atomically move ``ref`` from ``expected_old`` to ``new``.

    ``expected_old=None`` requires that the ref does not exist yet. While
    another process holds the ref's lock file the update is retried a few
    times; a held lock says nothing about whether the ref moved.

    Returns:
        ``True`` when the ref was updated, ``False`` when another writer
        moved (or created) it first.

    Raises:
        SubstrateError: git failed for another reason.
    """
    args = ["update-ref", "-m", message, ref, new, expected_old or ""]
    result = _run_git(repo_dir, args, git_path=git_path)
    for attempt in range(1, LOCK_WAIT_ATTEMPTS + 1):
        if result.returncode == 0 or not _lock_held(result.stderr):
            break
        log.trace(f"{ref} is locked by another writer (wait {attempt}/{LOCK_WAIT_ATTEMPTS})")
        sleep_fn(LOCK_WAIT_SECONDS * attempt)
        result = _run_git(repo_dir, args, git_path=git_path)
    if result.returncode == 0:
        return True
    stderr = result.stderr or ""
    if "cannot lock ref" in stderr:
        log.debug(f"compare-and-swap on {ref} lost: {stderr.strip()}")
        return False
    exec_util.raise_for_result(result)


def git_is_ancestor(
    repo_dir: Path,
    ancestor: str,
    descendant: str,
    *,
    git_path: str | None = None,
) -> bool | None:
    """Return whether ``ancestor`` is an ancestor of ``descendant``.

    Returns ``True``/``False`` for git's explicit status codes, or ``None`` when
    git fails for another reason (missing ref, invalid repo, etc.).
    """
    result = _run_git(
        repo_dir,
        ["merge-base", "--is-ancestor", ancestor, descendant],
        git_path=git_path,
    )
    if result.returncode == 0:
        return True
    if result.returncode == 1:
        return False
    return None


def git_unmerged_paths(repo_dir: Path, *, git_path: str | None = None) -> list[str]:
    """Return paths left conflicted by an interrupted merge."""
    result = _run_git(repo_dir, ["diff", "--name-only", "--diff-filter=U"], git_path=git_path)
    if result.returncode != 0:
        return []
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def git_merge_checked_out(
    repo_dir: Path, source: str, message: str, *, git_path: str | None = None
) -> MergeOutcome:
    """Merge ``source`` into the checked-out branch, updating the work tree.

    A failed merge is aborted so the work tree is left as it was.
    """
    env = git_identity_env(repo_dir, git_path=git_path)
    result = _run_git(
        repo_dir,
        ["merge", "--no-edit", "--allow-unrelated-histories", "-m", message, source],
        env=env,
        git_path=git_path,
    )
    if result.returncode == 0:
        return MergeOutcome(ok=True, commit=git_rev_parse(repo_dir, "HEAD", git_path=git_path))
    conflicts = tuple(git_unmerged_paths(repo_dir, git_path=git_path))
    if git_rev_parse(repo_dir, "MERGE_HEAD", git_path=git_path):
        _run_git(repo_dir, ["merge", "--abort"], git_path=git_path)
    detail = (result.stderr or result.stdout or "").strip()
    return MergeOutcome(ok=False, conflicts=conflicts, detail=detail)


def git_merge_tree(
    repo_dir: Path, ours: str, theirs: str, *, git_path: str | None = None
) -> tuple[str | None, tuple[str, ...]]:
    """Compute a merged tree without touching any work tree.

    Returns:
        ``(tree, ())`` on a clean merge or ``(None, conflicted_paths)``.
    """
    result = _run_git(
        repo_dir,
        [
            "merge-tree",
            "--write-tree",
            "--allow-unrelated-histories",
            "--name-only",
            "--no-messages",
            ours,
            theirs,
        ],
        git_path=git_path,
    )
    lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
    if result.returncode == 0 and lines:
        return lines[0], ()
    if result.returncode == 1:
        return None, tuple(dict.fromkeys(lines[1:]))
    exec_util.raise_for_result(result)


def git_grep_refs(
    repo_dir: Path,
    query: str,
    refs: list[str],
    pathspec: str,
    *,
    git_path: str | None = None,
) -> list[tuple[str, str]]:
    """Return ``(ref, path)`` pairs whose file under ``pathspec`` contains ``query``.

    Matching is case-insensitive and literal.
    """
    if not refs:
        return []
    result = _run_git(
        repo_dir,
        ["grep", "-i", "-l", "-F", "-e", query, *refs, "--", pathspec],
        git_path=git_path,
    )
    if result.returncode == 1:
        return []
    if result.returncode != 0:
        exec_util.raise_for_result(result)
    matches: list[tuple[str, str]] = []
    for line in result.stdout.splitlines():
        ref, sep, path = line.strip().partition(":")
        if sep and path:
            matches.append((ref, path))
    return matches
