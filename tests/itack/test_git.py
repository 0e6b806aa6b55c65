from pathlib import Path
from unittest.mock import patch

import pytest

import itack.git as git
from itack import exec as exec_util
from itack.errors import SubstrateError
from tests.itack.helpers import git as run_git
from tests.itack.helpers import init_repo


def _result(returncode: int, stdout: str = "", stderr: str = "") -> exec_util.CommandResult:
    return exec_util.CommandResult(argv=("git",), returncode=returncode, stdout=stdout, stderr=stderr)


def test_git_command_honors_itack_git(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ITACK_GIT", "/opt/git/bin/git")
    assert git.git_command(["status"]) == ["/opt/git/bin/git", "status"]
    assert git.git_command(["status"], git_path="/usr/bin/git") == ["/usr/bin/git", "status"]


def test_git_is_ancestor_handles_status_codes() -> None:
    with patch("itack.git._run_git", return_value=_result(0)):
        assert git.git_is_ancestor(Path("/repo"), "a", "b") is True
    with patch("itack.git._run_git", return_value=_result(1)):
        assert git.git_is_ancestor(Path("/repo"), "a", "b") is False
    with patch("itack.git._run_git", return_value=_result(128)):
        assert git.git_is_ancestor(Path("/repo"), "a", "b") is None


def test_git_update_ref_reports_lost_race() -> None:
    stderr = "fatal: update_ref failed for ref 'refs/heads/data/itack': cannot lock ref"
    with patch("itack.git._run_git", return_value=_result(128, stderr=stderr)):
        assert git.git_update_ref(Path("/repo"), "refs/heads/data/itack", "new", "old") is False


def test_git_update_ref_waits_out_a_held_lock() -> None:
    held = (
        "fatal: cannot lock ref 'refs/heads/data/itack': Unable to create "
        "'/repo/.git/refs/heads/data/itack.lock': File exists."
    )
    results = [_result(128, stderr=held), _result(128, stderr=held), _result(0)]
    delays: list[float] = []
    with patch("itack.git._run_git", side_effect=results) as run:
        updated = git.git_update_ref(
            Path("/repo"), "refs/heads/data/itack", "new", "old", sleep_fn=delays.append
        )

    assert updated is True
    assert run.call_count == 3
    assert delays == [git.LOCK_WAIT_SECONDS, git.LOCK_WAIT_SECONDS * 2]


def test_git_update_ref_gives_up_on_a_lock_that_stays_held() -> None:
    held = "fatal: cannot lock ref 'x': Unable to create 'x.lock': File exists."
    with patch("itack.git._run_git", return_value=_result(128, stderr=held)) as run:
        updated = git.git_update_ref(Path("/repo"), "x", "new", "old", sleep_fn=lambda _: None)

    assert updated is False
    assert run.call_count == git.LOCK_WAIT_ATTEMPTS + 1


def test_git_update_ref_raises_on_other_failures() -> None:
    with patch("itack.git._run_git", return_value=_result(128, stderr="fatal: bad object")):
        with pytest.raises(SubstrateError, match="bad object"):
            git.git_update_ref(Path("/repo"), "refs/heads/data/itack", "new", "old")


def test_missing_git_raises_substrate_error() -> None:
    with patch("itack.exec.run_with_runner", return_value=None):
        with pytest.raises(SubstrateError, match="missing required command: git"):
            git.git_rev_parse(Path("/repo"), "HEAD")


def test_git_grep_refs_parses_matches() -> None:
    output = "refs/heads/main:.itack/issue-001.md\nrefs/heads/feat:.itack/issue-002.md\n"
    with patch("itack.git._run_git", return_value=_result(0, stdout=output)):
        assert git.git_grep_refs(Path("/repo"), "bug", ["refs/heads/main"], ".itack/") == [
            ("refs/heads/main", ".itack/issue-001.md"),
            ("refs/heads/feat", ".itack/issue-002.md"),
        ]
    with patch("itack.git._run_git", return_value=_result(1)):
        assert git.git_grep_refs(Path("/repo"), "bug", ["refs/heads/main"], ".itack/") == []


def test_write_commit_leaves_work_tree_and_refs_alone(tmp_path: Path) -> None:
    repo = init_repo(tmp_path)
    head = git.git_rev_parse(repo, "HEAD")

    commit = git.git_write_commit(
        repo,
        parent=None,
        files={".itack/issue-001.md": "content\n"},
        message="Create issue #1: test\n",
    )

    assert git.git_rev_parse(repo, "HEAD") == head
    assert not (repo / ".itack").exists()
    assert run_git(repo, "status", "--porcelain") == ""
    assert git.git_read_file(repo, commit, ".itack/issue-001.md") == "content\n"
    assert git.git_list_tree(repo, commit, ".itack") == [".itack/issue-001.md"]
    assert git.git_read_file(repo, commit, ".itack/missing.md") is None


def test_update_ref_is_compare_and_swap(tmp_path: Path) -> None:
    repo = init_repo(tmp_path)
    ref = "refs/heads/data/itack"
    first = git.git_write_commit(repo, parent=None, files={"a.txt": "1\n"}, message="one\n")
    second = git.git_write_commit(repo, parent=first, files={"a.txt": "2\n"}, message="two\n")
    third = git.git_write_commit(repo, parent=first, files={"a.txt": "3\n"}, message="three\n")

    assert git.git_update_ref(repo, ref, first, None) is True
    assert git.git_update_ref(repo, ref, first, None) is False
    assert git.git_update_ref(repo, ref, second, first) is True
    assert git.git_update_ref(repo, ref, third, first) is False
    assert git.git_rev_parse(repo, ref) == second


def test_path_history_and_log_commits(tmp_path: Path) -> None:
    repo = init_repo(tmp_path)
    first = git.git_write_commit(
        repo, parent=None, files={".itack/issue-001.md": "a\n"}, message="first\n"
    )
    second = git.git_write_commit(
        repo, parent=first, files={".itack/issue-002.md": "b\n"}, message="second\n"
    )

    history = git.git_path_history(repo, second, ".itack")
    assert history == [(second, [".itack/issue-002.md"]), (first, [".itack/issue-001.md"])]
    assert git.git_last_commit_for_path(repo, second, ".itack/issue-001.md") == first
    commits = git.git_log_commits(repo, second, ".itack/issue-002.md")
    assert [commit.subject for commit in commits] == ["second"]
    assert commits[0].timestamp is not None


def test_current_branch_and_local_branches(tmp_path: Path) -> None:
    repo = init_repo(tmp_path)
    run_git(repo, "branch", "feature/x")

    assert git.git_current_branch(repo) == "main"
    assert git.git_local_branches(repo) == ["refs/heads/feature/x", "refs/heads/main"]
    assert git.git_repo_root(repo) == repo.resolve()
    assert git.git_repo_root(tmp_path) is None
