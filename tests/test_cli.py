import contextlib
import json
import os
import sys
import tempfile
from pathlib import Path
from unittest import TestCase
from unittest.mock import patch

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from typer.testing import CliRunner  # noqa: E402

import itack.cli as cli  # noqa: E402
import itack.editor as editor  # noqa: E402
from itack import __version__  # noqa: E402
from tests.itack.helpers import git as run_git  # noqa: E402
from tests.itack.helpers import init_repo  # noqa: E402

runner = CliRunner()


def invoke(*args: str):
    return runner.invoke(cli.app, list(args))


@contextlib.contextmanager
def repo_workdir(initialized: bool = True):
    with tempfile.TemporaryDirectory() as tmp:
        repo = init_repo(Path(tmp))
        with contextlib.chdir(repo):
            if initialized:
                result = invoke("init")
                assert result.exit_code == 0, result.output
            yield repo


class TestGlobalOptions(TestCase):
    def test_version(self) -> None:
        result = invoke("--version")
        self.assertEqual(result.exit_code, 0)
        self.assertIn(f"itack {__version__}", result.output)

    def test_invalid_log_level_is_a_usage_error(self) -> None:
        with repo_workdir():
            result = invoke("--log-level", "loud", "list")
        self.assertNotEqual(result.exit_code, 0)
        self.assertIn("--log-level", result.output)

    def test_outside_repository_fails(self) -> None:
        with tempfile.TemporaryDirectory() as tmp, contextlib.chdir(tmp):
            result = invoke("list")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("not inside a git repository", result.output)


class TestInit(TestCase):
    def test_list_before_init_points_at_init(self) -> None:
        with repo_workdir(initialized=False):
            result = invoke("list")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("data branch 'data/itack' not found", result.output)
        self.assertIn("itack init", result.output)

    def test_init_is_idempotent(self) -> None:
        with repo_workdir() as repo:
            result = invoke("init")
            self.assertTrue((repo / ".itack" / "metadata.json").is_file())
        self.assertEqual(result.exit_code, 0)
        self.assertIn("already exists", result.output)


class TestIssueCommands(TestCase):
    def test_create_list_and_show_json(self) -> None:
        with repo_workdir():
            created = invoke("create", "Fix login", "--body", "Safari only", "--epic", "auth")
            invoke("create", "Write docs", "--depends-on", "#1")
            listed = invoke("list", "--json")
            shown = invoke("show", "2", "--json")
            filtered = invoke("list", "--epic", "auth", "--json")

        self.assertEqual(created.exit_code, 0, created.output)
        self.assertIn("Created issue #1: Fix login", created.output)
        payload = json.loads(listed.stdout)
        self.assertEqual([item["id"] for item in payload], [1, 2])
        self.assertEqual(payload[0]["status"], "open")
        issue = json.loads(shown.stdout)
        self.assertEqual(issue["depends_on"], [1])
        self.assertEqual(issue["body"], "")
        self.assertTrue(issue["revision"])
        self.assertEqual([item["id"] for item in json.loads(filtered.stdout)], [1])

    def test_list_table_and_empty_message(self) -> None:
        with repo_workdir():
            empty = invoke("list")
            invoke("create", "Visible title")
            table = invoke("list", "--status", "open")
            none_claimed = invoke("list", "--status", "in-progress")

        self.assertIn("No issues found.", empty.output)
        self.assertIn("Visible title", table.output)
        self.assertIn("No issues found.", none_claimed.output)

    def test_show_unknown_issue(self) -> None:
        with repo_workdir():
            result = invoke("show", "7")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("issue 7 not found", result.output)

    def test_create_rejects_unknown_dependency(self) -> None:
        with repo_workdir():
            result = invoke("create", "Orphan", "--depends-on", "9")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("issue 9 not found", result.output)

    def test_search_title_and_body(self) -> None:
        with repo_workdir():
            invoke("create", "Login fails", "--body", "on Safari")
            invoke("create", "Docs")
            by_body = invoke("search", "safari", "--json")
            nothing = invoke("search", "kernel")

        self.assertEqual([item["id"] for item in json.loads(by_body.stdout)], [1])
        self.assertIn("No issues found.", nothing.output)


class TestClaimCommands(TestCase):
    def test_claim_lifecycle(self) -> None:
        with repo_workdir():
            invoke("create", "Work item")
            claimed = invoke("claim", "1", "agent-1", "--session", "s-1")
            session = invoke("session", "1", "s-2", "--json")
            done = invoke("done", "1")
            shown = invoke("show", "1", "--json")

        self.assertEqual(claimed.exit_code, 0, claimed.output)
        self.assertIn("Claimed issue #1 for agent-1", claimed.output)
        self.assertEqual(json.loads(session.stdout)["session"], "s-2")
        self.assertIn("Marked issue #1 as done", done.output)
        issue = json.loads(shown.stdout)
        self.assertEqual(issue["status"], "done")
        self.assertEqual(issue["assignee"], "agent-1")
        self.assertEqual(issue["branch"], "main")

    def test_second_claim_exits_with_conflict(self) -> None:
        with repo_workdir():
            invoke("create", "Contended")
            invoke("claim", "1", "agent-1")
            result = invoke("claim", "1", "agent-2")
        self.assertEqual(result.exit_code, 2)
        self.assertIn("already claimed by agent-1", result.output)

    def test_stale_revision_exits_with_conflict(self) -> None:
        with repo_workdir():
            invoke("create", "Pinned")
            revision = json.loads(invoke("show", "1", "--json").stdout)["revision"]
            invoke("edit", "1", "--body", "changed")
            result = invoke("claim", "1", "agent-1", "--revision", revision)
        self.assertEqual(result.exit_code, 2)
        self.assertIn("changed since revision", result.output)

    def test_claim_without_assignee_uses_env_or_fails(self) -> None:
        with repo_workdir():
            invoke("create", "Unowned")
            missing = invoke("claim", "1")
            with patch.dict(os.environ, {"ITACK_ASSIGNEE": "bot"}):
                defaulted = invoke("claim", "1", "--json")

        self.assertEqual(missing.exit_code, 1)
        self.assertIn("no assignee given", missing.output)
        self.assertEqual(json.loads(defaulted.stdout)["assignee"], "bot")

    def test_invalid_transitions_exit_1(self) -> None:
        with repo_workdir():
            invoke("create", "Open")
            release = invoke("release", "1")
            done = invoke("done", "1")
            session = invoke("session", "1")
            closed = invoke("wont-fix", "1")
            reclaim = invoke("claim", "1", "agent-1")

        self.assertEqual(release.exit_code, 1)
        self.assertIn("not claimed", release.output)
        self.assertEqual(done.exit_code, 1)
        self.assertEqual(session.exit_code, 1)
        self.assertIn("pass a session id or --clear", session.output)
        self.assertEqual(closed.exit_code, 0)
        self.assertEqual(reclaim.exit_code, 1)
        self.assertIn("issue is wont-fix", reclaim.output)

    def test_release_returns_issue_to_open(self) -> None:
        with repo_workdir():
            invoke("create", "Handoff")
            invoke("claim", "1", "agent-1")
            result = invoke("release", "1", "--json")
        issue = json.loads(result.stdout)
        self.assertEqual(issue["status"], "open")
        self.assertIsNone(issue["assignee"])

    def test_depend_and_undepend(self) -> None:
        with repo_workdir():
            invoke("create", "One")
            invoke("create", "Two")
            invoke("create", "Three")
            added = invoke("depend", "3", "1", "#2")
            removed = invoke("undepend", "3", "1", "--json")
            unknown = invoke("depend", "3", "9")
            bad = invoke("depend", "3", "x")

        self.assertIn("Issue #3 now depends on: #1, #2", added.output)
        self.assertEqual(json.loads(removed.stdout)["depends_on"], [2])
        self.assertEqual(unknown.exit_code, 1)
        self.assertEqual(bad.exit_code, 1)
        self.assertIn("invalid issue id", bad.output)


class TestEditCommand(TestCase):
    def test_edit_with_flags(self) -> None:
        with repo_workdir():
            invoke("create", "Old title")
            result = invoke("edit", "1", "--title", "New title", "-m", "Retitle issue 1")
            history = invoke("log", "1", "--json")

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Updated issue #1: New title", result.output)
        subjects = [item["subject"] for item in json.loads(history.stdout)]
        self.assertEqual(subjects, ["Retitle issue 1", "Create issue #1: Old title"])

    def test_edit_through_editor(self) -> None:
        def fake_editor(argv: list[str], **kwargs: object) -> int:
            path = Path(argv[-1])
            text = path.read_text(encoding="utf-8").replace("# Draft", "# Final\n\nDetails")
            path.write_text(text, encoding="utf-8")
            return 0

        with repo_workdir():
            invoke("create", "Draft")
            with patch.object(editor.exec_util, "run_interactive", fake_editor):
                result = invoke("edit", "1")
            shown = json.loads(invoke("show", "1", "--json").stdout)

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(shown["title"], "Final")
        self.assertEqual(shown["body"], "Details")


class TestProjectCommands(TestCase):
    def test_board_counts(self) -> None:
        with repo_workdir():
            invoke("create", "One")
            invoke("create", "Two")
            invoke("claim", "2", "agent-1")
            result = invoke("board", "--json")
            table = invoke("board")

        board = json.loads(result.stdout)
        self.assertEqual(board["counts"]["open"], 1)
        self.assertEqual(board["counts"]["in-progress"], 1)
        self.assertEqual(board["total"], 2)
        self.assertEqual(board["in_progress_by_assignee"], {"agent-1": 1})
        self.assertIn("agent-1", table.output)

    def test_doctor_exit_codes(self) -> None:
        with repo_workdir() as repo:
            invoke("create", "One")
            clean = invoke("doctor")
            (repo / ".itack" / "issue-001.md").unlink()
            dirty = invoke("doctor", "--json")

        self.assertEqual(clean.exit_code, 0)
        self.assertIn("No problems found.", clean.output)
        self.assertEqual(dirty.exit_code, 1)
        self.assertEqual(
            [item["kind"] for item in json.loads(dirty.stdout)], ["missing-projection"]
        )

    def test_sync_reports_state(self) -> None:
        with repo_workdir():
            invoke("create", "One")
            result = invoke("sync")
        self.assertEqual(result.exit_code, 0)
        self.assertIn("main is up to date", result.output)

    def test_failed_projection_exits_3_after_commit(self) -> None:
        with repo_workdir(initialized=False) as repo:
            with patch.dict(os.environ, {"ITACK_MERGE_BRANCH": "trunk"}):
                init = invoke("init")
                created = invoke("create", "Committed anyway")
            tip_subject = run_git(repo, "log", "-1", "--format=%s", "refs/heads/data/itack")

        self.assertEqual(init.exit_code, 3)
        self.assertEqual(created.exit_code, 3)
        self.assertIn("issue 1 committed to data/itack", created.output)
        self.assertIn("itack sync", created.output)
        self.assertEqual(tip_subject, "Create issue #1: Committed anyway")

    def test_data_only_mode_leaves_merge_branch_alone(self) -> None:
        with repo_workdir(initialized=False) as repo:
            with patch.dict(os.environ, {"ITACK_MERGE_BRANCH": ""}):
                invoke("init")
                invoke("create", "Hidden")
                synced = invoke("sync")
            self.assertFalse((repo / ".itack").exists())
        self.assertIn("Data-only mode", synced.output)
