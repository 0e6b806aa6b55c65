# ruff: noqa: E402

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from itack.models import GlobalConfig
from itack.project import Project
from itack.tracker import IssueTracker


def git(repo: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", "-C", str(repo), *args],
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout.strip()


def init_repo(root: Path, name: str = "repo") -> Path:
    repo = root / name
    repo.mkdir()
    subprocess.run(["git", "-C", str(repo), "init", "--quiet"], check=True)
    git(repo, "config", "user.email", "test@example.com")
    git(repo, "config", "user.name", "Test User")
    git(repo, "config", "commit.gpgsign", "false")
    (repo / "README.md").write_text("base\n", encoding="utf-8")
    git(repo, "add", "README.md")
    git(repo, "commit", "--quiet", "-m", "chore: initial")
    git(repo, "branch", "-M", "main")
    return repo


def make_tracker(repo: Path, **overrides: object) -> IssueTracker:
    return IssueTracker(Project(root=repo, config=GlobalConfig(**overrides)))


def init_tracker(root: Path, **overrides: object) -> tuple[Path, IssueTracker]:
    repo = init_repo(root)
    tracker = make_tracker(repo, **overrides)
    tracker.init()
    return repo, tracker


def data_tip(repo: Path, branch: str = "data/itack") -> str:
    return git(repo, "rev-parse", f"refs/heads/{branch}")
