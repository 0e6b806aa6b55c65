"""Command implementations exposed by the itack CLI."""

from .board import run_doctor, run_sync, show_board
from .claim import (
    add_dependencies,
    claim_issue,
    close_issue,
    complete_issue,
    release_issue,
    remove_dependencies,
    set_session,
)
from .create import create_issue
from .edit import edit_issue
from .init import init_project
from .show import list_issues, search_issues, show_history, show_issue

__all__ = [
    "add_dependencies",
    "claim_issue",
    "close_issue",
    "complete_issue",
    "create_issue",
    "edit_issue",
    "init_project",
    "list_issues",
    "release_issue",
    "remove_dependencies",
    "run_doctor",
    "run_sync",
    "search_issues",
    "set_session",
    "show_board",
    "show_history",
    "show_issue",
]
