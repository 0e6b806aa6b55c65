"""Implementations for the ``board``, ``doctor`` and ``sync`` commands."""

from __future__ import annotations

from .. import log, render
from ..errors import EXIT_ERROR
from ..io import say
from .resolve import resolve_tracker


def show_board(args: object) -> None:
    """Show issue counts per status and per active assignee.

    Example:
        $ itack board
    """
    summary = resolve_tracker().board()
    if getattr(args, "json", False):
        render.say_json(render.board_payload(summary))
        return
    render.render_board(summary)


def run_doctor(args: object) -> int:
    """Report drift between the data branch and its projection.

    Returns:
        Exit code: ``0`` when clean, ``1`` when diagnostics were reported.

    Example:
        $ itack doctor --json
    """
    diagnostics = resolve_tracker().doctor()
    if getattr(args, "json", False):
        render.say_json([render.diagnostic_payload(item) for item in diagnostics])
    else:
        render.render_diagnostics(diagnostics)
    return EXIT_ERROR if diagnostics else 0


def run_sync(args: object) -> None:
    """Merge the data branch into the merge branch again.

    Example:
        $ itack sync
    """
    result = resolve_tracker().sync()
    if result.status == "skipped":
        say("Data-only mode; nothing to sync")
    elif result.status == "up-to-date":
        say(f"{result.merge_branch} is up to date")
    else:
        log.success(f"Merged issues into {result.merge_branch}")
