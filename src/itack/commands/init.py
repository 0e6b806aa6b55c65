"""Implementation for the ``itack init`` command.

``itack init`` creates the data branch as an orphan branch holding the
project metadata, then merges it into the merge branch unless the project
runs in data-only mode.
"""

from __future__ import annotations

from .. import log
from ..io import say
from .resolve import resolve_tracker


def init_project(args: object) -> None:
    """Initialize itack for the current Git repository.

    Example:
        $ itack init
    """
    tracker = resolve_tracker()
    result = tracker.init()
    branch = tracker.store.data_branch
    if result.created:
        log.success(f"Initialized data branch {branch}")
    else:
        say(f"Data branch {branch} already exists")
    say(f"Project id: {result.metadata.project_id}")
