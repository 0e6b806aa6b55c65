"""Editor resolution and launch for ``itack edit``."""

from __future__ import annotations

import os
import shlex
import tempfile
from pathlib import Path

from . import exec as exec_util
from .errors import ValidationFailedError
from .models import GlobalConfig


def system_editor_default() -> str:
    """Return the default editor command.

    Uses ``$VISUAL``, then ``$EDITOR``; otherwise falls back to ``vi``.

    Example:
        >>> isinstance(system_editor_default(), str)
        True
    """
    for name in ("VISUAL", "EDITOR"):
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return "vi"


def resolve_editor_command(config: GlobalConfig | None = None) -> list[str]:
    """Resolve the editor command as argv tokens.

    Example:
        >>> resolve_editor_command(GlobalConfig(editor="code --wait"))
        ['code', '--wait']
    """
    command = (config.editor if config is not None else None) or system_editor_default()
    tokens = shlex.split(command)
    if not tokens:
        raise ValidationFailedError("editor command is empty")
    return tokens


def edit_text(initial: str, config: GlobalConfig | None = None, *, suffix: str = ".md") -> str:
    """Open ``initial`` in the editor and return the saved text.

    Raises:
        ValidationFailedError: The editor is missing or exits non-zero.
    """
    command = resolve_editor_command(config)
    with tempfile.TemporaryDirectory(prefix="itack-edit-") as tmp:
        path = Path(tmp) / f"issue{suffix}"
        path.write_text(initial, encoding="utf-8")
        exit_code = exec_util.run_interactive([*command, str(path)])
        if exit_code is None:
            raise ValidationFailedError(f"editor not found: {command[0]}")
        if exit_code != 0:
            raise ValidationFailedError(f"editor exited with status {exit_code}")
        return path.read_text(encoding="utf-8")
