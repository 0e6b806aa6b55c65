"""Plain console output for command results and fatal errors."""

from __future__ import annotations

import sys
from typing import NoReturn


def say(message: str) -> None:
    """Write a result line to stdout.

    Command results go here so ``--json`` output and piped tables stay free
    of log noise.

    Example:
        >>> say("Created issue #1: Fix login")
        Created issue #1: Fix login
    """
    print(message)


def die(message: str, code: int = 1, *, hint: str | None = None) -> NoReturn:
    """Report a fatal error on stderr and exit with ``code``.

    The optional ``hint`` is printed on its own line so users can copy the
    suggested command.
    """
    lines = [f"error: {message}"]
    if hint:
        lines.append(f"hint: {hint}")
    sys.stderr.write("\n".join(lines) + "\n")
    sys.exit(code)
