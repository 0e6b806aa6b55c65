"""External program execution for itack.

itack runs two kinds of programs: ``git``, whose output is captured and
parsed, and the user's editor, which is attached to the terminal. Both go
through a ``CommandRunner`` so tests can substitute a fake runner instead of
patching :mod:`subprocess`.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, NoReturn, Protocol

from .errors import SubstrateError

# Undecodable bytes come back as lone surrogates.
OUTPUT_ENCODING = "utf-8"
OUTPUT_ERRORS = "surrogateescape"


@dataclass(frozen=True)
class CommandRequest:
    """One program invocation.

    ``input`` is written to stdin. With ``capture_output=False`` the program
    inherits the terminal and only its exit code is reported.
    """

    argv: tuple[str, ...]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    input: str | None = None
    capture_output: bool = True


@dataclass(frozen=True)
class CommandResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Captured stderr, falling back to stdout, stripped."""
        return (self.stderr or self.stdout or "").strip()


class CommandRunner(Protocol):
    def run(self, request: CommandRequest) -> CommandResult | None: ...


def _subprocess_kwargs(request: CommandRequest) -> dict[str, object]:
    kwargs: dict[str, object] = {"cwd": request.cwd, "env": request.env, "check": False}
    if request.capture_output or request.input is not None:
        kwargs["encoding"] = OUTPUT_ENCODING
        kwargs["errors"] = OUTPUT_ERRORS
    if request.capture_output:
        kwargs["capture_output"] = True
    if request.input is not None:
        kwargs["input"] = request.input
    return kwargs


def _as_text(value: object) -> str:
    return value if isinstance(value, str) else ""


class SubprocessCommandRunner:
    """Run requests with :func:`subprocess.run`.

    A missing executable yields ``None``.
    """

    def run(self, request: CommandRequest) -> CommandResult | None:
        try:
            completed = subprocess.run(list(request.argv), **_subprocess_kwargs(request))
        except FileNotFoundError:
            return None
        return CommandResult(
            argv=request.argv,
            returncode=completed.returncode,
            stdout=_as_text(completed.stdout),
            stderr=_as_text(completed.stderr),
        )


_DEFAULT_COMMAND_RUNNER: CommandRunner = SubprocessCommandRunner()


def run_with_runner(
    request: CommandRequest, *, runner: CommandRunner | None = None
) -> CommandResult | None:
    """Run ``request`` with ``runner`` or the process-wide subprocess runner."""
    return (runner or _DEFAULT_COMMAND_RUNNER).run(request)


def describe_failure(result: CommandResult) -> str:
    """Summarize a failed command and its captured output.

    Example:
        >>> result = CommandResult(argv=("git", "status"), returncode=128, stderr="fatal: nope\\n")
        >>> describe_failure(result)
        'command failed: git status\\nfatal: nope'
        >>> describe_failure(CommandResult(argv=("git", "gc"), returncode=1))
        'command failed: git gc'
    """
    summary = f"command failed: {' '.join(result.argv)}"
    if result.output:
        return f"{summary}\n{result.output}"
    return summary


def raise_for_result(result: CommandResult) -> NoReturn:
    """Raise the ``SubstrateError`` describing a failed command."""
    raise SubstrateError(describe_failure(result), argv=result.argv, stderr=result.stderr)


def run_interactive(
    cmd: list[str],
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    *,
    runner: CommandRunner | None = None,
) -> int | None:
    """Run ``cmd`` on the user's terminal.

    Returns:
        The exit code, or ``None`` when the executable does not exist.
    """
    request = CommandRequest(argv=tuple(cmd), cwd=cwd, env=env, capture_output=False)
    result = run_with_runner(request, runner=runner)
    return None if result is None else result.returncode
