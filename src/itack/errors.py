"""Failure contracts for itack operations.

Operations return typed outcomes on success and raise ``ItackError`` on
expected domain, concurrency or substrate failures. Programmer bugs raise
normal exceptions. Callers catch ``ItackError`` and handle it per their
interface (the CLI prints the message and exits with ``exit_code``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from .models import Issue
    from .sync import SyncResult

ItackErrorCode = Literal[
    "not_found",
    "invalid_state",
    "conflict",
    "partial_failure",
    "substrate_error",
    "validation_failed",
    "not_initialized",
]

EXIT_ERROR = 1
EXIT_CONFLICT = 2
EXIT_PARTIAL_FAILURE = 3


class ItackError(Exception):
    """Expected failure: validation, state, concurrency, or git error.

    Use ``raise ItackError(...) from exc`` to chain a causing exception; it
    is available as ``__cause__``.
    """

    exit_code = EXIT_ERROR

    def __init__(
        self,
        code: ItackErrorCode,
        message: str,
        *,
        recovery_hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recovery_hint = recovery_hint


class NotFoundError(ItackError):
    """Unknown issue id."""

    def __init__(self, issue_id: int, *, recovery_hint: str | None = None) -> None:
        super().__init__("not_found", f"issue {issue_id} not found", recovery_hint=recovery_hint)
        self.issue_id = issue_id


class InvalidStateError(ItackError):
    """Transition not permitted from the issue's current status."""

    def __init__(
        self,
        message: str,
        *,
        holder: str | None = None,
        recovery_hint: str | None = None,
    ) -> None:
        super().__init__("invalid_state", message, recovery_hint=recovery_hint)
        self.holder = holder
        if holder is not None:
            self.exit_code = EXIT_CONFLICT


class ConflictError(ItackError):
    """Optimistic-concurrency race lost after the bounded attempts."""

    exit_code = EXIT_CONFLICT

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("conflict", message, recovery_hint=recovery_hint)


class PartialFailureError(ItackError):
    """Data branch commit succeeded but projection into the working branch failed."""

    exit_code = EXIT_PARTIAL_FAILURE

    def __init__(
        self,
        message: str,
        *,
        issue: Issue | None = None,
        result: SyncResult | None = None,
        recovery_hint: str | None = "run 'itack sync' after resolving the working branch",
    ) -> None:
        super().__init__("partial_failure", message, recovery_hint=recovery_hint)
        self.issue = issue
        self.result = result


class SubstrateError(ItackError):
    """A git operation failed for reasons outside itack's control."""

    def __init__(
        self,
        message: str,
        *,
        argv: tuple[str, ...] = (),
        stderr: str = "",
        recovery_hint: str | None = None,
    ) -> None:
        super().__init__("substrate_error", message, recovery_hint=recovery_hint)
        self.argv = argv
        self.stderr = stderr


class ValidationFailedError(ItackError):
    """Invalid input (empty title, malformed record, bad argument)."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("validation_failed", message, recovery_hint=recovery_hint)


class NotInitializedError(ItackError):
    """The repository has no data branch yet."""

    def __init__(self, data_branch: str) -> None:
        super().__init__(
            "not_initialized",
            f"data branch '{data_branch}' not found",
            recovery_hint="run 'itack init' to create it",
        )
        self.data_branch = data_branch
