"""Bounded read-validate-commit arbitration for issue mutations.

Every ownership or record change runs through ``ClaimArbitrator``: read the
issue at the data branch tip, apply a pure transition, then commit it against
the revision that was read. A lost race goes back to reading until the
attempts run out. There is no sleeping between attempts.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable

from . import lifecycle, log
from .errors import ConflictError, InvalidStateError
from .models import DEFAULT_MAX_CLAIM_ATTEMPTS, Issue
from .storage import DataRef, IssueMutation, IssueStore, MutationKind

Transition = Callable[[Issue], Issue]


class ArbitrationState(str, Enum):
    READING = "reading"
    COMMITTING = "committing"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class ArbitrationOutcome:
    """A committed mutation.

    Attributes:
        issue: The record as written, carrying its new revision.
        ref: Data branch commit that holds the record.
        attempts: Read-commit rounds it took.
    """

    issue: Issue
    ref: DataRef
    attempts: int


class ClaimArbitrator:
    """Serialize mutations of one issue through git compare-and-swap.

    Args:
        store: Storage bound to the data branch.
        max_attempts: Read-commit rounds before giving up with ``ConflictError``.
    """

    def __init__(self, store: IssueStore, *, max_attempts: int = DEFAULT_MAX_CLAIM_ATTEMPTS) -> None:
        self.store = store
        self.max_attempts = max_attempts
        self.state = ArbitrationState.RESOLVED

    def _enter(self, state: ArbitrationState, issue_id: int) -> None:
        log.trace(f"arbitration of issue {issue_id}: {self.state.value} -> {state.value}")
        self.state = state

    def run(
        self,
        issue_id: int,
        kind: MutationKind,
        transition: Transition,
        *,
        expected_revision: str | None = None,
        message: str | None = None,
    ) -> ArbitrationOutcome:
        """Apply ``transition`` to ``issue_id`` and commit the result.

        Args:
            issue_id: Issue to mutate.
            kind: Operation name recorded in the commit.
            transition: Pure function from the current record to the new one.
            expected_revision: Revision the caller read earlier. When given,
                any change since that revision is a conflict and nothing is
                retried.
            message: Optional commit subject.

        Raises:
            InvalidStateError: The transition is not allowed from the state
                read on the first attempt.
            ConflictError: Another writer changed the issue first and the
                transition no longer applies, the pinned revision is stale,
                or the attempts ran out.
        """
        lost_race = False
        for attempt in range(1, self.max_attempts + 1):
            self._enter(ArbitrationState.READING, issue_id)
            current = self.store.read(issue_id)
            if expected_revision is not None and current.revision != expected_revision:
                self._enter(ArbitrationState.RESOLVED, issue_id)
                raise ConflictError(
                    f"issue {issue_id} changed since revision {expected_revision[:12]}",
                    recovery_hint=f"re-read issue {issue_id} and retry",
                )
            try:
                updated = transition(current)
            except InvalidStateError as exc:
                self._enter(ArbitrationState.RESOLVED, issue_id)
                if not lost_race:
                    raise
                raise ConflictError(
                    f"{exc.message} (another agent changed issue {issue_id} first)"
                ) from exc
            self._enter(ArbitrationState.COMMITTING, issue_id)
            try:
                outcome = self.store.commit(
                    IssueMutation(kind=kind, issue=updated, message=message),
                    expected_revision=current.revision,
                    attempts=1,
                )
            except ConflictError:
                if expected_revision is not None:
                    self._enter(ArbitrationState.RESOLVED, issue_id)
                    raise
                lost_race = True
                log.debug(
                    f"{kind} of issue {issue_id} lost a race "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
                continue
            self._enter(ArbitrationState.RESOLVED, issue_id)
            return ArbitrationOutcome(issue=outcome.issue, ref=outcome.ref, attempts=attempt)
        self._enter(ArbitrationState.RESOLVED, issue_id)
        raise ConflictError(
            f"{kind} of issue {issue_id} did not commit after {self.max_attempts} attempts",
            recovery_hint="retry the command",
        )

    def claim(
        self,
        issue_id: int,
        assignee: str,
        session: str | None = None,
        *,
        branch: str | None = None,
        expected_revision: str | None = None,
    ) -> ArbitrationOutcome:
        return self.run(
            issue_id,
            "claim",
            lambda issue: lifecycle.claim(issue, assignee, session=session, branch=branch),
            expected_revision=expected_revision,
        )

    def release(self, issue_id: int, *, expected_revision: str | None = None) -> ArbitrationOutcome:
        return self.run(issue_id, "release", lifecycle.release, expected_revision=expected_revision)

    def done(self, issue_id: int, *, expected_revision: str | None = None) -> ArbitrationOutcome:
        return self.run(issue_id, "done", lifecycle.done, expected_revision=expected_revision)

    def wont_fix(self, issue_id: int, *, expected_revision: str | None = None) -> ArbitrationOutcome:
        return self.run(issue_id, "wont-fix", lifecycle.wont_fix, expected_revision=expected_revision)

    def edit(
        self,
        issue_id: int,
        patch: lifecycle.IssuePatch,
        *,
        message: str | None = None,
        expected_revision: str | None = None,
    ) -> ArbitrationOutcome:
        return self.run(
            issue_id,
            "edit",
            lambda issue: lifecycle.edit(issue, patch),
            expected_revision=expected_revision,
            message=message,
        )

    def set_session(
        self, issue_id: int, session: str | None, *, expected_revision: str | None = None
    ) -> ArbitrationOutcome:
        return self.run(
            issue_id,
            "session",
            lambda issue: lifecycle.set_session(issue, session),
            expected_revision=expected_revision,
        )

    def depend(self, issue_id: int, dependencies: Iterable[int]) -> ArbitrationOutcome:
        deps = tuple(dependencies)
        return self.run(
            issue_id, "depend", lambda issue: lifecycle.add_dependencies(issue, deps)
        )

    def undepend(self, issue_id: int, dependencies: Iterable[int]) -> ArbitrationOutcome:
        deps = tuple(dependencies)
        return self.run(
            issue_id, "undepend", lambda issue: lifecycle.remove_dependencies(issue, deps)
        )
