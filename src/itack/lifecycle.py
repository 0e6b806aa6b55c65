"""Pure lifecycle transitions for issue records.

Every function here takes an ``Issue`` and returns a new one; nothing reads
or writes git. Rejections raise ``InvalidStateError`` or
``ValidationFailedError`` with a message naming the rule that blocked them.

Example:
    >>> import datetime as dt
    >>> now = dt.datetime(2026, 1, 1, tzinfo=dt.timezone.utc)
    >>> issue = new_issue(1, "Fix bug", now=now)
    >>> claimed = claim(issue, "agent-1", now=now)
    >>> (claimed.status.value, claimed.assignee)
    ('in-progress', 'agent-1')
    >>> invariant_violations(claimed)
    []
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Iterable

from .config import utc_now
from .errors import InvalidStateError, ValidationFailedError
from .models import Issue, Status


@dataclass(frozen=True)
class IssuePatch:
    """Fields an ``edit`` may change; ``None`` leaves a field as it is."""

    title: str | None = None
    body: str | None = None
    epic: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.title is None and self.body is None and self.epic is None


def next_issue_id(used_ids: Iterable[int]) -> int:
    """Return one more than the largest id ever used.

    Example:
        >>> next_issue_id([])
        1
        >>> next_issue_id([1, 5, 3])
        6
    """
    return max(used_ids, default=0) + 1


def _touch(issue: Issue, now: dt.datetime | None, **update: object) -> Issue:
    stamp = now or utc_now()
    if stamp < issue.updated_at:
        stamp = issue.updated_at
    payload = issue.model_dump()
    payload.update(update)
    payload["updated_at"] = stamp
    return Issue.model_validate({**payload, "revision": issue.revision})


def _require_title(title: str | None) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationFailedError("title must not be empty")
    if "\n" in cleaned or "\r" in cleaned:
        raise ValidationFailedError("title must be a single line")
    return cleaned


def _clean_body(body: str | None) -> str:
    return (body or "").strip()


def new_issue(
    issue_id: int,
    title: str,
    *,
    body: str | None = None,
    epic: str | None = None,
    depends_on: Iterable[int] = (),
    now: dt.datetime | None = None,
) -> Issue:
    """Build a fresh ``open`` issue."""
    stamp = now or utc_now()
    deps = [dep for dep in depends_on if dep != issue_id]
    return Issue(
        id=issue_id,
        title=_require_title(title),
        body=_clean_body(body),
        epic=epic,
        depends_on=deps,
        created_at=stamp,
        updated_at=stamp,
    )


def _reject_terminal(issue: Issue, action: str) -> None:
    if issue.status.is_terminal:
        raise InvalidStateError(f"cannot {action} issue {issue.id}: issue is {issue.status}")


def claim(
    issue: Issue,
    assignee: str,
    *,
    session: str | None = None,
    branch: str | None = None,
    now: dt.datetime | None = None,
) -> Issue:
    """Move an ``open`` issue to ``in-progress`` for ``assignee``."""
    holder = (assignee or "").strip()
    if not holder:
        raise ValidationFailedError("claim requires a non-empty assignee")
    if issue.status is Status.IN_PROGRESS:
        raise InvalidStateError(
            f"issue {issue.id} is already claimed by {issue.assignee}",
            holder=issue.assignee,
        )
    _reject_terminal(issue, "claim")
    return _touch(
        issue,
        now,
        status=Status.IN_PROGRESS,
        assignee=holder,
        session=session,
        branch=branch,
    )


def release(issue: Issue, *, now: dt.datetime | None = None) -> Issue:
    """Return an ``in-progress`` issue to ``open`` and clear the claim."""
    if issue.status is not Status.IN_PROGRESS:
        raise InvalidStateError(f"cannot release issue {issue.id}: issue is not claimed")
    return _touch(issue, now, status=Status.OPEN, assignee=None, session=None, branch=None)


def done(issue: Issue, *, now: dt.datetime | None = None) -> Issue:
    """Mark an ``in-progress`` issue as ``done``.

    The assignee is kept as a record of who finished the work.
    """
    _reject_terminal(issue, "complete")
    if issue.status is not Status.IN_PROGRESS:
        raise InvalidStateError(
            f"cannot complete issue {issue.id}: issue must be in-progress, not {issue.status}"
        )
    return _touch(issue, now, status=Status.DONE)


def wont_fix(issue: Issue, *, now: dt.datetime | None = None) -> Issue:
    """Close an open or in-progress issue as ``wont-fix``."""
    _reject_terminal(issue, "close")
    return _touch(issue, now, status=Status.WONT_FIX)


def edit(issue: Issue, patch: IssuePatch, *, now: dt.datetime | None = None) -> Issue:
    """Apply a title/body/epic patch without touching status or ownership."""
    if patch.is_empty:
        raise ValidationFailedError("edit requires at least one of title, body or epic")
    update: dict[str, object] = {}
    if patch.title is not None:
        update["title"] = _require_title(patch.title)
    if patch.body is not None:
        update["body"] = _clean_body(patch.body)
    if patch.epic is not None:
        update["epic"] = patch.epic
    return _touch(issue, now, **update)


def set_session(issue: Issue, session: str | None, *, now: dt.datetime | None = None) -> Issue:
    """Attach (or clear) the work-session id on a claimed issue."""
    if issue.status is not Status.IN_PROGRESS:
        raise InvalidStateError(
            f"cannot set session on issue {issue.id}: a session needs a claimed issue"
        )
    return _touch(issue, now, session=session)


def add_dependencies(
    issue: Issue, dependencies: Iterable[int], *, now: dt.datetime | None = None
) -> Issue:
    """Add ids to ``depends_on``; self-references and duplicates are ignored.

    Example:
        >>> import datetime as dt
        >>> now = dt.datetime(2026, 1, 1, tzinfo=dt.timezone.utc)
        >>> add_dependencies(new_issue(4, "x", now=now), [2, 4, 2], now=now).depends_on
        (2,)
    """
    merged = set(issue.depends_on)
    merged.update(dep for dep in dependencies if dep != issue.id)
    return _touch(issue, now, depends_on=sorted(merged))


def remove_dependencies(
    issue: Issue, dependencies: Iterable[int], *, now: dt.datetime | None = None
) -> Issue:
    """Drop ids from ``depends_on``."""
    removed = set(dependencies)
    return _touch(issue, now, depends_on=[dep for dep in issue.depends_on if dep not in removed])


def invariant_violations(issue: Issue) -> list[str]:
    """Return human-readable descriptions of broken record invariants."""
    problems: list[str] = []
    if issue.status is Status.IN_PROGRESS and not issue.assignee:
        problems.append("in-progress issue has no assignee")
    if issue.status is Status.OPEN and issue.assignee:
        problems.append(f"open issue has assignee {issue.assignee}")
    if issue.session and not issue.assignee:
        problems.append("session is set without an assignee")
    if issue.updated_at < issue.created_at:
        problems.append("updated_at is earlier than created_at")
    if not issue.title:
        problems.append("title is empty")
    if issue.id in issue.depends_on:
        problems.append("issue depends on itself")
    return problems
