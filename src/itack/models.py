"""Pydantic models for issue records and itack configuration."""

from __future__ import annotations

import datetime as dt
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_DATA_BRANCH = "data/itack"
DEFAULT_MERGE_BRANCH = "main"
DEFAULT_STALE_AFTER_HOURS = 24.0
DEFAULT_MAX_CLAIM_ATTEMPTS = 3


class Status(str, Enum):
    """Issue status with a fixed sort priority.

    Example:
        >>> Status("in-progress").sort_priority
        0
        >>> Status.DONE.is_terminal
        True
    """

    OPEN = "open"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    WONT_FIX = "wont-fix"

    def __str__(self) -> str:
        return self.value

    @property
    def sort_priority(self) -> int:
        return _SORT_PRIORITY[self]

    @property
    def is_terminal(self) -> bool:
        return self in (Status.DONE, Status.WONT_FIX)


_SORT_PRIORITY = {
    Status.IN_PROGRESS: 0,
    Status.OPEN: 1,
    Status.DONE: 2,
    Status.WONT_FIX: 3,
}


def _clean_optional(value: object) -> object:
    if value is None:
        return None
    if isinstance(value, str):
        normalized = value.strip()
        return normalized or None
    return value


def _as_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


class Issue(BaseModel):
    """One unit of work tracked on the data branch.

    ``revision`` is the hash of the data-branch commit that last wrote the
    record. It is derived from git history on read and never written into
    the record file.

    Attributes:
        id: Stable identifier, never reused.
        title: Short human-readable summary.
        body: Free-form description.
        status: Lifecycle status.
        assignee: Current holder of the claim.
        session: Opaque work-session id attached to the claim.
        epic: Grouping label.
        branch: Git branch the claimer was on.
        depends_on: Ids this issue waits on.
        created_at: Creation time (UTC).
        updated_at: Time of the last mutation (UTC).
        revision: Optimistic-concurrency token.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int = Field(ge=1)
    title: str
    body: str = ""
    status: Status = Status.OPEN
    assignee: str | None = None
    session: str | None = None
    epic: str | None = None
    branch: str | None = None
    depends_on: tuple[int, ...] = ()
    created_at: dt.datetime
    updated_at: dt.datetime
    revision: str | None = Field(default=None, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_fields(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        payload = dict(data)
        if "created_at" not in payload and "created" in payload:
            payload["created_at"] = payload.pop("created")
        if payload.get("updated_at") is None and payload.get("created_at") is not None:
            payload["updated_at"] = payload["created_at"]
        return payload

    @field_validator("title", mode="before")
    @classmethod
    def normalize_title(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("body", mode="before")
    @classmethod
    def normalize_body(cls, value: object) -> object:
        if value is None:
            return ""
        return value

    @field_validator("assignee", "session", "epic", "branch", mode="before")
    @classmethod
    def normalize_optional_strings(cls, value: object) -> object:
        return _clean_optional(value)

    @field_validator("depends_on", mode="before")
    @classmethod
    def normalize_depends_on(cls, value: object) -> object:
        if value is None:
            return ()
        if isinstance(value, (list, tuple, set)):
            return tuple(sorted({int(item) for item in value}))
        return value

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamp(cls, value: dt.datetime) -> dt.datetime:
        return _as_utc(value).replace(microsecond=0)

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.status.sort_priority, self.id)


class GlobalConfig(BaseModel):
    """User-level itack configuration.

    Attributes:
        default_assignee: Assignee used when ``claim`` gets none.
        editor: Editor command for ``itack edit``.
        data_branch: Branch holding the authoritative issue records.
        merge_branch: Branch that receives the issue files after each
            commit; ``None`` selects data-only mode.
        stale_after_hours: Age after which an in-progress claim is reported.
        max_claim_attempts: Bounded retry count for contended mutations.

    Example:
        >>> GlobalConfig(merge_branch="").merge_branch is None
        True
        >>> GlobalConfig(data_branch=None).data_branch
        'data/itack'
    """

    model_config = ConfigDict(extra="allow")

    default_assignee: str | None = None
    editor: str | None = None
    data_branch: str = DEFAULT_DATA_BRANCH
    merge_branch: str | None = DEFAULT_MERGE_BRANCH
    stale_after_hours: float = Field(default=DEFAULT_STALE_AFTER_HOURS, gt=0)
    max_claim_attempts: int = Field(default=DEFAULT_MAX_CLAIM_ATTEMPTS, ge=1)

    @field_validator("default_assignee", "editor", "merge_branch", mode="before")
    @classmethod
    def normalize_optional_strings(cls, value: object) -> object:
        return _clean_optional(value)

    @field_validator("data_branch", mode="before")
    @classmethod
    def normalize_data_branch(cls, value: object) -> object:
        cleaned = _clean_optional(value)
        return cleaned or DEFAULT_DATA_BRANCH

    @property
    def data_only(self) -> bool:
        return self.merge_branch is None


class ProjectMetadata(BaseModel):
    """Project identity stored next to the issue files on the data branch."""

    model_config = ConfigDict(extra="allow")

    project_id: str
    created_at: dt.datetime | None = None
