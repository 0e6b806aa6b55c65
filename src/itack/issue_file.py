"""Markdown issue files with YAML front matter.

An issue file looks like::

    ---
    created_at: '2026-01-18T12:34:56Z'
    id: 1
    status: open
    updated_at: '2026-01-18T12:34:56Z'
    ---

    # Fix bug

    Body text.

The title lives in the ``# `` heading, never in the front matter.
"""

from __future__ import annotations

import frontmatter
import yaml
from pydantic import ValidationError

from .config import format_timestamp
from .errors import ValidationFailedError
from .models import Issue

_TITLE_PREFIX = "# "


class IssueFileError(ValidationFailedError):
    """Raised when an issue file cannot be parsed."""


def _front_matter(issue: Issue) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": issue.id,
        "status": issue.status.value,
        "created_at": format_timestamp(issue.created_at),
        "updated_at": format_timestamp(issue.updated_at),
    }
    if issue.assignee:
        payload["assignee"] = issue.assignee
    if issue.session:
        payload["session"] = issue.session
    if issue.epic:
        payload["epic"] = issue.epic
    if issue.branch:
        payload["branch"] = issue.branch
    if issue.depends_on:
        payload["depends_on"] = list(issue.depends_on)
    return payload


def format_issue(issue: Issue) -> str:
    """Render an issue as markdown with sorted YAML front matter."""
    content = f"{_TITLE_PREFIX}{issue.title}"
    body = issue.body.strip("\n")
    if body:
        content = f"{content}\n\n{body}"
    post = frontmatter.Post(content, **_front_matter(issue))
    return frontmatter.dumps(post, sort_keys=True) + "\n"


def _require_utf8(content: str) -> None:
    try:
        content.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise IssueFileError(f"not valid UTF-8 at position {exc.start}") from exc


def _load_post(content: str) -> frontmatter.Post:
    if not frontmatter.checks(content.lstrip()):
        raise IssueFileError("missing YAML front matter")
    try:
        post = frontmatter.loads(content)
    except yaml.YAMLError as exc:
        raise IssueFileError(f"invalid YAML front matter: {exc}") from exc
    # Unclosed or non-mapping front matter parses to empty metadata.
    if not post.metadata:
        raise IssueFileError("YAML front matter must be a closed, non-empty mapping")
    return post


def _split_title(text: str) -> tuple[str, str]:
    if not text.startswith(_TITLE_PREFIX):
        raise IssueFileError("missing title heading (# Title)")
    heading, _, remainder = text[len(_TITLE_PREFIX) :].partition("\n")
    return heading.strip(), remainder.strip("\n")


def parse_issue(content: str, *, revision: str | None = None) -> Issue:
    """Parse an issue file.

    Args:
        content: Raw markdown content.
        revision: Optional revision to attach to the parsed issue.

    Returns:
        The parsed ``Issue``.

    Raises:
        IssueFileError: The content is not a valid issue file.

    Example:
        >>> text = "---\\nid: 3\\nstatus: open\\ncreated_at: 2026-01-01T00:00:00Z\\n---\\n\\n# Hi\\n"
        >>> issue = parse_issue(text)
        >>> (issue.id, issue.title, issue.status.value, issue.body)
        (3, 'Hi', 'open', '')
    """
    _require_utf8(content)
    post = _load_post(content)
    front = dict(post.metadata)
    front.pop("title", None)
    title, body = _split_title(post.content)
    try:
        return Issue.model_validate({**front, "title": title, "body": body, "revision": revision})
    except ValidationError as exc:
        raise IssueFileError(f"invalid issue record: {exc}") from exc
