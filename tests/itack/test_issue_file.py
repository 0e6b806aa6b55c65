import datetime as dt

import pytest

from itack import lifecycle
from itack.issue_file import IssueFileError, format_issue, parse_issue
from itack.models import Status

NOW = dt.datetime(2026, 1, 18, 12, 34, 56, tzinfo=dt.timezone.utc)


def test_format_issue_writes_sorted_front_matter_and_heading() -> None:
    issue = lifecycle.claim(
        lifecycle.new_issue(7, "Fix login", body="Steps:\n\n1. log in", epic="auth", now=NOW),
        "agent-1",
        session="s-9",
        branch="main",
        now=NOW,
    )

    content = format_issue(issue)

    assert content == (
        "---\n"
        "assignee: agent-1\n"
        "branch: main\n"
        "created_at: '2026-01-18T12:34:56Z'\n"
        "epic: auth\n"
        "id: 7\n"
        "session: s-9\n"
        "status: in-progress\n"
        "updated_at: '2026-01-18T12:34:56Z'\n"
        "---\n"
        "\n"
        "# Fix login\n"
        "\n"
        "Steps:\n"
        "\n"
        "1. log in\n"
    )


def test_format_issue_omits_empty_optionals_and_body() -> None:
    content = format_issue(lifecycle.new_issue(1, "Solo", now=NOW))

    assert "assignee" not in content
    assert "depends_on" not in content
    assert content.endswith("---\n\n# Solo\n")


def test_parse_issue_reads_what_format_writes() -> None:
    issue = lifecycle.add_dependencies(
        lifecycle.new_issue(12, "Deps", body="Body text", now=NOW), [3, 4], now=NOW
    )

    parsed = parse_issue(format_issue(issue), revision="abc123")

    assert parsed == issue.model_copy(update={"revision": "abc123"})
    assert parsed.revision == "abc123"


def test_parse_issue_accepts_legacy_created_key() -> None:
    content = (
        "---\n"
        "id: 2\n"
        "status: open\n"
        "created: 2024-01-28T10:00:00Z\n"
        "title: ignored\n"
        "---\n"
        "\n"
        "# Legacy issue\n"
    )

    issue = parse_issue(content)

    assert issue.title == "Legacy issue"
    assert issue.status is Status.OPEN
    assert issue.created_at == dt.datetime(2024, 1, 28, 10, tzinfo=dt.timezone.utc)
    assert issue.updated_at == issue.created_at


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("# No front matter\n", "missing YAML front matter"),
        ("---\nid: 1\n", "closed, non-empty mapping"),
        ("---\nid: 1\nstatus: open\ncreated_at: 2026-01-01T00:00:00Z\n---\n\nno heading\n", "title"),
        ("---\n- a\n- b\n---\n\n# T\n", "closed, non-empty mapping"),
        ("---\nid: [1\n---\n\n# T\n", "invalid YAML front matter"),
        ("---\nid: 1\nstatus: open\n---\n\n# Caf\udcc3\n", "not valid UTF-8 at position 33"),
        ("---\nid: 1\nstatus: stuck\ncreated_at: 2026-01-01T00:00:00Z\n---\n\n# T\n", "invalid"),
    ],
)
def test_parse_issue_rejects_malformed_content(content: str, message: str) -> None:
    with pytest.raises(IssueFileError, match=message):
        parse_issue(content)
