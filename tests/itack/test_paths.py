from pathlib import Path

import pytest

import itack.paths as paths


def test_itack_home_honors_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ITACK_HOME", str(tmp_path / "home"))
    assert paths.itack_home() == tmp_path / "home"
    assert paths.global_config_path() == tmp_path / "home" / "config.json"


def test_itack_home_falls_back_to_platform_dir(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ITACK_HOME", raising=False)
    monkeypatch.setattr(paths, "user_data_dir", lambda name: f"/data/{name}")
    assert paths.itack_home() == Path("/data/itack")


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        (".itack/issue-001.md", 1),
        (".itack/issue-1234.md", 1234),
        (".itack/2024-01-28-issue-042.md", 42),
        (".itack/17.md", 17),
        (".itack/metadata.json", None),
        (".itack/notes.md", None),
    ],
)
def test_issue_id_from_path(path: str, expected: int | None) -> None:
    assert paths.issue_id_from_path(path) == expected


def test_is_issue_path_only_accepts_markdown_in_issue_dir() -> None:
    assert paths.is_issue_path(".itack/issue-001.md") is True
    assert paths.is_issue_path(".itack/metadata.json") is False
    assert paths.is_issue_path("docs/issue-001.md") is False
    assert paths.is_issue_path(".itack/sub/issue-001.md") is False
