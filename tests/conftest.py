# ruff: noqa: E402

import builtins
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import itack.log as itack_log

_ENV_VARS = (
    "ITACK_DATA_BRANCH",
    "ITACK_MERGE_BRANCH",
    "ITACK_ASSIGNEE",
    "ITACK_EDITOR",
    "ITACK_LOG_LEVEL",
    "ITACK_GIT",
    "NO_COLOR",
    "ITACK_NO_COLOR",
    "VISUAL",
    "EDITOR",
)


@pytest.fixture(autouse=True)
def _isolated_itack_env(monkeypatch: pytest.MonkeyPatch, tmp_path_factory) -> None:
    monkeypatch.setenv("ITACK_HOME", str(tmp_path_factory.mktemp("itack-home")))
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(itack_log, "_configured_level", None)
    monkeypatch.setattr(itack_log, "_no_color", None)

    def fail_input(prompt: str = "") -> str:
        raise AssertionError("prompted unexpectedly")

    monkeypatch.setattr(builtins, "input", fail_input)
