import subprocess
from pathlib import Path

import pytest

from itack import exec as exec_util
from itack.errors import SubstrateError


class RecordingRunner:
    def __init__(self, result: exec_util.CommandResult | None) -> None:
        self.result = result
        self.requests: list[exec_util.CommandRequest] = []

    def run(self, request: exec_util.CommandRequest) -> exec_util.CommandResult | None:
        self.requests.append(request)
        return self.result


def test_git_style_request_is_captured_as_text(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: dict[str, object] = {}

    def fake_run(argv: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        seen.update(kwargs, argv=argv)
        return subprocess.CompletedProcess(argv, 0, stdout="abc123\n", stderr="")

    monkeypatch.setattr(subprocess, "run", fake_run)
    request = exec_util.CommandRequest(
        argv=("git", "hash-object", "-w", "--stdin"),
        cwd=Path("/repo"),
        env={"GIT_INDEX_FILE": "/tmp/index"},
        input="---\nid: 1\n---\n",
    )

    result = exec_util.SubprocessCommandRunner().run(request)

    assert result == exec_util.CommandResult(
        argv=request.argv, returncode=0, stdout="abc123\n", stderr=""
    )
    assert result.ok is True
    assert seen["argv"] == ["git", "hash-object", "-w", "--stdin"]
    assert seen["input"] == "---\nid: 1\n---\n"
    assert seen["env"] == {"GIT_INDEX_FILE": "/tmp/index"}
    assert (seen["capture_output"], seen["encoding"], seen["errors"]) == (
        True,
        "utf-8",
        "surrogateescape",
    )
    assert "timeout" not in seen


def test_missing_executable_is_none(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(argv: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        raise FileNotFoundError(argv[0])

    monkeypatch.setattr(subprocess, "run", fake_run)

    assert exec_util.SubprocessCommandRunner().run(exec_util.CommandRequest(argv=("nope",))) is None


def test_invalid_utf8_output_does_not_raise(tmp_path: Path) -> None:
    blob = tmp_path / "blob"
    blob.write_bytes(b"id: 2\n\xff\xfe\n")
    request = exec_util.CommandRequest(argv=("cat", str(blob)))

    result = exec_util.SubprocessCommandRunner().run(request)

    assert result is not None and result.ok
    assert result.stdout == "id: 2\n\udcff\udcfe\n"


def test_raise_for_result_carries_git_output() -> None:
    result = exec_util.CommandResult(
        argv=("git", "update-ref", "refs/heads/data/itack"),
        returncode=128,
        stderr="fatal: bad object deadbeef\n",
    )

    with pytest.raises(SubstrateError) as excinfo:
        exec_util.raise_for_result(result)

    error = excinfo.value
    assert error.code == "substrate_error"
    assert error.message == (
        "command failed: git update-ref refs/heads/data/itack\nfatal: bad object deadbeef"
    )
    assert error.argv == result.argv
    assert error.stderr == "fatal: bad object deadbeef\n"


def test_run_interactive_inherits_terminal() -> None:
    runner = RecordingRunner(exec_util.CommandResult(argv=("vi",), returncode=3))

    code = exec_util.run_interactive(["vi", "issue.md"], cwd=Path("/tmp"), runner=runner)

    assert code == 3
    (request,) = runner.requests
    assert request.argv == ("vi", "issue.md")
    assert request.cwd == Path("/tmp")
    assert request.capture_output is False


def test_run_interactive_reports_missing_editor() -> None:
    assert exec_util.run_interactive(["nope"], runner=RecordingRunner(None)) is None


def test_run_with_runner_prefers_injected_runner() -> None:
    runner = RecordingRunner(exec_util.CommandResult(argv=("git",), returncode=0, stdout="ok"))

    result = exec_util.run_with_runner(exec_util.CommandRequest(argv=("git",)), runner=runner)

    assert result is not None and result.stdout == "ok"
    assert len(runner.requests) == 1
