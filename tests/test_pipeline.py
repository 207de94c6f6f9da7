from __future__ import annotations

import json
import os
import shutil
import stat
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from deploy_matrix.application import pipeline
from deploy_matrix.core import config
from deploy_matrix.domain.errors import (
    ConfigurationError,
    MatrixParseError,
    SubprocessError,
)
from deploy_matrix.domain.models import MatrixSuccess, RunFailure
from deploy_matrix.infrastructure import process

MATRIX = '{"include":[{"service":"api","environment":"production","tag":"v1.2.3"}]}'


class RecordingRun:
    def __init__(self, stdout: bytes = b"", returncode: int = 0) -> None:
        self.stdout = stdout
        self.returncode = returncode
        self.calls: list[dict[str, Any]] = []

    def __call__(self, args, **kwargs):
        self.calls.append({"args": args, **kwargs})
        return SimpleNamespace(
            returncode=self.returncode, stdout=self.stdout, stderr=b""
        )


def _environ(repo: Path, **inputs: str) -> dict[str, str]:
    environ = {
        "PATH": os.environ.get("PATH", "/usr/bin:/bin"),
        config.input_env_name("repo-path"): str(repo),
    }
    for name, value in inputs.items():
        environ[config.input_env_name(name.replace("_", "-"))] = value
    return environ


@pytest.fixture()
def fake_run(monkeypatch: pytest.MonkeyPatch) -> RecordingRun:
    recorder = RecordingRun(stdout=MATRIX.encode())
    monkeypatch.setattr(process.subprocess, "run", recorder)
    return recorder


def test_end_to_end_with_environment_filter(
    tmp_path: Path, fake_run: RecordingRun
) -> None:
    environ = _environ(
        tmp_path, tag="v1.2.3", github_token="tok", overlay="production", branch="main"
    )

    outcome = pipeline.run(environ=environ)

    assert isinstance(outcome, MatrixSuccess)
    assert outcome.result.canonical == MATRIX
    assert outcome.command.tokens[-2:] == ("-envFilter", "production")
    assert len(fake_run.calls) == 1
    call = fake_run.calls[0]
    assert call["args"][-1].endswith("-actionTag v1.2.3 -envFilter production")
    assert call["cwd"] == tmp_path
    assert call["env"]["GITHUB_TOKEN"] == "tok"


def test_end_to_end_without_environment_filter(
    tmp_path: Path, fake_run: RecordingRun
) -> None:
    environ = _environ(tmp_path, tag="v1.2.3", github_token="tok", branch="main")

    outcome = pipeline.run(environ=environ)

    assert isinstance(outcome, MatrixSuccess)
    assert "-envFilter" not in outcome.command.tokens
    assert "-envFilter" not in fake_run.calls[0]["args"][-1]


def test_missing_repository_fails_before_launch(
    tmp_path: Path, fake_run: RecordingRun
) -> None:
    environ = _environ(tmp_path / "absent", tag="v1", github_token="tok")

    outcome = pipeline.run(environ=environ)

    assert isinstance(outcome, RunFailure)
    assert isinstance(outcome.error, ConfigurationError)
    assert outcome.config is None
    assert fake_run.calls == []


@pytest.mark.parametrize("inputs", [{"github_token": "tok"}, {"tag": "v1"}, {}])
def test_missing_required_inputs_fail_before_launch(
    tmp_path: Path, fake_run: RecordingRun, inputs: dict[str, str]
) -> None:
    outcome = pipeline.run(environ=_environ(tmp_path, **inputs))

    assert isinstance(outcome, RunFailure)
    assert isinstance(outcome.error, ConfigurationError)
    assert fake_run.calls == []


def test_empty_tool_output_is_a_subprocess_failure(
    tmp_path: Path, fake_run: RecordingRun
) -> None:
    fake_run.stdout = b"  \n"

    outcome = pipeline.run(environ=_environ(tmp_path, tag="v1", github_token="tok"))

    assert isinstance(outcome, RunFailure)
    assert isinstance(outcome.error, SubprocessError)
    assert outcome.config is not None
    assert outcome.config.tag == "v1"


def test_unparseable_output_is_a_parse_failure(
    tmp_path: Path, fake_run: RecordingRun
) -> None:
    fake_run.stdout = b"not json"

    outcome = pipeline.run(environ=_environ(tmp_path, tag="v1", github_token="tok"))

    assert isinstance(outcome, RunFailure)
    assert isinstance(outcome.error, MatrixParseError)
    assert "not json" in outcome.message


def test_invalid_utf8_output_is_a_parse_failure(
    tmp_path: Path, fake_run: RecordingRun
) -> None:
    fake_run.stdout = b'{"include":[{"service":"\xff"}]}'

    outcome = pipeline.run(environ=_environ(tmp_path, tag="v1", github_token="tok"))

    assert isinstance(outcome, RunFailure)
    assert isinstance(outcome.error, MatrixParseError)
    assert "not valid UTF-8" in outcome.message


def test_ambient_github_token_is_not_used_as_credential(
    tmp_path: Path, fake_run: RecordingRun
) -> None:
    environ = _environ(tmp_path, tag="v1")
    environ["GITHUB_TOKEN"] = "ambient"

    outcome = pipeline.run(environ=environ)

    assert isinstance(outcome, RunFailure)
    assert isinstance(outcome.error, ConfigurationError)
    assert outcome.message == "github-token input is required"
    assert fake_run.calls == []


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("INPUT_TIMEOUT", "inf"),
        ("INPUT_TIMEOUT", "1e20"),
        (config.TOOL_ENV_VAR, 'node "unterminated'),
    ],
)
def test_malformed_settings_fail_before_launch(
    tmp_path: Path, fake_run: RecordingRun, name: str, value: str
) -> None:
    environ = _environ(tmp_path, tag="v1", github_token="tok")
    environ[name] = value

    outcome = pipeline.run(environ=environ)

    assert isinstance(outcome, RunFailure)
    assert isinstance(outcome.error, ConfigurationError)
    assert outcome.config is None
    assert fake_run.calls == []


def test_double_encoded_output_is_published_single_encoded(
    tmp_path: Path, fake_run: RecordingRun
) -> None:
    fake_run.stdout = json.dumps(MATRIX).encode()

    outcome = pipeline.run(environ=_environ(tmp_path, tag="v1", github_token="tok"))

    assert isinstance(outcome, MatrixSuccess)
    assert outcome.result.canonical == MATRIX
    assert outcome.result.unwrapped is True


def test_on_resolved_runs_before_launch(
    tmp_path: Path, fake_run: RecordingRun
) -> None:
    seen: list[int] = []

    def on_resolved(settings) -> None:
        seen.append(len(fake_run.calls))

    pipeline.run(
        environ=_environ(tmp_path, tag="v1", github_token="tok"),
        on_resolved=on_resolved,
    )

    assert seen == [0]


def test_unexpected_errors_propagate(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken(*args: object, **kwargs: object) -> None:
        raise KeyError("bug")

    monkeypatch.setattr(pipeline, "build_command", broken)

    with pytest.raises(KeyError):
        pipeline.run(environ=_environ(tmp_path, tag="v1", github_token="tok"))


@pytest.mark.skipif(shutil.which("bash") is None, reason="bash is required")
def test_real_shell_invocation(tmp_path: Path) -> None:
    tool = tmp_path / "fake-workflow-utils"
    tool.write_text(
        "#!/usr/bin/env bash\n"
        'test "$GITHUB_TOKEN" = "tok" || { echo "token missing" >&2; exit 4; }\n'
        'printf "%s" "$*" > args.txt\n'
        "cat payload.json\n",
        encoding="utf-8",
    )
    tool.chmod(tool.stat().st_mode | stat.S_IEXEC)
    payload = tmp_path / "payload.json"
    payload.write_text(json.dumps(MATRIX) + "\n", encoding="utf-8")
    environ = _environ(tmp_path, tag="v9", github_token="tok", overlay="qa")
    environ[config.TOOL_ENV_VAR] = str(tool)

    outcome = pipeline.run(environ=environ)

    assert isinstance(outcome, MatrixSuccess), getattr(outcome, "message", "")
    assert outcome.result.unwrapped is True
    assert outcome.result.canonical == MATRIX
    assert (tmp_path / "args.txt").read_text(encoding="utf-8") == (
        "get-services-env-config -dir . -outputFormat github-matrix "
        "-branch main -actionTag v9 -envFilter qa"
    )


@pytest.mark.skipif(shutil.which("bash") is None, reason="bash is required")
def test_real_shell_nonzero_exit(tmp_path: Path) -> None:
    tool = tmp_path / "failing-tool"
    tool.write_text(
        "#!/usr/bin/env bash\necho 'boom' >&2\nexit 2\n", encoding="utf-8"
    )
    tool.chmod(tool.stat().st_mode | stat.S_IEXEC)
    environ = _environ(tmp_path, tag="v9", github_token="tok")
    environ[config.TOOL_ENV_VAR] = str(tool)

    outcome = pipeline.run(environ=environ)

    assert isinstance(outcome, RunFailure)
    assert isinstance(outcome.error, SubprocessError)
    assert outcome.error.exit_status == 2
    assert "boom" in outcome.message
