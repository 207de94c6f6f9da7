"""Publish run outcomes through GitHub Actions file and workflow commands."""

from __future__ import annotations

import json
import logging
import os
import sys
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from rich.console import Console
from rich.markdown import Markdown

from deploy_matrix.core import config
from deploy_matrix.domain.errors import DeployMatrixError
from deploy_matrix.domain.models import (
    InvocationConfig,
    MatrixSuccess,
    RunFailure,
    RunOutcome,
)

logger = logging.getLogger(__name__)

OUTPUT_ENV_VAR = "GITHUB_OUTPUT"
SUMMARY_ENV_VAR = "GITHUB_STEP_SUMMARY"

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


def escape_command_data(value: str) -> str:
    """Escape a workflow command payload the way the Actions toolkit does."""

    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _fence_for(content: str) -> str:
    fence = "```"
    while fence in content:
        fence += "`"
    return fence


@dataclass
class Report:
    """Job summary content: a heading, setting rows, and one fenced block."""

    heading: str
    rows: list[tuple[str, str]] = field(default_factory=list)
    text: str = ""
    code: str = ""
    language: str = ""

    def to_markdown(self) -> str:
        lines = [f"## {self.heading}", ""]
        if self.rows:
            lines.extend(["| Setting | Value |", "| --- | --- |"])
            lines.extend(f"| {name} | `{value}` |" for name, value in self.rows)
            lines.append("")
        if self.text:
            lines.extend([self.text, ""])
        fence = _fence_for(self.code)
        lines.extend([f"{fence}{self.language}", self.code, fence, ""])
        return "\n".join(lines)


def _setting_rows(settings: InvocationConfig) -> list[tuple[str, str]]:
    return [
        ("Tag", settings.tag),
        ("Branch", settings.branch),
        ("Environment", settings.environment_label),
    ]


def build_report(outcome: RunOutcome) -> Report:
    """Render either report variant from a run outcome."""

    match outcome:
        case MatrixSuccess(config=settings, result=result):
            return Report(
                heading="✅ Deployment matrix generated",
                rows=_setting_rows(settings),
                text="Matrix published to the `matrix` output:",
                code=json.dumps(result.value, indent=2, ensure_ascii=False),
                language="json",
            )
        case RunFailure(error=error, config=settings):
            return Report(
                heading="❌ Deployment matrix generation failed",
                rows=_setting_rows(settings) if settings is not None else [],
                text=f"`{error.__class__.__name__}`",
                code=str(error),
                language="text",
            )
    raise TypeError(f"Unsupported run outcome: {outcome!r}")


@dataclass
class GitHubActionsPublisher:
    """Terminal sink for a run: outputs, annotations, and the job summary.

    Outside a runner (no ``GITHUB_OUTPUT`` / ``GITHUB_STEP_SUMMARY``) outputs
    are echoed as ``key=value`` and the summary is rendered to the terminal.
    """

    environ: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    stream: TextIO = field(default_factory=lambda: sys.stdout)
    console: Console | None = None

    def _emit(self, line: str) -> None:
        print(line, file=self.stream, flush=True)

    def mask(self, value: str) -> None:
        if value:
            self._emit(f"::add-mask::{escape_command_data(value)}")

    def register_secrets(self, settings: InvocationConfig) -> None:
        self.mask(settings.credential.get_secret_value())

    def set_output(self, key: str, value: str) -> None:
        target = self.environ.get(OUTPUT_ENV_VAR)
        if not target:
            self._emit(f"{key}={value}")
            return
        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        with Path(target).open("a", encoding="utf-8") as handle:
            handle.write(f"{key}<<{delimiter}\n{value}\n{delimiter}\n")

    def set_failed(self, message: str) -> None:
        self._emit(f"::error::{escape_command_data(message)}")

    def write_report(self, outcome: RunOutcome) -> None:
        markdown = build_report(outcome).to_markdown()
        target = self.environ.get(SUMMARY_ENV_VAR)
        if target:
            try:
                with Path(target).open("a", encoding="utf-8") as handle:
                    handle.write(markdown)
                return
            except OSError as exc:
                logger.error("Unable to write job summary to %s: %s", target, exc)
        console = self.console or Console(file=self.stream)
        console.print(Markdown(markdown))

    def publish(self, outcome: RunOutcome) -> int:
        """Publish ``outcome`` and return the process exit status.

        Writes exactly one report and never raises for run failures or for
        output channel errors.
        """

        if isinstance(outcome, MatrixSuccess):
            try:
                self.set_output(config.MATRIX_OUTPUT_KEY, outcome.result.canonical)
            except OSError as exc:
                outcome = RunFailure(
                    error=DeployMatrixError(
                        f"Unable to write {config.MATRIX_OUTPUT_KEY} output: {exc}"
                    ),
                    config=outcome.config,
                )
            else:
                logger.info("✅ Generated deployment matrix:")
                logger.info(
                    json.dumps(outcome.result.value, indent=2, ensure_ascii=False)
                )

        if isinstance(outcome, RunFailure):
            self.set_failed(outcome.message)

        self.write_report(outcome)
        return EXIT_SUCCESS if isinstance(outcome, MatrixSuccess) else EXIT_FAILURE


__all__ = [
    "EXIT_FAILURE",
    "EXIT_SUCCESS",
    "GitHubActionsPublisher",
    "OUTPUT_ENV_VAR",
    "Report",
    "SUMMARY_ENV_VAR",
    "build_report",
    "escape_command_data",
]
