"""Value objects passed between the stages of a matrix run."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeAlias, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from .errors import DeployMatrixError

JSONValue: TypeAlias = Union[
    dict[str, Any], list[Any], str, int, float, bool, None
]


class InvocationConfig(BaseModel):
    """Resolved inputs for a single run.

    The credential is held as a :class:`~pydantic.SecretStr` so it never shows
    up in ``repr`` output, logs, or job summaries.
    """

    environment_filter: str | None = Field(
        None, description="Restrict the matrix to one environment (overlay)"
    )
    branch: str = Field(
        "main", min_length=1, description="Branch forwarded to the tool"
    )
    tag: str = Field(..., min_length=1, description="Deployment tag (action tag)")
    credential: SecretStr = Field(..., description="Token exported as GITHUB_TOKEN")
    repository_path: Path = Field(
        Path("."), description="Checked-out repository the tool runs in"
    )
    timeout: float | None = Field(
        None,
        gt=0,
        allow_inf_nan=False,
        description="Seconds to wait for the tool; None waits forever",
    )
    tool_command: tuple[str, ...] = Field(
        ("npx", "--yes", "workflow-utils"),
        min_length=1,
        description="Executable prefix used to launch the discovery tool",
    )

    model_config = ConfigDict(frozen=True)

    @property
    def environment_label(self) -> str:
        return self.environment_filter or "all"


@dataclass(frozen=True)
class CommandLine:
    """Ordered tokens for one tool invocation."""

    tokens: tuple[str, ...]

    def render(self) -> str:
        # Tokens are joined verbatim; values must already be shell-safe.
        return " ".join(self.tokens)


@dataclass(frozen=True)
class ProcessResult:
    """Captured result of the discovery tool."""

    exit_status: int
    stdout: bytes
    stderr: bytes

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class MatrixResult:
    """Decoded matrix value together with its canonical JSON form."""

    value: JSONValue
    canonical: str
    unwrapped: bool = False


@dataclass(frozen=True)
class MatrixSuccess:
    config: InvocationConfig
    command: CommandLine
    result: MatrixResult


@dataclass(frozen=True)
class RunFailure:
    error: DeployMatrixError
    config: InvocationConfig | None = None

    @property
    def message(self) -> str:
        return str(self.error)


RunOutcome: TypeAlias = Union[MatrixSuccess, RunFailure]


__all__ = [
    "CommandLine",
    "InvocationConfig",
    "JSONValue",
    "MatrixResult",
    "MatrixSuccess",
    "ProcessResult",
    "RunFailure",
    "RunOutcome",
]
