"""Input resolution and shared constants for deployment matrix runs."""

from __future__ import annotations

import logging
import math
import os
import shlex
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from dotenv import load_dotenv
from pydantic import ValidationError

from deploy_matrix.domain.errors import ConfigurationError
from deploy_matrix.domain.models import InvocationConfig

logger = logging.getLogger(__name__)


# Defaults -------------------------------------------------------------------
DEFAULT_BRANCH = "main"
DEFAULT_REPO_PATH = "."
DEFAULT_TOOL_COMMAND: tuple[str, ...] = ("npx", "--yes", "workflow-utils")
# Hosted runners cancel jobs after six hours.
MAX_TIMEOUT_SECONDS = 6 * 60 * 60


# Discovery tool contract ----------------------------------------------------
TOOL_SUBCOMMAND = "get-services-env-config"
TOOL_OUTPUT_FORMAT = "github-matrix"
CREDENTIAL_ENV_VAR = "GITHUB_TOKEN"


# Action surface -------------------------------------------------------------
INPUT_OVERLAY = "overlay"
INPUT_BRANCH = "branch"
INPUT_TAG = "tag"
INPUT_TOKEN = "github-token"
INPUT_REPO_PATH = "repo-path"
INPUT_TIMEOUT = "timeout"
MATRIX_OUTPUT_KEY = "matrix"

TOOL_ENV_VAR = "DEPLOY_MATRIX_TOOL"
LOG_LEVEL_ENV_VAR = "DEPLOY_MATRIX_LOG_LEVEL"


def load_environment(env_path: Path | None = None) -> bool:
    """Load a ``.env`` file for local runs without overriding real variables."""

    candidate = env_path or Path.cwd() / ".env"
    if not candidate.exists():
        return False
    logger.debug("Loading environment overrides from %s", candidate)
    return load_dotenv(candidate, override=False)


@runtime_checkable
class InputProvider(Protocol):
    """Protocol for looking up named action inputs."""

    def get(self, name: str) -> str | None:
        """Return the input identified by *name*, or ``None`` when unset."""


def input_env_name(name: str) -> str:
    """Return the runner variable holding input *name* (``INPUT_GITHUB-TOKEN``)."""

    return f"INPUT_{name.replace(' ', '_').upper()}"


@dataclass
class ActionInputs:
    """Provider that reads inputs the way the Actions runner exports them."""

    environ: Mapping[str, str]

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self.environ = dict(os.environ) if environ is None else environ

    def get(self, name: str) -> str | None:
        value = self.environ.get(input_env_name(name), "").strip()
        return value or None


@dataclass
class ExplicitInputs:
    """Provider backed by values passed on the command line."""

    values: Mapping[str, str | None]

    def get(self, name: str) -> str | None:
        value = self.values.get(name)
        if value is None:
            return None
        value = value.strip()
        return value or None


@dataclass
class ChainedInputs:
    """Provider that queries a sequence of providers until one returns a value."""

    providers: Sequence[InputProvider]

    def get(self, name: str) -> str | None:
        for provider in self.providers:
            value = provider.get(name)
            if value is not None:
                return value
        return None


def _parse_timeout(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"timeout input must be a number, got {raw!r}"
        ) from exc
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(
            f"timeout input must be a positive number of seconds, got {raw!r}"
        )
    if value > MAX_TIMEOUT_SECONDS:
        raise ConfigurationError(
            f"timeout input must not exceed {MAX_TIMEOUT_SECONDS} seconds, "
            f"got {raw!r}"
        )
    return value


def _tool_command(environ: Mapping[str, str]) -> tuple[str, ...]:
    raw = environ.get(TOOL_ENV_VAR, "").strip()
    if not raw:
        return DEFAULT_TOOL_COMMAND
    try:
        tokens = tuple(shlex.split(raw))
    except ValueError as exc:
        raise ConfigurationError(
            f"{TOOL_ENV_VAR} is not a valid command: {exc}"
        ) from exc
    if not tokens:
        raise ConfigurationError(f"{TOOL_ENV_VAR} does not contain a command")
    return tokens


def resolve_config(
    inputs: InputProvider | None = None,
    environ: Mapping[str, str] | None = None,
) -> InvocationConfig:
    """Read, default, and validate the run inputs.

    Raises :class:`ConfigurationError` when the repository path is missing or
    when the tag or credential is empty. Nothing is launched before this
    returns.
    """

    env = dict(os.environ) if environ is None else environ
    provider = inputs if inputs is not None else ActionInputs(env)

    overlay = provider.get(INPUT_OVERLAY)
    branch = provider.get(INPUT_BRANCH) or DEFAULT_BRANCH
    tag = provider.get(INPUT_TAG)
    credential = provider.get(INPUT_TOKEN)
    repo_path = Path(provider.get(INPUT_REPO_PATH) or DEFAULT_REPO_PATH)

    if not repo_path.exists():
        raise ConfigurationError(f"Repository path not found: {repo_path}")
    if not tag:
        raise ConfigurationError("tag input is required")
    if not credential:
        raise ConfigurationError("github-token input is required")

    timeout = _parse_timeout(provider.get(INPUT_TIMEOUT))

    try:
        return InvocationConfig(
            environment_filter=overlay,
            branch=branch,
            tag=tag,
            credential=credential,
            repository_path=repo_path,
            timeout=timeout,
            tool_command=_tool_command(env),
        )
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise ConfigurationError(f"Invalid inputs: {details}") from exc


__all__ = [
    "ActionInputs",
    "ChainedInputs",
    "CREDENTIAL_ENV_VAR",
    "DEFAULT_BRANCH",
    "DEFAULT_REPO_PATH",
    "DEFAULT_TOOL_COMMAND",
    "ExplicitInputs",
    "InputProvider",
    "LOG_LEVEL_ENV_VAR",
    "MATRIX_OUTPUT_KEY",
    "MAX_TIMEOUT_SECONDS",
    "TOOL_ENV_VAR",
    "TOOL_OUTPUT_FORMAT",
    "TOOL_SUBCOMMAND",
    "input_env_name",
    "load_environment",
    "resolve_config",
]
