"""Run the discovery tool and capture its output."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

# Bandit: subprocess usage is limited to the discovery tool command line.
import subprocess  # nosec B404

from deploy_matrix.core import config
from deploy_matrix.domain.errors import SubprocessError
from deploy_matrix.domain.models import CommandLine, InvocationConfig, ProcessResult

logger = logging.getLogger(__name__)

SHELL = "bash"


def build_environment(
    credential: str, base: Mapping[str, str] | None = None
) -> dict[str, str]:
    """Return ``base`` plus the credential binding as a new mapping."""

    env = dict(os.environ if base is None else base)
    env[config.CREDENTIAL_ENV_VAR] = credential
    return env


def invoke(
    command: CommandLine,
    settings: InvocationConfig,
    *,
    base_env: Mapping[str, str] | None = None,
) -> ProcessResult:
    """Run ``command`` through the shell inside the repository checkout.

    Blocks until the tool exits. Without a timeout a hung tool blocks the run
    indefinitely. Raises :class:`SubprocessError` on a non-zero exit status,
    a timeout, a missing shell, or empty standard output.
    """

    rendered = command.render()
    logger.info("📦 Executing: %s", rendered)
    env = build_environment(settings.credential.get_secret_value(), base_env)

    try:
        completed = subprocess.run(  # nosec B603
            [SHELL, "-c", rendered],
            cwd=settings.repository_path,
            env=env,
            capture_output=True,
            timeout=settings.timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        stderr = exc.stderr or b""
        raise SubprocessError(
            f"Discovery tool timed out after {settings.timeout:g}s",
            stderr=stderr.decode("utf-8", errors="replace"),
        ) from exc
    except OSError as exc:
        raise SubprocessError(f"Unable to launch discovery tool: {exc}") from exc

    result = ProcessResult(
        exit_status=completed.returncode,
        stdout=completed.stdout or b"",
        stderr=completed.stderr or b"",
    )
    stderr_text = result.stderr_text.strip()
    if stderr_text:
        logger.warning(stderr_text)

    if result.exit_status != 0:
        raise SubprocessError(
            f"Discovery tool failed with exit code {result.exit_status}",
            exit_status=result.exit_status,
            stderr=result.stderr_text,
        )
    if not result.stdout.strip():
        raise SubprocessError(
            "Failed to generate matrix - empty result",
            exit_status=result.exit_status,
            stderr=result.stderr_text,
        )
    return result


__all__ = ["SHELL", "build_environment", "invoke"]
