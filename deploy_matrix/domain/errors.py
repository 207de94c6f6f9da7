"""Failure taxonomy for a deployment matrix run.

Every error raised by the pipeline is terminal for the run and ends up at the
publisher, which turns it into a failure annotation and a job summary.
"""

from __future__ import annotations

_STDERR_TAIL_CHARS = 2000


class DeployMatrixError(RuntimeError):
    """Base class for failures that end a run."""


class ConfigurationError(DeployMatrixError):
    """Raised when inputs are missing or invalid, before any tool is launched."""


class SubprocessError(DeployMatrixError):
    """Raised when the discovery tool fails or produces no output."""

    def __init__(
        self, message: str, *, exit_status: int | None = None, stderr: str = ""
    ) -> None:
        self.exit_status = exit_status
        self.stderr = stderr
        detail = stderr.strip()
        if detail:
            if len(detail) > _STDERR_TAIL_CHARS:
                detail = "…" + detail[-_STDERR_TAIL_CHARS:]
            message = f"{message}\nstderr:\n{detail}"
        super().__init__(message)


class MatrixParseError(DeployMatrixError):
    """Raised when tool output cannot be decoded into a matrix value."""

    def __init__(self, reason: str, raw_output: str) -> None:
        self.reason = reason
        self.raw_output = raw_output
        super().__init__(f"Failed to parse matrix JSON: {reason}\nOutput: {raw_output}")


__all__ = [
    "ConfigurationError",
    "DeployMatrixError",
    "MatrixParseError",
    "SubprocessError",
]
