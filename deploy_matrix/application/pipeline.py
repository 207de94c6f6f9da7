"""Orchestrate one deployment matrix run from inputs to a publishable outcome."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from deploy_matrix.application.command import build_command
from deploy_matrix.application.normalizer import decode_output, normalize
from deploy_matrix.core import config
from deploy_matrix.domain.errors import DeployMatrixError
from deploy_matrix.domain.models import (
    InvocationConfig,
    MatrixSuccess,
    RunFailure,
    RunOutcome,
)
from deploy_matrix.infrastructure import process

logger = logging.getLogger(__name__)


def run(
    inputs: config.InputProvider | None = None,
    environ: Mapping[str, str] | None = None,
    *,
    on_resolved: Callable[[InvocationConfig], None] | None = None,
) -> RunOutcome:
    """Validate, invoke, and normalise, returning a single outcome value.

    Run failures (:class:`DeployMatrixError`) are captured into a
    :class:`RunFailure`; anything else propagates. ``on_resolved`` is called
    with the validated configuration before the tool is launched.
    """

    settings: InvocationConfig | None = None
    try:
        settings = config.resolve_config(inputs, environ)
        if on_resolved is not None:
            on_resolved(settings)

        logger.info(
            "🔍 Reading .koala-monorepo.json from repo root to identify services"
        )
        logger.info(
            "📋 Extracting deployment configuration from .koala.toml files "
            "for different environments"
        )
        command = build_command(settings)
        result = process.invoke(command, settings, base_env=environ)

        output = decode_output(result.stdout)
        logger.info("Raw output from workflow-utils:")
        logger.info(output)
        matrix = normalize(output)
    except DeployMatrixError as exc:
        logger.debug("Run failed: %s", exc.__class__.__name__)
        return RunFailure(error=exc, config=settings)

    return MatrixSuccess(config=settings, command=command, result=matrix)


__all__ = ["run"]
