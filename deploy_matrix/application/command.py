"""Build the discovery tool invocation for a resolved configuration."""

from __future__ import annotations

import logging

from deploy_matrix.core import config
from deploy_matrix.domain.models import CommandLine, InvocationConfig

logger = logging.getLogger(__name__)

ENV_FILTER_FLAG = "-envFilter"


def build_command(settings: InvocationConfig) -> CommandLine:
    """Return the command line for ``get-services-env-config``.

    The tool always runs against ``-dir .`` because the working directory is
    set on the subprocess. An environment filter is appended only when one was
    given; omitting it asks the tool for every environment. Branch, tag, and
    filter are forwarded verbatim, so callers must supply shell-safe values.
    """

    tokens = [
        *settings.tool_command,
        config.TOOL_SUBCOMMAND,
        "-dir",
        ".",
        "-outputFormat",
        config.TOOL_OUTPUT_FORMAT,
        "-branch",
        settings.branch,
        "-actionTag",
        settings.tag,
    ]
    if settings.environment_filter:
        logger.info("🎯 Filtering for environment: %s", settings.environment_filter)
        tokens.extend([ENV_FILTER_FLAG, settings.environment_filter])
    else:
        logger.info("🌍 Including all environments")
    return CommandLine(tuple(tokens))


__all__ = ["ENV_FILTER_FLAG", "build_command"]
