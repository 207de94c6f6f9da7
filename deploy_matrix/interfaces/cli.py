"""Command-line entry point used by the composite action and local runs."""

from __future__ import annotations

import logging

import click

from deploy_matrix.application import pipeline
from deploy_matrix.core import config
from deploy_matrix.integrations.github_actions import GitHubActionsPublisher

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _configure_logging(level: str) -> None:
    logging.basicConfig(format="%(message)s")
    logging.getLogger().setLevel(level.upper())


@click.command(
    name="deploy-matrix",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "--overlay",
    type=str,
    help="Restrict the matrix to one environment (default: all environments).",
)
@click.option(
    "--branch",
    type=str,
    help=f"Branch forwarded to the discovery tool (default: {config.DEFAULT_BRANCH}).",
)
@click.option("--tag", type=str, help="Deployment tag to stamp on every matrix entry.")
@click.option(
    "--github-token",
    "github_token",
    type=str,
    help=f"Token exported to the tool as {config.CREDENTIAL_ENV_VAR}.",
)
@click.option(
    "--repo-path",
    "repo_path",
    type=str,
    help=f"Repository checkout to run in (default: {config.DEFAULT_REPO_PATH}).",
)
@click.option(
    "--timeout",
    type=str,
    help="Seconds to wait for the discovery tool before failing (default: no limit).",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
    show_default=True,
    envvar=config.LOG_LEVEL_ENV_VAR,
    help="Verbosity of progress logging.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    overlay: str | None,
    branch: str | None,
    tag: str | None,
    github_token: str | None,
    repo_path: str | None,
    timeout: str | None,
    log_level: str,
) -> None:
    """Generate a GitHub Actions deployment matrix with workflow-utils.

    Options take precedence over the ``INPUT_*`` variables exported by the
    Actions runner.
    """

    config.load_environment()
    _configure_logging(log_level)

    explicit = config.ExplicitInputs(
        {
            config.INPUT_OVERLAY: overlay,
            config.INPUT_BRANCH: branch,
            config.INPUT_TAG: tag,
            config.INPUT_TOKEN: github_token,
            config.INPUT_REPO_PATH: repo_path,
            config.INPUT_TIMEOUT: timeout,
        }
    )
    inputs = config.ChainedInputs((explicit, config.ActionInputs()))
    publisher = GitHubActionsPublisher()
    outcome = pipeline.run(inputs, on_resolved=publisher.register_secrets)
    ctx.exit(publisher.publish(outcome))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    cli()
