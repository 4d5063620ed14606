"""
CLI command for running a command with exponential backoff.

The process exits with the wrapped command's own exit code.

Usage::

    dltrust retry -- curl -fsSL -o go.tgz https://go.dev/dl/go1.23.2.linux-amd64.tar.gz
    dltrust retry --github -- curl -fsSL https://api.github.com/repos/cli/cli/releases/latest
"""

from __future__ import annotations

import sys

import click

from dltrust.ui.cli.env import runtime_config


@click.command(
    "retry",
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)
@click.option(
    "--github", "github", is_flag=True,
    help="Treat COMMAND as a GitHub API call (adds GITHUB_TOKEN auth, rate-limit hints).",
)
@click.option("--max-attempts", type=click.IntRange(min=1), default=None,
              help="Override RETRY_MAX_ATTEMPTS.")
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
@click.pass_context
def retry(
    ctx: click.Context,
    github: bool,
    max_attempts: int | None,
    command: tuple[str, ...],
) -> None:
    """Run COMMAND, retrying failures with exponential backoff."""
    from dataclasses import replace

    from dltrust.core.reliability.retry import retry_github_api, retry_with_backoff

    rc = runtime_config(ctx)
    policy = rc.retry
    if max_attempts is not None:
        policy = replace(policy, max_attempts=max_attempts)

    if github:
        code = retry_github_api(list(command), token=rc.github_token, policy=policy)
    else:
        code = retry_with_backoff(list(command), policy=policy)
    sys.exit(code)
