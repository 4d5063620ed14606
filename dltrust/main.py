"""
dltrust — CLI entrypoint.

Usage:
    dltrust --help
    dltrust resolve python 3.12
    dltrust verify language python 3.12.7 /tmp/Python-3.12.7.tgz
"""

from __future__ import annotations

import os
from pathlib import Path

import click

from dltrust import __version__
from dltrust.core.observability.logging_config import resolve_level, setup_logging
from dltrust.ui.cli.audit import audit
from dltrust.ui.cli.checksums import checksums
from dltrust.ui.cli.resolve import resolve
from dltrust.ui.cli.retry import retry
from dltrust.ui.cli.signature import release_manager, signature
from dltrust.ui.cli.verify import verify


@click.group()
@click.version_option(version=__version__, prog_name="dltrust")
@click.option("--verbose", "-v", is_flag=True, help="Show tier-by-tier progress.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to dltrust.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """dltrust — verify downloaded runtimes and tools before installing them."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug, verbose, quiet, os.environ.get("DLTRUST_LOG_LEVEL")),
        log_file=os.environ.get("DLTRUST_LOG_FILE"),
        log_file_level=os.environ.get("DLTRUST_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
        json_format=os.environ.get("DLTRUST_LOG_FORMAT", "").lower() == "json",
    )


cli.add_command(resolve)
cli.add_command(verify)
cli.add_command(signature)
cli.add_command(release_manager)
cli.add_command(retry)
cli.add_command(checksums)
cli.add_command(audit)


if __name__ == "__main__":
    cli()
