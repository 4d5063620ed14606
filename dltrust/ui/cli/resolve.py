"""
CLI command for version resolution.

Usage::

    dltrust resolve python 3.12
    dltrust resolve nodejs 20
    dltrust resolve go 1.23.2       # full versions never touch the network
"""

from __future__ import annotations

import sys

import click

from dltrust.ui.cli.env import runtime_config


@click.command("resolve")
@click.argument("language")
@click.argument("version")
@click.pass_context
def resolve(ctx: click.Context, language: str, version: str) -> None:
    """Resolve a partial VERSION (e.g. 3.12, 20) for LANGUAGE."""
    from dltrust.core.errors import (
        InvalidVersionError,
        VersionLookupError,
        VersionResolutionError,
    )
    from dltrust.core.services.version_resolution import VersionResolver

    rc = runtime_config(ctx)
    resolver = VersionResolver(rc.http_client())

    if not resolver.supports(language):
        click.secho(
            f"❌ Unknown language: {language} "
            f"(supported: {', '.join(resolver.languages)})",
            fg="red", err=True,
        )
        click.echo(version)
        sys.exit(1)

    try:
        resolved = resolver.resolve(language, version)
    except InvalidVersionError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)
    except VersionLookupError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        if e.rate_limited or not rc.github_token:
            click.secho(
                "   Set GITHUB_TOKEN to raise API rate limits, or pass a full X.Y.Z version.",
                fg="yellow", err=True,
            )
        sys.exit(1)
    except VersionResolutionError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    click.echo(resolved)
