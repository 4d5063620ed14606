"""
CLI commands for the pinned checksum database.

Usage::

    dltrust checksums lookup language python 3.12.7
    dltrust checksums check --checksums lib/checksums.json
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from dltrust.ui.cli.env import runtime_config

_db_option = click.option(
    "--checksums", "checksums_db", type=click.Path(dir_okay=False, path_type=Path),
    default=None, help="Pinned checksum database (default: bundled).",
)


@click.group()
def checksums() -> None:
    """Pinned checksum database — lookups and validation."""


@checksums.command("lookup")
@click.argument("category", type=click.Choice(["language", "tool"]))
@click.argument("name")
@click.argument("version")
@_db_option
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def lookup(
    ctx: click.Context,
    category: str,
    name: str,
    version: str,
    checksums_db: Path | None,
    as_json: bool,
) -> None:
    """Print the pinned digest for CATEGORY NAME VERSION."""
    from dltrust.core.errors import ConfigurationError

    rc = runtime_config(ctx)
    try:
        pinned = rc.checksum_db(checksums_db).lookup(category, name, version)
    except ConfigurationError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps({
            "category": category,
            "name": name,
            "version": version,
            "pinned": pinned is not None,
            "algorithm": pinned.algorithm if pinned else None,
            "digest": pinned.digest if pinned else None,
        }, indent=2))
        sys.exit(0 if pinned else 1)

    if pinned is None:
        click.secho(f"No pinned checksum for {category} {name} {version}", fg="yellow", err=True)
        sys.exit(1)
    click.echo(f"{pinned.algorithm}:{pinned.digest}")


@checksums.command("check")
@_db_option
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check(ctx: click.Context, checksums_db: Path | None, as_json: bool) -> None:
    """Validate the database: malformed digests fail, placeholders warn."""
    from dltrust.core.errors import ConfigError

    rc = runtime_config(ctx)
    try:
        db = rc.checksum_db(checksums_db)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    placeholders = db.placeholders()
    malformed = db.malformed()

    if as_json:
        click.echo(json.dumps({
            "valid": not malformed,
            "placeholders": [
                {"category": c, "name": n, "version": v} for c, n, v in placeholders
            ],
            "malformed": [
                {"category": c, "name": n, "version": v, "error": err}
                for c, n, v, err in malformed
            ],
        }, indent=2))
        sys.exit(1 if malformed else 0)

    if malformed:
        click.secho("❌ Malformed checksums:", fg="red", bold=True)
        for c, n, v, err in malformed:
            click.echo(f"   • {c} {n} {v}: {err}")
    if placeholders:
        click.secho(f"⚠️  {len(placeholders)} placeholder entr{'y' if len(placeholders) == 1 else 'ies'}:",
                    fg="yellow")
        for c, n, v in placeholders:
            click.echo(f"   • {c} {n} {v}")
    if not malformed:
        click.secho("✅ Checksum database is valid", fg="green", bold=True)
    sys.exit(1 if malformed else 0)
