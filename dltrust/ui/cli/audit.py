"""
CLI commands for the verification audit ledger.

Usage::

    dltrust audit show
    dltrust audit show -n 50 --json
    dltrust audit show --tofu
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from dltrust.ui.cli.env import runtime_config

_VERDICT_COLOR = {"verified": "green", "failed": "red", "unverified": "yellow"}


@click.group()
def audit() -> None:
    """Audit ledger — recorded verification verdicts."""


@audit.command("show")
@click.option("-n", "count", type=click.IntRange(min=1), default=20, show_default=True,
              help="Number of recent entries.")
@click.option("--tofu", is_flag=True, help="Only Trust-On-First-Use acceptances.")
@click.option("--audit-log", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Ledger file (default: settings, DLTRUST_AUDIT_LOG, or .state/).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show(
    ctx: click.Context,
    count: int,
    tofu: bool,
    audit_log: Path | None,
    as_json: bool,
) -> None:
    """Show recent verification verdicts."""
    from dltrust.core.persistence.audit import AuditWriter

    rc = runtime_config(ctx)
    writer = AuditWriter(audit_log or rc.audit_log)
    entries = writer.tofu_entries()[-count:] if tofu else writer.read_recent(count)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.echo(f"No audit entries in {writer.path}")
        return

    for e in entries:
        color = _VERDICT_COLOR.get(e.verdict, "white")
        click.echo(f"{e.timestamp}  ", nl=False)
        click.secho(f"{e.verdict:<10}", fg=color, nl=False)
        tier = f" [{e.tier}]" if e.tier else ""
        click.echo(f" {e.category} {e.name} {e.version}{tier}")
        if e.digest and e.verdict == "unverified":
            click.echo(f"      {e.algorithm}: {e.digest}")
