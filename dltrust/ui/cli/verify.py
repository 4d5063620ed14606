"""
CLI command for download verification — the tier engine entry point.

Exit codes are the verdict:

    0  verified (signature, pinned or published checksum)
    1  failed (mismatch, configuration gap, or TOFU blocked by policy)
    2  accepted by Trust-On-First-Use; proceed, but audit it

Usage::

    dltrust verify language python 3.12.7 /tmp/Python-3.12.7.tgz
    dltrust verify tool gh 2.60.1 /tmp/gh.tar.gz --arch arm64 --json
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from dltrust.ui.cli.env import runtime_config

_VERDICT_STYLE = {
    0: ("✅", "green", "VERIFIED"),
    1: ("❌", "red", "FAILED"),
    2: ("⚠️ ", "yellow", "UNVERIFIED (TOFU)"),
}


@click.command("verify")
@click.argument("category", type=click.Choice(["language", "tool"]))
@click.argument("name")
@click.argument("version")
@click.argument("file", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--arch", default=None, help="Debian architecture (default: settings or amd64).")
@click.option(
    "--checksums", "checksums_db", type=click.Path(dir_okay=False, path_type=Path),
    default=None, help="Pinned checksum database (default: bundled).",
)
@click.option(
    "--require-verified/--allow-tofu", "require_verified", default=None,
    help="Override REQUIRE_VERIFIED_DOWNLOADS / PRODUCTION_MODE.",
)
@click.option(
    "--audit-log", type=click.Path(dir_okay=False, path_type=Path), default=None,
    help="Append the verdict to this NDJSON ledger.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def verify(
    ctx: click.Context,
    category: str,
    name: str,
    version: str,
    file: Path,
    arch: str | None,
    checksums_db: Path | None,
    require_verified: bool | None,
    audit_log: Path | None,
    as_json: bool,
) -> None:
    """Verify a downloaded FILE for CATEGORY NAME VERSION."""
    from dltrust.core.errors import ConfigError
    from dltrust.core.models.policy import VerificationPolicy
    from dltrust.core.persistence.audit import AuditWriter

    rc = runtime_config(ctx)
    policy = rc.policy
    if require_verified is not None:
        policy = VerificationPolicy(require_verified=require_verified)

    try:
        db = rc.checksum_db(checksums_db)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    verifier = rc.checksum_verifier(db, policy)
    result = verifier.verify_download(category, name, version, file, arch or rc.arch)

    ledger = audit_log or rc.audit_log
    if ledger is not None:
        AuditWriter(ledger).record(result)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    icon, color, label = _VERDICT_STYLE[result.exit_code]
    click.secho(f"{icon} {name} {version}: {label}", fg=color, bold=True)
    if result.tier is not None:
        click.echo(f"   Tier:    {result.tier.value}")
    if result.digest:
        click.echo(f"   {(result.algorithm or 'digest').upper()}: {result.digest}")
    if result.expected and result.exit_code == 1:
        click.echo(f"   Expected: {result.expected}")
    if result.message:
        click.echo(f"   {result.message}")
    if result.notes and not ctx.obj.get("quiet"):
        for note in result.notes:
            click.echo(f"   • {note}")
    sys.exit(result.exit_code)
