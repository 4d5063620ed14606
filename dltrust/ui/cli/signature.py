"""
CLI commands for signature verification (Tier 1 on its own).

Usage::

    dltrust signature python 3.13.0 /tmp/Python-3.13.0.tgz
    dltrust release-manager 3.13.0 --json
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from dltrust.ui.cli.env import runtime_config


@click.command("signature")
@click.argument("language")
@click.argument("version")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def signature(ctx: click.Context, language: str, version: str, file: Path) -> None:
    """Verify FILE's Sigstore/GPG signature for LANGUAGE VERSION."""
    from dltrust.core.errors import AvailabilityError, ConfigurationError, DltrustError

    rc = runtime_config(ctx)
    verifier = rc.signature_verifier()

    try:
        ok = verifier.verify_signature(language, version, file)
    except ConfigurationError as e:
        click.secho(f"❌ Signature verification not possible: {e}", fg="red", err=True)
        sys.exit(1)
    except AvailabilityError as e:
        click.secho(f"❌ Could not fetch signature: {e}", fg="red", err=True)
        sys.exit(1)
    except DltrustError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if ok:
        click.secho(f"✅ Signature verified: {file.name}", fg="green", bold=True)
        return
    click.secho(f"❌ Signature not verified: {file.name}", fg="red", bold=True)
    sys.exit(1)


@click.command("release-manager")
@click.argument("version")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def release_manager(version: str, as_json: bool) -> None:
    """Show the expected Sigstore signer for Python VERSION."""
    from dltrust.core.errors import SignerIdentityError, UnsupportedVersionError
    from dltrust.core.services.signature.release_managers import ReleaseManagerMap

    try:
        signer = ReleaseManagerMap().lookup(version)
    except (SignerIdentityError, UnsupportedVersionError) as e:
        if as_json:
            click.echo(json.dumps({"version": version, "error": str(e)}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(
            {"version": version, "identity": signer.identity, "issuer": signer.issuer},
            indent=2,
        ))
        return
    click.echo(f"Identity: {signer.identity}")
    click.echo(f"Issuer:   {signer.issuer}")
