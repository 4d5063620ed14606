"""
Runtime configuration for CLI commands.

This is the only module that reads the process environment.  It merges
CLI options, environment variables and ``dltrust.yml`` (in that order of
precedence) into immutable policy objects and wires up the services.

Environment variables:

    REQUIRE_VERIFIED_DOWNLOADS   true/1/yes disables TOFU acceptance
    PRODUCTION_MODE              same, consulted only when the above is unset
    GPG_KEYRING_DIR              base directory of per-language keyrings
    GITHUB_TOKEN                 bearer token for GitHub API requests
    RETRY_MAX_ATTEMPTS           default 3
    RETRY_INITIAL_DELAY          seconds, default 2
    RETRY_MAX_DELAY              seconds, default 30
    DLTRUST_CHECKSUMS_DB         pinned checksum database path
    DLTRUST_AUDIT_LOG            audit ledger path
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import click

from dltrust.adapters.http import HttpClient
from dltrust.core.config.loader import Settings, load_checksum_db, load_settings
from dltrust.core.errors import ConfigError
from dltrust.core.models.checksums import ChecksumDatabase
from dltrust.core.models.policy import RetryPolicy, VerificationPolicy
from dltrust.core.services.checksum_fetch import PublishedChecksums
from dltrust.core.services.checksum_verification import ChecksumVerifier
from dltrust.core.services.signature.verifier import SignatureVerifier
from dltrust.core.services.tool_fetchers import ToolFetcherRegistry, register_default_tool_fetchers

logger = logging.getLogger(__name__)

_TRUTHY = frozenset({"true", "1", "yes"})


def _get(environ: Mapping[str, str], name: str) -> str | None:
    """Value of ``name``; empty strings count as unset."""
    value = environ.get(name, "").strip()
    return value or None


def is_truthy(value: str) -> bool:
    return value.strip().lower() in _TRUTHY


def policy_from_env(
    environ: Mapping[str, str],
    settings: Settings | None = None,
) -> VerificationPolicy:
    """``REQUIRE_VERIFIED_DOWNLOADS`` if set, else ``PRODUCTION_MODE``,
    else the settings file, else TOFU allowed."""
    raw = _get(environ, "REQUIRE_VERIFIED_DOWNLOADS") or _get(environ, "PRODUCTION_MODE")
    if raw is not None:
        return VerificationPolicy(require_verified=is_truthy(raw))
    if settings is not None and settings.require_verified is not None:
        return VerificationPolicy(require_verified=settings.require_verified)
    return VerificationPolicy()


def _number(environ: Mapping[str, str], name: str, cast: type, minimum: float) -> float | None:
    raw = _get(environ, name)
    if raw is None:
        return None
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r (not a number)", name, raw)
        return None
    if value < minimum:
        logger.warning("Ignoring invalid %s=%r (must be >= %s)", name, raw, minimum)
        return None
    return value


def retry_policy_from_env(
    environ: Mapping[str, str],
    settings: Settings | None = None,
) -> RetryPolicy:
    """Retry tunables from the environment, then the settings file."""
    defaults = RetryPolicy()
    file_retry = settings.retry if settings is not None else None

    def pick(env_name: str, field: str, cast: type, minimum: float):
        value = _number(environ, env_name, cast, minimum)
        if value is None and file_retry is not None:
            value = getattr(file_retry, field)
        return getattr(defaults, field) if value is None else value

    return RetryPolicy(
        max_attempts=pick("RETRY_MAX_ATTEMPTS", "max_attempts", int, 1),
        initial_delay=pick("RETRY_INITIAL_DELAY", "initial_delay", float, 0),
        max_delay=pick("RETRY_MAX_DELAY", "max_delay", float, 0),
    )


@dataclass(frozen=True)
class RuntimeConfig:
    """Everything a command needs, read once at the start of the call."""

    settings: Settings
    policy: VerificationPolicy
    retry: RetryPolicy
    github_token: str | None
    keyring_dir: Path | None
    checksums_db: Path | None
    audit_log: Path | None
    arch: str

    @classmethod
    def from_environment(
        cls,
        config_path: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> RuntimeConfig:
        """Load settings and merge the environment on top.

        Raises:
            ConfigError: Invalid settings file.
        """
        env = os.environ if environ is None else environ
        settings = load_settings(config_path)

        def path_from(name: str, fallback: Path | None) -> Path | None:
            raw = _get(env, name)
            return Path(raw) if raw else fallback

        return cls(
            settings=settings,
            policy=policy_from_env(env, settings),
            retry=retry_policy_from_env(env, settings),
            github_token=_get(env, "GITHUB_TOKEN"),
            keyring_dir=path_from("GPG_KEYRING_DIR", settings.gpg_keyring_dir),
            checksums_db=path_from("DLTRUST_CHECKSUMS_DB", settings.checksums_db),
            audit_log=path_from("DLTRUST_AUDIT_LOG", settings.audit_log),
            arch=settings.arch,
        )

    # ── Service wiring ─────────────────────────────────────────

    def http_client(self) -> HttpClient:
        return HttpClient(retry_policy=self.retry, github_token=self.github_token)

    def checksum_db(self, override: Path | None = None) -> ChecksumDatabase:
        return load_checksum_db(override or self.checksums_db)

    def signature_verifier(self, http: HttpClient | None = None) -> SignatureVerifier:
        return SignatureVerifier(http=http or self.http_client(), keyring_dir=self.keyring_dir)

    def checksum_verifier(
        self,
        db: ChecksumDatabase,
        policy: VerificationPolicy | None = None,
    ) -> ChecksumVerifier:
        http = self.http_client()
        published = PublishedChecksums(http)
        return ChecksumVerifier(
            db,
            policy=policy or self.policy,
            signatures=self.signature_verifier(http),
            published=published,
            tool_fetchers=register_default_tool_fetchers(ToolFetcherRegistry(), published),
        )


def runtime_config(ctx: click.Context) -> RuntimeConfig:
    """Load (once per invocation) the runtime config for a command.

    Configuration errors end the command with exit 1.
    """
    obj = ctx.ensure_object(dict)
    cached = obj.get("runtime")
    if cached is not None:
        return cached
    try:
        rc = RuntimeConfig.from_environment(obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        ctx.exit(1)
    obj["runtime"] = rc
    return rc
