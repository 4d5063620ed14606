"""
Configuration loader — reads ``dltrust.yml`` and the pinned checksum database.

Both files are validated with Pydantic.  The settings file is optional:
without one, built-in defaults apply.  Environment variables are not read
here; the CLI layer merges them on top of the loaded settings.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from dltrust.core.data import DEFAULT_CHECKSUMS_DB
from dltrust.core.errors import ConfigError
from dltrust.core.models.checksums import ChecksumDatabase

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "dltrust.yml"


class RetrySettings(BaseModel):
    """Optional retry overrides; unset fields keep the policy defaults."""

    model_config = ConfigDict(extra="forbid")

    max_attempts: int | None = Field(default=None, ge=1)
    initial_delay: float | None = Field(default=None, ge=0)
    max_delay: float | None = Field(default=None, ge=0)


class Settings(BaseModel):
    """Contents of ``dltrust.yml``.

    Example::

        checksums_db: lib/checksums.json
        gpg_keyring_dir: lib/gpg-keys
        audit_log: .state/dltrust-audit.ndjson
        arch: arm64
        require_verified: true
        retry:
          max_attempts: 5
    """

    model_config = ConfigDict(extra="forbid")

    checksums_db: Path | None = None
    gpg_keyring_dir: Path | None = None
    audit_log: Path | None = None
    arch: str = "amd64"
    require_verified: bool | None = None
    retry: RetrySettings = Field(default_factory=RetrySettings)

    source: Path | None = Field(default=None, exclude=True)

    @field_validator("arch")
    @classmethod
    def _arch_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("arch must not be empty")
        return v

    def resolve_paths(self, base: Path) -> Settings:
        """Copy with relative paths anchored at ``base``."""
        updates = {}
        for field in ("checksums_db", "gpg_keyring_dir", "audit_log"):
            value = getattr(self, field)
            if value is not None and not value.is_absolute():
                updates[field] = (base / value).resolve()
        return self.model_copy(update=updates)


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for ``dltrust.yml`` starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to the settings file, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_settings(path: Path | None = None) -> Settings:
    """Load and validate the settings file.

    Args:
        path: Explicit settings file.  If None, searches upward from the
            working directory and falls back to defaults when nothing is found.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        path = find_config_file()
        if path is None:
            logger.debug("No %s found, using defaults", CONFIG_FILE)
            return Settings()
    elif not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e

    settings = settings.resolve_paths(path.parent.resolve())
    return settings.model_copy(update={"source": path})


def load_checksum_db(path: Path | None = None) -> ChecksumDatabase:
    """Load the pinned checksum database.

    Args:
        path: Database file; defaults to the copy shipped with the package.

    Raises:
        ConfigError: If the file is missing, unreadable or malformed.
    """
    path = path or DEFAULT_CHECKSUMS_DB
    if not path.is_file():
        raise ConfigError(f"Checksum database not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a JSON object in {path}, got {type(data).__name__}")

    try:
        db = ChecksumDatabase.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid checksum database {path}: {e}") from e

    logger.debug(
        "Loaded checksum database %s (%d languages, %d tools)",
        path, len(db.languages), len(db.tools),
    )
    return db
