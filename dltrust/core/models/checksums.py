"""
Pinned checksum database — git-tracked digests keyed by
``(category, name, version)``.

File format::

    {
      "languages": {
        "python": {"versions": {"3.12.7": {"sha256": "<hex>"}}}
      },
      "tools": {
        "git-cliff": {"versions": {"2.7.0": {"sha512": "<hex>"}}}
      }
    }

Values starting with ``placeholder`` mark entries that still need a real
digest; they are treated as absent, never as a match.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from dltrust.core.errors import ChecksumFormatError

PLACEHOLDER_PREFIX = "placeholder"

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")

# Hex digest length → hashlib algorithm name
DIGEST_LENGTHS = {64: "sha256", 128: "sha512"}


def is_placeholder(value: str | None) -> bool:
    return bool(value) and value.strip().lower().startswith(PLACEHOLDER_PREFIX)


def algorithm_for_digest(digest: str) -> str:
    """Infer the digest algorithm from a hex digest's length.

    Raises:
        ChecksumFormatError: If the value is not 64 or 128 hex characters.
    """
    value = digest.strip()
    algo = DIGEST_LENGTHS.get(len(value))
    if algo is None or not _HEX_RE.match(value):
        raise ChecksumFormatError(
            f"Invalid checksum {value[:16]!r}... ({len(value)} chars): "
            "expected 64 (SHA-256) or 128 (SHA-512) hex characters"
        )
    return algo


def validate_checksum_format(digest: str, algorithm: str = "sha256") -> bool:
    """Whether ``digest`` is a well-formed hex digest for ``algorithm``."""
    try:
        return algorithm_for_digest(digest) == algorithm
    except ChecksumFormatError:
        return False


@dataclass(frozen=True)
class PinnedChecksum:
    """A usable pinned digest.  ``algorithm`` follows from the digest length."""

    digest: str
    algorithm: str


class PinnedVersion(BaseModel):
    """Digest record for one version.  Extra keys (url, notes) are kept."""

    model_config = ConfigDict(extra="allow")

    sha256: str | None = None
    sha512: str | None = None

    def usable_digest(self) -> str | None:
        """First non-placeholder digest, SHA-512 preferred."""
        for value in (self.sha512, self.sha256):
            if value and not is_placeholder(value):
                return value.strip()
        return None


class PinnedEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    versions: dict[str, PinnedVersion] = Field(default_factory=dict)


class ChecksumDatabase(BaseModel):
    """Read-only view over the pinned checksum file."""

    model_config = ConfigDict(extra="allow", frozen=True)

    languages: dict[str, PinnedEntry] = Field(default_factory=dict)
    tools: dict[str, PinnedEntry] = Field(default_factory=dict)

    def _section(self, category: str) -> dict[str, PinnedEntry]:
        if category == "language":
            return self.languages
        if category == "tool":
            return self.tools
        raise ValueError(f"Unknown checksum category: {category!r}")

    def lookup(self, category: str, name: str, version: str) -> PinnedChecksum | None:
        """Find a pinned digest.

        Returns:
            ``PinnedChecksum`` or None when the entry is missing or a placeholder.

        Raises:
            ChecksumFormatError: If a non-placeholder value is malformed.
        """
        entry = self._section(category).get(name)
        if entry is None:
            return None
        record = entry.versions.get(version)
        if record is None:
            return None
        digest = record.usable_digest()
        if digest is None:
            return None
        return PinnedChecksum(digest=digest.lower(), algorithm=algorithm_for_digest(digest))

    def placeholders(self) -> list[tuple[str, str, str]]:
        """All ``(category, name, version)`` entries still holding placeholders."""
        found = []
        for category, section in (("language", self.languages), ("tool", self.tools)):
            for name, entry in section.items():
                for version, record in entry.versions.items():
                    if record.usable_digest() is None:
                        found.append((category, name, version))
        return found

    def malformed(self) -> list[tuple[str, str, str, str]]:
        """Entries whose digest is neither placeholder nor valid hex."""
        bad = []
        for category, section in (("language", self.languages), ("tool", self.tools)):
            for name, entry in section.items():
                for version, record in entry.versions.items():
                    digest = record.usable_digest()
                    if digest is None:
                        continue
                    try:
                        algorithm_for_digest(digest)
                    except ChecksumFormatError as e:
                        bad.append((category, name, version, str(e)))
        return bad
