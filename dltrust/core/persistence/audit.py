"""
Verification audit ledger — append-only NDJSON record of every verdict.

One line per ``verify_download`` call.  TOFU acceptances carry the digest
that was calculated on first use, so a later build can compare against
it or promote it into the pinned database.

The ledger is append-only: entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from dltrust.core.models.verdict import VerificationResult

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_DIR = ".state"
DEFAULT_AUDIT_FILE = "dltrust-audit.ndjson"


class AuditEntry(BaseModel):
    """A single verification record."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())

    # What was checked
    category: str = ""
    name: str = ""
    version: str = ""
    file: str = ""

    # Outcome
    verdict: str = ""              # verified, failed, unverified
    exit_code: int = 1
    tier: str | None = None        # signature, pinned, published, calculated
    algorithm: str | None = None
    digest: str | None = None
    expected: str | None = None
    policy_blocked: bool = False
    message: str = ""
    notes: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: VerificationResult) -> AuditEntry:
        return cls(
            timestamp=result.checked_at,
            category=result.category,
            name=result.name,
            version=result.version,
            file=result.file,
            verdict=result.verdict.name.lower(),
            exit_code=result.exit_code,
            tier=result.tier.value if result.tier else None,
            algorithm=result.algorithm,
            digest=result.digest,
            expected=result.expected,
            policy_blocked=result.policy_blocked,
            message=result.message,
            notes=list(result.notes),
        )


class AuditWriter:
    """Append-only audit ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path | None = None):
        self._path = path or Path(DEFAULT_AUDIT_DIR) / DEFAULT_AUDIT_FILE

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append an entry.  I/O errors are logged, never raised."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Audit entry written: %s %s -> %s", entry.name, entry.version, entry.verdict)
        except OSError as e:
            logger.error("Failed to write audit entry to %s: %s", self._path, e)

    def record(self, result: VerificationResult) -> AuditEntry:
        entry = AuditEntry.from_result(result)
        self.write(entry)
        return entry

    def read_all(self) -> list[AuditEntry]:
        """All entries, oldest first.  Corrupt lines are skipped with a warning."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        return self.read_all()[-n:] if n > 0 else []

    def tofu_entries(self) -> list[AuditEntry]:
        """Entries accepted by Trust-On-First-Use."""
        return [e for e in self.read_all() if e.verdict == "unverified"]
