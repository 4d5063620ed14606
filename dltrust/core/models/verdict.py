"""
Verification verdicts — the contract between the tier engine and its callers.

The engine never raises for a per-artifact outcome: everything it learned
is captured in a ``VerificationResult``.  The integer value of ``Verdict``
is the process exit code used by the CLI.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import IntEnum, StrEnum
from typing import Any

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Verdict(IntEnum):
    """Tri-state trust outcome for one download."""

    VERIFIED = 0      # signature or checksum match
    FAILED = 1        # mismatch, config failure, or TOFU blocked by policy
    UNVERIFIED = 2    # accepted on first use


class TrustTier(StrEnum):
    """Which tier produced the verdict."""

    SIGNATURE = "signature"
    PINNED = "pinned"
    PUBLISHED = "published"
    CALCULATED = "calculated"


class Category(StrEnum):
    """Artifact categories known to the pinned checksum database."""

    LANGUAGE = "language"
    TOOL = "tool"


class VerificationResult(BaseModel):
    """Outcome of ``verify_download`` for a single artifact.

    Produced fresh per call, never cached.  ``digest`` always carries the
    digest that was computed for the file (if any tier computed one), so
    TOFU acceptances can be written to the audit trail.
    """

    category: str
    name: str
    version: str
    file: str
    verdict: Verdict
    tier: TrustTier | None = None

    algorithm: str | None = None
    digest: str | None = None
    expected: str | None = None

    message: str = ""
    notes: list[str] = Field(default_factory=list)   # why earlier tiers fell through
    policy_blocked: bool = False
    checked_at: str = Field(default_factory=_now_iso)

    @property
    def ok(self) -> bool:
        """Whether the caller may proceed with installation."""
        return self.verdict != Verdict.FAILED

    @property
    def exit_code(self) -> int:
        return int(self.verdict)

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["verdict"] = self.verdict.name.lower()
        data["exit_code"] = self.exit_code
        return data
