"""
Checksum Tier Engine — decides whether a downloaded artifact can be trusted.

Tiers are walked in strict order and the first conclusive one wins:

    1. Signature   (language only)   Sigstore / GPG          verified → 0
    2. Pinned      git-tracked DB    match → 0, mismatch → 1 (terminal)
    3. Published   vendor checksums  match → 0, mismatch → 1 (terminal)
    4. Calculated  TOFU              accepted → 2, or 1 when policy forbids

Absence of data moves on to the next tier; a disagreement never does.
The engine does not raise for per-artifact outcomes: every call returns a
fresh ``VerificationResult``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from dltrust.core.config.loader import load_checksum_db
from dltrust.core.errors import (
    AvailabilityError,
    ChecksumFormatError,
    ChecksumMismatchError,
    DltrustError,
)
from dltrust.core.models.checksums import ChecksumDatabase, PinnedChecksum
from dltrust.core.models.policy import VerificationPolicy
from dltrust.core.models.verdict import Category, TrustTier, Verdict, VerificationResult
from dltrust.core.services.checksum_fetch import PublishedChecksums
from dltrust.core.services.digest import digests_equal, file_digest, verify_checksum
from dltrust.core.services.signature.verifier import SignatureVerifier
from dltrust.core.services.tool_fetchers import (
    FetchOutcome,
    ToolFetcherRegistry,
    register_default_tool_fetchers,
)
from dltrust.core.services.version_resolution import LANGUAGE_ALIASES, canonical_language

logger = logging.getLogger(__name__)

_RULE = "═" * 63


class _Run:
    """Accumulates state for one ``verify_download`` call."""

    def __init__(self, category: Category, name: str, version: str, file_path: Path):
        self.category = category
        self.name = name
        self.version = version
        self.file_path = file_path
        self.notes: list[str] = []

    def result(self, verdict: Verdict, tier: TrustTier | None, message: str, **kw) -> VerificationResult:
        return VerificationResult(
            category=self.category.value,
            name=self.name,
            version=self.version,
            file=str(self.file_path),
            verdict=verdict,
            tier=tier,
            message=message,
            notes=list(self.notes),
            **kw,
        )


class ChecksumVerifier:
    """Runs the four-tier verification protocol.

    Collaborators are injected so tests can replace the network-facing
    parts with fakes.

    Args:
        db: Pinned checksum database (Tier 2).
        policy: Whether Tier 4 TOFU acceptance is allowed.
        signatures: Tier 1 verifier.
        published: Tier 3 source for language runtimes.
        tool_fetchers: Tier 3 source for tools.
    """

    def __init__(
        self,
        db: ChecksumDatabase,
        *,
        policy: VerificationPolicy | None = None,
        signatures: SignatureVerifier | None = None,
        published: PublishedChecksums | None = None,
        tool_fetchers: ToolFetcherRegistry | None = None,
    ):
        self._db = db
        self._policy = policy or VerificationPolicy()
        self._signatures = signatures or SignatureVerifier()
        self._published = published or PublishedChecksums()
        if tool_fetchers is None:
            tool_fetchers = register_default_tool_fetchers(ToolFetcherRegistry(), self._published)
        self._tool_fetchers = tool_fetchers

    @property
    def policy(self) -> VerificationPolicy:
        return self._policy

    @property
    def tool_fetchers(self) -> ToolFetcherRegistry:
        return self._tool_fetchers

    # ── Public API ─────────────────────────────────────────────

    def verify_download(
        self,
        category: str,
        name: str,
        version: str,
        file_path: Path,
        arch: str = "amd64",
    ) -> VerificationResult:
        """Verify one downloaded artifact.

        Args:
            category: ``"language"`` or ``"tool"``.
            name: Language or tool name (aliases such as ``nodejs`` accepted).
            version: Concrete version of the artifact.
            file_path: The downloaded file.
            arch: Debian architecture name, used to pick published checksums.

        Raises:
            ValueError: Unknown category.
        """
        run = _Run(Category(category), name, version, Path(file_path))

        logger.info(_RULE)
        logger.info("CHECKSUM VERIFICATION: %s %s", name, version)
        logger.info(_RULE)

        if not run.file_path.is_file():
            logger.error("File not found for verification: %s", run.file_path)
            return run.result(Verdict.FAILED, None, f"File not found: {run.file_path}")

        if run.category is Category.LANGUAGE:
            verified = self._tier_signature(run)
            if verified is not None:
                return verified

        concluded = self._tier_pinned(run)
        if concluded is not None:
            return concluded

        concluded = self._tier_published(run, arch)
        if concluded is not None:
            return concluded

        return self._tier_calculated(run)

    # ── Tier 1 ─────────────────────────────────────────────────

    def _tier_signature(self, run: _Run) -> VerificationResult | None:
        try:
            ok = self._signatures.verify_signature(run.name, run.version, run.file_path)
        except DltrustError as e:
            logger.info("   Tier 1 unavailable: %s", e)
            run.notes.append(f"signature: {e}")
            return None
        if ok:
            logger.info("   TIER 1 VERIFICATION PASSED")
            return run.result(Verdict.VERIFIED, TrustTier.SIGNATURE, "Signature verified")
        run.notes.append("signature: not verified")
        logger.info("   Tier 1 (signature) unavailable or failed; trying Tier 2")
        return None

    # ── Tier 2 ─────────────────────────────────────────────────

    def _pinned_names(self, run: _Run) -> list[str]:
        if run.category is not Category.LANGUAGE:
            return [run.name]
        canonical = canonical_language(run.name)
        aliases = [alias for alias, target in LANGUAGE_ALIASES.items() if target == canonical]
        return list(dict.fromkeys([run.name, canonical, *aliases]))

    def _lookup_pinned(self, run: _Run) -> PinnedChecksum | None:
        for candidate in self._pinned_names(run):
            pinned = self._db.lookup(run.category.value, candidate, run.version)
            if pinned is not None:
                return pinned
        return None

    def _tier_pinned(self, run: _Run) -> VerificationResult | None:
        logger.info("TIER 2: Checking pinned checksums for %s %s", run.name, run.version)
        try:
            pinned = self._lookup_pinned(run)
        except ChecksumFormatError as e:
            logger.error("Invalid pinned checksum for %s %s: %s", run.name, run.version, e)
            return run.result(Verdict.FAILED, TrustTier.PINNED, f"Invalid pinned checksum: {e}")

        if pinned is None:
            logger.info("   No pinned checksum for %s %s", run.name, run.version)
            run.notes.append("pinned: no entry")
            return None

        actual = file_digest(run.file_path, pinned.algorithm)
        if digests_equal(actual, pinned.digest):
            logger.info("   TIER 2 VERIFICATION PASSED (%s)", pinned.algorithm)
            return run.result(
                Verdict.VERIFIED, TrustTier.PINNED, "Pinned checksum matched",
                algorithm=pinned.algorithm, digest=actual, expected=pinned.digest,
            )

        err = ChecksumMismatchError(run.name, run.version, pinned.digest, actual)
        logger.error("TIER 2: %s", err)
        return run.result(
            Verdict.FAILED, TrustTier.PINNED, str(err),
            algorithm=pinned.algorithm, digest=actual, expected=pinned.digest,
        )

    # ── Tier 3 ─────────────────────────────────────────────────

    def _tier_published(self, run: _Run, arch: str) -> VerificationResult | None:
        if run.category is Category.TOOL:
            return self._tier_published_tool(run, arch)

        logger.info("TIER 3: Fetching published checksum for %s %s", run.name, run.version)
        try:
            expected = self._published.for_language(run.name, run.version, run.file_path, arch)
        except AvailabilityError as e:
            logger.warning("   Could not fetch published checksum: %s", e)
            run.notes.append(f"published: {e}")
            return None
        except Exception as e:
            logger.warning("   Published checksum lookup failed: %s", e, exc_info=True)
            run.notes.append(f"published: {e}")
            return None
        if not expected:
            run.notes.append("published: no checksum")
            return None

        try:
            matched, algorithm, actual = verify_checksum(run.file_path, expected)
        except ChecksumFormatError as e:
            logger.warning("   Ignoring malformed published checksum: %s", e)
            run.notes.append(f"published: {e}")
            return None
        return self._published_verdict(run, matched, algorithm, actual, expected.lower())

    def _tier_published_tool(self, run: _Run, arch: str) -> VerificationResult | None:
        outcome = self._tool_fetchers.verify_tool_published_checksum(
            run.name, run.version, run.file_path, arch,
        )
        if outcome.skipped:
            note = "no fetcher" if outcome.outcome is FetchOutcome.NO_FETCHER else "no checksum"
            run.notes.append(f"published: {outcome.error or note}")
            return None
        return self._published_verdict(
            run, outcome.outcome is FetchOutcome.MATCH,
            outcome.algorithm, outcome.actual, outcome.expected,
        )

    def _published_verdict(
        self,
        run: _Run,
        matched: bool,
        algorithm: str | None,
        actual: str | None,
        expected: str | None,
    ) -> VerificationResult:
        if matched:
            logger.info("   TIER 3 VERIFICATION PASSED (%s)", algorithm)
            return run.result(
                Verdict.VERIFIED, TrustTier.PUBLISHED, "Published checksum matched",
                algorithm=algorithm, digest=actual, expected=expected,
            )
        err = ChecksumMismatchError(run.name, run.version, expected or "", actual or "")
        logger.error("TIER 3: %s", err)
        return run.result(
            Verdict.FAILED, TrustTier.PUBLISHED, str(err),
            algorithm=algorithm, digest=actual, expected=expected,
        )

    # ── Tier 4 ─────────────────────────────────────────────────

    def _tier_calculated(self, run: _Run) -> VerificationResult:
        digest = file_digest(run.file_path, "sha256")

        if not self._policy.allows_tofu:
            logger.error(
                "Verified downloads are required: Tier 4 TOFU fallback is not allowed "
                "for %s %s", run.name, run.version,
            )
            logger.error(
                "Add a pinned checksum for %s %s to the checksum database", run.name, run.version,
            )
            return run.result(
                Verdict.FAILED, TrustTier.CALCULATED,
                "No trusted checksum available and verified downloads are required",
                algorithm="sha256", digest=digest, policy_blocked=True,
            )

        logger.warning("TIER 4: Using calculated checksum (fallback)")
        logger.warning(
            "SECURITY WARNING: no trusted checksum available for %s %s. "
            "Accepting it by Trust-On-First-Use (TOFU) without external verification; "
            "this is vulnerable to man-in-the-middle attacks and not recommended "
            "for production builds.",
            run.name, run.version,
        )
        logger.warning("   Calculated SHA256: %s", digest)
        return run.result(
            Verdict.UNVERIFIED, TrustTier.CALCULATED,
            "Accepted by Trust-On-First-Use (unverified)",
            algorithm="sha256", digest=digest,
        )


def verify_download(
    category: str,
    name: str,
    version: str,
    file_path: Path,
    arch: str = "amd64",
    *,
    db: ChecksumDatabase | None = None,
    policy: VerificationPolicy | None = None,
) -> int:
    """Run the tier engine with default collaborators; returns 0, 1 or 2."""
    if db is None:
        db = load_checksum_db()
    verifier = ChecksumVerifier(db, policy=policy)
    return verifier.verify_download(category, name, version, file_path, arch).exit_code
