"""
Domain models — verdicts, policies, version specifiers, pinned checksums.

    from dltrust.core.models import Verdict, VerificationResult, VerificationPolicy
"""

from dltrust.core.models.checksums import (
    ChecksumDatabase,
    PinnedChecksum,
    PinnedEntry,
    PinnedVersion,
    algorithm_for_digest,
    is_placeholder,
    validate_checksum_format,
)
from dltrust.core.models.policy import RetryPolicy, VerificationPolicy
from dltrust.core.models.verdict import Category, TrustTier, Verdict, VerificationResult
from dltrust.core.models.version import (
    Full,
    Invalid,
    MajorMinor,
    MajorOnly,
    VersionSpec,
    newest_matching,
    parse_version_spec,
)

__all__ = [
    # checksums.py
    "ChecksumDatabase",
    "PinnedChecksum",
    "PinnedEntry",
    "PinnedVersion",
    "algorithm_for_digest",
    "is_placeholder",
    "validate_checksum_format",
    # policy.py
    "RetryPolicy",
    "VerificationPolicy",
    # verdict.py
    "Category",
    "TrustTier",
    "Verdict",
    "VerificationResult",
    # version.py
    "Full",
    "Invalid",
    "MajorMinor",
    "MajorOnly",
    "VersionSpec",
    "newest_matching",
    "parse_version_spec",
]
