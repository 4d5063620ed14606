"""
File digests — streaming SHA-256 / SHA-512 computation and comparison.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from dltrust.core.models.checksums import algorithm_for_digest

logger = logging.getLogger(__name__)

_CHUNK = 1024 * 1024


def file_digest(path: Path, algorithm: str = "sha256") -> str:
    """Hex digest of a file, read in 1 MiB chunks."""
    h = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()


def digests_equal(a: str, b: str) -> bool:
    """Case-insensitive hex comparison."""
    return a.strip().lower() == b.strip().lower()


def verify_checksum(path: Path, expected: str) -> tuple[bool, str, str]:
    """Check a file against an expected SHA-256 or SHA-512 digest.

    The algorithm follows from the digest length.

    Returns:
        ``(matched, algorithm, actual_digest)``.

    Raises:
        ChecksumFormatError: If ``expected`` is not a valid digest.
        FileNotFoundError: If ``path`` does not exist.
    """
    algorithm = algorithm_for_digest(expected)
    actual = file_digest(path, algorithm)
    return digests_equal(actual, expected), algorithm, actual
