"""
Error taxonomy for download verification.

Four failure classes, each with its own retry and exit-code policy:

    IntegrityError       digest or signature mismatch — fatal, never retried
    AvailabilityError    network, rate limit, missing release data — retried
    ConfigurationError   missing keyring, unmapped signer, bad pinned value — fatal
    VersionResolutionError  bad version input or no matching release

Policy-blocked TOFU is not an exception: the tier engine reports it as a
FAILED verdict with its own message.
"""

from __future__ import annotations


class DltrustError(Exception):
    """Base class for every error raised by dltrust."""


# ── Integrity ───────────────────────────────────────────────────


class IntegrityError(DltrustError):
    """The artifact does not match trusted data."""


class ChecksumMismatchError(IntegrityError):
    """Computed digest differs from the expected digest."""

    def __init__(self, name: str, version: str, expected: str, actual: str):
        self.name = name
        self.version = version
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checksum mismatch for {name} {version}: "
            f"expected {expected}, got {actual}"
        )


class SignatureInvalidError(IntegrityError):
    """A signature was present but did not verify."""


# ── Availability ────────────────────────────────────────────────


class AvailabilityError(DltrustError):
    """Remote data could not be obtained right now."""


class HttpError(AvailabilityError):
    """An HTTP request failed."""

    def __init__(self, url: str, message: str, status: int | None = None):
        self.url = url
        self.status = status
        super().__init__(message)


class NotFoundError(HttpError):
    """The remote resource does not exist (HTTP 404/410).

    Not retried: a missing checksum file will not appear by asking again.
    """


class RateLimitError(HttpError):
    """The remote API refused the request because of rate limiting."""


# ── Configuration ───────────────────────────────────────────────


class ConfigurationError(DltrustError):
    """Local configuration cannot support the requested verification."""


class ConfigError(ConfigurationError):
    """Settings file or checksum database is missing or invalid."""


class KeyringError(ConfigurationError):
    """GPG keyring directory is missing or holds no usable keys."""


class SignerIdentityError(ConfigurationError):
    """No expected Sigstore signer is known for the requested version."""


class UnsupportedVersionError(ConfigurationError):
    """The version belongs to a series with no verification support."""


class ChecksumFormatError(ConfigurationError):
    """A checksum value is not a SHA-256 or SHA-512 hex digest."""


class ToolUnavailableError(ConfigurationError):
    """An external verifier binary (cosign, gpg) is not installed."""


# ── Version resolution ──────────────────────────────────────────


class VersionResolutionError(DltrustError):
    """A version specifier could not be turned into a concrete version."""


class InvalidVersionError(VersionResolutionError, ValueError):
    """The version string is empty or not X, X.Y or X.Y.Z."""


class VersionNotFoundError(VersionResolutionError):
    """The release index has no version matching the specifier."""


class VersionLookupError(VersionResolutionError, AvailabilityError):
    """The release index could not be fetched (network or rate limit).

    Callers can suggest setting ``GITHUB_TOKEN`` when ``rate_limited``.
    """

    def __init__(self, message: str, *, rate_limited: bool = False):
        self.rate_limited = rate_limited
        super().__init__(message)
