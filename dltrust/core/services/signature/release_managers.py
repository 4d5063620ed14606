"""
Python release-manager identities for Sigstore verification.

Each CPython minor series is signed by one release manager.  ``cosign``
must be told the exact certificate identity and OIDC issuer; a release
signed by any other Sigstore identity is rejected.

A series missing from the table raises ``SignerIdentityError``; extend
the table when a new release manager takes over.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from dltrust.core.errors import SignerIdentityError, UnsupportedVersionError

logger = logging.getLogger(__name__)

GITHUB_OIDC = "https://github.com/login/oauth"
GOOGLE_OIDC = "https://accounts.google.com"


@dataclass(frozen=True)
class SignerIdentity:
    """Expected Sigstore certificate identity and OIDC issuer."""

    identity: str
    issuer: str


# Python 3 minor version → signer
PYTHON_RELEASE_MANAGERS: dict[int, SignerIdentity] = {
    7: SignerIdentity("nad@python.org", GITHUB_OIDC),
    8: SignerIdentity("lukasz@langa.pl", GITHUB_OIDC),
    9: SignerIdentity("lukasz@langa.pl", GITHUB_OIDC),
    10: SignerIdentity("pablogsal@python.org", GOOGLE_OIDC),
    11: SignerIdentity("pablogsal@python.org", GOOGLE_OIDC),
    12: SignerIdentity("thomas@python.org", GOOGLE_OIDC),
    13: SignerIdentity("thomas@python.org", GOOGLE_OIDC),
    14: SignerIdentity("hugo@python.org", GITHUB_OIDC),
    15: SignerIdentity("hugo@python.org", GITHUB_OIDC),
    16: SignerIdentity("savannah@python.org", GITHUB_OIDC),
    17: SignerIdentity("savannah@python.org", GITHUB_OIDC),
}


def _major_minor(version: str) -> tuple[int, int]:
    parts = version.strip().split(".")
    if len(parts) < 2 or not parts[0].isdigit() or not parts[1].isdigit():
        raise SignerIdentityError(f"Cannot determine Python series from version {version!r}")
    return int(parts[0]), int(parts[1])


class ReleaseManagerMap:
    """Lookup table from a Python version to its release manager.

    Args:
        managers: Minor version → signer.  Defaults to
            ``PYTHON_RELEASE_MANAGERS``; tests and callers extending the
            table pass their own.
        major: The only major series the table covers.
    """

    def __init__(
        self,
        managers: Mapping[int, SignerIdentity] | None = None,
        major: int = 3,
    ):
        self._managers = dict(PYTHON_RELEASE_MANAGERS if managers is None else managers)
        self._major = major

    def lookup(self, version: str) -> SignerIdentity:
        """Signer for ``version``.

        Raises:
            UnsupportedVersionError: Version is outside the supported major series.
            SignerIdentityError: No release manager is recorded for the series.
        """
        major, minor = _major_minor(version)
        if major != self._major:
            raise UnsupportedVersionError(
                f"Python {version}: only Python {self._major}.x releases carry "
                "Sigstore signatures"
            )
        signer = self._managers.get(minor)
        if signer is None:
            raise SignerIdentityError(
                f"No release manager known for Python {major}.{minor} "
                f"(known series: {', '.join(self.series())})"
            )
        logger.debug("Python %s signer: %s (%s)", version, signer.identity, signer.issuer)
        return signer

    def series(self) -> list[str]:
        return [f"{self._major}.{minor}" for minor in sorted(self._managers)]

    def __contains__(self, version: object) -> bool:
        if not isinstance(version, str):
            return False
        try:
            self.lookup(version)
        except (SignerIdentityError, UnsupportedVersionError):
            return False
        return True


def get_python_release_manager(version: str) -> SignerIdentity:
    """Module-level convenience over the default table."""
    return ReleaseManagerMap().lookup(version)
