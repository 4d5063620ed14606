"""
Signature Verifier — Tier 1 of download verification.

Per-language signature sources:

    python >= 3.11   Sigstore bundle (``<file>.sigstore``, or ``.sig`` + ``.crt``)
                     checked against the release manager for that series;
                     GPG ``<file>.asc`` when no Sigstore material or cosign
    python <  3.11   GPG ``<file>.asc`` from python.org
    node             ``SHASUMS256.txt`` with a detached ``.sig``, else the signed
                     body of the clearsigned ``.asc``; then digest lookup
    go               GPG ``https://go.dev/dl/<file>.asc``

Other languages have no signature source and report False.  Configuration
gaps (unmapped signer, missing keyring, missing binary) raise
``ConfigurationError`` subclasses so callers can tell them from a
signature that simply did not verify.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Callable

from dltrust.adapters.http import HttpClient
from dltrust.adapters.shell.command import CommandRunner, run_command
from dltrust.core.errors import (
    InvalidVersionError,
    NotFoundError,
    ToolUnavailableError,
    UnsupportedVersionError,
)
from dltrust.core.models.version import Full, parse_version_spec
from dltrust.core.services.checksum_fetch import parse_checksums_listing
from dltrust.core.services.digest import digests_equal, file_digest
from dltrust.core.services.signature.gpg import GpgVerifier
from dltrust.core.services.signature.release_managers import ReleaseManagerMap, SignerIdentity
from dltrust.core.services.signature.sigstore import SigstoreVerifier
from dltrust.core.services.version_resolution import canonical_language

logger = logging.getLogger(__name__)

PYTHON_RELEASE_URL = "https://www.python.org/ftp/python/{version}/{filename}"
NODE_SHASUMS_URL = "https://nodejs.org/dist/v{version}/SHASUMS256.txt"
GO_SIGNATURE_URL = "https://go.dev/dl/{filename}.asc"

SIGSTORE_MIN_PYTHON = (3, 11)


def _full_version(version: str) -> Full:
    spec = parse_version_spec(version)
    if not isinstance(spec, Full):
        raise InvalidVersionError(
            f"Signature verification needs a full X.Y.Z version, got {version!r}"
        )
    return spec


class SignatureVerifier:
    """Verifies a downloaded artifact's cryptographic signature.

    Args:
        http: Client used to download signatures and bundles.
        keyring_dir: Base directory of per-language GPG keyrings.
        release_managers: Python signer table for Sigstore.
        runner: Command runner shared by cosign and gpg.
        cosign_bin: cosign executable.
        gpg_bin: gpg executable.
    """

    def __init__(
        self,
        http: HttpClient | None = None,
        keyring_dir: Path | None = None,
        release_managers: ReleaseManagerMap | None = None,
        runner: CommandRunner = run_command,
        cosign_bin: str = "cosign",
        gpg_bin: str = "gpg",
    ):
        self._http = http or HttpClient()
        self._release_managers = release_managers or ReleaseManagerMap()
        self._sigstore = SigstoreVerifier(runner, cosign_bin)
        self._gpg = GpgVerifier(keyring_dir, runner, gpg_bin)
        self._methods: dict[str, Callable[[str, Path, Path], bool]] = {
            "python": self._verify_python,
            "node": self._verify_node,
            "go": self._verify_go,
        }

    def supports(self, language: str) -> bool:
        return canonical_language(language) in self._methods

    def verify_signature(self, language: str, version: str, file_path: Path) -> bool:
        """Verify ``file_path`` as release ``version`` of ``language``.

        Returns:
            True when a signature verified; False when no signature source
            exists, no signature was published, or it did not verify.

        Raises:
            ConfigurationError: Unmapped signer, unsupported major series,
                missing keyring or verifier binary.
            AvailabilityError: Signature download failed after retries.
        """
        lang = canonical_language(language)
        method = self._methods.get(lang)
        if method is None:
            logger.info("   No signature source for %s", language)
            return False

        file_path = Path(file_path)
        if not file_path.is_file():
            logger.error("File not found for signature verification: %s", file_path)
            return False

        logger.info("TIER 1: Signature verification for %s %s", lang, version)
        with tempfile.TemporaryDirectory(prefix="dltrust-sig-") as tmp:
            return method(version.strip(), file_path, Path(tmp))

    def _fetch(self, url: str, dest: Path) -> Path | None:
        """Download ``url``; None when the server has no such file."""
        try:
            return self._http.download(url, dest)
        except NotFoundError:
            logger.info("   Not published: %s", url)
            return None

    # ── Python ─────────────────────────────────────────────────

    def _verify_python(self, version: str, file_path: Path, work: Path) -> bool:
        v = _full_version(version)
        if v.major != 3:
            raise UnsupportedVersionError(f"Python {version} is not a supported release series")

        if (v.major, v.minor) >= SIGSTORE_MIN_PYTHON:
            signer = self._release_managers.lookup(version)
            try:
                verdict = self._python_sigstore(version, file_path, work, signer)
            except ToolUnavailableError as e:
                logger.info("   %s; trying GPG", e)
                verdict = None
            if verdict is not None:
                return verdict

        url = PYTHON_RELEASE_URL.format(version=version, filename=file_path.name) + ".asc"
        sig = self._fetch(url, work / f"{file_path.name}.asc")
        if sig is None:
            return False
        return self._gpg.verify(file_path, sig, "python")

    def _python_sigstore(
        self,
        version: str,
        file_path: Path,
        work: Path,
        signer: SignerIdentity,
    ) -> bool | None:
        """Sigstore result, or None when no Sigstore material is published."""
        base = PYTHON_RELEASE_URL.format(version=version, filename=file_path.name)

        bundle = self._fetch(base + ".sigstore", work / f"{file_path.name}.sigstore")
        if bundle is not None:
            return self._sigstore.verify_blob(file_path, signer, bundle=bundle)

        sig = self._fetch(base + ".sig", work / f"{file_path.name}.sig")
        crt = self._fetch(base + ".crt", work / f"{file_path.name}.crt") if sig else None
        if sig is not None and crt is not None:
            return self._sigstore.verify_blob(file_path, signer, signature=sig, certificate=crt)

        logger.info("   No Sigstore material for Python %s; trying GPG", version)
        return None

    # ── Node.js ────────────────────────────────────────────────

    def _verify_node(self, version: str, file_path: Path, work: Path) -> bool:
        version = version.lstrip("v")
        listing = self._signed_node_listing(version, work)
        if listing is None:
            return False

        expected = parse_checksums_listing(listing, file_path.name)
        if expected is None:
            logger.error("%s is not listed in the signed SHASUMS256.txt", file_path.name)
            return False

        actual = file_digest(file_path, "sha256")
        if not digests_equal(actual, expected):
            logger.error(
                "Checksum mismatch against signed SHASUMS256.txt for %s: expected %s, got %s",
                file_path.name, expected, actual,
            )
            return False
        logger.info("   Digest matches signed SHASUMS256.txt")
        return True

    def _signed_node_listing(self, version: str, work: Path) -> str | None:
        """Text of SHASUMS256.txt as covered by its GPG signature.

        A detached ``.sig`` signs the plain listing.  ``.asc`` is a
        clearsigned copy, so the listing is taken from its signed body.
        """
        shasums_url = NODE_SHASUMS_URL.format(version=version)
        sig = self._fetch(f"{shasums_url}.sig", work / "SHASUMS256.txt.sig")
        if sig is not None:
            shasums = self._fetch(shasums_url, work / "SHASUMS256.txt")
            if shasums is None or not self._gpg.verify(shasums, sig, "node"):
                return None
            return shasums.read_text()

        clearsigned = self._fetch(f"{shasums_url}.asc", work / "SHASUMS256.txt.asc")
        if clearsigned is None:
            logger.warning("Node.js %s publishes no SHASUMS256.txt signature", version)
            return None
        return self._gpg.verify_clearsigned(clearsigned, "node")

    # ── Go ─────────────────────────────────────────────────────

    def _verify_go(self, version: str, file_path: Path, work: Path) -> bool:
        sig = self._fetch(
            GO_SIGNATURE_URL.format(filename=file_path.name),
            work / f"{file_path.name}.asc",
        )
        if sig is None:
            return False
        return self._gpg.verify(file_path, sig, "go")


def verify_signature(
    language: str,
    version: str,
    file_path: Path,
    keyring_dir: Path | None = None,
    http: HttpClient | None = None,
) -> bool:
    """Module-level convenience; see ``SignatureVerifier.verify_signature``."""
    return SignatureVerifier(http=http, keyring_dir=keyring_dir).verify_signature(
        language, version, file_path,
    )
