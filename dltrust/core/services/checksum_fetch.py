"""
Published checksum fetching — vendor-provided digests (Tier 3).

Generic helpers cover the common publishing formats (``checksums.txt`` /
``SHA256SUMS`` listings, single ``.sha256`` / ``.sha512`` files, Maven
Central).  ``PublishedChecksums.for_language`` knows where each language
runtime publishes digests for a release.

Every fetcher returns a hex digest or None.  None means "not published
for this artifact"; network trouble raises ``AvailabilityError``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from dltrust.adapters.http import HttpClient
from dltrust.core.errors import NotFoundError
from dltrust.core.models.checksums import validate_checksum_format
from dltrust.core.services.version_resolution import GO_INDEX_URL, canonical_language

logger = logging.getLogger(__name__)

PYTHON_SHA256_URL = "https://www.python.org/ftp/python/{version}/{filename}.sha256"
NODE_SHASUMS_URL = "https://nodejs.org/dist/v{version}/SHASUMS256.txt"
RUBY_DOWNLOADS_URL = "https://www.ruby-lang.org/en/downloads/"

# Debian arch → Node.js arch
_NODE_ARCH = {"amd64": "x64", "arm64": "arm64", "armhf": "armv7l", "ppc64el": "ppc64le"}


def parse_checksums_listing(text: str, filename: str) -> str | None:
    """Find ``filename``'s digest in a ``<hex>  <name>`` listing.

    The name must match exactly or as the last path component
    (``dist/name``); ``*name`` (binary mode marker) is accepted.
    Lines for sidecar files such as ``name.sig`` never match.
    """
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        digest, name = parts[0], parts[-1].lstrip("*")
        if name == filename or name.endswith("/" + filename):
            return digest.lower()
    return None


class PublishedChecksums:
    """Fetches vendor-published digests.

    Args:
        http: HTTP client (retries and GitHub auth live there).
    """

    def __init__(self, http: HttpClient | None = None):
        self._http = http or HttpClient()

    def _get_text(self, url: str) -> str | None:
        try:
            return self._http.get_text(url)
        except NotFoundError:
            logger.info("   No published checksum at %s", url)
            return None

    # ── Generic sources ────────────────────────────────────────

    def checksums_txt(self, url: str, *filenames: str | None) -> str | None:
        """Digest from a ``checksums.txt``-style listing.

        ``filenames`` are tried in order against one download of the
        listing; empty entries are skipped.
        """
        text = self._get_text(url)
        if text is None:
            return None
        for filename in filenames:
            if filename:
                digest = parse_checksums_listing(text, filename)
                if digest:
                    return digest
        return None

    def _single_file(self, url: str, algorithm: str) -> str | None:
        text = self._get_text(url)
        if not text or not text.split():
            return None
        digest = text.split()[0].lower()
        return digest if validate_checksum_format(digest, algorithm) else None

    def sha256_file(self, url: str) -> str | None:
        """Digest from an individual ``.sha256`` file."""
        return self._single_file(url, "sha256")

    def sha512_file(self, url: str) -> str | None:
        """Digest from an individual ``.sha512`` file."""
        return self._single_file(url, "sha512")

    def maven_sha256(self, artifact_url: str) -> str | None:
        """Maven Central publishes ``<artifact>.sha256`` next to each artifact."""
        return self.sha256_file(f"{artifact_url}.sha256")

    # ── Language runtimes ──────────────────────────────────────

    def for_language(
        self,
        name: str,
        version: str,
        file_path: Path | None = None,
        arch: str = "amd64",
    ) -> str | None:
        """Published digest for a language runtime release.

        Returns None for languages without a published-checksum source
        (rust, java) or when the release lists no matching artifact.
        """
        lang = canonical_language(name)
        filename = file_path.name if file_path is not None else None
        if lang == "python":
            return self.python(version, filename)
        if lang == "node":
            return self.node(version, filename, arch)
        if lang == "go":
            return self.go(version, arch, filename)
        if lang == "ruby":
            return self.ruby(version)
        logger.info("   No published checksum method for %s", name)
        return None

    def python(self, version: str, filename: str | None = None) -> str | None:
        if not filename or not filename.startswith("Python-"):
            filename = f"Python-{version}.tgz"
        return self.sha256_file(PYTHON_SHA256_URL.format(version=version, filename=filename))

    def node(self, version: str, filename: str | None = None, arch: str = "amd64") -> str | None:
        node_arch = _NODE_ARCH.get(arch, arch)
        default = f"node-v{version}-linux-{node_arch}.tar.xz"
        return self.checksums_txt(NODE_SHASUMS_URL.format(version=version), filename, default)

    def go(self, version: str, arch: str = "amd64", filename: str | None = None) -> str | None:
        """SHA-256 from go.dev's JSON release index."""
        data = self._http.get_json(GO_INDEX_URL)
        wanted = f"go{version}"
        default = f"go{version}.linux-{arch}.tar.gz"
        for release in data:
            if not isinstance(release, dict) or release.get("version") != wanted:
                continue
            files = [e for e in release.get("files") or [] if isinstance(e, dict)]
            for candidate in (filename, default):
                for entry in files:
                    if candidate and entry.get("filename") == candidate:
                        return str(entry.get("sha256", "")).lower() or None
        return None

    def ruby(self, version: str) -> str | None:
        """SHA-256 listed under ``Ruby <version>`` on the downloads page."""
        page = self._get_text(RUBY_DOWNLOADS_URL)
        if page is None:
            return None
        marker = f">Ruby {version}"
        idx = page.find(marker)
        while idx != -1:
            # The digest follows the heading within a few lines
            tail = page[idx + len(marker): idx + len(marker) + 600]
            if tail[:1].isdigit():
                # ">Ruby 3.4.7" must not match ">Ruby 3.4.70"
                idx = page.find(marker, idx + 1)
                continue
            m = re.search(r"sha256:\s*([a-f0-9]{64})", tail)
            if m:
                return m.group(1)
            idx = page.find(marker, idx + 1)
        return None
