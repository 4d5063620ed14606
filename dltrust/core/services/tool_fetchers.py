"""
Tool checksum fetcher registry — pluggable Tier 3 sources for CLI tools.

Each tool integration registers a callable ``fetcher(version, arch, filename)``
that returns the vendor-published digest for the artifact being verified,
or None.  ``filename`` is the downloaded file's name; fetchers look it up
first and fall back to the tool's default release asset.
The registry is owned by the tier engine and injected into it, so tests
can hand in fake fetchers.

Outcomes of ``verify_tool_published_checksum``:

    MATCH         published digest equals the file's digest
    MISMATCH      published digest differs (hard failure)
    NO_FETCHER    nothing registered for the tool (tier skipped)
    NO_CHECKSUM   fetcher produced no usable digest or failed (tier skipped)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Callable, Iterator

from dltrust.core.errors import AvailabilityError, ChecksumFormatError
from dltrust.core.services.checksum_fetch import PublishedChecksums
from dltrust.core.services.digest import verify_checksum

logger = logging.getLogger(__name__)

ToolChecksumFetcher = Callable[[str, str, str | None], str | None]


class FetchOutcome(StrEnum):
    MATCH = "match"
    MISMATCH = "mismatch"
    NO_FETCHER = "no_fetcher"
    NO_CHECKSUM = "no_checksum"


@dataclass
class ToolChecksumResult:
    """What the registry learned about one tool artifact."""

    outcome: FetchOutcome
    expected: str | None = None
    actual: str | None = None
    algorithm: str | None = None
    error: str = ""

    @property
    def skipped(self) -> bool:
        return self.outcome in (FetchOutcome.NO_FETCHER, FetchOutcome.NO_CHECKSUM)


class ToolFetcherRegistry:
    """Map of tool name → published-checksum fetcher.

    Register before first use; lookups never mutate the map.
    """

    def __init__(self, fetchers: dict[str, ToolChecksumFetcher] | None = None):
        self._fetchers: dict[str, ToolChecksumFetcher] = dict(fetchers or {})

    def register(self, name: str, fetcher: ToolChecksumFetcher) -> None:
        if name in self._fetchers:
            logger.warning("Overwriting checksum fetcher for tool: %s", name)
        self._fetchers[name] = fetcher
        logger.debug("Registered checksum fetcher: %s", name)

    def unregister(self, name: str) -> None:
        self._fetchers.pop(name, None)

    def get(self, name: str) -> ToolChecksumFetcher | None:
        return self._fetchers.get(name)

    def names(self) -> list[str]:
        return sorted(self._fetchers)

    def __contains__(self, name: object) -> bool:
        return name in self._fetchers

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._fetchers)

    def verify_tool_published_checksum(
        self,
        name: str,
        version: str,
        file_path: Path,
        arch: str = "amd64",
    ) -> ToolChecksumResult:
        """Fetch the published digest for a tool and compare it to the file."""
        fetcher = self._fetchers.get(name)
        if fetcher is None:
            logger.info("   No Tier 3 fetcher registered for tool '%s'", name)
            return ToolChecksumResult(FetchOutcome.NO_FETCHER)

        logger.info("TIER 3: Fetching published checksum for tool '%s'", name)
        try:
            expected = fetcher(version, arch, Path(file_path).name)
        except AvailabilityError as e:
            logger.warning("   Published checksum fetch failed for %s %s: %s", name, version, e)
            return ToolChecksumResult(FetchOutcome.NO_CHECKSUM, error=str(e))
        except Exception as e:
            logger.warning(
                "   Checksum fetcher for %s %s raised: %s", name, version, e, exc_info=True,
            )
            return ToolChecksumResult(FetchOutcome.NO_CHECKSUM, error=str(e))

        if not expected:
            logger.info("   Published checksum not available for %s %s", name, version)
            return ToolChecksumResult(FetchOutcome.NO_CHECKSUM)

        try:
            matched, algorithm, actual = verify_checksum(file_path, expected)
        except ChecksumFormatError as e:
            logger.error("Invalid checksum from fetcher for %s: %s", name, e)
            return ToolChecksumResult(FetchOutcome.NO_CHECKSUM, expected=expected, error=str(e))

        result = ToolChecksumResult(
            FetchOutcome.MATCH if matched else FetchOutcome.MISMATCH,
            expected=expected.lower(),
            actual=actual,
            algorithm=algorithm,
        )
        if matched:
            logger.info("   TIER 3 VERIFICATION PASSED (%s)", algorithm)
        return result


# ── Built-in fetchers ───────────────────────────────────────────


def _lazydocker_arch(arch: str) -> str:
    return {"amd64": "x86_64", "arm64": "arm64"}.get(arch, arch)


def register_default_tool_fetchers(
    registry: ToolFetcherRegistry,
    published: PublishedChecksums,
) -> ToolFetcherRegistry:
    """Register fetchers for the tools the build installs from GitHub releases.

    Release listings cover every asset of a release, so the downloaded
    file's own name is looked up before the asset the build uses by default.
    """

    def lazydocker(version: str, arch: str, filename: str | None = None) -> str | None:
        archive = f"lazydocker_{version}_Linux_{_lazydocker_arch(arch)}.tar.gz"
        url = (
            "https://github.com/jesseduffield/lazydocker/releases/download/"
            f"v{version}/checksums.txt"
        )
        return published.checksums_txt(url, filename, archive)

    def dive(version: str, arch: str, filename: str | None = None) -> str | None:
        url = (
            "https://github.com/wagoodman/dive/releases/download/"
            f"v{version}/dive_{version}_checksums.txt"
        )
        return published.checksums_txt(url, filename, f"dive_{version}_linux_{arch}.deb")

    def cosign(version: str, arch: str, filename: str | None = None) -> str | None:
        url = (
            "https://github.com/sigstore/cosign/releases/download/"
            f"v{version}/cosign_checksums.txt"
        )
        return published.checksums_txt(url, filename, f"cosign_{version}_{arch}.deb")

    def gh(version: str, arch: str, filename: str | None = None) -> str | None:
        url = f"https://github.com/cli/cli/releases/download/v{version}/gh_{version}_checksums.txt"
        return published.checksums_txt(url, filename, f"gh_{version}_linux_{arch}.tar.gz")

    def kubectl(version: str, arch: str, filename: str | None = None) -> str | None:
        # One digest file per binary; the name carries nothing extra
        return published.sha256_file(
            f"https://dl.k8s.io/release/v{version}/bin/linux/{arch}/kubectl.sha256"
        )

    for name, fetcher in (
        ("lazydocker", lazydocker),
        ("dive", dive),
        ("cosign", cosign),
        ("gh", gh),
        ("kubectl", kubectl),
    ):
        registry.register(name, fetcher)
    return registry
