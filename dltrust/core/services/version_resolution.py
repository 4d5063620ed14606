"""
Version resolution — turn ``"3.12"`` or ``"20"`` into a concrete release.

Full ``X.Y.Z`` versions are returned as-is without touching the network.
Partial versions cost one (retried) request to the vendor's release index;
the newest release under the requested prefix wins.

Supported languages and their indexes:

    python   https://www.python.org/ftp/python/          (directory listing)
    node     https://nodejs.org/dist/index.json
    rust     GitHub releases API for rust-lang/rust        (token-aware)
    java     Adoptium feature-release API
    ruby     https://www.ruby-lang.org/en/downloads/releases/
    go       https://go.dev/dl/?mode=json&include=all
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from dltrust.adapters.http import HttpClient
from dltrust.core.errors import (
    AvailabilityError,
    InvalidVersionError,
    RateLimitError,
    VersionLookupError,
    VersionNotFoundError,
)
from dltrust.core.models.version import (
    Full,
    Invalid,
    VersionSpec,
    newest_matching,
    parse_version_spec,
)

logger = logging.getLogger(__name__)

PYTHON_FTP_URL = "https://www.python.org/ftp/python/"
NODE_INDEX_URL = "https://nodejs.org/dist/index.json"
RUST_RELEASES_URL = "https://api.github.com/repos/rust-lang/rust/releases?per_page=100"
ADOPTIUM_URL = "https://api.adoptium.net/v3/assets/feature_releases/{major}/ga"
RUBY_RELEASES_URL = "https://www.ruby-lang.org/en/downloads/releases/"
GO_INDEX_URL = "https://go.dev/dl/?mode=json&include=all"

LANGUAGE_ALIASES = {
    "nodejs": "node",
    "golang": "go",
}

_PY_DIR_RE = re.compile(r">(\d+\.\d+\.\d+)/")
_RUBY_RE = re.compile(r"Ruby (\d+\.\d+\.\d+)")


def canonical_language(language: str) -> str:
    """Map aliases (``nodejs``, ``golang``) to the canonical language name."""
    key = language.strip().lower()
    return LANGUAGE_ALIASES.get(key, key)


def _require_spec(version: str) -> VersionSpec:
    if not version or not version.strip():
        raise InvalidVersionError("Empty version provided")
    spec = parse_version_spec(version)
    if isinstance(spec, Invalid):
        raise InvalidVersionError(
            f"Invalid version format: {version!r} "
            "(expected X, X.Y or X.Y.Z; digits and dots only)"
        )
    return spec


class VersionResolver:
    """Resolves partial version specifiers against vendor release indexes.

    Args:
        http: HTTP client used for index lookups.  Only touched for
            partial versions.
    """

    def __init__(self, http: HttpClient | None = None):
        self._http = http or HttpClient()
        self._resolvers: dict[str, Callable[[VersionSpec], list[str]]] = {
            "python": self._python_candidates,
            "node": self._node_candidates,
            "rust": self._rust_candidates,
            "java": self._java_candidates,
            "ruby": self._ruby_candidates,
            "go": self._go_candidates,
        }

    @property
    def languages(self) -> list[str]:
        return sorted(self._resolvers)

    def supports(self, language: str) -> bool:
        return canonical_language(language) in self._resolvers

    # ── Public API ─────────────────────────────────────────────

    def resolve(self, language: str, version: str) -> str:
        """Resolve ``version`` for ``language``.

        An unknown language is logged as an error and the input version is
        returned unchanged; check ``supports()`` first to treat it as fatal.

        Raises:
            InvalidVersionError: Empty or malformed version.
            VersionLookupError: The release index could not be fetched.
            VersionNotFoundError: No release matches the specifier.
        """
        lang = canonical_language(language)
        fetch = self._resolvers.get(lang)
        if fetch is None:
            logger.error("Unknown language for version resolution: %s", language)
            return version
        return self._resolve(lang, version, fetch)

    def _resolve(
        self,
        lang: str,
        version: str,
        fetch: Callable[[VersionSpec], list[str]],
    ) -> str:
        spec = _require_spec(version)
        if isinstance(spec, Full):
            return version.strip()

        try:
            candidates = fetch(spec)
        except RateLimitError as e:
            raise VersionLookupError(
                f"Rate limited while fetching {lang} versions: {e}", rate_limited=True,
            ) from e
        except AvailabilityError as e:
            raise VersionLookupError(f"Failed to fetch {lang} version list: {e}") from e

        resolved = newest_matching(candidates, spec)
        if resolved is None:
            raise VersionNotFoundError(f"No {lang} release matches {version}")
        logger.info("Resolved %s %s -> %s", lang, version, resolved)
        return resolved

    # ── Per-language release indexes ──────────────────────────

    def _python_candidates(self, spec: VersionSpec) -> list[str]:
        page = self._http.get_text(PYTHON_FTP_URL)
        return _PY_DIR_RE.findall(page)

    def _node_candidates(self, spec: VersionSpec) -> list[str]:
        data = self._http.get_json(NODE_INDEX_URL)
        return [
            str(item.get("version", "")).lstrip("v")
            for item in data
            if isinstance(item, dict)
        ]

    def _rust_candidates(self, spec: VersionSpec) -> list[str]:
        data = self._http.get_json(RUST_RELEASES_URL)
        return [
            str(item.get("tag_name", ""))
            for item in data
            if isinstance(item, dict) and not item.get("prerelease")
        ]

    def _java_candidates(self, spec: VersionSpec) -> list[str]:
        major = spec.prefix[0]
        data = self._http.get_json(ADOPTIUM_URL.format(major=major))
        found = []
        for item in data:
            version_data = item.get("version_data") if isinstance(item, dict) else None
            if not isinstance(version_data, dict):
                continue
            semver = str(version_data.get("semver", ""))
            # "21.0.5+11" → "21.0.5"
            found.append(semver.split("+", 1)[0])
        return found

    def _ruby_candidates(self, spec: VersionSpec) -> list[str]:
        page = self._http.get_text(RUBY_RELEASES_URL)
        return _RUBY_RE.findall(page)

    def _go_candidates(self, spec: VersionSpec) -> list[str]:
        data = self._http.get_json(GO_INDEX_URL)
        return [
            str(item.get("version", "")).removeprefix("go")
            for item in data
            if isinstance(item, dict) and item.get("stable", True)
        ]


# ── Module-level convenience ────────────────────────────────────


def resolve_version(language: str, version: str, http: HttpClient | None = None) -> str:
    """Generic dispatcher; see ``VersionResolver.resolve``."""
    return VersionResolver(http).resolve(language, version)


def resolve_python_version(version: str, http: HttpClient | None = None) -> str:
    return VersionResolver(http).resolve("python", version)


def resolve_node_version(version: str, http: HttpClient | None = None) -> str:
    return VersionResolver(http).resolve("node", version)


def resolve_rust_version(version: str, http: HttpClient | None = None) -> str:
    return VersionResolver(http).resolve("rust", version)


def resolve_java_version(version: str, http: HttpClient | None = None) -> str:
    return VersionResolver(http).resolve("java", version)


def resolve_ruby_version(version: str, http: HttpClient | None = None) -> str:
    return VersionResolver(http).resolve("ruby", version)


def resolve_go_version(version: str, http: HttpClient | None = None) -> str:
    return VersionResolver(http).resolve("go", version)
