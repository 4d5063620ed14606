"""
Version specifiers — the shape of a requested version.

A specifier is parsed once into one of four variants and downstream code
dispatches on the variant type instead of re-matching strings:

    Full(3, 12, 7)      "3.12.7"   resolved without network access
    MajorMinor(3, 12)   "3.12"     newest 3.12.x
    MajorOnly(3)        "3"        newest 3.x.y
    Invalid("3.x")      anything else
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

_FULL_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")
_MAJOR_MINOR_RE = re.compile(r"^(\d+)\.(\d+)$")
_MAJOR_ONLY_RE = re.compile(r"^(\d+)$")


@dataclass(frozen=True)
class Full:
    major: int
    minor: int
    patch: int

    @property
    def prefix(self) -> tuple[int, ...]:
        return (self.major, self.minor, self.patch)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass(frozen=True)
class MajorMinor:
    major: int
    minor: int

    @property
    def prefix(self) -> tuple[int, ...]:
        return (self.major, self.minor)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


@dataclass(frozen=True)
class MajorOnly:
    major: int

    @property
    def prefix(self) -> tuple[int, ...]:
        return (self.major,)

    def __str__(self) -> str:
        return str(self.major)


@dataclass(frozen=True)
class Invalid:
    raw: str

    def __str__(self) -> str:
        return self.raw


VersionSpec = Union[Full, MajorMinor, MajorOnly, Invalid]


def parse_version_spec(raw: str) -> VersionSpec:
    """Classify a version string.  Only digits and dots are accepted."""
    value = raw.strip() if raw else ""
    m = _FULL_RE.match(value)
    if m:
        return Full(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    m = _MAJOR_MINOR_RE.match(value)
    if m:
        return MajorMinor(int(m.group(1)), int(m.group(2)))
    m = _MAJOR_ONLY_RE.match(value)
    if m:
        return MajorOnly(int(m.group(1)))
    return Invalid(raw)


def parse_full_version(raw: str) -> Full | None:
    """Return the ``Full`` variant for ``X.Y.Z`` strings, else None."""
    spec = parse_version_spec(raw)
    return spec if isinstance(spec, Full) else None


def matches_prefix(candidate: Full, spec: VersionSpec) -> bool:
    """Whether a concrete version falls under a (possibly partial) specifier."""
    if isinstance(spec, Invalid):
        return False
    return candidate.prefix[: len(spec.prefix)] == spec.prefix


def newest_matching(candidates: list[str], spec: VersionSpec) -> str | None:
    """Pick the highest ``X.Y.Z`` candidate under ``spec``.

    Non-``X.Y.Z`` candidates (``1.21rc2``, ``v20.1.0``) are ignored, so
    callers strip vendor prefixes before passing them in.
    """
    best: Full | None = None
    for raw in candidates:
        parsed = parse_full_version(raw)
        if parsed is None or not matches_prefix(parsed, spec):
            continue
        if best is None or parsed.prefix > best.prefix:
            best = parsed
    return str(best) if best is not None else None
