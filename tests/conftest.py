"""
Shared test fixtures and fakes.

No test touches the network or runs real cosign/gpg: HTTP goes through
``FakeHttp`` and external commands through ``FakeRunner``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

import pytest

from dltrust.adapters.shell.command import CommandResult
from dltrust.core.errors import HttpError, NotFoundError
from dltrust.core.models.checksums import ChecksumDatabase


class FakeHttp:
    """Stands in for ``HttpClient``.

    ``routes`` maps URL → response.  A response may be text, bytes, a
    JSON-able object, or an exception instance to raise.  Unknown URLs
    raise ``NotFoundError``.
    """

    def __init__(self, routes: dict[str, Any] | None = None, github_token: str | None = None):
        self.routes = dict(routes or {})
        self.calls: list[str] = []
        self.has_github_token = github_token is not None

    def _lookup(self, url: str) -> Any:
        self.calls.append(url)
        if url not in self.routes:
            raise NotFoundError(url, f"Not found: {url}", status=404)
        value = self.routes[url]
        if isinstance(value, BaseException):
            raise value
        return value

    def get_bytes(self, url: str, accept: str | None = None) -> bytes:
        value = self._lookup(url)
        return value if isinstance(value, bytes) else str(value).encode()

    def get_text(self, url: str, accept: str | None = None) -> str:
        value = self._lookup(url)
        return value.decode() if isinstance(value, bytes) else str(value)

    def get_json(self, url: str) -> Any:
        value = self._lookup(url)
        return json.loads(value) if isinstance(value, (str, bytes)) else value

    def download(self, url: str, dest: Path) -> Path:
        value = self._lookup(url)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(value if isinstance(value, bytes) else str(value).encode())
        return dest


class ExplodingHttp(FakeHttp):
    """Every request fails; proves a code path stays offline."""

    def _lookup(self, url: str) -> Any:
        self.calls.append(url)
        raise HttpError(url, "network disabled in this test")


class FakeRunner:
    """Records commands and replays queued results (``run_command`` signature)."""

    def __init__(self, *results: CommandResult, default: CommandResult | None = None):
        self.results = list(results)
        self.default = default or CommandResult(returncode=0)
        self.calls: list[list[str]] = []
        self.kwargs: list[dict[str, Any]] = []

    def __call__(self, cmd, **kwargs) -> CommandResult:
        self.calls.append(list(cmd))
        self.kwargs.append(kwargs)
        if self.results:
            return self.results.pop(0)
        return self.default


@pytest.fixture
def fake_http():
    return FakeHttp


@pytest.fixture
def exploding_http() -> ExplodingHttp:
    return ExplodingHttp()


@pytest.fixture
def fake_runner():
    return FakeRunner


@pytest.fixture
def artifact(tmp_path: Path) -> Path:
    """A small downloaded file."""
    path = tmp_path / "Python-3.12.7.tgz"
    path.write_bytes(b"pretend this is a python source tarball\n" * 64)
    return path


@pytest.fixture
def artifact_sha256(artifact: Path) -> str:
    return hashlib.sha256(artifact.read_bytes()).hexdigest()


@pytest.fixture
def artifact_sha512(artifact: Path) -> str:
    return hashlib.sha512(artifact.read_bytes()).hexdigest()


@pytest.fixture
def make_db():
    """Build a ``ChecksumDatabase`` from plain dicts."""

    def _make(languages: dict | None = None, tools: dict | None = None) -> ChecksumDatabase:
        return ChecksumDatabase.model_validate({
            "languages": languages or {},
            "tools": tools or {},
        })

    return _make


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove every environment variable dltrust reads."""
    for name in (
        "REQUIRE_VERIFIED_DOWNLOADS",
        "PRODUCTION_MODE",
        "GPG_KEYRING_DIR",
        "GITHUB_TOKEN",
        "RETRY_MAX_ATTEMPTS",
        "RETRY_INITIAL_DELAY",
        "RETRY_MAX_DELAY",
        "DLTRUST_CHECKSUMS_DB",
        "DLTRUST_AUDIT_LOG",
        "DLTRUST_LOG_LEVEL",
        "DLTRUST_LOG_FILE",
        "DLTRUST_LOG_FILE_LEVEL",
        "DLTRUST_LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo root-logger changes made by ``setup_logging`` (CLI runs call it)."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    raise_exceptions = logging.raiseExceptions
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.raiseExceptions = raise_exceptions
