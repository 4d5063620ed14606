"""
HTTP adapter — every outbound request goes through ``HttpClient``.

Requests are retried through ``retry_call``.  A GitHub token, when
configured, is sent only to GitHub hosts and never logged.
"""

from __future__ import annotations

import json
import logging
import shutil
import time
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any, Callable
from urllib.parse import urlsplit

from dltrust import __version__
from dltrust.core.errors import HttpError, NotFoundError, RateLimitError
from dltrust.core.models.policy import RetryPolicy
from dltrust.core.reliability.retry import retry_call

logger = logging.getLogger(__name__)

_GITHUB_HOSTS = ("api.github.com", "github.com", "objects.githubusercontent.com")
_USER_AGENT = f"dltrust/{__version__}"


def _is_github(url: str) -> bool:
    host = (urlsplit(url).hostname or "").lower()
    return host in _GITHUB_HOSTS


def _is_rate_limited(exc: urllib.error.HTTPError) -> bool:
    if exc.code == 429:
        return True
    if exc.code == 403:
        remaining = exc.headers.get("X-RateLimit-Remaining") if exc.headers else None
        return remaining == "0"
    return False


class HttpClient:
    """Small retrying HTTP client on top of ``urllib.request``.

    Args:
        retry_policy: Backoff parameters for every request.
        github_token: Bearer token added to GitHub requests when set.
        timeout: Per-request timeout in seconds.
        sleep: Sleep function used between retries.
        opener: Replacement for ``urllib.request.urlopen`` (tests).
    """

    def __init__(
        self,
        retry_policy: RetryPolicy | None = None,
        github_token: str | None = None,
        timeout: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
        opener: Callable[..., Any] | None = None,
    ):
        self._policy = retry_policy or RetryPolicy()
        self._token = github_token or None
        self._timeout = timeout
        self._sleep = sleep
        self._opener = opener or urllib.request.urlopen

    @property
    def has_github_token(self) -> bool:
        return self._token is not None

    def _request(self, url: str, accept: str | None) -> urllib.request.Request:
        headers = {"User-Agent": _USER_AGENT}
        if accept:
            headers["Accept"] = accept
        if self._token and _is_github(url):
            headers["Authorization"] = f"Bearer {self._token}"
        return urllib.request.Request(url, headers=headers)

    def _fetch_once(self, url: str, accept: str | None) -> bytes:
        req = self._request(url, accept)
        try:
            with self._opener(req, timeout=self._timeout) as resp:
                return resp.read()
        except urllib.error.HTTPError as e:
            if e.code in (404, 410):
                raise NotFoundError(url, f"Not found: {url}", status=e.code) from e
            if _is_rate_limited(e):
                raise RateLimitError(
                    url, f"Rate limited by {urlsplit(url).hostname} (HTTP {e.code})",
                    status=e.code,
                ) from e
            raise HttpError(url, f"HTTP {e.code} for {url}", status=e.code) from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise HttpError(url, f"Request to {url} failed: {e}") from e

    def get_bytes(self, url: str, accept: str | None = None) -> bytes:
        """GET a URL, retrying availability failures."""
        logger.debug("GET %s", url)
        return retry_call(
            lambda: self._fetch_once(url, accept),
            policy=self._policy,
            sleep=self._sleep,
            description=f"GET {url}",
        )

    def get_text(self, url: str, accept: str | None = None) -> str:
        return self.get_bytes(url, accept).decode("utf-8", errors="replace")

    def get_json(self, url: str) -> Any:
        accept = "application/vnd.github+json" if _is_github(url) else "application/json"
        raw = self.get_text(url, accept)
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise HttpError(url, f"Invalid JSON from {url}: {e}") from e

    def download(self, url: str, dest: Path) -> Path:
        """Download ``url`` to ``dest`` (written via a ``.part`` file)."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = dest.with_name(dest.name + ".part")

        def _once() -> None:
            req = self._request(url, None)
            try:
                with self._opener(req, timeout=self._timeout) as resp, tmp.open("wb") as f:
                    shutil.copyfileobj(resp, f)
            except urllib.error.HTTPError as e:
                tmp.unlink(missing_ok=True)
                if e.code in (404, 410):
                    raise NotFoundError(url, f"Not found: {url}", status=e.code) from e
                raise HttpError(url, f"HTTP {e.code} for {url}", status=e.code) from e
            except (urllib.error.URLError, TimeoutError, OSError) as e:
                tmp.unlink(missing_ok=True)
                raise HttpError(url, f"Download of {url} failed: {e}") from e

        retry_call(_once, policy=self._policy, sleep=self._sleep, description=f"download {url}")
        tmp.replace(dest)
        return dest
