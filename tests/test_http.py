"""
Tests for the HTTP adapter — auth scoping, error mapping, retries.
"""

import io
import urllib.error

import pytest

from dltrust.adapters.http import HttpClient
from dltrust.core.errors import HttpError, NotFoundError, RateLimitError
from dltrust.core.models.policy import RetryPolicy


class FakeOpener:
    """Replays responses; each is bytes or an exception to raise."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, req, timeout=None):
        self.requests.append(req)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, BaseException):
            raise response
        return io.BytesIO(response)


def _http_error(url, code, headers=None):
    return urllib.error.HTTPError(url, code, "error", headers or {}, None)


def _client(opener, **kw):
    kw.setdefault("retry_policy", RetryPolicy(max_attempts=3, initial_delay=0))
    return HttpClient(opener=opener, sleep=lambda s: None, **kw)


class TestAuthorization:
    def test_token_sent_to_github(self):
        opener = FakeOpener(b"{}")
        _client(opener, github_token="ghp_abc").get_json("https://api.github.com/repos/x/y/releases")
        req = opener.requests[0]
        assert req.get_header("Authorization") == "Bearer ghp_abc"
        assert req.get_header("Accept") == "application/vnd.github+json"

    def test_token_not_sent_elsewhere(self):
        opener = FakeOpener(b"[]")
        _client(opener, github_token="ghp_abc").get_json("https://nodejs.org/dist/index.json")
        assert opener.requests[0].get_header("Authorization") is None

    def test_no_token(self):
        opener = FakeOpener(b"ok")
        client = _client(opener)
        client.get_text("https://github.com/cli/cli/releases")
        assert not client.has_github_token
        assert opener.requests[0].get_header("Authorization") is None

    def test_user_agent(self):
        opener = FakeOpener(b"ok")
        _client(opener).get_bytes("https://go.dev/dl/")
        assert opener.requests[0].get_header("User-agent").startswith("dltrust/")


class TestErrorMapping:
    def test_404_not_found_not_retried(self):
        url = "https://www.python.org/ftp/python/3.12.7/x.sigstore"
        opener = FakeOpener(_http_error(url, 404))
        with pytest.raises(NotFoundError) as exc:
            _client(opener).get_bytes(url)
        assert exc.value.status == 404
        assert len(opener.requests) == 1

    def test_429_rate_limited(self):
        url = "https://api.github.com/repos/rust-lang/rust/releases"
        opener = FakeOpener(_http_error(url, 429))
        with pytest.raises(RateLimitError):
            _client(opener).get_bytes(url)
        assert len(opener.requests) == 3

    def test_403_with_exhausted_quota_is_rate_limit(self):
        url = "https://api.github.com/rate_limit"
        opener = FakeOpener(_http_error(url, 403, {"X-RateLimit-Remaining": "0"}))
        with pytest.raises(RateLimitError):
            _client(opener, retry_policy=RetryPolicy(max_attempts=1)).get_bytes(url)

    def test_plain_403(self):
        url = "https://example.org/private"
        opener = FakeOpener(_http_error(url, 403))
        with pytest.raises(HttpError) as exc:
            _client(opener, retry_policy=RetryPolicy(max_attempts=1)).get_bytes(url)
        assert not isinstance(exc.value, RateLimitError)

    def test_connection_errors_retried_then_succeed(self):
        opener = FakeOpener(urllib.error.URLError("reset"), TimeoutError(), b"fine")
        assert _client(opener).get_text("https://go.dev/dl/") == "fine"
        assert len(opener.requests) == 3

    def test_invalid_json(self):
        with pytest.raises(HttpError, match="Invalid JSON"):
            _client(FakeOpener(b"<html>")).get_json("https://nodejs.org/dist/index.json")


class TestDownload:
    def test_writes_destination(self, tmp_path):
        dest = tmp_path / "sub" / "file.asc"
        _client(FakeOpener(b"signature")).download("https://go.dev/dl/x.asc", dest)
        assert dest.read_bytes() == b"signature"
        assert not (tmp_path / "sub" / "file.asc.part").exists()

    def test_missing_leaves_nothing_behind(self, tmp_path):
        url = "https://go.dev/dl/x.asc"
        dest = tmp_path / "file.asc"
        with pytest.raises(NotFoundError):
            _client(FakeOpener(_http_error(url, 404))).download(url, dest)
        assert list(tmp_path.iterdir()) == []
