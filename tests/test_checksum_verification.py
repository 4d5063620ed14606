"""
Tests for the checksum tier engine — ordering, short-circuiting, policy.
"""

from pathlib import Path

import pytest

from dltrust.core.errors import HttpError, KeyringError, SignerIdentityError
from dltrust.core.models.policy import VerificationPolicy
from dltrust.core.models.verdict import TrustTier, Verdict
from dltrust.core.services.checksum_verification import ChecksumVerifier, verify_download
from dltrust.core.services.tool_fetchers import ToolFetcherRegistry


class StubSignatures:
    def __init__(self, outcome=False):
        self.outcome = outcome
        self.calls = []

    def verify_signature(self, language, version, file_path):
        self.calls.append((language, version, Path(file_path)))
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


class StubPublished:
    def __init__(self, digest=None, error=None):
        self.digest = digest
        self.error = error
        self.calls = []

    def for_language(self, name, version, file_path=None, arch="amd64"):
        self.calls.append((name, version, arch))
        if self.error is not None:
            raise self.error
        return self.digest


class CountingFetcher:
    def __init__(self, digest=None):
        self.digest = digest
        self.calls = 0

    def __call__(self, version, arch, filename=None):
        self.calls += 1
        return self.digest


def _flip(digest: str) -> str:
    """Same digest with one hex character changed."""
    return ("0" if digest[0] != "0" else "1") + digest[1:]


@pytest.fixture
def build():
    def _build(db, *, policy=None, signatures=None, published=None, fetchers=None):
        return ChecksumVerifier(
            db,
            policy=policy or VerificationPolicy(),
            signatures=signatures or StubSignatures(False),
            published=published or StubPublished(None),
            tool_fetchers=ToolFetcherRegistry(fetchers or {}),
        )
    return _build


# ── Tier 1 ──────────────────────────────────────────────────────


class TestSignatureTier:
    def test_signature_success_short_circuits(self, build, make_db, artifact):
        published = StubPublished("f" * 64)
        v = build(make_db(), signatures=StubSignatures(True), published=published)
        result = v.verify_download("language", "python", "3.12.7", artifact)
        assert result.verdict is Verdict.VERIFIED
        assert result.tier is TrustTier.SIGNATURE
        assert published.calls == []

    def test_signature_not_attempted_for_tools(self, build, make_db, artifact):
        sigs = StubSignatures(True)
        v = build(make_db(), signatures=sigs)
        result = v.verify_download("tool", "gh", "2.60.1", artifact)
        assert sigs.calls == []
        assert result.verdict is Verdict.UNVERIFIED

    @pytest.mark.parametrize("error", [
        SignerIdentityError("no signer for 3.99"),
        KeyringError("no keyring"),
        HttpError("https://www.python.org", "down"),
    ])
    def test_signature_errors_fall_through(self, build, make_db, artifact, artifact_sha256, error):
        db = make_db(languages={"python": {"versions": {"3.12.7": {"sha256": artifact_sha256}}}})
        v = build(db, signatures=StubSignatures(error))
        result = v.verify_download("language", "python", "3.12.7", artifact)
        assert result.verdict is Verdict.VERIFIED
        assert result.tier is TrustTier.PINNED
        assert any(str(error) in note for note in result.notes)


# ── Tier 2 ──────────────────────────────────────────────────────


class TestPinnedTier:
    def test_python_scenario_match(self, build, make_db, artifact, artifact_sha256):
        db = make_db(languages={"python": {"versions": {"3.12.7": {"sha256": artifact_sha256}}}})
        result = build(db).verify_download("language", "python", "3.12.7", artifact)
        assert result.exit_code == 0
        assert result.digest == artifact_sha256

    def test_python_scenario_one_char_changed(self, build, make_db, artifact, artifact_sha256):
        db = make_db(languages={"python": {"versions": {"3.12.7": {"sha256": _flip(artifact_sha256)}}}})
        result = build(db).verify_download("language", "python", "3.12.7", artifact)
        assert result.exit_code == 1
        assert result.tier is TrustTier.PINNED
        assert result.expected == _flip(artifact_sha256)
        assert result.digest == artifact_sha256

    def test_match_skips_tiers_3_and_4(self, build, make_db, artifact, artifact_sha256):
        fetcher = CountingFetcher("a" * 64)
        db = make_db(tools={"gh": {"versions": {"2.60.1": {"sha256": artifact_sha256}}}})
        v = build(db, fetchers={"gh": fetcher})
        result = v.verify_download("tool", "gh", "2.60.1", artifact)
        assert result.verdict is Verdict.VERIFIED
        assert fetcher.calls == 0

    def test_mismatch_terminal_even_if_published_matches(
        self, build, make_db, artifact, artifact_sha256,
    ):
        published = StubPublished(artifact_sha256)
        db = make_db(languages={"python": {"versions": {"3.12.7": {"sha256": _flip(artifact_sha256)}}}})
        result = build(db, published=published).verify_download(
            "language", "python", "3.12.7", artifact,
        )
        assert result.verdict is Verdict.FAILED
        assert published.calls == []

    def test_mismatch_terminal_regardless_of_policy(self, build, make_db, artifact, artifact_sha256):
        db = make_db(tools={"gh": {"versions": {"2.60.1": {"sha256": _flip(artifact_sha256)}}}})
        result = build(db, policy=VerificationPolicy(require_verified=False)).verify_download(
            "tool", "gh", "2.60.1", artifact,
        )
        assert result.exit_code == 1

    def test_sha512_pinned(self, build, make_db, artifact, artifact_sha512):
        db = make_db(tools={"git-cliff": {"versions": {"2.7.0": {"sha512": artifact_sha512}}}})
        result = build(db).verify_download("tool", "git-cliff", "2.7.0", artifact)
        assert result.verdict is Verdict.VERIFIED
        assert result.algorithm == "sha512"

    def test_uppercase_hex_matches(self, build, make_db, artifact, artifact_sha256):
        db = make_db(tools={"gh": {"versions": {"2.60.1": {"sha256": artifact_sha256.upper()}}}})
        assert build(db).verify_download("tool", "gh", "2.60.1", artifact).exit_code == 0

    def test_placeholder_treated_as_absent(self, build, make_db, artifact):
        db = make_db(tools={"gh": {"versions": {"2.60.1": {"sha256": "placeholder-update-me"}}}})
        result = build(db).verify_download("tool", "gh", "2.60.1", artifact)
        assert result.verdict is Verdict.UNVERIFIED

    def test_malformed_pinned_value_fails(self, build, make_db, artifact):
        db = make_db(tools={"gh": {"versions": {"2.60.1": {"sha256": "abc123"}}}})
        result = build(db).verify_download("tool", "gh", "2.60.1", artifact)
        assert result.verdict is Verdict.FAILED
        assert "Invalid pinned checksum" in result.message

    def test_alias_lookup(self, build, make_db, artifact, artifact_sha256):
        db = make_db(languages={"node": {"versions": {"20.18.0": {"sha256": artifact_sha256}}}})
        result = build(db).verify_download("language", "nodejs", "20.18.0", artifact)
        assert result.verdict is Verdict.VERIFIED


# ── Tier 3 ──────────────────────────────────────────────────────


class TestPublishedTier:
    def test_language_published_match(self, build, make_db, artifact, artifact_sha256):
        published = StubPublished(artifact_sha256)
        result = build(make_db(), published=published).verify_download(
            "language", "go", "1.23.2", artifact, arch="arm64",
        )
        assert result.verdict is Verdict.VERIFIED
        assert result.tier is TrustTier.PUBLISHED
        assert published.calls == [("go", "1.23.2", "arm64")]

    def test_language_published_mismatch_terminal(self, build, make_db, artifact, artifact_sha256):
        published = StubPublished(_flip(artifact_sha256))
        result = build(make_db(), published=published).verify_download(
            "language", "go", "1.23.2", artifact,
        )
        assert result.verdict is Verdict.FAILED
        assert result.tier is TrustTier.PUBLISHED

    def test_language_published_unavailable_falls_to_tofu(self, build, make_db, artifact):
        published = StubPublished(error=HttpError("https://go.dev", "timeout"))
        result = build(make_db(), published=published).verify_download(
            "language", "go", "1.23.2", artifact,
        )
        assert result.verdict is Verdict.UNVERIFIED
        assert any("timeout" in n for n in result.notes)

    def test_tool_fetcher_match(self, build, make_db, artifact, artifact_sha256):
        v = build(make_db(), fetchers={"gh": CountingFetcher(artifact_sha256)})
        result = v.verify_download("tool", "gh", "2.60.1", artifact)
        assert result.verdict is Verdict.VERIFIED
        assert result.tier is TrustTier.PUBLISHED

    def test_tool_fetcher_mismatch_terminal(self, build, make_db, artifact, artifact_sha256):
        v = build(make_db(), fetchers={"gh": CountingFetcher(_flip(artifact_sha256))})
        assert v.verify_download("tool", "gh", "2.60.1", artifact).exit_code == 1

    def test_tool_fetcher_no_checksum_falls_through(self, build, make_db, artifact):
        v = build(make_db(), fetchers={"gh": CountingFetcher(None)})
        result = v.verify_download("tool", "gh", "2.60.1", artifact)
        assert result.verdict is Verdict.UNVERIFIED
        assert "published: no checksum" in result.notes

    def test_tool_fetcher_crash_falls_through(self, build, make_db, artifact):
        def broken(version, arch, filename):
            raise ValueError("unexpected release JSON shape")

        result = build(make_db(), fetchers={"mytool": broken}).verify_download(
            "tool", "mytool", "1.0.0", artifact,
        )
        assert result.verdict is Verdict.UNVERIFIED
        assert result.tier is TrustTier.CALCULATED
        assert "published: unexpected release JSON shape" in result.notes

    def test_language_published_crash_falls_to_tofu(self, build, make_db, artifact):
        published = StubPublished(error=TypeError("string indices must be integers"))
        result = build(make_db(), published=published).verify_download(
            "language", "go", "1.23.2", artifact,
        )
        assert result.verdict is Verdict.UNVERIFIED
        assert any("string indices" in n for n in result.notes)


# ── Tier 4 ──────────────────────────────────────────────────────


class TestTofuTier:
    def test_unpinned_tool_without_fetcher_is_tofu(self, build, make_db, artifact, artifact_sha256):
        result = build(make_db()).verify_download("tool", "lazygit", "0.44.1", artifact)
        assert result.exit_code == 2
        assert result.tier is TrustTier.CALCULATED
        assert result.digest == artifact_sha256
        assert result.ok

    def test_policy_blocks_tofu(self, build, make_db, artifact):
        v = build(make_db(), policy=VerificationPolicy(require_verified=True))
        result = v.verify_download("tool", "lazygit", "0.44.1", artifact)
        assert result.exit_code == 1
        assert result.policy_blocked
        assert not result.ok

    def test_tofu_logs_security_warning(self, build, make_db, artifact, artifact_sha256, caplog):
        with caplog.at_level("WARNING"):
            build(make_db()).verify_download("tool", "lazygit", "0.44.1", artifact)
        assert "Trust-On-First-Use" in caplog.text
        assert artifact_sha256 in caplog.text


# ── General ─────────────────────────────────────────────────────


class TestVerifyDownloadGeneral:
    def test_idempotent(self, build, make_db, artifact):
        v = build(make_db())
        first = v.verify_download("tool", "lazygit", "0.44.1", artifact)
        second = v.verify_download("tool", "lazygit", "0.44.1", artifact)
        assert first.verdict == second.verdict
        assert first.digest == second.digest

    def test_missing_file_fails(self, build, make_db, tmp_path):
        result = build(make_db()).verify_download("tool", "gh", "2.60.1", tmp_path / "nope")
        assert result.verdict is Verdict.FAILED

    def test_unknown_category(self, build, make_db, artifact):
        with pytest.raises(ValueError):
            build(make_db()).verify_download("plugin", "x", "1.0.0", artifact)

    def test_to_dict(self, build, make_db, artifact):
        data = build(make_db()).verify_download("tool", "lazygit", "0.44.1", artifact).to_dict()
        assert data["verdict"] == "unverified"
        assert data["exit_code"] == 2
        assert data["tier"] == "calculated"

    def test_module_level_verify_download(self, make_db, artifact, artifact_sha256):
        db = make_db(tools={"gh": {"versions": {"2.60.1": {"sha256": artifact_sha256}}}})
        assert verify_download("tool", "gh", "2.60.1", artifact, db=db) == 0
