"""
Tests for settings loading and environment merging.
"""

import json
import logging
from pathlib import Path

import pytest

from dltrust.core.config.loader import (
    CONFIG_FILE,
    Settings,
    find_config_file,
    load_checksum_db,
    load_settings,
)
from dltrust.core.errors import ConfigError
from dltrust.core.models.policy import RetryPolicy
from dltrust.ui.cli.env import (
    RuntimeConfig,
    is_truthy,
    policy_from_env,
    retry_policy_from_env,
)


# ── dltrust.yml ─────────────────────────────────────────────────


class TestLoadSettings:
    def test_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = load_settings()
        assert settings == Settings()
        assert settings.arch == "amd64"
        assert settings.require_verified is None

    def test_relative_paths_anchored_at_file(self, tmp_path):
        cfg = tmp_path / CONFIG_FILE
        cfg.write_text(
            "checksums_db: lib/checksums.json\n"
            "gpg_keyring_dir: /opt/keys\n"
            "arch: arm64\n"
            "require_verified: true\n"
            "retry:\n"
            "  max_attempts: 5\n"
        )
        settings = load_settings(cfg)
        assert settings.checksums_db == (tmp_path / "lib" / "checksums.json").resolve()
        assert settings.gpg_keyring_dir == Path("/opt/keys")
        assert settings.arch == "arm64"
        assert settings.require_verified is True
        assert settings.retry.max_attempts == 5
        assert settings.source == cfg

    def test_found_walking_up(self, tmp_path, monkeypatch):
        (tmp_path / CONFIG_FILE).write_text("arch: arm64\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == (tmp_path / CONFIG_FILE).resolve()
        monkeypatch.chdir(nested)
        assert load_settings().arch == "arm64"

    def test_empty_file_gives_defaults(self, tmp_path):
        cfg = tmp_path / CONFIG_FILE
        cfg.write_text("")
        assert load_settings(cfg).arch == "amd64"

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "nope.yml")

    @pytest.mark.parametrize("content", [
        "arch: [unclosed\n",
        "- just\n- a list\n",
        "unknown_key: 1\n",
        "arch: '  '\n",
        "retry:\n  max_attempts: 0\n",
    ])
    def test_invalid_files(self, tmp_path, content):
        cfg = tmp_path / CONFIG_FILE
        cfg.write_text(content)
        with pytest.raises(ConfigError):
            load_settings(cfg)


class TestLoadChecksumDb:
    def test_shipped_default(self):
        db = load_checksum_db()
        assert "tools" in db.model_dump()

    def test_custom_file(self, tmp_path):
        path = tmp_path / "db.json"
        path.write_text(json.dumps({"tools": {"gh": {"versions": {"2.60.1": {"sha256": "a" * 64}}}}}))
        assert load_checksum_db(path).lookup("tool", "gh", "2.60.1").digest == "a" * 64

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"tools": {"gh": {"versions": 3}}}'])
    def test_invalid(self, tmp_path, content):
        path = tmp_path / "db.json"
        path.write_text(content)
        with pytest.raises(ConfigError):
            load_checksum_db(path)

    def test_missing(self, tmp_path):
        with pytest.raises(ConfigError):
            load_checksum_db(tmp_path / "missing.json")


# ── Environment ─────────────────────────────────────────────────


class TestPolicyFromEnv:
    @pytest.mark.parametrize("value", ["true", "TRUE", "1", "yes", " Yes "])
    def test_truthy(self, value):
        assert is_truthy(value)

    @pytest.mark.parametrize("value", ["false", "0", "no", "on", ""])
    def test_not_truthy(self, value):
        assert not is_truthy(value)

    def test_default_allows_tofu(self):
        assert policy_from_env({}).allows_tofu

    def test_require_verified(self):
        assert policy_from_env({"REQUIRE_VERIFIED_DOWNLOADS": "true"}).require_verified

    def test_production_mode_fallback(self):
        assert policy_from_env({"PRODUCTION_MODE": "1"}).require_verified

    def test_explicit_setting_wins_over_production_mode(self):
        env = {"REQUIRE_VERIFIED_DOWNLOADS": "false", "PRODUCTION_MODE": "true"}
        assert policy_from_env(env).allows_tofu

    def test_empty_value_counts_as_unset(self):
        env = {"REQUIRE_VERIFIED_DOWNLOADS": "", "PRODUCTION_MODE": "yes"}
        assert policy_from_env(env).require_verified

    def test_settings_used_when_env_silent(self):
        assert policy_from_env({}, Settings(require_verified=True)).require_verified
        assert policy_from_env({"PRODUCTION_MODE": "no"}, Settings(require_verified=True)).allows_tofu


class TestRetryPolicyFromEnv:
    def test_defaults(self):
        assert retry_policy_from_env({}) == RetryPolicy()

    def test_env_values(self):
        env = {"RETRY_MAX_ATTEMPTS": "5", "RETRY_INITIAL_DELAY": "0.5", "RETRY_MAX_DELAY": "4"}
        assert retry_policy_from_env(env) == RetryPolicy(5, 0.5, 4.0)

    def test_env_beats_settings(self):
        settings = Settings.model_validate({"retry": {"max_attempts": 7, "max_delay": 9}})
        policy = retry_policy_from_env({"RETRY_MAX_ATTEMPTS": "2"}, settings)
        assert policy.max_attempts == 2
        assert policy.max_delay == 9
        assert policy.initial_delay == 2.0

    def test_invalid_values_ignored(self, caplog):
        with caplog.at_level(logging.WARNING):
            policy = retry_policy_from_env({"RETRY_MAX_ATTEMPTS": "lots", "RETRY_MAX_DELAY": "-1"})
        assert policy == RetryPolicy()
        assert "RETRY_MAX_ATTEMPTS" in caplog.text


class TestRuntimeConfig:
    def test_environment_overrides_settings(self, tmp_path):
        cfg = tmp_path / CONFIG_FILE
        cfg.write_text("gpg_keyring_dir: keys\naudit_log: audit.ndjson\n")
        env = {"GPG_KEYRING_DIR": "/srv/keys", "GITHUB_TOKEN": "ghp_x", "PRODUCTION_MODE": "true"}
        rc = RuntimeConfig.from_environment(cfg, env)
        assert rc.keyring_dir == Path("/srv/keys")
        assert rc.audit_log == (tmp_path / "audit.ndjson").resolve()
        assert rc.github_token == "ghp_x"
        assert rc.policy.require_verified
        assert rc.http_client().has_github_token

    def test_blank_token_is_none(self, tmp_path):
        cfg = tmp_path / CONFIG_FILE
        cfg.write_text("")
        rc = RuntimeConfig.from_environment(cfg, {"GITHUB_TOKEN": "  "})
        assert rc.github_token is None
        assert not rc.http_client().has_github_token

    def test_checksum_db_override(self, tmp_path):
        cfg = tmp_path / CONFIG_FILE
        cfg.write_text("")
        db_path = tmp_path / "db.json"
        db_path.write_text('{"languages": {}, "tools": {}}')
        rc = RuntimeConfig.from_environment(cfg, {"DLTRUST_CHECKSUMS_DB": str(tmp_path / "missing.json")})
        assert rc.checksum_db(db_path).tools == {}
        with pytest.raises(ConfigError):
            rc.checksum_db()

    def test_checksum_verifier_has_default_tool_fetchers(self, tmp_path):
        cfg = tmp_path / CONFIG_FILE
        cfg.write_text("")
        rc = RuntimeConfig.from_environment(cfg, {})
        verifier = rc.checksum_verifier(load_checksum_db())
        assert "gh" in verifier.tool_fetchers
        assert verifier.policy.allows_tofu
