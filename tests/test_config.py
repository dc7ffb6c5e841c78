"""Tests for configuration loading, env overrides and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from devnotes.config import (
    ConfigError,
    DevNotesConfig,
    HistoryConfig,
    _apply_env,
    history_path,
    load_config,
    validate_config,
)

_ENV_VARS = ("REMOTE_URL", "MODEL_NAME", "MAX_TOKENS", "TEMPERATURE", "NEWS_API_KEY")


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep the developer's env vars and ~/.config out of these tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(Path, "home", lambda: tmp_path)


# ─── Defaults and TOML ──────────────────────────────────────────────────────


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()
        assert config.remote.url is None
        assert config.remote.api_style == "service"
        assert config.generation.max_tokens == 256
        assert config.resolver.priority == ["remote", "local-model", "static"]
        assert config.resolver.probe_ttl == 30.0
        assert config.local.enabled is True
        assert config.news.api_key == ""

    def test_user_file_overrides(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[remote]\nurl = "http://localhost:3001"\n'
            '[resolver]\npriority = ["local-model", "static"]\ntimeout = 5\n'
        )
        config = load_config(path)
        assert config.remote.url == "http://localhost:3001"
        assert config.remote.model == "qwen2.5-coder:latest"
        assert config.resolver.priority == ["local-model", "static"]
        assert config.resolver.timeout == 5

    def test_home_config_picked_up(self, tmp_path):
        config_dir = tmp_path / ".config" / "devnotes"
        config_dir.mkdir(parents=True)
        (config_dir / "config.toml").write_text("[generation]\nmax_tokens = 64\n")
        assert load_config().generation.max_tokens == 64

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[remote]\nflavour = 'mint'\n[extra]\nx = 1\n")
        config = load_config(path)
        assert not hasattr(config.remote, "flavour")

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[remote\nurl=")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(path)

    def test_missing_explicit_file_uses_defaults(self, tmp_path):
        config = load_config(tmp_path / "nope.toml")
        assert config.remote.url is None


# ─── Environment ────────────────────────────────────────────────────────────


class TestEnvOverrides:
    def test_env_wins_over_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.toml"
        path.write_text('[remote]\nurl = "http://file:3001"\nmodel = "from-file"\n')
        monkeypatch.setenv("REMOTE_URL", "http://env:3001")
        monkeypatch.setenv("MODEL_NAME", "qwen2.5-coder:7b")
        monkeypatch.setenv("MAX_TOKENS", "512")
        monkeypatch.setenv("TEMPERATURE", "0.2")
        monkeypatch.setenv("NEWS_API_KEY", "secret")

        config = load_config(path)

        assert config.remote.url == "http://env:3001"
        assert config.remote.model == "qwen2.5-coder:7b"
        assert config.generation.max_tokens == 512
        assert config.generation.temperature == 0.2
        assert config.news.api_key == "secret"

    def test_empty_env_ignored(self):
        config = DevNotesConfig()
        _apply_env(config, {"REMOTE_URL": "", "MAX_TOKENS": ""})
        assert config.remote.url is None
        assert config.generation.max_tokens == 256

    def test_bad_int(self):
        with pytest.raises(ConfigError, match="MAX_TOKENS"):
            _apply_env(DevNotesConfig(), {"MAX_TOKENS": "lots"})

    def test_bad_float(self):
        with pytest.raises(ConfigError, match="TEMPERATURE"):
            _apply_env(DevNotesConfig(), {"TEMPERATURE": "warm"})


# ─── Validation ─────────────────────────────────────────────────────────────


class TestValidate:
    def test_defaults_valid(self):
        validate_config(DevNotesConfig())

    def test_unknown_provider(self):
        config = DevNotesConfig()
        config.resolver.priority = ["remote", "openai"]
        with pytest.raises(ConfigError, match="openai"):
            validate_config(config)

    def test_bad_api_style(self):
        config = DevNotesConfig()
        config.remote.api_style = "grpc"
        with pytest.raises(ConfigError, match="api_style"):
            validate_config(config)

    @pytest.mark.parametrize(
        "section, key, value",
        [
            ("generation", "max_tokens", 0),
            ("generation", "temperature", 2.5),
            ("generation", "top_p", 0.0),
            ("remote", "timeout", 0),
            ("resolver", "timeout", -1),
            ("resolver", "probe_ttl", -1),
            ("local", "load_timeout", 0),
        ],
    )
    def test_out_of_range(self, section, key, value):
        config = DevNotesConfig()
        setattr(getattr(config, section), key, value)
        with pytest.raises(ConfigError):
            validate_config(config)

    def test_zero_ttl_allowed(self):
        config = DevNotesConfig()
        config.resolver.probe_ttl = 0
        validate_config(config)

    def test_env_validated_on_load(self, monkeypatch):
        monkeypatch.setenv("TEMPERATURE", "5")
        with pytest.raises(ConfigError, match="temperature"):
            load_config()


class TestHistoryPath:
    def test_default_under_home(self, tmp_path):
        assert history_path(HistoryConfig()) == tmp_path / ".local" / "share" / "devnotes" / "history.json"

    def test_explicit(self, tmp_path):
        assert history_path(HistoryConfig(path=str(tmp_path / "h.json"))) == tmp_path / "h.json"
