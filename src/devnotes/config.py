"""Configuration loading and management for DevNotes."""

from __future__ import annotations

import logging
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path

logger = logging.getLogger(__name__)

PROVIDER_NAMES = ("remote", "local-model", "static")
API_STYLES = ("service", "ollama")


class ConfigError(ValueError):
    """Raised for configuration values that cannot be used."""


@dataclass
class RemoteConfig:
    url: str | None = None
    model: str = "qwen2.5-coder:latest"
    api_style: str = "service"  # "service" (/api/chat) or "ollama" (/api/generate)
    timeout: float = 10.0
    probe_timeout: float = 3.0


@dataclass
class GenerationConfig:
    max_tokens: int = 256
    temperature: float = 0.7
    top_p: float = 0.9


@dataclass
class LocalConfig:
    enabled: bool = True
    hf_repo: str = "Qwen/Qwen2.5-0.5B-Instruct-GGUF"
    hf_file: str = "qwen2.5-0.5b-instruct-q4_k_m.gguf"
    model_path: str = ""  # "" = download hf_file from hf_repo
    load_timeout: float = 120.0
    n_ctx: int = 2048
    n_threads: int = 0


@dataclass
class ResolverConfig:
    priority: list[str] = field(default_factory=lambda: list(PROVIDER_NAMES))
    timeout: float = 30.0
    probe_ttl: float = 30.0


@dataclass
class NewsConfig:
    api_key: str = ""
    base_url: str = "https://newsapi.org/v2"
    query: str = "devops"
    page_size: int = 10
    timeout: float = 10.0


@dataclass
class HistoryConfig:
    enabled: bool = True
    path: str = ""  # "" = ~/.local/share/devnotes/history.json
    max_entries: int = 100


@dataclass
class DevNotesConfig:
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    local: LocalConfig = field(default_factory=LocalConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    news: NewsConfig = field(default_factory=NewsConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)


def load_config(config_path: str | Path | None = None) -> DevNotesConfig:
    """Load configuration from TOML file, falling back to defaults.

    Search order:
    1. Bundled config.default.toml
    2. Explicit config_path argument, else ~/.config/devnotes/config.toml
    3. Environment variables (REMOTE_URL, MODEL_NAME, MAX_TOKENS,
       TEMPERATURE, NEWS_API_KEY)
    """
    config = DevNotesConfig()

    default_path = Path(__file__).parent / "config.default.toml"
    if default_path.exists():
        _merge_toml(config, default_path)

    if config_path:
        user_path = Path(config_path)
    else:
        user_path = Path.home() / ".config" / "devnotes" / "config.toml"

    if user_path.exists():
        _merge_toml(config, user_path)

    _apply_env(config, os.environ)
    validate_config(config)
    return config


def _merge_toml(config: DevNotesConfig, path: Path) -> None:
    """Merge a TOML file into the config, overwriting only specified fields."""
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

    for section in fields(config):
        values = data.get(section.name)
        if not isinstance(values, dict):
            continue
        target = getattr(config, section.name)
        for key, value in values.items():
            if hasattr(target, key):
                setattr(target, key, value)
            else:
                logger.debug("Ignoring unknown config key [%s] %s", section.name, key)


def _apply_env(config: DevNotesConfig, env: Mapping[str, str]) -> None:
    """Apply environment overrides on top of file configuration."""
    if env.get("REMOTE_URL"):
        config.remote.url = env["REMOTE_URL"]
    if env.get("MODEL_NAME"):
        config.remote.model = env["MODEL_NAME"]
    if env.get("MAX_TOKENS"):
        try:
            config.generation.max_tokens = int(env["MAX_TOKENS"])
        except ValueError as exc:
            raise ConfigError(f"MAX_TOKENS must be an integer, got {env['MAX_TOKENS']!r}") from exc
    if env.get("TEMPERATURE"):
        try:
            config.generation.temperature = float(env["TEMPERATURE"])
        except ValueError as exc:
            raise ConfigError(f"TEMPERATURE must be a number, got {env['TEMPERATURE']!r}") from exc
    if env.get("NEWS_API_KEY"):
        config.news.api_key = env["NEWS_API_KEY"]


def validate_config(config: DevNotesConfig) -> None:
    """Raise ConfigError for values the resolver and backends cannot use."""
    unknown = [name for name in config.resolver.priority if name not in PROVIDER_NAMES]
    if unknown:
        raise ConfigError(
            f"Unknown provider(s) in resolver.priority: {', '.join(unknown)} "
            f"(expected {', '.join(PROVIDER_NAMES)})"
        )
    if config.remote.api_style not in API_STYLES:
        raise ConfigError(
            f"remote.api_style must be one of {', '.join(API_STYLES)}, "
            f"got {config.remote.api_style!r}"
        )
    if config.generation.max_tokens <= 0:
        raise ConfigError("generation.max_tokens must be positive")
    if not 0.0 <= config.generation.temperature <= 2.0:
        raise ConfigError("generation.temperature must be between 0 and 2")
    if not 0.0 < config.generation.top_p <= 1.0:
        raise ConfigError("generation.top_p must be in (0, 1]")
    for name, value in (
        ("remote.timeout", config.remote.timeout),
        ("remote.probe_timeout", config.remote.probe_timeout),
        ("local.load_timeout", config.local.load_timeout),
        ("resolver.timeout", config.resolver.timeout),
        ("news.timeout", config.news.timeout),
    ):
        if value <= 0:
            raise ConfigError(f"{name} must be positive")
    if config.resolver.probe_ttl < 0:
        raise ConfigError("resolver.probe_ttl must not be negative")


def history_path(config: HistoryConfig) -> Path:
    """Resolve where answered questions are stored."""
    if config.path:
        return Path(config.path).expanduser()
    return Path.home() / ".local" / "share" / "devnotes" / "history.json"
