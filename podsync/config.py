"""Configuration loading for podsync."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class HTTPConfig:
    timeout: float = 30.0
    follow_redirects: bool = True
    user_agent: str = "podsync/0.1.0"


@dataclass
class FeedConfig:
    """Configuration for the delta feed client."""

    cache_enabled: bool = True


@dataclass
class DiscoveryConfig:
    """Configuration for live discovery over local changes."""

    format_checking: bool = False  # Enforce JSON Schema "format" keywords


@dataclass
class LoggingConfig:
    level: str = "info"  # "warning", "info" or "debug"
    json: bool = False


@dataclass
class Config:
    http: HTTPConfig = field(default_factory=HTTPConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with PODSYNC_ prefix."""
    return os.environ.get(f"PODSYNC_{key}", default)


def _is_truthy(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    # HTTP overrides
    if timeout := _get_env("HTTP_TIMEOUT"):
        config.http.timeout = float(timeout)
    if follow := _get_env("HTTP_FOLLOW_REDIRECTS"):
        config.http.follow_redirects = _is_truthy(follow)
    if user_agent := _get_env("HTTP_USER_AGENT"):
        config.http.user_agent = user_agent

    # Feed overrides
    if cache_enabled := _get_env("FEED_CACHE_ENABLED"):
        config.feed.cache_enabled = _is_truthy(cache_enabled)

    # Discovery overrides
    if format_checking := _get_env("DISCOVERY_FORMAT_CHECKING"):
        config.discovery.format_checking = _is_truthy(format_checking)

    # Logging overrides
    if level := _get_env("LOG_LEVEL"):
        config.logging.level = level.lower()
    if json_output := _get_env("LOG_JSON"):
        config.logging.json = _is_truthy(json_output)

    return config


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded Config object.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            # Parse HTTP config
            if "http" in data:
                http_data = data["http"]
                config.http = HTTPConfig(
                    timeout=float(http_data.get("timeout", config.http.timeout)),
                    follow_redirects=http_data.get(
                        "follow_redirects", config.http.follow_redirects
                    ),
                    user_agent=http_data.get("user_agent", config.http.user_agent),
                )

            # Parse feed config
            if "feed" in data:
                feed_data = data["feed"]
                config.feed = FeedConfig(
                    cache_enabled=feed_data.get(
                        "cache_enabled", config.feed.cache_enabled
                    ),
                )

            # Parse discovery config
            if "discovery" in data:
                disc_data = data["discovery"]
                config.discovery = DiscoveryConfig(
                    format_checking=disc_data.get(
                        "format_checking", config.discovery.format_checking
                    ),
                )

            # Parse logging config
            if "logging" in data:
                log_data = data["logging"]
                config.logging = LoggingConfig(
                    level=log_data.get("level", config.logging.level),
                    json=log_data.get("json", config.logging.json),
                )

    # Apply environment variable overrides
    config = _apply_env_overrides(config)

    return config
