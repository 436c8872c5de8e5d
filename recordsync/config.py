"""Configuration loading for recordsync."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

CACHE_POLICIES = ("cache-first", "network-only")


@dataclass
class RemoteConfig:
    """Settings handed opaquely to the remote adapter."""

    url: str = "http://localhost:4000/api/v2"
    timeout: float = 30.0
    max_retries: int = 3
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class StoreConfig:
    cache_policy: str = "cache-first"  # "cache-first" or "network-only"


@dataclass
class LoggingConfig:
    level: str | None = None  # "warning", "info", "debug"
    json: bool = False


def _build_mode() -> str:
    """Build mode from the environment ("production", "development", ...)."""
    return _get_env("ENV") or os.environ.get("ENV") or "development"


def _default_debug() -> bool:
    return _build_mode() != "production"


@dataclass
class Config:
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    debug: bool = field(default_factory=_default_debug)
    entities: dict[str, Any] = field(default_factory=dict)
    """Declarative entity schemas, see recordsync.schema.load_schemas"""


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with RECORDSYNC_ prefix."""
    return os.environ.get(f"RECORDSYNC_{key}", default)


def _is_true(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    # Remote overrides
    if url := _get_env("REMOTE_URL"):
        config.remote.url = url
    if timeout := _get_env("REMOTE_TIMEOUT"):
        config.remote.timeout = float(timeout)
    if retries := _get_env("REMOTE_MAX_RETRIES"):
        config.remote.max_retries = int(retries)

    # Store overrides
    if policy := _get_env("CACHE_POLICY"):
        config.store.cache_policy = policy

    # Debug flag wins over the build mode
    if debug := _get_env("DEBUG"):
        config.debug = _is_true(debug)

    # Logging overrides
    if level := _get_env("LOG_LEVEL"):
        config.logging.level = level
    if json_logs := _get_env("LOG_JSON"):
        config.logging.json = _is_true(json_logs)

    return config


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded and validated Config object.

    Raises:
        ValueError: If the cache policy is not recognized.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            # Parse remote config
            if "remote" in data:
                remote_data = data["remote"] or {}
                config.remote = RemoteConfig(
                    url=remote_data.get("url", config.remote.url),
                    timeout=remote_data.get("timeout", config.remote.timeout),
                    max_retries=remote_data.get(
                        "max_retries", config.remote.max_retries
                    ),
                    headers=remote_data.get("headers") or {},
                )

            # Parse store config
            if "store" in data:
                store_data = data["store"] or {}
                config.store = StoreConfig(
                    cache_policy=store_data.get(
                        "cache_policy", config.store.cache_policy
                    ),
                )

            # Parse logging config
            if "logging" in data:
                logging_data = data["logging"] or {}
                config.logging = LoggingConfig(
                    level=logging_data.get("level"),
                    json=logging_data.get("json", False),
                )

            if "debug" in data:
                config.debug = bool(data["debug"])

            if "entities" in data:
                config.entities = data["entities"] or {}

    # Apply environment variable overrides
    config = _apply_env_overrides(config)

    if config.store.cache_policy not in CACHE_POLICIES:
        raise ValueError(
            f"Unknown cache policy '{config.store.cache_policy}', "
            f"expected one of {', '.join(CACHE_POLICIES)}"
        )

    return config
