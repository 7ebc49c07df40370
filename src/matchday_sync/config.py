# SPDX-License-Identifier: MIT
"""Configuration management for matchday-sync."""

import copy
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from .constants import (
    AFTER_DAY_CUTOFF_HOUR,
    BOOTSTRAP_MEMO_TTL,
    CONFLICT_POLICY_REJECT,
    DEFAULT_SEASON,
    DEFAULT_STORE_TIMEOUT,
    DEFAULT_SYNC_ATTEMPTS,
    DEFAULT_UPSTREAM_BASE_URL,
    DEFAULT_UPSTREAM_INITIAL_DELAY,
    DEFAULT_UPSTREAM_JITTER,
    DEFAULT_UPSTREAM_MAX_DELAY,
    DEFAULT_UPSTREAM_MAX_PAGES,
    DEFAULT_UPSTREAM_MAX_RETRIES,
    DEFAULT_UPSTREAM_TIMEOUT,
    PROJECTION_CACHE_TTL,
    SELECTION_LOCK_OFFSET_MINUTES,
)


ENV_PREFIX = "MATCHDAY_SYNC_"


class UpstreamConfig(BaseModel):
    """Configuration for the upstream HTTP source."""

    base_url: str = Field(
        DEFAULT_UPSTREAM_BASE_URL, description="Base URL of the upstream API"
    )
    timeout: float = Field(
        DEFAULT_UPSTREAM_TIMEOUT, gt=0, description="Per-request timeout in seconds"
    )
    max_retries: int = Field(
        DEFAULT_UPSTREAM_MAX_RETRIES, ge=0, le=10, description="Retries per request"
    )
    initial_delay: float = Field(
        DEFAULT_UPSTREAM_INITIAL_DELAY, ge=0, description="First backoff delay"
    )
    max_delay: float = Field(
        DEFAULT_UPSTREAM_MAX_DELAY, ge=0, description="Upper bound for backoff delay"
    )
    jitter: float = Field(
        DEFAULT_UPSTREAM_JITTER, ge=0, description="Maximum random jitter added"
    )
    max_pages: int = Field(
        DEFAULT_UPSTREAM_MAX_PAGES, ge=1, description="Cap for paginated fetches"
    )
    bootstrap_ttl_seconds: int = Field(
        BOOTSTRAP_MEMO_TTL, ge=1, description="TTL of the memoised bootstrap payload"
    )


class StoreConfig(BaseModel):
    """Configuration for the canonical record store."""

    db_path: str = Field(
        ".matchday-sync/store.db", description="Path to the store database"
    )
    timeout: float = Field(
        DEFAULT_STORE_TIMEOUT, gt=0, description="Connection timeout in seconds"
    )


class CacheConfig(BaseModel):
    """Configuration for the projection cache."""

    db_path: str = Field(
        ".matchday-sync/cache.db", description="Path to the cache database"
    )
    ttl_seconds: int = Field(
        PROJECTION_CACHE_TTL, ge=1, description="TTL of cached projections"
    )
    timeout: float = Field(
        DEFAULT_STORE_TIMEOUT, gt=0, description="Connection timeout in seconds"
    )


class SyncConfig(BaseModel):
    """Configuration for sync coordination."""

    season: str = Field(DEFAULT_SEASON, description="Season used as reference unit key")
    conflict_policy: Literal["reject", "wait"] = Field(
        CONFLICT_POLICY_REJECT,
        description="What a second sync of the same unit does: reject or wait",
    )
    max_attempts: int = Field(
        DEFAULT_SYNC_ATTEMPTS, ge=1, le=10, description="Caller-side sync attempts"
    )


class TemporalConfig(BaseModel):
    """Configuration for temporal windows."""

    after_day_cutoff_hour: int = Field(
        AFTER_DAY_CUTOFF_HOUR, ge=0, le=23, description="Hour that ends a match day"
    )
    lock_offset_minutes: int = Field(
        SELECTION_LOCK_OFFSET_MINUTES,
        ge=0,
        description="Minutes after the deadline before selection locks",
    )


class AppConfig(BaseModel):
    """Main application configuration."""

    upstream: UpstreamConfig = UpstreamConfig()
    store: StoreConfig = StoreConfig()
    cache: CacheConfig = CacheConfig()
    sync: SyncConfig = SyncConfig()
    temporal: TemporalConfig = TemporalConfig()


class ConfigManager:
    """Manages application configuration from files and environment."""

    def __init__(self, config_path: Path | None = None):
        self.config_path = config_path or self._find_config_file()
        self._config: AppConfig | None = None

    def _find_config_file(self) -> Path | None:
        """Find configuration file in standard locations."""
        search_paths = [
            Path.cwd() / ".matchday-sync" / "config.yaml",
            Path.cwd() / "config" / "config.yaml",
            Path.cwd() / "config.yaml",
            Path.home() / ".config" / "matchday-sync" / "config.yaml",
            Path("/etc/matchday-sync/config.yaml"),
        ]

        for path in search_paths:
            if path.exists():
                return path

        return None

    def load_config(self) -> AppConfig:
        """Load configuration from file or create default."""
        if self._config is not None:
            return self._config

        default_config = self.get_default_config()

        if self.config_path and self.config_path.exists():
            with open(self.config_path, encoding="utf-8") as f:
                file_config = yaml.safe_load(f) or {}
            config_data = self._deep_merge_configs(default_config, file_config)
        else:
            config_data = default_config

        config_data = self._apply_env_overrides(config_data)

        self._config = AppConfig(**config_data)
        return self._config

    def _deep_merge_configs(
        self, default_config: dict[str, Any], override_config: dict[str, Any]
    ) -> dict[str, Any]:
        """Deep merge override config into default config.

        Sections are merged key by key so a file may override a single
        setting (e.g. ``cache: {ttl_seconds: 60}``) and keep every other
        default of that section.

        Args:
            default_config: Base configuration with all defaults
            override_config: User-provided overrides

        Returns:
            Merged configuration
        """
        result = copy.deepcopy(default_config)

        for key, value in override_config.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key].update(value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config_data: dict[str, Any]) -> dict[str, Any]:
        """Apply environment variable overrides to config."""
        # Example: MATCHDAY_SYNC_CACHE_TTL_SECONDS=600
        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue
            config_key = key[len(ENV_PREFIX) :].lower()
            section, _, setting = config_key.partition("_")
            if not setting or section not in config_data:
                continue
            if not isinstance(config_data[section], dict):
                continue
            if setting not in config_data[section]:
                continue
            config_data[section][setting] = value

        return config_data

    def get_complete_config_dict(self) -> dict[str, Any]:
        """Get the complete configuration as a dictionary for display."""
        config = self.load_config()
        return config.model_dump()

    def show_config(self) -> str:
        """Show the complete configuration in YAML format.

        Returns:
            YAML formatted configuration string
        """
        config_dict = self.get_complete_config_dict()
        return yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    def get_default_config(self) -> dict[str, Any]:
        """Get default configuration as a plain dictionary."""
        return AppConfig().model_dump()

    def create_default_config(self, output_path: Path) -> None:
        """Write the default configuration to a YAML file."""
        default_config = self.get_default_config()

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)


# Global config manager instance with factory pattern
_config_manager_instance: ConfigManager | None = None


def get_config_manager(config_path: Path | None = None) -> ConfigManager:
    """Get or create the global config manager instance.

    Args:
        config_path: Optional path to config file (only used on first call)

    Returns:
        The global ConfigManager instance
    """
    global _config_manager_instance
    if _config_manager_instance is None:
        _config_manager_instance = ConfigManager(config_path)
    return _config_manager_instance


def set_config_manager(manager: ConfigManager) -> None:
    """Set the config manager instance (primarily for testing).

    Args:
        manager: ConfigManager instance to use globally
    """
    global _config_manager_instance
    _config_manager_instance = manager


def reset_config_manager() -> None:
    """Reset the config manager instance (primarily for testing)."""
    global _config_manager_instance
    _config_manager_instance = None
