"""Configuration utilities for the recordsync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from recordsync.core.config import ServerConfig, SyncSettings

DEFAULT_SERVER_URL = "http://localhost:8000"


def get_config_dir() -> Path:
    """Get the configuration directory for recordsync.

    Returns:
        Path to ~/.recordsync or equivalent.
    """
    return Path.home() / ".recordsync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_cache_path() -> Path:
    """Get the path to the persisted cache database."""
    return get_config_dir() / "cache.db"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_server_config(config: dict[str, Any] | None = None) -> ServerConfig:
    """Build the server configuration from the config file."""
    config = load_config() if config is None else config
    return ServerConfig(
        server_url=config.get("server_url") or DEFAULT_SERVER_URL,
        token=config.get("token") or None,
        timeout=float(config.get("timeout", 30.0)),
    )


def get_sync_settings(config: dict[str, Any] | None = None) -> SyncSettings:
    """Build sync settings from the config file."""
    config = load_config() if config is None else config
    settings = SyncSettings()
    if "cache_ttl" in config:
        settings = SyncSettings(cache_ttl=float(config["cache_ttl"]))
    return settings
