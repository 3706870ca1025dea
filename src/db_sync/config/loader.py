"""Configuration loading for db-sync."""

import tomllib
from pathlib import Path

from pydantic import ValidationError

from db_sync.config.models import SyncConfig
from db_sync.errors import ConfigError

DEFAULT_CONFIG_NAME = "db-sync.toml"


def load_sync_config(config_path: Path | None = None) -> SyncConfig:
    """Load sync configuration from a TOML file.

    Args:
        config_path: Path to db-sync.toml.  When omitted,
            ``Path.cwd() / "db-sync.toml"`` is used if it exists and the
            defaults otherwise.

    Returns:
        SyncConfig built from the ``[sync]`` table

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
        ConfigError: If the file is not valid TOML or has invalid settings
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_NAME
        if not config_path.exists():
            return SyncConfig()

    if not config_path.exists():
        raise FileNotFoundError(f"Sync config not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(
            f"Invalid TOML in {config_path.name}: {e}", context={"path": str(config_path)}
        ) from e

    section = data.get("sync", {})
    if not isinstance(section, dict):
        raise ConfigError(
            f"Invalid [sync] settings in {config_path.name}: expected a table, "
            f"got {type(section).__name__}",
            context={"path": str(config_path)},
        )

    try:
        return SyncConfig(**section)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid [sync] settings in {config_path.name}: {e}",
            context={"path": str(config_path)},
        ) from e
