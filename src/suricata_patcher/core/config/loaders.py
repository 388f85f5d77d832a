"""Configuration loading functions and singleton management."""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from suricata_patcher.core.config.constants import (
    CONFIG_PATH_ENV,
    GLOBAL_CONFIG_PATH,
    MAX_CONFIG_SIZE,
)
from suricata_patcher.core.config.models import PatcherConfig
from suricata_patcher.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

# Module-level singleton for configuration
_config: PatcherConfig | None = None


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file with safety checks.

    Args:
        path: Path to YAML file.

    Returns:
        Parsed YAML content as dictionary. An empty file yields an empty dict
        (every setting has a default).

    Raises:
        ConfigError: If file cannot be read, is too large, is a directory,
            or YAML is invalid.

    """
    try:
        # Read with size limit to avoid TOCTOU vulnerability
        with path.open("r", encoding="utf-8") as f:
            content = f.read(MAX_CONFIG_SIZE + 1)

        if len(content) > MAX_CONFIG_SIZE:
            raise ConfigError(
                f"Config file {path} exceeds 1MB limit "
                f"(read {len(content):,} bytes before stopping)."
            )

        parsed = yaml.safe_load(content)

        if parsed is None:
            return {}

        if not isinstance(parsed, dict):
            raise ConfigError(
                f"Config file {path} must contain a YAML mapping, got {type(parsed).__name__}."
            )

        return parsed
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except IsADirectoryError as e:
        raise ConfigError(f"{path} is a directory, not a config file.") from e
    except PermissionError as e:
        raise ConfigError(f"Permission denied reading {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e


def load_config(config_data: dict[str, Any]) -> PatcherConfig:
    """Load and validate configuration from a dictionary.

    Args:
        config_data: Configuration dictionary to validate.

    Returns:
        Validated PatcherConfig instance, also stored as the singleton.

    Raises:
        ConfigError: If config_data is not a dict or validation fails.

    """
    global _config
    if not isinstance(config_data, dict):
        raise ConfigError(f"config_data must be a dict, got {type(config_data).__name__}")
    try:
        _config = PatcherConfig.model_validate(config_data)
        return _config
    except ValidationError as e:
        _config = None
        raise ConfigError(f"Configuration validation failed: {e}") from e


def get_config() -> PatcherConfig:
    """Get the loaded configuration singleton.

    Falls back to built-in defaults when nothing was loaded, so library
    callers do not need a config file.

    Returns:
        The loaded PatcherConfig instance.

    """
    global _config
    if _config is None:
        _config = PatcherConfig()
    return _config


def _reset_config() -> None:
    """Reset config singleton for testing purposes only.

    This function should only be used in tests to ensure clean state
    between test cases.
    """
    global _config
    _config = None


def resolve_config_path(path: str | Path | None = None) -> tuple[Path, bool]:
    """Resolve which config file to load.

    Priority: explicit path, then $SURICATA_PATCHER_CONFIG, then
    ~/.suricata-patcher/config.yaml.

    Args:
        path: Explicit path from the command line, if any.

    Returns:
        Tuple of (path, explicit) where explicit is True when the path was
        requested by the user (a missing file is then an error).

    """
    if path is not None:
        return Path(path).expanduser(), True
    env_path = os.environ.get(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path).expanduser(), True
    return GLOBAL_CONFIG_PATH, False


def load_config_file(path: str | Path | None = None) -> PatcherConfig:
    """Load configuration from YAML file.

    A missing default config file is not an error: built-in defaults are
    used. A missing explicitly requested file is.

    Args:
        path: Optional explicit config path. Strings with ~ are expanded.

    Returns:
        Validated PatcherConfig instance.

    Raises:
        ConfigError: If the file is invalid, unreadable, or an explicitly
            requested file does not exist.

    """
    global _config

    config_path, explicit = resolve_config_path(path)

    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Config file not found at {config_path}.")
        logger.debug("No config file at %s, using defaults", config_path)
        return load_config({})

    if not config_path.is_file():
        raise ConfigError(f"Config path {config_path} exists but is not a file.")

    try:
        config_data = _load_yaml_file(config_path)
    except ConfigError:
        # Clear singleton on YAML parse error to prevent stale state
        _config = None
        raise

    logger.debug("Loaded config from %s", config_path)
    try:
        return load_config(config_data)
    except ConfigError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e
