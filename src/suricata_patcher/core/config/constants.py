"""Shared constants for configuration modules.

This module provides constants used across config submodules to avoid
duplication and circular import issues.
"""

from pathlib import Path

# Constants for global configuration
GLOBAL_CONFIG_PATH: Path = Path.home() / ".suricata-patcher" / "config.yaml"
CONFIG_PATH_ENV: str = "SURICATA_PATCHER_CONFIG"
MAX_CONFIG_SIZE: int = 1_048_576  # 1MB - protection against YAML bombs

# Suricata defaults
DEFAULT_SURICATA_YAML: str = "/etc/suricata/suricata.yaml"
DEFAULT_RULES_DIR: str = "/etc/suricata/rules"
DEFAULT_LOG_DIR: str = "/var/log/suricata"
