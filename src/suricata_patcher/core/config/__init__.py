"""Pydantic configuration models and singleton access for suricata-patcher.

Usage:
    from suricata_patcher.core.config import get_config, load_config_file

    load_config_file()  # ~/.suricata-patcher/config.yaml, defaults if absent
    config = get_config()
    print(config.rules.directory)  # "/etc/suricata/rules"
"""

from suricata_patcher.core.config.constants import (
    CONFIG_PATH_ENV,
    DEFAULT_RULES_DIR,
    DEFAULT_SURICATA_YAML,
    GLOBAL_CONFIG_PATH,
    MAX_CONFIG_SIZE,
)
from suricata_patcher.core.config.loaders import (
    _load_yaml_file,
    _reset_config,
    get_config,
    load_config,
    load_config_file,
    resolve_config_path,
)
from suricata_patcher.core.config.models import (
    NetworkConfig,
    OutputsConfig,
    PatcherConfig,
    RepairConfig,
    RulesConfig,
    ValidatorConfig,
)

# Re-export ConfigError for convenience (it's from exceptions, not config)
from suricata_patcher.core.exceptions import ConfigError

__all__ = [
    # Constants
    "CONFIG_PATH_ENV",
    "DEFAULT_RULES_DIR",
    "DEFAULT_SURICATA_YAML",
    "GLOBAL_CONFIG_PATH",
    "MAX_CONFIG_SIZE",
    # Internal utilities (exported for tests)
    "_load_yaml_file",
    "_reset_config",
    # Exceptions (re-exported for convenience)
    "ConfigError",
    # Loading
    "get_config",
    "load_config",
    "load_config_file",
    "resolve_config_path",
    # Models
    "NetworkConfig",
    "OutputsConfig",
    "PatcherConfig",
    "RepairConfig",
    "RulesConfig",
    "ValidatorConfig",
]
