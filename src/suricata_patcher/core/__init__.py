"""Core module for suricata-patcher configuration and utilities.

This module provides:
- Configuration models and singleton access via get_config()
- Custom exception hierarchy with PatcherError as base
- Atomic file helpers (core.io)
"""

from suricata_patcher.core.exceptions import (
    ConfigError,
    EmptyRuleSetError,
    NoManagedKeyFoundError,
    PatcherError,
    PatcherIOError,
    ValidationFailureError,
    ValidatorUnavailableError,
)

__all__ = [
    "ConfigError",
    "EmptyRuleSetError",
    "NoManagedKeyFoundError",
    "PatcherError",
    "PatcherIOError",
    "ValidationFailureError",
    "ValidatorUnavailableError",
]
