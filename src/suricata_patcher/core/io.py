"""Shared I/O utilities for atomic file operations.

This module provides reusable utilities for:
- Atomic file writes (temp file + os.replace pattern)
- Staging a document next to its target for validation
- The one-time pristine backup of a configuration file

Every OS-level failure is re-raised as PatcherIOError so the mutation
pipeline can abort without touching the target file.
"""

import contextlib
import logging
import os
import shutil
from pathlib import Path

from suricata_patcher.core.exceptions import PatcherIOError

__all__ = [
    "atomic_write",
    "discard_file",
    "ensure_backup",
    "read_text",
    "stage_file",
    "backup_path_for",
]

logger = logging.getLogger(__name__)

# Suffix of the pristine copy created before the first ever mutation
DEFAULT_BACKUP_SUFFIX = ".bak"


def read_text(path: Path) -> str:
    """Read a UTF-8 text file without translating line terminators.

    Args:
        path: File to read.

    Returns:
        File content.

    Raises:
        PatcherIOError: If the file is missing or unreadable.

    """
    try:
        with open(path, encoding="utf-8", newline="") as f:
            return f.read()
    except FileNotFoundError as e:
        raise PatcherIOError(f"Configuration file not found: {path}") from e
    except IsADirectoryError as e:
        raise PatcherIOError(f"{path} is a directory, not a configuration file") from e
    except (OSError, UnicodeDecodeError) as e:
        raise PatcherIOError(f"Cannot read {path}: {e}") from e


def stage_file(path: Path, content: str) -> Path:
    """Write content to a temp file in the same directory as path.

    The staged file lives beside the target so relative ``include:`` paths
    resolve the same way and the final ``os.replace`` stays on one
    filesystem.

    Args:
        path: Target file the content is destined for.
        content: Content to stage.

    Returns:
        Path of the staged temp file.

    Raises:
        PatcherIOError: If the temp file cannot be written.

    """
    # Use PID to prevent temp file collisions in concurrent writes
    temp_path = path.parent / f".{path.name}.{os.getpid()}.tmp"
    try:
        with open(temp_path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError as e:
        with contextlib.suppress(OSError):
            if temp_path.exists():
                temp_path.unlink()
        raise PatcherIOError(f"Cannot stage {path} to {temp_path}: {e}") from e
    return temp_path


def discard_file(path: Path) -> None:
    """Remove a staged file, ignoring errors."""
    with contextlib.suppress(OSError):
        if path.exists():
            path.unlink()


def atomic_write(path: Path, content: str) -> None:
    """Write content to path atomically using temp file + os.replace.

    Args:
        path: Target file path.
        content: Content to write.

    Raises:
        PatcherIOError: If write or rename fails.

    """
    temp_path = stage_file(path, content)
    try:
        os.replace(temp_path, path)
    except OSError as e:
        discard_file(temp_path)
        raise PatcherIOError(f"Cannot replace {path}: {e}") from e


def backup_path_for(path: Path, suffix: str = DEFAULT_BACKUP_SUFFIX) -> Path:
    """Return the pristine backup path for a configuration file."""
    return path.with_name(path.name + suffix)


def ensure_backup(path: Path, suffix: str = DEFAULT_BACKUP_SUFFIX) -> Path | None:
    """Create the one-time pristine backup of path if it does not exist yet.

    The backup is never overwritten: it always holds the file as it was
    before the very first mutation pipeline ran against it.

    Args:
        path: Configuration file to back up.
        suffix: Suffix appended to the file name.

    Returns:
        Path of the newly created backup, or None if one already existed.

    Raises:
        PatcherIOError: If the copy fails.

    """
    backup = backup_path_for(path, suffix)
    if backup.exists():
        return None
    try:
        shutil.copy2(path, backup)
    except OSError as e:
        raise PatcherIOError(f"Cannot create backup {backup}: {e}") from e
    logger.info("Backed up %s to %s", path, backup)
    return backup
