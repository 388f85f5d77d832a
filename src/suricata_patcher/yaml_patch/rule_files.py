"""Managed ``rule-files:`` list synchronization.

The managed list is regenerated from the rule files present in a directory:
every existing list entry under the managed key is dropped and one
``  - <name>`` line per file is inserted after the first occurrence of the
key. The key may legitimately appear more than once (a placeholder near the
top and a populated block later); all occurrences are emptied and the
entries are merged into the first.

Running ``sync`` twice against an unchanged directory yields the same
document.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from suricata_patcher.core.exceptions import EmptyRuleSetError, NoManagedKeyFoundError
from suricata_patcher.yaml_patch.document import DocumentModel
from suricata_patcher.yaml_patch.sections import top_level_blocks

logger = logging.getLogger(__name__)

__all__ = [
    "RuleFileListSynchronizer",
    "SyncResult",
    "collect_rule_files",
    "disable_rule_entry",
    "list_rule_entries",
]

_LIST_ITEM_RE = re.compile(r"^[ \t]*-")
_ENTRY_RE = re.compile(r"^[ \t]*-[ \t]*(?P<name>[^#]*?)[ \t]*(?:#.*)?$")
_DISABLED_ENTRY_RE = re.compile(r"^[ \t]*#[ \t]*-[ \t]*(?P<name>[^#]*?)[ \t]*(?:#.*)?$")


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a managed list synchronization.

    Attributes:
        entries: Rule file basenames written, in order.
        removed: Number of previous list entries dropped.
        uncommented: True if a commented-out key was re-enabled.
        appended: True if the key was missing and appended at the end.

    """

    entries: tuple[str, ...] = field(default_factory=tuple)
    removed: int = 0
    uncommented: bool = False
    appended: bool = False

    @property
    def written(self) -> int:
        """Number of entries written."""
        return len(self.entries)


def collect_rule_files(directory: Path, suffix: str = ".rules") -> list[str]:
    """List rule file basenames directly inside directory, sorted.

    Args:
        directory: Rules directory (not searched recursively).
        suffix: Required file name suffix.

    Returns:
        Sorted basenames.

    Raises:
        EmptyRuleSetError: If the directory is missing or holds no rule file.

    """
    if not directory.is_dir():
        raise EmptyRuleSetError(
            str(directory), suffix, reason=f"Rules directory not found: {directory}"
        )
    names = sorted(
        entry.name for entry in directory.iterdir() if entry.is_file() and entry.name.endswith(suffix)
    )
    if not names:
        raise EmptyRuleSetError(str(directory), suffix)
    return names


def _strip_quotes(name: str) -> str:
    return name.strip().strip("'\"")


def list_rule_entries(document: DocumentModel, key: str = "rule-files") -> list[tuple[str, str]]:
    """Return ``(state, name)`` for every entry of the managed key blocks.

    Commented-out entries (``# - name``) are reported as ``"disabled"``.
    """
    entries: list[tuple[str, str]] = []
    for start, end in top_level_blocks(document.lines, key):
        for line in document.lines[start + 1 : end]:
            match = _ENTRY_RE.match(line)
            if match and _strip_quotes(match.group("name")):
                entries.append(("enabled", _strip_quotes(match.group("name"))))
                continue
            match = _DISABLED_ENTRY_RE.match(line)
            if match and _strip_quotes(match.group("name")).endswith(".rules"):
                entries.append(("disabled", _strip_quotes(match.group("name"))))
    return entries


def disable_rule_entry(document: DocumentModel, name: str) -> int:
    """Comment out every enabled ``- name`` list entry in the document.

    Already commented entries are left alone, so the edit is idempotent.

    Returns:
        Number of entries commented out.

    """
    changed = 0
    for index, line in enumerate(document.lines):
        match = _ENTRY_RE.match(line)
        if match and _strip_quotes(match.group("name")) == name:
            indent = line[: len(line) - len(line.lstrip(" \t"))]
            if document.set_line(index, f"{indent}# - {name}"):
                changed += 1
    if changed:
        logger.info("Disabled rule entry %s", name)
    return changed


class RuleFileListSynchronizer:
    """Regenerate the managed list block from a rules directory.

    Args:
        managed_key: Top-level key holding the list.
        suffix: Rule file suffix.
        entry_indent: Spaces before each entry's ``-``.

    """

    def __init__(
        self,
        managed_key: str = "rule-files",
        suffix: str = ".rules",
        entry_indent: int = 2,
    ) -> None:
        self.managed_key = managed_key
        self.suffix = suffix
        self.entry_indent = entry_indent
        escaped = re.escape(managed_key)
        self._commented_key_re = re.compile(rf"^[ \t]*#[ \t]*{escaped}:")

    def sync(self, directory: Path, document: DocumentModel) -> SyncResult:
        """Rewrite the managed list of document from directory contents.

        Args:
            directory: Rules directory.
            document: Document edited in place.

        Returns:
            SyncResult with the entries written.

        Raises:
            EmptyRuleSetError: If the directory holds no rule file. The
                document is not modified in that case.

        """
        names = collect_rule_files(directory, self.suffix)
        return self.apply(names, document)

    def apply(self, names: Sequence[str], document: DocumentModel) -> SyncResult:
        """Rewrite the managed list with already collected names.

        New entries reuse the indentation of the first existing entry, so a
        list written at column 0 stays at column 0.
        """
        uncommented = self._uncomment_key(document)
        indent = self._entry_indent_of(document)
        removed = self._remove_entries(document)
        entry_lines = [f"{indent}- {name}" for name in names]

        appended = False
        try:
            self._insert_after_first_key(document, entry_lines)
        except NoManagedKeyFoundError:
            logger.warning(
                "No '%s:' key in document; appending it with %d entries at the end",
                self.managed_key,
                len(entry_lines),
            )
            document.replace_lines([*document.lines, f"{self.managed_key}:", *entry_lines])
            appended = True

        result = SyncResult(
            entries=tuple(names),
            removed=removed,
            uncommented=uncommented,
            appended=appended,
        )
        logger.info(
            "Updated %s list with %d rule file(s)", self.managed_key, result.written
        )
        return result

    def clear(self, document: DocumentModel) -> SyncResult:
        """Empty every managed key block, leaving the keys in place.

        Comments and blank lines inside the blocks are kept. A document
        without the key is left unchanged.
        """
        removed = self._remove_entries(document)
        if removed:
            logger.info("Cleared %d entries from %s", removed, self.managed_key)
        else:
            logger.info("No %s entries to clear", self.managed_key)
        return SyncResult(entries=(), removed=removed)

    def _entry_indent_of(self, document: DocumentModel) -> str:
        for start, end in top_level_blocks(document.lines, self.managed_key):
            for line in document.lines[start + 1 : end]:
                if _LIST_ITEM_RE.match(line):
                    return line[: len(line) - len(line.lstrip(" \t"))]
        return " " * self.entry_indent

    def _uncomment_key(self, document: DocumentModel) -> bool:
        if top_level_blocks(document.lines, self.managed_key):
            return False
        for index, line in enumerate(document.lines):
            if self._commented_key_re.match(line):
                tail = line.split(":", 1)[1]
                document.set_line(index, f"{self.managed_key}:{tail}".rstrip())
                logger.info("Uncommented '%s:' at line %d", self.managed_key, index + 1)
                return True
        return False

    def _remove_entries(self, document: DocumentModel) -> int:
        drop: set[int] = set()
        for start, end in top_level_blocks(document.lines, self.managed_key):
            drop.update(
                index
                for index in range(start + 1, end)
                if _LIST_ITEM_RE.match(document.lines[index])
            )
        if drop:
            document.replace_lines(
                line for index, line in enumerate(document.lines) if index not in drop
            )
        return len(drop)

    def _insert_after_first_key(self, document: DocumentModel, entry_lines: list[str]) -> None:
        blocks = top_level_blocks(document.lines, self.managed_key)
        if not blocks:
            raise NoManagedKeyFoundError(self.managed_key)
        position = blocks[0][0] + 1
        document.replace_lines(
            [*document.lines[:position], *entry_lines, *document.lines[position:]]
        )
