"""Duplicate key elimination inside tracked sections.

Earlier edits (or hand edits) can leave two ``enabled:`` lines in one output
block; Suricata rejects or misreads such blocks. The eliminator keeps the
first occurrence of each tracked key per section instance and drops the
rest.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from suricata_patcher.yaml_patch.document import DocumentModel
from suricata_patcher.yaml_patch.sections import (
    SectionTracker,
    indent_width,
    is_block_opener,
    key_pattern,
    split_value,
)

logger = logging.getLogger(__name__)

__all__ = [
    "DedupResult",
    "DuplicateKeyConflict",
    "DuplicateKeyEliminator",
]


@dataclass(frozen=True)
class DuplicateKeyConflict:
    """A dropped duplicate key line.

    Attributes:
        tag: Section tag the duplicate was found in.
        key: Duplicated key.
        kept_index: 0-based index (in the input) of the retained line.
        dropped_index: 0-based index (in the input) of the dropped line.
        kept_value: Value of the retained line.
        dropped_value: Value of the dropped line.

    """

    tag: str
    key: str
    kept_index: int
    dropped_index: int
    kept_value: str
    dropped_value: str


@dataclass(frozen=True)
class DedupResult:
    """Outcome of one elimination pass."""

    conflicts: tuple[DuplicateKeyConflict, ...] = field(default_factory=tuple)

    @property
    def dropped(self) -> int:
        """Number of dropped lines."""
        return len(self.conflicts)

    @property
    def changed(self) -> bool:
        """Return True if any line was dropped."""
        return bool(self.conflicts)


class DuplicateKeyEliminator:
    """Keep-first duplicate key removal scoped to section instances.

    Args:
        tags: Section tags to scan.
        keys: Keys that may appear only once per section instance.

    Examples:
        >>> doc = DocumentModel.from_text(
        ...     "outputs:\\n  - fast:\\n      enabled: no\\n      enabled: yes\\n"
        ... )
        >>> DuplicateKeyEliminator(("fast",), ("enabled",)).eliminate(doc).dropped
        1
        >>> doc.lines[-1]
        '      enabled: no'

    """

    def __init__(self, tags: Iterable[str], keys: Iterable[str]) -> None:
        self.tracker = SectionTracker(tags)
        self.keys: tuple[str, ...] = tuple(keys)
        self._patterns = [(key, key_pattern(key)) for key in self.keys]

    def eliminate(self, document: DocumentModel) -> DedupResult:
        """Drop repeated tracked keys, mutating the document in place.

        Args:
            document: Document to rewrite.

        Returns:
            DedupResult listing every dropped line.

        """
        kept: list[str] = []
        conflicts: list[DuplicateKeyConflict] = []
        # (parent index, key) -> (index, value) of the first occurrence in
        # the open section instance
        seen: dict[tuple[int, str], tuple[int, str]] = {}
        # open block-opener lines as (indent, index); bottom is the section opener
        parents: list[tuple[int, int]] = []

        for step in self.tracker.scan(document.lines):
            if step.opened:
                seen = {}
                parents = [(indent_width(step.line), step.index)]
            elif not step.state.inside:
                seen = {}
                parents = []
            elif step.line.strip() and not step.line.lstrip().startswith("#"):
                width = indent_width(step.line)
                while len(parents) > 1 and parents[-1][0] >= width:
                    parents.pop()
                parent = parents[-1][1]
                duplicate = self._check_line(step.line, step.index, step.state.tag, parent, seen)
                if duplicate is not None:
                    conflicts.append(duplicate)
                    continue
                if is_block_opener(step.line):
                    parents.append((width, step.index))
            kept.append(step.line)

        if conflicts:
            document.replace_lines(kept)
            for conflict in conflicts:
                logger.info(
                    "Removed duplicate '%s:' in '%s' section at line %d (kept '%s' from line %d)",
                    conflict.key,
                    conflict.tag,
                    conflict.dropped_index + 1,
                    conflict.kept_value,
                    conflict.kept_index + 1,
                )
        return DedupResult(conflicts=tuple(conflicts))

    def _check_line(
        self,
        line: str,
        index: int,
        tag: str | None,
        parent: int,
        seen: dict[tuple[int, str], tuple[int, str]],
    ) -> DuplicateKeyConflict | None:
        for key, pattern in self._patterns:
            match = pattern.match(line)
            if not match:
                continue
            value, _ = split_value(match.group("rest"))
            if (parent, key) not in seen:
                seen[(parent, key)] = (index, value)
                return None
            kept_index, kept_value = seen[(parent, key)]
            return DuplicateKeyConflict(
                tag=tag or "",
                key=key,
                kept_index=kept_index,
                dropped_index=index,
                kept_value=kept_value,
                dropped_value=value,
            )
        return None
