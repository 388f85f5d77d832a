"""Section tracking for line-oriented edits of suricata.yaml.

A *section* is a named list-item block such as ``  - fast:`` or
``  - eve-log:`` under ``outputs:``, or ``  - interface: eth0`` under
``af-packet:``. Without a YAML parser the tracker infers section boundaries
from line shapes:

1. ``- <tag>:`` for a tracked tag opens a new section instance.
2. A line starting at column 0 with a letter (a top-level key) closes it.
3. A sibling list item ``- <name>:`` whose name is not tracked closes it.
4. Anything else leaves the state unchanged.

Lines that fit none of the shapes the heuristic expects are recorded as
StructuralAmbiguity and logged; classification continues best-effort.

Sections are never cached: every pass rescans the current lines.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

__all__ = [
    "OUTSIDE",
    "KeyOccurrence",
    "ScanStep",
    "Section",
    "SectionTracker",
    "StructuralAmbiguity",
    "TrackerState",
    "direct_children",
    "indent_width",
    "is_block_opener",
    "key_pattern",
    "split_value",
    "top_level_blocks",
]

_TOP_LEVEL_RE = re.compile(r"^[A-Za-z]")
_SIBLING_ITEM_RE = re.compile(r"^[ \t]*-[ \t]+(?P<tag>[A-Za-z-]+):")
_COMMENT_RE = re.compile(r"^[ \t]*#")
_INLINE_COMMENT_RE = re.compile(r"[ \t]+#.*$")
# column-0 "- item" lines are list entries of the block, "---" is not
_BLOCK_END_RE = re.compile(r"^(?!-(?:[ \t]|$))[^ \t#]")
# "name:" with nothing but an optional comment after the colon
_BLOCK_OPENER_RE = re.compile(r"^[ \t]*(?:-[ \t]+)?[^\s#:][^:]*:[ \t]*(?:#.*)?$")


def indent_width(line: str) -> int:
    """Return the number of leading blank characters of a line."""
    return len(line) - len(line.lstrip(" \t"))


def is_block_opener(line: str) -> bool:
    """Return True for a key line with no inline value (it opens a nested block)."""
    return bool(_BLOCK_OPENER_RE.match(line))


def key_pattern(key: str) -> re.Pattern[str]:
    """Compile the pattern of a ``key:`` line, optionally as a list item.

    Groups: ``indent``, ``marker`` (``- `` or None), ``key``, ``rest``.

    Examples:
        >>> m = key_pattern("interface").match("  - interface: eth0")
        >>> m.group("marker"), m.group("rest")
        ('- ', ' eth0')

    """
    return re.compile(
        rf"^(?P<indent>[ \t]*)(?P<marker>-[ \t]+)?(?P<key>{re.escape(key)}):(?P<rest>.*)$"
    )


def split_value(rest: str) -> tuple[str, str]:
    """Split the text after ``key:`` into (value, trailing comment).

    Examples:
        >>> split_value(" yes  # keep")
        ('yes', '  # keep')
        >>> split_value("")
        ('', '')

    """
    match = _INLINE_COMMENT_RE.search(rest)
    if match:
        return rest[: match.start()].strip(), rest[match.start() :]
    return rest.strip(), ""


def top_level_blocks(lines: Sequence[str], key: str) -> list[tuple[int, int]]:
    """Find every block introduced by an uncommented top-level ``key:`` line.

    A block runs from the key line up to (excluding) the next line whose
    first character is neither blank nor ``#``. Blank lines, comments,
    indented lines and list items written at column 0 (``- a.rules``)
    belong to the block.

    Returns:
        List of half-open ``(start, end)`` ranges, in document order.

    """
    header = re.compile(rf"^{re.escape(key)}:")
    blocks: list[tuple[int, int]] = []
    index = 0
    while index < len(lines):
        if header.match(lines[index]):
            end = index + 1
            while end < len(lines) and not _BLOCK_END_RE.match(lines[end]):
                end += 1
            blocks.append((index, end))
            index = end
        else:
            index += 1
    return blocks


@dataclass(frozen=True)
class TrackerState:
    """Tracker state: ``Outside`` (tag is None) or ``InSection(tag)``."""

    tag: str | None = None

    @property
    def inside(self) -> bool:
        """Return True when a section is open."""
        return self.tag is not None

    def __repr__(self) -> str:
        return "Outside" if self.tag is None else f"InSection({self.tag!r})"


OUTSIDE = TrackerState()


@dataclass(frozen=True)
class Section:
    """A section instance as a half-open line range ``[start, end)``.

    ``start`` is the opener line itself.
    """

    tag: str
    start: int
    end: int

    def __contains__(self, index: object) -> bool:
        return isinstance(index, int) and self.start <= index < self.end


def direct_children(lines: Sequence[str], section: Section) -> list[int]:
    """Return the opener index plus indices of the section's direct body lines.

    Lines nested under a block opener inside the section (e.g. the
    ``enabled:`` under ``xff:`` in an ``eve-log`` block) are excluded, as are
    blank and comment lines.
    """
    result = [section.start]
    nested: list[int] = []
    for index in range(section.start + 1, section.end):
        line = lines[index]
        if not line.strip() or _COMMENT_RE.match(line):
            continue
        width = indent_width(line)
        while nested and nested[-1] >= width:
            nested.pop()
        if not nested:
            result.append(index)
        if is_block_opener(line):
            nested.append(width)
    return result


@dataclass(frozen=True)
class KeyOccurrence:
    """One ``key: value`` line found inside a section during a scan."""

    tag: str | None
    key: str
    index: int
    value: str


@dataclass(frozen=True)
class StructuralAmbiguity:
    """A line the section heuristic could not classify with confidence."""

    index: int
    line: str
    reason: str

    @property
    def line_number(self) -> int:
        """1-based line number."""
        return self.index + 1


@dataclass(frozen=True)
class ScanStep:
    """State of the tracker after consuming one line."""

    index: int
    line: str
    state: TrackerState
    opened: bool


class SectionTracker:
    """State machine classifying lines as inside/outside tracked sections.

    Args:
        tags: Section tags to track (e.g. ``("fast", "eve-log")``).

    Attributes:
        state: Current TrackerState.
        opened: True if the last consumed line opened a section instance.
        ambiguities: Lines recorded as ambiguous since the last reset.

    """

    def __init__(self, tags: Iterable[str]) -> None:
        self.tags: tuple[str, ...] = tuple(tags)
        if not self.tags:
            raise ValueError("SectionTracker needs at least one tag")
        self._openers = [
            (tag, re.compile(rf"^[ \t]*-[ \t]*{re.escape(tag)}:")) for tag in self.tags
        ]
        self.ambiguities: list[StructuralAmbiguity] = []
        self.reset()

    def reset(self) -> None:
        """Return to the Outside state and forget recorded ambiguities."""
        self.state = OUTSIDE
        self.opened = False
        self._opener_indent = 0
        self.ambiguities = []

    def _match_opener(self, line: str) -> str | None:
        for tag, pattern in self._openers:
            if pattern.match(line):
                return tag
        return None

    def advance(self, line: str, index: int = -1) -> TrackerState:
        """Consume one line and return the new state.

        Args:
            line: Line text, without terminator.
            index: 0-based line index, used only for ambiguity reports.

        Returns:
            The state after this line.

        """
        self.opened = False

        tag = self._match_opener(line)
        if tag is not None:
            self.state = TrackerState(tag)
            self.opened = True
            self._opener_indent = indent_width(line)
            return self.state

        if not self.state.inside:
            return self.state

        if _TOP_LEVEL_RE.match(line):
            self.state = OUTSIDE
            return self.state

        sibling = _SIBLING_ITEM_RE.match(line)
        if sibling and sibling.group("tag") not in self.tags:
            self.state = OUTSIDE
            return self.state

        self._check_ambiguity(line, index)
        return self.state

    def _check_ambiguity(self, line: str, index: int) -> None:
        stripped = line.strip()
        if not stripped or _COMMENT_RE.match(line):
            return
        leading = line[: indent_width(line)]
        if "\t" in leading:
            self._record(index, line, "tab in indentation")
        elif indent_width(line) <= self._opener_indent:
            self._record(
                index,
                line,
                f"indented {indent_width(line)} inside '{self.state.tag}' section "
                f"opened at indent {self._opener_indent}",
            )

    def _record(self, index: int, line: str, reason: str) -> None:
        ambiguity = StructuralAmbiguity(index=index, line=line, reason=reason)
        self.ambiguities.append(ambiguity)
        logger.warning(
            "Ambiguous structure at line %d (%s): %s",
            ambiguity.line_number,
            reason,
            line.strip(),
        )

    def scan(self, lines: Sequence[str]) -> Iterator[ScanStep]:
        """Reset and yield the state after each line."""
        self.reset()
        for index, line in enumerate(lines):
            state = self.advance(line, index)
            yield ScanStep(index=index, line=line, state=state, opened=self.opened)

    def sections(self, lines: Sequence[str]) -> list[Section]:
        """Compute every section instance in the lines."""
        found: list[Section] = []
        current_tag: str | None = None
        start = 0
        for step in self.scan(lines):
            if current_tag is not None and (step.opened or not step.state.inside):
                found.append(Section(current_tag, start, step.index))
                current_tag = None
            if step.opened:
                current_tag = step.state.tag
                start = step.index
        if current_tag is not None:
            found.append(Section(current_tag, start, len(lines)))
        return found

    def find_keys(self, lines: Sequence[str], key: str) -> list[KeyOccurrence]:
        """Return every ``key:`` line inside a tracked section."""
        pattern = key_pattern(key)
        occurrences: list[KeyOccurrence] = []
        for step in self.scan(lines):
            if not step.state.inside:
                continue
            match = pattern.match(step.line)
            if match:
                value, _ = split_value(match.group("rest"))
                occurrences.append(KeyOccurrence(step.state.tag, key, step.index, value))
        return occurrences
