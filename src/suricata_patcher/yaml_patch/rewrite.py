"""Conservative value rewriting for existing keys.

KeyRewriter only replaces the value portion of key lines that already exist
in the targeted sections. Indentation, list marker, key token and any
trailing comment are preserved. A key that is not present is reported as a
no-op; inserting it is only possible when the rewriter is built with
``allow_insert=True``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Container, Sequence
from dataclasses import dataclass, field

from suricata_patcher.yaml_patch.document import DocumentModel
from suricata_patcher.yaml_patch.sections import (
    Section,
    SectionTracker,
    direct_children,
    indent_width,
    key_pattern,
    split_value,
    top_level_blocks,
)

logger = logging.getLogger(__name__)

__all__ = [
    "KeyRewriter",
    "RewriteResult",
    "remove_commented_keys",
    "uncomment_lines",
]


@dataclass(frozen=True)
class RewriteResult:
    """Outcome of one ``rewrite`` call.

    Attributes:
        tag: Section tag targeted (None for document-wide).
        key: Key targeted.
        matched: Indices of key lines found in scope.
        changed: Indices of lines whose text changed.
        inserted: Indices of inserted lines (only with allow_insert).

    """

    tag: str | None
    key: str
    matched: tuple[int, ...] = field(default_factory=tuple)
    changed: tuple[int, ...] = field(default_factory=tuple)
    inserted: tuple[int, ...] = field(default_factory=tuple)

    @property
    def found(self) -> bool:
        """Return True if the key existed in at least one targeted section."""
        return bool(self.matched)

    @property
    def noop(self) -> bool:
        """Return True if the document was left untouched."""
        return not self.changed and not self.inserted


def uncomment_lines(
    document: DocumentModel, pattern: str, replacement: str, count: int | None = None
) -> int:
    """Replace commented-out lines matching pattern with replacement.

    Used to re-enable block openers such as ``# - fast:`` without touching
    their bodies.

    Args:
        document: Document to edit.
        pattern: Regex matched against whole lines.
        replacement: Literal replacement line.
        count: Stop after this many replacements (None = all).

    Returns:
        Number of lines changed.

    """
    regex = re.compile(pattern)
    changed = 0
    for index, line in enumerate(document.lines):
        if count is not None and changed >= count:
            break
        if regex.match(line) and document.set_line(index, replacement):
            changed += 1
    if changed:
        logger.debug("Uncommented %d line(s) matching %s", changed, pattern)
    return changed


def remove_commented_keys(document: DocumentModel, key: str) -> int:
    """Delete commented-out ``# key: ...`` lines anywhere in the document.

    Leftover copies such as ``# HOME_NET: "[10.0.0.0/8]"`` from earlier
    edits are dropped; the live key line is not touched.

    Returns:
        Number of lines removed.

    """
    regex = re.compile(rf"^[ \t]*#[ \t]*{re.escape(key)}:")
    kept = [line for line in document.lines if not regex.match(line)]
    removed = len(document.lines) - len(kept)
    if removed:
        document.replace_lines(kept)
        logger.info("Removed %d commented '%s:' line(s)", removed, key)
    return removed


class KeyRewriter:
    """Rewrite values of existing keys inside tracked sections.

    Args:
        document: Document to edit in place.
        allow_insert: When True, sections lacking the key get a new
            ``key: value`` line after their opener. Default False keeps the
            line count unchanged.

    """

    def __init__(self, document: DocumentModel, *, allow_insert: bool = False) -> None:
        self.document = document
        self.allow_insert = allow_insert

    def uncomment(self, pattern: str, replacement: str, count: int | None = None) -> int:
        """Re-enable commented lines of the document; see uncomment_lines."""
        return uncomment_lines(self.document, pattern, replacement, count)

    def rewrite(
        self,
        tag: str | None,
        key: str,
        value: str,
        *,
        scope: str | None = None,
        preserve: Container[str] = (),
    ) -> RewriteResult:
        """Set ``key`` to ``value`` in every instance of section ``tag``.

        Args:
            tag: Section tag to target, or None for every line in scope.
            key: Key whose value is replaced.
            value: New value text, written verbatim.
            scope: Optional top-level key; only lines within its block(s)
                are considered.
            preserve: Current values that must not be overwritten.

        Returns:
            RewriteResult describing matches and changes.

        """
        lines = self.document.lines
        regions = self._regions(lines, tag, scope)
        pattern = key_pattern(key)

        matched: list[int] = []
        changed: list[int] = []
        missing: list[Section] = []

        for region in regions:
            region_matched = False
            candidates = (
                range(region.start, region.end) if tag is None else direct_children(lines, region)
            )
            for index in candidates:
                match = pattern.match(lines[index])
                if not match:
                    continue
                current, comment = split_value(match.group("rest"))
                if not current:
                    # "key:" alone opens a nested block; never turn it into a scalar.
                    continue
                region_matched = True
                matched.append(index)
                if current in preserve:
                    continue
                new_line = (
                    f"{match.group('indent')}{match.group('marker') or ''}"
                    f"{match.group('key')}: {value}{comment}"
                )
                if self.document.set_line(index, new_line):
                    changed.append(index)
            if not region_matched and tag is not None:
                missing.append(region)

        inserted: list[int] = []
        if self.allow_insert and missing:
            inserted = self._insert(missing, key, value)
        elif self.allow_insert and not matched and tag is None:
            inserted = self._insert_document_wide(key, value, scope)

        result = RewriteResult(
            tag=tag,
            key=key,
            matched=tuple(matched),
            changed=tuple(changed),
            inserted=tuple(inserted),
        )
        where = f"'{tag}' sections" if tag else (f"'{scope}' block" if scope else "document")
        if not result.found and not inserted:
            logger.info("Key '%s' not found in %s; left unchanged", key, where)
        elif changed or inserted:
            logger.debug(
                "Set '%s' to %s in %s (%d changed, %d inserted)",
                key,
                value,
                where,
                len(changed),
                len(inserted),
            )
        return result

    @staticmethod
    def _regions(lines: Sequence[str], tag: str | None, scope: str | None) -> list[Section]:
        if scope is not None:
            bounds = top_level_blocks(lines, scope)
        else:
            bounds = [(0, len(lines))]
        if tag is None:
            return [Section("", start, end) for start, end in bounds]

        tracker = SectionTracker((tag,))
        regions: list[Section] = []
        for start, end in bounds:
            for section in tracker.sections(lines[start:end]):
                regions.append(Section(section.tag, section.start + start, section.end + start))
        return regions

    def _insert(self, regions: list[Section], key: str, value: str) -> list[int]:
        lines = self.document.lines
        inserts: list[tuple[int, str]] = []
        for region in regions:
            opener = lines[region.start]
            body_indent = self._body_indent(lines, region)
            if body_indent is None:
                body_indent = indent_width(opener) + 4
            inserts.append((region.start + 1, f"{' ' * body_indent}{key}: {value}"))

        # Insert bottom-up so earlier indices stay valid.
        new_lines = list(lines)
        for position, text in sorted(inserts, reverse=True):
            new_lines.insert(position, text)
        self.document.replace_lines(new_lines)
        positions = [position + offset for offset, (position, _) in enumerate(sorted(inserts))]
        logger.info("Inserted '%s: %s' into %d section(s)", key, value, len(positions))
        return positions

    @staticmethod
    def _body_indent(lines: Sequence[str], region: Section) -> int | None:
        for index in range(region.start + 1, region.end):
            line = lines[index]
            if line.strip() and not line.lstrip().startswith("#"):
                return indent_width(line)
        return None

    def _insert_document_wide(self, key: str, value: str, scope: str | None) -> list[int]:
        lines = self.document.lines
        if scope is None:
            self.document.replace_lines([*lines, f"{key}: {value}"])
            position = len(self.document.lines) - 1
        else:
            blocks = top_level_blocks(lines, scope)
            if not blocks:
                logger.info("Scope '%s' not found; cannot insert '%s'", scope, key)
                return []
            start, _ = blocks[0]
            region = Section(scope, start, blocks[0][1])
            indent = self._body_indent(lines, region)
            position = start + 1
            new_lines = list(lines)
            new_lines.insert(position, f"{' ' * (indent or 2)}{key}: {value}")
            self.document.replace_lines(new_lines)
        logger.info("Inserted '%s: %s'", key, value)
        return [position]
