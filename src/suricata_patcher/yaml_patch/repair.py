"""Structural repair passes for damaged suricata.yaml documents.

Each fix is an independent, order-sensitive text transformation applied to
the whole document. Fixes report whether they changed anything; the
aggregate report is "fixed" when any of them did.

Fix order:
1. app_layer_frame_indent - ``- frame:`` after the ``# app layer frames``
   comment is forced to 6 spaces when its indentation is outside 4..8.
2. overindented_keys - allow-listed keys inside tracked output sections that
   sit deeper than the section body are pulled back to the body indentation.
3. trailing_whitespace - stripped on every line.
4. separator_collapse - ``key:: value`` / ``key : : value`` become
   ``key: value``. Only a colon run glued to the key token, or a spaced
   ``key : :`` pair, counts as a doubled separator, so values made of
   colons (``listen: ::``, ``"::1"``) survive.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from suricata_patcher.yaml_patch.document import DocumentModel
from suricata_patcher.yaml_patch.sections import SectionTracker, indent_width, is_block_opener

logger = logging.getLogger(__name__)

__all__ = [
    "RepairReport",
    "StructuralRepairer",
]

_FRAMES_COMMENT_RE = re.compile(r"^[ \t]*#[ \t]*app layer frames")
_FRAME_ITEM_RE = re.compile(r"^[ \t]*-[ \t]*frame:")
_FRAME_INDENT_RANGE = range(4, 9)
_FRAME_CANONICAL_INDENT = 6

# Deepest canonical body indentation relative to the section's "-" column
_MAX_BODY_OFFSET = 4

_KEY_LINE_RE = re.compile(r"^[ \t]*(?:-[ \t]+)?[A-Za-z0-9_.-]+:")
_SEPARATOR_RE = re.compile(
    r"^(?P<head>[ \t]*(?:-[ \t]+)?[A-Za-z0-9_.\"'][A-Za-z0-9_.\"'-]*)"
    r"(?::{2,}|[ \t]+:[ \t]*:)(?=[ \t]|$)[ \t]*(?P<rest>.*)$"
)


@dataclass(frozen=True)
class RepairReport:
    """Per-fix change flags of one repair run."""

    fixes: dict[str, bool] = field(default_factory=dict)

    @property
    def fixed(self) -> bool:
        """Return True if any fix changed the document."""
        return any(self.fixes.values())

    @property
    def applied(self) -> list[str]:
        """Names of the fixes that changed something."""
        return [name for name, changed in self.fixes.items() if changed]


class StructuralRepairer:
    """Apply the structural fixes in order.

    Args:
        tags: Section tags whose bodies are checked for over-indentation.
        reindent_keys: Keys re-indented when found over-indented.

    """

    def __init__(
        self,
        tags: Iterable[str] = ("fast", "eve-log"),
        reindent_keys: Iterable[str] = ("file", "enabled", "append", "filetype"),
    ) -> None:
        self.tracker = SectionTracker(tags)
        self.reindent_keys: tuple[str, ...] = tuple(reindent_keys)
        alternatives = "|".join(re.escape(key) for key in self.reindent_keys)
        self._reindent_re = re.compile(rf"^[ \t]*(?:{alternatives}):")
        self._fixes: list[tuple[str, Callable[[list[str]], list[str]]]] = [
            ("app_layer_frame_indent", self._fix_frame_indent),
            ("overindented_keys", self._fix_overindented_keys),
            ("trailing_whitespace", self._fix_trailing_whitespace),
            ("separator_collapse", self._fix_separators),
        ]

    def repair(self, document: DocumentModel) -> RepairReport:
        """Run every fix against the document, mutating it in place."""
        fixes: dict[str, bool] = {}
        for name, fix in self._fixes:
            changed = document.replace_lines(fix(document.lines))
            fixes[name] = changed
            if changed:
                logger.debug("Repair fix '%s' changed the document", name)
        report = RepairReport(fixes=fixes)
        if report.fixed:
            logger.info("Fixed YAML structure issues: %s", ", ".join(report.applied))
        return report

    @staticmethod
    def _fix_frame_indent(lines: list[str]) -> list[str]:
        out: list[str] = []
        previous = ""
        for line in lines:
            if (
                _FRAMES_COMMENT_RE.match(previous)
                and _FRAME_ITEM_RE.match(line)
                and indent_width(line) not in _FRAME_INDENT_RANGE
            ):
                line = " " * _FRAME_CANONICAL_INDENT + line.lstrip(" \t")
            out.append(line)
            previous = line
        return out

    def _fix_overindented_keys(self, lines: list[str]) -> list[str]:
        out = list(lines)
        expected: int | None = None
        cap = 0
        # indents of nested block openers ("xff:") still open in the section
        nested: list[int] = []
        for step in self.tracker.scan(lines):
            if step.opened:
                expected = None
                cap = indent_width(step.line) + _MAX_BODY_OFFSET
                nested = []
                continue
            if not step.state.inside:
                continue
            line = step.line
            if not _KEY_LINE_RE.match(line) or line.lstrip().startswith("-"):
                continue
            width = indent_width(line)
            while nested and nested[-1] >= width:
                nested.pop()
            if nested:
                if is_block_opener(line):
                    nested.append(width)
                continue
            if expected is None:
                # First body key defines the section's body indentation.
                expected = min(width, cap)
            if width > expected and self._reindent_re.match(line):
                out[step.index] = " " * expected + line.lstrip(" \t")
            elif is_block_opener(line):
                nested.append(width)
        return out

    @staticmethod
    def _fix_trailing_whitespace(lines: list[str]) -> list[str]:
        return [line.rstrip(" \t") for line in lines]

    @staticmethod
    def _fix_separators(lines: list[str]) -> list[str]:
        out: list[str] = []
        for line in lines:
            if not line.lstrip().startswith("#"):
                match = _SEPARATOR_RE.match(line)
                if match:
                    rest = match.group("rest")
                    line = f"{match.group('head')}: {rest}" if rest else f"{match.group('head')}:"
            out.append(line)
        return out
