"""Line-oriented in-memory model of a configuration document.

The document is kept as an ordered list of lines without terminators, the
line terminator in use and a flag recording whether the source ended with
one, so an unmodified document renders back byte-identical to its source.
Only ``\\n`` separates lines; a file whose every line ends in ``\\r\\n`` keeps
that terminator, and any other control character stays part of its line.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from suricata_patcher.core.io import read_text

__all__ = [
    "DocumentModel",
    "Snapshot",
]


@dataclass(frozen=True)
class Snapshot:
    """Opaque immutable copy of a DocumentModel's content."""

    lines: tuple[str, ...]
    trailing_newline: bool
    newline: str = "\n"


@dataclass
class DocumentModel:
    """Ordered sequence of text lines representing a configuration file.

    Attributes:
        lines: Document lines, without line terminators.
        trailing_newline: Whether the rendered text ends with a newline.
        newline: Line terminator used when rendering (``"\\n"`` or ``"\\r\\n"``).

    Examples:
        >>> doc = DocumentModel.from_text("a: 1\\nb: 2\\n")
        >>> doc.lines
        ['a: 1', 'b: 2']
        >>> doc.render()
        'a: 1\\nb: 2\\n'

    """

    lines: list[str] = field(default_factory=list)
    trailing_newline: bool = True
    newline: str = "\n"

    @classmethod
    def from_text(cls, text: str) -> DocumentModel:
        """Build a document from raw text."""
        if not text:
            return cls(lines=[], trailing_newline=False)
        lines = text.split("\n")
        trailing_newline = text.endswith("\n")
        if trailing_newline:
            lines.pop()
        terminated = lines if trailing_newline else lines[:-1]
        newline = "\n"
        if terminated and all(line.endswith("\r") for line in terminated):
            newline = "\r\n"
            lines = [line[:-1] for line in terminated] + lines[len(terminated) :]
        return cls(lines=lines, trailing_newline=trailing_newline, newline=newline)

    @classmethod
    def from_path(cls, path: Path) -> DocumentModel:
        """Read a UTF-8 document from disk.

        Raises:
            PatcherIOError: If the file cannot be read.

        """
        return cls.from_text(read_text(path))

    def render(self) -> str:
        """Render the document back to text."""
        if not self.lines:
            return ""
        text = self.newline.join(self.lines)
        return text + self.newline if self.trailing_newline else text

    def snapshot(self) -> Snapshot:
        """Return an immutable copy of the current content."""
        return Snapshot(
            lines=tuple(self.lines),
            trailing_newline=self.trailing_newline,
            newline=self.newline,
        )

    def restore(self, snapshot: Snapshot) -> None:
        """Replace the whole content with a previously taken snapshot."""
        self.lines = list(snapshot.lines)
        self.trailing_newline = snapshot.trailing_newline
        self.newline = snapshot.newline

    def replace_lines(self, lines: Iterable[str]) -> bool:
        """Replace all lines, returning True if the content changed."""
        new_lines = list(lines)
        if new_lines == self.lines:
            return False
        self.lines = new_lines
        return True

    def set_line(self, index: int, line: str) -> bool:
        """Replace one line, returning True if it changed."""
        if self.lines[index] == line:
            return False
        self.lines[index] = line
        return True

    def matches(self, snapshot: Snapshot) -> bool:
        """Return True if the content equals the snapshot."""
        return (
            tuple(self.lines) == snapshot.lines
            and self.trailing_newline == snapshot.trailing_newline
            and self.newline == snapshot.newline
        )

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self) -> Iterator[str]:
        return iter(self.lines)

    def __getitem__(self, index: int) -> str:
        return self.lines[index]
