"""Acceptance oracles for staged configuration documents.

SuricataValidator runs the daemon's own test mode (``suricata -T -c``) and
treats exit status 0 as acceptance. YamlSyntaxValidator only checks YAML
well-formedness with PyYAML; it stands in where Suricata is not installed.

Both extract the failing line number from their diagnostics and attach a
small window of surrounding document lines for the operator.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import yaml

from suricata_patcher.core.exceptions import PatcherIOError, ValidatorUnavailableError
from suricata_patcher.core.io import read_text

logger = logging.getLogger(__name__)

__all__ = [
    "CONTEXT_RADIUS",
    "SuricataValidator",
    "ValidationOutcome",
    "Validator",
    "YamlSyntaxValidator",
    "build_validator",
    "context_window",
    "extract_line_number",
]

# Lines shown on each side of a reported failing line
CONTEXT_RADIUS = 2

_LINE_RE = re.compile(r"line (\d+)")


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of validating one document.

    Attributes:
        ok: True if the validator accepted the document.
        returncode: Validator exit status (None when it never finished).
        output: Combined diagnostic output.
        line_number: 1-based failing line extracted from the output.
        context: ``(line_number, text)`` pairs around the failing line.

    """

    ok: bool
    returncode: int | None = None
    output: str = ""
    line_number: int | None = None
    context: tuple[tuple[int, str], ...] = field(default_factory=tuple)

    def describe(self) -> str:
        """Return a one-line summary for logs and error messages."""
        if self.ok:
            return "valid"
        if self.line_number is not None:
            return f"invalid at line {self.line_number}"
        return "invalid"


class Validator(Protocol):
    """Anything that can accept or reject a configuration file."""

    def validate(self, path: Path) -> ValidationOutcome:
        """Validate the file at path."""
        ...


def extract_line_number(output: str) -> int | None:
    """Return the first ``line <n>`` number found in validator output."""
    match = _LINE_RE.search(output)
    return int(match.group(1)) if match else None


def context_window(
    path: Path, line_number: int | None, radius: int = CONTEXT_RADIUS
) -> tuple[tuple[int, str], ...]:
    """Return the lines around line_number (1-based) of the file at path.

    Unreadable files and out-of-range numbers yield an empty window.
    """
    if line_number is None or line_number < 1:
        return ()
    try:
        lines = read_text(path).splitlines()
    except PatcherIOError as e:
        logger.debug("No context for %s: %s", path, e)
        return ()
    first = max(1, line_number - radius)
    last = min(len(lines), line_number + radius)
    return tuple((number, lines[number - 1]) for number in range(first, last + 1))


class SuricataValidator:
    """Run ``<binary> -T -c <path>`` and judge by exit status.

    Args:
        binary: Suricata executable name or path.
        timeout: Seconds before the process is killed; None waits forever.

    """

    def __init__(self, binary: str = "suricata", timeout: float | None = 120.0) -> None:
        self.binary = binary
        self.timeout = timeout

    def command(self, path: Path) -> list[str]:
        """Build the validator command line."""
        return [self.binary, "-T", "-c", str(path)]

    def validate(self, path: Path) -> ValidationOutcome:
        """Run the Suricata test mode against path.

        Raises:
            ValidatorUnavailableError: If the executable cannot be started.

        """
        cmd = self.command(path)
        logger.debug("Running validator: %s", " ".join(cmd))
        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise ValidatorUnavailableError(
                f"Validator executable not found: {self.binary}"
            ) from e
        except PermissionError as e:
            raise ValidatorUnavailableError(
                f"Validator executable not runnable: {self.binary}: {e}"
            ) from e
        except subprocess.TimeoutExpired:
            logger.warning("Validator timed out after %ss on %s", self.timeout, path)
            return ValidationOutcome(
                ok=False,
                output=f"Validator timed out after {self.timeout}s",
            )

        output = "\n".join(part for part in (completed.stdout, completed.stderr) if part)
        if completed.returncode == 0:
            return ValidationOutcome(ok=True, returncode=0, output=output)

        line_number = extract_line_number(output)
        return ValidationOutcome(
            ok=False,
            returncode=completed.returncode,
            output=output,
            line_number=line_number,
            context=context_window(path, line_number),
        )


class YamlSyntaxValidator:
    """Accept any document PyYAML can parse."""

    def validate(self, path: Path) -> ValidationOutcome:
        """Parse path with ``yaml.safe_load``."""
        text = read_text(path)
        try:
            yaml.safe_load(text)
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            line_number = mark.line + 1 if mark is not None else None
            return ValidationOutcome(
                ok=False,
                returncode=1,
                output=str(e),
                line_number=line_number,
                context=context_window(path, line_number),
            )
        return ValidationOutcome(ok=True, returncode=0)


def build_validator(
    kind: str = "suricata", binary: str = "suricata", timeout: float | None = 120.0
) -> Validator:
    """Create the validator named by kind ("suricata" or "yaml").

    Raises:
        ValueError: If kind is unknown.

    """
    if kind == "suricata":
        return SuricataValidator(binary=binary, timeout=timeout)
    if kind == "yaml":
        return YamlSyntaxValidator()
    raise ValueError(f"Unknown validator kind: {kind!r}")
