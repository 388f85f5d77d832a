"""Exception hierarchy for suricata-patcher.

All errors raised by the patching engine derive from PatcherError so callers
(the CLI in particular) can catch a single base class and map it to an exit
code. Non-fatal conditions (structural ambiguity, resolved duplicate keys) are
not exceptions; they are reported as records and logged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from suricata_patcher.yaml_patch.validator import ValidationOutcome


class PatcherError(Exception):
    """Base exception for all suricata-patcher errors."""

    pass


class ConfigError(PatcherError):
    """Raised when the patcher configuration is missing or invalid."""

    pass


class PatcherIOError(PatcherError):
    """Raised when reading, staging, backing up or replacing a file fails.

    Always fatal for the running pipeline: nothing further is mutated and the
    target document is left as it was.
    """

    pass


class EmptyRuleSetError(PatcherError):
    """Raised when the rules directory holds no rule files.

    Attributes:
        directory: Directory that was scanned.
        suffix: Rule file suffix that was searched for.

    """

    def __init__(self, directory: str, suffix: str, reason: str | None = None) -> None:
        """Initialize EmptyRuleSetError.

        Args:
            directory: Directory that was scanned.
            suffix: Rule file suffix that was searched for.
            reason: Optional explanation overriding the default message.

        """
        self.directory = directory
        self.suffix = suffix
        message = reason or f"No {suffix} files found in {directory}"
        super().__init__(message)


class NoManagedKeyFoundError(PatcherError):
    """Raised when the managed list key is absent from the document."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Managed key '{key}:' not found in document")


class ValidatorUnavailableError(PatcherError):
    """Raised when the external validator executable cannot be started."""

    pass


class ValidationFailureError(PatcherError):
    """Raised when a document is still invalid after the single repair pass.

    Attributes:
        outcome: The last validator outcome (carries the failing line and its
            context when the validator reported one).

    """

    def __init__(self, message: str, outcome: ValidationOutcome | None = None) -> None:
        """Initialize ValidationFailureError.

        Args:
            message: Human readable summary.
            outcome: Last validator outcome, if any.

        """
        self.outcome = outcome
        super().__init__(message)

    @property
    def line_number(self) -> int | None:
        """Return the 1-based failing line reported by the validator."""
        if self.outcome is None:
            return None
        return self.outcome.line_number
