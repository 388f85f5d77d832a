"""Transactional mutation pipeline for a configuration file.

Every edit of the target runs through ValidationGate.run():

    Clean -> Mutating -> Validating -> Committed
                             |
                             +-> Repairing -> ValidatingAgain -> Committed
                                                    |
                                                    +-> RolledBack

The edited document is staged to a temp file beside the target and handed
to the validator. A rejected document gets exactly one repair pass
(duplicate elimination followed by structural repair) before it is judged
again. Only an accepted document replaces the target, via ``os.replace``;
on rollback the target on disk is never touched.

A one-time pristine copy (``<file>.bak``) is created before the first
pipeline ever runs against a file and is never overwritten afterwards.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from suricata_patcher.core.exceptions import PatcherError, PatcherIOError, ValidationFailureError
from suricata_patcher.core.io import DEFAULT_BACKUP_SUFFIX, discard_file, ensure_backup, stage_file
from suricata_patcher.yaml_patch.dedup import DedupResult, DuplicateKeyEliminator
from suricata_patcher.yaml_patch.document import DocumentModel
from suricata_patcher.yaml_patch.repair import RepairReport, StructuralRepairer
from suricata_patcher.yaml_patch.validator import ValidationOutcome, Validator

logger = logging.getLogger(__name__)

__all__ = [
    "GateResult",
    "GateState",
    "Step",
    "ValidationGate",
]

Step = Callable[[DocumentModel], Any]


class GateState(str, Enum):
    """Pipeline states, in the order a successful run visits them."""

    CLEAN = "clean"
    MUTATING = "mutating"
    VALIDATING = "validating"
    REPAIRING = "repairing"
    VALIDATING_AGAIN = "validating_again"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class GateResult:
    """Outcome of a committed pipeline run.

    Attributes:
        name: Pipeline name used in logs.
        state: Final state (always COMMITTED for a returned result).
        changed: True if the target file content was replaced.
        repaired: True if the repair pass ran.
        outcome: Last validator outcome.
        step_results: Return values of the steps, in order.
        dedup: Duplicate elimination result of the repair pass, if it ran.
        repair: Structural repair report of the repair pass, if it ran.
        backup: Backup created by this run (None if one already existed).

    """

    name: str
    state: GateState
    changed: bool
    repaired: bool
    outcome: ValidationOutcome
    step_results: tuple[Any, ...] = field(default_factory=tuple)
    dedup: DedupResult | None = None
    repair: RepairReport | None = None
    backup: Path | None = None


class ValidationGate:
    """Apply mutation steps to a file and commit only validated results.

    Args:
        path: Target configuration file.
        validator: Acceptance oracle.
        eliminator: Duplicate eliminator for the repair pass.
        repairer: Structural repairer for the repair pass.
        backup_suffix: Suffix of the one-time pristine backup.

    Attributes:
        history: States visited by the last run, in order.

    """

    def __init__(
        self,
        path: Path,
        validator: Validator,
        *,
        eliminator: DuplicateKeyEliminator | None = None,
        repairer: StructuralRepairer | None = None,
        backup_suffix: str = DEFAULT_BACKUP_SUFFIX,
    ) -> None:
        self.path = path
        self.validator = validator
        self.eliminator = eliminator or DuplicateKeyEliminator(("fast", "eve-log"), ("enabled",))
        self.repairer = repairer or StructuralRepairer()
        self.backup_suffix = backup_suffix
        self.history: list[GateState] = []

    @property
    def state(self) -> GateState:
        """Current (or final) state of the last run."""
        return self.history[-1] if self.history else GateState.CLEAN

    def _enter(self, state: GateState) -> None:
        self.history.append(state)
        logger.debug("%s: %s", self.path.name, state.value)

    def run(self, steps: Sequence[Step], name: str = "edit") -> GateResult:
        """Run steps against the target file as one transaction.

        Args:
            steps: Callables receiving the DocumentModel and editing it in
                place. Their return values are collected in the result.
            name: Pipeline name used in logs.

        Returns:
            GateResult of the committed run.

        Raises:
            ValidationFailureError: If the document is still rejected after
                the repair pass. The target file is unchanged.
            PatcherIOError: If reading, staging, backing up or replacing
                fails. The target file is unchanged.
            PatcherError: Any error raised by a step propagates after the
                in-memory document is rolled back.

        """
        self.history = []
        self._enter(GateState.CLEAN)

        document = DocumentModel.from_path(self.path)
        backup = ensure_backup(self.path, self.backup_suffix)
        snapshot = document.snapshot()

        self._enter(GateState.MUTATING)
        try:
            step_results = tuple(step(document) for step in steps)
        except PatcherError:
            document.restore(snapshot)
            self._enter(GateState.ROLLED_BACK)
            raise

        staged: Path | None = None
        try:
            self._enter(GateState.VALIDATING)
            staged = stage_file(self.path, document.render())
            outcome = self.validator.validate(staged)

            dedup: DedupResult | None = None
            report: RepairReport | None = None
            if not outcome.ok:
                logger.warning(
                    "%s: %s rejected the edited document (%s); attempting repair",
                    name,
                    type(self.validator).__name__,
                    outcome.describe(),
                )
                self._enter(GateState.REPAIRING)
                dedup = self.eliminator.eliminate(document)
                report = self.repairer.repair(document)
                discard_file(staged)

                self._enter(GateState.VALIDATING_AGAIN)
                staged = stage_file(self.path, document.render())
                outcome = self.validator.validate(staged)

            if not outcome.ok:
                document.restore(snapshot)
                self._enter(GateState.ROLLED_BACK)
                logger.error("%s: validation failed after repair; %s left unchanged", name, self.path)
                raise ValidationFailureError(
                    f"{self.path} is {outcome.describe()} after repair; changes rolled back",
                    outcome,
                )

            changed = not document.matches(snapshot)
            if changed:
                self._commit(staged)
                staged = None
                logger.info("%s: committed changes to %s", name, self.path)
            else:
                logger.info("%s: %s already up to date", name, self.path)
            self._enter(GateState.COMMITTED)
        except PatcherError:
            if self.state is not GateState.ROLLED_BACK:
                document.restore(snapshot)
                self._enter(GateState.ROLLED_BACK)
            raise
        finally:
            if staged is not None:
                discard_file(staged)

        return GateResult(
            name=name,
            state=self.state,
            changed=changed,
            repaired=report is not None,
            outcome=outcome,
            step_results=step_results,
            dedup=dedup,
            repair=report,
            backup=backup,
        )

    def _commit(self, staged: Path) -> None:
        try:
            shutil.copymode(self.path, staged)
            os.replace(staged, self.path)
        except OSError as e:
            raise PatcherIOError(f"Cannot replace {self.path}: {e}") from e
