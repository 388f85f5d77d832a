"""Tests for the validated mutation pipeline (backup, repair, rollback)."""

import stat
from pathlib import Path
from unittest.mock import patch

import pytest

from suricata_patcher.core.exceptions import (
    EmptyRuleSetError,
    PatcherIOError,
    ValidationFailureError,
    ValidatorUnavailableError,
)
from suricata_patcher.yaml_patch import (
    DocumentModel,
    GateState,
    KeyRewriter,
    ValidationGate,
    ValidationOutcome,
    YamlSyntaxValidator,
)


def _enable_fast(document: DocumentModel) -> object:
    return KeyRewriter(document).rewrite("fast", "enabled", "yes")


def _temp_files(directory: Path) -> list[Path]:
    return sorted(directory.glob(".*.tmp"))


# =============================================================================
# Commit path
# =============================================================================


class TestCommit:
    """Accepted documents replace the target atomically."""

    def test_commit_on_first_validation(self, suricata_yaml: Path, scripted_validator) -> None:
        original = suricata_yaml.read_text()
        validator = scripted_validator(True)
        gate = ValidationGate(suricata_yaml, validator)

        result = gate.run([_enable_fast], name="enable-fast")

        assert result.state is GateState.COMMITTED
        assert result.changed
        assert not result.repaired
        assert result.outcome.ok
        assert result.step_results[0].changed == (13,)
        assert gate.history == [
            GateState.CLEAN,
            GateState.MUTATING,
            GateState.VALIDATING,
            GateState.COMMITTED,
        ]
        assert suricata_yaml.read_text() == original.replace(
            "  - fast:\n      enabled: no", "  - fast:\n      enabled: yes"
        )
        # the validator judged the staged file, not the target
        assert validator.calls[0] != suricata_yaml
        assert validator.calls[0].parent == suricata_yaml.parent
        assert validator.seen[0] == suricata_yaml.read_text()
        assert _temp_files(suricata_yaml.parent) == []

    def test_backup_created_once(self, suricata_yaml: Path, scripted_validator) -> None:
        original = suricata_yaml.read_text()
        backup = suricata_yaml.with_name("suricata.yaml.bak")

        first = ValidationGate(suricata_yaml, scripted_validator(True)).run([_enable_fast])
        assert first.backup == backup
        assert backup.read_text() == original

        second = ValidationGate(suricata_yaml, scripted_validator(True)).run(
            [lambda document: KeyRewriter(document).rewrite("fast", "append", "no")]
        )
        assert second.backup is None
        assert backup.read_text() == original

    def test_custom_backup_suffix(self, suricata_yaml: Path, scripted_validator) -> None:
        ValidationGate(suricata_yaml, scripted_validator(True), backup_suffix=".orig").run(
            [_enable_fast]
        )
        assert suricata_yaml.with_name("suricata.yaml.orig").exists()

    def test_unchanged_document_not_rewritten(
        self, suricata_yaml: Path, scripted_validator
    ) -> None:
        validator = scripted_validator(True)
        result = ValidationGate(suricata_yaml, validator).run([lambda document: None])
        assert result.state is GateState.COMMITTED
        assert not result.changed
        assert len(validator.calls) == 1
        assert _temp_files(suricata_yaml.parent) == []

    def test_file_mode_preserved(self, suricata_yaml: Path, scripted_validator) -> None:
        suricata_yaml.chmod(0o640)
        ValidationGate(suricata_yaml, scripted_validator(True)).run([_enable_fast])
        assert stat.S_IMODE(suricata_yaml.stat().st_mode) == 0o640


# =============================================================================
# Repair path
# =============================================================================


class TestRepair:
    """A rejected document gets exactly one repair pass."""

    def test_repair_then_commit(self, tmp_path: Path, scripted_validator) -> None:
        """Duplicate key rejected, repaired by elimination, then accepted."""
        path = tmp_path / "suricata.yaml"
        path.write_text("outputs:\n  - fast:\n      enabled: no\n      filename: fast.log\n")
        validator = scripted_validator(False, True)

        def add_duplicate(document: DocumentModel) -> None:
            KeyRewriter(document).rewrite("fast", "filename", "alerts.log")
            document.replace_lines([*document.lines, "      enabled: yes"])

        result = ValidationGate(path, validator).run([add_duplicate])

        assert result.repaired
        assert result.dedup is not None and result.dedup.dropped == 1
        assert result.state is GateState.COMMITTED
        assert len(validator.calls) == 2
        assert result.changed
        assert path.read_text() == "outputs:\n  - fast:\n      enabled: no\n      filename: alerts.log\n"

    def test_history_of_repaired_run(self, suricata_yaml: Path, scripted_validator) -> None:
        gate = ValidationGate(suricata_yaml, scripted_validator(False, True))
        gate.run([_enable_fast])
        assert gate.history == [
            GateState.CLEAN,
            GateState.MUTATING,
            GateState.VALIDATING,
            GateState.REPAIRING,
            GateState.VALIDATING_AGAIN,
            GateState.COMMITTED,
        ]

    def test_real_yaml_validator_repairs_indentation(self, tmp_path: Path) -> None:
        """An edit leaving an over-indented key is fixed by the repair pass."""
        path = tmp_path / "suricata.yaml"
        path.write_text("outputs:\n  - fast:\n      enabled: no\n      filename: fast.log\n")

        def damage(document: DocumentModel) -> None:
            document.replace_lines([*document.lines, "          append: yes"])

        result = ValidationGate(path, YamlSyntaxValidator()).run([damage])

        assert result.repaired
        assert result.repair is not None
        assert "overindented_keys" in result.repair.applied
        assert path.read_text().endswith("      filename: fast.log\n      append: yes\n")


# =============================================================================
# Rollback path
# =============================================================================


class TestRollback:
    """A document still rejected after repair never reaches the disk."""

    def test_rollback_keeps_file_byte_identical(
        self, suricata_yaml: Path, scripted_validator
    ) -> None:
        original = suricata_yaml.read_bytes()
        failure = ValidationOutcome(
            ok=False,
            returncode=1,
            output="error at line 14",
            line_number=14,
            context=((14, "      filename: fast.log"),),
        )
        validator = scripted_validator(failure)
        gate = ValidationGate(suricata_yaml, validator)

        with pytest.raises(ValidationFailureError) as exc_info:
            gate.run([_enable_fast])

        assert exc_info.value.line_number == 14
        assert exc_info.value.outcome is failure
        assert len(validator.calls) == 2
        assert gate.state is GateState.ROLLED_BACK
        assert gate.history[-3:] == [
            GateState.REPAIRING,
            GateState.VALIDATING_AGAIN,
            GateState.ROLLED_BACK,
        ]
        assert suricata_yaml.read_bytes() == original
        assert _temp_files(suricata_yaml.parent) == []

    def test_validator_unavailable(self, suricata_yaml: Path) -> None:
        original = suricata_yaml.read_bytes()

        class Missing:
            def validate(self, path: Path) -> ValidationOutcome:
                raise ValidatorUnavailableError("Validator executable not found: suricata")

        gate = ValidationGate(suricata_yaml, Missing())
        with pytest.raises(ValidatorUnavailableError):
            gate.run([_enable_fast])

        assert gate.state is GateState.ROLLED_BACK
        assert suricata_yaml.read_bytes() == original
        assert _temp_files(suricata_yaml.parent) == []

    def test_step_error_aborts_before_validation(
        self, suricata_yaml: Path, scripted_validator
    ) -> None:
        validator = scripted_validator(True)

        def fail(document: DocumentModel) -> None:
            raise EmptyRuleSetError("/rules", ".rules")

        gate = ValidationGate(suricata_yaml, validator)
        with pytest.raises(EmptyRuleSetError):
            gate.run([_enable_fast, fail])

        assert validator.calls == []
        assert gate.state is GateState.ROLLED_BACK

    def test_replace_failure_is_io_error(self, suricata_yaml: Path, scripted_validator) -> None:
        original = suricata_yaml.read_bytes()
        gate = ValidationGate(suricata_yaml, scripted_validator(True))

        with patch("suricata_patcher.yaml_patch.gate.os.replace", side_effect=OSError("EXDEV")):
            with pytest.raises(PatcherIOError, match="Cannot replace"):
                gate.run([_enable_fast])

        assert suricata_yaml.read_bytes() == original
        assert _temp_files(suricata_yaml.parent) == []

    def test_missing_target(self, tmp_path: Path, scripted_validator) -> None:
        target = tmp_path / "missing.yaml"
        with pytest.raises(PatcherIOError, match="not found"):
            ValidationGate(target, scripted_validator(True)).run([_enable_fast])
        assert not target.with_name("missing.yaml.bak").exists()
