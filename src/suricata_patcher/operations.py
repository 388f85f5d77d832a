"""High-level suricata.yaml operations.

Each editing operation builds a list of transform steps and runs them
through a ValidationGate, so the file on disk is replaced only by a
document the validator accepted. ``inspect_config`` and ``validate_config``
never write.

Example:
    report = sync_rule_list(Path("/etc/suricata/suricata.yaml"))
    print(report.sync.entries)  # ('emerging-all.rules', 'test.rules')

"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from suricata_patcher.core.config import PatcherConfig, get_config
from suricata_patcher.core.exceptions import PatcherIOError
from suricata_patcher.core.io import atomic_write
from suricata_patcher.yaml_patch import (
    DedupResult,
    DocumentModel,
    DuplicateKeyEliminator,
    GateResult,
    KeyRewriter,
    RepairReport,
    RewriteResult,
    RuleFileListSynchronizer,
    SectionTracker,
    Step,
    StructuralAmbiguity,
    StructuralRepairer,
    SyncResult,
    ValidationGate,
    ValidationOutcome,
    Validator,
    build_validator,
    collect_rule_files,
    disable_rule_entry,
    list_rule_entries,
    remove_commented_keys,
)
from suricata_patcher.yaml_patch.sections import (
    direct_children,
    key_pattern,
    split_value,
    top_level_blocks,
)

logger = logging.getLogger(__name__)

__all__ = [
    "EditReport",
    "Inspection",
    "OUTPUT_TAGS",
    "TEST_RULES",
    "clear_rule_list",
    "configure_logging",
    "create_test_rules",
    "inspect_config",
    "repair_config",
    "sync_rule_list",
    "update_network_settings",
    "validate_config",
]

OUTPUT_TAGS: tuple[str, ...] = ("fast", "eve-log")

TEST_RULES = """\
# Test rule for Suricata IDS validation
# This rule detects the testmynids.org test page
alert ip any any -> any any (msg:"GPL ATTACK_RESPONSE id check returned root"; content:"uid=0|28|root|29|"; classtype:bad-unknown; sid:2100498; rev:7; metadata:created_at 2010_09_23, updated_at 2010_09_23;)

# HTTP Test Rule - detects testmynids.org requests
alert http any any -> any any (msg:"HTTP Test Rule - testmynids.org detected"; content:"testmynids"; nocase; sid:1000001; rev:1;)

# DNS Query Test Rule
alert dns any any -> any any (msg:"DNS Query Detected"; sid:1000002; rev:1;)
"""

_OPENER_PATTERNS: dict[str, tuple[str, str]] = {
    "outputs": (r"^[ \t]*#[ \t]*outputs:[ \t]*$", "outputs:"),
    "fast": (r"^[ \t]*#[ \t]*-[ \t]*fast:[ \t]*$", "  - fast:"),
    "eve-log": (r"^[ \t]*#[ \t]*-[ \t]*eve-log:[ \t]*$", "  - eve-log:"),
}


@dataclass(frozen=True)
class EditReport:
    """What an editing operation did.

    Attributes:
        gate: Result of the validated transaction.
        rewrites: Every key rewrite attempted, in order.
        sync: Rule list synchronization result, if the operation synced.
        dedup: Duplicate elimination passes run as explicit steps.
        repair: Structural repair run as an explicit step.
        uncommented: Block openers re-enabled.
        disabled: Rule entries commented out.
        comments_removed: Commented-out key lines deleted.

    """

    gate: GateResult
    rewrites: tuple[RewriteResult, ...] = field(default_factory=tuple)
    sync: SyncResult | None = None
    dedup: tuple[DedupResult, ...] = field(default_factory=tuple)
    repair: RepairReport | None = None
    uncommented: tuple[str, ...] = field(default_factory=tuple)
    disabled: tuple[str, ...] = field(default_factory=tuple)
    comments_removed: int = 0

    @property
    def changed(self) -> bool:
        """Return True if the target file was replaced."""
        return self.gate.changed

    @property
    def missing(self) -> list[str]:
        """Keys that were requested but not present (left unchanged)."""
        return [
            f"{rewrite.tag}.{rewrite.key}" if rewrite.tag else rewrite.key
            for rewrite in self.rewrites
            if not rewrite.found
        ]

    @property
    def duplicates_removed(self) -> int:
        """Duplicate lines dropped by explicit steps and the repair pass."""
        total = sum(result.dropped for result in self.dedup)
        if self.gate.dedup is not None:
            total += self.gate.dedup.dropped
        return total


@dataclass(frozen=True)
class Inspection:
    """Read-only report of a configuration document.

    Attributes:
        path: Inspected file.
        rule_entries: ``(state, name)`` of every managed list entry.
        outputs: Output tag -> ``enabled`` value (None if absent), for each
            live output section.
        interfaces: ``af-packet`` interface entries, in order.
        home_net: ``HOME_NET`` value, if set.
        default_rule_path: ``default-rule-path`` value, if set.
        pending_duplicates: Duplicate key lines a repair would drop.
        pending_fixes: Structural fixes a repair would apply.
        ambiguities: Lines the section heuristic could not classify.

    """

    path: Path
    rule_entries: list[tuple[str, str]] = field(default_factory=list)
    outputs: dict[str, str | None] = field(default_factory=dict)
    interfaces: list[str] = field(default_factory=list)
    home_net: str | None = None
    default_rule_path: str | None = None
    pending_duplicates: int = 0
    pending_fixes: list[str] = field(default_factory=list)
    ambiguities: list[StructuralAmbiguity] = field(default_factory=list)


# =============================================================================
# Builders
# =============================================================================


def _config(config: PatcherConfig | None) -> PatcherConfig:
    return config if config is not None else get_config()


def _resolve_path(path: Path | None, config: PatcherConfig) -> Path:
    return path if path is not None else Path(config.suricata_yaml)


def build_eliminator(config: PatcherConfig) -> DuplicateKeyEliminator:
    """Create the duplicate eliminator configured by config.repair."""
    return DuplicateKeyEliminator(config.repair.dedup_tags, config.repair.dedup_keys)


def build_repairer(config: PatcherConfig) -> StructuralRepairer:
    """Create the structural repairer configured by config.repair."""
    return StructuralRepairer(config.repair.dedup_tags, config.repair.reindent_keys)


def build_gate(
    path: Path, config: PatcherConfig, validator: Validator | None = None
) -> ValidationGate:
    """Create a ValidationGate for path from configuration.

    Args:
        path: Target file.
        config: Patcher configuration.
        validator: Override the configured validator (tests, dry checks).

    """
    if validator is None:
        validator = build_validator(
            config.validator.kind, config.validator.binary, config.validator.timeout
        )
    return ValidationGate(
        path,
        validator,
        eliminator=build_eliminator(config),
        repairer=build_repairer(config),
        backup_suffix=config.backup_suffix,
    )


def _format_home_net(home_net: str) -> str:
    inner = home_net.strip().strip("\"'").strip()
    if not (inner.startswith("[") and inner.endswith("]")):
        inner = f"[{inner}]"
    return f'"{inner}"'


# =============================================================================
# Editing operations
# =============================================================================


def update_network_settings(
    path: Path | None = None,
    *,
    home_net: str | None = None,
    interface: str | None = None,
    rule_path: str | None = None,
    config: PatcherConfig | None = None,
    validator: Validator | None = None,
) -> EditReport:
    """Point suricata.yaml at the local network and capture interface.

    Sets ``HOME_NET`` under ``vars``, every ``af-packet`` interface entry
    except the preserved ones (``default``), ``default-rule-path``, and
    comments out the stock rule entries configured in
    ``rules.disabled_entries``. Keys not present in the file are reported,
    never added.

    Args:
        path: suricata.yaml path (config.suricata_yaml if None).
        home_net: Protected network, e.g. "192.168.1.0/24".
        interface: Capture interface, e.g. "eth0".
        rule_path: Value for ``default-rule-path`` (config.rules.default_rule_path
            if None).
        config: Configuration (singleton if None).
        validator: Validator override.

    Returns:
        EditReport of the committed edit.

    Raises:
        ValidationFailureError: If the result cannot be validated.
        PatcherIOError: If the file cannot be read or written.

    """
    cfg = _config(config)
    target = _resolve_path(path, cfg)
    home_net = home_net if home_net is not None else cfg.network.home_net
    interface = interface if interface is not None else cfg.network.interface
    rule_path = rule_path if rule_path is not None else cfg.rules.default_rule_path

    rewrites: list[RewriteResult] = []
    disabled: list[str] = []

    def apply_network(document: DocumentModel) -> None:
        rewriter = KeyRewriter(document)
        if home_net:
            rewrites.append(
                rewriter.rewrite(None, "HOME_NET", _format_home_net(home_net), scope="vars")
            )
        if interface:
            rewrites.append(
                rewriter.rewrite(
                    "interface",
                    "interface",
                    interface,
                    scope="af-packet",
                    preserve=cfg.network.preserve_interfaces,
                )
            )
        if rule_path:
            rewrites.append(rewriter.rewrite(None, "default-rule-path", rule_path))
        for name in cfg.rules.disabled_entries:
            if disable_rule_entry(document, name):
                disabled.append(name)

    gate = build_gate(target, cfg, validator)
    result = gate.run([apply_network], name="network")
    return EditReport(gate=result, rewrites=tuple(rewrites), disabled=tuple(disabled))


def configure_logging(
    path: Path | None = None,
    *,
    config: PatcherConfig | None = None,
    validator: Validator | None = None,
) -> EditReport:
    """Enable the ``fast`` and ``eve-log`` outputs.

    Steps: drop duplicate keys, re-enable commented ``outputs:``/``- fast:``/
    ``- eve-log:`` openers (only where no live one exists), set ``enabled:
    yes``, the log file names and the eve file type, then drop duplicates
    again.

    Args:
        path: suricata.yaml path (config.suricata_yaml if None).
        config: Configuration (singleton if None).
        validator: Validator override.

    Returns:
        EditReport of the committed edit.

    """
    cfg = _config(config)
    target = _resolve_path(path, cfg)
    eliminator = build_eliminator(cfg)

    rewrites: list[RewriteResult] = []
    dedup: list[DedupResult] = []
    uncommented: list[str] = []

    def dedupe(document: DocumentModel) -> DedupResult:
        result = eliminator.eliminate(document)
        dedup.append(result)
        return result

    def enable_outputs(document: DocumentModel) -> None:
        rewriter = KeyRewriter(document)
        if not top_level_blocks(document.lines, "outputs"):
            pattern, replacement = _OPENER_PATTERNS["outputs"]
            if rewriter.uncomment(pattern, replacement, count=1):
                uncommented.append("outputs")
        live = {section.tag for section in SectionTracker(OUTPUT_TAGS).sections(document.lines)}
        for tag in OUTPUT_TAGS:
            if tag in live:
                continue
            pattern, replacement = _OPENER_PATTERNS[tag]
            if rewriter.uncomment(pattern, replacement, count=1):
                uncommented.append(tag)

    def set_outputs(document: DocumentModel) -> None:
        rewriter = KeyRewriter(document)
        outputs = cfg.outputs
        rewrites.extend(
            [
                rewriter.rewrite("fast", "enabled", "yes", scope="outputs"),
                rewriter.rewrite("fast", "filename", outputs.fast_log, scope="outputs"),
                rewriter.rewrite("eve-log", "enabled", "yes", scope="outputs"),
                rewriter.rewrite("eve-log", "filename", outputs.eve_log, scope="outputs"),
                rewriter.rewrite("eve-log", "filetype", outputs.eve_filetype, scope="outputs"),
            ]
        )

    gate = build_gate(target, cfg, validator)
    result = gate.run([dedupe, enable_outputs, set_outputs, dedupe], name="logging")
    return EditReport(
        gate=result,
        rewrites=tuple(rewrites),
        dedup=tuple(dedup),
        uncommented=tuple(uncommented),
    )


def sync_rule_list(
    path: Path | None = None,
    rules_dir: Path | None = None,
    *,
    config: PatcherConfig | None = None,
    validator: Validator | None = None,
) -> EditReport:
    """Regenerate the managed ``rule-files:`` list from a rules directory.

    The directory is read before anything else, so an empty rule set
    aborts without creating a backup or touching the file.

    Args:
        path: suricata.yaml path (config.suricata_yaml if None).
        rules_dir: Rules directory (config.rules.directory if None).
        config: Configuration (singleton if None).
        validator: Validator override.

    Returns:
        EditReport carrying the SyncResult.

    Raises:
        EmptyRuleSetError: If the directory holds no rule file.

    """
    cfg = _config(config)
    target = _resolve_path(path, cfg)
    directory = rules_dir if rules_dir is not None else Path(cfg.rules.directory)
    names = collect_rule_files(directory, cfg.rules.suffix)
    logger.debug("Found %d rule file(s) in %s", len(names), directory)

    synchronizer = RuleFileListSynchronizer(
        managed_key=cfg.rules.managed_key,
        suffix=cfg.rules.suffix,
        entry_indent=cfg.rules.entry_indent,
    )

    gate = build_gate(target, cfg, validator)
    result = gate.run([lambda document: synchronizer.apply(names, document)], name="sync-rules")
    sync = result.step_results[0]
    return EditReport(gate=result, sync=sync)


def clear_rule_list(
    path: Path | None = None,
    *,
    drop_commented_home_net: bool = True,
    config: PatcherConfig | None = None,
    validator: Validator | None = None,
) -> EditReport:
    """Empty every managed ``rule-files:`` block, leaving no rules applied.

    The keys, comments and blank lines inside the blocks stay. Leftover
    commented ``# HOME_NET:`` lines are removed as well unless
    drop_commented_home_net is False.

    Args:
        path: suricata.yaml path (config.suricata_yaml if None).
        drop_commented_home_net: Also delete commented ``HOME_NET`` copies.
        config: Configuration (singleton if None).
        validator: Validator override.

    Returns:
        EditReport whose ``sync.removed`` counts the dropped entries.

    """
    cfg = _config(config)
    target = _resolve_path(path, cfg)
    synchronizer = RuleFileListSynchronizer(
        managed_key=cfg.rules.managed_key,
        suffix=cfg.rules.suffix,
        entry_indent=cfg.rules.entry_indent,
    )

    steps: list[Step] = [synchronizer.clear]
    if drop_commented_home_net:
        steps.append(lambda document: remove_commented_keys(document, "HOME_NET"))

    gate = build_gate(target, cfg, validator)
    result = gate.run(steps, name="clear-rules")
    sync = result.step_results[0]
    comments_removed = result.step_results[1] if drop_commented_home_net else 0
    return EditReport(gate=result, sync=sync, comments_removed=comments_removed)


def repair_config(
    path: Path | None = None,
    *,
    config: PatcherConfig | None = None,
    validator: Validator | None = None,
) -> EditReport:
    """Drop duplicate keys and fix structural damage, then validate."""
    cfg = _config(config)
    target = _resolve_path(path, cfg)
    eliminator = build_eliminator(cfg)
    repairer = build_repairer(cfg)

    gate = build_gate(target, cfg, validator)
    result = gate.run([eliminator.eliminate, repairer.repair], name="repair")
    dedup, report = result.step_results
    return EditReport(gate=result, dedup=(dedup,), repair=report)


# =============================================================================
# Read-only operations
# =============================================================================


def validate_config(
    path: Path | None = None,
    *,
    config: PatcherConfig | None = None,
    validator: Validator | None = None,
) -> ValidationOutcome:
    """Run the configured validator against the file as it is on disk."""
    cfg = _config(config)
    target = _resolve_path(path, cfg)
    if not target.is_file():
        raise PatcherIOError(f"Configuration file not found: {target}")
    if validator is None:
        validator = build_validator(
            cfg.validator.kind, cfg.validator.binary, cfg.validator.timeout
        )
    outcome = validator.validate(target)
    logger.debug("Validation of %s: %s", target, outcome.describe())
    return outcome


def _first_value(lines: list[str], indices: list[int] | range, key: str) -> str | None:
    pattern = key_pattern(key)
    for index in indices:
        match = pattern.match(lines[index])
        if match:
            value, _ = split_value(match.group("rest"))
            if value:
                return value.strip("\"'")
    return None


def inspect_config(path: Path | None = None, *, config: PatcherConfig | None = None) -> Inspection:
    """Report what the document currently configures, without writing.

    Pending duplicates and fixes are computed on a copy of the document.
    """
    cfg = _config(config)
    target = _resolve_path(path, cfg)
    document = DocumentModel.from_path(target)
    lines = document.lines

    tracker = SectionTracker(OUTPUT_TAGS)
    outputs: dict[str, str | None] = {}
    for section in tracker.sections(lines):
        value = _first_value(lines, direct_children(lines, section), "enabled")
        outputs.setdefault(section.tag, value)
    ambiguities = list(tracker.ambiguities)

    interfaces: list[str] = []
    interface_tracker = SectionTracker(("interface",))
    for start, end in top_level_blocks(lines, "af-packet"):
        for section in interface_tracker.sections(lines[start:end]):
            value = _first_value(lines, [section.start + start], "interface")
            if value:
                interfaces.append(value)

    home_net = None
    for start, end in top_level_blocks(lines, "vars"):
        home_net = _first_value(lines, range(start, end), "HOME_NET")
        if home_net:
            break

    default_rule_path = _first_value(lines, range(len(lines)), "default-rule-path")

    scratch = DocumentModel.from_text(document.render())
    pending_duplicates = build_eliminator(cfg).eliminate(scratch).dropped
    pending_fixes = build_repairer(cfg).repair(scratch).applied

    return Inspection(
        path=target,
        rule_entries=list_rule_entries(document, cfg.rules.managed_key),
        outputs=outputs,
        interfaces=interfaces,
        home_net=home_net,
        default_rule_path=default_rule_path,
        pending_duplicates=pending_duplicates,
        pending_fixes=pending_fixes,
        ambiguities=ambiguities,
    )


def create_test_rules(
    rules_dir: Path | None = None,
    *,
    filename: str = "test.rules",
    overwrite: bool = True,
    config: PatcherConfig | None = None,
) -> Path:
    """Write the stock IDS alerting test rules into the rules directory.

    Args:
        rules_dir: Rules directory (config.rules.directory if None); created
            if missing.
        filename: Rule file name.
        overwrite: Replace an existing file.
        config: Configuration (singleton if None).

    Returns:
        Path of the rule file.

    Raises:
        PatcherIOError: If the directory or file cannot be written.

    """
    cfg = _config(config)
    directory = rules_dir if rules_dir is not None else Path(cfg.rules.directory)
    target = directory / filename
    if target.exists() and not overwrite:
        logger.info("%s already exists, leaving it unchanged", target)
        return target
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PatcherIOError(f"Cannot create rules directory {directory}: {e}") from e
    atomic_write(target, TEST_RULES)
    try:
        os.chmod(target, 0o644)
    except OSError as e:
        raise PatcherIOError(f"Cannot set permissions on {target}: {e}") from e
    logger.info("Created %s for IDS validation", target)
    return target
