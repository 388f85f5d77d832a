"""Line-oriented, structure-preserving editing of suricata.yaml.

Each component is a transform pass over a DocumentModel; ValidationGate
chains passes into a validated transaction against the file on disk.
"""

from suricata_patcher.yaml_patch.dedup import (
    DedupResult,
    DuplicateKeyConflict,
    DuplicateKeyEliminator,
)
from suricata_patcher.yaml_patch.document import DocumentModel, Snapshot
from suricata_patcher.yaml_patch.gate import GateResult, GateState, Step, ValidationGate
from suricata_patcher.yaml_patch.repair import RepairReport, StructuralRepairer
from suricata_patcher.yaml_patch.rewrite import (
    KeyRewriter,
    RewriteResult,
    remove_commented_keys,
    uncomment_lines,
)
from suricata_patcher.yaml_patch.rule_files import (
    RuleFileListSynchronizer,
    SyncResult,
    collect_rule_files,
    disable_rule_entry,
    list_rule_entries,
)
from suricata_patcher.yaml_patch.sections import (
    OUTSIDE,
    KeyOccurrence,
    Section,
    SectionTracker,
    StructuralAmbiguity,
    TrackerState,
)
from suricata_patcher.yaml_patch.validator import (
    SuricataValidator,
    ValidationOutcome,
    Validator,
    YamlSyntaxValidator,
    build_validator,
)

__all__ = [
    "OUTSIDE",
    "DedupResult",
    "DocumentModel",
    "DuplicateKeyConflict",
    "DuplicateKeyEliminator",
    "GateResult",
    "GateState",
    "KeyOccurrence",
    "KeyRewriter",
    "RepairReport",
    "RewriteResult",
    "RuleFileListSynchronizer",
    "Section",
    "SectionTracker",
    "Snapshot",
    "Step",
    "StructuralAmbiguity",
    "StructuralRepairer",
    "SuricataValidator",
    "SyncResult",
    "TrackerState",
    "ValidationGate",
    "ValidationOutcome",
    "Validator",
    "YamlSyntaxValidator",
    "build_validator",
    "collect_rule_files",
    "disable_rule_entry",
    "list_rule_entries",
    "remove_commented_keys",
    "uncomment_lines",
]
