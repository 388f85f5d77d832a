"""Pydantic configuration models for suricata-patcher."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from suricata_patcher.core.config.constants import (
    DEFAULT_LOG_DIR,
    DEFAULT_RULES_DIR,
    DEFAULT_SURICATA_YAML,
)


class ValidatorConfig(BaseModel):
    """External validator configuration section.

    Attributes:
        kind: "suricata" runs ``<binary> -T -c <file>``; "yaml" only checks
            YAML syntax with PyYAML (useful where Suricata is not installed).
        binary: Suricata executable name or path.
        timeout: Seconds before a hung validator is killed. None blocks
            until the validator exits.

    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["suricata", "yaml"] = Field(
        default="suricata",
        description="Validator used as the acceptance oracle",
    )
    binary: str = Field(
        default="suricata",
        description="Suricata executable",
    )
    timeout: float | None = Field(
        default=120.0,
        gt=0,
        description="Validator timeout in seconds (None = no timeout)",
    )


class OutputsConfig(BaseModel):
    """Logging output targets written by ``configure_logging``.

    Attributes:
        fast_log: Value for ``filename`` in the ``fast`` output.
        eve_log: Value for ``filename`` in the ``eve-log`` output.
        eve_filetype: Value for ``filetype`` in the ``eve-log`` output.

    """

    model_config = ConfigDict(frozen=True)

    fast_log: str = Field(default=f"{DEFAULT_LOG_DIR}/fast.log")
    eve_log: str = Field(default=f"{DEFAULT_LOG_DIR}/eve.json")
    eve_filetype: str = Field(default="regular")


class RulesConfig(BaseModel):
    """Rule directory and managed list configuration.

    Attributes:
        directory: Directory whose rule files populate the managed list.
        suffix: Rule file suffix.
        managed_key: Top-level key holding the managed list.
        default_rule_path: Value written to ``default-rule-path``.
        entry_indent: Spaces before the ``-`` of each managed list entry.
        disabled_entries: Stock entries commented out by ``network``.

    """

    model_config = ConfigDict(frozen=True)

    directory: str = Field(default=DEFAULT_RULES_DIR)
    suffix: str = Field(default=".rules")
    managed_key: str = Field(default="rule-files")
    default_rule_path: str = Field(default=DEFAULT_RULES_DIR)
    entry_indent: int = Field(default=2, ge=0, le=8)
    disabled_entries: tuple[str, ...] = Field(default=("suricata.rules",))

    @field_validator("suffix")
    @classmethod
    def _suffix_has_dot(cls, value: str) -> str:
        if not value.startswith("."):
            raise ValueError(f"suffix must start with '.', got {value!r}")
        return value


class RepairConfig(BaseModel):
    """Duplicate elimination and structural repair configuration.

    Attributes:
        dedup_tags: Section tags whose duplicate keys are eliminated.
        dedup_keys: Keys de-duplicated inside those sections.
        reindent_keys: Keys re-indented when found over-indented.

    """

    model_config = ConfigDict(frozen=True)

    dedup_tags: tuple[str, ...] = Field(default=("fast", "eve-log"))
    dedup_keys: tuple[str, ...] = Field(default=("enabled",))
    reindent_keys: tuple[str, ...] = Field(default=("file", "enabled", "append", "filetype"))


class NetworkConfig(BaseModel):
    """Defaults for the ``network`` command.

    Attributes:
        home_net: Protected network in CIDR notation (e.g. "192.168.1.0/24").
        interface: Capture interface written to ``af-packet`` entries.
        preserve_interfaces: ``af-packet`` entries never renamed.

    """

    model_config = ConfigDict(frozen=True)

    home_net: str | None = Field(default=None)
    interface: str | None = Field(default=None)
    preserve_interfaces: tuple[str, ...] = Field(default=("default",))


class PatcherConfig(BaseModel):
    """Main suricata-patcher configuration model.

    Attributes:
        suricata_yaml: Configuration document edited by default.
        backup_suffix: Suffix of the one-time pristine backup.
        validator: Validator section.
        outputs: Logging output section.
        rules: Rule list section.
        repair: Repair section.
        network: Network defaults section.

    """

    model_config = ConfigDict(frozen=True)

    suricata_yaml: str = Field(default=DEFAULT_SURICATA_YAML)
    backup_suffix: str = Field(default=".bak", min_length=1)
    validator: ValidatorConfig = Field(default_factory=ValidatorConfig)
    outputs: OutputsConfig = Field(default_factory=OutputsConfig)
    rules: RulesConfig = Field(default_factory=RulesConfig)
    repair: RepairConfig = Field(default_factory=RepairConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
