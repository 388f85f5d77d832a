"""Tests for the high-level suricata.yaml operations."""

import stat
from pathlib import Path

import pytest

from suricata_patcher.core.config import PatcherConfig, load_config
from suricata_patcher.core.exceptions import (
    EmptyRuleSetError,
    PatcherIOError,
    ValidationFailureError,
)
from suricata_patcher.operations import (
    TEST_RULES,
    clear_rule_list,
    configure_logging,
    create_test_rules,
    inspect_config,
    repair_config,
    sync_rule_list,
    update_network_settings,
    validate_config,
)

# =============================================================================
# update_network_settings
# =============================================================================


class TestNetworkSettings:
    """HOME_NET, interface and default-rule-path are rewritten in place."""

    def test_updates_existing_keys(self, suricata_yaml: Path, yaml_config: PatcherConfig) -> None:
        before = suricata_yaml.read_text().splitlines()

        report = update_network_settings(
            suricata_yaml,
            home_net="10.1.0.0/16",
            interface="wlan0",
            rule_path="/etc/suricata/rules",
            config=yaml_config,
        )

        lines = suricata_yaml.read_text().splitlines()
        assert report.changed
        assert report.missing == []
        assert report.disabled == ("suricata.rules",)
        assert len(lines) == len(before)
        assert lines[5] == '    HOME_NET: "[10.1.0.0/16]"  # protected networks'
        assert lines[30] == "  - interface: wlan0"
        assert lines[33] == "  - interface: default"
        assert lines[35] == "default-rule-path: /etc/suricata/rules"
        assert lines[38] == "  # - suricata.rules"
        assert suricata_yaml.with_name("suricata.yaml.bak").read_text() == "\n".join(before) + "\n"

    def test_bracketed_home_net_kept(self, suricata_yaml: Path, yaml_config: PatcherConfig) -> None:
        update_network_settings(suricata_yaml, home_net="[10.0.0.0/8,192.168.1.0/24]", config=yaml_config)
        assert '    HOME_NET: "[10.0.0.0/8,192.168.1.0/24]"  # protected networks' in (
            suricata_yaml.read_text().splitlines()
        )

    def test_missing_keys_reported_not_added(
        self, tmp_path: Path, yaml_config: PatcherConfig
    ) -> None:
        path = tmp_path / "suricata.yaml"
        path.write_text("outputs:\n  - fast:\n      enabled: yes\n")

        report = update_network_settings(
            path, home_net="10.0.0.0/8", interface="eth1", config=yaml_config
        )

        assert report.missing == ["HOME_NET", "interface.interface", "default-rule-path"]
        assert not report.changed
        assert path.read_text() == "outputs:\n  - fast:\n      enabled: yes\n"

    def test_network_defaults_from_config(self, suricata_yaml: Path) -> None:
        config = load_config(
            {
                "validator": {"kind": "yaml"},
                "network": {"home_net": "172.16.0.0/12", "interface": "ens3"},
            }
        )
        update_network_settings(suricata_yaml, config=config)
        text = suricata_yaml.read_text()
        assert '"[172.16.0.0/12]"' in text
        assert "  - interface: ens3" in text

    def test_uses_config_singleton(self, suricata_yaml: Path) -> None:
        """Without an explicit config the loaded singleton is used."""
        load_config({"validator": {"kind": "yaml"}, "suricata_yaml": str(suricata_yaml)})
        report = update_network_settings(interface="eth7")
        assert report.changed
        assert "  - interface: eth7" in suricata_yaml.read_text()


# =============================================================================
# configure_logging
# =============================================================================


class TestConfigureLogging:
    """fast and eve-log outputs are enabled and pointed at the log dir."""

    def test_enables_outputs(self, suricata_yaml: Path, yaml_config: PatcherConfig) -> None:
        report = configure_logging(suricata_yaml, config=yaml_config)

        lines = suricata_yaml.read_text().splitlines()
        assert report.changed
        assert lines[13] == "      enabled: yes"
        assert lines[14] == "      filename: /var/log/suricata/fast.log"
        assert lines[19] == "      enabled: yes"
        assert lines[20] == "      filetype: regular #regular|syslog|unix_dgram|unix_stream|redis"
        assert lines[21] == "      filename: /var/log/suricata/eve.json"
        # nested xff block and the stats output are untouched
        assert lines[23] == "        enabled: no"
        assert lines[27] == "      enabled: no"

    def test_idempotent(self, suricata_yaml: Path, yaml_config: PatcherConfig) -> None:
        configure_logging(suricata_yaml, config=yaml_config)
        first = suricata_yaml.read_text()
        report = configure_logging(suricata_yaml, config=yaml_config)
        assert not report.changed
        assert suricata_yaml.read_text() == first

    def test_duplicate_enabled_removed(self, tmp_path: Path, yaml_config: PatcherConfig) -> None:
        path = tmp_path / "suricata.yaml"
        path.write_text(
            "outputs:\n"
            "  - fast:\n"
            "      enabled: no\n"
            "      filename: fast.log\n"
            "      enabled: yes\n"
        )
        report = configure_logging(path, config=yaml_config)

        assert report.duplicates_removed == 1
        assert path.read_text() == (
            "outputs:\n"
            "  - fast:\n"
            "      enabled: yes\n"
            "      filename: /var/log/suricata/fast.log\n"
        )

    def test_commented_opener_reenabled(self, tmp_path: Path, yaml_config: PatcherConfig) -> None:
        path = tmp_path / "suricata.yaml"
        path.write_text(
            "outputs:\n"
            "  # - fast:\n"
            "  #     enabled: yes\n"
            "  - eve-log:\n"
            "      enabled: no\n"
        )
        report = configure_logging(path, config=yaml_config)

        assert report.uncommented == ("fast",)
        assert "fast.enabled" in report.missing
        assert path.read_text().splitlines()[1] == "  - fast:"

    def test_custom_log_paths(self, suricata_yaml: Path) -> None:
        config = PatcherConfig.model_validate(
            {
                "validator": {"kind": "yaml"},
                "outputs": {"fast_log": "/data/fast.log", "eve_log": "/data/eve.json"},
            }
        )
        configure_logging(suricata_yaml, config=config)
        text = suricata_yaml.read_text()
        assert "      filename: /data/fast.log" in text
        assert "      filename: /data/eve.json" in text


# =============================================================================
# sync_rule_list
# =============================================================================


class TestSyncRuleList:
    """The managed list mirrors the rules directory."""

    def test_sync(self, suricata_yaml: Path, rules_dir: Path, yaml_config: PatcherConfig) -> None:
        report = sync_rule_list(suricata_yaml, rules_dir, config=yaml_config)

        assert report.sync is not None
        assert report.sync.entries == ("emerging-all.rules", "local.rules")
        assert suricata_yaml.read_text().endswith(
            "rule-files:\n  - emerging-all.rules\n  - local.rules\n"
        )

    def test_rules_dir_from_config(self, suricata_yaml: Path, yaml_config: PatcherConfig) -> None:
        report = sync_rule_list(suricata_yaml, config=yaml_config)
        assert report.sync is not None
        assert report.sync.written == 2

    def test_empty_directory_touches_nothing(
        self, suricata_yaml: Path, tmp_path: Path, yaml_config: PatcherConfig
    ) -> None:
        empty = tmp_path / "empty"
        empty.mkdir()
        original = suricata_yaml.read_bytes()

        with pytest.raises(EmptyRuleSetError):
            sync_rule_list(suricata_yaml, empty, config=yaml_config)

        assert suricata_yaml.read_bytes() == original
        assert not suricata_yaml.with_name("suricata.yaml.bak").exists()

    def test_rejected_sync_rolls_back(
        self, suricata_yaml: Path, rules_dir: Path, yaml_config: PatcherConfig, scripted_validator
    ) -> None:
        original = suricata_yaml.read_bytes()
        with pytest.raises(ValidationFailureError):
            sync_rule_list(
                suricata_yaml, rules_dir, config=yaml_config, validator=scripted_validator(False)
            )
        assert suricata_yaml.read_bytes() == original


# =============================================================================
# clear_rule_list
# =============================================================================

CLEARABLE_YAML = """\
vars:
  address-groups:
    HOME_NET: "[10.0.0.0/8]"
    #HOME_NET: "[192.168.0.0/16]"
    # HOME_NET: "[172.16.0.0/12]"

rule-files:
  - a.rules
  # local additions
  - b.rules

classification-file: /etc/suricata/classification.config
rule-files:
- c.rules
"""


class TestClearRuleList:
    """Every rule-files block is emptied so no rules are applied."""

    def test_clears_every_block(self, tmp_path: Path, yaml_config: PatcherConfig) -> None:
        path = tmp_path / "suricata.yaml"
        path.write_text(CLEARABLE_YAML)

        report = clear_rule_list(path, config=yaml_config)

        assert report.changed
        assert report.sync is not None
        assert report.sync.removed == 3
        assert report.comments_removed == 2
        assert path.read_text() == (
            "vars:\n"
            "  address-groups:\n"
            '    HOME_NET: "[10.0.0.0/8]"\n'
            "\n"
            "rule-files:\n"
            "  # local additions\n"
            "\n"
            "classification-file: /etc/suricata/classification.config\n"
            "rule-files:\n"
        )
        assert path.with_name("suricata.yaml.bak").read_text() == CLEARABLE_YAML

    def test_keep_commented_home_net(self, tmp_path: Path, yaml_config: PatcherConfig) -> None:
        path = tmp_path / "suricata.yaml"
        path.write_text(CLEARABLE_YAML)

        report = clear_rule_list(path, drop_commented_home_net=False, config=yaml_config)

        assert report.comments_removed == 0
        assert '    #HOME_NET: "[192.168.0.0/16]"' in path.read_text().splitlines()
        assert inspect_config(path, config=yaml_config).rule_entries == []

    def test_idempotent(self, suricata_yaml: Path, yaml_config: PatcherConfig) -> None:
        first = clear_rule_list(suricata_yaml, config=yaml_config)
        assert first.changed
        assert suricata_yaml.read_text().endswith("rule-files:\n")

        second = clear_rule_list(suricata_yaml, config=yaml_config)
        assert not second.changed
        assert second.sync is not None
        assert second.sync.removed == 0

    def test_rejected_clear_rolls_back(
        self, suricata_yaml: Path, yaml_config: PatcherConfig, scripted_validator
    ) -> None:
        original = suricata_yaml.read_bytes()
        with pytest.raises(ValidationFailureError):
            clear_rule_list(suricata_yaml, config=yaml_config, validator=scripted_validator(False))
        assert suricata_yaml.read_bytes() == original


# =============================================================================
# Line terminators
# =============================================================================


class TestLineTerminators:
    """Edits keep the file's CRLF terminators and control characters."""

    def test_crlf_file_stays_crlf(self, suricata_yaml: Path, yaml_config: PatcherConfig) -> None:
        suricata_yaml.write_bytes(suricata_yaml.read_bytes().replace(b"\n", b"\r\n"))

        configure_logging(suricata_yaml, config=yaml_config)

        raw = suricata_yaml.read_bytes()
        assert raw.count(b"\r\n") == raw.count(b"\n")
        assert b"      enabled: yes\r\n" in raw

    def test_form_feed_survives_edit(
        self, tmp_path: Path, yaml_config: PatcherConfig, scripted_validator
    ) -> None:
        path = tmp_path / "suricata.yaml"
        path.write_text("vars:\n  # note\x0cpage\n  HOME_NET: x\n")

        update_network_settings(
            path,
            home_net="10.0.0.0/8",
            rule_path="",
            config=yaml_config,
            validator=scripted_validator(True),
        )

        assert path.read_text() == 'vars:\n  # note\x0cpage\n  HOME_NET: "[10.0.0.0/8]"\n'


# =============================================================================
# repair_config / validate_config
# =============================================================================


class TestRepairAndValidate:
    """Repair runs dedupe and structural fixes; validate only reads."""

    def test_repair(self, tmp_path: Path, yaml_config: PatcherConfig) -> None:
        path = tmp_path / "suricata.yaml"
        path.write_text(
            "outputs:\n"
            "  - fast:\n"
            "      enabled: yes\n"
            "      enabled: no   \n"
            "      filename:: fast.log\n"
        )
        report = repair_config(path, config=yaml_config)

        assert report.duplicates_removed == 1
        assert report.repair is not None
        assert report.repair.applied == ["separator_collapse"]
        assert path.read_text() == (
            "outputs:\n  - fast:\n      enabled: yes\n      filename: fast.log\n"
        )

    def test_repair_clean_file_is_noop(self, suricata_yaml: Path, yaml_config: PatcherConfig) -> None:
        report = repair_config(suricata_yaml, config=yaml_config)
        assert not report.changed

    def test_validate_valid(self, suricata_yaml: Path, yaml_config: PatcherConfig) -> None:
        assert validate_config(suricata_yaml, config=yaml_config).ok

    def test_validate_invalid(self, tmp_path: Path, yaml_config: PatcherConfig) -> None:
        path = tmp_path / "suricata.yaml"
        path.write_text("outputs:\n  - fast:\n      enabled: yes\n      filename: x\n         append: yes\n")
        outcome = validate_config(path, config=yaml_config)
        assert not outcome.ok
        assert outcome.line_number == 5
        assert not path.with_name("suricata.yaml.bak").exists()

    def test_validate_missing_file(self, tmp_path: Path, yaml_config: PatcherConfig) -> None:
        with pytest.raises(PatcherIOError):
            validate_config(tmp_path / "missing.yaml", config=yaml_config)


# =============================================================================
# inspect_config / create_test_rules
# =============================================================================


class TestInspect:
    """inspect_config reports without writing."""

    def test_sample(self, suricata_yaml: Path, yaml_config: PatcherConfig) -> None:
        original = suricata_yaml.read_bytes()
        inspection = inspect_config(suricata_yaml, config=yaml_config)

        assert inspection.rule_entries == [("enabled", "suricata.rules")]
        assert inspection.outputs == {"fast": "no", "eve-log": "no"}
        assert inspection.interfaces == ["eth0", "default"]
        assert inspection.home_net == "[192.168.0.0/16,10.0.0.0/8,172.16.0.0/12]"
        assert inspection.default_rule_path == "/var/lib/suricata/rules"
        assert inspection.pending_duplicates == 0
        assert inspection.pending_fixes == []
        assert inspection.ambiguities == []
        assert suricata_yaml.read_bytes() == original
        assert not suricata_yaml.with_name("suricata.yaml.bak").exists()

    def test_pending_problems(self, tmp_path: Path, yaml_config: PatcherConfig) -> None:
        path = tmp_path / "suricata.yaml"
        path.write_text(
            "outputs:\n"
            "    - fast:\n"
            "        enabled: yes\n"
            "        enabled: no\n"
            "  filename: fast.log \n"
        )
        inspection = inspect_config(path, config=yaml_config)

        assert inspection.pending_duplicates == 1
        assert inspection.pending_fixes == ["trailing_whitespace"]
        assert [a.line_number for a in inspection.ambiguities] == [5]
        assert inspection.outputs == {"fast": "yes"}


class TestCreateTestRules:
    """The stock IDS alerting test rules."""

    def test_creates_file(self, tmp_path: Path, yaml_config: PatcherConfig) -> None:
        directory = tmp_path / "new-rules"
        path = create_test_rules(directory, config=yaml_config)

        assert path == directory / "test.rules"
        assert path.read_text() == TEST_RULES
        assert "sid:2100498" in TEST_RULES
        assert "sid:1000001" in TEST_RULES
        assert "sid:1000002" in TEST_RULES
        assert stat.S_IMODE(path.stat().st_mode) == 0o644

    def test_keep_existing(self, rules_dir: Path, yaml_config: PatcherConfig) -> None:
        existing = rules_dir / "test.rules"
        existing.write_text("# mine\n")
        create_test_rules(rules_dir, overwrite=False, config=yaml_config)
        assert existing.read_text() == "# mine\n"

    def test_default_directory_from_config(
        self, rules_dir: Path, yaml_config: PatcherConfig
    ) -> None:
        assert create_test_rules(config=yaml_config) == rules_dir / "test.rules"
