"""Pytest configuration and fixtures for suricata-patcher tests."""

from pathlib import Path

import pytest

from suricata_patcher.core.config import PatcherConfig
from suricata_patcher.yaml_patch import ValidationOutcome

SAMPLE_YAML = """\
%YAML 1.1
---

vars:
  address-groups:
    HOME_NET: "[192.168.0.0/16,10.0.0.0/8,172.16.0.0/12]"  # protected networks
    EXTERNAL_NET: "!$HOME_NET"

default-log-dir: /var/log/suricata/

outputs:
  # a line based alerts log similar to Snort's fast.log
  - fast:
      enabled: no
      filename: fast.log
      append: yes

  # Extensible Event Format (nicknamed EVE) event log in JSON format
  - eve-log:
      enabled: no
      filetype: regular #regular|syslog|unix_dgram|unix_stream|redis
      filename: eve.json
      xff:
        enabled: no
        mode: extra-data

  - stats:
      enabled: no

af-packet:
  - interface: eth0
    cluster-id: 99
    cluster-type: cluster_flow
  - interface: default

default-rule-path: /var/lib/suricata/rules

rule-files:
  - suricata.rules
"""


class ScriptedValidator:
    """Validator returning scripted outcomes and recording what it saw.

    Each call consumes the next result; the last one repeats. A bool result
    is turned into a plain ValidationOutcome.
    """

    def __init__(self, *results: bool | ValidationOutcome) -> None:
        self.results = list(results) or [True]
        self.calls: list[Path] = []
        self.seen: list[str] = []

    def validate(self, path: Path) -> ValidationOutcome:
        self.calls.append(path)
        self.seen.append(path.read_text(encoding="utf-8"))
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, ValidationOutcome):
            return result
        return ValidationOutcome(ok=result, returncode=0 if result else 1)


@pytest.fixture(autouse=True)
def reset_config_singleton():
    """Reset config singleton before and after each test."""
    from suricata_patcher.core.config import _reset_config

    _reset_config()
    yield
    _reset_config()


@pytest.fixture(autouse=True)
def isolated_config_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the default config location at a file that does not exist.

    Keeps a developer's ~/.suricata-patcher/config.yaml out of the tests.
    """
    from suricata_patcher.core.config.constants import CONFIG_PATH_ENV

    missing = tmp_path / "no-such-dir" / "config.yaml"
    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    monkeypatch.setattr("suricata_patcher.core.config.loaders.GLOBAL_CONFIG_PATH", missing)
    return missing


@pytest.fixture
def sample_yaml_text() -> str:
    """Representative suricata.yaml excerpt."""
    return SAMPLE_YAML


@pytest.fixture
def suricata_yaml(tmp_path: Path) -> Path:
    """Write the sample suricata.yaml into a temp directory."""
    path = tmp_path / "etc" / "suricata.yaml"
    path.parent.mkdir(parents=True)
    path.write_text(SAMPLE_YAML, encoding="utf-8")
    return path


@pytest.fixture
def rules_dir(tmp_path: Path) -> Path:
    """Rules directory with two rule files and unrelated files."""
    directory = tmp_path / "rules"
    directory.mkdir()
    (directory / "local.rules").write_text("# local\n")
    (directory / "emerging-all.rules").write_text("# et\n")
    (directory / "classification.config").write_text("# not a rule file\n")
    (directory / "archive").mkdir()
    (directory / "archive" / "old.rules").write_text("# nested, ignored\n")
    return directory


@pytest.fixture
def scripted_validator() -> type[ScriptedValidator]:
    """Factory for validators with scripted outcomes."""
    return ScriptedValidator


@pytest.fixture
def yaml_config(tmp_path: Path, rules_dir: Path) -> PatcherConfig:
    """Configuration using the PyYAML validator and the temp rules directory."""
    return PatcherConfig.model_validate(
        {
            "validator": {"kind": "yaml"},
            "rules": {"directory": str(rules_dir)},
        }
    )
