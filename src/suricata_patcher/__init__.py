"""suricata-patcher - structure-preserving suricata.yaml editor.

Edits are applied line by line so comments, ordering and formatting of the
rest of the file survive, and every edit is committed only after the
Suricata validator accepts the result.
"""

__version__ = "0.1.0"
