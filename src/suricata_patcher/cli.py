"""Typer CLI entry point for suricata-patcher.

This module only parses arguments, renders results and maps errors to exit
codes. All editing logic lives in suricata_patcher.operations.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.table import Table

from suricata_patcher import __version__
from suricata_patcher.cli_utils import (
    EXIT_CONFIG_ERROR,
    EXIT_ERROR,
    EXIT_SUCCESS,
    EXIT_WARNING,
    _error,
    _info,
    _setup_logging,
    _success,
    _validate_config_file,
    _warning,
    console,
)
from suricata_patcher.core.config import PatcherConfig, load_config_file
from suricata_patcher.core.exceptions import (
    ConfigError,
    EmptyRuleSetError,
    PatcherError,
    ValidationFailureError,
)
from suricata_patcher.operations import (
    EditReport,
    clear_rule_list,
    configure_logging,
    create_test_rules,
    inspect_config,
    repair_config,
    sync_rule_list,
    update_network_settings,
    validate_config,
)
from suricata_patcher.yaml_patch import ValidationOutcome

# Module logger
logger = logging.getLogger(__name__)


app = typer.Typer(
    name="suricata-patcher",
    help="Structure-preserving editor for suricata.yaml with validation and rollback",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"suricata-patcher {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Structure-preserving editor for suricata.yaml with validation and rollback."""
    if ctx.invoked_subcommand is None:
        raise typer.Exit()


# ============================================================================
# Helpers
# ============================================================================


def _prepare(
    config_path: str | None, file: str | None, verbose: bool, quiet: bool
) -> tuple[PatcherConfig, Path]:
    """Set up logging, load configuration and resolve the target file.

    Raises:
        typer.Exit: On configuration errors or a missing target file.

    """
    _setup_logging(verbose, quiet)
    try:
        config = load_config_file(config_path)
    except ConfigError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None
    target = _validate_config_file(file if file is not None else config.suricata_yaml)
    logger.debug("Target configuration: %s", target)
    return config, target


def _show_outcome(outcome: ValidationOutcome) -> None:
    """Print the failing line and its surrounding context."""
    if outcome.line_number is not None:
        console.print(f"  Failing line: {outcome.line_number}")
    for number, text in outcome.context:
        marker = ">" if number == outcome.line_number else " "
        console.print(f"  {marker} {number:>5} | {text}", markup=False, highlight=False)
    if outcome.output and not outcome.context:
        for line in outcome.output.splitlines()[-5:]:
            console.print(f"    {line}", markup=False, highlight=False)


@contextmanager
def _command_errors(verbose: bool) -> Iterator[None]:
    """Map PatcherError subclasses to messages and exit codes."""
    try:
        yield
    except typer.Exit:
        raise
    except ConfigError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None
    except EmptyRuleSetError as e:
        _warning(f"{e}; rule-files list not updated")
        raise typer.Exit(code=EXIT_WARNING) from None
    except ValidationFailureError as e:
        _error(str(e))
        if e.outcome is not None:
            _show_outcome(e.outcome)
        raise typer.Exit(code=EXIT_ERROR) from None
    except PatcherError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_ERROR) from None
    except Exception as e:
        _error(f"Unexpected error: {e}")
        if verbose:
            console.print_exception()
        raise typer.Exit(code=EXIT_ERROR) from None


def _report_edit(report: EditReport, target: Path) -> None:
    """Print the common tail of every editing command."""
    for key in report.missing:
        _warning(f"'{key}' not present in {target.name}; left unchanged")
    if report.gate.backup is not None:
        _info(f"Backup created: {report.gate.backup}")
    if report.gate.repaired:
        _warning("Validator rejected the first attempt; repaired and re-validated")
    if report.changed:
        _success(f"Updated {target}")
    else:
        _info(f"{target} already up to date")


_FILE_HELP = "suricata.yaml to edit (defaults to suricata_yaml from config)"
_CONFIG_HELP = "Path to patcher config file (defaults to ~/.suricata-patcher/config.yaml)"


# ============================================================================
# Commands
# ============================================================================


@app.command()
def network(
    home_net: str | None = typer.Option(
        None,
        "--home-net",
        "-n",
        help="Protected network in CIDR notation, e.g. 192.168.1.0/24",
    ),
    interface: str | None = typer.Option(
        None,
        "--interface",
        "-i",
        help="Capture interface for af-packet entries",
    ),
    rule_path: str | None = typer.Option(
        None,
        "--rule-path",
        help="Value for default-rule-path",
    ),
    file: str | None = typer.Option(None, "--file", "-f", help=_FILE_HELP),
    config: str | None = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show warnings and errors"),
) -> None:
    """Set HOME_NET, the capture interface and default-rule-path."""
    cfg, target = _prepare(config, file, verbose, quiet)
    with _command_errors(verbose):
        report = update_network_settings(
            target,
            home_net=home_net,
            interface=interface,
            rule_path=rule_path,
            config=cfg,
        )
        for rewrite in report.rewrites:
            if rewrite.changed:
                name = f"{rewrite.tag}.{rewrite.key}" if rewrite.tag else rewrite.key
                _info(f"Set {name} ({len(rewrite.changed)} line(s))")
        for name in report.disabled:
            _info(f"Disabled rule entry {name}")
        _report_edit(report, target)
    raise typer.Exit(code=EXIT_SUCCESS)


@app.command("logging")
def logging_command(
    file: str | None = typer.Option(None, "--file", "-f", help=_FILE_HELP),
    config: str | None = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show warnings and errors"),
) -> None:
    """Enable the fast and eve-log outputs."""
    cfg, target = _prepare(config, file, verbose, quiet)
    with _command_errors(verbose):
        report = configure_logging(target, config=cfg)
        for name in report.uncommented:
            _info(f"Re-enabled '{name}:'")
        if report.duplicates_removed:
            _info(f"Removed {report.duplicates_removed} duplicate key line(s)")
        _report_edit(report, target)
    raise typer.Exit(code=EXIT_SUCCESS)


@app.command("sync-rules")
def sync_rules(
    rules_dir: str | None = typer.Option(
        None,
        "--rules-dir",
        "-r",
        help="Rules directory (defaults to rules.directory from config)",
    ),
    file: str | None = typer.Option(None, "--file", "-f", help=_FILE_HELP),
    config: str | None = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show warnings and errors"),
) -> None:
    """Regenerate the rule-files list from the rules directory."""
    cfg, target = _prepare(config, file, verbose, quiet)
    directory = Path(rules_dir).expanduser() if rules_dir is not None else None
    with _command_errors(verbose):
        report = sync_rule_list(target, directory, config=cfg)
        sync = report.sync
        if sync is not None:
            if sync.appended:
                _warning(f"'{cfg.rules.managed_key}:' was missing; appended at end of file")
            _info(f"{sync.written} rule file(s): {', '.join(sync.entries)}")
        _report_edit(report, target)
    raise typer.Exit(code=EXIT_SUCCESS)


@app.command("clear-rules")
def clear_rules(
    keep_comments: bool = typer.Option(
        False,
        "--keep-comments",
        help="Leave commented-out HOME_NET lines in place",
    ),
    file: str | None = typer.Option(None, "--file", "-f", help=_FILE_HELP),
    config: str | None = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show warnings and errors"),
) -> None:
    """Empty the rule-files list so no rules are applied."""
    cfg, target = _prepare(config, file, verbose, quiet)
    with _command_errors(verbose):
        report = clear_rule_list(target, drop_commented_home_net=not keep_comments, config=cfg)
        if report.sync is not None:
            _info(f"Removed {report.sync.removed} rule file entry(ies)")
        if report.comments_removed:
            _info(f"Removed {report.comments_removed} commented HOME_NET line(s)")
        _report_edit(report, target)
    raise typer.Exit(code=EXIT_SUCCESS)


@app.command()
def repair(
    file: str | None = typer.Option(None, "--file", "-f", help=_FILE_HELP),
    config: str | None = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show warnings and errors"),
) -> None:
    """Remove duplicate keys and fix structural damage."""
    cfg, target = _prepare(config, file, verbose, quiet)
    with _command_errors(verbose):
        report = repair_config(target, config=cfg)
        if report.duplicates_removed:
            _info(f"Removed {report.duplicates_removed} duplicate key line(s)")
        if report.repair is not None and report.repair.fixed:
            _info(f"Applied fixes: {', '.join(report.repair.applied)}")
        _report_edit(report, target)
    raise typer.Exit(code=EXIT_SUCCESS)


@app.command()
def validate(
    file: str | None = typer.Option(None, "--file", "-f", help=_FILE_HELP),
    config: str | None = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show warnings and errors"),
) -> None:
    """Run the validator against the file without changing it."""
    cfg, target = _prepare(config, file, verbose, quiet)
    with _command_errors(verbose):
        outcome = validate_config(target, config=cfg)
    if not outcome.ok:
        _error(f"{target} is {outcome.describe()}")
        _show_outcome(outcome)
        raise typer.Exit(code=EXIT_ERROR)
    _success(f"{target} is valid")
    raise typer.Exit(code=EXIT_SUCCESS)


@app.command()
def inspect(
    file: str | None = typer.Option(None, "--file", "-f", help=_FILE_HELP),
    config: str | None = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show warnings and errors"),
) -> None:
    """Show rule entries, outputs and network settings of the file."""
    cfg, target = _prepare(config, file, verbose, quiet)
    with _command_errors(verbose):
        inspection = inspect_config(target, config=cfg)

    table = Table(title=f"{cfg.rules.managed_key} ({target.name})")
    table.add_column("Rule file", style="cyan")
    table.add_column("State")
    for state, name in inspection.rule_entries:
        style = "green" if state == "enabled" else "dim"
        table.add_row(name, f"[{style}]{state}[/{style}]")
    console.print(table)

    console.print(f"  HOME_NET: {inspection.home_net or '-'}", markup=False)
    console.print(f"  default-rule-path: {inspection.default_rule_path or '-'}", markup=False)
    console.print(f"  af-packet interfaces: {', '.join(inspection.interfaces) or '-'}")
    for tag in ("fast", "eve-log"):
        if tag in inspection.outputs:
            console.print(f"  output {tag}: enabled={inspection.outputs[tag] or '-'}")
        else:
            console.print(f"  output {tag}: [yellow]not configured[/yellow]")

    warnings = False
    if inspection.pending_duplicates:
        _warning(f"{inspection.pending_duplicates} duplicate key line(s); run 'repair'")
        warnings = True
    if inspection.pending_fixes:
        _warning(f"Structural issues ({', '.join(inspection.pending_fixes)}); run 'repair'")
        warnings = True
    for ambiguity in inspection.ambiguities:
        _warning(f"Line {ambiguity.line_number}: {ambiguity.reason}")
        warnings = True
    raise typer.Exit(code=EXIT_WARNING if warnings else EXIT_SUCCESS)


@app.command("test-rules")
def test_rules_command(
    rules_dir: str | None = typer.Option(
        None,
        "--rules-dir",
        "-r",
        help="Rules directory (defaults to rules.directory from config)",
    ),
    keep: bool = typer.Option(
        False,
        "--keep",
        help="Leave an existing test.rules untouched",
    ),
    config: str | None = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show warnings and errors"),
) -> None:
    """Write test.rules with rules that trigger on testmynids.org traffic."""
    _setup_logging(verbose, quiet)
    try:
        cfg = load_config_file(config)
    except ConfigError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None
    directory = Path(rules_dir).expanduser() if rules_dir is not None else None
    with _command_errors(verbose):
        path = create_test_rules(directory, overwrite=not keep, config=cfg)
    _success(f"Test rules at {path}")
    _info("Run 'sync-rules' to add it to the rule-files list")
    raise typer.Exit(code=EXIT_SUCCESS)


if __name__ == "__main__":
    app()
