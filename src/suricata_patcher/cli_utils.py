"""Shared CLI helpers: console output, logging setup, exit codes."""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_WARNING = 3

# Rich console for user-facing output; log records go to stderr
console = Console()
_log_console = Console(stderr=True)


def _error(message: str) -> None:
    """Print an error message in red."""
    console.print(f"[red]Error:[/red] {message}")


def _warning(message: str) -> None:
    """Print a warning message in yellow."""
    console.print(f"[yellow]Warning:[/yellow] {message}")


def _success(message: str) -> None:
    """Print a success message in green."""
    console.print(f"[green]✓[/green] {message}")


def _info(message: str) -> None:
    """Print a dim informational message."""
    console.print(f"[dim]{message}[/dim]")


def _setup_logging(verbose: bool, quiet: bool) -> None:
    """Configure the root logger.

    --verbose selects DEBUG, --quiet WARNING, the default INFO. When both
    are given, verbose wins.

    Args:
        verbose: Enable debug output.
        quiet: Only show warnings and errors.

    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    root = logging.getLogger()
    if not any(isinstance(handler, RichHandler) for handler in root.handlers):
        handler = RichHandler(console=_log_console, show_path=False, show_time=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
    root.setLevel(level)


def _validate_config_file(path: str) -> Path:
    """Resolve and check the suricata.yaml path given on the command line.

    Args:
        path: Path string (``~`` is expanded).

    Returns:
        Resolved path.

    Raises:
        typer.Exit: If the path does not exist or is not a file.

    """
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists():
        _error(f"Configuration file not found: {resolved}")
        raise typer.Exit(code=EXIT_ERROR)
    if not resolved.is_file():
        _error(f"Not a file: {resolved}")
        raise typer.Exit(code=EXIT_ERROR)
    return resolved
