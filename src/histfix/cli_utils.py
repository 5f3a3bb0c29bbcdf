"""Shared CLI utilities for histfix.

This module contains exit codes, the console singleton, and helper functions
used by the CLI commands.
"""

import logging
import os
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from histfix.types import RunOutcome

# Exit codes following Unix conventions
EXIT_SUCCESS: int = 0
EXIT_ERROR: int = 1  # Aborted run or general error
EXIT_PARTIAL: int = 2  # Stopped with highlights left (unresolved or pass limit)
EXIT_CONFIG_ERROR: int = 3  # Configuration file missing, invalid or unreadable

# Environment override for the log level
LOG_LEVEL_ENV: str = "HISTFIX_LOG_LEVEL"

# TTY detection for Rich markup; the report goes to stderr
_is_tty = sys.stderr.isatty()

# Rich console for output
console = Console(stderr=True, force_terminal=_is_tty, no_color=not _is_tty)

# Module logger
logger = logging.getLogger(__name__)


def _error(message: str) -> None:
    """Display error message with red styling.

    Args:
        message: Error message to display.

    """
    console.print(f"[red]Error:[/red] {message}")


def _info(message: str) -> None:
    """Display info message with blue styling."""
    console.print(f"[blue]Info:[/blue] {message}")


def _success(message: str) -> None:
    """Display success message with green styling."""
    console.print(f"[green]✓[/green] {message}")


def _warning(message: str) -> None:
    """Display warning message with yellow styling."""
    console.print(f"[yellow]Warning:[/yellow] {message}")


def exit_code_for(outcome: RunOutcome) -> int:
    """Map a run outcome to the process exit code."""
    if outcome is RunOutcome.CONVERGED:
        return EXIT_SUCCESS
    if outcome is RunOutcome.ABORTED:
        return EXIT_ERROR
    return EXIT_PARTIAL


def _setup_logging(verbose: bool, quiet: bool) -> None:
    """Configure logging based on verbosity flags.

    Args:
        verbose: If True, set DEBUG level.
        quiet: If True, set ERROR level.

    Note:
        verbose takes precedence over quiet. The default level is INFO so
        that mining and pass progress are visible. HISTFIX_LOG_LEVEL
        overrides both flags.

    """
    env_level = os.environ.get(LOG_LEVEL_ENV, "").upper()
    if env_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        level = getattr(logging, env_level)
    elif verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.INFO

    # Clear any existing handlers to avoid duplicates
    logging.root.handlers.clear()

    # Create handler with explicit level (basicConfig doesn't set handler level)
    handler = RichHandler(console=console, rich_tracebacks=True, show_path=False)
    handler.setLevel(level)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
    )


def _validate_project_path(project: str) -> Path:
    """Validate and resolve project path.

    Args:
        project: Path to project directory.

    Returns:
        Resolved absolute Path.

    Raises:
        typer.Exit: If path doesn't exist or isn't a directory.

    """
    project_path = Path(project).resolve()

    if not project_path.exists():
        _error(f"Project directory not found: {project}")
        raise typer.Exit(code=EXIT_ERROR)

    if not project_path.is_dir():
        _error(f"Project path must be a directory, got file: {project}")
        raise typer.Exit(code=EXIT_ERROR)

    return project_path
