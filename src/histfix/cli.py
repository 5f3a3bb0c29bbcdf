"""Command-line interface for histfix.

Commands:
    fix   Repeatedly analyze a tree and apply rewrites mined from history.
    mine  Mine a history range and print what was learned.
"""

import logging
from pathlib import Path

import typer
from rich.markup import escape

from histfix import __version__
from histfix.cli_utils import (
    EXIT_CONFIG_ERROR,
    EXIT_ERROR,
    _error,
    _info,
    _setup_logging,
    _success,
    _validate_project_path,
    _warning,
    console,
    exit_code_for,
)
from histfix.core.config import EngineConfig, HistfixConfig, load_config
from histfix.core.exceptions import BackupError, ConfigError, ConfigValidationError, VcsError
from histfix.report import Reporter

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="histfix",
    help="Fix compiler diagnostics by replaying small rewrites mined from git history",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"histfix {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Histfix command group."""


def _load_config_or_exit(project_path: Path, config: str | None) -> HistfixConfig:
    """Load configuration, exiting with EXIT_CONFIG_ERROR on failure."""
    try:
        return load_config(project_path, Path(config) if config else None)
    except ConfigValidationError as e:
        _error(str(e))
        for err in e.errors:
            path = ".".join(str(x) for x in err.get("loc", ()))
            _error(f"  {path}: {err.get('msg', '')}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from e
    except ConfigError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from e


@app.command("fix")
def fix(
    old_ref: str = typer.Option(
        ...,
        "--old-ref",
        help="Exclusive start of the history range to mine",
    ),
    new_ref: str = typer.Option(
        "HEAD",
        "--new-ref",
        help="Inclusive end of the history range to mine",
    ),
    project: str = typer.Option(
        ".",
        "--project",
        "-p",
        help="Path to the source tree to fix",
    ),
    repo: str | None = typer.Option(
        None,
        "--repo",
        "-r",
        help="Path to the git repository to mine (defaults to the project)",
    ),
    config: str | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a configuration file (defaults to <project>/.histfix.yaml)",
    ),
    max_passes: int | None = typer.Option(
        None,
        "--max-passes",
        help="Stop after this many rewrite passes",
        min=1,
    ),
    restore_on_failure: bool = typer.Option(
        False,
        "--restore-on-failure",
        help="Restore every touched file if the run does not converge",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only log errors",
    ),
) -> None:
    """Apply history-mined rewrites until the analysis is clean.

    Examples:
        histfix fix --old-ref v1.0 --new-ref main -p path/to/crate

    """
    from histfix.engine import auto_correct

    _setup_logging(verbose, quiet)
    project_path = _validate_project_path(project)
    repo_path = _validate_project_path(repo) if repo else project_path
    histfix_config = _load_config_or_exit(project_path, config)
    if max_passes is not None:
        histfix_config = histfix_config.model_copy(
            update={"engine": EngineConfig(max_passes=max_passes)}
        )

    result = auto_correct(
        project_path,
        old_ref,
        new_ref,
        repository_root=repo_path,
        config=histfix_config,
        reporter=Reporter(console=console, short_id_len=histfix_config.mining.short_id_len),
    )

    if result.succeeded:
        if result.applied:
            _success(
                f"Converged after {result.passes} pass(es), "
                f"{len(result.applied)} rewrite(s) in {len(result.files_written)} file(s)"
            )
        raise typer.Exit(code=exit_code_for(result.outcome))

    if restore_on_failure and result.backups:
        try:
            result.restore_backups()
        except BackupError as e:
            _error(str(e))
            raise typer.Exit(code=EXIT_ERROR) from e
        _info("Restored all touched files")

    raise typer.Exit(code=exit_code_for(result.outcome))


@app.command("mine")
def mine(
    old_ref: str = typer.Option(
        ...,
        "--old-ref",
        help="Exclusive start of the history range to mine",
    ),
    new_ref: str = typer.Option(
        "HEAD",
        "--new-ref",
        help="Inclusive end of the history range to mine",
    ),
    project: str = typer.Option(
        ".",
        "--project",
        "-p",
        help="Path to the git repository to mine",
    ),
    config: str | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a configuration file (defaults to <project>/.histfix.yaml)",
    ),
    show_rewrites: bool = typer.Option(
        False,
        "--show-rewrites",
        "-s",
        help="List every mined rewrite with its origin commit",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only log errors",
    ),
) -> None:
    """Mine a history range and summarize the rewrites found.

    Examples:
        histfix mine --old-ref v1.0 --new-ref main --show-rewrites

    """
    from rich.table import Table

    from histfix.git.history import GitRepository, short_id
    from histfix.rewrite.extractor import collect_rewrites

    _setup_logging(verbose, quiet)
    project_path = _validate_project_path(project)
    histfix_config = _load_config_or_exit(project_path, config)
    mining = histfix_config.mining

    try:
        repository = GitRepository.open(project_path, timeout=mining.git_timeout)
        rewrites = collect_rewrites(repository, old_ref, new_ref, mining)
    except VcsError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_ERROR) from e

    stats = rewrites.stats
    table = Table(title=f"Mined {escape(old_ref)}..{escape(new_ref)}")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Commits", str(stats.commits))
    table.add_row("Source patches", str(stats.patches))
    table.add_row("Rewrites", str(len(rewrites)))
    table.add_row("Insertions discarded", str(stats.insertions))
    table.add_row("Refactors discarded", str(stats.refactors))
    table.add_row("Malformed hunks", str(stats.malformed))
    table.add_row("Untokenizable hunks", str(stats.untokenizable))
    console.print(table)

    for warning in stats.warnings:
        _warning(escape(warning))

    if show_rewrites:
        for rewrite, commit in rewrites.items():
            console.print(
                f"[cyan]{short_id(commit, mining.short_id_len)}[/cyan] "
                f"{escape(rewrite.describe())}"
            )


if __name__ == "__main__":
    app()
