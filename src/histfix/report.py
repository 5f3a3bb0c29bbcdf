"""Operator-facing report on standard error.

Silence means success: nothing beyond progress logging is printed for a
converged run. Applied rewrites are printed as they happen so that an
interrupted run still shows what changed; unresolved highlights are
printed once at the end of the pass that found them.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from histfix.git.history import short_id
from histfix.types import AppliedRewrite, RunOutcome, RunResult, UnresolvedHighlight, UnresolvedReason

__all__ = ["Reporter"]


class Reporter:
    """Writes the run report to a rich Console (stderr by default).

    Attributes:
        console: Destination console.
        short_id_len: Length of abbreviated commit ids.

    """

    def __init__(self, console: Console | None = None, short_id_len: int = 7) -> None:
        """Initialize with an optional console (a stderr console if None)."""
        self.console = console or Console(stderr=True)
        self.short_id_len = short_id_len

    def applied(self, applied: AppliedRewrite) -> None:
        """Report one applied rewrite with its score, origin and structure."""
        source = applied.source
        self.console.print(
            f"[green]Rewriting[/green] with score {source.score} rewrite from "
            f"[cyan]{short_id(source.commit, self.short_id_len)}[/cyan]: "
            f"{escape(source.rewrite.describe())}"
        )
        self.console.print(f"  at {escape(applied.highlight.describe())}")
        self.console.print(f"  {escape(repr(applied.replaced))} -> {escape(repr(applied.replacement))}")

    def unresolved(self, unresolved: list[UnresolvedHighlight]) -> None:
        """Report primary highlights that could not be rewritten."""
        for item in unresolved:
            location = escape(item.highlight.describe())
            if item.reason is UnresolvedReason.NO_APPLICABLE_REWRITE:
                detail = f" ({escape(item.highlight.error)})" if item.highlight.error else ""
                self.console.print(
                    f"[yellow]Found no applicable rewrites[/yellow] for {location}{detail}"
                )
                continue
            self.console.print(
                f"[yellow]Found multiple rewrites with score {item.score}[/yellow] for {location}:"
            )
            for text, source in item.candidates.items():
                self.console.print(
                    f"  {source.score} from {short_id(source.commit, self.short_id_len)}: "
                    f"{escape(repr(text))} ({escape(source.rewrite.describe())})"
                )

    def outcome(self, result: RunResult) -> None:
        """Summarize a run that did not converge."""
        if result.outcome is RunOutcome.CONVERGED:
            return
        if result.outcome is RunOutcome.ABORTED:
            self.console.print(f"[red]Error:[/red] {escape(str(result.error))}")
        else:
            self.console.print(
                f"[yellow]Stopped after {result.passes} pass(es):[/yellow] "
                f"{len(result.applied)} rewrite(s) applied, "
                f"{len(result.unresolved)} highlight(s) unresolved"
            )
        if result.backups:
            self.console.print("Backups kept for:")
            for file_name, backup in sorted(result.backups.items()):
                self.console.print(f"  {escape(file_name)} -> {backup.backup_path}")
