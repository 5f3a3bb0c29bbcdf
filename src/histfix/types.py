"""Result types shared by the orchestrator, the reporter and the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from histfix.backup import Backup
from histfix.highlight.model import Highlight
from histfix.selection import ReplacementSource

__all__ = [
    "RunOutcome",
    "UnresolvedReason",
    "AppliedRewrite",
    "UnresolvedHighlight",
    "RunResult",
]


class RunOutcome(str, Enum):
    """How a run ended - the CLI maps this to an exit code.

    Attributes:
        CONVERGED: No highlights remain; backups were disabled.
        PARTIALLY_RESOLVED: A pass left primary highlights unresolved (or made
            no progress); backups were kept.
        PASS_LIMIT: The configured pass limit was reached; backups were kept.
        ABORTED: An error stopped the run; backups were kept.

    """

    CONVERGED = "converged"
    PARTIALLY_RESOLVED = "partially_resolved"
    PASS_LIMIT = "pass_limit"
    ABORTED = "aborted"


class UnresolvedReason(str, Enum):
    """Why a primary highlight could not be rewritten."""

    NO_APPLICABLE_REWRITE = "no_applicable_rewrite"
    MULTIPLE_TIED_REWRITES = "multiple_tied_rewrites"


@dataclass(frozen=True)
class AppliedRewrite:
    """A replacement that was written into a file."""

    pass_number: int
    highlight: Highlight
    replacement: str
    replaced: str
    source: ReplacementSource


@dataclass(frozen=True)
class UnresolvedHighlight:
    """A primary highlight left unrewritten in a pass.

    ``score`` and ``candidates`` are only set for tied rewrites.
    """

    highlight: Highlight
    reason: UnresolvedReason
    score: int | None = None
    candidates: dict[str, ReplacementSource] = field(default_factory=dict)


@dataclass
class RunResult:
    """Everything a caller needs after a run.

    Attributes:
        outcome: Terminal state of the run.
        passes: Number of rewrite passes performed.
        applied: Every applied rewrite, in order.
        unresolved: Unresolved primary highlights of the final pass.
        files_written: Files persisted at least once.
        backups: Backups still able to restore files (empty after a
            converged run).
        error: The error that aborted the run, if any.

    """

    outcome: RunOutcome = RunOutcome.CONVERGED
    passes: int = 0
    applied: list[AppliedRewrite] = field(default_factory=list)
    unresolved: list[UnresolvedHighlight] = field(default_factory=list)
    files_written: set[str] = field(default_factory=set)
    backups: dict[str, Backup] = field(default_factory=dict)
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        """True if the run converged."""
        return self.outcome is RunOutcome.CONVERGED

    def restore_backups(self) -> None:
        """Restore every file touched in the run to its pre-run content.

        Raises:
            BackupError: If a file cannot be restored.

        """
        for backup in self.backups.values():
            backup.restore()
        self.backups.clear()
