"""Fixed-point auto-correction loop.

Each pass collects highlights, picks a replacement for each one and writes
the edited files. The loop repeats until the analysis reports nothing
(converged), a pass cannot resolve every primary highlight (partially
resolved), the pass limit is reached, or an error aborts the run.

Rewrites are mined only once highlights exist, so a clean tree never
touches version control. Every file is backed up before its first edit and
the backups are only discarded once the run converges.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from histfix.backup import Backup
from histfix.core.config import EngineConfig, HistfixConfig
from histfix.core.exceptions import HistfixError
from histfix.git.history import GitRepository
from histfix.highlight.model import Highlight
from histfix.highlight.provider import CommandHighlightProvider, HighlightProvider
from histfix.report import Reporter
from histfix.rewrite.extractor import RewriteSet, collect_rewrites
from histfix.rewriter import FileRewriter, RewriterState
from histfix.selection import (
    AmbiguousSelection,
    ReplacementCache,
    UniqueSelection,
    select,
)
from histfix.types import (
    AppliedRewrite,
    RunOutcome,
    RunResult,
    UnresolvedHighlight,
    UnresolvedReason,
)

logger = logging.getLogger(__name__)

__all__ = ["AutoCorrector", "auto_correct"]

RewriteLoader = Callable[[], RewriteSet]


class AutoCorrector:
    """Runs rewrite passes over a source tree until a fixed point.

    Attributes:
        root: Tree the highlight provider analyzes; highlight file names are
            resolved against it.
        provider: Source of highlights, re-queried after every pass.
        config: Loop settings.
        reporter: Operator report sink.

    """

    def __init__(
        self,
        root: Path,
        provider: HighlightProvider,
        load_rewrites: RewriteLoader | RewriteSet,
        config: EngineConfig | None = None,
        reporter: Reporter | None = None,
    ) -> None:
        """Initialize the corrector.

        Args:
            root: Source tree root.
            provider: Highlight provider.
            load_rewrites: A ready RewriteSet, or a callable that mines one.
                The callable is invoked at most once, on the first pass that
                has highlights.
            config: Loop settings (defaults if None).
            reporter: Report sink (stderr if None).

        """
        self.root = root
        self.provider = provider
        self.config = config or EngineConfig()
        self.reporter = reporter or Reporter()
        if isinstance(load_rewrites, RewriteSet):
            self._rewrites: RewriteSet | None = load_rewrites
            self._load_rewrites: RewriteLoader | None = None
        else:
            self._rewrites = None
            self._load_rewrites = load_rewrites
        self._cache = ReplacementCache()

    @property
    def rewrites(self) -> RewriteSet:
        """The mined rewrites, loaded on first access.

        Raises:
            VcsError: If mining fails.

        """
        if self._rewrites is None:
            assert self._load_rewrites is not None
            self._rewrites = self._load_rewrites()
        return self._rewrites

    def run(self) -> RunResult:
        """Run passes until the tree converges or the loop has to stop.

        Errors never escape: they end the run as ABORTED with the error
        recorded and every backup kept.
        """
        result = RunResult()
        try:
            self._loop(result)
        except (HistfixError, OSError, UnicodeDecodeError) as e:
            logger.error("Auto-correction aborted: %s", e)
            result.outcome = RunOutcome.ABORTED
            result.error = e
        self.reporter.outcome(result)
        return result

    def _loop(self, result: RunResult) -> None:
        highlights = self.provider.collect_highlights(self.root)
        while True:
            if not highlights:
                for file_name, backup in list(result.backups.items()):
                    backup.disable()
                    del result.backups[file_name]
                result.unresolved = []
                result.outcome = RunOutcome.CONVERGED
                logger.info(
                    "Converged after %d pass(es) with %d rewrite(s)",
                    result.passes,
                    len(result.applied),
                )
                return

            max_passes = self.config.max_passes
            if max_passes is not None and result.passes >= max_passes:
                result.outcome = RunOutcome.PASS_LIMIT
                logger.warning("Stopping after pass limit of %d", max_passes)
                return

            result.passes += 1
            applied_before = len(result.applied)
            unresolved = self._run_pass(highlights, result)
            result.unresolved = unresolved

            if unresolved:
                self.reporter.unresolved(unresolved)
                result.outcome = RunOutcome.PARTIALLY_RESOLVED
                return
            if len(result.applied) == applied_before:
                # Only secondary highlights remained and none was rewritable
                logger.warning("Pass %d made no edits, stopping", result.passes)
                result.outcome = RunOutcome.PARTIALLY_RESOLVED
                return

            highlights = self.provider.collect_highlights(self.root)

    def _run_pass(self, highlights: list[Highlight], result: RunResult) -> list[UnresolvedHighlight]:
        """Apply one selection per highlight and persist the edited files.

        Returns:
            Unresolved primary highlights, in processing order.

        """
        rewrites = self.rewrites
        rewriters: dict[str, FileRewriter] = {}
        unresolved: list[UnresolvedHighlight] = []

        for highlight in sorted(highlights, key=lambda h: h.sort_key):
            rewriter = rewriters.get(highlight.file_name)
            if rewriter is None:
                path = self.root / highlight.file_name
                if highlight.file_name not in result.backups:
                    result.backups[highlight.file_name] = Backup.create(path)
                rewriter = FileRewriter.load(path)
                rewriters[highlight.file_name] = rewriter

            if not rewriter.can_apply(highlight.line_start):
                logger.debug("Deferring %s to the next pass", highlight.describe())
                continue

            selection = select(rewrites, highlight, self._cache)
            if isinstance(selection, UniqueSelection):
                source = selection.source
                replaced = rewriter.apply(source.span, selection.replacement)
                applied = AppliedRewrite(
                    pass_number=result.passes,
                    highlight=highlight,
                    replacement=selection.replacement,
                    replaced=replaced,
                    source=source,
                )
                result.applied.append(applied)
                self.reporter.applied(applied)
            elif not highlight.is_primary:
                continue
            elif isinstance(selection, AmbiguousSelection):
                unresolved.append(
                    UnresolvedHighlight(
                        highlight=highlight,
                        reason=UnresolvedReason.MULTIPLE_TIED_REWRITES,
                        score=selection.score,
                        candidates=selection.candidates,
                    )
                )
            else:
                unresolved.append(
                    UnresolvedHighlight(
                        highlight=highlight,
                        reason=UnresolvedReason.NO_APPLICABLE_REWRITE,
                    )
                )

        for file_name, rewriter in rewriters.items():
            if rewriter.state is RewriterState.EDITING:
                rewriter.persist()
                result.files_written.add(file_name)

        logger.info(
            "Pass %d: %d rewrite(s) applied, %d highlight(s) unresolved",
            result.passes,
            len(result.applied),
            len(unresolved),
        )
        return unresolved


def auto_correct(
    root: Path,
    old_ref: str,
    new_ref: str,
    *,
    repository_root: Path | None = None,
    config: HistfixConfig | None = None,
    provider: HighlightProvider | None = None,
    reporter: Reporter | None = None,
) -> RunResult:
    """Fix highlights in root using rewrites mined from old_ref..new_ref.

    Args:
        root: Source tree to fix.
        old_ref: Exclusive start of the history range.
        new_ref: Inclusive end of the history range.
        repository_root: Repository to mine (defaults to root).
        config: Full configuration (defaults if None).
        provider: Highlight provider (the configured command if None).
        reporter: Report sink (stderr if None).

    Returns:
        The run result. Opening the repository is deferred to the first
        pass with highlights, so its failures surface as an ABORTED result.

    """
    config = config or HistfixConfig()
    provider = provider or CommandHighlightProvider(config.highlights)
    reporter = reporter or Reporter(short_id_len=config.mining.short_id_len)
    repository_root = repository_root or root

    def load_rewrites() -> RewriteSet:
        repository = GitRepository.open(repository_root, timeout=config.mining.git_timeout)
        return collect_rewrites(repository, old_ref, new_ref, config.mining)

    corrector = AutoCorrector(
        root,
        provider,
        load_rewrites,
        config=config.engine,
        reporter=reporter,
    )
    return corrector.run()
