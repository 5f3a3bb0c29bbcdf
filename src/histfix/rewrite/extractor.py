"""Rewrite extraction: turn mined hunks into a deduplicated rewrite set."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator

from histfix.core.config import MiningConfig
from histfix.core.exceptions import TokenizeError
from histfix.git.history import GitRepository, Hunk, short_id
from histfix.rewrite.mining import MiningStats, collect_rewritable_hunks
from histfix.rewrite.model import Rewrite

logger = logging.getLogger(__name__)

__all__ = ["RewriteSet", "extract", "build_rewrite_set", "collect_rewrites"]


def extract(hunk: Hunk) -> Rewrite | None:
    """Build a Rewrite from a rewritable hunk.

    Returns None for insertion-equivalent hunks.

    Raises:
        TokenizeError: If either side of the hunk cannot be tokenized.

    """
    old_lines = hunk.lines_in_range(0, hunk.old_lines)
    new_lines = hunk.lines_in_range(hunk.old_lines, hunk.old_lines + hunk.new_lines)
    return Rewrite.try_new(old_lines, new_lines)


class RewriteSet:
    """Immutable mapping from each distinct Rewrite to its origin commit.

    When several commits produce the same rewrite, the most recent one (the
    first seen in the newest-first walk) is recorded. Iteration follows
    insertion order, so rewrites from newer commits come first.

    Attributes:
        stats: Counters collected while mining and extracting.

    """

    def __init__(self, rewrites: dict[Rewrite, str], stats: MiningStats | None = None) -> None:
        """Wrap an already-deduplicated mapping."""
        self._rewrites = dict(rewrites)
        self.stats = stats or MiningStats()

    def __len__(self) -> int:
        return len(self._rewrites)

    def __iter__(self) -> Iterator[Rewrite]:
        return iter(self._rewrites)

    def __contains__(self, rewrite: object) -> bool:
        return rewrite in self._rewrites

    def items(self) -> Iterable[tuple[Rewrite, str]]:
        """Iterate (rewrite, origin commit) pairs, newest commit first."""
        return self._rewrites.items()

    def origin(self, rewrite: Rewrite) -> str:
        """Return the commit a rewrite was recorded from."""
        return self._rewrites[rewrite]


def build_rewrite_set(
    hunks_with_commits: Iterable[tuple[Hunk, str]],
    stats: MiningStats | None = None,
) -> RewriteSet:
    """Extract and deduplicate rewrites from (hunk, commit) pairs.

    Pairs must be ordered newest commit first; the first commit seen for a
    rewrite becomes its origin. Hunks that fail to tokenize are counted and
    skipped.
    """
    stats = stats or MiningStats()
    rewrites: dict[Rewrite, str] = {}
    for hunk, commit in hunks_with_commits:
        try:
            rewrite = extract(hunk)
        except TokenizeError as e:
            logger.debug("Skipping hunk from %s: %s", short_id(commit), e)
            stats.untokenizable += 1
            continue
        if rewrite is None:
            stats.insertions += 1
            continue
        rewrites.setdefault(rewrite, commit)
    return RewriteSet(rewrites, stats)


def collect_rewrites(
    repository: GitRepository,
    old_ref: str,
    new_ref: str,
    config: MiningConfig | None = None,
) -> RewriteSet:
    """Mine the history between two refs into a RewriteSet.

    Raises:
        VcsError: If the history cannot be read.

    """
    hunks_with_commits, stats = collect_rewritable_hunks(repository, old_ref, new_ref, config)

    start = time.monotonic()
    rewrite_set = build_rewrite_set(hunks_with_commits, stats)
    logger.info(
        "Extracted %d rewrite rules in %.1f seconds (discarded %d insertions and %d refactors)",
        len(rewrite_set),
        time.monotonic() - start,
        stats.insertions,
        stats.refactors,
    )
    return rewrite_set
