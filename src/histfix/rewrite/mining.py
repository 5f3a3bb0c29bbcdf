"""Commit/diff mining: find hunks small enough to learn a rewrite from.

Walks the first-parent chain between two refs (newest first), diffs each
commit against its first parent, and keeps only hunks that look like small
mechanical edits:
- pure insertions (no old lines) have nothing to rewrite and are dropped
- hunks with many old *and* many new lines are assumed to be restructuring
  and are dropped as refactors
- hunks whose body does not match their header counts are skipped with a
  warning
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from histfix.core.config import MiningConfig
from histfix.git.history import GitRepository, Hunk, Patch, short_id

logger = logging.getLogger(__name__)

# Hunks with at least this many old and new lines are refactors
REFACTOR_THRESHOLD = 3

__all__ = [
    "REFACTOR_THRESHOLD",
    "HunkKind",
    "MiningStats",
    "classify_hunk",
    "rewritable_hunks_from_patch",
    "collect_rewritable_hunks",
]


class HunkKind(str, Enum):
    """Classification of a hunk for mining purposes."""

    REWRITABLE = "rewritable"
    INSERTION = "insertion"
    REFACTOR = "refactor"
    MALFORMED = "malformed"


@dataclass
class MiningStats:
    """Counters reported after mining.

    Attributes:
        commits: Commits walked.
        patches: Source-file patches examined.
        insertions: Hunks discarded because they only add lines.
        refactors: Hunks discarded as large restructuring.
        malformed: Hunks skipped because their counts did not add up.
        untokenizable: Rewritable hunks whose lines could not be tokenized.
        warnings: Human-readable warnings emitted while mining.

    """

    commits: int = 0
    patches: int = 0
    insertions: int = 0
    refactors: int = 0
    malformed: int = 0
    untokenizable: int = 0
    warnings: list[str] = field(default_factory=list)


def classify_hunk(hunk: Hunk, refactor_threshold: int = REFACTOR_THRESHOLD) -> HunkKind:
    """Classify a hunk as rewritable or as one of the discarded kinds."""
    if hunk.old_lines + hunk.new_lines != hunk.line_count:
        return HunkKind.MALFORMED
    if hunk.old_lines == 0:
        return HunkKind.INSERTION
    if hunk.old_lines >= refactor_threshold and hunk.new_lines >= refactor_threshold:
        return HunkKind.REFACTOR
    return HunkKind.REWRITABLE


def rewritable_hunks_from_patch(
    patch: Patch,
    stats: MiningStats,
    refactor_threshold: int = REFACTOR_THRESHOLD,
) -> list[Hunk]:
    """Return the patch's rewritable hunks, updating stats for the rest.

    A malformed hunk never aborts the patch; the remaining hunks are still
    examined.
    """
    hunks: list[Hunk] = []
    for hunk in patch.hunks:
        kind = classify_hunk(hunk, refactor_threshold)
        if kind is HunkKind.MALFORMED:
            msg = (
                f"Malformed hunk in {patch.new_path}: old lines ({hunk.old_lines}) + "
                f"new lines ({hunk.new_lines}) != line count ({hunk.line_count})"
            )
            logger.warning(msg)
            stats.warnings.append(msg)
            stats.malformed += 1
        elif kind is HunkKind.INSERTION:
            stats.insertions += 1
        elif kind is HunkKind.REFACTOR:
            stats.refactors += 1
        else:
            hunks.append(hunk)
    return hunks


def _is_source_patch(patch: Patch, extensions: tuple[str, ...]) -> bool:
    return patch.old_path.endswith(extensions)


def collect_rewritable_hunks(
    repository: GitRepository,
    old_ref: str,
    new_ref: str,
    config: MiningConfig | None = None,
) -> tuple[list[tuple[Hunk, str]], MiningStats]:
    """Collect rewritable hunks between two refs.

    Args:
        repository: Repository to mine.
        old_ref: Exclusive lower bound of the walk.
        new_ref: Inclusive upper bound of the walk.
        config: Mining settings (defaults if None).

    Returns:
        Tuple of ((hunk, commit id) pairs newest commit first, stats).

    Raises:
        VcsError: If a ref cannot be resolved or a diff cannot be computed.

    """
    config = config or MiningConfig()
    stats = MiningStats()

    start = time.monotonic()
    commits = repository.commits_between(old_ref, new_ref)
    stats.commits = len(commits)
    logger.info("Found %d commits in %.1f seconds", len(commits), time.monotonic() - start)

    if config.debug_commits_enabled:
        for commit in commits:
            logger.info("%s: %s", short_id(commit, config.short_id_len), repository.summary(commit))

    start = time.monotonic()
    hunks_with_commits: list[tuple[Hunk, str]] = []
    for commit in commits:
        for patch in repository.diff(commit):
            if not _is_source_patch(patch, config.source_extensions):
                continue
            stats.patches += 1
            for hunk in rewritable_hunks_from_patch(patch, stats, config.refactor_threshold):
                hunks_with_commits.append((hunk, commit))

    logger.info(
        "Found %d patches in %.1f seconds (%d rewritable hunks)",
        stats.patches,
        time.monotonic() - start,
        len(hunks_with_commits),
    )
    return hunks_with_commits, stats
