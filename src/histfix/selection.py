"""Rewrite selection: pick the replacement that best explains a highlight.

Every applicable rewrite proposes a replacement text (its new core, with the
whitespace it had in history) for a span of the highlighted code. Proposals
are grouped by replacement text so that rewrites which would produce the
same edit never compete with each other. Among the best-scoring texts:
- exactly one  -> UniqueSelection, safe to apply
- several      -> AmbiguousSelection, reported and left alone
- none at all  -> NoSelection
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TypeAlias

from histfix.core.exceptions import SpanError
from histfix.highlight.model import Highlight
from histfix.rewrite.applicability import applicability
from histfix.rewrite.extractor import RewriteSet
from histfix.rewrite.model import Rewrite
from histfix.rewriter import LineColumn, Span
from histfix.tokenization import token_offsets

logger = logging.getLogger(__name__)

__all__ = [
    "ReplacementSource",
    "UniqueSelection",
    "AmbiguousSelection",
    "NoSelection",
    "Selection",
    "ReplacementCache",
    "span_and_text_of_tokens",
    "applicable_replacements",
    "select",
]


def span_and_text_of_tokens(
    line_start: int,
    lines: Sequence[str],
    start: int,
    stop: int,
) -> tuple[Span, str]:
    """Return the span and exact text of a token range within lines.

    The text runs from the first character of token ``start`` to the last
    character of token ``stop - 1``, keeping the original whitespace and
    line breaks in between.

    Args:
        line_start: 1-based line number of ``lines[0]``.
        lines: Source lines without terminators.
        start: First token index (inclusive).
        stop: Last token index (exclusive).

    Raises:
        SpanError: If the range is empty or exceeds the tokens of lines.
        TokenizeError: If a line cannot be tokenized.

    """
    if start >= stop:
        raise SpanError(f"Empty token range [{start}, {stop})")

    # (line index, column start, column end) of every token
    positions: list[tuple[int, int, int]] = []
    for index, line in enumerate(lines):
        for col_start, col_end in token_offsets(line):
            positions.append((index, col_start, col_end))
            if len(positions) >= stop:
                break
        if len(positions) >= stop:
            break

    if len(positions) < stop:
        raise SpanError(f"Token range [{start}, {stop}) exceeds {len(positions)} tokens")

    first_line, first_col, _ = positions[start]
    last_line, _, last_col = positions[stop - 1]

    if first_line == last_line:
        text = lines[first_line][first_col:last_col]
    else:
        parts = [lines[first_line][first_col:]]
        parts.extend(lines[first_line + 1 : last_line])
        parts.append(lines[last_line][:last_col])
        text = "\n".join(parts)

    span = Span(
        start=LineColumn(line=line_start + first_line, column=first_col),
        end=LineColumn(line=line_start + last_line, column=last_col),
    )
    return span, text


@dataclass(frozen=True)
class ReplacementSource:
    """The best-known justification for one replacement text.

    Attributes:
        score: Applicability score of the rewrite.
        span: Text range in the highlighted file to replace.
        commit: Commit the rewrite was mined from.
        rewrite: The rewrite itself.

    """

    score: int
    span: Span
    commit: str
    rewrite: Rewrite


@dataclass(frozen=True)
class UniqueSelection:
    """A single best replacement."""

    replacement: str
    source: ReplacementSource

    @property
    def score(self) -> int:
        return self.source.score


@dataclass(frozen=True)
class AmbiguousSelection:
    """Several different replacements tied for the best score.

    ``candidates`` maps replacement text to its source, ordered by text.
    """

    score: int
    candidates: dict[str, ReplacementSource] = field(default_factory=dict)


@dataclass(frozen=True)
class NoSelection:
    """No rewrite applies to the highlight."""


Selection: TypeAlias = UniqueSelection | AmbiguousSelection | NoSelection


class ReplacementCache:
    """Read-through cache of each rewrite's replacement text.

    A rewrite's replacement text depends only on the rewrite, so it is
    computed once per run no matter how many highlights it is scored
    against.
    """

    def __init__(self) -> None:
        self._texts: dict[Rewrite, str] = {}

    def __len__(self) -> int:
        return len(self._texts)

    def replacement(self, rewrite: Rewrite) -> str:
        """Return the new-core text of rewrite, computing it on first use."""
        text = self._texts.get(rewrite)
        if text is None:
            _, text = span_and_text_of_tokens(
                1,
                rewrite.new_lines,
                rewrite.common_prefix_len,
                len(rewrite.new_tokens) - rewrite.common_suffix_len,
            )
            self._texts[rewrite] = text
        return text


def applicable_replacements(
    rewrites: RewriteSet,
    highlight: Highlight,
    cache: ReplacementCache | None = None,
) -> dict[str, ReplacementSource]:
    """Map each candidate replacement text to its best-scoring source.

    For equal scores the first rewrite seen wins, i.e. the one from the
    most recent commit.
    """
    cache = cache or ReplacementCache()
    replacements: dict[str, ReplacementSource] = {}
    for rewrite, commit in rewrites.items():
        result = applicability(rewrite, highlight)
        if result is None:
            continue
        score, offset = result
        replacement = cache.replacement(rewrite)
        span, _ = span_and_text_of_tokens(
            highlight.line_start,
            highlight.lines,
            offset,
            offset + len(rewrite.old_core),
        )
        existing = replacements.get(replacement)
        if existing is None or existing.score < score:
            replacements[replacement] = ReplacementSource(
                score=score, span=span, commit=commit, rewrite=rewrite
            )
    return replacements


def select(
    rewrites: RewriteSet,
    highlight: Highlight,
    cache: ReplacementCache | None = None,
) -> Selection:
    """Choose the replacement for a highlight.

    Args:
        rewrites: Mined rewrites.
        highlight: Highlight to explain.
        cache: Optional replacement-text cache shared across highlights.

    Returns:
        UniqueSelection, AmbiguousSelection, or NoSelection.

    """
    if highlight.error is not None:
        return NoSelection()

    replacements = applicable_replacements(rewrites, highlight, cache)
    if not replacements:
        return NoSelection()

    best_score = max(source.score for source in replacements.values())
    best = {
        text: source
        for text, source in sorted(replacements.items())
        if source.score == best_score
    }
    if len(best) > 1:
        return AmbiguousSelection(score=best_score, candidates=best)

    (replacement, source), = best.items()
    return UniqueSelection(replacement=replacement, source=source)
