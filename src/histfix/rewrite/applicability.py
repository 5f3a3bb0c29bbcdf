"""Applicability scoring: how well a Rewrite explains a Highlight."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from histfix.highlight import Highlight
    from histfix.rewrite.model import Rewrite

T = TypeVar("T")

__all__ = ["subslice_position", "applicability"]


def subslice_position(haystack: Sequence[T], needle: Sequence[T]) -> int | None:
    """Return the lowest index at which needle occurs contiguously in haystack.

    Raises:
        ValueError: If needle is empty.

    """
    if not needle:
        raise ValueError("needle must not be empty")
    needle_list = list(needle)
    width = len(needle_list)
    for i in range(len(haystack) - width + 1):
        if list(haystack[i : i + width]) == needle_list:
            return i
    return None


def _common_run(xs: Sequence[T], ys: Sequence[T]) -> int:
    count = 0
    for x, y in zip(xs, ys):
        if x != y:
            break
        count += 1
    return count


def applicability(rewrite: Rewrite, highlight: Highlight) -> tuple[int, int] | None:
    """Score a rewrite against a highlight.

    The rewrite's old core must occur in the highlight's tokens and change at
    least one highlighted token. The score counts the core plus however much
    of the rewrite's surrounding context matches the tokens just outside the
    highlighted range, so more specific rewrites score higher.

    Returns:
        (score, offset) where offset is the token index in highlight.tokens
        at which the replacement starts, or None if not applicable.

    """
    needle = rewrite.old_core
    i = subslice_position(highlight.tokens, needle)
    if i is None:
        return None

    # The match must touch at least one highlighted token
    if i + len(needle) <= highlight.highlight_start or highlight.highlight_end <= i:
        return None

    n_eq_before = _common_run(
        rewrite.before_tokens[::-1],
        highlight.tokens[: highlight.highlight_start][::-1],
    )
    n_eq_after = _common_run(
        rewrite.after_tokens,
        highlight.tokens[highlight.highlight_end :],
    )
    return n_eq_before + len(needle) + n_eq_after, i
