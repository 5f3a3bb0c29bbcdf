"""The Rewrite record: one tokenized old->new edit with its core isolated."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from histfix.tokenization import Token, tokenize_lines

__all__ = ["Rewrite"]


@dataclass(frozen=True)
class Rewrite:
    """A historical code transformation with common context stripped.

    The "core" of each side is what remains after removing the longest
    common token prefix and suffix. Both cores are non-empty for every
    constructed Rewrite: ``common_prefix_len + common_suffix_len <
    min(len(old_tokens), len(new_tokens))``.

    Instances are hashable and compare by full structural content, which is
    what the extractor deduplicates on.

    Attributes:
        old_lines: Removed lines of the hunk.
        new_lines: Added lines of the hunk.
        old_tokens: Tokenization of old_lines.
        new_tokens: Tokenization of new_lines.
        common_prefix_len: Length of the shared leading token run.
        common_suffix_len: Length of the shared trailing token run.

    """

    old_lines: tuple[str, ...]
    new_lines: tuple[str, ...]
    old_tokens: tuple[Token, ...]
    new_tokens: tuple[Token, ...]
    common_prefix_len: int
    common_suffix_len: int

    @classmethod
    def try_new(cls, old_lines: Sequence[str], new_lines: Sequence[str]) -> Rewrite | None:
        """Build a Rewrite from the two sides of a hunk.

        Returns None when the change is an insertion or deletion, i.e. when
        one side's tokens are the other's prefix and suffix concatenated.

        Raises:
            TokenizeError: If either side cannot be tokenized.

        """
        old_tokens = tuple(tokenize_lines(old_lines))
        new_tokens = tuple(tokenize_lines(new_lines))

        common_prefix_len = 0
        for old, new in zip(old_tokens, new_tokens):
            if old != new:
                break
            common_prefix_len += 1

        common_suffix_len = 0
        for old, new in zip(reversed(old_tokens), reversed(new_tokens)):
            if old != new:
                break
            common_suffix_len += 1

        if common_prefix_len + common_suffix_len >= min(len(old_tokens), len(new_tokens)):
            return None

        return cls(
            old_lines=tuple(old_lines),
            new_lines=tuple(new_lines),
            old_tokens=old_tokens,
            new_tokens=new_tokens,
            common_prefix_len=common_prefix_len,
            common_suffix_len=common_suffix_len,
        )

    @property
    def old_core(self) -> tuple[Token, ...]:
        """Old-side tokens between the common prefix and suffix."""
        return self.old_tokens[self.common_prefix_len : len(self.old_tokens) - self.common_suffix_len]

    @property
    def new_core(self) -> tuple[Token, ...]:
        """New-side tokens between the common prefix and suffix."""
        return self.new_tokens[self.common_prefix_len : len(self.new_tokens) - self.common_suffix_len]

    @property
    def before_tokens(self) -> tuple[Token, ...]:
        """The common prefix (taken from the old side)."""
        return self.old_tokens[: self.common_prefix_len]

    @property
    def after_tokens(self) -> tuple[Token, ...]:
        """The common suffix (taken from the old side)."""
        return self.old_tokens[len(self.old_tokens) - self.common_suffix_len :]

    def describe(self) -> str:
        """One-line structural description: context and the core change."""
        return (
            f"before={list(self.before_tokens)!r} "
            f"rewrite={list(self.old_core)!r} -> {list(self.new_core)!r} "
            f"after={list(self.after_tokens)!r}"
        )
