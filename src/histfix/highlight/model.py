"""Highlight: a diagnostic-implicated span plus its surrounding tokens."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from histfix.core.exceptions import TokenizeError
from histfix.tokenization import Token, tokenize_fragment, tokenize_lines

logger = logging.getLogger(__name__)

__all__ = ["Highlight"]


@dataclass(frozen=True)
class Highlight:
    """Highlighted text from one diagnostic span.

    ``lines`` is the window of source lines the analysis engine captured;
    ``tokens[highlight_start:highlight_end]`` are the tokens it actually
    flagged. A highlight whose lines could not be tokenized carries the
    reason in ``error`` and has no tokens, so no rewrite can ever apply.

    Attributes:
        message: The diagnostic's message.
        file_name: File the diagnostic refers to, relative to the tree root.
        line_start: 1-based line of the first captured line.
        line_end: 1-based line of the last captured line.
        lines: Captured source lines.
        tokens: Tokenization of lines.
        highlight_start: Token index where the highlight starts.
        highlight_end: Token index where the highlight ends (exclusive).
        is_primary: Whether the span is the diagnostic's primary span.
        error: Tokenization failure, if any.

    """

    message: str
    file_name: str
    line_start: int
    line_end: int
    lines: tuple[str, ...]
    tokens: tuple[Token, ...]
    highlight_start: int
    highlight_end: int
    is_primary: bool
    error: str | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.highlight_start <= self.highlight_end <= len(self.tokens):
            raise ValueError(
                f"Invalid highlight range [{self.highlight_start}, {self.highlight_end}) "
                f"for {len(self.tokens)} tokens in {self.file_name}:{self.line_start}"
            )

    @classmethod
    def from_lines(
        cls,
        *,
        message: str,
        file_name: str,
        line_start: int,
        lines: list[str] | tuple[str, ...],
        column_start: int,
        column_end: int,
        is_primary: bool,
    ) -> Highlight:
        """Build a highlight from captured lines and 1-based columns.

        ``column_start`` is on the first line and ``column_end`` on the last,
        both 1-based character columns as reported by the compiler. The token
        range is found by tokenizing the text before the start column and
        after the end column.

        A tokenization failure does not raise; it produces a highlight with
        ``error`` set.
        """
        lines = tuple(lines)
        line_end = line_start + len(lines) - 1
        try:
            if not lines:
                raise ValueError("a highlight needs at least one line")
            tokens = tuple(tokenize_lines(lines))
            highlight_start = len(tokenize_fragment(lines[0][: column_start - 1]))
            highlight_end = len(tokens) - len(tokenize_fragment(lines[-1][column_end - 1 :]))
            # Columns that split a token can make the range inverted
            highlight_end = max(highlight_start, min(highlight_end, len(tokens)))
            highlight_start = min(highlight_start, highlight_end)
        except (TokenizeError, ValueError) as e:
            logger.debug("Cannot tokenize highlight at %s:%d: %s", file_name, line_start, e)
            return cls(
                message=message,
                file_name=file_name,
                line_start=line_start,
                line_end=line_end,
                lines=lines,
                tokens=(),
                highlight_start=0,
                highlight_end=0,
                is_primary=is_primary,
                error=str(e),
            )

        return cls(
            message=message,
            file_name=file_name,
            line_start=line_start,
            line_end=line_end,
            lines=lines,
            tokens=tokens,
            highlight_start=highlight_start,
            highlight_end=highlight_end,
            is_primary=is_primary,
        )

    @classmethod
    def from_diagnostic_span(cls, message: str, span: Mapping[str, Any]) -> Highlight:
        """Build a highlight from a rustc-style JSON diagnostic span.

        Args:
            message: The diagnostic's message.
            span: Span object with ``file_name``, ``line_start``,
                ``column_start``, ``column_end``, ``is_primary`` and ``text``
                (a list of ``{"text": ...}`` line objects).

        """
        return cls.from_lines(
            message=message,
            file_name=str(span["file_name"]),
            line_start=int(span["line_start"]),
            lines=[str(line.get("text", "")) for line in span.get("text") or []],
            column_start=int(span["column_start"]),
            column_end=int(span["column_end"]),
            is_primary=bool(span.get("is_primary", False)),
        )

    @property
    def sort_key(self) -> tuple[str, int, int, int, int, str]:
        """Ordering used by the orchestrator: by file, then ascending line."""
        return (
            self.file_name,
            self.line_start,
            self.line_end,
            self.highlight_start,
            self.highlight_end,
            self.message,
        )

    def describe(self) -> str:
        """Short location-and-text description for reports."""
        flagged = " ".join(self.tokens[self.highlight_start : self.highlight_end])
        kind = "primary" if self.is_primary else "secondary"
        return f"{self.file_name}:{self.line_start} ({kind}) {self.message!r}: {flagged!r}"
