"""Per-file text rewriter with strictly increasing, non-overlapping edits.

A FileRewriter owns one file's text for the duration of a pass. Spans are
always expressed in the coordinates of the text as it was read; because
edits must arrive in increasing line order, each edit can be spliced in
without re-parsing. Anything out of order waits for the next pass, when
highlights are recomputed against the edited file.

States:
    FRESH   - loaded, nothing applied
    EDITING - at least one edit applied, buffer not yet written
    WRITTEN - buffer persisted to disk
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from histfix.core.exceptions import PersistError, RewriteOrderError, SpanError

logger = logging.getLogger(__name__)

__all__ = ["LineColumn", "Span", "RewriterState", "FileRewriter"]


@dataclass(frozen=True, order=True)
class LineColumn:
    """A position in a text: 1-based line, 0-based character column."""

    line: int
    column: int


@dataclass(frozen=True)
class Span:
    """Half-open text range ``[start, end)``."""

    start: LineColumn
    end: LineColumn


class RewriterState(str, Enum):
    """Lifecycle of a FileRewriter within one pass."""

    FRESH = "fresh"
    EDITING = "editing"
    WRITTEN = "written"


@dataclass
class FileRewriter:
    """Accumulates ordered edits to one file's text.

    Attributes:
        path: File the text came from and will be written to.
        original: Text as read at the start of the pass.
        last_rewritten_line: End line of the most recent edit (0 = none).
        state: Current lifecycle state.

    """

    path: Path
    original: str
    last_rewritten_line: int = 0
    state: RewriterState = RewriterState.FRESH
    _line_offsets: list[int] = field(default_factory=list, init=False, repr=False)
    _chunks: list[str] = field(default_factory=list, init=False, repr=False)
    _cursor: int = field(default=0, init=False, repr=False)
    _newline: str = field(default="\n", init=False, repr=False)

    def __post_init__(self) -> None:
        offsets = [0]
        for i, char in enumerate(self.original):
            if char == "\n":
                offsets.append(i + 1)
        self._line_offsets = offsets
        # First terminator sets the line ending of inserted line breaks
        if len(offsets) > 1 and self.original[offsets[1] - 2 : offsets[1]] == "\r\n":
            self._newline = "\r\n"

    @classmethod
    def load(cls, path: Path) -> FileRewriter:
        """Read a file into a fresh rewriter.

        Raises:
            OSError: If the file cannot be read.

        """
        with path.open(encoding="utf-8", newline="") as f:
            return cls(path=path, original=f.read())

    def offset(self, position: LineColumn) -> int:
        """Convert a line/column position to an index into the original text.

        Raises:
            SpanError: If the position lies outside the text.

        """
        if not 1 <= position.line <= len(self._line_offsets):
            raise SpanError(f"Line {position.line} out of range for {self.path}")
        index = self._line_offsets[position.line - 1] + position.column
        if index > len(self.original):
            raise SpanError(f"Position {position} out of range for {self.path}")
        return index

    def can_apply(self, line: int) -> bool:
        """Return True if an edit starting on line is allowed this pass."""
        return line > self.last_rewritten_line

    def apply(self, span: Span, replacement: str) -> str:
        """Replace the text covered by span.

        Args:
            span: Range in original-text coordinates.
            replacement: New text for the range. Line breaks in it are written
                with the file's own line terminator.

        Returns:
            The replaced original text.

        Raises:
            RewriteOrderError: If span starts at or before the last rewritten
                line, or the rewriter was already persisted.
            SpanError: If span lies outside the text.

        """
        if self.state is RewriterState.WRITTEN:
            raise RewriteOrderError(f"{self.path} was already written this pass")
        if not self.can_apply(span.start.line):
            raise RewriteOrderError(
                f"Edit at line {span.start.line} of {self.path} is not after "
                f"last rewritten line {self.last_rewritten_line}"
            )

        start = self.offset(span.start)
        end = self.offset(span.end)
        if start < self._cursor or end < start:
            raise RewriteOrderError(f"Overlapping or inverted span {span} in {self.path}")

        if self._newline != "\n":
            replacement = replacement.replace("\r\n", "\n").replace("\n", self._newline)
        self._chunks.append(self.original[self._cursor : start])
        self._chunks.append(replacement)
        self._cursor = end
        self.last_rewritten_line = span.end.line
        self.state = RewriterState.EDITING
        return self.original[start:end]

    def contents(self) -> str:
        """Return the text with all applied edits."""
        return "".join(self._chunks) + self.original[self._cursor :]

    def persist(self) -> None:
        """Write the edited text back to path.

        Raises:
            PersistError: If the file cannot be written.

        """
        try:
            with self.path.open("w", encoding="utf-8", newline="") as f:
                f.write(self.contents())
        except OSError as e:
            raise PersistError(f"Cannot write {self.path}: {e}", self.path) from e
        self.state = RewriterState.WRITTEN
        logger.debug("Wrote %s", self.path)
