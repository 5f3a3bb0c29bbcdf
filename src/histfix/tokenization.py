"""Line-level lexical tokenizer shared by rewrites and highlights.

Splits source lines into flat token lists using C-family/Rust lexical
rules. The tokenizer is deliberately shallow: it never tracks state across
lines and never builds a tree, so it copes with the unbalanced delimiters
that show up in diff hunks and diagnostic windows. Both sides of every
comparison (mined rewrites and highlighted code) go through the same
rules, so token lists can be compared with ``==``.

Rules, in priority order:
    - whitespace is skipped
    - ``// ...`` runs to the end of the line as one token
    - ``/* ... */`` is one token (an unclosed one runs to the end of the line)
    - raw strings ``r#"..."#``, strings ``"..."``, byte variants ``b"..."``
    - char literals ``'x'`` / ``'\\n'``, then lifetimes and labels ``'a``
    - numbers, identifiers
    - multi-character punctuation (``::``, ``->``, ``..=``, ``+=`` ...)
    - any other single character

An unterminated string or char literal raises TokenizeError.
"""

import logging
import re
from collections.abc import Sequence
from typing import TypeAlias

from histfix.core.exceptions import TokenizeError

logger = logging.getLogger(__name__)

Token: TypeAlias = str

__all__ = [
    "Token",
    "tokenize_lines",
    "tokenize_fragment",
    "token_offsets",
]

_TOKEN_RE = re.compile(
    r"""
      (?P<ws>\s+)
    | (?P<line_comment>//.*)
    | (?P<block_comment>/\*.*?(?:\*/|$))
    | (?P<raw_string>b?r(?P<hashes>\#*)".*?"(?P=hashes))
    | (?P<string>b?"(?:\\.|[^"\\])*")
    | (?P<char>b?'(?:\\(?:x[0-9a-fA-F]{2}|u\{[0-9a-fA-F_]*\}|.)|[^\\'])')
    | (?P<lifetime>'[^\W\d]\w*)
    | (?P<unterminated>b?r\#*"|b?"|')
    | (?P<number>\d\w*(?:\.\d\w*)?)
    | (?P<ident>[^\W\d]\w*)
    | (?P<punct>::|->|=>|==|!=|<=|>=|&&|\|\||\.\.=|\.\.\.|\.\.|[-+*/%^&|]=)
    | (?P<other>\S)
    """,
    re.VERBOSE,
)

# Token kinds whose match may carry trailing whitespace
_RSTRIP_KINDS = frozenset({"line_comment", "block_comment"})


def token_offsets(fragment: str) -> list[tuple[int, int]]:
    """Return ``(start, end)`` character offsets of each token in fragment.

    Args:
        fragment: A single line or part of a line (no newlines expected).

    Returns:
        Offsets in order of appearance. ``fragment[start:end]`` is the token.

    Raises:
        TokenizeError: If fragment contains an unterminated string or char
            literal.

    """
    offsets: list[tuple[int, int]] = []
    pos = 0
    length = len(fragment)
    while pos < length:
        match = _TOKEN_RE.match(fragment, pos)
        # \S and \s together cover every character, so a match always exists
        assert match is not None
        kind = match.lastgroup
        start, end = match.span()
        pos = end
        if kind == "ws":
            continue
        if kind == "unterminated":
            raise TokenizeError(
                f"Unterminated literal at column {start}: {fragment!r}",
                line=fragment,
                column=start,
            )
        if kind in _RSTRIP_KINDS:
            end = start + len(match.group(0).rstrip())
        offsets.append((start, end))
    return offsets


def tokenize_fragment(fragment: str) -> list[Token]:
    """Tokenize a code fragment, e.g. text with unbalanced delimiters.

    Args:
        fragment: A single line or part of a line.

    Returns:
        List of tokens.

    Raises:
        TokenizeError: If the fragment cannot be lexed.

    """
    return [fragment[start:end] for start, end in token_offsets(fragment)]


def tokenize_lines(lines: Sequence[str]) -> list[Token]:
    """Tokenize each line independently and flatten the result.

    Args:
        lines: Source lines without line terminators.

    Returns:
        Flat list of tokens across all lines.

    Raises:
        TokenizeError: If any line cannot be lexed.

    """
    tokens: list[Token] = []
    for line in lines:
        tokens.extend(tokenize_fragment(line.strip()))
    return tokens
