"""Highlights: diagnostic spans expressed as token ranges, and their providers."""

from histfix.highlight.model import Highlight
from histfix.highlight.provider import (
    CommandHighlightProvider,
    HighlightProvider,
    highlights_from_messages,
)

__all__ = [
    "Highlight",
    "HighlightProvider",
    "CommandHighlightProvider",
    "highlights_from_messages",
]
