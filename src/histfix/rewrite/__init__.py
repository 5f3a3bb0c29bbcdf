"""Rewrite mining, extraction and scoring.

Provides:
- Rewrite: tokenized old->new edit with its changed core isolated
- collect_rewrites / build_rewrite_set: mine history into a RewriteSet
- applicability: score a Rewrite against a Highlight
"""

from histfix.rewrite.applicability import applicability, subslice_position
from histfix.rewrite.extractor import RewriteSet, build_rewrite_set, collect_rewrites, extract
from histfix.rewrite.mining import HunkKind, MiningStats, classify_hunk, collect_rewritable_hunks
from histfix.rewrite.model import Rewrite

__all__ = [
    "Rewrite",
    "RewriteSet",
    "HunkKind",
    "MiningStats",
    "applicability",
    "build_rewrite_set",
    "classify_hunk",
    "collect_rewritable_hunks",
    "collect_rewrites",
    "extract",
    "subslice_position",
]
