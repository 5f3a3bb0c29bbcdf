"""Highlight providers: run an analysis pass and turn its output into highlights.

The orchestrator only depends on the HighlightProvider protocol. The bundled
CommandHighlightProvider runs a command that prints compiler-message JSON
objects, one per line (``cargo check --message-format=json`` by default),
and converts every diagnostic span that carries source text into a
Highlight.
"""

from __future__ import annotations

import json
import logging
import subprocess
import time
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

from histfix.core.config import HighlightConfig
from histfix.core.exceptions import HighlightError
from histfix.highlight.model import Highlight

logger = logging.getLogger(__name__)

__all__ = [
    "HighlightProvider",
    "CommandHighlightProvider",
    "highlights_from_messages",
]


class HighlightProvider(Protocol):
    """Anything that can (re)compute highlights for a source tree.

    Implementations must be safe to call repeatedly against a tree that is
    being rewritten between calls.
    """

    def collect_highlights(self, root: Path) -> list[Highlight]:
        """Return current highlights for the tree at root."""
        ...


def highlights_from_messages(messages: Iterable[dict[str, Any]]) -> list[Highlight]:
    """Convert decoded compiler messages into sorted highlights.

    Messages whose ``reason`` is not ``compiler-message`` are ignored, as are
    spans without text. An error diagnostic with no spans at all cannot be
    located and is logged as a warning.

    Raises:
        HighlightError: If a diagnostic's spans are not a list of span
            objects with the expected fields.

    """
    highlights: list[Highlight] = []
    for message in messages:
        if message.get("reason") != "compiler-message":
            continue
        diagnostic = message.get("message")
        if not isinstance(diagnostic, dict):
            continue
        text = str(diagnostic.get("message", ""))
        spans = diagnostic.get("spans") or []
        if diagnostic.get("level") == "error" and not spans:
            logger.warning("Found diagnostic error with no spans: %s", text)
            continue
        if not isinstance(spans, list):
            raise HighlightError(f"Diagnostic spans are not a list: {spans!r:.200}")
        for span in spans:
            if not isinstance(span, dict):
                raise HighlightError(f"Malformed diagnostic span: {span!r:.200}")
            if not span.get("text"):
                continue
            try:
                highlights.append(Highlight.from_diagnostic_span(text, span))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise HighlightError(f"Malformed diagnostic span in {text!r}: {e}") from e

    highlights.sort(key=lambda h: h.sort_key)
    return highlights


class CommandHighlightProvider:
    """Runs the configured analysis command and parses its JSON output.

    Attributes:
        config: Command and timeout settings.

    """

    def __init__(self, config: HighlightConfig | None = None) -> None:
        """Initialize with highlight settings (defaults if None)."""
        self.config = config or HighlightConfig()

    def _run(self, root: Path) -> subprocess.CompletedProcess[str]:
        cmd = list(self.config.command)
        try:
            return subprocess.run(
                cmd,
                cwd=root,
                capture_output=True,
                text=True,
                timeout=self.config.timeout,
                errors="replace",
            )
        except subprocess.TimeoutExpired as e:
            raise HighlightError(
                f"Analysis command timed out after {self.config.timeout}s: {' '.join(cmd)}"
            ) from e
        except FileNotFoundError as e:
            raise HighlightError(f"Analysis command not found: {cmd[0]}") from e
        except OSError as e:
            raise HighlightError(f"Analysis command failed to start: {e}") from e

    def collect_highlights(self, root: Path) -> list[Highlight]:
        """Run the analysis command in root and return its highlights.

        A successful run means there is nothing to fix and yields no
        highlights.

        Raises:
            HighlightError: If the command cannot run or its output is not
                line-delimited JSON.

        """
        start = time.monotonic()
        result = self._run(root)

        highlights: list[Highlight] = []
        if result.returncode != 0:
            messages: list[dict[str, Any]] = []
            for lineno, line in enumerate(result.stdout.splitlines(), start=1):
                if not line.strip():
                    continue
                try:
                    decoded = json.loads(line)
                except json.JSONDecodeError as e:
                    raise HighlightError(
                        f"Analysis output line {lineno} is not JSON: {line[:200]!r}"
                    ) from e
                if isinstance(decoded, dict):
                    messages.append(decoded)
            highlights = highlights_from_messages(messages)

        logger.info(
            "Found %d highlights in %.1f seconds", len(highlights), time.monotonic() - start
        )
        return highlights
