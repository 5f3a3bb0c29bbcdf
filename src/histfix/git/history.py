"""Git history access for rewrite mining.

Thin wrapper over the git CLI providing exactly what the miner needs:
- First-parent commit walk between two refs
- Per-commit zero-context diffs against the first parent
- Unified-diff parsing into patches and hunks

Every failure is raised as VcsError so that the caller can abort before
touching any file.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from histfix.core.exceptions import VcsError

logger = logging.getLogger(__name__)

# Default timeout for git commands
_GIT_TIMEOUT = 120

# Diff section header: "diff --git a/src/lib.rs b/src/lib.rs"
_DIFF_SECTION_PATTERN = re.compile(r"^diff --git a/(.+?) b/(.+?)$")

# Hunk header: "@@ -12,3 +12,4 @@ optional section heading"
_HUNK_HEADER_PATTERN = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

__all__ = [
    "DiffLine",
    "Hunk",
    "Patch",
    "GitRepository",
    "parse_patches",
    "short_id",
]


@dataclass(frozen=True)
class DiffLine:
    """One line of a hunk.

    Attributes:
        origin: "-" for a removed line, "+" for an added line, " " for context.
        content: Line text without the origin marker or line terminator.

    """

    origin: str
    content: str


@dataclass(frozen=True)
class Hunk:
    """A contiguous block of changed lines within a single-file diff.

    ``old_lines`` and ``new_lines`` are the counts reported by the hunk
    header. ``lines`` holds the lines actually present in the diff body,
    removed lines first (zero-context diffs never interleave them).

    """

    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: tuple[DiffLine, ...] = ()

    @property
    def line_count(self) -> int:
        """Number of body lines present in the diff."""
        return len(self.lines)

    def lines_in_range(self, start: int, stop: int) -> list[str]:
        """Return contents of body lines ``start`` (inclusive) to ``stop``."""
        return [line.content for line in self.lines[start:stop]]


@dataclass(frozen=True)
class Patch:
    """All hunks of one changed file."""

    old_path: str
    new_path: str
    hunks: tuple[Hunk, ...] = field(default_factory=tuple)


def short_id(commit: str, length: int = 7) -> str:
    """Abbreviate a commit id for display."""
    return commit[:length]


def parse_patches(diff_text: str) -> list[Patch]:
    """Parse unified diff output into per-file patches.

    Lines that are neither hunk body nor recognised headers (index lines,
    mode changes, "Binary files ... differ") are ignored. A file section
    without hunks still yields a Patch with an empty hunk tuple.

    Args:
        diff_text: Output of ``git diff -p``.

    Returns:
        Patches in diff order.

    """
    patches: list[Patch] = []
    old_path: str | None = None
    new_path = ""
    hunks: list[Hunk] = []
    header: tuple[int, int, int, int] | None = None
    body: list[DiffLine] = []

    def close_hunk() -> None:
        nonlocal header, body
        if header is not None:
            hunks.append(Hunk(*header, lines=tuple(body)))
        header = None
        body = []

    def close_patch() -> None:
        nonlocal hunks
        close_hunk()
        if old_path is not None:
            patches.append(Patch(old_path=old_path, new_path=new_path, hunks=tuple(hunks)))
        hunks = []

    for raw_line in diff_text.split("\n"):
        line = raw_line.rstrip("\r")

        section_match = _DIFF_SECTION_PATTERN.match(line)
        if section_match:
            close_patch()
            old_path, new_path = section_match.group(1), section_match.group(2)
            continue

        hunk_match = _HUNK_HEADER_PATTERN.match(line)
        if hunk_match and old_path is not None:
            close_hunk()
            old_start, old_count, new_start, new_count = hunk_match.groups()
            header = (
                int(old_start),
                int(old_count) if old_count is not None else 1,
                int(new_start),
                int(new_count) if new_count is not None else 1,
            )
            continue

        if header is None:
            continue

        # "\ No newline at end of file" is metadata, not a line
        if line.startswith("\\"):
            continue
        if line[:1] in ("-", "+", " "):
            body.append(DiffLine(origin=line[0], content=line[1:]))

    close_patch()
    return patches


class GitRepository:
    """Read-only access to a git repository's history.

    Attributes:
        root: Working tree (or any directory inside it).
        timeout: Timeout in seconds for each git command.

    """

    def __init__(self, root: Path, timeout: int = _GIT_TIMEOUT) -> None:
        """Initialize without touching the repository; see open()."""
        self.root = root
        self.timeout = timeout

    @classmethod
    def open(cls, root: Path, timeout: int = _GIT_TIMEOUT) -> GitRepository:
        """Open a repository, verifying that root is inside a git work tree.

        Raises:
            VcsError: If root is not inside a git repository.

        """
        repository = cls(root, timeout=timeout)
        output = repository._run_git(["rev-parse", "--is-inside-work-tree"])
        if output.strip() != "true":
            raise VcsError(f"Not a git work tree: {root}")
        return repository

    def _run_git(self, args: list[str]) -> str:
        """Run a git command and return its stdout.

        Raises:
            VcsError: If git is missing, times out, or exits non-zero.

        """
        cmd = ["git", "-c", "core.quotepath=false", "-c", "diff.noprefix=false", *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=self.root,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                errors="replace",
            )
        except subprocess.TimeoutExpired as e:
            raise VcsError(f"Git command timed out after {self.timeout}s: {' '.join(args)}") from e
        except FileNotFoundError as e:
            raise VcsError("git executable not found") from e
        except OSError as e:
            raise VcsError(f"Git command failed: {e}") from e

        if result.returncode != 0:
            stderr_msg = result.stderr.strip()[:200] if result.stderr else "unknown"
            raise VcsError(f"Git command failed: git {' '.join(args)}\nstderr: {stderr_msg}")
        return result.stdout

    def resolve(self, ref: str) -> str:
        """Resolve a ref to a full commit id.

        Raises:
            VcsError: If the ref does not name a commit.

        """
        try:
            return self._run_git(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"]).strip()
        except VcsError as e:
            raise VcsError(f"Cannot resolve ref '{ref}' in {self.root}") from e

    def commits_between(self, old_ref: str, new_ref: str) -> list[str]:
        """List first-parent commits reachable from new_ref but not old_ref.

        Args:
            old_ref: Exclusive lower bound.
            new_ref: Inclusive upper bound.

        Returns:
            Commit ids, newest first.

        """
        old_id = self.resolve(old_ref)
        new_id = self.resolve(new_ref)
        output = self._run_git(["rev-list", "--first-parent", f"{old_id}..{new_id}"])
        return [line for line in output.splitlines() if line]

    def first_parent(self, commit: str) -> str | None:
        """Return the first parent of commit, or None for a root commit."""
        output = self._run_git(["rev-list", "--parents", "-n", "1", commit]).split()
        return output[1] if len(output) > 1 else None

    def summary(self, commit: str) -> str:
        """Return the subject line of a commit message."""
        return self._run_git(["log", "-1", "--format=%s", commit]).strip()

    def diff(self, commit: str) -> list[Patch]:
        """Compute a commit's zero-context diff against its first parent.

        A root commit is diffed against the empty tree.

        Raises:
            VcsError: If the diff cannot be computed.

        """
        parent = self.first_parent(commit)
        # Headers must read "a/<path> b/<path>" whatever the diff.*Prefix config
        common = [
            "--no-color",
            "--no-ext-diff",
            "--no-renames",
            "--src-prefix=a/",
            "--dst-prefix=b/",
            "-U0",
        ]
        if parent is None:
            output = self._run_git(
                ["diff-tree", "-p", "-r", "--root", "--no-commit-id", *common, commit]
            )
        else:
            output = self._run_git(["diff", *common, parent, commit])
        return parse_patches(output)
