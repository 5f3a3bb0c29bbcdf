"""Git access: commit walks, first-parent diffs and hunk parsing."""

from histfix.git.history import DiffLine, GitRepository, Hunk, Patch, parse_patches, short_id

__all__ = ["DiffLine", "GitRepository", "Hunk", "Patch", "parse_patches", "short_id"]
