"""Custom exception hierarchy for histfix.

All custom exceptions inherit from HistfixError to enable:
- Unified exception handling at the CLI boundary
- Clear distinction from built-in exceptions
- Consistent error messaging patterns
"""

from pathlib import Path
from typing import Any

__all__ = [
    "HistfixError",
    "ConfigError",
    "ConfigValidationError",
    "VcsError",
    "TokenizeError",
    "HighlightError",
    "RewriteOrderError",
    "SpanError",
    "BackupError",
    "PersistError",
]


class HistfixError(Exception):
    """Base exception for all histfix errors."""

    pass


class ConfigError(HistfixError):
    """Configuration loading or validation error.

    Raised when:
    - The configuration file cannot be read
    - The configuration file is not valid YAML
    - The configuration data is not a mapping
    """

    pass


class ConfigValidationError(ConfigError):
    """Validation error with structured Pydantic details.

    Attributes:
        errors: List of error dicts with 'loc', 'msg', and 'type' fields,
            as produced by pydantic's ValidationError.errors().

    Example:
        >>> try:
        ...     load_config(project)
        ... except ConfigValidationError as e:
        ...     for err in e.errors:
        ...         path = ".".join(str(x) for x in err["loc"])
        ...         print(f"{path}: {err['msg']}")

    """

    def __init__(self, message: str, errors: list[dict[str, Any]]) -> None:
        """Initialize ConfigValidationError with message and structured errors.

        Args:
            message: Human-readable error message.
            errors: List of error dicts from Pydantic ValidationError.

        """
        super().__init__(message)
        self.errors = errors


class VcsError(HistfixError):
    """Version-control access error.

    Raised before any file is touched when:
    - The repository cannot be opened (not a git work tree, git missing)
    - A ref cannot be resolved
    - A commit's diff cannot be computed
    """

    pass


class TokenizeError(HistfixError):
    """A line contains content the tokenizer cannot classify.

    Typically an unterminated string or char literal cut off by the
    captured window.

    Attributes:
        line: The offending line (or fragment).
        column: 0-based character column where lexing failed.

    """

    def __init__(self, message: str, line: str, column: int) -> None:
        """Initialize TokenizeError with the failing line and column.

        Args:
            message: Human-readable error message.
            line: The line or fragment that failed to lex.
            column: 0-based column of the unclassifiable content.

        """
        super().__init__(message)
        self.line = line
        self.column = column


class HighlightError(HistfixError):
    """The highlight provider could not produce highlights.

    Raised when the analysis command cannot be started, times out, or
    emits output that cannot be decoded.
    """

    pass


class RewriteOrderError(HistfixError):
    """An edit was attempted at or before the last rewritten line of a file.

    Edits within one pass must be strictly increasing by line. The
    orchestrator defers such highlights to the next pass, so seeing this
    error means a caller skipped that check.
    """

    pass


class SpanError(HistfixError):
    """A text range does not fit the text it is applied to.

    Raised when a highlight refers to lines or columns the file no longer
    has (stale analysis output), or a token range runs past the captured
    lines.
    """

    pass


class BackupError(HistfixError):
    """A file backup could not be created, restored, or disabled.

    Attributes:
        path: The file the backup belongs to.

    """

    def __init__(self, message: str, path: Path) -> None:
        """Initialize BackupError with message and backed-up path.

        Args:
            message: Human-readable error message.
            path: Path of the file being backed up.

        """
        super().__init__(message)
        self.path = path


class PersistError(HistfixError):
    """An edited file could not be written back to disk.

    Attributes:
        path: The file that failed to persist.

    """

    def __init__(self, message: str, path: Path) -> None:
        """Initialize PersistError with message and target path.

        Args:
            message: Human-readable error message.
            path: Path of the file that could not be written.

        """
        super().__init__(message)
        self.path = path
