"""File backups that can always restore a file's pre-run content.

A Backup copies the file to a temporary sibling (same directory, so the
restore is an atomic rename on the same filesystem). Until disable() is
called the copy is kept; restore() moves it back over the file.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from histfix.core.exceptions import BackupError

logger = logging.getLogger(__name__)

# Prefix of backup copies, so stray ones are recognizable
BACKUP_PREFIX = ".histfix-backup-"

__all__ = ["BACKUP_PREFIX", "Backup"]


class Backup:
    """Rollback copy of one file.

    Attributes:
        path: The file being protected.
        backup_path: Location of the copy, or None once restored or disabled.

    """

    def __init__(self, path: Path, backup_path: Path) -> None:
        """Wrap an existing copy; use Backup.create() to make one."""
        self.path = path
        self.backup_path: Path | None = backup_path

    @classmethod
    def create(cls, path: Path) -> Backup:
        """Copy path to a temporary sibling.

        Raises:
            BackupError: If the file cannot be read or the copy written.

        """
        if not path.is_file():
            raise BackupError(f"Could not back up {path}: not a file", path)
        try:
            parent = path.resolve().parent
            fd, tmp_name = tempfile.mkstemp(prefix=BACKUP_PREFIX, suffix=f"-{path.name}", dir=parent)
            os.close(fd)
        except OSError as e:
            raise BackupError(f"Could not back up {path}: {e}", path) from e
        try:
            shutil.copy2(path, tmp_name)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise BackupError(f"Could not back up {path}: {e}", path) from e
        logger.debug("Backed up %s to %s", path, tmp_name)
        return cls(path, Path(tmp_name))

    @property
    def active(self) -> bool:
        """True while the backup can still restore the file."""
        return self.backup_path is not None

    def restore(self) -> None:
        """Put the original content back and drop the copy.

        Raises:
            BackupError: If the rename fails.

        """
        if self.backup_path is None:
            return
        try:
            os.replace(self.backup_path, self.path)
        except OSError as e:
            raise BackupError(f"Could not restore {self.path}: {e}", self.path) from e
        logger.debug("Restored %s", self.path)
        self.backup_path = None

    def disable(self) -> None:
        """Finalize: keep the current file content and discard the copy.

        Raises:
            BackupError: If the copy cannot be removed.

        """
        if self.backup_path is None:
            return
        try:
            self.backup_path.unlink(missing_ok=True)
        except OSError as e:
            raise BackupError(f"Could not disable backup of {self.path}: {e}", self.path) from e
        self.backup_path = None
