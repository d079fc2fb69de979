#!/usr/bin/env python3
"""
Backup management for the hosts file.
Backups are full copies named '<hosts name>--backup-<timestamp>'.
"""

import difflib
import os
import shutil
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from exceptions import HostsIOError, HostsPermissionError
from models import BackupInfo
from repository import FileHostsRepository

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

BACKUP_ACTIONS = ("create", "compare", "delete", "restore", "show")

BACKUP_ACTIONS_HELP = """
actions:
  (none)               list backups, oldest first
  create               back up the hosts file
  compare <filename>   diff a backup against the current hosts file
  delete <filename>    delete a backup
  restore <filename>   replace the hosts file with a backup
  show <filename>      print a backup
"""


class BackupManager:
    """Creates, lists, compares, restores and deletes hosts file backups."""

    def __init__(self, repository: FileHostsRepository):
        self.repository = repository
        self.config = repository.config

    @property
    def backup_dir(self) -> Path:
        return self.config.backups_path

    @property
    def prefix(self) -> str:
        return f"{self.config.hosts_file.name}--backup-"

    def list_backups(self) -> List[BackupInfo]:
        """All backups, oldest first."""
        if not self.backup_dir.is_dir():
            return []
        paths = sorted((p for p in self.backup_dir.glob(f"{self.prefix}*") if p.is_file()),
                       key=self._sort_key)
        return [BackupInfo.from_file(p) for p in paths]

    def _sort_key(self, path: Path):
        """Timestamp, then the numeric '.N' same-second suffix, so '.10' follows '.9'."""
        stamp, _, suffix = path.name[len(self.prefix):].partition(".")
        return stamp, int(suffix) if suffix.isdigit() else 0, path.name

    def resolve(self, filename: str) -> Path:
        """Accept a bare backup name or a path; the file must exist."""
        candidate = Path(filename).expanduser()
        if not candidate.is_file():
            candidate = self.backup_dir / filename
        if not candidate.is_file():
            raise HostsIOError(f"Backup file not found: {filename}")
        return candidate

    def is_writable(self) -> bool:
        directory = self.backup_dir
        while not directory.exists() and directory != directory.parent:
            directory = directory.parent
        return os.access(directory, os.W_OK)

    def ensure_writable(self) -> None:
        if not self.is_writable():
            raise HostsPermissionError(
                f"Permission denied: {self.backup_dir} is not writable. "
                "Run again with sudo or --auto-sudo."
            )

    def create_backup(self) -> BackupInfo:
        """Copy the hosts file to a new timestamped backup."""
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        backup_path = self._next_backup_path()

        try:
            shutil.copy2(self.config.hosts_file, backup_path)
        except FileNotFoundError as e:
            raise HostsIOError(f"Hosts file not found: {self.config.hosts_file}") from e
        except PermissionError as e:
            raise HostsPermissionError(
                f"Permission denied writing {backup_path}. Run again with sudo or --auto-sudo."
            ) from e
        except OSError as e:
            logger.error(f"Failed to create backup: {e}")
            raise HostsIOError(f"Failed to create backup: {e}") from e

        logger.info(f"Backed up {self.config.hosts_file} to {backup_path}")
        self._cleanup_old_backups()
        return BackupInfo.from_file(backup_path)

    def compare(self, filename: str) -> List[str]:
        """Unified diff from the backup to the current hosts file."""
        backup_path = self.resolve(filename)
        current = self.repository.read_raw_content().splitlines()
        backup = self._read(backup_path).splitlines()
        return list(difflib.unified_diff(
            backup,
            current,
            fromfile=str(backup_path),
            tofile=str(self.config.hosts_file),
            lineterm=""
        ))

    def show(self, filename: str) -> str:
        return self._read(self.resolve(filename))

    def delete(self, filename: str) -> Path:
        backup_path = self.resolve(filename)
        try:
            backup_path.unlink()
        except PermissionError as e:
            raise HostsPermissionError(
                f"Permission denied deleting {backup_path}. Run again with sudo or --auto-sudo."
            ) from e
        logger.info(f"Deleted backup {backup_path}")
        return backup_path

    def restore(self, filename: str, skip_backup: bool = False) -> Optional[BackupInfo]:
        """
        Replace the hosts file with a backup's contents.

        The current file is backed up first unless skip_backup is set; that
        new backup is returned.
        """
        backup_path = self.resolve(filename)
        content = self._read(backup_path)

        safety_backup = None
        if not skip_backup:
            safety_backup = self.create_backup()

        self.repository.replace_content(content)
        logger.info(f"Restored {self.config.hosts_file} from {backup_path}")
        return safety_backup

    def _read(self, path: Path) -> str:
        try:
            with open(path, 'r', encoding='utf-8', newline='') as f:
                return f.read()
        except OSError as e:
            raise HostsIOError(f"Could not read backup {path}: {e}") from e

    def _next_backup_path(self) -> Path:
        base = self.backup_dir / f"{self.prefix}{datetime.now().strftime(TIMESTAMP_FORMAT)}"
        path = base
        counter = 1
        while path.exists():
            path = base.with_name(f"{base.name}.{counter}")
            counter += 1
        return path

    def _cleanup_old_backups(self) -> None:
        """Remove the oldest backups beyond max_backups (0 keeps everything)."""
        if self.config.max_backups <= 0:
            return

        backups = self.list_backups()
        for backup in backups[:-self.config.max_backups]:
            try:
                backup.path.unlink()
                logger.debug(f"Removed old backup: {backup.path}")
            except OSError as e:
                logger.warning(f"Failed to remove old backup {backup.path}: {e}")
