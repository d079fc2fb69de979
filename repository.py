#!/usr/bin/env python3
"""
Repository pattern implementation for hosts file operations.
Every operation re-reads the file; every write is all-or-nothing.
"""

import os
import shutil
import tempfile
import logging
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from config import HostsConfig
from exceptions import DuplicateError, HostsIOError, HostsPermissionError, NotFoundError, UsageError
from matcher import locate, search
from models import HostRecord, HostsLine, OperationResult, parse_hosts, render, strip_line_ending

# Addresses written by `block`: IPv4 loopback and two IPv6 loopback forms.
BLOCK_ADDRESSES = ("127.0.0.1", "fe80::1%lo0", "::1")


class RecordState(Enum):
    """Which records an operation looks at."""
    ALL = "all"
    ENABLED = "enabled"
    DISABLED = "disabled"

    def accepts(self, record: HostRecord) -> bool:
        if self == RecordState.ENABLED:
            return record.enabled
        if self == RecordState.DISABLED:
            return not record.enabled
        return True


class HostsRepository(ABC):
    """Abstract repository interface for hosts file operations."""

    @abstractmethod
    def read_all_entries(self) -> List[HostsLine]:
        """Read and classify every line of the hosts file."""
        pass

    @abstractmethod
    def add_entries(self, records: List[HostRecord], skip_existing: bool = False) -> OperationResult:
        """Append new records."""
        pass

    @abstractmethod
    def remove_entries(self, records: List[HostRecord]) -> OperationResult:
        """Delete the given records."""
        pass

    @abstractmethod
    def disable_entries(self, records: List[HostRecord]) -> OperationResult:
        """Comment out the given records with the disabled marker."""
        pass

    @abstractmethod
    def enable_entries(self, records: List[HostRecord]) -> OperationResult:
        """Strip the disabled marker from the given records."""
        pass


class FileHostsRepository(HostsRepository):
    """File-based implementation of the hosts repository."""

    def __init__(self, config: HostsConfig):
        self.config = config
        self.logger = logging.getLogger(__name__)

    @property
    def hosts_file(self) -> Path:
        return self.config.hosts_file

    @property
    def target_path(self) -> Path:
        """The real file behind the hosts path, so symlinks survive a rewrite."""
        return Path(os.path.realpath(self.hosts_file))

    # Reading

    def read_raw_content(self) -> str:
        """Read the hosts file verbatim, line endings untranslated."""
        try:
            with open(self.hosts_file, 'r', encoding='utf-8', newline='') as f:
                return f.read()
        except FileNotFoundError as e:
            self.logger.error(f"Hosts file not found: {self.hosts_file}")
            raise HostsIOError(f"Hosts file not found: {self.hosts_file}") from e
        except PermissionError as e:
            self.logger.error(f"Permission denied reading: {self.hosts_file}")
            raise HostsPermissionError(f"Permission denied reading: {self.hosts_file}") from e
        except (OSError, UnicodeDecodeError) as e:
            self.logger.error(f"Unexpected error reading hosts file: {e}")
            raise HostsIOError(f"Could not read {self.hosts_file}: {e}") from e

    def read_all_entries(self) -> List[HostsLine]:
        entries = parse_hosts(self.read_raw_content())
        self.logger.debug(f"Loaded {len(entries)} lines from {self.hosts_file}")
        return entries

    def get_records(self, state: RecordState = RecordState.ALL) -> List[HostRecord]:
        return [entry.record for entry in self.read_all_entries()
                if entry.record is not None and state.accepts(entry.record)]

    def find(self, term: str, hostname: Optional[str] = None,
             state: RecordState = RecordState.ALL) -> List[HostRecord]:
        """Records matching an IP, a hostname, an (ip, hostname) pair or a substring."""
        return locate(self.get_records(state), term, hostname)

    def search(self, text: str, state: RecordState = RecordState.ALL) -> List[HostRecord]:
        return search(self.get_records(state), text)

    # Write access

    def is_writable(self) -> bool:
        target = self.target_path
        if target.exists() and not os.access(target, os.W_OK):
            return False
        return os.access(target.parent, os.W_OK)

    def ensure_writable(self) -> None:
        if not self.is_writable():
            raise HostsPermissionError(
                f"Permission denied: {self.hosts_file} is not writable. "
                "Run again with sudo or --auto-sudo."
            )

    # Mutations

    def add_entry(self, ip: str, hostname: str, comment: Optional[str] = None) -> OperationResult:
        """Add a single record, with an optional '# comment' suffix kept on one line."""
        if comment:
            comment = " ".join(comment.splitlines()).strip()
        trailing = f"# {comment}" if comment else ""
        return self.add_entries([HostRecord(ip, hostname, trailing)])

    def add_entries(self, records: List[HostRecord], skip_existing: bool = False) -> OperationResult:
        """
        Append records to the end of the file in a single write.

        An existing (ip, hostname) pair, active or disabled, is a DuplicateError
        unless skip_existing is set, in which case it is left alone.
        """
        warnings = []
        for record in records:
            validation = record.validate()
            if not validation.is_valid:
                raise UsageError(f"Invalid entry: {', '.join(validation.errors)}")
            warnings.extend(validation.warnings)

        entries = self.read_all_entries()
        known = [entry.record for entry in entries if entry.record is not None]

        to_add: List[HostRecord] = []
        for record in records:
            if any(other.same_pair(record.ip, record.hostname) for other in known + to_add):
                if skip_existing:
                    self.logger.debug(f"Skipping existing record: {record.ip} {record.hostname}")
                    continue
                raise DuplicateError(f"Duplicate address and host name: {record.ip} {record.hostname}")
            to_add.append(record)

        if not to_add:
            names = ", ".join(f"{r.ip} {r.hostname}" for r in records)
            raise DuplicateError(f"Records already exist: {names}")

        newline = self._newline_style(entries)
        content = render(entries)
        if content and strip_line_ending(content) == content:
            content += newline
        content += "".join(record.to_line() + newline for record in to_add)

        self._write_atomically(content)
        self.logger.info(f"Added {len(to_add)} record(s) to {self.hosts_file}")
        return OperationResult(f"Added {len(to_add)} record(s)", records=to_add, warnings=warnings)

    def remove_entries(self, records: List[HostRecord]) -> OperationResult:
        self._rewrite(records, lambda record: None)
        self.logger.info(f"Removed {len(records)} record(s) from {self.hosts_file}")
        return OperationResult(f"Removed {len(records)} record(s)", records=list(records))

    def disable_entries(self, records: List[HostRecord]) -> OperationResult:
        self._rewrite(records, HostRecord.disabled_line)
        self.logger.info(f"Disabled {len(records)} record(s) in {self.hosts_file}")
        return OperationResult(f"Disabled {len(records)} record(s)", records=list(records))

    def enable_entries(self, records: List[HostRecord]) -> OperationResult:
        self._rewrite(records, HostRecord.enabled_line)
        self.logger.info(f"Enabled {len(records)} record(s) in {self.hosts_file}")
        return OperationResult(f"Enabled {len(records)} record(s)", records=list(records))

    def remove(self, term: str, hostname: Optional[str] = None) -> OperationResult:
        """Remove every record the query locates, without asking."""
        return self.remove_entries(self._require(self.find(term, hostname), term, hostname))

    def disable(self, term: str) -> OperationResult:
        return self.disable_entries(self._require(self.find(term, state=RecordState.ENABLED), term))

    def enable(self, term: str) -> OperationResult:
        return self.enable_entries(self._require(self.find(term, state=RecordState.DISABLED), term))

    def block(self, hostnames: Iterable[str]) -> OperationResult:
        """Point each hostname at the loopback addresses."""
        records = [HostRecord(ip, hostname) for hostname in hostnames for ip in BLOCK_ADDRESSES]
        return self.add_entries(records, skip_existing=True)

    def unblock(self, hostnames: Iterable[str]) -> OperationResult:
        """Remove the loopback records that `block` created."""
        records = self.get_records()
        targets: Dict[int, HostRecord] = {}

        for hostname in hostnames:
            matches = [r for r in records if r.hostname == hostname and r.ip in BLOCK_ADDRESSES]
            if not matches:
                raise NotFoundError(f"No blocking records found for '{hostname}'.")
            for record in matches:
                targets[record.line_number] = record

        return self.remove_entries(list(targets.values()))

    def replace_content(self, content: str) -> None:
        """Replace the whole hosts file, e.g. from a backup."""
        self._write_atomically(content)
        self.logger.info(f"Replaced contents of {self.hosts_file}")

    # Internals

    @staticmethod
    def _require(records: List[HostRecord], term: str, hostname: Optional[str] = None) -> List[HostRecord]:
        if not records:
            query = f"{term} {hostname}" if hostname else term
            raise NotFoundError(f"No matching records found for '{query}'.")
        return records

    @staticmethod
    def _newline_style(entries: List[HostsLine]) -> str:
        for entry in entries:
            ending = entry.content[len(strip_line_ending(entry.content)):]
            if ending:
                return ending
        return "\n"

    def _rewrite(self, records: List[HostRecord],
                 transform: Callable[[HostRecord], Optional[str]]) -> None:
        """
        Replace each record's line with transform(record), or drop it when
        transform returns None. The file is re-read first and every target
        must still sit at its original line with its original text.
        """
        entries = self.read_all_entries()
        by_number = {entry.line_number: entry for entry in entries}
        targets = {record.line_number: record for record in records}

        for number, record in targets.items():
            current = by_number.get(number)
            if current is None or current.content != record.raw_line:
                raise HostsIOError(
                    f"{self.hosts_file} changed on disk (line {number} no longer reads "
                    f"'{record.visible_text}'). Nothing was written."
                )

        parts = []
        for entry in entries:
            if entry.line_number not in targets:
                parts.append(entry.content)
                continue
            replacement = transform(entry.record)
            if replacement is not None:
                parts.append(replacement)

        self._write_atomically("".join(parts))

    def _write_atomically(self, content: str) -> None:
        """Write to a temporary file beside the target, then rename over it."""
        target = self.target_path
        tmp_path = None

        try:
            with tempfile.NamedTemporaryFile(
                mode='w',
                encoding='utf-8',
                newline='',
                delete=False,
                dir=target.parent,
                prefix=f'.{target.name}.tmp.'
            ) as tmp:
                tmp_path = tmp.name
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())

            if target.exists():
                shutil.copymode(target, tmp_path)
            else:
                os.chmod(tmp_path, 0o644)

            os.replace(tmp_path, target)
            self.logger.debug(f"Wrote {len(content)} characters to {target}")

        except PermissionError as e:
            self._discard(tmp_path)
            self.logger.error(f"Permission denied writing hosts file: {target}")
            raise HostsPermissionError(
                f"Permission denied writing {self.hosts_file}. Run again with sudo or --auto-sudo."
            ) from e
        except OSError as e:
            self._discard(tmp_path)
            self.logger.error(f"Failed to write hosts file: {e}")
            raise HostsIOError(f"Failed to write {self.hosts_file}: {e}") from e

    def _discard(self, tmp_path: Optional[str]) -> None:
        if tmp_path and os.path.exists(tmp_path):
            try:
                os.unlink(tmp_path)
            except OSError as e:
                self.logger.warning(f"Could not remove temporary file {tmp_path}: {e}")
