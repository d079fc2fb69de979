#!/usr/bin/env python3
"""
Data models for hostsedit.
Parses hosts file text into classified lines and records.
"""

import io
import ipaddress
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, NamedTuple, Optional


DISABLED_MARKER = "#disabled: "

# Accepts a hand-written "#disabled:" without the trailing space too.
DISABLED_PATTERN = re.compile(r"#disabled: ?")

# ip, hostname, and whatever follows the hostname on the line
RECORD_PATTERN = re.compile(r"^([^\s#]+)[ \t]+([^\s#]+)(.*)$")


class EntryType(Enum):
    """Types of lines in a hosts file."""
    BLANK = "blank"
    COMMENT = "comment"
    RECORD = "record"
    DISABLED = "disabled"
    OTHER = "other"


class ValidationResult(NamedTuple):
    """Result of a shape check."""
    is_valid: bool
    errors: List[str]
    warnings: List[str] = []


def strip_line_ending(line: str) -> str:
    return line.rstrip("\r\n")


@dataclass
class HostRecord:
    """A single ip/hostname record, active or disabled."""

    ip: str
    hostname: str
    trailing: str = ""
    enabled: bool = True
    raw_line: Optional[str] = None
    line_number: Optional[int] = None
    marker: str = ""

    @classmethod
    def from_line(cls, line: str, line_number: Optional[int] = None) -> Optional['HostRecord']:
        """Parse an active or disabled record; None if the line is neither."""
        body = strip_line_ending(line)

        marker = ""
        if body.startswith("#"):
            match = DISABLED_PATTERN.match(body)
            if not match:
                return None
            marker = match.group(0)

        match = RECORD_PATTERN.match(body[len(marker):])
        if not match:
            return None

        ip, hostname, trailing = match.groups()
        return cls(
            ip=ip,
            hostname=hostname,
            trailing=trailing.strip(),
            enabled=not marker,
            raw_line=line,
            line_number=line_number,
            marker=marker
        )

    @property
    def comment(self) -> Optional[str]:
        """Text after the first '#' in the trailing part, if any."""
        if "#" not in self.trailing:
            return None
        return self.trailing.split("#", 1)[1].strip()

    @property
    def aliases(self) -> List[str]:
        return self.trailing.split("#", 1)[0].split()

    @property
    def visible_text(self) -> str:
        """The record as a user sees it: no line ending, no disabled marker."""
        if self.raw_line is None:
            return self.to_line()
        return strip_line_ending(self.raw_line)[len(self.marker):]

    @property
    def line_ending(self) -> str:
        if self.raw_line is None:
            return "\n"
        return self.raw_line[len(strip_line_ending(self.raw_line)):]

    def to_line(self) -> str:
        """Format a new record line, tab-aligned on the IP length."""
        padding = "\t\t" if len(self.ip) < 8 else "\t"
        line = f"{self.ip}{padding}{self.hostname}"
        if self.trailing:
            line += f"\t{self.trailing}"
        return line

    def disabled_line(self) -> str:
        return DISABLED_MARKER + self.raw_line

    def enabled_line(self) -> str:
        return self.raw_line[len(self.marker):]

    def validate(self) -> ValidationResult:
        """Check that the record has a usable shape."""
        ip_result = self.validate_ip(self.ip)
        hostname_result = self.validate_hostname(self.hostname)
        errors = ip_result.errors + hostname_result.errors
        if "\n" in self.trailing or "\r" in self.trailing:
            errors.append("Comment cannot contain line breaks")
        return ValidationResult(
            is_valid=len(errors) == 0,
            errors=errors,
            warnings=ip_result.warnings + hostname_result.warnings
        )

    @staticmethod
    def validate_ip(ip: str) -> ValidationResult:
        """IPv4 or IPv6 literal; IPv6 may carry a zone such as '%lo0'."""
        errors = []
        warnings = []

        if not ip:
            errors.append("IP address cannot be empty")
            return ValidationResult(False, errors, warnings)

        try:
            ip_obj = ipaddress.ip_address(ip)
            if ip_obj.is_multicast:
                warnings.append(f"Multicast IP {ip} detected")
            return ValidationResult(True, errors, warnings)
        except ValueError as e:
            errors.append(f"Invalid IP address '{ip}': {e}")
            return ValidationResult(False, errors, warnings)

    @staticmethod
    def validate_hostname(hostname: str) -> ValidationResult:
        """A hostname must be one token that the parser can read back."""
        errors = []

        if not hostname:
            errors.append("Hostname cannot be empty")
        elif len(hostname) > 253:
            errors.append(f"Hostname too long: {len(hostname)} > 253 characters")
        elif any(c.isspace() for c in hostname):
            errors.append(f"Hostname '{hostname}' contains whitespace")
        elif "#" in hostname:
            errors.append(f"Hostname '{hostname}' contains '#'")

        return ValidationResult(len(errors) == 0, errors, [])

    def same_pair(self, ip: str, hostname: str) -> bool:
        return self.ip == ip and self.hostname == hostname

    def __str__(self) -> str:
        return f"{self.ip} -> {self.hostname}"


@dataclass
class HostsLine:
    """Any physical line in the hosts file."""

    content: str
    line_number: int
    entry_type: EntryType
    record: Optional[HostRecord] = None

    @classmethod
    def from_line(cls, line: str, line_number: int) -> 'HostsLine':
        """Classify a line; the content is kept verbatim, line ending included."""
        body = strip_line_ending(line)
        stripped = body.strip()

        if not stripped:
            return cls(line, line_number, EntryType.BLANK)

        record = HostRecord.from_line(line, line_number)
        if record is not None:
            entry_type = EntryType.RECORD if record.enabled else EntryType.DISABLED
            return cls(line, line_number, entry_type, record)

        if stripped.startswith("#"):
            return cls(line, line_number, EntryType.COMMENT)
        return cls(line, line_number, EntryType.OTHER)


def split_lines(text: str) -> List[str]:
    """Split on \\n, \\r\\n or \\r, keeping each terminator."""
    return io.StringIO(text, newline="").readlines()


def parse_hosts(text: str) -> List[HostsLine]:
    return [HostsLine.from_line(line, number)
            for number, line in enumerate(split_lines(text), 1)]


def render(lines: List[HostsLine]) -> str:
    return "".join(line.content for line in lines)


@dataclass
class BackupInfo:
    """Information about a backup file."""

    path: Path
    timestamp: datetime
    size: int

    @classmethod
    def from_file(cls, backup_path: Path) -> 'BackupInfo':
        stat = backup_path.stat()
        return cls(
            path=backup_path,
            timestamp=datetime.fromtimestamp(stat.st_mtime),
            size=stat.st_size
        )

    @property
    def name(self) -> str:
        return self.path.name


@dataclass
class OperationResult:
    """Result of a hosts file mutation."""

    message: str
    records: List[HostRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
