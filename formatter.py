#!/usr/bin/env python3
"""
Display formatting for hosts records.
"""

from typing import List, Sequence

from models import HostRecord

DISABLED_HEADER = ["Disabled:", "---------"]


def _flatten(text: str) -> str:
    return text.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


def format_record(record: HostRecord, width: int) -> str:
    line = f"{record.ip.ljust(width)}\t{record.hostname}"
    if record.trailing:
        line += f"\t{_flatten(record.trailing)}"
    return line


def format_records(records: Sequence[HostRecord]) -> List[str]:
    """Render records with the hostname column aligned after the longest IP."""
    if not records:
        return []
    width = max(len(record.ip) for record in records)
    return [format_record(record, width) for record in records]


def format_sections(records: Sequence[HostRecord]) -> List[str]:
    """Active records first, then a 'Disabled:' section if there are any."""
    enabled = [r for r in records if r.enabled]
    disabled = [r for r in records if not r.enabled]

    lines = format_records(enabled)
    if disabled:
        if lines:
            lines.append("")
        lines.extend(DISABLED_HEADER)
        lines.extend(format_records(disabled))
    return lines
