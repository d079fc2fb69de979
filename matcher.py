#!/usr/bin/env python3
"""
Record matching for hostsedit.

A query is either a single term or an (ip, hostname) pair. A single term is
tried against the modes in LOCATE_ORDER and the first mode that matches
anything wins, so "10.0.0.1" selects records with that exact address even
when other records merely contain the text.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from models import HostRecord

logger = logging.getLogger(__name__)


class MatchMode(Enum):
    """How a query term is compared against a record."""
    IP = "ip"
    HOSTNAME = "hostname"
    PAIR = "pair"
    SUBSTRING = "substring"


LOCATE_ORDER = (MatchMode.IP, MatchMode.HOSTNAME, MatchMode.SUBSTRING)


@dataclass(frozen=True)
class Query:
    """A term to match, with the mode to match it in."""

    mode: MatchMode
    term: str
    hostname: Optional[str] = None

    def __post_init__(self):
        if self.mode == MatchMode.PAIR and self.hostname is None:
            raise ValueError("A pair query needs both an IP address and a hostname")

    def matches(self, record: HostRecord) -> bool:
        if self.mode == MatchMode.IP:
            return record.ip == self.term
        if self.mode == MatchMode.HOSTNAME:
            return record.hostname == self.term
        if self.mode == MatchMode.PAIR:
            return record.same_pair(self.term, self.hostname)
        return self.term in record.visible_text

    def __str__(self) -> str:
        if self.mode == MatchMode.PAIR:
            return f"{self.term} {self.hostname}"
        return self.term


def match_records(records: Iterable[HostRecord], query: Query) -> List[HostRecord]:
    return [record for record in records if query.matches(record)]


def locate(records: Iterable[HostRecord], term: str,
           hostname: Optional[str] = None) -> List[HostRecord]:
    """
    Find the records a user means by `term` (and optionally `hostname`).

    With a hostname this is an exact pair match. Otherwise each mode in
    LOCATE_ORDER is tried in turn and the first non-empty result is returned.
    """
    records = list(records)

    if hostname is not None:
        return match_records(records, Query(MatchMode.PAIR, term, hostname))

    for mode in LOCATE_ORDER:
        matches = match_records(records, Query(mode, term))
        if matches:
            logger.debug(f"'{term}' matched {len(matches)} record(s) by {mode.value}")
            return matches

    logger.debug(f"'{term}' matched no records")
    return []


def search(records: Iterable[HostRecord], text: str) -> List[HostRecord]:
    """Case-sensitive substring search over the visible record text."""
    return match_records(records, Query(MatchMode.SUBSTRING, text))
