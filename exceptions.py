#!/usr/bin/env python3
"""
Error types for hostsedit.
Library code raises these; the CLI turns them into messages and exit codes.
"""


class HostsError(Exception):
    """Base class for all hostsedit errors."""

    exit_code = 1


class UsageError(HostsError):
    """Missing or invalid command-line arguments."""


class NotFoundError(HostsError):
    """A query matched no records."""


class DuplicateError(HostsError):
    """The (ip, hostname) pair is already present in the hosts file."""


class HostsPermissionError(HostsError):
    """The hosts file (or a backup location) is not writable."""


class HostsIOError(HostsError):
    """A file could not be read or written, or changed underneath us."""


class ConfirmationDeclined(HostsError):
    """The user did not confirm a destructive operation."""
