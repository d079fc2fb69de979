#!/usr/bin/env python3
"""
hostsedit - add, remove, enable, disable, search and back up hosts file entries.
"""

import argparse
import logging
import os
import shlex
import shutil
import subprocess
import sys
import traceback
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from backups import BACKUP_ACTIONS, BACKUP_ACTIONS_HELP, BackupManager
from config import HostsConfig, get_config
from exceptions import ConfirmationDeclined, HostsError, NotFoundError, UsageError
from formatter import format_records, format_sections
from models import HostRecord
from repository import FileHostsRepository, RecordState

__version__ = "1.0.0"

logger = logging.getLogger("hostsedit")

CONFIRM_ANSWERS = ("y", "yes")

Handler = Callable[[argparse.Namespace, FileHostsRepository], bool]


class HostsArgumentParser(argparse.ArgumentParser):
    """Argument parser that reports usage errors as UsageError (exit 1)."""

    def error(self, message):
        self.print_usage(sys.stderr)
        raise UsageError(message)


def stdin_is_interactive() -> bool:
    return sys.stdin is not None and sys.stdin.isatty()


def confirm(prompt: str) -> None:
    """Ask a yes/no question; anything but yes raises ConfirmationDeclined."""
    if not stdin_is_interactive():
        raise ConfirmationDeclined(
            "Confirmation required but input is not interactive. Use --force to skip the prompt."
        )
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        answer = ""
    if answer.strip().lower() not in CONFIRM_ANSWERS:
        raise ConfirmationDeclined("Aborted. No changes were written.")


def print_lines(lines: List[str]) -> None:
    for line in lines:
        print(line)


def print_section(title: str, records: List[HostRecord], sections: bool = True) -> None:
    print(f"{title}:")
    print_lines(format_sections(records) if sections else format_records(records))


# Record commands

def add_entry_command(args, repo: FileHostsRepository) -> bool:
    """Add a single host entry."""
    comment = " ".join(args.comment) if args.comment else None
    result = repo.add_entry(args.ip, args.hostname, comment)
    print_section("Added", result.records)
    if result.warnings:
        print(f"⚠️  Warnings: {', '.join(result.warnings)}", file=sys.stderr)
    return True


def remove_entry_command(args, repo: FileHostsRepository) -> bool:
    """Remove the entries matching an IP, hostname, pair or search string."""
    records = repo.find(args.query, args.hostname)
    if not records:
        query = f"{args.query} {args.hostname}" if args.hostname else args.query
        raise NotFoundError(f"No matching records found for '{query}'.")

    if not args.force:
        print_section("Removing the following records", records)
        confirm("Are you sure you want to proceed?")

    result = repo.remove_entries(records)
    print_section("Removed", result.records)
    return True


def disable_command(args, repo: FileHostsRepository) -> bool:
    result = repo.disable(args.query)
    print_section("Disabled", result.records)
    return True


def enable_command(args, repo: FileHostsRepository) -> bool:
    result = repo.enable(args.query)
    # matched while disabled; shown as they now read
    print_section("Enabled", result.records, sections=False)
    return True


def disabled_command(args, repo: FileHostsRepository) -> bool:
    print_lines(format_records(repo.get_records(RecordState.DISABLED)))
    return True


def enabled_command(args, repo: FileHostsRepository) -> bool:
    print_lines(format_records(repo.get_records(RecordState.ENABLED)))
    return True


def list_entries_command(args, repo: FileHostsRepository) -> bool:
    """List all entries, only enabled or disabled ones, or those matching a search."""
    selector = getattr(args, 'filter', None)

    if selector == "enabled":
        return enabled_command(args, repo)
    if selector == "disabled":
        return disabled_command(args, repo)

    if selector:
        records = repo.search(selector)
    else:
        records = repo.get_records()
    print_lines(format_sections(records))
    return True


def search_command(args, repo: FileHostsRepository) -> bool:
    print_lines(format_sections(repo.search(args.text)))
    return True


def show_command(args, repo: FileHostsRepository) -> bool:
    print_lines(format_sections(repo.find(args.query)))
    return True


def block_command(args, repo: FileHostsRepository) -> bool:
    result = repo.block(args.hostnames)
    print_section("Blocked", result.records)
    return True


def unblock_command(args, repo: FileHostsRepository) -> bool:
    result = repo.unblock(args.hostnames)
    print_section("Unblocked", result.records)
    return True


# File commands

def backups_command(args, repo: FileHostsRepository) -> bool:
    """List, create, compare, delete, restore or show backups."""
    manager = BackupManager(repo)

    if args.action is None:
        for backup in manager.list_backups():
            print(backup.name)
        return True

    if args.action == "create":
        backup = manager.create_backup()
        print(f"✅ Backed up to {backup.path}")
        return True

    if not args.filename:
        raise UsageError(f"'backups {args.action}' requires a backup filename.")

    if args.action == "compare":
        print_lines(manager.compare(args.filename))
    elif args.action == "delete":
        path = manager.delete(args.filename)
        print(f"✅ Backup deleted: {path}")
    elif args.action == "restore":
        safety_backup = manager.restore(args.filename, skip_backup=args.skip_backup)
        if safety_backup is not None:
            print(f"Backed up current file to {safety_backup.path}")
        print(f"✅ Restored from backup: {args.filename}")
    elif args.action == "show":
        sys.stdout.write(manager.show(args.filename))
    return True


def file_command(args, repo: FileHostsRepository) -> bool:
    sys.stdout.write(repo.read_raw_content())
    return True


def edit_command(args, repo: FileHostsRepository) -> bool:
    """Open the hosts file in the configured editor."""
    command = shlex.split(repo.config.editor) + [str(repo.hosts_file)]
    logger.debug(f"Running editor: {command}")
    try:
        status = subprocess.call(command)
    except FileNotFoundError as e:
        raise HostsError(f"Editor not found: {command[0]}") from e
    if status != 0:
        raise HostsError(f"Editor exited with status {status}")
    return True


# Help commands

def commands_command(args, repo: FileHostsRepository) -> bool:
    if args.raw:
        print_lines(list(COMMANDS))
        return True

    print("Available commands:")
    for name in COMMANDS:
        print(f"  {name:<10} {COMMAND_HELP[name]}")
    return True


def help_command(args, repo: FileHostsRepository) -> bool:
    parser, subparsers = build_parser()
    if not args.topic:
        parser.print_help()
        return True
    if args.topic not in subparsers:
        raise UsageError(f"Unknown command: {args.topic}")
    subparsers[args.topic].print_help()
    return True


def version_command(args, repo: FileHostsRepository) -> bool:
    print(f"hostsedit {__version__}")
    return True


COMMANDS: Dict[str, Handler] = {
    'add': add_entry_command,
    'remove': remove_entry_command,
    'delete': remove_entry_command,
    'disable': disable_command,
    'enable': enable_command,
    'disabled': disabled_command,
    'enabled': enabled_command,
    'list': list_entries_command,
    'search': search_command,
    'show': show_command,
    'block': block_command,
    'unblock': unblock_command,
    'backups': backups_command,
    'file': file_command,
    'edit': edit_command,
    'commands': commands_command,
    'help': help_command,
    'version': version_command,
}

COMMAND_HELP = {
    'add': 'Add a record: <ip> <hostname> [<comment>]',
    'remove': 'Remove records matching an IP, hostname, pair or search string',
    'delete': 'Alias for remove',
    'disable': 'Disable records matching an IP, hostname or search string',
    'enable': 'Enable disabled records matching an IP, hostname or search string',
    'disabled': 'List disabled records',
    'enabled': 'List enabled records',
    'list': 'List records, optionally only enabled, disabled or matching a search',
    'search': 'List records containing a search string',
    'show': 'Show records matching an IP, hostname or search string',
    'block': 'Point hostnames at the loopback addresses',
    'unblock': 'Remove records created by block',
    'backups': 'List, create, compare, delete, restore or show backups',
    'file': 'Print the hosts file',
    'edit': 'Open the hosts file in $EDITOR',
    'commands': 'List available commands',
    'help': 'Show help for a command',
    'version': 'Show the version',
}

# Commands that write to the hosts file
MODIFY_COMMANDS = {'add', 'remove', 'delete', 'disable', 'enable', 'block', 'unblock', 'edit'}


def build_parser() -> Tuple[HostsArgumentParser, Dict[str, argparse.ArgumentParser]]:
    """Build the CLI parser; returns it with a map of command name to subparser."""
    # Global flags are accepted before or after the command name.
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--auto-sudo', '--sudo', dest='auto_sudo', action='store_true',
                        default=argparse.SUPPRESS,
                        help='Re-run with sudo when the hosts file is not writable')
    common.add_argument('--debug', action='store_true', default=argparse.SUPPRESS,
                        help='Print debug messages')
    common.add_argument('--hosts-file', type=Path, default=argparse.SUPPRESS,
                        help='Hosts file to operate on (default: $HOSTS_PATH or the system hosts file)')

    parser = HostsArgumentParser(
        prog='hostsedit',
        description='Manage hosts file entries',
        parents=[common],
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Add entry:        hostsedit add 10.10.10.10 target.local "lab box"
  Remove entry:     hostsedit remove target.local --force
  Disable entry:    hostsedit disable 10.10.10.10
  Search:           hostsedit search target
  Block a domain:   hostsedit block ads.example.com
  Create backup:    hostsedit backups create
        """
    )
    parser.add_argument('--version', action='version', version=f'hostsedit {__version__}')

    subparsers = parser.add_subparsers(dest='command', parser_class=HostsArgumentParser)

    def add_command(name: str, **kwargs) -> argparse.ArgumentParser:
        return subparsers.add_parser(name, parents=[common], help=COMMAND_HELP[name],
                                     description=COMMAND_HELP[name], **kwargs)

    add_parser = add_command('add')
    add_parser.add_argument('ip', help='IP address')
    add_parser.add_argument('hostname', help='Hostname')
    add_parser.add_argument('comment', nargs='*', help='Optional comment')

    remove_parser = add_command('remove', aliases=['delete'])
    remove_parser.add_argument('query', help='IP address, hostname or search string')
    remove_parser.add_argument('hostname', nargs='?', help='Hostname, to remove an exact IP/hostname pair')
    remove_parser.add_argument('-f', '--force', action='store_true', help='Skip the confirmation prompt')

    for name in ('disable', 'enable', 'show'):
        query_parser = add_command(name)
        query_parser.add_argument('query', help='IP address, hostname or search string')

    add_command('disabled')
    add_command('enabled')

    list_parser = add_command('list')
    list_parser.add_argument('filter', nargs='?', metavar='enabled|disabled|SEARCH',
                             help='Show only enabled or disabled records, or records matching SEARCH')

    search_parser = add_command('search')
    search_parser.add_argument('text', help='Search string')

    for name in ('block', 'unblock'):
        block_parser = add_command(name)
        block_parser.add_argument('hostnames', nargs='+', metavar='hostname')

    backups_parser = add_command('backups', epilog=BACKUP_ACTIONS_HELP,
                                 formatter_class=argparse.RawDescriptionHelpFormatter)
    backups_parser.add_argument('action', nargs='?', choices=BACKUP_ACTIONS)
    backups_parser.add_argument('filename', nargs='?', help='Backup file name or path')
    backups_parser.add_argument('--skip-backup', action='store_true',
                                help='With restore: do not back up the current file first')

    add_command('file')
    add_command('edit')

    commands_parser = add_command('commands')
    commands_parser.add_argument('--raw', action='store_true', help='One command name per line')

    help_parser = add_command('help')
    help_parser.add_argument('topic', nargs='?', metavar='command')

    add_command('version')

    return parser, dict(subparsers.choices)


def write_checks(args) -> List[str]:
    """Which locations a command needs to write: 'hosts' and/or 'backups'."""
    if args.command in MODIFY_COMMANDS:
        return ['hosts']
    if args.command == 'backups':
        if args.action in ('create', 'delete'):
            return ['backups']
        if args.action == 'restore':
            return ['hosts'] if args.skip_backup else ['hosts', 'backups']
    return []


def escalate(config: HostsConfig, argv: List[str]) -> None:
    """Re-run this command under sudo. Only returns if sudo is unavailable."""
    sudo = shutil.which("sudo")
    if sudo is None:
        logger.warning("sudo not found; cannot escalate privileges")
        return

    command = [sudo, sys.executable, "-m", "hostsedit", "--hosts-file", str(config.hosts_file)] + argv
    logger.info(f"Re-running with sudo: {command}")
    sys.stdout.flush()
    sys.stderr.flush()
    os.execv(sudo, command)


def ensure_write_access(args, repo: FileHostsRepository, argv: List[str]) -> None:
    checkers = {'hosts': repo, 'backups': BackupManager(repo)}
    needed = [checkers[name] for name in write_checks(args)]

    if all(checker.is_writable() for checker in needed):
        return

    is_root = hasattr(os, 'geteuid') and os.geteuid() == 0
    if repo.config.auto_sudo and not is_root:
        escalate(repo.config, argv)

    for checker in needed:
        checker.ensure_writable()


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI function."""
    argv = list(sys.argv[1:] if argv is None else argv)
    parser, _ = build_parser()

    try:
        args = parser.parse_args(argv)
    except UsageError as e:
        print(f"❌ {e}", file=sys.stderr)
        return e.exit_code
    except SystemExit as e:
        # --help and --version
        return e.code if isinstance(e.code, int) else 0

    if not args.command:
        args.command = 'list'
        args.filter = None

    debug = getattr(args, 'debug', False)

    try:
        config = get_config(
            hosts_file=getattr(args, 'hosts_file', None),
            auto_sudo=True if getattr(args, 'auto_sudo', False) else None
        )
        config.setup_logging(debug)
        repo = FileHostsRepository(config)

        if write_checks(args):
            ensure_write_access(args, repo, argv)

        success = COMMANDS[args.command](args, repo)
        return 0 if success else 1

    except HostsError as e:
        logger.debug(f"{type(e).__name__}: {e}")
        print(f"❌ {e}", file=sys.stderr)
        return e.exit_code
    except KeyboardInterrupt:
        print("\n\n⚠️  Operation cancelled by user.", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"❌ Unexpected error: {e}", file=sys.stderr)
        if debug:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
