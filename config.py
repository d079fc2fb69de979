#!/usr/bin/env python3
"""
Configuration management for hostsedit.
Provides a single immutable configuration built from defaults, a config
file, environment variables and command-line flags.
"""

import os
import sys
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_FILE = Path.home() / ".hostsedit" / "config.ini"
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
TRUE_VALUES = ("1", "true", "yes", "on")


def default_hosts_path() -> Path:
    """The platform's standard hosts file location."""
    if os.name == "nt":
        system_root = os.getenv("SystemRoot", r"C:\Windows")
        return Path(system_root) / "System32" / "drivers" / "etc" / "hosts"
    return Path("/etc/hosts")


def _as_bool(value: str) -> bool:
    return value.strip().lower() in TRUE_VALUES


def _as_int(value: str, source: str) -> Optional[int]:
    """Parse an integer setting; a bad value is logged and ignored."""
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer value '{value}' for {source}")
        return None


@dataclass(frozen=True)
class HostsConfig:
    """Configuration class for hostsedit."""

    # Core file paths
    hosts_file: Path = field(default_factory=default_hosts_path)
    backup_dir: Optional[Path] = None

    # Logging
    log_level: str = "WARNING"
    log_file: Optional[Path] = None

    # Behaviour
    auto_sudo: bool = False
    max_backups: int = 0
    editor: str = "vi"

    @property
    def backups_path(self) -> Path:
        """Where backups live; next to the hosts file unless configured."""
        return self.backup_dir if self.backup_dir is not None else self.hosts_file.parent

    @staticmethod
    def env_values() -> Dict[str, Any]:
        """Values set in the environment, keyed by field name."""
        values: Dict[str, Any] = {}

        if os.getenv("HOSTS_PATH"):
            values["hosts_file"] = Path(os.environ["HOSTS_PATH"])
        if os.getenv("HOSTS_BACKUP_DIR"):
            values["backup_dir"] = Path(os.environ["HOSTS_BACKUP_DIR"])
        if os.getenv("HOSTS_LOG_LEVEL"):
            values["log_level"] = os.environ["HOSTS_LOG_LEVEL"].upper()
        if os.getenv("HOSTS_LOG_FILE"):
            values["log_file"] = Path(os.environ["HOSTS_LOG_FILE"])
        if os.getenv("HOSTS_AUTO_SUDO"):
            values["auto_sudo"] = _as_bool(os.environ["HOSTS_AUTO_SUDO"])
        if os.getenv("HOSTS_MAX_BACKUPS"):
            max_backups = _as_int(os.environ["HOSTS_MAX_BACKUPS"], "HOSTS_MAX_BACKUPS")
            if max_backups is not None:
                values["max_backups"] = max_backups

        editor = os.getenv("VISUAL") or os.getenv("EDITOR")
        if editor:
            values["editor"] = editor

        return values

    @classmethod
    def from_env(cls) -> 'HostsConfig':
        """Load configuration from environment variables with defaults."""
        return cls(**cls.env_values())

    @classmethod
    def from_file(cls, config_file: Path) -> 'HostsConfig':
        """Load configuration from a file (simple key=value format)."""
        config = cls()

        if not config_file.exists():
            return config

        values: Dict[str, Any] = {}
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith('#') or '=' not in line:
                        continue

                    key, value = line.split('=', 1)
                    key = key.strip().lower()
                    value = value.strip().strip('"\'')

                    if key in ('hosts_file', 'hosts_path'):
                        values['hosts_file'] = Path(value).expanduser()
                    elif key == 'backup_dir':
                        values['backup_dir'] = Path(value).expanduser()
                    elif key == 'log_level':
                        values['log_level'] = value.upper()
                    elif key == 'log_file':
                        values['log_file'] = Path(value).expanduser()
                    elif key == 'auto_sudo':
                        values['auto_sudo'] = _as_bool(value)
                    elif key == 'max_backups':
                        max_backups = _as_int(value, f"max_backups in {config_file}")
                        if max_backups is not None:
                            values['max_backups'] = max_backups
                    elif key == 'editor':
                        values['editor'] = value
                    else:
                        logger.warning(f"Unknown key '{key}' in {config_file}")

        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Error reading config file {config_file}: {e}")

        return replace(config, **values)

    def with_overrides(self, **overrides: Any) -> 'HostsConfig':
        """Copy of this configuration with every non-None override applied."""
        known = {f.name for f in fields(self)}
        values = {k: v for k, v in overrides.items() if k in known and v is not None}
        return replace(self, **values)

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if not self.hosts_file.parent.exists():
            issues.append(f"Hosts file directory does not exist: {self.hosts_file.parent}")

        if self.max_backups < 0:
            issues.append("max_backups cannot be negative")

        if self.log_level not in LOG_LEVELS:
            issues.append(f"Invalid log level: {self.log_level}")

        return issues

    def setup_logging(self, debug: bool = False) -> None:
        """Setup logging based on configuration."""
        level = logging.DEBUG if debug else getattr(logging, self.log_level.upper(), logging.WARNING)

        handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
        if self.log_file is not None:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.log_file))

        logging.basicConfig(
            level=level,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=handlers
        )
        logging.getLogger().setLevel(level)


def get_config(config_file: Optional[Path] = None, **overrides: Any) -> HostsConfig:
    """Get configuration with precedence: overrides > env vars > config file > defaults."""
    config_file = config_file or DEFAULT_CONFIG_FILE

    config = HostsConfig.from_file(config_file)
    config = replace(config, **HostsConfig.env_values())
    config = config.with_overrides(**overrides)

    issues = config.validate()
    if issues:
        logger.warning(f"Configuration issues found: {issues}")

    return config
