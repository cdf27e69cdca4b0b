# =============================================================================
# Configuration Management
# =============================================================================
# Loads and validates mailsync configuration.
#
# XDG Base Directory Compliance (https://specifications.freedesktop.org/basedir-spec/):
#   - Config:  $XDG_CONFIG_HOME/mailsync/  (default: ~/.config/mailsync/)
#
# Files:
#   - config.toml: Tuning knobs for the engine and the CLI
#
# Example config.toml:
#
#   [connection]
#   timeout_seconds = 30.0
#
#   [sync]
#   batch_size = 50
#
#   [logging]
#   level = "INFO"
#
# Accounts and tokens are not configured here; the application shell passes
# them to every operation.
# =============================================================================

import logging
import os
import tomllib  # Built into Python 3.11+
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


# =============================================================================
# XDG Directory Management
# =============================================================================

# Application identifier used in all XDG paths
APP_NAME = "mailsync"


def get_xdg_config_home() -> Path:
    """
    Returns the XDG config directory for mailsync.

    Respects $XDG_CONFIG_HOME if set, otherwise uses ~/.config/mailsync/
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        base = Path(xdg_config)
    else:
        base = Path.home() / ".config"
    return base / APP_NAME


# =============================================================================
# Configuration Data Structures
# =============================================================================

@dataclass
class ConnectionConfig:
    """
    Configuration for IMAP connections.

    Attributes:
        timeout_seconds: Bound on connect, TLS handshake and greeting, and
                         aioimaplib's per-command timeout.
    """
    timeout_seconds: float = 30.0


@dataclass
class SyncConfig:
    """
    Configuration for message synchronization.

    Attributes:
        batch_size: Messages requested per UID FETCH.
    """
    batch_size: int = 50


@dataclass
class LoggingConfig:
    """
    Configuration for the CLI's log output.

    Attributes:
        level: Logging level name ("DEBUG", "INFO", "WARNING", ...).
    """
    level: str = "INFO"


@dataclass
class Config:
    """
    Main configuration container for mailsync.

    Usage:
        >>> config = Config.load()
        >>> config.sync.batch_size
        50
    """
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # -------------------------------------------------------------------------
    # File Paths
    # -------------------------------------------------------------------------

    @staticmethod
    def config_file_path() -> Path:
        """Returns the path to the main config file."""
        return get_xdg_config_home() / "config.toml"

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path | str | None = None) -> "Config":
        """
        Load configuration from a TOML file.

        If the file doesn't exist, returns default configuration.

        Args:
            path: Config file to read. Defaults to config_file_path().

        Raises:
            ConfigError: If the config file exists but is invalid.
        """
        config_path = Path(path) if path is not None else cls.config_file_path()

        if not config_path.exists():
            # No config file yet - return defaults
            return cls()

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file {config_path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """
        Create a Config object from a dictionary (parsed TOML).

        Unknown sections and keys are ignored; known ones are validated.
        """
        config = cls()

        # Connection settings
        connection = _section(data, "connection")
        timeout = connection.get("timeout_seconds", 30.0)
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError(f"connection.timeout_seconds must be a positive number, got {timeout!r}")
        config.connection = ConnectionConfig(timeout_seconds=float(timeout))

        # Sync settings
        sync = _section(data, "sync")
        batch_size = sync.get("batch_size", 50)
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
            raise ConfigError(f"sync.batch_size must be a positive integer, got {batch_size!r}")
        config.sync = SyncConfig(batch_size=batch_size)

        # Logging settings
        log = _section(data, "logging")
        level = log.get("level", "INFO")
        if not isinstance(level, str) or not isinstance(logging.getLevelName(level.upper()), int):
            raise ConfigError(f"logging.level must be a logging level name, got {level!r}")
        config.logging = LoggingConfig(level=level.upper())

        return config


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{name}] must be a table")
    return section


# =============================================================================
# Exceptions
# =============================================================================

class ConfigError(Exception):
    """Raised when there's an error loading or parsing configuration."""
    pass


# =============================================================================
# Utility Functions
# =============================================================================

def print_paths() -> None:
    """
    Print the config paths for debugging.
    Useful for users wondering where their config is read from.
    """
    print(f"Config:       {get_xdg_config_home()}")
    print(f"Config file:  {Config.config_file_path()}")
