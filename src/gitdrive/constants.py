import os
from pathlib import Path

"""Global constants and path definitions for gitdrive.

This module defines the application identity, the filesystem layout used for
configuration and logs (adhering to XDG conventions where applicable), and the
default synchronization settings.
"""

# --- Identity ---
APP_NAME = "gitdrive"
"""str: The human-readable application name (also the logger name)."""

SYNC_EVENT = "sync"
"""str: Event label emitted after every sync cycle."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / APP_NAME
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "gitdrive.log"
"""Path: The file path for the rotating log file."""

_XDG_CONFIG = os.environ.get("XDG_CONFIG_HOME")
_BASE_CONFIG = Path(_XDG_CONFIG) if _XDG_CONFIG else Path.home() / ".config"

CONFIG_DIR: Path = _BASE_CONFIG / APP_NAME
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

# --- Sync defaults ---
DEFAULT_REMOTE = "origin"
DEFAULT_BRANCH = "master"
DEFAULT_INTERVAL = 60
"""int: Seconds between successive sync cycles."""

DEFAULT_DEDUP_INTERVAL = 3600
"""int: Seconds during which a repeated notification event is suppressed."""

MAX_LOG_SIZE = 5 * 1024 * 1024
"""int: Max bytes for the log file before rotation."""

# --- Git ---
GIT_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_EDITOR": "true",
    "GIT_SSH_COMMAND": "ssh -o BatchMode=yes",
}
"""dict[str, str]: Environment forcing git to run non-interactively."""

CONFLICT_SUFFIXES = ("common", "ours", "theirs")
"""tuple[str, ...]: Suffixes of the per-stage files extracted during a conflict."""
