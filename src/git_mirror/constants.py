import os
from pathlib import Path

"""Global constants and configuration path definitions for git-mirror.

This module defines the filesystem layout (adhering to XDG standards where applicable),
application identifiers, and the fixed git reference names used while mirroring.
"""

# --- Identity ---
APP_NAME = "git-mirror"
"""str: The human-readable application name."""

APP_LABEL = "git-mirror"
"""str: The systemd unit name used for the background service."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "git-mirror"
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "daemon.log"
"""Path: The file path for the daemon process logs."""

# --- Configuration Paths ---
_XDG_CONFIG = os.environ.get("XDG_CONFIG_HOME")
_BASE_CONFIG = Path(_XDG_CONFIG) if _XDG_CONFIG else Path.home() / ".config"

CONFIG_DIR: Path = _BASE_CONFIG / "git-mirror"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

# --- Git / Logic Constants ---
STAGING_REF = "refs/git-mirror/staging"
"""str: Local reference the fetched remote commit lands on before comparison."""

DEFAULT_REMOTE_REF = "refs/heads/master"
"""str: The remote reference tracked when a repository does not name one."""

TICK_INTERVAL = 1.0
"""float: Seconds a ticker sleeps between due-checks."""

DEFAULT_WORKERS = 2
"""int: Number of worker threads consuming the dispatch channel."""

DEFAULT_QUEUE_SIZE = 16
"""int: Capacity of the dispatch channel."""
