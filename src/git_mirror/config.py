import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_QUEUE_SIZE,
    DEFAULT_REMOTE_REF,
    DEFAULT_WORKERS,
)

logger = logging.getLogger(APP_NAME)


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '100MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | str) -> int:
    """Converts human-readable time strings (e.g., '1hr', '30m') to seconds."""
    if isinstance(value, int):
        return value
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {"s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}
    return int(num * multiplier[unit])


@dataclass(frozen=True)
class SshCredentials:
    """Key based authentication for SSH remotes.

    Attributes:
        private_key (str): The private key content, or a file path when
            `private_key_path` is set.
        private_key_path (bool): Whether `private_key` names a file to read.
        username (str | None): Username offered during negotiation.
        public_key (str | None): Optional matching public key content.
        passphrase (str | None): Optional passphrase protecting the key.
    """

    private_key: str
    private_key_path: bool = False
    username: str | None = None
    public_key: str | None = None
    passphrase: str | None = None


@dataclass(frozen=True)
class PasswordCredentials:
    """Username/password authentication for HTTP(S) remotes.

    Attributes:
        password (str): The plaintext password or access token.
        username (str | None): The username to pair with the password.
    """

    password: str
    username: str | None = None


Credentials = SshCredentials | PasswordCredentials


@dataclass(frozen=True)
class RepoConfig:
    """Settings for one mirrored repository.

    Attributes:
        path (Path): The local working copy location.
        remote_url (str): The URL fetched from.
        remote_ref (str): The remote reference the working copy converges to.
        interval (int | None): Seconds between checks, or None for manual only.
        credentials (Credentials | None): How to authenticate against the remote.
    """

    path: Path
    remote_url: str
    remote_ref: str = DEFAULT_REMOTE_REF
    interval: int | None = None
    credentials: Credentials | None = None


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for log files before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


@dataclass
class DaemonConfig:
    """Daemon operational settings.

    Attributes:
        workers (int): Number of threads running repository updates.
        queue_size (int): Capacity of the dispatch channel.
    """

    workers: int = DEFAULT_WORKERS
    queue_size: int = DEFAULT_QUEUE_SIZE


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        limits (LimitsConfig): Resource limits.
        daemon (DaemonConfig): Daemon behavior settings.
        repos (dict[str, RepoConfig]): Mirrored repositories keyed by name.
    """

    limits: LimitsConfig = field(default_factory=LimitsConfig)
    daemon: DaemonConfig = field(default_factory=DaemonConfig)
    repos: dict[str, RepoConfig] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads configuration from disk, applying defaults where necessary.

        Args:
            path (Path | None): The TOML file to read. Defaults to CONFIG_FILE.

        Returns:
            Config: The populated configuration object.

        Raises:
            tomllib.TOMLDecodeError: If the file is not valid TOML.
        """
        instance = cls()
        path = path or CONFIG_FILE

        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return instance

        with open(path, "rb") as f:
            data = tomllib.load(f)

        instance._merge(data)
        return instance

    def _merge(self, data: dict[str, Any]) -> None:
        """Merges parsed TOML data into the current instance."""
        if "limits" in data:
            self.limits = self._update_dataclass("limits", self.limits, data["limits"])
        if "daemon" in data:
            self.daemon = self._update_dataclass("daemon", self.daemon, data["daemon"])

        repos = data.get("repos", {})
        if not isinstance(repos, dict):
            logger.error("Invalid [repos] section: expected a table. Skipping.")
            return

        for name, entry in repos.items():
            try:
                self.repos[name] = parse_repo(entry)
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Invalid repository [repos.{name}]: {e}. Skipping.")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        # 1. Catch and warn about typos / unknown keys
        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(invalid_keys)}. Ignoring."
            )

        # 2. Process valid keys
        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                elif k in ["workers", "queue_size"]:
                    filtered_updates[k] = _positive_int(v)
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)


def _positive_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Expected a positive integer, got '{value}'")
    return value


def parse_credentials(entry: dict[str, Any]) -> Credentials:
    """Builds a credential variant from a `[repos.<name>.credentials]` table.

    Args:
        entry (dict[str, Any]): The raw table. `type` selects the variant.

    Returns:
        Credentials: The SSH or password credential.

    Raises:
        ValueError: If the type is unknown.
        KeyError: If a required field is missing.
        TypeError: If the entry is not a table.
    """
    if not isinstance(entry, dict):
        raise TypeError("credentials must be a table")
    kind = str(entry.get("type", "ssh" if "private_key" in entry else "password"))
    kind = kind.lower()

    if kind == "ssh":
        return SshCredentials(
            private_key=entry["private_key"],
            private_key_path=bool(entry.get("private_key_path", False)),
            username=entry.get("username"),
            public_key=entry.get("public_key"),
            passphrase=entry.get("passphrase"),
        )
    if kind == "password":
        return PasswordCredentials(
            password=entry["password"],
            username=entry.get("username"),
        )
    raise ValueError(f"Unknown credential type '{kind}'")


def parse_repo(entry: dict[str, Any]) -> RepoConfig:
    """Builds a RepoConfig from a `[repos.<name>]` table.

    Raises:
        KeyError: If `path` or `remote_url` is missing.
        ValueError: If the interval or credentials are malformed.
        TypeError: If the entry or its credentials are not tables.
    """
    if not isinstance(entry, dict):
        raise TypeError(f"expected a table, got '{entry}'")
    interval = entry.get("interval")
    if interval is not None:
        interval = _positive_int(parse_time(interval))
    credentials = entry.get("credentials")

    return RepoConfig(
        path=Path(entry["path"]).expanduser(),
        remote_url=entry["remote_url"],
        remote_ref=entry.get("remote_ref", DEFAULT_REMOTE_REF),
        interval=interval,
        credentials=(
            parse_credentials(credentials) if credentials is not None else None
        ),
    )
