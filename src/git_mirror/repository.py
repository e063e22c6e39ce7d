"""The per-repository sync engine.

A `Repository` owns one local working copy and converges it to a single remote
reference: open or initialize, fetch into a staging ref, compare, hard reset.
Only the checked/changed timestamps are mutable, and only under the state lock.
Callers must not run `update()` for the same repository concurrently; the
worker pool enforces that.
"""

import logging
import threading
import time
from dataclasses import dataclass

from .config import RepoConfig
from .constants import APP_NAME, STAGING_REF
from .credentials import CredentialResolver
from .exceptions import GitError, LocalIOError
from .git_wrapper import GitRepo

logger = logging.getLogger(APP_NAME)


@dataclass
class SyncState:
    last_checked: float | None = None
    last_changed: float | None = None


class Repository:
    """A named mirror: immutable configuration plus guarded sync state.

    Attributes:
        name (str): The repository name from the configuration.
        config (RepoConfig): The repository settings.
    """

    def __init__(self, name: str, config: RepoConfig):
        self._name = name
        self._config = config
        self._state = SyncState()
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> RepoConfig:
        return self._config

    def last_checked(self) -> float | None:
        with self._lock:
            return self._state.last_checked

    def last_changed(self) -> float | None:
        with self._lock:
            return self._state.last_changed

    def is_due(self, now: float | None = None) -> bool:
        """Determines whether the polling interval has elapsed.

        A repository that was never checked is always due. One without an
        interval is never due.

        Args:
            now (float | None): The reference time. Defaults to time.time().

        Returns:
            bool: True if a check should be dispatched.
        """
        interval = self._config.interval
        if interval is None:
            return False

        last = self.last_checked()
        if last is None:
            return True

        now = time.time() if now is None else now
        return last + interval < now

    def update(self) -> bool:
        """Converges the local working copy to the configured remote reference.

        Steps:
        1. Records the check time.
        2. Opens the working copy, or creates and initializes it.
        3. Fetches the remote reference into the staging ref.
        4. Compares HEAD to the staging commit and stops if they match.
        5. Hard-resets to the staging commit, removing untracked files.

        Returns:
            bool: True if the working copy changed, False if already up to date.

        Raises:
            GitError: If open, init, fetch, resolve or reset fails.
            LocalIOError: If the working copy directory cannot be created.
        """
        now = time.time()
        with self._lock:
            self._state.last_checked = now

        path = self._config.path
        if path.exists():
            logger.info(f"[{self._name}] Using existing repository")
            repo = GitRepo(path)
        else:
            logger.info(f"[{self._name}] Initializing new repository")
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise LocalIOError(f"Could not create {path}: {e}") from e
            repo = GitRepo.init(path)

        refspec = f"+{self._config.remote_ref}:{STAGING_REF}"
        logger.info(f"[{self._name}] Fetching data from remote")
        repo.fetch(
            self._config.remote_url,
            refspec,
            CredentialResolver(self._config.credentials),
        )
        logger.info(f"[{self._name}] Fetched data from remote")

        current = repo.resolve("HEAD")
        remote = repo.resolve(STAGING_REF)
        if remote is None:
            raise GitError(
                f"Remote reference {self._config.remote_ref} did not resolve"
            )

        if current is not None and current.id == remote.id:
            logger.info(f"[{self._name}] Already up to date")
            return False

        repo.reset_hard(remote)
        logger.info(f"[{self._name}] Updated to {remote.id}")

        with self._lock:
            self._state.last_changed = now

        return True

    def __repr__(self) -> str:
        return f"Repository({self._name!r}, {str(self._config.path)!r})"
