"""Hand-off between tickers and the threads that run repository updates."""

import logging
import queue
import threading

from .constants import APP_NAME, DEFAULT_QUEUE_SIZE, TICK_INTERVAL
from .exceptions import UpdateError
from .repository import Repository

logger = logging.getLogger(APP_NAME)


class DispatchChannel:
    """A bounded FIFO of repositories waiting to be updated.

    Producers block while the channel is full. The same repository may be
    queued more than once; `is_queued` lets a producer avoid that.
    """

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE):
        self._queue: queue.Queue[Repository] = queue.Queue(maxsize=maxsize)
        self._queued: dict[str, int] = {}
        self._queued_lock = threading.Lock()

    def _count(self, repo: Repository, delta: int) -> None:
        with self._queued_lock:
            count = self._queued.get(repo.name, 0) + delta
            if count > 0:
                self._queued[repo.name] = count
            else:
                self._queued.pop(repo.name, None)

    def is_queued(self, repo: Repository) -> bool:
        """Checks whether a repository is waiting in the channel."""
        with self._queued_lock:
            return repo.name in self._queued

    def submit(
        self, repo: Repository, shutdown: threading.Event | None = None
    ) -> bool:
        """Enqueues a repository, waiting for space if the channel is full.

        Args:
            repo (Repository): The repository to update.
            shutdown (threading.Event | None): When given, the wait is abandoned
                once the event is set.

        Returns:
            bool: True if enqueued, False if shutdown interrupted the wait.
        """
        # Counted before the put so a fast consumer never sees a negative count.
        self._count(repo, 1)
        if shutdown is None:
            self._queue.put(repo)
            return True

        while not shutdown.is_set():
            try:
                self._queue.put(repo, timeout=TICK_INTERVAL)
                return True
            except queue.Full:
                continue

        self._count(repo, -1)
        return False

    def get(self, timeout: float | None = None) -> Repository | None:
        """Dequeues the next repository, or returns None after `timeout` seconds."""
        try:
            repo = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        self._count(repo, -1)
        return repo

    def task_done(self) -> None:
        self._queue.task_done()

    def join(self) -> None:
        """Blocks until every submitted repository has been processed."""
        self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()

    def full(self) -> bool:
        return self._queue.full()


class WorkerPool:
    """Threads that consume a DispatchChannel and run `Repository.update()`.

    At most one update runs per repository at a time. A dequeued repository
    whose update is already in flight on another worker is skipped.

    Attributes:
        channel (DispatchChannel): The channel to consume.
        size (int): Number of worker threads.
        shutdown (threading.Event): Stops the workers once set.
        results (dict[str, bool | UpdateError]): The last outcome per repository.
    """

    def __init__(
        self, channel: DispatchChannel, size: int, shutdown: threading.Event
    ):
        self.channel = channel
        self.size = size
        self.shutdown = shutdown
        self.results: dict[str, bool | UpdateError] = {}
        self._threads: list[threading.Thread] = []

        # Per-repo locking for single-flight updates
        self._repo_locks: dict[str, threading.Lock] = {}
        self._repo_locks_lock = threading.Lock()

    def _get_repo_lock(self, name: str) -> threading.Lock:
        with self._repo_locks_lock:
            if name not in self._repo_locks:
                self._repo_locks[name] = threading.Lock()
            return self._repo_locks[name]

    def start(self) -> None:
        for i in range(self.size):
            thread = threading.Thread(
                target=self._work, name=f"{APP_NAME}-worker-{i}", daemon=True
            )
            thread.start()
            self._threads.append(thread)

    def join(self, timeout: float | None = None) -> None:
        for thread in self._threads:
            thread.join(timeout)

    def _work(self) -> None:
        while not self.shutdown.is_set():
            repo = self.channel.get(timeout=TICK_INTERVAL)
            if repo is None:
                continue
            try:
                self.run(repo)
            finally:
                self.channel.task_done()

    def run(self, repo: Repository) -> bool | None:
        """Runs one update for a repository unless one is already in flight.

        Failures are logged and recorded, never raised, so one broken
        repository cannot stop the pool.

        Args:
            repo (Repository): The repository to update.

        Returns:
            bool | None: The update result, or None if skipped or failed.
        """
        lock = self._get_repo_lock(repo.name)
        if not lock.acquire(blocking=False):
            logger.debug(f"SKIPPED {repo.name}: Update already in progress.")
            return None

        try:
            changed = repo.update()
        except UpdateError as e:
            self.results[repo.name] = e
            logger.error(f"UPDATE ERROR {repo.name} ({e.category}): {e}")
            return None
        except Exception as e:
            self.results[repo.name] = UpdateError(str(e))
            logger.exception(f"CRITICAL {repo.name}: {e}")
            return None
        finally:
            lock.release()

        self.results[repo.name] = changed
        if changed:
            logger.info(f"UPDATED {repo.name}: Working copy changed.")
        else:
            logger.debug(f"UNCHANGED {repo.name}: Already up to date.")
        return changed
