import logging
import signal
import sys
import threading
from logging.handlers import RotatingFileHandler
from types import FrameType

from .config import Config
from .constants import APP_NAME, LOG_FILE
from .dispatch import DispatchChannel, WorkerPool
from .exceptions import UpdateError
from .repository import Repository
from .ticker import start_ticker

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)


def setup_logging(interactive: bool, max_log_size: int = 5 * 1024 * 1024) -> None:
    """Configures the logging subsystem.

    Args:
        interactive (bool): If True, logs to stdout. If False, logs to file/stderr
                            with rotation enabled.
        max_log_size (int, optional): Bytes before the log file is rotated.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    # Always log to stderr (captured by systemd).
    stream_handler = logging.StreamHandler(
        sys.stderr if not interactive else sys.stdout
    )
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if not interactive:
        # In daemon mode, rotate logs to file.
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=max_log_size,
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def build_repositories(
    config: Config, names: list[str] | None = None
) -> list[Repository]:
    """Creates a Repository for each configured entry.

    Args:
        config (Config): The loaded configuration.
        names (list[str] | None): Restrict to these names. Unknown names are logged.

    Returns:
        list[Repository]: The repositories, in configuration order.
    """
    if names:
        for name in names:
            if name not in config.repos:
                logger.warning(f"Unknown repository '{name}'. Ignoring.")
        selected = {n: c for n, c in config.repos.items() if n in names}
    else:
        selected = config.repos

    return [Repository(name, repo_config) for name, repo_config in selected.items()]


class Daemon:
    """Runs tickers and workers until shutdown is requested.

    Attributes:
        config (Config): The loaded configuration.
        repos (list[Repository]): Every configured repository.
        shutdown (threading.Event): Set to stop tickers and workers.
    """

    def __init__(self, config: Config):
        self.config = config
        self.repos = build_repositories(config)
        self.shutdown = threading.Event()
        self.channel = DispatchChannel(config.daemon.queue_size)
        self.pool = WorkerPool(self.channel, config.daemon.workers, self.shutdown)
        self.tickers: list[threading.Thread] = []

    def start(self) -> None:
        """Starts the worker pool and one ticker per scheduled repository."""
        self.pool.start()
        for repo in self.repos:
            if thread := start_ticker(repo, self.channel, self.shutdown):
                self.tickers.append(thread)

        logger.info(
            f"Started: {len(self.tickers)}/{len(self.repos)} repositories scheduled, "
            f"{self.pool.size} workers."
        )

    def stop(self) -> None:
        self.shutdown.set()

    def wait(self) -> None:
        """Blocks until shutdown, then waits for tickers and workers to exit."""
        while not self.shutdown.is_set():
            self.shutdown.wait(1.0)
        for thread in self.tickers:
            thread.join()
        # An in-flight update is never interrupted.
        self.pool.join()
        logger.info("Stopped.")


def run_once(
    config: Config, names: list[str] | None = None
) -> dict[str, bool | UpdateError]:
    """Runs a single synchronization pass, including unscheduled repositories.

    Args:
        config (Config): The loaded configuration.
        names (list[str] | None): Restrict the pass to these repositories.

    Returns:
        dict[str, bool | UpdateError]: The outcome per repository name.
    """
    repos = build_repositories(config, names)
    shutdown = threading.Event()
    channel = DispatchChannel(config.daemon.queue_size)
    pool = WorkerPool(channel, config.daemon.workers, shutdown)
    pool.start()

    for repo in repos:
        channel.submit(repo)
    channel.join()

    shutdown.set()
    pool.join()
    return {repo.name: pool.results[repo.name] for repo in repos}


def main(config: Config | None = None) -> None:
    """The main daemon entry point.

    Loads configuration, starts scheduling, and runs until SIGINT or SIGTERM.

    Args:
        config (Config | None, optional): A preloaded configuration.
    """
    config = config or Config.load()
    setup_logging(interactive=False, max_log_size=config.limits.max_log_size)

    if not config.repos:
        logger.warning("No repositories configured. Nothing to do.")
        return

    daemon = Daemon(config)

    def stop_handler(signum: int, _frame: FrameType | None) -> None:
        logger.info(f"Received signal {signum}. Shutting down...")
        daemon.stop()

    signal.signal(signal.SIGINT, stop_handler)
    signal.signal(signal.SIGTERM, stop_handler)

    daemon.start()
    daemon.wait()


if __name__ == "__main__":
    main()
