"""Per-repository polling loops that feed the dispatch channel."""

import logging
import threading

from .constants import APP_NAME, TICK_INTERVAL
from .dispatch import DispatchChannel
from .repository import Repository

logger = logging.getLogger(APP_NAME)


class Ticker:
    """Polls one repository and dispatches it whenever it is due.

    Due-ness is re-evaluated every `tick` seconds rather than scheduled
    precisely, so a check may start up to one tick late.

    Attributes:
        repo (Repository): The repository being scheduled.
        channel (DispatchChannel): Where due repositories are enqueued.
        shutdown (threading.Event): Ends the loop once set.
        tick (float): Seconds between due-checks.
    """

    def __init__(
        self,
        repo: Repository,
        channel: DispatchChannel,
        shutdown: threading.Event,
        tick: float = TICK_INTERVAL,
    ):
        self.repo = repo
        self.channel = channel
        self.shutdown = shutdown
        self.tick = tick

    def run(self) -> None:
        while not self.shutdown.is_set():
            # Not re-queued while still waiting; blocks while the channel is full.
            if self.repo.is_due() and not self.channel.is_queued(self.repo):
                self.channel.submit(self.repo, self.shutdown)

            self.shutdown.wait(self.tick)

        logger.debug(f"[{self.repo.name}] Ticker stopped")


def start_ticker(
    repo: Repository,
    channel: DispatchChannel,
    shutdown: threading.Event,
    tick: float = TICK_INTERVAL,
) -> threading.Thread | None:
    """Starts a background ticker thread for a repository.

    Args:
        repo (Repository): The repository to schedule.
        channel (DispatchChannel): The channel to enqueue onto.
        shutdown (threading.Event): Stops the ticker once set.
        tick (float, optional): Seconds between due-checks. Defaults to TICK_INTERVAL.

    Returns:
        threading.Thread | None: The running thread, or None if the repository
            has no polling interval.
    """
    if repo.config.interval is None:
        logger.info(f"[{repo.name}] No interval configured; not scheduled.")
        return None

    thread = threading.Thread(
        target=Ticker(repo, channel, shutdown, tick).run,
        name=f"{APP_NAME}-ticker-{repo.name}",
        daemon=True,
    )
    thread.start()
    return thread
