"""Tests for the dispatch channel and the worker pool."""

import logging
import threading
from pathlib import Path

import pytest

from git_mirror.config import RepoConfig
from git_mirror.constants import APP_NAME
from git_mirror.dispatch import DispatchChannel, WorkerPool
from git_mirror.exceptions import GitError
from git_mirror.repository import Repository


class FakeRepository(Repository):
    """A repository whose update is scripted instead of touching git."""

    def __init__(self, name: str, outcome: object = True):
        super().__init__(name, RepoConfig(path=Path("/nonexistent"), remote_url="x"))
        self.outcome = outcome
        self.calls = 0
        self.entered = threading.Event()
        self.release = threading.Event()
        self.release.set()

    def update(self) -> bool:
        self.calls += 1
        self.entered.set()
        self.release.wait(5)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


def test_channel_is_fifo_and_allows_duplicates() -> None:
    """Verifies ordering and that a repository may be queued more than once."""
    channel = DispatchChannel(maxsize=4)
    a, b = FakeRepository("a"), FakeRepository("b")

    for repo in (a, b, a):
        assert channel.submit(repo) is True

    assert [channel.get(0.1) for _ in range(3)] == [a, b, a]
    assert channel.get(0.01) is None


def test_submit_blocks_when_full() -> None:
    """Verifies backpressure: a full channel blocks the producer, never drops."""
    channel = DispatchChannel(maxsize=1)
    channel.submit(FakeRepository("first"))
    second = FakeRepository("second")

    producer = threading.Thread(target=channel.submit, args=(second,), daemon=True)
    producer.start()
    producer.join(0.3)
    assert producer.is_alive()

    channel.get(0.1)
    producer.join(2)
    assert not producer.is_alive()
    assert channel.get(0.1) is second


def test_submit_gives_up_on_shutdown() -> None:
    """Verifies that a producer blocked on a full channel exits on shutdown."""
    channel = DispatchChannel(maxsize=1)
    channel.submit(FakeRepository("first"))
    shutdown = threading.Event()
    outcome: list[bool] = []

    producer = threading.Thread(
        target=lambda: outcome.append(
            channel.submit(FakeRepository("second"), shutdown)
        ),
        daemon=True,
    )
    producer.start()
    producer.join(0.2)
    assert producer.is_alive()

    shutdown.set()
    producer.join(3)
    assert not producer.is_alive()
    assert outcome == [False]
    assert channel.qsize() == 1


def test_pool_runs_single_flight_per_repository() -> None:
    """Verifies that a second dispatch of a busy repository is skipped."""
    pool = WorkerPool(DispatchChannel(), size=1, shutdown=threading.Event())
    repo = FakeRepository("site")
    repo.release.clear()

    first = threading.Thread(target=pool.run, args=(repo,), daemon=True)
    first.start()
    assert repo.entered.wait(2)

    assert pool.run(repo) is None
    assert repo.calls == 1

    repo.release.set()
    first.join(2)
    assert pool.results["site"] is True

    # Once released, the repository can be updated again.
    assert pool.run(repo) is True
    assert repo.calls == 2


def test_pool_logs_update_errors(caplog: pytest.LogCaptureFixture) -> None:
    """Verifies that failures are recorded and logged rather than raised.

    Args:
        caplog (pytest.LogCaptureFixture): Pytest fixture for capturing logs.
    """
    pool = WorkerPool(DispatchChannel(), size=1, shutdown=threading.Event())
    error = GitError("fetch failed")

    assert pool.run(FakeRepository("broken", error)) is None

    assert pool.results["broken"] is error
    assert "UPDATE ERROR broken (git): fetch failed" in caplog.text


def test_pool_survives_unexpected_errors(caplog: pytest.LogCaptureFixture) -> None:
    """Verifies that non-update exceptions are logged with a traceback."""
    caplog.set_level(logging.ERROR, logger=APP_NAME)
    pool = WorkerPool(DispatchChannel(), size=1, shutdown=threading.Event())

    assert pool.run(FakeRepository("weird", RuntimeError("boom"))) is None

    assert "CRITICAL weird: boom" in caplog.text
    assert "boom" in str(pool.results["weird"])


def test_pool_consumes_channel() -> None:
    """Verifies that started workers drain the channel and record results."""
    channel = DispatchChannel()
    shutdown = threading.Event()
    pool = WorkerPool(channel, size=2, shutdown=shutdown)
    pool.start()

    repos = [FakeRepository("a", True), FakeRepository("b", False)]
    for repo in repos:
        channel.submit(repo)
    channel.join()

    shutdown.set()
    pool.join(5)

    assert pool.results == {"a": True, "b": False}


def test_channel_tracks_queued_repositories() -> None:
    """Verifies that a repository counts as queued until every copy is dequeued."""
    channel = DispatchChannel(maxsize=4)
    a, b = FakeRepository("a"), FakeRepository("b")
    assert not channel.is_queued(a)

    channel.submit(a)
    channel.submit(a)
    assert channel.is_queued(a)
    assert not channel.is_queued(b)

    channel.get(0.1)
    assert channel.is_queued(a)
    channel.get(0.1)
    assert not channel.is_queued(a)


def test_abandoned_submit_is_not_queued() -> None:
    """Verifies that a submit interrupted by shutdown leaves no queued marker."""
    channel = DispatchChannel(maxsize=1)
    channel.submit(FakeRepository("first"))
    shutdown = threading.Event()
    shutdown.set()
    second = FakeRepository("second")

    assert channel.submit(second, shutdown) is False
    assert not channel.is_queued(second)
