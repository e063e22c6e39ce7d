"""git-mirror: Periodic mirroring of remote git repositories.

This package provides the command-line interface, background daemon, and the
synchronization engine that converges local working copies to a tracked
remote reference.
"""

from . import (
    cli,
    config,
    constants,
    credentials,
    daemon,
    dispatch,
    exceptions,
    git_wrapper,
    repository,
    service,
    ticker,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "credentials",
    "daemon",
    "dispatch",
    "exceptions",
    "git_wrapper",
    "repository",
    "service",
    "ticker",
]
