"""Errors surfaced by a repository update."""


class UpdateError(Exception):
    """Base error for a failed repository update."""

    category = "update"


class GitError(UpdateError):
    """The version-control layer failed (open, init, fetch, resolve, reset)."""

    category = "git"


class AuthenticationError(GitError):
    """No usable credential could be produced during fetch negotiation."""

    category = "auth"


class LocalIOError(UpdateError):
    """A local filesystem operation failed."""

    category = "io"
