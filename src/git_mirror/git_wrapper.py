import logging
from pathlib import Path

import pygit2
from pygit2.enums import (
    CheckoutStrategy,
    CredentialType,
    FetchPrune,
    RepositoryOpenFlag,
    ResetMode,
)

from .constants import APP_NAME
from .credentials import (
    AuthMechanism,
    CredentialResolver,
    KeyCredential,
    PlaintextCredential,
    ResolvedCredential,
    UsernameCredential,
)
from .exceptions import GitError

logger = logging.getLogger(APP_NAME)

# pygit2 reports missing objects and references as KeyError.
_PYGIT2_ERRORS = (pygit2.GitError, KeyError)

_MECHANISMS = {
    CredentialType.USERNAME: AuthMechanism.USERNAME,
    CredentialType.SSH_MEMORY: AuthMechanism.SSH_MEMORY,
    CredentialType.USERPASS_PLAINTEXT: AuthMechanism.USERPASS_PLAINTEXT,
}


def to_mechanisms(allowed_types: int) -> AuthMechanism:
    """Translates a libgit2 credential type mask into an AuthMechanism mask.

    Mechanisms the resolver does not understand are dropped.
    """
    allowed = AuthMechanism.NONE
    for cred_type, mechanism in _MECHANISMS.items():
        if allowed_types & cred_type:
            allowed |= mechanism
    return allowed


def to_pygit2(credential: ResolvedCredential) -> object:
    """Converts a resolved credential into the matching pygit2 credential object."""
    if isinstance(credential, UsernameCredential):
        return pygit2.Username(credential.username)
    if isinstance(credential, KeyCredential):
        return pygit2.KeypairFromMemory(
            credential.username,
            credential.public_key,
            credential.private_key,
            credential.passphrase,
        )
    if isinstance(credential, PlaintextCredential):
        return pygit2.UserPass(credential.username, credential.password)
    raise TypeError(f"Unknown credential: {credential!r}")


class MirrorCallbacks(pygit2.RemoteCallbacks):
    """Remote callbacks answering credential challenges through a resolver.

    Errors raised by the resolver are stored by pygit2 and re-raised from
    the fetch call.
    """

    def __init__(self, resolver: CredentialResolver):
        super().__init__()
        self.resolver = resolver

    def credentials(
        self, url: str, username_from_url: str | None, allowed_types: int
    ) -> object:
        allowed = to_mechanisms(allowed_types)
        return to_pygit2(self.resolver.resolve(url, username_from_url, allowed))


class GitRepo:
    """A wrapper around a pygit2 repository for mirroring operations.

    This class exposes the handful of operations the sync engine needs, and
    converts pygit2 failures into `GitError` so callers see a single error type.

    Attributes:
        path (Path): The file system path to the working copy.
    """

    def __init__(self, path: Path):
        """Opens an existing repository.

        Args:
            path (Path): The path to the working copy.

        Raises:
            GitError: If the path does not contain a usable repository.
        """
        self.path = path
        try:
            self._repo = pygit2.Repository(str(path), RepositoryOpenFlag.NO_SEARCH)
        except _PYGIT2_ERRORS as e:
            raise GitError(f"Could not open repository at {path}: {e}") from e

    @classmethod
    def init(cls, path: Path) -> "GitRepo":
        """Initializes a new, empty, non-bare repository at an existing directory.

        Raises:
            GitError: If initialization fails.
        """
        try:
            pygit2.init_repository(str(path), bare=False)
        except _PYGIT2_ERRORS as e:
            raise GitError(f"Could not initialize repository at {path}: {e}") from e
        return cls(path)

    def fetch(self, url: str, refspec: str, resolver: CredentialResolver) -> None:
        """Fetches from an anonymous remote with pruning enabled.

        Args:
            url (str): The remote URL. No remote is persisted in the config.
            refspec (str): The refspec to fetch (e.g. '+refs/heads/main:refs/x').
            resolver (CredentialResolver): Answers authentication challenges.

        Raises:
            GitError: If the fetch fails. Authentication failures surface as
                `AuthenticationError`.
        """
        try:
            remote = self._repo.remotes.create_anonymous(url)
            remote.fetch(
                [refspec], callbacks=MirrorCallbacks(resolver), prune=FetchPrune.PRUNE
            )
        except _PYGIT2_ERRORS as e:
            raise GitError(f"Fetch from {url} failed: {e}") from e

    def resolve(self, rev: str) -> pygit2.Commit | None:
        """Resolves a revision to a commit.

        Args:
            rev (str): The revision to parse (e.g., 'HEAD', 'refs/heads/main').

        Returns:
            pygit2.Commit | None: The commit, or None if the revision could not
                be resolved.
        """
        try:
            return self._repo.revparse_single(rev).peel(pygit2.Commit)
        except _PYGIT2_ERRORS as e:
            logger.debug(f"revparse failed for '{rev}': {e}")
            return None

    def head_id(self) -> str | None:
        """Returns the hex id of the commit at HEAD, or None on an unborn branch."""
        head = self.resolve("HEAD")
        return str(head.id) if head is not None else None

    def reset_hard(self, commit: pygit2.Commit) -> None:
        """Forces HEAD, index and working tree to a commit.

        Local modifications are discarded and untracked files removed.

        Raises:
            GitError: If the reset or checkout fails.
        """
        try:
            self._repo.reset(commit.id, ResetMode.HARD)
            self._repo.checkout_head(
                strategy=CheckoutStrategy.FORCE | CheckoutStrategy.REMOVE_UNTRACKED
            )
        except _PYGIT2_ERRORS as e:
            raise GitError(f"Reset to {commit.id} failed: {e}") from e
