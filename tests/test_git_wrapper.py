from pathlib import Path
from unittest.mock import MagicMock

import pygit2
import pytest
from pygit2.enums import CredentialType

from conftest import commit_files
from git_mirror.config import PasswordCredentials
from git_mirror.credentials import (
    AuthMechanism,
    CredentialResolver,
    KeyCredential,
    PlaintextCredential,
    UsernameCredential,
)
from git_mirror.exceptions import AuthenticationError, GitError
from git_mirror.git_wrapper import (
    GitRepo,
    MirrorCallbacks,
    to_mechanisms,
    to_pygit2,
)


def test_to_mechanisms_drops_unknown_types() -> None:
    """Verifies that only the mechanisms the resolver understands survive."""
    mask = CredentialType.USERNAME | CredentialType.SSH_KEY | CredentialType.SSH_MEMORY
    assert to_mechanisms(mask) == AuthMechanism.USERNAME | AuthMechanism.SSH_MEMORY
    assert to_mechanisms(CredentialType.SSH_KEY) == AuthMechanism.NONE
    assert (
        to_mechanisms(int(CredentialType.USERPASS_PLAINTEXT))
        == AuthMechanism.USERPASS_PLAINTEXT
    )


def test_to_pygit2_builds_matching_credential_objects() -> None:
    """Verifies each resolved variant maps onto the pygit2 credential class."""
    assert isinstance(to_pygit2(UsernameCredential("git")), pygit2.Username)
    assert isinstance(to_pygit2(PlaintextCredential("bot", "pw")), pygit2.UserPass)
    assert isinstance(
        to_pygit2(KeyCredential("git", None, "KEY", None)), pygit2.KeypairFromMemory
    )

    with pytest.raises(TypeError):
        to_pygit2("not a credential")  # type: ignore[arg-type]


def test_callbacks_delegate_to_resolver() -> None:
    """Verifies that the pygit2 callback translates the mask before resolving."""
    resolver = MagicMock(spec=CredentialResolver)
    resolver.resolve.return_value = UsernameCredential("git")
    callbacks = MirrorCallbacks(resolver)

    result = callbacks.credentials(
        "ssh://example.com/repo.git", "git", CredentialType.USERNAME
    )

    assert isinstance(result, pygit2.Username)
    resolver.resolve.assert_called_once_with(
        "ssh://example.com/repo.git", "git", AuthMechanism.USERNAME
    )


def test_callbacks_propagate_authentication_errors() -> None:
    """Verifies that resolver failures are not swallowed by the callback."""
    callbacks = MirrorCallbacks(CredentialResolver(None))

    with pytest.raises(AuthenticationError, match="Authentication is required"):
        callbacks.credentials(
            "https://example.com/r.git", None, CredentialType.USERNAME
        )


def test_open_rejects_plain_directory(tmp_path: Path) -> None:
    """Verifies that opening a directory without a repository raises GitError."""
    plain = tmp_path / "plain"
    plain.mkdir()

    with pytest.raises(GitError, match="Could not open repository"):
        GitRepo(plain)


def test_init_fetch_and_reset(tmp_path: Path, upstream: pygit2.Repository) -> None:
    """Verifies the wrapper round trip against a real local upstream.

    Args:
        tmp_path (Path): Pytest fixture for a temporary directory.
        upstream (pygit2.Repository): An upstream repository with one commit.
    """
    target = tmp_path / "mirror"
    target.mkdir()
    repo = GitRepo.init(target)

    assert repo.resolve("HEAD") is None
    assert repo.head_id() is None

    repo.fetch(
        upstream.workdir,
        "+refs/heads/master:refs/test/staging",
        CredentialResolver(PasswordCredentials(password="unused")),
    )
    staged = repo.resolve("refs/test/staging")
    assert staged is not None
    assert str(staged.id) == str(upstream.head.target)

    (target / "untracked.txt").write_text("junk")
    repo.reset_hard(staged)

    assert repo.head_id() == str(upstream.head.target)
    assert (target / "README.md").read_text() == "hello\n"
    assert not (target / "untracked.txt").exists()


def test_fetch_from_missing_remote_raises(tmp_path: Path) -> None:
    """Verifies that transport failures are wrapped as GitError."""
    target = tmp_path / "mirror"
    target.mkdir()
    repo = GitRepo.init(target)

    with pytest.raises(GitError, match="Fetch from"):
        repo.fetch(
            str(tmp_path / "does-not-exist"),
            "+refs/heads/master:refs/test/staging",
            CredentialResolver(None),
        )


def test_resolve_unknown_revision_returns_none(
    tmp_path: Path, upstream: pygit2.Repository
) -> None:
    """Verifies that unresolvable revisions are reported as None, not raised."""
    commit_files(upstream, {"other.txt": "x"})
    repo = GitRepo(Path(upstream.workdir))

    assert repo.resolve("refs/heads/nope") is None
    assert repo.head_id() == str(upstream.head.target)
