"""Shared fixtures building throwaway upstream repositories with pygit2."""

from collections.abc import Callable
from pathlib import Path

import pygit2
import pytest

from git_mirror.config import RepoConfig

SIGNATURE = pygit2.Signature("Mirror Test", "mirror@example.com")


def commit_files(
    repo: pygit2.Repository, files: dict[str, str], message: str = "update"
) -> str:
    """Writes files into a repository's working tree and commits them on HEAD.

    Returns:
        str: The hex id of the new commit.
    """
    workdir = Path(repo.workdir)
    for name, content in files.items():
        (workdir / name).write_text(content)
        repo.index.add(name)
    repo.index.write()
    tree = repo.index.write_tree()
    parents = [] if repo.head_is_unborn else [repo.head.target]
    oid = repo.create_commit("HEAD", SIGNATURE, SIGNATURE, message, tree, parents)
    return str(oid)


@pytest.fixture
def upstream(tmp_path: Path) -> pygit2.Repository:
    """An upstream repository on 'master' with one initial commit."""
    repo = pygit2.init_repository(str(tmp_path / "upstream"), initial_head="master")
    commit_files(repo, {"README.md": "hello\n"}, "initial")
    return repo


@pytest.fixture
def make_config(
    tmp_path: Path, upstream: pygit2.Repository
) -> Callable[..., RepoConfig]:
    """Builds a RepoConfig mirroring the upstream fixture into tmp_path/mirror."""

    def _make(**overrides: object) -> RepoConfig:
        values: dict = {
            "path": tmp_path / "mirror",
            "remote_url": str(Path(upstream.workdir)),
            "remote_ref": "refs/heads/master",
        }
        values.update(overrides)
        return RepoConfig(**values)

    return _make
