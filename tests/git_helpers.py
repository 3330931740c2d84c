"""Builds small git repositories with dulwich for tests."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from dulwich.objects import Blob, Commit, Tree
from dulwich.repo import Repo

from pgp_helpers import sign

AUTHOR_TIME = 1626006821
COMMIT_TIME = 1626007165
TZ_OFFSET = -4 * 3600


def init_repo(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    Repo.init(str(path)).close()
    return path


def commit_to_repo(
    path: Path,
    key=None,
    committer: bytes = b"Dev Example <dev@example.com>",
    message: bytes = b"Add usage to README\n",
    parents: Optional[list] = None,
) -> bytes:
    """Write a one-file commit into the repository at ``path``, signed by ``key`` if given."""
    repo = Repo(str(path))
    try:
        blob = Blob.from_string(message)
        tree = Tree()
        tree.add(b"README", 0o100644, blob.id)

        commit = Commit()
        commit.tree = tree.id
        commit.parents = parents or []
        commit.author = committer
        commit.committer = committer
        commit.author_time = AUTHOR_TIME
        commit.commit_time = COMMIT_TIME
        commit.author_timezone = TZ_OFFSET
        commit.commit_timezone = TZ_OFFSET
        commit.message = message
        if key is not None:
            commit.gpgsig = sign(key, commit.as_raw_string()).strip().encode("ascii")

        for obj in (blob, tree, commit):
            repo.object_store.add_object(obj)
        repo.refs[b"HEAD"] = commit.id
        return commit.id
    finally:
        repo.close()
