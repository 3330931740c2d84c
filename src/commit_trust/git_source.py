"""Commit retrieval from a local git repository."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Union

from dulwich.errors import NotGitRepository
from dulwich.objects import Commit
from dulwich.objectspec import parse_commit
from dulwich.repo import Repo

from commit_trust.exceptions import CommitAccessError
from commit_trust.models import Actor, CommitRecord


def _actor(identity: bytes, when: int, offset: int) -> Actor:
    text = identity.decode("utf-8", errors="replace")
    name, _, rest = text.partition("<")
    email = rest.rstrip().rstrip(">")
    timestamp = datetime.fromtimestamp(when, tz=timezone(timedelta(seconds=offset)))
    return Actor(name=name.strip(), email=email.strip(), timestamp=timestamp)


def _open_commit(repo_path: str, ref: str) -> Commit:
    try:
        repo = Repo(repo_path)
    except (NotGitRepository, OSError) as exc:
        raise CommitAccessError(f"failed to open repository: {exc}") from exc

    try:
        return parse_commit(repo, ref.encode("utf-8"))
    except (KeyError, ValueError) as exc:
        raise CommitAccessError(f"failed to resolve ref {ref!r}: {exc}") from exc
    finally:
        repo.close()


def commit_record(commit: Commit) -> CommitRecord:
    """Build a CommitRecord from a dulwich Commit object."""
    signature: Union[bytes, None] = commit.gpgsig
    return CommitRecord(
        commit_hash=commit.id.decode("ascii"),
        tree_hash=commit.tree.decode("ascii"),
        parent_hashes=tuple(p.decode("ascii") for p in commit.parents),
        author=_actor(commit.author, commit.author_time, commit.author_timezone),
        committer=_actor(commit.committer, commit.commit_time, commit.commit_timezone),
        signature=signature.decode("ascii", errors="replace") if signature else None,
        payload=commit.raw_without_sig(),
    )


def get_commit(repo_path: str, ref: str) -> CommitRecord:
    """
    Open the repository at ``repo_path`` and return the commit ``ref`` resolves to.

    Raises:
        CommitAccessError: if the repository cannot be opened or ``ref`` does not
            name a commit.
    """
    return commit_record(_open_commit(repo_path, ref))


def pretty_print_commit(repo_path: str, ref: str) -> str:
    """Full raw representation of the commit object, signature included."""
    return _open_commit(repo_path, ref).as_raw_string().decode("utf-8", errors="replace")
