"""
One complete verification run.

Fixed order:
  1. Validate configuration (all problems reported, nothing fetched on failure)
  2. Fetch the commit
  3. Load and resolve the allowlist for the repository
  4. Decide
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from commit_trust.authority.client import APIClient, AuthorityClient
from commit_trust.config import Config
from commit_trust.engine import DecisionEngine
from commit_trust.exceptions import AllowlistLoadError, CommitAccessError
from commit_trust.git_source import get_commit, pretty_print_commit
from commit_trust.models import CommitRecord, Outcome, OutcomeError
from commit_trust.policy.allowlist import Allowlist, load_allowlist, resolve_allowlist

logger = logging.getLogger(__name__)

DESC_INVALID_CONFIG = "Invalid configuration"
DESC_COMMIT_UNAVAILABLE = "Failed to get commit"
DESC_ALLOWLIST_UNAVAILABLE = "Failed to get allowlist"


def run(
    config: Config,
    *,
    authority: Optional[AuthorityClient] = None,
    commit_loader: Callable[[str, str], CommitRecord] = get_commit,
    allowlist_loader: Callable[[str], Allowlist] = load_allowlist,
    log: Optional[logging.Logger] = None,
) -> Outcome:
    """
    Verify the commit named by ``config`` and return the Outcome.

    Args:
        config: Run configuration.
        authority: Remote authority client; an APIClient is built from
            ``config`` when omitted.
        commit_loader: ``(repo_path, ref) -> CommitRecord``.
        allowlist_loader: ``path -> Allowlist``.
        log: Logger for the run, passed through to the DecisionEngine.
    """
    log = log or logger
    repository = config.repository

    config_errors = config.validate()
    if config_errors:
        return Outcome.failed(
            repository,
            DESC_INVALID_CONFIG,
            tuple(OutcomeError.from_exception(e) for e in config_errors),
        )

    log.info("Verifying commit with ref %r in %r", config.commit_ref, config.repo_path)
    try:
        commit = commit_loader(config.repo_path, config.commit_ref)
    except CommitAccessError as exc:
        return Outcome.failed(
            repository,
            DESC_COMMIT_UNAVAILABLE,
            (OutcomeError(desc=f"failed to get commit: {exc}"),),
        )

    if log.isEnabledFor(logging.DEBUG) and commit_loader is get_commit:
        log.debug("Commit:\n%s", pretty_print_commit(config.repo_path, config.commit_ref))

    allowlist: Optional[Allowlist] = None
    if config.allowlist_path:
        try:
            allowlist = allowlist_loader(config.allowlist_path)
        except AllowlistLoadError as exc:
            return Outcome.failed(
                repository,
                DESC_ALLOWLIST_UNAVAILABLE,
                (OutcomeError(desc=f"failed to get allowlist: {exc}"),),
                commit=commit,
            )

    resolution = resolve_allowlist(allowlist, repository)

    if authority is None:
        authority = APIClient(
            api_token=config.api_token,
            api_base_url=config.api_base_url,
            timeout=config.timeout,
        )

    engine = DecisionEngine(authority, log=log, timeout=config.timeout)
    return engine.evaluate(repository, commit, resolution.allowlist, errors=resolution.errors)
