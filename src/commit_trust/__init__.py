"""
commit_trust - commit signature trust gate.

Usage:
    from commit_trust import Config, run
    outcome = run(Config.from_env(repo_path=".", commit_ref="HEAD"))
    print(outcome.result)
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("commit-trust")
except PackageNotFoundError:
    __version__ = "0.0.0+local"

from commit_trust.authority import APIClient, AuthorityClient, Authorization
from commit_trust.config import Config
from commit_trust.engine import DecisionEngine, State
from commit_trust.exceptions import (
    AllowlistEntryError,
    AuthorityDeniedError,
    CommitAccessError,
    CommitTrustError,
    ConfigError,
    SignatureMismatchError,
    SignatureParseError,
    TransportError,
    UnsignedCommitError,
)
from commit_trust.models import Outcome, Result, VerifiedBy
from commit_trust.policy.allowlist import Allowlist, load_allowlist, resolve_allowlist
from commit_trust.runner import run

__all__ = [
    "__version__",
    "run",
    "Config",
    "DecisionEngine",
    "State",
    "Outcome",
    "Result",
    "VerifiedBy",
    "Allowlist",
    "load_allowlist",
    "resolve_allowlist",
    "APIClient",
    "AuthorityClient",
    "Authorization",
    "CommitTrustError",
    "ConfigError",
    "CommitAccessError",
    "AllowlistEntryError",
    "UnsignedCommitError",
    "SignatureParseError",
    "TransportError",
    "AuthorityDeniedError",
    "SignatureMismatchError",
]
