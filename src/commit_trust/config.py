"""Run configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from commit_trust.authority.client import DEFAULT_TIMEOUT
from commit_trust.exceptions import ConfigError, MissingConfigFieldError

DEFAULT_API_BASE_URL = "https://api.byndid.com/key-mgmt"

ENV_API_TOKEN = "API_TOKEN"
ENV_API_BASE_URL = "API_BASE_URL"
ENV_REPOSITORY = "REPOSITORY"
ENV_ALLOWLIST_PATH = "ALLOWLIST_CONFIG_FILE_PATH"
ENV_TIMEOUT = "AUTHORITY_TIMEOUT"


@dataclass(frozen=True)
class Config:
    # Directory containing a clone of the git repository.
    repo_path: str
    # Commit reference to verify, e.g. "HEAD" or a full commit hash.
    commit_ref: str
    # Bearer token for the remote authority API.
    api_token: str
    api_base_url: str
    # Repository name; also matched against allowlist entry scopes.
    repository: str
    allowlist_path: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        repo_path: str = ".",
        commit_ref: str = "HEAD",
    ) -> "Config":
        env = os.environ if environ is None else environ
        raw_timeout = env.get(ENV_TIMEOUT) or ""
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT
        except ValueError as exc:
            raise ConfigError(f"invalid {ENV_TIMEOUT}: {raw_timeout!r}") from exc

        return cls(
            repo_path=repo_path,
            commit_ref=commit_ref,
            api_token=env.get(ENV_API_TOKEN, ""),
            api_base_url=env.get(ENV_API_BASE_URL) or DEFAULT_API_BASE_URL,
            repository=env.get(ENV_REPOSITORY, ""),
            allowlist_path=env.get(ENV_ALLOWLIST_PATH) or None,
            timeout=timeout,
        )

    def validate(self) -> list[ConfigError]:
        """Return every configuration problem; an empty list means the config is usable."""
        errors: list[ConfigError] = []
        required = (
            ("RepoPath", self.repo_path),
            ("CommitRef", self.commit_ref),
            ("APIToken", self.api_token),
            ("APIBaseURL", self.api_base_url),
            ("Repository", self.repository),
        )
        for name, value in required:
            if not value:
                errors.append(MissingConfigFieldError(name))
        if self.timeout <= 0:
            errors.append(ConfigError(f"timeout must be positive, got {self.timeout}"))
        return errors
