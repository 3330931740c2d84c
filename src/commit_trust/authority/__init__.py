"""Remote key authority: contract and HTTP client."""

from __future__ import annotations

from commit_trust.authority.client import (
    APIClient,
    AuthorityClient,
    Authorization,
    PGPKeyMaterial,
)

__all__ = ["APIClient", "AuthorityClient", "Authorization", "PGPKeyMaterial"]
