"""
Remote key authority client.

The authority maps a PGP key id and committer email to an authorization
verdict plus its own copy of the signing key:

    GET {base}/v0/pgp/key/authorization/git-commit-signing
        ?pgp_key_id={id}&committer_email={email}
"""

from __future__ import annotations

import logging
import posixpath
from typing import Optional, Protocol, runtime_checkable
from urllib.parse import urlsplit, urlunsplit

import requests
from pydantic import BaseModel, Field, ValidationError

from commit_trust.exceptions import BadResponseError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
AUTHORIZATION_PATH = ("v0", "pgp", "key", "authorization", "git-commit-signing")


class PGPKeyMaterial(BaseModel):
    # Authority-side id of the key, not the PGP key id.
    id: str = ""
    # Binary PGP "transferable public key message", base64 encoded.
    base64_key: str = ""


class Authorization(BaseModel):
    authorized: bool
    message: str = ""
    pgp_key: PGPKeyMaterial = Field(default_factory=PGPKeyMaterial)

    def pretty(self) -> str:
        return self.model_dump_json(indent=2)


@runtime_checkable
class AuthorityClient(Protocol):
    def get_authorization(
        self,
        pgp_key_id: str,
        committer_email: str,
        timeout: Optional[float] = None,
    ) -> Authorization:
        """Raises TransportError when no verdict could be obtained."""
        ...


def _user_agent() -> str:
    from commit_trust import __version__

    return f"commit-trust/{__version__}"


class APIClient:
    """HTTP implementation of AuthorityClient using bearer token authentication."""

    def __init__(
        self,
        api_token: str,
        api_base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.api_token = api_token
        self.api_base_url = api_base_url
        self.session = session or requests.Session()
        self.timeout = timeout

    def authorization_url(self) -> str:
        parts = urlsplit(self.api_base_url)
        if not parts.scheme or not parts.netloc:
            raise TransportError(f"invalid base url: {self.api_base_url!r}")
        path = posixpath.join(parts.path or "/", *AUTHORIZATION_PATH)
        return urlunsplit((parts.scheme, parts.netloc, path, "", ""))

    def get_authorization(
        self,
        pgp_key_id: str,
        committer_email: str,
        timeout: Optional[float] = None,
    ) -> Authorization:
        """
        Ask the authority whether ``pgp_key_id`` may sign commits for ``committer_email``.

        Args:
            pgp_key_id: Issuer key id of the commit signature (16 hex chars).
            committer_email: Committer email address of the commit.
            timeout: Seconds to wait; overrides the client default.

        Raises:
            TransportError: on invalid base URL, connection failure or timeout.
            BadResponseError: on a non-200 status or an undecodable body.
        """
        url = self.authorization_url()
        headers = {
            "Accept": "application/json",
            "User-Agent": _user_agent(),
            "Authorization": f"Bearer {self.api_token}",
        }
        params = {"pgp_key_id": pgp_key_id, "committer_email": committer_email}

        try:
            response = self.session.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout if timeout is None else timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"failed to send request: {exc}") from exc

        request_url = response.url or url
        if response.status_code != 200:
            raise BadResponseError(
                method="GET",
                url=request_url,
                status_code=response.status_code,
                body=response.content,
                reason=response.reason or "",
                cause="expected status 200",
            )

        try:
            authorization = Authorization.model_validate_json(response.content)
        except ValidationError as exc:
            raise BadResponseError(
                method="GET",
                url=request_url,
                status_code=response.status_code,
                body=response.content,
                reason=response.reason or "",
                cause=str(exc),
            ) from exc

        logger.debug("Authority response:\n%s", authorization.pretty())
        return authorization
