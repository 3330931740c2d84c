from __future__ import annotations

from typing import Optional

import pytest

from commit_trust.authority.client import Authorization, PGPKeyMaterial

from pgp_helpers import base64_public, make_key


@pytest.fixture(scope="session")
def dev_key():
    """Key managed by the remote authority for dev@example.com."""
    return make_key("Dev Example", "dev@example.com")


@pytest.fixture(scope="session")
def vendor_key():
    """Third party signer, e.g. a release bot."""
    return make_key("Vendor Bot", "bot@vendor.example")


@pytest.fixture(scope="session")
def stranger_key():
    return make_key("Stranger", "stranger@elsewhere.example")


class FakeAuthority:
    """Records calls and answers with a fixed authorization or error."""

    def __init__(
        self,
        authorization: Optional[Authorization] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self.authorization = authorization
        self.error = error
        self.calls: list[tuple[str, str, Optional[float]]] = []

    def get_authorization(self, pgp_key_id, committer_email, timeout=None):
        self.calls.append((pgp_key_id, committer_email, timeout))
        if self.error is not None:
            raise self.error
        return self.authorization


def authorize(key=None, authorized: bool = True, message: str = "") -> Authorization:
    return Authorization(
        authorized=authorized,
        message=message,
        pgp_key=PGPKeyMaterial(id="key-1", base64_key=base64_public(key) if key else ""),
    )


@pytest.fixture
def fake_authority():
    return FakeAuthority


@pytest.fixture
def authorization_for():
    return authorize
