"""
Integration tests: authority/client.py

Covers:
- Endpoint URL construction from the base URL
- Query parameters, bearer token and headers sent
- Decoding of a 200 response (unknown fields ignored)
- Non-200 status, undecodable body, missing fields → BadResponseError
- Connection errors and timeouts → TransportError
- Per-call timeout overrides the client default
- A real round trip against a local HTTP server
"""

from __future__ import annotations

import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlsplit

import pytest
import requests

from commit_trust.authority.client import (
    DEFAULT_TIMEOUT,
    APIClient,
    AuthorityClient,
    Authorization,
)
from commit_trust.exceptions import BadResponseError, TransportError

BASE_URL = "https://authority.example/key-mgmt"
ENDPOINT = BASE_URL + "/v0/pgp/key/authorization/git-commit-signing"

GOOD_BODY = json.dumps(
    {
        "authorized": True,
        "message": "",
        "pgp_key": {"id": "key-1", "base64_key": "bWF0ZXJpYWw="},
    }
).encode()


def make_response(status: int = 200, body: bytes = GOOD_BODY, reason: str = "OK") -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = body
    response.url = ENDPOINT + "?pgp_key_id=E772A191C1EEDEC5&committer_email=dev%40example.com"
    response.reason = reason
    return response


def make_client(response=None, error=None, **kwargs) -> tuple[APIClient, MagicMock]:
    session = MagicMock(spec=requests.Session)
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response if response is not None else make_response()
    return APIClient("secret-token", BASE_URL, session=session, **kwargs), session


# ── URL ───────────────────────────────────────────────────────────────────────


class TestAuthorizationUrl:
    @pytest.mark.parametrize(
        "base, expected",
        [
            (BASE_URL, ENDPOINT),
            (BASE_URL + "/", ENDPOINT),
            ("https://authority.example", "https://authority.example/v0/pgp/key/authorization/git-commit-signing"),
            ("http://localhost:8080/api", "http://localhost:8080/api/v0/pgp/key/authorization/git-commit-signing"),
        ],
    )
    def test_joined_path(self, base, expected):
        assert APIClient("t", base).authorization_url() == expected

    @pytest.mark.parametrize("base", ["", "authority.example", "/relative/path"])
    def test_invalid_base_url(self, base):
        client, session = make_client()
        client.api_base_url = base
        with pytest.raises(TransportError, match="invalid base url"):
            client.get_authorization("E772A191C1EEDEC5", "dev@example.com")
        session.get.assert_not_called()


# ── Request ───────────────────────────────────────────────────────────────────


class TestRequest:
    def test_params_and_headers(self):
        client, session = make_client()
        client.get_authorization("E772A191C1EEDEC5", "dev@example.com")

        args, kwargs = session.get.call_args
        assert args == (ENDPOINT,)
        assert kwargs["params"] == {"pgp_key_id": "E772A191C1EEDEC5", "committer_email": "dev@example.com"}
        assert kwargs["headers"]["Authorization"] == "Bearer secret-token"
        assert kwargs["headers"]["Accept"] == "application/json"
        assert kwargs["headers"]["User-Agent"].startswith("commit-trust/")
        assert kwargs["timeout"] == DEFAULT_TIMEOUT

    def test_client_timeout(self):
        client, session = make_client(timeout=7.0)
        client.get_authorization("E772A191C1EEDEC5", "dev@example.com")
        assert session.get.call_args.kwargs["timeout"] == 7.0

    def test_call_timeout_overrides(self):
        client, session = make_client(timeout=7.0)
        client.get_authorization("E772A191C1EEDEC5", "dev@example.com", timeout=1.5)
        assert session.get.call_args.kwargs["timeout"] == 1.5

    def test_satisfies_protocol(self):
        assert isinstance(APIClient("t", BASE_URL), AuthorityClient)


# ── Response ──────────────────────────────────────────────────────────────────


class TestResponse:
    def test_authorized(self):
        client, _ = make_client()
        authorization = client.get_authorization("E772A191C1EEDEC5", "dev@example.com")
        assert authorization == Authorization(
            authorized=True,
            message="",
            pgp_key={"id": "key-1", "base64_key": "bWF0ZXJpYWw="},
        )

    def test_denied_with_message(self):
        body = json.dumps({"authorized": False, "message": "key revoked"}).encode()
        client, _ = make_client(make_response(body=body))
        authorization = client.get_authorization("E772A191C1EEDEC5", "dev@example.com")
        assert authorization.authorized is False
        assert authorization.message == "key revoked"
        assert authorization.pgp_key.base64_key == ""

    def test_unknown_fields_ignored(self):
        body = json.dumps({"authorized": True, "extra": {"nested": 1}}).encode()
        client, _ = make_client(make_response(body=body))
        assert client.get_authorization("E772A191C1EEDEC5", "dev@example.com").authorized

    def test_non_200(self):
        client, _ = make_client(make_response(403, b'{"error":"forbidden"}', "Forbidden"))
        with pytest.raises(BadResponseError) as excinfo:
            client.get_authorization("E772A191C1EEDEC5", "dev@example.com")
        err = excinfo.value
        assert err.status_code == 403
        assert err.method == "GET"
        assert "403 Forbidden" in str(err)
        assert '{"error":"forbidden"}' in str(err)
        assert "expected status 200" in str(err)

    @pytest.mark.parametrize("body", [b"not json", b"{}", b'{"authorized": "maybe"}', b""])
    def test_undecodable_body(self, body):
        client, _ = make_client(make_response(body=body))
        with pytest.raises(BadResponseError):
            client.get_authorization("E772A191C1EEDEC5", "dev@example.com")

    @pytest.mark.parametrize(
        "error", [requests.ConnectionError("refused"), requests.Timeout("timed out")]
    )
    def test_transport_errors(self, error):
        client, _ = make_client(error=error)
        with pytest.raises(TransportError, match="failed to send request"):
            client.get_authorization("E772A191C1EEDEC5", "dev@example.com")


# ── Local server round trip ───────────────────────────────────────────────────


class _AuthorityHandler(BaseHTTPRequestHandler):
    requests_seen: list = []

    def do_GET(self):
        parts = urlsplit(self.path)
        self.requests_seen.append((parts.path, parse_qs(parts.query), self.headers.get("Authorization")))
        body = json.dumps({"authorized": True, "message": "ok", "pgp_key": {"id": "k"}}).encode()
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def authority_server():
    _AuthorityHandler.requests_seen = []
    server = ThreadingHTTPServer(("127.0.0.1", 0), _AuthorityHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}/key-mgmt"
    finally:
        server.shutdown()
        server.server_close()


class TestLocalServer:
    def test_round_trip(self, authority_server):
        client = APIClient("secret-token", authority_server, timeout=5.0)
        authorization = client.get_authorization("E772A191C1EEDEC5", "dev+ci@example.com")

        assert authorization.authorized is True
        assert authorization.message == "ok"
        path, query, auth = _AuthorityHandler.requests_seen[0]
        assert path == "/key-mgmt/v0/pgp/key/authorization/git-commit-signing"
        assert query == {"pgp_key_id": ["E772A191C1EEDEC5"], "committer_email": ["dev+ci@example.com"]}
        assert auth == "Bearer secret-token"

    def test_connection_refused(self):
        client = APIClient("t", "http://127.0.0.1:9/", timeout=2.0)
        with pytest.raises(TransportError):
            client.get_authorization("E772A191C1EEDEC5", "dev@example.com")
