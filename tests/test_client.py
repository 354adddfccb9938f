"""
Unit tests for JMAPClient.

Rule: zero network calls.  The client's requests.Session is replaced by a
MagicMock, so every HTTP call is recorded and none leaves the process.
"""

import logging
import threading
from dataclasses import dataclass
from unittest.mock import MagicMock, patch

import pytest
from requests.auth import HTTPBasicAuth

from jmap.client import JMAPClient
from jmap.constants import CORE_CAPABILITY, MAIL_CAPABILITY
from jmap.discovery import DiscoveryError, ServiceInfo
from jmap.lib.error import (
    AuthorizationError,
    DecodeError,
    MethodError,
    RequestError,
    SessionError,
    UnknownMethodError,
    UnsupportedCapabilityError,
    ValidationError,
)
from jmap.methods.core import Echo, UploadResponse
from jmap.methods.standard import GetRequest
from jmap.request import Request, Response
from jmap.requests import HTTPBearerAuth
from jmap.session import Session

# ---------------------------------------------------------------------------
# Shared test fixtures
# ---------------------------------------------------------------------------

_JMAP_URL = "http://localhost:8802/.well-known/jmap"
_API_URL = "http://localhost:8802/jmap/api/"
_USERNAME = "user1"
_PASSWORD = "x"

_SESSION_JSON = {
    "apiUrl": _API_URL,
    "state": "s1",
    "capabilities": {CORE_CAPABILITY: {"maxCallsInRequest": 16}},
    "accounts": {"a1": {"name": "user1", "isPersonal": True, "accountCapabilities": {CORE_CAPABILITY: {}}}},
    "primaryAccounts": {CORE_CAPABILITY: "a1"},
    "uploadUrl": "http://localhost:8802/jmap/upload/{accountId}/",
    "downloadUrl": "http://localhost:8802/jmap/download/{accountId}/{blobId}/{name}?accept={type}",
}

_ECHO_RESPONSE = {
    "sessionState": "s1",
    "methodResponses": [["Core/echo", {"Hello": "world"}, "0"]],
}


@dataclass
class MailboxGet(GetRequest):
    name = "Mailbox/get"
    requires = (CORE_CAPABILITY, MAIL_CAPABILITY)


def _make_mock_response(json_data=None, status_code=200, headers=None, reason="OK"):
    mock_resp = MagicMock()
    mock_resp.status_code = status_code
    mock_resp.reason = reason
    mock_resp.headers = headers if headers is not None else {"Content-Type": "application/json"}
    mock_resp.json.return_value = json_data
    return mock_resp


def _session():
    return Session(
        api_url=_API_URL,
        state="s1",
        raw_capabilities={CORE_CAPABILITY: {}},
        upload_url=_SESSION_JSON["uploadUrl"],
        download_url=_SESSION_JSON["downloadUrl"],
    )


def _make_client(api_response_json=None, session=True, **kwargs):
    """Return a JMAPClient whose HTTP calls are fully mocked."""
    kwargs.setdefault("url", _JMAP_URL)
    kwargs.setdefault("username", _USERNAME)
    kwargs.setdefault("password", _PASSWORD)
    client = JMAPClient(**kwargs)
    client.http = MagicMock()
    if session:
        client._session = _session()
    client.http.get.return_value = _make_mock_response(_SESSION_JSON)
    client.http.post.return_value = _make_mock_response(api_response_json)
    return client


def _echo_request(hello="world"):
    request = Request()
    request.invoke(Echo(hello=hello))
    return request


# ---------------------------------------------------------------------------
# Construction and auth
# ---------------------------------------------------------------------------


class TestJMAPClientSetup:
    def test_context_manager(self):
        with JMAPClient(url="http://x", username="u", password="p") as client:
            assert isinstance(client, JMAPClient)

    def test_close_closes_http_session(self):
        client = _make_client()
        client.close()
        client.http.close.assert_called_once()

    def test_build_auth_basic_when_username_given(self):
        client = JMAPClient(url="http://x", username="u", password="p")
        assert isinstance(client._auth, HTTPBasicAuth)
        assert client.http.auth is client._auth

    def test_build_auth_bearer_when_no_username(self):
        client = JMAPClient(url="http://x", password="token")
        assert client._auth == HTTPBearerAuth("token")

    def test_build_auth_raises_when_no_credentials(self):
        with pytest.raises(AuthorizationError):
            JMAPClient(url="http://x")

    def test_build_auth_explicit_bearer_type(self):
        client = JMAPClient(url="http://x", username="u", password="token", auth_type="bearer")
        assert isinstance(client._auth, HTTPBearerAuth)

    def test_build_auth_unsupported_type_raises(self):
        with pytest.raises(AuthorizationError):
            JMAPClient(url="http://x", username="u", password="p", auth_type="digest")

    def test_build_auth_basic_without_password_raises(self):
        with pytest.raises(AuthorizationError):
            JMAPClient(url="http://x", username="u", auth_type="basic")

    def test_explicit_auth_object(self):
        auth = HTTPBearerAuth("t")
        client = JMAPClient(url="http://x", auth=auth)
        assert client._auth is auth

    def test_default_headers(self):
        client = JMAPClient(url="http://x", password="t", headers={"X-Trace": "1"})
        assert client.http.headers["User-Agent"].startswith("python-jmap/")
        assert client.http.headers["Accept"] == "application/json"
        assert client.http.headers["X-Trace"] == "1"

    def test_bearer_header(self):
        prepared = MagicMock()
        prepared.headers = {}
        HTTPBearerAuth("tok")(prepared)
        assert prepared.headers["Authorization"] == "Bearer tok"


# ---------------------------------------------------------------------------
# Session handling
# ---------------------------------------------------------------------------


class TestAuthenticate:
    def test_authenticate_fetches_session(self):
        client = _make_client(session=False)
        session = client.authenticate()
        assert client.session is session
        assert session.api_url == _API_URL
        assert client.http.get.call_args[0][0] == _JMAP_URL

    def test_do_authenticates_once(self):
        client = _make_client(_ECHO_RESPONSE, session=False)
        client.do(_echo_request())
        client.do(_echo_request())
        assert client.http.get.call_count == 1
        assert client.http.post.call_count == 2

    def test_no_session_and_no_discovery_source_fails_locally(self):
        client = _make_client(_ECHO_RESPONSE, session=False, url=None, username=None, password="tok")
        with patch("jmap.client.discover_service") as discover:
            with pytest.raises(SessionError):
                client.do(_echo_request())
        discover.assert_not_called()
        client.http.get.assert_not_called()
        client.http.post.assert_not_called()

    def test_discovers_from_username_domain(self):
        client = _make_client(session=False, url=None, username="alice@example.com")
        info = ServiceInfo(url="https://jmap.example.com/.well-known/jmap", hostname="jmap.example.com", port=443)
        with patch("jmap.client.discover_service", return_value=info) as discover:
            client.authenticate()
        assert discover.call_args[0][0] == "example.com"
        assert client.url == "https://jmap.example.com/.well-known/jmap"
        assert client.http.get.call_args[0][0] == "https://jmap.example.com/.well-known/jmap"

    def test_discovers_from_domain(self):
        client = _make_client(session=False, url=None, domain="example.org")
        info = ServiceInfo(url="https://example.org/.well-known/jmap", hostname="example.org", port=443)
        with patch("jmap.client.discover_service", return_value=info) as discover:
            client.authenticate()
        assert discover.call_args[0][0] == "example.org"

    def test_discovery_failure(self):
        client = _make_client(session=False, url=None, domain="example.org")
        with patch("jmap.client.discover_service", return_value=None):
            with pytest.raises(DiscoveryError):
                client.authenticate()
        client.http.get.assert_not_called()

    def test_session_auth_failure(self):
        client = _make_client(session=False)
        client.http.get.return_value = _make_mock_response(status_code=401)
        with pytest.raises(AuthorizationError):
            client.authenticate()
        assert client.session is None

    def test_lock_not_held_during_session_fetch(self):
        client = _make_client(session=False)
        entered = threading.Event()
        release = threading.Event()
        calls = []

        def get(url, **kwargs):
            calls.append(url)
            if len(calls) == 1:
                entered.set()
                assert release.wait(5)
                return _make_mock_response(dict(_SESSION_JSON, state="slow"))
            return _make_mock_response(dict(_SESSION_JSON, state="fast"))

        client.http.get.side_effect = get
        results = []
        thread = threading.Thread(target=lambda: results.append(client.authenticate()))
        thread.start()
        try:
            assert entered.wait(5)
            ## the first fetch is blocked inside the HTTP call
            assert client.session is None
            fast = client.authenticate()
            assert fast.state == "fast"
            assert client.session is fast
        finally:
            release.set()
            thread.join(5)
        assert not thread.is_alive()

        ## both callers fetched; the fetch that finished last wins
        assert len(calls) == 2
        assert results[0].state == "slow"
        assert client.session is results[0]


# ---------------------------------------------------------------------------
# do()
# ---------------------------------------------------------------------------


class TestDo:
    def test_posts_request(self):
        client = _make_client(_ECHO_RESPONSE)
        request = _echo_request()
        client.do(request)
        args, kwargs = client.http.post.call_args
        assert args[0] == _API_URL
        assert kwargs["json"] == request.to_jmap()
        assert kwargs["headers"]["Content-Type"] == "application/json"

    def test_returns_decoded_response(self):
        client = _make_client(_ECHO_RESPONSE)
        response = client.do(_echo_request())
        assert isinstance(response, Response)
        assert response.get("0") == Echo(hello="world")

    def test_method_error_does_not_raise(self):
        client = _make_client({"sessionState": "s1", "methodResponses": [["error", {"type": "serverFail"}, "0"]]})
        response = client.do(_echo_request())
        with pytest.raises(MethodError):
            response.get("0")

    def test_unsupported_capability_fails_locally(self):
        client = _make_client(_ECHO_RESPONSE)
        request = Request()
        request.invoke(MailboxGet(account_id="a1"))
        with pytest.raises(UnsupportedCapabilityError) as exc_info:
            client.do(request)
        assert exc_info.value.capability == MAIL_CAPABILITY
        client.http.post.assert_not_called()

    def test_invalid_id_fails_locally(self):
        client = _make_client(_ECHO_RESPONSE)
        client._session.raw_capabilities[MAIL_CAPABILITY] = {}
        request = Request()
        request.invoke(MailboxGet(account_id="bad id"))
        with pytest.raises(ValidationError):
            client.do(request)
        client.http.post.assert_not_called()

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_error(self, status):
        client = _make_client()
        client.http.post.return_value = _make_mock_response(status_code=status, headers={}, reason="Unauthorized")
        with pytest.raises(AuthorizationError) as exc_info:
            client.do(_echo_request())
        assert exc_info.value.status == status

    def test_request_error_with_problem_details(self):
        client = _make_client()
        client.http.post.return_value = _make_mock_response(
            {
                "type": "urn:ietf:params:jmap:error:limit",
                "status": 400,
                "detail": "Too many calls",
                "limit": "maxCallsInRequest",
            },
            status_code=400,
            headers={"Content-Type": "application/problem+json; charset=utf-8"},
        )
        with pytest.raises(RequestError) as exc_info:
            client.do(_echo_request())
        assert exc_info.value.error_type == "limit"
        assert exc_info.value.limit == "maxCallsInRequest"
        assert exc_info.value.url == _API_URL

    def test_request_error_with_bare_status(self):
        client = _make_client()
        client.http.post.return_value = _make_mock_response(
            status_code=502, headers={"Content-Type": "text/html"}, reason="Bad Gateway"
        )
        with pytest.raises(RequestError) as exc_info:
            client.do(_echo_request())
        assert exc_info.value.status == 502
        assert exc_info.value.type == "about:blank"
        assert "Bad Gateway" in exc_info.value.reason

    def test_request_error_with_malformed_problem_details(self):
        client = _make_client()
        client.http.post.return_value = _make_mock_response(
            {"type": 42, "status": "400", "detail": ["x"], "limit": 7},
            status_code=400,
            headers={"Content-Type": "application/problem+json"},
        )
        with pytest.raises(RequestError) as exc_info:
            client.do(_echo_request())
        assert exc_info.value.type == "about:blank"
        assert exc_info.value.status == 400
        assert exc_info.value.detail is None
        assert exc_info.value.limit is None

    def test_response_not_json(self):
        client = _make_client()
        client.http.post.return_value.json.side_effect = ValueError("Expecting value")
        with pytest.raises(DecodeError):
            client.do(_echo_request())

    def test_unknown_method_in_response(self):
        client = _make_client({"sessionState": "s1", "methodResponses": [["Nope/nothing", {}, "0"]]})
        with pytest.raises(UnknownMethodError):
            client.do(_echo_request())

    def test_session_state_change_is_logged(self, caplog):
        client = _make_client({"sessionState": "s2", "methodResponses": [["Core/echo", {}, "0"]]})
        with caplog.at_level(logging.INFO, logger="jmap.client"):
            client.do(_echo_request())
        assert "s2" in caplog.text


# ---------------------------------------------------------------------------
# Binary data
# ---------------------------------------------------------------------------


class TestBlobs:
    def test_upload(self):
        client = _make_client()
        client.http.post.return_value = _make_mock_response(
            {"accountId": "a1", "blobId": "B1", "type": "text/plain", "size": 5}, status_code=201
        )
        result = client.upload("a1", b"hello", content_type="text/plain")
        assert result == UploadResponse(account_id="a1", blob_id="B1", type="text/plain", size=5)
        args, kwargs = client.http.post.call_args
        assert args[0] == "http://localhost:8802/jmap/upload/a1/"
        assert kwargs["data"] == b"hello"
        assert kwargs["headers"]["Content-Type"] == "text/plain"

    def test_upload_too_large(self):
        client = _make_client()
        client.http.post.return_value = _make_mock_response(status_code=413, headers={}, reason="Too Large")
        with pytest.raises(RequestError) as exc_info:
            client.upload("a1", b"x" * 10)
        assert exc_info.value.status == 413

    def test_upload_invalid_account(self):
        client = _make_client()
        with pytest.raises(ValidationError):
            client.upload("bad id", b"x")
        client.http.post.assert_not_called()

    def test_download(self):
        client = _make_client()
        resp = _make_mock_response()
        client.http.get.return_value = resp
        body = client.download("a1", "B1", type="text/plain", name="hello.txt")
        assert body is resp.raw
        args, kwargs = client.http.get.call_args
        assert args[0] == "http://localhost:8802/jmap/download/a1/B1/hello.txt?accept=text%2Fplain"
        assert kwargs["stream"] is True

    def test_download_not_found(self):
        client = _make_client()
        resp = _make_mock_response(status_code=404, headers={}, reason="Not Found")
        client.http.get.return_value = resp
        with pytest.raises(RequestError):
            client.download("a1", "B1")
        resp.close.assert_called_once()
