"""
Synchronous JMAP client.

Wraps session establishment, HTTP communication and response decoding
into a single object.  Typical use::

    client = JMAPClient(url="https://jmap.example.com/.well-known/jmap",
                        username="alice", password="secret")
    request = Request()
    call_id = request.invoke(Echo(hello="world"))
    response = client.do(request)

Auth note: JMAP has no 401-challenge-retry dance.
Credentials are sent upfront on every request. A 401/403 is a hard failure.

A client may be shared between threads.  A lock guards the cached
Session, but is never held across an HTTP call, so two threads may both
fetch the Session on first use; the last fetch wins.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from types import TracebackType
from typing import BinaryIO, Optional

import requests
from requests.auth import HTTPBasicAuth

from jmap import __version__
from jmap.discovery import DiscoveryError, discover_service
from jmap.lib import error
from jmap.lib.error import AuthorizationError, DecodeError, RequestError, SessionError, UnsupportedCapabilityError
from jmap.lib.types import validate_id
from jmap.methods.core import UploadResponse
from jmap.registry import CapabilityRegistry, MethodRegistry, default_capabilities, default_methods
from jmap.request import Request, Response
from jmap.requests import HTTPBearerAuth
from jmap.session import Session, fetch_session

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

log = logging.getLogger("jmap.client")

_JSON_CONTENT_TYPES = ("application/json", "application/problem+json")


class JMAPClient:
    """Synchronous JMAP client.

    Args:
        url: URL of the JMAP session endpoint (``/.well-known/jmap``).
            If omitted, the endpoint is discovered from ``domain``, or
            from the domain of ``username`` if it is an e-mail address.
        username: Username for Basic auth.
        password: Password for Basic auth, or bearer token if no username.
        auth: A pre-built requests-compatible auth object. Takes precedence
              over username/password if provided.
        auth_type: Force a specific auth type: ``"basic"`` or ``"bearer"``.
        timeout: HTTP request timeout in seconds.
        domain: Domain to run service discovery on when ``url`` is unset.
        ssl_verify_cert: Verify TLS certificates; may be a CA bundle path.
        headers: Extra HTTP headers sent with every request.
        capabilities: Registry used to decode Session capabilities.
        methods: Registry used to decode method responses.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        auth=None,
        auth_type: Optional[str] = None,
        timeout: int = 30,
        domain: Optional[str] = None,
        ssl_verify_cert=True,
        headers: Optional[dict] = None,
        capabilities: Optional[CapabilityRegistry] = None,
        methods: Optional[MethodRegistry] = None,
    ) -> None:
        self.url = url
        self.username = username
        self.password = password
        self.domain = domain
        self.timeout = timeout
        self.ssl_verify_cert = ssl_verify_cert
        self.capabilities = capabilities if capabilities is not None else default_capabilities
        self.methods = methods if methods is not None else default_methods

        self._lock = threading.Lock()
        self._session: Session | None = None

        if auth is not None:
            if auth_type:
                log.error("both auth object and auth_type sent to JMAPClient.  The latter will be ignored.")
            self._auth = auth
        else:
            self._auth = self._build_auth(auth_type)

        self.http = requests.Session()
        self.http.auth = self._auth
        self.http.headers.update({"User-Agent": "python-jmap/" + __version__, "Accept": "application/json"})
        self.http.headers.update(headers or {})

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: Optional[type] = None,
        exc_value: Optional[BaseException] = None,
        traceback: Optional[TracebackType] = None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Closes the underlying HTTP session"""
        self.http.close()

    def _build_auth(self, auth_type: str | None):
        """Select and construct the auth object.

        JMAP supports Basic and Bearer auth; Digest is not supported.
        When ``auth_type`` is ``None`` the type is inferred from the
        credentials supplied: a username triggers Basic, a password
        alone triggers Bearer, and neither raises :class:`AuthorizationError`.
        """
        effective_type = auth_type
        if effective_type is None:
            if self.username:
                effective_type = "basic"
            elif self.password:
                effective_type = "bearer"
            else:
                raise AuthorizationError(
                    url=self.url,
                    reason="No credentials provided. Supply username+password or a bearer token.",
                )

        if effective_type == "basic":
            if not self.username or not self.password:
                raise AuthorizationError(
                    url=self.url,
                    reason="Basic auth requires both username and password.",
                )
            return HTTPBasicAuth(self.username, self.password)
        elif effective_type == "bearer":
            if not self.password:
                raise AuthorizationError(
                    url=self.url,
                    reason="Bearer auth requires a token supplied as the password argument.",
                )
            return HTTPBearerAuth(self.password)
        else:
            raise AuthorizationError(
                url=self.url,
                reason=f"Unsupported auth_type {effective_type!r}. Use 'basic' or 'bearer'.",
            )

    @property
    def session(self) -> Session | None:
        """The cached Session, or ``None`` before :meth:`authenticate`."""
        with self._lock:
            return self._session

    def _session_url(self) -> str:
        with self._lock:
            url = self.url
        if url:
            return url

        domain = self.domain
        if not domain and self.username and "@" in self.username:
            domain = self.username.rsplit("@", 1)[-1]
        if not domain:
            raise SessionError(reason="no session url is set and there is no domain to discover it from")

        info = discover_service(domain, timeout=self.timeout, ssl_verify_cert=self.ssl_verify_cert)
        if info is None:
            raise DiscoveryError(reason=f"no JMAP service found for {domain}")
        with self._lock:
            self.url = info.url
        return info.url

    def authenticate(self) -> Session:
        """Fetch the Session object and cache it.

        Called automatically by :meth:`do` when no Session is cached.
        Call it explicitly to inspect the Session before the first
        request, or to refresh it once a response reports a new
        ``sessionState``.

        Raises:
            SessionError: If no session URL is configured or discoverable,
                or the server sent an invalid Session.
            AuthorizationError: If the credentials are rejected.
            RequestError: On any other non-200 response.
        """
        url = self._session_url()
        session = fetch_session(
            self.http,
            url,
            timeout=self.timeout,
            verify=self.ssl_verify_cert,
            capabilities=self.capabilities,
        )
        with self._lock:
            self._session = session
        log.debug("authenticated to %s, session state %s", url, session.state)
        return session

    def _get_session(self) -> Session:
        """Return the cached Session, fetching it on first call."""
        session = self.session
        if session is None:
            session = self.authenticate()
        return session

    def do(self, request: Request) -> Response:
        """Send a batch of method calls and return the decoded Response.

        Method-level failures do not raise here; they come back as
        ``"error"`` invocations, see :meth:`jmap.request.Response.get`.
        Nothing is retried.

        Raises:
            UnsupportedCapabilityError: If the Session lacks a capability
                the request uses.  Nothing is sent.
            ValidationError: If an argument fails validation.  Nothing is sent.
            AuthorizationError: On HTTP 401 or 403.
            RequestError: On any other non-200 response.
            UnknownMethodError, DecodeError: If the response cannot be decoded.
        """
        session = self._get_session()

        for uri in request.using:
            if not session.supports(uri):
                raise UnsupportedCapabilityError(uri, url=session.api_url)

        payload = request.to_jmap()

        log.debug("JMAP POST to %s: %d method call(s)", session.api_url, len(request))

        response = self.http.post(
            session.api_url,
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
            verify=self.ssl_verify_cert,
        )
        self._dump_communication("POST", session.api_url, payload, response)
        self._raise_for_status(session.api_url, response)

        try:
            data = response.json()
        except ValueError as e:
            raise DecodeError(url=session.api_url, reason=f"response is not JSON: {e}") from e

        result = Response.from_jmap(data, methods=self.methods)
        if result.session_state and result.session_state != session.state:
            log.info(
                "session state changed from %s to %s; call authenticate() to refresh",
                session.state,
                result.session_state,
            )
        return result

    def upload(self, account_id: str, data, content_type: str = "application/octet-stream") -> UploadResponse:
        """Upload binary data and return the blob id the server assigned.

        ``data`` may be bytes or a file-like object, which is streamed.

        The server may return the same blob id for identical uploads, and
        may expire a blob id that is not used in time.
        """
        validate_id(account_id)
        session = self._get_session()
        url = session.upload_url_for(account_id)
        response = self.http.post(
            url,
            data=data,
            headers={"Content-Type": content_type},
            timeout=self.timeout,
            verify=self.ssl_verify_cert,
        )
        self._raise_for_status(url, response, ok=(200, 201))
        try:
            return UploadResponse.from_jmap(response.json())
        except (ValueError, TypeError, KeyError) as e:
            raise DecodeError(url=url, reason=f"invalid upload response: {e!r}") from e

    def download(
        self,
        account_id: str,
        blob_id: str,
        type: str = "application/octet-stream",
        name: str = "download",
    ) -> BinaryIO:
        """Download a blob.

        Returns a binary file-like object streaming the blob content;
        close it when done.
        """
        validate_id(account_id)
        validate_id(blob_id)
        session = self._get_session()
        url = session.download_url_for(account_id, blob_id, type=type, name=name)
        response = self.http.get(url, stream=True, timeout=self.timeout, verify=self.ssl_verify_cert)
        if response.status_code != 200:
            try:
                self._raise_for_status(url, response)
            finally:
                response.close()
        response.raw.decode_content = True
        return response.raw

    def _raise_for_status(self, url: str, response, ok: tuple = (200,)) -> None:
        status = response.status_code
        if status in ok:
            return
        error_class = AuthorizationError if status in (401, 403) else RequestError

        content_type = response.headers.get("Content-Type", "").split(";")[0].strip().lower()
        if content_type in _JSON_CONTENT_TYPES:
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                raise error_class.from_jmap(body, url=url, status=status)

        raise error_class(url=url, status=status, reason=f"HTTP {status} {response.reason}")

    def _dump_communication(self, method: str, url: str, body, response) -> None:
        if not error.debug_dump_communication:
            return
        import datetime
        from tempfile import NamedTemporaryFile

        with NamedTemporaryFile(prefix="jmapcomm", delete=False) as commlog:
            commlog.write(b"=" * 80 + b"\n")
            commlog.write(f"{datetime.datetime.now():%FT%H:%M:%S}".encode("utf-8"))
            commlog.write(b"\n====>\n")
            commlog.write(f"{method} {url}\n\n".encode("utf-8"))
            commlog.write(json.dumps(body, indent=2).encode("utf-8"))
            commlog.write(b"\n<====\n")
            commlog.write(f"{response.status_code} {response.reason}\n".encode("utf-8"))
            commlog.write(b"\n".join(f"{k}: {v}".encode("utf-8") for k, v in response.headers.items()))
            commlog.write(b"\n\n")
            commlog.write(response.content)
            commlog.write(b"\n")
            log.debug("communication dumped to %s", commlog.name)
