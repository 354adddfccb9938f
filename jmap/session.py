"""
JMAP session establishment (RFC 8620 §2).

Fetches the Session object from ``/.well-known/jmap`` and decodes the
capabilities, accounts and endpoint templates needed for every later
API call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin, urlparse

import requests

from jmap.constants import CORE_CAPABILITY
from jmap.lib.error import AuthorizationError, RequestError, SessionError, ValidationError, weirdness
from jmap.lib.types import validate_id
from jmap.lib.url import expand_url_template
from jmap.registry import CapabilityRegistry, default_capabilities

log = logging.getLogger(__name__)


@dataclass
class Account:
    """One data store the authenticated user can access.

    Attributes:
        id: The account id.
        name: User-friendly name, e.g. the owner's e-mail address.
        is_personal: True if the account belongs to the authenticated user.
        is_read_only: True if the entire account is read-only.
        capabilities: Decoded per-account capability objects, for the
            capabilities known to the registry.
        raw_capabilities: ``accountCapabilities`` exactly as sent.
    """

    id: str
    name: str = ""
    is_personal: bool = False
    is_read_only: bool = False
    capabilities: dict[str, Any] = field(default_factory=dict)
    raw_capabilities: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_jmap(
        cls, account_id: str, data: dict, capabilities: CapabilityRegistry | None = None
    ) -> Account:
        if capabilities is None:
            capabilities = default_capabilities
        raw_caps = data.get("accountCapabilities") or {}
        return cls(
            id=account_id,
            name=data.get("name", ""),
            is_personal=data.get("isPersonal", False),
            is_read_only=data.get("isReadOnly", False),
            capabilities=capabilities.decode(raw_caps),
            raw_capabilities=raw_caps,
        )

    def supports(self, uri: str) -> bool:
        return uri in self.raw_capabilities


@dataclass
class Session:
    """Parsed JMAP Session object (RFC 8620 §2).

    Attributes:
        api_url: URL to POST method calls to.
        state: Current session state string.
        capabilities: Decoded server capability objects, for the
            capabilities known to the registry.
        raw_capabilities: ``capabilities`` exactly as sent, including
            those this client has no type for.
        accounts: Account id → :class:`Account`.
        primary_accounts: Capability URI → default account id.
        username: The username the credentials belong to.
        download_url, upload_url, event_source_url: RFC 6570 templates.
        raw: The full parsed Session JSON for anything not captured above.
    """

    api_url: str
    state: str = ""
    capabilities: dict[str, Any] = field(default_factory=dict)
    raw_capabilities: dict[str, Any] = field(default_factory=dict)
    accounts: dict[str, Account] = field(default_factory=dict)
    primary_accounts: dict[str, str] = field(default_factory=dict)
    username: str = ""
    download_url: str = ""
    upload_url: str = ""
    event_source_url: str = ""
    raw: dict = field(default_factory=dict)

    def supports(self, uri: str) -> bool:
        """True if the server advertises capability ``uri``."""
        return uri in self.raw_capabilities

    @property
    def core(self):
        """The decoded core capability, holding the server limits."""
        return self.capabilities.get(CORE_CAPABILITY)

    def account(self, account_id: str) -> Account:
        """Look up an account by id.

        Raises:
            KeyError: If the session has no such account.
        """
        return self.accounts[account_id]

    def primary_account(self, uri: str = CORE_CAPABILITY) -> str | None:
        """The id of the default account for capability ``uri``, if any."""
        return self.primary_accounts.get(uri)

    def _expand(self, template: str, prop: str, **values) -> str:
        if not template:
            raise SessionError(url=self.api_url, reason=f"Session has no {prop}")
        return expand_url_template(template, **values)

    def upload_url_for(self, account_id: str) -> str:
        return self._expand(self.upload_url, "uploadUrl", accountId=account_id)

    def download_url_for(
        self,
        account_id: str,
        blob_id: str,
        type: str = "application/octet-stream",
        name: str = "download",
    ) -> str:
        return self._expand(
            self.download_url, "downloadUrl", accountId=account_id, blobId=blob_id, type=type, name=name
        )

    def event_source_url_for(self, types: list[str] | None = None, closeafter: str = "no", ping: int = 0) -> str:
        """Expand the push endpoint template (RFC 8620 §7.3).

        ``types`` defaults to all types (``*``).
        """
        if closeafter not in ("state", "no"):
            raise ValidationError(reason=f"closeafter must be 'state' or 'no', got {closeafter!r}")
        return self._expand(
            self.event_source_url,
            "eventSourceUrl",
            types=",".join(types) if types else "*",
            closeafter=closeafter,
            ping=ping,
        )


def parse_session(url: str, data: dict, capabilities: CapabilityRegistry | None = None) -> Session:
    """Decode and validate a Session JSON object fetched from ``url``.

    Raises:
        SessionError: If the object is malformed, or ``primaryAccounts``
            names an account that does not exist or does not advertise
            that capability.
    """
    if capabilities is None:
        capabilities = default_capabilities

    if not isinstance(data, dict):
        raise SessionError(url=url, reason="Session response is not a JSON object")

    api_url = data.get("apiUrl")
    if not api_url or not isinstance(api_url, str):
        raise SessionError(url=url, reason="Session response missing 'apiUrl'")

    try:
        raw_capabilities = data.get("capabilities") or {}
        accounts = {}
        for account_id, account_data in (data.get("accounts") or {}).items():
            validate_id(account_id)
            accounts[account_id] = Account.from_jmap(account_id, account_data or {}, capabilities)
        session_capabilities = capabilities.decode(raw_capabilities)
    except ValidationError as e:
        raise SessionError(url=url, reason=f"invalid account id: {e.reason}") from e
    except (TypeError, KeyError, ValueError, AttributeError) as e:
        raise SessionError(url=url, reason=f"malformed Session object: {e!r}") from e

    primary_accounts = data.get("primaryAccounts") or {}
    if not isinstance(primary_accounts, dict):
        raise SessionError(url=url, reason="primaryAccounts must be an object")
    for uri, account_id in primary_accounts.items():
        if not isinstance(account_id, str) or account_id not in accounts:
            raise SessionError(
                url=url,
                reason=f"primary account {account_id!r} for {uri} is not in accounts",
            )
        if not accounts[account_id].supports(uri):
            raise SessionError(
                url=url,
                reason=f"primary account {account_id!r} does not advertise {uri}",
            )

    # RFC 8620 §2 says these URLs SHOULD be absolute, but some servers (e.g. Cyrus)
    # return a relative path. Resolve them against the session endpoint URL.
    if not urlparse(api_url).scheme:
        weirdness("relative apiUrl in Session", api_url)
    return Session(
        api_url=urljoin(url, api_url),
        state=data.get("state", ""),
        capabilities=session_capabilities,
        raw_capabilities=raw_capabilities,
        accounts=accounts,
        primary_accounts=primary_accounts,
        username=data.get("username", ""),
        download_url=_absolute_template(url, data.get("downloadUrl", "")),
        upload_url=_absolute_template(url, data.get("uploadUrl", "")),
        event_source_url=_absolute_template(url, data.get("eventSourceUrl", "")),
        raw=data,
    )


def _absolute_template(base: str, template: str) -> str:
    if not template:
        return template
    return urljoin(base, template)


def fetch_session(
    http: requests.Session,
    url: str,
    timeout: int = 30,
    verify=True,
    capabilities: CapabilityRegistry | None = None,
) -> Session:
    """Fetch and parse the JMAP Session object.

    Performs a GET request to ``url`` (expected to be ``/.well-known/jmap``
    or equivalent) using the authenticated ``http`` session, and returns a
    parsed :class:`Session`.

    Raises:
        AuthorizationError: If the server returns HTTP 401 or 403.
        RequestError: For other non-200 responses.
        SessionError: If the body is not a valid Session object.
    """
    response = http.get(url, headers={"Accept": "application/json"}, timeout=timeout, verify=verify)
    log.debug("session endpoint %s responded with %s", url, response.status_code)
    if response.status_code in (401, 403):
        raise AuthorizationError(
            url=url,
            reason=f"HTTP {response.status_code} from session endpoint",
            status=response.status_code,
        )
    if response.status_code != 200:
        raise RequestError(url=url, status=response.status_code)
    try:
        data = response.json()
    except ValueError as e:
        raise SessionError(url=url, reason=f"Session response is not JSON: {e}") from e
    return parse_session(url, data, capabilities)


__all__ = ["Account", "Session", "parse_session", "fetch_session"]
