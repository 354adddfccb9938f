#!/usr/bin/env python
"""
JMAP error hierarchy.

RFC 8620 §3.6 distinguishes request-level errors (the whole batch was
rejected, reported through the HTTP status) from method-level errors
(one invocation failed, reported as an ``"error"`` invocation inside an
otherwise successful response).  Both are represented here, together
with the client-side failures detected before anything is sent.
"""
import logging
import os
from typing import Any
from typing import Dict
from typing import Optional

from jmap import __version__
from jmap.constants import REQUEST_ERROR_PREFIX

debug_dump_communication = False
try:
    ## Environmental variables prepended with "PYTHON_JMAP" are used for debug purposes,
    ## environmental variables prepended with "JMAP_" are for connection parameters
    debug_dump_communication = os.environ.get("PYTHON_JMAP_COMMDUMP", False)
    ## one of DEBUG, DEVELOPMENT, PRODUCTION
    debugmode = os.environ["PYTHON_JMAP_DEBUGMODE"]
except KeyError:
    if "dev" in __version__:
        debugmode = "DEVELOPMENT"
    else:
        debugmode = "PRODUCTION"

log = logging.getLogger("jmap")
if debugmode.startswith("DEBUG"):
    log.setLevel(logging.DEBUG)
else:
    log.setLevel(logging.WARNING)


def weirdness(*reasons) -> None:
    """Log a deviation from what the protocol says a server should do."""
    reason = " : ".join(str(x) for x in reasons)
    log.warning(f"Deviation from expectations found: {reason}")


class JMAPError(Exception):
    """Base class for all JMAP errors.

    Carries ``error_type`` with the RFC 8620 error type string
    (e.g. ``"unknownMethod"``, ``"invalidArguments"``).
    """

    url: Optional[str] = None
    reason: str = "no reason"
    error_type: str = "serverError"

    def __init__(
        self,
        url: Optional[str] = None,
        reason: Optional[str] = None,
        error_type: Optional[str] = None,
    ) -> None:
        super().__init__(reason or self.reason)
        if url:
            self.url = url
        if reason:
            self.reason = reason
        if error_type is not None:
            self.error_type = error_type

    def __str__(self) -> str:
        return "%s (type=%s) at '%s', reason: %s" % (
            self.__class__.__name__,
            self.error_type,
            self.url,
            self.reason,
        )


class RequestError(JMAPError):
    """The server rejected the whole request (RFC 8620 §3.6.1).

    No individual method results are available.  ``type`` is the problem
    type URI (e.g. ``urn:ietf:params:jmap:error:limit``), ``status`` the
    HTTP status and ``limit`` the name of the exceeded limit, if any.
    When the server did not send a JSON problem body, only ``status`` and
    a generic ``type`` of ``about:blank`` are set.
    """

    error_type = "requestError"

    def __init__(
        self,
        url: Optional[str] = None,
        reason: Optional[str] = None,
        type: str = "about:blank",
        status: Optional[int] = None,
        detail: Optional[str] = None,
        limit: Optional[str] = None,
    ) -> None:
        if reason is None:
            reason = detail or (f"HTTP {status}" if status else None)
            if reason and limit:
                reason = f"{reason}: {limit}"
        super().__init__(url=url, reason=reason)
        self.type = type
        self.status = status
        self.detail = detail
        self.limit = limit
        if type.startswith(REQUEST_ERROR_PREFIX):
            self.error_type = type[len(REQUEST_ERROR_PREFIX) :]

    @classmethod
    def from_jmap(cls, data: Dict[str, Any], url: Optional[str] = None, status: Optional[int] = None):
        """Build a RequestError from an RFC 7807 problem details body."""
        problem_type = data.get("type")
        if not isinstance(problem_type, str) or not problem_type:
            problem_type = "about:blank"
        body_status = data.get("status")
        if isinstance(body_status, int) and not isinstance(body_status, bool):
            status = body_status
        detail = data.get("detail")
        limit = data.get("limit")
        return cls(
            url=url,
            type=problem_type,
            status=status,
            detail=detail if isinstance(detail, str) else None,
            limit=limit if isinstance(limit, str) else None,
        )


class AuthorizationError(RequestError):
    """HTTP 401 or 403 received from the JMAP server.

    JMAP does not use a 401-challenge-retry dance.  Credentials are sent
    upfront on every request, so a 401/403 is a hard failure.
    """

    error_type = "forbidden"
    reason = "Authentication failed"


class MethodError(JMAPError):
    """A single method call failed (RFC 8620 §3.6.2).

    The server sends this in place of the expected response, as an
    invocation named ``"error"``.  It is decoded through the method
    registry like any other response and surfaces through
    :meth:`jmap.invocation.Invocation.unwrap` as a raised exception.

    Any further properties the server sent along with ``type`` and
    ``description`` are kept in ``properties``.
    """

    SERVER_UNAVAILABLE = "serverUnavailable"
    SERVER_FAIL = "serverFail"
    SERVER_PARTIAL_FAIL = "serverPartialFail"
    UNKNOWN_METHOD = "unknownMethod"
    INVALID_ARGUMENTS = "invalidArguments"
    INVALID_RESULT_REFERENCE = "invalidResultReference"
    FORBIDDEN = "forbidden"
    ACCOUNT_NOT_FOUND = "accountNotFound"
    ACCOUNT_NOT_SUPPORTED_BY_METHOD = "accountNotSupportedByMethod"
    ACCOUNT_READ_ONLY = "accountReadOnly"
    REQUEST_TOO_LARGE = "requestTooLarge"
    STATE_MISMATCH = "stateMismatch"
    CANNOT_CALCULATE_CHANGES = "cannotCalculateChanges"
    ANCHOR_NOT_FOUND = "anchorNotFound"
    UNSUPPORTED_SORT = "unsupportedSort"
    UNSUPPORTED_FILTER = "unsupportedFilter"
    TOO_MANY_CHANGES = "tooManyChanges"
    FROM_ACCOUNT_NOT_FOUND = "fromAccountNotFound"
    FROM_ACCOUNT_NOT_SUPPORTED_BY_METHOD = "fromAccountNotSupportedByMethod"

    def __init__(
        self,
        url: Optional[str] = None,
        reason: Optional[str] = None,
        error_type: Optional[str] = None,
        description: Optional[str] = None,
        properties: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(url=url, reason=reason or description, error_type=error_type)
        self.description = description
        self.properties = properties or {}
        self.call_id: Optional[str] = None

    @classmethod
    def from_jmap(cls, data: Dict[str, Any]) -> "MethodError":
        """Decode the arguments of an ``"error"`` invocation.

        Never fails on missing fields; a payload without ``type`` is
        reported as ``serverFail``.
        """
        if not isinstance(data, dict):
            data = {}
        extra = {k: v for k, v in data.items() if k not in ("type", "description")}
        return cls(
            error_type=data.get("type") or cls.SERVER_FAIL,
            description=data.get("description"),
            properties=extra,
        )

    def to_jmap(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.error_type}
        if self.description is not None:
            result["description"] = self.description
        result.update(self.properties)
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MethodError):
            return NotImplemented
        return self.to_jmap() == other.to_jmap()

    __hash__ = JMAPError.__hash__


class UnknownMethodError(JMAPError):
    """A response contained a method name that was never registered.

    Decoding is aborted for the whole response, since skipping the entry
    would shift every later response out of line with the calls issued.
    """

    error_type = "unknownMethod"

    def __init__(self, name: str, url: Optional[str] = None) -> None:
        super().__init__(url=url, reason=f"method {name!r} is not registered")
        self.name = name


class UnsupportedCapabilityError(JMAPError):
    """The Session does not advertise a capability the request requires.

    Raised before anything is sent to the server.
    """

    error_type = "capabilityNotSupported"
    reason = "Server does not support a required capability"

    def __init__(self, capability: Optional[str] = None, url: Optional[str] = None) -> None:
        reason = None
        if capability:
            reason = f"server doesn't support required capability {capability!r}"
        super().__init__(url=url, reason=reason)
        self.capability = capability


class DecodeError(JMAPError):
    """A response or invocation could not be decoded."""

    error_type = "decodeError"

    def __init__(
        self,
        reason: Optional[str] = None,
        name: Optional[str] = None,
        call_id: Optional[str] = None,
        url: Optional[str] = None,
    ) -> None:
        if name is not None or call_id is not None:
            reason = f"{reason} (method={name!r}, callId={call_id!r})"
        super().__init__(url=url, reason=reason)
        self.name = name
        self.call_id = call_id


class ValidationError(JMAPError):
    """A value does not conform to its wire format and cannot be sent."""

    error_type = "invalidArguments"


class SessionError(JMAPError):
    """No usable Session could be established."""

    error_type = "sessionError"
