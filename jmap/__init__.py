#!/usr/bin/env python
"""
Client library for JMAP, the JSON Meta Application Protocol (RFC 8620).

Basic usage::

    from jmap import get_jmap_client
    from jmap.methods.core import Echo
    from jmap.request import Request

    client = get_jmap_client(
        url="https://jmap.example.com/.well-known/jmap",
        username="alice",
        password="secret",
    )
    request = Request()
    call_id = request.invoke(Echo(hello="world"))
    response = client.do(request)
    echo = response.get(call_id)
"""
import logging

__version__ = "0.1.0"

from jmap.client import JMAPClient
from jmap.discovery import DiscoveryError
from jmap.lib.error import (
    AuthorizationError,
    DecodeError,
    JMAPError,
    MethodError,
    RequestError,
    SessionError,
    UnknownMethodError,
    UnsupportedCapabilityError,
    ValidationError,
)
from jmap.request import Request, Response

## Importing the method modules registers their capabilities and
## response types in the default registries.
from jmap.methods import core as _core  # noqa: F401
from jmap.methods import push as _push  # noqa: F401

# Silence notification of no default logging handler
log = logging.getLogger("jmap")


class NullHandler(logging.Handler):
    def emit(self, record) -> None:
        pass


log.addHandler(NullHandler())


def get_jmap_client(**kwargs) -> JMAPClient | None:
    """Create a :class:`JMAPClient` from configuration.

    Configuration is read from these sources, first match wins:

    1. Explicit keyword arguments (``url``, ``username``, ``password``, …)
    2. Environment variables (``JMAP_URL``, ``JMAP_USERNAME``, …)
    3. Config file (``~/.config/jmap/client.conf`` or equivalent)

    Returns ``None`` if no configuration is found.

    Example::

        client = get_jmap_client(url="https://jmap.example.com/.well-known/jmap",
                                 username="alice", password="secret")
    """
    from jmap.config import get_connection_params

    conn_params = get_connection_params(**kwargs)
    if conn_params is None:
        return None

    # Drop keys that JMAPClient does not accept.
    _CLIENT_KEYS = {
        "url",
        "username",
        "password",
        "auth",
        "auth_type",
        "timeout",
        "domain",
        "ssl_verify_cert",
        "headers",
    }
    client_params = {k: v for k, v in conn_params.items() if k in _CLIENT_KEYS}
    if "timeout" in client_params:
        client_params["timeout"] = int(client_params["timeout"])

    return JMAPClient(**client_params)


__all__ = [
    "__version__",
    "JMAPClient",
    "Request",
    "Response",
    "get_jmap_client",
    "JMAPError",
    "AuthorizationError",
    "DecodeError",
    "DiscoveryError",
    "MethodError",
    "RequestError",
    "SessionError",
    "UnknownMethodError",
    "UnsupportedCapabilityError",
    "ValidationError",
]
