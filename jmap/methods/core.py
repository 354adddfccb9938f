"""
The ``urn:ietf:params:jmap:core`` capability and its methods.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from jmap.constants import CORE_CAPABILITY
from jmap.lib.types import Id
from jmap.method import Method, MethodResponse, SetError
from jmap.objects.base import JMAPObject
from jmap.registry import register_capability, register_method


@register_capability
@dataclass
class CoreCapability(JMAPObject):
    """Server limits advertised under the core capability (RFC 8620 §2).

    Every property defaults to 0 (or empty) so that a partial object from
    a sloppy server still decodes.
    """

    uri = CORE_CAPABILITY

    max_size_upload: int = 0
    max_concurrent_upload: int = 0
    max_size_request: int = 0
    max_concurrent_requests: int = 0
    max_calls_in_request: int = 0
    max_objects_in_get: int = 0
    max_objects_in_set: int = 0
    collation_algorithms: list[str] = field(default_factory=list)


@dataclass
class Echo(Method, MethodResponse):
    """``Core/echo``: the server returns the arguments unchanged.

    Useful for testing connectivity; the same type decodes the response.
    """

    name = "Core/echo"

    hello: str | None = field(default=None, metadata={"jmap": "Hello"})


register_method(Echo.name, Echo)


@dataclass
class UploadResponse(JMAPObject):
    """The JSON body returned by the upload endpoint (RFC 8620 §6.1)."""

    account_id: Id
    blob_id: Id
    type: str
    size: int


@dataclass
class BlobCopy(Method):
    """``Blob/copy``: copy blobs from one account to another."""

    name = "Blob/copy"

    from_account_id: Id
    account_id: Id
    blob_ids: list[Id] = field(default_factory=list)


@dataclass
class BlobCopyResponse(MethodResponse):
    from_account_id: Id
    account_id: Id
    copied: dict[Id, Id] | None = None
    not_copied: dict[Id, SetError] | None = None


register_method(BlobCopy.name, BlobCopyResponse)
