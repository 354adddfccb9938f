"""
Base types for JMAP method arguments and responses.

A method is a dataclass deriving from :class:`Method` that declares its
wire ``name`` and the capability URIs it ``requires``::

    @dataclass
    class Echo(Method):
        name = "Core/echo"
        requires = (CORE_CAPABILITY,)

        hello: str | None = field(default=None, metadata={"jmap": "Hello"})

Adding it to a :class:`jmap.request.Request` with ``invoke`` puts its
arguments in the batch and its requirements in the ``using`` list.
Response types derive from :class:`MethodResponse` and are registered in
a :class:`jmap.registry.MethodRegistry` under the method name.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from jmap.constants import CORE_CAPABILITY
from jmap.objects.base import JMAPObject, ResultReference


class Method(JMAPObject):
    """The arguments of one method call."""

    name: ClassVar[str]
    requires: ClassVar[tuple[str, ...]] = (CORE_CAPABILITY,)


class MethodResponse(JMAPObject):
    """The arguments of one method response."""


@dataclass
class SetError(JMAPObject):
    """A per-record failure inside a ``/set`` or ``/copy`` response.

    Not an exception: these are ordinary response data, keyed by
    creation id or record id in ``not_created``, ``not_updated`` and
    ``not_destroyed``.  ``properties`` lists the offending properties for
    ``invalidProperties`` errors.
    """

    FORBIDDEN = "forbidden"
    OVER_QUOTA = "overQuota"
    TOO_LARGE = "tooLarge"
    RATE_LIMIT = "rateLimit"
    NOT_FOUND = "notFound"
    INVALID_PATCH = "invalidPatch"
    WILL_DESTROY = "willDestroy"
    INVALID_PROPERTIES = "invalidProperties"
    SINGLETON = "singleton"
    ALREADY_EXISTS = "alreadyExists"

    type: str
    description: str | None = None
    properties: list[str] | None = None
    existing_id: str | None = None


__all__ = ["Method", "MethodResponse", "ResultReference", "SetError"]
