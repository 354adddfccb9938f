"""
The Invocation codec: ``[name, arguments, callId]`` (RFC 8620 §3.2).

Encoding needs no lookup, the caller holds the typed arguments already.
Decoding reads the name first, looks up the response type in a
:class:`jmap.registry.MethodRegistry` and decodes the arguments into it,
so the Python type of ``Invocation.args`` is decided by the name alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from jmap.constants import ERROR_METHOD_NAME
from jmap.lib.error import DecodeError, MethodError, UnknownMethodError
from jmap.registry import MethodRegistry, build, default_methods

log = logging.getLogger(__name__)


@dataclass
class Invocation:
    """One method call or method response.

    Attributes:
        name: The method name, or ``"error"`` for a method-level error.
        args: The typed arguments.  For a decoded error this is a
            :class:`~jmap.lib.error.MethodError`.
        call_id: Client-chosen id correlating a response with its call.
    """

    name: str
    args: Any
    call_id: str

    @property
    def is_error(self) -> bool:
        return self.name == ERROR_METHOD_NAME or isinstance(self.args, MethodError)

    def unwrap(self):
        """Return the typed arguments, or raise the decoded MethodError."""
        if isinstance(self.args, MethodError):
            raise self.args
        return self.args

    def to_jmap(self) -> list:
        args = self.args
        if hasattr(args, "to_jmap"):
            args = args.to_jmap()
        return [self.name, args, self.call_id]

    @classmethod
    def from_jmap(cls, data, methods: MethodRegistry | None = None) -> Invocation:
        """Decode one ``methodResponses`` element.

        Raises:
            UnknownMethodError: If the name is not registered in ``methods``.
            DecodeError: If the element is not a 3-element array of
                (string, object, string), or the arguments do not fit the
                registered type.
        """
        if methods is None:
            methods = default_methods

        if not isinstance(data, list) or len(data) != 3:
            raise DecodeError(reason=f"invocation must be an array of 3 elements, got {data!r}")
        name, payload, call_id = data
        if not isinstance(name, str):
            raise DecodeError(reason=f"invocation name must be a string, got {name!r}")
        if not isinstance(call_id, str):
            raise DecodeError(reason="invocation call id must be a string", name=name, call_id=repr(call_id))

        factory = methods.lookup(name)
        if not isinstance(payload, dict) and name != ERROR_METHOD_NAME:
            raise DecodeError(
                reason=f"arguments must be an object, got {type(payload).__name__}",
                name=name,
                call_id=call_id,
            )
        try:
            args = build(factory, payload)
        except UnknownMethodError:
            raise
        except (TypeError, KeyError, ValueError) as e:
            raise DecodeError(reason=f"cannot decode arguments: {e!r}", name=name, call_id=call_id) from e

        if isinstance(args, MethodError):
            args.call_id = call_id
            log.debug("method call %s failed: %s", call_id, args.error_type)
        return cls(name=name, args=args, call_id=call_id)


def encode_invocation(name: str, args, call_id: str) -> list:
    """Encode ``(name, args, call_id)`` to the wire array."""
    return Invocation(name=name, args=args, call_id=call_id).to_jmap()


def decode_invocation(data, methods: MethodRegistry | None = None) -> Invocation:
    """Decode a wire array to an :class:`Invocation`."""
    return Invocation.from_jmap(data, methods=methods)
