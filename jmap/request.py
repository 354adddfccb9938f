"""
JMAP Request and Response objects (RFC 8620 §3.3, §3.4).

A :class:`Request` is built up by calling :meth:`Request.invoke` once per
method call.  Each call gets a predictable call id, so later calls in the
same request can refer to its result with a
:class:`~jmap.objects.base.ResultReference` and the whole chain runs in
a single round trip::

    request = Request()
    query = request.invoke(QueryRequest(account_id="a1"))
    request.invoke(GetRequest(
        account_id="a1",
        ids=ResultReference(result_of=query, name="Foo/query", path="/ids"),
    ))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from jmap.invocation import Invocation
from jmap.lib.error import DecodeError, MethodError
from jmap.lib.types import validate_id
from jmap.method import Method
from jmap.registry import MethodRegistry

log = logging.getLogger(__name__)


@dataclass
class Request:
    """An ordered batch of method calls.

    Attributes:
        using: Capability URIs the request uses; the union of the
            ``requires`` of every invoked method, in first-seen order.
        calls: The method calls, in the order they will be processed.
        created_ids: Optional map of creation id to server id, for
            creation ids referenced across requests.
    """

    using: list[str] = field(default_factory=list)
    calls: list[Invocation] = field(default_factory=list)
    created_ids: dict[str, str] | None = None

    def invoke(self, method: Method, call_id: str | None = None) -> str:
        """Add a method call to the request and return its call id.

        Call ids are ``"0"``, ``"1"``, ``"2"``, … in invocation order,
        unless ``call_id`` is given.

        Raises:
            ValueError: If ``call_id`` is already used in this request.
        """
        if call_id is None:
            call_id = str(len(self.calls))
            while self._has_call_id(call_id):
                call_id = f"{call_id}-{len(self.calls)}"
        elif self._has_call_id(call_id):
            raise ValueError(f"call id {call_id!r} is already used in this request")

        self.calls.append(Invocation(name=method.name, args=method, call_id=call_id))
        for uri in method.requires:
            if uri not in self.using:
                self.using.append(uri)
        return call_id

    def _has_call_id(self, call_id: str) -> bool:
        return any(c.call_id == call_id for c in self.calls)

    def __len__(self) -> int:
        return len(self.calls)

    def to_jmap(self) -> dict:
        """Serialise to the Request wire object.

        Raises:
            ValidationError: If any ``Id`` in the arguments is malformed.
        """
        result: dict = {
            "using": list(self.using),
            "methodCalls": [call.to_jmap() for call in self.calls],
        }
        if self.created_ids is not None:
            result["createdIds"] = {validate_id(k): validate_id(v) for k, v in self.created_ids.items()}
        return result


@dataclass
class Response:
    """The server's answer to a :class:`Request`.

    Attributes:
        responses: Decoded method responses, in processing order.
        session_state: The current Session state; if it differs from the
            cached Session, the Session should be fetched again.
        created_ids: Creation id to server id map, if sent.
    """

    responses: list[Invocation] = field(default_factory=list)
    session_state: str = ""
    created_ids: dict[str, str] | None = None

    @classmethod
    def from_jmap(cls, data, methods: MethodRegistry | None = None) -> Response:
        """Decode a Response wire object.

        Any element that cannot be decoded aborts the whole decode;
        no partial Response is ever returned.

        Raises:
            UnknownMethodError: If a response names an unregistered method.
            DecodeError: If the object or any invocation is malformed.
        """
        if not isinstance(data, dict):
            raise DecodeError(reason=f"response must be an object, got {type(data).__name__}")
        method_responses = data.get("methodResponses")
        if not isinstance(method_responses, list):
            raise DecodeError(reason="response has no methodResponses array")
        session_state = data.get("sessionState", "")
        if not isinstance(session_state, str):
            raise DecodeError(reason="sessionState must be a string")
        created_ids = data.get("createdIds")
        if created_ids is not None and not isinstance(created_ids, dict):
            raise DecodeError(reason="createdIds must be an object")

        responses = [Invocation.from_jmap(item, methods=methods) for item in method_responses]
        return cls(responses=responses, session_state=session_state, created_ids=created_ids)

    def to_jmap(self) -> dict:
        result: dict = {
            "methodResponses": [r.to_jmap() for r in self.responses],
            "sessionState": self.session_state,
        }
        if self.created_ids is not None:
            result["createdIds"] = dict(self.created_ids)
        return result

    def __iter__(self):
        return iter(self.responses)

    def __len__(self) -> int:
        return len(self.responses)

    def invocations(self, call_id: str) -> list[Invocation]:
        """All responses to the call ``call_id``.

        Usually one, but a single call may produce several responses.
        """
        return [r for r in self.responses if r.call_id == call_id]

    def get(self, call_id: str, name: str | None = None):
        """Return the typed response arguments for ``call_id``.

        With ``name``, pick the response of that method name, for calls
        that produce more than one response.

        Raises:
            MethodError: If the call failed on the server.
            KeyError: If there is no response for ``call_id``.
        """
        for invocation in self.invocations(call_id):
            if invocation.is_error:
                invocation.unwrap()
            if name is None or invocation.name == name:
                return invocation.args
        raise KeyError(call_id)

    def errors(self) -> list[MethodError]:
        """All method-level errors in this response."""
        return [r.args for r in self.responses if isinstance(r.args, MethodError)]
