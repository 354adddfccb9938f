"""
Marshalling between JMAP JSON objects and Python dataclasses.

Data types are plain dataclasses mixing in :class:`JMAPObject`, which
derives ``from_jmap`` / ``to_jmap`` from the type annotations:

* JSON keys are the camelCase form of the field name, unless the field's
  metadata carries an explicit ``{"jmap": "key"}``.
* Unknown keys are ignored on decode so that servers can add properties
  without breaking clients.
* ``None`` fields are omitted on encode.
* A :class:`ResultReference` stored in a field is sent under the
  ``#``-prefixed key instead of the plain one.  Since a field holds one
  value, an argument can never carry both forms at once.
"""

from __future__ import annotations

import dataclasses
import types
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union, get_args, get_origin, get_type_hints

from jmap.lib.types import Date, Id, UTCDate, format_date, format_utc_date, parse_date, parse_utc_date, validate_id

NoneType = type(None)

_SCALARS = {
    str: (str,),
    int: (int,),
    float: (int, float),
    bool: (bool,),
}


def camel_case(name: str) -> str:
    """Convert a snake_case field name to the camelCase used on the wire.

    >>> camel_case("account_id")
    'accountId'
    """
    head, *tail = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in tail)


def _is_union(hint) -> bool:
    return get_origin(hint) in (Union, types.UnionType)


def _unwrap_optional(hint):
    if _is_union(hint):
        args = [a for a in get_args(hint) if a is not NoneType]
        if len(args) == 1:
            return args[0]
    return hint


def _type_name(value) -> str:
    if value is None:
        return "null"
    return type(value).__name__


def decode_value(hint, value):
    """Decode a JSON value according to a type annotation.

    Raises:
        TypeError: If ``value`` has the wrong JSON type for ``hint``.
    """
    if hint is Any:
        return value

    if _is_union(hint):
        args = get_args(hint)
        if value is None:
            if NoneType in args:
                return None
            raise TypeError(f"expected {hint}, got null")
        candidates = [a for a in args if a is not NoneType]
        if len(candidates) == 1:
            return decode_value(candidates[0], value)
        errors = []
        for candidate in candidates:
            try:
                return decode_value(candidate, value)
            except (TypeError, KeyError, ValueError) as e:
                errors.append(str(e))
        raise TypeError(f"{_type_name(value)} matches none of {hint}: {'; '.join(errors)}")

    if value is None:
        raise TypeError(f"expected {getattr(hint, '__name__', hint)}, got null")

    if hint is Id:
        if not isinstance(value, str):
            raise TypeError(f"expected Id string, got {_type_name(value)}")
        return value
    if hint is UTCDate:
        return parse_utc_date(value)
    if hint is Date:
        return parse_date(value)

    origin = get_origin(hint)
    if origin is None and isinstance(hint, type) and issubclass(hint, JMAPObject):
        return hint.from_jmap(value)

    if hint in _SCALARS:
        # bool is a subclass of int; JSON true/false is never a number
        if isinstance(value, bool) and hint is not bool:
            raise TypeError(f"expected {hint.__name__}, got bool")
        if not isinstance(value, _SCALARS[hint]):
            raise TypeError(f"expected {hint.__name__}, got {_type_name(value)}")
        return value

    if origin is list or hint is list:
        if not isinstance(value, list):
            raise TypeError(f"expected list, got {_type_name(value)}")
        args = get_args(hint)
        item_hint = args[0] if args else Any
        return [decode_value(item_hint, item) for item in value]

    if origin is dict or hint is dict:
        if not isinstance(value, dict):
            raise TypeError(f"expected object, got {_type_name(value)}")
        args = get_args(hint)
        value_hint = args[1] if len(args) == 2 else Any
        return {k: decode_value(value_hint, v) for k, v in value.items()}

    return value


def encode_value(hint, value):
    """Encode a Python value to JSON according to a type annotation.

    ``Id`` values are validated and dates formatted here, so that a bad
    value is rejected before it is ever put on the wire.
    """
    if value is None:
        return None
    hint = _unwrap_optional(hint)

    if isinstance(value, JMAPObject):
        return value.to_jmap()
    if hint is Id:
        return validate_id(value)
    if isinstance(value, datetime):
        if hint is UTCDate:
            return format_utc_date(value)
        return format_date(value)

    origin = get_origin(hint)
    args = get_args(hint)
    if isinstance(value, (list, tuple, set, frozenset)):
        item_hint = args[0] if origin in (list, tuple, set) and args else Any
        return [encode_value(item_hint, item) for item in value]
    if isinstance(value, dict):
        key_hint, value_hint = args if origin is dict and len(args) == 2 else (Any, Any)
        result = {}
        for k, v in value.items():
            if key_hint is Id:
                validate_id(k)
            result[k] = encode_value(value_hint, v)
        return result
    return value


class JMAPObject:
    """Mixin for dataclasses that map onto a JMAP JSON object."""

    @classmethod
    def _jmap_fields(cls) -> list[tuple[dataclasses.Field, str, Any]]:
        cache = cls.__dict__.get("_jmap_field_cache")
        if cache is None:
            hints = get_type_hints(cls)
            cache = [
                (f, f.metadata.get("jmap", camel_case(f.name)), hints.get(f.name, Any))
                for f in dataclasses.fields(cls)
                if f.init and not f.name.startswith("_")
            ]
            setattr(cls, "_jmap_field_cache", cache)
        return cache

    @classmethod
    def from_jmap(cls, data: dict):
        """Construct an instance from a JMAP JSON object.

        Raises:
            TypeError: If ``data`` is not an object or a property has the
                wrong JSON type.
            KeyError: If a required property is missing.
        """
        if not isinstance(data, dict):
            raise TypeError(f"{cls.__name__} expects a JSON object, got {_type_name(data)}")
        kwargs = {}
        for f, key, hint in cls._jmap_fields():
            if key in data:
                try:
                    kwargs[f.name] = decode_value(hint, data[key])
                except TypeError as e:
                    raise TypeError(f"{cls.__name__}.{key}: {e}") from e
            elif "#" + key in data:
                kwargs[f.name] = ResultReference.from_jmap(data["#" + key])
            elif f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
                raise KeyError(key)
        return cls(**kwargs)

    def to_jmap(self) -> dict:
        """Serialise to a JMAP JSON object, omitting ``None`` fields."""
        result = {}
        for f, key, hint in self._jmap_fields():
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, ResultReference):
                result["#" + key] = value.to_jmap()
            else:
                result[key] = encode_value(hint, value)
        return result


@dataclass
class ResultReference(JMAPObject):
    """A reference to the result of an earlier call in the same request.

    Use it as the value of any method argument; it is sent under the
    ``#``-prefixed argument name and resolved by the server
    (RFC 8620 §3.7).  ``path`` is a JSON pointer into the arguments of the
    referenced response, where ``*`` maps through an array.

    Example::

        query_id = request.invoke(QueryRequest(account_id="a1"))
        request.invoke(GetRequest(
            account_id="a1",
            ids=ResultReference(result_of=query_id, name="Foo/query", path="/ids"),
        ))
    """

    result_of: str
    name: str
    path: str

    def __post_init__(self) -> None:
        if not self.path.startswith("/"):
            raise ValueError(f"result reference path must start with '/', got {self.path!r}")
