"""
Wire-level primitive types of RFC 8620 §1.2–§1.4.

``Id`` values are opaque server tokens with a restricted character set;
``Date`` and ``UTCDate`` are RFC 3339 timestamps without fractional
seconds.  The NewTypes below double as markers for
:class:`jmap.objects.base.JMAPObject`, which validates and formats
fields annotated with them.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import NewType

from jmap.lib.error import ValidationError

Id = NewType("Id", str)
Date = NewType("Date", datetime)
UTCDate = NewType("UTCDate", datetime)

_ID_RE = re.compile(r"[A-Za-z0-9_-]{1,255}")


def validate_id(value) -> str:
    """Return ``value`` if it is a valid JMAP ``Id``, else raise.

    Ids are 1–255 octets drawn from ``[A-Za-z0-9_-]``.  Invalid values
    are rejected as a whole, never truncated or stripped.

    Raises:
        ValidationError: If ``value`` is not a string or violates the format.
    """
    if not isinstance(value, str):
        raise ValidationError(reason=f"Id must be a string, got {type(value).__name__}")
    if not _ID_RE.fullmatch(value):
        if not value:
            raise ValidationError(reason="Id must not be empty")
        if len(value) > 255:
            raise ValidationError(reason=f"Id is {len(value)} octets long, maximum is 255")
        raise ValidationError(reason=f"Id {value!r} contains characters outside [A-Za-z0-9_-]")
    return value


def format_date(value: datetime) -> str:
    """Format a datetime as an RFC 3339 ``Date``, keeping its offset.

    Naive datetimes are treated as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.replace(microsecond=0)
    if value.utcoffset() == timezone.utc.utcoffset(None):
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")
    return value.isoformat()


def parse_date(value: str) -> datetime:
    """Parse an RFC 3339 ``Date``.  The result is always timezone-aware."""
    if not isinstance(value, str):
        raise TypeError(f"Date must be a string, got {type(value).__name__}")
    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_utc_date(value: datetime) -> str:
    """Format a datetime as a ``UTCDate``, converting it to UTC first."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_utc_date(value: str) -> datetime:
    """Parse a ``UTCDate``.  The result is always in UTC."""
    return parse_date(value).astimezone(timezone.utc)
