"""
Push data types (RFC 8620 §7).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from jmap.lib.types import Id, UTCDate
from jmap.objects.base import JMAPObject


@dataclass
class PushKeys(JMAPObject):
    """Encryption keys for Web Push (RFC 8291), base64url encoded."""

    p256dh: str
    auth: str


@dataclass
class PushSubscription(JMAPObject):
    """A push endpoint registered with the server.

    ``id``, and ``expires`` unless the client asked for one, are set by
    the server.  ``types`` of ``None`` means changes to all types are
    pushed.
    """

    device_client_id: str | None = None
    url: str | None = None
    id: Id | None = None
    keys: PushKeys | None = None
    verification_code: str | None = None
    expires: UTCDate | None = None
    types: list[str] | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires is None:
            return False
        if now is None:
            now = datetime.now(self.expires.tzinfo)
        return self.expires <= now


@dataclass
class StateChange(JMAPObject):
    """A push notification: account id → type name → new state."""

    changed: dict[Id, dict[str, str]] = field(default_factory=dict)
    type: str = field(default="StateChange", metadata={"jmap": "@type"})

    def states(self, account_id: str) -> dict[str, str]:
        return self.changed.get(account_id, {})


@dataclass
class PushVerification(JMAPObject):
    """Sent to a new push endpoint; echo ``verification_code`` back with
    ``PushSubscription/set`` to activate it."""

    push_subscription_id: str
    verification_code: str
    type: str = field(default="PushVerification", metadata={"jmap": "@type"})
