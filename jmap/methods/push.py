"""
``PushSubscription/get`` and ``PushSubscription/set`` (RFC 8620 §7.2).

Push subscriptions belong to the user rather than an account, so unlike
the standard methods these take no ``accountId`` and carry no state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from jmap.lib.types import Id
from jmap.method import Method, MethodResponse, SetError
from jmap.objects.push import PushSubscription
from jmap.registry import register_method


@dataclass
class PushSubscriptionGet(Method):
    name = "PushSubscription/get"

    ids: list[Id] | None = None
    properties: list[str] | None = None


@register_method("PushSubscription/get")
@dataclass
class PushSubscriptionGetResponse(MethodResponse):
    list_: list[PushSubscription] = field(default_factory=list, metadata={"jmap": "list"})
    not_found: list[Id] = field(default_factory=list)


@dataclass
class PushSubscriptionSet(Method):
    """Create, update and destroy push subscriptions.

    An update is a patch object, e.g. ``{"verificationCode": code}`` to
    activate a subscription.
    """

    name = "PushSubscription/set"

    create: dict[Id, PushSubscription] | None = None
    update: dict[Id, dict[str, Any]] | None = None
    destroy: list[Id] | None = None


@register_method("PushSubscription/set")
@dataclass
class PushSubscriptionSetResponse(MethodResponse):
    created: dict[Id, PushSubscription] | None = None
    updated: dict[Id, Any] | None = None
    destroyed: list[Id] | None = None
    not_created: dict[Id, SetError] | None = None
    not_updated: dict[Id, SetError] | None = None
    not_destroyed: dict[Id, SetError] | None = None
