"""
JMAP data types.

:mod:`jmap.objects.base` holds the marshalling machinery; the other
modules hold the data types built on it.
"""
from jmap.objects.base import JMAPObject
from jmap.objects.base import ResultReference
from jmap.objects.push import PushKeys
from jmap.objects.push import PushSubscription
from jmap.objects.push import PushVerification
from jmap.objects.push import StateChange

__all__ = [
    "JMAPObject",
    "ResultReference",
    "PushKeys",
    "PushSubscription",
    "PushVerification",
    "StateChange",
]
