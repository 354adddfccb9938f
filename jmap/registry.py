"""
Registries mapping wire names to the Python types that decode them.

Two registries drive decoding:

* A :class:`CapabilityRegistry` maps a capability URI to the type of its
  metadata object, used for the ``capabilities`` and
  ``accountCapabilities`` maps of a Session.
* A :class:`MethodRegistry` maps a method name to the type of its
  response arguments, used for every element of ``methodResponses``.

A registered type is anything with a ``from_jmap(data)`` classmethod; a
plain callable taking the JSON payload (such as ``dict``) works too.

Each module defining capabilities or methods registers them into the
module-level :data:`default_capabilities` and :data:`default_methods` at
import time.  Clients, sessions and responses accept an explicit
registry, so independent registries can coexist in one process; use
:meth:`Registry.copy` to derive one from the defaults.

Registration is guarded by a lock and may happen at any time, but
registering while requests are being decoded makes the outcome of those
decodes depend on timing.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from jmap.constants import ERROR_METHOD_NAME
from jmap.lib.error import MethodError, UnknownMethodError

log = logging.getLogger(__name__)

Factory = Callable[..., Any]


def build(factory: Factory, data):
    """Decode ``data`` with a registered factory."""
    from_jmap = getattr(factory, "from_jmap", None)
    if from_jmap is not None:
        return from_jmap(data)
    return factory(data)


class Registry:
    """A thread-safe map of names to factories."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._factories: dict[str, Factory] = {}

    def register(self, name: str, factory: Factory) -> Factory:
        """Register ``factory`` under ``name``, replacing any earlier entry."""
        with self._lock:
            if name in self._factories and self._factories[name] is not factory:
                log.debug("replacing registration of %s", name)
            self._factories[name] = factory
        return factory

    def unregister(self, name: str) -> None:
        with self._lock:
            self._factories.pop(name, None)

    def lookup(self, name: str) -> Factory:
        """Return the factory registered for ``name``.

        Raises:
            KeyError: If nothing is registered under ``name``.
        """
        with self._lock:
            return self._factories[name]

    def names(self) -> list[str]:
        with self._lock:
            return list(self._factories)

    def copy(self):
        new = type(self)()
        with self._lock:
            new._factories.update(self._factories)
        return new

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._factories

    def __len__(self) -> int:
        with self._lock:
            return len(self._factories)


class CapabilityRegistry(Registry):
    """Capability URI → capability metadata type."""

    def register(self, uri, factory: Factory | None = None):
        """Register a capability type.

        Either ``register(uri, factory)``, or ``register(cls)`` where
        ``cls.uri`` holds the URI, which also makes it usable as a class
        decorator.
        """
        if factory is None:
            factory = uri
            uri = factory.uri
        return super().register(uri, factory)

    def decode(self, raw: dict | None) -> dict[str, Any]:
        """Decode a map of capability URI to raw capability object.

        URIs that are not registered are skipped, so that capabilities
        this client does not know about never cause a failure.
        """
        result = {}
        for uri, data in (raw or {}).items():
            try:
                factory = self.lookup(uri)
            except KeyError:
                log.debug("ignoring unregistered capability %s", uri)
                continue
            result[uri] = build(factory, data if data is not None else {})
        return result


class MethodRegistry(Registry):
    """Method name → response argument type.

    ``"error"`` is always registered to :class:`~jmap.lib.error.MethodError`,
    so that method-level errors go through the same decode path as
    successful responses.
    """

    def __init__(self) -> None:
        super().__init__()
        self._factories[ERROR_METHOD_NAME] = MethodError

    def lookup(self, name: str) -> Factory:
        """Return the factory registered for ``name``.

        Raises:
            UnknownMethodError: If the method was never registered.
        """
        try:
            return super().lookup(name)
        except KeyError:
            raise UnknownMethodError(name) from None

    def register(self, name: str, factory: Factory) -> Factory:
        if name == ERROR_METHOD_NAME and not (isinstance(factory, type) and issubclass(factory, MethodError)):
            raise ValueError("the 'error' method must decode to a MethodError")
        return super().register(name, factory)

    def unregister(self, name: str) -> None:
        if name == ERROR_METHOD_NAME:
            raise ValueError("the 'error' method cannot be unregistered")
        super().unregister(name)


default_capabilities = CapabilityRegistry()
default_methods = MethodRegistry()


def register_capability(cls):
    """Class decorator registering a capability type in the default registry."""
    return default_capabilities.register(cls)


def register_method(name: str, factory: Factory | None = None):
    """Register a response type for ``name`` in the default registry.

    Usable directly, ``register_method("Core/echo", Echo)``, or as a class
    decorator, ``@register_method("Foo/get")``.
    """
    if factory is not None:
        return default_methods.register(name, factory)

    def decorator(cls):
        return default_methods.register(name, cls)

    return decorator
