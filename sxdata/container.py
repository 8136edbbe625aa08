"""
Minimal dependency injection container.

Usage:
    injector = Injector({"mysql": {"server": "db.local", "user": "app"}})
    injector.register(Backend, MySqlBackendFactory())
    injector.register(UserStorage, StorageFactory())

    users = injector.get(UserStorage)

Entries are created on first ``get`` by their factory and shared afterwards.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol


class NotFoundError(LookupError):
    """No instance or factory registered for the requested key."""
    pass


class Factory(Protocol):
    """Creates the instance registered under ``key``."""

    def create(self, injector: "Injector", options: Mapping[str, Any], key: Any) -> Any: ...


def _key_name(key: Any) -> str:
    return getattr(key, "__qualname__", None) or repr(key)


class Injector:
    """Holds shared instances and the factories that create them."""

    def __init__(self, options: Optional[Mapping[str, Any]] = None):
        self.options: Dict[str, Any] = dict(options or {})
        self._instances: Dict[Any, Any] = {}
        self._factories: Dict[Any, Factory] = {}

    def set(self, key: Any, instance: Any) -> None:
        self._instances[key] = instance

    def register(self, key: Any, factory: Factory) -> None:
        self._factories[key] = factory

    def has(self, key: Any) -> bool:
        return key in self._instances or key in self._factories

    def get(self, key: Any) -> Any:
        if key in self._instances:
            return self._instances[key]
        factory = self._factories.get(key)
        if factory is None:
            raise NotFoundError(f"nothing registered for {_key_name(key)}")
        instance = self._instances[key] = factory.create(self, self.options, key)
        return instance
