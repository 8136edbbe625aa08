"""Factories wiring backends and storages into an Injector."""

from __future__ import annotations

from typing import Any, Mapping, Type, TypeVar

from .container import Injector
from .mysql_backend import MySqlBackend
from .protocol import Backend
from .sqlite_backend import SQLiteBackend
from .storage import Storage

S = TypeVar("S", bound=Storage)


class MySqlBackendFactory:
    """Creates a MySqlBackend from the ``mysql`` section of the options."""

    def create(self, injector: Injector, options: Mapping[str, Any], key: Any) -> MySqlBackend:
        return MySqlBackend(options.get("mysql") or {})


class SQLiteBackendFactory:
    """Creates an SQLiteBackend from the ``sqlite`` section of the options."""

    def create(self, injector: Injector, options: Mapping[str, Any], key: Any) -> SQLiteBackend:
        return SQLiteBackend(options.get("sqlite") or {})


class StorageFactory:
    """
    Creates any Storage subclass that only needs the default Backend.

    The backend is whatever the injector holds under ``Backend``.
    """

    def create(self, injector: Injector, options: Mapping[str, Any], key: Type[S]) -> S:
        return key(injector.get(Backend))
