"""
Database configuration: turns DatabaseSettings into backend options and
returns the matching backend or a ready injector.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple, Type, TypeVar

from sqlalchemy.engine import make_url

from .container import Injector
from .factories import MySqlBackendFactory, SQLiteBackendFactory, StorageFactory
from .protocol import Backend
from .settings import DatabaseSettings
from .sqlite_backend import MEMORY_DATABASE
from .storage import Storage

S = TypeVar("S", bound=Storage)

BACKEND_FACTORIES = {
    "mysql": MySqlBackendFactory,
    "sqlite": SQLiteBackendFactory,
}

# Dialect names accepted in URLs, mapped to backend names.
_URL_BACKENDS = {"mysql": "mysql", "mariadb": "mysql", "sqlite": "sqlite"}


def _query_value(query: Any, key: str) -> Optional[str]:
    value = query.get(key)
    # Repeated query keys come back as tuples; the last one wins.
    if isinstance(value, tuple):
        return value[-1] if value else None
    return value


def parse_database_url(url: str) -> Tuple[str, Dict[str, Any]]:
    """
    Split a database URL into a backend name and its options.

    Args:
        url: e.g. ``mysql+pymysql://user:pw@host:3306/app?unix_socket=/tmp/m.sock``,
             ``sqlite:///data/app.db`` or ``sqlite://`` for an in-memory database.

    Returns:
        ``(backend_name, options)`` where options use the backend's option keys.
    """
    parsed = make_url(url)
    backend = _URL_BACKENDS.get(parsed.get_backend_name())
    if backend is None:
        raise ValueError(f"Unsupported database backend: {parsed.get_backend_name()}")

    if backend == "mysql":
        options = {
            "server": parsed.host,
            "user": parsed.username,
            "password": parsed.password,
            "database": parsed.database,
            "port": parsed.port,
            "socket": _query_value(parsed.query, "unix_socket"),
        }
    else:
        options = {"database": parsed.database or MEMORY_DATABASE}
        timeout = _query_value(parsed.query, "timeout")
        if timeout is not None:
            options["timeout"] = float(timeout)
    return backend, options


def build_options(db_settings: DatabaseSettings) -> Dict[str, Any]:
    """
    Build the injector options map from settings.

    The map holds the selected ``backend`` name and one options section per
    backend. A ``database_url`` replaces the section of the backend it names.
    """
    options: Dict[str, Any] = {
        "backend": db_settings.database_backend,
        "mysql": {
            "server": db_settings.mysql_server,
            "user": db_settings.mysql_user,
            "password": db_settings.mysql_password,
            "database": db_settings.mysql_database,
            "port": db_settings.mysql_port,
            "socket": db_settings.mysql_socket,
        },
        "sqlite": {
            "database": db_settings.sqlite_database,
            "timeout": db_settings.sqlite_timeout,
            "cached_statements": db_settings.sqlite_cached_statements,
        },
    }
    if db_settings.database_url:
        backend, url_options = parse_database_url(db_settings.database_url)
        options["backend"] = backend
        options[backend] = {**options[backend], **url_options}
    return options


def create_injector(db_settings: Optional[DatabaseSettings] = None) -> Injector:
    """
    Factory: return an Injector with the configured Backend registered.

    Args:
        db_settings: settings to read. Defaults to the global settings.
    """
    if db_settings is None:
        from .settings import settings as db_settings

    options = build_options(db_settings)
    factory = BACKEND_FACTORIES.get(options["backend"])
    if factory is None:
        raise ValueError(f"Unsupported database backend: {options['backend']}")

    injector = Injector(options)
    injector.register(Backend, factory())
    return injector


def get_backend(db_settings: Optional[DatabaseSettings] = None) -> Backend:
    """Return a new, unconnected Backend for the configured database."""
    return create_injector(db_settings).get(Backend)


def get_storage(storage_cls: Type[S] = Storage, db_settings: Optional[DatabaseSettings] = None) -> S:
    """Return a ``storage_cls`` instance on a new backend for the configured database."""
    injector = create_injector(db_settings)
    injector.register(storage_cls, StorageFactory())
    return injector.get(storage_cls)
