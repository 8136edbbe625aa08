"""
Data access layer between repositories and a relational database driver.

Usage:
    from sxdata import Storage, get_backend

    storage = Storage(get_backend())
    for row in storage.fetch("SELECT * FROM users WHERE active = ?", [True]):
        print(row["name"])
"""

from .binding import BindType, bind_type, coerce_params, infer_bind_types
from .config import build_options, create_injector, get_backend, get_storage, parse_database_url
from .container import Factory, Injector, NotFoundError
from .errors import BackendError, ErrorCode, ErrorKind, MisuseError
from .factories import MySqlBackendFactory, SQLiteBackendFactory, StorageFactory
from .mysql_backend import MySqlBackend, MySqlStatement
from .protocol import Backend, Row, StatementHandle
from .repository import Repository
from .settings import DatabaseSettings
from .sqlite_backend import SQLiteBackend, SQLiteStatement
from .storage import Storage

__version__ = "1.0.0"
