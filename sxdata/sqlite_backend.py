"""
SQLite implementation of Backend.

One connection is opened lazily on the first ``connect()`` and kept for the
lifetime of the backend. The connection runs in autocommit mode
(``isolation_level=None``) so that ``begin``/``commit``/``rollback`` map
directly to ``BEGIN``/``COMMIT``/``ROLLBACK`` and SQLite itself rejects a
nested BEGIN or a COMMIT without a transaction.

Statements are compiled by prefixing them with ``EXPLAIN``. Statements that
already are an ``EXPLAIN`` (or ``EXPLAIN QUERY PLAN``) are run as they are
to compile them; they never modify the database.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional, Tuple

from .binding import coerce_params
from .errors import BackendError, ErrorCode, ErrorKind
from .protocol import Params, Row, StatementHandle, check_handle

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"
DEFAULT_TIMEOUT = 5.0
DEFAULT_CACHED_STATEMENTS = 128

_BINDING_MISMATCH = "Incorrect number of bindings"

# Leading whitespace and comments, then the EXPLAIN keyword.
_EXPLAIN_PREFIX = re.compile(r"(?:\s|--[^\n]*(?:\n|$)|/\*.*?\*/)*EXPLAIN\b", re.IGNORECASE | re.DOTALL)


def _explain(statement: str) -> str:
    """Return SQL that compiles ``statement`` without running it."""
    if _EXPLAIN_PREFIX.match(statement):
        return statement
    return f"EXPLAIN {statement}"


def _dict_factory(cursor: sqlite3.Cursor, row: tuple) -> Row:
    return {column[0]: row[idx] for idx, column in enumerate(cursor.description)}


def _native(exc: sqlite3.Error) -> Tuple[int, str]:
    # sqlite_errorcode is only set by Python 3.11+.
    return getattr(exc, "sqlite_errorcode", 0) or 0, str(exc)


class SQLiteStatement(StatementHandle):
    """Statement compiled against an SQLiteBackend connection."""

    __slots__ = ()


class SQLiteBackend:
    """
    SQLite Backend implementation.

    Recognized options: ``database`` (file path, default ``:memory:``),
    ``timeout`` (seconds to wait on a locked database) and
    ``cached_statements`` (size of the driver's compiled statement cache).
    Unknown options are ignored.
    """

    def __init__(self, options: Optional[Mapping[str, Any]] = None):
        options = options or {}
        self.database = str(options.get("database") or MEMORY_DATABASE)
        timeout = options.get("timeout")
        self.timeout = DEFAULT_TIMEOUT if timeout is None else float(timeout)
        cached = options.get("cached_statements")
        self.cached_statements = DEFAULT_CACHED_STATEMENTS if cached is None else int(cached)
        self._connection: Optional[sqlite3.Connection] = None

    @property
    def connected(self) -> bool:
        return self._connection is not None

    def connect(self) -> None:
        if self._connection is not None:
            # Only verify the connection. The application must not need a reconnect.
            self._ping()
            return

        conn = None
        try:
            if self.database != MEMORY_DATABASE:
                Path(self.database).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                self.database,
                timeout=self.timeout,
                isolation_level=None,
                cached_statements=self.cached_statements,
            )
            conn.execute("PRAGMA encoding = 'UTF-8'")
        except sqlite3.Error as exc:
            if conn is not None:
                conn.close()
            code, message = _native(exc)
            raise BackendError(
                f"error connecting to sqlite: {message}", code, kind=ErrorKind.CONNECTION
            ) from exc
        except OSError as exc:
            raise BackendError(
                f"error connecting to sqlite: {exc}", exc.errno or 0, kind=ErrorKind.CONNECTION
            ) from exc

        conn.row_factory = _dict_factory
        self._connection = conn
        logger.info("Connected to SQLite database %s", self.database)

    def prepare(self, statement: str) -> SQLiteStatement:
        """
        Compile the statement and return a handle for the executing methods.

        sqlite3 has no prepare-only call, so the statement is compiled through
        EXPLAIN, which never runs it. A statement with placeholders compiles
        and then fails binding with no parameters; that failure means success.
        """
        conn = self._require_connection(ErrorKind.PREPARE)
        try:
            conn.execute(_explain(statement)).close()
        except UnicodeEncodeError as exc:
            raise BackendError(
                f"error preparing statement: {exc}",
                ErrorCode.MALFORMED_STATEMENT,
                kind=ErrorKind.PREPARE,
            ) from exc
        except sqlite3.ProgrammingError as exc:
            if not str(exc).startswith(_BINDING_MISMATCH):
                code, message = _native(exc)
                raise BackendError(
                    f"error preparing statement: {message}", code, kind=ErrorKind.PREPARE
                ) from exc
        except sqlite3.Error as exc:
            code, message = _native(exc)
            raise BackendError(
                f"error preparing statement: {message}", code, kind=ErrorKind.PREPARE
            ) from exc

        logger.debug("Prepared statement: %s", statement)
        return SQLiteStatement(self, statement)

    def execute(self, handle: StatementHandle, params: Params = ()) -> int:
        """
        Execute a prepared statement and return the number of affected rows.

        Zero affected rows is a successful result; every failure raises.
        """
        cursor = self._run(handle, params)
        try:
            # SELECT statements report -1.
            return max(cursor.rowcount, 0)
        finally:
            cursor.close()

    def fetch(self, handle: StatementHandle, params: Params = ()) -> Iterator[Row]:
        """Execute a prepared statement and return a lazy iterator over its rows."""
        cursor = self._run(handle, params)
        return self._rows(cursor)

    def insert(self, handle: StatementHandle, params: Params = ()) -> int:
        cursor = self._run(handle, params)
        try:
            return int(cursor.lastrowid or 0)
        finally:
            cursor.close()

    def begin(self) -> None:
        self._transaction("BEGIN")

    def commit(self) -> None:
        self._transaction("COMMIT")

    def rollback(self) -> None:
        self._transaction("ROLLBACK")

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    # -- internals ----------------------------------------------------------

    def _require_connection(self, kind: ErrorKind) -> sqlite3.Connection:
        if self._connection is None:
            raise BackendError("not connected to sqlite", ErrorCode.NOT_CONNECTED, kind=kind)
        return self._connection

    def _ping(self) -> None:
        try:
            self._connection.execute("SELECT 1").close()
        except sqlite3.Error as exc:
            code, message = _native(exc)
            logger.warning("SQLite connection %s lost: %s", self.database, message)
            raise BackendError(
                f"connection lost: {message}", code, kind=ErrorKind.CONNECTION
            ) from exc

    def _run(self, handle: StatementHandle, params: Params) -> sqlite3.Cursor:
        statement = check_handle(self, handle, SQLiteStatement)
        values = coerce_params(params)
        conn = self._require_connection(ErrorKind.EXECUTION)
        try:
            return conn.execute(statement.sql, values)
        except OverflowError as exc:
            raise BackendError(
                f"error binding parameter: {exc}",
                ErrorCode.UNSUPPORTED_PARAM_TYPE,
                kind=ErrorKind.BIND,
            ) from exc
        except UnicodeEncodeError as exc:
            # The statement text was checked by prepare, so a parameter failed.
            raise BackendError(
                f"error binding parameter: {exc}",
                ErrorCode.INVALID_PARAM_VALUE,
                kind=ErrorKind.BIND,
            ) from exc
        except sqlite3.ProgrammingError as exc:
            if str(exc).startswith(_BINDING_MISMATCH):
                raise BackendError(
                    f"error binding parameter: {exc}",
                    ErrorCode.PARAM_COUNT_MISMATCH,
                    kind=ErrorKind.BIND,
                ) from exc
            code, message = _native(exc)
            raise BackendError(f"error executing: {message}", code, kind=ErrorKind.EXECUTION) from exc
        except sqlite3.Error as exc:
            code, message = _native(exc)
            raise BackendError(f"error executing: {message}", code, kind=ErrorKind.EXECUTION) from exc

    def _rows(self, cursor: sqlite3.Cursor) -> Iterator[Row]:
        try:
            for row in cursor:
                yield row
        except sqlite3.Error as exc:
            code, message = _native(exc)
            raise BackendError(f"error getting result: {message}", code, kind=ErrorKind.RESULT) from exc
        finally:
            cursor.close()

    def _transaction(self, command: str) -> None:
        conn = self._require_connection(ErrorKind.TRANSACTION)
        try:
            conn.execute(command)
        except sqlite3.Error as exc:
            code, message = _native(exc)
            raise BackendError(
                f"error in {command.lower()}: {message}", code, kind=ErrorKind.TRANSACTION
            ) from exc
        logger.debug("Transaction %s", command.lower())
