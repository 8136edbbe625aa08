"""
MySQL implementation of Backend, built on PyMySQL.

Options are the arguments of the MySQL connect call, in order:

    server, user, password, database, port, socket

Every option is optional. Unset options are passed as None so the driver
applies its own defaults.

PyMySQL interpolates parameters on the client instead of preparing them on
the server. ``prepare`` therefore compiles the statement on the client: it
rewrites ``?`` placeholders into the driver's ``%s`` format and records how
many parameters the statement takes.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Mapping, Optional, Tuple

import pymysql
import pymysql.cursors

from .binding import coerce_params
from .errors import BackendError, ErrorCode, ErrorKind
from .protocol import Params, Row, StatementHandle, check_handle

logger = logging.getLogger(__name__)

# Everything should be Unicode by now, so this is not an option.
SESSION_CHARSET = "utf8mb4"

_QUOTES = "'\"`"


def _native(exc: Exception, default: int = 0) -> Tuple[int, str]:
    """Split a PyMySQL error into its native code and message."""
    args = exc.args
    if len(args) >= 2 and isinstance(args[0], int):
        return args[0], str(args[1])
    return default, str(exc)


def translate_placeholders(statement: str) -> Tuple[str, int]:
    """
    Rewrite ``?`` placeholders to ``%s`` and return the query with their count.

    Question marks inside quoted strings or identifiers are left alone and
    literal ``%`` signs are doubled. Raises ValueError on an unterminated quote.
    """
    parts = []
    count = 0
    quote = None
    idx = 0
    length = len(statement)
    while idx < length:
        char = statement[idx]
        if quote:
            parts.append("%%" if char == "%" else char)
            if char == "\\" and quote != "`" and idx + 1 < length:
                escaped = statement[idx + 1]
                parts.append("%%" if escaped == "%" else escaped)
                idx += 2
                continue
            # A doubled quote closes and reopens, which keeps the state right.
            if char == quote:
                quote = None
        elif char in _QUOTES:
            quote = char
            parts.append(char)
        elif char == "?":
            parts.append("%s")
            count += 1
        elif char == "%":
            parts.append("%%")
        else:
            parts.append(char)
        idx += 1

    if quote:
        raise ValueError(f"unterminated {quote} quote")
    return "".join(parts), count


class MySqlStatement(StatementHandle):
    """Statement compiled for a MySqlBackend connection."""

    __slots__ = ("query", "param_count")

    def __init__(self, owner: object, sql: str, query: str, param_count: int):
        super().__init__(owner, sql)
        self.query = query
        self.param_count = param_count


class MySqlBackend:
    """
    MySQL Backend implementation.

    Holds exactly one connection. It is created by the first ``connect()``;
    later calls only ping it and raise when it is gone.
    """

    OPTIONS = ("server", "user", "password", "database", "port", "socket")

    def __init__(self, options: Optional[Mapping[str, Any]] = None):
        options = options or {}
        # Only known options are applied, kept in connect argument order.
        self.options = {key: options.get(key) for key in self.OPTIONS}
        self._connection: Optional[pymysql.connections.Connection] = None
        self._in_transaction = False

    @property
    def connected(self) -> bool:
        return self._connection is not None

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def connect(self) -> None:
        if self._connection is not None:
            # Do not attempt to reconnect. The application should not need that.
            self._ping()
            return

        server, user, password, database, port, socket = self.options.values()
        try:
            conn = pymysql.connect(
                host=server,
                user=user,
                password=password,
                database=database,
                port=port,
                unix_socket=socket,
                autocommit=True,
            )
        except pymysql.MySQLError as exc:
            code, message = _native(exc)
            raise BackendError(
                f"error connecting to mysql: {message}", code, kind=ErrorKind.CONNECTION
            ) from exc

        try:
            conn.set_character_set(SESSION_CHARSET)
        except pymysql.MySQLError as exc:
            if conn.open:
                conn.close()
            code, message = _native(exc)
            raise BackendError(
                f"error setting charset: {message}", code, kind=ErrorKind.CONNECTION
            ) from exc

        self._connection = conn
        logger.info(
            "Connected to MySQL %s as %s (database %s)",
            socket or server or "localhost",
            user,
            database,
        )

    def prepare(self, statement: str) -> MySqlStatement:
        """Compile the statement and return a handle for the executing methods."""
        self._require_connection(ErrorKind.PREPARE)
        try:
            statement.encode("utf-8")
            query, param_count = translate_placeholders(statement)
        except ValueError as exc:
            raise BackendError(
                f"error preparing statement: {exc}",
                ErrorCode.MALFORMED_STATEMENT,
                kind=ErrorKind.PREPARE,
            ) from exc
        logger.debug("Prepared statement with %d params: %s", param_count, statement)
        return MySqlStatement(self, statement, query, param_count)

    def execute(self, handle: StatementHandle, params: Params = ()) -> int:
        """
        Execute a prepared statement and return the number of affected rows.

        To get a result set or the last insert id use fetch or insert. Zero
        affected rows is a valid result, so every error is raised.
        """
        cursor = self._run(handle, params)
        try:
            return max(cursor.rowcount, 0)
        finally:
            cursor.close()

    def fetch(self, handle: StatementHandle, params: Params = ()) -> Iterator[Row]:
        """
        Execute a prepared statement and return its rows one by one.

        The driver buffers the result set; rows are handed out lazily so a
        partially read result is never copied as a whole.
        """
        cursor = self._run(handle, params)
        return self._rows(cursor)

    def insert(self, handle: StatementHandle, params: Params = ()) -> int:
        cursor = self._run(handle, params)
        try:
            return int(cursor.lastrowid or 0)
        finally:
            cursor.close()

    def begin(self) -> None:
        conn = self._require_connection(ErrorKind.TRANSACTION)
        # MySQL silently commits on a nested BEGIN, so reject it here.
        if self._in_transaction:
            raise BackendError(
                "error in begin: transaction already active",
                ErrorCode.TRANSACTION_ACTIVE,
                kind=ErrorKind.TRANSACTION,
            )
        try:
            conn.begin()
        except pymysql.MySQLError as exc:
            code, message = _native(exc)
            raise BackendError(f"error in begin: {message}", code, kind=ErrorKind.TRANSACTION) from exc
        self._in_transaction = True
        logger.debug("Transaction begin")

    def commit(self) -> None:
        conn = self._require_transaction("commit")
        try:
            conn.commit()
        except pymysql.MySQLError as exc:
            code, message = _native(exc)
            raise BackendError(f"error in commit: {message}", code, kind=ErrorKind.TRANSACTION) from exc
        finally:
            # A failed COMMIT leaves no transaction open on the server.
            self._in_transaction = False
        logger.debug("Transaction commit")

    def rollback(self) -> None:
        conn = self._require_transaction("rollback")
        try:
            conn.rollback()
        except pymysql.MySQLError as exc:
            code, message = _native(exc)
            raise BackendError(f"error in rollback: {message}", code, kind=ErrorKind.TRANSACTION) from exc
        finally:
            self._in_transaction = False
        logger.debug("Transaction rollback")

    def close(self) -> None:
        if self._connection is not None:
            if self._connection.open:
                self._connection.close()
            self._connection = None
        self._in_transaction = False

    # -- internals ----------------------------------------------------------

    def _require_connection(self, kind: ErrorKind) -> pymysql.connections.Connection:
        if self._connection is None:
            raise BackendError("not connected to mysql", ErrorCode.NOT_CONNECTED, kind=kind)
        return self._connection

    def _require_transaction(self, operation: str) -> pymysql.connections.Connection:
        conn = self._require_connection(ErrorKind.TRANSACTION)
        if not self._in_transaction:
            raise BackendError(
                f"error in {operation}: no active transaction",
                ErrorCode.NO_TRANSACTION,
                kind=ErrorKind.TRANSACTION,
            )
        return conn

    def _ping(self) -> None:
        try:
            self._connection.ping(reconnect=False)
        except pymysql.MySQLError as exc:
            code, message = _native(exc, ErrorCode.CONNECTION_LOST)
            logger.warning("MySQL connection lost: %s", message)
            raise BackendError(
                f"connection lost: {message}", code, kind=ErrorKind.CONNECTION
            ) from exc

    def _run(self, handle: StatementHandle, params: Params) -> pymysql.cursors.DictCursor:
        statement = check_handle(self, handle, MySqlStatement)
        values = coerce_params(params)
        if len(values) != statement.param_count:
            raise BackendError(
                f"error binding parameter: statement uses {statement.param_count}, "
                f"{len(values)} supplied",
                ErrorCode.PARAM_COUNT_MISMATCH,
                kind=ErrorKind.BIND,
            )
        conn = self._require_connection(ErrorKind.EXECUTION)
        cursor = conn.cursor(pymysql.cursors.DictCursor)
        try:
            try:
                # Always pass a tuple so the doubled % signs are unescaped.
                cursor.execute(statement.query, values)
            except UnicodeEncodeError as exc:
                # The statement text was checked by prepare, so a parameter failed.
                raise BackendError(
                    f"error binding parameter: {exc}",
                    ErrorCode.INVALID_PARAM_VALUE,
                    kind=ErrorKind.BIND,
                ) from exc
            except pymysql.MySQLError as exc:
                code, message = _native(exc)
                raise BackendError(f"error executing: {message}", code, kind=ErrorKind.EXECUTION) from exc
        except Exception:
            cursor.close()
            raise
        return cursor

    def _rows(self, cursor: pymysql.cursors.DictCursor) -> Iterator[Row]:
        try:
            while True:
                row = cursor.fetchone()
                if row is None:
                    return
                yield row
        except pymysql.MySQLError as exc:
            code, message = _native(exc)
            raise BackendError(f"error getting result: {message}", code, kind=ErrorKind.RESULT) from exc
        finally:
            cursor.close()
