"""
Storage: the layer repositories use instead of talking to a Backend.

Usage:
    class UserStorage(Storage):
        def find(self, user_id: int) -> Optional[dict]:
            return next(self.fetch("SELECT * FROM users WHERE id = ?", [user_id]), None)

    storage = UserStorage(backend)
    storage.transactional(lambda: storage.execute("UPDATE users SET seen = ?", [True]) > 0)

Statements must contain placeholders for every user value; only bound
parameters are escaped.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, NoReturn

from .errors import BackendError, ErrorCode, ErrorKind, MisuseError
from .protocol import Backend, Params, Row, StatementHandle

logger = logging.getLogger(__name__)


class Storage:
    """
    Runs SQL through a Backend with statement caching and transactions.

    Every distinct statement (after trimming whitespace) is prepared once per
    storage and reused for the lifetime of the instance. There is no eviction:
    an application issues a finite set of distinct statements.

    Not safe for concurrent use; give every thread its own storage and backend.
    """

    def __init__(self, backend: Backend):
        self.backend = backend
        self._statements: Dict[str, StatementHandle] = {}

    @property
    def prepared_statements(self) -> int:
        return len(self._statements)

    def execute(self, statement: str, params: Params = ()) -> int:
        """Execute an SQL statement and return the number of affected rows."""
        handle = self._get_statement(statement)
        return self.backend.execute(handle, params)

    def fetch(self, statement: str, params: Params = ()) -> Iterator[Row]:
        """
        Execute a select statement and return its rows lazily.

        The statement runs immediately; rows are produced as the caller
        iterates and the caller may stop at any point.
        """
        handle = self._get_statement(statement)
        return self.backend.fetch(handle, params)

    def insert(self, statement: str, params: Params = ()) -> int:
        """Execute an insert statement and return the last insert id."""
        handle = self._get_statement(statement)
        return self.backend.insert(handle, params)

    def transactional(self, unit_of_work: Callable[[], bool]) -> bool:
        """
        Run ``unit_of_work`` inside a transaction.

        A truthy result commits and returns True, a falsy result rolls back
        and returns False. If the unit of work raises, the transaction is
        rolled back and a BackendError chained from the original error is
        raised. A failing commit is handled the same way. A failing rollback
        is attached as ``rollback_error``.
        """
        self.backend.connect()
        self.backend.begin()
        try:
            succeeded = bool(unit_of_work())
        except MisuseError:
            self.backend.rollback()
            raise
        except Exception as exc:
            self._rollback_and_raise(exc)
        except BaseException:
            self.backend.rollback()
            raise

        if not succeeded:
            logger.debug("Unit of work returned %r, rolling back", succeeded)
            self.backend.rollback()
            return False

        try:
            self.backend.commit()
        except BackendError as exc:
            self._rollback_and_raise(exc)
        return True

    def _rollback_and_raise(self, exc: Exception) -> NoReturn:
        logger.warning("Transaction failed, rolling back: %s", exc)
        code = exc.code if isinstance(exc, BackendError) else ErrorCode.UNIT_OF_WORK_FAILED
        try:
            self.backend.rollback()
        except BackendError as rollback_exc:
            # NO_TRANSACTION: the backend already ended it, nothing left to undo.
            if rollback_exc.code != ErrorCode.NO_TRANSACTION:
                logger.error("Rollback failed after transaction error: %s", rollback_exc)
                raise BackendError(
                    f"transaction failed: {exc}; rollback failed: {rollback_exc}",
                    code,
                    kind=ErrorKind.TRANSACTION,
                    rollback_error=rollback_exc,
                ) from exc
        raise BackendError(f"transaction failed: {exc}", code, kind=ErrorKind.TRANSACTION) from exc

    def _get_statement(self, statement: str) -> StatementHandle:
        """Connect or check the connection, then return the cached or newly prepared handle."""
        statement = statement.strip()
        self.backend.connect()
        handle = self._statements.get(statement)
        if handle is not None:
            logger.debug("Statement cache hit: %s", statement)
            return handle
        handle = self._statements[statement] = self.backend.prepare(statement)
        return handle
