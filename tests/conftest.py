"""
Pytest Configuration and Fixtures
"""

from typing import Any, Dict, Iterator, List, Optional

import pytest

from sxdata.protocol import StatementHandle, check_handle
from sxdata.storage import Storage


class RecordingBackend:
    """Backend double that records every call instead of talking to a database."""

    RESULT_1 = {"id": 1}
    RESULT_2 = {"id": 2}

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, affected: int = 1, insert_id: int = 1):
        self.rows = rows if rows is not None else [self.RESULT_1, self.RESULT_2]
        self.affected = affected
        self.insert_id = insert_id
        self.connects = 0
        self.prepared: List[str] = []
        self.executed: Dict[str, list] = {}
        self.fetched: Dict[str, list] = {}
        self.inserted: Dict[str, list] = {}
        self.begins = 0
        self.commits = 0
        self.rollbacks = 0
        self.prepare_error: Optional[Exception] = None
        self.commit_error: Optional[Exception] = None
        self.rollback_error: Optional[Exception] = None

    def connect(self) -> None:
        self.connects += 1

    def prepare(self, statement: str) -> StatementHandle:
        if self.prepare_error is not None:
            raise self.prepare_error
        self.prepared.append(statement)
        return StatementHandle(self, statement)

    def execute(self, handle, params=()) -> int:
        handle = check_handle(self, handle, StatementHandle)
        self.executed[handle.sql] = list(params or ())
        return self.affected

    def fetch(self, handle, params=()) -> Iterator[Dict[str, Any]]:
        handle = check_handle(self, handle, StatementHandle)
        self.fetched[handle.sql] = list(params or ())
        return iter(self.rows)

    def insert(self, handle, params=()) -> int:
        handle = check_handle(self, handle, StatementHandle)
        self.inserted[handle.sql] = list(params or ())
        return self.insert_id

    def begin(self) -> None:
        self.begins += 1

    def commit(self) -> None:
        self.commits += 1
        if self.commit_error is not None:
            raise self.commit_error

    def rollback(self) -> None:
        self.rollbacks += 1
        if self.rollback_error is not None:
            raise self.rollback_error

    def close(self) -> None:
        pass


@pytest.fixture
def backend():
    """Recording backend double."""
    return RecordingBackend()


@pytest.fixture
def storage(backend):
    """Storage on the recording backend."""
    return Storage(backend)
