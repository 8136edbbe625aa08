"""
Backend protocol: the contract every database backend must satisfy.

Usage:
    backend.connect()
    handle = backend.prepare("SELECT * FROM users WHERE id = ?")
    for row in backend.fetch(handle, [42]):
        print(row["name"])

A backend is normally driven by a Storage, which connects before every
operation and prepares each distinct statement once.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, Optional, Protocol, Sequence, Type, TypeVar, runtime_checkable

from .errors import MisuseError

Row = Dict[str, Any]
Params = Optional[Sequence[Any]]

H = TypeVar("H", bound="StatementHandle")


class StatementHandle:
    """
    Opaque prepared statement returned by ``Backend.prepare``.

    A handle remembers which backend instance issued it. Backends only accept
    handles they issued themselves; storages never build handles, they only
    route the ones they received from ``prepare``.
    """

    __slots__ = ("_owner", "sql")

    def __init__(self, owner: object, sql: str):
        self._owner = owner
        self.sql = sql

    def issued_by(self, backend: object) -> bool:
        return self._owner is backend

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.sql!r})"


def check_handle(backend: object, handle: Any, handle_type: Type[H]) -> H:
    """Return ``handle`` if ``backend`` issued it, raise MisuseError otherwise."""
    if not isinstance(handle, handle_type):
        raise MisuseError(
            f"{type(backend).__name__} only accepts {handle_type.__name__} handles, "
            f"got {type(handle).__name__}"
        )
    if not handle.issued_by(backend):
        raise MisuseError("statement handle was prepared by a different backend instance")
    return handle


@runtime_checkable
class Backend(Protocol):
    """
    Protocol that all database backends must implement.

    Every failure is raised as BackendError; a falsy return value (0 affected
    rows, an empty result) is always a success.
    """

    def connect(self) -> None:
        """Connect on first call, check liveness afterwards. Never reconnects."""
        ...

    def prepare(self, statement: str) -> StatementHandle: ...

    def execute(self, handle: StatementHandle, params: Params = ()) -> int: ...

    def fetch(self, handle: StatementHandle, params: Params = ()) -> Iterator[Row]: ...

    def insert(self, handle: StatementHandle, params: Params = ()) -> int: ...

    def begin(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def close(self) -> None: ...
