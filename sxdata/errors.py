"""
Errors raised by backends and storages.

Every database or runtime failure surfaces as a single ``BackendError``
carrying a message, a numeric code and a failure category. Callers tell
failures apart by ``code``/``kind``, not by exception subtype.

``MisuseError`` is the one exception to that rule: it signals a programming
defect (a statement handle from another backend, parameters that are not a
sequence) and should not be caught and continued from.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Optional


class ErrorKind(str, Enum):
    """Failure category of a BackendError."""

    CONNECTION = "connection"
    PREPARE = "prepare"
    BIND = "bind"
    EXECUTION = "execution"
    RESULT = "result"
    TRANSACTION = "transaction"


class ErrorCode(IntEnum):
    """Application-defined codes, used when the driver reports no native code."""

    NOT_CONNECTED = 9001
    UNSUPPORTED_PARAM_TYPE = 9002
    PARAM_COUNT_MISMATCH = 9003
    TRANSACTION_ACTIVE = 9004
    NO_TRANSACTION = 9005
    UNIT_OF_WORK_FAILED = 9006
    CONNECTION_LOST = 9007
    MALFORMED_STATEMENT = 9008
    INVALID_PARAM_VALUE = 9009


class BackendError(Exception):
    """Uniform error for all backend and storage failures."""

    def __init__(
        self,
        message: str,
        code: int = 0,
        kind: ErrorKind = ErrorKind.EXECUTION,
        rollback_error: Optional[BaseException] = None,
    ):
        self.message = message
        self.code = int(code)
        self.kind = kind
        # Set when a rollback failed while handling this error.
        self.rollback_error = rollback_error
        super().__init__(message)

    def __repr__(self) -> str:
        return f"BackendError({self.message!r}, code={self.code}, kind={self.kind.value})"


class MisuseError(TypeError):
    """Wrong handle or argument shape passed to a backend."""
    pass
