"""Tests for the error types and statement handles."""

import pytest

from sxdata.errors import BackendError, ErrorCode, ErrorKind, MisuseError
from sxdata.mysql_backend import MySqlStatement
from sxdata.protocol import StatementHandle, check_handle


class TestBackendError:

    def test_attributes(self):
        err = BackendError("error executing: duplicate", 1062, kind=ErrorKind.EXECUTION)
        assert str(err) == "error executing: duplicate"
        assert err.message == "error executing: duplicate"
        assert err.code == 1062
        assert err.kind is ErrorKind.EXECUTION
        assert err.rollback_error is None

    def test_defaults(self):
        err = BackendError("failed")
        assert err.code == 0
        assert err.kind is ErrorKind.EXECUTION

    def test_enum_code_is_stored_as_int(self):
        err = BackendError("not connected", ErrorCode.NOT_CONNECTED)
        assert err.code == 9001
        assert type(err.code) is int

    def test_repr(self):
        err = BackendError("lost", 2006, kind=ErrorKind.CONNECTION)
        assert repr(err) == "BackendError('lost', code=2006, kind=connection)"

    def test_misuse_is_not_a_backend_error(self):
        assert issubclass(MisuseError, TypeError)
        assert not issubclass(MisuseError, BackendError)


class TestCheckHandle:

    def test_own_handle(self):
        owner = object()
        handle = StatementHandle(owner, "SELECT 1")
        assert check_handle(owner, handle, StatementHandle) is handle

    def test_handle_from_other_backend(self):
        handle = StatementHandle(object(), "SELECT 1")
        with pytest.raises(MisuseError, match="different backend"):
            check_handle(object(), handle, StatementHandle)

    def test_wrong_handle_type(self):
        owner = object()
        with pytest.raises(MisuseError):
            check_handle(owner, StatementHandle(owner, "SELECT 1"), MySqlStatement)

    def test_raw_sql_is_not_a_handle(self):
        with pytest.raises(MisuseError):
            check_handle(object(), "SELECT 1", StatementHandle)

    def test_repr(self):
        assert repr(StatementHandle(object(), "SELECT 1")) == "StatementHandle('SELECT 1')"
