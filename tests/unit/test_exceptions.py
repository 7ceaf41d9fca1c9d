import sqlite3

import pytest
from sqlite_typed.exceptions import ArityError, BindError, DatabaseError
from sqlite_typed.exceptions import KindError, MisuseError, OpenError
from sqlite_typed.exceptions import PrepareError, ResultCode, StepError
from sqlite_typed.exceptions import ValidationError, is_busy_error


@pytest.mark.parametrize('cls', [OpenError, PrepareError, BindError, StepError, ValidationError])
def test_engine_errors_share_base(cls):
    assert issubclass(cls, DatabaseError)


@pytest.mark.parametrize('cls', [ArityError, KindError, MisuseError])
def test_contract_errors_are_validation_errors(cls):
    assert issubclass(cls, ValidationError)


@pytest.mark.parametrize(('extended', 'expected'), [
    (None, None),
    (5, ResultCode.BUSY),
    (1555, ResultCode.CONSTRAINT),
    (2067, ResultCode.CONSTRAINT),
    (266, ResultCode.IOERR),
    (0xFF, None),
])
def test_from_extended(extended, expected):
    assert ResultCode.from_extended(extended) == expected


def test_every_error_code_is_described():
    for code in ResultCode:
        assert code.description


def _driver_error(cls, message, errorcode):
    exc = cls(message)
    exc.sqlite_errorcode = errorcode
    return exc


def test_from_driver_keeps_codes():
    cause = _driver_error(sqlite3.IntegrityError, 'UNIQUE constraint failed: user.name', 2067)
    err = StepError.from_driver(cause, sql='insert into user values(?)')

    assert isinstance(err, StepError)
    assert err.code == ResultCode.CONSTRAINT
    assert err.extended_code == 2067
    assert err.sql == 'insert into user values(?)'
    assert str(err) == 'UNIQUE constraint failed: user.name'


def test_from_driver_explicit_code_wins():
    cause = sqlite3.ProgrammingError('Error binding parameter 1')
    err = BindError.from_driver(cause, code=ResultCode.MISMATCH)
    assert err.code == ResultCode.MISMATCH
    assert err.extended_code is None


def test_from_driver_without_errorcode():
    err = StepError.from_driver(sqlite3.OperationalError('boom'))
    assert err.code is None


def test_is_busy_error():
    assert is_busy_error(StepError('database is locked', code=ResultCode.BUSY))
    assert is_busy_error(StepError('table is locked', code=ResultCode.LOCKED))
    assert is_busy_error(_driver_error(sqlite3.OperationalError, 'database is locked', 517))
    assert not is_busy_error(StepError('constraint', code=ResultCode.CONSTRAINT))
    assert not is_busy_error(ValueError('database is locked'))


if __name__ == '__main__':
    __import__('pytest').main([__file__])
