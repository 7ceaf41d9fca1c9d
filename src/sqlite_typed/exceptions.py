"""
Exception classes and SQLite result codes.

Every failure reported by the driver is translated once into one of the
classes below and chained to the original ``sqlite3`` exception.
"""
import enum
import sqlite3
from typing import Self

__all__ = [
    'ResultCode',
    'DatabaseError',
    'OpenError',
    'PrepareError',
    'BindError',
    'StepError',
    'ValidationError',
    'ArityError',
    'KindError',
    'MisuseError',
    'is_busy_error',
]


class ResultCode(enum.IntEnum):
    """SQLite primary result codes.
    """
    OK = 0
    ERROR = 1
    INTERNAL = 2
    PERM = 3
    ABORT = 4
    BUSY = 5
    LOCKED = 6
    NOMEM = 7
    READONLY = 8
    INTERRUPT = 9
    IOERR = 10
    CORRUPT = 11
    NOTFOUND = 12
    FULL = 13
    CANTOPEN = 14
    PROTOCOL = 15
    EMPTY = 16
    SCHEMA = 17
    TOOBIG = 18
    CONSTRAINT = 19
    MISMATCH = 20
    MISUSE = 21
    NOLFS = 22
    AUTH = 23
    FORMAT = 24
    RANGE = 25
    NOTADB = 26
    NOTICE = 27
    WARNING = 28
    ROW = 100
    DONE = 101

    @classmethod
    def from_extended(cls, extended: int | None) -> 'ResultCode | None':
        """Reduce an extended result code to its primary code.
        """
        if extended is None:
            return None
        try:
            return cls(extended & 0xFF)
        except ValueError:
            return None

    @property
    def description(self) -> str:
        return _DESCRIPTIONS.get(self, 'See https://sqlite.org/rescode.html')


_DESCRIPTIONS = {
    ResultCode.ERROR: 'Generic error, returned when no more specific code is available.',
    ResultCode.INTERNAL: 'Internal malfunction inside the engine.',
    ResultCode.PERM: 'The requested access mode for a newly created database could not be provided.',
    ResultCode.ABORT: 'An operation was aborted prior to completion.',
    ResultCode.BUSY: 'The database file could not be written (or read) because of concurrent activity.',
    ResultCode.LOCKED: 'A write conflicted with another statement on the same connection or a shared cache.',
    ResultCode.NOMEM: 'The engine could not allocate the memory it needed.',
    ResultCode.READONLY: 'Attempt to change data without write permission.',
    ResultCode.INTERRUPT: 'The operation was interrupted.',
    ResultCode.IOERR: 'The operating system reported an I/O error.',
    ResultCode.CORRUPT: 'The database file is corrupt.',
    ResultCode.FULL: 'A write could not complete because the disk is full.',
    ResultCode.CANTOPEN: 'The database file (or a temporary file) could not be opened.',
    ResultCode.PROTOCOL: 'Problem with the file locking protocol.',
    ResultCode.SCHEMA: 'The schema changed between prepare and run.',
    ResultCode.TOOBIG: 'A string or BLOB was too large.',
    ResultCode.CONSTRAINT: 'An SQL constraint was violated.',
    ResultCode.MISMATCH: 'Datatype mismatch.',
    ResultCode.MISUSE: 'An interface was used in an undefined or unsupported way.',
    ResultCode.NOLFS: 'Large files are not supported by the host.',
    ResultCode.AUTH: 'The statement is not authorized.',
    ResultCode.RANGE: 'Parameter or column index out of range.',
    ResultCode.NOTADB: 'The file is not a database.',
}


class DatabaseError(Exception):
    """Base class for all errors raised by this package.

    :param message: Human readable description.
    :param code: Primary SQLite result code, when one applies.
    :param extended_code: Extended result code reported by the driver.
    :param sql: SQL text of the statement involved, if any.
    """

    def __init__(self, message: str, code: ResultCode | None = None,
                 extended_code: int | None = None, sql: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.extended_code = extended_code
        self.sql = sql

    @classmethod
    def from_driver(cls, exc: BaseException, sql: str | None = None,
                    code: ResultCode | None = None) -> Self:
        """Build an error from a ``sqlite3`` exception.
        """
        extended = getattr(exc, 'sqlite_errorcode', None)
        if code is None:
            code = ResultCode.from_extended(extended)
        return cls(str(exc), code=code, extended_code=extended, sql=sql)


class OpenError(DatabaseError):
    """The database could not be opened or created.
    """


class PrepareError(DatabaseError):
    """SQL text could not be compiled into a statement.
    """


class BindError(DatabaseError):
    """A parameter could not be bound to its placeholder.
    """


class StepError(DatabaseError):
    """The engine failed while stepping a statement.
    """


class ValidationError(DatabaseError):
    """Caller contract violation.
    """


class ArityError(ValidationError):
    """Requested kinds do not match the result columns.
    """


class KindError(ValidationError):
    """Unsupported requested kind or parameter type.
    """


class MisuseError(ValidationError):
    """Operation on a finalized statement or a closed connection.
    """


def is_busy_error(exc: BaseException) -> bool:
    """Check if an exception reports a busy or locked database.

    Such errors are transient; whether to retry is the caller's decision.
    """
    if isinstance(exc, DatabaseError):
        return exc.code in {ResultCode.BUSY, ResultCode.LOCKED}
    if isinstance(exc, sqlite3.Error):
        code = ResultCode.from_extended(getattr(exc, 'sqlite_errorcode', None))
        return code in {ResultCode.BUSY, ResultCode.LOCKED}
    return False
