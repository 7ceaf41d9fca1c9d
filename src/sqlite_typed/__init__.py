"""
Typed parameter binding and row extraction for SQLite.

All operations can be called either as:
- Module functions: db.collect(cn, sql, params, kinds)
- Connection methods: cn.collect(sql, params, kinds)

The module functions are facades over the connection methods.
"""
__version__ = '0.1.0'

from collections.abc import Callable
from typing import Any

from sqlite_typed.connection import Connection, connect
from sqlite_typed.exceptions import ArityError, BindError, DatabaseError
from sqlite_typed.exceptions import KindError, MisuseError, OpenError
from sqlite_typed.exceptions import PrepareError, ResultCode, StepError
from sqlite_typed.exceptions import ValidationError, is_busy_error
from sqlite_typed.loaders import pandas_data_loader, tuple_data_loader
from sqlite_typed.options import DEFAULT_FLAGS, ConnectionOptions, OpenFlags
from sqlite_typed.statement import CursorState, Statement
from sqlite_typed.transaction import Transaction as transaction
from sqlite_typed.types import NULL, Int32, Int64, Kind, Nullable
from sqlite_typed.types import StorageClass, Utf8, Value


def execute(cn: Connection, sql: str, params: Any = ()) -> int:
    """Run a statement to completion and return the affected row count.
    """
    return cn.execute(sql, params)


def collect(cn: Connection, sql: str, params: Any, kinds: Any) -> Any:
    """Decode the first result row into ``kinds``.

    An empty result decodes as the all-NULL row.
    """
    return cn.collect(sql, params, kinds)


def for_each(cn: Connection, sql: str, params: Any, handler: Callable[..., Any],
             kinds: Any = None) -> int:
    """Call ``handler`` once per decoded result row.
    """
    return cn.for_each(sql, params, handler, kinds)


def select(cn: Connection, sql: str, params: Any, kinds: Any,
           loader: Callable[..., Any] | None = None) -> Any:
    """Decode every result row through a result loader.
    """
    return cn.select(sql, params, kinds, loader)


def prepare(cn: Connection, sql: str) -> Statement:
    """Compile a reusable statement.
    """
    return cn.prepare(sql)


__all__ = [
    'Connection',
    'ConnectionOptions',
    'CursorState',
    'DEFAULT_FLAGS',
    'Int32',
    'Int64',
    'Kind',
    'NULL',
    'Nullable',
    'OpenFlags',
    'ResultCode',
    'Statement',
    'StorageClass',
    'Utf8',
    'Value',
    'transaction',
    'connect',
    'execute',
    'collect',
    'for_each',
    'select',
    'prepare',
    'tuple_data_loader',
    'pandas_data_loader',
    'is_busy_error',
    'DatabaseError',
    'OpenError',
    'PrepareError',
    'BindError',
    'StepError',
    'ValidationError',
    'ArityError',
    'KindError',
    'MisuseError',
]
