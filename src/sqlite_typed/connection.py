"""
Connection handling.

This module provides:
1. The `connect()` function for opening or creating a database
2. The `Connection` class owning the engine handle, with one-shot helpers:
- execute(sql, params) - run a statement to completion
- collect(sql, params, kinds) - decode the first row (or the NULL row)
- for_each(sql, params, handler) - call a handler per decoded row
- prepare(sql) - compile a reusable Statement

Engines are created with SQLAlchemy (``NullPool``, one driver connection per
Connection). The driver runs in autocommit mode, so ``begin``, ``commit``
and ``rollback`` are ordinary statements passed through to the engine.
"""
import dataclasses
import logging
import os
import sqlite3
import weakref
from collections.abc import Callable, Iterator
from typing import Any, Self
from urllib.parse import quote, urlencode

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlite_typed.coercion import render_real
from sqlite_typed.exceptions import MisuseError, OpenError, PrepareError, ResultCode
from sqlite_typed.options import ConnectionOptions, OpenFlags
from sqlite_typed.statement import Statement
from sqlite_typed.transaction import Transaction
from sqlite_typed.types import Utf8

__all__ = [
    'Connection',
    'connect',
    'build_uri',
    'create_url_from_options',
    'get_engine_for_options',
    'configure_connection',
]

logger = logging.getLogger(__name__)

_KNOWN_FLAGS = sum(int(flag) for flag in OpenFlags)


def build_uri(path: str, flags: int) -> str:
    """Translate a path and open flags into an SQLite ``file:`` URI.

    With ``URI`` set the path is already a URI and is used as given.
    """
    flags = OpenFlags(flags)
    readonly = OpenFlags.READONLY in flags
    readwrite = OpenFlags.READWRITE in flags
    if readonly == readwrite:
        raise OpenError('Exactly one of READONLY or READWRITE must be set', code=ResultCode.MISUSE)
    if readonly and OpenFlags.CREATE in flags:
        raise OpenError('READONLY cannot be combined with CREATE', code=ResultCode.MISUSE)
    if OpenFlags.SHAREDCACHE in flags and OpenFlags.PRIVATECACHE in flags:
        raise OpenError('SHAREDCACHE and PRIVATECACHE are exclusive', code=ResultCode.MISUSE)

    ignored = flags & (OpenFlags.NOMUTEX | OpenFlags.FULLMUTEX)
    if ignored:
        logger.debug(f'Ignoring {ignored!r}: the driver serializes access itself')
    if OpenFlags.NOFOLLOW in flags:
        logger.warning('NOFOLLOW is not supported through the driver; ignoring it')
    unknown = int(flags) & ~_KNOWN_FLAGS
    if unknown:
        logger.warning(f'Ignoring unknown open flag bits {unknown:#x}')

    if OpenFlags.URI in flags:
        return path

    query = {}
    if OpenFlags.MEMORY in flags:
        query['mode'] = 'memory'
    elif readonly:
        query['mode'] = 'ro'
    elif OpenFlags.CREATE in flags:
        query['mode'] = 'rwc'
    else:
        query['mode'] = 'rw'
    if OpenFlags.SHAREDCACHE in flags:
        query['cache'] = 'shared'
    elif OpenFlags.PRIVATECACHE in flags:
        query['cache'] = 'private'
    return f"file:{quote(path, safe='/:')}?{urlencode(query)}"


def create_url_from_options(options: ConnectionOptions,
                            url_creator: Callable[..., sa.URL] = sa.URL.create) -> sa.URL:
    """Convert ConnectionOptions to a SQLAlchemy URL.
    """
    return url_creator(drivername='sqlite', database=options.path)


def get_engine_for_options(options: ConnectionOptions,
                           engine_factory: Callable[..., Engine] = sa.create_engine) -> Engine:
    """Create a SQLAlchemy engine whose connections honour ``options``.
    """
    uri = build_uri(options.path, options.flags)

    def creator() -> sqlite3.Connection:
        return sqlite3.connect(
            uri,
            uri=True,
            timeout=options.timeout,
            isolation_level=None,
            check_same_thread=options.check_same_thread,
            cached_statements=options.cached_statements,
        )

    engine = engine_factory(create_url_from_options(options), creator=creator, poolclass=NullPool)
    logger.debug(f'Created engine for {uri}')
    return engine


def _pragma_literal(value: Any) -> str:
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int | float):
        return str(value)
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


def configure_connection(dbapi_connection: sqlite3.Connection, options: ConnectionOptions) -> None:
    """Apply driver settings and pragmas to a freshly opened connection.
    """
    dbapi_connection.text_factory = Utf8
    for name, value in options.pragmas.items():
        dbapi_connection.execute(f'PRAGMA {name} = {_pragma_literal(value)}').close()
    if options.verify:
        dbapi_connection.execute('PRAGMA schema_version').close()


class Connection:
    """An open database.

    Examples
        with Connection.open('app.db') as cn:
            cn.execute('insert into user(age, name) values(?, ?)', (29, 'amin'))
            count = cn.collect('select count(*) from user', (), int)
    """

    def __init__(self, engine: Engine, pool_connection: Any, options: ConnectionOptions) -> None:
        self.engine = engine
        self.pool_connection = pool_connection
        self.options = options
        self._dbapi_connection: sqlite3.Connection = pool_connection.dbapi_connection
        self._statements: weakref.WeakSet[Statement] = weakref.WeakSet()
        self._closed = False
        self.calls = 0
        self.time = 0.0

    @classmethod
    def open(cls, path: str | os.PathLike = ':memory:', flags: int | None = None,
             **kwargs: Any) -> Self:
        """Open (or create) the database at ``path``.
        """
        if flags is not None:
            kwargs['flags'] = flags
        return connect(ConnectionOptions(path=path, **kwargs))

    def __repr__(self) -> str:
        state = 'closed' if self._closed else 'open'
        return f'<Connection {state} {self.options.path!r}>'

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def dbapi_connection(self) -> sqlite3.Connection:
        if self._closed:
            raise MisuseError('Connection is closed', code=ResultCode.MISUSE)
        return self._dbapi_connection

    @property
    def in_transaction(self) -> bool:
        """Whether the engine has an open transaction.
        """
        return not self._closed and self._dbapi_connection.in_transaction

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    def render_real(self, x: float) -> str:
        """Text the engine gives a REAL value, as ``cast(x as text)`` does.
        """
        cursor = self.dbapi_connection.cursor()
        try:
            text = cursor.execute('select cast(? as text)', (x,)).fetchone()[0]
        finally:
            cursor.close()
        if text is None:
            return render_real(x)
        return bytes(text).decode('ascii')

    def _register(self, statement: Statement) -> None:
        self._statements.add(statement)

    def _forget(self, statement: Statement) -> None:
        self._statements.discard(statement)

    def close(self) -> None:
        """Finalize live statements and release the database handle.
        """
        if self._closed:
            return
        for statement in list(self._statements):
            statement.finalize()
        if self._dbapi_connection.in_transaction:
            logger.warning('Closing connection with an open transaction; the engine rolls it back')
        self.pool_connection.close()
        self.engine.dispose()
        self._closed = True
        logger.debug(f'Connection closed: {self.calls} statement runs in {self.time:.2f}s')

    def prepare(self, sql: str) -> Statement:
        """Compile ``sql`` into a reusable Statement.
        """
        if self._closed:
            raise PrepareError('Connection is closed', code=ResultCode.MISUSE, sql=sql)
        return Statement(self, sql)

    def execute(self, sql: str, params: Any = ()) -> int:
        """Run ``sql`` once to completion and return the driver's rowcount.
        """
        with self.prepare(sql) as statement:
            return statement.execute(params)

    def collect(self, sql: str, params: Any, kinds: Any) -> Any:
        """Run ``sql`` once and decode its first row into ``kinds``.
        """
        with self.prepare(sql) as statement:
            return statement.collect(params, kinds)

    def for_each(self, sql: str, params: Any, handler: Callable[..., Any],
                 kinds: Any = None) -> int:
        """Run ``sql`` once and call ``handler`` for every decoded row.
        """
        with self.prepare(sql) as statement:
            return statement.for_each(params, handler, kinds)

    def rows(self, sql: str, params: Any, kinds: Any) -> Iterator[Any]:
        """Lazily yield decoded rows of ``sql``.

        The SQL is compiled and bound at the call, so errors there surface
        immediately; the statement is finalized when iteration ends.
        """
        statement = self.prepare(sql)
        try:
            rows = statement.rows(params, kinds)
        except Exception:
            statement.finalize()
            raise
        return _finalizing(statement, rows)

    def select(self, sql: str, params: Any, kinds: Any,
               loader: Callable[..., Any] | None = None) -> Any:
        """Decode every row of ``sql`` through a result loader.
        """
        with self.prepare(sql) as statement:
            return statement.select(params, kinds, loader)

    def transaction(self, mode: str = '') -> Transaction:
        return Transaction(self, mode)


def _finalizing(statement: Statement, rows: Iterator[Any]) -> Iterator[Any]:
    with statement:
        yield from rows


def connect(options: ConnectionOptions | dict[str, Any] | str | os.PathLike | None = None,
            **kw: Any) -> Connection:
    """Open a database.

    Args:
        options: Can be:
                - ConnectionOptions object
                - Dictionary of options
                - Path of the database file
                - None, for options given only as keyword arguments
        **kw: Additional keyword arguments overriding options

    Returns
        Connection owning the database handle
    """
    if isinstance(options, ConnectionOptions):
        if kw:
            options = dataclasses.replace(options, **kw)
    elif isinstance(options, dict):
        options = ConnectionOptions(**{**options, **kw})
    elif isinstance(options, str | os.PathLike):
        options = ConnectionOptions(path=options, **kw)
    elif options is None:
        options = ConnectionOptions(**kw)
    else:
        raise TypeError(f'Unsupported options: {type(options).__name__}')

    engine = get_engine_for_options(options)
    try:
        pool_connection = engine.raw_connection()
    except (sqlite3.Error, sa.exc.DBAPIError) as exc:
        engine.dispose()
        cause = getattr(exc, 'orig', None) or exc
        logger.error(f'Could not open {options.path!r}: {cause}')
        raise OpenError.from_driver(cause) from exc

    try:
        configure_connection(pool_connection.dbapi_connection, options)
    except sqlite3.Error as exc:
        pool_connection.close()
        engine.dispose()
        logger.error(f'Could not open {options.path!r}: {exc}')
        raise OpenError.from_driver(exc) from exc

    logger.debug(f'Opened {options.path!r} with flags {options.flags!r}')
    return Connection(engine, pool_connection, options)
