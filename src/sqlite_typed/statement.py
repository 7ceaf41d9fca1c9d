"""
Compiled statements and their cursor state machine.

    UNSTARTED --step--> ROW --step--> ROW ... --step--> DONE
        ^                |                               |
        +------reset / bind (implicit reset)-------------+
    any state --finalize--> FINALIZED

The SQL is compiled when the statement is created; the driver keeps the
compiled program in its per-connection statement cache, so re-binding and
stepping the same Statement reuses it. Parameters are held in ``slots`` and
handed to the driver on the first step.
"""
import enum
import logging
import re
import sqlite3
import time
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Any, Self

from sqlite_typed import binder, extract
from sqlite_typed.exceptions import ArityError, BindError, MisuseError
from sqlite_typed.exceptions import PrepareError, ResultCode, StepError
from sqlite_typed.types import StorageClass, resolve_kinds, storage_class

if TYPE_CHECKING:
    from sqlite_typed.connection import Connection

__all__ = ['CursorState', 'Statement']

logger = logging.getLogger(__name__)

# sqlite3.ProgrammingError raised when the binding count is wrong; it is only
# raised after the SQL compiled, and it names the placeholder count.
_BINDING_COUNT = re.compile(r'uses (\d+), and there (?:are|is) \d+ supplied')

# SQL that is already an EXPLAIN, after whitespace and comments.
_EXPLAIN = re.compile(r'(?:\s|--[^\n]*(?:\n|$)|/\*.*?(?:\*/|$))*explain\b', re.IGNORECASE | re.DOTALL)


class CursorState(enum.Enum):
    UNSTARTED = 'unstarted'
    ROW = 'row-available'
    DONE = 'exhausted'
    FINALIZED = 'finalized'


class Statement:
    """One compiled SQL statement bound to a live connection.

    Examples
        with cn.prepare('insert into user(age, name) values(?, ?)') as st:
            for age in range(10):
                st.execute((age, f'user{age}'))
    """

    def __init__(self, connection: 'Connection', sql: str) -> None:
        self.connection = connection
        self.sql = sql
        self._state = CursorState.UNSTARTED
        self._cursor: sqlite3.Cursor | None = None
        self._row: tuple | None = None
        self._columns: tuple[str, ...] = ()
        self.parameter_count = self._compile()
        self.slots: list[Any] = [None] * self.parameter_count
        connection._register(self)
        logger.debug(f'Prepared statement with {self.parameter_count} placeholder(s):\n{sql}')

    def _compile(self) -> int:
        """Compile the SQL and return its placeholder count.

        Compiles the ``EXPLAIN`` form with no bindings: the statement does not
        run, and a binding-count error means it compiled. SQL that already
        starts with ``EXPLAIN`` is compiled as given.
        """
        if self.connection.closed:
            raise PrepareError('Connection is closed', code=ResultCode.MISUSE, sql=self.sql)
        probe = self.sql if _EXPLAIN.match(self.sql) else f'EXPLAIN {self.sql}'
        cursor = self.connection.dbapi_connection.cursor()
        try:
            cursor.execute(probe, ())
        except sqlite3.ProgrammingError as exc:
            match = _BINDING_COUNT.search(str(exc))
            if match is None:
                logger.error(f'Error preparing SQL:\n{self.sql}')
                raise PrepareError.from_driver(exc, sql=self.sql) from exc
            return int(match.group(1))
        except (sqlite3.Error, sqlite3.Warning) as exc:
            logger.error(f'Error preparing SQL:\n{self.sql}')
            raise PrepareError.from_driver(exc, sql=self.sql) from exc
        finally:
            cursor.close()
        return 0

    def __repr__(self) -> str:
        return f'<Statement {self._state.value} {self.sql!r}>'

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        self.finalize()

    @property
    def state(self) -> CursorState:
        return self._state

    @property
    def started(self) -> bool:
        return self._state in {CursorState.ROW, CursorState.DONE}

    @property
    def finalized(self) -> bool:
        return self._state is CursorState.FINALIZED

    @property
    def usable(self) -> bool:
        return not self.finalized and not self.connection.closed

    def check_usable(self) -> None:
        if self.finalized:
            raise MisuseError('Statement has been finalized', code=ResultCode.MISUSE, sql=self.sql)
        if self.connection.closed:
            raise MisuseError('Connection is closed', code=ResultCode.MISUSE, sql=self.sql)

    @property
    def column_count(self) -> int:
        """Number of result columns, known once the statement has been stepped.
        """
        return len(self._columns)

    @property
    def column_names(self) -> tuple[str, ...]:
        return self._columns

    @property
    def current_row(self) -> tuple:
        """Raw engine values of the current row.
        """
        self.check_usable()
        if self._state is not CursorState.ROW:
            raise MisuseError(f'No row available (statement is {self._state.value})',
                              code=ResultCode.MISUSE, sql=self.sql)
        return self._row

    # Binding

    def bind(self, params: Any) -> None:
        """Bind all placeholders; see ``binder.bind``.
        """
        binder.bind(self, params)

    def bind_at(self, position: int, param: Any) -> None:
        binder.bind_at(self, position, param)

    def clear_bindings(self) -> None:
        binder.clear_bindings(self)

    # Stepping

    def _release_cursor(self) -> None:
        if self._cursor is not None:
            self._cursor.close()
        self._cursor = None
        self._row = None

    def _start(self) -> None:
        self._cursor = self.connection.dbapi_connection.cursor()
        start = time.perf_counter()
        try:
            self._cursor.execute(self.sql, self.slots)
        finally:
            self.connection.addcall(time.perf_counter() - start)
        description = self._cursor.description
        self._columns = tuple(d[0] for d in description) if description else ()

    def _translate(self, exc: sqlite3.Error) -> Exception:
        logger.error(f'Error with query:\nSQL:\n{self.sql}\nargs: {self.slots}')
        message = str(exc)
        if isinstance(exc, sqlite3.InterfaceError) or (
                isinstance(exc, sqlite3.ProgrammingError) and 'binding' in message.lower()):
            return BindError.from_driver(exc, sql=self.sql, code=ResultCode.MISMATCH)
        return StepError.from_driver(exc, sql=self.sql)

    def step(self) -> bool:
        """Advance to the next row.

        Returns True when a row is available and False once the result is
        exhausted; an exhausted statement keeps returning False until it is
        reset or re-bound. A failed step leaves the statement unstarted.
        """
        self.check_usable()
        if self._state is CursorState.DONE:
            return False
        try:
            if self._state is CursorState.UNSTARTED:
                self._start()
            row = self._cursor.fetchone()
        except sqlite3.Error as exc:
            error = self._translate(exc)
            self._release_cursor()
            self._state = CursorState.UNSTARTED
            raise error from exc
        if row is None:
            self._row = None
            self._state = CursorState.DONE
            return False
        self._row = row
        self._state = CursorState.ROW
        return True

    def reset(self) -> None:
        """Return to UNSTARTED, keeping the current bindings.
        """
        self.check_usable()
        self._release_cursor()
        self._state = CursorState.UNSTARTED

    def finalize(self) -> None:
        """Release the statement. Safe to call more than once.
        """
        if self.finalized:
            return
        if self.connection.closed:
            self._cursor = None
            self._row = None
        else:
            self._release_cursor()
        self._state = CursorState.FINALIZED
        self.connection._forget(self)

    # Columns of the current row

    def column(self, index: int) -> Any:
        """Raw engine value of column ``index`` (0-indexed).

        TEXT arrives as ``Utf8`` bytes; the value is only meaningful for the
        current row.
        """
        row = self.current_row
        if not 0 <= index < len(row):
            raise ArityError(f'Column index {index} out of range 0..{len(row) - 1}',
                             code=ResultCode.RANGE, sql=self.sql)
        return row[index]

    def column_type(self, index: int) -> StorageClass:
        return storage_class(self.column(index))

    def row(self, kinds: Any) -> Any:
        """Decode the current row into ``kinds``.
        """
        resolved, single = resolve_kinds(kinds)
        extract.check_arity(self, resolved)
        values = extract.decode_row(self, resolved)
        return values[0] if single else values

    # Execution

    def execute(self, params: Any = ()) -> int:
        """Bind and run to completion, returning the driver's rowcount.

        Rows produced by the statement are discarded.
        """
        binder.bind(self, params)
        drained = 0
        try:
            while self.step():
                drained += 1
            rowcount = self._cursor.rowcount
        finally:
            self.reset()
        if drained:
            logger.debug(f'Discarded {drained} row(s) from execute')
        return rowcount

    def collect(self, params: Any, kinds: Any) -> Any:
        return extract.collect(self, params, kinds)

    def for_each(self, params: Any, handler: Callable[..., Any], kinds: Any = None) -> int:
        return extract.for_each(self, params, handler, kinds)

    def rows(self, params: Any, kinds: Any) -> Iterator[Any]:
        return extract.iter_rows(self, params, kinds)

    def select(self, params: Any, kinds: Any, loader: Callable[..., Any] | None = None) -> Any:
        loader = loader or self.connection.options.data_loader
        return extract.select(self, params, kinds, loader)
