"""
Extraction of typed rows from a statement.

Two shapes are provided:
- for_each: bind once, step to exhaustion, call a handler per decoded row
- collect: bind, step once, decode the row (or the all-NULL row when the
  result is empty)

plus ``iter_rows`` (a lazy generator) and ``select`` (drain through a
result loader). Each call leaves the statement reset and ready for reuse.
"""
import logging
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Any

from sqlite_typed.binder import bind
from sqlite_typed.coercion import coerce_row, null_value
from sqlite_typed.exceptions import ArityError
from sqlite_typed.types import Kind, Nullable, kinds_from_handler, resolve_kinds

if TYPE_CHECKING:
    from sqlite_typed.statement import Statement

__all__ = [
    'check_arity',
    'decode_row',
    'collect',
    'for_each',
    'iter_rows',
    'select',
]

logger = logging.getLogger(__name__)

Kinds = tuple[Kind | Nullable, ...]


def check_arity(statement: 'Statement', kinds: Kinds) -> None:
    """Fail unless one kind was requested per result column.
    """
    count = statement.column_count
    if len(kinds) != count:
        raise ArityError(f'Requested {len(kinds)} kind(s) for {count} result column(s)',
                         sql=statement.sql)


def decode_row(statement: 'Statement', kinds: Kinds) -> tuple:
    """Decode the statement's current row.

    REAL values wanted as text are rendered by the statement's connection.
    """
    return coerce_row(statement.current_row, kinds, statement.connection.render_real)


def _drain(statement: 'Statement', kinds: Kinds) -> Iterator[tuple]:
    has_row = statement.step()
    check_arity(statement, kinds)
    while has_row:
        yield decode_row(statement, kinds)
        has_row = statement.step()


def collect(statement: 'Statement', params: Any, kinds: Any) -> Any:
    """Bind ``params``, step once and decode the result.

    An empty result decodes as a row of NULLs: 0, 0.0, '', b'' or None for
    nullable kinds. A single kind returns a scalar, a tuple of kinds a tuple.
    """
    resolved, single = resolve_kinds(kinds)
    bind(statement, params)
    try:
        has_row = statement.step()
        check_arity(statement, resolved)
        if has_row:
            result = decode_row(statement, resolved)
        else:
            result = tuple(null_value(kind) for kind in resolved)
    finally:
        statement.reset()
    return result[0] if single else result


def for_each(statement: 'Statement', params: Any, handler: Callable[..., Any],
             kinds: Any = None) -> int:
    """Bind ``params`` and call ``handler(*row)`` for every row.

    Without ``kinds`` the handler's parameter annotations name the kinds.
    Returns the number of rows handled.
    """
    if kinds is None:
        resolved = kinds_from_handler(handler)
    else:
        resolved, _ = resolve_kinds(kinds)
    bind(statement, params)
    count = 0
    try:
        for row in _drain(statement, resolved):
            handler(*row)
            count += 1
    finally:
        statement.reset()
    logger.debug(f'Handled {count} row(s)')
    return count


def iter_rows(statement: 'Statement', params: Any, kinds: Any) -> Iterator[Any]:
    """Lazily yield decoded rows (scalars when a single kind is given).

    Kinds are resolved and parameters bound at the call; stepping starts on
    the first ``next()``.
    """
    resolved, single = resolve_kinds(kinds)
    bind(statement, params)
    return _iter_decoded(statement, resolved, single)


def _iter_decoded(statement: 'Statement', resolved: Kinds, single: bool) -> Iterator[Any]:
    try:
        for row in _drain(statement, resolved):
            yield row[0] if single else row
    finally:
        if statement.usable:
            statement.reset()


def select(statement: 'Statement', params: Any, kinds: Any,
           loader: Callable[..., Any]) -> Any:
    """Decode every row and hand them to ``loader(rows, columns, kinds)``.

    Rows are always tuples here, whatever the shape of ``kinds``.
    """
    resolved, _ = resolve_kinds(kinds)
    bind(statement, params)
    try:
        rows = list(_drain(statement, resolved))
    finally:
        statement.reset()
    logger.debug(f'Select returned {len(rows)} row(s)')
    return loader(rows, statement.column_names, resolved)
