"""
Binding of positional parameters onto a compiled statement.

Parameters are given as a tuple or list and bound in order to placeholders
1..n. Any other single value is bound as a one-element list, so
``cn.execute('delete from user where age > ?', 3)`` works.
"""
import logging
from typing import TYPE_CHECKING, Any

from sqlite_typed.exceptions import BindError, KindError, ResultCode
from sqlite_typed.types import INT32_MAX, INT32_MIN, INT64_MAX, INT64_MIN
from sqlite_typed.types import Kind, Value, to_value

if TYPE_CHECKING:
    from sqlite_typed.statement import Statement

__all__ = [
    'bind',
    'bind_at',
    'clear_bindings',
    'normalize_params',
    'to_native',
]

logger = logging.getLogger(__name__)


def normalize_params(params: Any) -> tuple[Value, ...]:
    """Turn a parameter list (or a single parameter) into bindable values.
    """
    if not isinstance(params, tuple | list):
        params = (params,)
    values = []
    for position, param in enumerate(params, 1):
        try:
            values.append(to_value(param))
        except KindError as exc:
            raise BindError(f'Parameter {position}: {exc}', code=ResultCode.MISMATCH) from exc
    return tuple(values)


def to_native(value: Value, position: int) -> Any:
    """Convert a bindable value to the object the driver binds.

    Integers outside their kind's range are rejected rather than narrowed.
    """
    kind, payload = value.kind, value.payload
    if kind is None:
        return None
    if kind is Kind.INT32 and not INT32_MIN <= payload <= INT32_MAX:
        raise BindError(f'Parameter {position}: {payload} does not fit in int32',
                        code=ResultCode.RANGE)
    if kind in {Kind.INT32, Kind.INT64}:
        if not INT64_MIN <= payload <= INT64_MAX:
            raise BindError(f'Parameter {position}: {payload} does not fit in int64',
                            code=ResultCode.RANGE)
        return int(payload)
    if kind is Kind.DOUBLE:
        return float(payload)
    if kind is Kind.TEXT:
        try:
            payload.encode('utf-8')
        except UnicodeEncodeError as exc:
            raise BindError(f'Parameter {position}: text is not valid UTF-8 ({exc.reason})',
                            code=ResultCode.MISMATCH) from exc
        return payload
    return bytes(payload)


def _ensure_unstarted(statement: 'Statement') -> None:
    statement.check_usable()
    if statement.started:
        statement.reset()


def bind(statement: 'Statement', params: Any) -> None:
    """Bind every placeholder of ``statement`` from ``params``.

    The number of parameters must equal the statement's placeholder count.
    A statement that has already been stepped is reset first.
    """
    statement.check_usable()
    values = normalize_params(params)
    if len(values) != statement.parameter_count:
        raise BindError(
            f'Statement expects {statement.parameter_count} parameter(s), got {len(values)}',
            code=ResultCode.RANGE, sql=statement.sql)
    natives = [to_native(value, position) for position, value in enumerate(values, 1)]
    _ensure_unstarted(statement)
    statement.slots[:] = natives
    logger.debug(f'Bound {len(natives)} parameter(s)')


def bind_at(statement: 'Statement', position: int, param: Any) -> None:
    """Bind a single 1-indexed placeholder.
    """
    statement.check_usable()
    if not 1 <= position <= statement.parameter_count:
        raise BindError(
            f'Parameter index {position} out of range 1..{statement.parameter_count}',
            code=ResultCode.RANGE, sql=statement.sql)
    (value,) = normalize_params((param,))
    native = to_native(value, position)
    _ensure_unstarted(statement)
    statement.slots[position - 1] = native


def clear_bindings(statement: 'Statement') -> None:
    """Reset every placeholder to NULL.
    """
    _ensure_unstarted(statement)
    statement.slots[:] = [None] * statement.parameter_count
