"""
Coercion of dynamic engine values into requested kinds.

The conversions follow SQLite's own column readers (``sqlite3_column_int``,
``_int64``, ``_double``, ``_text``, ``_blob``). No conversion raises: anything
that does not parse degrades to 0, 0.0, '' or b''.

FLOAT to text goes through a ``render`` callable. Rows read from a statement
are rendered by the owning connection (``cast(x as text)``), so the digits
are the engine's own. ``render_real`` is the standalone fallback; it rounds
ties to even and can differ from the engine in the 15th digit.

                 int64          double        text             bytes
    NULL         0              0.0           ''               b''
    INTEGER      n              float(n)      str(n)           str(n) as bytes
    FLOAT        trunc (sat.)   x             %!.15g           %!.15g as bytes
    TEXT         int prefix     real prefix   decoded UTF-8    raw bytes
    BLOB         int prefix     real prefix   decoded UTF-8    raw bytes

int32 is the int64 result wrapped to 32 bits.
"""
import math
import re
from collections.abc import Callable
from typing import Any

from sqlite_typed.types import INT64_MAX, INT64_MIN, Kind, Nullable

__all__ = [
    'coerce',
    'coerce_row',
    'null_value',
    'to_int32',
    'to_int64',
    'to_double',
    'to_text',
    'to_bytes',
    'parse_int_prefix',
    'parse_real_prefix',
    'render_real',
]

# sqlite3Isspace: space, \t, \n, \v, \f, \r
_INT_PREFIX = re.compile(rb'[ \t\n\v\f\r]*([+-]?)0*([0-9]*)')
_REAL_PREFIX = re.compile(rb'[ \t\n\v\f\r]*([+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)')


def parse_int_prefix(data: bytes) -> int:
    """Parse the longest integer prefix of ``data``.

    Leading whitespace is skipped, the first non-digit ends the number and
    out-of-range values saturate at the int64 bounds.
    """
    sign, digits = _INT_PREFIX.match(data).groups()
    if not digits:
        return 0
    n = int(digits)
    if sign == b'-':
        return max(-n, INT64_MIN)
    return min(n, INT64_MAX)


def parse_real_prefix(data: bytes) -> float:
    """Parse the longest real-number prefix of ``data``.

    An exponent is only consumed when digits follow it.
    """
    m = _REAL_PREFIX.match(data)
    if m is None:
        return 0.0
    return float(m.group(1))


def render_real(x: float) -> str:
    """Render a float in the engine's ``%!.15g`` shape.

    The result always holds a decimal point: ``1.0``, ``1.0e+20``. Digits
    are correctly rounded, which the engine's printf is not in every case.
    """
    if math.isinf(x):
        return '-Inf' if x < 0 else 'Inf'
    text = f'{x:.15g}'
    mantissa, e, exponent = text.partition('e')
    if '.' not in mantissa and mantissa.lstrip('-').isdigit():
        mantissa += '.0'
    return f'{mantissa}{e}{exponent}'


def _real_to_int64(x: float) -> int:
    if math.isnan(x):
        return 0
    if x <= INT64_MIN:
        return INT64_MIN
    if x >= INT64_MAX:
        return INT64_MAX
    return int(x)


def _raw_bytes(raw: bytes | str) -> bytes:
    if isinstance(raw, str):
        return raw.encode('utf-8', 'surrogateescape')
    return bytes(raw)


def to_int64(raw: Any) -> int:
    if raw is None:
        return 0
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return _real_to_int64(raw)
    return parse_int_prefix(_raw_bytes(raw))


def to_int32(raw: Any) -> int:
    n = to_int64(raw) & 0xFFFFFFFF
    return n - 0x100000000 if n & 0x80000000 else n


def to_double(raw: Any) -> float:
    if raw is None:
        return 0.0
    if isinstance(raw, int | float):
        return float(raw)
    return parse_real_prefix(_raw_bytes(raw))


def to_text(raw: Any) -> str:
    if raw is None:
        return ''
    if isinstance(raw, str):
        return raw
    if isinstance(raw, int):
        return str(raw)
    if isinstance(raw, float):
        return render_real(raw)
    return bytes(raw).decode('utf-8', 'surrogateescape')


def to_bytes(raw: Any) -> bytes:
    if raw is None:
        return b''
    if isinstance(raw, int | float):
        return to_text(raw).encode('ascii')
    return _raw_bytes(raw)


_DECODERS: dict[Kind, Callable[[Any], Any]] = {
    Kind.INT32: to_int32,
    Kind.INT64: to_int64,
    Kind.DOUBLE: to_double,
    Kind.TEXT: to_text,
    Kind.BYTES: to_bytes,
}


def coerce(raw: Any, kind: Kind | Nullable,
           render: Callable[[float], str] = render_real) -> Any:
    """Decode one engine value into the requested kind.

    ``render`` turns a FLOAT into its text form for TEXT and BYTES.
    """
    if isinstance(kind, Nullable):
        if raw is None:
            return None
        kind = kind.kind
    if isinstance(raw, float) and kind in {Kind.TEXT, Kind.BYTES}:
        text = render(raw)
        return text if kind is Kind.TEXT else text.encode('ascii')
    return _DECODERS[kind](raw)


def null_value(kind: Kind | Nullable) -> Any:
    """Decoding of NULL for ``kind``: zero, empty, or ``None`` if nullable.
    """
    return coerce(None, kind)


def coerce_row(row: tuple | list, kinds: tuple[Kind | Nullable, ...],
               render: Callable[[float], str] = render_real) -> tuple:
    """Decode a whole row. The caller guarantees matching lengths.
    """
    return tuple(coerce(raw, kind, render) for raw, kind in zip(row, kinds))
