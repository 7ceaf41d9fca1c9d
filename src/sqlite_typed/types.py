"""
Value model shared by the binder, the coercion engine and the extractor.

This module provides:
- Kind / Nullable: the static kinds a caller can request for a column
- StorageClass / Utf8: the dynamic tags of values produced by the engine
- Value: a bindable value with an explicit kind
- resolve_kind / resolve_kinds / kinds_from_handler: turn Python types and
  annotations into requested kinds
- to_value: map Python, NumPy and pandas scalars onto bindable values
"""
import enum
import inspect
import operator
import typing
from collections.abc import Callable
from dataclasses import dataclass
from numbers import Real
from types import UnionType
from typing import Any, NewType, Self

import numpy as np
import pandas as pd
from sqlite_typed.exceptions import KindError

__all__ = [
    'Kind',
    'Nullable',
    'StorageClass',
    'Utf8',
    'Value',
    'NULL',
    'Int32',
    'Int64',
    'INT32_MIN',
    'INT32_MAX',
    'INT64_MIN',
    'INT64_MAX',
    'storage_class',
    'resolve_kind',
    'resolve_kinds',
    'kinds_from_handler',
    'to_value',
]

INT32_MIN = -2**31
INT32_MAX = 2**31 - 1
INT64_MIN = -2**63
INT64_MAX = 2**63 - 1

# Annotation aliases for handlers: ``def on_row(age: Int32, name: str)``
Int32 = NewType('Int32', int)
Int64 = NewType('Int64', int)


class Kind(enum.Enum):
    """Scalar kinds a column can be decoded into.
    """
    INT32 = 'int32'
    INT64 = 'int64'
    DOUBLE = 'double'
    TEXT = 'text'
    BYTES = 'bytes'


class StorageClass(enum.IntEnum):
    """Dynamic type of an engine value, numbered as SQLite numbers them.
    """
    INTEGER = 1
    FLOAT = 2
    TEXT = 3
    BLOB = 4
    NULL = 5


class Utf8(bytes):
    """Raw bytes of a TEXT column.

    Installed as the driver's ``text_factory`` so TEXT stays distinguishable
    from BLOB and invalid UTF-8 never fails inside the driver.
    """
    __slots__ = ()

    def __repr__(self) -> str:
        return f'Utf8({bytes.__repr__(self)})'


def storage_class(raw: Any) -> StorageClass:
    """Return the dynamic tag of a value read from the engine.
    """
    if raw is None:
        return StorageClass.NULL
    if isinstance(raw, Utf8 | str):
        return StorageClass.TEXT
    if isinstance(raw, bytes):
        return StorageClass.BLOB
    if isinstance(raw, int):
        return StorageClass.INTEGER
    if isinstance(raw, float):
        return StorageClass.FLOAT
    raise KindError(f'Not an engine value: {type(raw).__name__}')


@dataclass(frozen=True, slots=True)
class Nullable:
    """Requested kind for which NULL decodes to ``None``.

    Accepts anything ``resolve_kind`` accepts for a scalar:
    ``Nullable(Kind.INT32)``, ``Nullable(int)``, ``Nullable(Int32)``.
    """
    kind: Kind

    def __post_init__(self) -> None:
        if isinstance(self.kind, Nullable):
            raise KindError('Nullable kinds cannot be nested')
        object.__setattr__(self, 'kind', _resolve_scalar(self.kind))


@dataclass(frozen=True, slots=True)
class Value:
    """A bindable value: exactly one kind, or ``None`` for NULL.
    """
    kind: Kind | None
    payload: Any = None

    @property
    def is_null(self) -> bool:
        return self.kind is None

    @classmethod
    def int32(cls, n: int) -> Self:
        return cls(Kind.INT32, _as_int(n))

    @classmethod
    def int64(cls, n: int) -> Self:
        return cls(Kind.INT64, _as_int(n))

    @classmethod
    def double(cls, x: float) -> Self:
        if isinstance(x, bool) or not isinstance(x, Real):
            raise KindError(f'Expected a real number, got {type(x).__name__}')
        return cls(Kind.DOUBLE, float(x))

    @classmethod
    def text(cls, s: str) -> Self:
        if not isinstance(s, str):
            raise KindError(f'Expected str, got {type(s).__name__}')
        return cls(Kind.TEXT, str(s))

    @classmethod
    def blob(cls, b: bytes | bytearray | memoryview) -> Self:
        if not isinstance(b, bytes | bytearray | memoryview):
            raise KindError(f'Expected a bytes-like object, got {type(b).__name__}')
        return cls(Kind.BYTES, bytes(b))

    @classmethod
    def null(cls) -> Self:
        return cls(None)

    @classmethod
    def nullable(cls, kind: Any, payload: Any) -> Self:
        """Bind ``payload`` as ``kind``, or NULL when it is ``None``.
        """
        if payload is None:
            return cls(None)
        constructor = {
            Kind.INT32: cls.int32,
            Kind.INT64: cls.int64,
            Kind.DOUBLE: cls.double,
            Kind.TEXT: cls.text,
            Kind.BYTES: cls.blob,
        }[_resolve_scalar(kind)]
        return constructor(payload)


NULL = Value(None)


def _as_int(n: Any) -> int:
    if isinstance(n, bool):
        return int(n)
    try:
        return operator.index(n)
    except TypeError:
        raise KindError(f'Expected an integer, got {type(n).__name__}') from None


_SCALAR_KINDS: dict[Any, Kind] = {
    int: Kind.INT64,
    float: Kind.DOUBLE,
    str: Kind.TEXT,
    bytes: Kind.BYTES,
    bytearray: Kind.BYTES,
    Int32: Kind.INT32,
    Int64: Kind.INT64,
    np.int32: Kind.INT32,
    np.int64: Kind.INT64,
    np.float64: Kind.DOUBLE,
}


def _resolve_scalar(hint: Any) -> Kind:
    if isinstance(hint, Kind):
        return hint
    try:
        return _SCALAR_KINDS[hint]
    except (KeyError, TypeError):
        raise KindError(f'Unsupported requested kind: {hint!r}') from None


def resolve_kind(hint: Any) -> Kind | Nullable:
    """Resolve a requested kind.

    Optional annotations (``int | None``, ``Optional[str]``) become
    ``Nullable``; everything else must name a scalar kind.
    """
    if isinstance(hint, Kind | Nullable):
        return hint
    if typing.get_origin(hint) in {typing.Union, UnionType}:
        args = typing.get_args(hint)
        inner = [a for a in args if a is not type(None)]
        if len(args) == 2 and len(inner) == 1:
            return Nullable(_resolve_scalar(inner[0]))
        raise KindError(f'Only optional unions are supported, got {hint!r}')
    return _resolve_scalar(hint)


def resolve_kinds(kinds: Any) -> tuple[tuple[Kind | Nullable, ...], bool]:
    """Resolve a kind or a tuple/list of kinds.

    Returns the resolved kinds and whether a single (scalar) kind was given.
    """
    if isinstance(kinds, tuple | list):
        return tuple(resolve_kind(k) for k in kinds), False
    return (resolve_kind(kinds),), True


def kinds_from_handler(handler: Callable[..., Any]) -> tuple[Kind | Nullable, ...]:
    """Read requested kinds from a row handler's parameter annotations.
    """
    try:
        signature = inspect.signature(handler)
    except (TypeError, ValueError):
        raise KindError(f'Cannot inspect handler {handler!r}; pass kinds explicitly') from None

    try:
        hints = typing.get_type_hints(handler)
    except (TypeError, NameError):
        hints = {}

    kinds = []
    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            raise KindError('Handlers taking *args need explicit kinds')
        if param.kind not in {inspect.Parameter.POSITIONAL_ONLY,
                              inspect.Parameter.POSITIONAL_OR_KEYWORD}:
            continue
        if param.default is not inspect.Parameter.empty:
            continue
        annotation = hints.get(param.name, param.annotation)
        if annotation is inspect.Parameter.empty:
            raise KindError(f'Handler parameter {param.name!r} has no annotation; pass kinds explicitly')
        kinds.append(resolve_kind(annotation))
    return tuple(kinds)


def to_value(obj: Any) -> Value:
    """Map a Python, NumPy or pandas scalar onto a bindable value.

    Widths are kept: ``np.int32`` binds as int32, other integers as int64,
    floating types as double. Missing-value markers bind as NULL.
    """
    if isinstance(obj, Value):
        return obj
    if obj is None or obj is pd.NA or obj is pd.NaT:
        return NULL
    if isinstance(obj, bool | np.bool_):
        return Value(Kind.INT64, int(obj))
    if isinstance(obj, np.int32):
        return Value(Kind.INT32, int(obj))
    if isinstance(obj, int | np.integer):
        return Value(Kind.INT64, int(obj))
    if isinstance(obj, float | np.floating):
        return Value(Kind.DOUBLE, float(obj))
    if isinstance(obj, str):
        return Value(Kind.TEXT, str(obj))
    if isinstance(obj, bytes | bytearray | memoryview):
        return Value(Kind.BYTES, bytes(obj))
    raise KindError(f'Unsupported parameter type: {type(obj).__name__}')
