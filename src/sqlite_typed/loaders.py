"""
Result loaders used by ``select``.

A loader receives the decoded rows (tuples), the result column names and
the requested kinds, and returns whatever shape the caller wants.
"""
from collections.abc import Sequence
from typing import Any

import numpy as np
import pandas as pd
from sqlite_typed.types import Kind, Nullable

__all__ = [
    'tuple_data_loader',
    'pandas_data_loader',
    'frame_dtype',
]

_DTYPES: dict[Kind, Any] = {
    Kind.INT32: np.dtype(np.int32),
    Kind.INT64: np.dtype(np.int64),
    Kind.DOUBLE: np.dtype(np.float64),
    Kind.TEXT: np.dtype(object),
    Kind.BYTES: np.dtype(object),
}

_NULLABLE_DTYPES: dict[Kind, Any] = {
    Kind.INT32: pd.Int32Dtype(),
    Kind.INT64: pd.Int64Dtype(),
    Kind.DOUBLE: pd.Float64Dtype(),
    Kind.TEXT: np.dtype(object),
    Kind.BYTES: np.dtype(object),
}


def frame_dtype(kind: Kind | Nullable) -> Any:
    """Column dtype for a requested kind.

    Nullable numeric kinds use pandas' masked dtypes so NULL stays ``pd.NA``
    instead of turning integers into floats.
    """
    if isinstance(kind, Nullable):
        return _NULLABLE_DTYPES[kind.kind]
    return _DTYPES[kind]


def tuple_data_loader(rows: list[tuple], columns: Sequence[str],
                      kinds: Sequence[Kind | Nullable], **kwargs: Any) -> list[tuple]:
    """Minimal data loader: the decoded rows as a list of tuples.
    """
    return list(rows)


def pandas_data_loader(rows: list[tuple], columns: Sequence[str],
                       kinds: Sequence[Kind | Nullable], **kwargs: Any) -> pd.DataFrame:
    """DataFrame loader with one typed column per result column.

    Always returns a DataFrame, with columns and dtypes preserved for empty
    results. The requested kinds are kept in ``df.attrs['column_kinds']``.
    """
    data = {
        i: pd.Series([row[i] for row in rows], dtype=frame_dtype(kind))
        for i, kind in enumerate(kinds)
    }
    df = pd.DataFrame(data, index=pd.RangeIndex(len(rows)))
    df.columns = list(columns)
    df.attrs['column_kinds'] = dict(zip(columns, kinds))
    return df
