"""Input boundary: accept pandas or Polars record tables.

Everything downstream works on one pandas frame: patsy encodes the
design from it, the intervention column is recoded as a two-level
``pd.Categorical`` and the engine draws resamples with ``iloc``.  A
``polars.DataFrame`` or ``polars.LazyFrame`` is therefore converted
once, before validation.

Polars ``Enum`` and ``Categorical`` columns convert to pandas
categoricals with their categories in declared order, which is the
order :meth:`~.specification.ModelSpecification.prepare` uses to pick
the control level when none is given explicitly.

Polars is optional; without it only pandas input is accepted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeAlias

import pandas as pd

if TYPE_CHECKING:
    import polars as pl

    DataFrameLike: TypeAlias = pd.DataFrame | pl.DataFrame | pl.LazyFrame
else:
    DataFrameLike: TypeAlias = pd.DataFrame

try:
    import polars as pl

    _HAS_POLARS = True
except ImportError:
    _HAS_POLARS = False


def _ensure_pandas_df(obj: DataFrameLike, *, name: str = "data") -> pd.DataFrame:
    """Return the record table *obj* as a pandas ``DataFrame``.

    pandas input is returned as is (``prepare`` copies it later).
    Lazy Polars queries are collected first.

    Raises:
        TypeError: If *obj* is not a table of records.
    """
    if isinstance(obj, pd.DataFrame):
        return obj

    if _HAS_POLARS and isinstance(obj, (pl.DataFrame, pl.LazyFrame)):
        frame = obj.collect() if isinstance(obj, pl.LazyFrame) else obj
        return frame.to_pandas()

    accepted = "a pandas DataFrame"
    if _HAS_POLARS:
        accepted += " or a Polars DataFrame/LazyFrame"
    raise TypeError(
        f"'{name}' must be {accepted} with one record per row, "
        f"got {type(obj).__name__}."
    )
