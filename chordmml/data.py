"""Categorical dataset access for decomposable model learning.

Two ways of feeding data to the learner are supported:

* :class:`CategoricalDataset` wraps a fully materialised
  :class:`pandas.DataFrame`.
* :class:`StreamingReader` wraps an iterable of DataFrame chunks together with
  the variable metadata (the "header"), for datasets that should not be held
  in memory twice.

Both encode every value as an integer category code.  When the missing-value
bucket is enabled, missing entries receive the extra code ``n_categories``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
from numpy.typing import NDArray

logger = logging.getLogger(__name__)


class InputStructureError(ValueError):
    """Raised when a dataset cannot support a search run."""


@dataclass(frozen=True)
class Variable:
    """A categorical variable and its ordered list of categories.

    Attributes:
        name: Column name.
        categories: Distinct category labels.
    """

    name: str
    categories: tuple[Any, ...]

    @property
    def n_categories(self) -> int:
        """Number of declared categories."""
        return len(self.categories)

    def arity(self, has_missing_values: bool) -> int:
        """Number of cells this variable contributes to a contingency table.

        Args:
            has_missing_values: Reserve one extra bucket for missing values.

        Returns:
            Category count, plus one when the missing bucket is reserved.
        """
        return self.n_categories + 1 if has_missing_values else self.n_categories


# ---------------------------------------------------------------------------
# Private utilities
# ---------------------------------------------------------------------------


def _category_key(value: Any) -> Any:
    """Matching key of a category label.

    Numbers and numeric text compare by value, so ``0``, ``0.0`` and ``"0"``
    share a key.  Everything else compares by its text.
    """
    if isinstance(value, (bool, np.bool_)):
        return str(value)
    if isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return value
    elif isinstance(value, (int, float, np.integer, np.floating)):
        number = float(value)
    else:
        return str(value)
    if not np.isfinite(number):
        return str(value)
    return int(number) if number.is_integer() else number


def _unique_by_key(values: Iterable[Any]) -> list[Any]:
    unique: dict[Any, Any] = {}
    for value in values:
        unique.setdefault(_category_key(value), value)
    return list(unique.values())


def _column_categories(column: pd.Series) -> tuple[Any, ...]:
    if isinstance(column.dtype, pd.CategoricalDtype):
        return tuple(_unique_by_key(column.cat.categories))
    values = _unique_by_key(pd.unique(column.dropna()))
    try:
        return tuple(sorted(values))
    except TypeError:
        return tuple(values)


def _encode_column(column: pd.Series, variable: Variable, has_missing_values: bool) -> NDArray[np.int32]:
    """Map *column* onto category codes of *variable*.

    Values are matched through :func:`_category_key`, so a CSV streamed as
    text, a float chunk holding NaN and a typed in-memory frame all produce
    the same codes.
    """
    lookup = {_category_key(category): code for code, category in enumerate(variable.categories)}
    missing = column.isna().to_numpy()
    mapped = column.astype(object).map(_category_key, na_action="ignore").map(lookup)
    codes = mapped.to_numpy(dtype=float, na_value=np.nan, copy=True)

    unknown = np.isnan(codes) & ~missing
    if np.any(unknown):
        bad = sorted({str(v) for v in column[unknown]})
        raise InputStructureError(f"Variable '{variable.name}' has values outside its categories: {bad[:5]}.")

    if np.any(missing):
        if not has_missing_values:
            raise InputStructureError(
                f"Variable '{variable.name}' has missing values but the missing-value category is disabled."
            )
        codes[missing] = variable.n_categories

    return codes.astype(np.int32)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def infer_variables(frame: pd.DataFrame) -> list[Variable]:
    """Derive one :class:`Variable` per column of *frame*.

    Args:
        frame: Tabular data, one column per variable.

    Returns:
        Variables in column order.
    """
    return [Variable(str(name), _column_categories(frame[name])) for name in frame.columns]


def validate_variables(variables: list[Variable]) -> None:
    """Check that *variables* can support a search run.

    Raises:
        InputStructureError: If there are no variables, or a variable has
            fewer than two categories or lists a category twice.
    """
    if not variables:
        raise InputStructureError("The dataset has no variables.")
    for variable in variables:
        if variable.n_categories < 2:
            raise InputStructureError(
                f"Variable '{variable.name}' has {variable.n_categories} category(ies); at least 2 are required."
            )
        if len(_unique_by_key(variable.categories)) != variable.n_categories:
            raise InputStructureError(f"Variable '{variable.name}' lists the same category more than once.")


def encode_frame(frame: pd.DataFrame, variables: list[Variable], has_missing_values: bool) -> NDArray[np.int32]:
    """Encode *frame* into an ``(n_rows, n_variables)`` matrix of category codes."""
    codes = np.empty((len(frame), len(variables)), dtype=np.int32)
    for j, variable in enumerate(variables):
        if variable.name not in frame.columns:
            raise InputStructureError(f"Column '{variable.name}' is missing from the data.")
        codes[:, j] = _encode_column(frame[variable.name], variable, has_missing_values)
    return codes


# ---------------------------------------------------------------------------
# Dataset containers
# ---------------------------------------------------------------------------


class CategoricalDataset:
    """A fully materialised categorical dataset.

    Args:
        frame: Data, one column per variable.  A 2-D array is accepted and
            converted with default column names.
        variables: Optional explicit metadata.  Inferred from *frame* when
            omitted.

    Example::

        ds = CategoricalDataset(df)
        codes = ds.encode(has_missing_values=True)
    """

    def __init__(self, frame: pd.DataFrame | NDArray[Any], variables: list[Variable] | None = None) -> None:
        df = frame if isinstance(frame, pd.DataFrame) else pd.DataFrame(frame)
        df = df.rename(columns=str)
        self.frame = df
        self.variables = list(variables) if variables is not None else infer_variables(df)

    @property
    def n_instances(self) -> int:
        """Number of rows."""
        return len(self.frame)

    @property
    def n_variables(self) -> int:
        """Number of variables."""
        return len(self.variables)

    @property
    def variable_names(self) -> list[str]:
        """Variable names in column order."""
        return [variable.name for variable in self.variables]

    def arities(self, has_missing_values: bool) -> list[int]:
        """Per-variable arity, optionally including the missing bucket."""
        return [variable.arity(has_missing_values) for variable in self.variables]

    def encode(self, has_missing_values: bool) -> NDArray[np.int32]:
        """Encode the whole dataset into category codes."""
        return encode_frame(self.frame, self.variables, has_missing_values)


class StreamingReader:
    """A stream of DataFrame chunks sharing a fixed header.

    Args:
        variables: Variable metadata, known before the rows are read.
        chunks: Iterable of DataFrames.  It is consumed once.
    """

    def __init__(self, variables: list[Variable], chunks: Iterable[pd.DataFrame]) -> None:
        self.variables = list(variables)
        self._chunks = chunks
        self._consumed = False

    @property
    def n_variables(self) -> int:
        """Number of variables."""
        return len(self.variables)

    @property
    def variable_names(self) -> list[str]:
        """Variable names in header order."""
        return [variable.name for variable in self.variables]

    def arities(self, has_missing_values: bool) -> list[int]:
        """Per-variable arity, optionally including the missing bucket."""
        return [variable.arity(has_missing_values) for variable in self.variables]

    def iter_encoded(self, has_missing_values: bool) -> Iterator[NDArray[np.int32]]:
        """Yield each chunk encoded into category codes.

        Raises:
            RuntimeError: If the stream was already consumed.
        """
        if self._consumed:
            raise RuntimeError("StreamingReader can only be consumed once.")
        self._consumed = True
        for chunk in self._chunks:
            yield encode_frame(chunk.rename(columns=str), self.variables, has_missing_values)

    @classmethod
    def from_csv(
        cls,
        path: str,
        variables: list[Variable] | None = None,
        *,
        chunksize: int = 10_000,
    ) -> StreamingReader:
        """Stream a CSV file in chunks.

        Args:
            path: CSV file with a header row.
            variables: Header metadata.  When omitted, a first streaming pass
                collects the categories of every column.
            chunksize: Rows per chunk.

        Returns:
            A reader over the file.
        """
        if variables is None:
            variables = scan_csv_variables(path, chunksize=chunksize)
        chunks = pd.read_csv(path, chunksize=chunksize, dtype=str, keep_default_na=True)
        return cls(variables, chunks)


def scan_csv_variables(path: str, *, chunksize: int = 10_000) -> list[Variable]:
    """Collect the categories of every column of a CSV file chunk by chunk.

    Args:
        path: CSV file with a header row.
        chunksize: Rows per chunk.

    Returns:
        Variables in column order, categories sorted as text.
    """
    seen: dict[str, dict[Any, str]] = {}
    for chunk in pd.read_csv(path, chunksize=chunksize, dtype=str, keep_default_na=True):
        for name in chunk.columns:
            column = seen.setdefault(str(name), {})
            for value in chunk[name].dropna().unique():
                column.setdefault(_category_key(value), value)
    logger.debug("Scanned %d column(s) from %s.", len(seen), path)
    return [Variable(name, tuple(sorted(values.values()))) for name, values in seen.items()]
