"""Contingency-table counts for arbitrary subsets of categorical variables."""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Iterable
from typing import Any

import numpy as np
from numpy.typing import NDArray

from chordmml.data import CategoricalDataset, InputStructureError, StreamingReader

logger = logging.getLogger(__name__)

_MAX_RAVEL_CELLS = 2**62


class Lattice:
    """Sufficient statistics over every subset of variables.

    Counts are computed on demand from the encoded data and cached by subset,
    so the clique marginals needed by the search are only tabulated once.

    Args:
        codes: Integer category codes, shape ``(n_instances, n_variables)``.
        arities: Number of cells of each variable.

    Raises:
        InputStructureError: If there are no rows or no variables.
    """

    def __init__(self, codes: NDArray[Any], arities: list[int]) -> None:
        codes = np.asarray(codes)
        if codes.ndim != 2:
            raise ValueError(f"Expected a 2-D code matrix, got shape {codes.shape}.")
        if codes.shape[1] != len(arities):
            raise ValueError(f"Got {codes.shape[1]} column(s) but {len(arities)} arities.")
        if codes.shape[1] == 0:
            raise InputStructureError("The dataset has no variables.")
        if codes.shape[0] == 0:
            raise InputStructureError("The dataset has no instances.")

        self._codes = codes
        self.arities = list(arities)
        self._counts: dict[frozenset[int], NDArray[np.int64]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_dataset(cls, dataset: CategoricalDataset, has_missing_values: bool) -> Lattice:
        """Build the lattice from a materialised dataset."""
        return cls(dataset.encode(has_missing_values), dataset.arities(has_missing_values))

    @classmethod
    def from_stream(cls, reader: StreamingReader, has_missing_values: bool) -> Lattice:
        """Build the lattice chunk by chunk.

        Encoded chunks are copied into a single buffer that grows in place,
        so the code matrix is never held twice.  The number of instances is
        whatever the stream delivered.
        """
        arities = reader.arities(has_missing_values)
        codes = np.empty((0, len(arities)), dtype=np.int32)
        n_rows = n_chunks = 0
        for block in reader.iter_encoded(has_missing_values):
            end = n_rows + block.shape[0]
            if end > codes.shape[0]:
                codes.resize((max(end, 2 * codes.shape[0]), len(arities)), refcheck=False)
            codes[n_rows:end] = block
            n_rows = end
            n_chunks += 1
        codes.resize((n_rows, len(arities)), refcheck=False)
        logger.debug("Streamed %d row(s) in %d chunk(s).", n_rows, n_chunks)
        return cls(codes, arities)

    @property
    def n_instances(self) -> int:
        """Number of rows."""
        return int(self._codes.shape[0])

    @property
    def n_variables(self) -> int:
        """Number of variables."""
        return int(self._codes.shape[1])

    def n_cells(self, subset: Iterable[int]) -> int:
        """Number of cells of the full contingency table over *subset*."""
        return math.prod(self.arities[i] for i in subset)

    def counts(self, subset: Iterable[int]) -> NDArray[np.int64]:
        """Counts of the non-empty cells of the table over *subset*.

        Args:
            subset: Variable indices.

        Returns:
            1-D array of positive counts summing to :attr:`n_instances`.
        """
        key = frozenset(subset)
        with self._lock:
            cached = self._counts.get(key)
        if cached is not None:
            return cached

        counts = self._tabulate(sorted(key))
        with self._lock:
            self._counts.setdefault(key, counts)
        return counts

    def _tabulate(self, columns: list[int]) -> NDArray[np.int64]:
        if not columns:
            return np.array([self.n_instances], dtype=np.int64)

        block = self._codes[:, columns]
        dims = tuple(self.arities[i] for i in columns)
        if math.prod(dims) < _MAX_RAVEL_CELLS:
            flat = np.ravel_multi_index(tuple(block.T.astype(np.int64)), dims)
            _, counts = np.unique(flat, return_counts=True)
        else:
            _, counts = np.unique(block, axis=0, return_counts=True)
        return counts.astype(np.int64)
