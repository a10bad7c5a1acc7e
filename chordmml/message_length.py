r"""Minimum Message Length (MML) code lengths.

Two costs make up the total message length of a decomposable model:

* the **data-fit** cost, computed clique by clique by
  :class:`MessageLengthComputer` from the contingency counts of a
  :class:`~chordmml.lattice.Lattice`;
* the **structure** cost, computed by :class:`StructureCostModel`, of stating
  how many and which edges of the complete graph were selected.

All quantities are natural-log code lengths (nits) and are evaluated in log
space through precomputed log-factorial tables.

The data-fit cost of a variable subset :math:`X` with :math:`K` cells and
observed counts :math:`n_c` uses the adaptive multinomial code

.. math::

    L(X) = \log \frac{(N + K - 1)!}{(K - 1)!} - \sum_c \log n_c!

References:
    Petitjean, F., Webb, G. I. and Nicholson, A. E. (2013).
    Scaling log-linear analysis to high-dimensional data.
    IEEE International Conference on Data Mining, pp. 597-606.

    Wallace, C. S. (2005).
    Statistical and Inductive Inference by Minimum Message Length.
    Springer.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Iterable
from typing import Any

import numpy as np
from numpy.typing import NDArray
from scipy.special import gammaln

from chordmml.lattice import Lattice

logger = logging.getLogger(__name__)

# Above this many cells a gammaln difference loses too many digits.
_LARGE_CELL_COUNT = 2**40


def _log_factorial_table(size: int) -> NDArray[Any]:
    """Table of ``log(k!)`` for ``k = 0 .. size - 1``."""
    table = np.zeros(size)
    if size > 1:
        table[1:] = np.cumsum(np.log(np.arange(1, size, dtype=float)))
    return table


class MessageLengthComputer:
    """Clique message lengths backed by log-factorial lookup tables.

    Args:
        n_instances: Number of rows of the data.
        lattice: Source of contingency counts.
        table_size: Minimum number of table entries.  The tables always cover
            ``0 .. n_instances``; pass a larger value when other callers (the
            structure cost) need bigger factorials.
    """

    def __init__(self, n_instances: int, lattice: Lattice, table_size: int | None = None) -> None:
        self.n_instances = n_instances
        self.lattice = lattice

        size = max(n_instances, table_size or 0) + 1
        self._log_factorials = _log_factorial_table(size)
        with np.errstate(divide="ignore"):
            self._logs = np.log(np.arange(size, dtype=float))

        self._lengths: dict[frozenset[int], float] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lookup tables
    # ------------------------------------------------------------------

    @property
    def log_factorials(self) -> NDArray[Any]:
        """Read-only view of the ``log(k!)`` table."""
        view = self._log_factorials.view()
        view.flags.writeable = False
        return view

    def log_factorial(self, k: int) -> float:
        """``log(k!)``, from the table when *k* is in range."""
        if k < 0:
            raise ValueError(f"Factorial of a negative number: {k}.")
        if k < len(self._log_factorials):
            return float(self._log_factorials[k])
        return float(gammaln(k + 1.0))

    def get_log_from_table(self, k: int) -> float:
        """``log(k)``, from the table when *k* is in range."""
        if k <= 0:
            raise ValueError(f"Logarithm of a non-positive number: {k}.")
        if k < len(self._logs):
            return float(self._logs[k])
        return math.log(k)

    def _log_rising_factorial(self, k: int, n: int) -> float:
        """``log((k + n - 1)! / (k - 1)!)``, i.e. ``sum(log(k + i) for i < n)``."""
        if n == 0:
            return 0.0
        if k + n - 1 < len(self._log_factorials):
            return float(self._log_factorials[k + n - 1] - self._log_factorials[k - 1])
        if k < _LARGE_CELL_COUNT:
            return float(gammaln(float(k + n)) - gammaln(float(k)))
        steps = np.arange(n, dtype=float)
        return n * math.log(k) + float(np.sum(np.log1p(steps / k)))

    # ------------------------------------------------------------------
    # Message lengths
    # ------------------------------------------------------------------

    def message_length(self, subset: Iterable[int]) -> float:
        """Code length of the data projected on *subset*.

        Args:
            subset: Variable indices.  The empty set costs nothing.

        Returns:
            Message length in nits.
        """
        key = frozenset(subset)
        if not key:
            return 0.0
        with self._lock:
            cached = self._lengths.get(key)
        if cached is not None:
            return cached

        n_cells = self.lattice.n_cells(key)
        counts = self.lattice.counts(key)
        length = self._log_rising_factorial(n_cells, self.n_instances) - float(
            np.sum(self._log_factorials[counts])
        )
        with self._lock:
            self._lengths.setdefault(key, length)
        return length


class StructureCostModel:
    r"""Cost of encoding which edges of the complete graph are present.

    For :math:`V` variables there are :math:`M = V(V-1)/2` possible edges.
    Stating the edge count costs :math:`\log(M+1)` under a uniform prior, and
    stating which :math:`k` edges were chosen costs
    :math:`\log \binom{M}{k}`:

    .. math::

        \mathrm{cost}(k) = \log(M+1) + \log M! - \log k! - \log (M-k)!

    Args:
        n_variables: Number of variables :math:`V`.
        computer: Provides the log-factorial tables.
    """

    def __init__(self, n_variables: int, computer: MessageLengthComputer) -> None:
        if n_variables < 1:
            raise ValueError(f"`n_variables` must be positive, got {n_variables}.")
        self.n_variables = n_variables
        self.computer = computer
        self.max_edges = n_variables * (n_variables - 1) // 2

    def edge_count_cost(self) -> float:
        """Fixed cost of stating the number of edges."""
        return self.computer.get_log_from_table(self.max_edges + 1)

    def cost(self, n_edges: int) -> float:
        """Structure message length of a graph with *n_edges* edges.

        Raises:
            ValueError: If *n_edges* is outside ``[0, M]``.
        """
        if not 0 <= n_edges <= self.max_edges:
            raise ValueError(f"`n_edges` must be in [0, {self.max_edges}], got {n_edges}.")
        lf = self.computer.log_factorial
        return (
            self.edge_count_cost()
            + lf(self.max_edges)
            - lf(n_edges)
            - lf(self.max_edges - n_edges)
        )
