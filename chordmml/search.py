"""Greedy MML search for decomposable graphical models.

:class:`ChordalysisMML` starts from the model with no edges and repeatedly
adds the edge that most reduces the data-fit message length, as long as the
total message length (data fit plus graph structure) strictly decreases.

The estimator mirrors the scikit-learn API: configuration is passed to the
constructor, :meth:`ChordalysisMML.fit` returns *self*, and fitted state is
exposed through attributes with a trailing underscore.

References:
    Petitjean, F., Webb, G. I. and Nicholson, A. E. (2013).
    Scaling log-linear analysis to high-dimensional data.
    IEEE International Conference on Data Mining, pp. 597-606.

    Petitjean, F. and Webb, G. I. (2015).
    Scaling log-linear analysis to datasets with thousands of variables.
    SIAM International Conference on Data Mining, pp. 469-477.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any

import networkx as nx
import pandas as pd
from numpy.typing import NDArray
from sklearn.base import BaseEstimator

from chordmml.candidates import CandidateQueue
from chordmml.data import CategoricalDataset, StreamingReader, validate_variables
from chordmml.lattice import Lattice
from chordmml.message_length import MessageLengthComputer, StructureCostModel
from chordmml.model import DecomposableModel, GraphAction, ScoredGraphAction
from chordmml.scorer import GraphActionScorerMML

logger = logging.getLogger(__name__)


class TerminationReason(str, enum.Enum):
    """Why a search stopped."""

    NO_CANDIDATES = "no_candidates"
    NO_IMPROVEMENT = "no_improvement"
    BUDGET_EXHAUSTED = "budget_exhausted"


@dataclass(frozen=True)
class RunContext:
    """Dataset-level facts fixed for one search run.

    Attributes:
        n_instances: Number of rows.
        n_variables: Number of variables.
        arities: Cells per variable, including the missing bucket if any.
        has_missing_values: Whether a missing-value bucket was reserved.
        variable_names: Names in variable-index order.
    """

    n_instances: int
    n_variables: int
    arities: tuple[int, ...]
    has_missing_values: bool
    variable_names: tuple[str, ...]

    @property
    def max_edges(self) -> int:
        """Number of edges of the complete graph."""
        return self.n_variables * (self.n_variables - 1) // 2


@dataclass(frozen=True)
class SearchStep:
    """Message lengths right after an accepted edge."""

    action: GraphAction
    score: float
    data_fit_length: float
    structure_length: float

    @property
    def full_length(self) -> float:
        return self.data_fit_length + self.structure_length


@dataclass
class SearchResult:
    """Outcome of :meth:`ChordalysisMML.explore`.

    Attributes:
        model: The final decomposable model.
        actions: Accepted actions in acceptance order.
        steps: Message lengths after each accepted action.
        reason: Why the search stopped.
        data_fit_length: Final data-fit message length.
        structure_length: Final structure message length.
        rejected: The candidate that failed the improvement test, if any.
        rejected_full_length: Total message length that candidate would have
            produced.
    """

    model: DecomposableModel
    actions: list[ScoredGraphAction]
    steps: list[SearchStep]
    reason: TerminationReason
    data_fit_length: float
    structure_length: float
    rejected: ScoredGraphAction | None = None
    rejected_full_length: float | None = field(default=None)

    @property
    def full_length(self) -> float:
        """Total message length of the final model."""
        return self.data_fit_length + self.structure_length

    @property
    def n_edges(self) -> int:
        """Number of edges of the final model."""
        return self.model.n_edges

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"SearchResult(n_edges={self.n_edges}, reason={self.reason.value}, "
            f"full_length={self.full_length:.3f})"
        )


class ChordalysisMML(BaseEstimator):
    """Learn a decomposable model by greedy MML edge addition.

    Args:
        has_missing_values: Reserve an extra "missing" category in every
            variable.  Applies to both in-memory and streamed data.
            Defaults to True.
        max_n_steps: Optional budget on the number of edges in the model.
            When reached, the search stops with
            :attr:`TerminationReason.BUDGET_EXHAUSTED` even if improving
            candidates remain.  Defaults to None (no budget).
        n_jobs: Threads used to rescore candidates.  Defaults to 1.

    Attributes set after :meth:`initialize` / :meth:`fit`:
        context_ (RunContext): Dataset facts for this run.
        lattice_ (Lattice): Contingency counts.
        computer_ (MessageLengthComputer): Clique message lengths.
        structure_cost_ (StructureCostModel): Graph structure cost.
        scorer_ (GraphActionScorerMML): Candidate scorer.
        model_ (DecomposableModel): Model being grown.
        queue_ (CandidateQueue): Candidate edges.
        actions_ (list[ScoredGraphAction]): Accepted actions, in order.
        trace_ (list[SearchStep]): Message lengths after each accepted action.
        result_ (SearchResult): Set by :meth:`explore`.

    Example::

        est = ChordalysisMML(has_missing_values=False).fit(df)
        print(est.edges_)
        print(est.result_.reason)
    """

    def __init__(
        self,
        has_missing_values: bool = True,
        max_n_steps: int | None = None,
        n_jobs: int = 1,
    ) -> None:
        self.has_missing_values = has_missing_values
        self.max_n_steps = max_n_steps
        self.n_jobs = n_jobs

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def fit(self, x: pd.DataFrame | NDArray[Any] | CategoricalDataset, y: None = None) -> ChordalysisMML:
        """Initialise on *x* and run the search.

        Args:
            x: Categorical data of shape ``(n_instances, n_variables)``.
            y: Ignored.

        Returns:
            *self* -- enables method chaining.
        """
        self.initialize(x)
        self.explore()
        return self

    def fit_stream(self, reader: StreamingReader) -> ChordalysisMML:
        """Initialise from a chunked reader and run the search.

        Returns:
            *self* -- enables method chaining.
        """
        self.initialize_stream(reader)
        self.explore()
        return self

    def initialize(self, x: pd.DataFrame | NDArray[Any] | CategoricalDataset) -> ChordalysisMML:
        """Build every search structure from a materialised dataset.

        No search step is taken.

        Raises:
            InputStructureError: If the data has no variables, no rows, or a
                variable with fewer than two categories.
        """
        dataset = x if isinstance(x, CategoricalDataset) else CategoricalDataset(x)
        validate_variables(dataset.variables)
        lattice = Lattice.from_dataset(dataset, self.has_missing_values)
        self._setup(lattice, dataset.variable_names)
        return self

    def initialize_stream(self, reader: StreamingReader) -> ChordalysisMML:
        """Build every search structure from a chunked reader.

        The number of instances is taken from the lattice once the stream is
        exhausted.

        Raises:
            InputStructureError: See :meth:`initialize`.
        """
        validate_variables(reader.variables)
        lattice = Lattice.from_stream(reader, self.has_missing_values)
        self._setup(lattice, reader.variable_names)
        return self

    def explore(self) -> SearchResult:
        """Run the greedy search from the current model.

        Returns:
            The search outcome, also stored in :attr:`result_`.

        Raises:
            RuntimeError: If the estimator was not initialised.
            ValueError: If ``max_n_steps`` is negative.
        """
        self._check_initialized()
        if self.max_n_steps is not None and self.max_n_steps < 0:
            raise ValueError(f"`max_n_steps` must be non-negative, got {self.max_n_steps}.")

        queue, model, cost = self.queue_, self.model_, self.structure_cost_
        queue.process_stored_modifications()

        data_fit = model.message_length(self.computer_)
        structure = cost.cost(model.n_edges)
        full = data_fit + structure
        logger.info(
            "Starting search: %d variable(s), %d instance(s), %d candidate(s), message length %.3f.",
            self.context_.n_variables,
            self.context_.n_instances,
            len(queue),
            full,
        )

        rejected: ScoredGraphAction | None = None
        rejected_full: float | None = None
        while True:
            if self.max_n_steps is not None and model.n_edges >= self.max_n_steps:
                reason = TerminationReason.BUDGET_EXHAUSTED
                break
            if queue.is_empty():
                reason = TerminationReason.NO_CANDIDATES
                break

            todo = queue.poll()
            candidate_data_fit = data_fit - todo.score
            candidate_structure = cost.cost(model.n_edges + 1)
            candidate_full = candidate_data_fit + candidate_structure

            if candidate_full >= full:
                queue.restore(todo)
                rejected, rejected_full = todo, candidate_full
                reason = TerminationReason.NO_IMPROVEMENT
                logger.debug("Rejected %r: %.3f >= %.3f.", todo.action, candidate_full, full)
                break

            model.perform_action(todo.action, queue)
            self.actions_.append(todo)
            data_fit, structure, full = candidate_data_fit, candidate_structure, candidate_full
            self.trace_.append(SearchStep(todo.action, todo.score, data_fit, structure))
            logger.debug("Accepted %r (gain %.3f); message length %.3f.", todo.action, todo.score, full)

            queue.process_stored_modifications()

        self.result_ = SearchResult(
            model=model,
            actions=list(self.actions_),
            steps=list(self.trace_),
            reason=reason,
            data_fit_length=data_fit,
            structure_length=structure,
            rejected=rejected,
            rejected_full_length=rejected_full,
        )
        logger.info("Search stopped (%s) with %d edge(s).", reason.value, model.n_edges)
        return self.result_

    # ------------------------------------------------------------------
    # Fitted attributes
    # ------------------------------------------------------------------

    @property
    def n_instances_(self) -> int:
        """Number of instances of the data."""
        self._check_initialized()
        return self.context_.n_instances

    @property
    def termination_reason_(self) -> TerminationReason:
        """Why the last :meth:`explore` stopped.

        Raises:
            RuntimeError: If :meth:`explore` has not been called.
        """
        if getattr(self, "result_", None) is None:
            raise RuntimeError("Call .fit() or .explore() before accessing termination_reason_.")
        return self.result_.reason

    @property
    def edges_(self) -> list[tuple[str, str]]:
        """Accepted edges as variable-name pairs, in acceptance order."""
        self._check_initialized()
        names = self.context_.variable_names
        return [(names[a.first], names[a.second]) for a in self.actions_]

    @property
    def graph_(self) -> nx.Graph:
        """The model graph labelled with variable names."""
        self._check_initialized()
        names = dict(enumerate(self.context_.variable_names))
        return nx.relabel_nodes(self.model_.graph.to_networkx(), names, copy=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_initialized(self) -> None:
        if getattr(self, "model_", None) is None:
            raise RuntimeError("Call .fit() or .initialize() first.")

    def _setup(self, lattice: Lattice, names: list[str]) -> None:
        n_variables = lattice.n_variables
        self.context_ = RunContext(
            n_instances=lattice.n_instances,
            n_variables=n_variables,
            arities=tuple(lattice.arities),
            has_missing_values=self.has_missing_values,
            variable_names=tuple(names),
        )
        variables = list(range(n_variables))

        self.lattice_ = lattice
        self.computer_ = MessageLengthComputer(
            self.context_.n_instances, lattice, table_size=self.context_.max_edges
        )
        self.structure_cost_ = StructureCostModel(n_variables, self.computer_)
        self.scorer_ = GraphActionScorerMML(self.computer_)
        self.model_ = DecomposableModel(variables, list(lattice.arities))
        self.queue_ = CandidateQueue(n_variables, self.model_, self.scorer_, n_jobs=self.n_jobs)
        for i in range(n_variables):
            for j in range(i + 1, n_variables):
                self.queue_.enable_edge(i, j)

        self.actions_: list[ScoredGraphAction] = []
        self.trace_: list[SearchStep] = []
        self.result_: SearchResult | None = None
        logger.debug(
            "Initialised %d variable(s) with arities %s; %d candidate edge(s).",
            n_variables,
            list(lattice.arities),
            self.queue_.n_enabled,
        )
