"""Decomposable models and the edge-addition actions that grow them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import combinations
from typing import TYPE_CHECKING

from chordmml.graphs import ChordalGraph

if TYPE_CHECKING:
    from chordmml.candidates import CandidateQueue
    from chordmml.message_length import MessageLengthComputer

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class GraphAction:
    """Addition of the edge ``first - second``, normalised to ``first < second``."""

    first: int
    second: int

    def __post_init__(self) -> None:
        if self.first == self.second:
            raise ValueError(f"An edge needs two distinct variables, got ({self.first}, {self.second}).")
        if self.first > self.second:
            first, second = self.second, self.first
            object.__setattr__(self, "first", first)
            object.__setattr__(self, "second", second)

    def __repr__(self) -> str:
        """Return string representation."""
        return f"GraphAction({self.first} - {self.second})"


@dataclass(frozen=True)
class ScoredGraphAction:
    """A :class:`GraphAction` with the data-fit reduction it achieves.

    Attributes:
        action: The edge addition.
        score: Decrease in data-fit message length if the edge is added to the
            model the score was computed against.  Positive means better.
    """

    action: GraphAction
    score: float

    @property
    def first(self) -> int:
        return self.action.first

    @property
    def second(self) -> int:
        return self.action.second


class DecomposableModel:
    """A decomposable model grown one edge at a time.

    The model is a chordal graph over variable indices; its cliques are the
    maximal cliques of that graph.  Initially every variable is its own
    singleton clique.

    Args:
        variables: Variable indices.
        arities: Number of cells of each variable, in the same order.
    """

    def __init__(self, variables: list[int], arities: list[int]) -> None:
        if len(variables) != len(arities):
            raise ValueError(f"Got {len(variables)} variable(s) but {len(arities)} arities.")
        self.variables = list(variables)
        self.arities = dict(zip(variables, arities))
        self.graph = ChordalGraph(nodes=self.variables)

    @property
    def n_edges(self) -> int:
        """Number of edges accepted so far."""
        return self.graph.num_edges

    def separator_for(self, action: GraphAction) -> frozenset[int] | None:
        """Separator along which *action* merges two cliques.

        Returns:
            The separator, or None if the edge is present or would break
            decomposability.
        """
        return self.graph.addable_separator(action.first, action.second)

    def message_length(self, computer: MessageLengthComputer) -> float:
        """Exact data-fit message length of the model.

        Sum of the clique message lengths minus the separator message lengths
        over a junction tree.
        """
        cliques, separators = self.graph.junction_tree()
        return sum(computer.message_length(c) for c in cliques) - sum(
            computer.message_length(s) for s in separators
        )

    def perform_action(self, action: GraphAction, queue: CandidateQueue | None = None) -> set[GraphAction]:
        """Add the edge of *action* and invalidate the scores it affects.

        Only pairs inside the connected component that now holds both
        endpoints can see their separator or addability change; candidates
        elsewhere keep their scores.

        Args:
            action: Edge to add.
            queue: Candidate queue to notify.  The action itself is removed
                from it and the affected candidates are marked stale.

        Returns:
            The candidate pairs whose scores are now stale.

        Raises:
            ValueError: If the edge cannot be added.
        """
        separator = self.graph.add_edge(action.first, action.second)
        component = self.graph.connected_component(action.first)
        stale = {
            GraphAction(i, j) for i, j in combinations(sorted(component), 2) if not self.graph.is_adjacent(i, j)
        }
        logger.debug(
            "Added %r along separator %s; %d pair(s) to rescore.",
            action,
            sorted(separator),
            len(stale),
        )

        if queue is not None:
            queue.discard(action)
            queue.mark_stale(stale)
        return stale
