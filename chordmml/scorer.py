"""Scoring of candidate edge additions."""

from __future__ import annotations

from abc import ABC, abstractmethod

from chordmml.message_length import MessageLengthComputer
from chordmml.model import DecomposableModel, GraphAction


class GraphActionScorer(ABC):
    """Abstract base class for candidate scorers.

    A scorer returns the improvement achieved by applying an action to the
    current model; scores computed against the same model are comparable.
    """

    @abstractmethod
    def score(self, model: DecomposableModel, action: GraphAction) -> float | None:
        """Improvement of *action* on *model*, or None if it cannot be applied."""


class GraphActionScorerMML(GraphActionScorer):
    r"""Reduction in data-fit message length from adding an edge.

    Adding ``a - b`` along separator :math:`S` replaces the cliques
    :math:`S \cup \{a\}` and :math:`S \cup \{b\}` by :math:`S \cup \{a, b\}`,
    so the reduction is

    .. math::

        L(S \cup a) + L(S \cup b) - L(S \cup \{a, b\}) - L(S).

    Args:
        computer: Clique message lengths.
    """

    def __init__(self, computer: MessageLengthComputer) -> None:
        self.computer = computer

    def score(self, model: DecomposableModel, action: GraphAction) -> float | None:
        separator = model.separator_for(action)
        if separator is None:
            return None
        length = self.computer.message_length
        a, b = action.first, action.second
        return (
            length(separator | {a})
            + length(separator | {b})
            - length(separator | {a, b})
            - length(separator)
        )
