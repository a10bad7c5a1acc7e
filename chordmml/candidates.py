"""Best-first priority queue over candidate edge additions.

Candidates move through three states:

* **dirty**: enabled but without a score valid for the current model.  New
  candidates and candidates invalidated by a model change are dirty.
* **scored**: carrying a score computed against the current model; only
  scored candidates can be polled.
* **unaddable**: scored as not applicable (the edge would break
  decomposability).  They stay enabled and become dirty again when a model
  change touches them.

Scores are never recomputed on the fly: :meth:`CandidateQueue.process_stored_modifications`
is the single flush point, and polling while candidates are dirty raises
:class:`StaleScoreError`.
"""

from __future__ import annotations

import heapq
import logging
import math
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor

from chordmml.model import DecomposableModel, GraphAction, ScoredGraphAction
from chordmml.scorer import GraphActionScorer

logger = logging.getLogger(__name__)


class StaleScoreError(RuntimeError):
    """Raised when a candidate would be polled without a current score."""


class CandidateQueue:
    """Candidates ordered by score, best first.

    Equal scores are broken by the lowest ``(first, second)`` variable pair,
    which makes every search run reproducible.

    Args:
        n_variables: Number of variables; candidates must lie in
            ``[0, n_variables)``.
        model: Model the scores are computed against.
        scorer: Candidate scorer.
        n_jobs: Worker threads used when flushing.  Defaults to 1.
    """

    def __init__(
        self,
        n_variables: int,
        model: DecomposableModel,
        scorer: GraphActionScorer,
        n_jobs: int = 1,
    ) -> None:
        if n_jobs < 1:
            raise ValueError(f"`n_jobs` must be at least 1, got {n_jobs}.")
        self.n_variables = n_variables
        self.model = model
        self.scorer = scorer
        self.n_jobs = n_jobs

        self._enabled: set[GraphAction] = set()
        self._dirty: set[GraphAction] = set()
        self._scores: dict[GraphAction, float] = {}
        self._versions: dict[GraphAction, int] = {}
        self._heap: list[tuple[float, int, int, int]] = []

    # ------------------------------------------------------------------
    # Candidate bookkeeping
    # ------------------------------------------------------------------

    def _bump(self, action: GraphAction) -> int:
        version = self._versions.get(action, 0) + 1
        self._versions[action] = version
        return version

    def _push(self, action: GraphAction, score: float) -> None:
        version = self._bump(action)
        self._scores[action] = score
        heapq.heappush(self._heap, (-score, action.first, action.second, version))

    def enable_edge(self, i: int, j: int) -> None:
        """Enable the candidate ``i - j``; it stays dirty until the next flush.

        Raises:
            ValueError: If a variable index is out of range.
        """
        if not (0 <= i < self.n_variables and 0 <= j < self.n_variables):
            raise ValueError(f"Edge ({i}, {j}) is outside [0, {self.n_variables}).")
        action = GraphAction(i, j)
        if action in self._enabled:
            return
        self._enabled.add(action)
        self._dirty.add(action)

    def mark_stale(self, actions: Iterable[GraphAction]) -> None:
        """Invalidate the scores of *actions*; disabled ones are ignored."""
        for action in actions:
            if action in self._enabled:
                self._bump(action)
                self._scores.pop(action, None)
                self._dirty.add(action)

    def discard(self, action: GraphAction) -> None:
        """Remove *action* from the candidate space."""
        self._enabled.discard(action)
        self._dirty.discard(action)
        self._scores.pop(action, None)
        self._bump(action)

    def process_stored_modifications(self) -> int:
        """Rescore every dirty candidate against the current model.

        Scoring is spread over ``n_jobs`` threads and completes before this
        method returns; afterwards no candidate is dirty.

        Returns:
            Number of candidates rescored.

        Raises:
            ValueError: If the scorer returns a non-finite score.
        """
        pending = sorted(self._dirty)
        if not pending:
            return 0

        if self.n_jobs > 1 and len(pending) > 1:
            with ThreadPoolExecutor(max_workers=self.n_jobs) as executor:
                scores = list(executor.map(lambda a: self.scorer.score(self.model, a), pending))
        else:
            scores = [self.scorer.score(self.model, action) for action in pending]

        n_addable = 0
        for action, score in zip(pending, scores):
            if score is None:
                continue
            if not math.isfinite(score):
                raise ValueError(f"Non-finite score {score} for {action!r}.")
            self._push(action, float(score))
            n_addable += 1

        self._dirty.clear()
        logger.debug("Rescored %d candidate(s); %d addable.", len(pending), n_addable)
        return len(pending)

    # ------------------------------------------------------------------
    # Queue access
    # ------------------------------------------------------------------

    def _check_settled(self) -> None:
        if self._dirty:
            raise StaleScoreError(
                f"{len(self._dirty)} candidate(s) have no current score; "
                "call process_stored_modifications() first."
            )

    def _prune(self) -> None:
        while self._heap:
            _, first, second, version = self._heap[0]
            if self._versions.get(GraphAction(first, second)) == version:
                return
            heapq.heappop(self._heap)

    def is_empty(self) -> bool:
        """True when no scored candidate is left.

        Raises:
            StaleScoreError: If candidates are dirty.
        """
        self._check_settled()
        return not self._scores

    def peek(self) -> ScoredGraphAction:
        """Best candidate without removing it.

        Raises:
            StaleScoreError: If candidates are dirty.
            IndexError: If the queue is empty.
        """
        self._check_settled()
        self._prune()
        if not self._heap:
            raise IndexError("peek from an empty CandidateQueue")
        neg_score, first, second, _ = self._heap[0]
        return ScoredGraphAction(GraphAction(first, second), -neg_score)

    def poll(self) -> ScoredGraphAction:
        """Remove and return the best candidate.

        Raises:
            StaleScoreError: If candidates are dirty.
            IndexError: If the queue is empty.
        """
        best = self.peek()
        heapq.heappop(self._heap)
        action = best.action
        assert self._scores[action] == best.score
        del self._scores[action]
        self._enabled.discard(action)
        self._bump(action)
        return best

    def restore(self, scored: ScoredGraphAction) -> None:
        """Put back a polled candidate whose score is still current.

        Raises:
            ValueError: If the edge is already in the model.
        """
        action = scored.action
        if self.model.graph.is_adjacent(action.first, action.second):
            raise ValueError(f"{action!r} is already part of the model.")
        self._enabled.add(action)
        self._dirty.discard(action)
        self._push(action, scored.score)

    def __len__(self) -> int:
        """Number of scored candidates."""
        return len(self._scores)

    @property
    def n_enabled(self) -> int:
        """Number of enabled candidates, scored or not."""
        return len(self._enabled)

    @property
    def n_dirty(self) -> int:
        """Number of candidates waiting for a score."""
        return len(self._dirty)
