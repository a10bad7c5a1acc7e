"""CHORDMML: decomposable graphical models learned by Minimum Message Length.

This package learns a decomposable (chordal) graphical model from a
categorical dataset.  Starting from the model in which all variables are
independent, it greedily adds the edge that most reduces the data-fit message
length and stops as soon as no edge lowers the total message length of model
structure plus data.

Main Classes:
    ChordalysisMML: Estimator running the greedy search.
    CategoricalDataset: In-memory categorical data.
    StreamingReader: Chunked categorical data, e.g. a large CSV file.

Example:
    Two associated variables and one independent variable.

    >>> import numpy as np
    >>> import pandas as pd
    >>> from chordmml import ChordalysisMML
    >>> rng = np.random.default_rng(0)
    >>> a = rng.integers(0, 2, size=1000)
    >>> b = np.where(rng.random(1000) < 0.9, a, 1 - a)
    >>> c = rng.integers(0, 3, size=1000)
    >>> df = pd.DataFrame({"a": a, "b": b, "c": c})
    >>> est = ChordalysisMML(has_missing_values=False).fit(df)
    >>> est.edges_
    [('a', 'b')]

References:
    Petitjean, F., Webb, G. I. and Nicholson, A. E. (2013).
    Scaling log-linear analysis to high-dimensional data.
    IEEE International Conference on Data Mining, pp. 597-606.

    Petitjean, F. and Webb, G. I. (2015).
    Scaling log-linear analysis to datasets with thousands of variables.
    SIAM International Conference on Data Mining, pp. 469-477.
"""

__version__ = "0.1.0"

import logging

from chordmml.candidates import CandidateQueue, StaleScoreError
from chordmml.data import (
    CategoricalDataset,
    InputStructureError,
    StreamingReader,
    Variable,
    infer_variables,
    scan_csv_variables,
)
from chordmml.graphs import ChordalGraph
from chordmml.lattice import Lattice
from chordmml.message_length import MessageLengthComputer, StructureCostModel
from chordmml.model import DecomposableModel, GraphAction, ScoredGraphAction
from chordmml.scorer import GraphActionScorer, GraphActionScorerMML
from chordmml.search import (
    ChordalysisMML,
    RunContext,
    SearchResult,
    SearchStep,
    TerminationReason,
)

__all__ = [
    # Search
    "ChordalysisMML",
    "RunContext",
    "SearchResult",
    "SearchStep",
    "TerminationReason",
    # Data
    "CategoricalDataset",
    "StreamingReader",
    "Variable",
    "infer_variables",
    "scan_csv_variables",
    "Lattice",
    # Message lengths
    "MessageLengthComputer",
    "StructureCostModel",
    # Models and candidates
    "ChordalGraph",
    "DecomposableModel",
    "GraphAction",
    "ScoredGraphAction",
    "GraphActionScorer",
    "GraphActionScorerMML",
    "CandidateQueue",
    # Errors
    "InputStructureError",
    "StaleScoreError",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
