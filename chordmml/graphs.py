"""Module for dealing with chordal graphs."""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from itertools import combinations

import networkx as nx

logger = logging.getLogger(__name__)


class ChordalGraph:
    """Undirected graph that only grows through chordality-preserving edges.

    Starting from the empty graph, an edge ``i - j`` is accepted only when the
    common neighbourhood of ``i`` and ``j`` separates them, which is exactly
    the condition for the augmented graph to remain chordal.
    """

    def __init__(self, nodes: list[int] | None = None) -> None:
        """ChordalGraph constructor.

        Args:
            nodes (list[int] | None, optional): Nodes. Defaults to None.
        """
        if nodes is None:
            nodes = []

        self._nodes: set[int] = set(nodes)
        self._edges: set[tuple[int, int]] = set()
        self._neighbors: defaultdict[int, set[int]] = defaultdict(set)

    def _add_edge(self, i: int, j: int) -> None:
        self._edges.add((min(i, j), max(i, j)))
        self._neighbors[i].add(j)
        self._neighbors[j].add(i)

    def neighbors(self, node: int) -> set[int]:
        """Gives all neighbors of node `node`.

        Args:
            node (int): node in current graph.

        Returns:
            set: set of neighbors.
        """
        if node in self._neighbors:
            return self._neighbors[node]
        else:
            return set()

    def is_adjacent(self, i: int, j: int) -> bool:
        """Return True if the graph contains an edge between i and j.

        Args:
            i (int): node i.
            j (int): node j.

        Returns:
            bool: True if i - j
        """
        return (min(i, j), max(i, j)) in self._edges

    def common_neighbors(self, i: int, j: int) -> set[int]:
        """Nodes adjacent to both i and j."""
        return self.neighbors(i) & self.neighbors(j)

    def separates(self, i: int, j: int, separator: set[int]) -> bool:
        """Return True if removing `separator` disconnects i from j.

        Args:
            i (int): first node
            j (int): second node
            separator (set[int]): nodes to remove, not containing i or j.

        Returns:
            bool: True if every path between i and j meets the separator.
        """
        visited = {i}
        frontier = deque([i])
        while frontier:
            node = frontier.popleft()
            for nbr in self.neighbors(node):
                if nbr == j:
                    return False
                if nbr not in visited and nbr not in separator:
                    visited.add(nbr)
                    frontier.append(nbr)
        return True

    def addable_separator(self, i: int, j: int) -> frozenset[int] | None:
        """Separator along which the cliques of i and j merge when i - j is added.

        Args:
            i (int): first node
            j (int): second node

        Returns:
            frozenset[int] | None: The common neighbourhood of i and j if adding
                i - j keeps the graph chordal, None otherwise (including when
                the edge already exists).
        """
        if i == j or self.is_adjacent(i, j):
            return None
        separator = self.common_neighbors(i, j)
        if self.separates(i, j, separator):
            return frozenset(separator)
        return None

    def add_edge(self, i: int, j: int) -> frozenset[int]:
        """Add edge i - j.

        Args:
            i (int): first node
            j (int): second node

        Raises:
            ValueError: if a node is unknown or the edge would break chordality

        Returns:
            frozenset[int]: separator of the merged cliques.
        """
        if i not in self._nodes or j not in self._nodes:
            raise ValueError(f"Edge ({i}, {j}) refers to a node outside the graph.")
        separator = self.addable_separator(i, j)
        if separator is None:
            raise ValueError(f"Adding edge ({i}, {j}) would not keep the graph chordal.")
        self._add_edge(i, j)
        return separator

    def connected_component(self, node: int) -> set[int]:
        """All nodes reachable from `node`, including itself."""
        component = {node}
        frontier = deque([node])
        while frontier:
            for nbr in self.neighbors(frontier.popleft()):
                if nbr not in component:
                    component.add(nbr)
                    frontier.append(nbr)
        return component

    def maximal_cliques(self) -> list[frozenset[int]]:
        """Maximal cliques, sorted by their smallest members.

        Returns:
            list[frozenset[int]]: cliques; isolated nodes are singletons.
        """
        cliques = [frozenset(c) for c in nx.find_cliques(self.to_networkx())]
        return sorted(cliques, key=lambda c: sorted(c))

    def junction_tree(self) -> tuple[list[frozenset[int]], list[frozenset[int]]]:
        """Cliques and separators of a junction forest of the graph.

        The forest is a maximum-weight spanning forest of the clique graph
        weighted by intersection size, which satisfies the running
        intersection property for chordal graphs.

        Returns:
            tuple: ``(cliques, separators)``; one separator per forest edge.
        """
        cliques = self.maximal_cliques()
        clique_graph = nx.Graph()
        clique_graph.add_nodes_from(range(len(cliques)))
        for a, b in combinations(range(len(cliques)), 2):
            weight = len(cliques[a] & cliques[b])
            if weight > 0:
                clique_graph.add_edge(a, b, weight=weight)

        forest = nx.maximum_spanning_tree(clique_graph, weight="weight")
        separators = [cliques[a] & cliques[b] for a, b in sorted(forest.edges)]
        return cliques, separators

    def to_networkx(self) -> nx.Graph:
        """Convert to networkx graph.

        Returns:
            nx.Graph: Undirected networkx graph.
        """
        nx_graph = nx.Graph()
        nx_graph.add_nodes_from(self.nodes)
        nx_graph.add_edges_from(self.edges)
        return nx_graph

    @property
    def nodes(self) -> list[int]:
        """Get all nodes in current graph.

        Returns:
            list: list of nodes.
        """
        return sorted(self._nodes)

    @property
    def num_nodes(self) -> int:
        """Number of nodes in current graph.

        Returns:
            int: Number of nodes
        """
        return len(self._nodes)

    @property
    def num_edges(self) -> int:
        """Number of edges in current graph.

        Returns:
            int: Number of edges
        """
        return len(self._edges)

    @property
    def edges(self) -> list[tuple[int, int]]:
        """Gives all edges in current graph.

        Returns:
            list[tuple[int,int]]: Sorted list of edges ``(i, j)`` with ``i < j``.
        """
        return sorted(self._edges)
