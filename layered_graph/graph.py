"""Pairwise graph storage used by the layered builder."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Protocol, Sequence

import numpy as np

from .types import PreconditionError

logger = logging.getLogger(__name__)


class StoredEdge(Protocol):
    src: int
    dst: int
    group: int


class GraphStore(Protocol):
    """Capabilities the builder needs from a pairwise graph container."""

    def reset(self) -> None: ...

    def add_node(self, n_states: int) -> int: ...

    def add_edge(self, src: int, dst: int, group: int = 0) -> int: ...

    def set_node_potential(self, node: int, pot: np.ndarray) -> None: ...

    def set_edge_potential(self, edge: int, pot: np.ndarray) -> None: ...

    def get_edges(self) -> Sequence[StoredEdge]: ...

    @property
    def num_nodes(self) -> int: ...

    @property
    def num_edges(self) -> int: ...


@dataclass
class GraphEdge:
    """Undirected edge record; endpoints are fixed, ``group`` is mutable."""

    src: int
    dst: int
    group: int
    potential: np.ndarray = field(repr=False)


class InMemoryGraph:
    """Reference :class:`GraphStore` keeping potentials as numpy arrays.

    New nodes and edges start with uniform (all ones) potentials. Potentials
    are stored as float32 whatever dtype the caller passes. Writes to
    distinct nodes or edges touch distinct list slots and may run from several
    threads at once.
    """

    def __init__(self) -> None:
        self._node_pots: List[np.ndarray] = []
        self._edges: List[GraphEdge] = []

    def reset(self) -> None:
        logger.debug("Resetting graph with %d nodes and %d edges", len(self._node_pots), len(self._edges))
        self._node_pots = []
        self._edges = []

    def add_node(self, n_states: int) -> int:
        if n_states <= 0:
            raise PreconditionError(f"node needs at least one state, got {n_states}")
        self._node_pots.append(np.ones(n_states, dtype=np.float32))
        return len(self._node_pots) - 1

    def add_edge(self, src: int, dst: int, group: int = 0) -> int:
        self._check_node(src)
        self._check_node(dst)
        if src == dst:
            raise PreconditionError(f"edge endpoints must differ, got {src} twice")
        shape = (self._node_pots[src].size, self._node_pots[dst].size)
        self._edges.append(GraphEdge(src, dst, group, np.ones(shape, dtype=np.float32)))
        return len(self._edges) - 1

    def set_node_potential(self, node: int, pot: np.ndarray) -> None:
        self._check_node(node)
        vec = np.asarray(pot, dtype=np.float32).reshape(-1)
        expected = self._node_pots[node].size
        if vec.size != expected:
            raise PreconditionError(f"node {node} has {expected} states, got potential of size {vec.size}")
        self._node_pots[node] = vec.copy()

    def set_edge_potential(self, edge: int, pot: np.ndarray) -> None:
        rec = self.get_edge(edge)
        mat = np.asarray(pot, dtype=np.float32)
        if mat.shape != rec.potential.shape:
            raise PreconditionError(
                f"edge {edge} expects potential of shape {rec.potential.shape}, got {mat.shape}"
            )
        rec.potential = mat.copy()

    def get_node_potential(self, node: int) -> np.ndarray:
        self._check_node(node)
        return self._node_pots[node]

    def get_edge_potential(self, edge: int) -> np.ndarray:
        return self.get_edge(edge).potential

    def get_edge(self, edge: int) -> GraphEdge:
        if not 0 <= edge < len(self._edges):
            raise PreconditionError(f"edge id {edge} outside [0, {len(self._edges)})")
        return self._edges[edge]

    def get_edges(self) -> Sequence[GraphEdge]:
        return self._edges

    @property
    def num_nodes(self) -> int:
        return len(self._node_pots)

    @property
    def num_edges(self) -> int:
        return len(self._edges)

    def _check_node(self, node: int) -> None:
        if not 0 <= node < len(self._node_pots):
            raise PreconditionError(f"node id {node} outside [0, {len(self._node_pots)})")


__all__ = ["GraphEdge", "GraphStore", "InMemoryGraph", "StoredEdge"]
