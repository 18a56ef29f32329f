"""Layered 2D graph builder.

A :class:`LayeredGraphBuilder` stacks ``layers`` copies of an image-sized grid
into one pairwise graph. Layer 0 is the base (visible) layer; every upper
layer models an occlusion context and is tied to the layer below it by links,
one per pixel. The builder owns no storage: it writes into a
:class:`~layered_graph.graph.GraphStore` that the caller creates, keeps alive
and may share with other code.
"""

from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np

from .config import get_builder_config
from .features import FeatureInput, FeatureSource, as_feature_source, check_size
from .graph import GraphStore
from .indexer import GridIndexer
from .logging_utils import apply_debug_logging
from .math_utils import check_line, crosses_line
from .trainers import (
    ContrastPottsModel,
    EdgeTrainer,
    LinkTrainer,
    PottsEdgeModel,
    apply_weight,
)
from .types import (
    BuilderConfig,
    EdgeGroup,
    EdgeKind,
    GraphEdgesType,
    GridSize,
    GroupSelector,
    LayeredGraphError,
    PreconditionError,
    ShapeMismatchError,
    TopologyNotBuiltError,
    as_group_selector,
    selects,
)

logger = logging.getLogger(__name__)

EDGE_GROUP = 0
LINK_GROUP = 1


class _BuiltEdge(NamedTuple):
    edge_id: int
    src: int
    dst: int
    link: bool


def expected_edge_count(width: int, height: int, layers: int, edges_type: GraphEdgesType) -> int:
    """Closed-form number of edges ``build_graph`` creates."""

    count = 0
    if edges_type & GraphEdgesType.GRID:
        count += layers * ((width - 1) * height + width * (height - 1))
    if edges_type & GraphEdgesType.DIAG:
        count += layers * 2 * (width - 1) * (height - 1)
    if edges_type & GraphEdgesType.LINK:
        count += (layers - 1) * width * height
    return count


class LayeredGraphBuilder:
    """Builds and fills a multi-layer 2D CRF on top of a graph store.

    ``n_states`` is the number of states of base-layer nodes, ``n_states_occl``
    the number of states of every upper-layer node (defaults to ``n_states``).
    Edge potentials are ``states(src) x states(dst)`` matrices.
    """

    def __init__(
        self,
        graph: GraphStore,
        layers: int,
        n_states: int,
        edges_type: GraphEdgesType = GraphEdgesType.GRID,
        *,
        n_states_occl: Optional[int] = None,
        config: Optional[BuilderConfig] = None,
    ) -> None:
        if layers <= 0:
            raise PreconditionError(f"layer count must be positive, got {layers}")
        if n_states <= 0 or (n_states_occl is not None and n_states_occl <= 0):
            raise PreconditionError("state counts must be positive")
        self._graph = graph
        self._layers = layers
        self._edges_type = GraphEdgesType(edges_type)
        self._n_states = n_states
        self._n_states_occl = n_states if n_states_occl is None else n_states_occl
        self._config = config
        self._indexer: Optional[GridIndexer] = None
        self._edges: List[_BuiltEdge] = []

    # -- accessors ---------------------------------------------------------

    @property
    def graph(self) -> GraphStore:
        return self._graph

    @property
    def layers(self) -> int:
        return self._layers

    @property
    def edges_type(self) -> GraphEdgesType:
        return self._edges_type

    @property
    def size(self) -> GridSize:
        """Size of the built grid, ``(0, 0)`` before the first build."""

        if self._indexer is None:
            return GridSize(0, 0)
        return GridSize(self._indexer.width, self._indexer.height)

    @property
    def is_built(self) -> bool:
        return self._indexer is not None

    @property
    def indexer(self) -> GridIndexer:
        return self._require_topology()

    @property
    def num_edges(self) -> int:
        return len(self._edges)

    def layer_states(self, layer: int) -> int:
        return self._n_states if layer == 0 else self._n_states_occl

    # -- topology ------------------------------------------------------------

    def build_graph(self, width: Union[int, Tuple[int, int]], height: Optional[int] = None) -> None:
        """Replace the graph content with a fresh ``width x height`` layered grid.

        All within-layer edges get group 0, links get group 1.
        """

        if height is None:
            if not isinstance(width, tuple) or len(width) != 2:
                raise PreconditionError("build_graph needs width and height")
            width, height = width
        indexer = GridIndexer(width, height, self._layers)

        self._graph.reset()
        self._indexer = None
        self._edges = []

        for layer in range(self._layers):
            n_states = self.layer_states(layer)
            for _ in range(indexer.layer_offset):
                self._graph.add_node(n_states)
        if self._graph.num_nodes != indexer.num_nodes:
            raise LayeredGraphError(
                f"graph store holds {self._graph.num_nodes} nodes after reset, expected {indexer.num_nodes}"
            )

        grid = bool(self._edges_type & GraphEdgesType.GRID)
        diag = bool(self._edges_type & GraphEdgesType.DIAG)
        link = bool(self._edges_type & GraphEdgesType.LINK)
        w, h, offset = indexer.width, indexer.height, indexer.layer_offset

        for layer in range(self._layers):
            for row in range(h):
                for col in range(w):
                    idx = indexer.node_id(layer, row, col)
                    if grid:
                        if col < w - 1:
                            self._add_edge(idx, idx + 1, EDGE_GROUP)
                        if row < h - 1:
                            self._add_edge(idx, idx + w, EDGE_GROUP)
                    if diag and row < h - 1:
                        if col < w - 1:
                            self._add_edge(idx, idx + w + 1, EDGE_GROUP)
                        if col > 0:
                            self._add_edge(idx, idx + w - 1, EDGE_GROUP)
                    if link and layer > 0:
                        self._add_edge(idx, idx - offset, LINK_GROUP, link=True)

        self._indexer = indexer
        logger.info(
            "Built %dx%d graph with %d layers: %d nodes, %d edges",
            w,
            h,
            self._layers,
            self._graph.num_nodes,
            len(self._edges),
        )

    def _add_edge(self, src: int, dst: int, group: int, *, link: bool = False) -> None:
        edge_id = self._graph.add_edge(src, dst, group)
        self._edges.append(_BuiltEdge(edge_id, src, dst, link))

    def edge_kind(self, edge_id: int) -> EdgeKind:
        if not 0 <= edge_id < len(self._edges):
            raise PreconditionError(f"edge id {edge_id} outside [0, {len(self._edges)})")
        edge = self._graph.get_edges()[edge_id]
        return self._require_topology().edge_kind(edge.src, edge.dst)

    def edge_counts(self) -> Dict[Tuple[EdgeKind, int], int]:
        """Number of built edges per ``(kind, group)``."""

        indexer = self._require_topology()
        stored = self._graph.get_edges()
        counts: Counter = Counter()
        for rec in self._edges:
            counts[(indexer.edge_kind(rec.src, rec.dst), stored[rec.edge_id].group)] += 1
        return dict(counts)

    # -- node potentials -----------------------------------------------------

    def set_graph(
        self,
        pot_base: np.ndarray,
        pot_occl: Optional[Union[np.ndarray, Sequence[np.ndarray]]] = None,
    ) -> None:
        """Fill node potentials from dense per-pixel score arrays.

        ``pot_base`` is ``H x W x n_states`` and fills the base layer.
        ``pot_occl`` is either one ``H x W x n_states_occl`` array used for
        every upper layer, or one array per upper layer. Upper layers without an
        array keep their current potentials. Builds a ``W x H`` graph first if
        nothing was built yet.

        Potentials are stored as float32: a cell is stored exactly when it is
        already float32 (or representable in it), otherwise it is rounded to
        the nearest float32 value.
        """

        base = self._as_potential_block("pot_base", pot_base, self._n_states)
        size = GridSize(width=base.shape[1], height=base.shape[0])

        if pot_occl is None:
            upper: List[np.ndarray] = []
        elif isinstance(pot_occl, np.ndarray):
            if self._layers == 1:
                raise PreconditionError("pot_occl given for a single-layer graph")
            upper = [pot_occl] * (self._layers - 1)
        else:
            upper = list(pot_occl)
            if len(upper) != self._layers - 1:
                raise PreconditionError(
                    f"expected {self._layers - 1} upper-layer potential arrays, got {len(upper)}"
                )
        blocks = [base]
        for layer, block in enumerate(upper, start=1):
            arr = self._as_potential_block(f"pot_occl[{layer - 1}]", block, self._n_states_occl)
            check_size(f"pot_occl[{layer - 1}]", GridSize(arr.shape[1], arr.shape[0]), size)
            blocks.append(arr)

        if self._indexer is None:
            self.build_graph(size.width, size.height)
        else:
            check_size("pot_base", size, self.size)

        offset = self._require_topology().layer_offset
        for layer, block in enumerate(blocks):
            flat = block.reshape(offset, -1)
            first = layer * offset
            for idx in range(offset):
                self._graph.set_node_potential(first + idx, flat[idx])
        logger.info("Set node potentials for %d of %d layers", len(blocks), self._layers)

    @staticmethod
    def _as_potential_block(name: str, pot: np.ndarray, n_states: int) -> np.ndarray:
        arr = np.asarray(pot, dtype=np.float32)
        if arr.ndim == 2 and n_states == 1:
            arr = arr[:, :, np.newaxis]
        if arr.ndim != 3 or arr.shape[0] == 0 or arr.shape[1] == 0:
            raise ShapeMismatchError(f"{name} must be a non-empty HxWx{n_states} array, got shape {arr.shape}")
        if arr.shape[2] != n_states:
            raise ShapeMismatchError(f"{name} has {arr.shape[2]} states per pixel, nodes have {n_states}")
        return arr

    # -- edge potentials -----------------------------------------------------

    def fill_edges(
        self,
        edge_trainer: EdgeTrainer,
        link_trainer: Optional[LinkTrainer],
        features: FeatureInput,
        params: Sequence[float],
        edge_weight: float = 1.0,
        link_weight: float = 1.0,
    ) -> None:
        """Compute every edge (and link) potential from the endpoint features.

        Links are skipped when ``link_trainer`` is ``None``. Edges are processed
        in chunks on a thread pool. All potentials are computed and shape-checked
        before any edge is written, so a rejected potential leaves the graph
        unchanged.
        """

        source = self._checked_features(features)
        params = list(params)
        records = [rec for rec in self._edges if link_trainer is not None or not rec.link]
        config = self._config or get_builder_config()
        chunk = max(1, config.chunk_size)
        chunks = [records[i : i + chunk] for i in range(0, len(records), chunk)]

        def compute(part: Sequence[_BuiltEdge]) -> List[Tuple[int, np.ndarray]]:
            computed = []
            for rec in part:
                model, weight = (link_trainer, link_weight) if rec.link else (edge_trainer, edge_weight)
                pot = model.compute_potential(  # type: ignore[union-attr]
                    self._pixel_vector(source, rec.src), self._pixel_vector(source, rec.dst), params
                )
                pot = apply_weight(np.asarray(pot, dtype=np.float32), weight)
                self._check_edge_shape(rec, pot)
                computed.append((rec.edge_id, pot))
            return computed

        def write(part: Sequence[Tuple[int, np.ndarray]]) -> None:
            for edge_id, pot in part:
                self._graph.set_edge_potential(edge_id, pot)

        # every potential is computed and checked before the first write
        if len(records) < config.parallel_threshold or len(chunks) == 1:
            results = [compute(part) for part in chunks]
            for part in results:
                write(part)
        else:
            logger.debug("Filling %d edges in %d chunks", len(records), len(chunks))
            with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
                results = list(executor.map(compute, chunks))
                for _ in executor.map(write, results):
                    pass
        logger.info("Filled %d edge potentials (links %s)", len(records), "skipped" if link_trainer is None else "included")

    def add_default_edges_model(self, val: float, weight: float = 1.0) -> None:
        """Potts smoothness ``val`` on every within-layer edge."""

        offset = self._require_topology().layer_offset
        pots = {
            n: apply_weight(PottsEdgeModel(n).compute_potential(None, None, [val]), weight)
            for n in {self._n_states, self._n_states_occl}
        }
        for rec in self._edges:
            if not rec.link:
                self._graph.set_edge_potential(rec.edge_id, pots[self.layer_states(rec.src // offset)])
        logger.info("Applied Potts smoothness %g (weight %g) to within-layer edges", val, weight)

    def add_default_contrast_edges_model(
        self, features: FeatureInput, val: float, weight: float = 1.0
    ) -> None:
        """Contrast-sensitive Potts smoothness on every within-layer edge."""

        if self._n_states != self._n_states_occl and self._layers > 1:
            raise PreconditionError("contrast model needs equal state counts on all layers")
        self.fill_edges(ContrastPottsModel(self._n_states), None, features, [val], edge_weight=weight)

    # -- edge groups -----------------------------------------------------------

    def define_edge_group(self, a: float, b: float, c: float, group: int) -> int:
        """Move edges crossing ``a*x + b*y + c = 0`` into ``group``.

        ``x`` is the pixel column and ``y`` the row. Only within-layer edges are
        tested; links join one pixel to itself and never cross a line. Returns
        the number of edges assigned.
        """

        check_line(a, b, c)
        target = as_group_selector(group)
        if not isinstance(target, EdgeGroup):
            raise PreconditionError("define_edge_group needs a concrete group id")
        indexer = self._require_topology()
        stored = self._graph.get_edges()
        moved = 0
        for rec in self._edges:
            if rec.link:
                continue
            _, r1, c1 = indexer.coords(rec.src)
            _, r2, c2 = indexer.coords(rec.dst)
            if crosses_line(a, b, c, (c1, r1), (c2, r2)):
                stored[rec.edge_id].group = target.value
                moved += 1
        logger.info(
            "Assigned %d edges crossing %gx + %gy + %g = 0 to group %d", moved, a, b, c, target.value
        )
        return moved

    def set_edges(self, group: Union[GroupSelector, int], pot: np.ndarray) -> int:
        """Write ``pot`` to every edge selected by ``group``; returns the count."""

        selector = as_group_selector(group)
        self._require_topology()
        mat = np.asarray(pot, dtype=np.float32)
        stored = self._graph.get_edges()
        chosen = [rec for rec in self._edges if selects(selector, stored[rec.edge_id].group)]
        for rec in chosen:
            self._check_edge_shape(rec, mat)
        for rec in chosen:
            self._graph.set_edge_potential(rec.edge_id, mat)
        logger.debug("Set shared potential on %d edges (%s)", len(chosen), selector)
        return len(chosen)

    # -- training samples --------------------------------------------------------

    def add_feature_vecs(
        self,
        trainer: EdgeTrainer,
        features: FeatureInput,
        gt: np.ndarray,
        link_trainer: Optional[LinkTrainer] = None,
    ) -> int:
        """Send one ``(f_src, f_dst, gt_src, gt_dst)`` sample per built edge.

        Links go to ``link_trainer`` when given, otherwise to ``trainer``.
        Returns the number of samples sent.
        """

        source = self._checked_features(features)
        labels = np.asarray(gt)
        if labels.ndim != 2:
            raise ShapeMismatchError(f"ground truth must be a 2D label array, got shape {labels.shape}")
        check_size("ground truth", GridSize(labels.shape[1], labels.shape[0]), self.size)

        indexer = self._require_topology()
        for rec in self._edges:
            _, r1, c1 = indexer.coords(rec.src)
            _, r2, c2 = indexer.coords(rec.dst)
            target = link_trainer if rec.link and link_trainer is not None else trainer
            target.accumulate(source.vector(r1, c1), source.vector(r2, c2), labels[r1, c1], labels[r2, c2])
        logger.info("Collected %d edge samples", len(self._edges))
        return len(self._edges)

    # -- helpers -------------------------------------------------------------------

    def _require_topology(self) -> GridIndexer:
        if self._indexer is None:
            raise TopologyNotBuiltError("graph topology has not been built")
        return self._indexer

    def _checked_features(self, features: FeatureInput) -> FeatureSource:
        self._require_topology()
        source = as_feature_source(features)
        check_size("feature array", source.size, self.size)
        return source

    def _pixel_vector(self, source: FeatureSource, node: int) -> np.ndarray:
        _, row, col = self._require_topology().coords(node)
        return source.vector(row, col)

    def _check_edge_shape(self, rec: _BuiltEdge, pot: np.ndarray) -> None:
        indexer = self._require_topology()
        expected = (
            self.layer_states(rec.src // indexer.layer_offset),
            self.layer_states(rec.dst // indexer.layer_offset),
        )
        if pot.shape != expected:
            raise ShapeMismatchError(f"edge {rec.edge_id} needs a {expected} potential, got {pot.shape}")


apply_debug_logging(globals(), logger=logger, skip={"layer_states", "edge_kind"})


__all__ = ["EDGE_GROUP", "LINK_GROUP", "LayeredGraphBuilder", "expected_edge_count"]
