import numpy as np
import pytest

from layered_graph import (
    BuilderConfig,
    GraphEdgesType,
    GridSize,
    InMemoryGraph,
    LayeredGraphBuilder,
    PreconditionError,
    ShapeMismatchError,
    TopologyNotBuiltError,
)

G = GraphEdgesType


class SumModel:
    """Potential whose every entry is the sum of the first feature channel."""

    def __init__(self, shape):
        self.shape = shape

    def accumulate(self, feature1, feature2, gt1, gt2):
        pass

    def compute_potential(self, feature1, feature2, params):
        value = float(feature1[0]) + float(feature2[0]) + float(params[0])
        return np.full(self.shape, value, dtype=np.float32)


def _features(width, height):
    return np.arange(width * height, dtype=np.float32).reshape(height, width, 1)


def test_direct_fill_copies_cells_exactly():
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, 1, 3)
    pots = np.random.default_rng(0).random((2, 2, 3)).astype(np.float32)
    builder.set_graph(pots)
    assert builder.size == GridSize(2, 2)
    for row in range(2):
        for col in range(2):
            node = builder.indexer.node_id(0, row, col)
            np.testing.assert_array_equal(graph.get_node_potential(node), pots[row, col])


def test_direct_fill_builds_topology_from_base_size():
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, 1, 2, G.GRID)
    builder.set_graph(np.ones((2, 3, 2), dtype=np.float32))
    assert builder.size == GridSize(3, 2)
    assert graph.num_edges == 7


def test_direct_fill_keeps_existing_topology():
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, 1, 2, G.GRID)
    builder.build_graph(2, 2)
    edges = graph.get_edges()
    builder.define_edge_group(0, 1, -0.5, 3)
    builder.set_graph(np.zeros((2, 2, 2), dtype=np.float32))
    assert graph.get_edges() is edges
    assert sorted(e.group for e in edges) == [0, 0, 3, 3]


def test_occlusion_layer_gets_its_own_array():
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, 2, 2, G.GRID | G.LINK, n_states_occl=3)
    base = np.full((1, 2, 2), 0.25, dtype=np.float32)
    occl = np.arange(6, dtype=np.float32).reshape(1, 2, 3)
    builder.set_graph(base, occl)
    np.testing.assert_array_equal(graph.get_node_potential(0), [0.25, 0.25])
    np.testing.assert_array_equal(graph.get_node_potential(2), [0, 1, 2])
    np.testing.assert_array_equal(graph.get_node_potential(3), [3, 4, 5])


def test_one_array_per_upper_layer():
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, 3, 1)
    base = np.zeros((1, 1))
    builder.set_graph(base, [np.full((1, 1, 1), 1.0), np.full((1, 1, 1), 2.0)])
    assert [float(graph.get_node_potential(n)[0]) for n in range(3)] == [0.0, 1.0, 2.0]


def test_upper_layers_without_array_keep_uniform_potential():
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, 2, 2)
    builder.set_graph(np.zeros((1, 1, 2)))
    np.testing.assert_array_equal(graph.get_node_potential(1), [1.0, 1.0])


def test_state_count_mismatch_rejected_before_any_write():
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, 2, 2, n_states_occl=3)
    builder.build_graph(2, 1)
    with pytest.raises(ShapeMismatchError):
        builder.set_graph(np.zeros((1, 2, 2)), np.zeros((1, 2, 2)))
    np.testing.assert_array_equal(graph.get_node_potential(0), [1.0, 1.0])


def test_size_mismatch_with_built_graph_rejected():
    builder = LayeredGraphBuilder(InMemoryGraph(), 1, 2)
    builder.build_graph(3, 3)
    with pytest.raises(ShapeMismatchError):
        builder.set_graph(np.zeros((2, 2, 2)))


def test_upper_layer_size_mismatch_rejected():
    builder = LayeredGraphBuilder(InMemoryGraph(), 2, 2)
    with pytest.raises(ShapeMismatchError):
        builder.set_graph(np.zeros((2, 2, 2)), np.zeros((2, 3, 2)))
    assert not builder.is_built


def test_occlusion_array_for_single_layer_rejected():
    builder = LayeredGraphBuilder(InMemoryGraph(), 1, 2)
    with pytest.raises(PreconditionError):
        builder.set_graph(np.zeros((1, 1, 2)), np.zeros((1, 1, 2)))


def test_fill_edges_uses_endpoint_features_and_weights():
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, 2, 2, G.GRID | G.LINK)
    builder.build_graph(2, 2)
    features = _features(2, 2)
    builder.fill_edges(SumModel((2, 2)), SumModel((2, 2)), features, [1.0], edge_weight=2.0, link_weight=1.0)

    indexer = builder.indexer
    for edge in graph.get_edges():
        _, r1, c1 = indexer.coords(edge.src)
        _, r2, c2 = indexer.coords(edge.dst)
        raw = features[r1, c1, 0] + features[r2, c2, 0] + 1.0
        expected = raw if edge.group == 1 else raw ** 2
        np.testing.assert_allclose(edge.potential, np.full(edge.potential.shape, expected))


def test_fill_edges_without_link_model_leaves_links():
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, 2, 2, G.GRID | G.LINK)
    builder.build_graph(2, 1)
    builder.fill_edges(SumModel((2, 2)), None, _features(2, 1), [5.0])
    for edge in graph.get_edges():
        if edge.group == 1:
            np.testing.assert_array_equal(edge.potential, np.ones((2, 2)))
        else:
            np.testing.assert_array_equal(edge.potential, np.full((2, 2), 6.0))


def test_parallel_fill_matches_sequential_fill():
    edges_type = G.GRID | G.DIAG | G.LINK
    features = np.random.default_rng(1).random((6, 7, 2)).astype(np.float32)

    sequential = InMemoryGraph()
    builder = LayeredGraphBuilder(sequential, 2, 2, edges_type)
    builder.build_graph(7, 6)
    builder.fill_edges(SumModel((2, 2)), SumModel((2, 2)), features, [0.5])

    parallel = InMemoryGraph()
    config = BuilderConfig(max_workers=4, chunk_size=5, parallel_threshold=1)
    builder = LayeredGraphBuilder(parallel, 2, 2, edges_type, config=config)
    builder.build_graph(7, 6)
    builder.fill_edges(SumModel((2, 2)), SumModel((2, 2)), features, [0.5])

    for a, b in zip(sequential.get_edges(), parallel.get_edges()):
        np.testing.assert_array_equal(a.potential, b.potential)


def test_fill_edges_accepts_channel_list():
    a = InMemoryGraph()
    b = InMemoryGraph()
    features = _features(3, 2)
    for graph, feats in ((a, features), (b, [features[:, :, 0]])):
        builder = LayeredGraphBuilder(graph, 1, 2, G.GRID | G.DIAG)
        builder.build_graph(3, 2)
        builder.fill_edges(SumModel((2, 2)), None, feats, [0.0])
    for ea, eb in zip(a.get_edges(), b.get_edges()):
        np.testing.assert_array_equal(ea.potential, eb.potential)


def test_fill_edges_rejects_wrong_model_shape():
    builder = LayeredGraphBuilder(InMemoryGraph(), 1, 2)
    builder.build_graph(2, 2)
    with pytest.raises(ShapeMismatchError):
        builder.fill_edges(SumModel((3, 3)), None, _features(2, 2), [0.0])


def test_fill_edges_rejects_feature_size_before_writing():
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, 1, 2)
    builder.build_graph(2, 2)
    with pytest.raises(ShapeMismatchError):
        builder.fill_edges(SumModel((2, 2)), None, _features(3, 2), [0.0])
    assert all(np.all(e.potential == 1.0) for e in graph.get_edges())


def test_fill_edges_requires_topology():
    builder = LayeredGraphBuilder(InMemoryGraph(), 1, 2)
    with pytest.raises(TopologyNotBuiltError):
        builder.fill_edges(SumModel((2, 2)), None, _features(2, 2), [0.0])


def test_default_edges_model_sets_weighted_potts_on_within_layer_edges():
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, 2, 2, G.GRID | G.LINK, n_states_occl=3)
    builder.build_graph(2, 2)
    builder.add_default_edges_model(4.0, weight=0.5)
    for edge in graph.get_edges():
        if edge.group == 1:
            np.testing.assert_array_equal(edge.potential, np.ones((3, 2)))
            continue
        n = edge.potential.shape[0]
        expected = np.ones((n, n))
        np.fill_diagonal(expected, 2.0)
        np.testing.assert_allclose(edge.potential, expected)


def test_default_contrast_model_on_flat_image_equals_potts():
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, 1, 2, G.GRID)
    builder.build_graph(3, 3)
    builder.add_default_contrast_edges_model(np.full((3, 3, 3), 128, dtype=np.uint8), 3.0)
    for edge in graph.get_edges():
        np.testing.assert_allclose(edge.potential, [[3.0, 1.0], [1.0, 3.0]])


def test_link_potentials_span_both_state_counts():
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, 2, 2, G.LINK, n_states_occl=3)
    builder.build_graph(2, 1)
    builder.fill_edges(SumModel((2, 2)), SumModel((3, 2)), _features(2, 1), [0.0], link_weight=3.0)
    np.testing.assert_allclose(graph.get_edge_potential(0), np.zeros((3, 2)))
    np.testing.assert_allclose(graph.get_edge_potential(1), np.full((3, 2), 8.0))


def test_fill_edges_shape_error_leaves_every_edge_untouched():
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, 2, 2, G.GRID, n_states_occl=3)
    builder.build_graph(2, 1)
    # layer 0 edges accept 2x2, the layer 1 edge needs 3x3
    with pytest.raises(ShapeMismatchError):
        builder.fill_edges(SumModel((2, 2)), None, _features(2, 1), [5.0])
    for edge in graph.get_edges():
        np.testing.assert_array_equal(edge.potential, np.ones(edge.potential.shape))


def test_direct_fill_stores_float32():
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, 1, 2)
    pots = np.full((1, 1, 2), 0.1, dtype=np.float64)
    builder.set_graph(pots)
    stored = graph.get_node_potential(0)
    assert stored.dtype == np.float32
    np.testing.assert_array_equal(stored, pots[0, 0].astype(np.float32))
