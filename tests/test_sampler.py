import numpy as np
import pytest

from layered_graph import (
    CooccurrencePrior,
    GraphEdgesType,
    InMemoryGraph,
    LayeredGraphBuilder,
    ShapeMismatchError,
    TopologyNotBuiltError,
)

G = GraphEdgesType


class RecordingTrainer:
    def __init__(self):
        self.samples = []

    def accumulate(self, feature1, feature2, gt1, gt2):
        self.samples.append((tuple(feature1), tuple(feature2), int(gt1), int(gt2)))

    def compute_potential(self, feature1, feature2, params):
        raise AssertionError("not used while sampling")


def _setup(width=3, height=2, layers=2, edges_type=G.GRID | G.DIAG | G.LINK):
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, layers, 2, edges_type)
    builder.build_graph(width, height)
    features = np.arange(width * height * 2).reshape(height, width, 2)
    gt = (np.arange(width * height) % 2).reshape(height, width)
    return graph, builder, features, gt


def test_one_sample_per_edge_in_enumeration_order():
    graph, builder, features, gt = _setup()
    trainer = RecordingTrainer()
    assert builder.add_feature_vecs(trainer, features, gt) == graph.num_edges
    assert len(trainer.samples) == graph.num_edges

    indexer = builder.indexer
    for sample, edge in zip(trainer.samples, graph.get_edges()):
        _, r1, c1 = indexer.coords(edge.src)
        _, r2, c2 = indexer.coords(edge.dst)
        assert sample == (tuple(features[r1, c1]), tuple(features[r2, c2]), gt[r1, c1], gt[r2, c2])


def test_links_go_to_link_trainer_when_given():
    graph, builder, features, gt = _setup()
    edges, links = RecordingTrainer(), RecordingTrainer()
    builder.add_feature_vecs(edges, features, gt, link_trainer=links)
    assert len(links.samples) == 6
    assert len(edges.samples) + len(links.samples) == graph.num_edges
    assert all(s[0] == s[1] and s[2] == s[3] for s in links.samples)


def test_channel_list_features_give_same_samples():
    _, builder, features, gt = _setup()
    a, b = RecordingTrainer(), RecordingTrainer()
    builder.add_feature_vecs(a, features, gt)
    builder.add_feature_vecs(b, [features[:, :, 0], features[:, :, 1]], gt)
    assert a.samples == b.samples


def test_cooccurrence_prior_counts_label_pairs():
    graph = InMemoryGraph()
    builder = LayeredGraphBuilder(graph, 1, 2, G.GRID)
    builder.build_graph(3, 1)
    prior = CooccurrencePrior(2)
    builder.add_feature_vecs(prior, np.zeros((1, 3, 1)), np.array([[0, 0, 1]]))
    np.testing.assert_array_equal(prior.counts, [[1.0, 1.0], [0.0, 0.0]])


def test_ground_truth_size_mismatch_rejected():
    _, builder, features, _ = _setup()
    trainer = RecordingTrainer()
    with pytest.raises(ShapeMismatchError):
        builder.add_feature_vecs(trainer, features, np.zeros((3, 3), dtype=int))
    with pytest.raises(ShapeMismatchError):
        builder.add_feature_vecs(trainer, features, np.zeros((2, 3, 1), dtype=int))
    assert trainer.samples == []


def test_feature_size_mismatch_rejected():
    _, builder, _, gt = _setup()
    with pytest.raises(ShapeMismatchError):
        builder.add_feature_vecs(RecordingTrainer(), np.zeros((4, 4, 2)), gt)


def test_sampling_requires_topology():
    builder = LayeredGraphBuilder(InMemoryGraph(), 1, 2)
    with pytest.raises(TopologyNotBuiltError):
        builder.add_feature_vecs(RecordingTrainer(), np.zeros((1, 1, 1)), np.zeros((1, 1)))
