from .builder import EDGE_GROUP, LINK_GROUP, LayeredGraphBuilder, expected_edge_count
from .config import get_builder_config, set_builder_config
from .features import ChannelStackFeatures, FeatureSource, MultiChannelFeatures, as_feature_source
from .graph import GraphEdge, GraphStore, InMemoryGraph
from .indexer import GridIndexer
from .trainers import (
    ContrastPottsModel,
    CooccurrencePrior,
    EdgeTrainer,
    LinkTrainer,
    PottsEdgeModel,
    default_edge_potential,
)
from .types import (
    ALL_EDGES,
    AllEdges,
    BuilderConfig,
    EdgeGroup,
    GraphEdgesType,
    GridSize,
    LayeredGraphError,
    PreconditionError,
    ShapeMismatchError,
    TopologyNotBuiltError,
)

__all__ = [
    'ALL_EDGES',
    'AllEdges',
    'BuilderConfig',
    'ChannelStackFeatures',
    'ContrastPottsModel',
    'CooccurrencePrior',
    'EDGE_GROUP',
    'EdgeGroup',
    'EdgeTrainer',
    'FeatureSource',
    'GraphEdge',
    'GraphEdgesType',
    'GraphStore',
    'GridIndexer',
    'GridSize',
    'InMemoryGraph',
    'LINK_GROUP',
    'LayeredGraphBuilder',
    'LayeredGraphError',
    'LinkTrainer',
    'MultiChannelFeatures',
    'PottsEdgeModel',
    'PreconditionError',
    'ShapeMismatchError',
    'TopologyNotBuiltError',
    'as_feature_source',
    'default_edge_potential',
    'expected_edge_count',
    'get_builder_config',
    'set_builder_config',
]
