import argparse
import logging
import sys
from typing import Optional, Sequence

from layered_graph import InMemoryGraph, LayeredGraphBuilder, PreconditionError, expected_edge_count
from layered_graph.types import parse_edges_type

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Build a layered grid graph and report its topology")
    parser.add_argument("width", type=int, help="Grid width in pixels")
    parser.add_argument("height", type=int, help="Grid height in pixels")
    parser.add_argument("--layers", type=int, default=1, help="Number of layers (default: 1)")
    parser.add_argument(
        "--edges",
        default="grid",
        help="Comma separated edge families: grid, diag, link (default: grid)",
    )
    parser.add_argument("--states", type=int, default=2, help="States per base-layer node (default: 2)")
    parser.add_argument("--occl-states", type=int, help="States per upper-layer node (default: --states)")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)

    try:
        edges_type = parse_edges_type(args.edges)
        builder = LayeredGraphBuilder(
            InMemoryGraph(),
            args.layers,
            args.states,
            edges_type,
            n_states_occl=args.occl_states,
        )
        builder.build_graph(args.width, args.height)
    except PreconditionError as exc:
        logger.error("%s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 2

    expected = expected_edge_count(args.width, args.height, args.layers, edges_type)
    print(f"size: {args.width}x{args.height}, layers: {args.layers}, edges type: {edges_type.value}")
    print(f"nodes: {builder.graph.num_nodes}")
    print(f"edges: {builder.num_edges} (expected {expected})")
    for (kind, group), count in sorted(builder.edge_counts().items()):
        print(f"  {kind:<16} group {group}: {count}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
