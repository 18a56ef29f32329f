"""Linear node ids for a stack of 2D grids."""

from __future__ import annotations

import numbers
from dataclasses import dataclass

from .types import Coord, EdgeKind, PreconditionError


@dataclass(frozen=True)
class GridIndexer:
    """Row-major node numbering with layers outermost.

    ``node_id(layer, row, col) == layer * height * width + row * width + col``,
    so the base layer occupies ``[0, height * width)`` and the same pixel in the
    next layer is always ``layer_offset`` ids further.
    """

    width: int
    height: int
    layers: int = 1

    def __post_init__(self) -> None:
        for name in ("width", "height", "layers"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise PreconditionError(f"grid {name} must be an integer, got {value!r}")
        if self.width <= 0 or self.height <= 0:
            raise PreconditionError(f"grid size must be positive, got {self.width}x{self.height}")
        if self.layers <= 0:
            raise PreconditionError(f"layer count must be positive, got {self.layers}")

    @property
    def layer_offset(self) -> int:
        return self.width * self.height

    @property
    def num_nodes(self) -> int:
        return self.layers * self.layer_offset

    def node_id(self, layer: int, row: int, col: int) -> int:
        if not (0 <= layer < self.layers and 0 <= row < self.height and 0 <= col < self.width):
            raise PreconditionError(
                f"coordinate ({layer}, {row}, {col}) outside "
                f"{self.layers}x{self.height}x{self.width} grid"
            )
        return layer * self.layer_offset + row * self.width + col

    def coords(self, node_id: int) -> Coord:
        """Return ``(layer, row, col)`` for ``node_id``."""

        if not 0 <= node_id < self.num_nodes:
            raise PreconditionError(f"node id {node_id} outside [0, {self.num_nodes})")
        layer, rest = divmod(node_id, self.layer_offset)
        row, col = divmod(rest, self.width)
        return layer, row, col

    def edge_kind(self, src: int, dst: int) -> EdgeKind:
        """Classify the edge ``src``-``dst`` from its endpoint coordinates."""

        l1, r1, c1 = self.coords(src)
        l2, r2, c2 = self.coords(dst)
        if l1 != l2:
            if abs(l1 - l2) == 1 and (r1, c1) == (r2, c2):
                return "link"
        else:
            dr, dc = abs(r1 - r2), abs(c1 - c2)
            if dr == 0 and dc == 1:
                return "grid-horizontal"
            if dr == 1 and dc == 0:
                return "grid-vertical"
            if dr == 1 and dc == 1:
                return "diagonal"
        raise PreconditionError(f"nodes {src} and {dst} are not neighbours")


__all__ = ["GridIndexer"]
