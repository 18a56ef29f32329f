"""Shared types for the layered graph builder."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntFlag
from typing import Literal, NamedTuple, Optional, Tuple, Union

EdgeKind = Literal["grid-horizontal", "grid-vertical", "diagonal", "link"]
Coord = Tuple[int, int, int]


class LayeredGraphError(ValueError):
    """Base error for layered graph operations."""


class PreconditionError(LayeredGraphError):
    """Raised when a caller violates an operation contract."""


class TopologyNotBuiltError(PreconditionError):
    """Raised when an operation needs a topology and none was built."""


class ShapeMismatchError(PreconditionError):
    """Raised when an array does not match the grid or the state counts."""


class GraphEdgesType(IntFlag):
    """Edge families created by the builder."""

    NONE = 0
    GRID = 1
    DIAG = 2
    LINK = 4


class GridSize(NamedTuple):
    width: int
    height: int


@dataclass(frozen=True)
class EdgeGroup:
    """Selects the edges carrying one group id."""

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int) or self.value < 0:
            raise PreconditionError(f"edge group must be a non-negative int, got {self.value!r}")


@dataclass(frozen=True)
class AllEdges:
    """Selects every edge regardless of its group."""


ALL_EDGES = AllEdges()

GroupSelector = Union[EdgeGroup, AllEdges]


def as_group_selector(group: Union[GroupSelector, int]) -> GroupSelector:
    """Return ``group`` as a selector, wrapping plain ints in :class:`EdgeGroup`."""

    if isinstance(group, (EdgeGroup, AllEdges)):
        return group
    if isinstance(group, int) and not isinstance(group, bool):
        return EdgeGroup(group)
    raise PreconditionError(f"unsupported edge group selector {group!r}")


def selects(selector: GroupSelector, group: int) -> bool:
    if isinstance(selector, AllEdges):
        return True
    return selector.value == group


@dataclass
class BuilderConfig:
    """Tuning knobs for potential filling."""

    max_workers: Optional[int] = None
    chunk_size: int = 4096
    parallel_threshold: int = 8192


def parse_edges_type(value: str) -> GraphEdgesType:
    """Parse a comma separated flag list such as ``"grid,link"``."""

    flags = GraphEdgesType.NONE
    for part in value.split(","):
        name = part.strip().upper()
        if not name:
            continue
        try:
            flags |= GraphEdgesType[name]
        except KeyError as exc:
            raise PreconditionError(f"unknown edge type '{part.strip()}'") from exc
    return flags


__all__ = [
    "ALL_EDGES",
    "AllEdges",
    "BuilderConfig",
    "Coord",
    "EdgeGroup",
    "EdgeKind",
    "GraphEdgesType",
    "GridSize",
    "GroupSelector",
    "LayeredGraphError",
    "PreconditionError",
    "ShapeMismatchError",
    "TopologyNotBuiltError",
    "as_group_selector",
    "parse_edges_type",
    "selects",
]
