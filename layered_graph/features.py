"""Per-pixel feature vectors behind a single (row, col) lookup."""

from __future__ import annotations

from typing import Protocol, Sequence, Union

import numpy as np

from .types import GridSize, ShapeMismatchError


class FeatureSource(Protocol):
    """Anything indexable by ``(row, col)`` to a fixed-length vector."""

    @property
    def size(self) -> GridSize: ...

    @property
    def n_features(self) -> int: ...

    def vector(self, row: int, col: int) -> np.ndarray: ...


class MultiChannelFeatures:
    """Adapter for one ``H x W x C`` array (``H x W`` is one channel)."""

    def __init__(self, array: np.ndarray) -> None:
        data = np.asarray(array)
        if data.ndim == 2:
            data = data[:, :, np.newaxis]
        if data.ndim != 3:
            raise ShapeMismatchError(f"feature array must be HxW or HxWxC, got shape {data.shape}")
        self._data = data

    @property
    def size(self) -> GridSize:
        return GridSize(width=self._data.shape[1], height=self._data.shape[0])

    @property
    def n_features(self) -> int:
        return self._data.shape[2]

    def vector(self, row: int, col: int) -> np.ndarray:
        return self._data[row, col]


class ChannelStackFeatures:
    """Adapter for a sequence of single-channel ``H x W`` arrays."""

    def __init__(self, channels: Sequence[np.ndarray]) -> None:
        planes = [np.asarray(ch) for ch in channels]
        if not planes:
            raise ShapeMismatchError("feature channel list is empty")
        shape = planes[0].shape
        for idx, plane in enumerate(planes):
            if plane.ndim != 2:
                raise ShapeMismatchError(f"feature channel {idx} must be 2D, got shape {plane.shape}")
            if plane.shape != shape:
                raise ShapeMismatchError(
                    f"feature channel {idx} has shape {plane.shape}, expected {shape}"
                )
        self._data = np.stack(planes, axis=-1)

    @property
    def size(self) -> GridSize:
        return GridSize(width=self._data.shape[1], height=self._data.shape[0])

    @property
    def n_features(self) -> int:
        return self._data.shape[2]

    def vector(self, row: int, col: int) -> np.ndarray:
        return self._data[row, col]


FeatureInput = Union[np.ndarray, Sequence[np.ndarray], FeatureSource]


def as_feature_source(features: FeatureInput) -> FeatureSource:
    """Wrap ``features`` in the matching adapter."""

    if isinstance(features, (MultiChannelFeatures, ChannelStackFeatures)):
        return features
    if isinstance(features, np.ndarray):
        return MultiChannelFeatures(features)
    if isinstance(features, (list, tuple)):
        return ChannelStackFeatures(features)
    if hasattr(features, "vector") and hasattr(features, "size"):
        return features  # type: ignore[return-value]
    raise ShapeMismatchError(f"unsupported feature container {type(features).__name__}")


def check_size(name: str, actual: GridSize, expected: GridSize) -> None:
    if tuple(actual) != tuple(expected):
        raise ShapeMismatchError(
            f"{name} is {actual[0]}x{actual[1]}, graph is {expected[0]}x{expected[1]}"
        )


__all__ = [
    "ChannelStackFeatures",
    "FeatureInput",
    "FeatureSource",
    "MultiChannelFeatures",
    "as_feature_source",
    "check_size",
]
