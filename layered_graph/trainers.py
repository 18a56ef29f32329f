"""Edge and link potential models.

The builder talks to trainers through two calls: ``accumulate`` while
collecting training samples and ``compute_potential`` while filling edges.
The models here are the simple defaults; anything with the same two methods
can be passed instead.
"""

from __future__ import annotations

import math
from typing import Optional, Protocol, Sequence

import numpy as np

from .types import PreconditionError


class EdgeTrainer(Protocol):
    def accumulate(self, feature1: np.ndarray, feature2: np.ndarray, gt1: int, gt2: int) -> None: ...

    def compute_potential(
        self, feature1: np.ndarray, feature2: np.ndarray, params: Sequence[float]
    ) -> np.ndarray: ...


# Links share the edge contract; the alias documents where each is used.
LinkTrainer = EdgeTrainer


def default_edge_potential(val: float, n_states1: int, n_states2: Optional[int] = None) -> np.ndarray:
    """Potts matrix: ``val`` on the diagonal, ones elsewhere."""

    n_states2 = n_states1 if n_states2 is None else n_states2
    pot = np.ones((n_states1, n_states2), dtype=np.float32)
    np.fill_diagonal(pot, val)
    return pot


def apply_weight(pot: np.ndarray, weight: float) -> np.ndarray:
    """Weight a multiplicative potential by raising it to ``weight``."""

    if weight == 1.0:
        return pot
    return np.power(pot, weight).astype(np.float32)


class PottsEdgeModel:
    """Data-independent smoothness; ``params[0]`` is the diagonal value."""

    def __init__(self, n_states: int) -> None:
        self.n_states = n_states

    def accumulate(self, feature1, feature2, gt1, gt2) -> None:
        pass

    def compute_potential(self, feature1, feature2, params):
        if not params:
            raise PreconditionError("Potts model needs the smoothness value in params[0]")
        return default_edge_potential(float(params[0]), self.n_states)


class ContrastPottsModel:
    """Potts smoothness damped across strong feature contrast.

    The diagonal value is ``1 + (val - 1) * exp(-beta * d2)`` where ``d2`` is
    the mean squared difference between the two feature vectors. ``params`` is
    ``[val]`` or ``[val, beta]``.
    """

    def __init__(self, n_states: int, beta: float = 1e-3) -> None:
        self.n_states = n_states
        self.beta = beta

    def accumulate(self, feature1, feature2, gt1, gt2) -> None:
        pass

    def compute_potential(self, feature1, feature2, params):
        if not params:
            raise PreconditionError("contrast model needs the smoothness value in params[0]")
        val = float(params[0])
        beta = float(params[1]) if len(params) > 1 else self.beta
        diff = np.asarray(feature1, dtype=np.float64) - np.asarray(feature2, dtype=np.float64)
        d2 = float(np.mean(diff * diff)) if diff.size else 0.0
        return default_edge_potential(1.0 + (val - 1.0) * math.exp(-beta * d2), self.n_states)


class CooccurrencePrior:
    """Label pair frequencies gathered from ground truth.

    Works for edges (square) and links (``n_states1 x n_states2``). Labels
    outside the state range are ignored, so void pixels can be marked with a
    large value.
    """

    def __init__(self, n_states1: int, n_states2: Optional[int] = None, smoothing: float = 1.0) -> None:
        self.n_states1 = n_states1
        self.n_states2 = n_states1 if n_states2 is None else n_states2
        self.smoothing = smoothing
        self.counts = np.zeros((self.n_states1, self.n_states2), dtype=np.float64)

    def reset(self) -> None:
        self.counts[:] = 0.0

    @property
    def num_samples(self) -> int:
        return int(self.counts.sum())

    def accumulate(self, feature1, feature2, gt1, gt2) -> None:
        a, b = int(gt1), int(gt2)
        if 0 <= a < self.n_states1 and 0 <= b < self.n_states2:
            self.counts[a, b] += 1.0

    def compute_potential(self, feature1, feature2, params):
        pot = self.counts + self.smoothing
        total = pot.sum()
        if total > 0:
            pot = pot * (pot.size / total)
        return pot.astype(np.float32)


__all__ = [
    "ContrastPottsModel",
    "CooccurrencePrior",
    "EdgeTrainer",
    "LinkTrainer",
    "PottsEdgeModel",
    "apply_weight",
    "default_edge_potential",
]
