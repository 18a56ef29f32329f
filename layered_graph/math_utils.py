"""Small geometric helpers for edge classification."""

from __future__ import annotations

import math

from .types import PreconditionError


def check_line(a: float, b: float, c: float) -> None:
    if not all(math.isfinite(v) for v in (a, b, c)):
        raise PreconditionError(f"line coefficients must be finite, got ({a}, {b}, {c})")
    if a == 0 and b == 0:
        raise PreconditionError("line coefficients A and B must not both be zero")


def line_side(a: float, b: float, c: float, x: float, y: float) -> int:
    """Return -1, 0 or 1 for the side of ``a*x + b*y + c = 0`` holding ``(x, y)``."""

    value = a * x + b * y + c
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def crosses_line(
    a: float, b: float, c: float, p1: tuple[float, float], p2: tuple[float, float]
) -> bool:
    """``True`` when ``p1`` and ``p2`` lie strictly on opposite sides of the line.

    Points are ``(x, y)``. A point lying on the line belongs to neither side.
    """

    return line_side(a, b, c, *p1) * line_side(a, b, c, *p2) < 0
