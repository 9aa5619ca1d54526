"""Elementwise, dot and norm primitives on equally shaped NumPy buffers.

Buffers may have any shape; reductions act on the flattened data. In-place
helpers write through the array they are given, so callers may hand in views.
"""

from __future__ import annotations

import numpy as np

from .core import Array


def _check_same_size(a: Array, b: Array) -> None:
    if a.size != b.size:
        raise ValueError(f"Buffer size mismatch: {a.size} != {b.size}")


def dot(a: Array, b: Array) -> float:
    """Return the inner product of two buffers of equal size."""
    _check_same_size(a, b)
    return float(np.dot(a.ravel(), b.ravel()))


def negate(a: Array) -> Array:
    """Negate ``a`` in place and return it."""
    np.negative(a, out=a)
    return a


def update_direction(d: Array, beta: float, pg: Array) -> Array:
    """Overwrite ``d`` with ``beta * d - pg``."""
    _check_same_size(d, pg)
    d *= beta
    d -= pg.reshape(d.shape)
    return d


def max_abs(a: Array) -> float:
    """Return ``max |a_i|`` (0 for an empty buffer)."""
    if a.size == 0:
        return 0.0
    return float(np.max(np.abs(a)))


def abs_weighted_sum(g: Array, d: Array) -> float:
    """Return ``sum |g_i * d_i|``."""
    _check_same_size(g, d)
    return float(np.sum(np.abs(g.ravel() * d.ravel())))


def norm2(a: Array) -> float:
    """Return the Euclidean norm of the flattened buffer."""
    return float(np.linalg.norm(a.ravel()))


def all_finite(a: Array) -> bool:
    return bool(np.all(np.isfinite(a)))


__all__ = [
    "abs_weighted_sum",
    "all_finite",
    "dot",
    "max_abs",
    "negate",
    "norm2",
    "update_direction",
]
