"""Preconditioners used to rescale the conjugate-gradient direction update.

A preconditioner ``P`` approximates the inverse Hessian and offers three
operations:

``forward(out, a)``
    store ``P a`` in ``out``;
``forward_dot(a, b)``
    return ``a^T P b``;
``inverse_dot(a, b)``
    return ``a^T P^{-1} b``.

:func:`as_preconditioner` maps ``None`` to :class:`IdentityPreconditioner` and
a vector to :class:`DiagonalPreconditioner`; anything else that implements the
three methods is used as is.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import numpy as np

from .core import Array
from .vector_ops import dot


@runtime_checkable
class Preconditioner(Protocol):
    """Capability set required by :func:`cg_descent`."""

    def forward(self, out: Array, a: Array) -> Array: ...

    def forward_dot(self, a: Array, b: Array) -> float: ...

    def inverse_dot(self, a: Array, b: Array) -> float: ...


class IdentityPreconditioner:
    """No-op preconditioner: ``P = I``."""

    def forward(self, out: Array, a: Array) -> Array:
        np.copyto(out, a)
        return out

    def forward_dot(self, a: Array, b: Array) -> float:
        return dot(a, b)

    def inverse_dot(self, a: Array, b: Array) -> float:
        return dot(a, b)

    def __repr__(self) -> str:
        return "IdentityPreconditioner()"


class DiagonalPreconditioner:
    """Diagonal preconditioner ``P = diag(p)`` with positive scale factors.

    ``p`` is held by reference, so a ``precondprep`` hook may update it in place
    between iterations.
    """

    def __init__(self, p: Array) -> None:
        p = np.asarray(p, dtype=float)
        if p.ndim != 1:
            raise ValueError("Diagonal preconditioner must be a 1-D vector")
        self.p = p

    def _check(self, a: Array) -> None:
        if a.size != self.p.size:
            raise ValueError(
                f"Preconditioner size {self.p.size} does not match buffer size {a.size}"
            )

    def forward(self, out: Array, a: Array) -> Array:
        self._check(a)
        np.multiply(self.p.reshape(a.shape), a, out=out)
        return out

    def forward_dot(self, a: Array, b: Array) -> float:
        self._check(a)
        return float(np.sum(a.ravel() * self.p * b.ravel()))

    def inverse_dot(self, a: Array, b: Array) -> float:
        self._check(a)
        return float(np.sum(a.ravel() * b.ravel() / self.p))

    def __repr__(self) -> str:
        return f"DiagonalPreconditioner(p={self.p!r})"


_IDENTITY = IdentityPreconditioner()


def as_preconditioner(P: Any) -> Preconditioner:
    """Return a preconditioner object for ``P``.

    Args:
        P: None (identity), a 1-D array of positive scale factors (diagonal), or
            an object already implementing :class:`Preconditioner`.
    """
    if P is None:
        return _IDENTITY
    if isinstance(P, Preconditioner):
        return P
    if isinstance(P, (np.ndarray, list, tuple)):
        return DiagonalPreconditioner(np.asarray(P, dtype=float))
    raise TypeError(f"Unsupported preconditioner type: {type(P).__name__}")


__all__ = [
    "DiagonalPreconditioner",
    "IdentityPreconditioner",
    "Preconditioner",
    "as_preconditioner",
]
