"""Objective adapters, finite-difference fallbacks and step limits.

:func:`cg_descent` calls objectives as ``func(g, x)``, writing the gradient
into ``g`` when it is not None. :class:`DifferentiableFunction` builds such a
callable from a plain ``f(x)`` and optional ``grad(x)``, falling back to
central differences when no gradient is supplied.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from .core import Array, Gradient, Hessian, Objective, Problem


def _check_eps(eps: float) -> None:
    if eps <= 0:
        raise ValueError("eps must be positive")


def finite_difference_gradient(
    fun: Objective, x: Array, out: Optional[Array] = None, eps: float = 1e-6
) -> Array:
    """Central-difference gradient of ``fun`` at ``x``, stored in ``out``.

    Parameters
    ----------
    fun:
        Objective function returning a scalar given x.
    x:
        Point where the gradient is approximated; any shape.
    out:
        Buffer shaped like ``x``; allocated when None.
    eps:
        Perturbation size.
    """
    _check_eps(eps)
    x = np.asarray(x, dtype=float)
    if out is None:
        out = np.empty_like(x)
    elif out.size != x.size:
        raise ValueError(f"Gradient buffer size {out.size} != point size {x.size}")
    probe = x.copy(order="C")
    flat_probe = probe.reshape(-1)
    # out may not be C-contiguous, in which case reshape returns a copy
    flat_out = np.empty(x.size)
    for i in range(flat_probe.size):
        xi = flat_probe[i]
        flat_probe[i] = xi + eps
        f_plus = fun(probe)
        flat_probe[i] = xi - eps
        f_minus = fun(probe)
        flat_probe[i] = xi
        flat_out[i] = (f_plus - f_minus) / (2.0 * eps)
    out[...] = flat_out.reshape(out.shape)
    return out


def finite_difference_hessian(
    fun: Objective, x: Array, out: Optional[Array] = None, eps: float = 1e-4
) -> Array:
    """Second-order central-difference Hessian of ``fun`` at flattened ``x``."""
    _check_eps(eps)
    x = np.asarray(x, dtype=float).reshape(-1)
    n = x.size
    if out is None:
        out = np.empty((n, n), dtype=float)
    elif out.shape != (n, n):
        raise ValueError(f"Hessian buffer must have shape {(n, n)}, got {out.shape}")
    fx = fun(x)
    for i in range(n):
        ei = np.zeros(n)
        ei[i] = eps
        out[i, i] = (fun(x + ei) - 2 * fx + fun(x - ei)) / eps**2
        for j in range(i + 1, n):
            ej = np.zeros(n)
            ej[j] = eps
            value = (
                fun(x + ei + ej) - fun(x + ei - ej) - fun(x - ei + ej) + fun(x - ei - ej)
            ) / (4 * eps**2)
            out[i, j] = value
            out[j, i] = value
    return out


class DifferentiableFunction:
    """Objective with a gradient, callable as ``func(g, x)``.

    Attributes:
        f: ``f(x) -> float``.
        grad: Optional ``grad(x) -> array``; central differences when None.
        eps: Finite-difference step used when ``grad`` is None.
    """

    def __init__(
        self, f: Objective, grad: Optional[Gradient] = None, eps: float = 1e-6
    ) -> None:
        _check_eps(eps)
        self.f = f
        self.grad = grad
        self.eps = eps

    @classmethod
    def from_problem(cls, problem: Problem) -> "DifferentiableFunction":
        if problem.hess is not None:
            return TwiceDifferentiableFunction(problem.fun, problem.grad, problem.hess)
        return cls(problem.fun, problem.grad)

    def g(self, x: Array, out: Array) -> Array:
        """Store the gradient at ``x`` in ``out``."""
        if self.grad is None:
            return finite_difference_gradient(self.f, x, out, self.eps)
        out[...] = np.asarray(self.grad(x), dtype=float).reshape(out.shape)
        return out

    def fg(self, x: Array, out: Array) -> float:
        """Store the gradient in ``out`` and return the value."""
        val = float(self.f(x))
        if math.isfinite(val):
            self.g(x, out)
        return val

    def __call__(self, g: Optional[Array], x: Array) -> float:
        if g is None:
            return float(self.f(x))
        return self.fg(x, g)


class TwiceDifferentiableFunction(DifferentiableFunction):
    """Adds a Hessian, falling back to finite differences when not supplied."""

    def __init__(
        self,
        f: Objective,
        grad: Optional[Gradient] = None,
        hess: Optional[Hessian] = None,
        eps: float = 1e-6,
        hess_eps: float = 1e-4,
    ) -> None:
        super().__init__(f, grad, eps)
        _check_eps(hess_eps)
        self.hess = hess
        self.hess_eps = hess_eps

    def h(self, x: Array, out: Array) -> Array:
        """Store the Hessian at ``x`` in ``out``."""
        if self.hess is None:
            return finite_difference_hessian(self.f, x, out, self.hess_eps)
        out[...] = np.asarray(self.hess(x), dtype=float)
        return out


def limits_box(x: Array, d: Array, lower: Array, upper: Array) -> float:
    """Largest ``alpha`` keeping ``x + alpha * d`` inside ``[lower, upper]``.

    Suitable as ``alphamaxfunc`` via
    ``lambda x, d: limits_box(x, d, lower, upper)``.
    """
    x = np.asarray(x, dtype=float).reshape(-1)
    d = np.asarray(d, dtype=float).reshape(-1)
    lower = np.broadcast_to(np.asarray(lower, dtype=float).reshape(-1), x.shape)
    upper = np.broadcast_to(np.asarray(upper, dtype=float).reshape(-1), x.shape)
    alphamax = math.inf
    up = d > 0
    if np.any(up):
        alphamax = min(alphamax, float(np.min((upper[up] - x[up]) / d[up])))
    down = d < 0
    if np.any(down):
        alphamax = min(alphamax, float(np.min((lower[down] - x[down]) / d[down])))
    return max(alphamax, 0.0)


__all__ = [
    "DifferentiableFunction",
    "TwiceDifferentiableFunction",
    "finite_difference_gradient",
    "finite_difference_hessian",
    "limits_box",
]
