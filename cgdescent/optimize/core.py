"""Core interfaces shared by the conjugate-gradient minimizer and its line search."""

from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from enum import Enum, IntFlag
from typing import Any, Callable, Optional

import numpy as np

Array = np.ndarray
# ``func(g, x)``: writes the gradient into ``g`` unless ``g`` is None.
InplaceObjective = Callable[[Optional[Array], Array], float]
Objective = Callable[[Array], float]
Gradient = Callable[[Array], Array]
Hessian = Callable[[Array], Array]
AlphaMaxFunc = Callable[[Array, Array], float]
ReportFunc = Callable[[float], float]

DEFAULT_DELTA = 0.1
DEFAULT_SIGMA = 0.9

FLOAT_EPS = float(np.finfo(float).eps)


def default_iterfinitemax(dtype: Any = float) -> int:
    """Number of halvings needed to exhaust the mantissa of ``dtype``."""
    return int(math.ceil(-math.log2(np.finfo(dtype).eps)))


class CGDescentError(RuntimeError):
    """Base class for unrecoverable failures of the minimizer."""


class NonFiniteStartError(CGDescentError):
    """The objective or its gradient is not finite at the starting point."""


class StepSizeError(CGDescentError):
    """The initial-step estimator could not produce a usable trial step."""


class DescentDirectionError(CGDescentError):
    """Steepest descent failed to give a negative directional derivative."""


class LineSearchError(CGDescentError):
    """The bracketing/secant line search failed to converge."""


class Status(Enum):
    """Reason the outer iteration stopped."""

    CONVERGED = "converged"
    STATIONARY_START = "stationary_start"
    MAX_ITER = "max_iter"
    MAX_FEV = "max_fev"
    MAX_FAILURES = "max_failures"
    EDGE_OF_DOMAIN = "edge_of_domain"


class Display(IntFlag):
    """Diagnostic channels; messages on enabled channels are logged at INFO."""

    NONE = 0
    ITER = 1
    PARAMETERS = 2
    GRADIENT = 4
    SEARCHDIR = 8
    ALPHA = 16
    BETA = 32
    ALPHAGUESS = 64
    BRACKET = 128
    LINESEARCH = 256
    UPDATE = 512
    SECANT2 = 1024
    BISECT = 2048
    FINAL = 4096
    ALL = 8191


@dataclass(frozen=True)
class Problem:
    """Container describing an optimization problem."""

    fun: Objective
    grad: Optional[Gradient] = None
    hess: Optional[Hessian] = None
    dim: Optional[int] = None


def _no_alphamax(x: Array, d: Array) -> float:
    return math.inf


def _identity_report(val: float) -> float:
    return val


def _no_precondprep(P: Any, x: Array) -> None:
    return None


@dataclass(frozen=True)
class CGOptions:
    """Settings for :func:`cg_descent` and the Hager-Zhang line search.

    Attributes:
        eta: Lower bound factor for beta; guarantees descent.
        tol: Tolerance for the unit-corrected termination test.
        alpha: Explicit first trial step; None selects one from ``psi0``.
        itermax: Maximum number of outer iterations (None for unbounded).
        fcountmax: Maximum number of objective evaluations.
        nfailuresmax: Maximum number of non-finite evaluations.
        iterfinitemax: Maximum shrinks when recovering from non-finite values.
        alphamaxfunc: ``alphamaxfunc(x, d)`` returns the largest step for which
            the objective is finite along ``d``.
        reportfunc: Transform applied to values that are reported or logged.
        P: Preconditioner: None, a vector of positive scale factors, or an
            object implementing ``forward``/``forward_dot``/``inverse_dot``.
        precondprep: ``precondprep(P, x)`` hook called before ``P`` is used.
        psi0, psi1, psi2, psi3: Initial-step heuristics (HZ I0-I2).
        delta, sigma: Wolfe constants.
        rho: Expansion factor during bracketing.
        epsilon: Relative tolerance defining the approximate-Wolfe region.
        gamma: Required bracket shrink factor per secant step.
        linesearchmax: Maximum iterations of a single line search.
        display: Enabled diagnostic channels.
        store_trace: Record an :class:`OptimizationTrace` of accepted steps.
    """

    eta: float = 0.4
    tol: float = FLOAT_EPS ** (2.0 / 3.0)
    alpha: Optional[float] = None
    itermax: Optional[int] = None
    fcountmax: Optional[int] = None
    nfailuresmax: int = 1000
    iterfinitemax: int = default_iterfinitemax()
    alphamaxfunc: AlphaMaxFunc = _no_alphamax
    reportfunc: ReportFunc = _identity_report
    P: Any = None
    precondprep: Callable[[Any, Array], None] = _no_precondprep
    psi0: float = 0.01
    psi1: float = 0.2
    psi2: float = 2.0
    psi3: float = 0.1
    delta: float = DEFAULT_DELTA
    sigma: float = DEFAULT_SIGMA
    rho: float = 5.0
    epsilon: float = 1e-6
    gamma: float = 0.66
    linesearchmax: int = 50
    display: Display = Display.NONE
    store_trace: bool = False

    def validate(self) -> "CGOptions":
        """Check the constants for consistency, returning ``self``."""
        if not (0 < self.delta < 0.5):
            raise ValueError("delta must lie in (0, 0.5)")
        if not (self.delta <= self.sigma < 1):
            raise ValueError("Require delta <= sigma < 1 for Wolfe conditions.")
        if not (0 < self.psi3 < 1):
            raise ValueError("psi3 must lie in (0, 1)")
        if self.psi0 <= 0 or self.psi1 <= 0 or self.psi2 <= 0:
            raise ValueError("psi0, psi1 and psi2 must be positive")
        if not self.rho > 1:
            raise ValueError("rho must be greater than 1")
        if not (0 < self.gamma < 1):
            raise ValueError("gamma must lie in (0, 1)")
        if self.epsilon < 0:
            raise ValueError("epsilon must be non-negative")
        if not self.tol > 0:
            raise ValueError("tol must be positive")
        if self.eta < 0:
            raise ValueError("eta must be non-negative")
        for name in ("nfailuresmax", "iterfinitemax", "linesearchmax"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be a positive integer")
        for name in ("itermax", "fcountmax"):
            value = getattr(self, name)
            if value is not None and value < 1:
                raise ValueError(f"{name} must be a positive integer or None")
        if self.alpha is not None and not (
            math.isfinite(self.alpha) and self.alpha > 0
        ):
            raise ValueError("alpha must be positive and finite")
        return self

    def with_overrides(self, **overrides: Any) -> "CGOptions":
        """Return a copy with the given fields replaced."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unrecognized option(s): {', '.join(unknown)}")
        return replace(self, **overrides)


__all__ = [
    "AlphaMaxFunc",
    "Array",
    "CGDescentError",
    "CGOptions",
    "DEFAULT_DELTA",
    "DEFAULT_SIGMA",
    "DescentDirectionError",
    "Display",
    "FLOAT_EPS",
    "Gradient",
    "Hessian",
    "InplaceObjective",
    "LineSearchError",
    "NonFiniteStartError",
    "Objective",
    "Problem",
    "ReportFunc",
    "Status",
    "StepSizeError",
    "default_iterfinitemax",
]
