"""Result and trace records returned by the minimizer."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np

from .core import Array, Status


@dataclass(frozen=True)
class OptimizationState:
    """One accepted step: iteration number, reported value and gradient norm."""

    iteration: int
    value: float
    gradnorm: float = math.nan
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.iteration:6d}   {self.value:14e}   {self.gradnorm:14e}"]
        for key, value in self.metadata.items():
            lines.append(f" * {key}: {value}")
        return "\n".join(lines)


@dataclass
class OptimizationTrace:
    """Append-only log of :class:`OptimizationState` entries."""

    states: List[OptimizationState] = field(default_factory=list)

    def append(self, state: OptimizationState) -> None:
        self.states.append(state)

    def __getitem__(self, index: int) -> OptimizationState:
        return self.states[index]

    def __len__(self) -> int:
        return len(self.states)

    def __iter__(self) -> Iterator[OptimizationState]:
        return iter(self.states)

    def __str__(self) -> str:
        header = [
            "Iter     Function value   Gradient norm ",
            "------   --------------   --------------",
        ]
        return "\n".join(header + [str(state) for state in self.states])


@dataclass(frozen=True)
class MultivariateOptimizationResults:
    """Final snapshot of a minimization run.

    Attributes:
        method: Name of the algorithm.
        initial_x: Starting point (copy).
        x: Final point.
        fun: Objective value at ``x`` (not transformed by ``reportfunc``).
        fval: Reported values, the initial one first, then one per line search.
        nit: Number of accepted line searches.
        nfev: Total number of objective evaluations.
        nfailures: Number of evaluations that returned a non-finite value.
        x_converged: The last accepted step did not move the point.
        f_converged: The unit-corrected step fell below ``tol``.
        gr_converged: The value is negligible at the scale of ``x`` and the
            gradient, or the start was stationary.
        tol: Termination tolerance used.
        status: Why the iteration stopped.
        message: Human-readable description of ``status``.
        trace: Per-step trace when requested, else None.
    """

    method: str
    initial_x: Array
    x: Array
    fun: float
    fval: Tuple[float, ...]
    nit: int
    nfev: int
    nfailures: int
    x_converged: bool
    f_converged: bool
    gr_converged: bool
    tol: float
    status: Status
    message: str
    trace: Optional[OptimizationTrace] = None

    @property
    def converged(self) -> bool:
        return self.x_converged or self.f_converged or self.gr_converged

    @property
    def minimum(self) -> Array:
        return self.x

    @property
    def f_minimum(self) -> float:
        return self.fval[-1]

    def __str__(self) -> str:
        with np.printoptions(precision=6):
            initial = str(self.initial_x)
            minimum = str(self.x)
        return "\n".join(
            [
                "Results of Optimization Algorithm",
                f" * Algorithm: {self.method}",
                f" * Starting Point: {initial}",
                f" * Minimum: {minimum}",
                f" * Value of Function at Minimum: {self.f_minimum:f}",
                f" * Iterations: {self.nit}",
                f" * Convergence: {self.converged}",
                f"   * |x - x'| = 0: {self.x_converged}",
                f"   * |step| < {self.tol:.1e}: {self.f_converged}",
                f"   * |f(x)| < eps(max(|x|, |g(x)|)): {self.gr_converged}",
                f"   * Status: {self.status.value} ({self.message})",
                f" * Objective Function Calls: {self.nfev}",
                f" * Non-finite Evaluations: {self.nfailures}",
            ]
        )


__all__ = ["MultivariateOptimizationResults", "OptimizationState", "OptimizationTrace"]
