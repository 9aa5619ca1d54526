"""Conjugate-gradient minimization with the Hager-Zhang line search.

Example
-------
>>> import numpy as np
>>> from cgdescent.optimize import Problem, cg_descent
>>> def rosen(x):
...     return (1 - x[0])**2 + 100 * (x[1] - x[0]**2)**2
>>> def rosen_grad(x):
...     return np.array([
...         -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
...         200 * (x[1] - x[0] ** 2),
...     ])
>>> problem = Problem(fun=rosen, grad=rosen_grad, dim=2)
>>> res = cg_descent(problem, np.array([-1.2, 1.0]))
>>> bool(np.allclose(res.x, 1.0, atol=1e-5))
True
"""

from .cg_descent import cg_descent
from .core import (
    DEFAULT_DELTA,
    DEFAULT_SIGMA,
    CGDescentError,
    CGOptions,
    DescentDirectionError,
    Display,
    LineSearchError,
    NonFiniteStartError,
    Problem,
    Status,
    StepSizeError,
)
from .line_search import LineSearchResults, StepFunction, linesearch_hz, satisfies_wolfe
from .preconditioner import (
    DiagonalPreconditioner,
    IdentityPreconditioner,
    Preconditioner,
    as_preconditioner,
)
from .results import MultivariateOptimizationResults, OptimizationState, OptimizationTrace
from .step_size import alpha_init, alpha_try
from .utils import (
    DifferentiableFunction,
    TwiceDifferentiableFunction,
    finite_difference_gradient,
    finite_difference_hessian,
    limits_box,
)

__all__ = [
    "CGDescentError",
    "CGOptions",
    "DEFAULT_DELTA",
    "DEFAULT_SIGMA",
    "DescentDirectionError",
    "DiagonalPreconditioner",
    "DifferentiableFunction",
    "Display",
    "IdentityPreconditioner",
    "LineSearchError",
    "LineSearchResults",
    "MultivariateOptimizationResults",
    "NonFiniteStartError",
    "OptimizationState",
    "OptimizationTrace",
    "Preconditioner",
    "Problem",
    "Status",
    "StepFunction",
    "StepSizeError",
    "TwiceDifferentiableFunction",
    "alpha_init",
    "alpha_try",
    "as_preconditioner",
    "cg_descent",
    "finite_difference_gradient",
    "finite_difference_hessian",
    "limits_box",
    "linesearch_hz",
    "satisfies_wolfe",
]
