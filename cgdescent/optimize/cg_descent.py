"""Nonlinear conjugate gradient minimization (CG_DESCENT).

An independent implementation of

    W. W. Hager and H. Zhang (2006) Algorithm 851: CG_DESCENT, a conjugate
    gradient method with guaranteed descent. ACM TOMS 32: 113-137,

with the preconditioned beta update of Hager and Zhang (2012), "The limited
memory conjugate gradient method". The termination test is unit-correct: it
compares ``alpha * sum|g_i d_i|``, which has the units of the objective,
against the size of the objective itself rather than testing gradient
components. A maximum step (``alphamaxfunc``) may be supplied so that the
minimizer never probes outside the region where the objective is finite.
"""

from __future__ import annotations

import math
from typing import Any, Optional, Union

import numpy as np

from ..logging import channel_logging, get_logger, log_channel
from .core import (
    Array,
    CGOptions,
    DescentDirectionError,
    Display,
    InplaceObjective,
    NonFiniteStartError,
    Problem,
    Status,
)
from .line_search import LineSearchResults, StepFunction, linesearch_hz
from .preconditioner import as_preconditioner
from .results import MultivariateOptimizationResults, OptimizationState, OptimizationTrace
from .step_size import alpha_init, alpha_try
from .utils import DifferentiableFunction
from .vector_ops import (
    abs_weighted_sum,
    all_finite,
    dot,
    max_abs,
    negate,
    norm2,
    update_direction,
)

logger = get_logger(__name__)

METHOD_NAME = "Conjugate Gradient (CG_DESCENT)"

_MESSAGES = {
    Status.CONVERGED: "Step size relative to function value below tolerance.",
    Status.STATIONARY_START: "Starting point is stationary.",
    Status.MAX_ITER: "Maximum iterations reached.",
    Status.MAX_FEV: "Maximum function evaluations reached.",
    Status.MAX_FAILURES: "Maximum number of non-finite evaluations reached.",
    Status.EDGE_OF_DOMAIN: "Edge of the allowed region reached; no further progress possible.",
}


def _emit(display: Display, channel: Display, msg: str, *args: object) -> None:
    log_channel(logger, display, channel, msg, *args)


def cg_descent(
    func: Union[InplaceObjective, Problem],
    x0: Array,
    options: Optional[CGOptions] = None,
    **overrides: Any,
) -> MultivariateOptimizationResults:
    """Minimize ``func`` starting from ``x0``.

    Args:
        func: Objective called as ``func(g, x)``; it must return the value at
            ``x`` and, unless ``g`` is None, write the gradient into ``g``.
            A :class:`Problem` is adapted with :class:`DifferentiableFunction`.
        x0: Starting point. Any shape is accepted and preserved.
        options: Settings; defaults to ``CGOptions()``.
        **overrides: Individual :class:`CGOptions` fields to replace.

    Returns:
        The final point, reported values, evaluation count and convergence
        flags.

    Raises:
        NonFiniteStartError: If the value or gradient at ``x0`` is not finite.
        DescentDirectionError: If steepest descent is not a descent direction.
        StepSizeError: If the initial-step estimator cannot find a finite value.
        LineSearchError: If a line search fails to converge.

    Example:
        >>> import numpy as np
        >>> from cgdescent.optimize import cg_descent
        >>> def f(g, x):
        ...     if g is not None:
        ...         g[:] = 2 * (x - 3)
        ...     return float(np.sum((x - 3) ** 2))
        >>> res = cg_descent(f, np.zeros(2))
        >>> bool(np.allclose(res.x, 3))
        True
    """
    if options is None:
        options = CGOptions()
    if overrides:
        options = options.with_overrides(**overrides)
    options.validate()
    if isinstance(func, Problem):
        func = DifferentiableFunction.from_problem(func)
    with channel_logging(options.display != Display.NONE):
        return _minimize(func, x0, options)


def _minimize(
    func: InplaceObjective, x0: Array, options: CGOptions
) -> MultivariateOptimizationResults:
    display = options.display
    reportfunc = options.reportfunc
    x = np.array(x0, dtype=float, order="C")
    if x.size == 0:
        raise ValueError("x0 must contain at least one element")
    initial_x = x.copy()
    xtmp = np.empty_like(x)
    g = np.zeros_like(x)
    pg = np.empty_like(x)
    d = np.empty_like(x)
    gold = np.empty_like(x)
    y = np.empty_like(x)
    N = x.size
    P = as_preconditioner(options.P)
    trace = OptimizationTrace() if options.store_trace else None

    val = float(func(g, x))
    fval = [reportfunc(val)]
    if not math.isfinite(val):
        raise NonFiniteStartError("Must have finite starting value")
    if not all_finite(g):
        bad = np.flatnonzero(~np.isfinite(g.ravel()))
        raise NonFiniteStartError(
            f"Gradient must have all finite values at starting point (indices {bad.tolist()})"
        )
    if trace is not None:
        trace.append(OptimizationState(0, fval[0], norm2(g)))
    _emit(display, Display.ITER, "iter %6d   evals %6d   value %14e", 0, 1, fval[0])

    phi = StepFunction(func, x, d, xtmp, g)
    lsr = LineSearchResults()

    def finish(
        status: Status, x_conv: bool = False, f_conv: bool = False, gr_conv: bool = False
    ) -> MultivariateOptimizationResults:
        outcome = "Converged" if x_conv or f_conv or gr_conv else "Did not converge"
        _emit(
            display,
            Display.FINAL,
            "%s after %d iterations, final function value = %g",
            outcome, nit, fval[-1],
        )
        if lsr.nfailures > 0:
            logger.warning(
                "There were %d function evaluations that failed to produce a finite "
                "result.",
                lsr.nfailures,
            )
        return MultivariateOptimizationResults(
            method=METHOD_NAME,
            initial_x=initial_x,
            x=x,
            fun=val,
            fval=tuple(fval),
            nit=nit,
            nfev=1 + phi.nevals,
            nfailures=lsr.nfailures,
            x_converged=x_conv,
            f_converged=f_conv,
            gr_converged=gr_conv,
            tol=options.tol,
            status=status,
            message=_MESSAGES[status],
            trace=trace,
        )

    nit = 0
    options.precondprep(options.P, x)
    # First direction: preconditioned steepest descent
    P.forward(d, g)
    negate(d)
    np.copyto(gold, g)
    phi0 = val
    dphi0 = dot(g, d)
    if dphi0 == 0:
        return finish(Status.STATIONARY_START, gr_conv=True)
    if not dphi0 < 0:
        raise DescentDirectionError(
            f"Preconditioned gradient is not a descent direction (dphi0 = {dphi0})"
        )
    alpha = alpha_init(options.alpha, x, g, val, options)
    alphamax = float(options.alphamaxfunc(x, d))
    if not alphamax > 0:
        logger.warning(
            "An edge point has been reached (alphamax = %g) at the starting point.",
            alphamax,
        )
        return finish(Status.EDGE_OF_DOMAIN)
    alpha = min(alphamax, alpha)
    mayterminate = False
    lsr.push(0.0, phi0, dphi0)

    while True:
        valold = val
        _emit(display, Display.PARAMETERS, "x: %s", x)
        _emit(display, Display.GRADIENT, "gradient:   %s", g)
        _emit(display, Display.SEARCHDIR, "search:     %s", d)
        alpha, val = linesearch_hz(phi, lsr, alpha, mayterminate, options, alphamax)
        _emit(display, Display.ALPHA, "alpha: %g", alpha)
        # xtmp holds the accepted point and g its gradient
        np.copyto(x, xtmp)
        fval.append(reportfunc(val))
        nit += 1
        fcount = 1 + phi.nevals
        absstep = alpha * abs_weighted_sum(g, d)
        _emit(
            display,
            Display.ITER,
            "iter %6d   evals %6d   value %14e   |step| %14e",
            nit, fcount, fval[-1], absstep,
        )
        if trace is not None:
            metadata = {"alpha": alpha, "|step|": absstep, "nfailures": lsr.nfailures}
            trace.append(OptimizationState(nit, fval[-1], norm2(g), metadata))
        fsum = abs(val) + abs(valold)
        f_conv = absstep <= options.tol * fsum / N
        gr_conv = abs(val) < np.spacing(max(max_abs(x), max_abs(g)))
        if f_conv or gr_conv:
            return finish(
                Status.CONVERGED,
                x_conv=alpha == 0,
                f_conv=f_conv,
                gr_conv=bool(gr_conv),
            )
        if options.itermax is not None and nit >= options.itermax:
            return finish(Status.MAX_ITER)
        if options.fcountmax is not None and fcount > options.fcountmax:
            return finish(Status.MAX_FEV)
        if lsr.nfailures > options.nfailuresmax:
            return finish(Status.MAX_FAILURES)

        # beta factor (HZ2012)
        options.precondprep(options.P, x)
        dPd = P.inverse_dot(d, d)
        etak = options.eta * dot(d, gold) / dPd
        np.subtract(g, gold, out=y)
        np.copyto(gold, g)
        ydotd = dot(y, d)
        P.forward(pg, g)
        if ydotd == 0:
            # No curvature information along d: restart
            beta = 0.0
        else:
            betak = (dot(y, pg) - P.forward_dot(y, y) * dot(d, g) / ydotd) / ydotd
            beta = max(betak, etak)
        _emit(display, Display.BETA, "beta: %g", beta)
        update_direction(d, beta, pg)

        phi0 = val
        dphi0 = dot(g, d)
        if not dphi0 < 0:
            np.negative(g, out=d)
            dphi0 = dot(g, d)
            if not dphi0 < 0:
                raise DescentDirectionError(
                    f"Steepest descent is not a descent direction (dphi0 = {dphi0})"
                )
        lsr.clear()
        lsr.push(0.0, phi0, dphi0)
        alphamax = float(options.alphamaxfunc(x, d))
        if not alphamax > 0:
            logger.warning(
                "An edge point has been reached (alphamax = %g) and no further progress "
                "can be achieved, because the search direction points out of the valid region.",
                alphamax,
            )
            return finish(Status.EDGE_OF_DOMAIN)
        alpha, mayterminate = alpha_try(alpha, phi, lsr, options, alphamax)


__all__ = ["METHOD_NAME", "cg_descent"]
