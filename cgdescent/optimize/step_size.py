"""Initial trial steps for the line search (HZ stages I0, I1 and I2)."""

from __future__ import annotations

import math
from typing import Optional, Tuple

from ..logging import get_logger, log_channel
from .core import Array, CGOptions, Display, StepSizeError
from .line_search import LineSearchResults, StepFunction
from .vector_ops import max_abs, norm2

logger = get_logger(__name__)


def _emit(display: Display, channel: Display, msg: str, *args: object) -> None:
    log_channel(logger, display, channel, msg, *args)


def alpha_init(
    alpha: Optional[float],
    x: Array,
    g: Array,
    val: float,
    options: CGOptions,
) -> float:
    """Choose the first trial step of the run (HZ stage I0).

    An explicit ``alpha`` is returned unchanged. Otherwise the step is
    ``psi0 * max|x| / max|g|``, or ``psi0 * |val| / ||g||`` when ``x`` is zero,
    or 1 when the gradient vanishes.
    """
    if alpha is not None:
        return float(alpha)
    alpha = 1.0
    gmax = max_abs(g)
    if gmax != 0:
        xmax = max_abs(x)
        if xmax != 0:
            alpha = options.psi0 * xmax / gmax
        elif val != 0:
            alpha = options.psi0 * abs(val) / norm2(g)
    return alpha


def alpha_try(
    alpha: float,
    phi: StepFunction,
    lsr: LineSearchResults,
    options: CGOptions,
    alphamax: float = math.inf,
) -> Tuple[float, bool]:
    """Propose a trial step from the previously accepted one (HZ I1-I2).

    A test step ``psi1 * alpha`` is evaluated and a quadratic is fitted through
    it and ``(0, phi0, dphi0)``. When the quadratic is convex and the test
    value is no higher than ``phi0`` its minimizer is proposed, and the line
    search may accept it immediately. Otherwise the test step is returned if
    it went uphill, else ``alpha`` is expanded by ``psi2``.

    Returns:
        ``(alpha, mayterminate)``.

    Raises:
        StepSizeError: If no finite test value is found within
            ``iterfinitemax`` shrinks, or the fit degenerates.
    """
    display = options.display
    phi0 = lsr.value[0]
    dphi0 = lsr.slope[0]
    alphatest = min(options.psi1 * alpha, alphamax)
    phitest = phi(alphatest)
    iterfinite = 1
    while not math.isfinite(phitest):
        alphatest *= options.psi3
        phitest = phi(alphatest)
        lsr.nfailures += 1
        iterfinite += 1
        if iterfinite >= options.iterfinitemax:
            raise StepSizeError("Failed to achieve finite test value")
    denom = alphatest * alphatest
    if denom == 0:
        raise StepSizeError(f"Quadratic fit with zero-length test step (alpha = {alpha})")
    a = (phitest - alphatest * dphi0 - phi0) / denom
    _emit(
        display,
        Display.ALPHAGUESS,
        "quadfit: alphatest = %g, phi0 = %g, phitest = %g, quadcoef = %g",
        alphatest, phi0, phitest, a,
    )
    mayterminate = False
    if a > 0 and phitest <= phi0:
        alpha = -dphi0 / 2 / a
        if alpha == 0:
            raise StepSizeError(f"alpha is zero. dphi0 = {dphi0}, a = {a}")
        if alpha <= alphamax:
            mayterminate = True
        else:
            alpha = alphamax
        _emit(
            display,
            Display.ALPHAGUESS,
            "alpha guess (quadratic): %g, (mayterminate = %s)",
            alpha, mayterminate,
        )
    elif phitest > phi0:
        alpha = alphatest
    else:
        # Not convex: expand the interval
        alpha *= options.psi2
    alpha = min(alphamax, alpha)
    _emit(display, Display.ALPHAGUESS, "alpha guess (expand): %g", alpha)
    return alpha, mayterminate


__all__ = ["alpha_init", "alpha_try"]
