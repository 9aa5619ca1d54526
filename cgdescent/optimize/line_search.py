"""Hager-Zhang line search satisfying the Wolfe or approximate-Wolfe conditions.

This follows the bracketing/secant/bisection scheme of

    W. W. Hager and H. Zhang (2006) Algorithm 851: CG_DESCENT, a conjugate
    gradient method with guaranteed descent. ACM TOMS 32: 113-137.

Stage labels (B0-B3, S1-S4, U0-U3) refer to that paper. Two deviations:
the Wolfe conditions are only tested on steps produced by interpolation
(quadratic or secant), never on expansion or bisection steps, and non-finite
objective values are recovered from by shrinking the step.

All evaluated steps are appended to a :class:`LineSearchResults` log; brackets
are pairs of indices into that log.
"""

from __future__ import annotations

import math
from typing import List, Optional, Tuple

import numpy as np

from ..logging import get_logger, log_channel
from .core import Array, CGOptions, Display, InplaceObjective, LineSearchError
from .vector_ops import dot

logger = get_logger(__name__)


def _emit(display: Display, channel: Display, msg: str, *args: object) -> None:
    log_channel(logger, display, channel, msg, *args)


class LineSearchResults:
    """Ordered log of the ``(alpha, value, slope)`` triples of one line search.

    Entry 0 always holds ``(0, phi(0), phi'(0))`` for the current direction.
    Entries are kept in evaluation order, not sorted by ``alpha``.
    ``nfailures`` counts non-finite evaluations over the whole run and is not
    reset by :meth:`clear`.
    """

    def __init__(self) -> None:
        self.alpha: List[float] = []
        self.value: List[float] = []
        self.slope: List[float] = []
        self.nfailures = 0

    def push(self, alpha: float, value: float, slope: float) -> int:
        """Append a triple and return its index."""
        self.alpha.append(float(alpha))
        self.value.append(float(value))
        self.slope.append(float(slope))
        return len(self.alpha) - 1

    def clear(self) -> None:
        self.alpha.clear()
        self.value.clear()
        self.slope.clear()

    def __len__(self) -> int:
        return len(self.alpha)

    def __repr__(self) -> str:
        return (
            f"LineSearchResults(alpha={self.alpha}, value={self.value}, "
            f"slope={self.slope}, nfailures={self.nfailures})"
        )


class StepFunction:
    """The objective restricted to the ray ``x + alpha * d``.

    The buffers are shared with the caller: ``xtmp`` receives each trial point
    and, when a slope is requested, the objective writes its gradient into
    ``g``. After a slope evaluation at ``alpha`` the caller therefore holds the
    gradient there without another call; :attr:`synced_alpha` records which
    step the buffers currently describe.
    """

    def __init__(
        self,
        func: InplaceObjective,
        x: Array,
        d: Array,
        xtmp: Array,
        g: Array,
    ) -> None:
        self.func = func
        self.x = x
        self.d = d
        self.xtmp = xtmp
        self.g = g
        self.nevals = 0
        self.synced_alpha: Optional[float] = None

    def evaluate(
        self, alpha: float, want_slope: bool = False
    ) -> Tuple[float, Optional[float]]:
        """Return ``(phi(alpha), phi'(alpha))``.

        The slope is None when not requested and NaN when the value is not
        finite.
        """
        np.multiply(self.d, alpha, out=self.xtmp)
        self.xtmp += self.x
        self.nevals += 1
        if not want_slope:
            self.synced_alpha = None
            return float(self.func(None, self.xtmp)), None
        val = float(self.func(self.g, self.xtmp))
        if math.isfinite(val):
            self.synced_alpha = alpha
            return val, dot(self.g, self.d)
        self.synced_alpha = None
        return val, math.nan

    def __call__(self, alpha: float) -> float:
        return self.evaluate(alpha)[0]


def satisfies_wolfe(
    c: float,
    phic: float,
    dphic: float,
    phi0: float,
    dphi0: float,
    philim: float,
    delta: float,
    sigma: float,
) -> bool:
    """Check the Wolfe or the approximate-Wolfe conditions (HZ eqs 22-23)."""
    wolfe = delta * dphi0 >= (phic - phi0) / c and dphic >= sigma * dphi0
    approx_wolfe = (2 * delta - 1) * dphi0 >= dphic >= sigma * dphi0 and phic <= philim
    return wolfe or approx_wolfe


def secant(a: float, b: float, dphia: float, dphib: float) -> float:
    """Zero of the linear interpolant of the slope (NaN for equal slopes)."""
    if dphib == dphia:
        return math.nan
    return (a * dphib - b * dphia) / (dphib - dphia)


def _check_bracket(lsr: LineSearchResults, ia: int, ib: int, philim: float) -> None:
    ok = (
        lsr.alpha[ia] < lsr.alpha[ib]
        and lsr.slope[ia] < 0
        and lsr.value[ia] <= philim
        and (lsr.slope[ib] >= 0 or lsr.value[ib] > philim)
    )
    if not ok:
        raise LineSearchError(
            f"Invalid bracket ia={ia}, ib={ib}, philim={philim}: {lsr!r}"
        )


def _evaluate_finite(phi: StepFunction, alpha: float, stage: str) -> Tuple[float, float]:
    phic, dphic = phi.evaluate(alpha, want_slope=True)
    if not math.isfinite(phic):
        raise LineSearchError(f"Non-finite value {phic} at alpha={alpha} during {stage}")
    return phic, dphic


def bisect(
    phi: StepFunction,
    lsr: LineSearchResults,
    ia: int,
    ib: int,
    philim: float,
    options: CGOptions,
) -> Tuple[int, int]:
    """HZ stage U3 with ``theta = 0.5``.

    Requires ``slope[ib] < 0`` and ``value[ib] > philim``: the function has
    crested between ``a`` and ``b``. Bisects until a point with non-negative
    slope is found (it becomes the new ``b``) or the bracket collapses.
    """
    _check_bracket(lsr, ia, ib, philim)
    a = lsr.alpha[ia]
    b = lsr.alpha[ib]
    while b - a > np.spacing(b):
        _emit(options.display, Display.BISECT, "bisect: a = %g, b = %g, b-a = %g", a, b, b - a)
        d = (a + b) / 2
        phid, dphid = _evaluate_finite(phi, d, "bisection")
        id_ = lsr.push(d, phid, dphid)
        if dphid >= 0:
            return ia, id_
        if phid <= philim:
            a, ia = d, id_
        else:
            b, ib = d, id_
    return ia, ib


def update(
    phi: StepFunction,
    lsr: LineSearchResults,
    ia: int,
    ib: int,
    ic: int,
    philim: float,
    options: CGOptions,
) -> Tuple[int, int]:
    """HZ stages U0-U3: shrink the bracket ``(ia, ib)`` using the point ``ic``."""
    _check_bracket(lsr, ia, ib, philim)
    a = lsr.alpha[ia]
    b = lsr.alpha[ib]
    c = lsr.alpha[ic]
    phic = lsr.value[ic]
    dphic = lsr.slope[ic]
    _emit(
        options.display,
        Display.UPDATE,
        "update: ia = %d, a = %g, ib = %d, b = %g, c = %g, phic = %g, dphic = %g",
        ia, a, ib, b, c, phic, dphic,
    )
    if c < a or c > b:
        return ia, ib
    if dphic >= 0:
        return ia, ic
    # phi may not be monotonic between a and c, so a is replaced only if the
    # value is also acceptable.
    if phic <= philim:
        return ic, ib
    return bisect(phi, lsr, ia, ic, philim, options)


def secant2(
    phi: StepFunction,
    lsr: LineSearchResults,
    ia: int,
    ib: int,
    philim: float,
    options: CGOptions,
) -> Tuple[bool, int, int]:
    """HZ stages S1-S4: double secant step.

    Returns ``(iswolfe, iA, iB)``; when ``iswolfe`` is true both indices point
    at the accepted trial.
    """
    phi0 = lsr.value[0]
    dphi0 = lsr.slope[0]
    a = lsr.alpha[ia]
    b = lsr.alpha[ib]
    dphia = lsr.slope[ia]
    dphib = lsr.slope[ib]
    if not (dphia < 0 <= dphib):
        raise LineSearchError(f"secant2 requires dphia < 0 <= dphib, got {dphia}, {dphib}")
    c = secant(a, b, dphia, dphib)
    _emit(options.display, Display.SECANT2, "secant2: a = %g, b = %g, c = %g", a, b, c)
    if not math.isfinite(c):
        raise LineSearchError(f"Non-finite secant step between {a} and {b}")
    phic, dphic = _evaluate_finite(phi, c, "secant")
    ic = lsr.push(c, phic, dphic)
    if satisfies_wolfe(c, phic, dphic, phi0, dphi0, philim, options.delta, options.sigma):
        _emit(options.display, Display.SECANT2, "secant2: first c satisfied Wolfe conditions")
        return True, ic, ic
    iA, iB = update(phi, lsr, ia, ib, ic, philim, options)
    _emit(options.display, Display.SECANT2, "secant2: iA = %d, iB = %d, ic = %d", iA, iB, ic)
    A = lsr.alpha[iA]
    B = lsr.alpha[iB]
    if iB == ic:
        # b was replaced; take the secant step through the old and new b
        c = secant(lsr.alpha[ib], B, lsr.slope[ib], lsr.slope[iB])
    elif iA == ic:
        c = secant(lsr.alpha[ia], A, lsr.slope[ia], lsr.slope[iA])
    else:
        return False, iA, iB
    if A <= c <= B and lsr.slope[iB] >= 0:
        _emit(options.display, Display.SECANT2, "secant2: second c = %g", c)
        phic, dphic = _evaluate_finite(phi, c, "secant")
        ic = lsr.push(c, phic, dphic)
        if satisfies_wolfe(c, phic, dphic, phi0, dphi0, philim, options.delta, options.sigma):
            _emit(options.display, Display.SECANT2, "secant2: second c satisfied Wolfe conditions")
            return True, ic, ic
        iA, iB = update(phi, lsr, iA, iB, ic, philim, options)
    _emit(
        options.display,
        Display.SECANT2,
        "secant2 output: a = %g, b = %g",
        lsr.alpha[iA],
        lsr.alpha[iB],
    )
    return False, iA, iB


def _accept(phi: StepFunction, alpha: float, value: float) -> Tuple[float, float]:
    # Leave xtmp and g describing the accepted step.
    if phi.synced_alpha != alpha:
        value, _ = phi.evaluate(alpha, want_slope=True)
    return alpha, value


def linesearch_hz(
    phi: StepFunction,
    lsr: LineSearchResults,
    c: float,
    mayterminate: bool,
    options: CGOptions,
    alphamax: float = math.inf,
) -> Tuple[float, float]:
    """Find a step along ``phi`` satisfying the (approximate) Wolfe conditions.

    Args:
        phi: Step function for the current direction.
        lsr: Trial log seeded with the step-0 triple.
        c: Initial trial step, ``0 < c <= alphamax``.
        mayterminate: Whether ``c`` came from interpolation and may be accepted
            without bracketing.
        options: Tuning constants.
        alphamax: Largest step for which the objective is finite.

    Returns:
        The accepted ``(alpha, phi(alpha))``. On return ``phi.xtmp`` holds the
        accepted point and ``phi.g`` its gradient.

    Raises:
        ValueError: If ``c`` is not a valid initial step.
        LineSearchError: If the secant phase exhausts ``linesearchmax``.
    """
    display = options.display
    psi3 = options.psi3
    iterfinitemax = options.iterfinitemax
    phi0 = lsr.value[0]
    dphi0 = lsr.slope[0]
    philim = phi0 + options.epsilon * abs(phi0)
    if not c > 0:
        raise ValueError(f"Initial step must be positive, got {c}")
    if not (math.isfinite(c) and c <= alphamax):
        raise ValueError(f"Initial step {c} must be finite and at most alphamax={alphamax}")

    phic, dphic = phi.evaluate(c, want_slope=True)
    iterfinite = 1
    while not math.isfinite(phic) and iterfinite < iterfinitemax:
        mayterminate = False
        lsr.nfailures += 1
        iterfinite += 1
        c *= psi3
        phic, dphic = phi.evaluate(c, want_slope=True)
    if not math.isfinite(phic):
        logger.warning("Failed to achieve finite new evaluation point, using alpha=0")
        return _accept(phi, 0.0, phi0)
    lsr.push(c, phic, dphic)

    if mayterminate and satisfies_wolfe(
        c, phic, dphic, phi0, dphi0, philim, options.delta, options.sigma
    ):
        _emit(display, Display.LINESEARCH, "Wolfe condition satisfied on point alpha = %g", c)
        return _accept(phi, c, phic)

    # Bracketing (HZ, stages B0-B3)
    isbracketed = False
    ia, ib = 0, 1
    iteration = 1
    while not isbracketed and iteration < options.linesearchmax:
        _emit(
            display,
            Display.BRACKET,
            "bracketing: ia = %d, ib = %d, c = %g, phic = %g, dphic = %g",
            ia, ib, c, phic, dphic,
        )
        if dphic >= 0:
            # Upward slope found; a is the last earlier point below philim
            ib = len(lsr) - 1
            for i in range(ib - 1, -1, -1):
                if lsr.value[i] <= philim:
                    ia = i
                    break
            isbracketed = True
        elif lsr.value[-1] > philim:
            # Crested over a peak while the slope is still negative
            ib = len(lsr) - 1
            ia = ib - 1
            ia, ib = bisect(phi, lsr, ia, ib, philim, options)
            isbracketed = True
        else:
            cold = c
            c *= options.rho
            if c > alphamax:
                _emit(display, Display.BRACKET, "bracket: exceeding alphamax, truncating")
                c = alphamax
            phic, dphic = phi.evaluate(c, want_slope=True)
            iterfinite = 1
            while not math.isfinite(phic) and c > cold and iterfinite < iterfinitemax:
                lsr.nfailures += 1
                iterfinite += 1
                _emit(display, Display.BRACKET, "bracket: non-finite value, bisection")
                c = (cold + c) / 2
                phic, dphic = phi.evaluate(c, want_slope=True)
            if (dphic < 0 and c == alphamax) or not math.isfinite(phic):
                # Edge of the allowed region with the value still decreasing
                if iterfinite >= iterfinitemax:
                    logger.warning(
                        "Failed to expand interval to bracket with finite values "
                        "(c = %g, alphamax = %g, phic = %g, dphic = %g). If this "
                        "happens frequently, check your function and gradient.",
                        c, alphamax, phic, dphic,
                    )
                ic = len(lsr)
                while not math.isfinite(phic):
                    ic -= 1
                    if ic < 0:
                        raise LineSearchError("No finite point left in the line search log")
                    c = lsr.alpha[ic]
                    # Re-evaluate rather than trust the log: a caching
                    # objective may have been corrupted by the NaN/Inf call.
                    phic, dphic = phi.evaluate(c, want_slope=True)
                    if math.isfinite(phic):
                        logger.warning("Using c = %g, phic = %g", c, phic)
                return _accept(phi, c, phic)
            lsr.push(c, phic, dphic)
        iteration += 1

    # Secant refinement (HZ, stages S1-S4 and U0-U3)
    while iteration < options.linesearchmax:
        a = lsr.alpha[ia]
        b = lsr.alpha[ib]
        if not b > a:
            raise LineSearchError(f"Collapsed bracket a={a}, b={b}")
        _emit(
            display,
            Display.LINESEARCH,
            "linesearch: ia = %d, ib = %d, a = %g, b = %g, phi(a) = %g, phi(b) = %g",
            ia, ib, a, b, lsr.value[ia], lsr.value[ib],
        )
        if b - a <= np.spacing(b):
            return _accept(phi, a, lsr.value[ia])
        iswolfe, iA, iB = secant2(phi, lsr, ia, ib, philim, options)
        if iswolfe:
            return _accept(phi, lsr.alpha[iA], lsr.value[iA])
        A = lsr.alpha[iA]
        B = lsr.alpha[iB]
        if B - A < options.gamma * (b - a):
            _emit(display, Display.LINESEARCH, "linesearch: secant succeeded")
            ia, ib = iA, iB
        else:
            _emit(display, Display.LINESEARCH, "linesearch: secant failed, using bisection")
            c = (A + B) / 2
            phic, dphic = _evaluate_finite(phi, c, "bisection")
            ic = lsr.push(c, phic, dphic)
            ia, ib = update(phi, lsr, iA, iB, ic, philim, options)
        iteration += 1
    raise LineSearchError("Linesearch failed to converge")


__all__ = [
    "LineSearchResults",
    "StepFunction",
    "bisect",
    "linesearch_hz",
    "satisfies_wolfe",
    "secant",
    "secant2",
    "update",
]
