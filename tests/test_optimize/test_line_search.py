import math

import numpy as np
import pytest

from cgdescent.optimize import CGOptions, LineSearchError
from cgdescent.optimize.line_search import (
    LineSearchResults,
    StepFunction,
    bisect,
    linesearch_hz,
    satisfies_wolfe,
    secant,
    update,
)
from cgdescent.optimize.step_size import alpha_try

OPTIONS = CGOptions()


def make_line(f, fprime, visited=None):
    """Step function for a 1-D objective searched from x=0 along d=+1."""

    def func(g, x):
        if visited is not None:
            visited.append(float(x[0]))
        val = f(float(x[0]))
        if g is not None:
            g[0] = fprime(float(x[0]))
        return val

    phi = StepFunction(func, np.zeros(1), np.ones(1), np.empty(1), np.empty(1))
    lsr = LineSearchResults()
    phi0, dphi0 = phi.evaluate(0.0, want_slope=True)
    lsr.push(0.0, phi0, dphi0)
    return phi, lsr


def assert_bracket(lsr, ia, ib, philim):
    assert lsr.alpha[ia] < lsr.alpha[ib]
    assert lsr.slope[ia] < 0
    assert lsr.value[ia] <= philim
    assert lsr.slope[ib] >= 0 or lsr.value[ib] > philim


def wolfe_holds(phi, lsr, alpha, options=OPTIONS):
    phic, dphic = phi.evaluate(alpha, want_slope=True)
    phi0, dphi0 = lsr.value[0], lsr.slope[0]
    philim = phi0 + options.epsilon * abs(phi0)
    return satisfies_wolfe(
        alpha, phic, dphic, phi0, dphi0, philim, options.delta, options.sigma
    )


def test_results_log_clear_keeps_failures():
    lsr = LineSearchResults()
    lsr.push(0.0, 1.0, -1.0)
    lsr.push(0.5, 0.7, -0.2)
    lsr.nfailures = 3
    lsr.clear()
    assert len(lsr) == 0
    assert lsr.nfailures == 3


def test_step_function_slope_and_non_finite():
    calls = []

    def func(g, x):
        calls.append(g is None)
        if x[0] > 1:
            return math.inf
        if g is not None:
            g[:] = 2 * x
        return float(x @ x)

    phi = StepFunction(func, np.zeros(2), np.array([1.0, 1.0]), np.empty(2), np.empty(2))
    val, slope = phi.evaluate(0.5, want_slope=True)
    assert val == pytest.approx(0.5)
    assert slope == pytest.approx(2.0)
    assert phi.synced_alpha == 0.5
    assert np.allclose(phi.xtmp, [0.5, 0.5])
    val, slope = phi.evaluate(2.0, want_slope=True)
    assert math.isinf(val)
    assert math.isnan(slope)
    assert phi.synced_alpha is None
    assert phi(0.25) == pytest.approx(0.125)
    assert calls == [False, False, True]
    assert phi.nevals == 3


def test_wolfe_and_approximate_wolfe():
    # sufficient decrease and curvature both hold
    assert satisfies_wolfe(1.0, -0.5, -0.1, 0.0, -1.0, 0.0, 0.1, 0.9)
    # insufficient decrease but within the approximate-Wolfe region
    assert satisfies_wolfe(1.0, 0.0, -0.5, 0.0, -1.0, 1e-6, 0.1, 0.9)
    # curvature violated
    assert not satisfies_wolfe(1.0, -0.5, -0.95, 0.0, -1.0, 0.0, 0.1, 0.9)


def test_secant_zero_of_linear_slope():
    assert secant(0.0, 2.0, -1.0, 1.0) == pytest.approx(1.0)
    assert math.isnan(secant(0.0, 2.0, 1.0, 1.0))


def test_quadratic_step_from_estimator_is_exact_minimizer():
    phi0, dphi0, a = 3.0, -2.0, 0.5
    phi, lsr = make_line(
        lambda x: phi0 + dphi0 * x + a * x**2, lambda x: dphi0 + 2 * a * x
    )
    c, mayterminate = alpha_try(1.0, phi, lsr, OPTIONS)
    assert mayterminate
    alpha, value = linesearch_hz(phi, lsr, c, mayterminate, OPTIONS)
    assert alpha == pytest.approx(-dphi0 / (2 * a), rel=1e-12)
    assert value == pytest.approx(1.0, rel=1e-12)


def test_accepted_step_satisfies_wolfe_and_buffers_are_synced():
    phi, lsr = make_line(lambda x: x**4 - 3 * x, lambda x: 4 * x**3 - 3)
    alpha, value = linesearch_hz(phi, lsr, 0.1, False, OPTIONS)
    assert alpha > 0
    assert phi.synced_alpha == alpha
    assert phi.xtmp[0] == pytest.approx(alpha)
    assert phi.g[0] == pytest.approx(4 * alpha**3 - 3)
    assert value == pytest.approx(alpha**4 - 3 * alpha)
    assert wolfe_holds(phi, lsr, alpha)


def test_non_finite_values_shrink_step():
    phi, lsr = make_line(
        lambda x: (x - 0.8) ** 2 if x < 1 else math.inf, lambda x: 2 * (x - 0.8)
    )
    alpha, value = linesearch_hz(phi, lsr, 5.0, True, OPTIONS)
    assert lsr.nfailures >= 1
    assert alpha < 1
    assert math.isfinite(value)
    assert wolfe_holds(phi, lsr, alpha)


def test_exhausted_non_finite_retries_fall_back_to_zero():
    phi, lsr = make_line(lambda x: 1.0 - x if x == 0 else math.nan, lambda x: -1.0)
    alpha, value = linesearch_hz(phi, lsr, 1.0, False, OPTIONS)
    assert alpha == 0.0
    assert value == 1.0
    assert phi.xtmp[0] == 0.0
    assert lsr.nfailures == OPTIONS.iterfinitemax - 1


def test_alphamax_edge_returns_boundary_step():
    visited = []
    phi, lsr = make_line(lambda x: (x - 1) ** 2, lambda x: 2 * (x - 1), visited)
    alpha, value = linesearch_hz(phi, lsr, 0.01, False, OPTIONS, alphamax=0.25)
    assert alpha == 0.25
    assert value == pytest.approx(0.5625)
    assert max(visited) <= 0.25


def test_non_finite_expansion_walks_back_to_last_finite_step():
    visited = []
    phi, lsr = make_line(
        lambda x: (x - 1) ** 2 if x <= 0.2 else math.nan,
        lambda x: 2 * (x - 1),
        visited,
    )
    alpha, value = linesearch_hz(phi, lsr, 0.2, False, OPTIONS)
    assert alpha == 0.2
    assert value == pytest.approx(0.64)
    assert lsr.nfailures == OPTIONS.iterfinitemax - 1
    # The logged point is evaluated again rather than read back from the log
    assert visited.count(0.2) == 2
    assert visited[-1] == 0.2
    assert phi.g[0] == pytest.approx(-1.6)
    assert phi.xtmp[0] == 0.2


def test_unbounded_descent_exhausts_linesearchmax():
    phi, lsr = make_line(lambda x: -x, lambda x: -1.0)
    with pytest.raises(LineSearchError):
        linesearch_hz(phi, lsr, 1.0, False, CGOptions(linesearchmax=3))


def test_invalid_initial_step():
    phi, lsr = make_line(lambda x: x**2 - x, lambda x: 2 * x - 1)
    with pytest.raises(ValueError):
        linesearch_hz(phi, lsr, 0.0, False, OPTIONS)
    with pytest.raises(ValueError):
        linesearch_hz(phi, lsr, 2.0, False, OPTIONS, alphamax=1.0)


def _bumpy():
    return make_line(lambda x: -math.sin(3 * x) + x, lambda x: -3 * math.cos(3 * x) + 1)


def test_bisect_restores_bracket_after_cresting():
    phi, lsr = _bumpy()
    philim = lsr.value[0]
    v, s = phi.evaluate(2.2, want_slope=True)
    assert s < 0 and v > philim
    ib = lsr.push(2.2, v, s)
    ia, ib = bisect(phi, lsr, 0, ib, philim, OPTIONS)
    assert_bracket(lsr, ia, ib, philim)


def test_update_cases():
    phi, lsr = _bumpy()
    philim = lsr.value[0]

    def add(alpha):
        return lsr.push(alpha, *phi.evaluate(alpha, want_slope=True))

    ib = add(0.6)
    assert lsr.slope[ib] >= 0
    outside = add(0.8)
    assert update(phi, lsr, 0, ib, outside, philim, OPTIONS) == (0, ib)
    upslope = add(0.5)
    assert update(phi, lsr, 0, ib, upslope, philim, OPTIONS) == (0, upslope)
    downhill = add(0.2)
    assert update(phi, lsr, 0, ib, downhill, philim, OPTIONS) == (downhill, ib)

    wide = add(2.6)
    assert lsr.slope[wide] >= 0
    crest = add(2.2)
    ia2, ib2 = update(phi, lsr, 0, wide, crest, philim, OPTIONS)
    assert_bracket(lsr, ia2, ib2, philim)
    assert lsr.alpha[ib2] <= 2.2


def test_update_rejects_broken_bracket():
    phi, lsr = _bumpy()
    ib = lsr.push(0.6, *phi.evaluate(0.6, want_slope=True))
    with pytest.raises(LineSearchError):
        update(phi, lsr, ib, 0, 0, lsr.value[0], OPTIONS)
