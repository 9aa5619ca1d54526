import numpy as np

from cgdescent.optimize import (
    MultivariateOptimizationResults,
    OptimizationState,
    OptimizationTrace,
    Status,
)


def make_result(**kwargs):
    defaults = dict(
        method="Conjugate Gradient",
        initial_x=np.zeros(2),
        x=np.ones(2),
        fun=0.0,
        fval=(2.0, 0.5, 0.0),
        nit=2,
        nfev=7,
        nfailures=0,
        x_converged=False,
        f_converged=False,
        gr_converged=False,
        tol=1e-8,
        status=Status.MAX_ITER,
        message="Maximum iterations reached.",
    )
    defaults.update(kwargs)
    return MultivariateOptimizationResults(**defaults)


def test_converged_is_any_flag():
    assert not make_result().converged
    assert make_result(f_converged=True).converged
    assert make_result(gr_converged=True).converged
    assert make_result(x_converged=True).converged


def test_result_summary_text():
    text = str(make_result(f_converged=True, status=Status.CONVERGED))
    assert text.startswith("Results of Optimization Algorithm")
    assert " * Iterations: 2" in text
    assert " * Convergence: True" in text
    assert " * Objective Function Calls: 7" in text


def test_trace_is_append_only_log():
    trace = OptimizationTrace()
    trace.append(OptimizationState(0, 3.0, 1.5))
    trace.append(OptimizationState(1, 1.0, 0.5, {"alpha": 0.25}))
    assert len(trace) == 2
    assert trace[1].value == 1.0
    assert [s.iteration for s in trace] == [0, 1]
    text = str(trace)
    assert text.splitlines()[0].startswith("Iter")
    assert " * alpha: 0.25" in text
