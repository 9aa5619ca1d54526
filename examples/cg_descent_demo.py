"""
Example: Conjugate-gradient minimization with cgdescent

Shows an unconstrained run on the Rosenbrock function, a box-limited run using
``alphamaxfunc``, and a diagonally preconditioned run on a badly scaled
quadratic.
"""

import numpy as np

from cgdescent import CGOptions, Problem, cg_descent
from cgdescent.optimize import limits_box


def rosen(x):
    return (1 - x[0]) ** 2 + 100 * (x[1] - x[0] ** 2) ** 2


def rosen_grad(x):
    return np.array(
        [
            -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
            200 * (x[1] - x[0] ** 2),
        ]
    )


def example_rosenbrock():
    """Example: Rosenbrock valley from the classic starting point."""
    print("=" * 60)
    print("Example 1: Rosenbrock function")
    print("=" * 60)

    problem = Problem(fun=rosen, grad=rosen_grad, dim=2)
    result = cg_descent(problem, np.array([-1.2, 1.0]), store_trace=True)
    print(result)
    print()
    print(result.trace)
    print()


def example_box_limit():
    """Example: the minimizer lies outside the allowed box."""
    print("=" * 60)
    print("Example 2: Step limit from a box constraint")
    print("=" * 60)

    def func(g, x):
        if g is not None:
            g[:] = 2 * (x - 3)
        return float(np.sum((x - 3) ** 2))

    lower = np.full(2, -1.0)
    upper = np.array([2.0, 5.0])
    result = cg_descent(
        func,
        np.zeros(2),
        alphamaxfunc=lambda x, d: limits_box(x, d, lower, upper),
    )
    print(f"Status: {result.status.value}")
    print(f"Final point: {result.x}")
    print(f"Function evaluations: {result.nfev}")
    print()


def example_preconditioned():
    """Example: diagonal preconditioning of a badly scaled quadratic."""
    print("=" * 60)
    print("Example 3: Diagonal preconditioner")
    print("=" * 60)

    scales = np.logspace(0, 6, 8)

    def func(g, x):
        if g is not None:
            g[:] = scales * (x - 1)
        return 0.5 * float(np.sum(scales * (x - 1) ** 2)) + 1.0

    x0 = np.zeros(scales.size)
    plain = cg_descent(func, x0)
    options = CGOptions(P=1.0 / scales)
    preconditioned = cg_descent(func, x0, options)
    print(f"Without preconditioner: {plain.nit} iterations, {plain.nfev} evaluations")
    print(
        f"With preconditioner:    {preconditioned.nit} iterations, "
        f"{preconditioned.nfev} evaluations"
    )
    print()


if __name__ == "__main__":
    example_rosenbrock()
    example_box_limit()
    example_preconditioned()

    print("=" * 60)
    print("All examples completed successfully!")
    print("=" * 60)
