import numpy as np
import pytest

from cgdescent.optimize.preconditioner import (
    DiagonalPreconditioner,
    IdentityPreconditioner,
    as_preconditioner,
)


def test_identity_is_default_and_copies():
    P = as_preconditioner(None)
    assert isinstance(P, IdentityPreconditioner)
    a = np.array([1.0, 2.0])
    out = np.zeros(2)
    P.forward(out, a)
    assert np.array_equal(out, a)
    assert P.forward_dot(a, a) == P.inverse_dot(a, a) == pytest.approx(5.0)


def test_diagonal_operations():
    p = np.array([2.0, 4.0])
    P = as_preconditioner(p)
    assert isinstance(P, DiagonalPreconditioner)
    a = np.array([1.0, 3.0])
    b = np.array([2.0, -1.0])
    out = np.empty(2)
    P.forward(out, a)
    assert np.allclose(out, [2.0, 12.0])
    assert P.forward_dot(a, b) == pytest.approx(2 * 1 * 2 + 4 * 3 * -1)
    assert P.inverse_dot(a, b) == pytest.approx(1 * 2 / 2 + 3 * -1 / 4)


def test_diagonal_holds_reference_for_prep_hooks():
    p = np.ones(2)
    P = as_preconditioner(p)
    p[:] = 3.0
    out = np.empty(2)
    P.forward(out, np.ones(2))
    assert np.allclose(out, 3.0)


def test_custom_preconditioner_passthrough_and_bad_type():
    class Scaled:
        def forward(self, out, a):
            np.multiply(a, 0.5, out=out)
            return out

        def forward_dot(self, a, b):
            return 0.5 * float(a @ b)

        def inverse_dot(self, a, b):
            return 2.0 * float(a @ b)

    custom = Scaled()
    assert as_preconditioner(custom) is custom
    with pytest.raises(TypeError):
        as_preconditioner("diag")


def test_diagonal_size_mismatch():
    P = DiagonalPreconditioner(np.ones(3))
    with pytest.raises(ValueError):
        P.forward_dot(np.ones(2), np.ones(2))
