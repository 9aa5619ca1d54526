import numpy as np
import pytest

from cgdescent.optimize.vector_ops import (
    abs_weighted_sum,
    dot,
    max_abs,
    negate,
    update_direction,
)


def test_dot_flattens_multidimensional_buffers():
    a = np.arange(6.0).reshape(2, 3)
    b = np.ones((3, 2))
    assert dot(a, b) == pytest.approx(15.0)


def test_negate_and_update_direction_in_place():
    d = np.array([1.0, -2.0, 3.0])
    out = negate(d)
    assert out is d
    assert np.array_equal(d, [-1.0, 2.0, -3.0])
    pg = np.array([0.5, 0.5, 0.5])
    update_direction(d, 2.0, pg)
    assert np.allclose(d, [-2.5, 3.5, -6.5])


def test_max_abs_and_weighted_sum():
    g = np.array([-4.0, 1.0])
    d = np.array([0.5, -3.0])
    assert max_abs(g) == 4.0
    assert abs_weighted_sum(g, d) == pytest.approx(5.0)


def test_size_mismatch_is_rejected():
    with pytest.raises(ValueError):
        dot(np.ones(2), np.ones(3))
