import numpy as np
import pytest

from usadelscf.bvp import BVPConfig, solve_two_point
from usadelscf.errors import ConvergenceFailure, UsadelError


def _decay_problem(k):
    # y'' = k² y，y(0) = 1，y'(1) + k y(1) = 0 ⇒ y = exp(-k x)
    def fun(x, y):
        return np.vstack([y[1], k ** 2 * y[0]])

    def bc(ya, yb):
        return np.array([ya[0] - 1.0, yb[1] + k * yb[0]])

    return fun, bc


@pytest.mark.bvp
@pytest.mark.quick
def test_exponential_decay_matches_closed_form():
    k = 3.0
    fun, bc = _decay_problem(k)
    mesh = np.linspace(0.0, 1.0, 11)
    sol = solve_two_point(fun, bc, mesh, np.zeros((2, mesh.size)))
    xs = np.linspace(0.0, 1.0, 51)
    y = sol(xs)
    assert np.allclose(y[0], np.exp(-k * xs), atol=1e-3)
    assert np.allclose(y[1], -k * np.exp(-k * xs), atol=1e-2)
    assert sol.max_residual < 1e-4
    assert sol.x[0] == 0.0 and sol.x[-1] == 1.0


@pytest.mark.bvp
@pytest.mark.quick
def test_max_nodes_exceeded_raises():
    fun, bc = _decay_problem(200.0)
    mesh = np.linspace(0.0, 1.0, 5)
    cfg = BVPConfig(max_nodes=8)
    with pytest.raises(ConvergenceFailure) as info:
        solve_two_point(fun, bc, mesh, np.zeros((2, mesh.size)), cfg, energy=0.5)
    assert info.value.status != 0
    assert info.value.energy == 0.5
    assert isinstance(info.value, UsadelError)


@pytest.mark.bvp
@pytest.mark.quick
def test_input_validation():
    fun, bc = _decay_problem(1.0)
    with pytest.raises(ValueError):
        solve_two_point(fun, bc, np.array([0.0]), np.zeros((2, 1)))
    with pytest.raises(ValueError):
        solve_two_point(fun, bc, np.linspace(0, 1, 5), np.zeros((2, 4)))
    with pytest.raises(ValueError):
        BVPConfig(tol=0.0)
    with pytest.raises(ValueError):
        BVPConfig(workers=0)
