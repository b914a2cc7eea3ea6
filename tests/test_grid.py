import numpy as np
import pytest

from usadelscf.grid import (
    check_grid,
    energy_cutoff,
    energy_grid_bcs,
    energy_grid_linear,
    gauss_legendre_rule,
    position_grid,
    trapezoid_weights,
)
from usadelscf.utils import field_interpolator, position_average, trapz


@pytest.mark.grid
@pytest.mark.quick
def test_trapezoid_weights_integral_of_one():
    x = position_grid(101, length=2.0)
    w = trapezoid_weights(x)
    # ∫_0^2 1 dx = 2
    assert np.isclose(np.sum(w), 2.0, rtol=0, atol=1e-12)


@pytest.mark.grid
@pytest.mark.quick
def test_trapz_converges_for_smooth_function():
    x = np.linspace(0.0, np.pi, 2001)
    assert np.isclose(trapz(np.sin(x), x), 2.0, atol=1e-6)


@pytest.mark.grid
@pytest.mark.quick
def test_gauss_legendre_exact_for_polynomials():
    x, w = gauss_legendre_rule(np.array([0.0, 0.5, 2.0]), 4)
    # ∫_0^2 x^3 dx = 4
    assert np.isclose(trapz(x ** 3, x, w), 4.0, rtol=0, atol=1e-12)
    assert np.all((x > 0.0) & (x < 2.0))


@pytest.mark.grid
@pytest.mark.quick
def test_bcs_energy_grid():
    e = energy_grid_bcs(0.2)
    assert e.size == 300
    assert e[0] == 0.0
    assert np.isclose(e[-1], np.cosh(5.0))
    assert np.isclose(energy_cutoff(0.2), np.cosh(5.0))
    assert np.all(np.diff(e) > 0)


@pytest.mark.grid
@pytest.mark.quick
def test_grid_validation():
    with pytest.raises(ValueError):
        check_grid([0.0, 0.5, 0.5], "positions")
    with pytest.raises(ValueError):
        check_grid([-0.1, 0.2], "energies", nonnegative=True)
    with pytest.raises(ValueError):
        check_grid([], "positions")
    with pytest.raises(ValueError):
        energy_grid_linear(5, 1.0, 0.5)
    assert np.array_equal(position_grid(1), [0.0])


@pytest.mark.grid
@pytest.mark.quick
def test_field_interpolator_preserves_monotone_data():
    x = np.linspace(0.0, 1.0, 6)
    y = np.array([0.0, 0.0, 0.1, 0.9, 1.0, 1.0])
    f = field_interpolator(x, y)
    xs = np.linspace(0.0, 1.0, 201)
    ys = f(xs)
    # PCHIP 不过冲
    assert np.all(ys >= -1e-12) and np.all(ys <= 1.0 + 1e-12)
    assert np.all(np.diff(ys) >= -1e-12)
    # 区间外取端点值
    assert np.isclose(f(1.5), 1.0)
    assert np.isclose(f(-0.5), 0.0)


@pytest.mark.grid
@pytest.mark.quick
def test_field_interpolator_single_point_is_constant():
    f = field_interpolator(np.array([0.0]), np.array([0.7]))
    assert f(0.3) == 0.7
    assert np.allclose(f(np.array([0.0, 2.0])), 0.7)


@pytest.mark.grid
@pytest.mark.quick
def test_position_average():
    x = position_grid(11, length=2.0)
    assert np.isclose(position_average(np.full(11, 3.0), x), 3.0)
    assert np.isclose(position_average(x, x), 1.0)
    assert position_average(np.array([0.4]), np.array([0.0])) == 0.4
