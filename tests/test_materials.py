import numpy as np
import pytest

from usadelscf.bvp import BVPConfig
from usadelscf.errors import UsadelError
from usadelscf.grid import energy_grid_bcs, energy_grid_linear, position_grid
from usadelscf.materials import (
    Ferromagnet,
    Fixed,
    Free,
    Interface,
    Metal,
    Superconductor,
    bcs_gap_integral,
)
from usadelscf.spin import SpinVector
from usadelscf.state import State

ENERGIES = np.array([0.2, 0.6, 1.4, 2.0])


def _proximity_metal(cls=Metal, transparency=3.0, **kwargs):
    m = cls(position_grid(11), ENERGIES, 1.0, **kwargs)
    m.boundary_left = Fixed.bulk(ENERGIES, 1.0, transparency=transparency)
    return m


@pytest.mark.material
@pytest.mark.quick
def test_initial_states_are_bulk():
    s = Superconductor(position_grid(4), ENERGIES)
    m = Metal(position_grid(4), ENERGIES)
    assert s.states.shape == (4, ENERGIES.size)
    assert np.allclose(s.gap, 1.0) and not np.any(m.gap)
    assert s.states[2, 1] == State.bulk(ENERGIES[1], 1.0)
    assert not np.any(m.states[0, 0].g)
    assert isinstance(m.boundary_left, Free) and isinstance(m.boundary_right, Free)


@pytest.mark.material
@pytest.mark.quick
def test_single_position_material_is_bulk():
    s = Superconductor([0.0], ENERGIES)
    s.gap = np.array([0.8])
    s.update_state()
    for j, e in enumerate(ENERGIES):
        assert s.states[0, j] == State.bulk(e, 0.8)


@pytest.mark.material
def test_superconductor_with_free_boundaries_stays_bulk():
    s = Superconductor(position_grid(5), ENERGIES)
    s.update_state()
    for j, e in enumerate(ENERGIES):
        ref = State.bulk(e, 1.0)
        for i in range(5):
            st = s.states[i, j]
            assert np.allclose(st.g, ref.g, atol=2e-2)
            assert np.allclose(st.gt, ref.gt, atol=2e-2)
            assert np.allclose(st.dg, 0.0, atol=1e-6)


@pytest.mark.material
def test_metal_proximity_effect_decays():
    m = _proximity_metal()
    m.update()
    f = np.abs(m.singlets())
    assert np.all(f[0] > 1e-3)
    assert np.all(f[0] > f[-1])
    # 解处处可归一化
    for st in m.states.ravel():
        assert abs(np.linalg.det(np.eye(2) - st.g @ st.gt)) > 1e-12


@pytest.mark.material
def test_metal_continuity_boundary():
    m = _proximity_metal(transparency=None)
    m.update_state()
    for j, e in enumerate(ENERGIES):
        ref = State.bulk(e, 1.0)
        assert np.allclose(m.states[0, j].g, ref.g, atol=1e-4)
        assert np.allclose(m.states[0, j].gt, ref.gt, atol=1e-4)


@pytest.mark.material
def test_spinorbit_without_exchange_matches_metal():
    m = _proximity_metal()
    f = _proximity_metal(Ferromagnet, spinorbit=SpinVector.rashba_dresselhaus(1.0, np.pi / 4))
    m.update_state()
    f.update_state()
    assert np.allclose(f.singlets(), m.singlets(), atol=1e-3)
    assert np.allclose(f.dos(), m.dos(), atol=1e-3)
    assert np.max(np.abs(f.triplets())) < 1e-3


@pytest.mark.material
def test_exchange_field_generates_triplets():
    m = _proximity_metal()
    f = _proximity_metal(Ferromagnet, exchange=(0.5, 0.0, 0.0))
    m.update_state()
    f.update_state()
    assert np.max(np.abs(m.triplets())) < 1e-8
    assert np.max(np.abs(f.triplets())) > 1e-3


@pytest.mark.material
@pytest.mark.quick
def test_interface_requires_matching_energies():
    s = Superconductor([0.0], energy_grid_linear(5, 0.0, 2.0))
    m = Metal(position_grid(5), ENERGIES)
    m.interface_left = 2.5
    m.update_boundary_left(s)
    assert isinstance(m.boundary_left, Interface)
    assert m.boundary_left.transparency == 2.5
    assert m.boundary_left.material is s
    with pytest.raises(ValueError):
        m.update_state()


@pytest.mark.material
@pytest.mark.quick
def test_fixed_boundary_requires_one_state_per_energy():
    m = Metal(position_grid(5), ENERGIES)
    m.boundary_right = Fixed.bulk(ENERGIES[:2], 1.0)
    with pytest.raises(ValueError):
        m.update_state()
    with pytest.raises(ValueError):
        Interface(m, transparency=0.0)


@pytest.mark.material
def test_failed_update_leaves_states_untouched():
    m = Metal(position_grid(5), ENERGIES, thouless=1e-4, bvp=BVPConfig(max_nodes=6))
    m.boundary_left = Fixed.bulk(ENERGIES, 1.0)
    before = m.states.copy()
    with pytest.raises(UsadelError):
        m.update_state()
    assert all(a is b for a, b in zip(m.states.ravel(), before.ravel()))


@pytest.mark.material
@pytest.mark.quick
def test_gap_interpolation_and_critical():
    s = Superconductor(position_grid(5), ENERGIES)
    s.gap = np.linspace(0.0, 1.0, 5)
    assert np.isclose(s.gap_interpolate(0.3), 0.3)
    assert np.isclose(s.field_interpolate(2.0 * s.gap, 0.6), 1.2)
    assert np.isclose(s.mean_gap, 0.5)
    assert not s.critical()
    s.gap = np.full(5, 1e-6)
    assert s.critical()


@pytest.mark.material
@pytest.mark.quick
def test_bulk_gap_equation_at_zero_temperature():
    energies = energy_grid_bcs(0.2)
    s = Superconductor([0.0], energies, strength=0.2)
    s.update_state()
    new = s.self_consistency_step()
    assert new.shape == (1,)
    assert s.gap[0] == 1.0
    assert np.isclose(new[0], 1.0, atol=1e-6)

    # 体材料退化为 Δ = λ Δ arccosh(ω_c/Δ)
    s.gap = np.array([0.8])
    s.update_state()
    expected = 0.2 * 0.8 * np.arccosh(energies[-1] / 0.8)
    assert np.isclose(s.self_consistency_step()[0], expected, atol=1e-6)


@pytest.mark.material
@pytest.mark.quick
def test_invalid_material_parameters():
    with pytest.raises(ValueError):
        Metal(position_grid(5), ENERGIES, thouless=0.0)
    with pytest.raises(ValueError):
        Superconductor(position_grid(5), [0.5])
    with pytest.raises(ValueError):
        Ferromagnet(position_grid(5), ENERGIES, exchange=(1.0, 0.0))
    with pytest.raises(ValueError):
        Ferromagnet(position_grid(5), ENERGIES, spinorbit=np.eye(2))
    with pytest.raises(NotImplementedError):
        Metal(position_grid(5), ENERGIES).self_consistency_step()


@pytest.mark.material
@pytest.mark.slow
def test_parallel_update_matches_serial():
    serial = _proximity_metal()
    parallel = _proximity_metal(bvp=BVPConfig(workers=2))
    serial.update_state()
    parallel.update_state()
    assert np.allclose(parallel.singlets(), serial.singlets(), atol=1e-10)


@pytest.mark.material
@pytest.mark.quick
@pytest.mark.parametrize("per_segment", [10, 30])
def test_bulk_gap_stays_at_fixed_point_on_coarse_grids(per_segment):
    s = Superconductor([0.0], energy_grid_bcs(0.2, per_segment, per_segment, per_segment), strength=0.2)
    for _ in range(4):
        s.update()
        assert abs(s.gap[0] - 1.0) < 1e-6


@pytest.mark.material
@pytest.mark.quick
def test_bcs_gap_integral():
    cutoff = np.cosh(5.0)
    assert np.isclose(bcs_gap_integral(0.5, cutoff, 0.0), 0.5 * np.arccosh(cutoff / 0.5))
    assert np.isclose(bcs_gap_integral(0.5, cutoff, 1e-3), bcs_gap_integral(0.5, cutoff, 0.0), rtol=1e-10)
    values = [bcs_gap_integral(0.5, cutoff, t) for t in (0.1, 0.3, 0.6, 1.0)]
    assert np.all(np.diff(values) < 0)
    assert bcs_gap_integral(0.0, cutoff, 0.3) == 0.0
    assert bcs_gap_integral(2.0 * cutoff, cutoff, 0.3) == 0.0


@pytest.mark.material
def test_interface_mirror_symmetry():
    s = Superconductor([0.0], ENERGIES)
    left = Metal(position_grid(11), ENERGIES)
    right = Metal(position_grid(11), ENERGIES)
    left.interface_left = 3.0
    right.interface_right = 3.0
    left.update_boundary_left(s)
    right.update_boundary_right(s)
    left.update_state()
    right.update_state()
    # 右侧界面的解是左侧界面解的镜像
    assert np.allclose(right.singlets()[::-1], left.singlets(), atol=1e-3)
    assert np.allclose(right.dos()[::-1], left.dos(), atol=1e-3)
    assert np.all(np.abs(right.singlets()[-1]) > np.abs(right.singlets()[0]))


@pytest.mark.material
@pytest.mark.quick
def test_single_position_material_requires_free_boundaries():
    s = Superconductor([0.0], ENERGIES)
    s.boundary_right = Fixed.bulk(ENERGIES, 1.0, transparency=3.0)
    with pytest.raises(ValueError):
        s.update_state()
    s.boundary_right = Free()
    s.update_boundary_left(Metal(position_grid(3), ENERGIES))
    with pytest.raises(ValueError):
        s.update_state()
