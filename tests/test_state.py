import numpy as np
import pytest

from usadelscf.constants import BULK_ETA
from usadelscf.errors import NumericalSingularity, UsadelError
from usadelscf.spin import PAULI_0, PAULI_Z
from usadelscf.state import ISIGMA_Y, VECTOR_SIZE, State, pack_batch, unpack_batch


@pytest.mark.state
@pytest.mark.quick
def test_vectorize_roundtrip():
    rng = np.random.default_rng(0)
    parts = [rng.normal(size=(2, 2)) + 1j * rng.normal(size=(2, 2)) for _ in range(4)]
    s = State(*parts)
    v = s.vectorize()
    assert v.shape == (VECTOR_SIZE,)
    assert State.unvectorize(v) == s


@pytest.mark.state
@pytest.mark.quick
def test_batch_pack_matches_single_vectorize():
    states = [State.bulk(e, 1.0) for e in (0.3, 1.7)]
    y = np.column_stack([s.vectorize() for s in states])
    g, gt, dg, dgt = unpack_batch(y)
    assert g.shape == (2, 2, 2)
    assert np.allclose(g[1], states[1].g)
    assert np.allclose(gt[0], states[0].gt)
    assert np.allclose(pack_batch(g, gt, dg, dgt), y)


@pytest.mark.state
@pytest.mark.quick
def test_bulk_state_structure():
    s = State.bulk(0.5, 1.0)
    # γ ∝ iσ_y，γ̃ = -γ
    assert np.allclose(s.g, s.g[0, 1] * ISIGMA_Y)
    assert np.allclose(s.gt, -s.g)
    assert not np.any(s.dg) and not np.any(s.dgt)


@pytest.mark.state
@pytest.mark.quick
@pytest.mark.parametrize("energy", [0.0, 0.4, 0.9, 1.2, 2.0, 5.0])
def test_bulk_dos_and_singlet_match_theta(energy):
    theta = np.arctanh(1.0 / (energy + 1.0j * BULK_ETA))
    s = State.bulk(energy, 1.0)
    assert np.isclose(s.dos, np.real(np.cosh(theta)), rtol=1e-8, atol=1e-10)
    assert np.isclose(s.singlet, np.sinh(theta), rtol=1e-8, atol=1e-10)
    assert np.allclose(s.triplet, 0.0)


@pytest.mark.state
@pytest.mark.quick
def test_bulk_dos_bcs_shape():
    # 相干峰之上 DOS ≈ ε/sqrt(ε²-Δ²)，能隙内 DOS ≈ 0
    assert np.isclose(State.bulk(2.0, 1.0).dos, 2.0 / np.sqrt(3.0), rtol=1e-3)
    assert State.bulk(0.5, 1.0).dos < 1e-2


@pytest.mark.state
@pytest.mark.quick
def test_normal_state():
    s = State.bulk(0.7, 0.0)
    assert not np.any(s.g) and not np.any(s.gt)
    assert s.dos == pytest.approx(1.0)
    assert s.singlet == 0


@pytest.mark.state
@pytest.mark.quick
def test_triplet_extraction():
    # γ = 0.1 σ_z iσ_y, γ̃ = 0 ⇒ f = 0.2 σ_z iσ_y，纯 d_z 三重态
    s = State(0.1 * PAULI_Z @ ISIGMA_Y, np.zeros((2, 2)))
    assert np.allclose(s.triplet, [0.0, 0.0, 0.2])
    assert abs(s.singlet) < 1e-14


@pytest.mark.state
@pytest.mark.quick
def test_singular_normalization_raises():
    s = State(PAULI_0, PAULI_0)
    with pytest.raises(NumericalSingularity):
        _ = s.N
    with pytest.raises(UsadelError):
        _ = s.dos
    with pytest.raises(ArithmeticError):
        s.normalization()


@pytest.mark.state
@pytest.mark.quick
def test_invalid_shapes():
    with pytest.raises(ValueError):
        State(np.zeros(3), np.zeros((2, 2)))
    with pytest.raises(ValueError):
        State.unvectorize(np.zeros(16))


@pytest.mark.state
@pytest.mark.quick
def test_copy_is_independent():
    s = State.bulk(0.3, 1.0)
    c = s.copy()
    c.g[0, 1] = 7.0
    assert s.g[0, 1] != 7.0
