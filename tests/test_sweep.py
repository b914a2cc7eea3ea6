import numpy as np
import pytest

from usadelscf.errors import NonConvergence
from usadelscf.sweep import BilayerTask, FerromagnetTask, bilayer_task, ferromagnet_task, run_sweep


def _task(x):
    if x < 0:
        raise NonConvergence(f"x={x} 不收敛", iterations=3)
    return x * x


def _broken(x):
    raise KeyError(x)


@pytest.mark.sweep
@pytest.mark.quick
def test_failures_are_recorded_per_parameter():
    res = run_sweep(_task, [1, -2, 3])
    assert res.results == [(1, 1), (3, 9)]
    assert len(res.failures) == 1
    p, msg = res.failures[0]
    assert p == -2
    assert "NonConvergence" in msg
    assert not res.ok


@pytest.mark.sweep
@pytest.mark.quick
def test_unexpected_errors_propagate():
    with pytest.raises(KeyError):
        run_sweep(_broken, [1])
    with pytest.raises(ValueError):
        run_sweep(_task, [1], workers=0)


@pytest.mark.sweep
def test_process_pool_keeps_input_order():
    res = run_sweep(abs, [-3, 2, -1, 5], workers=2)
    assert res.ok
    assert res.results == [(-3, 3), (2, 2), (-1, 1), (5, 5)]


@pytest.mark.sweep
@pytest.mark.slow
def test_ferromagnet_task_shapes():
    p = FerromagnetTask(exchange=0.5, spinorbit=0.2, positions=8, energies=4)
    out = ferromagnet_task(p)
    assert out["dos"].shape == (8, 4)
    assert out["triplet"].shape == (8, 4, 3)
    assert out["params"]["exchange"] == 0.5
    assert np.max(np.abs(out["triplet"])) > 1e-4


@pytest.mark.sweep
@pytest.mark.slow
def test_bilayer_task_smoke():
    p = BilayerTask(positions=4, energies_per_segment=6, interface=5.0, sc_thouless=0.2)
    out = bilayer_task(p)
    assert out["status"] in ("converged", "normal")
    assert len(out["gap"]) == 4
    assert np.allclose(out["positions"], np.linspace(0.0, 1.0, 4))
    assert np.isfinite(out["mean_gap"])
    assert max(out["gap"]) <= 1.0 + 1e-2
    assert out["params"]["interface"] == 5.0
