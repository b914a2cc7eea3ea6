import json

import numpy as np
import pytest

from usadelscf.grid import position_grid
from usadelscf.io import export_dos_csv, export_gaps_json, load_material_json, save_material_json
from usadelscf.materials import Ferromagnet, Metal, Superconductor
from usadelscf.scf import TemperatureSweepResult
from usadelscf.spin import SpinVector
from usadelscf.state import State

ENERGIES = np.array([0.1, 0.5, 1.5])


@pytest.mark.io
@pytest.mark.quick
def test_export_gaps_json(tmp_path):
    res = TemperatureSweepResult(
        temperatures=np.array([0.0, 0.5, 1.0]),
        gaps=np.array([1.0, 0.6, 0.0]),
        critical_temperature=0.8,
        statuses=["converged", "converged", "normal"],
    )
    out = tmp_path / "sub" / "gaps.json"
    export_gaps_json(out, res)
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["gaps"] == [1.0, 0.6, 0.0]
    assert data["critical_temperature"] == 0.8
    assert data["statuses"][-1] == "normal"


@pytest.mark.io
@pytest.mark.quick
def test_export_dos_csv(tmp_path):
    s = Superconductor(position_grid(4), ENERGIES)
    out = tmp_path / "dos.csv"
    export_dos_csv(out, s)
    data = np.loadtxt(out, delimiter=",")
    assert data.shape == (4 * ENERGIES.size, 3)
    assert np.allclose(data[: ENERGIES.size, 1], ENERGIES)
    assert np.isclose(data[2, 2], State.bulk(1.5, 1.0).dos)


@pytest.mark.io
@pytest.mark.quick
def test_superconductor_roundtrip(tmp_path):
    s = Superconductor(position_grid(3), ENERGIES, thouless=0.5, strength=0.2, temperature=0.3)
    s.gap = np.array([0.9, 0.8, 0.7])
    s.states[1, 2] = State(np.eye(2) * 0.1j, np.eye(2) * 0.2, np.eye(2), -np.eye(2))
    s.interface_right = 4.0
    out = tmp_path / "sc.json"
    save_material_json(out, s)

    r = load_material_json(out)
    assert isinstance(r, Superconductor)
    assert r.scaling == 0.2 and r.diffusion == 0.5 and r.temperature == 0.3
    assert r.interface_right == 4.0
    assert np.array_equal(r.gap, s.gap)
    assert np.array_equal(r.energies, s.energies)
    assert all(a == b for a, b in zip(r.states.ravel(), s.states.ravel()))


@pytest.mark.io
@pytest.mark.quick
def test_ferromagnet_roundtrip_keeps_fields(tmp_path):
    f = Ferromagnet(position_grid(3), ENERGIES, exchange=(0.3, 0.0, 0.1),
                    spinorbit=SpinVector.rashba_dresselhaus(0.5, np.pi / 4))
    out = tmp_path / "fm.json"
    save_material_json(out, f)
    r = load_material_json(out)
    assert isinstance(r, Ferromagnet)
    assert np.array_equal(r.exchange, f.exchange)
    assert r.spinorbit == f.spinorbit


@pytest.mark.io
@pytest.mark.quick
def test_load_rejects_unknown_kind(tmp_path):
    out = tmp_path / "m.json"
    save_material_json(out, Metal(position_grid(2), ENERGIES))
    data = json.loads(out.read_text(encoding="utf-8"))
    data["kind"] = "insulator"
    out.write_text(json.dumps(data), encoding="utf-8")
    with pytest.raises(ValueError):
        load_material_json(out)
