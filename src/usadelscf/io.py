from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Type

import numpy as np

from .materials import Ferromagnet, Material, Metal, Superconductor
from .scf import TemperatureSweepResult
from .spin import SpinVector
from .state import State

__all__ = [
    "export_gaps_json",
    "export_dos_csv",
    "save_material_json",
    "load_material_json",
]

_KINDS: Dict[str, Type[Material]] = {
    cls.kind: cls for cls in (Superconductor, Metal, Ferromagnet)
}


def _complex_to_json(z: np.ndarray) -> dict:
    z = np.asarray(z, dtype=complex)
    return {"re": z.real.tolist(), "im": z.imag.tolist()}


def _complex_from_json(d: dict) -> np.ndarray:
    return np.asarray(d["re"], dtype=float) + 1j * np.asarray(d["im"], dtype=float)


def export_gaps_json(out_path: str | Path, result: TemperatureSweepResult) -> None:
    """导出温度扫描结果为 JSON：``temperatures``、``gaps``、``critical_temperature``、``statuses``。"""
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "temperatures": np.asarray(result.temperatures, dtype=float).tolist(),
        "gaps": np.asarray(result.gaps, dtype=float).tolist(),
        "critical_temperature": result.critical_temperature,
        "statuses": list(result.statuses),
    }
    with p.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def export_dos_csv(out_path: str | Path, material: Material) -> None:
    """导出局域态密度为 CSV（长表格式），列为 ``x,energy,dos``。"""
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    x, e = np.meshgrid(material.positions, material.energies, indexing="ij")
    data = np.column_stack([x.ravel(), e.ravel(), material.dos().ravel()])
    np.savetxt(p, data, delimiter=",", header="x,energy,dos")


def save_material_json(out_path: str | Path, material: Material) -> None:
    """保存材料的网格、参数、能隙与态网格，便于中断后续算。

    边界条件（对其它材料的引用）不保存，恢复后需重新连接。
    """
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    states = np.empty(material.states.shape + (4, 2, 2), dtype=complex)
    for idx, s in np.ndenumerate(material.states):
        states[idx] = np.stack([s.g, s.gt, s.dg, s.dgt])

    params: dict = {}
    if isinstance(material, Superconductor):
        params["strength"] = material.scaling
    if isinstance(material, Ferromagnet):
        params["exchange"] = material.exchange.tolist()
        params["spinorbit"] = [_complex_to_json(c) for c in material.spinorbit]

    data = {
        "kind": material.kind,
        "positions": material.positions.tolist(),
        "energies": material.energies.tolist(),
        "thouless": material.diffusion,
        "temperature": material.temperature,
        "eta": material.eta,
        "interface_left": material.interface_left,
        "interface_right": material.interface_right,
        "params": params,
        "gap": material.gap.tolist(),
        "states": _complex_to_json(states),
    }
    with p.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False)


def load_material_json(in_path: str | Path) -> Material:
    """读取 :func:`save_material_json` 写出的文件，返回边界为自由端的材料。"""
    p = Path(in_path)
    with p.open("r", encoding="utf-8") as f:
        data = json.load(f)

    kind = data.get("kind")
    if kind not in _KINDS:
        raise ValueError(f"未知的材料类型: {kind!r}")
    params = dict(data.get("params", {}))
    if "spinorbit" in params:
        params["spinorbit"] = SpinVector(*(_complex_from_json(c) for c in params["spinorbit"]))

    m = _KINDS[kind](
        data["positions"],
        data["energies"],
        data["thouless"],
        temperature=data["temperature"],
        eta=data["eta"],
        **params,
    )
    m.interface_left = float(data["interface_left"])
    m.interface_right = float(data["interface_right"])

    gap = np.asarray(data["gap"], dtype=float)
    states = _complex_from_json(data["states"])
    if gap.shape != m.positions.shape or states.shape != m.states.shape + (4, 2, 2):
        raise ValueError("文件中的能隙或态网格与位置/能量网格不一致")
    m.gap = gap
    for idx in np.ndindex(m.states.shape):
        m.states[idx] = State(*states[idx])
    return m
