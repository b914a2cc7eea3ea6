r"""参数扫描
==========

外层并行：每个参数点是一个独立任务（各自构造材料并求解），由
``concurrent.futures.ProcessPoolExecutor`` 分发。单个参数点的数值失败
（:class:`~usadelscf.errors.UsadelError`）被记录在 :attr:`SweepResult.failures`
中，不影响其它参数点；其它异常照常抛出。

内置任务：

- :func:`critical_temperature_task`：体/薄膜超导体的能隙–温度曲线；
- :func:`ferromagnet_task`：与体超导体相接的铁磁体（交换场 × 自旋轨道强度扫描）；
- :func:`bilayer_task`：超导/铁磁（或正常金属）双层的耦合自洽。
"""

from __future__ import annotations

import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, List, Sequence, Tuple

import numpy as np

from .bvp import BVPConfig
from .errors import UsadelError
from .grid import energy_grid_bcs, energy_grid_linear, position_grid
from .materials import Ferromagnet, Fixed, Metal, Superconductor
from .scf import SCFConfig, run_hybrid_scf, temperature_sweep
from .spin import SpinVector

__all__ = [
    "SweepResult",
    "run_sweep",
    "CriticalTask",
    "critical_temperature_task",
    "FerromagnetTask",
    "ferromagnet_task",
    "BilayerTask",
    "bilayer_task",
]


@dataclass
class SweepResult:
    """扫描结果：成功的 ``(参数, 返回值)`` 与失败的 ``(参数, 错误信息)``，均按输入顺序排列。"""

    results: List[Tuple[Any, Any]] = field(default_factory=list)
    failures: List[Tuple[Any, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def run_sweep(task: Callable[[Any], Any], params: Sequence[Any], workers: int = 1,
              verbose: bool = False) -> SweepResult:
    """对每个参数点执行 ``task(param)``。

    Parameters
    ----------
    task : callable
        模块级（可 pickle）函数；``workers > 1`` 时在子进程中执行。
    params : sequence
        参数点序列。
    workers : int
        进程数；``1`` 表示在当前进程串行执行。
    verbose : bool
        打印每个任务的完成情况。
    """
    if workers < 1:
        raise ValueError("workers 必须 >= 1")
    params = list(params)
    outcome: dict[int, Tuple[bool, Any]] = {}
    t0 = time.perf_counter()

    def record(k: int, ok: bool, value: Any) -> None:
        outcome[k] = (ok, value)
        if verbose:
            state = "完成" if ok else f"失败: {value}"
            print(f"[Sweep] {len(outcome):3d}/{len(params)} param={params[k]!r} {state} "
                  f"elapsed={time.perf_counter() - t0:.1f}s")

    if workers == 1:
        for k, p in enumerate(params):
            try:
                record(k, True, task(p))
            except UsadelError as exc:
                record(k, False, f"{type(exc).__name__}: {exc}")
    else:
        with ProcessPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(task, p): k for k, p in enumerate(params)}
            for fut in as_completed(futures):
                k = futures[fut]
                try:
                    record(k, True, fut.result())
                except UsadelError as exc:
                    record(k, False, f"{type(exc).__name__}: {exc}")

    out = SweepResult()
    for k, p in enumerate(params):
        ok, value = outcome[k]
        (out.results if ok else out.failures).append((p, value))
    return out


### 内置任务


@dataclass(frozen=True)
class CriticalTask:
    """超导体能隙–温度曲线的参数。"""

    temperatures: Tuple[float, ...]
    positions: int = 10
    thouless: float = 0.01
    strength: float = 0.2
    energies_per_segment: int = 100


def critical_temperature_task(p: CriticalTask) -> dict:
    """返回 ``{"temperatures", "gaps", "critical_temperature", "statuses"}``；失败的温度点能隙为 ``nan``。"""
    s = Superconductor(
        position_grid(p.positions),
        energy_grid_bcs(p.strength, p.energies_per_segment, p.energies_per_segment, p.energies_per_segment),
        p.thouless,
        p.strength,
    )
    res = temperature_sweep(s, p.temperatures, SCFConfig())
    return {
        "temperatures": res.temperatures.tolist(),
        "gaps": res.gaps.tolist(),
        "critical_temperature": res.critical_temperature,
        "statuses": res.statuses,
    }


@dataclass(frozen=True)
class FerromagnetTask:
    """与体超导体（能隙 ``gap``）相接的铁磁体。

    交换场沿 :math:`x`，自旋轨道场为 Rashba–Dresselhaus 形式。
    """

    exchange: float
    spinorbit: float
    angle: float = np.pi / 4
    positions: int = 64
    energies: int = 20
    emin: float = 0.01
    emax: float = 1.3
    thouless: float = 1.0
    transparency: float = 1.0
    gap: float = 1.0


def ferromagnet_task(p: FerromagnetTask) -> dict:
    """返回位置、能量、态密度、单态与三重态振幅网格。"""
    energies = energy_grid_linear(p.energies, p.emin, p.emax)
    f = Ferromagnet(
        position_grid(p.positions),
        energies,
        p.thouless,
        exchange=(p.exchange, 0.0, 0.0),
        spinorbit=SpinVector.rashba_dresselhaus(p.spinorbit, p.angle),
    )
    f.interface_left = p.transparency
    f.boundary_left = Fixed.bulk(energies, p.gap, transparency=p.transparency)
    f.update()
    return {
        "params": asdict(p),
        "positions": f.positions,
        "energies": f.energies,
        "dos": f.dos(),
        "singlet": f.singlets(),
        "triplet": f.triplets(),
    }


@dataclass(frozen=True)
class BilayerTask:
    """超导/铁磁双层；``exchange`` 全零时第二层为正常金属。"""

    exchange: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    interface: float = 3.0
    temperature: float = 0.0
    strength: float = 0.2
    positions: int = 20
    energies_per_segment: int = 30
    sc_thouless: float = 1.0
    thouless: float = 1.0
    workers: int = 1


def bilayer_task(p: BilayerTask) -> dict:
    """耦合自洽后返回超导层的能隙场与平均能隙。"""
    energies = energy_grid_bcs(p.strength, p.energies_per_segment, p.energies_per_segment, p.energies_per_segment)
    bvp = BVPConfig(workers=p.workers)
    s = Superconductor(position_grid(p.positions), energies, p.sc_thouless, p.strength,
                       temperature=p.temperature, bvp=bvp)
    if np.any(p.exchange):
        other = Ferromagnet(position_grid(p.positions), energies, p.thouless, exchange=p.exchange,
                            temperature=p.temperature, bvp=bvp)
    else:
        other = Metal(position_grid(p.positions), energies, p.thouless, temperature=p.temperature, bvp=bvp)

    s.interface_right = p.interface
    other.interface_left = p.interface
    s.update_boundary_right(other)
    other.update_boundary_left(s)

    res = run_hybrid_scf([s, other], SCFConfig())
    return {
        "params": asdict(p),
        "status": res.status,
        "positions": s.positions.tolist(),
        "gap": res.gaps[0].tolist(),
        "mean_gap": res.mean_gaps[0],
    }
