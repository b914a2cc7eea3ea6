r"""能隙自洽循环
================

交替执行"在给定能隙下求解全部能量的 Usadel 方程"与"由态网格计算新能隙"，
直到位置平均能隙稳定：

.. math::
    \Delta^{(k+1)} = (1-\alpha)\,\Delta^{(k)} + \alpha\,\mathcal{G}\big[\gamma(\Delta^{(k)})\big],

其中 :math:`\mathcal{G}` 为 BCS 能隙方程，:math:`\alpha` 为混合参数（默认 1，即直接替换）。
每轮扫描之后再对各自洽层的能隙做 Anderson 混合（``SCFConfig.anderson``），
临界温度附近的慢收敛由此变为超线性收敛。

终止状态：

- ``converged``：平均能隙的相对变化低于 ``gap_tol``；
- ``normal``：能隙恒为零；或已迭代至少 ``min_iter`` 次，且平均能隙低于 ``gap_floor``
  并在本轮未增大；或最近 ``normal_window`` 步单调几何衰减、Aitken 外推极限低于
  ``gap_floor``（临界温度附近的慢衰减）。判定为正常态后能隙置零并重新求解一次态网格；
- 超出 ``maxiter`` 抛出 :class:`~usadelscf.errors.NonConvergence`。

BVP 失败（:class:`~usadelscf.errors.ConvergenceFailure`）时回退到进入循环时的快照，
混合参数减半后重试，重试次数用尽则重新抛出。

多层结构（:func:`run_hybrid_scf`）按给定顺序逐层更新（Gauss–Seidel），相邻层之间
有同步点：某层求解时其邻层只读。
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import List, Sequence

import numpy as np

from .constants import SCF_GAP_FLOOR, SCF_GAP_TOL, SCF_MAXITER
from .errors import ConvergenceFailure, NonConvergence, UsadelError
from .materials.base import Material

__all__ = [
    "SCFConfig",
    "SCFResult",
    "run_gap_scf",
    "run_hybrid_scf",
    "TemperatureSweepResult",
    "temperature_sweep",
]


@dataclass
class SCFConfig:
    r"""自洽循环配置。

    Attributes
    ----------
    gap_tol : float
        平均能隙相对变化的收敛阈值。
    gap_floor : float
        平均能隙低于该值（且不再增大）视为进入正常态。
    maxiter : int
        最大迭代次数。
    min_iter : int
        判定正常态前的最少迭代次数。
    mix_alpha : float
        能隙混合参数 :math:`\alpha \in (0,1]`。
    mix_alpha_min : float
        BVP 失败回退时混合参数的下限。
    max_retries : int
        BVP 失败后的最大重试次数。
    normal_window : int
        几何外推判定正常态所需的连续下降步数（至少 2）。
    anderson : int
        Anderson 混合使用的历史步数；0 表示只做线性混合。
    """

    gap_tol: float = SCF_GAP_TOL
    gap_floor: float = SCF_GAP_FLOOR
    maxiter: int = SCF_MAXITER
    min_iter: int = 2
    mix_alpha: float = 1.0
    mix_alpha_min: float = 0.125
    max_retries: int = 3
    normal_window: int = 3
    anderson: int = 3

    def __post_init__(self):
        if not (0.0 < self.mix_alpha <= 1.0):
            raise ValueError("mix_alpha 必须位于 (0, 1]")
        if self.mix_alpha_min <= 0:
            raise ValueError("mix_alpha_min 必须为正")
        if self.gap_tol <= 0 or self.gap_floor < 0:
            raise ValueError("gap_tol 必须为正，gap_floor 必须非负")
        if self.maxiter < 1 or self.min_iter < 1 or self.max_retries < 0:
            raise ValueError("maxiter、min_iter 必须 >= 1，max_retries 必须 >= 0")
        if self.normal_window < 2:
            raise ValueError("normal_window 必须 >= 2")
        if self.anderson < 0:
            raise ValueError("anderson 必须 >= 0")


@dataclass
class SCFResult:
    r"""自洽循环结果。

    ``gaps``、``mean_gaps`` 与传入的材料一一对应；``history`` 记录每轮迭代后
    各自洽层平均能隙的最大值。
    """

    status: str
    iterations: int
    gaps: List[np.ndarray]
    mean_gaps: List[float]
    history: List[float] = field(default_factory=list)
    mix_alpha: float = 1.0
    retries: int = 0

    @property
    def converged(self) -> bool:
        return self.status in ("converged", "normal")

    @property
    def gap(self) -> np.ndarray:
        return self.gaps[0]

    @property
    def mean_gap(self) -> float:
        return self.mean_gaps[0]


def _relative_change(new: float, old: float) -> float:
    scale = max(abs(new), abs(old))
    return 0.0 if scale == 0.0 else abs(new - old) / scale


def _extrapolated_limit(values: Sequence[float], window: int) -> float | None:
    r"""最近 ``window`` 步单调下降且步长比 :math:`r\in(0,1)` 时的 Aitken 外推极限。

    .. math::
        \Delta_\infty \approx \Delta_k + \delta_k\,\frac{r}{1-r},\qquad
        r = \delta_k/\delta_{k-1},\ \delta_k = \Delta_k - \Delta_{k-1}.

    不满足条件时返回 ``None``。
    """
    if len(values) < window + 1:
        return None
    tail = np.asarray(values[-(window + 1):], dtype=float)
    steps = np.diff(tail)
    if np.any(steps >= 0):
        return None
    ratios = steps[1:] / steps[:-1]
    if np.any(ratios <= 0) or np.any(ratios >= 1):
        return None
    r = ratios[-1]
    return float(tail[-1] + steps[-1] * r / (1.0 - r))


def _is_normal(cur: List[float], prev: List[float], series: List[List[float]],
               it: int, cfg: SCFConfig) -> bool:
    if all(c == 0.0 for c in cur):
        return True
    if it < cfg.min_iter:
        return False
    if all(c < cfg.gap_floor and c <= p for c, p in zip(cur, prev)):
        return True
    limits = [_extrapolated_limit(s, cfg.normal_window) for s in series]
    return all(lim is not None and lim < cfg.gap_floor for lim in limits)


def _enter_normal_state(materials: Sequence[Material], layers: Sequence[Material]) -> None:
    # 能隙置零后重新求解，使态网格与正常态一致
    if all(not np.any(m.gap) for m in layers):
        return
    for m in layers:
        m.gap = np.zeros_like(m.gap)
    for m in materials:
        m.update_state()


def _anderson_step(history_x: List[np.ndarray], history_f: List[np.ndarray],
                   x: np.ndarray, f: np.ndarray, depth: int) -> np.ndarray | None:
    r"""Anderson 混合（第二类，差分形式）。

    记 :math:`f_k = \Phi(x_k) - x_k` 为一轮扫描的残差，由最近 ``depth`` 个差分
    :math:`\Delta X, \Delta F` 求最小二乘系数 :math:`c = \arg\min\|f_k - \Delta F\,c\|`，

    .. math::
        x_{k+1} = x_k + f_k - (\Delta X + \Delta F)\,c .

    一维时即割线法。历史不足、最小二乘失败或结果出现负能隙时返回 ``None``，
    调用方保留线性混合的结果。
    """
    history_x.append(x)
    history_f.append(f)
    if len(history_f) > depth + 1:
        history_x.pop(0)
        history_f.pop(0)
    if len(history_f) < 2:
        return None

    dx = np.diff(np.array(history_x), axis=0).T
    df = np.diff(np.array(history_f), axis=0).T
    try:
        coef = np.linalg.lstsq(df, f, rcond=None)[0]
    except np.linalg.LinAlgError:
        return None
    new = x + f - (dx + df) @ coef
    if not np.all(np.isfinite(new)) or np.any(new < 0):
        return None
    return new


def _iterate(materials: Sequence[Material], cfg: SCFConfig, alpha: float, tag: str,
             verbose: bool, progress_every: int) -> tuple[str, int, List[float]]:
    layers = [m for m in materials if m.has_self_consistency()]
    sizes = np.cumsum([m.gap.size for m in layers])[:-1]
    prev = [m.mean_gap for m in layers]
    series = [[p] for p in prev]
    history: List[float] = []
    history_x: List[np.ndarray] = []
    history_f: List[np.ndarray] = []
    t0 = time.perf_counter()

    for it in range(1, cfg.maxiter + 1):
        x = np.concatenate([m.gap for m in layers]) if layers else None
        for m in materials:
            m.update_state()
            if m.has_self_consistency():
                m.gap = (1.0 - alpha) * m.gap + alpha * np.asarray(m.self_consistency_step(), dtype=float)

        if cfg.anderson and layers:
            y = np.concatenate([m.gap for m in layers])
            new = _anderson_step(history_x, history_f, x, y - x, min(cfg.anderson, x.size))
            if new is not None:
                for m, part in zip(layers, np.split(new, sizes)):
                    m.gap = part

        cur = [m.mean_gap for m in layers]
        for s, c in zip(series, cur):
            s.append(c)
        change = max((_relative_change(c, p) for c, p in zip(cur, prev)), default=0.0)
        top = max(cur, default=0.0)
        history.append(top)

        if verbose and (it == 1 or it % progress_every == 0):
            temps = ",".join(f"{m.temperature:.4g}" for m in layers) or "-"
            print(f"[{tag}] iter={it} T={temps} gap={top:.6e} d={change:.3e} "
                  f"elapsed={time.perf_counter() - t0:.1f}s")

        if layers and _is_normal(cur, prev, series, it, cfg):
            _enter_normal_state(materials, layers)
            return "normal", it, history
        if change < cfg.gap_tol and (layers or it >= cfg.min_iter):
            return "converged", it, history
        prev = cur

    raise NonConvergence(
        f"[{tag}] 能隙在 {cfg.maxiter} 次迭代内未收敛（最后相对变化 {change:.3e}）",
        iterations=cfg.maxiter,
        history=history,
    )


def _run(materials: Sequence[Material], cfg: SCFConfig, tag: str,
         verbose: bool, progress_every: int) -> SCFResult:
    snapshots = [m.snapshot() for m in materials]
    alpha = cfg.mix_alpha
    retries = 0
    while True:
        try:
            status, it, history = _iterate(materials, cfg, alpha, tag, verbose, progress_every)
            break
        except ConvergenceFailure as exc:
            for m, snap in zip(materials, snapshots):
                m.restore(snap)
            if retries >= cfg.max_retries or alpha <= cfg.mix_alpha_min:
                raise
            retries += 1
            alpha = max(0.5 * alpha, cfg.mix_alpha_min)
            if verbose:
                print(f"[{tag}] BVP 失败（{exc}），回退快照并减小 mix_alpha -> {alpha:.3f}")

    return SCFResult(
        status=status,
        iterations=it,
        gaps=[m.gap.copy() for m in materials],
        mean_gaps=[m.mean_gap for m in materials],
        history=history,
        mix_alpha=alpha,
        retries=retries,
    )


def run_gap_scf(material: Material, cfg: SCFConfig | None = None,
                verbose: bool = False, progress_every: int = 1) -> SCFResult:
    r"""对单个超导层执行能隙自洽循环。

    Parameters
    ----------
    material : Material
        具有能隙方程的材料（如 :class:`~usadelscf.materials.Superconductor`），
        其边界条件应已设置好；循环结束后材料保存最后一轮的态与能隙。
    cfg : SCFConfig, optional
        收敛判据与混合参数。
    verbose : bool
        打印迭代进度。
    progress_every : int
        每隔多少次迭代打印一次。

    Returns
    -------
    SCFResult

    Raises
    ------
    NonConvergence
        超出最大迭代次数。
    ConvergenceFailure
        重试次数用尽后 BVP 仍然失败（材料已恢复到进入时的状态）。
    """
    if not material.has_self_consistency():
        raise ValueError(f"{type(material).__name__} 没有能隙方程，无法执行能隙自洽")
    return _run([material], cfg or SCFConfig(), "Gap SCF", verbose, progress_every)


def run_hybrid_scf(materials: Sequence[Material], cfg: SCFConfig | None = None,
                   verbose: bool = False, progress_every: int = 1) -> SCFResult:
    """对相互耦合的多层结构执行自洽循环。

    每轮按 ``materials`` 的顺序逐层 ``update_state()``（自洽层随即更新能隙），
    直到全部自洽层的平均能隙稳定；不含自洽层时执行 ``min_iter`` 轮后结束。
    各层的界面应已通过 ``update_boundary_left/right`` 连接好。
    """
    if not materials:
        raise ValueError("materials 不能为空")
    if len({id(m) for m in materials}) != len(materials):
        raise ValueError("materials 中不能重复出现同一材料")
    return _run(list(materials), cfg or SCFConfig(), "Hybrid SCF", verbose, progress_every)


@dataclass
class TemperatureSweepResult:
    """温度扫描结果：每个温度下的平均能隙与（线性插值得到的）临界温度。"""

    temperatures: np.ndarray
    gaps: np.ndarray
    critical_temperature: float | None
    statuses: List[str] = field(default_factory=list)


def _critical_temperature(temperatures: np.ndarray, gaps: np.ndarray, threshold: float) -> float | None:
    ok = np.isfinite(gaps)
    temperatures, gaps = temperatures[ok], gaps[ok]
    below = np.flatnonzero(gaps < threshold)
    if below.size == 0:
        return None
    k = int(below[0])
    if k == 0:
        return float(temperatures[0])
    t0, t1 = temperatures[k - 1], temperatures[k]
    g0, g1 = gaps[k - 1], gaps[k]
    # 在跨越阈值的区间上线性插值
    return float(t0 + (g0 - threshold) * (t1 - t0) / (g0 - g1))


def temperature_sweep(material: Material, temperatures, cfg: SCFConfig | None = None,
                      verbose: bool = False) -> TemperatureSweepResult:
    r"""按给定温度序列扫描，每个温度以上一温度的解为初值做能隙自洽。

    临界温度取平均能隙首次低于 ``cfg.gap_floor`` 的位置（相邻温度点之间线性插值）；
    未跌破时为 ``None``。判定为 ``normal`` 的温度点能隙被置零，因此这些点同时满足
    :meth:`Material.critical`（阈值 ``CRITICAL_GAP``）。

    某个温度点的数值失败（:class:`~usadelscf.errors.UsadelError`）不会中断扫描：
    该点状态记为 ``"nonconverged"``（超出 ``maxiter``）或 ``"failed"``（BVP 失败），
    能隙记为 ``nan``，不参与临界温度插值；下一温度以材料当前状态为初值继续。
    """
    cfg = cfg or SCFConfig()
    temps = np.array(temperatures, dtype=float)
    if temps.ndim != 1 or temps.size == 0 or np.any(temps < 0):
        raise ValueError("temperatures 必须是非空的非负一维数组")

    gaps = np.empty(temps.size)
    statuses: List[str] = []
    t0 = time.perf_counter()
    for n, temperature in enumerate(temps):
        material.temperature = float(temperature)
        try:
            result = run_gap_scf(material, cfg, verbose=False)
        except UsadelError as exc:
            status = "nonconverged" if isinstance(exc, NonConvergence) else "failed"
            gaps[n] = np.nan
            statuses.append(status)
            if verbose:
                print(f"[T sweep] {n + 1:3d}/{temps.size} T={temperature:.6f} status={status} "
                      f"({type(exc).__name__}: {exc}) elapsed={time.perf_counter() - t0:.1f}s")
            continue
        gaps[n] = result.mean_gap
        statuses.append(result.status)
        if verbose:
            print(f"[T sweep] {n + 1:3d}/{temps.size} T={temperature:.6f} gap={gaps[n]:.6f} "
                  f"status={result.status} iter={result.iterations} "
                  f"elapsed={time.perf_counter() - t0:.1f}s")

    return TemperatureSweepResult(
        temperatures=temps,
        gaps=gaps,
        critical_temperature=_critical_temperature(temps, gaps, cfg.gap_floor),
        statuses=statuses,
    )
