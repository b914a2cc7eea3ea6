r"""两点边值问题引擎
==================

通用的一阶两点边值问题求解器：

.. math::
    \frac{\mathrm{d}y}{\mathrm{d}x} = f(x, y),\qquad b\big(y(a), y(b)\big) = 0,

其中 :math:`y` 是固定维数的实向量场。底层使用 ``scipy.integrate.solve_bvp``
（四阶 Lobatto IIIA 配置法，按残差自适应加密网格），最大网格点数受
:attr:`BVPConfig.max_nodes` 约束。引擎对具体物理一无所知：能量等外部参数与
插值得到的辅助场（能隙、边界态）由调用方通过闭包注入。

未达到容差时抛出 :class:`~usadelscf.errors.ConvergenceFailure`，绝不返回
过时或部分收敛的解。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np
from scipy import integrate as intg

from .constants import BVP_BC_TOL, BVP_MAX_NODES, BVP_TOL
from .errors import ConvergenceFailure

__all__ = [
    "BVPConfig",
    "BVPSolution",
    "solve_two_point",
]

_STATUS_TEXT = {
    1: "超出最大网格点数",
    2: "配置方程 Jacobian 奇异",
    3: "边界条件残差未达到 bc_tol",
}


@dataclass
class BVPConfig:
    r"""BVP 引擎配置。

    Attributes
    ----------
    tol : float
        配置残差的相对容差（``solve_bvp`` 的 ``tol``）。
    bc_tol : float
        边界条件残差的绝对容差。
    max_nodes : int
        自适应加密允许的最大网格点数。
    workers : int
        :meth:`Material.update_state` 中按能量并行求解的进程数；``1`` 表示串行。
    verbose : int
        传给 ``solve_bvp`` 的输出级别（0、1、2）。
    """

    tol: float = BVP_TOL
    bc_tol: float = BVP_BC_TOL
    max_nodes: int = BVP_MAX_NODES
    workers: int = 1
    verbose: int = 0

    def __post_init__(self):
        if self.tol <= 0 or self.bc_tol <= 0:
            raise ValueError("tol 与 bc_tol 必须为正")
        if self.max_nodes < 2:
            raise ValueError("max_nodes 必须 >= 2")
        if self.workers < 1:
            raise ValueError("workers 必须 >= 1")


@dataclass
class BVPSolution:
    """收敛的 BVP 解，可在区间内任意点连续取值。

    Attributes
    ----------
    x : numpy.ndarray
        最终自适应网格。
    y : numpy.ndarray
        网格上的解，形状 ``(n, len(x))``。
    niter : int
        Newton 迭代次数。
    """

    x: np.ndarray
    y: np.ndarray
    niter: int
    _sol: Callable[[np.ndarray], np.ndarray]
    _rms_max: float = 0.0

    def __call__(self, x) -> np.ndarray:
        return self._sol(np.asarray(x, dtype=float))

    @property
    def max_residual(self) -> float:
        """配置残差（相对）在各子区间上的最大 RMS 值。"""
        return float(self._rms_max)


def solve_two_point(
    fun: Callable[[np.ndarray, np.ndarray], np.ndarray],
    bc: Callable[[np.ndarray, np.ndarray], np.ndarray],
    mesh: np.ndarray,
    guess: np.ndarray,
    config: BVPConfig | None = None,
    energy: float | None = None,
) -> BVPSolution:
    r"""求解两点边值问题。

    Parameters
    ----------
    fun : callable
        右端 ``fun(x, y) -> dy/dx``；``x`` 形状 ``(m,)``，``y`` 形状 ``(n, m)``（向量化调用）。
    bc : callable
        边界残差 ``bc(ya, yb) -> r``，``r`` 形状 ``(n,)``。
    mesh : numpy.ndarray
        初始网格（严格递增，至少两个点）。
    guess : numpy.ndarray
        初始猜测，形状 ``(n, len(mesh))``；上一次的收敛解即为热启动。
    config : BVPConfig, optional
        容差与网格预算。
    energy : float, optional
        仅用于错误信息中标注失败的能量。

    Returns
    -------
    BVPSolution

    Raises
    ------
    ConvergenceFailure
        ``solve_bvp`` 返回非零状态。
    """
    cfg = config or BVPConfig()
    mesh = np.asarray(mesh, dtype=float)
    guess = np.asarray(guess, dtype=float)
    if mesh.ndim != 1 or mesh.size < 2:
        raise ValueError("BVP 初始网格至少需要两个点")
    if np.any(np.diff(mesh) <= 0):
        raise ValueError("BVP 初始网格必须严格单调递增")
    if guess.ndim != 2 or guess.shape[1] != mesh.size:
        raise ValueError(f"初始猜测形状 {guess.shape} 与网格长度 {mesh.size} 不匹配")

    sol = intg.solve_bvp(
        fun,
        bc,
        mesh,
        guess,
        tol=cfg.tol,
        bc_tol=cfg.bc_tol,
        max_nodes=cfg.max_nodes,
        verbose=cfg.verbose,
    )

    if sol.status != 0:
        where = f"（能量 {energy:.6g}）" if energy is not None else ""
        reason = _STATUS_TEXT.get(sol.status, "未知原因")
        raise ConvergenceFailure(
            f"BVP 求解失败{where}：{reason}；{sol.message}",
            status=int(sol.status),
            energy=energy,
        )

    rms = float(np.max(sol.rms_residuals)) if sol.rms_residuals is not None and sol.rms_residuals.size else 0.0
    return BVPSolution(x=sol.x, y=sol.y, niter=int(sol.niter), _sol=sol.sol, _rms_max=rms)
