r"""材料的公共基类
================

每种材料在 (位置 × 能量) 网格上保存 Riccati 态，并对每个能量把 Usadel 方程

.. math::
    \partial^2\gamma = -2(\partial\gamma)\tilde N\tilde\gamma(\partial\gamma)
                       - 2i\frac{\varepsilon}{D}\gamma + (\text{材料项}),

.. math::
    \partial^2\tilde\gamma = -2(\partial\tilde\gamma)N\gamma(\partial\tilde\gamma)
                       - 2i\frac{\varepsilon}{D}\tilde\gamma + (\text{材料项})

写成 32 维实一阶系统，交给 :func:`usadelscf.bvp.solve_two_point` 求解。
变体只需提供四个接口：

- :meth:`Material.jacobian_term`：附加到方程右端的材料项；
- :meth:`Material.boundary_rule`：两端边界残差（默认由 :mod:`.boundary` 变体决定）；
- :meth:`Material.has_self_consistency`；
- :meth:`Material.self_consistency_step`：由态网格计算更新后的序参量场。
"""

from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Callable

import numpy as np

from ..bvp import BVPConfig, solve_two_point
from ..constants import BULK_ETA, CRITICAL_GAP
from ..grid import check_grid
from ..spin import PAULI_0, PAULI_Y
from ..state import (
    State,
    normalization_batch,
    pack,
    pack_batch,
    unpack,
    unpack_batch,
)
from ..utils import field_interpolator, position_average
from .boundary import Boundary, Fixed, Free, Interface

__all__ = [
    "SolveContext",
    "Material",
    "pairing_term",
]


@dataclass(frozen=True)
class SolveContext:
    """单个能量的 BVP 求解所需的只读上下文。

    Attributes
    ----------
    energy : float
        准粒子能量 :math:`\\varepsilon`。
    diffusion : float
        扩散常数（Thouless 能量）:math:`D`。
    positions : numpy.ndarray
        材料的位置网格。
    gap : callable
        能隙在任意位置的插值 ``gap(x)``。
    left, right : State | None
        两端的相邻态（自由边界为 ``None``）。
    """

    energy: float
    diffusion: float
    positions: np.ndarray
    gap: Callable
    left: State | None
    right: State | None


def pairing_term(gap: np.ndarray, diffusion: float, g: np.ndarray, gt: np.ndarray):
    r"""序参量项 :math:`-\frac{\Delta}{D}(\sigma_y - \gamma\sigma_y\gamma)` 及其共轭结构。

    ``gap`` 为各网格点上的能隙（形状 ``(m,)``），返回 ``(d2g, d2gt)`` 的附加量。
    """
    delta = np.asarray(gap, dtype=float).reshape(-1, 1, 1) / diffusion
    d2g = -delta * (PAULI_Y - g @ PAULI_Y @ g)
    d2gt = delta * (PAULI_Y - gt @ PAULI_Y @ gt)
    return d2g, d2gt


def _boundary_residual(boundary: Boundary, neighbour: State | None, y: np.ndarray, side: str) -> np.ndarray:
    ### 返回一端的 16 个实残差（两个 2x2 复矩阵）
    g, gt, dg, dgt = unpack(y, (4, 2, 2))
    if isinstance(boundary, Free):
        r, rt = dg, dgt
    elif isinstance(boundary, Fixed) and boundary.transparency is None:
        r, rt = g - neighbour.g, gt - neighbour.gt
    else:
        zeta = boundary.transparency
        n2, nt2 = neighbour.normalization()
        if side == "left":
            r = zeta * dg - (PAULI_0 - g @ neighbour.gt) @ n2 @ (g - neighbour.g)
            rt = zeta * dgt - (PAULI_0 - gt @ neighbour.g) @ nt2 @ (gt - neighbour.gt)
        else:
            r = zeta * dg - (PAULI_0 - g @ neighbour.gt) @ n2 @ (neighbour.g - g)
            rt = zeta * dgt - (PAULI_0 - gt @ neighbour.g) @ nt2 @ (neighbour.gt - gt)
    return pack(np.stack([r, rt]))


def _solve_energy(material: "Material", index: int) -> np.ndarray:
    # 进程池入口：模块级函数才能被 pickle
    return material.solve_energy(index)


class Material:
    r"""扩散材料层的公共实现。

    Parameters
    ----------
    positions : array_like
        严格递增的无量纲位置；单点表示零维体材料。
    energies : array_like
        严格递增的非负准粒子能量（以零温体能隙为单位）。
    thouless : float
        扩散常数 :math:`D`（Thouless 能量）。
    temperature : float
        温度 :math:`T \ge 0`。
    bvp : BVPConfig, optional
        BVP 引擎配置。
    eta : float
        初始化体态时的正则化虚部。
    """

    kind = "material"

    def __init__(
        self,
        positions,
        energies,
        thouless: float = 1.0,
        temperature: float = 0.0,
        bvp: BVPConfig | None = None,
        eta: float = BULK_ETA,
    ):
        self.positions = check_grid(positions, "positions")
        self.energies = check_grid(energies, "energies", nonnegative=True)
        if thouless <= 0:
            raise ValueError("扩散常数 thouless 必须为正")
        if temperature < 0:
            raise ValueError("温度必须非负")
        self.diffusion = float(thouless)
        self.temperature = float(temperature)
        self.bvp = bvp or BVPConfig()
        self.eta = float(eta)

        self.interface_left = 1.0
        self.interface_right = 1.0
        self.boundary_left: Boundary = Free()
        self.boundary_right: Boundary = Free()

        self.gap = self._initial_gap()
        self.states = np.empty((self.positions.size, self.energies.size), dtype=object)
        self.reset_states()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(positions={self.positions.size}, energies={self.energies.size}, "
            f"D={self.diffusion:g}, T={self.temperature:g})"
        )

    def _initial_gap(self) -> np.ndarray:
        return np.zeros(self.positions.size)

    def reset_states(self) -> None:
        """把每个网格点重置为当地能隙下的 BCS 体态。"""
        for i, gap in enumerate(self.gap):
            for j, e in enumerate(self.energies):
                self.states[i, j] = State.bulk(e, gap, self.eta)

    ### 变体接口

    def jacobian_term(self, ctx: SolveContext, x, g, gt, dg, dgt, n, nt):
        """材料附加项，返回 ``(d2g, d2gt)``；基类无附加项。"""
        return 0.0, 0.0

    def boundary_rule(self, ctx: SolveContext, ya: np.ndarray, yb: np.ndarray) -> np.ndarray:
        """两端边界残差（共 32 个实数）。"""
        return np.concatenate([
            _boundary_residual(self.boundary_left, ctx.left, ya, "left"),
            _boundary_residual(self.boundary_right, ctx.right, yb, "right"),
        ])

    def has_self_consistency(self) -> bool:
        return False

    def self_consistency_step(self) -> np.ndarray:
        raise NotImplementedError(f"{type(self).__name__} 没有自洽序参量方程")

    ### 边界

    def update_boundary_left(self, other: "Material") -> None:
        """把左端连接到相邻材料 ``other``（界面参数取 ``interface_left``）。"""
        self.boundary_left = Interface(other, self.interface_left)

    def update_boundary_right(self, other: "Material") -> None:
        """把右端连接到相邻材料 ``other``（界面参数取 ``interface_right``）。"""
        self.boundary_right = Interface(other, self.interface_right)

    def _check_boundary(self, boundary: Boundary, side: str) -> None:
        if isinstance(boundary, Interface):
            other = boundary.material
            if other is self:
                raise ValueError(f"{side} 界面不能指向材料自身")
            if other.energies.shape != self.energies.shape or not np.allclose(other.energies, self.energies):
                raise ValueError(f"{side} 界面两侧的能量网格必须一致")
        elif isinstance(boundary, Fixed):
            if len(boundary.states) != self.energies.size:
                raise ValueError(
                    f"{side} 边界态数量 ({len(boundary.states)}) 与能量数 ({self.energies.size}) 不一致"
                )
        elif not isinstance(boundary, Free):
            raise ValueError(f"未知的边界类型: {type(boundary).__name__}")

    ### 求解

    def context(self, index: int) -> SolveContext:
        return SolveContext(
            energy=float(self.energies[index]),
            diffusion=self.diffusion,
            positions=self.positions,
            gap=self.gap_interpolator(),
            left=self.boundary_left.neighbour_state(index, "left"),
            right=self.boundary_right.neighbour_state(index, "right"),
        )

    def jacobian(self, ctx: SolveContext, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        """一阶系统右端 ``dy/dx``，对 BVP 网格点向量化。"""
        g, gt, dg, dgt = unpack_batch(y)
        n, nt = normalization_batch(g, gt)
        e = ctx.energy / ctx.diffusion
        d2g = -2.0 * dg @ nt @ gt @ dg - 2.0j * e * g
        d2gt = -2.0 * dgt @ n @ g @ dgt - 2.0j * e * gt
        extra_g, extra_gt = self.jacobian_term(ctx, x, g, gt, dg, dgt, n, nt)
        return pack_batch(dg, dgt, d2g + extra_g, d2gt + extra_gt)

    def solve_energy(self, index: int) -> np.ndarray:
        """求解第 ``index`` 个能量的 BVP，返回在 ``positions`` 上采样的 ``(32, n)`` 实数解。

        以当前存储的态为初始猜测（热启动）；不修改材料本身。
        """
        ctx = self.context(index)
        guess = np.column_stack([s.vectorize() for s in self.states[:, index]])
        sol = solve_two_point(
            lambda x, y: self.jacobian(ctx, x, y),
            lambda ya, yb: self.boundary_rule(ctx, ya, yb),
            self.positions,
            guess,
            self.bvp,
            energy=ctx.energy,
        )
        y = sol(self.positions)
        g, gt, _, _ = unpack_batch(y)
        normalization_batch(g, gt)
        return y

    def update_state(self) -> None:
        """对全部能量求解 Usadel 方程并写回态网格。

        所有能量求解完成后才统一写回；任一能量失败则抛出异常且态网格保持不变。

        单点材料没有空间 BVP，态直接取当地能隙下的 BCS 体态：材料附加项中只有
        能隙起作用（铁磁体的交换场与自旋轨道场被忽略），两端边界必须是
        :class:`Free`，否则抛出 ``ValueError``。单点材料仍可作为其它材料的界面邻层。
        """
        if self.positions.size == 1:
            for boundary, side in ((self.boundary_left, "左"), (self.boundary_right, "右")):
                if not isinstance(boundary, Free):
                    raise ValueError(
                        f"单点材料没有空间自由度，{side}边界必须为 Free（当前为 {type(boundary).__name__}）"
                    )
            self._update_bulk_state()
            return
        self._check_boundary(self.boundary_left, "左")
        self._check_boundary(self.boundary_right, "右")

        indices = range(self.energies.size)
        workers = min(self.bvp.workers, self.energies.size)
        if workers > 1:
            chunk = -(-self.energies.size // workers)
            with ProcessPoolExecutor(max_workers=workers) as pool:
                solutions = list(pool.map(partial(_solve_energy, self), indices, chunksize=chunk))
        else:
            solutions = [self.solve_energy(j) for j in indices]

        for j, y in enumerate(solutions):
            for i in range(self.positions.size):
                self.states[i, j] = State.unvectorize(y[:, i])

    def _update_bulk_state(self) -> None:
        # 零维材料：均匀解即当地能隙下的体态
        for j, e in enumerate(self.energies):
            self.states[0, j] = State.bulk(e, self.gap[0], self.eta)

    def update_gap(self) -> None:
        if self.has_self_consistency():
            self.gap = np.asarray(self.self_consistency_step(), dtype=float)

    def update(self) -> None:
        """先求解态，再（若有）更新能隙。改变边界或温度后都应调用。"""
        self.update_state()
        self.update_gap()

    ### 能隙与场

    def gap_interpolator(self):
        return field_interpolator(self.positions, self.gap)

    def gap_interpolate(self, x):
        """在任意位置 ``x`` 处的 PCHIP 能隙插值。"""
        return self.gap_interpolator()(x)

    def field_interpolate(self, values, x):
        """对任意与位置对齐的实标量场做 PCHIP 插值。"""
        return field_interpolator(self.positions, values)(x)

    @property
    def mean_gap(self) -> float:
        return position_average(self.gap, self.positions)

    def critical(self) -> bool:
        """能隙处处低于 ``CRITICAL_GAP`` 时返回 ``True``（已进入正常态）。"""
        return bool(np.max(np.abs(self.gap)) < CRITICAL_GAP)

    ### 导出量

    def singlets(self) -> np.ndarray:
        """单态振幅网格，形状 ``(len(positions), len(energies))``。"""
        return np.vectorize(lambda s: s.singlet, otypes=[complex])(self.states)

    def triplets(self) -> np.ndarray:
        """三重态矢量网格，形状 ``(len(positions), len(energies), 3)``。"""
        out = np.empty(self.states.shape + (3,), dtype=complex)
        for idx, s in np.ndenumerate(self.states):
            out[idx] = s.triplet
        return out

    def dos(self) -> np.ndarray:
        """局域态密度网格，形状 ``(len(positions), len(energies))``。"""
        return np.vectorize(lambda s: s.dos, otypes=[float])(self.states)

    ### 快照（自洽循环失败时回退）

    def snapshot(self) -> tuple[np.ndarray, np.ndarray, float]:
        # 态对象只会被整体替换而不会原地修改，浅拷贝即可
        return self.gap.copy(), self.states.copy(), self.temperature

    def restore(self, snap: tuple[np.ndarray, np.ndarray, float]) -> None:
        gap, states, temperature = snap
        self.gap = gap.copy()
        self.states = states.copy()
        self.temperature = temperature
