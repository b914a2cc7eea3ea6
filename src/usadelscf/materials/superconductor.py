r"""常规 s 波超导体
==================

在扩散项之外加入序参量项，并通过 BCS 能隙方程自洽更新能隙：

.. math::
    \Delta(x) = N_0\lambda \int_0^{\omega_c}
        \mathrm{Re}\,f_s(x, \varepsilon)\,\tanh\frac{\varepsilon}{2T}\,\mathrm{d}\varepsilon ,

其中 :math:`f_s` 为单态配对振幅，:math:`\omega_c` 取能量网格上限。

:math:`\mathrm{Re}\,f_s` 在 :math:`\varepsilon\approx\Delta` 处有
:math:`(\varepsilon^2-\Delta^2)^{-1/2}` 型相干峰，网格插值无法分辨。因此先减去
当地能隙下的 BCS 体振幅

.. math::
    f_\mathrm{BCS}(\varepsilon) = \frac{\Delta}{\sqrt{(\varepsilon+i\eta)^2-\Delta^2}},

其积分经代换 :math:`\varepsilon=\Delta\cosh u` 化为光滑积分

.. math::
    \int_0^{\omega_c} \mathrm{Re}\,f_\mathrm{BCS}\tanh\frac{\varepsilon}{2T}\,\mathrm{d}\varepsilon
    = \Delta\int_0^{\mathrm{arccosh}(\omega_c/\Delta)} \tanh\frac{\Delta\cosh u}{2T}\,\mathrm{d}u ,

（:math:`T=0` 时为 :math:`\Delta\,\mathrm{arccosh}(\omega_c/\Delta)`）；剩余部分
:math:`\mathrm{Re}(f_s - f_\mathrm{BCS})` 用 PCHIP 插值，在断点
:math:`\{0\}\cup\{\varepsilon_j\}` 上做复合 Gauss–Legendre 积分。
体材料的剩余部分恒为零，能隙方程退化为精确的 BCS 方程。
"""

from __future__ import annotations

import numpy as np
from scipy.interpolate import PchipInterpolator

from ..constants import GAP_ANALYTIC_PANELS, GAP_QUADRATURE_ORDER
from ..grid import gauss_legendre_rule
from ..utils import trapz
from .base import Material, SolveContext, pairing_term

__all__ = ["Superconductor", "thermal_factor", "bcs_singlet", "bcs_gap_integral"]


def thermal_factor(energies: np.ndarray, temperature: float) -> np.ndarray:
    r""":math:`\tanh(\varepsilon/2T)`；:math:`T=0` 时对 :math:`\varepsilon>0` 取 1。"""
    energies = np.asarray(energies, dtype=float)
    if temperature <= 0:
        return np.sign(energies)
    return np.tanh(energies / (2.0 * temperature))


def bcs_singlet(energies: np.ndarray, gap: float, eta: float) -> np.ndarray:
    r"""体态单态振幅 :math:`\sinh\theta`，与 :meth:`State.bulk <usadelscf.state.State.bulk>` 一致。"""
    theta = np.arctanh(gap / (np.asarray(energies, dtype=float) + 1.0j * eta))
    return np.sinh(theta)


def bcs_gap_integral(gap: float, cutoff: float, temperature: float,
                     panels: int = GAP_ANALYTIC_PANELS) -> float:
    r""":math:`\int_0^{\omega_c}\mathrm{Re}\,\Delta/\sqrt{\varepsilon^2-\Delta^2}\,\tanh(\varepsilon/2T)\,\mathrm{d}\varepsilon`。

    ``gap`` 不在 :math:`(0, \omega_c)` 内时积分区间为空，返回 0。
    """
    if not (0.0 < gap < cutoff):
        return 0.0
    u_max = float(np.arccosh(cutoff / gap))
    if not np.isfinite(u_max):
        return 0.0
    if temperature <= 0:
        return gap * u_max
    u, w = gauss_legendre_rule(np.linspace(0.0, u_max, panels + 1), GAP_QUADRATURE_ORDER)
    return gap * trapz(thermal_factor(gap * np.cosh(u), temperature), u, w)


class Superconductor(Material):
    r"""超导材料层。

    Parameters
    ----------
    positions, energies : array_like
        见 :class:`Material`；能量网格至少需要两个点以构造能隙方程的插值。
    thouless : float
        扩散常数 :math:`D`。
    strength : float
        BCS 耦合常数 :math:`N_0\lambda`；与 :func:`usadelscf.grid.energy_grid_bcs`
        的截断配合使零温体能隙为 1。
    **kwargs
        传给 :class:`Material`（``temperature``、``bvp``、``eta``）。
    """

    kind = "superconductor"

    def __init__(self, positions, energies, thouless: float = 1.0, strength: float = 1.0, **kwargs):
        if strength <= 0:
            raise ValueError("耦合常数 strength 必须为正")
        self.scaling = float(strength)
        super().__init__(positions, energies, thouless, **kwargs)
        if self.energies.size < 2:
            raise ValueError("超导体的能量网格至少需要两个点")

    def _initial_gap(self) -> np.ndarray:
        return np.ones(self.positions.size)

    def jacobian_term(self, ctx: SolveContext, x, g, gt, dg, dgt, n, nt):
        return pairing_term(ctx.gap(x), ctx.diffusion, g, gt)

    def has_self_consistency(self) -> bool:
        return True

    def self_consistency_step(self) -> np.ndarray:
        """由当前态网格计算新的能隙场（不写回 ``gap``）。"""
        singlets = self.singlets().real
        cutoff = float(self.energies[-1])
        breakpoints = np.unique(np.concatenate([[0.0], self.energies]))
        e, w = gauss_legendre_rule(breakpoints, GAP_QUADRATURE_ORDER)
        kernel = thermal_factor(e, self.temperature)

        gap = np.empty(self.positions.size)
        for i, local in enumerate(self.gap):
            # 相干峰只在 (0, ω_c) 内的能隙下扣除
            if 0.0 < local < cutoff:
                peak = bcs_singlet(self.energies, local, self.eta).real
                analytic = bcs_gap_integral(local, cutoff, self.temperature)
            else:
                peak, analytic = 0.0, 0.0
            interp = PchipInterpolator(self.energies, singlets[i] - peak)
            gap[i] = self.scaling * (analytic + trapz(interp(e) * kernel, e, w))
        return gap
