r"""带自旋轨道耦合的铁磁体
==========================

在扩散项之外加入交换场项

.. math::
    \partial^2\gamma \mathrel{+}= -\frac{i}{D}\left(\mathbf{h}\cdot\boldsymbol{\sigma}\,\gamma
        - \gamma\,\mathbf{h}\cdot\boldsymbol{\sigma}^*\right),\qquad
    \partial^2\tilde\gamma \mathrel{+}= \frac{i}{D}\left(\mathbf{h}\cdot\boldsymbol{\sigma}^*\,\tilde\gamma
        - \tilde\gamma\,\mathbf{h}\cdot\boldsymbol{\sigma}\right),

以及 SU(2) 自旋轨道规范场 :math:`\mathbf{A}` 项（结方向取 :math:`z`）：

.. math::
    \partial^2\gamma \mathrel{+}= \mathbf{A}^2\gamma - \gamma\mathbf{A}^{*2}
      + 2\sum_k (A_k\gamma + \gamma A_k^*)\tilde N(A_k^* + \tilde\gamma A_k\gamma)
      + 2i\,\partial\gamma\,\tilde N(A_z^* + \tilde\gamma A_z\gamma)
      + 2i\,(A_z + \gamma A_z^*\tilde\gamma)N\,\partial\gamma ,

:math:`\tilde\gamma` 的方程由 :math:`\gamma\leftrightarrow\tilde\gamma`、
:math:`\mathbf{A}\leftrightarrow\mathbf{A}^*`、:math:`i\to-i` 得到。

铁磁体没有能隙方程；能隙场可由外部设定（默认为零），非零时加入序参量项。
单点铁磁体按体态处理，交换场与自旋轨道场不进入其态（见 :meth:`Material.update_state`）。
"""

from __future__ import annotations

import numpy as np

from ..spin import SpinVector
from .base import Material, SolveContext, pairing_term

__all__ = ["Ferromagnet"]


class Ferromagnet(Material):
    r"""铁磁材料层。

    Parameters
    ----------
    positions, energies : array_like
        见 :class:`Material`。
    thouless : float
        扩散常数 :math:`D`。
    exchange : array_like
        交换场 :math:`\mathbf{h}`（实三维矢量）。
    spinorbit : SpinVector, optional
        自旋轨道规范场 :math:`\mathbf{A}`，缺省为零。
    **kwargs
        传给 :class:`Material`。
    """

    kind = "ferromagnet"

    def __init__(self, positions, energies, thouless: float = 1.0, exchange=(0.0, 0.0, 0.0),
                 spinorbit: SpinVector | None = None, **kwargs):
        super().__init__(positions, energies, thouless, **kwargs)
        self.exchange = exchange
        self.spinorbit = spinorbit if spinorbit is not None else SpinVector.zero()

    @property
    def exchange(self) -> np.ndarray:
        return self._exchange

    @exchange.setter
    def exchange(self, h) -> None:
        h = np.array(h, dtype=float)
        if h.shape != (3,):
            raise ValueError("交换场 exchange 必须是长度为 3 的实矢量")
        self._exchange = h

    @property
    def spinorbit(self) -> SpinVector:
        return self._spinorbit

    @spinorbit.setter
    def spinorbit(self, a: SpinVector) -> None:
        if not isinstance(a, SpinVector):
            raise ValueError("spinorbit 必须是 SpinVector")
        self._spinorbit = a

    def jacobian_term(self, ctx: SolveContext, x, g, gt, dg, dgt, n, nt):
        d = ctx.diffusion
        d2g = np.zeros_like(g)
        d2gt = np.zeros_like(gt)

        gap = np.asarray(ctx.gap(x), dtype=float)
        if np.any(gap):
            pg, pgt = pairing_term(gap, d, g, gt)
            d2g += pg
            d2gt += pgt

        if np.any(self.exchange):
            hs = SpinVector.pauli().dot(self.exchange)
            hsc = hs.conj()
            d2g += -(1.0j / d) * (hs @ g - g @ hsc)
            d2gt += (1.0j / d) * (hsc @ gt - gt @ hs)

        a = self.spinorbit
        if not a.is_zero():
            a2 = a.square()
            a2c = a2.conj()
            d2g += a2 @ g - g @ a2c
            d2gt += a2c @ gt - gt @ a2
            for ak in a:
                akc = ak.conj()
                d2g += 2.0 * (ak @ g + g @ akc) @ nt @ (akc + gt @ ak @ g)
                d2gt += 2.0 * (akc @ gt + gt @ ak) @ n @ (ak + g @ akc @ gt)
            az = a.z
            azc = az.conj()
            d2g += 2.0j * dg @ nt @ (azc + gt @ az @ g) + 2.0j * (az + g @ azc @ gt) @ n @ dg
            d2gt += -2.0j * dgt @ n @ (az + g @ azc @ gt) - 2.0j * (azc + gt @ az @ g) @ nt @ dgt

        return d2g, d2gt
