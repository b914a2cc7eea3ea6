r"""Riccati 参数化的推迟 Green 函数
==================================

在一个 (位置, 能量) 点上，推迟 Green 函数由两个 2×2 复矩阵 :math:`\gamma`、
:math:`\tilde\gamma` 参数化：

.. math::
    \hat g^R = \begin{pmatrix} N(1+\gamma\tilde\gamma) & 2N\gamma \\
                               -2\tilde N\tilde\gamma & -\tilde N(1+\tilde\gamma\gamma)
               \end{pmatrix},
    \qquad N = (I-\gamma\tilde\gamma)^{-1},\ \tilde N = (I-\tilde\gamma\gamma)^{-1}.

归一化 :math:`(\hat g^R)^2 = 1` 由构造自动满足，但 :math:`N`、:math:`\tilde N`
在数值上可能近奇异，此时必须报错而非静默传播 NaN/Inf。

与 BVP 引擎交换数据时，四个矩阵 :math:`(\gamma,\tilde\gamma,\partial\gamma,\partial\tilde\gamma)`
共 16 个复数按行优先展平后打包为 32 个实数 ``[Re(z), Im(z)]``。
"""

from __future__ import annotations

import numpy as np

from .constants import BULK_ETA, SINGULAR_DET
from .errors import NumericalSingularity
from .spin import PAULI_0, PAULI_X, PAULI_Y, PAULI_Z

__all__ = [
    "VECTOR_SIZE",
    "ISIGMA_Y",
    "State",
    "pack",
    "unpack",
    "pack_batch",
    "unpack_batch",
    "normalization_batch",
]

# 实数向量长度：4 个 2x2 复矩阵 = 16 复数 = 32 实数
VECTOR_SIZE = 32

# 单态配对结构 iσ_y = [[0, 1], [-1, 0]]
ISIGMA_Y = 1.0j * PAULI_Y
_ISIGMA_Y_INV = -ISIGMA_Y


### 复数 <-> 实数打包，供 scipy 的实数求解器使用
def pack(z: np.ndarray) -> np.ndarray:
    z = np.asarray(z, np.complex128)
    return np.concatenate([z.real.ravel(), z.imag.ravel()])


def unpack(y: np.ndarray, shape) -> np.ndarray:
    n = int(np.prod(shape))
    re = y[:n].reshape(shape)
    im = y[n:].reshape(shape)
    return re + 1j * im


def unpack_batch(y: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """把形状 ``(32, m)`` 的实数解展开为四个 ``(m, 2, 2)`` 复矩阵批次。"""
    y = np.asarray(y, dtype=float)
    if y.shape[0] != VECTOR_SIZE:
        raise ValueError(f"状态向量长度必须为 {VECTOR_SIZE}，实际为 {y.shape[0]}")
    z = y[:16] + 1j * y[16:]
    z = np.moveaxis(z.reshape(4, 2, 2, -1), -1, 0)
    return z[:, 0], z[:, 1], z[:, 2], z[:, 3]


def pack_batch(g: np.ndarray, gt: np.ndarray, dg: np.ndarray, dgt: np.ndarray) -> np.ndarray:
    """:func:`unpack_batch` 的逆：四个 ``(m, 2, 2)`` 批次 → ``(32, m)`` 实数数组。"""
    z = np.stack([g, gt, dg, dgt], axis=1)
    z = np.moveaxis(z, 0, -1).reshape(16, -1)
    return np.concatenate([z.real, z.imag])


def normalization_batch(
    g: np.ndarray, gt: np.ndarray, threshold: float = SINGULAR_DET
) -> tuple[np.ndarray, np.ndarray]:
    r"""批量计算 :math:`N=(I-\gamma\tilde\gamma)^{-1}` 与 :math:`\tilde N=(I-\tilde\gamma\gamma)^{-1}`。

    Raises
    ------
    NumericalSingularity
        任一点的 :math:`|\det(I-\gamma\tilde\gamma)|` 或 :math:`|\det(I-\tilde\gamma\gamma)|`
        低于 ``threshold``，或出现非有限值。
    """
    a = PAULI_0 - g @ gt
    at = PAULI_0 - gt @ g
    det = np.abs(np.linalg.det(a))
    det_t = np.abs(np.linalg.det(at))
    bad = ~np.isfinite(det) | ~np.isfinite(det_t) | (det < threshold) | (det_t < threshold)
    if np.any(bad):
        worst = float(np.nanmin(np.minimum(det, det_t))) if np.any(np.isfinite(det)) else float("nan")
        raise NumericalSingularity(
            f"归一化矩阵近奇异：{int(np.count_nonzero(bad))} 个点 |det| < {threshold:.1e}（最小 {worst:.3e}）"
        )
    return np.linalg.inv(a), np.linalg.inv(at)


def _as_matrix(m, name: str) -> np.ndarray:
    m = np.array(m, dtype=complex)
    if m.shape != (2, 2):
        raise ValueError(f"{name} 必须是 2x2 矩阵，实际形状 {m.shape}")
    return m


class State:
    r"""单个 (位置, 能量) 点上的 Riccati 参数及其空间导数。

    Parameters
    ----------
    g, gt : array_like
        Riccati 参数 :math:`\gamma`、:math:`\tilde\gamma`（2×2 复矩阵，构造时复制）。
    dg, dgt : array_like, optional
        空间导数；缺省为零（平衡体态）。
    """

    __slots__ = ("g", "gt", "dg", "dgt")

    def __init__(self, g, gt, dg=None, dgt=None):
        self.g = _as_matrix(g, "g")
        self.gt = _as_matrix(gt, "gt")
        self.dg = np.zeros((2, 2), dtype=complex) if dg is None else _as_matrix(dg, "dg")
        self.dgt = np.zeros((2, 2), dtype=complex) if dgt is None else _as_matrix(dgt, "dgt")

    @classmethod
    def unvectorize(cls, v: np.ndarray) -> "State":
        """由 32 个实数构造 :class:`State`（:meth:`vectorize` 的逆）。"""
        v = np.asarray(v, dtype=float)
        if v.shape != (VECTOR_SIZE,):
            raise ValueError(f"状态向量形状必须为 ({VECTOR_SIZE},)，实际为 {v.shape}")
        z = unpack(v, (4, 2, 2))
        return cls(z[0], z[1], z[2], z[3])

    def vectorize(self) -> np.ndarray:
        return pack(np.stack([self.g, self.gt, self.dg, self.dgt]))

    @classmethod
    def bulk(cls, energy: float, gap: float, eta: float = BULK_ETA) -> "State":
        r"""BCS 体超导态。

        .. math::
            \theta = \mathrm{artanh}\frac{\Delta}{\varepsilon + i\eta},\quad
            \gamma = \frac{\sinh\theta}{1+\cosh\theta}\, i\sigma_y,\quad
            \tilde\gamma = -\frac{\sinh\theta}{1+\cosh\theta}\, i\sigma_y .

        :math:`\eta` 为避开 :math:`|\varepsilon|=\Delta` 支点的正则化；``gap=0``
        给出正常态 :math:`\gamma=\tilde\gamma=0`。
        """
        theta = np.arctanh(gap / (energy + 1.0j * eta))
        a = np.sinh(theta) / (1.0 + np.cosh(theta))
        return cls(a * ISIGMA_Y, -a * ISIGMA_Y)

    def copy(self) -> "State":
        return State(self.g, self.gt, self.dg, self.dgt)

    def __eq__(self, other) -> bool:
        if not isinstance(other, State):
            return NotImplemented
        return all(np.array_equal(a, b) for a, b in zip(self._parts(), other._parts()))

    def allclose(self, other: "State", atol: float = 1e-12) -> bool:
        return all(np.allclose(a, b, atol=atol, rtol=0) for a, b in zip(self._parts(), other._parts()))

    def _parts(self):
        return (self.g, self.gt, self.dg, self.dgt)

    def __repr__(self) -> str:
        return f"State(g={self.g.tolist()}, gt={self.gt.tolist()})"

    ### 导出物理量（均为 g、gt 的纯函数）

    def normalization(self, threshold: float = SINGULAR_DET) -> tuple[np.ndarray, np.ndarray]:
        """返回 ``(N, Nt)``；近奇异时抛出 :class:`NumericalSingularity`。"""
        n, nt = normalization_batch(self.g[None], self.gt[None], threshold)
        return n[0], nt[0]

    @property
    def N(self) -> np.ndarray:
        return self.normalization()[0]

    @property
    def Nt(self) -> np.ndarray:
        return self.normalization()[1]

    def anomalous(self) -> np.ndarray:
        r"""反常 Green 函数 :math:`f = 2N\gamma`。"""
        return 2.0 * self.N @ self.g

    @property
    def singlet(self) -> complex:
        r"""单态配对振幅 :math:`f_s`，其中 :math:`f = (f_s + \mathbf{d}\cdot\boldsymbol{\sigma})\,i\sigma_y`。"""
        f = self.anomalous()
        return complex(0.5 * (f[0, 1] - f[1, 0]))

    @property
    def triplet(self) -> np.ndarray:
        r"""三重态配对矢量 :math:`\mathbf{d}`，:math:`d_k = \frac12\mathrm{tr}[f(i\sigma_y)^{-1}\sigma_k]`。"""
        m = self.anomalous() @ _ISIGMA_Y_INV
        return np.array([0.5 * np.trace(m @ s) for s in (PAULI_X, PAULI_Y, PAULI_Z)], dtype=complex)

    @property
    def dos(self) -> float:
        r"""局域态密度 :math:`\mathrm{Re}\,\frac12\mathrm{tr}[N(I+\gamma\tilde\gamma)]`（以正常态为单位）。"""
        n = self.N
        return float(0.5 * np.real(np.trace(n @ (PAULI_0 + self.g @ self.gt))))
