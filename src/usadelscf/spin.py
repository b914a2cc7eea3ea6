r"""自旋空间算子矢量
====================

2×2 复矩阵三元组 :math:`\mathbf{A} = (A_x, A_y, A_z)` 的代数，用于组装交换场
:math:`\mathbf{h}\cdot\boldsymbol{\sigma}` 与 SU(2) 自旋轨道规范场等哈密顿量项。
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

__all__ = [
    "PAULI_0",
    "PAULI_X",
    "PAULI_Y",
    "PAULI_Z",
    "SpinVector",
]

PAULI_0 = np.eye(2, dtype=complex)
PAULI_X = np.array([[0.0, 1.0], [1.0, 0.0]], dtype=complex)
PAULI_Y = np.array([[0.0, -1.0j], [1.0j, 0.0]], dtype=complex)
PAULI_Z = np.array([[1.0, 0.0], [0.0, -1.0]], dtype=complex)

# 各分量只读，避免误改共享常量
for _m in (PAULI_0, PAULI_X, PAULI_Y, PAULI_Z):
    _m.setflags(write=False)


def _as_matrix(m) -> np.ndarray:
    if np.isscalar(m):
        return complex(m) * PAULI_0
    m = np.array(m, dtype=complex)
    if m.shape != (2, 2):
        raise ValueError(f"SpinVector 分量必须是 2x2 矩阵，实际形状 {m.shape}")
    return m


class SpinVector:
    r"""有序的 2×2 复矩阵三元组（算子值矢量场）。

    支持按分量的加减、标量或矩阵乘法，以及矩阵值点积

    .. math::
        \mathbf{A}\cdot\mathbf{B} = \sum_{k} A_k B_k .

    Parameters
    ----------
    x, y, z : array_like or scalar
        三个分量；标量 ``c`` 视为 ``c·I``。
    """

    __slots__ = ("x", "y", "z")
    # 让 ndarray * SpinVector 交给 __rmul__ 处理
    __array_ufunc__ = None

    def __init__(self, x=0.0, y=0.0, z=0.0):
        self.x = _as_matrix(x)
        self.y = _as_matrix(y)
        self.z = _as_matrix(z)

    ### 命名构造器

    @classmethod
    def zero(cls) -> "SpinVector":
        return cls(0.0, 0.0, 0.0)

    @classmethod
    def pauli(cls) -> "SpinVector":
        r"""Pauli 矢量 :math:`\boldsymbol{\sigma} = (\sigma_x, \sigma_y, \sigma_z)`。"""
        return cls(PAULI_X, PAULI_Y, PAULI_Z)

    @classmethod
    def rashba_dresselhaus(cls, strength: float, angle: float) -> "SpinVector":
        r"""Rashba–Dresselhaus 自旋轨道耦合场。

        .. math::
            \mathbf{A} = a\,(\cos\chi\,\sigma_x - \sin\chi\,\sigma_y,\;
                              \sin\chi\,\sigma_x - \cos\chi\,\sigma_y,\; 0)

        对应 Rashba 强度 :math:`\alpha = a\sin\chi` 与 Dresselhaus 强度
        :math:`\beta = a\cos\chi`；场位于薄膜平面内（与结方向 :math:`z` 垂直）。

        Parameters
        ----------
        strength : float
            总强度 :math:`a`。
        angle : float
            混合角 :math:`\chi`（弧度）。
        """
        c, s = np.cos(angle), np.sin(angle)
        return cls(
            strength * (c * PAULI_X - s * PAULI_Y),
            strength * (s * PAULI_X - c * PAULI_Y),
            0.0,
        )

    ### 容器行为

    def __iter__(self):
        yield self.x
        yield self.y
        yield self.z

    def __getitem__(self, k: int) -> np.ndarray:
        return (self.x, self.y, self.z)[k]

    def __repr__(self) -> str:
        return f"SpinVector(x={self.x.tolist()}, y={self.y.tolist()}, z={self.z.tolist()})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, SpinVector):
            return NotImplemented
        return all(np.array_equal(a, b) for a, b in zip(self, other))

    def allclose(self, other: "SpinVector", atol: float = 1e-12) -> bool:
        return all(np.allclose(a, b, atol=atol, rtol=0) for a, b in zip(self, other))

    ### 逐分量代数

    def _map(self, op) -> "SpinVector":
        return SpinVector(*(op(c) for c in self))

    def __add__(self, other):
        if isinstance(other, SpinVector):
            return SpinVector(self.x + other.x, self.y + other.y, self.z + other.z)
        return NotImplemented

    def __sub__(self, other):
        if isinstance(other, SpinVector):
            return SpinVector(self.x - other.x, self.y - other.y, self.z - other.z)
        return NotImplemented

    def __neg__(self):
        return self._map(np.negative)

    def __mul__(self, other):
        ### 右乘：标量 → 逐分量缩放；2x2 矩阵 → 逐分量矩阵积 A_k M
        if np.isscalar(other):
            return self._map(lambda c: c * other)
        m = np.asarray(other)
        if m.shape == (2, 2):
            return self._map(lambda c: c @ m)
        return NotImplemented

    def __rmul__(self, other):
        ### 左乘：M A_k
        if np.isscalar(other):
            return self._map(lambda c: other * c)
        m = np.asarray(other)
        if m.shape == (2, 2):
            return self._map(lambda c: m @ c)
        return NotImplemented

    def __truediv__(self, other):
        if np.isscalar(other):
            return self._map(lambda c: c / other)
        return NotImplemented

    def conj(self) -> "SpinVector":
        """逐分量复共轭 :math:`\\mathbf{A}^*`。"""
        return self._map(np.conjugate)

    def dot(self, other: "SpinVector | Sequence[float]") -> np.ndarray:
        r"""矩阵值点积。

        - 与 :class:`SpinVector` 点积：:math:`\sum_k A_k B_k`；
        - 与实三维矢量点积：:math:`\sum_k h_k A_k`（例如 :math:`\mathbf{h}\cdot\boldsymbol{\sigma}`）。
        """
        if isinstance(other, SpinVector):
            return self.x @ other.x + self.y @ other.y + self.z @ other.z
        h = np.asarray(other)
        if h.shape != (3,):
            raise ValueError("点积对象必须是 SpinVector 或长度为 3 的矢量")
        return h[0] * self.x + h[1] * self.y + h[2] * self.z

    def square(self) -> np.ndarray:
        r""":math:`\mathbf{A}^2 = \mathbf{A}\cdot\mathbf{A}`。"""
        return self.dot(self)

    def is_zero(self) -> bool:
        return not any(np.any(c) for c in self)
