from __future__ import annotations

import numpy as np
from scipy.interpolate import PchipInterpolator

from .grid import trapezoid_weights

__all__ = [
    "trapz",
    "field_interpolator",
    "position_average",
]


def trapz(y: np.ndarray, x: np.ndarray, w: np.ndarray | None = None) -> float:
    r"""使用给定权重对函数进行一维数值积分。

    若提供 :data:`w`，则直接返回 :math:`\sum_i w_i y_i`（梯形或 Gauss 权重均可）；
    否则在 ``x`` 上构造梯形权重。

    Parameters
    ----------
    y : numpy.ndarray
        被积函数离散值 :math:`y(x_i)`。
    x : numpy.ndarray
        网格坐标 :math:`x_i`。
    w : numpy.ndarray, optional
        积分权重 :math:`w_i`。

    Returns
    -------
    float
        积分近似值。
    """
    if w is None:
        w = trapezoid_weights(np.asarray(x, dtype=float))
    if w.shape != y.shape:
        raise ValueError("w 与 y 的形状必须一致")
    return float(np.sum(w * y))


def field_interpolator(positions: np.ndarray, values: np.ndarray):
    r"""对沿位置分布的实标量场构造保形分段三次（PCHIP）插值。

    BVP 引擎的自适应网格点一般不与存储网格重合，因此需要在任意位置取值。
    单点网格返回常数函数；区间外取端点值（不外推）。

    Returns
    -------
    callable
        ``f(x)``，对标量或数组 ``x`` 返回同形状的值。
    """
    positions = np.asarray(positions, dtype=float)
    values = np.asarray(values, dtype=float)
    if positions.shape != values.shape:
        raise ValueError("positions 与 values 的形状必须一致")
    if positions.size == 1:
        const = float(values[0])
        return lambda x: np.full(np.shape(x), const) if np.ndim(x) else const

    interp = PchipInterpolator(positions, values, extrapolate=False)
    lo, hi = positions[0], positions[-1]

    def f(x):
        return interp(np.clip(x, lo, hi))

    return f


def position_average(values: np.ndarray, positions: np.ndarray) -> float:
    r"""位置平均 :math:`\bar f = \frac{1}{L}\int f(x)\,\mathrm{d}x`（梯形规则）。

    单点网格直接返回该点的值。
    """
    values = np.asarray(values, dtype=float)
    positions = np.asarray(positions, dtype=float)
    if positions.size == 1:
        return float(values[0])
    length = positions[-1] - positions[0]
    return trapz(values, positions) / length
