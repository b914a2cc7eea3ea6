import numpy as np

__all__ = [
    "check_grid",
    "trapezoid_weights",
    "position_grid",
    "energy_grid_linear",
    "energy_cutoff",
    "energy_grid_bcs",
    "gauss_legendre_rule",
]


def check_grid(x: np.ndarray, name: str, nonnegative: bool = False) -> np.ndarray:
    """检查一维网格：非空、严格单调递增（可选非负），返回 ``float`` 数组副本。

    单点网格是合法的（表示零维的体材料层）。
    """
    x = np.array(x, dtype=float)
    if x.ndim != 1 or x.size == 0:
        raise ValueError(f"{name} 必须是非空一维数组")
    if np.any(np.diff(x) <= 0):
        raise ValueError(f"{name} 必须严格单调递增")
    if nonnegative and x[0] < 0:
        raise ValueError(f"{name} 必须非负")
    return x


def trapezoid_weights(r: np.ndarray) -> np.ndarray:
    r"""为给定单调递增的网格计算梯形积分权重。

    使用一维梯形规则近似积分：

    .. math::
        \int_{x_0}^{x_{N-1}} f(x)\,\mathrm{d}x \approx \sum_{i=0}^{N-1} w_i f(x_i)

    端点权重为半步长，内部点为左右间距的平均值。

    Parameters
    ----------
    r : numpy.ndarray
        单调递增的坐标数组 :math:`(x_0, \dots, x_{N-1})`。

    Returns
    -------
    w : numpy.ndarray
        梯形积分权重；单点网格返回 ``[0.0]``。
    """
    if r.ndim != 1:
        raise ValueError("r 必须是一维数组")
    if np.any(np.diff(r) <= 0):
        raise ValueError("r 必须严格单调递增")
    n = r.size
    w = np.empty_like(r, dtype=float)
    if n == 1:
        w[0] = 0.0
        return w
    dr = np.diff(r)
    w[0] = 0.5 * dr[0]
    w[1:-1] = 0.5 * (dr[1:] + dr[:-1])
    w[-1] = 0.5 * dr[-1]
    return w


def position_grid(n: int, length: float = 1.0) -> np.ndarray:
    r"""生成 :math:`[0, L]` 上的等间距位置网格（以相干长度或层厚为单位的无量纲坐标）。

    ``n == 1`` 时返回 ``[0.0]``，对应零维体材料层。
    """
    if n < 1:
        raise ValueError("n 必须 >= 1")
    if length <= 0:
        raise ValueError("要求 length > 0")
    if n == 1:
        return np.zeros(1)
    return np.linspace(0.0, length, n)


def energy_grid_linear(n: int, emin: float, emax: float) -> np.ndarray:
    """生成等间距的非负能量网格。"""
    if n < 2:
        raise ValueError("n 必须 >= 2")
    if emin < 0 or emax <= emin:
        raise ValueError("要求 0 <= emin < emax")
    return np.linspace(emin, emax, n)


def energy_cutoff(strength: float) -> float:
    r"""BCS 截断能 :math:`\omega_c = \cosh(1/N_0\lambda)`。

    零温 BCS 能隙方程 :math:`1 = N_0\lambda\,\mathrm{arccosh}(\omega_c/\Delta_0)`
    在该截断下给出 :math:`\Delta_0 = 1`，即能量以零温体能隙为单位。
    """
    if strength <= 0:
        raise ValueError("耦合常数 strength 必须为正")
    return float(np.cosh(1.0 / strength))


def energy_grid_bcs(
    strength: float,
    n_low: int = 100,
    n_mid: int = 100,
    n_high: int = 100,
) -> np.ndarray:
    r"""生成用于能隙方程的三段能量网格。

    三段分别为 :math:`[0, 0.5]`、:math:`[0.501, 1.5]`、
    :math:`[1.501, \cosh(1/N_0\lambda)]`，在相干峰 :math:`\varepsilon\approx\Delta_0`
    附近加密采样，上限取 :func:`energy_cutoff`，保证能量积分不受截断限制。

    Parameters
    ----------
    strength : float
        耦合常数 :math:`N_0\lambda`。
    n_low, n_mid, n_high : int
        三段的点数。

    Returns
    -------
    numpy.ndarray
        严格递增的能量网格。
    """
    cutoff = energy_cutoff(strength)
    if cutoff <= 1.501:
        raise ValueError("耦合常数过大：截断能低于相干峰区间")
    e = np.concatenate([
        np.linspace(0.0, 0.500, n_low),
        np.linspace(0.501, 1.500, n_mid),
        np.linspace(1.501, cutoff, n_high),
    ])
    return check_grid(e, "energies", nonnegative=True)


def gauss_legendre_rule(breakpoints: np.ndarray, order: int) -> tuple[np.ndarray, np.ndarray]:
    r"""在相邻断点之间构造复合 Gauss–Legendre 节点与权重。

    .. math::
        \int_{b_0}^{b_{K}} f(x)\,\mathrm{d}x \approx \sum_j w_j f(x_j)

    每个子区间 :math:`[b_k, b_{k+1}]` 上使用 ``order`` 点规则，对分段三次插值
    （如 PCHIP）在每段内精确积分到多项式阶数 :math:`2\,\mathrm{order}-1`。

    Returns
    -------
    x, w : numpy.ndarray
        展平后的节点与权重，可直接用于 :func:`usadelscf.utils.trapz` 的加权求和。
    """
    b = check_grid(breakpoints, "breakpoints")
    if b.size < 2:
        raise ValueError("至少需要两个断点")
    if order < 1:
        raise ValueError("order 必须 >= 1")
    t, wt = np.polynomial.legendre.leggauss(order)
    mid = 0.5 * (b[1:] + b[:-1])
    half = 0.5 * np.diff(b)
    x = (mid[:, None] + half[:, None] * t[None, :]).ravel()
    w = (half[:, None] * wt[None, :]).ravel()
    return x, w
