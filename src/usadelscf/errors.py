"""数值失败的异常层级。

输入参数不合法时沿用 :class:`ValueError`；以下异常专用于求解过程中的数值失败，
调用方（如参数扫描）可以统一捕获 :class:`UsadelError` 并报告失败的参数点。
"""

from __future__ import annotations

__all__ = [
    "UsadelError",
    "NumericalSingularity",
    "ConvergenceFailure",
    "NonConvergence",
]


class UsadelError(RuntimeError):
    """所有求解失败的基类。"""


class NumericalSingularity(UsadelError, ArithmeticError):
    r"""归一化矩阵 :math:`N=(I-\gamma\tilde\gamma)^{-1}` 近奇异。"""


class ConvergenceFailure(UsadelError):
    """BVP 引擎在网格/迭代预算内未达到容差。

    Attributes
    ----------
    status : int
        ``scipy.integrate.solve_bvp`` 返回的状态码（1: 超出最大网格点数；
        2: 奇异 Jacobian；3: 边界残差未达容差）。
    energy : float | None
        失败时对应的准粒子能量（若已知）。
    """

    def __init__(self, message: str, status: int = -1, energy: float | None = None):
        super().__init__(message)
        self.status = status
        self.energy = energy


class NonConvergence(UsadelError):
    """能隙自洽循环在最大迭代数内未稳定。

    Attributes
    ----------
    iterations : int
        已执行的迭代数。
    history : list[float]
        每次迭代后的位置平均能隙。
    """

    def __init__(self, message: str, iterations: int = 0, history: list[float] | None = None):
        super().__init__(message)
        self.iterations = iterations
        self.history = list(history or [])
