"""usadelscf 包
=================

扩散超导异质结（超导体 / 正常金属 / 铁磁体多层）的准经典 Usadel 方程求解器。

- Riccati 参数化的推迟 Green 函数（:class:`State`）与自旋空间算子矢量（:class:`SpinVector`）
- 每个准粒子能量一个两点边值问题，由 ``scipy.integrate.solve_bvp`` 求解
- 超导能隙的 BCS 自洽循环、温度扫描与多层耦合自洽
- 外层参数扫描（进程池）与结果持久化（JSON/CSV）

注：本项目所有文档与注释均使用中文，Docstring 采用 Sphinx + NumPy 风格，公式使用 ``:math:`` 标记。
"""

from usadelscf.bvp import BVPConfig, solve_two_point
from usadelscf.errors import ConvergenceFailure, NonConvergence, NumericalSingularity, UsadelError
from usadelscf.grid import energy_grid_bcs, energy_grid_linear, position_grid
from usadelscf.materials import Ferromagnet, Fixed, Free, Interface, Metal, Superconductor
from usadelscf.scf import SCFConfig, run_gap_scf, run_hybrid_scf, temperature_sweep
from usadelscf.spin import SpinVector
from usadelscf.state import State

__all__ = [
    "BVPConfig",
    "solve_two_point",
    "UsadelError",
    "NumericalSingularity",
    "ConvergenceFailure",
    "NonConvergence",
    "position_grid",
    "energy_grid_linear",
    "energy_grid_bcs",
    "State",
    "SpinVector",
    "Superconductor",
    "Metal",
    "Ferromagnet",
    "Free",
    "Interface",
    "Fixed",
    "SCFConfig",
    "run_gap_scf",
    "run_hybrid_scf",
    "temperature_sweep",
]

__version__ = "0.1.0"
