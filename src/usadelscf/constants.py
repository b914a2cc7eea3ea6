"""数值常量集中维护
====================

集中维护 Usadel 求解中反复出现的数值默认值，便于统一调整。

注意：这些值仅为默认值，均可通过对应的配置对象或函数参数覆盖。
"""

from __future__ import annotations

# 体态 θ = atanh(Δ/(ε + iη)) 的虚部正则化，避开 |ε| = Δ 处的支点
BULK_ETA = 1e-3

# 归一化矩阵 I - γγ̃ 行列式的奇异判据
SINGULAR_DET = 1e-12

# BVP 引擎默认参数
BVP_TOL = 1e-4
BVP_BC_TOL = 1e-4
BVP_MAX_NODES = 1000

# 判定进入正常态的能隙阈值
CRITICAL_GAP = 1e-4

# 能隙自洽循环默认参数：相对变化阈值 0.1%，能隙下限 1e-3
SCF_GAP_TOL = 1e-3
SCF_GAP_FLOOR = 1e-3
SCF_MAXITER = 200

# 能隙方程复合 Gauss–Legendre 积分的每段节点数
GAP_QUADRATURE_ORDER = 8

# 能隙方程中 BCS 解析部分（u = arccosh(ε/Δ) 代换后）的积分分段数
GAP_ANALYTIC_PANELS = 64
