#!/usr/bin/env python
"""超导薄膜的能隙–温度曲线与临界温度。

在三段 BCS 能量网格上对每个温度做能隙自洽（以上一温度的解为初值），
输出每个温度的平均能隙，并可导出 JSON。
"""

import argparse
import time

import numpy as np

from usadelscf.bvp import BVPConfig
from usadelscf.grid import energy_grid_bcs, position_grid
from usadelscf.io import export_gaps_json
from usadelscf.materials import Superconductor
from usadelscf.scf import SCFConfig, temperature_sweep


def main():
    parser = argparse.ArgumentParser(
        description="超导体能隙–温度曲线",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # 物理参数
    parser.add_argument("--thouless", type=float, default=0.01, help="Thouless 能量（扩散常数）")
    parser.add_argument("--strength", type=float, default=0.2, help="BCS 耦合常数 N0*lambda")

    # 数值参数
    parser.add_argument("--positions", type=int, default=10, help="位置网格点数（1 表示体材料）")
    parser.add_argument("--energies", type=int, default=100, help="每段能量网格点数")
    parser.add_argument("--tmin", type=float, default=0.0, help="最低温度")
    parser.add_argument("--tmax", type=float, default=1.2, help="最高温度")
    parser.add_argument("--nt", type=int, default=30, help="温度点数")

    # SCF 参数
    parser.add_argument("--gap-tol", type=float, default=1e-3, help="平均能隙相对变化阈值")
    parser.add_argument("--maxiter", type=int, default=200, help="每个温度的最大迭代次数")
    parser.add_argument("--workers", type=int, default=1, help="按能量并行的进程数")

    parser.add_argument("--export", type=str, default=None, help="导出结果到 JSON")
    parser.add_argument("--no-verbose", dest="verbose", action="store_false", help="禁用详细输出")

    args = parser.parse_args()

    s = Superconductor(
        position_grid(args.positions),
        energy_grid_bcs(args.strength, args.energies, args.energies, args.energies),
        args.thouless,
        args.strength,
        bvp=BVPConfig(workers=args.workers),
    )
    cfg = SCFConfig(gap_tol=args.gap_tol, maxiter=args.maxiter)
    temperatures = np.linspace(args.tmin, args.tmax, args.nt)

    t_start = time.time()
    result = temperature_sweep(s, temperatures, cfg, verbose=args.verbose)
    t_elapsed = time.time() - t_start

    print("\n" + "=" * 40)
    print(f"{'T':>10} {'gap':>12} {'状态':>10}")
    print("-" * 40)
    for t, g, st in zip(result.temperatures, result.gaps, result.statuses):
        print(f"{t:10.4f} {g:12.6f} {st:>10}")
    if result.critical_temperature is None:
        print("\n在扫描范围内未到达临界温度")
    else:
        print(f"\n临界温度 Tc ≈ {result.critical_temperature:.4f}")
    print(f"总用时: {t_elapsed:.2f}s")

    if args.export:
        export_gaps_json(args.export, result)
        print(f"结果已导出到: {args.export}")


if __name__ == "__main__":
    main()
