#!/usr/bin/env python
"""体超导体与正常金属的近邻效应。

单点（体）超导体通过 Kupriyanov–Lukichev 界面连接到正常金属，求解金属中的
Green 函数，输出界面与远端的态密度，并可导出 CSV。
"""

import argparse
import time

import numpy as np

from usadelscf.bvp import BVPConfig
from usadelscf.grid import energy_grid_linear, position_grid
from usadelscf.io import export_dos_csv
from usadelscf.materials import Metal, Superconductor


def main():
    parser = argparse.ArgumentParser(
        description="超导/正常金属双层的近邻效应",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--positions", type=int, default=100, help="金属中的位置网格点数")
    parser.add_argument("--energies", type=int, default=26, help="能量网格点数")
    parser.add_argument("--emax", type=float, default=1.5, help="最大能量")
    parser.add_argument("--interface", type=float, default=3.0, help="界面参数 zeta")
    parser.add_argument("--strength", type=float, default=0.2, help="BCS 耦合常数")
    parser.add_argument("--workers", type=int, default=1, help="按能量并行的进程数")
    parser.add_argument("--export", type=str, default=None, help="导出态密度到 CSV")
    args = parser.parse_args()

    energies = energy_grid_linear(args.energies, 0.0, args.emax)
    s = Superconductor([0.0], energies, 1.0, args.strength)
    m = Metal(position_grid(args.positions), energies, 1.0, bvp=BVPConfig(workers=args.workers))
    m.interface_left = args.interface
    m.update_boundary_left(s)

    t_start = time.time()
    m.update()
    print(f"金属层求解完成，用时 {time.time() - t_start:.2f}s")

    dos = m.dos()
    print(f"\n{'E':>8} {'DOS(x=0)':>12} {'DOS(x=L)':>12}")
    for k in np.linspace(0, energies.size - 1, min(energies.size, 10)).astype(int):
        print(f"{energies[k]:8.3f} {dos[0, k]:12.6f} {dos[-1, k]:12.6f}")

    if args.export:
        export_dos_csv(args.export, m)
        print(f"\n结果已导出到: {args.export}")


if __name__ == "__main__":
    main()
