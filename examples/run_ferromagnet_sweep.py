#!/usr/bin/env python
"""与体超导体相接的铁磁体：交换场 × 自旋轨道强度的并行扫描。

每个参数点独立构造铁磁体并求解，结果以 ``.npz`` 保存到输出目录；
失败的参数点会被列出而不影响其它点。
"""

import argparse
import itertools
from pathlib import Path

import numpy as np

from usadelscf.sweep import FerromagnetTask, ferromagnet_task, run_sweep


def main():
    parser = argparse.ArgumentParser(
        description="铁磁体交换场/自旋轨道参数扫描",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--exchange", type=float, nargs="+", default=[0, 0.1, 0.2, 1, 5, 10],
                        help="交换场强度列表（沿 x）")
    parser.add_argument("--spinorbit", type=float, nargs="+", default=[0, 0.1, 0.2, 1, 5, 10],
                        help="Rashba–Dresselhaus 强度列表")
    parser.add_argument("--angle", type=float, default=np.pi / 4, help="Rashba–Dresselhaus 混合角")
    parser.add_argument("--positions", type=int, default=64, help="位置网格点数")
    parser.add_argument("--energies", type=int, default=20, help="能量网格点数")
    parser.add_argument("--workers", type=int, default=4, help="并行进程数")
    parser.add_argument("--output", type=str, default="output/ferromagnet", help="输出目录")
    args = parser.parse_args()

    params = [
        FerromagnetTask(h, a, angle=args.angle, positions=args.positions, energies=args.energies)
        for h, a in itertools.product(args.exchange, args.spinorbit)
    ]
    result = run_sweep(ferromagnet_task, params, workers=args.workers, verbose=True)

    out = Path(args.output)
    out.mkdir(parents=True, exist_ok=True)
    for p, data in result.results:
        fn = out / f"ferromagnet_h{p.exchange:.2f}_a{p.spinorbit:.2f}.npz"
        np.savez(fn, positions=data["positions"], energies=data["energies"], dos=data["dos"],
                 singlet=data["singlet"], triplet=data["triplet"])
    print(f"\n成功 {len(result.results)} 个，失败 {len(result.failures)} 个；结果保存在 {out}")
    for p, msg in result.failures:
        print(f"  h={p.exchange:.2f} a={p.spinorbit:.2f}: {msg}")


if __name__ == "__main__":
    main()
