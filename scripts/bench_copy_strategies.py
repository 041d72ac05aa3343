"""
scripts/bench_copy_strategies.py

Benchmark script (NOT a unit test) comparing stridecast copy strategies with
the equivalent NumPy expression (``view.astype(dst)``).

It measures, for a few layouts of a 4-D float32 source:
- contiguous source          -> Vector
- transposed source          -> General
- broadcast single element   -> Scalar
- strided source and strided destination -> GeneralGeneral

Usage examples
--------------
# Default shape
python scripts/bench_copy_strategies.py

# Larger input, more repeats
python scripts/bench_copy_strategies.py --shape 16 32 32 64 --repeats 30 --warmup 5

# 32-bit index vectors
python scripts/bench_copy_strategies.py --index-width default

Notes
-----
- The engine loops over all but the innermost collapsed axis in Python, so
  layouts whose innermost axis is short are the slowest case.
- Numbers include Python call overhead; they are meant to compare strategies
  at the API level.
"""

from __future__ import annotations

import os
import sys

# Ensure repo_root/src is importable when running this file directly:
# repo_root/
#   src/stridecast/...
#   scripts/bench_copy_strategies.py
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
ROOT_DIR = os.path.abspath(os.path.join(THIS_DIR, ".."))
SRC_DIR = os.path.join(ROOT_DIR, "src")

if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

import argparse
import logging
import statistics
import time
from typing import Callable

import numpy as np

from stridecast import Array, CopyType, Dtype, IndexWidth, copy, copy_inplace, setup_logger


def _time_one(fn: Callable[[], None], *, warmup: int, repeats: int) -> list[float]:
    for _ in range(warmup):
        fn()

    times: list[float] = []
    for _ in range(repeats):
        t0 = time.perf_counter()
        fn()
        t1 = time.perf_counter()
        times.append(t1 - t0)
    return times


def _fmt_seconds(x: float) -> str:
    if x < 1e-6:
        return f"{x*1e9:.2f} ns"
    if x < 1e-3:
        return f"{x*1e6:.2f} µs"
    if x < 1:
        return f"{x*1e3:.2f} ms"
    return f"{x:.3f} s"


def _print_row(name: str, numpy_s: float, engine_s: float) -> None:
    ratio = (engine_s / numpy_s) if numpy_s > 0 else float("inf")
    print(
        f"{name:<26}  "
        f"numpy(median)={_fmt_seconds(numpy_s):>10}  "
        f"stridecast(median)={_fmt_seconds(engine_s):>10}  "
        f"slowdown={ratio:>7.2f}x"
    )


def bench(
    shape: tuple[int, ...], *, width: IndexWidth, warmup: int, repeats: int
) -> None:
    rng = np.random.default_rng(0)
    x = rng.standard_normal(shape).astype(np.float32)
    src = Array.from_numpy(x)
    axes = tuple(reversed(range(len(shape))))

    cases: list[tuple[str, Callable[[], None], Callable[[], None]]] = []

    def run_vector() -> None:
        copy(src, Array(shape, Dtype.int32), CopyType.Vector, index_width=width)

    cases.append(("Vector (contiguous)", run_vector, lambda: x.astype(np.int32)))

    transposed = src.transpose(*axes)
    xt = x.transpose(axes)

    def run_general() -> None:
        copy(transposed, Array(transposed.shape, Dtype.int32), CopyType.General, index_width=width)

    cases.append(("General (transposed)", run_general, lambda: np.ascontiguousarray(xt, np.int32)))

    single = src.as_strided(shape, (0,) * len(shape))
    xs = np.broadcast_to(x.reshape(-1)[:1].reshape((1,) * len(shape)), shape)

    def run_scalar() -> None:
        copy(single, Array(shape, Dtype.float16), CopyType.Scalar, index_width=width)

    cases.append(("Scalar (broadcast)", run_scalar, lambda: xs.astype(np.float16)))

    holder = Array.from_numpy(np.zeros(tuple(reversed(shape)), dtype=np.float32))
    strided_dst = holder.transpose(*axes)
    out_np = np.zeros(tuple(reversed(shape)), dtype=np.float32).transpose(axes)

    def run_general_general() -> None:
        copy_inplace(transposed.transpose(*axes), strided_dst, CopyType.GeneralGeneral, index_width=width)

    def numpy_general_general() -> None:
        out_np[...] = x

    cases.append(("GeneralGeneral (transposed)", run_general_general, numpy_general_general))

    print(f"\nshape={shape} index_width={width.value}")
    for name, engine_fn, numpy_fn in cases:
        t_numpy = _time_one(numpy_fn, warmup=warmup, repeats=repeats)
        t_engine = _time_one(engine_fn, warmup=warmup, repeats=repeats)
        _print_row(name, statistics.median(t_numpy), statistics.median(t_engine))


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.split("\n\n")[1])
    parser.add_argument("--shape", type=int, nargs="+", default=[8, 16, 32, 32])
    parser.add_argument("--index-width", choices=[w.value for w in IndexWidth], default="wide")
    parser.add_argument("--warmup", type=int, default=3)
    parser.add_argument("--repeats", type=int, default=10)
    parser.add_argument("--verbose", action="store_true", help="log each dispatched copy")
    args = parser.parse_args()

    if args.verbose:
        setup_logger(level=logging.DEBUG)

    bench(
        tuple(args.shape),
        width=IndexWidth(args.index_width),
        warmup=args.warmup,
        repeats=args.repeats,
    )


if __name__ == "__main__":
    main()
