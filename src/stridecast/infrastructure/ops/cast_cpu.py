"""
Element casting for the CPU copy kernels.

`make_caster(src, dst)` returns the conversion applied by every kernel of a
given (source dtype, destination dtype) pair. The conversion plan (which
intermediate types to pass through) is resolved once when the caster is
built, so the hot path is one or two ``astype`` calls on a whole row.

Conversion rules
----------------
- Same type: identity, no copy.
- Otherwise NumPy's C-style conversion with ``casting="unsafe"``: narrowing
  integers wrap, float -> integer truncates toward zero, bool -> numeric is
  0/1, numeric -> bool tests for non-zero, real -> complex sets a zero
  imaginary part.
- complex -> any non-complex type converts the real component.
- Conversions into or out of a reduced-precision float (``float16``,
  ``bfloat16``) go through ``float32``.

No saturation, rounding mode control or overflow checks are performed.
"""

from __future__ import annotations

from typing import Callable, List

import numpy as np

from ...domain._dtype import Dtype
from .._dtypes import to_numpy_dtype

Caster = Callable[[np.ndarray], np.ndarray]
"""Converts a 1-D array of source elements into destination elements."""


def _cast_plan(src: Dtype, dst: Dtype) -> List[np.dtype]:
    """
    Intermediate (and final) dtypes a value passes through, in order.

    An empty plan means the identity conversion.
    """
    if src is dst:
        return []

    plan: List[Dtype] = []
    cur = src
    if cur.is_complex() and not dst.is_complex():
        # The real component is taken by `_apply_plan`; continue from float32.
        cur = Dtype.float32
        plan.append(cur)
    if cur is not dst and (cur.is_reduced_precision() or dst.is_reduced_precision()):
        if cur is not Dtype.float32 and dst is not Dtype.float32:
            plan.append(Dtype.float32)
    if not plan or plan[-1] is not dst:
        plan.append(dst)
    return [to_numpy_dtype(d) for d in plan]


def make_caster(src: Dtype, dst: Dtype) -> Caster:
    """
    Build the element conversion for one (source, destination) pair.

    Parameters
    ----------
    src : Dtype
        Source element kind.
    dst : Dtype
        Destination element kind.

    Returns
    -------
    Caster
        Function mapping an array of ``src`` elements to an array of ``dst``
        elements of the same shape.
    """
    plan = _cast_plan(src, dst)

    if not plan:

        def cast_identity(values: np.ndarray) -> np.ndarray:
            return values

        return cast_identity

    take_real = src.is_complex() and not dst.is_complex()

    def cast(values: np.ndarray) -> np.ndarray:
        if take_real:
            values = values.real
        for step in plan:
            values = values.astype(step, casting="unsafe", copy=False)
        return values

    cast.__name__ = f"cast_{src.type_name}_to_{dst.type_name}"
    return cast
