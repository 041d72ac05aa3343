"""
Stride utilities shared by the CPU copy kernels.

This module provides the two layout primitives every copy path is built on:

- `elem_to_loc`: row-major flat index -> strided offset. This is the single
  definition of iteration order; every specialized loop nest in
  `copy_cpu` visits elements in exactly the order it describes.
- `collapse_contiguous_dims`: merges adjacent axes that one or more stride
  vectors traverse contiguously, so that a rank-6 transpose of a contiguous
  block may only need a rank-2 loop.

Both are pure functions. Offsets are measured in elements, not bytes.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple, Union

import numpy as np

from ...domain._copy_type import IndexWidth

IndexLike = Union[int, np.ndarray]


def index_dtype(width: IndexWidth) -> np.dtype:
    """Integer dtype used for offset vectors of the given width."""
    return np.dtype(np.int64) if width is IndexWidth.WIDE else np.dtype(np.int32)


def row_major_strides(shape: Sequence[int]) -> Tuple[int, ...]:
    """
    Element strides of a C-contiguous array of ``shape``.

    Parameters
    ----------
    shape : Sequence[int]
        Axis extents.

    Returns
    -------
    tuple[int, ...]
        Strides such that the last axis is the fastest varying.
    """
    strides = [0] * len(shape)
    step = 1
    for axis in range(len(shape) - 1, -1, -1):
        strides[axis] = step
        step *= max(int(shape[axis]), 1)
    return tuple(strides)


def numel(shape: Sequence[int]) -> int:
    n = 1
    for d in shape:
        n *= int(d)
    return n


def elem_to_loc(
    elem: IndexLike, shape: Sequence[int], strides: Sequence[int]
) -> IndexLike:
    """
    Convert a row-major flat index into a strided offset.

    Walks the axes from the fastest varying (last) to the slowest, adding
    ``(elem % extent) * stride`` and dividing ``elem`` by ``extent`` at each
    step.

    Parameters
    ----------
    elem : int or np.ndarray
        Flat index in ``[0, prod(shape))``, or an integer array of such
        indices (located elementwise).
    shape : Sequence[int]
        Axis extents.
    strides : Sequence[int]
        Per-axis strides in elements, same length as ``shape``.

    Returns
    -------
    int or np.ndarray
        Offset(s) relative to the view's base, with the same type/shape as
        ``elem``.
    """
    assert len(shape) == len(strides)
    loc = elem * 0
    for axis in range(len(shape) - 1, -1, -1):
        extent = int(shape[axis])
        loc = loc + (elem % extent) * int(strides[axis])
        elem = elem // extent
    return loc


def collapse_contiguous_dims(
    shape: Sequence[int], *strides: Sequence[int]
) -> Tuple[List[int], List[List[int]]]:
    """
    Merge adjacent axes that every stride vector traverses contiguously.

    Axis ``i`` (slower) and axis ``i+1`` (faster) merge into one axis of
    extent ``shape[i] * shape[i+1]`` exactly when, for every supplied stride
    vector, ``stride[i] == stride[i+1] * shape[i+1]``. The merged axis keeps
    the faster axis's stride. Extent-1 axes are dropped first since their
    stride never contributes to an offset.

    Parameters
    ----------
    shape : Sequence[int]
        Axis extents.
    *strides : Sequence[int]
        One or more stride vectors, each the same length as ``shape``
        (typically the source strides, optionally followed by the
        destination strides). Passing several collapses them jointly.

    Returns
    -------
    tuple[list[int], list[list[int]]]
        ``(new_shape, [new_strides, ...])`` with one stride list per input
        vector. ``new_shape`` is never empty: a 0-d (or all-ones) input
        yields ``[1]`` and an input containing a zero extent yields ``[0]``.

    Notes
    -----
    Iterating the result in row-major order visits the same sequence of
    offsets as iterating the input, and ``prod(new_shape) == prod(shape)``.
    """
    assert strides, "at least one stride vector is required"
    assert all(len(st) == len(shape) for st in strides)

    if any(int(d) == 0 for d in shape):
        return [0], [[0] for _ in strides]

    kept = [axis for axis, d in enumerate(shape) if int(d) != 1]
    if not kept:
        return [1], [[0] for _ in strides]

    first = kept[0]
    out_shape = [int(shape[first])]
    out_strides = [[int(st[first])] for st in strides]

    for axis in kept[1:]:
        extent = int(shape[axis])
        if all(
            out_st[-1] == int(st[axis]) * extent
            for out_st, st in zip(out_strides, strides)
        ):
            out_shape[-1] *= extent
            for out_st, st in zip(out_strides, strides):
                out_st[-1] = int(st[axis])
        else:
            out_shape.append(extent)
            for out_st, st in zip(out_strides, strides):
                out_st.append(int(st[axis]))

    return out_shape, out_strides


def axis_offsets(extent: int, stride: int, dtype: np.dtype) -> np.ndarray:
    """
    Offsets ``[0, stride, 2*stride, ...]`` of one axis as an index vector.

    Raises
    ------
    OverflowError
        If the last offset does not fit ``dtype``.
    """
    if extent > 0:
        last = (extent - 1) * stride
        info = np.iinfo(dtype)
        if last > info.max or last < info.min:
            raise OverflowError(
                f"axis offset {last} does not fit {np.dtype(dtype).name}; "
                "use IndexWidth.WIDE"
            )
    return np.arange(extent, dtype=dtype) * dtype.type(stride)
