"""
CPU copy-and-cast kernels (NumPy backend).

This module provides the loop kernels that materialize a strided view into a
destination buffer, converting every element with a pair-specific `Caster`.
All kernels operate on *flat* typed buffers (the whole backing storage viewed
as a 1-D array) and element offsets; they never look at array objects.

Kernel families
---------------
- `copy_single_cpu`   : one source element cast once and broadcast.
- `copy_vector_cpu`   : flat, order-preserving bulk copy.
- `copy_general_dim1_cpu` .. `copy_general_dim7_cpu`
                      : strided source -> contiguous destination, one
                        hand-written loop nest per collapsed rank.
- `copy_general_general_dims_cpu(ndim)`
                      : strided source -> strided destination, ranks 1-5,
                        built recursively over the remaining-dimension count.
- `copy_general_nd_cpu`, `copy_general_general_nd_cpu`
                      : fallbacks for collapsed ranks above the specialized
                        range.
- `copy_general_cpu`, `copy_general_general_cpu`
                      : collapse the layout, then pick a kernel by rank.

Design notes
------------
- The innermost axis of every loop nest is a single vectorized gather
  (``src[base + inner_offsets]``); only the outer axes are Python loops.
  ``inner_offsets`` is computed once per call.
- For the single-stride kernels the running source offset is advanced with
  carry adjustments ``s[k] - s[k+1] * d[k+1]`` precomputed before the nest.
- Inputs are trusted: layouts are assumed consistent with the buffers, as
  classified by the caller. Only `assert` checks are performed.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from .cast_cpu import Caster
from .strides_cpu import axis_offsets, collapse_contiguous_dims, elem_to_loc, numel

MAX_GENERAL_RANK = 7
"""Highest collapsed rank with a specialized single-stride kernel."""

MAX_GENERAL_GENERAL_RANK = 5
"""Highest collapsed rank with a specialized dual-stride kernel."""

_FALLBACK_CHUNK = 1 << 16
"""Flat indices located per `elem_to_loc` call in the General fallback."""


# ---------------------------------------------------------------------------
# Scalar / Vector
# ---------------------------------------------------------------------------


def copy_single_cpu(
    src: np.ndarray,
    dst: np.ndarray,
    *,
    src_offset: int,
    dst_offset: int,
    size: int,
    cast: Caster,
) -> None:
    """
    Cast ``src[src_offset]`` once and write it into ``size`` consecutive
    destination slots starting at ``dst_offset``.
    """
    value = cast(src[src_offset : src_offset + 1])
    dst[dst_offset : dst_offset + size] = value


def copy_vector_cpu(
    src: np.ndarray,
    dst: np.ndarray,
    *,
    src_offset: int,
    dst_offset: int,
    size: int,
    cast: Caster,
) -> None:
    """
    Flat, order-preserving cast copy of ``size`` elements.

    Source and destination may be the same memory (donated storage); the
    cast materializes the converted row before it is written back.
    """
    dst[dst_offset : dst_offset + size] = cast(src[src_offset : src_offset + size])


# ---------------------------------------------------------------------------
# General: strided source -> contiguous destination, ranks 1..7
# ---------------------------------------------------------------------------


def copy_general_dim1_cpu(
    src: np.ndarray,
    dst: np.ndarray,
    data_shape: Sequence[int],
    i_strides: Sequence[int],
    i_offset: int,
    o_offset: int,
    *,
    cast: Caster,
    idx_dtype: np.dtype,
) -> None:
    d0 = int(data_shape[0])
    inner = axis_offsets(d0, int(i_strides[0]), idx_dtype)
    dst[o_offset : o_offset + d0] = cast(src[i_offset + inner])


def copy_general_dim2_cpu(
    src: np.ndarray,
    dst: np.ndarray,
    data_shape: Sequence[int],
    i_strides: Sequence[int],
    i_offset: int,
    o_offset: int,
    *,
    cast: Caster,
    idx_dtype: np.dtype,
) -> None:
    d0, d1 = (int(d) for d in data_shape[:2])
    s0, s1 = (int(s) for s in i_strides[:2])
    inner = axis_offsets(d1, s1, idx_dtype)

    src_idx = i_offset
    dst_idx = o_offset
    for _ in range(d0):
        dst[dst_idx : dst_idx + d1] = cast(src[src_idx + inner])
        dst_idx += d1
        src_idx += s0


def copy_general_dim3_cpu(
    src: np.ndarray,
    dst: np.ndarray,
    data_shape: Sequence[int],
    i_strides: Sequence[int],
    i_offset: int,
    o_offset: int,
    *,
    cast: Caster,
    idx_dtype: np.dtype,
) -> None:
    d0, d1, d2 = (int(d) for d in data_shape[:3])
    s0, s1, s2 = (int(s) for s in i_strides[:3])
    inner = axis_offsets(d2, s2, idx_dtype)

    s0_adj = s0 - s1 * d1

    src_idx = i_offset
    dst_idx = o_offset
    for _ in range(d0):
        for _ in range(d1):
            dst[dst_idx : dst_idx + d2] = cast(src[src_idx + inner])
            dst_idx += d2
            src_idx += s1
        src_idx += s0_adj


def copy_general_dim4_cpu(
    src: np.ndarray,
    dst: np.ndarray,
    data_shape: Sequence[int],
    i_strides: Sequence[int],
    i_offset: int,
    o_offset: int,
    *,
    cast: Caster,
    idx_dtype: np.dtype,
) -> None:
    d0, d1, d2, d3 = (int(d) for d in data_shape[:4])
    s0, s1, s2, s3 = (int(s) for s in i_strides[:4])
    inner = axis_offsets(d3, s3, idx_dtype)

    s1_adj = s1 - s2 * d2
    s0_adj = s0 - s1 * d1

    src_idx = i_offset
    dst_idx = o_offset
    for _ in range(d0):
        for _ in range(d1):
            for _ in range(d2):
                dst[dst_idx : dst_idx + d3] = cast(src[src_idx + inner])
                dst_idx += d3
                src_idx += s2
            src_idx += s1_adj
        src_idx += s0_adj


def copy_general_dim5_cpu(
    src: np.ndarray,
    dst: np.ndarray,
    data_shape: Sequence[int],
    i_strides: Sequence[int],
    i_offset: int,
    o_offset: int,
    *,
    cast: Caster,
    idx_dtype: np.dtype,
) -> None:
    d0, d1, d2, d3, d4 = (int(d) for d in data_shape[:5])
    s0, s1, s2, s3, s4 = (int(s) for s in i_strides[:5])
    inner = axis_offsets(d4, s4, idx_dtype)

    # Pre-compute stride adjustments
    s2_adj = s2 - s3 * d3
    s1_adj = s1 - s2 * d2
    s0_adj = s0 - s1 * d1

    src_idx = i_offset
    dst_idx = o_offset
    for _ in range(d0):
        for _ in range(d1):
            for _ in range(d2):
                for _ in range(d3):
                    dst[dst_idx : dst_idx + d4] = cast(src[src_idx + inner])
                    dst_idx += d4
                    src_idx += s3
                src_idx += s2_adj
            src_idx += s1_adj
        src_idx += s0_adj


def copy_general_dim6_cpu(
    src: np.ndarray,
    dst: np.ndarray,
    data_shape: Sequence[int],
    i_strides: Sequence[int],
    i_offset: int,
    o_offset: int,
    *,
    cast: Caster,
    idx_dtype: np.dtype,
) -> None:
    d0, d1, d2, d3, d4, d5 = (int(d) for d in data_shape[:6])
    s0, s1, s2, s3, s4, s5 = (int(s) for s in i_strides[:6])
    inner = axis_offsets(d5, s5, idx_dtype)

    # Pre-compute stride adjustments
    s3_adj = s3 - s4 * d4
    s2_adj = s2 - s3 * d3
    s1_adj = s1 - s2 * d2
    s0_adj = s0 - s1 * d1

    src_idx = i_offset
    dst_idx = o_offset
    for _ in range(d0):
        for _ in range(d1):
            for _ in range(d2):
                for _ in range(d3):
                    for _ in range(d4):
                        dst[dst_idx : dst_idx + d5] = cast(src[src_idx + inner])
                        dst_idx += d5
                        src_idx += s4
                    src_idx += s3_adj
                src_idx += s2_adj
            src_idx += s1_adj
        src_idx += s0_adj


def copy_general_dim7_cpu(
    src: np.ndarray,
    dst: np.ndarray,
    data_shape: Sequence[int],
    i_strides: Sequence[int],
    i_offset: int,
    o_offset: int,
    *,
    cast: Caster,
    idx_dtype: np.dtype,
) -> None:
    d0, d1, d2, d3, d4, d5, d6 = (int(d) for d in data_shape[:7])
    s0, s1, s2, s3, s4, s5, s6 = (int(s) for s in i_strides[:7])
    inner = axis_offsets(d6, s6, idx_dtype)

    # Pre-compute stride adjustments
    s4_adj = s4 - s5 * d5
    s3_adj = s3 - s4 * d4
    s2_adj = s2 - s3 * d3
    s1_adj = s1 - s2 * d2
    s0_adj = s0 - s1 * d1

    src_idx = i_offset
    dst_idx = o_offset
    for _ in range(d0):
        for _ in range(d1):
            for _ in range(d2):
                for _ in range(d3):
                    for _ in range(d4):
                        for _ in range(d5):
                            dst[dst_idx : dst_idx + d6] = cast(src[src_idx + inner])
                            dst_idx += d6
                            src_idx += s5
                        src_idx += s4_adj
                    src_idx += s3_adj
                src_idx += s2_adj
            src_idx += s1_adj
        src_idx += s0_adj


GeneralKernel = Callable[..., None]

_GENERAL_KERNELS: Dict[int, GeneralKernel] = {
    1: copy_general_dim1_cpu,
    2: copy_general_dim2_cpu,
    3: copy_general_dim3_cpu,
    4: copy_general_dim4_cpu,
    5: copy_general_dim5_cpu,
    6: copy_general_dim6_cpu,
    7: copy_general_dim7_cpu,
}


def copy_general_nd_cpu(
    src: np.ndarray,
    dst: np.ndarray,
    data_shape: Sequence[int],
    i_strides: Sequence[int],
    i_offset: int,
    o_offset: int,
    *,
    cast: Caster,
    idx_dtype: np.dtype,
) -> None:
    """
    Rank-agnostic General copy.

    Every destination element ``i`` reads the source at
    ``i_offset + elem_to_loc(i, data_shape, i_strides)``. Flat indices are
    located in chunks so the temporary index vectors stay bounded.
    """
    size = numel(data_shape)
    for start in range(0, size, _FALLBACK_CHUNK):
        stop = min(start + _FALLBACK_CHUNK, size)
        flat = np.arange(start, stop, dtype=idx_dtype)
        locs = elem_to_loc(flat, data_shape, i_strides)
        dst[o_offset + start : o_offset + stop] = cast(src[i_offset + locs])


def copy_general_cpu(
    src: np.ndarray,
    dst: np.ndarray,
    data_shape: Sequence[int],
    i_strides: Sequence[int],
    i_offset: int,
    o_offset: int,
    *,
    cast: Caster,
    idx_dtype: np.dtype,
) -> Tuple[int, ...]:
    """
    Copy a strided source into a contiguous destination.

    Collapses ``(data_shape, i_strides)`` and runs the fixed-rank kernel for
    the collapsed rank, or `copy_general_nd_cpu` above rank 7.

    Returns
    -------
    tuple[int, ...]
        The collapsed shape that was iterated (useful for diagnostics).
    """
    new_shape, (new_strides,) = collapse_contiguous_dims(data_shape, i_strides)
    kernel = _GENERAL_KERNELS.get(len(new_shape), copy_general_nd_cpu)
    kernel(
        src,
        dst,
        new_shape,
        new_strides,
        i_offset,
        o_offset,
        cast=cast,
        idx_dtype=idx_dtype,
    )
    return tuple(new_shape)


# ---------------------------------------------------------------------------
# GeneralGeneral: strided source -> strided destination, ranks 1..5
# ---------------------------------------------------------------------------

InnerOffsets = Tuple[np.ndarray, np.ndarray]
GeneralGeneralKernel = Callable[..., None]


def _innermost_offsets(
    data_shape: Sequence[int],
    i_strides: Sequence[int],
    o_strides: Sequence[int],
    idx_dtype: np.dtype,
) -> InnerOffsets:
    n = int(data_shape[-1])
    return (
        axis_offsets(n, int(i_strides[-1]), idx_dtype),
        axis_offsets(n, int(o_strides[-1]), idx_dtype),
    )


def _make_general_general_dims(ndim: int) -> GeneralGeneralKernel:
    """
    Build the dual-stride kernel that walks the last ``ndim`` axes.

    For ``ndim > 1`` the kernel loops over axis ``len(shape) - ndim`` and
    calls the ``ndim - 1`` kernel, advancing the source and destination
    offsets by their own strides. The ``ndim == 1`` kernel scatters the
    innermost axis in one vectorized step.
    """
    if ndim == 1:

        def kernel(
            src: np.ndarray,
            dst: np.ndarray,
            data_shape: Sequence[int],
            i_strides: Sequence[int],
            o_strides: Sequence[int],
            i_offset: int,
            o_offset: int,
            *,
            cast: Caster,
            idx_dtype: np.dtype,
            inner: Optional[InnerOffsets] = None,
        ) -> None:
            if inner is None:
                inner = _innermost_offsets(data_shape, i_strides, o_strides, idx_dtype)
            i_inner, o_inner = inner
            dst[o_offset + o_inner] = cast(src[i_offset + i_inner])

    else:
        recurse = _make_general_general_dims(ndim - 1)

        def kernel(
            src: np.ndarray,
            dst: np.ndarray,
            data_shape: Sequence[int],
            i_strides: Sequence[int],
            o_strides: Sequence[int],
            i_offset: int,
            o_offset: int,
            *,
            cast: Caster,
            idx_dtype: np.dtype,
            inner: Optional[InnerOffsets] = None,
        ) -> None:
            if inner is None:
                inner = _innermost_offsets(data_shape, i_strides, o_strides, idx_dtype)
            axis = len(data_shape) - ndim
            stride_src = int(i_strides[axis])
            stride_dst = int(o_strides[axis])
            for _ in range(int(data_shape[axis])):
                recurse(
                    src,
                    dst,
                    data_shape,
                    i_strides,
                    o_strides,
                    i_offset,
                    o_offset,
                    cast=cast,
                    idx_dtype=idx_dtype,
                    inner=inner,
                )
                i_offset += stride_src
                o_offset += stride_dst

    kernel.__name__ = kernel.__qualname__ = f"copy_general_general_dim{ndim}_cpu"
    return kernel


_GENERAL_GENERAL_KERNELS: Dict[int, GeneralGeneralKernel] = {
    ndim: _make_general_general_dims(ndim)
    for ndim in range(1, MAX_GENERAL_GENERAL_RANK + 1)
}


def copy_general_general_dims_cpu(ndim: int) -> GeneralGeneralKernel:
    """
    Return the specialized dual-stride kernel for the last ``ndim`` axes.

    Raises
    ------
    KeyError
        If ``ndim`` is outside ``1..5``.
    """
    return _GENERAL_GENERAL_KERNELS[ndim]


def copy_general_general_nd_cpu(
    src: np.ndarray,
    dst: np.ndarray,
    data_shape: Sequence[int],
    i_strides: Sequence[int],
    o_strides: Sequence[int],
    i_offset: int,
    o_offset: int,
    *,
    cast: Caster,
    idx_dtype: np.dtype,
) -> None:
    """
    Rank-agnostic GeneralGeneral copy.

    Steps the flat index by blocks spanning the (up to) five fastest axes,
    locates each block's origin in both buffers with `elem_to_loc`, and
    delegates the block interior to the matching dual-stride kernel.
    """
    size = numel(data_shape)
    if size == 0:
        return

    block_rank = min(MAX_GENERAL_GENERAL_RANK, len(data_shape))
    block = numel(data_shape[len(data_shape) - block_rank :])
    kernel = _GENERAL_GENERAL_KERNELS[block_rank]
    inner = _innermost_offsets(data_shape, i_strides, o_strides, idx_dtype)

    for start in range(0, size, block):
        kernel(
            src,
            dst,
            data_shape,
            i_strides,
            o_strides,
            i_offset + elem_to_loc(start, data_shape, i_strides),
            o_offset + elem_to_loc(start, data_shape, o_strides),
            cast=cast,
            idx_dtype=idx_dtype,
            inner=inner,
        )


def copy_general_general_cpu(
    src: np.ndarray,
    dst: np.ndarray,
    data_shape: Sequence[int],
    i_strides: Sequence[int],
    o_strides: Sequence[int],
    i_offset: int,
    o_offset: int,
    *,
    cast: Caster,
    idx_dtype: np.dtype,
) -> Tuple[int, ...]:
    """
    Copy a strided source into a strided destination.

    Collapses ``data_shape`` jointly over both stride vectors, so an axis
    pair only merges when it is contiguous on *both* sides, then runs the
    dual-stride kernel for the collapsed rank or the blocked fallback.

    Returns
    -------
    tuple[int, ...]
        The collapsed shape that was iterated.
    """
    new_shape, (new_i_strides, new_o_strides) = collapse_contiguous_dims(
        data_shape, i_strides, o_strides
    )
    if numel(new_shape) == 0:
        return tuple(new_shape)

    kernel = _GENERAL_GENERAL_KERNELS.get(len(new_shape), copy_general_general_nd_cpu)
    kernel(
        src,
        dst,
        new_shape,
        new_i_strides,
        new_o_strides,
        i_offset,
        o_offset,
        cast=cast,
        idx_dtype=idx_dtype,
    )
    return tuple(new_shape)
