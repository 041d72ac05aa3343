"""
CPU copy-and-cast with Array boundaries.

This module is the public face of the copy engine. It wires the flat-buffer
kernels of `copy_cpu` to `Array` objects through two dispatch tables built
once at import time:

- the **type-pair table**, keyed by ``(source Dtype, destination Dtype)``,
  holding a `CopyKernels` bundle per pair: the four strategy kernels bound to
  that pair's `Caster`;
- the **strategy table**, keyed by `CopyType`, holding the function that
  maps an array-level request onto one of the bundle's kernels.

Entry points
------------
- `copy_inplace`: write into an already-provisioned destination, deriving the
  iteration layout from the arrays themselves.
- `copy_inplace_strided`: same, with an explicit layout (shape, both stride
  vectors, both base offsets) supplied by the caller.
- `copy`: provision the destination's storage first (donated or freshly
  allocated), then copy.
- `choose_copy_type`: classify a (source, destination) pair into a strategy.

Validation
----------
The engine trusts its inputs. When ``STRIDECAST_DEBUG_CHECKS`` is enabled the
entry points first verify the layout against the storages and raise
`CopyPreconditionError` on a mismatch; otherwise an inconsistent request is
the caller's bug.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Callable, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from ...domain._array import IArray
from ...domain._copy_type import CopyType, IndexWidth
from ...domain._dtype import ALL_DTYPES, Dtype
from ...domain._errors import CopyPreconditionError, MissingStorageError
from ...domain.utils._control_path import create_path_builder
from .._config import get_config
from .._dtypes import to_numpy_dtype
from ..array._allocator import malloc_or_wait
from .cast_cpu import make_caster
from .copy_cpu import (
    copy_general_cpu,
    copy_general_general_cpu,
    copy_single_cpu,
    copy_vector_cpu,
)
from .strides_cpu import index_dtype

logger = logging.getLogger(__name__)


class CopyKernels(NamedTuple):
    """
    Kernels for one (source, destination) element-type pair.

    Attributes
    ----------
    src_dtype, dst_dtype : Dtype
        The pair this bundle was instantiated for.
    src_np, dst_np : np.dtype
        Typed views used to read the source and write the destination.
    scalar, vector, general, general_general : Callable
        Strategy kernels from `copy_cpu` with ``cast`` bound.
    """

    src_dtype: Dtype
    dst_dtype: Dtype
    src_np: np.dtype
    dst_np: np.dtype
    scalar: Callable[..., None]
    vector: Callable[..., None]
    general: Callable[..., Tuple[int, ...]]
    general_general: Callable[..., Tuple[int, ...]]


class CopyLayout(NamedTuple):
    """Iteration layout of one copy request (offsets relative to each view's base)."""

    data_shape: Tuple[int, ...]
    i_strides: Tuple[int, ...]
    o_strides: Tuple[int, ...]
    i_offset: int
    o_offset: int


def _instantiate(src: Dtype, dst: Dtype) -> CopyKernels:
    cast = make_caster(src, dst)
    return CopyKernels(
        src_dtype=src,
        dst_dtype=dst,
        src_np=to_numpy_dtype(src),
        dst_np=to_numpy_dtype(dst),
        scalar=partial(copy_single_cpu, cast=cast),
        vector=partial(copy_vector_cpu, cast=cast),
        general=partial(copy_general_cpu, cast=cast),
        general_general=partial(copy_general_general_cpu, cast=cast),
    )


# ---------------------------------------------------------------------------
# Dispatch tables
# ---------------------------------------------------------------------------

copy_type_pairs = create_path_builder("copy type pair")
copy_strategies = create_path_builder("copy strategy")

# Outer level selects the source type, inner level the destination type.
for _src in ALL_DTYPES:
    for _dst in ALL_DTYPES:
        copy_type_pairs.register(_src, _dst)(_instantiate(_src, _dst))
del _src, _dst


@copy_strategies.register(CopyType.Scalar)
def _copy_scalar(
    kernels: CopyKernels, src: IArray, dst: IArray, layout: CopyLayout, idx_dtype: np.dtype
) -> Tuple[int, ...]:
    kernels.scalar(
        src.data(kernels.src_np),
        dst.data(kernels.dst_np),
        src_offset=src.offset,
        dst_offset=dst.offset,
        size=dst.size,
    )
    return (dst.size,)


@copy_strategies.register(CopyType.Vector)
def _copy_vector(
    kernels: CopyKernels, src: IArray, dst: IArray, layout: CopyLayout, idx_dtype: np.dtype
) -> Tuple[int, ...]:
    size = min(src.data_size, dst.data_size)
    kernels.vector(
        src.data(kernels.src_np),
        dst.data(kernels.dst_np),
        src_offset=src.offset,
        dst_offset=dst.offset,
        size=size,
    )
    return (size,)


@copy_strategies.register(CopyType.General)
def _copy_general(
    kernels: CopyKernels, src: IArray, dst: IArray, layout: CopyLayout, idx_dtype: np.dtype
) -> Tuple[int, ...]:
    return kernels.general(
        src.data(kernels.src_np),
        dst.data(kernels.dst_np),
        layout.data_shape,
        layout.i_strides,
        src.offset + layout.i_offset,
        dst.offset + layout.o_offset,
        idx_dtype=idx_dtype,
    )


@copy_strategies.register(CopyType.GeneralGeneral)
def _copy_general_general(
    kernels: CopyKernels, src: IArray, dst: IArray, layout: CopyLayout, idx_dtype: np.dtype
) -> Tuple[int, ...]:
    return kernels.general_general(
        src.data(kernels.src_np),
        dst.data(kernels.dst_np),
        layout.data_shape,
        layout.i_strides,
        layout.o_strides,
        src.offset + layout.i_offset,
        dst.offset + layout.o_offset,
        idx_dtype=idx_dtype,
    )


# ---------------------------------------------------------------------------
# Validation (opt-in)
# ---------------------------------------------------------------------------


def _addressed_range(
    shape: Sequence[int], strides: Sequence[int], base: int
) -> Tuple[int, int]:
    lo = hi = base
    for d, s in zip(shape, strides):
        reach = (int(d) - 1) * int(s)
        if reach < 0:
            lo += reach
        else:
            hi += reach
    return lo, hi


def _capacity(arr: IArray, what: str) -> int:
    if arr.storage is None:
        raise CopyPreconditionError(f"{what} has no storage")
    return arr.storage.nbytes // arr.itemsize


def _check_bounds(
    what: str, arr: IArray, shape: Sequence[int], strides: Sequence[int], base: int
) -> None:
    capacity = _capacity(arr, what)
    if any(int(d) == 0 for d in shape):
        return
    lo, hi = _addressed_range(shape, strides, base)
    if lo < 0 or hi >= capacity:
        raise CopyPreconditionError(
            f"{what} addresses elements [{lo}, {hi}] outside its storage of {capacity} elements"
        )


def _validate(src: IArray, dst: IArray, ctype: CopyType, layout: CopyLayout) -> None:
    if not isinstance(ctype, CopyType):
        raise CopyPreconditionError(f"unknown copy type {ctype!r}")

    if ctype is CopyType.Scalar:
        _capacity(src, "source")
        _check_bounds("destination", dst, (dst.size,), (1,), dst.offset)
        if dst.size > 0:
            _check_bounds("source", src, (1,), (1,), src.offset)
        return

    if ctype is CopyType.Vector:
        size = min(src.data_size, dst.data_size)
        _check_bounds("source", src, (size,), (1,), src.offset)
        _check_bounds("destination", dst, (size,), (1,), dst.offset)
        return

    shape = layout.data_shape
    if len(layout.i_strides) != len(shape):
        raise CopyPreconditionError(
            f"source strides {layout.i_strides} do not match shape {shape}"
        )
    if any(int(d) < 0 for d in shape):
        raise CopyPreconditionError(f"negative extent in shape {shape}")
    if any(int(d) == 0 for d in shape):
        return

    _check_bounds("source", src, shape, layout.i_strides, src.offset + layout.i_offset)
    if ctype is CopyType.General:
        n = 1
        for d in shape:
            n *= int(d)
        _check_bounds("destination", dst, (n,), (1,), dst.offset + layout.o_offset)
        return

    if len(layout.o_strides) != len(shape):
        raise CopyPreconditionError(
            f"destination strides {layout.o_strides} do not match shape {shape}"
        )
    _check_bounds(
        "destination", dst, shape, layout.o_strides, dst.offset + layout.o_offset
    )


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def _dispatch(
    src: IArray,
    dst: IArray,
    ctype: CopyType,
    layout: CopyLayout,
    index_width: Optional[IndexWidth],
) -> None:
    config = get_config()
    if config.debug_checks:
        _validate(src, dst, ctype, layout)
    if src.storage is None:
        raise MissingStorageError("copy source")
    if dst.storage is None:
        raise MissingStorageError("copy destination")

    width = config.index_width if index_width is None else index_width
    kernels: CopyKernels = copy_type_pairs.resolve(src.dtype, dst.dtype)
    strategy = copy_strategies.resolve(ctype)

    iterated = strategy(kernels, src, dst, layout, index_dtype(width))
    logger.debug(
        "copy %s %s -> %s shape=%s iterated=%s width=%s",
        ctype.name,
        src.dtype,
        dst.dtype,
        layout.data_shape,
        iterated,
        width.value,
    )


def copy_inplace(
    src: IArray,
    dst: IArray,
    ctype: CopyType,
    *,
    index_width: Optional[IndexWidth] = None,
) -> None:
    """
    Copy ``src`` into the already-provisioned ``dst``, converting elements.

    The layout is taken from the arrays: iteration shape ``src.shape``,
    source strides ``src.strides``, destination strides ``dst.strides``,
    both base offsets zero (each array's own ``offset`` still applies).

    Parameters
    ----------
    src : IArray
        Source array; must have storage.
    dst : IArray
        Destination array; must have storage large enough for the strategy.
    ctype : CopyType
        Strategy chosen by the caller (see `choose_copy_type`).
    index_width : IndexWidth, optional
        Width of the index vectors. Defaults to the configured width.

    Raises
    ------
    MissingStorageError
        If either array has no storage.
    CopyPreconditionError
        Only with debug checks enabled, if the layout does not fit the
        storages.
    """
    layout = CopyLayout(
        tuple(src.shape), tuple(src.strides), tuple(dst.strides), 0, 0
    )
    _dispatch(src, dst, ctype, layout, index_width)


def copy_inplace_strided(
    src: IArray,
    dst: IArray,
    data_shape: Sequence[int],
    i_strides: Sequence[int],
    o_strides: Sequence[int],
    i_offset: int,
    o_offset: int,
    ctype: CopyType,
    *,
    index_width: Optional[IndexWidth] = None,
) -> None:
    """
    Copy with a caller-supplied layout.

    General and GeneralGeneral iterate ``data_shape`` using ``i_strides``
    from ``src.offset + i_offset``. GeneralGeneral writes through
    ``o_strides`` from ``dst.offset + o_offset``; General writes
    contiguously from ``dst.offset + o_offset``. Scalar and Vector ignore
    the explicit layout and behave as in `copy_inplace`.

    Parameters
    ----------
    src, dst : IArray
        Provisioned source and destination.
    data_shape : Sequence[int]
        Iteration extents.
    i_strides, o_strides : Sequence[int]
        Source and destination strides, one per axis of ``data_shape``.
    i_offset, o_offset : int
        Extra element offsets added to each array's own base offset.
    ctype : CopyType
        Strategy.
    index_width : IndexWidth, optional
        Width of the index vectors. Defaults to the configured width.
    """
    layout = CopyLayout(
        tuple(int(d) for d in data_shape),
        tuple(int(s) for s in i_strides),
        tuple(int(s) for s in o_strides),
        int(i_offset),
        int(o_offset),
    )
    _dispatch(src, dst, ctype, layout, index_width)


def copy(
    src: IArray,
    dst: IArray,
    ctype: CopyType,
    *,
    index_width: Optional[IndexWidth] = None,
) -> None:
    """
    Provision ``dst``'s storage, then copy ``src`` into it.

    Provisioning rules:

    - Vector, donatable source with equal itemsizes: ``dst`` takes over the
      source's storage (same strides, flags, data size and offset). The
      Vector pass still runs and converts the elements in place.
    - Vector otherwise: ``dst`` gets a fresh buffer of
      ``src.data_size * dst.itemsize`` bytes and mirrors the source's
      strides, flags and data size.
    - Scalar, General, GeneralGeneral: ``dst`` gets a fresh row-contiguous
      buffer of ``dst.nbytes`` bytes. GeneralGeneral is then run as General,
      since the new destination is contiguous.

    Parameters
    ----------
    src : IArray
        Source array with storage.
    dst : IArray
        Destination placeholder (any existing storage is replaced).
    ctype : CopyType
        Strategy.
    index_width : IndexWidth, optional
        Width of the index vectors. Defaults to the configured width.
    """
    if ctype is CopyType.Vector:
        if src.donatable and src.itemsize == dst.itemsize:
            logger.debug("copy: donating source storage (%d bytes)", src.data_size * src.itemsize)
            dst.copy_shared_buffer(src)
        else:
            nbytes = src.data_size * dst.itemsize
            logger.debug("copy: allocating %d bytes mirroring source layout", nbytes)
            dst.set_data(malloc_or_wait(nbytes), src.data_size, src.strides, src.flags)
    else:
        logger.debug("copy: allocating %d contiguous bytes", dst.nbytes)
        dst.set_data(malloc_or_wait(dst.nbytes))
        if ctype is CopyType.GeneralGeneral:
            ctype = CopyType.General

    copy_inplace(src, dst, ctype, index_width=index_width)


def choose_copy_type(src: IArray, dst: Optional[IArray] = None) -> CopyType:
    """
    Pick a copy strategy for ``src`` (and an existing ``dst``, if given).

    - Without ``dst`` (a destination that `copy` will provision):
      a single physical element -> Scalar; a contiguous source -> Vector;
      anything else -> General.
    - With ``dst``: a destination that is not row-contiguous ->
      GeneralGeneral; otherwise Scalar for a single physical source element,
      Vector when both sides are row-contiguous, General otherwise.
    """
    if dst is not None and not dst.flags.row_contiguous:
        return CopyType.GeneralGeneral
    if src.data_size == 1 and src.size > 0:
        return CopyType.Scalar
    if dst is None:
        return CopyType.Vector if src.flags.contiguous else CopyType.General
    if src.flags.row_contiguous:
        return CopyType.Vector
    return CopyType.General


__all__ = [
    "CopyKernels",
    "CopyLayout",
    "copy",
    "copy_inplace",
    "copy_inplace_strided",
    "choose_copy_type",
    "copy_type_pairs",
    "copy_strategies",
]
