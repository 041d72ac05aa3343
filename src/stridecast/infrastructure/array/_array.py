"""
NumPy-backed array views over shared `Storage`.

`Array` is the concrete container the copy engine reads from and writes
into. It is deliberately thin: a layout (shape, element strides, base
offset, dtype, contiguity flags, data size) plus a reference to a raw
`Storage`. Views created with `as_strided`, `transpose` or `broadcast_to`
share storage with their parent and never copy.

Design notes
------------
- Strides and offsets are in *elements*, not bytes.
- A destination placeholder is an `Array` without storage; `copy` provisions
  its storage (fresh or donated) before writing.
- ``donatable`` is an explicit caller-set marker. It plays the role of "the
  source holds the only reference to its buffer": when set, a Vector copy
  may hand the source's storage to the destination instead of allocating.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from ...domain._dtype import Dtype
from ...domain._errors import MissingStorageError
from .._dtypes import from_numpy_dtype, to_numpy_dtype
from ..ops.strides_cpu import elem_to_loc, numel, row_major_strides
from ._allocator import malloc_or_wait
from ._storage import Storage


def _col_major_strides(shape: Sequence[int]) -> Tuple[int, ...]:
    strides = []
    step = 1
    for d in shape:
        strides.append(step)
        step *= max(int(d), 1)
    return tuple(strides)


def _strides_match(
    shape: Sequence[int], strides: Sequence[int], expected: Sequence[int]
) -> bool:
    return all(d == 1 or s == e for d, s, e in zip(shape, strides, expected))


@dataclass(frozen=True)
class ArrayFlags:
    """
    Contiguity flags of an array layout.

    Attributes
    ----------
    contiguous : bool
        The elements fill a dense block of memory (in some axis order) with
        no gaps, no repeats and no negative strides.
    row_contiguous : bool
        The layout is C-contiguous (last axis fastest).
    col_contiguous : bool
        The layout is Fortran-contiguous (first axis fastest).
    """

    contiguous: bool
    row_contiguous: bool
    col_contiguous: bool

    @classmethod
    def from_layout(cls, shape: Sequence[int], strides: Sequence[int]) -> "ArrayFlags":
        """Derive the flags of a (shape, strides) layout."""
        row = _strides_match(shape, strides, row_major_strides(shape))
        col = _strides_match(shape, strides, _col_major_strides(shape))

        dense = True
        expected = 1
        axes = sorted(
            ((int(s), int(d)) for d, s in zip(shape, strides) if int(d) != 1),
            key=lambda sd: sd[0],
        )
        for s, d in axes:
            if s != expected:
                dense = False
                break
            expected *= d
        if numel(shape) == 0:
            dense = True

        return cls(contiguous=row or col or dense, row_contiguous=row, col_contiguous=col)


def _span(shape: Sequence[int], strides: Sequence[int]) -> int:
    """Number of elements between the lowest and highest addressed offsets, inclusive."""
    if numel(shape) == 0:
        return 0
    return 1 + sum((int(d) - 1) * abs(int(s)) for d, s in zip(shape, strides))


class Array:
    """
    Strided view over a shared host `Storage`.

    Parameters
    ----------
    shape : Sequence[int]
        Logical axis extents.
    dtype : Dtype
        Element kind.
    strides : Sequence[int], optional
        Per-axis strides in elements. Defaults to row-major.
    offset : int, optional
        Base element offset into the storage. Default 0.
    storage : Storage, optional
        Backing storage. ``None`` creates an unprovisioned placeholder.
    data_size : int, optional
        Physical elements materialized for this view. Defaults to the
        logical size when the layout is contiguous, otherwise to the span
        of addressed elements.
    flags : ArrayFlags, optional
        Contiguity flags. Derived from the layout when omitted.
    donatable : bool, optional
        Whether a copy may take over this array's storage. Default False.
    """

    __slots__ = (
        "_shape",
        "_strides",
        "_dtype",
        "_offset",
        "_storage",
        "_data_size",
        "_flags",
        "donatable",
    )

    def __init__(
        self,
        shape: Sequence[int],
        dtype: Dtype,
        *,
        strides: Optional[Sequence[int]] = None,
        offset: int = 0,
        storage: Optional[Storage] = None,
        data_size: Optional[int] = None,
        flags: Optional[ArrayFlags] = None,
        donatable: bool = False,
    ) -> None:
        shape = tuple(int(d) for d in shape)
        if any(d < 0 for d in shape):
            raise ValueError(f"negative dimensions are not allowed: {shape}")
        if not isinstance(dtype, Dtype):
            raise TypeError(f"dtype must be a Dtype, got {type(dtype)!r}")

        self._shape = shape
        self._dtype = dtype
        self._storage: Optional[Storage] = None
        self.donatable = bool(donatable)
        self._set_layout(
            tuple(int(s) for s in strides) if strides is not None else row_major_strides(shape),
            int(offset),
            data_size,
            flags,
        )
        if storage is not None:
            self._attach(storage)

    # ------------------------------------------------------------------
    # Layout metadata
    # ------------------------------------------------------------------
    @property
    def shape(self) -> Tuple[int, ...]:
        return self._shape

    @property
    def strides(self) -> Tuple[int, ...]:
        return self._strides

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def dtype(self) -> Dtype:
        return self._dtype

    @property
    def ndim(self) -> int:
        return len(self._shape)

    @property
    def size(self) -> int:
        """Logical element count (product of ``shape``)."""
        return numel(self._shape)

    @property
    def data_size(self) -> int:
        """Physical element count materialized in storage for this view."""
        return self._data_size

    @property
    def itemsize(self) -> int:
        return self._dtype.itemsize

    @property
    def nbytes(self) -> int:
        """Logical byte count, ``size * itemsize``."""
        return self.size * self.itemsize

    @property
    def flags(self) -> ArrayFlags:
        return self._flags

    @property
    def storage(self) -> Optional[Storage]:
        return self._storage

    # ------------------------------------------------------------------
    # Storage access
    # ------------------------------------------------------------------
    def data(self, dtype: Optional[np.dtype] = None) -> np.ndarray:
        """
        Return the whole backing buffer as a flat array of ``dtype``.

        Parameters
        ----------
        dtype : np.dtype, optional
            Element type of the view. Defaults to this array's dtype.

        Raises
        ------
        MissingStorageError
            If the array has no storage yet.
        """
        if self._storage is None:
            raise MissingStorageError(repr(self))
        return self._storage.data(to_numpy_dtype(self._dtype) if dtype is None else dtype)

    def set_data(
        self,
        storage: Storage,
        data_size: Optional[int] = None,
        strides: Optional[Sequence[int]] = None,
        flags: Optional[ArrayFlags] = None,
    ) -> None:
        """
        Point this array at ``storage`` with a fresh layout.

        With only ``storage`` given the array becomes row-contiguous with
        ``data_size == size`` and offset 0. Passing ``data_size``, ``strides``
        and ``flags`` lets a Vector copy mirror the source's layout.
        """
        self._set_layout(
            tuple(int(s) for s in strides) if strides is not None else row_major_strides(self._shape),
            0,
            data_size,
            flags,
        )
        self._attach(storage)

    def copy_shared_buffer(self, other: "Array") -> None:
        """
        Share ``other``'s storage, strides, flags, data size and offset.

        No bytes are copied; both arrays reference the same `Storage`.
        """
        if other.storage is None:
            raise MissingStorageError(repr(other))
        self._set_layout(other.strides, other.offset, other.data_size, other.flags)
        self._attach(other.storage)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------
    @classmethod
    def from_numpy(cls, arr: Union[np.ndarray, Sequence], *, donatable: bool = False) -> "Array":
        """
        Copy a NumPy array into freshly allocated storage.

        Parameters
        ----------
        arr : np.ndarray or array-like
            Source values. Its dtype must be one of the supported kinds.
        donatable : bool, optional
            Marker copied onto the returned array.

        Raises
        ------
        UnsupportedDtypeError
            If ``arr.dtype`` is not supported (e.g. ``float64``).
        """
        arr = np.asarray(arr)
        dtype = from_numpy_dtype(arr.dtype)
        native = to_numpy_dtype(dtype)
        out = cls(arr.shape, dtype, donatable=donatable)
        storage = malloc_or_wait(out.nbytes)
        storage.data(native)[: out.size] = np.ascontiguousarray(arr, dtype=native).reshape(-1)
        out.set_data(storage)
        return out

    def to_numpy(self) -> np.ndarray:
        """
        Materialize the logical contents as a new C-contiguous ndarray.

        Raises
        ------
        MissingStorageError
            If the array has no storage.
        """
        buf = self.data()
        locs = elem_to_loc(np.arange(self.size, dtype=np.int64), self._shape, self._strides)
        return buf[self._offset + locs].reshape(self._shape)

    def as_strided(
        self,
        shape: Sequence[int],
        strides: Sequence[int],
        offset: Optional[int] = None,
    ) -> "Array":
        """
        Create a view with an arbitrary layout over the same storage.

        Parameters
        ----------
        shape : Sequence[int]
            View extents.
        strides : Sequence[int]
            View strides in elements (may be zero or negative).
        offset : int, optional
            Base element offset. Defaults to this array's offset.
        """
        if self._storage is None:
            raise MissingStorageError(repr(self))
        if len(shape) != len(strides):
            raise ValueError(
                f"shape and strides must have the same length, got {len(shape)} and {len(strides)}"
            )
        return Array(
            shape,
            self._dtype,
            strides=strides,
            offset=self._offset if offset is None else offset,
            storage=self._storage,
        )

    def transpose(self, *axes: int) -> "Array":
        """Permuted view (reversed axes when ``axes`` is empty)."""
        if not axes:
            axes = tuple(reversed(range(self.ndim)))
        if sorted(axes) != list(range(self.ndim)):
            raise ValueError(f"invalid permutation {axes} for ndim={self.ndim}")
        return self.as_strided(
            [self._shape[a] for a in axes], [self._strides[a] for a in axes]
        )

    def broadcast_to(self, shape: Sequence[int]) -> "Array":
        """
        Zero-stride view of this array expanded to ``shape``.

        Follows NumPy broadcasting: trailing axes are aligned and extent-1
        (or missing) axes are repeated.

        Raises
        ------
        ValueError
            If the shapes are not broadcast-compatible.
        """
        shape = tuple(int(d) for d in shape)
        if len(shape) < self.ndim:
            raise ValueError(f"cannot broadcast {self._shape} to {shape}")
        lead = len(shape) - self.ndim
        strides = [0] * lead
        for d_src, s_src, d_dst in zip(self._shape, self._strides, shape[lead:]):
            if d_src == d_dst:
                strides.append(s_src)
            elif d_src == 1:
                strides.append(0)
            else:
                raise ValueError(f"cannot broadcast {self._shape} to {shape}")
        return self.as_strided(shape, strides)

    def astype(self, dtype: Dtype) -> "Array":
        """
        Return a new array holding this array's values converted to ``dtype``.

        The copy strategy is chosen by `choose_copy_type` and the destination
        buffer is provisioned by `copy` (possibly donated when this array is
        marked donatable and the itemsizes match).
        """
        from ..ops.copy_cpu_ext import choose_copy_type, copy

        out = Array(self._shape, dtype)
        copy(self, out, choose_copy_type(self))
        return out

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _set_layout(
        self,
        strides: Tuple[int, ...],
        offset: int,
        data_size: Optional[int],
        flags: Optional[ArrayFlags],
    ) -> None:
        if len(strides) != len(self._shape):
            raise ValueError(
                f"strides {strides} do not match shape {self._shape}"
            )
        self._strides = strides
        self._offset = offset
        self._flags = flags if flags is not None else ArrayFlags.from_layout(self._shape, strides)
        if data_size is None:
            data_size = self.size if self._flags.contiguous else _span(self._shape, strides)
        self._data_size = int(data_size)

    def _attach(self, storage: Storage) -> None:
        if storage is self._storage:
            return
        storage.incref()
        if self._storage is not None:
            self._storage.decref()
        self._storage = storage

    def __repr__(self) -> str:
        state = "unprovisioned" if self._storage is None else f"{self._storage.nbytes}B"
        return (
            f"Array(shape={self._shape}, dtype={self._dtype}, strides={self._strides}, "
            f"offset={self._offset}, storage={state})"
        )
