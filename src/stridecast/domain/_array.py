"""
Array view interface definitions.

This module defines the domain-level contract the copy engine consumes from
an array container, using structural typing. The engine never constructs
arrays itself; it reads layout metadata from a source view and writes into
a destination's storage.

Notes
-----
The protocol mirrors the surface of the infrastructure `Array` so that
dispatch code can be typed against it without importing NumPy.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Tuple, runtime_checkable

from ._dtype import Dtype


@runtime_checkable
class IArrayFlags(Protocol):
    """Contiguity flags propagated on donation."""

    @property
    def contiguous(self) -> bool: ...

    @property
    def row_contiguous(self) -> bool: ...

    @property
    def col_contiguous(self) -> bool: ...


@runtime_checkable
class IArray(Protocol):
    """
    Array view interface.

    An `IArray` describes how to read elements from a shared backing buffer:
    logical shape, per-axis strides (in elements), a base element offset, an
    element type, and contiguity flags.

    Notes
    -----
    - ``size`` is the logical element count (product of ``shape``).
    - ``data_size`` is the number of physical elements materialized in
      storage for this view; it differs from ``size`` for broadcast views.
    - ``donatable`` marks a source whose storage may be handed over to a
      destination instead of being copied.
    """

    @property
    def shape(self) -> Tuple[int, ...]: ...

    @property
    def strides(self) -> Tuple[int, ...]: ...

    @property
    def offset(self) -> int: ...

    @property
    def dtype(self) -> Dtype: ...

    @property
    def size(self) -> int: ...

    @property
    def data_size(self) -> int: ...

    @property
    def itemsize(self) -> int: ...

    @property
    def nbytes(self) -> int: ...

    @property
    def flags(self) -> IArrayFlags: ...

    @property
    def donatable(self) -> bool: ...

    @property
    def storage(self) -> Optional[Any]:
        """Backing storage, or None for an unprovisioned placeholder."""
        ...

    def data(self, dtype: Any) -> Any:
        """
        Return the whole backing buffer reinterpreted as a flat array of
        ``dtype`` elements.

        The view's own ``offset`` is *not* applied; kernels add it to every
        index they compute.
        """
        ...

    def set_data(
        self,
        storage: Any,
        data_size: Optional[int] = None,
        strides: Optional[Tuple[int, ...]] = None,
        flags: Optional[IArrayFlags] = None,
    ) -> None: ...

    def copy_shared_buffer(self, other: "IArray") -> None: ...
