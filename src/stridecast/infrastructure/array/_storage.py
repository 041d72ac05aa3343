"""
Host storage and lifetime bookkeeping.

This module defines `Storage`, a reference-counted wrapper around one raw
host allocation (a flat NumPy ``uint8`` buffer). Arrays never own bytes
directly; they hold a reference to a `Storage` plus a layout (shape, strides,
offset, dtype). Several arrays may share one storage, which is how buffer
donation hands a source's memory to a destination without copying.

Core Concepts
-------------
- **Raw bytes, typed views**:
    The buffer is untyped. `Storage.data(dtype)` reinterprets the whole
    buffer as a flat array of ``dtype`` elements without copying, so the
    same bytes can be read as ``float32`` and then written as ``int32``.

- **Reference counting**:
    Each array that attaches to a storage calls `incref`; detaching (being
    re-pointed at another storage) calls `decref`. The count is
    informational: memory itself is released by the garbage collector once
    no array references the `Storage` object.

Thread Safety
-------------
Reference count updates are protected by an internal lock. Writes into the
buffer are not synchronized; callers own exclusive write access to a
destination for the duration of a copy.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

import numpy as np


@dataclass
class Storage:
    """
    Reference-counted raw host allocation.

    Attributes
    ----------
    buffer : np.ndarray
        One-dimensional ``uint8`` array holding the raw bytes.

    Notes
    -----
    - This class intentionally avoids defining `__del__`; the count tracks
      attachments, not lifetime.
    - The storage imposes no layout; shape, strides and offset belong to the
      arrays that view it.
    """

    buffer: np.ndarray

    _refcnt: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        if self.buffer.dtype != np.uint8 or self.buffer.ndim != 1:
            self.buffer = np.ascontiguousarray(self.buffer).reshape(-1).view(np.uint8)

    @property
    def nbytes(self) -> int:
        """Size of the allocation in bytes."""
        return int(self.buffer.nbytes)

    @property
    def refcount(self) -> int:
        """Number of arrays currently attached to this storage."""
        return self._refcnt

    def data(self, dtype: np.dtype) -> np.ndarray:
        """
        Reinterpret the whole buffer as a flat array of ``dtype`` elements.

        Parameters
        ----------
        dtype : np.dtype
            Element type of the returned view.

        Returns
        -------
        np.ndarray
            A writable 1-D view sharing memory with the buffer.
        """
        itemsize = np.dtype(dtype).itemsize
        usable = (self.nbytes // itemsize) * itemsize
        return self.buffer[:usable].view(dtype)

    def incref(self) -> None:
        """Record one more array attached to this storage."""
        with self._lock:
            self._refcnt += 1

    def decref(self) -> None:
        """Record that an array detached from this storage."""
        with self._lock:
            if self._refcnt > 0:
                self._refcnt -= 1
