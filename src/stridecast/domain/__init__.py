"""
Backend-agnostic domain types for stridecast.

Nothing in this package imports NumPy: element kinds, copy strategies, the
array-view protocol and the error types are plain Python so that they can be
shared by any storage backend.
"""

from ._dtype import ALL_DTYPES, Dtype, DtypeCategory
from ._copy_type import CopyType, IndexWidth
from ._array import IArray, IArrayFlags
from ._errors import (
    CopyPreconditionError,
    MissingStorageError,
    UnsupportedDtypeError,
)

__all__ = [
    "ALL_DTYPES",
    Dtype.__name__,
    DtypeCategory.__name__,
    CopyType.__name__,
    IndexWidth.__name__,
    IArray.__name__,
    IArrayFlags.__name__,
    CopyPreconditionError.__name__,
    MissingStorageError.__name__,
    UnsupportedDtypeError.__name__,
]
