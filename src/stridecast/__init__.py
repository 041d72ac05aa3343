"""
stridecast: strided array copy-and-cast engine.

Materializes an arbitrarily strided view of one element type into a
destination buffer of the same or another element type, choosing between a
broadcast (Scalar), a flat bulk copy (Vector), or strided loop nests
(General, GeneralGeneral) after collapsing contiguous axes.

Example
-------
>>> import numpy as np
>>> from stridecast import Array, Dtype
>>> src = Array.from_numpy(np.arange(6, dtype=np.float32).reshape(2, 3))
>>> src.transpose().astype(Dtype.int32).to_numpy()
array([[0, 3],
       [1, 4],
       [2, 5]], dtype=int32)
"""

from .domain import (
    ALL_DTYPES,
    CopyPreconditionError,
    CopyType,
    Dtype,
    IndexWidth,
    MissingStorageError,
    UnsupportedDtypeError,
)
from .infrastructure import (
    Array,
    ArrayFlags,
    Storage,
    choose_copy_type,
    collapse_contiguous_dims,
    copy,
    copy_inplace,
    copy_inplace_strided,
    elem_to_loc,
    get_config,
    malloc_or_wait,
    reload_config,
    setup_logger,
)

__version__ = "0.1.0"

__all__ = [
    "ALL_DTYPES",
    CopyPreconditionError.__name__,
    CopyType.__name__,
    Dtype.__name__,
    IndexWidth.__name__,
    MissingStorageError.__name__,
    UnsupportedDtypeError.__name__,
    Array.__name__,
    ArrayFlags.__name__,
    Storage.__name__,
    choose_copy_type.__name__,
    collapse_contiguous_dims.__name__,
    copy.__name__,
    copy_inplace.__name__,
    copy_inplace_strided.__name__,
    elem_to_loc.__name__,
    get_config.__name__,
    malloc_or_wait.__name__,
    reload_config.__name__,
    setup_logger.__name__,
]
