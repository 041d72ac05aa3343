"""
NumPy bindings for the domain element kinds.

Maps every `Dtype` member to the NumPy dtype used to reinterpret raw storage
bytes, and back. ``bfloat16`` is provided by ``ml_dtypes``, which registers
it as a first-class NumPy dtype (casts, ufuncs, ``ndarray.view``).
"""

from __future__ import annotations

from typing import Any, Dict

import ml_dtypes
import numpy as np

from ..domain._dtype import Dtype
from ..domain._errors import UnsupportedDtypeError

_TO_NUMPY: Dict[Dtype, np.dtype] = {
    Dtype.bool_: np.dtype(np.bool_),
    Dtype.uint8: np.dtype(np.uint8),
    Dtype.uint16: np.dtype(np.uint16),
    Dtype.uint32: np.dtype(np.uint32),
    Dtype.uint64: np.dtype(np.uint64),
    Dtype.int8: np.dtype(np.int8),
    Dtype.int16: np.dtype(np.int16),
    Dtype.int32: np.dtype(np.int32),
    Dtype.int64: np.dtype(np.int64),
    Dtype.float16: np.dtype(np.float16),
    Dtype.float32: np.dtype(np.float32),
    Dtype.bfloat16: np.dtype(ml_dtypes.bfloat16),
    Dtype.complex64: np.dtype(np.complex64),
}

_FROM_NUMPY: Dict[np.dtype, Dtype] = {v: k for k, v in _TO_NUMPY.items()}


def to_numpy_dtype(dtype: Dtype) -> np.dtype:
    """Return the NumPy dtype backing ``dtype``."""
    return _TO_NUMPY[dtype]


def from_numpy_dtype(dtype: Any) -> Dtype:
    """
    Return the element kind for a NumPy dtype (or anything ``np.dtype``
    accepts). Byte order is ignored: ``>f4`` maps to ``float32``.

    Raises
    ------
    UnsupportedDtypeError
        If the dtype is not one of the 13 supported element kinds
        (e.g. ``float64``).
    """
    try:
        key = np.dtype(dtype).newbyteorder("=")
    except TypeError:
        raise UnsupportedDtypeError(dtype)
    try:
        return _FROM_NUMPY[key]
    except KeyError:
        raise UnsupportedDtypeError(key)
