"""
NumPy-backed implementation of the stridecast engine.

- `array`: reference-counted storage, the host allocator and the `Array`
  view container.
- `ops`: stride utilities, element casting, the copy kernels and their
  Array-level dispatch.
"""

from ._config import CopyConfig, get_config, load_config, reload_config
from ._dtypes import from_numpy_dtype, to_numpy_dtype
from ._logger import setup_logger
from .array import Array, ArrayFlags, Storage, malloc_or_wait
from .ops import (
    choose_copy_type,
    collapse_contiguous_dims,
    copy,
    copy_inplace,
    copy_inplace_strided,
    elem_to_loc,
)

__all__ = [
    CopyConfig.__name__,
    get_config.__name__,
    load_config.__name__,
    reload_config.__name__,
    from_numpy_dtype.__name__,
    to_numpy_dtype.__name__,
    setup_logger.__name__,
    Array.__name__,
    ArrayFlags.__name__,
    Storage.__name__,
    malloc_or_wait.__name__,
    choose_copy_type.__name__,
    collapse_contiguous_dims.__name__,
    copy.__name__,
    copy_inplace.__name__,
    copy_inplace_strided.__name__,
    elem_to_loc.__name__,
]
