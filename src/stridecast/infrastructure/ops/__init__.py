from .strides_cpu import collapse_contiguous_dims, elem_to_loc, row_major_strides
from .cast_cpu import make_caster
from .copy_cpu_ext import (
    CopyKernels,
    CopyLayout,
    choose_copy_type,
    copy,
    copy_inplace,
    copy_inplace_strided,
)

__all__ = [
    collapse_contiguous_dims.__name__,
    elem_to_loc.__name__,
    row_major_strides.__name__,
    make_caster.__name__,
    CopyKernels.__name__,
    CopyLayout.__name__,
    choose_copy_type.__name__,
    copy.__name__,
    copy_inplace.__name__,
    copy_inplace_strided.__name__,
]
