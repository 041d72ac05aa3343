from ._storage import Storage
from ._allocator import malloc_or_wait
from ._array import Array, ArrayFlags

__all__ = [
    Storage.__name__,
    malloc_or_wait.__name__,
    Array.__name__,
    ArrayFlags.__name__,
]
