"""
Host allocator used by buffer provisioning.

`malloc_or_wait` returns a fresh `Storage` of the requested size. Under
memory pressure it does not fail on the first attempt: it forces a garbage
collection pass (releasing storages no array references any more) and
retries before giving up.
"""

from __future__ import annotations

import gc
import logging

import numpy as np

from ._storage import Storage

logger = logging.getLogger(__name__)

_MAX_ATTEMPTS = 3


def malloc_or_wait(nbytes: int) -> Storage:
    """
    Allocate ``nbytes`` bytes of host storage.

    Parameters
    ----------
    nbytes : int
        Requested size in bytes. Zero is allowed and yields an empty storage.

    Returns
    -------
    Storage
        Newly allocated, uninitialized storage.

    Raises
    ------
    ValueError
        If ``nbytes`` is negative.
    MemoryError
        If the allocation still fails after the retry attempts.
    """
    nbytes = int(nbytes)
    if nbytes < 0:
        raise ValueError("nbytes must be >= 0")

    for attempt in range(1, _MAX_ATTEMPTS + 1):
        try:
            return Storage(np.empty(nbytes, dtype=np.uint8))
        except MemoryError:
            if attempt == _MAX_ATTEMPTS:
                raise
            logger.warning(
                "allocation of %d bytes failed (attempt %d/%d); collecting and retrying",
                nbytes,
                attempt,
                _MAX_ATTEMPTS,
            )
            gc.collect()
    raise AssertionError("unreachable")
