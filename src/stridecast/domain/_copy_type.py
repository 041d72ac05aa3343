"""
Copy strategy and index-width tags.

`CopyType` is produced by whoever classifies a (source, destination) pair of
layouts and consumed by the copy engine, which trusts it without
re-validation. `IndexWidth` selects the integer width used for offset
arithmetic inside the kernels.
"""

from enum import Enum


class CopyType(Enum):
    """
    Copy strategy selected for a (source, destination) pair.

    Attributes
    ----------
    Scalar : CopyType
        The source holds exactly one logical element; it is cast once and
        broadcast into every destination slot.
    Vector : CopyType
        Source and destination are both contiguous with the same traversal
        order; a flat bulk copy suffices.
    General : CopyType
        Arbitrarily strided source, contiguous destination.
    GeneralGeneral : CopyType
        Arbitrarily strided source and destination.
    """

    Scalar = "scalar"
    Vector = "vector"
    General = "general"
    GeneralGeneral = "general_general"


class IndexWidth(Enum):
    """
    Integer width used for per-axis offset vectors.

    ``DEFAULT`` keeps index vectors in 32 bits, which is enough for buffers
    of up to 2**31 - 1 elements. ``WIDE`` uses 64-bit indices and is required
    for anything larger. Numerical results never depend on the width. A
    per-axis offset vector that does not fit the chosen width raises
    `OverflowError`; other offset arithmetic is not range-checked.
    """

    DEFAULT = "default"
    WIDE = "wide"
