"""
Element type descriptors.

This module defines the closed set of element kinds the copy engine can read
and write. It is intentionally free of NumPy: the domain layer only needs to
know *what* an element is (its category and width), while the mapping to a
concrete array-library dtype lives in the infrastructure layer.

Supported kinds
---------------
- boolean
- unsigned integers: 8 / 16 / 32 / 64 bit
- signed integers: 8 / 16 / 32 / 64 bit
- floating point: float16, bfloat16 (reduced precision) and float32
- complex64 (two float32 components)
"""

from enum import Enum


class DtypeCategory(Enum):
    """
    Coarse classification of element kinds.

    The casting layer uses the category to decide how a value crosses kinds
    (e.g., complex -> real takes the real component).
    """

    BOOL = "bool"
    UNSIGNED = "unsigned"
    SIGNED = "signed"
    FLOATING = "floating"
    COMPLEX = "complex"


class Dtype(Enum):
    """
    Element type tag carried by every array.

    Each member's value is a ``(name, itemsize, category)`` triple. The name
    matches the conventional NumPy spelling so that infrastructure code can
    resolve it without a lookup table for the common cases.

    Notes
    -----
    ``bfloat16`` has no NumPy builtin; infrastructure resolves it through
    ``ml_dtypes``.
    """

    bool_ = ("bool", 1, DtypeCategory.BOOL)
    uint8 = ("uint8", 1, DtypeCategory.UNSIGNED)
    uint16 = ("uint16", 2, DtypeCategory.UNSIGNED)
    uint32 = ("uint32", 4, DtypeCategory.UNSIGNED)
    uint64 = ("uint64", 8, DtypeCategory.UNSIGNED)
    int8 = ("int8", 1, DtypeCategory.SIGNED)
    int16 = ("int16", 2, DtypeCategory.SIGNED)
    int32 = ("int32", 4, DtypeCategory.SIGNED)
    int64 = ("int64", 8, DtypeCategory.SIGNED)
    float16 = ("float16", 2, DtypeCategory.FLOATING)
    float32 = ("float32", 4, DtypeCategory.FLOATING)
    bfloat16 = ("bfloat16", 2, DtypeCategory.FLOATING)
    complex64 = ("complex64", 8, DtypeCategory.COMPLEX)

    @property
    def type_name(self) -> str:
        """Canonical element type name (e.g. ``"float32"``)."""
        return self.value[0]

    @property
    def itemsize(self) -> int:
        """Size of one element in bytes."""
        return self.value[1]

    @property
    def category(self) -> DtypeCategory:
        """Coarse element kind."""
        return self.value[2]

    def is_complex(self) -> bool:
        return self.category is DtypeCategory.COMPLEX

    def is_reduced_precision(self) -> bool:
        """
        Whether this is one of the 16-bit floating formats.

        Reduced-precision floats convert to and from every other kind through
        ``float32``.
        """
        return self is Dtype.float16 or self is Dtype.bfloat16

    @classmethod
    def from_name(cls, name: str) -> "Dtype":
        """
        Resolve a dtype from its canonical name.

        Parameters
        ----------
        name : str
            Element type name such as ``"int32"`` or ``"bfloat16"``.
            ``"bool_"`` is accepted as an alias of ``"bool"``.

        Raises
        ------
        KeyError
            If the name does not denote a supported element kind.
        """
        if name == "bool_":
            name = "bool"
        for member in cls:
            if member.type_name == name:
                return member
        raise KeyError(name)

    def __str__(self) -> str:
        return self.type_name

    def __repr__(self) -> str:
        return f"Dtype.{self.name}"


ALL_DTYPES = tuple(Dtype)
"""All supported element kinds, in dispatch order."""
