"""
Exceptions raised by stridecast.

The copy kernels themselves have no recoverable-error taxonomy: layouts,
strategy tags and dtype pairs are trusted. The errors below surface only at
the container boundary (unsupported dtypes, arrays without data), at the
opt-in precondition validation pass, and from the dispatch tables when a key
was never registered.
"""


class UnsupportedDtypeError(TypeError):
    """
    Raised when an array-library dtype has no corresponding element kind.

    Attributes
    ----------
    dtype : object
        The offending dtype object (e.g., ``numpy.dtype('float64')``).
    """

    def __init__(self, dtype: object) -> None:
        """
        Initialize the UnsupportedDtypeError.

        Parameters
        ----------
        dtype : object
            The dtype that could not be mapped.
        """
        super().__init__(f"Unsupported element type: {dtype!r}.")
        self.dtype = dtype


class MissingStorageError(RuntimeError):
    """
    Raised when an array without backing storage is read.

    Destination placeholders have no storage until `copy` provisions one;
    reading them before that is a caller error.
    """

    def __init__(self, what: str) -> None:
        super().__init__(f"{what} has no backing storage.")
        self.what = what


class CopyPreconditionError(AssertionError):
    """
    Raised by the opt-in validation pass when a copy request is inconsistent.

    This error only exists when debug checks are enabled (see
    ``STRIDECAST_DEBUG_CHECKS``). Without them an inconsistent request is
    undefined behavior, as the engine performs no per-call validation.

    Attributes
    ----------
    reason : str
        Human-readable description of the violated precondition.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"Copy precondition violated: {reason}")
        self.reason = reason
