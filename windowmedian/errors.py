class InvalidArgumentError(ValueError):
    """Raised for a non-positive window size or a value outside the int64 range."""


class EmptyStateError(LookupError):
    """Raised when a median is requested before any value was inserted."""
