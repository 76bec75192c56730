"""
Error taxonomy for DenoiseLab.

All failures surfaced by the filtering engine derive from DenoiseLabError so
callers can catch the whole family at once.
"""


class DenoiseLabError(Exception):
    """Base exception for filtering engine failures."""
    pass


class InvalidParameter(DenoiseLabError, ValueError):
    """Raised when a parameter is outside its validated range."""
    pass


class DimensionMismatch(DenoiseLabError, ValueError):
    """Raised when sample data does not agree with the declared dimensions."""
    pass


class OutOfBounds(DenoiseLabError, IndexError):
    """Raised on explicit pixel access outside the buffer extent."""
    pass


class NoCandidates(DenoiseLabError):
    """Raised when the optimization catalog is empty."""
    pass
